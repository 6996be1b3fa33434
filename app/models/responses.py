# =============================================================================
# API Response Models — Pydantic V2 Schemas
# =============================================================================
#
# Serialised in camelCase (FastAPI uses aliases for response_model
# output), matching what the dashboard expects.
#
# Step results are exposed only as a capped `resultPreview`; the full
# text is folded into the top-level `response` by the synthesizer.
# =============================================================================

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HealthResponse(BaseModel):
    """Response for GET /health — confirms the API is running."""

    status: str = "ok"
    version: str
    service: str


class AgentSummary(_CamelModel):
    """Public view of a registry agent (no system prompt, no model)."""

    id: str
    name: str
    name_ar: str
    description: str
    description_ar: str
    icon: str
    color: str


class AgentListResponse(_CamelModel):
    """Response for action='list-agents' and GET /agents."""

    agents: list[AgentSummary]


class ChatResponse(_CamelModel):
    """Response for action='chat'."""

    agent_id: str
    agent_name: str
    response: str = Field(description="The agent's reply")


class WorkflowStepView(_CamelModel):
    """One executed step, as shown in the dashboard timeline."""

    agent_id: str
    agent_name: str | None = None
    agent_icon: str | None = None
    task: str
    status: str = Field(description="pending, running, completed or failed")
    result_preview: str | None = Field(
        default=None,
        description="First characters of the step result (or error text)",
    )


class WorkflowView(_CamelModel):
    id: str
    name: str
    status: str = Field(description="planning, running, completed or failed")
    steps: list[WorkflowStepView]


class WorkflowResponse(_CamelModel):
    """Response for action='workflow' / autoWorkflow=true."""

    workflow: WorkflowView
    response: str | None = Field(description="Synthesized final answer")
