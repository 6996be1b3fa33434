# =============================================================================
# API Request Models — Pydantic V2 Schemas
# =============================================================================
#
# The dashboard sends camelCase JSON (agentId, workspaceId, ...). Fields
# are declared in snake_case with a camelCase alias generator;
# populate_by_name lets Python callers use either spelling.
#
# `action` is a plain string, not a Literal: an unrecognised action is
# answered with 400 "Invalid action" by the handler rather than a 422
# validation error.
# =============================================================================

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class MultiAgentRequest(BaseModel):
    """
    Request body for POST /multi-agent.

    Example:
        {
            "action": "workflow",
            "message": "Assess market entry options for Saudi Arabia",
            "projectId": "0b8f..."
        }
    """

    action: str | None = Field(
        default=None,
        description="One of 'list-agents', 'chat', 'workflow'.",
        examples=["workflow"],
    )

    # Required for action="chat"
    agent_id: str | None = Field(
        default=None,
        description="Agent to chat with directly (action='chat').",
        examples=["analyst"],
    )

    message: str = Field(
        default="",
        max_length=8000,
        description="The user's request. Required for 'chat' and 'workflow'.",
        examples=["What do competitors charge?"],
    )

    # Knowledge scoping; project wins over workspace when both are set
    workspace_id: str | None = Field(default=None, max_length=64)
    project_id: str | None = Field(default=None, max_length=64)

    # Run the full workflow regardless of `action`
    auto_workflow: bool = Field(
        default=False,
        description="Run the plan/execute/synthesize pipeline.",
    )

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {"action": "list-agents"},
                {
                    "action": "chat",
                    "agentId": "analyst",
                    "message": "Summarise our Q3 pipeline risks",
                },
                {
                    "action": "workflow",
                    "message": "Assess market entry options for Saudi Arabia",
                    "workspaceId": "5c1e7d2a-0f0e-4d8e-9a55-2b0b3f1c9e10",
                },
            ]
        },
    )
