# =============================================================================
# Multi-Agent API — Agent Listing, Direct Chat, Autonomous Workflows
# =============================================================================
#
# POST /multi-agent dispatches on `action`:
#
#   list-agents          → registry contents (no context, no LLM calls)
#   chat + agentId       → one direct call to that agent
#   workflow | autoWorkflow=true
#                        → plan → execute → synthesize (agents/orchestrator)
#   anything else        → 400 "Invalid action"
#
# GET /agents returns the same payload as list-agents.
#
# ERROR MAPPING:
#   unknown agentId on chat          → 404
#   empty message                    → 400
#   provider not configured          → 503
#   upstream 429 / 402 on chat       → passed through
#   other completion failure on chat → 502
#   UnknownAgentError in a workflow  → 500
#
# Step and synthesis failures inside a workflow are absorbed by the
# orchestrator; the caller still receives a 200 with a final response.
# =============================================================================

from __future__ import annotations

import logging
import time

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.agents.orchestrator import chat_with_agent, run_workflow
from app.agents.registry import get_registry
from app.agents.workflow import Workflow
from app.api.deps import get_current_user
from app.config import settings
from app.db.engine import async_session_factory, get_async_session
from app.db.models import WorkflowRun
from app.errors import CompletionError, UnknownAgentError, UpstreamError
from app.models.requests import MultiAgentRequest
from app.models.responses import (
    AgentListResponse,
    AgentSummary,
    ChatResponse,
    WorkflowResponse,
    WorkflowStepView,
    WorkflowView,
)
from app.services.auth import AuthenticatedUser
from app.services.context import load_context
from app.services.llm import LLMProvider, get_llm_provider
from app.services.rate_limiter import enforce_rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Multi-Agent"])

# Upstream statuses the caller can act on; anything else becomes 502
_PASSTHROUGH_STATUSES = {
    429: "Rate limit exceeded. Please try again later.",
    402: "Payment required. Please add credits.",
}


# ---------------------------------------------------------------------------
# GET /agents — List registry agents
# ---------------------------------------------------------------------------


@router.get(
    "/agents",
    response_model=AgentListResponse,
    summary="List available agents",
)
async def list_agents_endpoint() -> AgentListResponse:
    return _agent_list()


# ---------------------------------------------------------------------------
# POST /multi-agent — Action dispatcher
# ---------------------------------------------------------------------------


@router.post(
    "/multi-agent",
    response_model=AgentListResponse | ChatResponse | WorkflowResponse,
    dependencies=[Depends(enforce_rate_limit)],
    summary="Chat with an agent or run an autonomous multi-agent workflow",
    description=(
        "Dispatches on `action`: 'list-agents' returns the agent registry, "
        "'chat' talks to one agent directly, 'workflow' (or "
        "autoWorkflow=true) plans a sequence of specialist tasks, runs "
        "them in order and synthesizes a final answer."
    ),
)
async def multi_agent_endpoint(
    request: MultiAgentRequest,
    background_tasks: BackgroundTasks,
    user: AuthenticatedUser | None = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
) -> AgentListResponse | ChatResponse | WorkflowResponse:
    user_id = user.user_id if user else None

    logger.info(
        "Multi-agent request: action=%s, agent=%s, user=%s",
        request.action, request.agent_id or "auto", user_id or "anonymous",
    )

    if request.action == "list-agents":
        return _agent_list()

    if request.action == "chat" and request.agent_id:
        if get_registry().get_agent(request.agent_id) is None:
            raise HTTPException(status_code=404, detail="Agent not found")
        _require_message(request)
        llm = _resolve_provider()
        context = await _load_request_context(session, user_id, request)
        return await _chat(request, context, llm)

    if request.action == "workflow" or request.auto_workflow:
        _require_message(request)
        llm = _resolve_provider()
        context = await _load_request_context(session, user_id, request)
        return await _workflow(request, context, llm, user_id, background_tasks)

    raise HTTPException(status_code=400, detail="Invalid action")


# ---------------------------------------------------------------------------
# Action Handlers
# ---------------------------------------------------------------------------


def _agent_list() -> AgentListResponse:
    return AgentListResponse(
        agents=[
            AgentSummary(
                id=a.id,
                name=a.name,
                name_ar=a.name_ar,
                description=a.description,
                description_ar=a.description_ar,
                icon=a.icon,
                color=a.color,
            )
            for a in get_registry().list_agents()
        ]
    )


async def _chat(
    request: MultiAgentRequest,
    context: str,
    llm: LLMProvider,
) -> ChatResponse:
    try:
        agent, response = await chat_with_agent(
            request.agent_id, request.message, context, llm=llm,
        )
    except UpstreamError as e:
        if e.status_code in _PASSTHROUGH_STATUSES:
            raise HTTPException(
                status_code=e.status_code,
                detail=_PASSTHROUGH_STATUSES[e.status_code],
            ) from e
        logger.error("Direct chat failed: %s", e)
        raise HTTPException(
            status_code=502, detail=f"LLM service error: {e}",
        ) from e
    except CompletionError as e:
        logger.error("Direct chat failed: %s", e)
        raise HTTPException(
            status_code=502, detail=f"LLM service error: {e}",
        ) from e

    return ChatResponse(agent_id=agent.id, agent_name=agent.name, response=response)


async def _workflow(
    request: MultiAgentRequest,
    context: str,
    llm: LLMProvider,
    user_id: str | None,
    background_tasks: BackgroundTasks,
) -> WorkflowResponse:
    start_time = time.monotonic()

    try:
        workflow = await run_workflow(request.message, context, llm=llm)
    except UnknownAgentError as e:
        logger.exception("Workflow configuration error: %s", e)
        raise HTTPException(
            status_code=500,
            detail=f"Workflow configuration error: {e}",
        ) from e

    total_latency_ms = int((time.monotonic() - start_time) * 1000)

    if settings.workflow_logging_enabled:
        background_tasks.add_task(
            _persist_workflow_run,
            workflow=workflow,
            request_text=request.message,
            user_id=user_id,
            workspace_id=request.workspace_id,
            project_id=request.project_id,
            total_latency_ms=total_latency_ms,
        )

    return WorkflowResponse(
        workflow=_workflow_view(workflow),
        response=workflow.final_result,
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _load_request_context(
    session: AsyncSession,
    user_id: str | None,
    request: MultiAgentRequest,
) -> str:
    """
    Load knowledge context, then end the request's DB transaction.

    Committing here persists the API key's last_used_at and returns the
    pooled connection before the LLM calls, which can take minutes.
    """
    context = await load_context(
        session, user_id, request.workspace_id, request.project_id,
    )
    try:
        await session.commit()
    except SQLAlchemyError as e:
        logger.warning("Failed to commit request session: %s", e)
        await session.rollback()
    return context


def _require_message(request: MultiAgentRequest) -> None:
    if not request.message.strip():
        raise HTTPException(status_code=400, detail="Message is required")


def _resolve_provider() -> LLMProvider:
    try:
        return get_llm_provider()
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        raise HTTPException(
            status_code=503,
            detail=f"Service configuration error: {e}",
        ) from e


def _workflow_view(workflow: Workflow) -> WorkflowView:
    registry = get_registry()
    steps = []
    for step in workflow.steps:
        agent = registry.get_agent(step.agent_id)
        preview = (
            step.result[:settings.result_preview_chars]
            if step.result is not None else None
        )
        steps.append(WorkflowStepView(
            agent_id=step.agent_id,
            agent_name=agent.name if agent else None,
            agent_icon=agent.icon if agent else None,
            task=step.task,
            status=step.status.value,
            result_preview=preview,
        ))

    return WorkflowView(
        id=workflow.id,
        name=workflow.name,
        status=workflow.status.value,
        steps=steps,
    )


# ---------------------------------------------------------------------------
# Background Workflow Log
# ---------------------------------------------------------------------------


async def _persist_workflow_run(
    workflow: Workflow,
    request_text: str,
    user_id: str | None,
    workspace_id: str | None,
    project_id: str | None,
    total_latency_ms: int,
) -> None:
    """
    Persist a WorkflowRun row in the background.

    Uses its own DB session; the request session is closed by now.
    """
    try:
        async with async_session_factory() as session:
            session.add(WorkflowRun(
                id=workflow.id,
                user_id=user_id,
                workspace_id=workspace_id,
                project_id=project_id,
                name=workflow.name,
                status=workflow.status.value,
                request=request_text,
                step_count=len(workflow.steps),
                failed_steps=workflow.failed_steps,
                steps=[
                    {
                        "agent_id": s.agent_id,
                        "task": s.task,
                        "status": s.status.value,
                    }
                    for s in workflow.steps
                ],
                final_result=workflow.final_result,
                total_latency_ms=total_latency_ms,
            ))
            await session.commit()
    except Exception as e:
        logger.warning("Failed to persist workflow run %s: %s", workflow.id, e)
