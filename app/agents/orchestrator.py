# =============================================================================
# LangGraph Orchestrator — Plan → Execute → Synthesize
# =============================================================================
#
# GRAPH TOPOLOGY:
#   START ──▶ plan ──▶ execute ──▶ synthesize ──▶ END
#
# The graph is linear. Step-level iteration happens INSIDE the execute
# node (a plain loop over the planned steps), not as graph edges, because
# the number of steps is only known after planning.
#
# State is a plain TypedDict: request text and context in, Workflow out.
# The graph is compiled once at module level and reused by every request.
#
# The direct single-agent chat path bypasses the graph entirely.
# =============================================================================

from __future__ import annotations

import logging

from langgraph.graph import END, START, StateGraph
from typing_extensions import TypedDict

from app.agents.executor import execute_workflow
from app.agents.planner import plan_workflow
from app.agents.registry import Agent, get_registry
from app.agents.synthesizer import synthesize
from app.agents.workflow import Workflow
from app.services.llm import LLMProvider, get_llm_provider

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Orchestration State Schema
# ---------------------------------------------------------------------------


class OrchestrationState(TypedDict, total=False):
    """
    State that flows through the LangGraph graph.

    Uses total=False so nodes only need to return the keys they update.
    """

    # --- Input (set by caller) ---
    request: str
    context: str

    # --- LLM injection ---
    # When set, nodes use this provider instead of the global singleton.
    # NOTE: Not JSON-serialisable. Safe as long as no checkpointer is
    # configured on the graph (current: no checkpointer).
    llm_override: LLMProvider | None

    # --- Set by the plan node, mutated by execute and synthesize ---
    workflow: Workflow


# ---------------------------------------------------------------------------
# Node Functions
# ---------------------------------------------------------------------------


async def plan_node(state: OrchestrationState) -> dict:
    llm = state.get("llm_override") or get_llm_provider()
    workflow = await plan_workflow(
        user_request=state["request"],
        context=state.get("context", ""),
        llm=llm,
    )
    return {"workflow": workflow}


async def execute_node(state: OrchestrationState) -> dict:
    llm = state.get("llm_override") or get_llm_provider()
    workflow = await execute_workflow(
        state["workflow"],
        context=state.get("context", ""),
        llm=llm,
    )
    return {"workflow": workflow}


async def synthesize_node(state: OrchestrationState) -> dict:
    llm = state.get("llm_override") or get_llm_provider()
    workflow = await synthesize(state["workflow"], llm=llm)
    return {"workflow": workflow}


# ---------------------------------------------------------------------------
# Graph Assembly
# ---------------------------------------------------------------------------

_builder = StateGraph(OrchestrationState)
_builder.add_node("plan", plan_node)
_builder.add_node("execute", execute_node)
_builder.add_node("synthesize", synthesize_node)

_builder.add_edge(START, "plan")
_builder.add_edge("plan", "execute")
_builder.add_edge("execute", "synthesize")
_builder.add_edge("synthesize", END)

graph = _builder.compile()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def run_workflow(
    request: str,
    context: str,
    llm: LLMProvider | None = None,
) -> Workflow:
    """
    Plan, execute and synthesize a multi-agent workflow for `request`.

    Args:
        request: The user's free-form request.
        context: Knowledge-base text; empty for anonymous callers.
        llm: Optional provider override (tests, alternate gateways).

    Returns:
        The completed Workflow with final_result set.

    Raises:
        UnknownAgentError: A planned step names an undefined agent.
    """
    initial_state: OrchestrationState = {
        "request": request,
        "context": context,
    }
    if llm is not None:
        initial_state["llm_override"] = llm

    logger.info(
        "Invoking workflow graph: request='%s', context_chars=%d",
        request[:80], len(context),
    )

    result = await graph.ainvoke(initial_state)
    workflow: Workflow = result["workflow"]

    logger.info(
        "Workflow graph complete: id=%s, name='%s', steps=%d, failed=%d",
        workflow.id, workflow.name, len(workflow.steps), workflow.failed_steps,
    )

    return workflow


async def chat_with_agent(
    agent_id: str,
    message: str,
    context: str,
    llm: LLMProvider | None = None,
) -> tuple[Agent, str]:
    """
    Single direct call to one agent, with the knowledge context appended
    to its persona.

    Raises:
        UnknownAgentError: `agent_id` is not in the registry.
        CompletionError: The completion call failed.
    """
    agent = get_registry().require_agent(agent_id)
    llm = llm or get_llm_provider()

    logger.info("Direct chat: agent=%s, message='%s'", agent.id, message[:80])

    response = await llm.complete(
        [
            {"role": "system", "content": f"{agent.system_prompt}\n\n{context}"},
            {"role": "user", "content": message},
        ],
        model=agent.model,
    )
    return agent, response
