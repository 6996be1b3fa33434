# =============================================================================
# Workflow Planner — Request → Task Graph via the Coordinator Agent
# =============================================================================
#
# The coordinator is asked for a JSON plan:
#
#   {"name": "...", "steps": [{"agentId": "research", "task": "...",
#                              "dependsOn": ["0"]}, ...]}
#
# The reply is untrusted input. It is parsed into a tagged outcome:
#
#   PlanParsed(name, steps)  — every field validated
#   PlanFallback(reason)     — anything else
#
# A PlanFallback (or a failed completion call) produces the fixed
# two-step plan: research the request, then analyse the findings.
# Planning therefore never raises to the caller.
#
# VALIDATION RULES:
#   - steps: non-empty list, at most settings.workflow_max_steps
#   - agentId: a known specialist (the coordinator cannot take a step)
#   - task: non-empty string
#   - dependsOn: optional list of indices strictly before the step's own
#     index; forward and self references reject the whole plan
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from app.agents.registry import AgentRegistry, get_registry
from app.agents.workflow import Workflow, WorkflowStep
from app.config import settings
from app.errors import CompletionError, PlanParseError
from app.services.json_extract import extract_json_block
from app.services.llm import LLMProvider

logger = logging.getLogger(__name__)

DEFAULT_WORKFLOW_NAME = "Autonomous Workflow"
FALLBACK_WORKFLOW_NAME = "Standard Analysis"


# ---------------------------------------------------------------------------
# Parse Outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PlanParsed:
    name: str
    steps: list[WorkflowStep]


@dataclass(frozen=True)
class PlanFallback:
    reason: str


PlanOutcome = PlanParsed | PlanFallback


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def plan_workflow(
    user_request: str,
    context: str,
    llm: LLMProvider,
    registry: AgentRegistry | None = None,
) -> Workflow:
    """
    Ask the coordinator for a plan and turn it into a Workflow.

    Args:
        user_request: The user's free-form request.
        context: Knowledge-base text (may be empty).
        llm: Completion client.
        registry: Agent registry (defaults to the process-wide one).

    Returns:
        A Workflow in PLANNING status. Never raises on bad plans.
    """
    registry = registry or get_registry()
    coordinator = registry.coordinator

    prompt = build_plan_prompt(user_request, context, registry)

    try:
        raw_plan = await llm.complete(
            [
                {"role": "system", "content": coordinator.system_prompt},
                {"role": "user", "content": prompt},
            ],
            model=coordinator.model,
        )
        outcome = parse_plan(raw_plan, registry)
    except CompletionError as e:
        outcome = PlanFallback(reason=f"planning call failed: {e}")

    if isinstance(outcome, PlanFallback):
        logger.warning("Using fallback workflow plan: %s", outcome.reason)
        return fallback_workflow(user_request)

    logger.info(
        "Planned workflow '%s' with %d steps: %s",
        outcome.name,
        len(outcome.steps),
        [s.agent_id for s in outcome.steps],
    )
    return Workflow(name=outcome.name, steps=outcome.steps)


def build_plan_prompt(
    user_request: str,
    context: str,
    registry: AgentRegistry,
) -> str:
    """Planning instructions sent to the coordinator as the user message."""
    specialists = registry.specialists()
    agent_lines = "\n".join(f"- {a.id}: {a.description}" for a in specialists)
    agent_ids = "|".join(a.id for a in specialists)

    return (
        "Given this user request and context, create an optimal "
        "multi-agent workflow plan.\n\n"
        f"USER REQUEST: {user_request}\n\n"
        f"AVAILABLE CONTEXT: {context[:settings.plan_context_chars]}\n\n"
        f"AVAILABLE AGENTS:\n{agent_lines}\n\n"
        "Create a workflow plan as JSON:\n"
        "{\n"
        '  "name": "workflow name",\n'
        '  "steps": [\n'
        f'    {{ "agentId": "{agent_ids}", "task": "specific task description", '
        '"dependsOn": ["previous step index if needed"] }\n'
        "  ]\n"
        "}\n\n"
        "RULES:\n"
        "- Use 2-4 steps maximum for efficiency\n"
        "- Each step uses exactly one of the agents listed above\n"
        "- Each step should have a clear, specific task\n"
        "- Use dependsOn to chain sequential steps; it may only reference "
        "indices of earlier steps (0-based)\n"
        "- Final step should synthesize all previous results\n\n"
        "Return ONLY valid JSON."
    )


def parse_plan(raw_plan: str, registry: AgentRegistry) -> PlanOutcome:
    """Validate the coordinator's reply. Never raises."""
    try:
        name, steps = _validate_plan(extract_json_block(raw_plan), registry)
    except PlanParseError as e:
        return PlanFallback(reason=str(e))
    return PlanParsed(name=name, steps=steps)


def fallback_workflow(user_request: str) -> Workflow:
    """The fixed research → analysis plan used when planning fails."""
    return Workflow(
        name=FALLBACK_WORKFLOW_NAME,
        steps=[
            WorkflowStep(agent_id="research", task=f"Research: {user_request}"),
            WorkflowStep(
                agent_id="analyst",
                task="Analyze research findings",
                depends_on=["0"],
            ),
        ],
    )


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _validate_plan(
    plan: Any,
    registry: AgentRegistry,
) -> tuple[str, list[WorkflowStep]]:
    if not isinstance(plan, dict):
        raise PlanParseError("no JSON object found in coordinator reply")

    raw_steps = plan.get("steps")
    if not isinstance(raw_steps, list) or not raw_steps:
        raise PlanParseError("plan has no steps")
    if len(raw_steps) > settings.workflow_max_steps:
        raise PlanParseError(
            f"plan has {len(raw_steps)} steps "
            f"(max {settings.workflow_max_steps})"
        )

    specialist_ids = {a.id for a in registry.specialists()}
    steps = [
        _validate_step(index, raw, specialist_ids)
        for index, raw in enumerate(raw_steps)
    ]

    name = plan.get("name")
    if not isinstance(name, str) or not name.strip():
        name = DEFAULT_WORKFLOW_NAME

    return name.strip(), steps


def _validate_step(
    index: int,
    raw: Any,
    specialist_ids: set[str],
) -> WorkflowStep:
    if not isinstance(raw, dict):
        raise PlanParseError(f"step {index} is not an object")

    agent_id = raw.get("agentId")
    if not isinstance(agent_id, str) or agent_id not in specialist_ids:
        raise PlanParseError(f"step {index} has unknown agentId {agent_id!r}")

    task = raw.get("task")
    if not isinstance(task, str) or not task.strip():
        raise PlanParseError(f"step {index} has no task")

    return WorkflowStep(
        agent_id=agent_id,
        task=task.strip(),
        depends_on=_validate_depends_on(index, raw.get("dependsOn")),
    )


def _validate_depends_on(index: int, raw: Any) -> list[str]:
    """Normalise dependsOn to earlier indices as strings."""
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise PlanParseError(f"step {index} dependsOn is not a list")

    depends_on: list[str] = []
    for dep in raw:
        # bool is an int subclass; reject it explicitly
        if isinstance(dep, bool):
            raise PlanParseError(f"step {index} has invalid dependency {dep!r}")
        if isinstance(dep, int):
            dep_index = dep
        # isdigit() alone admits "²" and other non-ASCII digits int() rejects
        elif isinstance(dep, str) and dep.strip().isascii() and dep.strip().isdigit():
            dep_index = int(dep.strip())
        else:
            raise PlanParseError(f"step {index} has invalid dependency {dep!r}")

        if dep_index < 0 or dep_index >= index:
            raise PlanParseError(
                f"step {index} depends on step {dep_index}, which does not "
                "run before it"
            )
        if str(dep_index) not in depends_on:
            depends_on.append(str(dep_index))

    return depends_on
