# =============================================================================
# Workflow Executor — Run Planned Steps in Order
# =============================================================================
#
# Steps run one at a time, in list order. There is no topological sort
# and no parallel fan-out: a step may read any earlier step's output, and
# plans are small (2-4 steps).
#
# PER STEP:
#   1. Resolve the agent (UnknownAgentError is fatal and propagates)
#   2. Build the prompt: context + task + excerpts of dependency results
#   3. Call the completion client with the agent's persona and model
#   4. COMPLETED with the text, or FAILED with an "Error: ..." string
#
# Both outcomes are written to the results map, so a step that depends on
# a failed step sees the error text as its dependency context. Only steps
# that already ran are ever in the map.
# =============================================================================

from __future__ import annotations

import logging

from app.agents.registry import AgentRegistry, get_registry
from app.agents.workflow import StepStatus, Workflow, WorkflowStatus, WorkflowStep
from app.config import settings
from app.errors import CompletionError, StepExecutionError
from app.services.llm import LLMProvider

logger = logging.getLogger(__name__)


async def execute_workflow(
    workflow: Workflow,
    context: str,
    llm: LLMProvider,
    registry: AgentRegistry | None = None,
) -> Workflow:
    """
    Execute every step of `workflow`, mutating it in place.

    A failed completion call marks only that step FAILED; execution
    continues with the next step.

    Raises:
        UnknownAgentError: A step names an agent the registry lacks.
    """
    registry = registry or get_registry()
    workflow.status = WorkflowStatus.RUNNING
    results: dict[str, str] = {}

    logger.info(
        "Executing workflow '%s' (%s) with %d steps",
        workflow.name, workflow.id, len(workflow.steps),
    )

    for index, step in enumerate(workflow.steps):
        agent = registry.require_agent(step.agent_id)
        step.status = StepStatus.RUNNING

        prompt = build_step_prompt(step, context, results)

        try:
            result = await llm.complete(
                [
                    {"role": "system", "content": agent.system_prompt},
                    {"role": "user", "content": prompt},
                ],
                model=agent.model,
            )
        except CompletionError as e:
            failure = StepExecutionError(index, step.agent_id, e)
            logger.warning("%s", failure)
            step.result = str(failure)
            step.status = StepStatus.FAILED
        else:
            step.result = result
            step.status = StepStatus.COMPLETED
            logger.info(
                "Step %d (%s) completed: %d chars",
                index, step.agent_id, len(result),
            )

        results[str(index)] = step.result

    return workflow


def build_step_prompt(
    step: WorkflowStep,
    context: str,
    previous_results: dict[str, str],
) -> str:
    """
    Compose the user message for one step.

    Example output (step depending on step 0):
        <context>

        TASK: Analyze research findings

        === PREVIOUS RESULTS ===

        Step 0 Result:
        Competitor A charges $49/month...
        ---
    """
    prompt = f"{context}\n\nTASK: {step.task}"

    if step.depends_on:
        prompt += "\n\n=== PREVIOUS RESULTS ===\n"
        for dep_index in step.depends_on:
            previous = previous_results.get(dep_index)
            if previous:
                excerpt = previous[:settings.dependency_result_chars]
                prompt += f"\nStep {dep_index} Result:\n{excerpt}\n---"

    return prompt
