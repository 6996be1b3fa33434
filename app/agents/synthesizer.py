# =============================================================================
# Synthesizer — Merge Step Results Into One Answer
# =============================================================================
#
# One completion call with SYNTHESIS_INSTRUCTION over every step's task
# and (capped) result. If that call fails, the non-empty step results are
# concatenated instead. Either way the workflow ends COMPLETED with a
# non-empty final_result.
# =============================================================================

from __future__ import annotations

import logging

from app.agents.registry import SYNTHESIS_INSTRUCTION, AgentRegistry, get_registry
from app.agents.workflow import Workflow, WorkflowStatus
from app.config import settings
from app.errors import CompletionError
from app.services.llm import LLMProvider

logger = logging.getLogger(__name__)

RESULT_SEPARATOR = "\n\n---\n\n"
NO_RESULTS_MESSAGE = "No results were produced for this workflow."


async def synthesize(
    workflow: Workflow,
    llm: LLMProvider,
    registry: AgentRegistry | None = None,
) -> Workflow:
    """Set workflow.final_result and mark the workflow COMPLETED."""
    registry = registry or get_registry()
    prompt = build_synthesis_prompt(workflow, registry)

    try:
        workflow.final_result = await llm.complete(
            [
                {"role": "system", "content": SYNTHESIS_INSTRUCTION},
                {"role": "user", "content": prompt},
            ],
            model=registry.coordinator.model,
        )
    except CompletionError as e:
        logger.warning(
            "Synthesis failed for workflow %s, concatenating step results: %s",
            workflow.id, e,
        )
        workflow.final_result = concatenate_results(workflow)

    workflow.status = WorkflowStatus.COMPLETED
    return workflow


def build_synthesis_prompt(workflow: Workflow, registry: AgentRegistry) -> str:
    sections = []
    for step in workflow.steps:
        agent = registry.get_agent(step.agent_id)
        agent_name = agent.name if agent else step.agent_id
        excerpt = (step.result or "")[:settings.synthesis_result_chars]
        sections.append(
            f"\n[{agent_name}]\n"
            f"Task: {step.task}\n"
            f"Result: {excerpt or 'No result'}"
        )

    return (
        "Synthesize these multi-agent workflow results into a "
        "comprehensive final response:\n\n"
        f"WORKFLOW: {workflow.name}\n\n"
        "RESULTS:\n"
        + "\n---".join(sections)
        + "\n\nProvide a cohesive, well-structured final response that:\n"
        "1. Integrates insights from all agents\n"
        "2. Removes redundancy\n"
        "3. Presents clear conclusions and recommendations\n"
        "4. Uses professional formatting with headers and bullet points"
    )


def concatenate_results(workflow: Workflow) -> str:
    """Fallback answer: every non-empty step result, in step order."""
    joined = RESULT_SEPARATOR.join(s.result for s in workflow.steps if s.result)
    return joined or NO_RESULTS_MESSAGE
