# =============================================================================
# Unit Tests — Workflow Executor
# =============================================================================

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from app.agents.executor import build_step_prompt, execute_workflow
from app.agents.registry import get_registry
from app.agents.workflow import StepStatus, Workflow, WorkflowStatus, WorkflowStep
from app.errors import EmptyResponseError, UnknownAgentError, UpstreamError


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def _two_step_workflow() -> Workflow:
    return Workflow(
        name="Market scan",
        steps=[
            WorkflowStep(agent_id="research", task="Collect competitor pricing"),
            WorkflowStep(
                agent_id="analyst", task="Analyse pricing", depends_on=["0"],
            ),
        ],
    )


def _user_prompt(call) -> str:
    return call.args[0][1]["content"]


class TestExecuteWorkflow:
    """Tests for sequential step execution."""

    def test_all_steps_complete(self):
        mock_llm = AsyncMock()
        mock_llm.complete.side_effect = ["research notes", "analysis"]

        workflow = _run(execute_workflow(_two_step_workflow(), "", mock_llm))

        assert workflow.status == WorkflowStatus.RUNNING
        assert [s.status for s in workflow.steps] == [
            StepStatus.COMPLETED, StepStatus.COMPLETED,
        ]
        assert workflow.steps[0].result == "research notes"
        assert workflow.steps[1].result == "analysis"
        assert mock_llm.complete.await_count == 2

    def test_each_step_uses_its_agent_persona_and_model(self):
        mock_llm = AsyncMock()
        mock_llm.complete.side_effect = ["a", "b"]

        _run(execute_workflow(_two_step_workflow(), "", mock_llm))

        registry = get_registry()
        for call, agent_id in zip(mock_llm.complete.call_args_list,
                                  ["research", "analyst"]):
            agent = registry.get_agent(agent_id)
            assert call.args[0][0] == {"role": "system", "content": agent.system_prompt}
            assert call.kwargs["model"] == agent.model

    def test_failed_step_does_not_stop_execution(self):
        mock_llm = AsyncMock()
        mock_llm.complete.side_effect = [UpstreamError(500, "boom"), "analysis"]

        workflow = _run(execute_workflow(_two_step_workflow(), "", mock_llm))

        first, second = workflow.steps
        assert first.status == StepStatus.FAILED
        assert first.result.startswith("Error:")
        assert "boom" in first.result
        assert second.status == StepStatus.COMPLETED
        assert workflow.failed_steps == 1

    def test_empty_completion_marks_step_failed(self):
        mock_llm = AsyncMock()
        mock_llm.complete.side_effect = [EmptyResponseError("m"), "analysis"]

        workflow = _run(execute_workflow(_two_step_workflow(), "", mock_llm))

        assert workflow.steps[0].status == StepStatus.FAILED
        assert workflow.steps[0].result.startswith("Error:")

    def test_dependant_sees_failure_text(self):
        mock_llm = AsyncMock()
        mock_llm.complete.side_effect = [UpstreamError(503, "overloaded"), "ok"]

        _run(execute_workflow(_two_step_workflow(), "", mock_llm))

        prompt = _user_prompt(mock_llm.complete.call_args_list[1])
        assert "Step 0 Result:\nError:" in prompt

    def test_dependency_excerpt_is_capped(self):
        mock_llm = AsyncMock()
        mock_llm.complete.side_effect = ["A" * 3000, "ok"]

        _run(execute_workflow(_two_step_workflow(), "", mock_llm))

        prompt = _user_prompt(mock_llm.complete.call_args_list[1])
        assert "Step 0 Result:\n" + "A" * 2000 + "\n---" in prompt
        assert "A" * 2001 not in prompt

    def test_context_prefixes_every_step(self):
        mock_llm = AsyncMock()
        mock_llm.complete.side_effect = ["a", "b"]

        _run(execute_workflow(_two_step_workflow(), "KB CONTEXT", mock_llm))

        for call in mock_llm.complete.call_args_list:
            assert _user_prompt(call).startswith("KB CONTEXT\n\nTASK: ")

    def test_forward_reference_contributes_nothing(self):
        workflow = Workflow(
            name="Odd",
            steps=[
                WorkflowStep(agent_id="research", task="first", depends_on=["1"]),
                WorkflowStep(agent_id="writer", task="second"),
            ],
        )
        mock_llm = AsyncMock()
        mock_llm.complete.side_effect = ["a", "b"]

        _run(execute_workflow(workflow, "", mock_llm))

        prompt = _user_prompt(mock_llm.complete.call_args_list[0])
        assert "Step 1 Result" not in prompt
        assert all(s.status == StepStatus.COMPLETED for s in workflow.steps)

    def test_unknown_agent_is_fatal(self):
        workflow = Workflow(
            name="Broken",
            steps=[WorkflowStep(agent_id="ghost", task="Haunt")],
        )
        mock_llm = AsyncMock()

        with pytest.raises(UnknownAgentError):
            _run(execute_workflow(workflow, "", mock_llm))
        mock_llm.complete.assert_not_awaited()


class TestBuildStepPrompt:
    """Tests for the per-step user message."""

    def test_without_dependencies(self):
        step = WorkflowStep(agent_id="writer", task="Draft the memo")
        prompt = build_step_prompt(step, "", {"0": "ignored"})
        assert prompt == "\n\nTASK: Draft the memo"

    def test_with_dependencies(self):
        step = WorkflowStep(
            agent_id="writer", task="Draft the memo", depends_on=["0", "1"],
        )
        prompt = build_step_prompt(step, "CTX", {"0": "first", "1": "second"})
        assert prompt == (
            "CTX\n\nTASK: Draft the memo"
            "\n\n=== PREVIOUS RESULTS ===\n"
            "\nStep 0 Result:\nfirst\n---"
            "\nStep 1 Result:\nsecond\n---"
        )

    def test_missing_dependency_skipped(self):
        step = WorkflowStep(agent_id="writer", task="t", depends_on=["0", "5"])
        prompt = build_step_prompt(step, "", {"0": "first"})
        assert "Step 0 Result" in prompt
        assert "Step 5 Result" not in prompt
