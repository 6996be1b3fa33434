# =============================================================================
# Integration Tests — LangGraph Orchestrator (Mocked LLM)
# =============================================================================
#
# Runs the compiled plan → execute → synthesize graph end to end. The
# completion client is a scripted fake that answers according to which
# persona (system prompt) it is called with.
# =============================================================================

from __future__ import annotations

import asyncio
import json
from unittest.mock import patch

import pytest

from app.agents.orchestrator import chat_with_agent, run_workflow
from app.agents.planner import FALLBACK_WORKFLOW_NAME
from app.agents.registry import SYNTHESIS_INSTRUCTION, get_registry
from app.agents.workflow import StepStatus, WorkflowStatus
from app.errors import UnknownAgentError, UpstreamError


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


class ScriptedLLM:
    """
    Fake completion client.

    - coordinator persona → `plan`
    - SYNTHESIS_INSTRUCTION → "FINAL REPORT" (or fails)
    - specialist persona → "<agent id> result" (or fails)
    """

    def __init__(
        self,
        plan: str,
        failing_agents: tuple[str, ...] = (),
        fail_synthesis: bool = False,
    ) -> None:
        self.plan = plan
        self.failing_agents = failing_agents
        self.fail_synthesis = fail_synthesis
        self.calls: list[tuple[str, str]] = []  # (caller, user message)

    async def complete(self, messages, model=None):
        system = messages[0]["content"]
        user = messages[-1]["content"]
        registry = get_registry()

        if system == registry.coordinator.system_prompt:
            self.calls.append(("coordinator", user))
            return self.plan

        if system == SYNTHESIS_INSTRUCTION:
            self.calls.append(("synthesis", user))
            if self.fail_synthesis:
                raise UpstreamError(500, "synthesis down")
            return "FINAL REPORT"

        agent = next(a for a in registry.list_agents() if a.system_prompt == system)
        self.calls.append((agent.id, user))
        if agent.id in self.failing_agents:
            raise UpstreamError(500, f"{agent.id} down")
        return f"{agent.id} result"


_TWO_STEP_PLAN = json.dumps({
    "name": "Market scan",
    "steps": [
        {"agentId": "research", "task": "Collect competitor pricing"},
        {"agentId": "analyst", "task": "Compare pricing", "dependsOn": ["0"]},
    ],
})


class TestRunWorkflow:
    """End-to-end graph runs."""

    def test_single_step_plan(self):
        plan = json.dumps({
            "name": "Outreach",
            "steps": [{"agentId": "research", "task": "Find competitor pricing"}],
        })
        llm = ScriptedLLM(plan)

        workflow = _run(run_workflow("What do competitors charge?", "", llm=llm))

        assert workflow.name == "Outreach"
        assert workflow.status == WorkflowStatus.COMPLETED
        assert len(workflow.steps) == 1
        assert workflow.steps[0].status == StepStatus.COMPLETED
        assert workflow.steps[0].result == "research result"
        assert workflow.final_result == "FINAL REPORT"
        assert [c[0] for c in llm.calls] == ["coordinator", "research", "synthesis"]

    def test_middle_step_failure_still_completes(self):
        llm = ScriptedLLM(_TWO_STEP_PLAN, failing_agents=("analyst",))

        workflow = _run(run_workflow("Scan the market", "", llm=llm))

        assert workflow.status == WorkflowStatus.COMPLETED
        assert workflow.steps[0].status == StepStatus.COMPLETED
        assert workflow.steps[1].status == StepStatus.FAILED
        assert workflow.steps[1].result.startswith("Error:")
        assert workflow.final_result == "FINAL REPORT"

    def test_synthesis_failure_concatenates(self):
        llm = ScriptedLLM(_TWO_STEP_PLAN, fail_synthesis=True)

        workflow = _run(run_workflow("Scan the market", "", llm=llm))

        assert workflow.status == WorkflowStatus.COMPLETED
        assert "research result" in workflow.final_result
        assert "analyst result" in workflow.final_result

    def test_everything_failing_still_answers(self):
        llm = ScriptedLLM(
            "no plan today",
            failing_agents=("research", "analyst"),
            fail_synthesis=True,
        )

        workflow = _run(run_workflow("Scan the market", "", llm=llm))

        assert workflow.name == FALLBACK_WORKFLOW_NAME
        assert workflow.status == WorkflowStatus.COMPLETED
        assert workflow.failed_steps == 2
        assert workflow.final_result

    def test_anonymous_request_runs_without_context(self):
        llm = ScriptedLLM(_TWO_STEP_PLAN)

        workflow = _run(run_workflow("Scan the market", "", llm=llm))

        assert workflow.status == WorkflowStatus.COMPLETED
        research_prompt = next(user for who, user in llm.calls if who == "research")
        assert research_prompt == "\n\nTASK: Collect competitor pricing"

    def test_context_reaches_steps(self):
        llm = ScriptedLLM(_TWO_STEP_PLAN)

        _run(run_workflow("Scan the market", "KB TEXT", llm=llm))

        step_prompts = [user for who, user in llm.calls
                        if who in ("research", "analyst")]
        assert all(p.startswith("KB TEXT\n\nTASK:") for p in step_prompts)
        analyst_prompt = step_prompts[1]
        assert "Step 0 Result:\nresearch result" in analyst_prompt

    def test_defaults_to_configured_provider(self):
        llm = ScriptedLLM(_TWO_STEP_PLAN)
        with patch("app.agents.orchestrator.get_llm_provider", return_value=llm):
            workflow = _run(run_workflow("Scan the market", ""))
        assert workflow.final_result == "FINAL REPORT"


class TestChatWithAgent:
    """Tests for the single-agent path."""

    def test_persona_and_context_in_system_prompt(self):
        llm = ScriptedLLM("")

        async def complete(messages, model=None):
            llm.calls.append((messages[0]["content"], messages[1]["content"]))
            return "direct answer"

        llm.complete = complete

        agent, response = _run(chat_with_agent(
            "analyst", "Summarise Q3 risks", "KB TEXT", llm=llm,
        ))

        assert agent.id == "analyst"
        assert response == "direct answer"
        system, user = llm.calls[0]
        assert system == f"{agent.system_prompt}\n\nKB TEXT"
        assert user == "Summarise Q3 risks"

    def test_unknown_agent(self):
        with pytest.raises(UnknownAgentError):
            _run(chat_with_agent("ghost", "hi", "", llm=ScriptedLLM("")))
