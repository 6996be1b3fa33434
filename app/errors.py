# =============================================================================
# Error Taxonomy
# =============================================================================
#
#   CompletionError            — any failed call to the completion endpoint
#   ├── UpstreamError          — endpoint returned a failure status (or the
#   │                            transport failed before a status arrived)
#   └── EmptyResponseError     — endpoint succeeded but produced no text
#   PlanParseError             — coordinator plan unusable; always recovered
#                                by the fallback plan, never surfaced
#   UnknownAgentError          — step references an agent that does not
#                                exist; fatal configuration error
#   StepExecutionError         — one step failed; recorded as that step's
#                                result text, workflow continues
# =============================================================================

from __future__ import annotations


class CompletionError(Exception):
    """Base class for failures of a single completion call."""


class UpstreamError(CompletionError):
    """The completion endpoint answered with a non-success status."""

    def __init__(self, status_code: int | None, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        if status_code is None:
            message = f"Completion endpoint unreachable: {body}"
        else:
            message = f"Completion endpoint returned {status_code}: {body}"
        super().__init__(message)


class EmptyResponseError(CompletionError):
    """The completion endpoint succeeded but returned no usable content."""

    def __init__(self, model: str | None = None) -> None:
        self.model = model
        super().__init__(f"Empty response from model {model or 'unknown'}")


class PlanParseError(Exception):
    """The coordinator's plan could not be turned into workflow steps."""


class UnknownAgentError(Exception):
    """An agent id was requested that the registry does not define."""

    def __init__(self, agent_id: str) -> None:
        self.agent_id = agent_id
        super().__init__(f"Agent not found: {agent_id}")


class StepExecutionError(Exception):
    """A workflow step failed; its message becomes the step's result."""

    def __init__(
        self,
        step_index: int,
        agent_id: str,
        cause: Exception,
    ) -> None:
        self.step_index = step_index
        self.agent_id = agent_id
        self.cause = cause
        super().__init__(
            f"Error: step {step_index} ({agent_id}) failed: {cause}"
        )
