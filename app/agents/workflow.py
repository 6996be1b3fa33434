# =============================================================================
# Workflow Data Model
# =============================================================================
#
# A Workflow is the lifecycle of one multi-agent request:
#
#   Workflow:      PLANNING → RUNNING → COMPLETED
#   WorkflowStep:  PENDING  → RUNNING → COMPLETED
#                                     → FAILED
#
# A failed step never fails the workflow; the synthesizer always marks it
# COMPLETED. WorkflowStatus.FAILED exists for callers that abort before
# synthesis.
#
# Both objects are owned by a single request and discarded afterwards.
# depends_on holds indices (as strings) of EARLIER steps only.
# =============================================================================

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field


class StepStatus(str, enum.Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class WorkflowStatus(str, enum.Enum):
    PLANNING = "planning"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class WorkflowStep:
    """One unit of work, assigned to exactly one agent."""

    agent_id: str
    task: str
    depends_on: list[str] = field(default_factory=list)
    result: str | None = None
    status: StepStatus = StepStatus.PENDING


@dataclass
class Workflow:
    """A planned (and later executed) sequence of agent steps."""

    name: str
    steps: list[WorkflowStep]
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: WorkflowStatus = WorkflowStatus.PLANNING
    final_result: str | None = None

    @property
    def failed_steps(self) -> int:
        return sum(1 for s in self.steps if s.status == StepStatus.FAILED)
