"""Execution engine state models.

All models are plain dataclasses; the durable state lives in the
``workflow_executions`` row, these only carry one step's data around.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Any, Optional

from constants import BACKOFF_UNIT_MS, MAX_RETRIES
from models.contact import ContactSnapshot
from models.database import Workflow, WorkflowExecution, WorkflowNode
from models.nodes import BaseNodeConfig


class ExecutionStatus(str, Enum):
    """Execution states.

    State transitions:
        RUNNING -> COMPLETED   (end node or null next)
                -> FAILED      (structural fault or retries exhausted)
                -> PAUSED      (owning workflow not active)
    COMPLETED and FAILED are terminal.
    """
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"


class StepOutcome(str, Enum):
    """How one batch tick treated one execution."""
    PROCESSED = "processed"
    SKIPPED = "skipped"
    FAILED = "failed"


# Processor outcomes recorded on NodeResult
OUTCOME_OK = "ok"
OUTCOME_SKIP = "skip"
OUTCOME_SEND_FAILED = "send_failed"


@dataclass
class RetryPolicy:
    """Retry configuration for transient node faults.

    Delay formula: attempt^2 * backoff_unit_ms (1 min, 4 min, 9 min by default).
    """
    max_retries: int = MAX_RETRIES
    backoff_unit_ms: int = BACKOFF_UNIT_MS

    def calculate_delay(self, attempt: int) -> int:
        """Backoff in milliseconds before retry ``attempt`` (1-indexed)."""
        return attempt * attempt * self.backoff_unit_ms

    def should_retry(self, retry_count: int) -> bool:
        """Whether a fault at the current ``retry_count`` may be retried."""
        return retry_count < self.max_retries


@dataclass
class NodeStep:
    """Everything a node handler needs for one step of one execution."""
    execution: WorkflowExecution
    node: WorkflowNode
    config: Optional[BaseNodeConfig]
    contact: ContactSnapshot
    workflow: Workflow
    now: datetime

    @property
    def user_id(self) -> str:
        return self.execution.user_id or self.workflow.user_id


@dataclass
class NodeResult:
    """Where an execution goes next and when."""
    next_node_id: Optional[str]
    delay_ms: int = 0
    outcome: str = OUTCOME_OK
    completed: bool = False  # set only by the end node


@dataclass
class BatchSummary:
    """Aggregate counts returned by one batch invocation."""
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    total: int = 0
    results: Dict[str, str] = field(default_factory=dict)

    def add(self, execution_id: str, outcome: StepOutcome) -> None:
        self.results[execution_id] = outcome.value
        if outcome == StepOutcome.PROCESSED:
            self.processed += 1
        elif outcome == StepOutcome.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "skipped": self.skipped,
            "failed": self.failed,
            "total": self.total,
        }
