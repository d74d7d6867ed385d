"""Execution engine package.

Per-contact workflow state machine driven by a periodic batch:
- Batch runner selects due executions and advances them with bounded concurrency
- Execution advancer applies one node step, with claiming and retry/backoff
- Schedule window gating per workflow timezone
- Condition evaluation over interaction history
- Template rendering shared with the campaign queue
"""

from .models import (
    ExecutionStatus,
    StepOutcome,
    RetryPolicy,
    NodeStep,
    NodeResult,
    BatchSummary,
    OUTCOME_OK,
    OUTCOME_SKIP,
    OUTCOME_SEND_FAILED,
)
from .exceptions import (
    EngineError,
    BatchQueryError,
    ProviderUnavailableError,
    InvalidNodeConfigError,
)
from .schedule import ScheduleWindow, is_within_schedule
from .conditions import ConditionEvaluator, evaluate_site_events
from .renderer import render_template, to_html, append_signature
from .executor import ExecutionAdvancer
from .batch import WorkflowBatchRunner

__all__ = [
    # Models
    "ExecutionStatus",
    "StepOutcome",
    "RetryPolicy",
    "NodeStep",
    "NodeResult",
    "BatchSummary",
    "OUTCOME_OK",
    "OUTCOME_SKIP",
    "OUTCOME_SEND_FAILED",
    # Exceptions
    "EngineError",
    "BatchQueryError",
    "ProviderUnavailableError",
    "InvalidNodeConfigError",
    # Schedule and conditions
    "ScheduleWindow",
    "is_within_schedule",
    "ConditionEvaluator",
    "evaluate_site_events",
    # Rendering
    "render_template",
    "to_html",
    "append_signature",
    # Engine
    "ExecutionAdvancer",
    "WorkflowBatchRunner",
]
