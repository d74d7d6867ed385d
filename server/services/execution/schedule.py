"""Send-window gating for workflow executions.

A workflow only advances on configured weekdays between a local start and end
time. The window is half-open: ``start <= HH:MM < end``.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from constants import (
    DEFAULT_SCHEDULE_DAYS,
    DEFAULT_SCHEDULE_END,
    DEFAULT_SCHEDULE_START,
    DEFAULT_SCHEDULE_TIMEZONE,
)
from core.logging import get_logger
from models.database import Workflow

logger = get_logger(__name__)

WEEKDAY_NAMES = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


@dataclass(frozen=True)
class ScheduleWindow:
    days: Tuple[str, ...] = tuple(DEFAULT_SCHEDULE_DAYS)
    start: str = DEFAULT_SCHEDULE_START
    end: str = DEFAULT_SCHEDULE_END
    timezone: str = DEFAULT_SCHEDULE_TIMEZONE
    # Used when `timezone` is not a known IANA zone
    fallback_timezone: str = DEFAULT_SCHEDULE_TIMEZONE

    @classmethod
    def from_workflow(cls, workflow: Workflow,
                      default_timezone: str = DEFAULT_SCHEDULE_TIMEZONE) -> "ScheduleWindow":
        """Window for a workflow, filling unset fields with defaults."""
        days = workflow.schedule_days
        return cls(
            days=tuple(d.lower() for d in days) if days else tuple(DEFAULT_SCHEDULE_DAYS),
            start=workflow.schedule_start_time or DEFAULT_SCHEDULE_START,
            end=workflow.schedule_end_time or DEFAULT_SCHEDULE_END,
            timezone=workflow.schedule_timezone or default_timezone,
            fallback_timezone=default_timezone,
        )

    def _zone(self) -> ZoneInfo:
        try:
            return ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Invalid schedule timezone, using default",
                           timezone=self.timezone, default=self.fallback_timezone)
            return ZoneInfo(self.fallback_timezone)

    def contains(self, now: datetime) -> bool:
        local = now.astimezone(self._zone())
        if WEEKDAY_NAMES[local.weekday()] not in self.days:
            return False
        current = local.strftime("%H:%M")
        return self.start <= current < self.end


def is_within_schedule(workflow: Workflow, now: datetime,
                       default_timezone: str = DEFAULT_SCHEDULE_TIMEZONE) -> bool:
    """True if ``now`` falls inside the workflow's send window."""
    return ScheduleWindow.from_workflow(workflow, default_timezone).contains(now)
