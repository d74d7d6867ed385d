"""Workflow batch runner - one scheduler tick over all due executions."""

import asyncio
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from core.logging import get_logger, log_execution_time
from .exceptions import BatchQueryError
from .executor import ExecutionAdvancer
from .models import BatchSummary, StepOutcome

logger = get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WorkflowBatchRunner:
    """Selects due executions and advances each one by a single node.

    Executions run concurrently up to ``workflow_batch_concurrency``; a fault
    in one execution is counted as failed and never aborts the batch.
    """

    def __init__(self, database, advancer: ExecutionAdvancer, settings,
                 clock: Callable[[], datetime] = utcnow):
        self.database = database
        self.advancer = advancer
        self.settings = settings
        self.clock = clock

    async def run(self, workflow_id: Optional[str] = None) -> BatchSummary:
        """Process one batch.

        Args:
            workflow_id: Restrict the batch to one workflow

        Returns:
            BatchSummary with processed/skipped/failed/total counts

        Raises:
            BatchQueryError: Due executions could not be selected at all
        """
        start_time = time.time()
        now = self.clock()

        try:
            executions = await self.database.get_due_executions(
                now, self.settings.workflow_batch_size, workflow_id=workflow_id
            )
            workflows = await self.database.get_workflows(e.workflow_id for e in executions)
        except Exception as e:
            logger.error("Batch query failed", error=str(e))
            raise BatchQueryError(str(e)) from e

        summary = BatchSummary(total=len(executions))
        if not executions:
            return summary

        semaphore = asyncio.Semaphore(self.settings.workflow_batch_concurrency)

        async def advance_one(execution):
            async with semaphore:
                try:
                    outcome = await self.advancer.advance(execution, workflows.get(execution.workflow_id), now)
                except Exception as e:
                    logger.error("Execution step crashed", execution_id=execution.id, error=str(e))
                    outcome = StepOutcome.FAILED
                summary.add(execution.id, outcome)

        await asyncio.gather(*(advance_one(e) for e in executions))

        log_execution_time(logger, "workflow_batch", start_time, time.time(), **summary.to_dict())
        return summary
