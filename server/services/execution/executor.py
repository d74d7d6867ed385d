"""Execution advancer - moves one execution forward by one node.

Per tick, for one due execution:
1. Owning workflow missing or not active -> execution paused
2. Outside the workflow's send window -> left untouched for a later tick
3. Claim the execution (conditional update); lost claim -> skipped
4. Load node and contact; either missing -> failed (no retry)
5. Run the node processor and persist the transition it returns
Any other exception from the processor is a transient fault: retried with
squared backoff until ``max_retries``, then the execution fails.
"""

from datetime import datetime, timedelta
from typing import Optional, Protocol

from constants import WORKFLOW_ACTIVE
from core.logging import get_logger
from models.contact import ContactSnapshot
from models.database import Workflow, WorkflowExecution, WorkflowNode
from .exceptions import InvalidNodeConfigError
from .models import ExecutionStatus, NodeResult, RetryPolicy, StepOutcome
from .schedule import is_within_schedule

logger = get_logger(__name__)


class NodeProcessorProtocol(Protocol):
    async def process(self, execution: WorkflowExecution, node: WorkflowNode,
                      contact: ContactSnapshot, workflow: Workflow, now: datetime) -> NodeResult:
        ...


class ExecutionAdvancer:
    """Applies one node step to one execution and persists the outcome."""

    def __init__(self, database, processor: NodeProcessorProtocol, settings,
                 retry_policy: Optional[RetryPolicy] = None):
        """
        Args:
            database: Database service
            processor: Runs a single node.
                       Signature: async def process(execution, node, contact, workflow, now) -> NodeResult
            settings: Application settings (claim TTL, default timezone)
            retry_policy: Transient-fault policy; defaults from settings
        """
        self.database = database
        self.processor = processor
        self.settings = settings
        self.retry_policy = retry_policy or RetryPolicy(
            max_retries=settings.workflow_max_retries,
            backoff_unit_ms=settings.workflow_backoff_unit_ms,
        )

    async def advance(self, execution: WorkflowExecution, workflow: Optional[Workflow],
                      now: datetime) -> StepOutcome:
        if workflow is None or workflow.status != WORKFLOW_ACTIVE:
            await self.database.update_execution(execution.id, status=ExecutionStatus.PAUSED.value)
            logger.info("Execution paused, workflow not active",
                        execution_id=execution.id, workflow_id=execution.workflow_id)
            return StepOutcome.SKIPPED

        if not is_within_schedule(workflow, now, self.settings.default_schedule_timezone):
            return StepOutcome.SKIPPED

        if not await self.database.claim_execution(execution.id, now, self.settings.workflow_claim_ttl_seconds):
            logger.debug("Execution already claimed", execution_id=execution.id)
            return StepOutcome.SKIPPED

        if not execution.current_node_id:
            await self.database.update_execution(execution.id, status=ExecutionStatus.COMPLETED.value)
            return StepOutcome.PROCESSED

        node = await self.database.get_node(execution.current_node_id)
        if node is None:
            await self.database.append_log(execution.id, None, "node_not_found",
                                           {"node_id": execution.current_node_id})
            await self._fail(execution, "Node not found")
            return StepOutcome.FAILED

        contact = await self.database.get_contact(execution.contact_id)
        if contact is None:
            await self.database.append_log(execution.id, node.id, "contact_not_found",
                                           {"contact_id": execution.contact_id})
            await self._fail(execution, "Contact not found")
            return StepOutcome.FAILED

        try:
            result = await self.processor.process(execution, node, contact, workflow, now)
        except InvalidNodeConfigError as e:
            await self.database.append_log(execution.id, node.id, "invalid_config", {"error": str(e)})
            await self._fail(execution, str(e))
            return StepOutcome.FAILED
        except Exception as e:
            await self._handle_fault(execution, node, e, now)
            return StepOutcome.FAILED

        await self._apply(execution, node, result, now)
        return StepOutcome.PROCESSED

    async def _apply(self, execution: WorkflowExecution, node: WorkflowNode,
                     result: NodeResult, now: datetime) -> None:
        """Persist the transition a node step produced."""
        if result.completed:
            await self.database.update_execution(
                execution.id,
                status=ExecutionStatus.COMPLETED.value,
                current_node_id=node.id,
                retry_count=0,
                error_message=None,
            )
            logger.info("Execution completed", execution_id=execution.id, node_id=node.id)
        elif result.next_node_id is None:
            # Dangling edge: nothing left to run
            await self.database.update_execution(
                execution.id,
                status=ExecutionStatus.COMPLETED.value,
                current_node_id=None,
                retry_count=0,
            )
            logger.info("Execution completed, no next node", execution_id=execution.id, node_id=node.id)
        else:
            await self.database.update_execution(
                execution.id,
                current_node_id=result.next_node_id,
                next_run_at=now + timedelta(milliseconds=result.delay_ms),
                retry_count=0,
                error_message=None,
            )
            logger.debug("Execution advanced", execution_id=execution.id, from_node=node.id,
                         to_node=result.next_node_id, delay_ms=result.delay_ms, outcome=result.outcome)

    async def _handle_fault(self, execution: WorkflowExecution, node: WorkflowNode,
                            error: Exception, now: datetime) -> None:
        """Retry the same node later, or fail once retries are exhausted."""
        message = str(error) or type(error).__name__
        retry_count = execution.retry_count or 0

        if not self.retry_policy.should_retry(retry_count):
            await self.database.update_execution(
                execution.id,
                status=ExecutionStatus.FAILED.value,
                error_message=message,
            )
            await self.database.append_log(execution.id, node.id, "max_retries", {"error": message})
            logger.error("Execution failed after max retries", execution_id=execution.id,
                         node_id=node.id, retries=retry_count, error=message)
            return

        attempt = retry_count + 1
        delay_ms = self.retry_policy.calculate_delay(attempt)
        await self.database.update_execution(
            execution.id,
            retry_count=attempt,
            next_run_at=now + timedelta(milliseconds=delay_ms),
            error_message=message,
        )
        await self.database.append_log(execution.id, node.id, "retry",
                                       {"attempt": attempt, "error": message, "delay_ms": delay_ms})
        logger.warning("Node fault, retry scheduled", execution_id=execution.id, node_id=node.id,
                       attempt=attempt, delay_ms=delay_ms, error=message)

    async def _fail(self, execution: WorkflowExecution, message: str) -> None:
        await self.database.update_execution(
            execution.id,
            status=ExecutionStatus.FAILED.value,
            error_message=message,
        )
        logger.warning("Execution failed", execution_id=execution.id, error=message)
