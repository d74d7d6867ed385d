"""Workflow Service - Facade for workflow execution and campaign dispatch.

This is a thin facade that delegates to specialized modules:
- NodeProcessor: Single node step
- ExecutionAdvancer: One execution, one node, retry/backoff
- WorkflowBatchRunner: Due-execution selection per tick
- CampaignQueueProcessor: Daily-quota campaign sends
"""

from datetime import datetime
from typing import Dict, Any, List, Optional, Callable, TYPE_CHECKING

from core.logging import get_logger
from services.campaign_queue import CampaignQueueProcessor
from services.execution import ExecutionAdvancer, WorkflowBatchRunner
from services.execution.batch import utcnow
from services.node_executor import NodeProcessor

if TYPE_CHECKING:
    from core.config import Settings
    from core.database import Database
    from services.messaging import MessageSender

logger = get_logger(__name__)


class WorkflowNotFoundError(LookupError):
    pass


class EnrollmentError(ValueError):
    """A workflow cannot accept enrollments (no start node or no trigger list)."""


class WorkflowService:
    """Workflow execution service.

    Thin facade delegating to specialized modules for:
    - Node processing (NodeProcessor)
    - Execution advancing (ExecutionAdvancer)
    - Batch selection (WorkflowBatchRunner)
    - Campaign dispatch (CampaignQueueProcessor)
    """

    def __init__(
        self,
        database: "Database",
        sender: "MessageSender",
        settings: "Settings",
        clock: Callable[[], datetime] = utcnow,
        processor: Optional[NodeProcessor] = None,
    ):
        self.database = database
        self.settings = settings
        self.clock = clock

        self._processor = processor or NodeProcessor(database=database, sender=sender, settings=settings)
        self._advancer = ExecutionAdvancer(database=database, processor=self._processor, settings=settings)
        self._batch_runner = WorkflowBatchRunner(
            database=database, advancer=self._advancer, settings=settings, clock=clock,
        )
        self._campaign_queue = CampaignQueueProcessor(database=database, sender=sender, clock=clock)

    # =========================================================================
    # BATCH ENTRY POINTS
    # =========================================================================

    async def process_workflow_batch(self, workflow_id: Optional[str] = None) -> Dict[str, Any]:
        """Advance every due execution by one node.

        Raises:
            BatchQueryError: Due executions could not be selected
        """
        summary = await self._batch_runner.run(workflow_id=workflow_id)
        return summary.to_dict()

    async def process_campaign_queue(self, campaign_id: Optional[str] = None) -> Dict[str, Any]:
        return await self._campaign_queue.process_queue(campaign_id=campaign_id)

    # =========================================================================
    # ENROLLMENT
    # =========================================================================

    async def enroll_contacts(self, workflow_id: str, contact_ids: List[str]) -> Dict[str, Any]:
        """Start the workflow for each contact not already enrolled in it.

        Returns:
            Dict with ``enrolled`` count and ``execution_ids``
        """
        workflow = await self.database.get_workflow(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(f"Workflow not found: {workflow_id}")

        start_node = await self.database.get_start_node(workflow_id)
        if start_node is None:
            raise EnrollmentError(f"Workflow {workflow_id} has no start node")

        created = await self.database.create_executions(workflow, start_node.id, contact_ids, self.clock())
        logger.info("Contacts enrolled", workflow_id=workflow_id,
                    requested=len(contact_ids), enrolled=len(created))
        return {
            "enrolled": len(created),
            "execution_ids": [e.id for e in created],
        }

    async def enroll_list(self, workflow_id: str) -> Dict[str, Any]:
        """Enroll every contact of the workflow's trigger list."""
        workflow = await self.database.get_workflow(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(f"Workflow not found: {workflow_id}")
        if not workflow.trigger_list_id:
            raise EnrollmentError(f"Workflow {workflow_id} has no trigger list")

        contact_ids = await self.database.get_list_contact_ids(workflow.trigger_list_id)
        return await self.enroll_contacts(workflow_id, contact_ids)

    # =========================================================================
    # INSPECTION
    # =========================================================================

    async def get_execution_logs(self, execution_id: str) -> List[Dict[str, Any]]:
        logs = await self.database.get_logs(execution_id)
        return [
            {
                "node_id": log.node_id,
                "action": log.action,
                "details": log.details,
                "created_at": log.created_at.isoformat() if log.created_at else None,
            }
            for log in logs
        ]
