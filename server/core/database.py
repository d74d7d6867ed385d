"""Async database service with SQLModel and SQLAlchemy 2.0.

Owns every query the workflow engine and the campaign queue issue. Writes that
race between overlapping batch invocations (execution claims, lead claims,
campaign counters) are single conditional UPDATE statements.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, Any, List, Optional, Iterable
from contextlib import asynccontextmanager

from sqlmodel import SQLModel, select
from sqlalchemy import update, delete, func, or_
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from core.config import Settings
from core.logging import get_logger
from constants import (
    INTEGRATION_CONNECTED,
    LEAD_FAILED,
    LEAD_PENDING,
    LEAD_QUEUED,
    LEAD_SENT,
    NODE_START,
)
from models.contact import ContactSnapshot
from models.database import (
    Campaign,
    CampaignLead,
    EmailBlocklist,
    EmailSettings,
    Event,
    ProspectListItem,
    ResendSettings,
    UserIntegration,
    Workflow,
    WorkflowExecution,
    WorkflowExecutionLog,
    WorkflowNode,
)
from services.execution.models import ExecutionStatus

logger = get_logger(__name__)

# Campaign counters that may be incremented in place
CAMPAIGN_COUNTERS = frozenset([
    "total_sent", "total_failed", "total_delivered",
    "total_replied", "total_accepted", "total_opened",
])


class Database:
    """Async database service with SQLModel."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.engine = None
        self.async_session = None

    async def startup(self):
        """Initialize database connection and create tables."""
        try:
            logging.getLogger("aiosqlite").setLevel(logging.WARNING)
            logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

            engine_kwargs: Dict[str, Any] = {"echo": self.settings.database_echo}
            if not self.settings.is_sqlite:
                engine_kwargs["pool_size"] = self.settings.database_pool_size
                engine_kwargs["max_overflow"] = self.settings.database_max_overflow
                engine_kwargs["pool_pre_ping"] = True

            self.engine = create_async_engine(self.settings.database_url, **engine_kwargs)

            self.async_session = async_sessionmaker(
                bind=self.engine,
                class_=AsyncSession,
                expire_on_commit=False
            )

            async with self.engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)

            logger.info("Database initialized successfully")

        except Exception as e:
            logger.error("Database startup failed", error=str(e))
            raise

    async def shutdown(self):
        """Close database connections."""
        if self.engine:
            await self.engine.dispose()
            logger.info("Database connections closed")

    @asynccontextmanager
    async def get_session(self):
        """Get async database session."""
        if not self.async_session:
            raise RuntimeError("Database not initialized")

        async with self.async_session() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    async def add_all(self, rows: Iterable[SQLModel]) -> None:
        """Insert rows in one transaction (seeding, editor saves)."""
        async with self.get_session() as session:
            session.add_all(list(rows))
            await session.commit()

    # ============================================================================
    # Workflows
    # ============================================================================

    async def get_workflow(self, workflow_id: str) -> Optional[Workflow]:
        """Get workflow by ID."""
        async with self.get_session() as session:
            result = await session.execute(select(Workflow).where(Workflow.id == workflow_id))
            return result.scalar_one_or_none()

    async def get_workflows(self, workflow_ids: Iterable[str]) -> Dict[str, Workflow]:
        """Workflows keyed by ID, for prefetching a whole batch at once."""
        ids = list(set(workflow_ids))
        if not ids:
            return {}
        async with self.get_session() as session:
            result = await session.execute(select(Workflow).where(Workflow.id.in_(ids)))
            return {wf.id: wf for wf in result.scalars().all()}

    async def get_node(self, node_id: str) -> Optional[WorkflowNode]:
        """Get a workflow node by ID."""
        async with self.get_session() as session:
            result = await session.execute(select(WorkflowNode).where(WorkflowNode.id == node_id))
            return result.scalar_one_or_none()

    async def get_start_node(self, workflow_id: str) -> Optional[WorkflowNode]:
        """Get the entry node of a workflow graph."""
        async with self.get_session() as session:
            stmt = (
                select(WorkflowNode)
                .where(WorkflowNode.workflow_id == workflow_id, WorkflowNode.type == NODE_START)
                .limit(1)
            )
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    # ============================================================================
    # Executions
    # ============================================================================

    async def get_execution(self, execution_id: str) -> Optional[WorkflowExecution]:
        """Get execution by ID."""
        async with self.get_session() as session:
            result = await session.execute(
                select(WorkflowExecution).where(WorkflowExecution.id == execution_id)
            )
            return result.scalar_one_or_none()

    async def get_executions(self, workflow_id: str) -> List[WorkflowExecution]:
        """Get all executions of a workflow, newest first."""
        async with self.get_session() as session:
            stmt = (
                select(WorkflowExecution)
                .where(WorkflowExecution.workflow_id == workflow_id)
                .order_by(WorkflowExecution.created_at.desc())
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def get_due_executions(self, now: datetime, limit: int,
                                 workflow_id: Optional[str] = None) -> List[WorkflowExecution]:
        """Running executions whose next_run_at has passed and that nobody holds."""
        async with self.get_session() as session:
            stmt = select(WorkflowExecution).where(
                WorkflowExecution.status == ExecutionStatus.RUNNING.value,
                WorkflowExecution.next_run_at <= now,
                or_(WorkflowExecution.claimed_until.is_(None), WorkflowExecution.claimed_until < now),
            )
            if workflow_id:
                stmt = stmt.where(WorkflowExecution.workflow_id == workflow_id)
            stmt = stmt.order_by(WorkflowExecution.next_run_at).limit(limit)
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def claim_execution(self, execution_id: str, now: datetime, ttl_seconds: int) -> bool:
        """Mark an execution in-flight. Returns False if another worker holds it."""
        async with self.get_session() as session:
            stmt = (
                update(WorkflowExecution)
                .where(
                    WorkflowExecution.id == execution_id,
                    WorkflowExecution.status == ExecutionStatus.RUNNING.value,
                    WorkflowExecution.next_run_at <= now,
                    or_(WorkflowExecution.claimed_until.is_(None), WorkflowExecution.claimed_until < now),
                )
                .values(claimed_until=now + timedelta(seconds=ttl_seconds))
                .execution_options(synchronize_session=False)
            )
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount == 1

    async def update_execution(self, execution_id: str, **values: Any) -> None:
        """Persist execution fields. Always clears the in-flight claim."""
        async with self.get_session() as session:
            stmt = (
                update(WorkflowExecution)
                .where(WorkflowExecution.id == execution_id)
                .values(claimed_until=None, **values)
                .execution_options(synchronize_session=False)
            )
            await session.execute(stmt)
            await session.commit()

    async def create_executions(self, workflow: Workflow, start_node_id: str,
                                contact_ids: List[str], now: datetime) -> List[WorkflowExecution]:
        """Enroll contacts, skipping any already enrolled in this workflow."""
        async with self.get_session() as session:
            result = await session.execute(
                select(WorkflowExecution.contact_id).where(WorkflowExecution.workflow_id == workflow.id)
            )
            existing = set(result.scalars().all())

            created = []
            for contact_id in dict.fromkeys(contact_ids):
                if contact_id in existing:
                    continue
                created.append(WorkflowExecution(
                    workflow_id=workflow.id,
                    contact_id=contact_id,
                    user_id=workflow.user_id,
                    current_node_id=start_node_id,
                    status=ExecutionStatus.RUNNING.value,
                    next_run_at=now,
                ))
            session.add_all(created)
            await session.commit()
            return created

    # ============================================================================
    # Audit log and interaction events (append-only)
    # ============================================================================

    async def append_log(self, execution_id: str, node_id: Optional[str], action: str,
                         details: Optional[Dict[str, Any]] = None) -> None:
        """Append one audit entry for an execution."""
        async with self.get_session() as session:
            session.add(WorkflowExecutionLog(
                execution_id=execution_id,
                node_id=node_id,
                action=action,
                details=details or {},
            ))
            await session.commit()

    async def get_logs(self, execution_id: str) -> List[WorkflowExecutionLog]:
        """Audit entries for an execution in write order."""
        async with self.get_session() as session:
            stmt = (
                select(WorkflowExecutionLog)
                .where(WorkflowExecutionLog.execution_id == execution_id)
                .order_by(WorkflowExecutionLog.id)
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def record_event(self, contact_id: str, channel: str, event_type: str,
                           metadata: Optional[Dict[str, Any]] = None,
                           user_id: Optional[str] = None,
                           workflow_id: Optional[str] = None,
                           execution_id: Optional[str] = None,
                           campaign_id: Optional[str] = None,
                           created_at: Optional[datetime] = None) -> None:
        """Append one interaction event."""
        event = Event(
            user_id=user_id,
            contact_id=contact_id,
            campaign_id=campaign_id,
            workflow_id=workflow_id,
            workflow_execution_id=execution_id,
            channel=channel,
            event_type=event_type,
            event_metadata=metadata or {},
        )
        if created_at is not None:
            event.created_at = created_at
        async with self.get_session() as session:
            session.add(event)
            await session.commit()

    async def get_events(self, contact_id: str, channel: str, event_type: str,
                         since: datetime) -> List[Event]:
        """Events of one type for a contact inside a lookback window."""
        async with self.get_session() as session:
            stmt = select(Event).where(
                Event.contact_id == contact_id,
                Event.channel == channel,
                Event.event_type == event_type,
                Event.created_at >= since,
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def count_events(self, contact_id: str, channel: str, event_type: str,
                           since: datetime) -> int:
        """Count events of one type for a contact inside a lookback window."""
        async with self.get_session() as session:
            stmt = select(func.count(Event.id)).where(
                Event.contact_id == contact_id,
                Event.channel == channel,
                Event.event_type == event_type,
                Event.created_at >= since,
            )
            result = await session.execute(stmt)
            return result.scalar_one()

    # ============================================================================
    # Contacts and lists
    # ============================================================================

    async def get_contact(self, contact_id: str) -> Optional[ContactSnapshot]:
        """Snapshot of a prospect list item, or None if it no longer exists."""
        async with self.get_session() as session:
            result = await session.execute(
                select(ProspectListItem).where(ProspectListItem.id == contact_id)
            )
            row = result.scalar_one_or_none()
            return ContactSnapshot.from_row(row) if row else None

    async def get_list_contact_ids(self, list_id: str) -> List[str]:
        """IDs of every item in a prospect list."""
        async with self.get_session() as session:
            result = await session.execute(
                select(ProspectListItem.id).where(ProspectListItem.list_id == list_id)
            )
            return list(result.scalars().all())

    async def update_contact_provider_id(self, contact_id: str, provider_id: str) -> None:
        """Persist a newly resolved network identifier onto the contact."""
        async with self.get_session() as session:
            await session.execute(
                update(ProspectListItem)
                .where(ProspectListItem.id == contact_id)
                .values(provider_id=provider_id)
                .execution_options(synchronize_session=False)
            )
            await session.commit()

    async def add_to_list(self, list_id: str, user_id: str, contact: ContactSnapshot) -> str:
        """Copy a contact snapshot into another list. Returns the new item ID."""
        item = ProspectListItem(list_id=list_id, user_id=user_id, **contact.list_payload())
        async with self.get_session() as session:
            session.add(item)
            await session.commit()
            return item.id

    async def remove_from_list(self, list_id: str, contact_id: str) -> int:
        """Delete the contact's row from a list. Returns rows removed."""
        async with self.get_session() as session:
            result = await session.execute(
                delete(ProspectListItem)
                .where(ProspectListItem.id == contact_id, ProspectListItem.list_id == list_id)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount

    # ============================================================================
    # Channel configuration
    # ============================================================================

    async def is_email_suppressed(self, user_id: str, email: str, threshold: int) -> bool:
        """True if the address bounced at least ``threshold`` times for this user."""
        async with self.get_session() as session:
            stmt = select(EmailBlocklist.bounce_count).where(
                EmailBlocklist.user_id == user_id,
                EmailBlocklist.email == email.lower().strip(),
            ).limit(1)
            result = await session.execute(stmt)
            bounce_count = result.scalar_one_or_none()
            return bounce_count is not None and bounce_count >= threshold

    async def get_resend_settings(self, user_id: str) -> Optional[ResendSettings]:
        async with self.get_session() as session:
            result = await session.execute(
                select(ResendSettings).where(ResendSettings.user_id == user_id)
            )
            return result.scalar_one_or_none()

    async def get_email_signature(self, user_id: str) -> Optional[str]:
        async with self.get_session() as session:
            result = await session.execute(
                select(EmailSettings.email_signature).where(EmailSettings.user_id == user_id)
            )
            return result.scalar_one_or_none()

    async def get_integration_account(self, user_id: str, provider: str) -> Optional[str]:
        """Unipile account ID of a connected integration, if any."""
        async with self.get_session() as session:
            stmt = select(UserIntegration.unipile_account_id).where(
                UserIntegration.user_id == user_id,
                UserIntegration.provider == provider,
                UserIntegration.status == INTEGRATION_CONNECTED,
            ).limit(1)
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    # ============================================================================
    # Campaign queue
    # ============================================================================

    async def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        async with self.get_session() as session:
            result = await session.execute(select(Campaign).where(Campaign.id == campaign_id))
            return result.scalar_one_or_none()

    async def get_campaigns_by_status(self, status: str,
                                      campaign_id: Optional[str] = None) -> List[Campaign]:
        async with self.get_session() as session:
            stmt = select(Campaign).where(Campaign.status == status)
            if campaign_id:
                stmt = stmt.where(Campaign.id == campaign_id)
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def set_campaign_status(self, campaign_id: str, status: str) -> None:
        async with self.get_session() as session:
            await session.execute(
                update(Campaign).where(Campaign.id == campaign_id).values(status=status)
                .execution_options(synchronize_session=False)
            )
            await session.commit()

    async def count_leads_sent_since(self, campaign_id: str, since: datetime) -> int:
        async with self.get_session() as session:
            stmt = select(func.count(CampaignLead.id)).where(
                CampaignLead.campaign_id == campaign_id,
                CampaignLead.sent_at >= since,
            )
            result = await session.execute(stmt)
            return result.scalar_one()

    async def count_open_leads(self, campaign_id: str) -> int:
        """Leads still waiting to be sent (pending or queued)."""
        async with self.get_session() as session:
            stmt = select(func.count(CampaignLead.id)).where(
                CampaignLead.campaign_id == campaign_id,
                CampaignLead.status.in_([LEAD_PENDING, LEAD_QUEUED]),
            )
            result = await session.execute(stmt)
            return result.scalar_one()

    async def get_pending_leads(self, campaign_id: str, limit: int) -> List[CampaignLead]:
        async with self.get_session() as session:
            stmt = (
                select(CampaignLead)
                .where(CampaignLead.campaign_id == campaign_id, CampaignLead.status == LEAD_PENDING)
                .limit(limit)
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def get_campaign_leads(self, campaign_id: str) -> List[CampaignLead]:
        async with self.get_session() as session:
            result = await session.execute(
                select(CampaignLead).where(CampaignLead.campaign_id == campaign_id)
            )
            return list(result.scalars().all())

    async def claim_campaign_leads(self, lead_ids: List[str]) -> List[str]:
        """Move leads pending -> queued. Returns the IDs this caller won."""
        claimed = []
        async with self.get_session() as session:
            for lead_id in lead_ids:
                result = await session.execute(
                    update(CampaignLead)
                    .where(CampaignLead.id == lead_id, CampaignLead.status == LEAD_PENDING)
                    .values(status=LEAD_QUEUED)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 1:
                    claimed.append(lead_id)
            await session.commit()
        return claimed

    async def mark_lead_sent(self, lead_id: str, sent_at: datetime) -> None:
        async with self.get_session() as session:
            await session.execute(
                update(CampaignLead).where(CampaignLead.id == lead_id)
                .values(status=LEAD_SENT, sent_at=sent_at, error_message=None)
                .execution_options(synchronize_session=False)
            )
            await session.commit()

    async def mark_lead_failed(self, lead_id: str, failed_at: datetime, error: str) -> None:
        async with self.get_session() as session:
            await session.execute(
                update(CampaignLead).where(CampaignLead.id == lead_id)
                .values(status=LEAD_FAILED, failed_at=failed_at, error_message=error[:2000])
                .execution_options(synchronize_session=False)
            )
            await session.commit()

    async def increment_campaign_counter(self, campaign_id: str, field: str, amount: int = 1) -> None:
        """Atomic ``field = field + amount`` so concurrent senders never lose updates."""
        if field not in CAMPAIGN_COUNTERS:
            raise ValueError(f"Unknown campaign counter: {field}")
        column = getattr(Campaign, field)
        async with self.get_session() as session:
            await session.execute(
                update(Campaign).where(Campaign.id == campaign_id)
                .values({column: column + amount})
                .execution_options(synchronize_session=False)
            )
            await session.commit()
