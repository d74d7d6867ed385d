"""SQLModel database models and tables."""

import uuid
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List
from sqlmodel import SQLModel, Field, Column, DateTime, JSON
from sqlalchemy import func


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Workflow definitions (authored by the editor, read-only for the engine)
# =============================================================================

class Workflow(SQLModel, table=True):
    """Automation definition with trigger and schedule window."""

    __tablename__ = "workflows"

    id: str = Field(default_factory=_new_id, primary_key=True, max_length=255)
    user_id: str = Field(index=True, max_length=255)
    name: str = Field(max_length=255)
    status: str = Field(default="draft", max_length=50)  # draft | active | paused
    trigger_type: str = Field(default="manual", max_length=50)  # manual | list_added | webhook
    trigger_list_id: Optional[str] = Field(default=None, max_length=255)
    schedule_days: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))
    schedule_start_time: Optional[str] = Field(default=None, max_length=5)
    schedule_end_time: Optional[str] = Field(default=None, max_length=5)
    schedule_timezone: Optional[str] = Field(default=None, max_length=64)
    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), server_default=func.now())
    )
    updated_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), onupdate=func.now())
    )


class WorkflowNode(SQLModel, table=True):
    """Typed step in a workflow graph."""

    __tablename__ = "workflow_nodes"

    id: str = Field(default_factory=_new_id, primary_key=True, max_length=255)
    workflow_id: str = Field(foreign_key="workflows.id", index=True, max_length=255)
    type: str = Field(max_length=50)
    config: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    next_node_id: Optional[str] = Field(default=None, max_length=255)
    true_node_id: Optional[str] = Field(default=None, max_length=255)
    false_node_id: Optional[str] = Field(default=None, max_length=255)
    position_x: float = Field(default=0.0)
    position_y: float = Field(default=0.0)
    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), server_default=func.now())
    )


# =============================================================================
# Execution state (owned by the engine)
# =============================================================================

class WorkflowExecution(SQLModel, table=True):
    """One contact's position in one workflow graph."""

    __tablename__ = "workflow_executions"

    id: str = Field(default_factory=_new_id, primary_key=True, max_length=255)
    workflow_id: str = Field(foreign_key="workflows.id", index=True, max_length=255)
    contact_id: str = Field(index=True, max_length=255)
    user_id: str = Field(max_length=255)
    current_node_id: Optional[str] = Field(default=None, max_length=255)
    status: str = Field(default="running", index=True, max_length=50)
    next_run_at: Optional[datetime] = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), index=True)
    )
    retry_count: int = Field(default=0)
    error_message: Optional[str] = Field(default=None, max_length=2000)
    claimed_until: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True))
    )
    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), server_default=func.now())
    )
    updated_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), onupdate=func.now())
    )


class WorkflowExecutionLog(SQLModel, table=True):
    """Append-only audit trail of engine actions."""

    __tablename__ = "workflow_execution_logs"

    id: Optional[int] = Field(default=None, primary_key=True)
    execution_id: str = Field(index=True, max_length=255)
    node_id: Optional[str] = Field(default=None, max_length=255)
    action: str = Field(max_length=100)
    details: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), server_default=func.now())
    )


class Event(SQLModel, table=True):
    """Interaction history across all channels (and site tracking)."""

    __tablename__ = "events"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: Optional[str] = Field(default=None, max_length=255)
    contact_id: str = Field(index=True, max_length=255)
    campaign_id: Optional[str] = Field(default=None, max_length=255)
    workflow_id: Optional[str] = Field(default=None, max_length=255)
    workflow_execution_id: Optional[str] = Field(default=None, max_length=255)
    channel: str = Field(max_length=50)
    event_type: str = Field(max_length=50)
    # "metadata" is reserved on declarative classes
    event_metadata: Dict[str, Any] = Field(default_factory=dict, sa_column=Column("metadata", JSON))
    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), index=True)
    )


# =============================================================================
# Externally owned aggregates the engine reads (and narrowly writes)
# =============================================================================

class ProspectListItem(SQLModel, table=True):
    """Contact saved into a prospect list."""

    __tablename__ = "prospect_list_items"

    id: str = Field(default_factory=_new_id, primary_key=True, max_length=255)
    list_id: str = Field(index=True, max_length=255)
    user_id: str = Field(max_length=255)
    item_type: str = Field(default="lead", max_length=20)
    name: Optional[str] = Field(default=None, max_length=255)
    email: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=50)
    company: Optional[str] = Field(default=None, max_length=255)
    title: Optional[str] = Field(default=None, max_length=255)
    linkedin_url: Optional[str] = Field(default=None, max_length=500)
    provider_id: Optional[str] = Field(default=None, max_length=255)
    location: Optional[str] = Field(default=None, max_length=255)
    industry: Optional[str] = Field(default=None, max_length=255)
    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), server_default=func.now())
    )


class EmailBlocklist(SQLModel, table=True):
    """Bounced or complained addresses per user."""

    __tablename__ = "email_blocklist"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True, max_length=255)
    email: str = Field(index=True, max_length=255)
    bounce_count: int = Field(default=1)


class UserIntegration(SQLModel, table=True):
    """Connected messaging account (LinkedIn, WhatsApp) via Unipile."""

    __tablename__ = "user_integrations"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True, max_length=255)
    provider: str = Field(max_length=50)
    status: str = Field(default="connected", max_length=50)
    unipile_account_id: Optional[str] = Field(default=None, max_length=255)


class ResendSettings(SQLModel, table=True):
    """Per-user Resend credentials for the email channel."""

    __tablename__ = "resend_settings"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True, unique=True, max_length=255)
    resend_api_key_encrypted: Optional[str] = Field(default=None, max_length=1000)
    sender_email: Optional[str] = Field(default=None, max_length=255)
    sender_name: Optional[str] = Field(default=None, max_length=255)


class EmailSettings(SQLModel, table=True):
    """Per-user email signature."""

    __tablename__ = "email_settings"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True, unique=True, max_length=255)
    email_signature: Optional[str] = Field(default=None, max_length=5000)


# =============================================================================
# Campaign dispatch queue
# =============================================================================

class Campaign(SQLModel, table=True):
    """Single-step, single-channel bulk send with a daily quota."""

    __tablename__ = "campaigns"

    id: str = Field(default_factory=_new_id, primary_key=True, max_length=255)
    user_id: str = Field(index=True, max_length=255)
    name: str = Field(max_length=255)
    channel: str = Field(max_length=50)
    status: str = Field(default="draft", max_length=50)
    daily_limit: int = Field(default=50)
    list_id: Optional[str] = Field(default=None, max_length=255)
    subject: Optional[str] = Field(default=None, max_length=500)
    message_template: Optional[str] = Field(default=None, max_length=20000)
    linkedin_type: Optional[str] = Field(default=None, max_length=50)
    total_sent: int = Field(default=0)
    total_failed: int = Field(default=0)
    total_delivered: int = Field(default=0)
    total_replied: int = Field(default=0)
    total_accepted: int = Field(default=0)
    total_opened: int = Field(default=0)
    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), server_default=func.now())
    )


class CampaignLead(SQLModel, table=True):
    """Delivery state of one contact within one campaign."""

    __tablename__ = "campaign_leads"

    id: str = Field(default_factory=_new_id, primary_key=True, max_length=255)
    campaign_id: str = Field(foreign_key="campaigns.id", index=True, max_length=255)
    lead_id: str = Field(max_length=255)
    user_id: str = Field(max_length=255)
    status: str = Field(default="pending", index=True, max_length=50)
    sent_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    failed_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    error_message: Optional[str] = Field(default=None, max_length=2000)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)
