"""Shared fixtures: a real SQLite database, a fake message sender, a fixed clock."""

import random
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio

from core.config import Settings
from core.database import Database
from models.database import (
    Campaign,
    CampaignLead,
    ProspectListItem,
    Workflow,
    WorkflowExecution,
    WorkflowNode,
)
from services.messaging import ChannelConfig, SendResult
from services.node_executor import NodeProcessor

# Wednesday 11:00 in Sao Paulo (UTC-3), inside the default send window
NOW = datetime(2026, 10, 14, 14, 0, tzinfo=timezone.utc)

USER_ID = "user-1"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        scheduler_enabled=False,
        unipile_base_url="https://unipile.test",
        unipile_api_key="unipile-key",
        resend_api_url="https://resend.test",
        log_format="console",
    )


@pytest_asyncio.fixture
async def database(settings):
    db = Database(settings)
    await db.startup()
    yield db
    await db.shutdown()


class FakeSender:
    """Stands in for MessageSender; records every send."""

    def __init__(self):
        self.configs: Dict[str, ChannelConfig] = {}
        self.provider_ids: Dict[str, str] = {}
        self.result = SendResult(success=True, message_id="msg-1", status_code=200)
        self.error: Optional[Exception] = None
        self.sent: List[Dict[str, Any]] = []

    def connect(self, channel: str, **kwargs) -> ChannelConfig:
        defaults = {"account_id": f"acct-{channel}"}
        if channel == "email":
            defaults = {"api_key": "re_key", "sender_email": "me@example.com", "sender_name": "Me"}
        config = ChannelConfig(channel=channel, **{**defaults, **kwargs})
        self.configs[channel] = config
        return config

    async def get_channel_config(self, user_id, channel):
        return self.configs.get(channel)

    async def resolve_linkedin_provider_id(self, contact, config):
        return contact.provider_id or self.provider_ids.get(contact.id)

    async def send(self, channel, contact, content, config, provider_id=None):
        if self.error is not None:
            raise self.error
        self.sent.append({
            "channel": channel,
            "contact_id": contact.id,
            "content": content,
            "provider_id": provider_id,
        })
        return self.result


@pytest.fixture
def sender():
    return FakeSender()


@pytest.fixture
def processor(database, sender, settings):
    return NodeProcessor(database=database, sender=sender, settings=settings, rng=random.Random(7))


class Seeder:
    """Inserts rows for a test scenario."""

    def __init__(self, database: Database):
        self.database = database

    async def workflow(self, status: str = "active", **kwargs) -> Workflow:
        workflow = Workflow(user_id=USER_ID, name="Outreach", status=status, **kwargs)
        await self.database.add_all([workflow])
        return workflow

    async def nodes(self, workflow: Workflow, *specs) -> List[WorkflowNode]:
        """Chain nodes in order. Each spec is ``(id, type, config)``."""
        rows = []
        for index, (node_id, node_type, config) in enumerate(specs):
            next_id = specs[index + 1][0] if index + 1 < len(specs) else None
            rows.append(WorkflowNode(
                id=node_id,
                workflow_id=workflow.id,
                type=node_type,
                config=config or {},
                next_node_id=next_id,
            ))
        await self.database.add_all(rows)
        return rows

    async def node(self, workflow: Workflow, node_id: str, node_type: str,
                   config: Optional[Dict[str, Any]] = None, **kwargs) -> WorkflowNode:
        row = WorkflowNode(id=node_id, workflow_id=workflow.id, type=node_type,
                           config=config or {}, **kwargs)
        await self.database.add_all([row])
        return row

    async def contact(self, list_id: str = "list-1", **kwargs) -> ProspectListItem:
        fields = {"name": "Jane Doe", "email": "jane@acme.com", "company": "Acme", "title": "CTO"}
        fields.update(kwargs)
        row = ProspectListItem(list_id=list_id, user_id=USER_ID, **fields)
        await self.database.add_all([row])
        return row

    async def execution(self, workflow: Workflow, contact_id: str, node_id: Optional[str],
                        next_run_at: datetime = NOW, **kwargs) -> WorkflowExecution:
        row = WorkflowExecution(
            workflow_id=workflow.id,
            contact_id=contact_id,
            user_id=workflow.user_id,
            current_node_id=node_id,
            next_run_at=next_run_at,
            **kwargs,
        )
        await self.database.add_all([row])
        return row

    async def campaign(self, channel: str = "email", **kwargs) -> Campaign:
        fields = {"name": "Launch", "status": "active", "daily_limit": 50,
                  "message_template": "Hi {{name}}", "subject": "Hello {{FIRST_NAME}}"}
        fields.update(kwargs)
        row = Campaign(user_id=USER_ID, channel=channel, **fields)
        await self.database.add_all([row])
        return row

    async def campaign_lead(self, campaign: Campaign, lead_id: str, **kwargs) -> CampaignLead:
        row = CampaignLead(campaign_id=campaign.id, lead_id=lead_id, user_id=USER_ID, **kwargs)
        await self.database.add_all([row])
        return row


@pytest.fixture
def seed(database):
    return Seeder(database)
