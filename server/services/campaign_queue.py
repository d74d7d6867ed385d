"""Campaign dispatch queue - daily-quota bulk sends for single-step campaigns.

Each run, per active campaign:
- quota left today = daily_limit - leads sent since UTC midnight
- claim up to that many pending leads (pending -> queued)
- send each one and mark it sent or failed, bumping the campaign counters
A campaign with nothing pending or queued is marked completed.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from constants import (
    CAMPAIGN_ACTIVE,
    CAMPAIGN_COMPLETED,
    CAMPAIGN_LINKEDIN_INVITE,
    CHANNEL_EMAIL,
    CHANNEL_LINKEDIN,
    CHANNEL_WHATSAPP,
    EVENT_SENT,
    LINKEDIN_INVITE,
    LINKEDIN_MESSAGE,
)
from core.logging import get_logger
from models.contact import ContactSnapshot
from models.database import Campaign, CampaignLead
from services.execution.batch import utcnow
from services.execution.exceptions import ProviderUnavailableError
from services.execution.renderer import append_signature, render_template, to_html
from services.messaging import MessageContent, MessageSender

logger = get_logger(__name__)

DEFAULT_CAMPAIGN_SUBJECT = "Hello"

# Contact field each channel cannot send without, and the error when it is empty
_REQUIRED_FIELDS = {
    CHANNEL_EMAIL: ("email", "No email address"),
    CHANNEL_WHATSAPP: ("phone", "No phone number"),
    CHANNEL_LINKEDIN: ("linkedin_url", "No LinkedIn URL"),
}

_CHANNEL_LABELS = {
    CHANNEL_EMAIL: "Email",
    CHANNEL_WHATSAPP: "WhatsApp",
    CHANNEL_LINKEDIN: "LinkedIn",
}


class LeadSendError(Exception):
    """A single lead could not be sent; the message is stored on the lead."""


@dataclass
class CampaignRunResult:
    campaign_id: str
    sent: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "campaign_id": self.campaign_id,
            "sent": self.sent,
            "failed": self.failed,
            "errors": self.errors,
        }


class CampaignQueueProcessor:
    """Processes the campaign lead queue within each campaign's daily limit."""

    def __init__(self, database, sender: MessageSender, clock: Callable[[], datetime] = utcnow):
        self.database = database
        self.sender = sender
        self.clock = clock

    async def process_queue(self, campaign_id: Optional[str] = None) -> Dict[str, Any]:
        """Run one pass over active campaigns.

        Args:
            campaign_id: Restrict the pass to one campaign

        Returns:
            ``{processed, results: [{campaign_id, sent, failed, errors}]}``
        """
        campaigns = await self.database.get_campaigns_by_status(CAMPAIGN_ACTIVE, campaign_id=campaign_id)
        results: List[CampaignRunResult] = []

        for campaign in campaigns:
            try:
                result = await self._process_campaign(campaign)
            except Exception as e:
                logger.error("Campaign pass failed", campaign_id=campaign.id,
                             error=str(e), exc_info=True)
                continue
            if result is not None:
                results.append(result)

        processed = sum(r.sent for r in results)
        logger.info("Campaign queue processed", campaigns=len(campaigns), sent=processed,
                    failed=sum(r.failed for r in results))
        return {"processed": processed, "results": [r.to_dict() for r in results]}

    async def _process_campaign(self, campaign: Campaign) -> Optional[CampaignRunResult]:
        now = self.clock()
        day_start = now.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)

        sent_today = await self.database.count_leads_sent_since(campaign.id, day_start)
        remaining = campaign.daily_limit - sent_today
        if remaining <= 0:
            logger.debug("Daily limit reached", campaign_id=campaign.id, daily_limit=campaign.daily_limit)
            return None

        pending = await self.database.get_pending_leads(campaign.id, remaining)
        if not pending:
            if await self.database.count_open_leads(campaign.id) == 0:
                await self.database.set_campaign_status(campaign.id, CAMPAIGN_COMPLETED)
                logger.info("Campaign completed", campaign_id=campaign.id)
            return None

        claimed = set(await self.database.claim_campaign_leads([lead.id for lead in pending]))
        result = CampaignRunResult(campaign_id=campaign.id)

        for lead in pending:
            if lead.id not in claimed:
                continue
            try:
                await self._send_lead(campaign, lead)
                await self.database.mark_lead_sent(lead.id, self.clock())
            except (LeadSendError, ProviderUnavailableError) as e:
                logger.warning("Campaign lead failed", campaign_id=campaign.id,
                               lead_id=lead.lead_id, error=str(e))
                await self._fail_lead(campaign, lead, str(e), result)
                continue
            except Exception as e:
                # Claimed leads must never stay queued
                message = str(e) or type(e).__name__
                logger.error("Campaign lead crashed", campaign_id=campaign.id,
                             lead_id=lead.lead_id, error=message, exc_info=True)
                await self._fail_lead(campaign, lead, message, result)
                continue

            await self.database.increment_campaign_counter(campaign.id, "total_sent")
            result.sent += 1

        return result

    async def _fail_lead(self, campaign: Campaign, lead: CampaignLead, message: str,
                         result: CampaignRunResult) -> None:
        await self.database.mark_lead_failed(lead.id, self.clock(), message)
        await self.database.increment_campaign_counter(campaign.id, "total_failed")
        result.failed += 1
        result.errors.append(f"{lead.lead_id}: {message}")

    async def _send_lead(self, campaign: Campaign, lead: CampaignLead) -> None:
        """Send one lead's message.

        Raises:
            LeadSendError: Missing data, unconnected channel or rejected send
            ProviderUnavailableError: Provider unreachable
        """
        channel = campaign.channel
        contact = await self.database.get_contact(lead.lead_id)
        if contact is None:
            raise LeadSendError("Lead not found")

        if channel not in _REQUIRED_FIELDS:
            raise LeadSendError(f"Unsupported channel: {channel}")
        field_name, missing_error = _REQUIRED_FIELDS[channel]
        if not getattr(contact, field_name):
            raise LeadSendError(missing_error)

        channel_config = await self.sender.get_channel_config(campaign.user_id, channel)
        if channel_config is None:
            raise LeadSendError(f"{_CHANNEL_LABELS[channel]} provider not configured")

        content = self._render(campaign, contact, channel_config.signature)
        provider_id = None
        if channel == CHANNEL_LINKEDIN:
            provider_id = await self.sender.resolve_linkedin_provider_id(contact, channel_config)
            if not provider_id:
                raise LeadSendError("Could not resolve LinkedIn profile")

        send_result = await self.sender.send(channel, contact, content, channel_config, provider_id=provider_id)
        if not send_result.success:
            raise LeadSendError(send_result.error or "Send failed")

        await self.database.record_event(
            contact_id=contact.id,
            channel=channel,
            event_type=EVENT_SENT,
            metadata={"message_id": send_result.message_id},
            user_id=campaign.user_id,
            campaign_id=campaign.id,
            created_at=self.clock(),
        )

    @staticmethod
    def _render(campaign: Campaign, contact: ContactSnapshot, signature: Optional[str]) -> MessageContent:
        text = render_template(campaign.message_template, contact)
        if campaign.channel == CHANNEL_EMAIL:
            return MessageContent(
                text=append_signature(to_html(text), signature),
                subject=render_template(campaign.subject, contact) or DEFAULT_CAMPAIGN_SUBJECT,
            )
        if campaign.channel == CHANNEL_LINKEDIN:
            linkedin_type = LINKEDIN_INVITE if campaign.linkedin_type == CAMPAIGN_LINKEDIN_INVITE else LINKEDIN_MESSAGE
            return MessageContent(text=text, linkedin_type=linkedin_type)
        return MessageContent(text=text)
