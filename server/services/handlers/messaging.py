"""Send node handlers - Email, LinkedIn, WhatsApp.

Each handler ends in one of three ways:
- skip: a prerequisite is missing (recipient field, connected channel,
  suppression, member ID); logged as ``send_<channel>_skip`` or
  ``send_email_blocked`` and advanced with no delay
- send failure: the provider rejected the send; logged as
  ``send_<channel>_fail``, a ``failed`` event recorded, advanced with no delay
- ok: a ``sent`` event recorded and the next node delayed by a random
  pacing interval
``ProviderUnavailableError`` is not caught here; the advancer retries it.
"""

import random
from typing import Any, Dict, Optional

from constants import (
    CHANNEL_EMAIL,
    CHANNEL_LINKEDIN,
    CHANNEL_WHATSAPP,
    EVENT_FAILED,
    EVENT_SENT,
    LINKEDIN_INVITE,
    LINKEDIN_MESSAGE,
)
from core.config import Settings
from core.logging import get_logger
from services.execution.models import NodeResult, NodeStep, OUTCOME_SEND_FAILED, OUTCOME_SKIP
from services.execution.renderer import append_signature, render_template, to_html
from services.messaging import MessageContent, MessageSender, SendResult

logger = get_logger(__name__)


def pacing_delay_ms(settings: Settings, rng: random.Random) -> int:
    """Random gap between consecutive sends, in milliseconds."""
    return rng.randint(settings.send_delay_min_seconds, settings.send_delay_max_seconds) * 1000


async def _record_event(database, step: NodeStep, channel: str, event_type: str,
                        metadata: Dict[str, Any]) -> None:
    await database.record_event(
        contact_id=step.contact.id,
        channel=channel,
        event_type=event_type,
        metadata=metadata,
        user_id=step.user_id,
        workflow_id=step.workflow.id,
        execution_id=step.execution.id,
        created_at=step.now,
    )


async def _skip(database, step: NodeStep, action: str, details: Dict[str, Any]) -> NodeResult:
    await database.append_log(step.execution.id, step.node.id, action, details)
    return NodeResult(next_node_id=step.node.next_node_id, outcome=OUTCOME_SKIP)


async def _finish(database, step: NodeStep, channel: str, result: SendResult,
                  ok_details: Dict[str, Any], sent_metadata: Dict[str, Any],
                  settings: Settings, rng: random.Random) -> NodeResult:
    """Record the outcome of a provider call and pick the next delay."""
    prefix = f"send_{channel}"
    if not result.success:
        logger.warning("Send rejected by provider", channel=channel,
                       execution_id=step.execution.id, error=result.error)
        await database.append_log(step.execution.id, step.node.id, f"{prefix}_fail", {"error": result.error})
        await _record_event(database, step, channel, EVENT_FAILED, {"error": result.error})
        return NodeResult(next_node_id=step.node.next_node_id, outcome=OUTCOME_SEND_FAILED)

    await _record_event(database, step, channel, EVENT_SENT, sent_metadata)
    await database.append_log(step.execution.id, step.node.id, f"{prefix}_ok", ok_details)
    return NodeResult(next_node_id=step.node.next_node_id, delay_ms=pacing_delay_ms(settings, rng))


async def handle_send_email(step: NodeStep, *, database, sender: MessageSender,
                            settings: Settings, rng: random.Random) -> NodeResult:
    """Send a rendered email through the owner's Resend account."""
    contact = step.contact
    if not contact.email:
        return await _skip(database, step, "send_email_skip", {"reason": "No email"})

    if await database.is_email_suppressed(step.user_id, contact.email, settings.suppression_bounce_threshold):
        return await _skip(database, step, "send_email_blocked", {"email": contact.email})

    channel_config = await sender.get_channel_config(step.user_id, CHANNEL_EMAIL)
    if channel_config is None:
        return await _skip(database, step, "send_email_skip", {"reason": "Resend not configured"})

    subject = render_template(step.config.subject, contact)
    body = to_html(render_template(step.config.body, contact))
    body = append_signature(body, channel_config.signature)

    result = await sender.send(CHANNEL_EMAIL, contact, MessageContent(text=body, subject=subject), channel_config)
    return await _finish(database, step, CHANNEL_EMAIL, result,
                         ok_details={"to": contact.email},
                         sent_metadata={"subject": subject, "resend_id": result.message_id},
                         settings=settings, rng=rng)


async def handle_send_linkedin(step: NodeStep, *, database, sender: MessageSender,
                               settings: Settings, rng: random.Random) -> NodeResult:
    """Send a LinkedIn direct message or connection invite."""
    contact = step.contact
    if not contact.linkedin_url and not contact.provider_id:
        return await _skip(database, step, "send_linkedin_skip", {"reason": "No LinkedIn URL"})

    channel_config = await sender.get_channel_config(step.user_id, CHANNEL_LINKEDIN)
    if channel_config is None:
        return await _skip(database, step, "send_linkedin_skip", {"reason": "LinkedIn not connected"})

    provider_id: Optional[str] = await sender.resolve_linkedin_provider_id(contact, channel_config)
    if not provider_id:
        return await _skip(database, step, "send_linkedin_skip", {"reason": "Could not resolve provider_id"})

    linkedin_type = LINKEDIN_INVITE if step.config.linkedin_type == LINKEDIN_INVITE else LINKEDIN_MESSAGE
    content = MessageContent(text=render_template(step.config.message, contact), linkedin_type=linkedin_type)

    result = await sender.send(CHANNEL_LINKEDIN, contact, content, channel_config, provider_id=provider_id)
    return await _finish(database, step, CHANNEL_LINKEDIN, result,
                         ok_details={"linkedin_type": linkedin_type},
                         sent_metadata={"linkedin_type": linkedin_type},
                         settings=settings, rng=rng)


async def handle_send_whatsapp(step: NodeStep, *, database, sender: MessageSender,
                               settings: Settings, rng: random.Random) -> NodeResult:
    contact = step.contact
    if not contact.phone:
        return await _skip(database, step, "send_whatsapp_skip", {"reason": "No phone"})

    channel_config = await sender.get_channel_config(step.user_id, CHANNEL_WHATSAPP)
    if channel_config is None:
        return await _skip(database, step, "send_whatsapp_skip", {"reason": "WhatsApp not connected"})

    content = MessageContent(text=render_template(step.config.message, contact))
    result = await sender.send(CHANNEL_WHATSAPP, contact, content, channel_config)
    return await _finish(database, step, CHANNEL_WHATSAPP, result,
                         ok_details={"phone": contact.phone},
                         sent_metadata={},
                         settings=settings, rng=rng)
