"""Condition evaluation over a contact's interaction history.

Messaging channels (email, linkedin, whatsapp) are a plain existence check:
at least one event of the configured type inside the lookback window.

The site channel has refinements evaluated over the matching events:
- page_visit + url_contains: visits whose URL contains the substring >= min_count
- scroll_depth: any event with scroll_percent >= min_scroll
- cta_click + cta_id: any event whose cta_id equals the configured one
Without a refinement, any site event of the type counts.
"""

from datetime import datetime, timedelta
from typing import Dict, Any, List, Optional

from constants import CHANNEL_SITE, SITE_CTA_CLICK, SITE_PAGE_VISIT, SITE_SCROLL_DEPTH
from core.logging import get_logger
from models.nodes import ConditionConfig

logger = get_logger(__name__)


def get_metadata_value(metadata: Optional[Dict[str, Any]], key: str, default: Any = None) -> Any:
    """Read a key from free-form event metadata.

    Examples:
        >>> get_metadata_value({"url": "/pricing"}, "url")
        "/pricing"
        >>> get_metadata_value(None, "url", "")
        ""
    """
    if not metadata:
        return default
    value = metadata.get(key)
    return default if value is None else value


def _as_number(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def evaluate_site_events(config: ConditionConfig, events: List[Dict[str, Any]]) -> bool:
    """Apply the site-channel predicate to events already filtered by window and type.

    Args:
        config: Validated condition config
        events: Metadata dicts of the matching events

    Returns:
        True if the predicate holds
    """
    if config.event_type == SITE_PAGE_VISIT and config.url_contains:
        matching = [
            m for m in events
            if config.url_contains in str(get_metadata_value(m, "url", ""))
        ]
        return len(matching) >= config.min_count

    if config.event_type == SITE_SCROLL_DEPTH:
        return any(
            _as_number(get_metadata_value(m, "scroll_percent", 0)) >= config.min_scroll
            for m in events
        )

    if config.event_type == SITE_CTA_CLICK and config.cta_id:
        return any(get_metadata_value(m, "cta_id") == config.cta_id for m in events)

    return len(events) > 0


class ConditionEvaluator:
    """Evaluates condition nodes against stored interaction events."""

    def __init__(self, database):
        self.database = database

    async def evaluate(self, contact_id: str, config: ConditionConfig, now: datetime) -> bool:
        since = now - timedelta(hours=config.lookback_hours)

        if config.channel == CHANNEL_SITE:
            events = await self.database.get_events(contact_id, CHANNEL_SITE, config.event_type, since)
            result = evaluate_site_events(config, [e.event_metadata for e in events])
        else:
            count = await self.database.count_events(contact_id, config.channel, config.event_type, since)
            result = count > 0

        logger.debug("Condition evaluated", contact_id=contact_id, channel=config.channel,
                     event_type=config.event_type, result=result)
        return result
