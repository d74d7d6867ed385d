"""Centralized constants for node types, channels and engine defaults.

This module provides a single source of truth for the string values stored in
the workflow tables, eliminating duplicate literals across the codebase.
"""

from typing import FrozenSet, List

# =============================================================================
# WORKFLOW NODE TYPES
# =============================================================================

NODE_START = 'start'
NODE_SEND_EMAIL = 'send_email'
NODE_SEND_LINKEDIN = 'send_linkedin'
NODE_SEND_WHATSAPP = 'send_whatsapp'
NODE_WAIT = 'wait'
NODE_CONDITION = 'condition'
NODE_ACTION = 'action'
NODE_END = 'end'

SEND_NODE_TYPES: FrozenSet[str] = frozenset([
    NODE_SEND_EMAIL,
    NODE_SEND_LINKEDIN,
    NODE_SEND_WHATSAPP,
])

WORKFLOW_CONTROL_TYPES: FrozenSet[str] = frozenset([
    NODE_START,
    NODE_WAIT,
    NODE_END,
])

ALL_NODE_TYPES: FrozenSet[str] = (
    WORKFLOW_CONTROL_TYPES |
    SEND_NODE_TYPES |
    frozenset([NODE_CONDITION, NODE_ACTION])
)

# =============================================================================
# CHANNELS
# =============================================================================

CHANNEL_EMAIL = 'email'
CHANNEL_LINKEDIN = 'linkedin'
CHANNEL_WHATSAPP = 'whatsapp'
CHANNEL_SITE = 'site'

# LinkedIn message sub-kinds
LINKEDIN_MESSAGE = 'message'
LINKEDIN_INVITE = 'invite'
# Campaign rows spell the invite sub-kind differently
CAMPAIGN_LINKEDIN_INVITE = 'connection_request'

# =============================================================================
# EVENT TYPES
# =============================================================================

EVENT_SENT = 'sent'
EVENT_FAILED = 'failed'
EVENT_REPLIED = 'replied'

SITE_PAGE_VISIT = 'page_visit'
SITE_SCROLL_DEPTH = 'scroll_depth'
SITE_CTA_CLICK = 'cta_click'

# =============================================================================
# STATUSES
# =============================================================================

WORKFLOW_ACTIVE = 'active'

CAMPAIGN_ACTIVE = 'active'
CAMPAIGN_COMPLETED = 'completed'

LEAD_PENDING = 'pending'
LEAD_QUEUED = 'queued'
LEAD_SENT = 'sent'
LEAD_FAILED = 'failed'

INTEGRATION_CONNECTED = 'connected'

# =============================================================================
# LIST ACTIONS
# =============================================================================

ACTION_ADD_TO_LIST = 'add_to_list'
ACTION_REMOVE_FROM_LIST = 'remove_from_list'

# =============================================================================
# ENGINE DEFAULTS
# =============================================================================

DEFAULT_SCHEDULE_DAYS: List[str] = ['mon', 'tue', 'wed', 'thu', 'fri']
DEFAULT_SCHEDULE_START = '08:00'
DEFAULT_SCHEDULE_END = '18:00'
DEFAULT_SCHEDULE_TIMEZONE = 'America/Sao_Paulo'

DEFAULT_CONDITION_CHANNEL = CHANNEL_EMAIL
DEFAULT_CONDITION_EVENT = EVENT_REPLIED
DEFAULT_LOOKBACK_HOURS = 48
DEFAULT_MIN_COUNT = 1
DEFAULT_MIN_SCROLL = 50

MAX_RETRIES = 3
BACKOFF_UNIT_MS = 60_000
BATCH_SIZE = 100
