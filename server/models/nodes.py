"""Pydantic models for workflow node configs with discriminated unions.

Each node type stores a schema-less JSON ``config``; this module turns it into
one typed variant per node type so dispatch can rely on the fields being there.
"""

from typing import Literal, Union, Annotated, Optional, Dict, Any
from pydantic import BaseModel, Field, TypeAdapter, field_validator

from constants import (
    ALL_NODE_TYPES,
    DEFAULT_CONDITION_CHANNEL,
    DEFAULT_CONDITION_EVENT,
    DEFAULT_LOOKBACK_HOURS,
    DEFAULT_MIN_COUNT,
    DEFAULT_MIN_SCROLL,
    LINKEDIN_MESSAGE,
)


# =============================================================================
# BASE MODELS
# =============================================================================

class BaseNodeConfig(BaseModel):
    """Base class for all node configs."""
    model_config = {"extra": "allow"}


def _none_to_zero(v):
    return 0 if v is None else v


# =============================================================================
# CONTROL NODES
# =============================================================================

class StartConfig(BaseNodeConfig):
    type: Literal["start"]


class EndConfig(BaseNodeConfig):
    type: Literal["end"]


class WaitConfig(BaseNodeConfig):
    """Fixed delay before the next node."""
    type: Literal["wait"]
    days: float = Field(default=0, ge=0)
    hours: float = Field(default=0, ge=0)

    @field_validator("days", "hours", mode="before")
    @classmethod
    def missing_is_zero(cls, v):
        return _none_to_zero(v)

    @property
    def delay_ms(self) -> int:
        return int((self.days * 86400 + self.hours * 3600) * 1000)


# =============================================================================
# SEND NODES
# =============================================================================

class SendEmailConfig(BaseNodeConfig):
    type: Literal["send_email"]
    subject: str = ""
    body: str = ""


class SendLinkedInConfig(BaseNodeConfig):
    type: Literal["send_linkedin"]
    message: str = ""
    linkedin_type: Optional[str] = LINKEDIN_MESSAGE  # "message" | "invite"


class SendWhatsAppConfig(BaseNodeConfig):
    type: Literal["send_whatsapp"]
    message: str = ""


# =============================================================================
# BRANCHING AND LIST NODES
# =============================================================================

class ConditionConfig(BaseNodeConfig):
    """Predicate over the contact's interaction history."""
    type: Literal["condition"]
    channel: str = DEFAULT_CONDITION_CHANNEL
    event_type: str = DEFAULT_CONDITION_EVENT
    lookback_hours: float = Field(default=DEFAULT_LOOKBACK_HOURS, ge=0)
    # Site-channel refinements
    url_contains: Optional[str] = None
    min_count: int = Field(default=DEFAULT_MIN_COUNT, ge=0)
    min_scroll: float = Field(default=DEFAULT_MIN_SCROLL, ge=0)
    cta_id: Optional[str] = None

    @field_validator("channel", "event_type", mode="before")
    @classmethod
    def blank_to_default(cls, v, info):
        if v:
            return v
        return DEFAULT_CONDITION_CHANNEL if info.field_name == "channel" else DEFAULT_CONDITION_EVENT

    @field_validator("lookback_hours", mode="before")
    @classmethod
    def lookback_default(cls, v):
        return DEFAULT_LOOKBACK_HOURS if v in (None, "", 0) else v

    @field_validator("min_count", "min_scroll", mode="before")
    @classmethod
    def threshold_default(cls, v, info):
        if v in (None, "", 0):
            return DEFAULT_MIN_COUNT if info.field_name == "min_count" else DEFAULT_MIN_SCROLL
        return v


class ActionConfig(BaseNodeConfig):
    """List membership mutation."""
    type: Literal["action"]
    action: str = ""
    list_id: Optional[str] = None


# =============================================================================
# DISCRIMINATED UNION
# =============================================================================

NodeConfig = Annotated[
    Union[
        StartConfig,
        EndConfig,
        WaitConfig,
        SendEmailConfig,
        SendLinkedInConfig,
        SendWhatsAppConfig,
        ConditionConfig,
        ActionConfig,
    ],
    Field(discriminator="type"),
]

_node_config_adapter = TypeAdapter(NodeConfig)


def parse_node_config(node_type: str, config: Optional[Dict[str, Any]]) -> Optional[BaseNodeConfig]:
    """Validate a stored node config into its typed variant.

    Returns None for node types this engine does not know, so callers can
    treat them as pass-through.

    Raises:
        ValidationError: If the config is invalid for a known node type
    """
    if node_type not in ALL_NODE_TYPES:
        return None
    return _node_config_adapter.validate_python({**(config or {}), "type": node_type})
