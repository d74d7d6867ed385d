"""Outbound messaging providers (Resend email, Unipile LinkedIn and WhatsApp)."""

from .base import ChannelConfig, MessageContent, SendResult
from .sender import MessageSender

__all__ = [
    "ChannelConfig",
    "MessageContent",
    "SendResult",
    "MessageSender",
]
