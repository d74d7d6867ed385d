"""Shared types and request helper for messaging providers."""

from dataclasses import dataclass
from typing import Any, Optional

import httpx

from constants import LINKEDIN_MESSAGE
from services.execution.exceptions import ProviderUnavailableError


@dataclass
class ChannelConfig:
    """Per-user connection details for one channel.

    Email uses the Resend fields, LinkedIn and WhatsApp use the Unipile
    account. A channel with no config is not connected.
    """
    channel: str
    api_key: Optional[str] = None
    sender_email: Optional[str] = None
    sender_name: Optional[str] = None
    signature: Optional[str] = None
    account_id: Optional[str] = None

    @property
    def from_address(self) -> str:
        if self.sender_name:
            return f"{self.sender_name} <{self.sender_email}>"
        return self.sender_email or ""


@dataclass
class MessageContent:
    """Rendered message ready to go out."""
    text: str
    subject: Optional[str] = None
    linkedin_type: str = LINKEDIN_MESSAGE


@dataclass
class SendResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    status_code: Optional[int] = None


async def provider_request(client: httpx.AsyncClient, provider: str, method: str,
                           url: str, **kwargs: Any) -> httpx.Response:
    """Issue a provider call, turning transport errors into a retryable fault."""
    try:
        return await client.request(method, url, **kwargs)
    except httpx.TransportError as e:
        raise ProviderUnavailableError(provider, str(e) or type(e).__name__) from e


def rejected(provider: str, action: str, response: httpx.Response) -> SendResult:
    """SendResult for a non-2xx provider response."""
    body = response.text[:200] if response.text else ""
    return SendResult(
        success=False,
        error=f"{provider} {action} failed [{response.status_code}]: {body}",
        status_code=response.status_code,
    )


def response_id(response: httpx.Response, *keys: str) -> Optional[str]:
    """First present identifier in a JSON response body."""
    try:
        data = response.json()
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    for key in keys:
        if data.get(key):
            return str(data[key])
    return None
