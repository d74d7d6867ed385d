"""Unipile API for LinkedIn and WhatsApp.

Unipile expects multipart form bodies on its write endpoints and
authenticates with an ``X-API-KEY`` header.
"""

import json
import re
from typing import Dict, Optional
from urllib.parse import quote

import httpx

from core.logging import get_logger
from services.messaging.base import SendResult, provider_request, rejected, response_id

logger = get_logger(__name__)

PROVIDER = "unipile"

_PROFILE_SLUG = re.compile(r"/in/([^/?#]+)")
_NON_DIGITS = re.compile(r"\D")


def linkedin_public_id(linkedin_url: str) -> str:
    """Profile slug from a LinkedIn URL; bare identifiers pass through.

    Examples:
        >>> linkedin_public_id("https://www.linkedin.com/in/jane-doe/?trk=x")
        "jane-doe"
        >>> linkedin_public_id("jane-doe")
        "jane-doe"
    """
    if "/" not in linkedin_url:
        return linkedin_url
    match = _PROFILE_SLUG.search(linkedin_url)
    return match.group(1) if match else linkedin_url


def whatsapp_attendee_id(phone: str) -> str:
    return _NON_DIGITS.sub("", phone)


def _form(fields: Dict[str, str]) -> Dict[str, tuple]:
    # (None, value) makes httpx send a plain multipart field
    return {name: (None, value) for name, value in fields.items()}


class UnipileClient:

    def __init__(self, client: httpx.AsyncClient, base_url: str, api_key: str):
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key

    @property
    def _headers(self) -> Dict[str, str]:
        return {"X-API-KEY": self.api_key, "accept": "application/json"}

    async def lookup_provider_id(self, account_id: str, linkedin_url: str) -> Optional[str]:
        """Resolve a profile URL to the network's internal member ID."""
        public_id = linkedin_public_id(linkedin_url)
        response = await provider_request(
            self.client, PROVIDER, "GET",
            f"{self.base_url}/api/v1/users/{quote(public_id, safe='')}",
            params={"account_id": account_id},
            headers=self._headers,
        )
        if not response.is_success:
            logger.warning("LinkedIn profile lookup failed", public_id=public_id,
                           status_code=response.status_code)
            return None
        return response_id(response, "provider_id", "id")

    async def send_invite(self, account_id: str, provider_id: str, message: str) -> SendResult:
        fields = {"account_id": account_id, "provider_id": provider_id}
        if message:
            fields["message"] = message
        response = await provider_request(
            self.client, PROVIDER, "POST", f"{self.base_url}/api/v1/users/invite",
            headers=self._headers, files=_form(fields),
        )
        if not response.is_success:
            return rejected("LinkedIn", "invite", response)
        return SendResult(success=True, message_id=response_id(response, "invitation_id", "id"),
                          status_code=response.status_code)

    async def start_chat(self, account_id: str, attendee_id: str, text: str,
                         label: str = "LinkedIn") -> SendResult:
        """Open (or reuse) a chat with one attendee and post a message."""
        response = await provider_request(
            self.client, PROVIDER, "POST", f"{self.base_url}/api/v1/chats",
            headers=self._headers,
            files=_form({
                "account_id": account_id,
                "attendees_ids": json.dumps([attendee_id]),
                "text": text,
            }),
        )
        if not response.is_success:
            return rejected(label, "message", response)
        return SendResult(success=True, message_id=response_id(response, "message_id", "chat_id"),
                          status_code=response.status_code)
