"""Resend email API."""

import httpx

from services.messaging.base import ChannelConfig, SendResult, provider_request, rejected, response_id

PROVIDER = "resend"


class ResendClient:
    """Sends transactional email through ``POST /emails``."""

    def __init__(self, client: httpx.AsyncClient, api_url: str):
        self.client = client
        self.api_url = api_url.rstrip("/")

    async def send_email(self, config: ChannelConfig, to: str, subject: str, html: str) -> SendResult:
        response = await provider_request(
            self.client, PROVIDER, "POST", f"{self.api_url}/emails",
            headers={"Authorization": f"Bearer {config.api_key}"},
            json={
                "from": config.from_address,
                "to": [to],
                "subject": subject,
                "html": html,
            },
        )
        if not response.is_success:
            return rejected("Resend", "send", response)
        return SendResult(success=True, message_id=response_id(response, "id"),
                          status_code=response.status_code)
