"""Channel-agnostic message sender used by send nodes and the campaign queue."""

from typing import Optional

import httpx

from constants import CHANNEL_EMAIL, CHANNEL_LINKEDIN, CHANNEL_WHATSAPP, LINKEDIN_INVITE
from core.config import Settings
from core.logging import get_logger, log_send_attempt
from models.contact import ContactSnapshot
from services.messaging.base import ChannelConfig, MessageContent, SendResult
from services.messaging.resend import ResendClient
from services.messaging.unipile import UnipileClient, whatsapp_attendee_id

logger = get_logger(__name__)


class MessageSender:
    """Resolves per-user channel config and dispatches to the right provider.

    Returns ``SendResult(success=False)`` when a provider rejects a send and
    lets ``ProviderUnavailableError`` propagate when it cannot be reached.
    """

    def __init__(self, settings: Settings, database, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self.database = database
        self._client = client
        self._owns_client = client is None

    async def startup(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.settings.provider_timeout_seconds)
            self._owns_client = True
        logger.info("Message sender ready", unipile=self.settings.unipile_configured)

    async def shutdown(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("MessageSender not started")
        return self._client

    @property
    def resend(self) -> ResendClient:
        return ResendClient(self.client, self.settings.resend_api_url)

    @property
    def unipile(self) -> UnipileClient:
        return UnipileClient(self.client, self.settings.unipile_base_url, self.settings.unipile_api_key)

    async def get_channel_config(self, user_id: str, channel: str) -> Optional[ChannelConfig]:
        """Connection details for a user's channel, or None if not connected."""
        if channel == CHANNEL_EMAIL:
            resend = await self.database.get_resend_settings(user_id)
            if not resend or not resend.resend_api_key_encrypted or not resend.sender_email:
                return None
            return ChannelConfig(
                channel=channel,
                api_key=resend.resend_api_key_encrypted,
                sender_email=resend.sender_email,
                sender_name=resend.sender_name,
                signature=await self.database.get_email_signature(user_id),
            )

        if channel in (CHANNEL_LINKEDIN, CHANNEL_WHATSAPP):
            if not self.settings.unipile_configured:
                return None
            account_id = await self.database.get_integration_account(user_id, channel)
            if not account_id:
                return None
            return ChannelConfig(channel=channel, account_id=account_id)

        return None

    async def resolve_linkedin_provider_id(self, contact: ContactSnapshot,
                                           config: ChannelConfig) -> Optional[str]:
        """Member ID for a contact, looked up and cached on first use."""
        if contact.provider_id:
            return contact.provider_id
        if not contact.linkedin_url:
            return None

        provider_id = await self.unipile.lookup_provider_id(config.account_id, contact.linkedin_url)
        if provider_id:
            await self.database.update_contact_provider_id(contact.id, provider_id)
            logger.debug("LinkedIn provider ID resolved", contact_id=contact.id)
        return provider_id

    async def send(self, channel: str, contact: ContactSnapshot, content: MessageContent,
                   config: ChannelConfig, provider_id: Optional[str] = None) -> SendResult:
        """Send one rendered message over ``channel``.

        Args:
            channel: email, linkedin or whatsapp
            contact: Recipient
            content: Rendered subject and body
            config: The owner's channel config
            provider_id: Resolved LinkedIn member ID (LinkedIn only)

        Returns:
            SendResult with the provider message ID on success
        """
        if channel == CHANNEL_EMAIL:
            result = await self.resend.send_email(config, contact.email, content.subject or "", content.text)
            provider = "resend"
        elif channel == CHANNEL_LINKEDIN:
            recipient = provider_id or contact.provider_id
            if content.linkedin_type == LINKEDIN_INVITE:
                result = await self.unipile.send_invite(config.account_id, recipient, content.text)
            else:
                result = await self.unipile.start_chat(config.account_id, recipient, content.text)
            provider = "unipile"
        elif channel == CHANNEL_WHATSAPP:
            result = await self.unipile.start_chat(
                config.account_id, whatsapp_attendee_id(contact.phone or ""), content.text, label="WhatsApp"
            )
            provider = "unipile"
        else:
            raise ValueError(f"Unsupported channel: {channel}")

        log_send_attempt(logger, provider, channel, result.success,
                         contact_id=contact.id, status_code=result.status_code)
        return result
