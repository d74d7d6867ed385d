"""Tests for the Resend and Unipile providers over httpx.MockTransport."""

import json

import httpx
import pytest

from models.contact import ContactSnapshot
from models.database import EmailSettings, ResendSettings, UserIntegration
from services.execution import ProviderUnavailableError
from services.messaging import MessageContent, MessageSender
from services.messaging.unipile import linkedin_public_id, whatsapp_attendee_id

from conftest import USER_ID


class Recorder:
    """MockTransport handler that records requests and replays canned responses."""

    def __init__(self, responses=None):
        self.requests = []
        self.responses = responses or {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for (method, path), response in self.responses.items():
            if request.method == method and request.url.path == path:
                if isinstance(response, Exception):
                    raise response
                return response
        return httpx.Response(404, json={"error": "not found"})


def form_fields(request: httpx.Request) -> str:
    return request.content.decode()


@pytest.fixture
def contact():
    return ContactSnapshot(id="c-1", name="Jane Doe", email="jane@acme.com",
                           phone="+55 (11) 99999-0000", linkedin_url="https://www.linkedin.com/in/jane-doe/")


async def make_sender(settings, database, recorder):
    client = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
    sender = MessageSender(settings, database, client=client)
    await sender.startup()
    return sender, client


class TestHelpers:

    def test_linkedin_public_id(self):
        assert linkedin_public_id("https://www.linkedin.com/in/jane-doe/?trk=x") == "jane-doe"
        assert linkedin_public_id("jane-doe") == "jane-doe"

    def test_whatsapp_attendee_id_keeps_digits(self):
        assert whatsapp_attendee_id("+55 (11) 99999-0000") == "5511999990000"


class TestChannelConfig:

    @pytest.mark.asyncio
    async def test_email_requires_key_and_sender(self, settings, database):
        sender, client = await make_sender(settings, database, Recorder())
        assert await sender.get_channel_config(USER_ID, "email") is None

        await database.add_all([
            ResendSettings(user_id=USER_ID, resend_api_key_encrypted="re_123",
                           sender_email="me@acme.com", sender_name="Me"),
            EmailSettings(user_id=USER_ID, email_signature="Best,\nMe"),
        ])
        config = await sender.get_channel_config(USER_ID, "email")
        assert config.api_key == "re_123"
        assert config.from_address == "Me <me@acme.com>"
        assert config.signature == "Best,\nMe"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_unipile_channels_need_connected_integration(self, settings, database):
        sender, client = await make_sender(settings, database, Recorder())
        await database.add_all([
            UserIntegration(user_id=USER_ID, provider="linkedin", status="disconnected", unipile_account_id="a-1"),
            UserIntegration(user_id=USER_ID, provider="whatsapp", status="connected", unipile_account_id="a-2"),
        ])

        assert await sender.get_channel_config(USER_ID, "linkedin") is None
        assert (await sender.get_channel_config(USER_ID, "whatsapp")).account_id == "a-2"
        await client.aclose()


class TestSend:

    @pytest.mark.asyncio
    async def test_resend_email(self, settings, database, contact):
        recorder = Recorder({("POST", "/emails"): httpx.Response(200, json={"id": "re-msg-1"})})
        sender, client = await make_sender(settings, database, recorder)
        await database.add_all([ResendSettings(user_id=USER_ID, resend_api_key_encrypted="re_123",
                                               sender_email="me@acme.com", sender_name="Me")])
        config = await sender.get_channel_config(USER_ID, "email")

        result = await sender.send("email", contact, MessageContent(text="<p>Hi</p>", subject="Hello"), config)

        assert result.success
        assert result.message_id == "re-msg-1"
        request = recorder.requests[0]
        assert str(request.url) == "https://resend.test/emails"
        assert request.headers["Authorization"] == "Bearer re_123"
        assert json.loads(request.content) == {
            "from": "Me <me@acme.com>", "to": ["jane@acme.com"], "subject": "Hello", "html": "<p>Hi</p>",
        }
        await client.aclose()

    @pytest.mark.asyncio
    async def test_rejection_returns_failed_result(self, settings, database, contact):
        recorder = Recorder({("POST", "/emails"): httpx.Response(422, text="invalid from")})
        sender, client = await make_sender(settings, database, recorder)
        await database.add_all([ResendSettings(user_id=USER_ID, resend_api_key_encrypted="k", sender_email="me@acme.com")])
        config = await sender.get_channel_config(USER_ID, "email")

        result = await sender.send("email", contact, MessageContent(text="Hi", subject="s"), config)

        assert not result.success
        assert result.status_code == 422
        assert "[422]" in result.error
        await client.aclose()

    @pytest.mark.asyncio
    async def test_transport_error_raises_unavailable(self, settings, database, contact):
        recorder = Recorder({("POST", "/emails"): httpx.ConnectError("connection refused")})
        sender, client = await make_sender(settings, database, recorder)
        await database.add_all([ResendSettings(user_id=USER_ID, resend_api_key_encrypted="k", sender_email="me@acme.com")])
        config = await sender.get_channel_config(USER_ID, "email")

        with pytest.raises(ProviderUnavailableError, match="resend"):
            await sender.send("email", contact, MessageContent(text="Hi", subject="s"), config)
        await client.aclose()

    @pytest.mark.asyncio
    async def test_linkedin_lookup_caches_provider_id_then_messages(self, settings, database, seed):
        recorder = Recorder({
            ("GET", "/api/v1/users/jane-doe"): httpx.Response(200, json={"provider_id": "ACo42"}),
            ("POST", "/api/v1/chats"): httpx.Response(201, json={"chat_id": "chat-1"}),
        })
        sender, client = await make_sender(settings, database, recorder)
        row = await seed.contact(linkedin_url="https://www.linkedin.com/in/jane-doe/")
        await database.add_all([UserIntegration(user_id=USER_ID, provider="linkedin", unipile_account_id="acct-9")])
        contact = await database.get_contact(row.id)
        config = await sender.get_channel_config(USER_ID, "linkedin")

        provider_id = await sender.resolve_linkedin_provider_id(contact, config)
        result = await sender.send("linkedin", contact, MessageContent(text="Hi Jane"), config,
                                   provider_id=provider_id)

        assert provider_id == "ACo42"
        assert (await database.get_contact(row.id)).provider_id == "ACo42"
        lookup, chat = recorder.requests
        assert lookup.url.params["account_id"] == "acct-9"
        assert lookup.headers["X-API-KEY"] == "unipile-key"
        body = form_fields(chat)
        assert 'name="attendees_ids"' in body and '["ACo42"]' in body
        assert 'name="text"' in body and "Hi Jane" in body
        assert result.success
        await client.aclose()

    @pytest.mark.asyncio
    async def test_failed_lookup_returns_none(self, settings, database, contact):
        recorder = Recorder({("GET", "/api/v1/users/jane-doe"): httpx.Response(404, json={})})
        sender, client = await make_sender(settings, database, recorder)
        await database.add_all([UserIntegration(user_id=USER_ID, provider="linkedin", unipile_account_id="a")])
        config = await sender.get_channel_config(USER_ID, "linkedin")

        assert await sender.resolve_linkedin_provider_id(contact, config) is None
        await client.aclose()

    @pytest.mark.asyncio
    async def test_linkedin_invite(self, settings, database, contact):
        recorder = Recorder({("POST", "/api/v1/users/invite"): httpx.Response(201, json={"invitation_id": "inv-1"})})
        sender, client = await make_sender(settings, database, recorder)
        await database.add_all([UserIntegration(user_id=USER_ID, provider="linkedin", unipile_account_id="a")])
        config = await sender.get_channel_config(USER_ID, "linkedin")

        result = await sender.send("linkedin", contact, MessageContent(text="Let's connect", linkedin_type="invite"),
                                   config, provider_id="ACo1")

        assert result.success
        assert result.message_id == "inv-1"
        body = form_fields(recorder.requests[0])
        assert 'name="provider_id"' in body and "ACo1" in body
        assert "Let's connect" in body
        await client.aclose()

    @pytest.mark.asyncio
    async def test_whatsapp_uses_phone_digits(self, settings, database, contact):
        recorder = Recorder({("POST", "/api/v1/chats"): httpx.Response(201, json={"message_id": "wa-1"})})
        sender, client = await make_sender(settings, database, recorder)
        await database.add_all([UserIntegration(user_id=USER_ID, provider="whatsapp", unipile_account_id="a")])
        config = await sender.get_channel_config(USER_ID, "whatsapp")

        result = await sender.send("whatsapp", contact, MessageContent(text="Oi"), config)

        assert result.success
        assert '["5511999990000"]' in form_fields(recorder.requests[0])
        await client.aclose()
