"""
HTTP tests for the chat endpoint and the WhatsApp webhook.

The database, ERP gateway and notifier dependencies are overridden with the
in-memory fixtures, so no server or external service is needed.
"""
import threading

import pytest
import pytest_asyncio
import requests
from httpx import ASGITransport, AsyncClient

from commerce_bot.database.session import get_db
from commerce_bot.main import app
from commerce_bot.models.chat_session import ChatSession
from commerce_bot.routers.api.webhooks import whatsapp
from commerce_bot.services.erp_service import get_erp_gateway
from commerce_bot.services.whatsapp_service import get_notifier

from tests.helpers import KNOWN_PHONE


class RecordingNotifier:
    def __init__(self, fail=False):
        self.sent = []
        self.threads = []
        self.fail = fail

    def send_text(self, recipient, text):
        self.threads.append(threading.get_ident())
        if self.fail:
            raise requests.ConnectionError("graph api unreachable")
        self.sent.append((recipient, text))


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest_asyncio.fixture
async def client(db, gateway, notifier):
    def override_db():
        yield db

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_erp_gateway] = lambda: gateway
    app.dependency_overrides[get_notifier] = lambda: notifier

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def text_message(sender, body, kind="text"):
    message = {"from": sender, "id": "wamid.1", "type": kind}
    if kind == "text":
        message["text"] = {"body": body}
    return message


def webhook_payload(*messages):
    return {
        "object": "whatsapp_business_account",
        "entry": [{
            "id": "1",
            "changes": [{
                "field": "messages",
                "value": {
                    "messaging_product": "whatsapp",
                    "metadata": {"phone_number_id": "100200300"},
                    "messages": list(messages),
                },
            }],
        }],
    }


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_chat_message_returns_reply(client, db):
    response = await client.post(
        "/chat/messages",
        json={"sender": KNOWN_PHONE, "text": "hola", "channelId": "bot-1"},
    )

    assert response.status_code == 200
    assert "MARIA GONZALEZ" in response.json()["replyText"]
    session = db.query(ChatSession).one()
    assert session.chatbot_id == "bot-1"


@pytest.mark.asyncio
async def test_chat_message_requires_sender(client):
    response = await client.post("/chat/messages", json={"sender": "", "text": "hola"})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_webhook_verification(client):
    params = {"hub.mode": "subscribe", "hub.verify_token": "test-verify-token", "hub.challenge": "12345"}

    response = await client.get("/webhooks/whatsapp", params=params)
    assert response.status_code == 200
    assert response.text == "12345"

    params["hub.verify_token"] = "wrong"
    response = await client.get("/webhooks/whatsapp", params=params)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_webhook_replies_to_text_messages(client, db, notifier):
    payload = webhook_payload(
        text_message("584141234567", "hola"),
        text_message("584141234567", "", kind="image"),
    )

    response = await client.post("/webhooks/whatsapp", json=payload)

    assert response.json() == {"status": "ok", "handled": 1}
    assert len(notifier.sent) == 1
    recipient, reply = notifier.sent[0]
    assert recipient == "584141234567"
    assert "MARIA GONZALEZ" in reply
    assert db.query(ChatSession).one().chatbot_id == "100200300"


@pytest.mark.asyncio
async def test_webhook_survives_delivery_failure(client, db, notifier):
    notifier.fail = True

    response = await client.post("/webhooks/whatsapp", json=webhook_payload(text_message("584141234567", "hola")))

    assert response.status_code == 200
    assert response.json()["handled"] == 1
    assert db.query(ChatSession).one().message_count == 1


@pytest.mark.asyncio
async def test_webhook_turns_run_off_the_event_loop(client, notifier, monkeypatch):
    loop_thread = threading.get_ident()
    turn_threads = []
    handle_message = whatsapp.handle_message

    def recording_handle(*args, **kwargs):
        turn_threads.append(threading.get_ident())
        return handle_message(*args, **kwargs)

    monkeypatch.setattr(whatsapp, "handle_message", recording_handle)

    response = await client.post("/webhooks/whatsapp", json=webhook_payload(text_message("584141234567", "hola")))

    assert response.json()["handled"] == 1
    assert turn_threads and loop_thread not in turn_threads
    assert notifier.threads and loop_thread not in notifier.threads
