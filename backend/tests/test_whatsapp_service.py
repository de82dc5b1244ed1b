import pytest
import requests

from commerce_bot.services import whatsapp_service
from commerce_bot.services.whatsapp_service import WhatsAppCloudNotifier


class FakeResponse:
    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self.text = str(body)
        self._body = body or {}

    def json(self):
        return self._body

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


def test_send_text_posts_to_graph_api(monkeypatch):
    calls = []

    def fake_post(url, json, headers, timeout):
        calls.append((url, json, headers, timeout))
        return FakeResponse(body={"messages": [{"id": "wamid.1"}]})

    monkeypatch.setattr(whatsapp_service.requests, "post", fake_post)
    notifier = WhatsAppCloudNotifier("token", "100200300", "https://graph.example/v19.0")

    result = notifier.send_text("584141234567", "Hola")

    url, payload, headers, timeout = calls[0]
    assert url == "https://graph.example/v19.0/100200300/messages"
    assert payload["to"] == "584141234567"
    assert payload["text"] == {"body": "Hola"}
    assert headers["Authorization"] == "Bearer token"
    assert timeout == 10
    assert result["messages"][0]["id"] == "wamid.1"


def test_send_text_raises_on_api_error(monkeypatch):
    monkeypatch.setattr(
        whatsapp_service.requests, "post",
        lambda *args, **kwargs: FakeResponse(401, {"error": "invalid token"}),
    )

    with pytest.raises(requests.HTTPError):
        WhatsAppCloudNotifier("token", "100200300").send_text("584141234567", "Hola")


def test_send_text_requires_credentials(monkeypatch):
    monkeypatch.setattr(whatsapp_service.settings, "whatsapp_access_token", "")

    with pytest.raises(ValueError):
        WhatsAppCloudNotifier(phone_number_id="100200300").send_text("584141234567", "Hola")
