"""
Unit Tests for the messaging integration and its token cache

No network: the HTTP session is replaced with a recording fake.
"""
import json

import pytest
import requests

from stockplan.exceptions import IntegrationError
from stockplan.integrations import messaging
from stockplan.integrations.messaging import MessagingClient, format_run_summary
from stockplan.integrations.token_cache import TokenCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class FakeResponse:
    def __init__(self, body, status_code=200):
        self._body = body
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} error")

    def json(self):
        return self._body


class FakeSession:
    """Returns queued responses and records every call."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.calls.append({"url": url, "json": json, "headers": headers})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeRun:
    id = 3
    run_code = "MRP-20260301-0001"
    status = "COMPLETED"
    total_items = 4
    planning_horizon = 30
    error_message = None
    diagnostics = None


class TestTokenCache:

    def test_token_fetched_once_while_valid(self):
        calls = []

        def fetcher():
            calls.append(1)
            return "tok-1", 7200

        cache = TokenCache(fetcher, refresh_margin=60, clock=FakeClock())

        assert cache.get() == "tok-1"
        assert cache.get() == "tok-1"
        assert len(calls) == 1

    def test_token_refreshed_inside_margin(self):
        clock = FakeClock()
        tokens = iter(["tok-1", "tok-2"])
        cache = TokenCache(lambda: (next(tokens), 120), refresh_margin=60, clock=clock)

        assert cache.get() == "tok-1"
        clock.now += 59
        assert cache.get() == "tok-1"
        clock.now += 1
        assert cache.get() == "tok-2"

    def test_invalidate_forces_fetch(self):
        tokens = iter(["tok-1", "tok-2"])
        cache = TokenCache(lambda: (next(tokens), 7200), clock=FakeClock())

        cache.get()
        cache.invalidate()

        assert cache.get() == "tok-2"

    def test_fetch_error_propagates_and_is_retried(self):
        attempts = []

        def fetcher():
            attempts.append(1)
            if len(attempts) == 1:
                raise IntegrationError("messaging", "down")
            return "tok-ok", 7200

        cache = TokenCache(fetcher, clock=FakeClock())

        with pytest.raises(IntegrationError):
            cache.get()
        assert cache.get() == "tok-ok"


class TestMessagingClient:

    def test_send_text_uses_tenant_token(self):
        session = FakeSession([
            FakeResponse({"code": 0, "tenant_access_token": "t-abc", "expire": 7200}),
            FakeResponse({"code": 0, "data": {}}),
        ])
        client = MessagingClient("app", "secret", base_url="https://chat.example/", session=session)

        client.send_text("oc_123", "hello")

        token_call, message_call = session.calls
        assert token_call["url"] == "https://chat.example/open-apis/auth/v3/tenant_access_token/internal"
        assert token_call["json"] == {"app_id": "app", "app_secret": "secret"}
        assert message_call["headers"] == {"Authorization": "Bearer t-abc"}
        assert message_call["json"]["receive_id"] == "oc_123"
        assert json.loads(message_call["json"]["content"]) == {"text": "hello"}

    def test_api_error_code_raises(self):
        session = FakeSession([FakeResponse({"code": 99991663, "msg": "app ticket invalid"})])
        client = MessagingClient("app", "secret", session=session)

        with pytest.raises(IntegrationError) as exc_info:
            client.send_text("oc_123", "hello")
        assert exc_info.value.details["code"] == 99991663

    def test_transport_error_wrapped(self):
        session = FakeSession([requests.exceptions.ConnectionError("refused")])
        client = MessagingClient("app", "secret", session=session)

        with pytest.raises(IntegrationError) as exc_info:
            client.send_text("oc_123", "hello")
        assert exc_info.value.details["service"] == "messaging"


class TestRunNotification:

    def test_summary_for_completed_run(self):
        text = format_run_summary(FakeRun())
        assert "MRP-20260301-0001: COMPLETED" in text
        assert "Materials planned: 4" in text

    def test_summary_for_failed_run(self):
        run = FakeRun()
        run.status = "FAILED"
        run.error_message = "Material: lookup failed"
        assert "Error: Material: lookup failed" in format_run_summary(run)

    def test_disabled_by_default(self):
        assert messaging.notify_mrp_run(FakeRun()) is False

    def test_failure_is_logged_not_raised(self, monkeypatch):
        monkeypatch.setattr(messaging.settings, "MESSAGING_ENABLED", True)
        monkeypatch.setattr(messaging.settings, "MESSAGING_APP_ID", "app")
        monkeypatch.setattr(messaging.settings, "MESSAGING_APP_SECRET", "secret")
        monkeypatch.setattr(messaging.settings, "MESSAGING_WEBHOOK_CHAT_ID", "oc_1")
        client = MessagingClient(
            "app", "secret", session=FakeSession([requests.exceptions.Timeout("slow")])
        )
        monkeypatch.setattr(messaging, "get_messaging_client", lambda: client)

        assert messaging.notify_mrp_run(FakeRun()) is False
