"""
Tests for push delivery: outcome classification, device detection,
the per-user fan-out and the pywebpush transport.
"""

import pytest

from piggybank.audit import AuditLogger
from piggybank.config import WebPushSettings
from piggybank.models.audit import AuditEventType
from piggybank.models.push import DeliveryOutcome, PushNotification
from piggybank.services.push import (
    PushNotifier,
    WebPushTransport,
    classify_delivery,
    is_ios_safari_request,
    is_ios_safari_user_agent,
)
from piggybank.services.push import transport as transport_module
from piggybank.services.storage import InMemoryAuditStorage, InMemoryPushSubscriptionStorage

from tests.conftest import FakeTransport, make_subscription


IPHONE_SAFARI = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)
IPHONE_CHROME = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) CriOS/120.0 Mobile/15E148 Safari/604.1"
)
DESKTOP_CHROME = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0 Safari/537.36"
)

NOTIFICATION = PushNotification(title="Transaction Added", body="-$5.00 - F&B")


class TestClassifyDelivery:
    @pytest.mark.parametrize("status,outcome", [
        (200, DeliveryOutcome.DELIVERED),
        (201, DeliveryOutcome.DELIVERED),
        (404, DeliveryOutcome.EXPIRED),
        (410, DeliveryOutcome.EXPIRED),
        (400, DeliveryOutcome.TRANSIENT_FAILURE),
        (429, DeliveryOutcome.TRANSIENT_FAILURE),
        (500, DeliveryOutcome.TRANSIENT_FAILURE),
        (None, DeliveryOutcome.TRANSIENT_FAILURE),
    ])
    def test_status_mapping(self, status, outcome):
        assert classify_delivery(status) == outcome


class TestDeviceDetection:
    def test_iphone_safari(self):
        assert is_ios_safari_user_agent(IPHONE_SAFARI) is True

    def test_other_ios_browser(self):
        assert is_ios_safari_user_agent(IPHONE_CHROME) is False

    def test_desktop(self):
        assert is_ios_safari_user_agent(DESKTOP_CHROME) is False
        assert is_ios_safari_user_agent(None) is False

    def test_header_overrides_user_agent(self):
        assert is_ios_safari_request(DESKTOP_CHROME, "true") is True
        assert is_ios_safari_request(DESKTOP_CHROME, "false") is False


@pytest.fixture
def subscriptions():
    return InMemoryPushSubscriptionStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


def make_notifier(subscriptions, transport, audit_storage=None):
    return PushNotifier(
        subscriptions,
        transport,
        audit_logger=AuditLogger(audit_storage),
        settings=WebPushSettings(),
    )


class TestPushNotifier:
    @pytest.mark.asyncio
    async def test_ttl_by_device(self, subscriptions):
        transport = FakeTransport()
        await subscriptions.save_subscription("u1", make_subscription("https://web.push.apple.com/ios", is_ios_safari=True))
        await subscriptions.save_subscription("u1", make_subscription("https://fcm.googleapis.com/desktop"))

        summary = await make_notifier(subscriptions, transport).notify_user("u1", NOTIFICATION)

        assert summary.sent == 2
        ttls = {s["endpoint"]: s["ttl"] for s in transport.sent}
        assert ttls == {
            "https://web.push.apple.com/ios": 86400,
            "https://fcm.googleapis.com/desktop": 3600,
        }
        assert {s["urgency"] for s in transport.sent} == {"normal"}
        assert {s["topic"] for s in transport.sent} == {"piggybank-transactions"}

    @pytest.mark.asyncio
    async def test_payload_shape(self, subscriptions):
        transport = FakeTransport()
        await subscriptions.save_subscription("u1", make_subscription("https://push.example/a"))

        await make_notifier(subscriptions, transport).notify_user("u1", NOTIFICATION)

        payload = transport.sent[0]["payload"]
        assert payload["title"] == "Transaction Added"
        assert payload["body"] == "-$5.00 - F&B"
        assert isinstance(payload["timestamp"], int)

    @pytest.mark.asyncio
    async def test_expired_endpoints_are_deleted(self, subscriptions, audit_storage):
        transport = FakeTransport({"https://push.example/gone": 410, "https://push.example/missing": 404})
        for endpoint in ("https://push.example/gone", "https://push.example/missing", "https://push.example/ok"):
            await subscriptions.save_subscription("u1", make_subscription(endpoint))

        summary = await make_notifier(subscriptions, transport, audit_storage).notify_user("u1", NOTIFICATION)

        assert (summary.sent, summary.failed, summary.expired, summary.total) == (1, 2, 2, 3)
        remaining = [s.endpoint for s in await subscriptions.list_subscriptions("u1")]
        assert remaining == ["https://push.example/ok"]
        expired_events = [e for e in audit_storage.events if e.event_type == AuditEventType.PUSH_SUBSCRIPTION_EXPIRED]
        assert len(expired_events) == 2

    @pytest.mark.asyncio
    async def test_transient_failure_keeps_subscription(self, subscriptions):
        transport = FakeTransport({"https://push.example/flaky": 503})
        await subscriptions.save_subscription("u1", make_subscription("https://push.example/flaky"))

        summary = await make_notifier(subscriptions, transport).notify_user("u1", NOTIFICATION)

        assert (summary.sent, summary.failed, summary.expired) == (0, 1, 0)
        assert len(await subscriptions.list_subscriptions("u1")) == 1

    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_others(self, subscriptions):
        transport = FakeTransport({"https://push.example/boom": "raise"})
        await subscriptions.save_subscription("u1", make_subscription("https://push.example/boom"))
        await subscriptions.save_subscription("u1", make_subscription("https://push.example/ok"))

        summary = await make_notifier(subscriptions, transport).notify_user("u1", NOTIFICATION)

        assert (summary.sent, summary.failed) == (1, 1)
        assert len(transport.sent) == 2

    @pytest.mark.asyncio
    async def test_delivery_updates_last_seen(self, subscriptions):
        await subscriptions.save_subscription("u1", make_subscription("https://push.example/a"))
        before = (await subscriptions.list_subscriptions("u1"))[0].last_seen

        await make_notifier(subscriptions, FakeTransport()).notify_user("u1", NOTIFICATION)

        after = (await subscriptions.list_subscriptions("u1"))[0].last_seen
        assert after >= before

    @pytest.mark.asyncio
    async def test_no_subscriptions(self, subscriptions):
        transport = FakeTransport()
        summary = await make_notifier(subscriptions, transport).notify_user("u1", NOTIFICATION)
        assert summary.total == 0
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_unconfigured_transport_is_skipped(self, subscriptions):
        transport = FakeTransport(configured=False)
        await subscriptions.save_subscription("u1", make_subscription("https://push.example/a"))

        summary = await make_notifier(subscriptions, transport).notify_user("u1", NOTIFICATION)

        assert summary.skipped_reason == "transport_not_configured"
        assert summary.total == 1
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_storage_failure_never_raises(self, subscriptions, monkeypatch):
        async def broken(user_id):
            raise RuntimeError("sheet unavailable")

        monkeypatch.setattr(subscriptions, "list_subscriptions", broken)
        summary = await make_notifier(subscriptions, FakeTransport()).notify_user("u1", NOTIFICATION)
        assert summary.skipped_reason == "subscriptions_unavailable"


class FakeResponse:
    def __init__(self, status_code):
        self.status_code = status_code


class TestWebPushTransport:
    SETTINGS = WebPushSettings(public_key="pub", private_key="priv", subject="mailto:test@example.com")

    def test_configured_only_with_both_keys(self):
        assert WebPushTransport(self.SETTINGS).is_configured is True
        assert WebPushTransport(WebPushSettings(public_key="pub")).is_configured is False

    @pytest.mark.asyncio
    async def test_successful_send(self, monkeypatch):
        calls = []

        def fake_webpush(**kwargs):
            calls.append(kwargs)
            return FakeResponse(201)

        monkeypatch.setattr(transport_module, "webpush", fake_webpush)
        result = await WebPushTransport(self.SETTINGS).send(
            make_subscription("https://push.example/a"), {"title": "t"}, ttl=3600, topic="piggybank"
        )

        assert result.outcome == DeliveryOutcome.DELIVERED
        assert calls[0]["ttl"] == 3600
        assert calls[0]["vapid_claims"] == {"sub": "mailto:test@example.com"}
        assert calls[0]["headers"] == {"Urgency": "normal", "Topic": "piggybank"}
        assert calls[0]["data"] == '{"title": "t"}'

    @pytest.mark.asyncio
    async def test_gone_endpoint(self, monkeypatch):
        def fake_webpush(**kwargs):
            raise transport_module.WebPushException("Push failed: 410 Gone", response=FakeResponse(410))

        monkeypatch.setattr(transport_module, "webpush", fake_webpush)
        result = await WebPushTransport(self.SETTINGS).send(
            make_subscription("https://push.example/a"), {"title": "t"}, ttl=60
        )

        assert result.outcome == DeliveryOutcome.EXPIRED
        assert result.status_code == 410

    @pytest.mark.asyncio
    async def test_network_error_is_transient(self, monkeypatch):
        def fake_webpush(**kwargs):
            raise transport_module.requests.ConnectionError("unreachable")

        monkeypatch.setattr(transport_module, "webpush", fake_webpush)
        result = await WebPushTransport(self.SETTINGS).send(
            make_subscription("https://push.example/a"), {"title": "t"}, ttl=60
        )

        assert result.outcome == DeliveryOutcome.TRANSIENT_FAILURE
        assert result.status_code is None
