"""
Shared test fixtures.

Everything runs against in-memory storage, an in-memory identity provider
and a recording push transport. No test touches the network.
"""

from typing import Any, Optional

import pytest

from piggybank.config import Settings
from piggybank.models.push import DeliveryResult, PushKeys, PushSubscription
from piggybank.orchestrator import create_app_components
from piggybank.services.identity import InMemoryIdentityProvider
from piggybank.services.push import PushTransport, classify_delivery


KNOWN_USER = "user-123"

IOS_AUTH = "a" * 22
IOS_P256DH = "B" * 87


class FakeTransport(PushTransport):
    """Records every send and answers with a per-endpoint status code."""

    def __init__(self, statuses: Optional[dict[str, Optional[int]]] = None, configured: bool = True):
        self.statuses = statuses or {}
        self.sent: list[dict[str, Any]] = []
        self._configured = configured

    @property
    def is_configured(self) -> bool:
        return self._configured

    async def send(self, subscription, payload, ttl, urgency="normal", topic=None):
        self.sent.append({
            "endpoint": subscription.endpoint,
            "payload": payload,
            "ttl": ttl,
            "urgency": urgency,
            "topic": topic,
        })
        status = self.statuses.get(subscription.endpoint, 201)
        if status == "raise":
            raise RuntimeError("socket closed")
        return DeliveryResult(
            outcome=classify_delivery(status),
            endpoint=subscription.endpoint,
            status_code=status,
        )


def make_subscription(endpoint: str, is_ios_safari: bool = False) -> PushSubscription:
    return PushSubscription(
        endpoint=endpoint,
        keys=PushKeys(auth=IOS_AUTH, p256dh=IOS_P256DH),
        is_ios_safari=is_ios_safari,
        user_agent="pytest",
    )


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def identity() -> InMemoryIdentityProvider:
    return InMemoryIdentityProvider({KNOWN_USER})


@pytest.fixture
def components(identity, transport):
    return create_app_components(
        settings=Settings(),
        storage_backend="memory",
        identity=identity,
        transport=transport,
    )
