"""
Push Transport

Sends one encrypted Web Push message to one endpoint and reports what
happened as a DeliveryResult. Transports never raise for delivery
problems; the notifier decides what each outcome means.
"""

import asyncio
import json
from abc import ABC, abstractmethod
from typing import Any, Optional

import requests
import structlog
from pywebpush import WebPushException, webpush

from piggybank.config import WebPushSettings, get_settings
from piggybank.models.push import DeliveryOutcome, DeliveryResult, PushSubscription


logger = structlog.get_logger(__name__)

# The push service no longer knows this endpoint
EXPIRED_STATUS_CODES = frozenset({404, 410})


def classify_delivery(status_code: Optional[int]) -> DeliveryOutcome:
    """
    Map a push service HTTP status to an outcome.

    2xx is delivered, 404/410 means the subscription is gone, and
    everything else (including no response at all) is transient.
    """
    if status_code is None:
        return DeliveryOutcome.TRANSIENT_FAILURE
    if 200 <= status_code < 300:
        return DeliveryOutcome.DELIVERED
    if status_code in EXPIRED_STATUS_CODES:
        return DeliveryOutcome.EXPIRED
    return DeliveryOutcome.TRANSIENT_FAILURE


class PushTransport(ABC):
    """Delivers a payload to a single subscription."""

    @property
    def is_configured(self) -> bool:
        return True

    @abstractmethod
    async def send(
        self,
        subscription: PushSubscription,
        payload: dict[str, Any],
        ttl: int,
        urgency: str = "normal",
        topic: Optional[str] = None,
    ) -> DeliveryResult:
        pass


class WebPushTransport(PushTransport):
    """
    Web Push with VAPID, via pywebpush.

    pywebpush is blocking, so each send runs in a worker thread.
    """

    def __init__(self, settings: Optional[WebPushSettings] = None):
        self._settings = settings or get_settings().web_push

    @property
    def is_configured(self) -> bool:
        return self._settings.is_configured

    def _send_blocking(
        self,
        subscription: PushSubscription,
        data: str,
        ttl: int,
        headers: dict[str, str],
    ) -> DeliveryResult:
        try:
            response = webpush(
                subscription_info=subscription.to_subscription_info(),
                data=data,
                vapid_private_key=self._settings.private_key,
                # webpush adds aud/exp to the claims dict, so pass a fresh one
                vapid_claims={"sub": self._settings.subject},
                ttl=ttl,
                headers=headers,
            )
        except WebPushException as e:
            status_code = e.response.status_code if e.response is not None else None
            return DeliveryResult(
                outcome=classify_delivery(status_code),
                endpoint=subscription.endpoint,
                status_code=status_code,
                error=str(e),
            )
        except requests.RequestException as e:
            return DeliveryResult(
                outcome=DeliveryOutcome.TRANSIENT_FAILURE,
                endpoint=subscription.endpoint,
                error=str(e),
            )

        status_code = getattr(response, "status_code", None)
        return DeliveryResult(
            outcome=classify_delivery(status_code),
            endpoint=subscription.endpoint,
            status_code=status_code,
        )

    async def send(
        self,
        subscription: PushSubscription,
        payload: dict[str, Any],
        ttl: int,
        urgency: str = "normal",
        topic: Optional[str] = None,
    ) -> DeliveryResult:
        headers = {"Urgency": urgency}
        if topic:
            headers["Topic"] = topic

        return await asyncio.to_thread(
            self._send_blocking,
            subscription,
            json.dumps(payload),
            ttl,
            headers,
        )
