"""
Push Notifier

Fans one notification out to every device a user has registered.

GUARANTEES:
- Best-effort: notify_user never raises. A notification failure must not
  fail the transaction write that triggered it.
- Isolation: each device is an independent send; one failure does not
  affect the others.
- Cleanup: endpoints reported gone (404/410) are deleted, never retried.
"""

import asyncio
import time
from typing import Optional
from uuid import UUID

import structlog

from piggybank.audit import AuditLogger
from piggybank.config import WebPushSettings, get_settings
from piggybank.models.push import (
    DeliveryOutcome,
    DeliveryResult,
    PushFanoutSummary,
    PushNotification,
    PushSubscription,
)
from piggybank.services.push.transport import PushTransport
from piggybank.services.storage.interface import PushSubscriptionStorageInterface


logger = structlog.get_logger(__name__)


def _short(endpoint: str) -> str:
    return endpoint[:50] + "..." if len(endpoint) > 50 else endpoint


class PushNotifier:
    def __init__(
        self,
        subscriptions: PushSubscriptionStorageInterface,
        transport: PushTransport,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[WebPushSettings] = None,
    ):
        self._subscriptions = subscriptions
        self._transport = transport
        self._audit = audit_logger or AuditLogger()
        self._settings = settings or get_settings().web_push

    @property
    def is_configured(self) -> bool:
        return self._transport.is_configured

    def _ttl_for(self, subscription: PushSubscription) -> int:
        """iOS devices are often offline longer, so they get a longer TTL."""
        if subscription.is_ios_safari:
            return self._settings.ios_ttl_seconds
        return self._settings.default_ttl_seconds

    async def _deliver(
        self,
        user_id: str,
        subscription: PushSubscription,
        payload: dict,
    ) -> DeliveryResult:
        """Send to one device and apply the cleanup policy."""
        try:
            result = await self._transport.send(
                subscription,
                payload,
                ttl=self._ttl_for(subscription),
                urgency=self._settings.urgency,
                topic=self._settings.topic,
            )
        except Exception as e:
            result = DeliveryResult(
                outcome=DeliveryOutcome.TRANSIENT_FAILURE,
                endpoint=subscription.endpoint,
                error=str(e),
            )

        try:
            if result.outcome == DeliveryOutcome.DELIVERED:
                await self._subscriptions.touch_subscription(user_id, subscription.subscription_id)
            elif result.outcome == DeliveryOutcome.EXPIRED:
                await self._subscriptions.delete_subscription(user_id, subscription.subscription_id)
                await self._audit.log_subscription_expired(
                    user_id=user_id,
                    subscription_id=subscription.subscription_id,
                    status_code=result.status_code,
                )
            else:
                logger.warning(
                    "push_delivery_failed",
                    user_id=user_id,
                    endpoint=_short(subscription.endpoint),
                    status_code=result.status_code,
                    error=result.error,
                )
        except Exception as e:
            logger.error(
                "push_cleanup_failed",
                user_id=user_id,
                endpoint=_short(subscription.endpoint),
                error=str(e),
            )

        return result

    async def notify_user(
        self,
        user_id: str,
        notification: PushNotification,
        correlation_id: Optional[UUID] = None,
    ) -> PushFanoutSummary:
        """
        Send `notification` to every registered device of `user_id`.

        Returns:
            Counts of sent, failed and expired deliveries.
            `expired` is a subset of `failed`.
        """
        try:
            subscriptions = await self._subscriptions.list_subscriptions(user_id)
        except Exception as e:
            logger.error("push_subscriptions_load_failed", user_id=user_id, error=str(e))
            return PushFanoutSummary(skipped_reason="subscriptions_unavailable")

        if not subscriptions:
            logger.warning("push_no_subscriptions", user_id=user_id)
            return PushFanoutSummary()

        if not self._transport.is_configured:
            logger.warning("push_transport_not_configured", user_id=user_id)
            return PushFanoutSummary(
                total=len(subscriptions),
                skipped_reason="transport_not_configured",
            )

        payload = notification.to_payload(int(time.time() * 1000))
        logger.info(
            "push_fanout_started",
            user_id=user_id,
            subscription_count=len(subscriptions),
        )

        results = await asyncio.gather(
            *(self._deliver(user_id, s, payload) for s in subscriptions),
            return_exceptions=True,
        )

        sent = failed = expired = 0
        for result in results:
            if isinstance(result, DeliveryResult) and result.delivered:
                sent += 1
                continue
            failed += 1
            if isinstance(result, DeliveryResult) and result.outcome == DeliveryOutcome.EXPIRED:
                expired += 1

        summary = PushFanoutSummary(
            sent=sent,
            failed=failed,
            expired=expired,
            total=len(subscriptions),
        )
        await self._audit.log_notifications_sent(
            user_id=user_id,
            sent=sent,
            failed=failed,
            expired=expired,
            correlation_id=correlation_id,
        )
        return summary
