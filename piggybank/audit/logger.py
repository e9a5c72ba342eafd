"""
Audit Logger

DESIGN DECISION: Every step of an ingest, registration or setup request
emits an AuditEvent. Each event goes to the structlog stream and, when an
audit store is wired in, to the audit worksheet as well. A request's events
share one correlation id, so a transaction can be followed from the
shortcut call to the push fan-out.

Persisting an event is best-effort: a failed append is logged and the
request carries on.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

import structlog

from piggybank.models.audit import AuditEvent, AuditEventBuilder
from piggybank.services.storage.interface import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """Writes AuditEvents to structlog and, optionally, the audit store."""

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Args:
            storage: Audit store to append to. Without one, events only
                     reach the structlog stream.
        """
        self._storage = storage
        self._logger = structlog.get_logger("piggybank.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Emit one event at a level matching its severity, then persist it.

        Returns:
            False only when a configured store rejected the event
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Audit persistence must never break the request
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_transaction_received(
        self,
        user_id: Optional[str],
        source: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_received(
            user_id=user_id,
            source=source,
            correlation_id=correlation_id,
        ))

    async def log_transaction_rejected(
        self,
        user_id: Optional[str],
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        """Log ingest validation failure."""
        await self.log(AuditEventBuilder.transaction_validation_failed(
            user_id=user_id,
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_user_verification_failed(
        self,
        user_id: str,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.user_verification_failed(
            user_id=user_id,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_transaction_saved(
        self,
        user_id: str,
        transaction_id: str,
        amount: str,
        category: str,
        transaction_type: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_saved(
            user_id=user_id,
            transaction_id=transaction_id,
            amount=amount,
            category=category,
            transaction_type=transaction_type,
            correlation_id=correlation_id,
        ))

    async def log_recurring_processed(
        self,
        user_id: str,
        recurring_id: str,
        transaction_id: str,
        next_due_date: datetime,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.recurring_processed(
            user_id=user_id,
            recurring_id=recurring_id,
            transaction_id=transaction_id,
            next_due_date=next_due_date,
            correlation_id=correlation_id,
        ))

    async def log_user_initialized(
        self,
        user_id: str,
        categories: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.user_initialized(
            user_id=user_id,
            categories=categories,
            correlation_id=correlation_id,
        ))

    async def log_subscription_registered(
        self,
        user_id: str,
        subscription_id: str,
        is_ios_safari: bool,
    ) -> None:
        await self.log(AuditEventBuilder.subscription_registered(
            user_id=user_id,
            subscription_id=subscription_id,
            is_ios_safari=is_ios_safari,
        ))

    async def log_subscription_removed(self, user_id: str, subscription_id: str) -> None:
        await self.log(AuditEventBuilder.subscription_removed(
            user_id=user_id,
            subscription_id=subscription_id,
        ))

    async def log_subscription_expired(
        self,
        user_id: str,
        subscription_id: str,
        status_code: Optional[int],
    ) -> None:
        """Log removal of an endpoint the push service reported gone."""
        await self.log(AuditEventBuilder.subscription_expired(
            user_id=user_id,
            subscription_id=subscription_id,
            status_code=status_code,
        ))

    async def log_notifications_sent(
        self,
        user_id: str,
        sent: int,
        failed: int,
        expired: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.notifications_sent(
            user_id=user_id,
            sent=sent,
            failed=failed,
            expired=expired,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Unexpected failure while handling a request."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Identity Toolkit, Sheets or a push service misbehaved."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """One id per incoming request, shared by all of its audit events."""
    return uuid4()
