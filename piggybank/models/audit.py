"""
Audit Models for Piggybank

An AuditEvent records one step of a request: a transaction arriving,
being rejected or saved, a device registering or expiring, a push fan-out
finishing. Events of one request share a correlation id.

DESIGN DECISION: The audit trail is append-only. Events are never edited
or deleted, including those about deleted subscriptions.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Transaction ingestion
    TRANSACTION_RECEIVED = "transaction_received"
    TRANSACTION_VALIDATION_FAILED = "transaction_validation_failed"
    TRANSACTION_SAVED = "transaction_saved"
    USER_VERIFICATION_FAILED = "user_verification_failed"

    # Recurring transactions
    RECURRING_TRANSACTION_PROCESSED = "recurring_transaction_processed"

    # Users
    USER_INITIALIZED = "user_initialized"

    # Push subscriptions
    PUSH_SUBSCRIPTION_REGISTERED = "push_subscription_registered"
    PUSH_SUBSCRIPTION_REMOVED = "push_subscription_removed"
    PUSH_SUBSCRIPTION_EXPIRED = "push_subscription_expired"
    PUSH_NOTIFICATIONS_SENT = "push_notifications_sent"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """How loudly an event is logged."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """One row of the audit trail."""

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    user_id: Optional[str] = None
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'push_subscription')"
    )
    entity_id: Optional[str] = None

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events of one ingest request)"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    # Error information (if applicable)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Flat, JSON-safe view passed to structlog as keyword context."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, user_id, entity_type,
         entity_id, correlation_id, description, details_json, error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.user_id or "",
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_saved(user_id, txn_id, ...)
        event = AuditEventBuilder.subscription_expired(user_id, endpoint, 410)
    """

    @staticmethod
    def transaction_received(
        user_id: Optional[str],
        source: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_RECEIVED,
            user_id=user_id,
            entity_type="transaction",
            correlation_id=correlation_id,
            description=f"Transaction received from {source}",
            details={"source": source},
        )

    @staticmethod
    def transaction_validation_failed(
        user_id: Optional[str],
        issues: list[dict],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="transaction",
            correlation_id=correlation_id,
            description=f"Transaction rejected with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def user_verification_failed(
        user_id: str,
        reason: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_VERIFICATION_FAILED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="user",
            entity_id=user_id,
            correlation_id=correlation_id,
            description="User verification failed",
            error_message=reason,
        )

    @staticmethod
    def transaction_saved(
        user_id: str,
        transaction_id: str,
        amount: str,
        category: str,
        transaction_type: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_SAVED,
            user_id=user_id,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction saved: {transaction_type} {amount} - {category}",
            details={
                "amount": amount,
                "category": category,
                "type": transaction_type,
            },
        )

    @staticmethod
    def recurring_processed(
        user_id: str,
        recurring_id: str,
        transaction_id: str,
        next_due_date: datetime,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_TRANSACTION_PROCESSED,
            user_id=user_id,
            entity_type="recurring_transaction",
            entity_id=recurring_id,
            correlation_id=correlation_id,
            description="Recurring transaction posted",
            details={
                "transaction_id": transaction_id,
                "next_due_date": next_due_date.isoformat(),
            },
        )

    @staticmethod
    def user_initialized(
        user_id: str,
        categories: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_INITIALIZED,
            user_id=user_id,
            entity_type="user",
            entity_id=user_id,
            correlation_id=correlation_id,
            description="User initialized with default categories",
            details={"categories": categories},
        )

    @staticmethod
    def subscription_registered(
        user_id: str,
        subscription_id: str,
        is_ios_safari: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PUSH_SUBSCRIPTION_REGISTERED,
            user_id=user_id,
            entity_type="push_subscription",
            entity_id=subscription_id,
            description="Push subscription registered",
            details={"is_ios_safari": is_ios_safari},
        )

    @staticmethod
    def subscription_removed(
        user_id: str,
        subscription_id: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PUSH_SUBSCRIPTION_REMOVED,
            user_id=user_id,
            entity_type="push_subscription",
            entity_id=subscription_id,
            description="Push subscription removed",
        )

    @staticmethod
    def subscription_expired(
        user_id: str,
        subscription_id: str,
        status_code: Optional[int],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PUSH_SUBSCRIPTION_EXPIRED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="push_subscription",
            entity_id=subscription_id,
            description="Push endpoint expired and was deleted",
            details={"status_code": status_code},
        )

    @staticmethod
    def notifications_sent(
        user_id: str,
        sent: int,
        failed: int,
        expired: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PUSH_NOTIFICATIONS_SENT,
            severity=AuditSeverity.WARNING if failed else AuditSeverity.INFO,
            user_id=user_id,
            entity_type="push_subscription",
            correlation_id=correlation_id,
            description=f"Push fan-out: {sent} sent, {failed} failed",
            details={"sent": sent, "failed": failed, "expired": expired},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
            correlation_id=correlation_id,
        )
