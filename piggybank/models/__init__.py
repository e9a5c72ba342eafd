"""
Data Models Package

This package contains all Pydantic models used in Piggybank.
All data flowing through the system must conform to these schemas.
"""

from piggybank.models.finance import (
    TRANSFER_CATEGORY,
    Budget,
    BudgetProgress,
    BudgetType,
    CategoryTotal,
    DailySavings,
    DateRange,
    Frequency,
    RecurringTransaction,
    SavingsCalculationResult,
    SavingsReport,
    SortOption,
    Transaction,
    TransactionSource,
    TransactionType,
    UserProfile,
)
from piggybank.models.push import (
    DeliveryOutcome,
    DeliveryResult,
    PushFanoutSummary,
    PushKeys,
    PushNotification,
    PushSubscription,
    build_subscription_id,
)
from piggybank.models.validation import ValidationIssue, ValidationResult
from piggybank.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Finance models
    "TRANSFER_CATEGORY",
    "Budget",
    "BudgetProgress",
    "BudgetType",
    "CategoryTotal",
    "DailySavings",
    "DateRange",
    "Frequency",
    "RecurringTransaction",
    "SavingsCalculationResult",
    "SavingsReport",
    "SortOption",
    "Transaction",
    "TransactionSource",
    "TransactionType",
    "UserProfile",
    # Push models
    "DeliveryOutcome",
    "DeliveryResult",
    "PushFanoutSummary",
    "PushKeys",
    "PushNotification",
    "PushSubscription",
    "build_subscription_id",
    # Validation models
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
