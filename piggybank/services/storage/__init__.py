"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the hosted backend; the in-memory backend serves tests
and local development.
"""

from piggybank.services.storage.interface import (
    AuditStorageInterface,
    BudgetStorageInterface,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    PushSubscriptionStorageInterface,
    RecurringTransactionStorageInterface,
    StorageError,
    TransactionStorageInterface,
    UserStorageInterface,
)
from piggybank.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryBudgetStorage,
    InMemoryPushSubscriptionStorage,
    InMemoryRecurringTransactionStorage,
    InMemoryTransactionStorage,
    InMemoryUserStorage,
)
from piggybank.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsBudgetStorage,
    GoogleSheetsClient,
    GoogleSheetsPushSubscriptionStorage,
    GoogleSheetsRecurringTransactionStorage,
    GoogleSheetsTransactionStorage,
    GoogleSheetsUserStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "BudgetStorageInterface",
    "PushSubscriptionStorageInterface",
    "RecurringTransactionStorageInterface",
    "TransactionStorageInterface",
    "UserStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryBudgetStorage",
    "InMemoryPushSubscriptionStorage",
    "InMemoryRecurringTransactionStorage",
    "InMemoryTransactionStorage",
    "InMemoryUserStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsBudgetStorage",
    "GoogleSheetsClient",
    "GoogleSheetsPushSubscriptionStorage",
    "GoogleSheetsRecurringTransactionStorage",
    "GoogleSheetsTransactionStorage",
    "GoogleSheetsUserStorage",
]
