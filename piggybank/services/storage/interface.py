"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a document database later
2. Use in-memory storage for testing and local development
3. Keep business logic decoupled from storage implementation

Records are scoped per user, mirroring the document layout
users/{userId}/{collection}/{id}.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from piggybank.models.audit import AuditEvent
from piggybank.models.finance import Budget, RecurringTransaction, Transaction, UserProfile
from piggybank.models.push import PushSubscription


class UserStorageInterface(ABC):
    """Storage for user profile documents."""

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[UserProfile]:
        """Return the profile, or None if the user has no document yet."""
        pass

    @abstractmethod
    async def save_user(self, profile: UserProfile) -> bool:
        """
        Create or replace a user profile.

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def user_exists(self, user_id: str) -> bool:
        pass


class TransactionStorageInterface(ABC):
    """
    Storage for a user's transactions.

    Any storage implementation (Google Sheets, document DB, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def save_transaction(self, user_id: str, transaction: Transaction) -> str:
        """
        Save a new transaction.

        Args:
            user_id: Owner of the transaction
            transaction: The transaction; its id is ignored

        Returns:
            The id assigned by the store

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_transaction(self, user_id: str, transaction_id: str) -> Optional[Transaction]:
        pass

    @abstractmethod
    async def update_transaction(self, user_id: str, transaction: Transaction) -> bool:
        """
        Update an existing transaction.

        Raises:
            NotFoundError: If the transaction doesn't exist
            StorageError: If update fails
        """
        pass

    @abstractmethod
    async def delete_transaction(self, user_id: str, transaction_id: str) -> bool:
        """Delete a transaction. Returns False if it did not exist."""
        pass

    @abstractmethod
    async def list_transactions(
        self,
        user_id: str,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[Transaction]:
        """
        List a user's transactions, newest first.

        Transactions without a valid date sort last.
        """
        pass


class BudgetStorageInterface(ABC):
    """Storage for category budgets. Category is the document key."""

    @abstractmethod
    async def save_budget(self, user_id: str, budget: Budget) -> bool:
        """Create or update the budget for budget.category."""
        pass

    @abstractmethod
    async def get_budget(self, user_id: str, category: str) -> Optional[Budget]:
        pass

    @abstractmethod
    async def list_budgets(self, user_id: str) -> list[Budget]:
        pass

    @abstractmethod
    async def delete_budget(self, user_id: str, category: str) -> bool:
        pass


class RecurringTransactionStorageInterface(ABC):
    """Storage for recurring transaction templates."""

    @abstractmethod
    async def save_recurring(self, user_id: str, recurring: RecurringTransaction) -> str:
        """
        Save a new recurring transaction.

        Returns:
            The id assigned by the store

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def list_recurring(self, user_id: str) -> list[RecurringTransaction]:
        """All of a user's recurring transactions, soonest due first."""
        pass

    @abstractmethod
    async def update_recurring(self, user_id: str, recurring: RecurringTransaction) -> bool:
        """
        Replace an existing recurring transaction.

        Raises:
            NotFoundError: If it doesn't exist
        """
        pass

    @abstractmethod
    async def delete_recurring(self, user_id: str, recurring_id: str) -> bool:
        pass


class PushSubscriptionStorageInterface(ABC):
    """
    Storage for registered push endpoints.

    Keyed by PushSubscription.subscription_id, so saving the same
    endpoint twice is an update, not a duplicate.
    """

    @abstractmethod
    async def save_subscription(self, user_id: str, subscription: PushSubscription) -> str:
        """Upsert a subscription. Returns its subscription id."""
        pass

    @abstractmethod
    async def list_subscriptions(self, user_id: str) -> list[PushSubscription]:
        pass

    @abstractmethod
    async def delete_subscription(self, user_id: str, subscription_id: str) -> bool:
        """Delete a subscription. Returns False if it did not exist."""
        pass

    @abstractmethod
    async def touch_subscription(self, user_id: str, subscription_id: str) -> bool:
        """Refresh last_seen after a successful delivery."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events of one request, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
