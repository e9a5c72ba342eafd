"""
In-Memory Storage Implementation

Dict-backed implementations of every storage interface. Used by the test
suite and as the fallback when Google Sheets is not configured.

Nothing is persisted: data lives as long as the process.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from piggybank.models.audit import AuditEvent
from piggybank.models.finance import Budget, RecurringTransaction, Transaction, UserProfile
from piggybank.models.push import PushSubscription
from piggybank.services.storage.interface import (
    AuditStorageInterface,
    BudgetStorageInterface,
    NotFoundError,
    PushSubscriptionStorageInterface,
    RecurringTransactionStorageInterface,
    TransactionStorageInterface,
    UserStorageInterface,
)


def newest_first(transactions: list[Transaction]) -> list[Transaction]:
    """Sort by date descending; undated transactions go last."""
    dated = sorted(
        (t for t in transactions if t.date is not None),
        key=lambda t: t.date,
        reverse=True,
    )
    undated = [t for t in transactions if t.date is None]
    return dated + undated


def paginate(items: list, limit: Optional[int], offset: int) -> list:
    offset = max(0, offset)
    if limit is None:
        return items[offset:]
    return items[offset:offset + max(0, limit)]


class InMemoryUserStorage(UserStorageInterface):
    def __init__(self):
        self._users: dict[str, UserProfile] = {}

    async def get_user(self, user_id: str) -> Optional[UserProfile]:
        profile = self._users.get(user_id)
        return profile.model_copy(deep=True) if profile else None

    async def save_user(self, profile: UserProfile) -> bool:
        now = datetime.now()
        stored = profile.model_copy(deep=True)
        existing = self._users.get(profile.user_id)
        stored.created_at = profile.created_at or (existing.created_at if existing else now)
        stored.updated_at = now
        self._users[profile.user_id] = stored
        return True

    async def user_exists(self, user_id: str) -> bool:
        return user_id in self._users


class InMemoryTransactionStorage(TransactionStorageInterface):
    def __init__(self):
        # user_id -> transaction_id -> Transaction
        self._transactions: dict[str, dict[str, Transaction]] = {}

    async def save_transaction(self, user_id: str, transaction: Transaction) -> str:
        transaction_id = uuid4().hex
        now = datetime.now()
        stored = transaction.model_copy(
            update={"id": transaction_id, "created_at": now, "updated_at": now},
            deep=True,
        )
        self._transactions.setdefault(user_id, {})[transaction_id] = stored
        return transaction_id

    async def get_transaction(self, user_id: str, transaction_id: str) -> Optional[Transaction]:
        stored = self._transactions.get(user_id, {}).get(transaction_id)
        return stored.model_copy(deep=True) if stored else None

    async def update_transaction(self, user_id: str, transaction: Transaction) -> bool:
        user_transactions = self._transactions.get(user_id, {})
        if transaction.id is None or transaction.id not in user_transactions:
            raise NotFoundError(f"Transaction not found: {transaction.id}")
        user_transactions[transaction.id] = transaction.model_copy(
            update={"updated_at": datetime.now()},
            deep=True,
        )
        return True

    async def delete_transaction(self, user_id: str, transaction_id: str) -> bool:
        return self._transactions.get(user_id, {}).pop(transaction_id, None) is not None

    async def list_transactions(
        self,
        user_id: str,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[Transaction]:
        transactions = [
            t.model_copy(deep=True)
            for t in self._transactions.get(user_id, {}).values()
        ]
        return paginate(newest_first(transactions), limit, offset)


class InMemoryBudgetStorage(BudgetStorageInterface):
    def __init__(self):
        # user_id -> category -> Budget
        self._budgets: dict[str, dict[str, Budget]] = {}

    async def save_budget(self, user_id: str, budget: Budget) -> bool:
        now = datetime.now()
        user_budgets = self._budgets.setdefault(user_id, {})
        existing = user_budgets.get(budget.category)
        stored = budget.model_copy(deep=True)
        stored.created_at = budget.created_at or (existing.created_at if existing else now)
        stored.updated_at = now
        user_budgets[budget.category] = stored
        return True

    async def get_budget(self, user_id: str, category: str) -> Optional[Budget]:
        budget = self._budgets.get(user_id, {}).get(category)
        return budget.model_copy(deep=True) if budget else None

    async def list_budgets(self, user_id: str) -> list[Budget]:
        return [b.model_copy(deep=True) for b in self._budgets.get(user_id, {}).values()]

    async def delete_budget(self, user_id: str, category: str) -> bool:
        return self._budgets.get(user_id, {}).pop(category, None) is not None


class InMemoryRecurringTransactionStorage(RecurringTransactionStorageInterface):
    def __init__(self):
        # user_id -> recurring_id -> RecurringTransaction
        self._recurring: dict[str, dict[str, RecurringTransaction]] = {}

    async def save_recurring(self, user_id: str, recurring: RecurringTransaction) -> str:
        recurring_id = uuid4().hex
        stored = recurring.model_copy(
            update={"id": recurring_id, "created_at": recurring.created_at or datetime.now()},
            deep=True,
        )
        self._recurring.setdefault(user_id, {})[recurring_id] = stored
        return recurring_id

    async def list_recurring(self, user_id: str) -> list[RecurringTransaction]:
        items = [r.model_copy(deep=True) for r in self._recurring.get(user_id, {}).values()]
        return sorted(items, key=lambda r: r.next_due_date)

    async def update_recurring(self, user_id: str, recurring: RecurringTransaction) -> bool:
        user_recurring = self._recurring.get(user_id, {})
        if recurring.id is None or recurring.id not in user_recurring:
            raise NotFoundError(f"Recurring transaction not found: {recurring.id}")
        user_recurring[recurring.id] = recurring.model_copy(deep=True)
        return True

    async def delete_recurring(self, user_id: str, recurring_id: str) -> bool:
        return self._recurring.get(user_id, {}).pop(recurring_id, None) is not None


class InMemoryPushSubscriptionStorage(PushSubscriptionStorageInterface):
    def __init__(self):
        # user_id -> subscription_id -> PushSubscription
        self._subscriptions: dict[str, dict[str, PushSubscription]] = {}

    async def save_subscription(self, user_id: str, subscription: PushSubscription) -> str:
        now = datetime.now()
        user_subscriptions = self._subscriptions.setdefault(user_id, {})
        subscription_id = subscription.subscription_id
        existing = user_subscriptions.get(subscription_id)

        stored = subscription.model_copy(deep=True)
        stored.created_at = existing.created_at if existing else (subscription.created_at or now)
        stored.updated_at = now
        stored.last_seen = now
        user_subscriptions[subscription_id] = stored
        return subscription_id

    async def list_subscriptions(self, user_id: str) -> list[PushSubscription]:
        return [s.model_copy(deep=True) for s in self._subscriptions.get(user_id, {}).values()]

    async def delete_subscription(self, user_id: str, subscription_id: str) -> bool:
        return self._subscriptions.get(user_id, {}).pop(subscription_id, None) is not None

    async def touch_subscription(self, user_id: str, subscription_id: str) -> bool:
        subscription = self._subscriptions.get(user_id, {}).get(subscription_id)
        if subscription is None:
            return False
        subscription.last_seen = datetime.now()
        return True


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return sorted(self._events, key=lambda e: e.timestamp, reverse=True)[:limit]
