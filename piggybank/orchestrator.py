"""
Main Orchestrator for Piggybank

This module ties together all the components and defines the
end-to-end flows for:
1. Transaction ingest (validate → verify user → save → notify devices)
2. Push subscription management (register / list / remove)
3. User initialization (profile + default budgets)
4. Recurring transactions (due items → transactions)
5. Savings reporting (snapshot → engine → report)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is saved for a user the identity provider does not know
- Notifications are best-effort and never fail a saved transaction
- Every step is audited

Services are constructed explicitly in create_app_components and passed
in. No flow reaches for a module-level singleton.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional, Union
from uuid import UUID

import structlog

from piggybank.audit import AuditLogger, create_correlation_id
from piggybank.config import Settings, get_settings
from piggybank.dates import end_of_day
from piggybank.engine import (
    actual_expenses,
    budget_progress,
    calculate_savings,
    coerce_date_range,
    due_recurring,
    expense_totals_by_category,
    filter_by_date_range,
    next_due_date,
    profile_monthly_budget,
    range_end,
    range_start,
    todays_savings,
    total_budget_for_range,
    total_expense_budget_for_range,
    upcoming_recurring,
)
from piggybank.models.finance import (
    Budget,
    BudgetType,
    DateRange,
    RecurringTransaction,
    SavingsReport,
    Transaction,
    TransactionSource,
    TransactionType,
    UserProfile,
)
from piggybank.models.push import PushNotification, PushSubscription, build_subscription_id
from piggybank.services.identity import (
    GoogleIdentityToolkitProvider,
    IdentityProvider,
    InMemoryIdentityProvider,
    UnknownUserError,
)
from piggybank.services.push import PushNotifier, PushTransport, WebPushTransport
from piggybank.services.storage import (
    AuditStorageInterface,
    BudgetStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsBudgetStorage,
    GoogleSheetsClient,
    GoogleSheetsPushSubscriptionStorage,
    GoogleSheetsRecurringTransactionStorage,
    GoogleSheetsTransactionStorage,
    GoogleSheetsUserStorage,
    InMemoryAuditStorage,
    InMemoryBudgetStorage,
    InMemoryPushSubscriptionStorage,
    InMemoryRecurringTransactionStorage,
    InMemoryTransactionStorage,
    InMemoryUserStorage,
    PushSubscriptionStorageInterface,
    RecurringTransactionStorageInterface,
    TransactionStorageInterface,
    UserStorageInterface,
)
from piggybank.validation import (
    IngestValidationError,
    SubscriptionValidationError,
    TransactionIngestValidator,
    validate_subscription_payload,
)


logger = structlog.get_logger(__name__)


def source_from_user_agent(user_agent: Optional[str]) -> TransactionSource:
    """Apple Shortcuts identifies itself as 'Shortcuts/<build> CFNetwork/...'."""
    if user_agent and "Shortcuts" in user_agent:
        return TransactionSource.IOS_SHORTCUT
    return TransactionSource.API


def format_notification_body(amount: Decimal, category: str, transaction_type: TransactionType) -> str:
    """'-$12.50 - F&B' for expenses, '+$12.50 - Salary' for income."""
    sign = "-" if transaction_type == TransactionType.EXPENSE else "+"
    return f"{sign}${amount:.2f} - {category}"


class TransactionIngestFlow:
    """
    Orchestrates external transaction submission (e.g. an Apple Shortcut).

    Flow:
    1. Validate → two-stage body validation
    2. Verify → the user id must be a real account
    3. Save → stored with the absolute amount and date = now
    4. Notify → push to every registered device (best-effort)
    """

    def __init__(
        self,
        transactions: TransactionStorageInterface,
        identity: IdentityProvider,
        notifier: Optional[PushNotifier] = None,
        validator: Optional[TransactionIngestValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._transactions = transactions
        self._identity = identity
        self._notifier = notifier
        self._validator = validator or TransactionIngestValidator()
        self._audit_logger = audit_logger or AuditLogger()

    async def ingest(
        self,
        body: Any,
        user_agent: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> str:
        """
        Record one transaction.

        Returns:
            The new transaction id

        Raises:
            IngestValidationError: Body is malformed
            UnknownUserError: UserID is not a known account
            IdentityServiceError: Identity provider unavailable
            StorageError: Save failed
        """
        correlation_id = correlation_id or create_correlation_id()
        source = source_from_user_agent(user_agent)
        raw_user_id = body.get("UserID") if isinstance(body, dict) else None
        user_id_hint = raw_user_id if isinstance(raw_user_id, str) else None

        await self._audit_logger.log_transaction_received(
            user_id=user_id_hint,
            source=source.value,
            correlation_id=correlation_id,
        )

        try:
            request = self._validator.parse(body)
        except IngestValidationError as e:
            await self._audit_logger.log_transaction_rejected(
                user_id=user_id_hint,
                issues=[issue.model_dump() for issue in e.issues],
                correlation_id=correlation_id,
            )
            raise

        try:
            await self._identity.verify_user(request.user_id)
        except UnknownUserError as e:
            await self._audit_logger.log_user_verification_failed(
                user_id=request.user_id,
                reason=str(e),
                correlation_id=correlation_id,
            )
            raise

        transaction = Transaction(
            amount=request.amount,
            category=request.category,
            type=request.type,
            date=datetime.now(),
            notes=request.notes,
            source=source,
        )
        transaction_id = await self._transactions.save_transaction(request.user_id, transaction)

        await self._audit_logger.log_transaction_saved(
            user_id=request.user_id,
            transaction_id=transaction_id,
            amount=str(request.amount),
            category=request.category,
            transaction_type=request.type.value,
            correlation_id=correlation_id,
        )

        if self._notifier is not None:
            notification = PushNotification(
                title="Transaction Added",
                body=format_notification_body(request.amount, request.category, request.type),
                tag=f"transaction-{transaction_id}",
                data={
                    "transactionId": transaction_id,
                    "amount": str(request.amount),
                    "category": request.category,
                    "type": request.type.value,
                },
            )
            # notify_user never raises
            summary = await self._notifier.notify_user(
                request.user_id,
                notification,
                correlation_id=correlation_id,
            )
            logger.info(
                "ingest_notifications",
                user_id=request.user_id,
                sent=summary.sent,
                failed=summary.failed,
                skipped_reason=summary.skipped_reason,
            )

        return transaction_id


class PushSubscriptionFlow:
    """Registration lifecycle of a user's push endpoints."""

    def __init__(
        self,
        subscriptions: PushSubscriptionStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._subscriptions = subscriptions
        self._audit_logger = audit_logger or AuditLogger()

    async def register(
        self,
        user_id: Any,
        subscription: Any,
        old_endpoint: Optional[str] = None,
        is_ios_safari: bool = False,
        user_agent: Optional[str] = None,
    ) -> str:
        """
        Upsert a subscription, then drop the endpoint it replaces.

        Registering the same endpoint twice leaves one record.

        Returns:
            The subscription id

        Raises:
            SubscriptionValidationError: Bad user id or payload
        """
        if not isinstance(user_id, str) or not user_id.strip():
            raise SubscriptionValidationError("User ID is required and must be a non-empty string.")

        try:
            keys = validate_subscription_payload(subscription, is_ios_safari)
        except SubscriptionValidationError as e:
            raise SubscriptionValidationError(f"Invalid subscription payload: {e.message}")

        record = PushSubscription(
            endpoint=subscription["endpoint"],
            keys=keys,
            is_ios_safari=is_ios_safari,
            user_agent=user_agent or "unknown",
        )
        subscription_id = await self._subscriptions.save_subscription(user_id, record)
        await self._audit_logger.log_subscription_registered(
            user_id=user_id,
            subscription_id=subscription_id,
            is_ios_safari=is_ios_safari,
        )

        if isinstance(old_endpoint, str) and old_endpoint and old_endpoint != record.endpoint:
            try:
                await self._subscriptions.delete_subscription(
                    user_id, build_subscription_id(old_endpoint)
                )
                logger.info("old_subscription_removed", user_id=user_id)
            except Exception as e:
                # Cleanup of the old endpoint must not fail the registration
                logger.warning("old_subscription_cleanup_failed", user_id=user_id, error=str(e))

        return subscription_id

    async def list(self, user_id: str) -> list[PushSubscription]:
        return await self._subscriptions.list_subscriptions(user_id)

    async def remove(self, user_id: str, endpoint: str) -> bool:
        """Delete by endpoint. Removing an unknown endpoint is not an error."""
        subscription_id = build_subscription_id(endpoint)
        removed = await self._subscriptions.delete_subscription(user_id, subscription_id)
        if removed:
            await self._audit_logger.log_subscription_removed(
                user_id=user_id,
                subscription_id=subscription_id,
            )
        return removed


class UserSetupFlow:
    """First-run setup of a user's profile and budgets."""

    def __init__(
        self,
        users: UserStorageInterface,
        budgets: BudgetStorageInterface,
        identity: IdentityProvider,
        default_categories: Optional[list[str]] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._users = users
        self._budgets = budgets
        self._identity = identity
        self._default_categories = (
            default_categories
            if default_categories is not None
            else get_settings().app.default_categories_list
        )
        self._audit_logger = audit_logger or AuditLogger()

    async def initialize_user(
        self,
        user_id: str,
        name: Optional[str] = None,
    ) -> tuple[UserProfile, bool]:
        """
        Create the profile and a zero budget per default category.

        Idempotent: an existing profile is returned untouched.

        Returns:
            (profile, created)

        Raises:
            UnknownUserError: user_id is not a known account
        """
        correlation_id = create_correlation_id()

        try:
            await self._identity.verify_user(user_id)
        except UnknownUserError as e:
            await self._audit_logger.log_user_verification_failed(
                user_id=user_id,
                reason=str(e),
                correlation_id=correlation_id,
            )
            raise

        existing = await self._users.get_user(user_id)
        if existing is not None:
            logger.info("user_already_initialized", user_id=user_id)
            return existing, False

        profile = UserProfile(
            user_id=user_id,
            name=name or "User",
            categories=list(self._default_categories),
            income=Decimal("0"),
            savings=Decimal("0"),
        )
        await self._users.save_user(profile)

        for category in self._default_categories:
            await self._budgets.save_budget(
                user_id,
                Budget(category=category, monthly_budget=Decimal("0"), type=BudgetType.EXPENSE),
            )

        await self._audit_logger.log_user_initialized(
            user_id=user_id,
            categories=list(self._default_categories),
            correlation_id=correlation_id,
        )
        saved = await self._users.get_user(user_id)
        return saved or profile, True


class RecurringTransactionFlow:
    """
    Posts recurring transactions that have come due.

    Each due, active item produces one transaction dated now. Its next due
    date then advances one period from the old due date, so an item that
    is several periods behind catches up one period per run.
    """

    def __init__(
        self,
        recurring: RecurringTransactionStorageInterface,
        transactions: TransactionStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._recurring = recurring
        self._transactions = transactions
        self._audit_logger = audit_logger or AuditLogger()

    async def create(self, user_id: str, recurring: RecurringTransaction) -> str:
        return await self._recurring.save_recurring(user_id, recurring)

    async def upcoming(
        self,
        user_id: str,
        now: Optional[datetime] = None,
        days: int = 7,
    ) -> list[RecurringTransaction]:
        return upcoming_recurring(await self._recurring.list_recurring(user_id), now, days)

    async def process_due(self, user_id: str, now: Optional[datetime] = None) -> list[str]:
        """
        Returns:
            Ids of the transactions created, in due-date order
        """
        now = now or datetime.now()
        correlation_id = create_correlation_id()
        created = []

        for item in due_recurring(await self._recurring.list_recurring(user_id), now):
            transaction_id = await self._transactions.save_transaction(
                user_id,
                Transaction(
                    amount=item.amount,
                    category=item.category,
                    type=item.type,
                    date=now,
                    notes=item.notes,
                    source=TransactionSource.RECURRING,
                ),
            )
            advanced = item.model_copy(update={
                "next_due_date": next_due_date(item),
                "last_processed": now,
            })
            await self._recurring.update_recurring(user_id, advanced)

            await self._audit_logger.log_recurring_processed(
                user_id=user_id,
                recurring_id=item.id,
                transaction_id=transaction_id,
                next_due_date=advanced.next_due_date,
                correlation_id=correlation_id,
            )
            created.append(transaction_id)

        if created:
            logger.info("recurring_processed", user_id=user_id, count=len(created))
        return created

    async def list(self, user_id: str) -> list[RecurringTransaction]:
        return await self._recurring.list_recurring(user_id)


class SavingsReportFlow:
    """Loads a user's snapshot and runs the savings engine on it."""

    def __init__(
        self,
        transactions: TransactionStorageInterface,
        budgets: BudgetStorageInterface,
        users: UserStorageInterface,
    ):
        self._transactions = transactions
        self._budgets = budgets
        self._users = users

    async def report(
        self,
        user_id: str,
        date_range: Union[DateRange, str] = DateRange.MONTH,
        today: Optional[date] = None,
    ) -> SavingsReport:
        """
        Args:
            user_id: Whose data to load
            date_range: Calendar window for the budget projection and
                        category totals. Unknown values behave like 'month'.
            today: Last day of the savings walk (defaults to the current date)

        The window budget comes from the profile (income minus savings goal).
        Users without a profile fall back to their expense budgets.
        """
        transactions = await self._transactions.list_transactions(user_id)
        budgets = await self._budgets.list_budgets(user_id)
        profile = await self._users.get_user(user_id)

        today = today or date.today()
        window = coerce_date_range(date_range)
        now = end_of_day(today)

        start = range_start(window, now)
        if start is None:
            in_window = [t for t in transactions if t.date is not None]
        else:
            in_window = filter_by_date_range(transactions, start, range_end(window, now))

        if profile is not None:
            range_budget = total_budget_for_range(
                profile_monthly_budget(profile), window, transactions, now
            )
        else:
            range_budget = total_expense_budget_for_range(budgets, window, transactions, now)
        range_spent = actual_expenses(in_window)

        return SavingsReport(
            date_range=window,
            savings=calculate_savings(transactions, budgets, today),
            today=todays_savings(transactions, budgets, today),
            range_budget=range_budget,
            range_spent=range_spent,
            progress=budget_progress(range_spent, range_budget),
            expense_totals=expense_totals_by_category(in_window),
        )


# =============================================================================
# WIRING
# =============================================================================

@dataclass
class AppComponents:
    """Every service the API needs, built once at startup."""

    users: UserStorageInterface
    transactions: TransactionStorageInterface
    budgets: BudgetStorageInterface
    recurring: RecurringTransactionStorageInterface
    subscriptions: PushSubscriptionStorageInterface
    audit_storage: Optional[AuditStorageInterface]
    identity: IdentityProvider
    audit_logger: AuditLogger
    notifier: PushNotifier
    ingest_flow: TransactionIngestFlow
    subscription_flow: PushSubscriptionFlow
    user_setup_flow: UserSetupFlow
    recurring_flow: RecurringTransactionFlow
    savings_flow: SavingsReportFlow
    storage_backend: str


def create_app_components(
    settings: Optional[Settings] = None,
    storage_backend: Optional[str] = None,
    identity: Optional[IdentityProvider] = None,
    transport: Optional[PushTransport] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to build from (defaults to get_settings())
        storage_backend: "google_sheets" or "memory"; overrides settings.
                         Google Sheets falls back to memory when it is not
                         configured.
        identity: Identity provider to use instead of the configured one
        transport: Push transport to use instead of Web Push

    Returns:
        AppComponents with every flow wired
    """
    settings = settings or get_settings()
    app_settings = settings.app
    backend = storage_backend or app_settings.storage_backend

    users = transactions = budgets = recurring = subscriptions = audit_storage = None

    if backend == "google_sheets":
        try:
            sheets_client = GoogleSheetsClient(settings.google_sheets)
            users = GoogleSheetsUserStorage(sheets_client)
            transactions = GoogleSheetsTransactionStorage(sheets_client)
            budgets = GoogleSheetsBudgetStorage(sheets_client)
            recurring = GoogleSheetsRecurringTransactionStorage(sheets_client)
            subscriptions = GoogleSheetsPushSubscriptionStorage(sheets_client)
            audit_storage = GoogleSheetsAuditStorage(sheets_client)
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", backend=backend, error=str(e))
            backend = "memory"

    if backend == "memory":
        users = InMemoryUserStorage()
        transactions = InMemoryTransactionStorage()
        budgets = InMemoryBudgetStorage()
        recurring = InMemoryRecurringTransactionStorage()
        subscriptions = InMemoryPushSubscriptionStorage()
        audit_storage = InMemoryAuditStorage()

    if identity is None:
        try:
            identity = GoogleIdentityToolkitProvider(settings.identity)
        except Exception as e:
            # Without a provider only development accepts arbitrary ids
            accept_all = app_settings.app_environment == "development"
            logger.warning("identity_not_configured", accept_all=accept_all, error=str(e))
            identity = InMemoryIdentityProvider(accept_all=accept_all)

    web_push_settings = settings.web_push
    transport = transport or WebPushTransport(web_push_settings)

    audit_logger = AuditLogger(audit_storage)
    notifier = PushNotifier(
        subscriptions=subscriptions,
        transport=transport,
        audit_logger=audit_logger,
        settings=web_push_settings,
    )

    return AppComponents(
        users=users,
        transactions=transactions,
        budgets=budgets,
        recurring=recurring,
        subscriptions=subscriptions,
        audit_storage=audit_storage,
        identity=identity,
        audit_logger=audit_logger,
        notifier=notifier,
        ingest_flow=TransactionIngestFlow(
            transactions=transactions,
            identity=identity,
            notifier=notifier,
            validator=TransactionIngestValidator(
                Decimal(str(app_settings.max_transaction_amount))
            ),
            audit_logger=audit_logger,
        ),
        subscription_flow=PushSubscriptionFlow(
            subscriptions=subscriptions,
            audit_logger=audit_logger,
        ),
        user_setup_flow=UserSetupFlow(
            users=users,
            budgets=budgets,
            identity=identity,
            default_categories=app_settings.default_categories_list,
            audit_logger=audit_logger,
        ),
        recurring_flow=RecurringTransactionFlow(
            recurring=recurring,
            transactions=transactions,
            audit_logger=audit_logger,
        ),
        savings_flow=SavingsReportFlow(
            transactions=transactions,
            budgets=budgets,
            users=users,
        ),
        storage_backend=backend,
    )
