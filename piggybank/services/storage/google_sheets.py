"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the storage backend because:
1. Users can inspect their data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

Each collection gets one worksheet, and every row carries the owning
user_id, so users/{userId}/{collection}/{id} becomes a filter on column A
or B.

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions (we handle this with careful ordering)
- Limited query capabilities (we filter in Python)
"""

import json
from datetime import datetime
from typing import Callable, Optional
from uuid import UUID, uuid4

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from piggybank.config import GoogleSheetsSettings, get_settings
from piggybank.models.audit import AuditEvent, AuditEventType, AuditSeverity
from piggybank.models.finance import Budget, RecurringTransaction, Transaction, UserProfile
from piggybank.models.push import PushKeys, PushSubscription
from piggybank.services.storage.interface import (
    AuditStorageInterface,
    BudgetStorageInterface,
    ConnectionError,
    NotFoundError,
    PushSubscriptionStorageInterface,
    RecurringTransactionStorageInterface,
    StorageError,
    TransactionStorageInterface,
    UserStorageInterface,
)
from piggybank.services.storage.memory import newest_first, paginate


logger = structlog.get_logger(__name__)


USER_COLUMNS = [
    "user_id",
    "name",
    "income",
    "savings",
    "categories_json",
    "income_categories_json",
    "onboarding_completed",
    "created_at",
    "updated_at",
]

TRANSACTION_COLUMNS = [
    "id",
    "user_id",
    "amount",
    "category",
    "type",
    "date",
    "notes",
    "source",
    "created_at",
    "updated_at",
]

BUDGET_COLUMNS = [
    "user_id",
    "category",
    "monthly_budget",
    "type",
    "created_at",
    "updated_at",
]

RECURRING_COLUMNS = [
    "id",
    "user_id",
    "amount",
    "type",
    "category",
    "notes",
    "frequency",
    "next_due_date",
    "is_active",
    "created_at",
    "last_processed",
]

SUBSCRIPTION_COLUMNS = [
    "user_id",
    "subscription_id",
    "endpoint",
    "auth",
    "p256dh",
    "is_ios_safari",
    "user_agent",
    "created_at",
    "updated_at",
    "last_seen",
]

# Matches AuditEvent.to_sheets_row()
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "user_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
]


def _iso(value: Optional[datetime]) -> str:
    return value.isoformat() if value else ""


def _parse_datetime(value: str) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _cell_getter(row: list) -> Callable[..., str]:
    """Handle short rows gracefully: gspread trims trailing empty cells."""
    def safe_get(index: int, default: str = "") -> str:
        try:
            return row[index] if row[index] else default
        except IndexError:
            return default
    return safe_get


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get a worksheet, creating it with a header row if missing."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            logger.info("worksheet_created", title=title)
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_users_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.users_sheet_name, USER_COLUMNS)

    def get_transactions_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.transactions_sheet_name,
            TRANSACTION_COLUMNS,
            rows=5000,
        )

    def get_budgets_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.budgets_sheet_name, BUDGET_COLUMNS)

    def get_recurring_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.recurring_sheet_name, RECURRING_COLUMNS)

    def get_subscriptions_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.subscriptions_sheet_name, SUBSCRIPTION_COLUMNS)

    def get_audit_sheet(self) -> gspread.Worksheet:
        # More rows for audit log
        return self.get_worksheet(self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000)


def _find_row_index(sheet: gspread.Worksheet, matches: Callable[[list], bool]) -> Optional[int]:
    """1-based sheet row of the first data row satisfying `matches`."""
    all_rows = sheet.get_all_values()
    for idx, row in enumerate(all_rows[1:], start=2):  # row 1 is header
        if row and matches(row):
            return idx
    return None


def _replace_row(sheet: gspread.Worksheet, idx: int, row: list) -> None:
    sheet.update(range_name=f"A{idx}", values=[row], value_input_option="RAW")


class GoogleSheetsUserStorage(UserStorageInterface):
    """User profiles, one row per user."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _profile_to_row(self, profile: UserProfile) -> list:
        return [
            profile.user_id,
            profile.name,
            str(profile.income),
            str(profile.savings),
            json.dumps(profile.categories),
            json.dumps(profile.income_categories),
            str(profile.onboarding_completed),
            _iso(profile.created_at),
            _iso(profile.updated_at),
        ]

    def _row_to_profile(self, row: list) -> UserProfile:
        safe_get = _cell_getter(row)
        return UserProfile(
            user_id=safe_get(0),
            name=safe_get(1, "User"),
            income=safe_get(2, "0"),
            savings=safe_get(3, "0"),
            categories=json.loads(safe_get(4, "[]")),
            income_categories=json.loads(safe_get(5, "[]")),
            onboarding_completed=safe_get(6).lower() == "true",
            created_at=_parse_datetime(safe_get(7)),
            updated_at=_parse_datetime(safe_get(8)),
        )

    async def get_user(self, user_id: str) -> Optional[UserProfile]:
        try:
            sheet = self._client.get_users_sheet()
            for row in sheet.get_all_values()[1:]:
                if row and row[0] == user_id:
                    return self._row_to_profile(row)
            return None
        except Exception as e:
            raise StorageError(f"Failed to get user: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def save_user(self, profile: UserProfile) -> bool:
        try:
            sheet = self._client.get_users_sheet()
            now = datetime.now()
            profile = profile.model_copy(update={
                "created_at": profile.created_at or now,
                "updated_at": now,
            })
            idx = _find_row_index(sheet, lambda row: row[0] == profile.user_id)
            if idx is None:
                sheet.append_row(self._profile_to_row(profile), value_input_option="RAW")
            else:
                _replace_row(sheet, idx, self._profile_to_row(profile))
            return True
        except Exception as e:
            raise StorageError(f"Failed to save user: {e}")

    async def user_exists(self, user_id: str) -> bool:
        return await self.get_user(user_id) is not None


class GoogleSheetsTransactionStorage(TransactionStorageInterface):
    """
    Transactions, one row per transaction.

    Dates are written as ISO strings and normalized again on read.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _transaction_to_row(self, user_id: str, transaction: Transaction) -> list:
        return [
            transaction.id or "",
            user_id,
            str(transaction.amount),
            transaction.category,
            transaction.type.value,
            _iso(transaction.date),
            transaction.notes,
            transaction.source.value,
            _iso(transaction.created_at),
            _iso(transaction.updated_at),
        ]

    def _row_to_transaction(self, row: list) -> Transaction:
        safe_get = _cell_getter(row)
        return Transaction(
            id=safe_get(0),
            amount=safe_get(2, "0"),
            category=safe_get(3),
            type=safe_get(4),
            date=safe_get(5) or None,
            notes=safe_get(6),
            source=safe_get(7, "web-app"),
            created_at=_parse_datetime(safe_get(8)),
            updated_at=_parse_datetime(safe_get(9)),
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def save_transaction(self, user_id: str, transaction: Transaction) -> str:
        try:
            sheet = self._client.get_transactions_sheet()
            now = datetime.now()
            transaction_id = uuid4().hex
            stored = transaction.model_copy(update={
                "id": transaction_id,
                "created_at": now,
                "updated_at": now,
            })
            sheet.append_row(self._transaction_to_row(user_id, stored), value_input_option="RAW")
            return transaction_id
        except Exception as e:
            raise StorageError(f"Failed to save transaction: {e}")

    async def get_transaction(self, user_id: str, transaction_id: str) -> Optional[Transaction]:
        try:
            sheet = self._client.get_transactions_sheet()
            for row in sheet.get_all_values()[1:]:
                if len(row) > 1 and row[0] == transaction_id and row[1] == user_id:
                    return self._row_to_transaction(row)
            return None
        except Exception as e:
            raise StorageError(f"Failed to get transaction: {e}")

    async def update_transaction(self, user_id: str, transaction: Transaction) -> bool:
        try:
            sheet = self._client.get_transactions_sheet()
            idx = _find_row_index(
                sheet,
                lambda row: len(row) > 1 and row[0] == transaction.id and row[1] == user_id,
            )
            if idx is None:
                raise NotFoundError(f"Transaction not found: {transaction.id}")

            updated = transaction.model_copy(update={"updated_at": datetime.now()})
            _replace_row(sheet, idx, self._transaction_to_row(user_id, updated))
            return True
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update transaction: {e}")

    async def delete_transaction(self, user_id: str, transaction_id: str) -> bool:
        try:
            sheet = self._client.get_transactions_sheet()
            idx = _find_row_index(
                sheet,
                lambda row: len(row) > 1 and row[0] == transaction_id and row[1] == user_id,
            )
            if idx is None:
                return False
            sheet.delete_rows(idx)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete transaction: {e}")

    async def list_transactions(
        self,
        user_id: str,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[Transaction]:
        try:
            sheet = self._client.get_transactions_sheet()
            transactions = []
            for row in sheet.get_all_values()[1:]:
                if len(row) < 2 or row[1] != user_id:
                    continue
                try:
                    transactions.append(self._row_to_transaction(row))
                except Exception:
                    logger.warning("malformed_transaction_row", row_id=row[0])
                    continue

            return paginate(newest_first(transactions), limit, offset)
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}")


class GoogleSheetsBudgetStorage(BudgetStorageInterface):
    """Budgets, one row per (user, category)."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _budget_to_row(self, user_id: str, budget: Budget) -> list:
        return [
            user_id,
            budget.category,
            str(budget.monthly_budget),
            budget.type.value,
            _iso(budget.created_at),
            _iso(budget.updated_at),
        ]

    def _row_to_budget(self, row: list) -> Budget:
        safe_get = _cell_getter(row)
        return Budget(
            category=safe_get(1),
            monthly_budget=safe_get(2, "0"),
            type=safe_get(3) or None,
            created_at=_parse_datetime(safe_get(4)),
            updated_at=_parse_datetime(safe_get(5)),
        )

    def _matches(self, user_id: str, category: str) -> Callable[[list], bool]:
        return lambda row: len(row) > 1 and row[0] == user_id and row[1] == category

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def save_budget(self, user_id: str, budget: Budget) -> bool:
        try:
            sheet = self._client.get_budgets_sheet()
            now = datetime.now()
            budget = budget.model_copy(update={
                "created_at": budget.created_at or now,
                "updated_at": now,
            })
            idx = _find_row_index(sheet, self._matches(user_id, budget.category))
            if idx is None:
                sheet.append_row(self._budget_to_row(user_id, budget), value_input_option="RAW")
            else:
                _replace_row(sheet, idx, self._budget_to_row(user_id, budget))
            return True
        except Exception as e:
            raise StorageError(f"Failed to save budget: {e}")

    async def get_budget(self, user_id: str, category: str) -> Optional[Budget]:
        budgets = await self.list_budgets(user_id)
        return next((b for b in budgets if b.category == category), None)

    async def list_budgets(self, user_id: str) -> list[Budget]:
        try:
            sheet = self._client.get_budgets_sheet()
            budgets = []
            for row in sheet.get_all_values()[1:]:
                if not row or row[0] != user_id:
                    continue
                try:
                    budgets.append(self._row_to_budget(row))
                except Exception:
                    logger.warning("malformed_budget_row", user_id=user_id)
                    continue
            return budgets
        except Exception as e:
            raise StorageError(f"Failed to list budgets: {e}")

    async def delete_budget(self, user_id: str, category: str) -> bool:
        try:
            sheet = self._client.get_budgets_sheet()
            idx = _find_row_index(sheet, self._matches(user_id, category))
            if idx is None:
                return False
            sheet.delete_rows(idx)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete budget: {e}")


class GoogleSheetsRecurringTransactionStorage(RecurringTransactionStorageInterface):
    """Recurring transactions, one row per (id, user)."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _recurring_to_row(self, user_id: str, recurring: RecurringTransaction) -> list:
        return [
            recurring.id or "",
            user_id,
            str(recurring.amount),
            recurring.type.value,
            recurring.category,
            recurring.notes,
            recurring.frequency.value,
            _iso(recurring.next_due_date),
            str(recurring.is_active),
            _iso(recurring.created_at),
            _iso(recurring.last_processed),
        ]

    def _row_to_recurring(self, row: list) -> RecurringTransaction:
        safe_get = _cell_getter(row)
        return RecurringTransaction(
            id=safe_get(0),
            amount=safe_get(2, "0"),
            type=safe_get(3),
            category=safe_get(4),
            notes=safe_get(5),
            frequency=safe_get(6),
            next_due_date=safe_get(7),
            is_active=safe_get(8, "True").lower() == "true",
            created_at=_parse_datetime(safe_get(9)),
            last_processed=_parse_datetime(safe_get(10)),
        )

    def _matches(self, user_id: str, recurring_id: str) -> Callable[[list], bool]:
        return lambda row: len(row) > 1 and row[0] == recurring_id and row[1] == user_id

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def save_recurring(self, user_id: str, recurring: RecurringTransaction) -> str:
        try:
            sheet = self._client.get_recurring_sheet()
            recurring_id = uuid4().hex
            stored = recurring.model_copy(update={
                "id": recurring_id,
                "created_at": recurring.created_at or datetime.now(),
            })
            sheet.append_row(self._recurring_to_row(user_id, stored), value_input_option="RAW")
            return recurring_id
        except Exception as e:
            raise StorageError(f"Failed to save recurring transaction: {e}")

    async def list_recurring(self, user_id: str) -> list[RecurringTransaction]:
        try:
            sheet = self._client.get_recurring_sheet()
            items = []
            for row in sheet.get_all_values()[1:]:
                if len(row) < 2 or row[1] != user_id:
                    continue
                try:
                    items.append(self._row_to_recurring(row))
                except Exception:
                    logger.warning("malformed_recurring_row", row_id=row[0])
                    continue
            return sorted(items, key=lambda r: r.next_due_date)
        except Exception as e:
            raise StorageError(f"Failed to list recurring transactions: {e}")

    async def update_recurring(self, user_id: str, recurring: RecurringTransaction) -> bool:
        try:
            sheet = self._client.get_recurring_sheet()
            idx = _find_row_index(sheet, self._matches(user_id, recurring.id or ""))
            if idx is None:
                raise NotFoundError(f"Recurring transaction not found: {recurring.id}")
            _replace_row(sheet, idx, self._recurring_to_row(user_id, recurring))
            return True
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update recurring transaction: {e}")

    async def delete_recurring(self, user_id: str, recurring_id: str) -> bool:
        try:
            sheet = self._client.get_recurring_sheet()
            idx = _find_row_index(sheet, self._matches(user_id, recurring_id))
            if idx is None:
                return False
            sheet.delete_rows(idx)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete recurring transaction: {e}")


class GoogleSheetsPushSubscriptionStorage(PushSubscriptionStorageInterface):
    """Push subscriptions, one row per (user, subscription id)."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _subscription_to_row(self, user_id: str, subscription: PushSubscription) -> list:
        return [
            user_id,
            subscription.subscription_id,
            subscription.endpoint,
            subscription.keys.auth,
            subscription.keys.p256dh,
            str(subscription.is_ios_safari),
            subscription.user_agent,
            _iso(subscription.created_at),
            _iso(subscription.updated_at),
            _iso(subscription.last_seen),
        ]

    def _row_to_subscription(self, row: list) -> PushSubscription:
        safe_get = _cell_getter(row)
        return PushSubscription(
            endpoint=safe_get(2),
            keys=PushKeys(auth=safe_get(3), p256dh=safe_get(4)),
            is_ios_safari=safe_get(5).lower() == "true",
            user_agent=safe_get(6, "unknown"),
            created_at=_parse_datetime(safe_get(7)),
            updated_at=_parse_datetime(safe_get(8)),
            last_seen=_parse_datetime(safe_get(9)),
        )

    def _matches(self, user_id: str, subscription_id: str) -> Callable[[list], bool]:
        return lambda row: len(row) > 1 and row[0] == user_id and row[1] == subscription_id

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def save_subscription(self, user_id: str, subscription: PushSubscription) -> str:
        try:
            sheet = self._client.get_subscriptions_sheet()
            subscription_id = subscription.subscription_id
            all_rows = sheet.get_all_values()
            now = datetime.now()

            for idx, row in enumerate(all_rows[1:], start=2):
                if row and self._matches(user_id, subscription_id)(row):
                    # Merge: keep the original creation time
                    existing = self._row_to_subscription(row)
                    merged = subscription.model_copy(update={
                        "created_at": existing.created_at or now,
                        "updated_at": now,
                        "last_seen": now,
                    })
                    _replace_row(sheet, idx, self._subscription_to_row(user_id, merged))
                    return subscription_id

            created = subscription.model_copy(update={
                "created_at": subscription.created_at or now,
                "updated_at": now,
                "last_seen": now,
            })
            sheet.append_row(self._subscription_to_row(user_id, created), value_input_option="RAW")
            return subscription_id
        except Exception as e:
            raise StorageError(f"Failed to save push subscription: {e}")

    async def list_subscriptions(self, user_id: str) -> list[PushSubscription]:
        try:
            sheet = self._client.get_subscriptions_sheet()
            subscriptions = []
            for row in sheet.get_all_values()[1:]:
                if not row or row[0] != user_id:
                    continue
                try:
                    subscriptions.append(self._row_to_subscription(row))
                except Exception:
                    logger.warning("malformed_subscription_row", user_id=user_id)
                    continue
            return subscriptions
        except Exception as e:
            raise StorageError(f"Failed to list push subscriptions: {e}")

    async def delete_subscription(self, user_id: str, subscription_id: str) -> bool:
        try:
            sheet = self._client.get_subscriptions_sheet()
            idx = _find_row_index(sheet, self._matches(user_id, subscription_id))
            if idx is None:
                return False
            sheet.delete_rows(idx)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete push subscription: {e}")

    async def touch_subscription(self, user_id: str, subscription_id: str) -> bool:
        try:
            sheet = self._client.get_subscriptions_sheet()
            idx = _find_row_index(sheet, self._matches(user_id, subscription_id))
            if idx is None:
                return False
            sheet.update_cell(idx, SUBSCRIPTION_COLUMNS.index("last_seen") + 1, _iso(datetime.now()))
            return True
        except Exception as e:
            raise StorageError(f"Failed to update push subscription: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        safe_get = _cell_getter(row)
        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            user_id=safe_get(4) or None,
            entity_type=safe_get(5) or None,
            entity_id=safe_get(6) or None,
            correlation_id=UUID(safe_get(7)) if safe_get(7) else None,
            description=safe_get(8),
            details=json.loads(safe_get(9)) if safe_get(9) else {},
            error_message=safe_get(10) or None,
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning("audit_append_failed", error=str(e), event_id=str(event.event_id))
            return False

    def _all_events(self) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for row in sheet.get_all_values()[1:]:
            if row and row[0]:
                try:
                    events.append(self._row_to_event(row))
                except Exception:
                    continue
        return events

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        try:
            events = [e for e in self._all_events() if e.correlation_id == correlation_id]
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            events = self._all_events()
            events.sort(key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
