"""
Core Finance Models for Piggybank

These models define the schemas for all finance data flowing through the system:
1. Stored records (Transaction, Budget, UserProfile, RecurringTransaction)
2. Derived views (DailySavings, SavingsCalculationResult, CategoryTotal, BudgetProgress)

DESIGN DECISION: Stored documents use capitalized field names
(Amount, Category, Type, Date, Notes, MonthlyBudget). Every model accepts
both those aliases and the snake_case names, so a raw document can be
validated directly.

Dates are normalized here, at the boundary. See piggybank.dates.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)

from piggybank.dates import normalize_transaction_date

# Reserved category: always counted as income-equivalent in savings math,
# whatever the transaction type says.
TRANSFER_CATEGORY = "Transfer"


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class _CaseInsensitiveEnum(str, Enum):
    """String enum that accepts any case variant of its values."""

    @classmethod
    def _missing_(cls, value: object):
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value == lowered:
                    return member
        return None


class TransactionType(_CaseInsensitiveEnum):
    """
    Direction of a money movement.

    The amount is always a magnitude; the sign is implied by the type.
    'Income' / 'Expense' written by older clients normalize to these members.
    """
    INCOME = "income"
    EXPENSE = "expense"


class BudgetType(_CaseInsensitiveEnum):
    """Whether a budget is a planned inflow or a spending allowance."""
    INCOME = "income"
    EXPENSE = "expense"


class TransactionSource(str, Enum):
    """Where a transaction was submitted from."""
    WEB_APP = "web-app"
    IOS_SHORTCUT = "ios-shortcut"
    API = "api"
    RECURRING = "recurring"


class DateRange(str, Enum):
    """Reporting windows supported by the budget projector."""
    DAILY = "daily"
    WEEK = "week"
    MONTH = "month"
    YEARLY = "yearly"
    ALL = "all"


class SortOption(str, Enum):
    """Orderings offered for transaction lists."""
    LATEST = "latest"     # store order (date descending)
    HIGHEST = "highest"   # amount descending
    CATEGORY = "category"  # alphabetical by category


class Frequency(str, Enum):
    """Recurrence of a recurring transaction."""
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


# =============================================================================
# STORED RECORDS
# =============================================================================

class Transaction(BaseModel):
    """
    One recorded money movement.

    `date` is None when the stored value was missing or unparseable.
    Such transactions are kept (they are still the user's data) but
    excluded from every calculation.
    """
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    id: Optional[str] = Field(
        default=None,
        description="Store-assigned identifier"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        validation_alias=AliasChoices("amount", "Amount"),
        description="Magnitude of the movement"
    )
    category: str = Field(
        ...,
        min_length=1,
        max_length=100,
        validation_alias=AliasChoices("category", "Category"),
    )
    type: TransactionType = Field(
        ...,
        validation_alias=AliasChoices("type", "Type"),
    )
    date: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices("date", "Date"),
        description="Normalized local datetime, None if unparseable"
    )
    notes: str = Field(
        default="",
        max_length=1000,
        validation_alias=AliasChoices("notes", "Notes"),
    )
    source: TransactionSource = Field(
        default=TransactionSource.WEB_APP,
        description="Submission channel"
    )
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator('date', mode='before')
    @classmethod
    def normalize_date(cls, v: Any) -> Optional[datetime]:
        """Resolve ISO strings and epoch pairs to one datetime type."""
        return normalize_transaction_date(v)

    @field_validator('type', mode='before')
    @classmethod
    def normalize_type(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator('notes', mode='before')
    @classmethod
    def default_notes(cls, v: Any) -> Any:
        return "" if v is None else v

    @property
    def is_transfer(self) -> bool:
        return self.category == TRANSFER_CATEGORY

    @property
    def has_valid_date(self) -> bool:
        return self.date is not None

    def to_public_dict(self) -> dict[str, Any]:
        """Document view with the store's capitalized field names."""
        return {
            "id": self.id,
            "Amount": float(self.amount),
            "Category": self.category,
            "Type": self.type.value,
            "Date": self.date.isoformat() if self.date else None,
            "Notes": self.notes,
            "source": self.source.value,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


class Budget(BaseModel):
    """
    One category's monthly allowance.

    Category is the natural key: a user has at most one budget per category.
    """
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    category: str = Field(
        ...,
        min_length=1,
        max_length=100,
        validation_alias=AliasChoices("category", "Category"),
    )
    monthly_budget: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        validation_alias=AliasChoices("monthly_budget", "MonthlyBudget", "monthlyBudget"),
    )
    type: BudgetType = Field(
        default=BudgetType.EXPENSE,
        validation_alias=AliasChoices("type", "Type"),
        description="Older budgets have no type and count as expense"
    )
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator('monthly_budget', mode='before')
    @classmethod
    def default_missing_budget(cls, v: Any) -> Any:
        return Decimal("0") if v is None else v

    @field_validator('type', mode='before')
    @classmethod
    def default_missing_type(cls, v: Any) -> Any:
        if v in (None, ""):
            return BudgetType.EXPENSE
        return v.strip().lower() if isinstance(v, str) else v


class UserProfile(BaseModel):
    """User document. Income and savings goal feed the range projector."""
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    user_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("user_id", "userId"),
    )
    name: str = Field(default="User", max_length=100)
    income: Decimal = Field(default=Decimal("0"), ge=0)
    savings: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Monthly savings goal"
    )
    categories: list[str] = Field(default_factory=list)
    income_categories: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("income_categories", "incomeCategories"),
    )
    onboarding_completed: bool = Field(
        default=False,
        validation_alias=AliasChoices("onboarding_completed", "onboardingCompleted"),
    )
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_public_dict(self) -> dict[str, Any]:
        """Camel-cased document view returned by the API."""
        return {
            "userId": self.user_id,
            "name": self.name,
            "categories": list(self.categories),
            "incomeCategories": list(self.income_categories),
            "income": float(self.income),
            "savings": float(self.savings),
            "onboardingCompleted": self.onboarding_completed,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


class RecurringTransaction(BaseModel):
    """A transaction template that comes due on a fixed schedule."""
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    id: Optional[str] = None
    amount: Decimal = Field(..., ge=0, validation_alias=AliasChoices("amount", "Amount"))
    type: TransactionType = Field(..., validation_alias=AliasChoices("type", "Type"))
    category: str = Field(..., min_length=1, validation_alias=AliasChoices("category", "Category"))
    notes: str = Field(default="", validation_alias=AliasChoices("notes", "Notes"))
    frequency: Frequency
    next_due_date: datetime = Field(
        ...,
        validation_alias=AliasChoices("next_due_date", "nextDueDate"),
    )
    is_active: bool = Field(
        default=True,
        validation_alias=AliasChoices("is_active", "isActive"),
    )
    created_at: Optional[datetime] = None
    last_processed: Optional[datetime] = None

    @field_validator('next_due_date', mode='before')
    @classmethod
    def normalize_due_date(cls, v: Any) -> Any:
        normalized = normalize_transaction_date(v)
        if normalized is None:
            raise ValueError("next_due_date must be a valid date")
        return normalized

    @field_validator('type', mode='before')
    @classmethod
    def normalize_type(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v


# =============================================================================
# DERIVED VIEWS (never persisted)
# =============================================================================

class DailySavings(BaseModel):
    """One calendar day's savings projection."""

    date: date
    budget_per_day: Decimal
    actual_expenses: Decimal
    actual_income: Decimal = Field(description="Includes transfers")
    daily_savings: Decimal = Field(
        description="budget_per_day - actual_expenses + actual_income"
    )
    cumulative_savings: Decimal = Field(
        description="Running total from the earliest tracked day"
    )


class SavingsCalculationResult(BaseModel):
    """Savings over the full tracked history."""

    total_savings: Decimal = Decimal("0")
    daily_breakdown: list[DailySavings] = Field(default_factory=list)
    average_daily_savings: Decimal = Decimal("0")
    days_tracked: int = Field(default=0, ge=0)


class CategoryTotal(BaseModel):
    """Summed amount for one category."""

    category: str
    amount: Decimal


class BudgetProgress(BaseModel):
    """
    Spend against a budget.

    `percentage` is uncapped and drives over-budget detection;
    `display_percentage` is clamped to 100 for progress bars.
    """

    percentage: Decimal
    display_percentage: Decimal
    is_over_budget: bool
    remaining: Decimal


class SavingsReport(BaseModel):
    """Everything the savings card shows for one reporting window."""

    date_range: DateRange
    savings: SavingsCalculationResult
    today: DailySavings
    range_budget: Decimal = Field(description="Expense budget scaled to the window")
    range_spent: Decimal = Field(description="Expenses inside the window, transfers excluded")
    progress: BudgetProgress
    expense_totals: list[CategoryTotal] = Field(default_factory=list)
