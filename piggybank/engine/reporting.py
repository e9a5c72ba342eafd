"""
Aggregation and Reporting Helpers

Small, display-oriented calculations over transaction and budget lists:
category totals, budget progress, sorting and filtering.
"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional, Sequence, Union

from piggybank.models.finance import (
    Budget,
    BudgetProgress,
    BudgetType,
    CategoryTotal,
    SortOption,
    Transaction,
    TransactionType,
)


HUNDRED = Decimal("100")


# =============================================================================
# TRANSACTIONS
# =============================================================================

def total_amount(transactions: Iterable[Transaction]) -> Decimal:
    return sum((t.amount for t in transactions), Decimal("0"))


def filter_by_type(
    transactions: Iterable[Transaction],
    transaction_type: Union[TransactionType, str],
) -> list[Transaction]:
    wanted = TransactionType(transaction_type)
    return [t for t in transactions if t.type == wanted]


def filter_by_date_range(
    transactions: Iterable[Transaction],
    start: datetime,
    end: datetime,
) -> list[Transaction]:
    """Transactions dated within [start, end]; undated ones are dropped."""
    return [
        t for t in transactions
        if t.date is not None and start <= t.date <= end
    ]


def aggregate_by_category(transactions: Iterable[Transaction]) -> list[CategoryTotal]:
    """
    Sum amounts per category, largest first.

    The sort is stable, so categories with equal totals keep the order
    in which they were first seen.
    """
    totals: dict[str, Decimal] = {}
    for t in transactions:
        totals[t.category] = totals.get(t.category, Decimal("0")) + t.amount

    ordered = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return [CategoryTotal(category=category, amount=amount) for category, amount in ordered]


def expense_totals_by_category(transactions: Iterable[Transaction]) -> list[CategoryTotal]:
    """Category totals over expense-type transactions only."""
    return aggregate_by_category(filter_by_type(transactions, TransactionType.EXPENSE))


def sort_transactions(
    transactions: Sequence[Transaction],
    sort_option: Union[SortOption, str] = SortOption.LATEST,
) -> list[Transaction]:
    """
    Return a sorted copy.

    LATEST keeps the store order (already date-descending).
    Unknown options behave like LATEST.
    """
    try:
        option = SortOption(sort_option)
    except ValueError:
        option = SortOption.LATEST

    if option == SortOption.HIGHEST:
        return sorted(transactions, key=lambda t: t.amount, reverse=True)
    if option == SortOption.CATEGORY:
        return sorted(transactions, key=lambda t: t.category.casefold())
    return list(transactions)


# =============================================================================
# BUDGETS
# =============================================================================

def budget_progress(spent: Decimal, budget: Decimal) -> BudgetProgress:
    """
    Progress of `spent` against `budget`.

    Over-budget detection uses the raw percentage; only the display
    value is clamped to 100.
    """
    spent = Decimal(str(spent)) if not isinstance(spent, Decimal) else spent
    budget = Decimal(str(budget)) if not isinstance(budget, Decimal) else budget

    percentage = spent / budget * HUNDRED if budget > 0 else Decimal("0")
    return BudgetProgress(
        percentage=percentage,
        display_percentage=min(percentage, HUNDRED),
        is_over_budget=percentage >= HUNDRED,
        remaining=max(Decimal("0"), budget - spent),
    )


def budgets_by_type(budgets: Iterable[Budget], budget_type: Union[BudgetType, str]) -> list[Budget]:
    wanted = BudgetType(budget_type)
    return [b for b in budgets if b.type == wanted]


def total_expense_budget(budgets: Iterable[Budget]) -> Decimal:
    return sum((b.monthly_budget for b in budgets_by_type(budgets, BudgetType.EXPENSE)), Decimal("0"))


def total_income_budget(budgets: Iterable[Budget]) -> Decimal:
    return sum((b.monthly_budget for b in budgets_by_type(budgets, BudgetType.INCOME)), Decimal("0"))


def planned_savings(budgets: Sequence[Budget]) -> Decimal:
    """Planned income minus planned spending."""
    return total_income_budget(budgets) - total_expense_budget(budgets)


def budget_for_category(budgets: Iterable[Budget], category: str) -> Optional[Budget]:
    return next((b for b in budgets if b.category == category), None)
