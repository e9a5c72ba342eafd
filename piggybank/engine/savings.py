"""
Daily Savings Calculator

Combines the budget allocator and the transaction classifier into a
per-day savings delta and a running total across the whole history:

    daily_savings = daily_budget - actual_expenses + actual_income

The walk covers EVERY calendar day from the earliest valid transaction
to today, not only days with activity: a quiet day still banks its
full daily budget.

GUARANTEES:
- Pure: no I/O, no shared state. Same snapshot + same day = same result.
- Never raises on empty input: no dated transactions -> zero result.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Sequence

from piggybank.dates import iter_days
from piggybank.engine.allocator import daily_budget
from piggybank.engine.classifier import (
    actual_expenses,
    actual_income,
    group_by_day,
    transactions_on_date,
)
from piggybank.models.finance import (
    Budget,
    DailySavings,
    SavingsCalculationResult,
    Transaction,
)


def find_earliest_transaction_date(transactions: Sequence[Transaction]) -> Optional[datetime]:
    """Earliest valid transaction datetime, or None if nothing is dated."""
    dated = [t.date for t in transactions if t.date is not None]
    return min(dated) if dated else None


def _savings_for_day(
    day: date,
    day_transactions: Sequence[Transaction],
    budget_per_day: Decimal,
    cumulative: Decimal,
) -> DailySavings:
    expenses = actual_expenses(day_transactions)
    income = actual_income(day_transactions)
    return DailySavings(
        date=day,
        budget_per_day=budget_per_day,
        actual_expenses=expenses,
        actual_income=income,
        daily_savings=budget_per_day - expenses + income,
        cumulative_savings=cumulative,
    )


def calculate_savings(
    transactions: Sequence[Transaction],
    budgets: Sequence[Budget],
    today: Optional[date] = None,
) -> SavingsCalculationResult:
    """
    Savings from the first transaction date through `today`, both inclusive.

    Args:
        transactions: Full transaction snapshot (undated ones are ignored)
        budgets: All of the user's budgets, any type
        today: Last day of the walk; defaults to the local current date

    Returns:
        Total, per-day breakdown, average per tracked day and day count
    """
    earliest = find_earliest_transaction_date(transactions)
    if earliest is None:
        return SavingsCalculationResult()

    today = today or date.today()
    by_day = group_by_day(transactions)

    # Daily budget only changes with the month
    budget_by_month: dict[tuple[int, int], Decimal] = {}

    breakdown: list[DailySavings] = []
    cumulative = Decimal("0")

    for day in iter_days(earliest.date(), today):
        month_key = (day.year, day.month)
        if month_key not in budget_by_month:
            budget_by_month[month_key] = daily_budget(budgets, day)

        entry = _savings_for_day(
            day,
            by_day.get(day, []),
            budget_by_month[month_key],
            cumulative,
        )
        cumulative += entry.daily_savings
        entry.cumulative_savings = cumulative
        breakdown.append(entry)

    days_tracked = len(breakdown)
    average = cumulative / days_tracked if days_tracked else Decimal("0")

    return SavingsCalculationResult(
        total_savings=cumulative,
        daily_breakdown=breakdown,
        average_daily_savings=average,
        days_tracked=days_tracked,
    )


def todays_savings(
    transactions: Sequence[Transaction],
    budgets: Sequence[Budget],
    today: Optional[date] = None,
) -> DailySavings:
    """
    The per-day formula for a single day.

    cumulative_savings is fixed at 0: a running total means nothing for one day.
    """
    today = today or date.today()
    return _savings_for_day(
        today,
        transactions_on_date(transactions, today),
        daily_budget(budgets, today),
        Decimal("0"),
    )
