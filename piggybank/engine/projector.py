"""
Date-Range Budget Projector

Scales a monthly budget to the reporting window the user is looking at:

    daily   monthly / days in current month
    week    daily * 7
    month   monthly
    yearly  monthly * 12
    all     monthly * max(1, whole months since oldest transaction + 1)

Unknown windows fall back to the month behaviour rather than raising.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional, Sequence, Union

from piggybank.dates import days_in_month, end_of_day, months_between, start_of_day
from piggybank.engine.reporting import total_expense_budget
from piggybank.engine.savings import find_earliest_transaction_date
from piggybank.models.finance import Budget, DateRange, Transaction, UserProfile


def coerce_date_range(date_range: Union[DateRange, str, None]) -> DateRange:
    """Parse a window name case-insensitively; unknown names mean month."""
    if isinstance(date_range, DateRange):
        return date_range
    try:
        return DateRange(str(date_range).strip().lower())
    except ValueError:
        return DateRange.MONTH


def total_budget_for_range(
    monthly_budget: Decimal,
    date_range: Union[DateRange, str],
    transactions: Optional[Sequence[Transaction]] = None,
    now: Optional[datetime] = None,
) -> Decimal:
    """
    Budget available over `date_range`.

    The 'all' window needs the transaction list to find the oldest date;
    without dated transactions it returns the monthly budget unscaled.
    """
    if not isinstance(monthly_budget, Decimal):
        monthly_budget = Decimal(str(monthly_budget))
    now = now or datetime.now()
    window = coerce_date_range(date_range)

    if window == DateRange.DAILY:
        return monthly_budget / days_in_month(now)
    if window == DateRange.WEEK:
        return monthly_budget / days_in_month(now) * 7
    if window == DateRange.YEARLY:
        return monthly_budget * 12
    if window == DateRange.ALL:
        oldest = find_earliest_transaction_date(transactions or [])
        if oldest is None:
            return monthly_budget
        month_span = months_between(now, oldest) + 1
        return monthly_budget * max(1, month_span)
    return monthly_budget


def total_expense_budget_for_range(
    budgets: Sequence[Budget],
    date_range: Union[DateRange, str],
    transactions: Optional[Sequence[Transaction]] = None,
    now: Optional[datetime] = None,
) -> Decimal:
    """Projector applied to the expense-type budgets only."""
    return total_budget_for_range(
        total_expense_budget(budgets), date_range, transactions, now
    )


def profile_monthly_budget(profile: UserProfile) -> Decimal:
    """Monthly spend implied by a profile: income minus savings goal."""
    return profile.income - profile.savings


def range_start(date_range: Union[DateRange, str], now: Optional[datetime] = None) -> Optional[datetime]:
    """
    First instant of the calendar window containing `now`.

    daily is today, week starts on Monday, month and yearly on the first
    day of the current month or year. 'all' has no start (None).
    """
    now = now or datetime.now()
    window = coerce_date_range(date_range)
    today = now.date()

    if window == DateRange.DAILY:
        return start_of_day(today)
    if window == DateRange.WEEK:
        return start_of_day(today - timedelta(days=today.weekday()))
    if window == DateRange.YEARLY:
        return start_of_day(today.replace(month=1, day=1))
    if window == DateRange.ALL:
        return None
    return start_of_day(today.replace(day=1))


def range_end(date_range: Union[DateRange, str], now: Optional[datetime] = None) -> Optional[datetime]:
    """Last instant of the same window: Sunday, month end, Dec 31. None for 'all'."""
    now = now or datetime.now()
    window = coerce_date_range(date_range)
    today = now.date()

    if window == DateRange.DAILY:
        return end_of_day(today)
    if window == DateRange.WEEK:
        return end_of_day(today + timedelta(days=6 - today.weekday()))
    if window == DateRange.YEARLY:
        return end_of_day(today.replace(month=12, day=31))
    if window == DateRange.ALL:
        return None
    return end_of_day(today.replace(day=days_in_month(today)))
