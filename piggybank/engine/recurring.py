"""
Recurring Transaction Schedule

Due-date arithmetic for recurring transactions.

Month and year steps clamp to the last valid day of the target month
(Jan 31 + 1 month = Feb 29 in a leap year). They never overflow into
the following month, so Jan 31 does not become Mar 2.
"""

from datetime import datetime, timedelta
from typing import Iterable, Optional

from dateutil.relativedelta import relativedelta

from piggybank.models.finance import Frequency, RecurringTransaction


_STEPS = {
    Frequency.WEEKLY: relativedelta(weeks=1),
    Frequency.MONTHLY: relativedelta(months=1),
    Frequency.YEARLY: relativedelta(years=1),
}


def is_recurring_due(recurring: RecurringTransaction, now: Optional[datetime] = None) -> bool:
    """Active and its next due date has been reached."""
    if not recurring.is_active:
        return False
    return (now or datetime.now()) >= recurring.next_due_date


def next_due_date(recurring: RecurringTransaction) -> datetime:
    """Due date one period after the current one."""
    return recurring.next_due_date + _STEPS[recurring.frequency]


def due_recurring(
    recurrings: Iterable[RecurringTransaction],
    now: Optional[datetime] = None,
) -> list[RecurringTransaction]:
    now = now or datetime.now()
    return [r for r in recurrings if is_recurring_due(r, now)]


def upcoming_recurring(
    recurrings: Iterable[RecurringTransaction],
    now: Optional[datetime] = None,
    days: int = 7,
) -> list[RecurringTransaction]:
    """Active items falling due within [now, now + days]."""
    now = now or datetime.now()
    horizon = now + timedelta(days=days)
    return [
        r for r in recurrings
        if r.is_active and now <= r.next_due_date <= horizon
    ]
