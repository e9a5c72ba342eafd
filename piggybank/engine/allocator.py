"""
Budget Allocator

Turns a set of monthly category budgets into a spending allowance for
one calendar day.

DESIGN DECISION: Income-type and expense-type budgets are pooled into one
sum before dividing. This conflates planned inflow with spending allowance,
but it is how the savings figures have always been computed, so it is kept
exactly. Callers that need the split use reporting.total_expense_budget /
reporting.total_income_budget.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable

from piggybank.dates import days_in_month
from piggybank.models.finance import Budget


def total_monthly_budget(budgets: Iterable[Budget]) -> Decimal:
    """Sum of every budget's monthly amount, whatever its type."""
    return sum((budget.monthly_budget for budget in budgets), Decimal("0"))


def daily_budget(budgets: Iterable[Budget], day: date) -> Decimal:
    """
    Per-day allowance for `day`.

    Divides by the real length of that month (28-31 days), not a fixed 30.
    An empty budget set yields 0.
    """
    return total_monthly_budget(budgets) / days_in_month(day)
