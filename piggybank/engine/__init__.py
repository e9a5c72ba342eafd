"""
Savings & Budget Engine

Pure, synchronous calculations over in-memory transaction and budget
snapshots. Nothing in this package performs I/O or keeps state, so it is
safe to call on every request.
"""

from piggybank.engine.allocator import daily_budget, total_monthly_budget
from piggybank.engine.classifier import (
    actual_expenses,
    actual_income,
    group_by_day,
    transactions_on_date,
)
from piggybank.engine.projector import (
    coerce_date_range,
    profile_monthly_budget,
    range_end,
    range_start,
    total_budget_for_range,
    total_expense_budget_for_range,
)
from piggybank.engine.recurring import (
    due_recurring,
    is_recurring_due,
    next_due_date,
    upcoming_recurring,
)
from piggybank.engine.reporting import (
    aggregate_by_category,
    budget_for_category,
    budget_progress,
    budgets_by_type,
    expense_totals_by_category,
    filter_by_date_range,
    filter_by_type,
    planned_savings,
    sort_transactions,
    total_amount,
    total_expense_budget,
    total_income_budget,
)
from piggybank.engine.savings import (
    calculate_savings,
    find_earliest_transaction_date,
    todays_savings,
)

__all__ = [
    # Allocator
    "daily_budget",
    "total_monthly_budget",
    # Classifier
    "actual_expenses",
    "actual_income",
    "group_by_day",
    "transactions_on_date",
    # Savings
    "calculate_savings",
    "find_earliest_transaction_date",
    "todays_savings",
    # Projector
    "coerce_date_range",
    "profile_monthly_budget",
    "range_end",
    "range_start",
    "total_budget_for_range",
    "total_expense_budget_for_range",
    # Reporting
    "aggregate_by_category",
    "budget_for_category",
    "budget_progress",
    "budgets_by_type",
    "expense_totals_by_category",
    "filter_by_date_range",
    "filter_by_type",
    "planned_savings",
    "sort_transactions",
    "total_amount",
    "total_expense_budget",
    "total_income_budget",
    # Recurring
    "due_recurring",
    "is_recurring_due",
    "next_due_date",
    "upcoming_recurring",
]
