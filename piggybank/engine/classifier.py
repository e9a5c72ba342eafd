"""
Transaction Classifier

Partitions a day's transactions into expenses and income-equivalents.
Transfers (TRANSFER_CATEGORY) always count as income, never as expense.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable

from piggybank.dates import end_of_day, start_of_day
from piggybank.models.finance import TRANSFER_CATEGORY, Transaction, TransactionType


def transactions_on_date(transactions: Iterable[Transaction], day: date) -> list[Transaction]:
    """
    Transactions dated within [start_of_day, end_of_day] of `day`, local time.

    Transactions without a valid date are skipped.
    """
    start = start_of_day(day)
    end = end_of_day(day)
    return [
        t for t in transactions
        if t.date is not None and start <= t.date <= end
    ]


def group_by_day(transactions: Iterable[Transaction]) -> dict[date, list[Transaction]]:
    """Bucket dated transactions by calendar day, keeping input order."""
    buckets: dict[date, list[Transaction]] = defaultdict(list)
    for t in transactions:
        if t.date is not None:
            buckets[t.date.date()].append(t)
    return dict(buckets)


def is_expense(transaction: Transaction) -> bool:
    return (
        transaction.type == TransactionType.EXPENSE
        and transaction.category != TRANSFER_CATEGORY
    )


def is_income_equivalent(transaction: Transaction) -> bool:
    return (
        transaction.type == TransactionType.INCOME
        or transaction.category == TRANSFER_CATEGORY
    )


def actual_expenses(transactions: Iterable[Transaction]) -> Decimal:
    """Sum of expense amounts, transfers excluded."""
    return sum((t.amount for t in transactions if is_expense(t)), Decimal("0"))


def actual_income(transactions: Iterable[Transaction]) -> Decimal:
    """Sum of income amounts, transfers included."""
    return sum((t.amount for t in transactions if is_income_equivalent(t)), Decimal("0"))
