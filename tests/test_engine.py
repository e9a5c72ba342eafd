"""
Tests for the savings engine.

All dates are fixed so results never depend on the day the suite runs.
"""

import pytest
from datetime import date, datetime, time
from decimal import Decimal

from piggybank.engine import (
    actual_expenses,
    actual_income,
    aggregate_by_category,
    budget_progress,
    calculate_savings,
    daily_budget,
    expense_totals_by_category,
    due_recurring,
    find_earliest_transaction_date,
    next_due_date,
    planned_savings,
    range_end,
    range_start,
    sort_transactions,
    todays_savings,
    total_budget_for_range,
    total_expense_budget_for_range,
    transactions_on_date,
    upcoming_recurring,
)
from piggybank.models.finance import Budget, RecurringTransaction, Transaction


def txn(amount, category="F&B", type_="expense", when="2024-04-10T12:00:00"):
    return Transaction(amount=amount, category=category, type=type_, date=when)


@pytest.fixture
def budgets():
    # Pooled total is 400 across one expense and one income budget
    return [
        Budget(category="F&B", monthly_budget=300),
        Budget(category="Salary", monthly_budget=100, type="income"),
    ]


class TestAllocator:
    def test_daily_budget_uses_real_month_length(self, budgets):
        """April has 30 days."""
        assert float(daily_budget(budgets, date(2024, 4, 10))) == pytest.approx(13.3333, abs=1e-3)

    def test_daily_budget_leap_february(self):
        assert daily_budget([Budget(category="Rent", monthly_budget=290)], date(2024, 2, 10)) == Decimal("10")

    def test_empty_budgets(self):
        assert daily_budget([], date(2024, 4, 10)) == Decimal("0")


class TestClassifier:
    def test_transfers_count_as_income(self):
        day = [txn(50), txn(20, category="Transfer")]
        assert actual_expenses(day) == Decimal("50")
        assert actual_income(day) == Decimal("20")

    def test_income_transaction(self):
        assert actual_income([txn(80, category="Salary", type_="income")]) == Decimal("80")

    def test_transactions_on_date_bounds(self):
        early = txn(1, when="2024-04-10T00:00:00")
        late = txn(2, when="2024-04-10T23:59:59")
        next_day = txn(3, when="2024-04-11T00:00:00")
        undated = Transaction(amount=4, category="F&B", type="expense", date=None)
        result = transactions_on_date([early, late, next_day, undated], date(2024, 4, 10))
        assert result == [early, late]


class TestSavingsCalculator:
    def test_single_day_formula(self, budgets):
        """daily_budget - expenses + income, with a transfer as income."""
        today = todays_savings([txn(50), txn(20, category="Transfer")], budgets, today=date(2024, 4, 10))
        assert float(today.daily_savings) == pytest.approx(400 / 30 - 50 + 20, abs=1e-6)
        assert today.cumulative_savings == Decimal("0")

    def test_quiet_days_bank_full_budget(self, budgets):
        transactions = [txn(50, when="2024-04-08T09:00:00"), txn(20, category="Transfer", when="2024-04-10T09:00:00")]
        result = calculate_savings(transactions, budgets, today=date(2024, 4, 10))

        assert result.days_tracked == 3
        assert [d.date for d in result.daily_breakdown] == [
            date(2024, 4, 8), date(2024, 4, 9), date(2024, 4, 10)
        ]
        assert float(result.total_savings) == pytest.approx(3 * 400 / 30 - 50 + 20, abs=1e-6)
        assert float(result.average_daily_savings) == pytest.approx(float(result.total_savings) / 3, abs=1e-6)

    def test_cumulative_is_running_sum(self, budgets):
        transactions = [txn(10, when="2024-04-01T09:00:00"), txn(5, when="2024-04-03T09:00:00")]
        result = calculate_savings(transactions, budgets, today=date(2024, 4, 5))

        running = Decimal("0")
        for day in result.daily_breakdown:
            running += day.daily_savings
            assert day.cumulative_savings == running
        assert result.total_savings == running

    def test_days_tracked_counts_both_ends(self, budgets):
        result = calculate_savings([txn(1, when="2024-03-20T08:00:00")], budgets, today=date(2024, 4, 10))
        assert result.days_tracked == (date(2024, 4, 10) - date(2024, 3, 20)).days + 1

    def test_daily_budget_changes_with_month(self):
        budgets = [Budget(category="Rent", monthly_budget=290)]
        result = calculate_savings([txn(1, when="2024-02-28T08:00:00")], budgets, today=date(2024, 3, 1))
        per_day = [d.budget_per_day for d in result.daily_breakdown]
        assert per_day[0] == per_day[1] == Decimal("10")
        assert per_day[2] == Decimal("290") / 31

    def test_no_dated_transactions(self, budgets):
        undated = Transaction(amount=4, category="F&B", type="expense", date="garbage")
        result = calculate_savings([undated], budgets, today=date(2024, 4, 10))
        assert result.total_savings == Decimal("0")
        assert result.daily_breakdown == []
        assert result.days_tracked == 0

    def test_future_earliest_date_gives_empty_breakdown(self, budgets):
        result = calculate_savings([txn(1, when="2024-05-01T08:00:00")], budgets, today=date(2024, 4, 10))
        assert result.days_tracked == 0
        assert result.total_savings == Decimal("0")

    def test_repeatable(self, budgets):
        transactions = [txn(50, when="2024-04-08T09:00:00"), txn(12, when="2024-04-09T09:00:00")]
        first = calculate_savings(transactions, budgets, today=date(2024, 4, 10))
        second = calculate_savings(transactions, budgets, today=date(2024, 4, 10))
        assert first == second

    def test_earliest_date(self):
        transactions = [txn(1, when="2024-04-10T00:00:00"), txn(1, when="2024-04-02T00:00:00")]
        assert find_earliest_transaction_date(transactions) == datetime(2024, 4, 2)
        assert find_earliest_transaction_date([]) is None


class TestProjector:
    NOW = datetime(2024, 4, 10, 15, 30)

    def test_yearly(self):
        assert total_budget_for_range(Decimal("1000"), "yearly", now=self.NOW) == Decimal("12000")

    def test_month_and_unknown(self):
        assert total_budget_for_range(Decimal("1000"), "month", now=self.NOW) == Decimal("1000")
        assert total_budget_for_range(Decimal("1000"), "fortnight", now=self.NOW) == Decimal("1000")

    def test_daily_and_week(self):
        daily = total_budget_for_range(Decimal("300"), "daily", now=self.NOW)
        assert daily == Decimal("10")
        assert total_budget_for_range(Decimal("300"), "week", now=self.NOW) == Decimal("70")

    def test_all_without_transactions(self):
        assert total_budget_for_range(Decimal("1000"), "all", [], now=self.NOW) == Decimal("1000")

    def test_all_counts_months_since_oldest(self):
        transactions = [txn(1, when="2024-01-15T00:00:00")]
        assert total_budget_for_range(Decimal("1000"), "all", transactions, now=self.NOW) == Decimal("3000")

    def test_case_insensitive_range(self):
        assert total_budget_for_range(Decimal("1000"), "YEARLY", now=self.NOW) == Decimal("12000")

    def test_expense_budgets_only(self, budgets):
        assert total_expense_budget_for_range(budgets, "month", now=self.NOW) == Decimal("300")

    @pytest.mark.parametrize("window,expected", [
        ("daily", datetime(2024, 4, 10)),
        ("week", datetime(2024, 4, 8)),
        ("month", datetime(2024, 4, 1)),
        ("yearly", datetime(2024, 1, 1)),
        ("all", None),
        ("bogus", datetime(2024, 4, 1)),
    ])
    def test_range_start(self, window, expected):
        assert range_start(window, now=self.NOW) == expected

    @pytest.mark.parametrize("window,expected", [
        ("daily", datetime.combine(date(2024, 4, 10), time.max)),
        ("week", datetime.combine(date(2024, 4, 14), time.max)),
        ("month", datetime.combine(date(2024, 4, 30), time.max)),
        ("yearly", datetime.combine(date(2024, 12, 31), time.max)),
        ("all", None),
    ])
    def test_range_end(self, window, expected):
        assert range_end(window, now=self.NOW) == expected

    def test_week_on_monday_and_sunday(self):
        monday = datetime(2024, 4, 8, 9, 0)
        sunday = datetime(2024, 4, 14, 22, 0)
        assert range_start("week", now=monday) == datetime(2024, 4, 8)
        assert range_start("week", now=sunday) == datetime(2024, 4, 8)
        assert range_end("week", now=monday) == range_end("week", now=sunday)


class TestReporting:
    def test_budget_progress_over_budget(self):
        progress = budget_progress(Decimal("600"), Decimal("500"))
        assert progress.percentage == Decimal("120")
        assert progress.display_percentage == Decimal("100")
        assert progress.is_over_budget is True
        assert progress.remaining == Decimal("0")

    def test_budget_progress_exactly_full(self):
        assert budget_progress(Decimal("500"), Decimal("500")).is_over_budget is True

    def test_budget_progress_zero_budget(self):
        progress = budget_progress(Decimal("50"), Decimal("0"))
        assert progress.percentage == Decimal("0")
        assert progress.is_over_budget is False

    def test_aggregate_by_category_largest_first(self):
        totals = aggregate_by_category([txn(5, "Bills"), txn(10, "F&B"), txn(7, "Bills")])
        assert [(t.category, t.amount) for t in totals] == [
            ("Bills", Decimal("12")),
            ("F&B", Decimal("10")),
        ]

    def test_aggregate_ties_keep_first_seen(self):
        totals = aggregate_by_category([txn(5, "Travel"), txn(5, "Bills")])
        assert [t.category for t in totals] == ["Travel", "Bills"]

    def test_expense_totals_preserve_total(self):
        transactions = [
            txn(12.5, "F&B"),
            txn(3000, "Salary", "income"),
            txn(40, "Transfer"),
            txn(7.25, "Bills"),
            txn(200, "Transfer", "income"),
            txn(2.5, "F&B"),
            txn(60, "Shopping"),
        ]
        expenses = [t for t in transactions if t.type.value == "expense"]

        totals = expense_totals_by_category(transactions)

        assert sum(t.amount for t in totals) == sum(t.amount for t in expenses) == Decimal("122.25")
        assert [t.category for t in totals] == ["Shopping", "Transfer", "F&B", "Bills"]
        assert "Salary" not in [t.category for t in totals]
        assert next(t.amount for t in totals if t.category == "Transfer") == Decimal("40")

    def test_sort_options(self):
        items = [txn(5, "bills"), txn(20, "Apparel"), txn(10, "F&B")]
        assert [t.amount for t in sort_transactions(items, "highest")] == [20, 10, 5]
        assert [t.category for t in sort_transactions(items, "category")] == ["Apparel", "bills", "F&B"]
        assert sort_transactions(items, "latest") == items
        assert sort_transactions(items, "nonsense") == items

    def test_planned_savings(self, budgets):
        assert planned_savings(budgets) == Decimal("-200")


class TestRecurring:
    def _recurring(self, due, frequency="monthly", active=True):
        return RecurringTransaction(
            amount=100, type="expense", category="Bills",
            frequency=frequency, next_due_date=due, is_active=active,
        )

    def test_month_step_clamps_to_leap_day(self):
        assert next_due_date(self._recurring("2024-01-31T00:00:00")) == datetime(2024, 2, 29)

    def test_month_step_clamps_common_year(self):
        assert next_due_date(self._recurring("2023-01-31T00:00:00")) == datetime(2023, 2, 28)

    def test_weekly_and_yearly(self):
        assert next_due_date(self._recurring("2024-04-10T00:00:00", "weekly")) == datetime(2024, 4, 17)
        assert next_due_date(self._recurring("2024-02-29T00:00:00", "yearly")) == datetime(2025, 2, 28)

    def test_due_and_upcoming(self):
        now = datetime(2024, 4, 10)
        overdue = self._recurring("2024-04-01T00:00:00")
        soon = self._recurring("2024-04-14T00:00:00")
        later = self._recurring("2024-05-30T00:00:00")
        paused = self._recurring("2024-04-01T00:00:00", active=False)

        assert due_recurring([overdue, soon, later, paused], now=now) == [overdue]
        assert upcoming_recurring([overdue, soon, later, paused], now=now) == [soon]
