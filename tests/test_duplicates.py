"""Tests for duplicate expense detection."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from trip_split.duplicates import detect_duplicate_expenses, find_duplicate
from trip_split.models import Expense

BASE_TIME = datetime(2024, 5, 1, 12, 0, 0)


def make_expense(
    id: str | None = None,
    amount: str = "88.00",
    description: str = "Dinner",
    payer_id: str = "A",
    expense_date: datetime | None = BASE_TIME,
    created_at: datetime | None = None,
) -> Expense:
    """Create an expense for duplicate checks."""
    return Expense(
        id=id,
        payer_id=payer_id,
        amount=Decimal(amount),
        currency="CNY",
        amount_in_base=Decimal(amount),
        description=description,
        expense_date=expense_date,
        created_at=created_at,
    )


@pytest.fixture
def existing():
    """One recorded expense at BASE_TIME."""
    return [make_expense(id="e1")]


class TestFindDuplicate:
    """Tests for find_duplicate."""

    def test_ten_seconds_apart_is_duplicate(self, existing):
        """Same amount, description and payer 10 seconds apart is flagged."""
        candidate = make_expense(expense_date=BASE_TIME + timedelta(seconds=10))

        assert find_duplicate(existing, candidate) == existing[0]

    def test_five_minutes_apart_is_not_duplicate(self, existing):
        """The same purchase 5 minutes later is a separate expense."""
        candidate = make_expense(expense_date=BASE_TIME + timedelta(minutes=5))

        assert find_duplicate(existing, candidate) is None

    def test_window_is_inclusive(self, existing):
        """Exactly 60 seconds apart still counts."""
        candidate = make_expense(expense_date=BASE_TIME - timedelta(seconds=60))

        assert find_duplicate(existing, candidate) == existing[0]

    def test_amount_within_a_cent(self, existing):
        """Amounts within a cent match."""
        candidate = make_expense(amount="88.005")

        assert find_duplicate(existing, candidate) == existing[0]

    def test_amount_more_than_a_cent_apart(self, existing):
        """Amounts more than a cent apart don't match."""
        candidate = make_expense(amount="88.02")

        assert find_duplicate(existing, candidate) is None

    def test_description_is_case_sensitive(self, existing):
        """Descriptions must match exactly."""
        candidate = make_expense(description="dinner")

        assert find_duplicate(existing, candidate) is None

    def test_different_payer(self, existing):
        """A different payer is a different expense."""
        candidate = make_expense(payer_id="B")

        assert find_duplicate(existing, candidate) is None

    def test_falls_back_to_created_at(self):
        """Without expense_date, created_at is compared."""
        recorded = [make_expense(id="e1", expense_date=None, created_at=BASE_TIME)]
        candidate = make_expense(expense_date=None, created_at=BASE_TIME)

        assert find_duplicate(recorded, candidate) == recorded[0]

    def test_falls_back_to_now(self):
        """A candidate without any timestamp is compared as happening now."""
        now = datetime(2024, 5, 2, 9, 0, 0)
        recorded = [make_expense(id="e1", expense_date=now - timedelta(seconds=30))]
        candidate = make_expense(expense_date=None)

        assert find_duplicate(recorded, candidate, now=now) == recorded[0]

    def test_returns_first_match(self):
        """Only the first matching expense in list order is returned."""
        recorded = [
            make_expense(id="e1", description="Taxi"),
            make_expense(id="e2"),
            make_expense(id="e3"),
        ]

        match = find_duplicate(recorded, make_expense())

        assert match is not None
        assert match.id == "e2"

    def test_no_existing_expenses(self):
        """An empty ledger has no duplicates."""
        assert find_duplicate([], make_expense()) is None

    def test_custom_window(self, existing):
        """A wider window catches expenses further apart."""
        candidate = make_expense(expense_date=BASE_TIME + timedelta(minutes=5))

        match = find_duplicate(existing, candidate, window=timedelta(minutes=10))

        assert match == existing[0]

    def test_mixed_naive_and_aware_times(self, existing):
        """A zone-aware date is compared with naive local times."""
        local = BASE_TIME.astimezone() + timedelta(seconds=10)
        candidate = make_expense(expense_date=local.astimezone(timezone.utc))

        assert find_duplicate(existing, candidate) == existing[0]

    def test_mixed_times_outside_window(self):
        """A naive created_at an hour away from an aware date is no match."""
        recorded = [make_expense(id="e1", expense_date=None, created_at=BASE_TIME)]
        later = BASE_TIME.astimezone() + timedelta(hours=1)
        candidate = make_expense(expense_date=later.astimezone(timezone.utc))

        assert find_duplicate(recorded, candidate) is None


class TestDetectDuplicateExpenses:
    """Tests for detect_duplicate_expenses."""

    def test_reports_every_pair(self):
        """Three copies of one expense give three pairs."""
        expenses = [
            make_expense(id="e1"),
            make_expense(id="e2", expense_date=BASE_TIME + timedelta(seconds=10)),
            make_expense(id="e3", expense_date=BASE_TIME + timedelta(seconds=20)),
        ]

        pairs = detect_duplicate_expenses(expenses)

        assert [(p.first.id, p.second.id) for p in pairs] == [
            ("e1", "e2"),
            ("e1", "e3"),
            ("e2", "e3"),
        ]
        assert "10s apart" in pairs[0].reason

    def test_clean_ledger(self):
        """Distinct expenses produce no pairs."""
        expenses = [
            make_expense(id="e1"),
            make_expense(id="e2", description="Taxi"),
            make_expense(id="e3", expense_date=BASE_TIME + timedelta(hours=1)),
        ]

        assert detect_duplicate_expenses(expenses) == []
