"""Tests for the SQLite trip store."""

from datetime import datetime
from decimal import Decimal

import pytest

from trip_split.db import Database
from trip_split.exceptions import RecordNotFoundError
from trip_split.models import Expense, Trip


@pytest.fixture
def db(tmp_path):
    """Create a temporary database."""
    database = Database(tmp_path / "test.db")
    yield database
    database.close()


@pytest.fixture
def trip(db):
    """A saved trip."""
    return db.add_trip(Trip(name="Hokkaido", base_currency="CNY"))


def make_expense(payer_id: str, **overrides) -> Expense:
    """Create an unsaved expense."""
    fields = {
        "payer_id": payer_id,
        "amount": Decimal("1000"),
        "currency": "JPY",
        "exchange_rate": Decimal("0.0485"),
        "amount_in_base": Decimal("48.50"),
        "description": "Ramen",
        "category": "food",
        "expense_date": datetime(2024, 2, 10, 19, 30),
        "split_type": "participants",
        "target_participant_ids": ["p1", "p2"],
    }
    fields.update(overrides)
    return Expense(**fields)


class TestTrips:
    """Tests for trip operations."""

    def test_add_assigns_id(self, trip):
        """A new trip gets a generated ID."""
        assert trip.id is not None
        assert trip.id.startswith("trip_")

    def test_get_round_trip(self, db, trip):
        """A saved trip can be loaded back."""
        assert db.get_trip(trip.id) == trip

    def test_list_newest_first(self, db, trip):
        """Trips are listed newest first."""
        newer = db.add_trip(
            Trip(name="Kyoto", created_at=datetime(2099, 1, 1), base_currency="JPY")
        )

        assert [t.id for t in db.list_trips()] == [newer.id, trip.id]

    def test_missing_trip(self, db):
        """Loading an unknown trip raises RecordNotFoundError."""
        with pytest.raises(RecordNotFoundError) as exc_info:
            db.get_trip("trip_missing")

        assert exc_info.value.kind == "trip"

    def test_delete_cascades(self, db, trip):
        """Deleting a trip removes its roster and expenses."""
        family = db.add_family(trip.id, "Xu")
        participant = db.add_participant(trip.id, "Alice", family.id)
        db.add_expense(trip.id, make_expense(participant.id))

        db.delete_trip(trip.id)

        assert db.list_families(trip.id) == []
        assert db.list_participants(trip.id) == []
        assert db.list_expenses(trip.id) == []
        with pytest.raises(RecordNotFoundError):
            db.get_trip(trip.id)

    def test_delete_missing_trip(self, db):
        """Deleting an unknown trip raises RecordNotFoundError."""
        with pytest.raises(RecordNotFoundError):
            db.delete_trip("trip_missing")


class TestRoster:
    """Tests for families and participants."""

    def test_participants_in_insertion_order(self, db, trip):
        """Participants come back in the order they were added."""
        names = ["Chen", "Alice", "Bob"]
        for name in names:
            db.add_participant(trip.id, name)

        assert [p.name for p in db.list_participants(trip.id)] == names

    def test_family_members_projected(self, db, trip):
        """Family members are derived from participant.family_id."""
        xu = db.add_family(trip.id, "Xu")
        yang = db.add_family(trip.id, "Yang")
        alice = db.add_participant(trip.id, "Alice", xu.id)
        bob = db.add_participant(trip.id, "Bob", yang.id)
        chen = db.add_participant(trip.id, "Chen", yang.id)
        db.add_participant(trip.id, "Dana")

        families = {f.id: f for f in db.list_families(trip.id)}

        assert families[xu.id].members == [alice.id]
        assert families[yang.id].members == [bob.id, chen.id]

    def test_add_to_missing_trip(self, db):
        """Roster records need an existing trip."""
        with pytest.raises(RecordNotFoundError):
            db.add_participant("trip_missing", "Alice")


class TestExpenses:
    """Tests for expense operations."""

    def test_add_assigns_id_and_created_at(self, db, trip):
        """Saving stamps an ID and creation time."""
        saved = db.add_expense(trip.id, make_expense("p1"))

        assert saved.id is not None
        assert saved.id.startswith("e_")
        assert saved.created_at is not None

    def test_round_trip_keeps_decimals_and_targets(self, db, trip):
        """Amounts and split targets survive storage exactly."""
        saved = db.add_expense(trip.id, make_expense("p1"))

        loaded = db.get_expense(trip.id, saved.id)

        assert loaded == saved
        assert loaded.amount_in_base == Decimal("48.50")
        assert loaded.target_participant_ids == ["p1", "p2"]

    def test_family_targets_round_trip(self, db, trip):
        """Family split targets survive storage."""
        saved = db.add_expense(
            trip.id,
            make_expense(
                "p1",
                split_type="families",
                target_family_ids=["f1", "f2"],
                target_participant_ids=[],
                expense_date=None,
            ),
        )

        loaded = db.get_expense(trip.id, saved.id)

        assert loaded.split_type == "families"
        assert loaded.target_family_ids == ["f1", "f2"]
        assert loaded.expense_date is None

    def test_list_in_insertion_order(self, db, trip):
        """Expenses come back in the order they were added."""
        for description in ["Ramen", "Taxi", "Museum"]:
            db.add_expense(trip.id, make_expense("p1", description=description))

        assert [e.description for e in db.list_expenses(trip.id)] == [
            "Ramen",
            "Taxi",
            "Museum",
        ]

    def test_update_merges_fields(self, db, trip):
        """Updates change given fields, keep the rest, and stamp updated_at."""
        saved = db.add_expense(trip.id, make_expense("p1"))

        updated = db.update_expense(
            trip.id, saved.id, {"description": "Sushi", "id": "e_hijack"}
        )

        assert updated.id == saved.id
        assert updated.description == "Sushi"
        assert updated.amount_in_base == saved.amount_in_base
        assert updated.created_at == saved.created_at
        assert updated.updated_at is not None
        assert db.get_expense(trip.id, saved.id) == updated

    def test_delete(self, db, trip):
        """Deleted expenses are gone."""
        saved = db.add_expense(trip.id, make_expense("p1"))

        db.delete_expense(trip.id, saved.id)

        assert db.list_expenses(trip.id) == []
        with pytest.raises(RecordNotFoundError):
            db.delete_expense(trip.id, saved.id)

    def test_expenses_scoped_to_trip(self, db, trip):
        """An expense is not visible from another trip."""
        other = db.add_trip(Trip(name="Other"))
        saved = db.add_expense(trip.id, make_expense("p1"))

        assert db.list_expenses(other.id) == []
        with pytest.raises(RecordNotFoundError):
            db.get_expense(other.id, saved.id)
