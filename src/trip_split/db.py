"""SQLite database operations for TripSplit."""

import json
import sqlite3
import uuid
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any

from .exceptions import RecordNotFoundError
from .models import Expense, Family, Participant, Trip, project_family_members


def new_id(prefix: str) -> str:
    """Generate a record ID such as 'e_3f9a1c2b7d4e'."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


class Database:
    """SQLite database manager."""

    def __init__(self, db_path: Path):
        """Initialize database connection."""
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path))
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        self._init_schema()

    def _init_schema(self):
        """Initialize database schema."""
        cursor = self.conn.cursor()

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS trips (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                base_currency TEXT NOT NULL,
                created_at TIMESTAMP NOT NULL
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS families (
                id TEXT PRIMARY KEY,
                trip_id TEXT NOT NULL REFERENCES trips(id) ON DELETE CASCADE,
                name TEXT NOT NULL,
                position INTEGER NOT NULL
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS participants (
                id TEXT PRIMARY KEY,
                trip_id TEXT NOT NULL REFERENCES trips(id) ON DELETE CASCADE,
                name TEXT NOT NULL,
                family_id TEXT,
                position INTEGER NOT NULL
            )
        """
        )

        # Target lists are JSON arrays; amounts are Decimal strings
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS expenses (
                id TEXT PRIMARY KEY,
                trip_id TEXT NOT NULL REFERENCES trips(id) ON DELETE CASCADE,
                payer_id TEXT NOT NULL,
                amount TEXT NOT NULL,
                currency TEXT NOT NULL,
                exchange_rate TEXT NOT NULL,
                amount_in_base TEXT NOT NULL,
                description TEXT NOT NULL,
                category TEXT,
                expense_date TIMESTAMP,
                created_at TIMESTAMP NOT NULL,
                updated_at TIMESTAMP,
                split_type TEXT NOT NULL,
                target_family_ids TEXT NOT NULL,
                target_participant_ids TEXT NOT NULL,
                position INTEGER NOT NULL
            )
        """
        )

        self.conn.commit()

    def close(self):
        """Close database connection."""
        self.conn.close()

    def _next_position(self, table: str, trip_id: str) -> int:
        """Next insertion-order position for a trip's rows in table."""
        cursor = self.conn.cursor()
        cursor.execute(
            f"SELECT COALESCE(MAX(position), -1) + 1 AS pos FROM {table} "
            f"WHERE trip_id = ?",
            (trip_id,),
        )
        return int(cursor.fetchone()["pos"])

    # ========================================================================
    # Trip operations
    # ========================================================================

    def add_trip(self, trip: Trip) -> Trip:
        """Save a new trip, assigning its ID."""
        saved = trip.model_copy(update={"id": trip.id or new_id("trip")})
        self.conn.execute(
            """
            INSERT INTO trips (id, name, base_currency, created_at)
            VALUES (?, ?, ?, ?)
            """,
            (
                saved.id,
                saved.name,
                saved.base_currency,
                saved.created_at.isoformat(),
            ),
        )
        self.conn.commit()
        return saved

    def get_trip(self, trip_id: str) -> Trip:
        """Get a trip by ID."""
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT id, name, base_currency, created_at FROM trips WHERE id = ?",
            (trip_id,),
        )
        row = cursor.fetchone()
        if not row:
            raise RecordNotFoundError("trip", trip_id)

        return Trip(
            id=row["id"],
            name=row["name"],
            base_currency=row["base_currency"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def list_trips(self) -> list[Trip]:
        """Get all trips, newest first."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT id, name, base_currency, created_at
            FROM trips
            ORDER BY created_at DESC
            """
        )
        return [
            Trip(
                id=row["id"],
                name=row["name"],
                base_currency=row["base_currency"],
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in cursor.fetchall()
        ]

    def delete_trip(self, trip_id: str):
        """Delete a trip with its participants, families and expenses."""
        cursor = self.conn.cursor()
        cursor.execute("DELETE FROM trips WHERE id = ?", (trip_id,))
        if cursor.rowcount == 0:
            raise RecordNotFoundError("trip", trip_id)
        self.conn.commit()

    # ========================================================================
    # Roster operations
    # ========================================================================

    def add_family(self, trip_id: str, name: str) -> Family:
        """Save a new family for a trip."""
        self.get_trip(trip_id)
        family = Family(id=new_id("f"), name=name)
        self.conn.execute(
            "INSERT INTO families (id, trip_id, name, position) VALUES (?, ?, ?, ?)",
            (family.id, trip_id, family.name, self._next_position("families", trip_id)),
        )
        self.conn.commit()
        return family

    def list_families(self, trip_id: str) -> list[Family]:
        """Get a trip's families with members projected from the participants."""
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT id, name FROM families WHERE trip_id = ? ORDER BY position",
            (trip_id,),
        )
        families = [Family(id=row["id"], name=row["name"]) for row in cursor.fetchall()]
        return project_family_members(families, self.list_participants(trip_id))

    def add_participant(
        self, trip_id: str, name: str, family_id: str | None = None
    ) -> Participant:
        """Save a new participant for a trip."""
        self.get_trip(trip_id)
        participant = Participant(id=new_id("p"), name=name, family_id=family_id)
        self.conn.execute(
            """
            INSERT INTO participants (id, trip_id, name, family_id, position)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                participant.id,
                trip_id,
                participant.name,
                participant.family_id,
                self._next_position("participants", trip_id),
            ),
        )
        self.conn.commit()
        return participant

    def list_participants(self, trip_id: str) -> list[Participant]:
        """Get a trip's participants in the order they were added."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT id, name, family_id
            FROM participants
            WHERE trip_id = ?
            ORDER BY position
            """,
            (trip_id,),
        )
        return [
            Participant(id=row["id"], name=row["name"], family_id=row["family_id"])
            for row in cursor.fetchall()
        ]

    # ========================================================================
    # Expense operations
    # ========================================================================

    def add_expense(self, trip_id: str, expense: Expense) -> Expense:
        """Save a new expense, assigning its ID and creation time."""
        self.get_trip(trip_id)
        saved = expense.model_copy(
            update={"id": new_id("e"), "created_at": datetime.now()}
        )
        self.conn.execute(
            """
            INSERT INTO expenses (
                id, trip_id, payer_id, amount, currency, exchange_rate,
                amount_in_base, description, category, expense_date,
                created_at, updated_at, split_type, target_family_ids,
                target_participant_ids, position
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                saved.id,
                trip_id,
                *self._expense_values(saved),
                self._next_position("expenses", trip_id),
            ),
        )
        self.conn.commit()
        return saved

    def get_expense(self, trip_id: str, expense_id: str) -> Expense:
        """Get an expense by ID."""
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT * FROM expenses WHERE trip_id = ? AND id = ?",
            (trip_id, expense_id),
        )
        row = cursor.fetchone()
        if not row:
            raise RecordNotFoundError("expense", expense_id)
        return self._row_to_expense(row)

    def list_expenses(self, trip_id: str) -> list[Expense]:
        """Get a trip's expenses in the order they were added."""
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT * FROM expenses WHERE trip_id = ? ORDER BY position",
            (trip_id,),
        )
        return [self._row_to_expense(row) for row in cursor.fetchall()]

    def update_expense(
        self, trip_id: str, expense_id: str, updates: dict[str, Any]
    ) -> Expense:
        """Merge field updates into an expense and stamp updated_at."""
        current = self.get_expense(trip_id, expense_id)
        protected = {"id", "created_at"}
        merged = Expense.model_validate(
            {
                **current.model_dump(),
                **{k: v for k, v in updates.items() if k not in protected},
                "updated_at": datetime.now(),
            }
        )
        self.conn.execute(
            """
            UPDATE expenses SET
                payer_id = ?, amount = ?, currency = ?, exchange_rate = ?,
                amount_in_base = ?, description = ?, category = ?,
                expense_date = ?, created_at = ?, updated_at = ?,
                split_type = ?, target_family_ids = ?, target_participant_ids = ?
            WHERE trip_id = ? AND id = ?
            """,
            (*self._expense_values(merged), trip_id, expense_id),
        )
        self.conn.commit()
        return merged

    def delete_expense(self, trip_id: str, expense_id: str):
        """Delete an expense."""
        cursor = self.conn.cursor()
        cursor.execute(
            "DELETE FROM expenses WHERE trip_id = ? AND id = ?",
            (trip_id, expense_id),
        )
        if cursor.rowcount == 0:
            raise RecordNotFoundError("expense", expense_id)
        self.conn.commit()

    @staticmethod
    def _expense_values(expense: Expense) -> tuple:
        """Column values for an expense, from payer_id to target_participant_ids."""
        return (
            expense.payer_id,
            str(expense.amount),
            expense.currency,
            str(expense.exchange_rate),
            str(expense.amount_in_base),
            expense.description,
            expense.category,
            expense.expense_date.isoformat() if expense.expense_date else None,
            expense.created_at.isoformat() if expense.created_at else None,
            expense.updated_at.isoformat() if expense.updated_at else None,
            expense.split_type,
            json.dumps(expense.target_family_ids),
            json.dumps(expense.target_participant_ids),
        )

    @staticmethod
    def _row_to_expense(row: sqlite3.Row) -> Expense:
        """Build an Expense from an expenses row."""
        return Expense(
            id=row["id"],
            payer_id=row["payer_id"],
            amount=Decimal(row["amount"]),
            currency=row["currency"],
            exchange_rate=Decimal(row["exchange_rate"]),
            amount_in_base=Decimal(row["amount_in_base"]),
            description=row["description"],
            category=row["category"],
            expense_date=(
                datetime.fromisoformat(row["expense_date"])
                if row["expense_date"]
                else None
            ),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=(
                datetime.fromisoformat(row["updated_at"]) if row["updated_at"] else None
            ),
            split_type=row["split_type"],
            target_family_ids=json.loads(row["target_family_ids"]),
            target_participant_ids=json.loads(row["target_participant_ids"]),
        )
