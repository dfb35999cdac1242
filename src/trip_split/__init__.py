"""TripSplit - Split shared trip expenses and settle them between families."""

__version__ = "0.1.0"

from .config import Settings, load_settings
from .db import Database
from .duplicates import detect_duplicate_expenses, find_duplicate
from .models import (
    Expense,
    Family,
    Participant,
    Settlement,
    SettlementReport,
)
from .service import TripService
from .settlement import (
    aggregate_by_family,
    compute_expense_split,
    compute_participant_balances,
    compute_settlements,
    resolve_targets,
    validate_balance,
)

__all__ = [
    "Settings",
    "load_settings",
    "Database",
    "Expense",
    "Family",
    "Participant",
    "Settlement",
    "SettlementReport",
    "TripService",
    "aggregate_by_family",
    "compute_expense_split",
    "compute_participant_balances",
    "compute_settlements",
    "detect_duplicate_expenses",
    "find_duplicate",
    "resolve_targets",
    "validate_balance",
]
