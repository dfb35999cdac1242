"""Service layer that composes the trip store, rate lookup and settlement logic.

The settlement functions stay pure; this module loads their inputs from the
database, fills in exchange rates, and guards expenses before they are saved.
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

from .clients.exchange_rate import ExchangeRateClient
from .config import Settings
from .currency import convert_currency
from .db import Database
from .duplicates import detect_duplicate_expenses, find_duplicate
from .exceptions import (
    DuplicateExpenseError,
    InvalidExpenseError,
    RecordNotFoundError,
    UnbalancedLedgerError,
)
from .models import (
    DuplicatePair,
    Expense,
    Family,
    Participant,
    SettlementReport,
    SplitType,
    Trip,
)
from .settlement import (
    aggregate_by_family,
    compute_balance_sheet,
    compute_settlements,
    resolve_targets,
    validate_balance,
)

logger = logging.getLogger(__name__)


class TripService:
    """Service for recording trip expenses and settling them between families."""

    def __init__(self, settings: Settings, database: Database):
        """Initialize the trip service."""
        self.settings = settings
        self.db = database
        self._rate_client: ExchangeRateClient | None = None

    @property
    def rate_client(self) -> ExchangeRateClient:
        """Exchange rate client, created on first use and kept for its cache."""
        if self._rate_client is None:
            self._rate_client = ExchangeRateClient(
                base_url=self.settings.exchange_rate_api_url,
                cache_seconds=self.settings.exchange_rate_cache_seconds,
                timeout=self.settings.exchange_rate_timeout,
            )
        return self._rate_client

    def close(self):
        """Close the exchange rate client if one was opened."""
        if self._rate_client is not None:
            self._rate_client.close()
            self._rate_client = None

    # ------------------------------------------------------------------------
    # Trips and roster
    # ------------------------------------------------------------------------

    def create_trip(self, name: str, base_currency: str | None = None) -> Trip:
        """Create a trip, defaulting to the configured base currency."""
        trip = self.db.add_trip(
            Trip(
                name=name,
                base_currency=(base_currency or self.settings.base_currency).upper(),
            )
        )
        logger.info(f"Created trip {trip.id} ({trip.name}, {trip.base_currency})")
        return trip

    def add_family(self, trip_id: str, name: str) -> Family:
        """Add a family to a trip."""
        family = self.db.add_family(trip_id, name)
        logger.info(f"Added family {family.id} ({name}) to trip {trip_id}")
        return family

    def add_participant(
        self, trip_id: str, name: str, family_id: str | None = None
    ) -> Participant:
        """Add a participant to a trip, optionally inside one of its families."""
        if family_id and family_id not in {
            f.id for f in self.db.list_families(trip_id)
        }:
            raise RecordNotFoundError("family", family_id)

        participant = self.db.add_participant(trip_id, name, family_id)
        logger.info(f"Added participant {participant.id} ({name}) to trip {trip_id}")
        return participant

    def get_roster(self, trip_id: str) -> tuple[list[Participant], list[Family]]:
        """Load a trip's participants and families."""
        self.db.get_trip(trip_id)
        return self.db.list_participants(trip_id), self.db.list_families(trip_id)

    # ------------------------------------------------------------------------
    # Expenses
    # ------------------------------------------------------------------------

    def resolve_exchange_rate(self, from_currency: str, to_currency: str) -> Decimal:
        """Look up the rate to convert an expense into the trip's base currency."""
        if from_currency.upper() == to_currency.upper():
            return Decimal("1")

        rate: Decimal = self.rate_client.auto_fill_rate(from_currency, to_currency)

        logger.info(f"Using exchange rate {from_currency}->{to_currency}: {rate}")
        return rate

    def prepare_expense(
        self,
        trip_id: str,
        payer_id: str,
        amount: Decimal,
        currency: str,
        description: str,
        *,
        exchange_rate: Decimal | None = None,
        category: str | None = None,
        expense_date: datetime | None = None,
        split_type: SplitType = "all",
        target_family_ids: list[str] | None = None,
        target_participant_ids: list[str] | None = None,
    ) -> Expense:
        """
        Build a validated, unsaved expense converted into the base currency.

        Args:
            trip_id: The trip the expense belongs to
            payer_id: Participant who paid
            amount: Amount in the expense's own currency
            currency: Currency code of the amount
            description: What was bought
            exchange_rate: Rate to the base currency; looked up when omitted
            category: Optional category label
            expense_date: When the expense happened
            split_type: "all", "families" or "participants"
            target_family_ids: Families sharing the cost (split_type="families")
            target_participant_ids: Participants sharing the cost
                                    (split_type="participants")

        Returns:
            Expense with amount_in_base filled in

        Raises:
            InvalidExpenseError: If the payer or targets are not on the roster,
                                 or nobody would share the cost
        """
        trip = self.db.get_trip(trip_id)
        currency = currency.upper()
        if exchange_rate is None:
            exchange_rate = self.resolve_exchange_rate(currency, trip.base_currency)

        expense = Expense(
            payer_id=payer_id,
            amount=amount,
            currency=currency,
            exchange_rate=exchange_rate,
            amount_in_base=convert_currency(
                amount, currency, trip.base_currency, exchange_rate
            ),
            description=description,
            category=category,
            expense_date=expense_date,
            split_type=split_type,
            target_family_ids=target_family_ids or [],
            target_participant_ids=target_participant_ids or [],
        )

        self._check_roster(trip_id, expense)
        return expense

    def _check_roster(self, trip_id: str, expense: Expense):
        """
        Check that an expense's payer and split targets are on the trip.

        Raises:
            InvalidExpenseError: If the payer or targets are not on the roster,
                                 or nobody would share the cost
        """
        participants, families = self.get_roster(trip_id)
        participant_ids = {p.id for p in participants}

        if expense.payer_id not in participant_ids:
            raise InvalidExpenseError(
                f"Payer {expense.payer_id} is not on trip {trip_id}"
            )

        if expense.split_type == "families":
            unknown = set(expense.target_family_ids) - {f.id for f in families}
            if unknown:
                raise InvalidExpenseError(f"Unknown families: {sorted(unknown)}")
        elif expense.split_type == "participants":
            unknown = set(expense.target_participant_ids) - participant_ids
            if unknown:
                raise InvalidExpenseError(f"Unknown participants: {sorted(unknown)}")

        if not resolve_targets(expense, participants, families):
            raise InvalidExpenseError(
                f"Nobody would share the cost of '{expense.description}'"
            )

    def check_duplicate(self, trip_id: str, expense: Expense) -> Expense | None:
        """Find an already recorded expense that this one seems to repeat."""
        return find_duplicate(
            self.db.list_expenses(trip_id),
            expense,
            amount_tolerance=self.settings.duplicate_amount_tolerance,
            window=timedelta(seconds=self.settings.duplicate_window_seconds),
        )

    def add_expense(
        self, trip_id: str, expense: Expense, allow_duplicate: bool = True
    ) -> tuple[Expense, Expense | None]:
        """
        Save an expense, reporting a likely duplicate.

        Duplicates are only a warning unless allow_duplicate is False.

        Returns:
            Tuple of (saved expense, duplicate it matched or None)

        Raises:
            DuplicateExpenseError: If a duplicate is found and not allowed
        """
        duplicate = self.check_duplicate(trip_id, expense)
        if duplicate:
            if not allow_duplicate:
                raise DuplicateExpenseError(duplicate.id or "", expense.description)
            logger.warning(
                f"Expense '{expense.description}' may duplicate {duplicate.id}"
            )

        saved = self.db.add_expense(trip_id, expense)
        logger.info(
            f"Added expense {saved.id}: {saved.description} "
            f"({saved.amount_in_base} base, split {saved.split_type})"
        )
        return saved, duplicate

    def update_expense(
        self, trip_id: str, expense_id: str, updates: dict[str, Any]
    ) -> Expense:
        """
        Update an expense, keeping amount_in_base = amount * exchange_rate.

        amount_in_base is recomputed when amount, currency or exchange_rate
        change, unless the update sets it explicitly. The merged expense must
        pass the same roster checks as a new one.

        Raises:
            InvalidExpenseError: If the edit leaves an invalid payer or split
        """
        current = self.db.get_expense(trip_id, expense_id)
        money_fields = {"amount", "currency", "exchange_rate"}
        if money_fields & updates.keys() and "amount_in_base" not in updates:
            trip = self.db.get_trip(trip_id)
            amount = Decimal(str(updates.get("amount", current.amount)))
            currency = str(updates.get("currency", current.currency)).upper()
            rate = Decimal(str(updates.get("exchange_rate", current.exchange_rate)))
            updates = {
                **updates,
                "currency": currency,
                "amount_in_base": convert_currency(
                    amount, currency, trip.base_currency, rate
                ),
            }

        self._check_roster(
            trip_id, Expense.model_validate({**current.model_dump(), **updates})
        )

        updated = self.db.update_expense(trip_id, expense_id, updates)
        logger.info(f"Updated expense {expense_id}: {sorted(updates)}")
        return updated

    def delete_expense(self, trip_id: str, expense_id: str):
        """Delete an expense."""
        self.db.delete_expense(trip_id, expense_id)
        logger.info(f"Deleted expense {expense_id} from trip {trip_id}")

    # ------------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------------

    def build_report(self, trip_id: str, strict: bool = False) -> SettlementReport:
        """
        Run the full settlement pipeline for a trip.

        Args:
            trip_id: The trip to settle
            strict: Raise instead of reporting when balances don't sum to zero

        Returns:
            Participant and family balances, settlements and validation result

        Raises:
            UnbalancedLedgerError: If strict and the ledger is unbalanced
        """
        participants, families = self.get_roster(trip_id)
        expenses = self.db.list_expenses(trip_id)

        sheet = compute_balance_sheet(participants, expenses, families)
        family_balances = aggregate_by_family(participants, sheet.balances)
        settlements = compute_settlements(family_balances)
        validation = validate_balance(participants, expenses)

        if not validation.valid:
            if strict:
                raise UnbalancedLedgerError(validation.residual)
            logger.warning(f"Trip {trip_id}: {validation.message}")

        logger.info(
            f"Trip {trip_id}: {len(expenses)} expenses -> "
            f"{len(settlements)} settlements"
        )

        return SettlementReport(
            trip_id=trip_id,
            participant_balances=sheet.balances,
            family_balances=family_balances,
            settlements=settlements,
            validation=validation,
            empty_split_expense_ids=sheet.empty_split_expense_ids,
        )

    def audit_duplicates(self, trip_id: str) -> list[DuplicatePair]:
        """List every pair of recorded expenses that look like duplicates."""
        self.db.get_trip(trip_id)
        return detect_duplicate_expenses(
            self.db.list_expenses(trip_id),
            amount_tolerance=self.settings.duplicate_amount_tolerance,
            window=timedelta(seconds=self.settings.duplicate_window_seconds),
        )
