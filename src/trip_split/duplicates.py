"""Detection of expenses that were probably entered twice."""

import logging
from datetime import datetime, timedelta
from decimal import Decimal

from .models import DuplicatePair, Expense

logger = logging.getLogger(__name__)

DEFAULT_AMOUNT_TOLERANCE = Decimal("0.01")
DEFAULT_WINDOW = timedelta(seconds=60)


def expense_time(expense: Expense, now: datetime) -> datetime:
    """
    When the expense happened: expense_date, else created_at, else now.

    Naive times are taken as local time, so naive and zone-aware values
    compare on one basis.
    """
    return (expense.expense_date or expense.created_at or now).astimezone()



def is_duplicate(
    first: Expense,
    second: Expense,
    now: datetime,
    amount_tolerance: Decimal = DEFAULT_AMOUNT_TOLERANCE,
    window: timedelta = DEFAULT_WINDOW,
) -> bool:
    """
    Check whether two expenses look like the same purchase.

    All must hold: amounts within tolerance, identical description
    (case-sensitive), same payer, and timestamps within the window.
    """
    if abs(first.amount_in_base - second.amount_in_base) > amount_tolerance:
        return False
    if first.description != second.description:
        return False
    if first.payer_id != second.payer_id:
        return False

    time_diff = abs(expense_time(first, now) - expense_time(second, now))
    return time_diff <= window


def find_duplicate(
    existing_expenses: list[Expense],
    candidate: Expense,
    *,
    now: datetime | None = None,
    amount_tolerance: Decimal = DEFAULT_AMOUNT_TOLERANCE,
    window: timedelta = DEFAULT_WINDOW,
) -> Expense | None:
    """
    Find the first existing expense that the candidate duplicates.

    This is advisory: callers decide whether to warn or refuse.

    Args:
        existing_expenses: Expenses already recorded, in list order
        candidate: The expense about to be added
        now: Stand-in time for expenses without expense_date/created_at
        amount_tolerance: Maximum amount difference
        window: Maximum time difference

    Returns:
        The first matching existing expense, or None
    """
    now = now or datetime.now()

    for existing in existing_expenses:
        if is_duplicate(existing, candidate, now, amount_tolerance, window):
            logger.info(
                f"Possible duplicate of expense {existing.id}: "
                f"'{candidate.description}' ({candidate.amount_in_base})"
            )
            return existing

    return None


def detect_duplicate_expenses(
    expenses: list[Expense],
    *,
    now: datetime | None = None,
    amount_tolerance: Decimal = DEFAULT_AMOUNT_TOLERANCE,
    window: timedelta = DEFAULT_WINDOW,
) -> list[DuplicatePair]:
    """
    Report every pair of recorded expenses that look like duplicates.

    Unlike find_duplicate this returns all matches, for auditing a ledger
    after the fact.
    """
    now = now or datetime.now()
    pairs = []

    for i, first in enumerate(expenses):
        for second in expenses[i + 1 :]:
            if not is_duplicate(first, second, now, amount_tolerance, window):
                continue

            seconds_apart = abs(
                expense_time(first, now) - expense_time(second, now)
            ).total_seconds()
            pairs.append(
                DuplicatePair(
                    first=first,
                    second=second,
                    reason=(
                        f"Same amount ({first.amount_in_base}), description and "
                        f"payer, {seconds_apart:.0f}s apart"
                    ),
                )
            )

    return pairs
