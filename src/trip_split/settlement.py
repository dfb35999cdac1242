"""Core settlement logic: splitting expenses, balances, and family transfers."""

import logging
from decimal import ROUND_HALF_UP, Decimal

from .exceptions import EmptySplitError
from .models import (
    BalanceSheet,
    BalanceValidation,
    Expense,
    ExpenseShare,
    Family,
    Participant,
    Settlement,
)

logger = logging.getLogger(__name__)

# One cent. Anything smaller is floating residue, not money.
TOLERANCE = Decimal("0.01")


def round_money(amount: Decimal) -> Decimal:
    """Round to 2 decimal places, halves away from zero."""
    return amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


# ============================================================================
# Split Resolver
# ============================================================================


def resolve_targets(
    expense: Expense,
    participants: list[Participant],
    families: list[Family] | None = None,
) -> list[str]:
    """
    Determine which participants share the cost of an expense.

    Args:
        expense: The expense to split
        participants: Full trip roster
        families: Optional family list, only used to report targeted
                  families that don't exist

    Returns:
        Participant IDs in roster order (or verbatim order for
        split_type="participants"). May be empty.
    """
    if expense.split_type == "all":
        return [p.id for p in participants]

    if expense.split_type == "families":
        targeted = set(expense.target_family_ids)
        if families is not None:
            unknown = targeted - {f.id for f in families}
            if unknown:
                logger.debug(
                    f"Expense {expense.id} targets unknown families: {sorted(unknown)}"
                )
        return [
            p.id for p in participants if p.family_id and p.family_id in targeted
        ]

    # "participants": taken verbatim, no roster check
    return list(expense.target_participant_ids)


def compute_share(expense: Expense, targets: list[str]) -> Decimal:
    """
    Compute the equal per-person share of an expense.

    Raises:
        EmptySplitError: If there is nobody to split between
    """
    if not targets:
        raise EmptySplitError(expense.id or "<new>")
    return expense.amount_in_base / len(targets)


def compute_expense_split(
    expense: Expense,
    participants: list[Participant],
    families: list[Family] | None = None,
) -> list[ExpenseShare]:
    """
    Itemize an expense into per-participant shares for display.

    Each share is rounded independently, so the shares may drift from the
    expense total by up to half a cent per target.

    Raises:
        EmptySplitError: If the expense resolves to no targets
    """
    targets = resolve_targets(expense, participants, families)
    share = compute_share(expense, targets)
    return [
        ExpenseShare(participant_id=target_id, amount=round_money(share))
        for target_id in targets
    ]


# ============================================================================
# Balance Calculator
# ============================================================================


def compute_balance_sheet(
    participants: list[Participant],
    expenses: list[Expense],
    families: list[Family] | None = None,
) -> BalanceSheet:
    """
    Compute every participant's net balance, recording unsplittable expenses.

    Positive = paid more than their share (is owed money).
    Negative = paid less than their share (owes money).

    An expense with no split targets changes nothing (the payer isn't
    credited either) and its ID is listed in empty_split_expense_ids.
    Payer or target IDs outside the roster get their own entries.

    Args:
        participants: Full trip roster
        expenses: All expenses of the trip
        families: Optional family list, passed through to resolve_targets

    Returns:
        Balance sheet at full precision
    """
    balances: dict[str, Decimal] = {p.id: Decimal("0") for p in participants}
    skipped: list[str] = []

    for expense in expenses:
        targets = resolve_targets(expense, participants, families)
        try:
            share = compute_share(expense, targets)
        except EmptySplitError as e:
            logger.warning(f"Skipping expense: {e}")
            skipped.append(e.expense_id)
            continue

        # The payer fronted the whole amount
        balances[expense.payer_id] = (
            balances.get(expense.payer_id, Decimal("0")) + expense.amount_in_base
        )

        for target_id in targets:
            balances[target_id] = balances.get(target_id, Decimal("0")) - share

    return BalanceSheet(balances=balances, empty_split_expense_ids=skipped)


def compute_participant_balances(
    participants: list[Participant], expenses: list[Expense]
) -> dict[str, Decimal]:
    """Compute the net balance per participant ID."""
    return compute_balance_sheet(participants, expenses).balances


# ============================================================================
# Family Aggregator
# ============================================================================


def aggregate_by_family(
    participants: list[Participant], participant_balances: dict[str, Decimal]
) -> dict[str, Decimal]:
    """
    Sum participant balances by family.

    Participants without a family settle outside the family mechanism and
    are left out of every family total.
    """
    family_balances: dict[str, Decimal] = {}

    for participant in participants:
        if not participant.family_id:
            continue
        family_balances[participant.family_id] = family_balances.get(
            participant.family_id, Decimal("0")
        ) + participant_balances.get(participant.id, Decimal("0"))

    return family_balances


# ============================================================================
# Settlement Matcher
# ============================================================================


def compute_settlements(family_balances: dict[str, Decimal]) -> list[Settlement]:
    """
    Compute transfers that zero out all family balances.

    Greedy largest-first matching:
    1. Split families into creditors (> 0) and debtors (< 0, as magnitude)
    2. Sort both descending by amount
    3. Match the largest remaining creditor with the largest remaining debtor
       for min(creditor, debtor)
    4. Advance whichever side dropped below one cent

    This yields at most creditors + debtors - 1 transfers. It is a heuristic,
    not a proven minimum: finding the true minimum is a partition problem.

    Args:
        family_balances: Family ID -> signed balance

    Returns:
        Settlements in matching order, amounts rounded to 2 decimals
    """
    creditors: list[list] = []  # [family_id, remaining]
    debtors: list[list] = []

    for family_id, balance in family_balances.items():
        if balance > 0:
            creditors.append([family_id, balance])
        elif balance < 0:
            debtors.append([family_id, -balance])

    creditors.sort(key=lambda entry: entry[1], reverse=True)
    debtors.sort(key=lambda entry: entry[1], reverse=True)

    settlements: list[Settlement] = []
    i = 0  # creditor index
    j = 0  # debtor index

    while i < len(creditors) and j < len(debtors):
        creditor = creditors[i]
        debtor = debtors[j]

        amount = min(creditor[1], debtor[1])

        # Ignore sub-cent residue
        if amount > TOLERANCE:
            settlements.append(
                Settlement(
                    from_family=debtor[0],
                    to_family=creditor[0],
                    amount=round_money(amount),
                )
            )

        creditor[1] -= amount
        debtor[1] -= amount

        if creditor[1] < TOLERANCE:
            i += 1
        if debtor[1] < TOLERANCE:
            j += 1

    logger.debug(
        f"Matched {len(creditors)} creditors and {len(debtors)} debtors "
        f"into {len(settlements)} settlements"
    )

    return settlements


# ============================================================================
# Balance Validator
# ============================================================================


def validate_balance(
    participants: list[Participant], expenses: list[Expense]
) -> BalanceValidation:
    """
    Check that all participant balances sum to zero (within one cent).

    Returns:
        Validation result with the residual sum
    """
    balances = compute_participant_balances(participants, expenses)
    residual = sum(balances.values(), Decimal("0"))

    if abs(residual) < TOLERANCE:
        return BalanceValidation(valid=True, residual=residual, message="Balanced")

    return BalanceValidation(
        valid=False,
        residual=residual,
        message=f"Unbalanced, residual: {round_money(residual)}",
    )
