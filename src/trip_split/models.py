"""Pydantic domain models for TripSplit."""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

SplitType = Literal["all", "families", "participants"]

# ============================================================================
# Roster Models
# ============================================================================


class Trip(BaseModel):
    """A trip whose expenses are settled together."""

    id: str | None = None
    name: str
    base_currency: str = "CNY"
    created_at: datetime = Field(default_factory=datetime.now)


class Participant(BaseModel):
    """A traveler on a trip."""

    id: str
    name: str
    family_id: str | None = None  # None = settles outside any family


class Family(BaseModel):
    """A household whose members settle as one unit.

    Membership is owned by Participant.family_id. The members list is a
    projection of it and is rebuilt by project_family_members().
    """

    id: str
    name: str
    members: list[str] = Field(default_factory=list)


# ============================================================================
# Expense Models
# ============================================================================


class Expense(BaseModel):
    """A shared expense paid by one participant.

    amount_in_base (amount * exchange_rate) is the only amount the
    settlement engine reads.
    """

    id: str | None = None
    payer_id: str
    amount: Decimal
    currency: str
    exchange_rate: Decimal = Decimal("1")
    amount_in_base: Decimal
    description: str = ""
    category: str | None = None
    expense_date: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    split_type: SplitType = "all"
    target_family_ids: list[str] = Field(default_factory=list)  # split_type="families"
    target_participant_ids: list[str] = Field(
        default_factory=list
    )  # split_type="participants"


class ExpenseShare(BaseModel):
    """One participant's itemized share of an expense."""

    participant_id: str
    amount: Decimal


# ============================================================================
# Settlement Models
# ============================================================================


class Settlement(BaseModel):
    """A directed transfer from a debtor family to a creditor family."""

    from_family: str
    to_family: str
    amount: Decimal  # positive, 2 decimals


class BalanceSheet(BaseModel):
    """Participant balances plus the expenses that could not be split."""

    balances: dict[str, Decimal] = Field(default_factory=dict)
    empty_split_expense_ids: list[str] = Field(default_factory=list)


class BalanceValidation(BaseModel):
    """Result of checking that all balances sum to zero."""

    valid: bool
    residual: Decimal
    message: str


class DuplicatePair(BaseModel):
    """Two expenses that look like the same purchase entered twice."""

    first: Expense
    second: Expense
    reason: str


class SettlementReport(BaseModel):
    """Everything computed for a trip in one pass."""

    trip_id: str
    participant_balances: dict[str, Decimal]
    family_balances: dict[str, Decimal]
    settlements: list[Settlement]
    validation: BalanceValidation
    empty_split_expense_ids: list[str] = Field(default_factory=list)


def project_family_members(
    families: list[Family], participants: list[Participant]
) -> list[Family]:
    """Return copies of families with members rebuilt from participant.family_id."""
    members: dict[str, list[str]] = {family.id: [] for family in families}
    for participant in participants:
        if participant.family_id in members:
            members[participant.family_id].append(participant.id)

    return [
        family.model_copy(update={"members": members[family.id]})
        for family in families
    ]
