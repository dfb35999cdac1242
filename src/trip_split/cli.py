"""CLI for TripSplit using Typer."""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal, InvalidOperation

import typer
from rich.console import Console
from rich.table import Table

from .config import load_settings
from .currency import get_currency_symbol
from .db import Database
from .exceptions import EmptySplitError
from .models import Expense, Family, Participant, SettlementReport
from .service import TripService
from .settlement import compute_expense_split

app = typer.Typer(
    name="trip-split",
    help="Split shared trip expenses and settle them between families",
)

console = Console()

DATE_FORMATS = ["%Y-%m-%d", "%Y-%m-%d %H:%M", "%Y-%m-%dT%H:%M:%S"]


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


@contextmanager
def open_service(verbose: bool = False) -> Iterator[TripService]:
    """Load settings and the database, report errors, and close on exit."""
    setup_logging(verbose)
    db = None
    service = None

    try:
        settings = load_settings()
        db = Database(settings.database_path)
        service = TripService(settings, db)
        yield service
    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)
    finally:
        if service is not None:
            service.close()
        if db is not None:
            db.close()


def parse_amount(value: str) -> Decimal:
    """Parse a money amount given on the command line."""
    try:
        amount = Decimal(value)
    except InvalidOperation:
        raise typer.BadParameter(f"'{value}' is not a valid amount") from None
    if not amount.is_finite() or amount <= 0:
        raise typer.BadParameter("Amount must be a positive number")
    return amount


def format_money(amount: Decimal, currency: str = "", use_color: bool = True) -> str:
    """
    Format money in accounting style with alignment.

    Negative amounts use parentheses: (¥85.02)
    Positive amounts have spaces:      ¥85.02
    """
    symbol = get_currency_symbol(currency) if currency else ""
    abs_amount = abs(amount)
    if amount < 0:
        if use_color:
            return f"({symbol}[red]{abs_amount:,.2f}[/red])"
        return f"({symbol}{abs_amount:,.2f})"
    if use_color:
        return f" [green]{symbol}{abs_amount:,.2f}[/green] "
    return f" {symbol}{abs_amount:,.2f} "


def _name_lookup(
    participants: list[Participant], families: list[Family]
) -> dict[str, str]:
    """Map participant and family IDs to display names."""
    names = {p.id: p.name for p in participants}
    names.update({f.id: f.name for f in families})
    return names


# ============================================================================
# Trips
# ============================================================================


@app.command("new-trip")
def new_trip(
    name: str = typer.Argument(..., help="Trip name"),
    currency: str | None = typer.Option(
        None, "--currency", help="Base currency (default from settings)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Create a new trip."""
    with open_service(verbose) as service:
        trip = service.create_trip(name, currency)
        console.print(
            f"[bold green]✓ Created trip {trip.name}[/bold green] "
            f"([cyan]{trip.id}[/cyan], base currency {trip.base_currency})"
        )


@app.command()
def trips(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """List all trips."""
    with open_service(verbose) as service:
        all_trips = service.db.list_trips()
        if not all_trips:
            console.print("[yellow]No trips yet.[/yellow]")
            return

        table = Table(title="Trips", show_header=True, header_style="bold magenta")
        table.add_column("ID", style="cyan")
        table.add_column("Name")
        table.add_column("Currency", justify="center")
        table.add_column("Created", style="dim")
        for trip in all_trips:
            table.add_row(
                trip.id,
                trip.name,
                trip.base_currency,
                trip.created_at.strftime("%Y-%m-%d %H:%M"),
            )
        console.print(table)


@app.command("delete-trip")
def delete_trip(
    trip_id: str = typer.Argument(..., help="Trip ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Delete a trip with all of its participants, families and expenses."""
    with open_service(verbose) as service:
        trip = service.db.get_trip(trip_id)
        if not yes:
            confirm = input(f"Delete trip '{trip.name}'? [y/N] ").strip().lower()
            if confirm not in ("y", "yes"):
                console.print("[yellow]Cancelled.[/yellow]")
                return

        service.db.delete_trip(trip_id)
        console.print(f"[green]✓ Deleted trip {trip.name}[/green]")


# ============================================================================
# Roster
# ============================================================================


@app.command("add-family")
def add_family(
    trip_id: str = typer.Argument(..., help="Trip ID"),
    name: str = typer.Argument(..., help="Family name"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Add a family to a trip."""
    with open_service(verbose) as service:
        family = service.add_family(trip_id, name)
        console.print(
            f"[green]✓ Added family {name}[/green] ([cyan]{family.id}[/cyan])"
        )


@app.command("add-participant")
def add_participant(
    trip_id: str = typer.Argument(..., help="Trip ID"),
    name: str = typer.Argument(..., help="Participant name"),
    family_id: str | None = typer.Option(
        None, "--family", "-f", help="Family ID (omit for an unaffiliated traveler)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Add a participant to a trip."""
    with open_service(verbose) as service:
        participant = service.add_participant(trip_id, name, family_id)
        console.print(
            f"[green]✓ Added participant {name}[/green] "
            f"([cyan]{participant.id}[/cyan])"
        )


@app.command()
def roster(
    trip_id: str = typer.Argument(..., help="Trip ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show a trip's families and participants."""
    with open_service(verbose) as service:
        participants, families = service.get_roster(trip_id)
        family_names = {f.id: f.name for f in families}

        table = Table(title="Roster", show_header=True, header_style="bold magenta")
        table.add_column("ID", style="cyan")
        table.add_column("Name")
        table.add_column("Family", style="yellow")
        for participant in participants:
            family = (
                family_names.get(participant.family_id, participant.family_id)
                if participant.family_id
                else "[dim]—[/dim]"
            )
            table.add_row(participant.id, participant.name, family)
        console.print(table)

        for family in families:
            console.print(
                f"  [yellow]{family.name}[/yellow] ([cyan]{family.id}[/cyan]): "
                f"{len(family.members)} members"
            )


# ============================================================================
# Expenses
# ============================================================================


@app.command("add-expense")
def add_expense(
    trip_id: str = typer.Argument(..., help="Trip ID"),
    payer_id: str = typer.Argument(..., help="Participant ID of the payer"),
    amount: str = typer.Argument(..., help="Amount paid"),
    description: str = typer.Argument(..., help="What was bought"),
    currency: str | None = typer.Option(
        None, "--currency", "-c", help="Currency (default: trip base currency)"
    ),
    rate: str | None = typer.Option(
        None, "--rate", help="Exchange rate to base currency (looked up if omitted)"
    ),
    category: str | None = typer.Option(None, "--category", help="Category label"),
    expense_date: datetime | None = typer.Option(
        None, "--date", formats=DATE_FORMATS, help="When the expense happened"
    ),
    split: str = typer.Option(
        "all", "--split", "-s", help="Split type: all, families or participants"
    ),
    families: list[str] | None = typer.Option(
        None, "--family", "-f", help="Family sharing the cost (repeatable)"
    ),
    participants: list[str] | None = typer.Option(
        None, "--participant", "-p", help="Participant sharing the cost (repeatable)"
    ),
    yes: bool = typer.Option(
        False, "--yes", "-y", help="Add even if it looks like a duplicate"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Record an expense.

    Amounts in a foreign currency are converted to the trip's base currency.
    If the expense looks like one recorded in the last minute, you are asked
    to confirm before it is added.
    """
    if split not in ("all", "families", "participants"):
        raise typer.BadParameter("--split must be all, families or participants")
    paid = parse_amount(amount)
    exchange_rate = parse_amount(rate) if rate else None

    with open_service(verbose) as service:
        trip = service.db.get_trip(trip_id)
        expense = service.prepare_expense(
            trip_id,
            payer_id,
            paid,
            currency or trip.base_currency,
            description,
            exchange_rate=exchange_rate,
            category=category,
            expense_date=expense_date,
            split_type=split,  # type: ignore[arg-type]
            target_family_ids=families,
            target_participant_ids=participants,
        )

        duplicate = service.check_duplicate(trip_id, expense)
        if duplicate and not yes:
            console.print(
                f"\n[bold yellow]⚠️  This looks like a duplicate of "
                f"'{duplicate.description}' ({duplicate.id}, "
                f"{format_money(duplicate.amount_in_base, trip.base_currency)})"
                f"[/bold yellow]"
            )
            confirm = input("Add it anyway? [y/N] ").strip().lower()
            if confirm not in ("y", "yes"):
                console.print("[yellow]Cancelled.[/yellow]")
                return

        saved, _ = service.add_expense(trip_id, expense)
        console.print(
            f"[bold green]✓ Added expense[/bold green] [cyan]{saved.id}[/cyan]: "
            f"{saved.description} "
            f"{format_money(saved.amount_in_base, trip.base_currency)}"
        )


@app.command()
def expenses(
    trip_id: str = typer.Argument(..., help="Trip ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """List a trip's expenses with each person's share."""
    with open_service(verbose) as service:
        trip = service.db.get_trip(trip_id)
        participants, families = service.get_roster(trip_id)
        names = _name_lookup(participants, families)
        trip_expenses = service.db.list_expenses(trip_id)

        if not trip_expenses:
            console.print("[yellow]No expenses recorded.[/yellow]")
            return

        table = Table(title=trip.name, show_header=True, header_style="bold magenta")
        table.add_column("ID", style="dim")
        table.add_column("Date", style="dim")
        table.add_column("Description", style="cyan", max_width=30)
        table.add_column("Paid by")
        table.add_column("Amount", justify="right")
        table.add_column("Base", justify="right")
        table.add_column("Split", style="yellow")
        table.add_column("Share", justify="right")

        for expense in trip_expenses:
            table.add_row(
                *_expense_row(
                    expense, participants, families, names, trip.base_currency
                )
            )

        console.print(table)


def _expense_row(
    expense: Expense,
    participants: list[Participant],
    families: list[Family],
    names: dict[str, str],
    base_currency: str,
) -> list[str]:
    """Table cells for one expense."""
    try:
        shares = compute_expense_split(expense, participants, families)
        share = format_money(shares[0].amount, base_currency, use_color=False)
        split = f"{expense.split_type} ({len(shares)})"
    except EmptySplitError:
        share = "[red]—[/red]"
        split = f"{expense.split_type} [red](nobody)[/red]"

    when = expense.expense_date or expense.created_at
    return [
        expense.id or "",
        when.strftime("%Y-%m-%d") if when else "",
        expense.description,
        names.get(expense.payer_id, expense.payer_id),
        f"{expense.amount:,.2f} {expense.currency}",
        format_money(expense.amount_in_base, base_currency),
        split,
        share,
    ]


@app.command("delete-expense")
def delete_expense(
    trip_id: str = typer.Argument(..., help="Trip ID"),
    expense_id: str = typer.Argument(..., help="Expense ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Delete an expense."""
    with open_service(verbose) as service:
        service.delete_expense(trip_id, expense_id)
        console.print(f"[green]✓ Deleted expense {expense_id}[/green]")


@app.command()
def duplicates(
    trip_id: str = typer.Argument(..., help="Trip ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Find pairs of recorded expenses that look like duplicates."""
    with open_service(verbose) as service:
        pairs = service.audit_duplicates(trip_id)
        if not pairs:
            console.print("[green]✓ No likely duplicates[/green]")
            return

        for pair in pairs:
            console.print(
                f"[yellow]⚠️  {pair.first.id} / {pair.second.id}[/yellow] "
                f"'{pair.first.description}': {pair.reason}"
            )


# ============================================================================
# Settlement
# ============================================================================


@app.command()
def settle(
    trip_id: str = typer.Argument(..., help="Trip ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show balances and the transfers that settle a trip between families."""
    with open_service(verbose) as service:
        trip = service.db.get_trip(trip_id)
        participants, families = service.get_roster(trip_id)
        report = service.build_report(trip_id)
        display_report(
            report, _name_lookup(participants, families), trip.base_currency
        )


def display_report(report: SettlementReport, names: dict[str, str], currency: str):
    """Display a settlement report as tables."""
    table = Table(title="Participant Balances", header_style="bold magenta")
    table.add_column("Participant")
    table.add_column("Balance", justify="right")
    for participant_id, balance in report.participant_balances.items():
        table.add_row(
            names.get(participant_id, participant_id),
            format_money(balance, currency),
        )
    console.print(table)

    table = Table(title="Family Balances", header_style="bold magenta")
    table.add_column("Family", style="yellow")
    table.add_column("Balance", justify="right")
    for family_id, balance in report.family_balances.items():
        table.add_row(names.get(family_id, family_id), format_money(balance, currency))
    console.print(table)

    if report.settlements:
        table = Table(title="Settlements", header_style="bold magenta")
        table.add_column("From", style="red")
        table.add_column("")
        table.add_column("To", style="green")
        table.add_column("Amount", justify="right")
        for settlement in report.settlements:
            table.add_row(
                names.get(settlement.from_family, settlement.from_family),
                "→",
                names.get(settlement.to_family, settlement.to_family),
                format_money(settlement.amount, currency, use_color=False),
            )
        console.print(table)
    else:
        console.print("[green]✓ All families are settled up[/green]")

    for expense_id in report.empty_split_expense_ids:
        console.print(
            f"[yellow]⚠️  Expense {expense_id} has nobody to split between "
            f"and was left out[/yellow]"
        )

    if report.validation.valid:
        console.print("  [green]✓ Balances sum to zero[/green]")
    else:
        console.print(f"  [red]✗ {report.validation.message}[/red]")


@app.command()
def validate(
    trip_id: str = typer.Argument(..., help="Trip ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Check that a trip's balances sum to zero."""
    with open_service(verbose) as service:
        report = service.build_report(trip_id)
        if report.validation.valid:
            console.print("[green]✓ Balances sum to zero[/green]")
            return

        console.print(f"[red]✗ {report.validation.message}[/red]")
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
