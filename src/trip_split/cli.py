"""CLI for TripSplit using Typer."""

import asyncio
import logging
import sys
from decimal import Decimal
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.progress import Progress
from rich.table import Table

from .config import Settings, load_settings
from .exceptions import ImbalanceError, OcrError, TripSplitError
from .ledger import compute_trip_balances, summarize
from .mcp_server import run_server
from .models import ExpenseDraft, ReceiptLineItem, Settlement, Trip
from .service import TripService, load_trip
from .settlement import compute_settlements, unsettled_participants
from .ui import confirm_draft, review_assignments

app = typer.Typer(
    name="trip-split",
    help="Split shared trip expenses and work out who pays whom",
)

console = Console()


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def format_money(amount: Decimal, symbol: str = "$", use_color: bool = True) -> str:
    """
    Format money in accounting style with alignment.

    Negative amounts use parentheses: ($85.02)
    Positive amounts have spaces:      $85.02
    The spaces ensure decimal points align in tables.
    """
    abs_amount = abs(amount)
    if amount < 0:
        if use_color:
            formatted = f"({symbol}[red]{abs_amount:,.2f}[/red])"
        else:
            formatted = f"({symbol}{abs_amount:,.2f})"
    else:
        if use_color:
            formatted = f" [green]{symbol}{abs_amount:,.2f}[/green] "
        else:
            formatted = f" {symbol}{abs_amount:,.2f} "
    return formatted


# ============================================================================
# Display helpers
# ============================================================================


def display_expenses(trip: Trip, symbol: str = "$"):
    """Display the trip's expenses in a table."""
    if not trip.expenses:
        console.print("[yellow]No expenses yet.[/yellow]")
        return

    table = Table(title="Expenses", show_header=True, header_style="bold magenta")
    table.add_column("#", style="dim", width=4)
    table.add_column("Description", style="cyan", width=32)
    table.add_column("Amount", justify="right", width=14)
    table.add_column("Paid by", style="yellow")
    table.add_column("Split", no_wrap=False)

    for i, expense in enumerate(trip.expenses, start=1):
        if expense.kind == "itemized" and expense.item_shares:
            split = ", ".join(
                f"{escape(trip.participant_name(pid))} {share:,.2f}"
                for pid, share in expense.item_shares.items()
            )
        else:
            split = "[dim]equally[/dim]"

        table.add_row(
            str(i),
            escape(expense.description),
            format_money(expense.amount, symbol),
            escape(trip.participant_name(expense.paid_by)),
            split,
        )

    console.print(table)


def display_summary(trip: Trip, symbol: str = "$"):
    """Display trip totals."""
    summary = summarize(trip)

    console.print("\n[bold]Summary:[/bold]")
    console.print(f"  Participants: {len(trip.participants)}")
    console.print(f"  Expenses: {summary.expense_count}")
    console.print(f"  Total spent: {format_money(summary.total, symbol)}")
    console.print(f"  Shared equally: {format_money(summary.regular_total, symbol)}")
    console.print(f"  Itemized: {format_money(summary.itemized_total, symbol)}")
    console.print(
        f"  Equal share per person: "
        f"{format_money(summary.per_person_regular_share, symbol)}"
    )


def display_balances(trip: Trip, balances: dict[str, Decimal], symbol: str = "$"):
    """Display each participant's net balance."""
    table = Table(title="Balances", show_header=True, header_style="bold magenta")
    table.add_column("Participant", style="cyan")
    table.add_column("Balance", justify="right", width=14)
    table.add_column("Status", style="dim")

    for participant in trip.participants:
        balance = balances.get(participant.id, Decimal("0"))
        if balance > 0:
            status = "is owed"
        elif balance < 0:
            status = "owes"
        else:
            status = "settled"
        table.add_row(
            escape(participant.name), format_money(balance, symbol), status
        )

    console.print(table)


def display_settlements(
    trip: Trip,
    balances: dict[str, Decimal],
    settlements: list[Settlement],
    symbol: str = "$",
):
    """Display the settlement plan and any residual imbalance."""
    console.print("\n[bold]Settlement plan:[/bold]")
    if not settlements:
        console.print("  [green]✓ Everyone is settled up[/green]")
    for settlement in settlements:
        console.print(
            f"  {escape(trip.participant_name(settlement.from_id))} pays "
            f"{escape(trip.participant_name(settlement.to_id))} "
            f"{format_money(settlement.amount, symbol)}"
        )

    leftover = unsettled_participants(balances, settlements)
    if leftover:
        names = ", ".join(escape(trip.participant_name(pid)) for pid in leftover)
        console.print(f"  [yellow]⚠️  Not fully settled: {names}[/yellow]")


def display_items(items: list[ReceiptLineItem], trip: Trip, symbol: str = "$"):
    """Display parsed receipt items with their assignees."""
    table = Table(title="Receipt Items", show_header=True, header_style="bold magenta")
    table.add_column("Line", style="dim", width=6)
    table.add_column("Item", style="cyan", width=36)
    table.add_column("Amount", justify="right", width=14)
    table.add_column("Assigned to", style="yellow")

    for item in items:
        assignee = (
            escape(trip.participant_name(item.assigned_to))
            if item.assigned_to
            else "[dim]Unassigned[/dim]"
        )
        table.add_row(
            str(item.line_number),
            escape(item.name),
            format_money(item.amount, symbol),
            assignee,
        )

    console.print(table)
    total = sum((item.amount for item in items), Decimal("0"))
    console.print(f"  Items total: {format_money(total, symbol)}")


def display_trip(trip: Trip, symbol: str = "$"):
    """Display expenses, summary, balances and the settlement plan."""
    balances = compute_trip_balances(trip)
    settlements = compute_settlements(balances)

    console.print()
    display_expenses(trip, symbol)
    display_summary(trip, symbol)
    console.print()
    display_balances(trip, balances, symbol)
    display_settlements(trip, balances, settlements, symbol)


# ============================================================================
# Commands
# ============================================================================


@app.command()
def settle(
    trip_file: Path = typer.Argument(..., help="Trip JSON file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Show balances and the settlement plan for a trip.

    The trip file lists participants (names or {"id", "name"} objects) and
    expenses (description, amount, paid_by, and optionally kind and
    item_shares).
    """
    setup_logging(verbose)

    try:
        settings = load_settings()
        trip = load_trip(trip_file)
        display_trip(trip, settings.currency_symbol)

    except ImbalanceError as e:
        console.print(f"\n[bold red]Unbalanced expense:[/bold red] {e}")
        sys.exit(1)
    except TripSplitError as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        sys.exit(1)
    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)


@app.command()
def parse(
    text_file: str = typer.Argument(..., help="Receipt text file, or - for stdin"),
    trip_file: Path | None = typer.Option(
        None, "--trip", "-t", help="Trip JSON file (roster for assignments)"
    ),
    paid_by: str | None = typer.Option(
        None, "--paid-by", "-p", help="Payer name; builds an itemized expense"
    ),
    description: str = typer.Option(
        "Receipt", "--description", "-d", help="Expense description"
    ),
    review: bool = typer.Option(
        False, "--review", "-r", help="Interactively review every assignment"
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Parse pasted receipt text into line items.

    Use --paid-by to turn the items into an itemized expense on the trip and
    see the updated settlement plan.
    """
    setup_logging(verbose)

    try:
        settings = load_settings()
        service = TripService(settings)
        trip = load_trip(trip_file) if trip_file else Trip()

        if text_file == "-":
            text = sys.stdin.read()
        else:
            text = Path(text_file).read_text(encoding="utf-8")

        items = service.parse_receipt(text, trip)
        _receipt_flow(service, settings, trip, items, paid_by, description, review, yes)

    except ImbalanceError as e:
        console.print(f"\n[bold red]Unbalanced expense:[/bold red] {e}")
        sys.exit(1)
    except TripSplitError as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        sys.exit(1)
    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)


@app.command()
def scan(
    image: Path = typer.Argument(..., help="Receipt image file"),
    trip_file: Path | None = typer.Option(
        None, "--trip", "-t", help="Trip JSON file (roster for assignments)"
    ),
    paid_by: str | None = typer.Option(
        None, "--paid-by", "-p", help="Payer name; builds an itemized expense"
    ),
    description: str = typer.Option(
        "Receipt", "--description", "-d", help="Expense description"
    ),
    review: bool = typer.Option(
        False, "--review", "-r", help="Interactively review every assignment"
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Recognize a receipt photo with the OCR service, then parse its items.

    Requires OCR_API_URL. Works like `parse` once the text is recognized.
    """
    setup_logging(verbose)

    try:
        settings = load_settings()
        service = TripService(settings)
        trip = load_trip(trip_file) if trip_file else Trip()

        with Progress(console=console, transient=True) as progress:
            task = progress.add_task("Recognizing receipt text...", total=1.0)
            items = asyncio.run(
                service.scan_receipt(
                    image,
                    trip,
                    on_progress=lambda fraction: progress.update(
                        task, completed=fraction
                    ),
                )
            )

        _receipt_flow(service, settings, trip, items, paid_by, description, review, yes)

    except OcrError as e:
        console.print(f"\n[bold red]Text recognition failed:[/bold red] {e}")
        console.print(f"  {e.hint}")
        console.print(
            "  [dim]You can also paste the text into a file and run "
            "[cyan]trip-split parse[/cyan].[/dim]"
        )
        sys.exit(1)
    except ImbalanceError as e:
        console.print(f"\n[bold red]Unbalanced expense:[/bold red] {e}")
        sys.exit(1)
    except TripSplitError as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        sys.exit(1)
    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)


@app.command()
def mcp():
    """Start the MCP server for assistant integration."""
    run_server()


def _receipt_flow(
    service: TripService,
    settings: Settings,
    trip: Trip,
    items: list[ReceiptLineItem],
    paid_by: str | None,
    description: str,
    review: bool,
    yes: bool,
):
    """Show parsed items, optionally review them and commit them to the trip."""
    symbol = settings.currency_symbol

    if not items:
        console.print(
            "[yellow]No line items detected. Check the text, or enter the "
            "expense manually.[/yellow]"
        )
        return

    console.print(f"[green]Found {len(items)} items[/green]\n")

    if review:
        if not trip.participants:
            console.print("[yellow]No participants to assign items to.[/yellow]")
        else:
            console.print("\n[bold blue]Reviewing assignments...[/bold blue]")
            review_assignments(items, trip.participants)

    display_items(items, trip, symbol)

    if not paid_by:
        return

    draft = service.create_draft(trip, items, description, paid_by)
    _show_draft_status(draft, symbol)

    if not yes and not confirm_draft(draft, trip.participants):
        console.print("[yellow]Cancelled.[/yellow]")
        return

    trip = service.apply_draft(trip, draft)
    console.print(f"\n[green]✓ Added '{escape(draft.description)}'[/green]")
    display_trip(trip, symbol)


def _show_draft_status(draft: ExpenseDraft, symbol: str):
    if draft.is_fully_assigned:
        console.print("  [green]✓ Every item is assigned[/green]")
    else:
        console.print(
            f"  [yellow]⚠️  {len(draft.unassigned_items)} items unassigned "
            f"({format_money(draft.unassigned_total, symbol, use_color=False)})"
            f"[/yellow]"
        )


if __name__ == "__main__":
    app()
