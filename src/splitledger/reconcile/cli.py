"""CLI commands for reconciling a ledger snapshot."""

import logging
import sys
from pathlib import Path

import typer

from ..config import load_settings
from ..exceptions import LedgerError
from ..ingest import load_snapshot
from .service import LedgerService
from .ui import (
    console,
    display_allocation,
    display_balances,
    display_feed,
    display_health,
    display_report,
)

app = typer.Typer(
    name="reconcile",
    help="Check, balance and split a shared-expense ledger snapshot",
)


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def _load_service(snapshot_path: Path) -> LedgerService:
    settings = load_settings()
    return LedgerService(settings, load_snapshot(snapshot_path))


def _fail(e: Exception, verbose: bool):
    console.print(f"\n[bold red]Error:[/bold red] {e}")
    if verbose:
        raise e
    sys.exit(1)


@app.command("check")
def check_command(
    snapshot: Path = typer.Argument(..., help="Ledger snapshot JSON file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Run the integrity checks over a snapshot.

    Exits with status 1 when any error-level finding is reported.
    """
    setup_logging(verbose)

    try:
        service = _load_service(snapshot)
        report = service.check()
    except LedgerError as e:
        _fail(e, verbose)
        return

    display_report(report)
    if report.has_errors:
        sys.exit(1)


@app.command("balances")
def balances_command(
    snapshot: Path = typer.Argument(..., help="Ledger snapshot JSON file"),
    participant: str | None = typer.Option(
        None, "--participant", "-p", help="Show the activity feed for one participant"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show who owes the owner and whom the owner owes."""
    setup_logging(verbose)

    try:
        service = _load_service(snapshot)
        balances = service.balances()
    except LedgerError as e:
        _fail(e, verbose)
        return

    settings = service.settings
    if participant:
        balance = balances.get(participant)
        if balance is None:
            console.print(
                f"[yellow]No activity with {service.participant_name(participant)}.[/yellow]"
            )
            return
        display_feed(
            balance,
            service.participant_name(participant),
            settings.currency_symbol,
            settings.minor_units_per_major,
        )
        return

    if not balances:
        console.print("[yellow]No balances to show.[/yellow]")
        return

    names = {pid: service.participant_name(pid) for pid in balances}
    display_balances(
        balances, names, settings.currency_symbol, settings.minor_units_per_major
    )


@app.command("health")
def health_command(
    snapshot: Path = typer.Argument(..., help="Ledger snapshot JSON file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Scan for orphaned refunds, missing categories and similar hygiene issues."""
    setup_logging(verbose)

    try:
        scan = _load_service(snapshot).scan_health()
    except LedgerError as e:
        _fail(e, verbose)
        return

    display_health(scan)


def _parse_pairs(pairs: list[str]) -> dict[str, float]:
    """Parse repeated ``id=value`` options; unparseable values count as zero."""
    result: dict[str, float] = {}
    for pair in pairs:
        key, _, value = pair.partition("=")
        try:
            result[key.strip()] = float(value)
        except ValueError:
            result[key.strip()] = 0
    return result


@app.command("allocate")
def allocate_command(
    method: str = typer.Argument(..., help="equal, percentage or dynamic"),
    total: int = typer.Argument(..., help="Transaction total in minor units"),
    participants: list[str] = typer.Option(
        ..., "--participant", "-p", help="Participant id (repeat for each)"
    ),
    changed: str = typer.Option(..., "--changed", "-c", help="Participant being edited"),
    value: str = typer.Option("", "--value", help="Text typed for that participant"),
    splits: list[str] = typer.Option(
        [], "--split", "-s", help="Current split as id=value (repeatable)"
    ),
    locked: list[str] = typer.Option(
        [], "--locked", "-l", help="Participant already locked (repeatable)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Apply one split edit and show the resulting allocation."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        service = LedgerService(settings)
        allocation = service.allocate(
            method,
            participants,
            total,
            _parse_pairs(splits),
            changed,
            value,
            frozenset(locked),
        )
        validation = service.validate_splits(method, total, allocation.splits)
    except LedgerError as e:
        _fail(e, verbose)
        return

    display_allocation(
        allocation, total, settings.currency_symbol, settings.minor_units_per_major
    )
    if validation.message:
        style = "green" if validation.is_valid else "yellow"
        console.print(f"[{style}]{validation.message}[/{style}]")
