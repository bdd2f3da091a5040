"""Rich rendering of reconciliation results for the CLI."""

from rich.console import Console
from rich.table import Table

from ..models import Allocation, HealthScan, IntegrityReport, ParticipantBalance
from ..money import format_minor_units, is_finite_amount

console = Console()


def format_money(
    amount: int | float,
    symbol: str = "₹",
    minor_units_per_major: int = 100,
    use_color: bool = True,
) -> str:
    """
    Format minor units in accounting style with alignment.

    Negative amounts use parentheses: (₹85.02)
    Positive amounts have spaces:      ₹85.02
    The spaces ensure decimal points align in tables.
    """
    if not is_finite_amount(amount):
        return f"[red]{amount!r}[/red]" if use_color else f"{amount!r}"
    text = format_minor_units(abs(int(amount)), symbol, minor_units_per_major)
    if amount < 0:
        return f"([red]{text}[/red])" if use_color else f"({text})"
    return f" [green]{text}[/green] " if use_color else f" {text} "


def display_report(report: IntegrityReport) -> None:
    """Display integrity findings in a table."""
    if report.issue_count == 0:
        console.print("\n[bold green]✓ No integrity issues found.[/bold green]")
        return

    table = Table(title="Integrity Findings", show_header=True, header_style="bold magenta")
    table.add_column("#", style="dim", width=4)
    table.add_column("Severity", width=8)
    table.add_column("Check", style="cyan", width=14)
    table.add_column("Transaction", style="dim", width=14)
    table.add_column("Message", no_wrap=False)

    for index, finding in enumerate(report.findings, start=1):
        severity = (
            "[bold red]error[/bold red]"
            if finding.severity == "error"
            else "[yellow]warning[/yellow]"
        )
        table.add_row(
            str(index),
            severity,
            finding.check,
            finding.transaction_id or "—",
            finding.message,
        )

    console.print(table)
    console.print()
    console.print(
        f"[bold]⚠️  Found {report.issue_count} integrity issues[/bold] "
        f"({len(report.errors)} errors, {len(report.warnings)} warnings)"
    )


def display_balances(
    balances: dict[str, ParticipantBalance],
    names: dict[str, str],
    symbol: str = "₹",
    minor_units_per_major: int = 100,
) -> None:
    """Display each counterparty's position relative to the owner."""

    def money(amount: int | float) -> str:
        return format_money(amount, symbol, minor_units_per_major)

    table = Table(title="Balances", show_header=True, header_style="bold magenta")
    table.add_column("Participant", style="cyan", width=24)
    table.add_column("Owed to me", justify="right", width=14)
    table.add_column("I owe", justify="right", width=14)
    table.add_column("Net", justify="right", width=14)
    table.add_column("Status", width=16)

    for participant_id, balance in balances.items():
        net = balance.net_balance
        if net > 0:
            status = "owes you"
        elif net < 0:
            status = "you owe"
        else:
            status = "[dim]settled[/dim]"

        table.add_row(
            names.get(participant_id, participant_id),
            money(balance.owed_to_me),
            money(balance.i_owe),
            money(net),
            status,
        )

    console.print(table)


def display_feed(
    balance: ParticipantBalance,
    name: str,
    symbol: str = "₹",
    minor_units_per_major: int = 100,
) -> None:
    """Display the transactions that moved one participant's balance."""
    table = Table(title=f"Activity with {name}", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim", width=12)
    table.add_column("Description", style="cyan", width=32)
    table.add_column("Kind", width=15)
    table.add_column("Effect", justify="right", width=14)

    for entry in balance.related_txns:
        desc = entry.transaction.display_name
        table.add_row(
            entry.transaction.id,
            desc[:32] + "..." if len(desc) > 32 else desc,
            entry.tag,
            format_money(entry.amount, symbol, minor_units_per_major),
        )

    console.print(table)
    console.print(
        f"  Net: {format_money(balance.net_balance, symbol, minor_units_per_major)}"
    )


def display_health(scan: HealthScan) -> None:
    """Display the data health scan buckets."""
    buckets = [
        ("Orphaned Refunds", scan.orphaned_refunds),
        ("Missing Category", scan.missing_category),
        ("Missing Payment Mode", scan.missing_payment_mode),
        ("Invalid Amounts", scan.invalid_amounts),
    ]

    table = Table(title="Data Health", show_header=True, header_style="bold magenta")
    table.add_column("Bucket", style="cyan", width=22)
    table.add_column("Count", justify="right", width=6)
    table.add_column("Examples", no_wrap=False)

    for title, issues in buckets:
        examples = ", ".join(
            f"{issue.name or 'Unnamed'}" + (f" ({issue.issue})" if issue.issue else "")
            for issue in issues[:3]
        )
        if len(issues) > 3:
            examples += f" ...and {len(issues) - 3} more"
        table.add_row(title, str(len(issues)), examples or "[dim]All clear[/dim]")

    console.print(table)
    if scan.total == 0:
        console.print("[bold green]All systems nominal. No issues found![/bold green]")
    else:
        console.print(f"[bold]{scan.total} issues found[/bold]")


def display_allocation(
    allocation: Allocation,
    total_amount: int,
    symbol: str = "₹",
    minor_units_per_major: int = 100,
) -> None:
    """Display an allocator result."""
    if allocation.method == "equal":
        console.print(
            f"Splitting {format_minor_units(total_amount, symbol, minor_units_per_major)} "
            f"equally among {allocation.participant_count} person(s)."
        )
        return

    table = Table(
        title=f"{allocation.method.title()} Split", show_header=True, header_style="bold magenta"
    )
    table.add_column("Participant", style="cyan", width=20)
    table.add_column("Share", justify="right", width=14)
    table.add_column("Locked", justify="center", width=8)

    for participant_id, value in allocation.splits.items():
        if allocation.method == "percentage":
            share = f"{value:g}%"
        else:
            share = format_money(value, symbol, minor_units_per_major)
        table.add_row(participant_id, share, "🔒" if participant_id in allocation.locked else "")

    console.print(table)
