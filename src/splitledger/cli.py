"""CLI for SplitLedger."""

import typer

from .config import load_settings
from .reconcile.cli import app as reconcile_app
from .reconcile.ui import console

app = typer.Typer(
    name="splitledger",
    help="Reconcile a shared-expense ledger",
)

app.add_typer(reconcile_app, name="reconcile", help="Ledger reconciliation commands")


@app.command()
def config():
    """Show the effective engine settings."""
    settings = load_settings()
    for name, value in settings.model_dump().items():
        console.print(f"  [cyan]{name}[/cyan] = {value}")


if __name__ == "__main__":
    app()
