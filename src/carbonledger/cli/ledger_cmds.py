"""Ledger commands run in-process against the local database."""

from __future__ import annotations

from datetime import datetime, UTC

import typer
from rich.table import Table

from . import console, credit_app, emission_app, fail
from ..daemon.db import get_db_connection, get_db_path
from ..daemon.errors import LedgerError
from ..daemon.ledger import engine

AS_OPTION = typer.Option(..., "--as", help="Principal (company account) performing the operation")


def _require_db():
    """Refuse to run ledger commands before `ccl init`."""
    with get_db_connection() as conn:
        row = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table' AND name = 'credits'").fetchone()
    if not row:
        console.print(f"[red]No ledger database at {get_db_path()}. Run: ccl init[/red]")
        raise typer.Exit(1)


emission_app.callback()(_require_db)
credit_app.callback()(_require_db)


def _ts(value: int | None) -> str:
    if value is None:
        return "N/A"
    return datetime.fromtimestamp(value, UTC).isoformat()


# ── Emissions ───────────────────────────────────────────────────────────────

@emission_app.command("record")
def record_emission(
    amount: int = typer.Argument(..., help="Tons of CO2 emitted"),
    caller: str = AS_OPTION,
):
    """Add emissions to a company's outstanding balance."""
    try:
        engine.record_emission(caller, amount)
        balance = engine.get_emissions(caller)
    except LedgerError as exc:
        fail(exc)
    console.print(f"[green]Recorded {amount} t CO2 for '{caller}'. Outstanding: {balance} t[/green]")


@emission_app.command("show")
def show_emissions(principal: str):
    """Show a company's outstanding emissions."""
    try:
        balance = engine.get_emissions(principal)
    except LedgerError as exc:
        fail(exc)
    console.print(f"{principal}: {balance} t CO2 outstanding")


# ── Credits ─────────────────────────────────────────────────────────────────

@credit_app.command("mint")
def mint_credit(
    amount: int = typer.Argument(..., help="Tons of CO2 the credit represents"),
    source: str = typer.Option(..., "--source", "-s", help="Project or initiative behind the offset"),
    emission_data: int = typer.Option(0, "--emission-data", "-d", help="Supporting figure for the claim"),
    caller: str = AS_OPTION,
):
    """Mint a new active credit."""
    try:
        token_id = engine.mint_credit(caller, amount, source, emission_data)
    except LedgerError as exc:
        fail(exc)
    console.print(f"[green]Credit #{token_id} minted for '{caller}' ({amount} t, {source}).[/green]")


@credit_app.command("offset")
def offset_emissions(token_id: int, caller: str = AS_OPTION):
    """Redeem an active credit against the caller's emissions."""
    try:
        engine.offset_emissions(caller, token_id)
        balance = engine.get_emissions(caller)
    except LedgerError as exc:
        fail(exc)
    console.print(f"[green]Credit #{token_id} offset. Outstanding emissions for '{caller}': {balance} t[/green]")


@credit_app.command("show")
def show_credit(token_id: int):
    """Show the details of a credit."""
    try:
        credit = engine.get_credit(token_id)
    except LedgerError as exc:
        fail(exc)

    console.print(f"[bold]Credit #{credit.token_id}[/bold]")
    console.print(f"  Owner:         {credit.owner}")
    console.print(f"  Amount:        {credit.amount} t CO2")
    console.print(f"  Source:        {credit.source}")
    console.print(f"  Emission data: {credit.emission_data}")
    console.print(f"  Created:       {_ts(credit.created_at)}")
    console.print(f"  Status:        {'Active' if credit.active else 'Offset'}")
    if not credit.active:
        console.print(f"  Offset at:     {_ts(credit.offset_at)}")
    console.print(f"  URI:           {credit.uri or '-'}")


@credit_app.command("list")
def list_credits(principal: str):
    """List every credit minted by a company, in mint order."""
    try:
        token_ids = engine.get_company_tokens(principal)
        credits = [engine.get_credit(token_id) for token_id in token_ids]
    except LedgerError as exc:
        fail(exc)

    table = Table(title=f"Credits of {principal}")
    table.add_column("ID", justify="right")
    table.add_column("Amount (t)", justify="right")
    table.add_column("Source")
    table.add_column("Status")
    table.add_column("Created")
    for credit in credits:
        table.add_row(
            str(credit.token_id),
            str(credit.amount),
            credit.source,
            "Active" if credit.active else "Offset",
            _ts(credit.created_at),
        )
    console.print(table)


@credit_app.command("set-uri")
def set_token_uri(token_id: int, uri: str, caller: str = AS_OPTION):
    """Set the metadata URI of a credit the caller owns."""
    try:
        engine.set_token_uri(caller, token_id, uri)
    except LedgerError as exc:
        fail(exc)
    console.print(f"[green]URI of credit #{token_id} updated.[/green]")


@credit_app.command("uri")
def show_token_uri(token_id: int):
    """Print the metadata URI of a credit."""
    try:
        uri = engine.token_uri(token_id)
    except LedgerError as exc:
        fail(exc)
    console.print(uri or "[dim](no URI set)[/dim]")


@credit_app.command("events")
def show_events(
    token_id: int = typer.Option(None, "--token", help="Only events for this credit"),
    principal: str = typer.Option(None, "--principal", help="Only events initiated by this company"),
    limit: int = typer.Option(50, "--limit", help="Maximum events to show"),
):
    """Show the audit event log."""
    try:
        events = engine.list_events(token_id=token_id, principal=principal, limit=limit)
    except LedgerError as exc:
        fail(exc)

    table = Table(title="Ledger Events")
    table.add_column("Seq", justify="right")
    table.add_column("Type")
    table.add_column("Principal")
    table.add_column("Token", justify="right")
    table.add_column("Payload")
    table.add_column("Hash")
    for event in events:
        table.add_row(
            str(event.seq),
            event.event_type,
            event.principal,
            "-" if event.token_id is None else str(event.token_id),
            ", ".join(f"{k}={v}" for k, v in sorted(event.payload.items())),
            event.event_hash[:12],
        )
    console.print(table)
