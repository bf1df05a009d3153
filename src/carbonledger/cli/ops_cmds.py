"""Operational commands: replay, audit, metrics, version."""

import typer
from rich.table import Table

from .. import __version__
from . import app, console
from ..daemon.db import check_db_integrity, get_db_connection
from ..daemon.ledger import replay_ledger, verify_hash_chain
from ..daemon.observability import get_metrics
from ..daemon.utils.invariants import run_all_checks


@app.command("version")
def version():
    """Show the installed version."""
    console.print(f"carbonledger {__version__}")


@app.command("replay")
def replay(
    verify: bool = typer.Option(True, "--verify/--no-verify", help="Verify hash chain and replayed state"),
):
    """Run deterministic replay checks over the event log."""
    if not verify:
        console.print("[yellow]Nothing to do (--no-verify).[/yellow]")
        return

    try:
        chain = verify_hash_chain()
        result = replay_ledger()
    except Exception as e:
        console.print(f"[red]Replay failed: {e}[/red]")
        raise typer.Exit(1)

    console.print("[bold]Ledger Replay Audit[/bold]")
    console.print(f"  Hash chain: {'PASS' if chain.ok else 'FAIL'} - {chain.detail}")
    console.print(f"  State:      {'PASS' if result.ok else 'FAIL'} - {result.detail}")

    if not chain.ok or not result.ok:
        raise typer.Exit(1)


@app.command("audit")
def audit():
    """Run the integrity gate and every ledger invariant."""
    try:
        gate_ok = check_db_integrity()
        with get_db_connection() as conn:
            results = run_all_checks(conn, include_event_hash_chain=True)
    except Exception as e:
        console.print(f"[red]Audit failed: {e}[/red]")
        raise typer.Exit(1)

    table = Table(title="Ledger Invariants")
    table.add_column("Check")
    table.add_column("Result")
    table.add_column("Detail")
    table.add_row("startup_gate", "[green]PASS[/green]" if gate_ok else "[red]FAIL[/red]", "")
    for result in results:
        table.add_row(
            result.name,
            "[green]PASS[/green]" if result.passed else "[red]FAIL[/red]",
            result.detail or "",
        )
    console.print(table)

    if not gate_ok or any(not r.passed for r in results):
        raise typer.Exit(1)


@app.command("metrics")
def show_metrics():
    """Display ledger totals and per-company figures."""
    try:
        data = get_metrics()
    except Exception as e:
        console.print(f"[red]Metrics unavailable: {e}[/red]")
        raise typer.Exit(1)

    console.print("[bold]Carbon Ledger Metrics[/bold]")
    console.print(f"  Companies:             {data['total_companies']}")
    console.print(f"  Outstanding emissions: {data['outstanding_emissions']} t")
    console.print(f"  Credits minted:        {data['total_credits']}")
    console.print(f"  Active credits:        {data['active_credits']} ({data['active_tons']} t)")
    console.print(f"  Offset credits:        {data['offset_credits']} ({data['offset_tons']} t)")
    console.print(f"  Events:                {data['total_events']}")
    console.print()

    table = Table(title="Per-Company")
    table.add_column("Company")
    table.add_column("Emissions (t)", justify="right")
    table.add_column("Credits", justify="right")
    table.add_column("Active (t)", justify="right")
    table.add_column("Offset (t)", justify="right")
    for company in data["companies"]:
        table.add_row(
            company["principal"],
            str(company["emissions"]),
            str(company["credits"]),
            str(company["active_tons"]),
            str(company["offset_tons"]),
        )
    console.print(table)
