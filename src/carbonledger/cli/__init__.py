"""Carbon Ledger CLI: modular command package."""

import sys

import typer
from pathlib import Path
from rich.console import Console

from ..daemon.db import init_db, get_db_path
from ..daemon.errors import LedgerError
from ..daemon.utils.logging_config import setup_logging

# ── Shared state ────────────────────────────────────────────────────────────

app = typer.Typer(help="Carbon Ledger - emissions and carbon credit ledger")
console = Console()

# Sub-command groups
daemon_app = typer.Typer()
emission_app = typer.Typer()
credit_app = typer.Typer()

app.add_typer(daemon_app, name="daemon", help="Manage the ledger daemon process")
app.add_typer(emission_app, name="emission", help="Record and inspect emission balances")
app.add_typer(credit_app, name="credit", help="Mint, offset and inspect carbon credits")


@app.callback()
def main(
    log_level: str = typer.Option(
        "ERROR", "--log-level", envvar="CCL_CLI_LOG_LEVEL", help="Level for JSON logs written to stderr"
    ),
):
    """Carbon Ledger - emissions and carbon credit ledger"""
    # Rejections are already reported on the console; engine logs stay quiet unless asked for.
    setup_logging(log_level, stream=sys.stderr)


# ── Path constants ──────────────────────────────────────────────────────────

CCL_DIR = Path.home() / ".carbonledger"
PID_FILE = CCL_DIR / "ledger.pid"
LOG_DIR = CCL_DIR / "logs"
CONFIG_DIR = CCL_DIR / "config"
LEDGER_CONFIG_FILE = CONFIG_DIR / "ledger.yaml"

DEFAULT_LEDGER_YAML = """version: 1

limits:
  max_value: 9223372036854775807
  max_source_length: 256
  max_uri_length: 2048

policy:
  # Allow metadata URIs to change after a credit has been offset
  uri_requires_active: false

storage:
  busy_timeout_seconds: 5.0
"""


# ── Shared helpers ──────────────────────────────────────────────────────────

def get_daemon_pid():
    if PID_FILE.exists():
        try:
            return int(PID_FILE.read_text().strip())
        except ValueError:
            return None
    return None


def fail(exc: LedgerError):
    """Print a ledger rejection and exit non-zero."""
    console.print(f"[red]{exc.kind}: {exc.reason}[/red]")
    raise typer.Exit(1)


# ── Init command (lives at top level, so defined here) ──────────────────────

@app.command("init")
def init_ledger():
    """Initialize the ledger schema and local runtime folders."""
    console.print(f"[bold]Initializing Carbon Ledger runtime in {CCL_DIR}...[/bold]")

    CCL_DIR.mkdir(parents=True, exist_ok=True)
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    if not LEDGER_CONFIG_FILE.exists():
        console.print("Creating default ledger.yaml...")
        LEDGER_CONFIG_FILE.write_text(DEFAULT_LEDGER_YAML)

    try:
        init_db()
        console.print(f"[green]Database initialized at {get_db_path()}.[/green]")
    except Exception as e:
        console.print(f"[red]Failed to initialize database: {e}[/red]")
        raise typer.Exit(1)

    console.print("[green]Carbon Ledger initialized successfully.[/green]")


# ── Register submodule commands (import triggers decorator registration) ────

from . import daemon_cmds   # noqa: E402, F401
from . import ledger_cmds   # noqa: E402, F401
from . import ops_cmds      # noqa: E402, F401
