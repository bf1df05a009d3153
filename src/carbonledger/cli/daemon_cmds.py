"""Daemon process commands: start, stop, status."""

import os
import signal
import subprocess
import sys

import httpx
import typer

from . import daemon_app, console, CCL_DIR, PID_FILE, LOG_DIR, CONFIG_DIR, get_daemon_pid
from ..daemon.db import init_db, get_db_path

DAEMON_LOG = "daemon.out"


def _is_running(pid: int | None) -> bool:
    if not pid:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    return True


def _clear_pid_file():
    if PID_FILE.exists():
        PID_FILE.unlink()


@daemon_app.command("start")
def start_daemon(
    port: int = typer.Option(9000, "--port", help="Port to listen on"),
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind"),
    reload: bool = typer.Option(False, "--reload", help="Restart on source changes (development)"),
):
    """Start the ledger daemon in the background."""
    pid = get_daemon_pid()
    if _is_running(pid):
        console.print(f"[red]Ledger daemon already running (PID {pid})[/red]")
        raise typer.Exit(1)
    if pid:
        console.print("[yellow]Removing stale PID file[/yellow]")
        _clear_pid_file()

    for path in (CCL_DIR, LOG_DIR, CONFIG_DIR):
        path.mkdir(parents=True, exist_ok=True)

    # The schema must exist before the daemon accepts writes.
    try:
        init_db()
    except Exception as exc:
        console.print(f"[red]Cannot prepare ledger database {get_db_path()}: {exc}[/red]")
        raise typer.Exit(1)

    env = dict(os.environ)
    env.update({
        "CCL_LOG_DIR": str(LOG_DIR),
        "CCL_DB_PATH": get_db_path(),
    })
    env.setdefault("CCL_CONFIG_DIR", str(CONFIG_DIR))

    cmd = [sys.executable, "-m", "uvicorn", "carbonledger.daemon.app:app", "--host", host, "--port", str(port)]
    if reload:
        cmd.append("--reload")

    with open(LOG_DIR / DAEMON_LOG, "a") as out:
        proc = subprocess.Popen(cmd, env=env, stdout=out, stderr=subprocess.STDOUT)
    PID_FILE.write_text(str(proc.pid))

    console.print(f"[green]Ledger daemon listening on http://{host}:{port} (PID {proc.pid})[/green]")
    console.print(f"Database: {get_db_path()}")
    console.print(f"Logs:     {LOG_DIR / DAEMON_LOG}")


@daemon_app.command("stop")
def stop_daemon():
    """Stop the ledger daemon."""
    pid = get_daemon_pid()
    if not _is_running(pid):
        console.print("[yellow]Ledger daemon is not running[/yellow]")
        _clear_pid_file()
        return

    os.kill(pid, signal.SIGTERM)
    _clear_pid_file()
    console.print(f"[green]Sent SIGTERM to ledger daemon (PID {pid})[/green]")


@daemon_app.command("status")
def status_daemon(
    url: str = typer.Option("http://127.0.0.1:9000", "--url", help="Daemon base URL for the readiness probe"),
):
    """Report whether the daemon process is alive and ready."""
    pid = get_daemon_pid()
    if not _is_running(pid):
        console.print("[red]Ledger daemon is NOT running[/red]")
        raise typer.Exit(1)

    console.print(f"[green]Ledger daemon running (PID {pid})[/green]")
    console.print(f"Configuration: {CONFIG_DIR}")
    console.print(f"Database:      {get_db_path()}")

    try:
        resp = httpx.get(f"{url.rstrip('/')}/ready", timeout=3.0)
    except httpx.HTTPError as exc:
        console.print(f"[yellow]Readiness probe failed: {exc}[/yellow]")
        return
    report = resp.json()
    colour = "green" if resp.status_code == 200 else "red"
    console.print(f"Readiness:     [{colour}]{report.get('status', 'unknown')}[/{colour}]")
    for name, check in report.get("checks", {}).items():
        if not check.get("ok", False):
            console.print(f"  [red]{name}[/red]: {check}")
