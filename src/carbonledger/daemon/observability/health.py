"""Liveness and readiness reports for the ledger daemon."""

from __future__ import annotations

from datetime import datetime, UTC
import os

from carbonledger import __version__
from ..db import get_db_connection
from ..db.schema import REQUIRED_TABLES, SCHEMA_VERSION
from ..utils.config_loader import config_loader
from ..utils.invariants import run_all_checks

# A failure in any of these makes the daemon unready; the rest are reported only.
CRITICAL_INVARIANTS = frozenset({
    "no_negative_balances",
    "positive_credit_amounts",
    "owned_index_matches_owners",
    "event_hash_chain",
})


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def liveness_report() -> dict:
    return {"status": "ok", "version": __version__, "ts": _now_iso()}


def _ledger_checks(include_hash_chain: bool) -> tuple[bool, dict, dict]:
    with get_db_connection() as conn:
        tables = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
        missing = [t for t in REQUIRED_TABLES if t not in tables]
        schema_version = conn.execute("PRAGMA user_version").fetchone()[0]
        database = {
            "ok": not missing and schema_version == SCHEMA_VERSION,
            "schema_version": schema_version,
            "missing_tables": missing,
        }
        if missing:
            return False, database, {"ok": False, "failed": [], "hash_chain_included": include_hash_chain}

        failed = [r for r in run_all_checks(conn, include_event_hash_chain=include_hash_chain) if not r.passed]

    blocking = [r.name for r in failed if r.name in CRITICAL_INVARIANTS]
    invariants = {
        "ok": not blocking,
        "failed": [{"name": r.name, "detail": r.detail, "critical": r.name in blocking} for r in failed],
        "hash_chain_included": include_hash_chain,
    }
    return database["ok"] and not blocking, database, invariants


def readiness_report() -> tuple[bool, dict]:
    """Ready means: schema present, no critical invariant failing, config valid."""
    include_hash_chain = os.getenv("CCL_READINESS_INCLUDE_HASH_CHAIN", "0").strip() == "1"
    checks: dict[str, dict] = {}

    try:
        ready, checks["database"], checks["invariants"] = _ledger_checks(include_hash_chain)
    except Exception as exc:
        checks["database"] = {"ok": False, "error": str(exc)}
        ready = False

    try:
        cfg = config_loader.get()
        checks["config"] = {
            "ok": True,
            "version": cfg.version,
            "uri_requires_active": cfg.policy.uri_requires_active,
        }
    except ValueError as exc:
        checks["config"] = {"ok": False, "error": str(exc)}
        ready = False

    return ready, {
        "ready": ready,
        "status": "ready" if ready else "not_ready",
        "version": __version__,
        "ts": _now_iso(),
        "checks": checks,
    }
