"""Database integrity checks for schema + accounting invariants."""

from __future__ import annotations

from ..utils.invariants import run_all_checks
from ..utils.logging_config import StructuredLogger
from .connection import get_db_connection
from .schema import REQUIRED_TABLES

logger = StructuredLogger(__name__)


def check_db_integrity() -> bool:
    """Run fast physical+logical checks used by daemon startup."""
    with get_db_connection() as conn:
        quick = conn.execute("PRAGMA quick_check").fetchone()[0]
        if str(quick).lower() != "ok":
            logger.critical("Integrity Error: quick_check failed", result=str(quick))
            return False

        table_rows = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
        table_names = {row[0] for row in table_rows}
        missing = [name for name in REQUIRED_TABLES if name not in table_names]
        if missing:
            logger.critical("Integrity Error: missing tables", missing=missing)
            return False

        results = run_all_checks(conn)
        # Startup gate stays strict but bounded:
        # 1) non-negative balances, 2) positive credit amounts.
        for result in results[:2]:
            if not result.passed:
                logger.critical("Integrity Error: invariant failed", invariant=result.name, detail=result.detail)
                return False
    return True
