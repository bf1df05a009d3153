"""Daemon lifecycle: config load, schema and integrity gate, shutdown."""

import asyncio
import os

from ..db import init_db, check_db_integrity, get_db_path
from ..ledger.replay import verify_hash_chain
from ..utils.config_loader import config_loader
from ..utils.logging_config import StructuredLogger

logger = StructuredLogger(__name__)


def _env_flag(name: str) -> bool:
    return os.getenv(name, "0").strip() == "1"


def _startup_failed(step: str, strict: bool, **fields):
    logger.error("Startup step failed", step=step, strict=strict, **fields)
    if strict:
        # Refuse to serve a ledger we could not validate.
        os._exit(1)


async def _run_step(step: str, fn, timeout: float, strict: bool):
    try:
        return await asyncio.wait_for(asyncio.to_thread(fn), timeout=timeout)
    except Exception as exc:
        _startup_failed(step, strict, error=str(exc))
        return None


async def startup_event(app):
    """Called on FastAPI startup."""
    strict = _env_flag("CCL_STARTUP_STRICT")
    timeout = max(5, int(os.getenv("CCL_STARTUP_INIT_TIMEOUT_SECONDS", "30")))

    # Config first: the busy timeout and limits apply to everything below.
    try:
        config_loader.load_config()
    except ValueError as exc:
        _startup_failed("config", strict, error=str(exc))

    await _run_step("init_db", init_db, timeout, strict)

    if await _run_step("integrity", check_db_integrity, timeout, strict) is False:
        _startup_failed("integrity", strict, db_path=get_db_path())

    if _env_flag("CCL_STARTUP_VERIFY_CHAIN"):
        chain = await _run_step("hash_chain", verify_hash_chain, timeout, strict)
        if chain is not None and not chain.ok:
            _startup_failed("hash_chain", strict, detail=chain.detail)

    logger.info("Ledger daemon ready", db_path=get_db_path(), version=app.version, strict=strict)


async def shutdown_event():
    """Called on FastAPI shutdown."""
    logger.info("Ledger daemon stopping", db_path=get_db_path())
