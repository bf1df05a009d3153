"""Admin endpoints: health/readiness, metrics, audit, config reload."""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from ..auth import verify_gateway
from ..db import get_db_connection
from ..ledger.replay import replay_ledger, verify_hash_chain
from ..observability import get_metrics, liveness_report, readiness_report
from ..utils.config_loader import config_loader
from ..utils.invariants import run_all_checks
from ..utils.logging_config import StructuredLogger

logger = StructuredLogger(__name__)
router = APIRouter()


@router.get("/health")
async def health():
    return liveness_report()


@router.get("/ready")
async def ready():
    ok, report = await run_in_threadpool(readiness_report)
    return JSONResponse(status_code=200 if ok else 503, content=report)


@router.get("/metrics", dependencies=[Depends(verify_gateway)])
async def metrics():
    return await run_in_threadpool(get_metrics)


def _audit_report() -> dict:
    with get_db_connection() as conn:
        results = run_all_checks(conn, include_event_hash_chain=True)
    chain = verify_hash_chain()
    replay = replay_ledger()
    ok = all(r.passed for r in results) and chain.ok and replay.ok
    if not ok:
        logger.critical(
            "Ledger audit failed",
            failed=[r.name for r in results if not r.passed],
            hash_chain=chain.ok,
            replay=replay.ok,
        )
    return {
        "ok": ok,
        "invariants": [{"name": r.name, "passed": r.passed, "detail": r.detail} for r in results],
        "hash_chain": {"ok": chain.ok, "detail": chain.detail},
        "replay": {"ok": replay.ok, "detail": replay.detail},
    }


@router.get("/admin/audit", dependencies=[Depends(verify_gateway)])
async def audit():
    report = await run_in_threadpool(_audit_report)
    return JSONResponse(status_code=200 if report["ok"] else 500, content=report)


@router.post("/admin/reload-config", dependencies=[Depends(verify_gateway)])
async def reload_config():
    try:
        cfg = config_loader.load_config()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    logger.info("Configuration reloaded via admin API")
    return {"status": "reloaded", "config": cfg.model_dump()}
