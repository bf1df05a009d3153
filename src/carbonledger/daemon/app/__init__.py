"""FastAPI application for the ledger daemon.

Run with ``uvicorn carbonledger.daemon.app:app`` (``ccl daemon start`` does this).
"""

import os

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from carbonledger import __version__
from ..errors import LedgerError
from ..utils.logging_config import setup_logging

load_dotenv()
setup_logging(os.getenv("CCL_LOG_LEVEL", "INFO"))


def _cors_origins() -> list[str]:
    raw = os.getenv("CCL_CORS_ORIGINS") or ""
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def create_app() -> FastAPI:
    application = FastAPI(
        title="Carbon Credit Ledger",
        description="Emission balances and the carbon credit lifecycle.",
        version=__version__,
    )

    origins = _cors_origins()
    if origins:
        application.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            # Browsers reject credentials with a wildcard origin.
            allow_credentials="*" not in origins,
            allow_methods=["GET", "POST", "PUT"],
            allow_headers=["Authorization", "Content-Type", "X-Principal"],
        )

    @application.exception_handler(LedgerError)
    async def _ledger_error(request: Request, exc: LedgerError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    from .lifecycle import startup_event, shutdown_event
    from .admin import router as admin_router
    from .credits import router as credits_router

    @application.on_event("startup")
    async def _startup():
        await startup_event(application)

    @application.on_event("shutdown")
    async def _shutdown():
        await shutdown_event()

    application.include_router(admin_router)
    application.include_router(credits_router)
    return application


app = create_app()

__all__ = ["app", "create_app"]
