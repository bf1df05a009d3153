"""Caller resolution for the HTTP binding.

The ledger does not authenticate companies itself: the wallet/session layer
in front of it resolves the principal and forwards it in ``X-Principal``.
When ``CCL_GATEWAY_TOKEN`` is set, only that gateway may call the API.
"""

import hashlib
import os
import secrets

from fastapi import Header, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .utils.logging_config import StructuredLogger

logger = StructuredLogger(__name__)
security = HTTPBearer(auto_error=False)


def hash_token(raw_token: str) -> str:
    """SHA-256 hash a raw token for comparison."""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def verify_gateway(credentials: HTTPAuthorizationCredentials | None = Security(security)) -> None:
    expected = (os.getenv("CCL_GATEWAY_TOKEN") or "").strip()
    if not expected:
        return
    if credentials is None:
        logger.warning("Authentication failed: Missing gateway token")
        raise HTTPException(status_code=401, detail="Missing gateway token")
    if not secrets.compare_digest(hash_token(credentials.credentials), hash_token(expected)):
        logger.warning("Authentication failed: Invalid gateway token")
        raise HTTPException(status_code=401, detail="Invalid gateway token")


def get_principal(x_principal: str | None = Header(default=None, alias="X-Principal")) -> str:
    """FastAPI dependency returning the already-authenticated calling principal.

    Routers using it also depend on ``verify_gateway``.
    """
    principal = (x_principal or "").strip()
    if not principal:
        raise HTTPException(status_code=401, detail="Missing X-Principal header")
    return principal
