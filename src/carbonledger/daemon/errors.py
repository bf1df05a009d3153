"""Ledger error taxonomy.

Every rejection the engine can produce is a ``LedgerError``. The base class
derives from FastAPI's ``HTTPException`` so the HTTP binding serves engine
errors without a translation layer; in-process callers match on the subclass
or on ``kind``.
"""

from __future__ import annotations

from enum import StrEnum

from fastapi import HTTPException


class ErrorKind(StrEnum):
    NOT_FOUND = "NotFound"
    UNAUTHORIZED = "Unauthorized"
    INVALID_STATE = "InvalidState"
    INSUFFICIENT_BALANCE = "InsufficientBalance"
    INVALID_ARGUMENT = "InvalidArgument"
    ARITHMETIC_OVERFLOW = "ArithmeticOverflow"


# Reason strings surfaced to user-facing layers.
REASON_NOT_FOUND = "Token doesn't exist"
REASON_NOT_OWNER = "Not token owner"
REASON_NOT_ACTIVE = "Credit not active"
REASON_INSUFFICIENT = "Insufficient emissions to offset"


class LedgerError(HTTPException):
    kind: ErrorKind = ErrorKind.INVALID_ARGUMENT
    status = 400
    default_reason = "Invalid ledger request"

    def __init__(self, reason: str | None = None):
        self.reason = reason or self.default_reason
        super().__init__(status_code=self.status, detail=self.reason)

    def to_dict(self) -> dict:
        return {"detail": self.reason, "kind": str(self.kind)}

    def __str__(self) -> str:
        return f"{self.kind}: {self.reason}"


class NotFound(LedgerError):
    kind = ErrorKind.NOT_FOUND
    status = 404
    default_reason = REASON_NOT_FOUND


class Unauthorized(LedgerError):
    kind = ErrorKind.UNAUTHORIZED
    status = 403
    default_reason = REASON_NOT_OWNER


class InvalidState(LedgerError):
    kind = ErrorKind.INVALID_STATE
    status = 409
    default_reason = REASON_NOT_ACTIVE


class InsufficientBalance(LedgerError):
    kind = ErrorKind.INSUFFICIENT_BALANCE
    status = 402
    default_reason = REASON_INSUFFICIENT


class InvalidArgument(LedgerError):
    kind = ErrorKind.INVALID_ARGUMENT
    status = 400
    default_reason = "Invalid argument"


class ArithmeticOverflow(LedgerError):
    kind = ErrorKind.ARITHMETIC_OVERFLOW
    status = 422
    default_reason = "Value exceeds representable range"


ERRORS_BY_KIND: dict[str, type[LedgerError]] = {
    cls.kind.value: cls
    for cls in (NotFound, Unauthorized, InvalidState, InsufficientBalance, InvalidArgument, ArithmeticOverflow)
}


def error_from_payload(payload: dict) -> LedgerError | None:
    """Rebuild a LedgerError from its ``to_dict`` form; None if the kind is unknown."""
    cls = ERRORS_BY_KIND.get(str(payload.get("kind") or ""))
    if cls is None:
        return None
    return cls(payload.get("detail") or None)
