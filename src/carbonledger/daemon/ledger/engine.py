"""Credit ledger engine.

The only writer of ledger state. Every mutating operation runs in one
``BEGIN IMMEDIATE`` transaction: all preconditions are checked first, then the
credit table, the owned-tokens index, the balance row and the event log are
written together. A rejected call leaves no trace.
"""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass
from typing import NamedTuple

from ..db import get_db_connection, transaction
from ..errors import (
    REASON_INSUFFICIENT,
    REASON_NOT_ACTIVE,
    REASON_NOT_FOUND,
    REASON_NOT_OWNER,
    ArithmeticOverflow,
    InsufficientBalance,
    InvalidArgument,
    InvalidState,
    LedgerError,
    NotFound,
    Unauthorized,
)
from ..utils.config_loader import SQLITE_MAX_INT, config_loader
from ..utils.logging_config import StructuredLogger
from .events import (
    CREDIT_MINTED,
    CREDIT_OFFSET,
    CREDIT_URI_SET,
    EMISSION_RECORDED,
    LedgerEvent,
    append_event,
)

logger = StructuredLogger(__name__)

MAX_EVENT_PAGE = 1000


class CreditDetails(NamedTuple):
    amount: int
    source: str
    created_at: int
    emission_data: int
    active: bool


@dataclass
class Credit:
    token_id: int
    owner: str
    amount: int
    source: str
    emission_data: int
    created_at: int
    active: bool
    uri: str
    offset_at: int | None = None

    @classmethod
    def from_row(cls, row) -> "Credit":
        return cls(
            token_id=int(row["token_id"]),
            owner=row["owner"],
            amount=int(row["amount"]),
            source=row["source"],
            emission_data=int(row["emission_data"]),
            created_at=int(row["created_at"]),
            active=bool(row["active"]),
            uri=row["uri"] or "",
            offset_at=row["offset_at"],
        )

    @property
    def details(self) -> CreditDetails:
        return CreditDetails(self.amount, self.source, self.created_at, self.emission_data, self.active)

    def to_dict(self) -> dict:
        return asdict(self)


def _now() -> int:
    return int(time.time())


def _reject(exc: LedgerError, operation: str, **fields) -> LedgerError:
    logger.warning("Ledger operation rejected", operation=operation, kind=str(exc.kind), reason=exc.reason, **fields)
    return exc


# ── Input validation ────────────────────────────────────────────────────────

def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _principal(value, operation: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise _reject(InvalidArgument("Principal is required"), operation)
    return value.strip()


def _amount(value, operation: str, principal: str) -> int:
    if not _is_int(value):
        raise _reject(InvalidArgument("Amount must be an integer"), operation, principal=principal)
    if value <= 0:
        raise _reject(InvalidArgument("Amount must be positive"), operation, principal=principal, amount=value)
    if value > config_loader.limits.max_value:
        raise _reject(ArithmeticOverflow("Amount exceeds representable range"), operation, principal=principal)
    return value


def _token_id(value, operation: str) -> int:
    if not _is_int(value):
        raise _reject(InvalidArgument("Token id must be an integer"), operation)
    # Ids start at 1 and never exceed the INTEGER column range.
    if value < 1 or value > SQLITE_MAX_INT:
        raise _reject(NotFound(REASON_NOT_FOUND), operation, token_id=value)
    return value


def _load_credit(conn, token_id: int, operation: str):
    row = conn.execute("SELECT * FROM credits WHERE token_id = ?", (token_id,)).fetchone()
    if not row:
        raise _reject(NotFound(REASON_NOT_FOUND), operation, token_id=token_id)
    return row


def _balance(conn, principal: str) -> int:
    row = conn.execute("SELECT emissions FROM balances WHERE principal = ?", (principal,)).fetchone()
    return int(row["emissions"]) if row else 0


def _write_balance(conn, principal: str, emissions: int) -> None:
    conn.execute(
        """
        INSERT INTO balances (principal, emissions) VALUES (?, ?)
        ON CONFLICT(principal) DO UPDATE SET
            emissions = excluded.emissions,
            updated_at = CURRENT_TIMESTAMP
        """,
        (principal, emissions),
    )


# ── Mutations ───────────────────────────────────────────────────────────────

def record_emission(caller: str, amount: int) -> None:
    """Add ``amount`` tons to the caller's outstanding emissions."""
    op = "record_emission"
    principal = _principal(caller, op)
    amount = _amount(amount, op, principal)
    max_value = config_loader.limits.max_value

    with get_db_connection() as conn, transaction(conn):
        current = _balance(conn, principal)
        if current > max_value - amount:
            raise _reject(
                ArithmeticOverflow("Emission balance would exceed representable range"),
                op,
                principal=principal,
                balance=current,
                amount=amount,
            )
        new_balance = current + amount
        _write_balance(conn, principal, new_balance)
        append_event(
            conn,
            event_type=EMISSION_RECORDED,
            principal=principal,
            payload={"amount": amount, "balance": new_balance},
        )

    logger.info("Emission recorded", principal=principal, amount=amount, balance=new_balance)


def mint_credit(caller: str, amount: int, source: str, emission_data: int) -> int:
    """Mint an active credit owned by the caller and return its id.

    Minting is a claim, not a debit: it does not consult the emission balance.
    """
    op = "mint_credit"
    principal = _principal(caller, op)
    amount = _amount(amount, op, principal)
    limits = config_loader.limits

    if not isinstance(source, str) or not source.strip():
        raise _reject(InvalidArgument("Source is required"), op, principal=principal)
    if len(source) > limits.max_source_length:
        raise _reject(
            InvalidArgument(f"Source exceeds {limits.max_source_length} characters"),
            op,
            principal=principal,
        )
    if not _is_int(emission_data):
        raise _reject(InvalidArgument("Emission data must be an integer"), op, principal=principal)
    if emission_data < 0:
        raise _reject(InvalidArgument("Emission data must not be negative"), op, principal=principal)
    if emission_data > limits.max_value:
        raise _reject(ArithmeticOverflow("Emission data exceeds representable range"), op, principal=principal)

    created_at = _now()
    with get_db_connection() as conn, transaction(conn):
        last_id = conn.execute("SELECT COALESCE(MAX(token_id), 0) FROM credits").fetchone()[0]
        if last_id >= limits.max_value:
            raise _reject(ArithmeticOverflow("Credit id counter exhausted"), op, principal=principal)
        token_id = int(last_id) + 1
        position = conn.execute(
            "SELECT COUNT(*) FROM company_tokens WHERE owner = ?",
            (principal,),
        ).fetchone()[0] + 1

        conn.execute(
            """
            INSERT INTO credits (token_id, owner, amount, source, emission_data, created_at, active)
            VALUES (?, ?, ?, ?, ?, ?, 1)
            """,
            (token_id, principal, amount, source, emission_data, created_at),
        )
        conn.execute(
            "INSERT INTO company_tokens (owner, position, token_id) VALUES (?, ?, ?)",
            (principal, position, token_id),
        )
        append_event(
            conn,
            event_type=CREDIT_MINTED,
            principal=principal,
            token_id=token_id,
            payload={
                "token_id": token_id,
                "owner": principal,
                "amount": amount,
                "source": source,
                "emission_data": emission_data,
                "created_at": created_at,
            },
        )

    logger.info("Credit minted", token_id=token_id, owner=principal, amount=amount, source=source)
    return token_id


def offset_emissions(caller: str, token_id: int) -> None:
    """Redeem an active credit against the caller's emissions.

    Checks run in a fixed order and the first failure is reported:
    existence, ownership, active state, sufficient balance.
    """
    op = "offset_emissions"
    principal = _principal(caller, op)
    token_id = _token_id(token_id, op)

    with get_db_connection() as conn, transaction(conn):
        credit = _load_credit(conn, token_id, op)
        if credit["owner"] != principal:
            raise _reject(Unauthorized(REASON_NOT_OWNER), op, principal=principal, token_id=token_id)
        if not credit["active"]:
            raise _reject(InvalidState(REASON_NOT_ACTIVE), op, principal=principal, token_id=token_id)

        amount = int(credit["amount"])
        current = _balance(conn, principal)
        if current < amount:
            raise _reject(
                InsufficientBalance(REASON_INSUFFICIENT),
                op,
                principal=principal,
                token_id=token_id,
                balance=current,
                amount=amount,
            )

        new_balance = current - amount
        offset_at = _now()
        _write_balance(conn, principal, new_balance)
        conn.execute(
            "UPDATE credits SET active = 0, offset_at = ? WHERE token_id = ? AND active = 1",
            (offset_at, token_id),
        )
        append_event(
            conn,
            event_type=CREDIT_OFFSET,
            principal=principal,
            token_id=token_id,
            payload={"token_id": token_id, "amount": amount, "balance": new_balance, "offset_at": offset_at},
        )

    logger.info("Emissions offset", token_id=token_id, principal=principal, amount=amount, balance=new_balance)


def set_token_uri(caller: str, token_id: int, uri: str) -> None:
    """Overwrite the metadata pointer of a credit the caller owns."""
    op = "set_token_uri"
    principal = _principal(caller, op)
    token_id = _token_id(token_id, op)
    limits = config_loader.limits
    if not isinstance(uri, str):
        raise _reject(InvalidArgument("URI must be a string"), op, principal=principal, token_id=token_id)
    if len(uri) > limits.max_uri_length:
        raise _reject(
            InvalidArgument(f"URI exceeds {limits.max_uri_length} characters"),
            op,
            principal=principal,
            token_id=token_id,
        )

    with get_db_connection() as conn, transaction(conn):
        credit = _load_credit(conn, token_id, op)
        if credit["owner"] != principal:
            raise _reject(Unauthorized(REASON_NOT_OWNER), op, principal=principal, token_id=token_id)
        if config_loader.policy.uri_requires_active and not credit["active"]:
            raise _reject(InvalidState(REASON_NOT_ACTIVE), op, principal=principal, token_id=token_id)

        conn.execute("UPDATE credits SET uri = ? WHERE token_id = ?", (uri, token_id))
        append_event(
            conn,
            event_type=CREDIT_URI_SET,
            principal=principal,
            token_id=token_id,
            payload={"token_id": token_id, "uri": uri},
        )

    logger.info("Token URI set", token_id=token_id, principal=principal)


# ── Queries ─────────────────────────────────────────────────────────────────

def get_credit(token_id: int) -> Credit:
    token_id = _token_id(token_id, "get_credit")
    with get_db_connection() as conn:
        return Credit.from_row(_load_credit(conn, token_id, "get_credit"))


def get_credit_details(token_id: int) -> CreditDetails:
    """Public details of a credit: (amount, source, created_at, emission_data, active)."""
    token_id = _token_id(token_id, "get_credit_details")
    with get_db_connection() as conn:
        return Credit.from_row(_load_credit(conn, token_id, "get_credit_details")).details


def owner_of(token_id: int) -> str:
    token_id = _token_id(token_id, "owner_of")
    with get_db_connection() as conn:
        return _load_credit(conn, token_id, "owner_of")["owner"]


def token_uri(token_id: int) -> str:
    """Metadata pointer of a credit; empty string when never set."""
    token_id = _token_id(token_id, "token_uri")
    with get_db_connection() as conn:
        return _load_credit(conn, token_id, "token_uri")["uri"] or ""


def get_company_tokens(principal: str) -> list[int]:
    """Every credit id minted by ``principal``, in mint order."""
    principal = _principal(principal, "get_company_tokens")
    with get_db_connection() as conn:
        rows = conn.execute(
            "SELECT token_id FROM company_tokens WHERE owner = ? ORDER BY position ASC",
            (principal,),
        ).fetchall()
    return [int(r["token_id"]) for r in rows]


def credit_count(principal: str) -> int:
    principal = _principal(principal, "credit_count")
    with get_db_connection() as conn:
        return int(conn.execute(
            "SELECT COUNT(*) FROM company_tokens WHERE owner = ?",
            (principal,),
        ).fetchone()[0])


def get_emissions(principal: str) -> int:
    principal = _principal(principal, "get_emissions")
    with get_db_connection() as conn:
        return _balance(conn, principal)


def total_supply() -> int:
    with get_db_connection() as conn:
        return int(conn.execute("SELECT COUNT(*) FROM credits").fetchone()[0])


def list_events(
    *,
    token_id: int | None = None,
    principal: str | None = None,
    after_seq: int = 0,
    limit: int = 100,
) -> list[LedgerEvent]:
    """Ordered slice of the event log, optionally filtered by credit or principal."""
    if not _is_int(limit) or limit < 1 or limit > MAX_EVENT_PAGE:
        raise InvalidArgument(f"limit must be between 1 and {MAX_EVENT_PAGE}")
    if not _is_int(after_seq) or not 0 <= after_seq <= SQLITE_MAX_INT:
        raise InvalidArgument("after_seq must be a non-negative integer")

    clauses = ["seq > ?"]
    params: list = [after_seq]
    if token_id is not None:
        clauses.append("token_id = ?")
        params.append(_token_id(token_id, "list_events"))
    if principal is not None:
        clauses.append("principal = ?")
        params.append(_principal(principal, "list_events"))
    params.append(limit)

    with get_db_connection() as conn:
        rows = conn.execute(
            f"SELECT * FROM event_log WHERE {' AND '.join(clauses)} ORDER BY seq ASC LIMIT ?",
            tuple(params),
        ).fetchall()
    return [LedgerEvent.from_row(r) for r in rows]
