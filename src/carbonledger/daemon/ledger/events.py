"""Hash-chained ledger event appends."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from typing import Any

GENESIS_HASH = "GENESIS"

EMISSION_RECORDED = "emission.recorded"
CREDIT_MINTED = "credit.minted"
CREDIT_OFFSET = "credit.offset"
CREDIT_URI_SET = "credit.uri_set"

EVENT_TYPES = (EMISSION_RECORDED, CREDIT_MINTED, CREDIT_OFFSET, CREDIT_URI_SET)


@dataclass
class LedgerEvent:
    seq: int
    event_type: str
    principal: str
    token_id: int | None
    payload: dict[str, Any]
    prev_hash: str
    event_hash: str
    created_at: str

    @classmethod
    def from_row(cls, row) -> "LedgerEvent":
        return cls(
            seq=int(row["seq"]),
            event_type=row["event_type"],
            principal=row["principal"],
            token_id=row["token_id"],
            payload=json.loads(row["payload_json"]),
            prev_hash=row["prev_hash"],
            event_hash=row["event_hash"],
            created_at=str(row["created_at"]),
        )


def canonical_json(value: Any) -> str:
    """Serialize data into stable JSON for replay-safe hashes."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=True)


def event_hash(prev_hash: str, event_type: str, principal: str, token_id: int | None, payload_json: str) -> str:
    h = hashlib.sha256()
    for part in (prev_hash, event_type, principal, "" if token_id is None else str(token_id), payload_json):
        h.update(part.encode("utf-8"))
        h.update(b"\n")
    return h.hexdigest()


def append_event(
    conn,
    *,
    event_type: str,
    principal: str,
    token_id: int | None = None,
    payload: dict[str, Any],
) -> LedgerEvent:
    """Append an event to the hash-chained event_log.

    Must be called inside an existing write transaction; the write lock held
    by BEGIN IMMEDIATE keeps the predecessor stable while the hash is computed.
    """
    if event_type not in EVENT_TYPES:
        raise ValueError(f"Unknown event type '{event_type}'")

    payload_json = canonical_json(payload)
    last = conn.execute(
        "SELECT event_hash FROM event_log ORDER BY seq DESC LIMIT 1"
    ).fetchone()
    prev_hash = last["event_hash"] if last else GENESIS_HASH
    digest = event_hash(prev_hash, event_type, principal, token_id, payload_json)

    cursor = conn.execute(
        """
        INSERT INTO event_log (event_type, principal, token_id, payload_json, prev_hash, event_hash)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (event_type, principal, token_id, payload_json, prev_hash, digest),
    )
    row = conn.execute(
        "SELECT * FROM event_log WHERE seq = ?",
        (cursor.lastrowid,),
    ).fetchone()
    return LedgerEvent.from_row(row)


def verify_chain_rows(rows) -> tuple[bool, str]:
    """Check prev/event hashes of ``rows`` given in ascending seq order."""
    prev = GENESIS_HASH
    for row in rows:
        expected = event_hash(prev, row["event_type"], row["principal"], row["token_id"], row["payload_json"])
        if row["prev_hash"] != prev:
            return False, f"prev_hash mismatch at seq={row['seq']}"
        if row["event_hash"] != expected:
            return False, f"event_hash mismatch at seq={row['seq']}"
        prev = row["event_hash"]
    return True, f"hash chain verified for {len(rows)} events"
