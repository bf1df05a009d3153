"""Deterministic replay helpers for audit mode."""

from __future__ import annotations

import json
from collections import defaultdict
from dataclasses import dataclass
from typing import Any

from ..db import get_db_connection, transaction
from .events import CREDIT_MINTED, CREDIT_OFFSET, CREDIT_URI_SET, EMISSION_RECORDED, verify_chain_rows


@dataclass
class ReplayResult:
    ok: bool
    detail: str
    expected: Any | None = None
    observed: Any | None = None


def verify_hash_chain() -> ReplayResult:
    """Verify event_log hash chain integrity end-to-end."""
    with get_db_connection() as conn:
        rows = conn.execute(
            """
            SELECT seq, event_type, principal, token_id, payload_json, prev_hash, event_hash
            FROM event_log
            ORDER BY seq ASC
            """
        ).fetchall()

    ok, detail = verify_chain_rows(rows)
    return ReplayResult(ok=ok, detail=detail)


def _replay_events(rows) -> tuple[dict, dict, dict]:
    balances: dict[str, int] = defaultdict(int)
    credits: dict[int, dict] = {}
    index: dict[str, list[int]] = defaultdict(list)

    for row in rows:
        payload = json.loads(row["payload_json"])
        event_type = row["event_type"]
        if event_type == EMISSION_RECORDED:
            balances[row["principal"]] += int(payload["amount"])
        elif event_type == CREDIT_MINTED:
            token_id = int(payload["token_id"])
            credits[token_id] = {
                "owner": payload["owner"],
                "amount": int(payload["amount"]),
                "active": True,
                "uri": "",
            }
            index[payload["owner"]].append(token_id)
        elif event_type == CREDIT_OFFSET:
            token_id = int(payload["token_id"])
            balances[row["principal"]] -= int(payload["amount"])
            if token_id in credits:
                credits[token_id]["active"] = False
        elif event_type == CREDIT_URI_SET:
            token_id = int(payload["token_id"])
            if token_id in credits:
                credits[token_id]["uri"] = payload["uri"]
    return balances, credits, index


def replay_ledger() -> ReplayResult:
    """Rebuild balances, credit states and the owned-tokens index from events and compare with live tables."""
    with get_db_connection() as conn, transaction(conn, write=False):
        rows = conn.execute(
            "SELECT event_type, principal, payload_json FROM event_log ORDER BY seq ASC"
        ).fetchall()
        live_balances = conn.execute("SELECT principal, emissions FROM balances").fetchall()
        live_credits = conn.execute("SELECT token_id, owner, amount, active, uri FROM credits").fetchall()
        live_index = conn.execute(
            "SELECT owner, token_id FROM company_tokens ORDER BY owner ASC, position ASC"
        ).fetchall()

    balances, credits, index = _replay_events(rows)

    mismatches = []
    live_balance_map = {r["principal"]: int(r["emissions"]) for r in live_balances}
    for principal in sorted(set(balances) | set(live_balance_map)):
        rep = balances.get(principal, 0)
        live = live_balance_map.get(principal, 0)
        if rep != live:
            mismatches.append(f"{principal}: emissions replay={rep} live={live}")

    live_credit_ids = set()
    for row in live_credits:
        token_id = int(row["token_id"])
        live_credit_ids.add(token_id)
        rep = credits.get(token_id)
        if rep is None:
            mismatches.append(f"credit #{token_id}: present live, never minted in event log")
            continue
        live = {"owner": row["owner"], "amount": int(row["amount"]), "active": bool(row["active"]), "uri": row["uri"] or ""}
        for field, value in live.items():
            if rep[field] != value:
                mismatches.append(f"credit #{token_id}: {field} replay={rep[field]!r} live={value!r}")
    for token_id in sorted(set(credits) - live_credit_ids):
        mismatches.append(f"credit #{token_id}: minted in event log, missing live")

    live_index_map: dict[str, list[int]] = defaultdict(list)
    for row in live_index:
        live_index_map[row["owner"]].append(int(row["token_id"]))
    for owner in sorted(set(index) | set(live_index_map)):
        if index.get(owner, []) != live_index_map.get(owner, []):
            mismatches.append(
                f"{owner}: tokens replay={index.get(owner, [])} live={live_index_map.get(owner, [])}"
            )

    if mismatches:
        return ReplayResult(ok=False, detail="; ".join(mismatches[:10]))
    return ReplayResult(ok=True, detail=f"ledger replay matches live state ({len(rows)} events)")
