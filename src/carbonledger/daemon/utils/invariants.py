"""
Ledger invariant layer: database integrity and lifecycle verification.

All checks are deterministic queries against the SQLite database.
No mutations. No side effects.
"""

import json
from collections import defaultdict
from dataclasses import dataclass
from typing import Optional


@dataclass
class InvariantResult:
    name: str
    passed: bool
    detail: Optional[str] = None


def _fail(name: str, prefix: str, violations: list[str]) -> InvariantResult:
    return InvariantResult(name=name, passed=False, detail=f"{prefix}: {'; '.join(violations[:10])}")


def check_no_negative_balances(conn) -> InvariantResult:
    """No principal's emission balance is below zero."""
    rows = conn.execute(
        "SELECT principal, emissions FROM balances WHERE emissions < 0"
    ).fetchall()

    if rows:
        return _fail("no_negative_balances", "Violations", [f"{r['principal']}: emissions={r['emissions']}" for r in rows])
    return InvariantResult(name="no_negative_balances", passed=True)


def check_positive_credit_amounts(conn) -> InvariantResult:
    """Every credit represents a positive amount of CO2."""
    rows = conn.execute(
        "SELECT token_id, amount FROM credits WHERE amount <= 0"
    ).fetchall()

    if rows:
        return _fail("positive_credit_amounts", "Violations", [f"credit #{r['token_id']}: amount={r['amount']}" for r in rows])
    return InvariantResult(name="positive_credit_amounts", passed=True)


def check_owned_index_matches_owners(conn) -> InvariantResult:
    """The owned-tokens index holds exactly the credits of each owner."""
    missing = conn.execute(
        """
        SELECT c.token_id, c.owner FROM credits c
        LEFT JOIN company_tokens t ON t.token_id = c.token_id
        WHERE t.token_id IS NULL OR t.owner != c.owner
        """
    ).fetchall()
    dangling = conn.execute(
        """
        SELECT t.token_id, t.owner FROM company_tokens t
        LEFT JOIN credits c ON c.token_id = t.token_id
        WHERE c.token_id IS NULL
        """
    ).fetchall()

    violations = [f"credit #{r['token_id']} (owner {r['owner']}) not indexed under its owner" for r in missing]
    violations += [f"index entry #{r['token_id']} under {r['owner']} has no credit" for r in dangling]
    if violations:
        return _fail("owned_index_matches_owners", "Violations", violations)
    return InvariantResult(name="owned_index_matches_owners", passed=True)


def check_index_in_mint_order(conn) -> InvariantResult:
    """Index positions per owner run 1..n in ascending token id order."""
    rows = conn.execute(
        "SELECT owner, position, token_id FROM company_tokens ORDER BY owner ASC, position ASC"
    ).fetchall()

    violations = []
    last: dict[str, tuple[int, int]] = {}
    for row in rows:
        prev_position, prev_token = last.get(row["owner"], (0, 0))
        if row["position"] != prev_position + 1:
            violations.append(f"{row['owner']}: position {row['position']} follows {prev_position}")
        if row["token_id"] <= prev_token:
            violations.append(f"{row['owner']}: token #{row['token_id']} listed after #{prev_token}")
        last[row["owner"]] = (row["position"], row["token_id"])

    if violations:
        return _fail("index_in_mint_order", "Violations", violations)
    return InvariantResult(name="index_in_mint_order", passed=True)


def check_offset_state_consistent(conn) -> InvariantResult:
    """Inactive credits carry an offset timestamp; active ones do not."""
    rows = conn.execute(
        """
        SELECT token_id, active, offset_at FROM credits
        WHERE (active = 0 AND offset_at IS NULL) OR (active = 1 AND offset_at IS NOT NULL)
        """
    ).fetchall()

    if rows:
        return _fail(
            "offset_state_consistent",
            "Violations",
            [f"credit #{r['token_id']}: active={r['active']} offset_at={r['offset_at']}" for r in rows],
        )
    return InvariantResult(name="offset_state_consistent", passed=True)


def check_balances_match_events(conn) -> InvariantResult:
    """Recorded emissions minus offset amounts per principal equal the live balance."""
    rows = conn.execute(
        "SELECT event_type, principal, payload_json FROM event_log "
        "WHERE event_type IN ('emission.recorded', 'credit.offset') ORDER BY seq ASC"
    ).fetchall()

    expected: dict[str, int] = defaultdict(int)
    for row in rows:
        amount = int(json.loads(row["payload_json"]).get("amount", 0))
        if row["event_type"] == "emission.recorded":
            expected[row["principal"]] += amount
        else:
            expected[row["principal"]] -= amount

    live = {r["principal"]: int(r["emissions"]) for r in conn.execute("SELECT principal, emissions FROM balances").fetchall()}

    mismatches = []
    for principal in sorted(set(expected) | set(live)):
        if expected.get(principal, 0) != live.get(principal, 0):
            mismatches.append(f"{principal}: balance={live.get(principal, 0)}, event_sum={expected.get(principal, 0)}")

    if mismatches:
        return _fail("balances_match_events", "Mismatches", mismatches)
    return InvariantResult(name="balances_match_events", passed=True)


def check_event_hash_chain(conn) -> InvariantResult:
    """The event log hash chain is unbroken."""
    from ..ledger.events import verify_chain_rows

    rows = conn.execute(
        "SELECT seq, event_type, principal, token_id, payload_json, prev_hash, event_hash FROM event_log ORDER BY seq ASC"
    ).fetchall()
    ok, detail = verify_chain_rows(rows)
    return InvariantResult(name="event_hash_chain", passed=ok, detail=None if ok else detail)


def run_all_checks(conn, *, include_event_hash_chain: bool = False) -> list[InvariantResult]:
    """Run all invariant checks and return results.

    The first two entries are the cheap checks used as the startup gate.
    """
    results = [
        check_no_negative_balances(conn),
        check_positive_credit_amounts(conn),
        check_owned_index_matches_owners(conn),
        check_index_in_mint_order(conn),
        check_offset_state_consistent(conn),
        check_balances_match_events(conn),
    ]
    if include_event_hash_chain:
        results.append(check_event_hash_chain(conn))
    return results
