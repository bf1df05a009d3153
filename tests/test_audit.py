"""
Invariant, hash-chain and replay audit tests.
"""
import sqlite3

import pytest

from carbonledger.daemon.db import check_db_integrity, get_db_connection
from carbonledger.daemon.ledger import engine, replay_ledger, verify_hash_chain
from carbonledger.daemon.utils.invariants import run_all_checks


@pytest.fixture
def populated(ledger_db):
    engine.record_emission("0xA", 500)
    engine.record_emission("0xB", 40)
    first = engine.mint_credit("0xA", 100, "Forest Project Gamma", 5000)
    second = engine.mint_credit("0xB", 25, "Wind Turbines Beta", 27500)
    engine.mint_credit("0xA", 10, "Solar Farm Alpha", 11957)
    engine.offset_emissions("0xA", first)
    engine.offset_emissions("0xB", second)
    engine.set_token_uri("0xA", first, "ipfs://gamma")
    return ledger_db


def _raw_execute(sql, params=()):
    with get_db_connection() as conn:
        conn.execute(sql, params)


def _failed(results):
    return {r.name for r in results if not r.passed}


class TestHealthyLedger:
    def test_all_invariants_pass(self, populated):
        with get_db_connection() as conn:
            results = run_all_checks(conn, include_event_hash_chain=True)
        assert _failed(results) == set()
        assert len(results) == 7

    def test_chain_and_replay_pass(self, populated):
        chain = verify_hash_chain()
        replay = replay_ledger()
        assert chain.ok, chain.detail
        assert replay.ok, replay.detail
        assert "8 events" in chain.detail

    def test_startup_gate_passes(self, populated):
        assert check_db_integrity() is True

    def test_empty_ledger_is_consistent(self, ledger_db):
        assert verify_hash_chain().ok
        assert replay_ledger().ok
        assert check_db_integrity() is True


class TestTamperDetection:
    def test_edited_balance_detected(self, populated):
        _raw_execute("UPDATE balances SET emissions = emissions + 1 WHERE principal = '0xA'")

        with get_db_connection() as conn:
            assert "balances_match_events" in _failed(run_all_checks(conn))
        replay = replay_ledger()
        assert not replay.ok
        assert "0xA" in replay.detail

    def test_missing_index_entry_detected(self, populated):
        _raw_execute("DELETE FROM company_tokens WHERE token_id = 3")

        with get_db_connection() as conn:
            assert "owned_index_matches_owners" in _failed(run_all_checks(conn))
        assert not replay_ledger().ok

    def test_edited_uri_detected_by_replay(self, populated):
        _raw_execute("UPDATE credits SET uri = 'ipfs://forged' WHERE token_id = 1")

        replay = replay_ledger()
        assert not replay.ok
        assert "uri" in replay.detail

    def test_rewritten_event_breaks_chain(self, populated):
        with get_db_connection() as conn:
            conn.execute("DROP TRIGGER event_log_append_only")
            conn.execute("UPDATE event_log SET payload_json = '{\"amount\":1,\"balance\":1}' WHERE seq = 1")

        chain = verify_hash_chain()
        assert not chain.ok
        assert "seq=1" in chain.detail
        with get_db_connection() as conn:
            assert "event_hash_chain" in _failed(run_all_checks(conn, include_event_hash_chain=True))

    def test_missing_table_fails_startup_gate(self, ledger_db):
        with get_db_connection() as conn:
            conn.execute("DROP TABLE company_tokens")
        assert check_db_integrity() is False


class TestStorageGuards:
    def test_offset_credit_cannot_be_reactivated(self, populated):
        with pytest.raises(sqlite3.IntegrityError, match="reactivated"):
            _raw_execute("UPDATE credits SET active = 1 WHERE token_id = 1")

    def test_credit_fields_are_write_once(self, populated):
        with pytest.raises(sqlite3.IntegrityError, match="write-once"):
            _raw_execute("UPDATE credits SET amount = 1 WHERE token_id = 3")
        with pytest.raises(sqlite3.IntegrityError, match="write-once"):
            _raw_execute("UPDATE credits SET owner = '0xB' WHERE token_id = 3")

    def test_credits_are_never_deleted(self, populated):
        with pytest.raises(sqlite3.IntegrityError, match="never deleted"):
            _raw_execute("DELETE FROM credits WHERE token_id = 3")

    def test_event_log_is_append_only(self, populated):
        with pytest.raises(sqlite3.IntegrityError, match="append-only"):
            _raw_execute("UPDATE event_log SET principal = '0xZ' WHERE seq = 1")

    def test_events_cannot_be_deleted(self, populated):
        with pytest.raises(sqlite3.IntegrityError, match="append-only"):
            _raw_execute("DELETE FROM event_log WHERE seq = (SELECT MAX(seq) FROM event_log)")
        assert "8 events" in verify_hash_chain().detail

    def test_negative_balance_rejected_by_schema(self, populated):
        with pytest.raises(sqlite3.IntegrityError):
            _raw_execute("UPDATE balances SET emissions = -1 WHERE principal = '0xB'")

    def test_init_is_idempotent(self, populated):
        from carbonledger.daemon.db import init_db

        init_db()
        assert engine.total_supply() == 3
        assert verify_hash_chain().ok
