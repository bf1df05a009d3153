import os
import tempfile
import threading
import unittest
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

from carbonledger.daemon.db import init_db
from carbonledger.daemon.errors import InsufficientBalance, InvalidState, LedgerError
from carbonledger.daemon.ledger import engine, replay_ledger
from carbonledger.daemon.utils.config_loader import LedgerConfig, config_loader

WORKERS = 8


class ConcurrentMutationTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self._env = patch.dict(os.environ, {"CCL_DB_PATH": os.path.join(self._tmp.name, "ledger.db")}, clear=False)
        self._env.start()
        config_loader.config = LedgerConfig()
        init_db()

    def tearDown(self):
        self._env.stop()
        self._tmp.cleanup()

    def _run_together(self, fn, count):
        barrier = threading.Barrier(count)

        def worker(i):
            barrier.wait()
            try:
                return fn(i)
            except LedgerError as exc:
                return exc

        with ThreadPoolExecutor(max_workers=count) as pool:
            return list(pool.map(worker, range(count)))

    def test_parallel_mints_get_distinct_ids(self):
        results = self._run_together(
            lambda i: engine.mint_credit(f"0xC{i % 3}", 10 + i, f"Project {i}", i),
            WORKERS * 3,
        )

        self.assertTrue(all(isinstance(r, int) for r in results), results)
        self.assertEqual(sorted(results), list(range(1, WORKERS * 3 + 1)))
        self.assertEqual(engine.total_supply(), WORKERS * 3)

        for company in ("0xC0", "0xC1", "0xC2"):
            tokens = engine.get_company_tokens(company)
            self.assertEqual(tokens, sorted(tokens))
            self.assertEqual(len(tokens), WORKERS)

    def test_same_credit_offset_once(self):
        engine.record_emission("0xA", 1_000)
        token_id = engine.mint_credit("0xA", 100, "Forest", 0)

        results = self._run_together(lambda _: engine.offset_emissions("0xA", token_id), WORKERS)

        successes = [r for r in results if r is None]
        self.assertEqual(len(successes), 1)
        self.assertTrue(all(isinstance(r, InvalidState) for r in results if r is not None))
        self.assertEqual(engine.get_emissions("0xA"), 900)

    def test_balance_never_goes_negative(self):
        engine.record_emission("0xA", 250)
        tokens = [engine.mint_credit("0xA", 100, f"Wind {i}", 0) for i in range(WORKERS)]

        results = self._run_together(lambda i: engine.offset_emissions("0xA", tokens[i]), WORKERS)

        self.assertEqual(sum(1 for r in results if r is None), 2)
        self.assertTrue(all(isinstance(r, InsufficientBalance) for r in results if r is not None))
        self.assertEqual(engine.get_emissions("0xA"), 50)

    def test_concurrent_records_are_all_applied(self):
        self._run_together(lambda i: engine.record_emission("0xA", i + 1), WORKERS)

        self.assertEqual(engine.get_emissions("0xA"), sum(range(1, WORKERS + 1)))
        self.assertTrue(replay_ledger().ok)


if __name__ == "__main__":
    unittest.main()
