import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock

import duckdb

from chessbench.db.duckdb_result_store import DuckDbResultStore
from chessbench.db.duckdb_store import (
    SCHEMA_VERSION,
    fetch_attempts_for_run,
    get_connection,
    get_schema_version,
    init_schema,
    insert_prediction_attempts,
)
from chessbench.db.duckdb_unit_of_work import DuckDbUnitOfWork
from chessbench.errors import StoreWriteError
from chessbench.models import Outcome, RunAggregate, RunPhase
from tests.fakes import make_attempt


class DuckDbStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp_dir = Path(tempfile.mkdtemp())
        self.db_path = self.tmp_dir / "bench.duckdb"

    def test_init_schema_is_versioned_and_idempotent(self) -> None:
        conn = get_connection(self.db_path)
        init_schema(conn)
        init_schema(conn)

        self.assertEqual(get_schema_version(conn), SCHEMA_VERSION)
        columns = {row[1] for row in conn.execute("PRAGMA table_info('benchmark_runs')").fetchall()}
        self.assertIn("depth_accuracy", columns)
        self.assertIn("pattern_only_count", columns)
        conn.close()

    def test_insert_ignores_existing_game_ids(self) -> None:
        conn = get_connection(self.db_path)
        init_schema(conn)
        insert_prediction_attempts(conn, [make_attempt("fx_1", run_id="run-a")])
        insert_prediction_attempts(
            conn, [make_attempt("fx_1", run_id="run-b"), make_attempt("fx_2", run_id="run-b")]
        )

        count = conn.execute("SELECT COUNT(*) FROM prediction_attempts").fetchone()[0]
        first = conn.execute(
            "SELECT run_id FROM prediction_attempts WHERE game_id = 'fx_1'"
        ).fetchone()[0]
        self.assertEqual(count, 2)
        self.assertEqual(first, "run-a")
        rows = fetch_attempts_for_run(conn, "run-b")
        self.assertEqual([row["game_id"] for row in rows], ["fx_2"])
        conn.close()

    def test_attempts_are_read_back_in_insert_order(self) -> None:
        conn = get_connection(self.db_path)
        init_schema(conn)
        insert_prediction_attempts(conn, [make_attempt("fx_z"), make_attempt("fx_a")])
        insert_prediction_attempts(conn, [make_attempt("fx_m")])

        rows = fetch_attempts_for_run(conn, "run-1")

        self.assertEqual([row["game_id"] for row in rows], ["fx_z", "fx_a", "fx_m"])
        conn.close()

    def test_result_store_round_trips_attempts_and_aggregate(self) -> None:
        store = DuckDbResultStore(self.db_path)
        aggregate = RunAggregate(run_id="run-1", target_count=2)
        attempts = [make_attempt("fx_1"), make_attempt("fx_2", actual=Outcome.DRAW)]
        for attempt in attempts:
            aggregate.record(attempt, requested_depth=12)

        written = store.upsert_attempts(attempts, aggregate)

        self.assertEqual(written, ["fx_1", "fx_2"])
        self.assertEqual(store.load_recorded_ids(), {"fx_1", "fx_2"})
        self.assertTrue(store.has_recorded("fx_1"))
        self.assertFalse(store.has_recorded("fx_3"))
        run = store.fetch_run("run-1")
        self.assertEqual(run["completed_count"], 2)
        self.assertEqual(run["pattern_correct"], 1)
        self.assertEqual(run["evaluator_correct"], 1)
        self.assertEqual(run["archetype_performance"]["risk_taker"], {"correct": 1, "total": 2})
        stored = store.fetch_attempts("run-1")
        self.assertEqual(stored[1]["agreement"], "evaluator_only")
        self.assertEqual(stored[0]["actual_outcome"], "white")

    def test_run_aggregate_upsert_updates_in_place(self) -> None:
        store = DuckDbResultStore(self.db_path)
        aggregate = RunAggregate(run_id="run-1", target_count=5)
        store.upsert_run_aggregate("run-1", aggregate)
        aggregate.record(make_attempt("fx_1"), requested_depth=12)
        aggregate.mark(RunPhase.COMPLETED)
        store.upsert_run_aggregate("run-1", aggregate)

        conn = get_connection(self.db_path)
        rows = conn.execute("SELECT status, completed_count FROM benchmark_runs").fetchall()
        conn.close()
        self.assertEqual(rows, [("completed", 1)])

    def test_aggregate_for_other_run_is_rejected(self) -> None:
        store = DuckDbResultStore(self.db_path)
        with self.assertRaises(ValueError):
            store.upsert_run_aggregate("run-2", RunAggregate(run_id="run-1", target_count=1))

    def test_data_survives_reopening(self) -> None:
        DuckDbResultStore(self.db_path).upsert_attempt(make_attempt("fx_9"))

        self.assertEqual(DuckDbResultStore(self.db_path).load_recorded_ids(), {"fx_9"})

    def test_write_failure_becomes_store_write_error_and_rolls_back(self) -> None:
        store = DuckDbResultStore(self.db_path)
        conn = MagicMock()
        conn.executemany.side_effect = duckdb.IOException("disk full")
        uow = DuckDbUnitOfWork(self.db_path, connection_factory=lambda _path: conn)
        store._uow_factory = lambda _path: uow

        with self.assertRaises(StoreWriteError):
            store.upsert_attempts([make_attempt("fx_1")])

        conn.execute.assert_any_call("ROLLBACK")
        conn.close.assert_called_once()

    def test_unit_of_work_commits(self) -> None:
        uow = DuckDbUnitOfWork(self.db_path)
        conn = uow.begin()
        init_schema(conn)
        insert_prediction_attempts(conn, [make_attempt("fx_1")])
        uow.commit()
        uow.close()

        self.assertEqual(DuckDbResultStore(self.db_path).load_recorded_ids(), {"fx_1"})

    def test_unit_of_work_close_rolls_back_uncommitted(self) -> None:
        DuckDbResultStore(self.db_path)
        uow = DuckDbUnitOfWork(self.db_path)
        insert_prediction_attempts(uow.begin(), [make_attempt("fx_1")])
        uow.close()

        self.assertEqual(DuckDbResultStore(self.db_path).load_recorded_ids(), set())


if __name__ == "__main__":
    unittest.main()
