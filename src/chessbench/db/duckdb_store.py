from __future__ import annotations

import json
import os
from collections.abc import Iterable, Sequence
from pathlib import Path

import duckdb

from chessbench.models import PredictionAttempt, RunAggregate
from chessbench.utils.logger import get_logger

logger = get_logger(__name__)


PREDICTION_ATTEMPTS_SCHEMA = """
CREATE TABLE IF NOT EXISTS prediction_attempts (
    game_id TEXT PRIMARY KEY,
    run_id TEXT,
    source TEXT,
    position_fen TEXT,
    position_hash TEXT,
    cutoff_move INTEGER,
    pattern_prediction TEXT,
    pattern_confidence DOUBLE,
    pattern_archetype TEXT,
    evaluator_prediction TEXT,
    evaluator_confidence DOUBLE,
    evaluator_score INTEGER,
    evaluator_depth_reached INTEGER,
    evaluator_mate_in INTEGER,
    actual_outcome TEXT,
    pattern_correct BOOLEAN,
    evaluator_correct BOOLEAN,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
"""

BENCHMARK_RUNS_SCHEMA = """
CREATE TABLE IF NOT EXISTS benchmark_runs (
    run_id TEXT PRIMARY KEY,
    status TEXT,
    target_count INTEGER,
    completed_count INTEGER,
    pattern_correct INTEGER,
    evaluator_correct INTEGER,
    pattern_accuracy DOUBLE,
    evaluator_accuracy DOUBLE,
    both_correct_count INTEGER,
    both_wrong_count INTEGER,
    started_at TIMESTAMP,
    updated_at TIMESTAMP
);
"""

SCHEMA_VERSION_SCHEMA = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER,
    updated_at TIMESTAMP
);
"""

SCHEMA_VERSION = 4

_ATTEMPT_COLUMNS = (
    "game_id",
    "run_id",
    "source",
    "position_fen",
    "position_hash",
    "cutoff_move",
    "pattern_prediction",
    "pattern_confidence",
    "pattern_archetype",
    "evaluator_prediction",
    "evaluator_confidence",
    "evaluator_score",
    "evaluator_depth_reached",
    "evaluator_mate_in",
    "actual_outcome",
    "pattern_correct",
    "evaluator_correct",
    "agreement",
    "time_control",
    "game_strength_fide",
)

_RUN_COLUMNS = (
    "run_id",
    "status",
    "target_count",
    "completed_count",
    "pattern_correct",
    "evaluator_correct",
    "pattern_accuracy",
    "evaluator_accuracy",
    "both_correct_count",
    "both_wrong_count",
    "pattern_only_count",
    "evaluator_only_count",
    "average_depth",
    "max_depth",
    "min_depth",
    "depth_accuracy",
    "archetype_performance",
    "started_at",
    "updated_at",
)


def get_connection(db_path: Path | str) -> duckdb.DuckDBPyConnection:
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    logger.debug("Opening DuckDB at %s", db_path)
    try:
        return duckdb.connect(str(db_path))
    except duckdb.InternalException as exc:
        if not _should_attempt_wal_recovery(exc):
            raise
        wal_path = db_path.with_name(f"{db_path.name}.wal")
        if not wal_path.exists():
            raise
        logger.warning("Removing DuckDB WAL after replay error: %s", wal_path)
        try:
            wal_path.unlink()
        except OSError:
            logger.exception("Failed to remove WAL file: %s", wal_path)
            raise
        return duckdb.connect(str(db_path))


def init_schema(conn: duckdb.DuckDBPyConnection) -> None:
    migrate_schema(conn)


def migrate_schema(conn: duckdb.DuckDBPyConnection) -> None:
    conn.execute(SCHEMA_VERSION_SCHEMA)
    version = _get_schema_version(conn)
    for target_version, migration in _SCHEMA_MIGRATIONS:
        if version >= target_version:
            continue
        logger.info("Applying DuckDB schema migration v%s", target_version)
        migration(conn)
        _set_schema_version(conn, target_version)
        version = target_version


def get_schema_version(conn: duckdb.DuckDBPyConnection) -> int:
    return _get_schema_version(conn)


def _should_attempt_wal_recovery(exc: Exception) -> bool:
    if "wal" not in str(exc).lower():
        return False
    if os.getenv("PYTEST_CURRENT_TEST"):
        return True
    allow = os.getenv("CHESSBENCH_ALLOW_WAL_RECOVERY", "").lower()
    return allow in {"1", "true", "yes"}


def _get_schema_version(conn: duckdb.DuckDBPyConnection) -> int:
    row = conn.execute("SELECT version FROM schema_version LIMIT 1").fetchone()
    if not row:
        return 0
    return int(row[0] or 0)


def _set_schema_version(conn: duckdb.DuckDBPyConnection, version: int) -> None:
    conn.execute("DELETE FROM schema_version")
    conn.execute("INSERT INTO schema_version VALUES (?, CURRENT_TIMESTAMP)", [version])


def _ensure_column(
    conn: duckdb.DuckDBPyConnection, table: str, column: str, definition: str
) -> None:
    columns = {row[1] for row in conn.execute(f"PRAGMA table_info('{table}')").fetchall()}
    if column not in columns:
        conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {definition}")


def _migration_base_tables(conn: duckdb.DuckDBPyConnection) -> None:
    conn.execute(PREDICTION_ATTEMPTS_SCHEMA)
    conn.execute(BENCHMARK_RUNS_SCHEMA)


def _migration_add_agreement_columns(conn: duckdb.DuckDBPyConnection) -> None:
    _ensure_column(conn, "prediction_attempts", "agreement", "TEXT")
    _ensure_column(conn, "prediction_attempts", "time_control", "TEXT")
    _ensure_column(conn, "prediction_attempts", "game_strength_fide", "INTEGER")
    _ensure_column(conn, "benchmark_runs", "pattern_only_count", "INTEGER")
    _ensure_column(conn, "benchmark_runs", "evaluator_only_count", "INTEGER")


def _migration_add_depth_stats(conn: duckdb.DuckDBPyConnection) -> None:
    _ensure_column(conn, "benchmark_runs", "average_depth", "DOUBLE")
    _ensure_column(conn, "benchmark_runs", "max_depth", "INTEGER")
    _ensure_column(conn, "benchmark_runs", "min_depth", "INTEGER")
    _ensure_column(conn, "benchmark_runs", "depth_accuracy", "DOUBLE")
    _ensure_column(conn, "benchmark_runs", "archetype_performance", "TEXT")


def _migration_add_insert_seq(conn: duckdb.DuckDBPyConnection) -> None:
    _ensure_column(conn, "prediction_attempts", "insert_seq", "BIGINT")


_SCHEMA_MIGRATIONS = [
    (1, _migration_base_tables),
    (2, _migration_add_agreement_columns),
    (3, _migration_add_depth_stats),
    (4, _migration_add_insert_seq),
]


def _attempt_values(attempt: PredictionAttempt) -> list[object]:
    row = attempt.to_row()
    return [row[column] for column in _ATTEMPT_COLUMNS]


def _run_values(aggregate: RunAggregate) -> list[object]:
    row: dict[str, object] = {
        "run_id": aggregate.run_id,
        "status": aggregate.status.value,
        "target_count": aggregate.target_count,
        "completed_count": aggregate.completed_count,
        "pattern_correct": aggregate.pattern_correct,
        "evaluator_correct": aggregate.evaluator_correct,
        "pattern_accuracy": aggregate.pattern_accuracy,
        "evaluator_accuracy": aggregate.evaluator_accuracy,
        "both_correct_count": aggregate.both_correct_count,
        "both_wrong_count": aggregate.both_wrong_count,
        "pattern_only_count": aggregate.pattern_only_count,
        "evaluator_only_count": aggregate.evaluator_only_count,
        "average_depth": aggregate.average_depth,
        "max_depth": aggregate.max_depth,
        "min_depth": aggregate.min_depth,
        "depth_accuracy": aggregate.depth_accuracy,
        "archetype_performance": json.dumps(
            {name: tally.model_dump() for name, tally in aggregate.archetype_performance.items()},
            sort_keys=True,
        ),
        "started_at": aggregate.started_at.replace(tzinfo=None),
        "updated_at": aggregate.updated_at.replace(tzinfo=None),
    }
    return [row[column] for column in _RUN_COLUMNS]


def insert_prediction_attempts(
    conn: duckdb.DuckDBPyConnection, attempts: Sequence[PredictionAttempt]
) -> list[str]:
    """Insert attempts keyed by ``game_id``; rows already stored are left untouched.

    New rows get increasing ``insert_seq`` values so reads come back in
    draw order. Returns the ids of every attempt passed in, since each is
    durably stored afterwards whether it was new or not.
    """
    if not attempts:
        return []
    columns = ", ".join((*_ATTEMPT_COLUMNS, "insert_seq"))
    placeholders = ", ".join("?" for _ in range(len(_ATTEMPT_COLUMNS) + 1))
    start = _next_insert_seq(conn)
    conn.executemany(
        f"""
        INSERT INTO prediction_attempts ({columns})
        VALUES ({placeholders})
        ON CONFLICT (game_id) DO NOTHING
        """,
        [
            [*_attempt_values(attempt), start + offset]
            for offset, attempt in enumerate(attempts)
        ],
    )
    return [attempt.game_id for attempt in attempts]


def _next_insert_seq(conn: duckdb.DuckDBPyConnection) -> int:
    row = conn.execute("SELECT COALESCE(MAX(insert_seq), 0) FROM prediction_attempts").fetchone()
    return int(row[0]) + 1


def upsert_benchmark_run(conn: duckdb.DuckDBPyConnection, aggregate: RunAggregate) -> None:
    columns = ", ".join(_RUN_COLUMNS)
    placeholders = ", ".join("?" for _ in _RUN_COLUMNS)
    updates = ", ".join(
        f"{column} = EXCLUDED.{column}"
        for column in _RUN_COLUMNS
        if column not in {"run_id", "started_at"}
    )
    conn.execute(
        f"""
        INSERT INTO benchmark_runs ({columns})
        VALUES ({placeholders})
        ON CONFLICT (run_id) DO UPDATE SET {updates}
        """,
        _run_values(aggregate),
    )


def fetch_recorded_game_ids(conn: duckdb.DuckDBPyConnection) -> set[str]:
    return {str(row[0]) for row in conn.execute("SELECT game_id FROM prediction_attempts").fetchall()}


def has_recorded_game(conn: duckdb.DuckDBPyConnection, game_id: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM prediction_attempts WHERE game_id = ? LIMIT 1", [game_id]
    ).fetchone()
    return row is not None


def fetch_run_aggregate(conn: duckdb.DuckDBPyConnection, run_id: str) -> dict[str, object] | None:
    cursor = conn.execute(
        f"SELECT {', '.join(_RUN_COLUMNS)} FROM benchmark_runs WHERE run_id = ?", [run_id]
    )
    row = cursor.fetchone()
    if row is None:
        return None
    result = dict(zip(_RUN_COLUMNS, row, strict=True))
    result["archetype_performance"] = json.loads(str(result["archetype_performance"] or "{}"))
    return result


def fetch_attempts_for_run(
    conn: duckdb.DuckDBPyConnection, run_id: str
) -> list[dict[str, object]]:
    rows = conn.execute(
        f"""
        SELECT {', '.join(_ATTEMPT_COLUMNS)}
        FROM prediction_attempts
        WHERE run_id = ?
        ORDER BY insert_seq NULLS FIRST, created_at, game_id
        """,
        [run_id],
    ).fetchall()
    return _rows_to_dicts(_ATTEMPT_COLUMNS, rows)


def _rows_to_dicts(
    columns: Sequence[str], rows: Iterable[Sequence[object]]
) -> list[dict[str, object]]:
    return [dict(zip(columns, row, strict=True)) for row in rows]
