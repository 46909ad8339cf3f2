"""DuckDB-backed result store."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from contextlib import suppress
from pathlib import Path
from typing import TypeVar

import duckdb

from chessbench.db.duckdb_store import (
    fetch_attempts_for_run,
    fetch_recorded_game_ids,
    fetch_run_aggregate,
    get_connection,
    has_recorded_game,
    init_schema,
    insert_prediction_attempts,
    upsert_benchmark_run,
)
from chessbench.db.duckdb_unit_of_work import DuckDbUnitOfWork
from chessbench.errors import StoreWriteError
from chessbench.models import PredictionAttempt, RunAggregate
from chessbench.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class DuckDbResultStore:
    """Result store over a single DuckDB file.

    Each call opens its own connection so a crash between flushes leaves
    only committed rows behind. Write failures surface as `StoreWriteError`;
    read failures propagate unchanged.
    """

    def __init__(
        self,
        db_path: Path | str,
        unit_of_work_factory: Callable[[Path | str], DuckDbUnitOfWork] = DuckDbUnitOfWork,
    ) -> None:
        self._db_path = Path(db_path)
        self._uow_factory = unit_of_work_factory
        self._write(init_schema)

    @property
    def db_path(self) -> Path:
        return self._db_path

    def has_recorded(self, game_id: str) -> bool:
        return self._read(lambda conn: has_recorded_game(conn, game_id))

    def load_recorded_ids(self) -> set[str]:
        return self._read(fetch_recorded_game_ids)

    def upsert_attempt(self, attempt: PredictionAttempt) -> None:
        self.upsert_attempts([attempt])

    def upsert_attempts(
        self,
        attempts: Sequence[PredictionAttempt],
        aggregate: RunAggregate | None = None,
    ) -> list[str]:
        def _operation(conn: duckdb.DuckDBPyConnection) -> list[str]:
            written = insert_prediction_attempts(conn, attempts)
            if aggregate is not None:
                upsert_benchmark_run(conn, aggregate)
            return written

        written = self._write(_operation)
        logger.debug("Stored %s prediction attempts", len(written))
        return written

    def upsert_run_aggregate(self, run_id: str, aggregate: RunAggregate) -> None:
        if aggregate.run_id != run_id:
            raise ValueError(f"Aggregate belongs to run {aggregate.run_id}, not {run_id}")
        self._write(lambda conn: upsert_benchmark_run(conn, aggregate))

    def fetch_run(self, run_id: str) -> dict[str, object] | None:
        return self._read(lambda conn: fetch_run_aggregate(conn, run_id))

    def fetch_attempts(self, run_id: str) -> list[dict[str, object]]:
        return self._read(lambda conn: fetch_attempts_for_run(conn, run_id))

    def _read(self, operation: Callable[[duckdb.DuckDBPyConnection], T]) -> T:
        conn = get_connection(self._db_path)
        try:
            return operation(conn)
        finally:
            conn.close()

    def _write(self, operation: Callable[[duckdb.DuckDBPyConnection], T]) -> T:
        uow = self._uow_factory(self._db_path)
        try:
            conn = uow.begin()
            result = operation(conn)
            uow.commit()
            return result
        except (duckdb.Error, OSError) as exc:
            with suppress(duckdb.Error):
                uow.rollback()
            raise StoreWriteError(f"DuckDB write to {self._db_path} failed: {exc}") from exc
        finally:
            with suppress(duckdb.Error):
                uow.close()
