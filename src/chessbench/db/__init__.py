"""DuckDB persistence for prediction attempts and run aggregates."""

from chessbench.db.duckdb_result_store import DuckDbResultStore
from chessbench.db.duckdb_unit_of_work import DuckDbUnitOfWork

__all__ = ["DuckDbResultStore", "DuckDbUnitOfWork"]
