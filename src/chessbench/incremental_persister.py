"""Buffered, periodic writes of scored attempts to the result store."""

from __future__ import annotations

import logging

from tenacity import (
    RetryError,
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from chessbench.errors import StoreWriteError
from chessbench.models import PredictionAttempt, RunAggregate
from chessbench.ports.result_store import ResultStore
from chessbench.utils.logger import get_logger

logger = get_logger(__name__)

FINAL_FLUSH_ATTEMPTS = 2


class IncrementalPersister:
    """Hold scored attempts in memory and write them every ``flush_interval`` successes.

    A failed periodic flush keeps the buffer so the next flush retries the
    same attempts. The terminal flush is retried once more and then gives
    up, so at most one interval of work is lost when the store is down.
    """

    def __init__(self, store: ResultStore, flush_interval: int) -> None:
        if flush_interval < 1:
            raise ValueError("flush_interval must be >= 1")
        self._store = store
        self._flush_interval = flush_interval
        self._buffer: list[PredictionAttempt] = []
        self.flushed_count = 0

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    def add(self, attempt: PredictionAttempt) -> None:
        self._buffer.append(attempt)

    def should_flush(self, completed: int) -> bool:
        return bool(self._buffer) and completed > 0 and completed % self._flush_interval == 0

    def flush(self, aggregate: RunAggregate | None = None) -> list[str]:
        """Write the buffer and aggregate; return the stored ids, or [] on failure."""
        try:
            return self._write(aggregate)
        except StoreWriteError as exc:
            logger.error("Flush of %s attempts failed, keeping buffer: %s", self.buffered, exc)
            return []

    def final_flush(self, aggregate: RunAggregate | None = None) -> list[str]:
        """Flush with one retry; log and drop what still cannot be written."""
        retrying = Retrying(
            retry=retry_if_exception_type(StoreWriteError),
            stop=stop_after_attempt(FINAL_FLUSH_ATTEMPTS),
            wait=wait_exponential(multiplier=1, min=1, max=4),
            before_sleep=before_sleep_log(logger, logging.WARNING),
        )
        try:
            return retrying(self._write, aggregate)
        except RetryError as exc:
            logger.error(
                "Final flush failed, %s attempts not persisted: %s",
                self.buffered,
                exc.last_attempt.exception(),
            )
            return []

    def emergency_flush(self, aggregate: RunAggregate | None = None) -> list[str]:
        """Single best-effort write used while a run is failing."""
        try:
            return self._write(aggregate)
        except StoreWriteError as exc:
            logger.error("Emergency flush lost %s attempts: %s", self.buffered, exc)
            return []

    def _write(self, aggregate: RunAggregate | None) -> list[str]:
        if not self._buffer and aggregate is None:
            return []
        written = self._store.upsert_attempts(list(self._buffer), aggregate)
        self.flushed_count += len(self._buffer)
        logger.info("Flushed %s attempts", len(self._buffer))
        self._buffer.clear()
        return written
