"""Port interface for the durable result store."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from chessbench.models import PredictionAttempt, RunAggregate


class ResultStore(Protocol):
    """Append-only store keyed by ``game_id`` for attempts and ``run_id`` for runs.

    Every write is an upsert so concurrent runs and re-flushes never create
    duplicates.
    """

    def has_recorded(self, game_id: str) -> bool:
        """Return True when an attempt for ``game_id`` is already stored."""

    def upsert_attempt(self, attempt: PredictionAttempt) -> None:
        """Store one attempt; a second write for the same id is ignored."""

    def upsert_attempts(
        self,
        attempts: Sequence[PredictionAttempt],
        aggregate: RunAggregate | None = None,
    ) -> list[str]:
        """Store attempts and optionally the run aggregate in one transaction.

        Returns the ids of the attempts that were written or already present.
        """

    def upsert_run_aggregate(self, run_id: str, aggregate: RunAggregate) -> None:
        """Insert or update the aggregate row for ``run_id``."""

    def load_recorded_ids(self) -> set[str]:
        """Return every game id that has a stored attempt."""
