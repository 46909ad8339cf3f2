"""Backlog of fetched-but-unprocessed records with empty-refill backoff."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from enum import StrEnum
from typing import Protocol

from chessbench.backoff_policy import BackoffPolicy
from chessbench.cancellation import CancellationToken
from chessbench.errors import SourceFetchError
from chessbench.exclusion_ledger import ExclusionLedger
from chessbench.models import GameRecord
from chessbench.utils.logger import get_logger

logger = get_logger(__name__)

SleepFn = Callable[[float], bool | None]


class QueueState(StrEnum):
    DRAINING = "draining"
    REFILLING = "refilling"
    EXHAUSTED = "exhausted"


class GameFetcher(Protocol):
    def fetch(self, target_count: int, exclude_ids: Iterable[str]) -> list[GameRecord]:
        """Return candidate records not in ``exclude_ids``."""


class QueueController:
    """Serve records one at a time, refilling from the fetcher when drained.

    An empty refill is one that yields no new processable record: nothing
    came back, the fetch raised `SourceFetchError`, or every record was
    already excluded or still waiting in the backlog. Consecutive empty refills grow
    ``empty_streak`` and are spaced by the backoff policy; the first refill
    that brings new work resets it. The queue becomes exhausted when
    ``empty_streak`` reaches ``max_empty_batches`` or the refill budget is spent.
    """

    def __init__(
        self,
        fetcher: GameFetcher,
        ledger: ExclusionLedger,
        *,
        batch_size: int,
        max_empty_batches: int,
        max_refill_attempts: int,
        backoff: BackoffPolicy,
        cancellation: CancellationToken | None = None,
        sleep: SleepFn | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._ledger = ledger
        self._batch_size = batch_size
        self._max_empty_batches = max_empty_batches
        self._max_refill_attempts = max_refill_attempts
        self._backoff = backoff
        self._cancellation = cancellation or CancellationToken()
        self._sleep: SleepFn = sleep or self._cancellation.wait
        self._backlog: list[GameRecord] = []
        self._pointer = 0
        self._queued_ids: set[str] = set()
        self.state = QueueState.DRAINING
        self.empty_streak = 0
        self.refill_attempts = 0

    @property
    def exhausted(self) -> bool:
        return self.state is QueueState.EXHAUSTED

    @property
    def pending(self) -> int:
        return len(self._backlog) - self._pointer

    def next_record(self) -> GameRecord | None:
        """Return the next queued record, or None when exhausted or cancelled."""
        while True:
            if self._cancellation.cancelled:
                return None
            if self._pointer < len(self._backlog):
                record = self._backlog[self._pointer]
                self._pointer += 1
                self._queued_ids.discard(record.game_id)
                return record
            if self.exhausted:
                return None
            self.refill()

    def refill(self) -> int:
        """Fetch one batch and queue its new records; return how many were queued."""
        if self.exhausted:
            return 0
        if self.refill_attempts >= self._max_refill_attempts:
            self._exhaust("refill budget of %s attempts spent", self._max_refill_attempts)
            return 0
        self.state = QueueState.REFILLING
        delay = self._backoff.delay(self.empty_streak)
        if delay > 0:
            logger.info("Backing off %.2fs after %s empty refills", delay, self.empty_streak)
            if self._sleep(delay) or self._cancellation.cancelled:
                return 0
        elif self._cancellation.cancelled:
            return 0

        self.refill_attempts += 1
        fresh = self._fresh_records(self._fetch())
        if fresh:
            self._backlog = self._backlog[self._pointer :] + fresh
            self._pointer = 0
            self._queued_ids.update(record.game_id for record in fresh)
            self.empty_streak = 0
            self.state = QueueState.DRAINING
            logger.info("Queued %s new games (refill %s)", len(fresh), self.refill_attempts)
            return len(fresh)

        self.empty_streak += 1
        logger.info(
            "Refill %s brought no new games (empty streak %s/%s)",
            self.refill_attempts,
            self.empty_streak,
            self._max_empty_batches,
        )
        if self.empty_streak >= self._max_empty_batches:
            self._exhaust("%s consecutive empty refills", self.empty_streak)
        elif self.refill_attempts >= self._max_refill_attempts:
            self._exhaust("refill budget of %s attempts spent", self._max_refill_attempts)
        return 0

    def _fetch(self) -> list[GameRecord]:
        try:
            return self._fetcher.fetch(self._batch_size, self._ledger.persisted_snapshot())
        except SourceFetchError as exc:
            logger.warning("Game fetch failed, counting as empty refill: %s", exc)
            return []

    def _fresh_records(self, fetched: list[GameRecord]) -> list[GameRecord]:
        fresh: list[GameRecord] = []
        batch_ids: set[str] = set()
        for record in fetched:
            game_id = record.game_id
            if game_id in batch_ids or game_id in self._queued_ids:
                continue
            if self._ledger.is_excluded(game_id):
                continue
            batch_ids.add(game_id)
            fresh.append(record)
        return fresh

    def _exhaust(self, reason: str, *args: object) -> None:
        self.state = QueueState.EXHAUSTED
        logger.warning("Game queue exhausted: " + reason, *args)
