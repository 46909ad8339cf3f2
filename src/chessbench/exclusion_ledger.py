"""In-memory record of which game ids must not be scored again."""

from __future__ import annotations

from collections.abc import Iterable

from chessbench.errors import LedgerInvariantError
from chessbench.models import strip_source_prefix
from chessbench.ports.result_store import ResultStore
from chessbench.utils.logger import get_logger

logger = get_logger(__name__)


class ExclusionLedger:
    """Track persisted, predicted-this-run and failed-this-run game ids.

    ``persisted`` is loaded once from the result store and grows as this run's
    flushes succeed. Within a run an id is either predicted or failed, never
    both. Not thread safe; the run loop is the only writer.
    """

    def __init__(self, persisted: Iterable[str] = ()) -> None:
        self._persisted: set[str] = set(persisted)
        self._predicted: set[str] = set()
        self._failed: set[str] = set()

    @classmethod
    def from_store(cls, store: ResultStore) -> ExclusionLedger:
        persisted = store.load_recorded_ids()
        logger.info("Loaded %s previously scored game ids", len(persisted))
        return cls(persisted)

    @property
    def persisted(self) -> frozenset[str]:
        return frozenset(self._persisted)

    @property
    def session_predicted(self) -> frozenset[str]:
        return frozenset(self._predicted)

    @property
    def session_failed(self) -> frozenset[str]:
        return frozenset(self._failed)

    def is_excluded(self, game_id: str) -> bool:
        """Return True when the id is persisted, predicted or failed.

        A source-prefixed id and its raw provider id are treated as the same game.
        """
        return any(self._contains(candidate) for candidate in _id_forms(game_id))

    def is_persisted(self, game_id: str) -> bool:
        return any(candidate in self._persisted for candidate in _id_forms(game_id))

    def mark_predicted(self, game_id: str) -> None:
        if game_id in self._failed:
            raise LedgerInvariantError(f"{game_id} already failed this run")
        self._predicted.add(game_id)

    def mark_failed(self, game_id: str) -> None:
        if game_id in self._predicted:
            raise LedgerInvariantError(f"{game_id} already predicted this run")
        self._failed.add(game_id)

    def mark_persisted(self, game_ids: Iterable[str]) -> None:
        """Fold flushed ids into the durable set."""
        self._persisted.update(game_ids)

    def clear_failed(self, game_id: str | None = None) -> None:
        """Allow failed ids to be retried: one id, or all of them when ``None``."""
        if game_id is None:
            self._failed.clear()
        else:
            self._failed.discard(game_id)

    def persisted_snapshot(self) -> frozenset[str]:
        """Return the fetch-time filter handed to game sources."""
        return frozenset(self._persisted)

    def _contains(self, game_id: str) -> bool:
        return game_id in self._persisted or game_id in self._predicted or game_id in self._failed


def _id_forms(game_id: str) -> tuple[str, ...]:
    raw = strip_source_prefix(game_id)
    return (game_id,) if raw == game_id else (game_id, raw)
