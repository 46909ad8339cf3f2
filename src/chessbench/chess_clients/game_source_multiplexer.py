"""Fan a fetch out across several game sources and merge the results."""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence

from chessbench.chess_clients.game_batch import GameBatchRequest
from chessbench.errors import SourceFetchError
from chessbench.models import GameRecord
from chessbench.ports.game_source import GameSource
from chessbench.utils.logger import get_logger

logger = get_logger(__name__)


class GameSourceMultiplexer:
    """Pull one bounded batch of candidate records from every configured source.

    The multiplexer keeps a cursor per source and a batch counter that
    sources use to rotate their player pools, so later batches move each
    provider forward. Records a source repeats are passed through; the
    caller decides what is still fresh. It never touches the caller's
    exclusion state.
    """

    def __init__(self, sources: Sequence[GameSource]) -> None:
        if not sources:
            raise ValueError("At least one game source is required")
        self._sources = list(sources)
        self._cursors: dict[str, str | None] = {}
        self._batch_number = 0
        self.rate_limited_total = 0

    @property
    def batch_number(self) -> int:
        return self._batch_number

    @property
    def source_names(self) -> list[str]:
        return [source.name for source in self._sources]

    def fetch(self, target_count: int, exclude_ids: Iterable[str]) -> list[GameRecord]:
        """Return up to roughly ``target_count`` records not in ``exclude_ids``.

        Each source is asked for ``ceil(target_count / len(sources))`` records.
        A failing source is logged and skipped. Fewer records than requested,
        including none, is a normal result.

        Raises:
            SourceFetchError: When every source raised.
        """

        per_source = math.ceil(target_count / len(self._sources))
        excluded = frozenset(exclude_ids)
        records: list[GameRecord] = []
        seen: set[str] = set()
        errors: dict[str, BaseException] = {}
        for source in self._sources:
            request = GameBatchRequest(
                count=per_source,
                exclude_ids=excluded,
                cursor=self._cursors.get(source.name),
                batch_number=self._batch_number,
            )
            try:
                batch = source.fetch_batch(request)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Game source %s failed: %s", source.name, exc)
                errors[source.name] = exc
                continue
            self._cursors[source.name] = batch.next_cursor
            self.rate_limited_total += batch.rate_limited
            for record in batch.records:
                if record.game_id in seen or _is_excluded(record, excluded):
                    continue
                seen.add(record.game_id)
                records.append(record)
        self._batch_number += 1
        if errors and len(errors) == len(self._sources):
            raise SourceFetchError(
                f"All {len(errors)} game sources failed: {', '.join(sorted(errors))}",
                errors=errors,
            )
        logger.info(
            "Fetched %s candidate games from %s sources (batch=%s, failed=%s, rate_limited=%s)",
            len(records),
            len(self._sources),
            self._batch_number,
            len(errors),
            self.rate_limited_total,
        )
        return records


def _is_excluded(record: GameRecord, excluded: frozenset[str]) -> bool:
    return record.game_id in excluded or record.raw_id in excluded
