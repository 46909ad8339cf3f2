"""Offline game source backed by a multi-game PGN file."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from chessbench.chess_clients.base_chess_client import BaseChessClient, BaseChessClientContext
from chessbench.chess_clients.game_batch import GameBatch, GameBatchRequest
from chessbench.models import GameRecord, GameSourceName
from chessbench.pgn_utils import game_record_from_pgn, split_pgn_chunks


@dataclass(slots=True)
class FixtureClientContext(BaseChessClientContext):
    """Context for fixture-backed fetches."""

    fixture_path: Path | None = None


class FixtureClient(BaseChessClient):
    """Pages through a PGN file; the cursor is the index of the next game."""

    name = GameSourceName.FIXTURE.value

    def __init__(self, context: FixtureClientContext) -> None:
        super().__init__(context)
        self._fixture_path = context.fixture_path or context.settings.fixture_pgn_path
        self._records: list[GameRecord] | None = None

    def fetch_batch(self, request: GameBatchRequest) -> GameBatch:
        records = self._load_records()
        start = _parse_offset(request.cursor)
        seen: set[str] = set()
        accepted: list[GameRecord] = []
        position = start
        while position < len(records) and len(accepted) < request.count:
            accepted.extend(
                self._accept_records([records[position]], request.exclude_ids, seen, 1)
            )
            position += 1
        self.logger.info(
            "Fixture batch: %s games from offset %s (%s total)", len(accepted), start, len(records)
        )
        return GameBatch(records=accepted, next_cursor=str(position))

    def _load_records(self) -> list[GameRecord]:
        if self._records is not None:
            return self._records
        if not self._fixture_path.exists():
            self.logger.warning("Fixture PGN path missing: %s", self._fixture_path)
            self._records = []
            return self._records
        chunks = split_pgn_chunks(self._fixture_path.read_text(encoding="utf-8"))
        self._records = [game_record_from_pgn(chunk, GameSourceName.FIXTURE) for chunk in chunks]
        self.logger.info("Loaded %s fixture PGNs from %s", len(self._records), self._fixture_path)
        return self._records


def _parse_offset(cursor: str | None) -> int:
    if not cursor:
        return 0
    try:
        return max(int(cursor), 0)
    except ValueError:
        return 0
