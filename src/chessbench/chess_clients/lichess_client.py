"""Lichess game source built on berserk."""

# pylint: disable=protected-access

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass
from typing import cast

import berserk
from berserk.types.common import PerfType
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from chessbench.chess_clients.base_chess_client import BaseChessClient, BaseChessClientContext
from chessbench.chess_clients.game_batch import GameBatch, GameBatchRequest
from chessbench.config import Settings
from chessbench.models import GameRecord, GameSourceName
from chessbench.pgn_utils import game_record_from_pgn
from chessbench.utils.logger import Logger
from chessbench.utils.now import Now

logger = Logger(__name__)

DAY_MS = 24 * 60 * 60 * 1000
HTTP_STATUS_TOO_MANY_REQUESTS = 429
PLAYER_ROTATION_STEP = 17
PLAYER_WINDOW_STAGGER_DAYS = 30
MIN_GAMES_PER_PLAYER = 10

_PERF_TYPES: set[str] = {
    "ultraBullet",
    "bullet",
    "blitz",
    "rapid",
    "classical",
    "correspondence",
}


def _coerce_perf_type(value: str | None) -> PerfType | None:
    """Coerce a string to a Lichess perf type.

    Args:
        value: Perf type string.

    Returns:
        Perf type if valid, otherwise None.
    """

    if value and value in _PERF_TYPES:
        return cast(PerfType, value)
    return None


def _coerce_pgn_text(pgn: object) -> str:
    if isinstance(pgn, (bytes, bytearray)):
        return pgn.decode("utf-8", errors="replace")
    return str(pgn)


def _extract_status_code(exc: BaseException) -> int | None:
    """Extract status codes from Lichess API exceptions.

    Args:
        exc: Exception raised by the API.

    Returns:
        Status code if available.
    """

    for attr in ("status", "status_code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(exc, "response", None)
    status_code = getattr(response, "status_code", None)
    return status_code if isinstance(status_code, int) else None


def _is_rate_limited(exc: BaseException) -> bool:
    return _extract_status_code(exc) == HTTP_STATUS_TOO_MANY_REQUESTS


def build_client(settings: Settings) -> berserk.Client:
    """Build a Berserk client, authenticated when a token is configured.

    Args:
        settings: Settings for the request.

    Returns:
        Berserk client instance.
    """

    if settings.lichess.token:
        return berserk.Client(session=berserk.TokenSession(settings.lichess.token))
    return berserk.Client()


def resolve_fetch_window(batch_number: int, player_index: int, settings: Settings) -> tuple[int, int]:
    """Return the ``(since_ms, until_ms)`` window for one player in one batch.

    Windows move further into the past as batches progress so repeated
    batches reach games that earlier ones did not.
    """

    days_back = (
        batch_number * settings.lichess.batch_step_days
        + player_index * PLAYER_WINDOW_STAGGER_DAYS
    )
    until_ms = Now.as_milliseconds() - days_back * DAY_MS
    since_ms = until_ms - settings.lichess.window_days * DAY_MS
    return since_ms, until_ms


@dataclass(slots=True)
class LichessClientContext(BaseChessClientContext):
    """Context for Lichess API interactions."""


class LichessClient(BaseChessClient):
    """Fetch recent games of a rotating pool of strong Lichess players."""

    name = GameSourceName.LICHESS.value

    def __init__(self, context: LichessClientContext) -> None:
        """Initialize the client with Lichess-specific context.

        Args:
            context: Client context containing settings and logger.
        """

        super().__init__(context)

    def fetch_batch(self, request: GameBatchRequest) -> GameBatch:
        """Fetch up to ``request.count`` unseen Lichess games.

        Args:
            request: Count, exclusion set and batch number for the fetch.

        Returns:
            Game batch; a player that keeps failing is skipped.

        Raises:
            Exception: The last player error when every player failed.
        """

        players = self._rotate_players(
            self.settings.lichess.players, request.batch_number, PLAYER_ROTATION_STEP
        )[: self.settings.lichess.players_per_batch]
        if not players or request.count <= 0:
            return GameBatch()
        per_player = max(MIN_GAMES_PER_PLAYER, math.ceil(request.count / len(players)))
        records: list[GameRecord] = []
        seen: set[str] = set()
        rate_limited = 0
        failures: list[Exception] = []
        for index, player in enumerate(players):
            if len(records) >= request.count:
                break
            since_ms, until_ms = resolve_fetch_window(request.batch_number, index, self.settings)
            try:
                pgns = self._fetch_player_games(player, since_ms, until_ms, per_player)
            except Exception as exc:  # noqa: BLE001
                rate_limited += int(_is_rate_limited(exc))
                failures.append(exc)
                self.logger.warning("Lichess fetch failed for %s: %s", player, exc)
                continue
            records.extend(
                self._accept_records(
                    self._to_records(pgns, player),
                    request.exclude_ids,
                    seen,
                    request.count - len(records),
                )
            )
        if failures and len(failures) == len(players):
            raise failures[-1]
        self.logger.info(
            "Fetched %s Lichess games (batch=%s, rate_limited=%s)",
            len(records),
            request.batch_number,
            rate_limited,
        )
        return GameBatch(records=records, rate_limited=rate_limited)

    @retry(
        retry=retry_if_exception_type(Exception),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
        before_sleep=before_sleep_log(logger, logging.WARNING),
    )
    def _fetch_player_games(
        self, player: str, since_ms: int, until_ms: int, max_games: int
    ) -> list[str]:
        """Export one player's games as PGN text with retry.

        Args:
            player: Lichess username.
            since_ms: Window start.
            until_ms: Window end.
            max_games: Upper bound on exported games.

        Returns:
            PGN strings in export order.
        """

        client = build_client(self.settings)
        exported = client.games.export_by_player(
            player,
            as_pgn=True,
            since=since_ms,
            until=until_ms,
            max=max_games,
            perf_type=_coerce_perf_type(self.settings.lichess.perf_type),
            rated=True,
            evals=False,
            clocks=False,
            moves=True,
            opening=True,
        )
        return [_coerce_pgn_text(pgn) for pgn in exported if pgn]

    def _to_records(self, pgns: Iterable[str], player: str) -> list[GameRecord]:
        records: list[GameRecord] = []
        for pgn in pgns:
            record = game_record_from_pgn(
                pgn, GameSourceName.LICHESS, extra_metadata={"fetched_for": player}
            )
            if record.outcome is None:
                continue
            records.append(record)
        return records
