"""Chess.com game source built on the public archive API."""

from __future__ import annotations

# pylint: disable=broad-exception-caught
import math
import re
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime

import requests

from chessbench.chess_clients.base_chess_client import BaseChessClient, BaseChessClientContext
from chessbench.chess_clients.game_batch import GameBatch, GameBatchRequest
from chessbench.errors import RateLimitError
from chessbench.models import GameRecord, GameSourceName, Outcome
from chessbench.pgn_utils import game_record_from_pgn

ARCHIVES_URL = "https://api.chess.com/pub/player/{username}/games/archives"
HTTP_STATUS_TOO_MANY_REQUESTS = 429
PLAYER_ROTATION_STEP = 7
EXTRA_MONTHS_PER_BATCH = 2
MIN_GAMES_PER_PLAYER = 10

_GAME_URL_ID_RE = re.compile(r"/(\d+)(?:[/?#]|$)")
_DRAW_RESULTS = frozenset(
    {"agreed", "repetition", "stalemate", "insufficient", "50move", "timevsinsufficient"}
)


def _auth_headers(token: str | None) -> dict[str, str]:
    """Build authorization headers.

    Args:
        token: API token if available.

    Returns:
        Headers dict for the request.
    """

    if not token:
        return {}
    return {"Authorization": f"Bearer {token}"}


def _parse_retry_after(value: str | None) -> float | None:
    """Parse Retry-After header values given as seconds or an HTTP date.

    Args:
        value: Retry-After header value.

    Returns:
        Number of seconds to wait, or None.
    """

    if not value:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        pass
    try:
        dt = parsedate_to_datetime(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return max((dt - datetime.now(UTC)).total_seconds(), 0.0)


def _game_url_id(url: str | None) -> str | None:
    if not url:
        return None
    match = _GAME_URL_ID_RE.search(url)
    return match.group(1) if match else None


def _outcome_from_players(game: dict) -> Outcome | None:
    white = (game.get("white") or {}).get("result")
    black = (game.get("black") or {}).get("result")
    if white == "win":
        return Outcome.WHITE_WINS
    if black == "win":
        return Outcome.BLACK_WINS
    if white in _DRAW_RESULTS or black in _DRAW_RESULTS:
        return Outcome.DRAW
    return None


@dataclass(slots=True)
class ChesscomClientContext(BaseChessClientContext):
    """Context for Chess.com API interactions."""


class ChesscomClient(BaseChessClient):
    """Fetch archived games of a rotating pool of strong Chess.com players."""

    name = GameSourceName.CHESSCOM.value

    def __init__(self, context: ChesscomClientContext) -> None:
        """Initialize the client with Chess.com-specific context.

        Args:
            context: Client context containing settings and logger.
        """

        super().__init__(context)

    def fetch_batch(self, request: GameBatchRequest) -> GameBatch:
        """Fetch up to ``request.count`` unseen Chess.com games.

        Args:
            request: Count, exclusion set and batch number for the fetch.

        Returns:
            Game batch with records in archive order, newest month first.

        Raises:
            Exception: The last player error when every player failed.

        Example:
            >>> client.fetch_batch(GameBatchRequest(count=20, batch_number=3))
        """

        players = self._rotate_players(
            self.settings.chesscom.players, request.batch_number, PLAYER_ROTATION_STEP
        )[: self.settings.chesscom.players_per_batch]
        if not players or request.count <= 0:
            return GameBatch()
        per_player = max(MIN_GAMES_PER_PLAYER, math.ceil(request.count / len(players)))
        months = self.settings.chesscom.archive_months + request.batch_number * EXTRA_MONTHS_PER_BATCH
        records: list[GameRecord] = []
        seen: set[str] = set()
        rate_limited = 0
        failures: list[Exception] = []
        for player in players:
            if len(records) >= request.count:
                break
            try:
                archives = self._fetch_archive_index(player)
            except Exception as exc:
                rate_limited += int(isinstance(exc, RateLimitError))
                failures.append(exc)
                self.logger.warning("Chess.com archive index failed for %s: %s", player, exc)
                continue
            quota = min(per_player, request.count - len(records))
            records.extend(
                self._collect_player_games(
                    player, archives[-months:], request.exclude_ids, seen, quota
                )
            )
        if failures and len(failures) == len(players):
            raise failures[-1]
        self.logger.info(
            "Fetched %s Chess.com games (batch=%s)", len(records), request.batch_number
        )
        return GameBatch(records=records, rate_limited=rate_limited)

    def _fetch_archive_index(self, player: str) -> list[str]:
        """Fetch the monthly archive URLs for a player, oldest first.

        Args:
            player: Chess.com username.

        Returns:
            List of archive URLs.
        """

        response = self._get_with_backoff(ARCHIVES_URL.format(username=player.lower()), timeout=15)
        archives = response.json().get("archives", [])
        if not archives:
            self.logger.info("No archives returned for %s", player)
        return list(archives)

    def _collect_player_games(
        self,
        player: str,
        archives: list[str],
        exclude_ids: frozenset[str],
        seen: set[str],
        quota: int,
    ) -> list[GameRecord]:
        """Walk a player's archives newest first until ``quota`` games are accepted.

        Args:
            player: Chess.com username, kept in the record metadata.
            archives: Archive URLs, oldest first.
            exclude_ids: Ids the caller does not want back.
            seen: Ids already accepted in this batch.
            quota: Maximum number of games to accept for this player.

        Returns:
            Accepted records.
        """

        accepted: list[GameRecord] = []
        for archive_url in reversed(archives):
            if len(accepted) >= quota:
                break
            games = self._safe_fetch_archive(archive_url)
            candidates = [
                record
                for record in (self._to_record(game, player) for game in reversed(games))
                if record is not None
            ]
            accepted.extend(
                self._accept_records(candidates, exclude_ids, seen, quota - len(accepted))
            )
        return accepted

    def _safe_fetch_archive(self, archive_url: str) -> list[dict]:
        """Fetch a single archive with error handling.

        Args:
            archive_url: Archive endpoint URL.

        Returns:
            List of raw game dictionaries.
        """

        try:
            return list(self._get_with_backoff(archive_url, timeout=20).json().get("games", []))
        except Exception as exc:
            self.logger.warning("Failed to fetch archive %s: %s", archive_url, exc)
            return []

    def _to_record(self, game: dict, player: str) -> GameRecord | None:
        """Convert a raw archive game into a record.

        Args:
            game: Raw game dictionary.
            player: Player whose archive the game came from.

        Returns:
            Game record, or None when the game has no PGN, no result, or the
            wrong time class.
        """

        time_class = self.settings.chesscom.time_class
        if time_class and game.get("time_class") != time_class:
            return None
        pgn = game.get("pgn")
        if not pgn:
            return None
        record = game_record_from_pgn(
            pgn,
            GameSourceName.CHESSCOM,
            native_id=_game_url_id(game.get("url")),
            extra_metadata={
                "fetched_for": player,
                "time_class": game.get("time_class"),
                "white_elo": (game.get("white") or {}).get("rating"),
                "black_elo": (game.get("black") or {}).get("rating"),
            },
        )
        if record.outcome is None:
            outcome = _outcome_from_players(game)
            if outcome is None:
                return None
            record = record.model_copy(update={"outcome": outcome})
        return record

    def _get_with_backoff(self, url: str, timeout: int) -> requests.Response:
        """Fetch a URL with exponential backoff on 429 responses.

        Args:
            url: URL to request.
            timeout: Timeout in seconds.

        Returns:
            Response object.

        Raises:
            RateLimitError: When retries are exhausted.
        """

        max_retries = max(self.settings.chesscom.max_retries, 0)
        base_backoff = max(self.settings.chesscom.retry_backoff_ms, 0) / 1000.0
        attempt = 0
        while True:
            response = requests.get(
                url,
                headers=_auth_headers(self.settings.chesscom.token),
                timeout=timeout,
            )
            if response.status_code != HTTP_STATUS_TOO_MANY_REQUESTS:
                response.raise_for_status()
                return response
            attempt = self._handle_rate_limit(response, attempt, max_retries, base_backoff)

    def _handle_rate_limit(
        self,
        response: requests.Response,
        attempt: int,
        max_retries: int,
        base_backoff: float,
    ) -> int:
        """Sleep before retrying a rate-limited request.

        Args:
            response: HTTP response.
            attempt: Current attempt count.
            max_retries: Maximum retry count.
            base_backoff: Base backoff in seconds.

        Returns:
            Next attempt count.
        """

        retry_after = _parse_retry_after(response.headers.get("Retry-After"))
        if attempt >= max_retries:
            raise RateLimitError("Chess.com rate limit exceeded", response=response)
        wait_seconds = max(base_backoff * (2**attempt), retry_after or 0.0)
        self.logger.warning(
            "Chess.com rate limited (429). Retrying in %.2fs (attempt %s/%s).",
            wait_seconds,
            attempt + 1,
            max_retries,
        )
        if wait_seconds:
            time.sleep(wait_seconds)
        return attempt + 1
