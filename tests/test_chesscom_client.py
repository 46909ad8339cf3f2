import unittest
from unittest.mock import patch

from chessbench.chess_clients.chesscom_client import (
    ChesscomClient,
    ChesscomClientContext,
    _parse_retry_after,
)
from chessbench.chess_clients.game_batch import GameBatchRequest
from chessbench.config import ChesscomSettings, Settings
from chessbench.errors import RateLimitError
from chessbench.models import GameSourceName, Outcome
from chessbench.utils.logger import get_logger
from tests.http_fakes import FakeResponse, chesscom_game, make_fake_get

ARCHIVE_BASE = "https://api.chess.com/pub/player/alice/games"


def _client(**chesscom_overrides: object) -> ChesscomClient:
    values: dict[str, object] = {
        "token": None,
        "players": ("alice",),
        "time_class": None,
        "players_per_batch": 4,
        "archive_months": 12,
        "max_retries": 2,
        "retry_backoff_ms": 500,
    }
    values.update(chesscom_overrides)
    settings = Settings(sources=("chesscom",), chesscom=ChesscomSettings(**values))
    return ChesscomClient(
        ChesscomClientContext(settings=settings, logger=get_logger("test.chesscom"))
    )


def _archive_index() -> FakeResponse:
    return FakeResponse(json_data={"archives": [f"{ARCHIVE_BASE}/2024/01", f"{ARCHIVE_BASE}/2024/02"]})


class ChesscomClientTests(unittest.TestCase):
    def test_walks_archives_newest_first(self) -> None:
        urls: list[str] = []
        responses = [
            _archive_index(),
            FakeResponse(json_data={"games": [chesscom_game(101), chesscom_game(102)]}),
            FakeResponse(json_data={"games": [chesscom_game(99)]}),
        ]

        with patch("requests.get", side_effect=make_fake_get(responses, captured_urls=urls)):
            batch = _client().fetch_batch(GameBatchRequest(count=3))

        self.assertEqual(
            [record.game_id for record in batch.records], ["cc_102", "cc_101", "cc_99"]
        )
        self.assertTrue(urls[1].endswith("2024/02"))
        self.assertTrue(all(r.source is GameSourceName.CHESSCOM for r in batch.records))
        self.assertEqual(batch.records[0].metadata["fetched_for"], "alice")

    def test_stops_once_count_is_reached(self) -> None:
        urls: list[str] = []
        responses = [
            _archive_index(),
            FakeResponse(json_data={"games": [chesscom_game(101), chesscom_game(102)]}),
        ]

        with patch("requests.get", side_effect=make_fake_get(responses, captured_urls=urls)):
            batch = _client().fetch_batch(GameBatchRequest(count=1))

        self.assertEqual(len(batch.records), 1)
        self.assertEqual(len(urls), 2)

    def test_excluded_raw_ids_are_skipped(self) -> None:
        responses = [
            _archive_index(),
            FakeResponse(json_data={"games": [chesscom_game(101), chesscom_game(102)]}),
            FakeResponse(json_data={"games": []}),
        ]

        with patch("requests.get", side_effect=make_fake_get(responses)):
            batch = _client().fetch_batch(
                GameBatchRequest(count=5, exclude_ids=frozenset({"102"}))
            )

        self.assertEqual([record.game_id for record in batch.records], ["cc_101"])

    def test_time_class_filter_and_player_result_fallback(self) -> None:
        unfinished_header = chesscom_game(
            103, result="*", white_result="agreed", black_result="agreed"
        )
        responses = [
            _archive_index(),
            FakeResponse(
                json_data={
                    "games": [
                        unfinished_header,
                        chesscom_game(104, time_class="bullet"),
                    ]
                }
            ),
            FakeResponse(json_data={"games": []}),
        ]

        with patch("requests.get", side_effect=make_fake_get(responses)):
            batch = _client(time_class="blitz").fetch_batch(GameBatchRequest(count=5))

        self.assertEqual(len(batch.records), 1)
        self.assertEqual(batch.records[0].game_id, "cc_103")
        self.assertIs(batch.records[0].outcome, Outcome.DRAW)

    def test_rate_limit_retries_with_backoff(self) -> None:
        responses = [
            FakeResponse(status_code=429),
            _archive_index(),
            FakeResponse(json_data={"games": [chesscom_game(101)]}),
            FakeResponse(json_data={"games": []}),
        ]

        with (
            patch("requests.get", side_effect=make_fake_get(responses)),
            patch("time.sleep") as sleep,
        ):
            batch = _client().fetch_batch(GameBatchRequest(count=2))

        sleep.assert_called_once_with(0.5)
        self.assertEqual(len(batch.records), 1)

    def test_rate_limit_exhaustion_raises_when_every_player_fails(self) -> None:
        responses = [FakeResponse(status_code=429) for _ in range(3)]

        with (
            patch("requests.get", side_effect=make_fake_get(responses)),
            patch("time.sleep"),
            self.assertRaises(RateLimitError),
        ):
            _client().fetch_batch(GameBatchRequest(count=2))

    def test_archive_failure_is_skipped(self) -> None:
        responses = [
            _archive_index(),
            FakeResponse(status_code=500),
            FakeResponse(json_data={"games": [chesscom_game(99)]}),
        ]

        with patch("requests.get", side_effect=make_fake_get(responses)):
            batch = _client().fetch_batch(GameBatchRequest(count=2))

        self.assertEqual([record.game_id for record in batch.records], ["cc_99"])

    def test_no_players_returns_empty_batch(self) -> None:
        batch = _client(players=()).fetch_batch(GameBatchRequest(count=2))
        self.assertEqual(batch.records, [])


def test_parse_retry_after_accepts_seconds() -> None:
    assert _parse_retry_after("3") == 3.0
    assert _parse_retry_after("-1") == 0.0
    assert _parse_retry_after(None) is None
    assert _parse_retry_after("not a date") is None


if __name__ == "__main__":
    unittest.main()
