import tempfile
import unittest
from pathlib import Path

from chessbench.chess_clients.fixture_client import FixtureClient, FixtureClientContext
from chessbench.chess_clients.game_batch import GameBatchRequest
from chessbench.config import Settings
from chessbench.utils.logger import get_logger

FIXTURE_PATH = Path(__file__).resolve().parent / "fixtures" / "benchmark_sample.pgn"


def _client(path: Path) -> FixtureClient:
    settings = Settings(sources=("fixture",), fixture_pgn_path=path)
    return FixtureClient(
        FixtureClientContext(settings=settings, logger=get_logger("test"), fixture_path=path)
    )


class FixtureClientTests(unittest.TestCase):
    def test_pages_through_file_with_cursor(self) -> None:
        client = _client(FIXTURE_PATH)

        first = client.fetch_batch(GameBatchRequest(count=4))
        second = client.fetch_batch(GameBatchRequest(count=4, cursor=first.next_cursor))
        third = client.fetch_batch(GameBatchRequest(count=4, cursor=second.next_cursor))

        self.assertEqual(len(first.records), 4)
        self.assertEqual(first.next_cursor, "4")
        self.assertEqual(len(second.records), 2)
        self.assertEqual(third.records, [])
        ids = [record.game_id for record in first.records + second.records]
        self.assertEqual(len(set(ids)), 6)
        self.assertIn("fx_RuyLop01", ids)

    def test_excluded_ids_are_skipped(self) -> None:
        client = _client(FIXTURE_PATH)

        batch = client.fetch_batch(
            GameBatchRequest(count=2, exclude_ids=frozenset({"fx_RuyLop01", "104857600"}))
        )

        ids = [record.game_id for record in batch.records]
        self.assertNotIn("fx_RuyLop01", ids)
        self.assertNotIn("fx_104857600", ids)
        self.assertEqual(len(ids), 2)

    def test_missing_file_yields_no_records(self) -> None:
        client = _client(Path(tempfile.mkdtemp()) / "missing.pgn")

        with self.assertLogs("test", level="WARNING"):
            batch = client.fetch_batch(GameBatchRequest(count=3))

        self.assertEqual(batch.records, [])

    def test_bad_cursor_restarts_from_beginning(self) -> None:
        client = _client(FIXTURE_PATH)

        batch = client.fetch_batch(GameBatchRequest(count=1, cursor="not-a-number"))

        self.assertEqual(batch.next_cursor, "1")


if __name__ == "__main__":
    unittest.main()
