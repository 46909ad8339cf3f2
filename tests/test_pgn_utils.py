from pathlib import Path

from chessbench.models import GameSourceName, Outcome
from chessbench.pgn_utils import (
    build_metadata,
    extract_site_id,
    game_record_from_pgn,
    read_pgn_headers,
    split_pgn_chunks,
    tokenize_moves,
)

FIXTURE_PATH = Path(__file__).resolve().parent / "fixtures" / "benchmark_sample.pgn"


def _chunks() -> list[str]:
    return split_pgn_chunks(FIXTURE_PATH.read_text(encoding="utf-8"))


def test_split_pgn_chunks_returns_one_chunk_per_game() -> None:
    chunks = _chunks()
    assert len(chunks) == 6
    assert all(chunk.startswith("[Event ") for chunk in chunks)


def test_extract_site_id_handles_both_providers() -> None:
    assert extract_site_id("", {"Site": "https://lichess.org/AbcDef12"}) == "AbcDef12"
    assert extract_site_id("", {"Site": "https://www.chess.com/game/live/123456789"}) == "123456789"
    assert extract_site_id("", {"Link": "https://www.chess.com/game/daily/987654"}) == "987654"
    assert extract_site_id("", {"Site": "Paris FRA"}) is None


def test_tokenize_strips_annotations_and_results() -> None:
    text = "1. e4 {[%clk 0:03:00]} e5 2. Nf3!? $1 (2. f4 exf4 (2... d5)) Nc6 ; note\n3. Bb5 a6 1-0"
    assert tokenize_moves(text) == ["e4", "e5", "Nf3", "Nc6", "Bb5", "a6"]


def test_tokenize_handles_black_move_numbers_and_bare_lists() -> None:
    assert tokenize_moves("12... Nf6 13. O-O") == ["Nf6", "O-O"]
    assert tokenize_moves("e4 e5 Nf3") == ["e4", "e5", "Nf3"]


def test_read_pgn_headers_ignores_bare_move_text() -> None:
    assert read_pgn_headers("1. e4 e5") == {}
    assert read_pgn_headers(_chunks()[0])["White"] == "Morphy, Paul"


def test_build_metadata_drops_unknown_values() -> None:
    metadata = build_metadata({"White": "a", "WhiteElo": "?", "BlackElo": "1500", "ECO": ""})
    assert metadata == {"white": "a", "black_elo": 1500}


def test_game_record_from_pgn_uses_site_id_and_result() -> None:
    record = game_record_from_pgn(_chunks()[1], GameSourceName.LICHESS)

    assert record.game_id == "li_RuyLop01"
    assert record.outcome is Outcome.DRAW
    assert record.time_control == "180+2"
    assert record.metadata["white_elo"] == 2450


def test_game_record_without_site_id_gets_stable_digest() -> None:
    opera = _chunks()[0]
    first = game_record_from_pgn(opera, GameSourceName.FIXTURE)
    second = game_record_from_pgn(opera.replace("\n", "  \n"), GameSourceName.FIXTURE)

    assert first.game_id.startswith("fx_")
    assert first.game_id == second.game_id
    assert first.outcome is Outcome.WHITE_WINS


def test_unfinished_game_has_no_outcome() -> None:
    record = game_record_from_pgn(_chunks()[5], GameSourceName.FIXTURE)
    assert record.outcome is None


def test_extra_metadata_skips_none() -> None:
    record = game_record_from_pgn(
        _chunks()[2], GameSourceName.CHESSCOM, extra_metadata={"time_class": "rapid", "x": None}
    )
    assert record.game_id == "cc_104857600"
    assert record.metadata["time_class"] == "rapid"
    assert "x" not in record.metadata
