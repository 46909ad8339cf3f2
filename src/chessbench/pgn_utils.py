"""PGN parsing helpers shared by game sources and the position resolver."""

from __future__ import annotations

import re
from io import StringIO

import chess.pgn

from chessbench.models import GameRecord, GameSourceName, build_game_id, parse_outcome

SITE_PATTERNS = (
    re.compile(r"lichess\.org/([A-Za-z0-9]{8})"),
    re.compile(r"chess\.com/(?:game/live|game/daily|game|live/game)/(\d+)"),
    re.compile(r"chess\.com/.*/(\d{6,})"),
)
FIXTURE_SPLIT_RE = re.compile(r"\n{2,}(?=\[Event )")

_COMMENT_RE = re.compile(r"\{[^}]*\}")
_LINE_COMMENT_RE = re.compile(r";[^\n]*")
_VARIATION_RE = re.compile(r"\([^()]*\)")
_HEADER_LINE_RE = re.compile(r"^\s*\[[^\]]*\]\s*$", re.MULTILINE)
_NAG_RE = re.compile(r"\$\d+")
_MOVE_NUMBER_RE = re.compile(r"\d+\.+")
_ANNOTATION_RE = re.compile(r"[!?]+$")
_RESULT_TOKENS = frozenset({"1-0", "0-1", "1/2-1/2", "½-½", "*"})


def split_pgn_chunks(text: str) -> list[str]:
    """Split a multi-game PGN file into one string per game."""
    return [chunk.strip() for chunk in FIXTURE_SPLIT_RE.split(text) if chunk.strip()]


def read_pgn_headers(pgn: str) -> dict[str, str]:
    """Return the tag pairs of a PGN, or an empty dict for bare move text."""
    if not pgn.lstrip().startswith("["):
        return {}
    headers = chess.pgn.read_headers(StringIO(pgn))
    return dict(headers) if headers is not None else {}


def extract_site_id(pgn: str, headers: dict[str, str] | None = None) -> str | None:
    """Return the provider game id from the ``Site`` or ``Link`` header."""
    headers = read_pgn_headers(pgn) if headers is None else headers
    for key in ("Site", "Link"):
        value = headers.get(key, "")
        for pattern in SITE_PATTERNS:
            match = pattern.search(value)
            if match:
                return match.group(1)
    return None


def tokenize_moves(move_text: str) -> list[str]:
    """Return SAN tokens from PGN movetext or a bare space-separated move list.

    Headers, comments, variations, NAGs, move numbers, annotation glyphs and
    result tokens are removed. Legality is not checked here.

    Example:
        >>> tokenize_moves("1. e4 {best by test} e5 2. Nf3!? (2. f4 exf4) Nc6 1-0")
        ['e4', 'e5', 'Nf3', 'Nc6']
    """
    text = _HEADER_LINE_RE.sub(" ", move_text)
    text = _COMMENT_RE.sub(" ", text)
    text = _LINE_COMMENT_RE.sub(" ", text)
    while True:
        text, replaced = _VARIATION_RE.subn(" ", text)
        if not replaced:
            break
    text = _NAG_RE.sub(" ", text)
    text = _MOVE_NUMBER_RE.sub(" ", text)
    tokens: list[str] = []
    for raw in text.split():
        if raw in _RESULT_TOKENS:
            continue
        token = _ANNOTATION_RE.sub("", raw)
        if token:
            tokens.append(token)
    return tokens


def build_metadata(headers: dict[str, str]) -> dict[str, object]:
    metadata: dict[str, object] = {
        "white": headers.get("White"),
        "black": headers.get("Black"),
        "white_elo": _to_int(headers.get("WhiteElo")),
        "black_elo": _to_int(headers.get("BlackElo")),
        "time_control": headers.get("TimeControl"),
        "date": headers.get("UTCDate") or headers.get("Date"),
        "eco": headers.get("ECO"),
        "opening": headers.get("Opening"),
        "termination": headers.get("Termination"),
    }
    return {key: value for key, value in metadata.items() if value not in (None, "", "?")}


def game_record_from_pgn(
    pgn: str,
    source: GameSourceName,
    native_id: str | None = None,
    extra_metadata: dict[str, object] | None = None,
) -> GameRecord:
    """Build a `GameRecord` from PGN text.

    The id comes from ``native_id``, else from the site URL in the headers,
    else from a digest of the moves.
    """
    headers = read_pgn_headers(pgn)
    game_id = build_game_id(source, native_id or extract_site_id(pgn, headers), pgn)
    metadata = build_metadata(headers)
    metadata.update(
        {key: value for key, value in (extra_metadata or {}).items() if value is not None}
    )
    return GameRecord(
        game_id=game_id,
        source=source,
        move_text=pgn,
        outcome=parse_outcome(headers.get("Result")),
        metadata=metadata,
    )


def _to_int(value: str | None) -> int | None:
    if value is None or not value.strip().isdigit():
        return None
    return int(value.strip())
