"""Map platform ratings to an approximate FIDE-equivalent game strength."""

from __future__ import annotations

from chessbench.models import GameRecord, GameSourceName
from chessbench.utils.logger import funclogger

PLATFORM_OFFSETS = {
    GameSourceName.LICHESS: -100,
    GameSourceName.CHESSCOM: -50,
    GameSourceName.FIXTURE: 0,
}


@funclogger
def game_strength_fide(record: GameRecord) -> int | None:
    """Return the calibrated average rating of both players, if known."""
    white = record.metadata.get("white_elo")
    black = record.metadata.get("black_elo")
    if not isinstance(white, int) or not isinstance(black, int):
        return None
    average = round((white + black) / 2)
    return average + PLATFORM_OFFSETS.get(record.source, 0)
