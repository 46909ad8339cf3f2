"""Candidate unit of work pulled from a game source."""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, Field, field_validator

from chessbench.models.outcome import GameSourceName, Outcome
from chessbench.utils.hasher import short_hash

_WHITESPACE_RE = re.compile(r"\s+")


class GameRecord(BaseModel):
    """One historical game, keyed by a source-prefixed stable id."""

    model_config = ConfigDict(frozen=True)

    game_id: str = Field(min_length=1)
    source: GameSourceName
    move_text: str
    outcome: Outcome | None = None
    metadata: dict[str, object] = Field(default_factory=dict)

    @field_validator("game_id")
    @classmethod
    def _strip_game_id(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("game_id must not be blank")
        return value

    @property
    def raw_id(self) -> str:
        """Return the provider id without the source prefix."""
        return strip_source_prefix(self.game_id)

    @property
    def time_control(self) -> str | None:
        value = self.metadata.get("time_control")
        return str(value) if value else None


def build_game_id(source: GameSourceName, native_id: str | None, move_text: str) -> str:
    """Return the deterministic dedup key for a game.

    Uses the provider's own id when one is known; otherwise a SHA256 digest of
    the whitespace-normalized move text, so the same game always maps to the
    same id across runs and processes.
    """
    prefix = source.id_prefix
    if native_id:
        native_id = native_id.strip()
        return native_id if native_id.startswith(prefix) else f"{prefix}{native_id}"
    normalized = _WHITESPACE_RE.sub(" ", move_text).strip()
    return f"{prefix}{short_hash(normalized)}"


def strip_source_prefix(game_id: str) -> str:
    for source in GameSourceName:
        if game_id.startswith(source.id_prefix):
            return game_id[len(source.id_prefix) :]
    return game_id
