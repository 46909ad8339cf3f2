"""Port interface for game sources."""

# pylint: disable=too-few-public-methods

from __future__ import annotations

from typing import Protocol

from chessbench.chess_clients.game_batch import GameBatch, GameBatchRequest


class GameSource(Protocol):
    """Stable interface for a single game provider."""

    @property
    def name(self) -> str:
        """Return the provider name used in logs and error maps."""

    def fetch_batch(self, request: GameBatchRequest) -> GameBatch:
        """Fetch up to ``request.count`` games not listed in ``request.exclude_ids``."""
