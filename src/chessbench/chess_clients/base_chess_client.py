from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from chessbench.chess_clients.game_batch import GameBatch, GameBatchRequest
from chessbench.config import Settings
from chessbench.models import GameRecord, strip_source_prefix


@dataclass(slots=True)
class BaseChessClientContext:
    """Shared context for chess API clients.

    Attributes:
        settings: Application settings used for API calls.
        logger: Logger for client-specific messages.
    """

    settings: Settings
    logger: logging.Logger


class BaseChessClient:
    """Base class for game sources.

    Subclasses are expected to implement `fetch_batch` and set `name`.
    """

    name = "base"

    def __init__(self, context: BaseChessClientContext) -> None:
        """Initialize the client with shared context.

        Args:
            context: Base context containing settings and logger.
        """

        self._context = context

    @property
    def settings(self) -> Settings:
        """Expose the settings from the context.

        Returns:
            The active `Settings` instance.
        """

        return self._context.settings

    @property
    def logger(self) -> logging.Logger:
        """Expose the logger from the context.

        Returns:
            Logger used by the client.
        """

        return self._context.logger

    def fetch_batch(self, request: GameBatchRequest) -> GameBatch:
        """Fetch a batch of candidate games.

        Args:
            request: Count, exclusion set and cursor for the fetch.

        Returns:
            A `GameBatch` with records and the cursor for the next call.

        Raises:
            NotImplementedError: When the subclass does not implement this method.

        Example:
            >>> client.fetch_batch(GameBatchRequest(count=10))
        """

        raise NotImplementedError("Subclasses must implement fetch_batch")

    @staticmethod
    def _rotate_players(players: Sequence[str], batch_number: int, step: int) -> list[str]:
        """Rotate a player pool so consecutive batches start at different players.

        Args:
            players: Configured player pool.
            batch_number: Zero-based batch counter.
            step: Offset applied per batch.

        Returns:
            The rotated pool.
        """

        if not players:
            return []
        offset = (batch_number * step) % len(players)
        return [*players[offset:], *players[:offset]]

    @staticmethod
    def _accept_records(
        records: Iterable[GameRecord],
        exclude_ids: frozenset[str],
        seen_ids: set[str],
        limit: int,
    ) -> list[GameRecord]:
        """Drop excluded and repeated records, stopping at ``limit``.

        Args:
            records: Candidate records in provider order.
            exclude_ids: Ids to skip; raw (unprefixed) ids also match.
            seen_ids: Ids already accepted in this batch, updated in place.
            limit: Maximum number of records to accept.

        Returns:
            Accepted records in provider order.
        """

        accepted: list[GameRecord] = []
        for record in records:
            if len(accepted) >= limit:
                break
            if record.game_id in seen_ids:
                continue
            if record.game_id in exclude_ids or strip_source_prefix(record.game_id) in exclude_ids:
                continue
            seen_ids.add(record.game_id)
            accepted.append(record)
        return accepted
