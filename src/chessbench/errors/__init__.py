"""Custom error types used in chessbench."""

import requests


class RateLimitError(requests.HTTPError):
    """HTTP rate limit error."""


class BenchmarkError(Exception):
    """Base class for benchmark pipeline errors."""


class MalformedRecordError(BenchmarkError):
    """A game record cannot be replayed into a scorable position."""

    def __init__(self, game_id: str, reason: str) -> None:
        super().__init__(f"{game_id}: {reason}")
        self.game_id = game_id
        self.reason = reason


class EvaluatorTimeout(BenchmarkError):
    """The position evaluator did not answer within its time budget."""

    def __init__(self, timeout_s: float) -> None:
        super().__init__(f"Evaluator timed out after {timeout_s:.1f}s")
        self.timeout_s = timeout_s


class EvaluatorError(BenchmarkError):
    """The position evaluator failed while analysing a position."""


class SourceFetchError(BenchmarkError):
    """Every configured game source failed during one fetch."""

    def __init__(self, message: str, errors: dict[str, BaseException] | None = None) -> None:
        super().__init__(message)
        self.errors = dict(errors or {})


class StoreWriteError(BenchmarkError):
    """Writing attempts or run aggregates to the result store failed."""


class NoFreshGamesError(BenchmarkError):
    """The first refill produced no unscored games and the queue is exhausted."""


class LedgerInvariantError(BenchmarkError):
    """A game id was given two different terminal classifications in one run."""


__all__ = [
    "BenchmarkError",
    "EvaluatorError",
    "EvaluatorTimeout",
    "LedgerInvariantError",
    "MalformedRecordError",
    "NoFreshGamesError",
    "RateLimitError",
    "SourceFetchError",
    "StoreWriteError",
]
