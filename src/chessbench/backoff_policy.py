"""Capped exponential backoff between empty queue refills."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator


class BackoffPolicy(BaseModel):
    """Delay schedule applied before a refill that follows empty ones.

    ``delay(0)`` is the baseline (no wait). From the first empty refill on,
    delays grow by ``factor`` per consecutive empty refill until they reach
    ``cap_s``.

    Example:
        >>> policy = BackoffPolicy(base_s=2.0, factor=1.5, cap_s=15.0)
        >>> [policy.delay(n) for n in range(4)]
        [0.0, 2.0, 3.0, 4.5]
    """

    model_config = ConfigDict(frozen=True)

    base_s: float = Field(default=2.0, gt=0)
    factor: float = Field(default=1.5, gt=1)
    cap_s: float = Field(default=15.0, gt=0)

    @model_validator(mode="after")
    def _cap_not_below_base(self) -> BackoffPolicy:
        if self.cap_s < self.base_s:
            raise ValueError("cap_s must be >= base_s")
        return self

    def delay(self, empty_streak: int) -> float:
        """Return the wait in seconds before the next refill."""
        if empty_streak <= 0:
            return 0.0
        return min(self.base_s * self.factor ** (empty_streak - 1), self.cap_s)
