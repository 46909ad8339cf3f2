from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from chessbench.models import GameRecord


class GameBatchRequest(BaseModel):
    """Request parameters for one provider fetch."""

    model_config = ConfigDict(frozen=True)

    count: int = Field(ge=0)
    exclude_ids: frozenset[str] = frozenset()
    cursor: str | None = None
    batch_number: int = Field(default=0, ge=0)


class GameBatch(BaseModel):
    """Records returned by a provider plus the cursor for its next call."""

    records: list[GameRecord] = Field(default_factory=list)
    next_cursor: str | None = None
    rate_limited: int = 0
