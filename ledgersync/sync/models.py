"""
Value objects exchanged between the sync engine and its callers.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class SyncMode(str, Enum):
    """Whether a run fetched everything or only records past the watermark."""

    FULL = "full"
    INCREMENTAL = "incremental"


class SyncResult(BaseModel):
    """Outcome of one successful sync run."""

    run_id: str
    mode: SyncMode
    synced: int = Field(ge=0, description="Records upserted by this run")
    total: int = Field(ge=0, description="Cache size after the run")
    from_: Optional[datetime] = Field(
        default=None, description="Watermark the run fetched from (None = everything)"
    )
    to: datetime = Field(description="When the run finished")


class AutoSyncResult(BaseModel):
    """Outcome of a cooldown-gated sync attempt."""

    synced: bool
    result: Optional[SyncResult] = None


class CacheStats(BaseModel):
    """Aggregate view of the cache, computed without remote calls."""

    total_cached: int
    last_sync_watermark: Optional[datetime] = None
    oldest_transaction: Optional[datetime] = None
    newest_transaction: Optional[datetime] = None
    last_run_at: Optional[datetime] = None


class TransactionFilters(BaseModel):
    """Conjunctive filters for reading the cache. Empty filters match everything."""

    settled_from: Optional[datetime] = None
    settled_to: Optional[datetime] = None
    status: Optional[str] = None
    side: Optional[str] = None
    currency: Optional[str] = None
    operation_type: Optional[str] = None
    label_contains: Optional[str] = None
    limit: Optional[int] = Field(default=None, ge=1)

    @model_validator(mode="after")
    def _check_range(self) -> "TransactionFilters":
        if (
            self.settled_from is not None
            and self.settled_to is not None
            and self.settled_from > self.settled_to
        ):
            raise ValueError("settled_from must not be after settled_to")
        return self
