"""Sync cursor model: the durable watermark of the last successful sync."""

from datetime import datetime
from typing import Optional
from sqlalchemy import String, Integer
from sqlalchemy.orm import Mapped, mapped_column

from ledgersync.db.base import Base, UTCDateTime

CURSOR_ROW_ID = 1


class SyncCursor(Base):
    """
    Single-row table tracking sync progress.

    `last_synced_at` is the watermark handed to the bank as the inclusive
    `settled_at_from` of the next incremental run. `last_run_at` is the wall
    clock time of the last successful run and drives the cooldown policy.
    """

    __tablename__ = "sync_cursor"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=CURSOR_ROW_ID)

    last_synced_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime(), nullable=True, comment="Latest transaction timestamp cached"
    )
    last_synced_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, comment="Remote id of the watermark transaction"
    )
    last_run_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime(), nullable=True, comment="When the last successful sync finished"
    )

    def __repr__(self) -> str:
        return (
            f"<SyncCursor(last_synced_at={self.last_synced_at}, "
            f"last_synced_id={self.last_synced_id}, last_run_at={self.last_run_at})>"
        )
