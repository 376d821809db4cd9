"""Sync cursor repository: read and overwrite the single cursor row."""

from datetime import datetime
from typing import Optional

from ledgersync.db.models.sync_cursor import CURSOR_ROW_ID, SyncCursor
from ledgersync.db.repository import BaseRepository


class SyncCursorRepository(BaseRepository[SyncCursor]):
    """Repository for the process-wide SyncCursor row."""

    async def get_cursor(self) -> Optional[SyncCursor]:
        """Return the cursor row, or None before the first successful sync."""
        return await self.get_by_field("id", CURSOR_ROW_ID)

    async def save_cursor(
        self,
        last_synced_at: Optional[datetime],
        last_synced_id: Optional[str],
        last_run_at: datetime,
    ) -> SyncCursor:
        """
        Create or overwrite the cursor row (last writer wins).

        Args:
            last_synced_at: New watermark
            last_synced_id: Remote id of the watermark transaction
            last_run_at: Completion time of the run

        Returns:
            The stored cursor
        """
        cursor = await self.get_cursor()
        if cursor is None:
            return await self.create(
                id=CURSOR_ROW_ID,
                last_synced_at=last_synced_at,
                last_synced_id=last_synced_id,
                last_run_at=last_run_at,
            )

        cursor.last_synced_at = last_synced_at
        cursor.last_synced_id = last_synced_id
        cursor.last_run_at = last_run_at
        await self.session.flush()
        return cursor
