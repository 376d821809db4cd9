"""
Read path over the transaction cache.

Nothing here calls the bank except `refresh`, which goes through a normal
incremental sync because the bank has no single-transaction endpoint.
"""

from typing import List, Optional

import structlog

from ledgersync.db.models import CachedTransaction
from ledgersync.sync.coordinator import SyncCoordinator
from ledgersync.sync.models import CacheStats, TransactionFilters

logger = structlog.get_logger()


class CacheQueryFacade:
    """Lock-free reads of cached transactions and cache statistics."""

    def __init__(self, coordinator: SyncCoordinator):
        self.coordinator = coordinator
        self.cache = coordinator.cache

    async def list_cached(
        self, filters: Optional[TransactionFilters] = None
    ) -> List[CachedTransaction]:
        """List cached transactions matching all filters, most recent first."""
        return await self.cache.list_cached(filters)

    async def get_cached(self, remote_id: str) -> Optional[CachedTransaction]:
        """Get one cached transaction, or None if it is not cached."""
        return await self.cache.get_cached(remote_id)

    async def stats(self) -> CacheStats:
        """Summarize the cache from local data only."""
        cursor = await self.cache.get_cursor()
        oldest = await self.cache.oldest()
        newest = await self.cache.newest()
        return CacheStats(
            total_cached=await self.cache.count(),
            last_sync_watermark=cursor.last_synced_at if cursor else None,
            oldest_transaction=oldest.effective_at if oldest else None,
            newest_transaction=newest.effective_at if newest else None,
            last_run_at=cursor.last_run_at if cursor else None,
        )

    async def refresh(self, remote_id: str) -> Optional[CachedTransaction]:
        """
        Sync, then return the current cached value for `remote_id`.

        Returns None if the bank never reported that id. Sync errors
        (SyncBusy included) propagate.
        """
        await self.coordinator.sync(force=False)
        return await self.cache.get_cached(remote_id)

    async def clear_cache(self) -> int:
        """Delete all cached transactions and the cursor.

        Holds the sync lock so a clear never interleaves with a run.

        Raises:
            SyncBusy: A sync is in flight
        """
        async with self.coordinator.exclusive():
            removed = await self.cache.clear()
        logger.info("sync.cache_cleared", removed=removed)
        return removed
