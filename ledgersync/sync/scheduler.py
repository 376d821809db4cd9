"""Cooldown policy for automatic syncs. Caller-invoked; there is no timer."""

from datetime import datetime
from typing import Callable, Optional

import structlog

from ledgersync.core.timeutil import utc_now
from ledgersync.sync.config import SyncConfig
from ledgersync.sync.coordinator import SyncCoordinator
from ledgersync.sync.models import AutoSyncResult

logger = structlog.get_logger()


class SyncScheduler:
    """Decides whether an automatic sync should fire."""

    def __init__(
        self,
        coordinator: SyncCoordinator,
        config: Optional[SyncConfig] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.coordinator = coordinator
        self.config = config or coordinator.config
        self._clock = clock

    async def needs_sync(self) -> bool:
        """True if no sync ever succeeded or the last one is older than the cooldown."""
        cursor = await self.coordinator.cache.get_cursor()
        if cursor is None or cursor.last_run_at is None:
            return True
        return self._clock() - cursor.last_run_at >= self.config.get_cooldown()

    async def auto_sync(self) -> AutoSyncResult:
        """
        Run an incremental sync if the cooldown has elapsed.

        When no sync is needed this touches neither the lock nor the bank.
        Errors from the sync itself (including SyncBusy) propagate.
        """
        if not await self.needs_sync():
            logger.debug(
                "sync.auto_skipped", cooldown_minutes=self.config.cooldown_minutes
            )
            return AutoSyncResult(synced=False)

        result = await self.coordinator.sync(force=False)
        return AutoSyncResult(synced=True, result=result)
