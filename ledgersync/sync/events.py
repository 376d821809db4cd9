"""
Sync lifecycle events.

The coordinator reports what it does through a `SyncObserver` instead of
logging inline; observers decide what to do with the events.
"""

from datetime import datetime
from typing import Iterable, List, Optional

import structlog

from ledgersync.sync.models import SyncMode, SyncResult

logger = structlog.get_logger()


class SyncObserver:
    """Receives sync lifecycle events. Every hook is a no-op by default."""

    def sync_started(
        self, run_id: str, mode: SyncMode, from_: Optional[datetime]
    ) -> None:
        pass

    def sync_finished(self, run_id: str, result: SyncResult, fetched: int) -> None:
        pass

    def sync_failed(self, run_id: str, error: BaseException) -> None:
        pass

    def sync_rejected(self) -> None:
        pass


class LoggingSyncObserver(SyncObserver):
    """Emits one structlog event per lifecycle hook."""

    def sync_started(self, run_id, mode, from_):
        logger.info(
            "sync.started",
            run_id=run_id,
            mode=mode.value,
            from_=from_.isoformat() if from_ else None,
        )

    def sync_finished(self, run_id, result, fetched):
        logger.info(
            "sync.finished",
            run_id=run_id,
            mode=result.mode.value,
            fetched=fetched,
            synced=result.synced,
            total=result.total,
        )

    def sync_failed(self, run_id, error):
        logger.error(
            "sync.failed",
            run_id=run_id,
            error=str(error),
            error_type=type(error).__name__,
        )

    def sync_rejected(self):
        # Contention is an expected outcome of overlapping triggers.
        logger.info("sync.rejected_busy")


class CompositeSyncObserver(SyncObserver):
    """Fans every event out to several observers.

    A failing observer is logged and skipped; it never affects the sync.
    """

    def __init__(self, observers: Iterable[SyncObserver]):
        self.observers: List[SyncObserver] = list(observers)

    def _dispatch(self, hook: str, *args) -> None:
        for observer in self.observers:
            try:
                getattr(observer, hook)(*args)
            except Exception as e:
                logger.warning(
                    "sync.observer_failed",
                    observer=type(observer).__name__,
                    hook=hook,
                    error=str(e),
                )

    def sync_started(self, run_id, mode, from_):
        self._dispatch("sync_started", run_id, mode, from_)

    def sync_finished(self, run_id, result, fetched):
        self._dispatch("sync_finished", run_id, result, fetched)

    def sync_failed(self, run_id, error):
        self._dispatch("sync_failed", run_id, error)

    def sync_rejected(self):
        self._dispatch("sync_rejected")
