"""
Sync engine: the entry points the rest of the application may call.

Bundles the coordinator, the cooldown scheduler and the cache read path
around one bank client, one cache and one lock.
"""

import asyncio
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import structlog

from ledgersync.core.config import get_settings
from ledgersync.core.timeutil import utc_now
from ledgersync.db.cache import TransactionCache
from ledgersync.db.models import CachedTransaction
from ledgersync.sync.clients.base import BaseBankClient
from ledgersync.sync.clients.mock_client import (
    MockBankClient,
    generate_sample_transactions,
)
from ledgersync.sync.clients.qonto_client import QontoClient
from ledgersync.sync.config import SyncConfig, get_sync_config
from ledgersync.sync.coordinator import SyncCoordinator
from ledgersync.sync.events import (
    CompositeSyncObserver,
    LoggingSyncObserver,
    SyncObserver,
)
from ledgersync.sync.metrics import SyncMetrics
from ledgersync.sync.models import (
    AutoSyncResult,
    CacheStats,
    SyncResult,
    TransactionFilters,
)
from ledgersync.sync.queries import CacheQueryFacade
from ledgersync.sync.scheduler import SyncScheduler

logger = structlog.get_logger()


class SyncEngine:
    """Upward interface of the transaction sync engine."""

    def __init__(
        self,
        client: BaseBankClient,
        cache: TransactionCache,
        config: Optional[SyncConfig] = None,
        observer: Optional[SyncObserver] = None,
        lock: Optional[asyncio.Lock] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Wire the engine.

        Args:
            client: Bank API client
            cache: Transaction cache
            config: Sync configuration (defaults to loaded config)
            observer: Extra observer, in addition to logging and metrics
            lock: Sync lock (defaults to a fresh asyncio.Lock)
            clock: Returns the current UTC time
        """
        self.config = config or get_sync_config()
        self.metrics = SyncMetrics(history_size=self.config.metrics_history_size)

        observers: List[SyncObserver] = [LoggingSyncObserver(), self.metrics]
        if observer is not None:
            observers.append(observer)

        self.coordinator = SyncCoordinator(
            client=client,
            cache=cache,
            config=self.config,
            lock=lock,
            observer=CompositeSyncObserver(observers),
            clock=clock,
        )
        self.scheduler = SyncScheduler(self.coordinator, self.config, clock)
        self.queries = CacheQueryFacade(self.coordinator)

    @property
    def client(self) -> BaseBankClient:
        return self.coordinator.client

    async def sync(self, force: bool = False) -> SyncResult:
        return await self.coordinator.sync(force=force)

    async def needs_sync(self) -> bool:
        return await self.scheduler.needs_sync()

    async def auto_sync(self) -> AutoSyncResult:
        return await self.scheduler.auto_sync()

    async def list_cached(
        self, filters: Optional[TransactionFilters] = None
    ) -> List[CachedTransaction]:
        return await self.queries.list_cached(filters)

    async def get_cached(self, remote_id: str) -> Optional[CachedTransaction]:
        return await self.queries.get_cached(remote_id)

    async def refresh(self, remote_id: str) -> Optional[CachedTransaction]:
        return await self.queries.refresh(remote_id)

    async def stats(self) -> CacheStats:
        return await self.queries.stats()

    async def clear_cache(self) -> int:
        return await self.queries.clear_cache()

    def get_metrics(self, hours: Optional[int] = None) -> Dict[str, Any]:
        """
        Get aggregate sync metrics.

        Args:
            hours: Limit to last N hours (None = all history)

        Returns:
            Metrics dictionary
        """
        aggregate = self.metrics.get_aggregate_metrics(hours)
        current = self.metrics.get_current_run()
        return {
            "in_progress": self.coordinator.in_progress,
            "current_run": current.to_dict() if current else None,
            "aggregate": aggregate.to_dict(),
            "success_rate": self.metrics.get_success_rate(hours),
            "recent_runs": [r.to_dict() for r in self.metrics.get_history(limit=10)],
        }


def create_bank_client(config: SyncConfig) -> BaseBankClient:
    """Build the bank client selected by configuration."""
    if config.client_type == "mock":
        logger.warning("sync.mock_client_active", source="mock")
        return MockBankClient(transactions=generate_sample_transactions(25))

    settings = get_settings()
    return QontoClient(
        login=settings.BANK_API_LOGIN,
        secret=settings.BANK_API_SECRET,
        base_url=config.api_base_url,
        timeout=config.api_timeout,
        page_size=config.page_size,
    )


# Global engine instance
_engine_instance: Optional[SyncEngine] = None


def get_sync_engine() -> SyncEngine:
    """
    Get or create the process-wide engine.

    Returns:
        SyncEngine singleton
    """
    global _engine_instance
    if _engine_instance is None:
        config = get_sync_config()
        _engine_instance = SyncEngine(
            client=create_bank_client(config),
            cache=TransactionCache(),
            config=config,
        )
    return _engine_instance
