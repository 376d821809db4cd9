"""
Sync coordinator.

Runs one sync: resolves the cursor, fetches completed transactions from the
bank, upserts them into the cache and advances the cursor. At most one run
is in flight per coordinator; concurrent callers are rejected, not queued.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Callable, List, Optional, Tuple

import httpx
from pydantic import ValidationError

from ledgersync.core.timeutil import to_utc, utc_now
from ledgersync.db.cache import TransactionCache
from ledgersync.db.models import SyncCursor
from ledgersync.sync.clients.base import (
    COMPLETED,
    APIAuthenticationError,
    APIError,
    BankTransaction,
    BaseBankClient,
)
from ledgersync.sync.config import SyncConfig, get_sync_config
from ledgersync.sync.errors import NoBankAccount, RemoteUnavailable, SyncBusy
from ledgersync.sync.events import LoggingSyncObserver, SyncObserver
from ledgersync.sync.models import SyncMode, SyncResult


class SyncCoordinator:
    """
    Single-flight transaction sync.

    The lock is injectable so independent coordinators (tests, several
    engines in one process) never share state by accident.
    """

    def __init__(
        self,
        client: BaseBankClient,
        cache: TransactionCache,
        config: Optional[SyncConfig] = None,
        lock: Optional[asyncio.Lock] = None,
        observer: Optional[SyncObserver] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize the coordinator.

        Args:
            client: Bank API client
            cache: Transaction cache written by each run
            config: Sync configuration (defaults to loaded config)
            lock: Mutual exclusion for runs (defaults to a fresh asyncio.Lock)
            observer: Receives lifecycle events (defaults to structlog output)
            clock: Returns the current UTC time
        """
        self.client = client
        self.cache = cache
        self.config = config or get_sync_config()
        self.observer = observer or LoggingSyncObserver()
        self._lock = lock or asyncio.Lock()
        self._clock = clock
        self._run_counter = 0

    @property
    def in_progress(self) -> bool:
        """True while a run holds the lock."""
        return self._lock.locked()

    @asynccontextmanager
    async def exclusive(self) -> AsyncIterator[None]:
        """Hold the sync lock for the duration of the block, or fail with SyncBusy.

        Never waits: there is no await between the check and the acquire, so
        an unlocked lock is taken immediately.
        """
        if self._lock.locked():
            raise SyncBusy()
        async with self._lock:
            yield

    async def sync(self, force: bool = False) -> SyncResult:
        """
        Mirror completed bank transactions into the cache.

        Args:
            force: Ignore the cursor and fetch the full completed set

        Returns:
            SyncResult for this run

        Raises:
            SyncBusy: Another run is in flight
            NoBankAccount: The organization has no bank account
            RemoteUnavailable: The bank API failed or returned bad data
            APIAuthenticationError: Credentials were missing or rejected
        """
        if self._lock.locked():
            self.observer.sync_rejected()
            raise SyncBusy()

        async with self.exclusive():
            run_id = self._next_run_id()
            try:
                return await self._run(run_id, force)
            except (Exception, asyncio.CancelledError) as e:
                self.observer.sync_failed(run_id, e)
                raise

    async def _run(self, run_id: str, force: bool) -> SyncResult:
        stored = await self.cache.get_cursor()
        if force or stored is None or stored.last_synced_at is None:
            mode, from_ = SyncMode.FULL, None
        else:
            mode, from_ = SyncMode.INCREMENTAL, stored.last_synced_at
        self.observer.sync_started(run_id, mode, from_)

        transactions = await self._fetch(from_)
        fetched = len(transactions)

        if (
            mode is SyncMode.INCREMENTAL
            and self.config.exclude_boundary_id
            and stored is not None
            and stored.last_synced_id
        ):
            transactions = [
                tx for tx in transactions if tx.remote_id != stored.last_synced_id
            ]

        newest: Optional[BankTransaction] = None
        for tx in transactions:
            await self.cache.upsert(tx)
            if newest is None or to_utc(tx.effective_at) > to_utc(newest.effective_at):
                newest = tx

        # Cursor moves only after every upsert of the run has committed.
        watermark, watermark_id = self._advance(stored, newest)
        finished_at = self._clock()
        await self.cache.set_cursor(watermark, watermark_id, finished_at)

        result = SyncResult(
            run_id=run_id,
            mode=mode,
            synced=len(transactions),
            total=await self.cache.count(),
            from_=from_,
            to=finished_at,
        )
        self.observer.sync_finished(run_id, result, fetched)
        return result

    async def _fetch(self, from_: Optional[datetime]) -> List[BankTransaction]:
        """Resolve the first bank account and list its completed transactions."""
        try:
            accounts = await self.client.list_organization_accounts()
            if not accounts:
                raise NoBankAccount()
            return await self.client.list_transactions(
                accounts[0].account_id, status=COMPLETED, settled_from=from_
            )
        except APIAuthenticationError:
            raise
        except (APIError, httpx.HTTPError, ValidationError) as e:
            raise RemoteUnavailable(f"Bank API unavailable: {e}", cause=e) from e

    @staticmethod
    def _advance(
        stored: Optional[SyncCursor], newest: Optional[BankTransaction]
    ) -> Tuple[Optional[datetime], Optional[str]]:
        """Return the new (watermark, boundary id); the watermark never regresses."""
        watermark = stored.last_synced_at if stored else None
        watermark_id = stored.last_synced_id if stored else None
        if newest is None:
            return watermark, watermark_id

        candidate = to_utc(newest.effective_at)
        if watermark is None or candidate >= watermark:
            return candidate, newest.remote_id
        return watermark, watermark_id

    def _next_run_id(self) -> str:
        self._run_counter += 1
        return f"sync-{self._clock().strftime('%Y%m%d-%H%M%S')}-{self._run_counter}"
