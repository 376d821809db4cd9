"""
Transaction cache: durable store of mirrored transactions plus the sync cursor.

Every operation runs in its own unit of work and commits before returning,
so a write is visible to any read issued after it (read-your-writes).
"""

from datetime import datetime
from typing import List, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ledgersync.db.models import CachedTransaction, SyncCursor
from ledgersync.db.unit_of_work import UnitOfWork
from ledgersync.sync.clients.base import BankTransaction
from ledgersync.sync.models import TransactionFilters

logger = structlog.get_logger()


class TransactionCache:
    """Durable key-value cache keyed by remote transaction id."""

    def __init__(
        self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None
    ):
        self._session_factory = session_factory

    def _uow(self) -> UnitOfWork:
        return UnitOfWork(session_factory=self._session_factory)

    async def upsert(self, tx: BankTransaction) -> CachedTransaction:
        """Insert or replace one transaction, committed on return."""
        async with self._uow() as uow:
            row = await uow.transactions.upsert(tx)
            await uow.commit()
        logger.debug("cache.upsert", remote_id=tx.remote_id)
        return row

    async def get_cached(self, remote_id: str) -> Optional[CachedTransaction]:
        async with self._uow() as uow:
            return await uow.transactions.get_by_remote_id(remote_id)

    async def list_cached(
        self, filters: Optional[TransactionFilters] = None
    ) -> List[CachedTransaction]:
        filters = filters or TransactionFilters()
        async with self._uow() as uow:
            return await uow.transactions.list_cached(**filters.model_dump())

    async def count(self) -> int:
        async with self._uow() as uow:
            return await uow.transactions.count()

    async def oldest(self) -> Optional[CachedTransaction]:
        async with self._uow() as uow:
            return await uow.transactions.get_oldest()

    async def newest(self) -> Optional[CachedTransaction]:
        async with self._uow() as uow:
            return await uow.transactions.get_newest()

    async def get_cursor(self) -> Optional[SyncCursor]:
        async with self._uow() as uow:
            return await uow.cursor.get_cursor()

    async def set_cursor(
        self,
        last_synced_at: Optional[datetime],
        last_synced_id: Optional[str],
        last_run_at: datetime,
    ) -> SyncCursor:
        """Overwrite the cursor row. Last writer wins."""
        async with self._uow() as uow:
            cursor = await uow.cursor.save_cursor(
                last_synced_at=last_synced_at,
                last_synced_id=last_synced_id,
                last_run_at=last_run_at,
            )
            await uow.commit()
        logger.debug(
            "cache.cursor_saved",
            last_synced_at=last_synced_at.isoformat() if last_synced_at else None,
            last_synced_id=last_synced_id,
        )
        return cursor

    async def clear(self) -> int:
        """Delete every cached transaction and the cursor. Returns rows removed."""
        async with self._uow() as uow:
            removed = await uow.transactions.delete_all()
            await uow.cursor.delete_all()
            await uow.commit()
        logger.info("cache.cleared", removed=removed)
        return removed
