"""Unit of Work pattern for managing database transactions."""

from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ledgersync.db.models import CachedTransaction, SyncCursor
from ledgersync.db.repositories import (
    CachedTransactionRepository,
    SyncCursorRepository,
)


class UnitOfWork:
    """
    Unit of Work pattern implementation for managing database transactions.

    This class provides a single entry point for all repository operations
    and ensures that all operations within a context share the same database
    session and transaction.

    Usage:
        async with UnitOfWork() as uow:
            await uow.transactions.upsert(tx)
            await uow.commit()
    """

    def __init__(
        self,
        session: Optional[AsyncSession] = None,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    ):
        """
        Initialize Unit of Work.

        Args:
            session: Optional existing session (useful for testing)
            session_factory: Factory used when no session is given
                (defaults to the application's AsyncSessionLocal)
        """
        self._session = session
        self._owned_session = session is None
        self._session_factory = session_factory

        # Repositories (initialized in __aenter__)
        self.transactions: CachedTransactionRepository = None  # type: ignore
        self.cursor: SyncCursorRepository = None  # type: ignore

    async def __aenter__(self):
        """Enter async context manager."""
        if self._owned_session:
            factory = self._session_factory
            if factory is None:
                from ledgersync.db.base import AsyncSessionLocal

                factory = AsyncSessionLocal
            self._session = factory()

        assert self._session is not None, "Session must be initialized"
        self.transactions = CachedTransactionRepository(
            CachedTransaction, self._session
        )
        self.cursor = SyncCursorRepository(SyncCursor, self._session)

        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit async context manager."""
        if exc_type is not None:
            await self.rollback()
        elif self._owned_session:
            await self.commit()

        if self._owned_session and self._session:
            await self._session.close()

    async def commit(self):
        """Commit the current transaction."""
        if self._session:
            await self._session.commit()

    async def rollback(self):
        """Rollback the current transaction."""
        if self._session:
            await self._session.rollback()
