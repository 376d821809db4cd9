"""Cached transaction repository with upsert and ordered queries."""

import json
from datetime import datetime
from typing import Optional, List
from pydantic_core import to_jsonable_python
from sqlalchemy import select

from ledgersync.db.models.cached_transaction import CachedTransaction
from ledgersync.db.repository import BaseRepository
from ledgersync.sync.clients.base import BankTransaction


def transaction_row(tx: BankTransaction) -> dict:
    """Map a remote transaction onto CachedTransaction columns."""
    return {
        "remote_id": tx.remote_id,
        "remote_transaction_id": tx.transaction_id,
        "amount": tx.amount,
        "signed_amount": tx.signed_amount,
        "currency": tx.currency,
        "side": tx.side,
        "label": tx.label,
        "reference": tx.reference,
        "note": tx.note,
        "operation_type": tx.operation_type,
        "status": tx.status,
        "web_url": tx.web_url,
        "settled_at": tx.settled_at,
        "emitted_at": tx.emitted_at,
        "effective_at": tx.effective_at,
        "raw_data": json.dumps(to_jsonable_python(tx.to_payload()), sort_keys=True),
    }


class CachedTransactionRepository(BaseRepository[CachedTransaction]):
    """Repository for CachedTransaction with upsert and ordered queries."""

    async def get_by_remote_id(self, remote_id: str) -> Optional[CachedTransaction]:
        """Get a cached transaction by its remote id."""
        return await self.get_by_field("remote_id", remote_id)

    async def upsert(self, tx: BankTransaction) -> CachedTransaction:
        """
        Insert or replace the row for `tx.remote_id`.

        A second upsert with the same remote id overwrites every column in
        place; it never creates a second row.

        Args:
            tx: Remote transaction

        Returns:
            The stored row
        """
        values = transaction_row(tx)
        existing = await self.get_by_remote_id(tx.remote_id)
        if existing is None:
            return await self.create(**values)

        for field_name, value in values.items():
            setattr(existing, field_name, value)
        await self.session.flush()
        await self.session.refresh(existing)
        return existing

    async def list_cached(
        self,
        settled_from: Optional[datetime] = None,
        settled_to: Optional[datetime] = None,
        status: Optional[str] = None,
        side: Optional[str] = None,
        currency: Optional[str] = None,
        operation_type: Optional[str] = None,
        label_contains: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[CachedTransaction]:
        """
        List cached transactions, most recent first.

        All filters are combined with AND. Date bounds are inclusive and
        apply to `effective_at`.

        Args:
            settled_from: Lower bound on effective_at
            settled_to: Upper bound on effective_at
            status: Exact status
            side: 'debit' or 'credit'
            currency: ISO currency code
            operation_type: Exact operation type
            label_contains: Case-insensitive substring of the label
            limit: Maximum number of rows

        Returns:
            List of cached transactions
        """
        filters = {
            "effective_at__gte": settled_from,
            "effective_at__lte": settled_to,
            "status": status,
            "side": side,
            "currency": currency.upper() if currency else None,
            "operation_type": operation_type,
        }
        query = self._apply_filters(
            select(self.model),
            {key: value for key, value in filters.items() if value is not None},
        )
        if label_contains:
            query = query.where(self.model.label.ilike(f"%{label_contains}%"))

        query = query.order_by(self.model.effective_at.desc(), self.model.id.desc())
        if limit:
            query = query.limit(limit)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_oldest(self) -> Optional[CachedTransaction]:
        """Get the cached transaction with the earliest effective_at."""
        query = (
            select(self.model)
            .order_by(self.model.effective_at.asc(), self.model.id.asc())
            .limit(1)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_newest(self) -> Optional[CachedTransaction]:
        """Get the cached transaction with the latest effective_at."""
        query = (
            select(self.model)
            .order_by(self.model.effective_at.desc(), self.model.id.desc())
            .limit(1)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()
