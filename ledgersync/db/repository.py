"""Generic async repository shared by the cache tables."""

from typing import Any, Generic, Optional, Type, TypeVar

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ledgersync.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)

_OPERATORS = {
    "eq": lambda column, value: column == value,
    "ne": lambda column, value: column != value,
    "lt": lambda column, value: column < value,
    "lte": lambda column, value: column <= value,
    "gt": lambda column, value: column > value,
    "gte": lambda column, value: column >= value,
}


class BaseRepository(Generic[ModelType]):
    """
    Row-level operations over one mapped table.

    Repositories flush but never commit; the surrounding UnitOfWork owns
    the transaction.
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        """
        Initialize repository.

        Args:
            model: SQLAlchemy model class
            session: Async database session
        """
        self.model = model
        self.session = session

    async def create(self, **values) -> ModelType:
        """Insert one row and return it with generated columns populated."""
        instance = self.model(**values)
        self.session.add(instance)
        await self.session.flush()
        await self.session.refresh(instance)
        return instance

    async def get_by_field(self, field_name: str, value: Any) -> Optional[ModelType]:
        """Return the single row whose `field_name` equals `value`, or None."""
        column = getattr(self.model, field_name)
        result = await self.session.execute(select(self.model).where(column == value))
        return result.scalar_one_or_none()

    def _apply_filters(self, query, filters: dict):
        """
        Add WHERE clauses from ``field`` / ``field__op`` keyword filters.

        Supported operators: eq (default), ne, lt, lte, gt, gte. For example
        ``{"side": "debit", "effective_at__gte": since}``.

        Raises:
            ValueError: Unknown operator suffix
        """
        for key, value in filters.items():
            field_name, _, operator = key.partition("__")
            operator = operator or "eq"
            if operator not in _OPERATORS:
                raise ValueError(f"Unknown filter operator: {operator}")
            query = query.where(_OPERATORS[operator](getattr(self.model, field_name), value))
        return query

    async def delete_all(self, **filters) -> int:
        """
        Delete rows matching `filters` (every row when none are given).

        Returns:
            Number of rows deleted
        """
        result = await self.session.execute(
            self._apply_filters(delete(self.model), filters)
        )
        await self.session.flush()
        return result.rowcount or 0  # type: ignore

    async def count(self, **filters) -> int:
        """Count rows matching `filters`."""
        query = self._apply_filters(select(func.count()).select_from(self.model), filters)
        result = await self.session.execute(query)
        return result.scalar() or 0
