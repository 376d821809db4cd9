"""Repository exports."""

from .transaction_repository import CachedTransactionRepository
from .cursor_repository import SyncCursorRepository

__all__ = [
    "CachedTransactionRepository",
    "SyncCursorRepository",
]
