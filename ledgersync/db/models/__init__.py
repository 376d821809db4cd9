"""Database models for the transaction sync engine."""

from .cached_transaction import CachedTransaction
from .sync_cursor import SyncCursor

__all__ = ["CachedTransaction", "SyncCursor"]
