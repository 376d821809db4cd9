"""Errors raised by the sync engine to its callers."""

from typing import Optional


class SyncError(Exception):
    """Base exception for sync engine errors."""

    pass


class SyncBusy(SyncError):
    """Raised when a sync is already in flight. Retry later."""

    def __init__(self, message: str = "Sync already in progress, please wait"):
        super().__init__(message)


class NoBankAccount(SyncError):
    """Raised when the remote organization has no bank account to query."""

    def __init__(self, message: str = "No bank accounts found in organization"):
        super().__init__(message)


class RemoteUnavailable(SyncError):
    """Raised when the bank API fails (transport, HTTP error, malformed data).

    The underlying exception is kept on `cause` and chained as `__cause__`.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause
