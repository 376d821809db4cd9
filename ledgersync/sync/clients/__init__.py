"""Bank API clients."""

from ledgersync.sync.clients.base import (
    APIAuthenticationError,
    APIConnectionError,
    APIError,
    APIRateLimitError,
    APIValidationError,
    BankAccount,
    BankTransaction,
    BaseBankClient,
)
from ledgersync.sync.clients.mock_client import MockBankClient
from ledgersync.sync.clients.qonto_client import QontoClient

__all__ = [
    "APIAuthenticationError",
    "APIConnectionError",
    "APIError",
    "APIRateLimitError",
    "APIValidationError",
    "BankAccount",
    "BankTransaction",
    "BaseBankClient",
    "MockBankClient",
    "QontoClient",
]
