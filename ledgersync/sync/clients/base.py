"""
Base bank API client interface.

Defines the remote shapes the sync engine consumes and the contract that
all bank API clients must implement.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    field_validator,
    model_validator,
)

COMPLETED = "completed"


class BankAccount(BaseModel):
    """A bank account belonging to the remote organization."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    account_id: str = Field(alias="id")
    name: Optional[str] = None
    currency: Optional[str] = None
    iban: Optional[str] = None


class BankTransaction(BaseModel):
    """One remote ledger entry as returned by the bank API.

    The mapping the model was validated from is kept as-is so the cache can
    store the remote payload verbatim next to the typed columns.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    remote_id: str = Field(alias="id", min_length=1)
    transaction_id: Optional[str] = None
    amount: Decimal
    currency: str = "EUR"
    side: Optional[str] = None
    settled_at: Optional[datetime] = None
    emitted_at: datetime
    label: Optional[str] = None
    reference: Optional[str] = None
    note: Optional[str] = None
    operation_type: Optional[str] = None
    status: str
    web_url: Optional[str] = Field(default=None, alias="qonto_web_url")

    _raw: Optional[Dict[str, Any]] = PrivateAttr(default=None)

    @model_validator(mode="wrap")
    @classmethod
    def _keep_raw(cls, data: Any, handler) -> "BankTransaction":
        instance = handler(data)
        if isinstance(data, dict):
            instance._raw = dict(data)
        return instance

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        return value.upper()

    @property
    def effective_at(self) -> datetime:
        """Ordering timestamp: settled_at, falling back to emitted_at."""
        return self.settled_at or self.emitted_at

    @property
    def signed_amount(self) -> Decimal:
        """Amount signed by side; the bank reports all amounts as positive."""
        if self.side == "debit":
            return -abs(self.amount)
        return abs(self.amount)

    def to_payload(self) -> Dict[str, Any]:
        """Return the payload exactly as received.

        Instances built without a mapping (copies, model_construct) fall back
        to a dump using the remote field names.
        """
        if self._raw is not None:
            return dict(self._raw)
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


class BaseBankClient(ABC):
    """
    Abstract base class for bank API clients.

    The sync engine only needs the organization's accounts and a filtered
    transaction listing; everything else about the bank stays behind this
    interface.
    """

    def __init__(
        self,
        login: Optional[str] = None,
        secret: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 30.0,
    ):
        """
        Initialize the client.

        Args:
            login: Organization login
            secret: API secret key
            base_url: Base URL for the API
            timeout: Request timeout in seconds
        """
        self.login = login
        self.secret = secret
        self.base_url = base_url
        self.timeout = timeout

    @abstractmethod
    async def list_organization_accounts(self) -> List[BankAccount]:
        """
        List the bank accounts of the authenticated organization.

        Raises:
            APIConnectionError: If the API cannot be reached
            APIAuthenticationError: If credentials are missing or rejected
            APIValidationError: If the response cannot be parsed
        """
        pass

    @abstractmethod
    async def list_transactions(
        self,
        account_id: str,
        status: str = COMPLETED,
        settled_from: Optional[datetime] = None,
    ) -> List[BankTransaction]:
        """
        List transactions of one account.

        Args:
            account_id: Bank account to query
            status: Remote status filter
            settled_from: Inclusive lower bound on settlement time

        Returns:
            Every matching transaction (all pages). Empty is a valid result.
        """
        pass

    @abstractmethod
    async def validate_credentials(self) -> bool:
        """
        Validate API credentials.

        Returns:
            True if credentials are valid, False otherwise
        """
        pass

    @abstractmethod
    def get_source_name(self) -> str:
        """
        Get the name of this bank source.

        Returns:
            Source identifier (e.g., 'qonto', 'mock')
        """
        pass


class APIError(Exception):
    """Base exception for bank API client errors."""

    pass


class APIConnectionError(APIError):
    """Raised when connection to the API fails or it answers with an error."""

    pass


class APIAuthenticationError(APIError):
    """Raised when credentials are missing, expired or rejected."""

    pass


class APIRateLimitError(APIConnectionError):
    """Raised when the API rate limit is exceeded."""

    pass


class APIValidationError(APIError):
    """Raised when the API returns data that cannot be parsed."""

    pass
