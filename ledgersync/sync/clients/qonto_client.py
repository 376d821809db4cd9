"""
Qonto business bank API client.

Talks to the Qonto third-party API over HTTPS with httpx. Only the two
read endpoints the sync engine needs are implemented.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
import structlog
from pydantic import ValidationError

from ledgersync.sync.clients.base import (
    COMPLETED,
    APIAuthenticationError,
    APIConnectionError,
    APIRateLimitError,
    APIValidationError,
    BankAccount,
    BankTransaction,
    BaseBankClient,
)

logger = structlog.get_logger()

DEFAULT_BASE_URL = "https://thirdparty.qonto.com"


def format_timestamp(value: datetime) -> str:
    """Render a datetime the way the API expects (ISO 8601, UTC, 'Z')."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class QontoClient(BaseBankClient):
    """
    HTTP client for the Qonto API.

    Authenticates with the ``login:secret`` Authorization header and follows
    ``meta.next_page`` until every page of a transaction listing is read.
    """

    def __init__(
        self,
        login: Optional[str] = None,
        secret: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 30.0,
        page_size: int = 100,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            login: Organization login
            secret: API secret key
            base_url: API base URL (defaults to the production host)
            timeout: Request timeout in seconds
            page_size: Transactions requested per page
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        super().__init__(login, secret, base_url or DEFAULT_BASE_URL, timeout)
        self.page_size = page_size
        self._transport = transport

    def get_source_name(self) -> str:
        """Return source identifier."""
        return "qonto"

    def _headers(self) -> Dict[str, str]:
        if not self.login or not self.secret:
            raise APIAuthenticationError("Bank API credentials not configured")
        return {
            "Authorization": f"{self.login}:{self.secret}",
            "Accept": "application/json",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url or DEFAULT_BASE_URL,
            timeout=self.timeout,
            headers=self._headers(),
            transport=self._transport,
        )

    async def _get(
        self,
        client: httpx.AsyncClient,
        path: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """GET a JSON document, translating failures into APIError subclasses."""
        try:
            response = await client.get(path, params=params)
        except httpx.TimeoutException as e:
            raise APIConnectionError(f"Bank API request timed out: {path}") from e
        except httpx.HTTPError as e:
            raise APIConnectionError(f"Bank API request failed: {e}") from e

        if response.status_code in (401, 403):
            raise APIAuthenticationError(
                f"Bank API rejected credentials: {response.status_code}"
            )
        if response.status_code == 429:
            raise APIRateLimitError("Bank API rate limit exceeded")
        if response.status_code >= 400:
            raise APIConnectionError(
                f"Bank API error: {response.status_code} - {response.text[:200]}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise APIValidationError("Failed to parse bank API response") from e
        if not isinstance(data, dict):
            raise APIValidationError("Bank API response is not a JSON object")
        return data

    async def list_organization_accounts(self) -> List[BankAccount]:
        """List bank accounts nested in the organization document."""
        async with self._client() as client:
            data = await self._get(client, "/v2/organization")

        organization = data.get("organization") or {}
        try:
            return [
                BankAccount.model_validate(account)
                for account in organization.get("bank_accounts") or []
            ]
        except ValidationError as e:
            raise APIValidationError(f"Malformed bank account: {e}") from e

    async def list_transactions(
        self,
        account_id: str,
        status: str = COMPLETED,
        settled_from: Optional[datetime] = None,
    ) -> List[BankTransaction]:
        """Fetch every page of transactions matching the filters."""
        params: Dict[str, Any] = {
            "bank_account_id": account_id,
            "status[]": [status],
            "per_page": self.page_size,
        }
        if settled_from is not None:
            params["settled_at_from"] = format_timestamp(settled_from)

        transactions: List[BankTransaction] = []
        page = 1
        async with self._client() as client:
            while True:
                data = await self._get(
                    client, "/v2/transactions", {**params, "current_page": page}
                )
                try:
                    transactions.extend(
                        BankTransaction.model_validate(item)
                        for item in data.get("transactions") or []
                    )
                except ValidationError as e:
                    raise APIValidationError(f"Malformed transaction: {e}") from e

                next_page = (data.get("meta") or {}).get("next_page")
                if not next_page or next_page <= page:
                    break
                page = next_page

        logger.debug(
            "qonto.transactions_listed",
            account_id=account_id,
            count=len(transactions),
            pages=page,
        )
        return transactions

    async def validate_credentials(self) -> bool:
        """Return False when the API rejects the credentials."""
        try:
            await self.list_organization_accounts()
        except APIAuthenticationError:
            return False
        return True
