"""
Mock bank API client for testing and development.

Serves an in-memory ledger with the same filter semantics as the real API
so the sync engine can run without credentials.
"""

import asyncio
import random
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Union

from ledgersync.sync.clients.base import (
    COMPLETED,
    APIConnectionError,
    BankAccount,
    BankTransaction,
    BaseBankClient,
)
from ledgersync.core.timeutil import to_utc

SAMPLE_LABELS = [
    ("Equipment Purchase", "debit", "card"),
    ("Concert Payment", "credit", "transfer"),
    ("Marketing Campaign", "debit", "card"),
    ("Rehearsal Studio", "debit", "direct_debit"),
    ("Merchandise Sales", "credit", "transfer"),
]


def generate_sample_transactions(
    count: int, start: Optional[datetime] = None
) -> List[BankTransaction]:
    """Generate `count` completed transactions, one hour apart, from `start`."""
    start = start or datetime.now(timezone.utc) - timedelta(hours=count)
    transactions = []
    for i in range(count):
        label, side, operation_type = random.choice(SAMPLE_LABELS)
        emitted_at = start + timedelta(hours=i)
        remote_id = str(uuid.uuid4())
        transactions.append(
            BankTransaction(
                id=remote_id,
                transaction_id=f"mock-{i + 1:05d}",
                amount=Decimal(random.randint(500, 250000)) / 100,
                currency="EUR",
                side=side,
                emitted_at=emitted_at,
                settled_at=emitted_at + timedelta(minutes=5),
                label=label,
                operation_type=operation_type,
                status=COMPLETED,
                qonto_web_url=f"https://example.invalid/transactions/{remote_id}",
            )
        )
    return transactions


class MockBankClient(BaseBankClient):
    """
    In-memory bank client.

    Every `list_transactions` call is recorded in `calls` so tests can assert
    on the filters the engine sent. `gate`, when set, blocks fetches until
    the event is set, which lets tests hold a sync in flight.
    """

    def __init__(
        self,
        accounts: Optional[List[BankAccount]] = None,
        transactions: Optional[Iterable[Union[BankTransaction, Dict[str, Any]]]] = None,
        failure_rate: float = 0.0,
        latency_ms: int = 0,
        error: Optional[Exception] = None,
    ):
        """
        Initialize mock client.

        Args:
            accounts: Organization accounts (defaults to one account)
            transactions: Initial remote ledger
            failure_rate: Probability of a simulated connection failure
            latency_ms: Simulated network latency in milliseconds
            error: Exception raised by every call when set
        """
        super().__init__(base_url="mock://bank")
        self.accounts = (
            accounts
            if accounts is not None
            else [BankAccount(id="mock-account-1", name="Main Account", currency="EUR")]
        )
        self._ledger: Dict[str, BankTransaction] = {}
        self.failure_rate = failure_rate
        self.latency_ms = latency_ms
        self.error = error
        self.gate: Optional[asyncio.Event] = None
        self.calls: List[Dict[str, Any]] = []
        self.account_calls = 0
        self.put(*(transactions or []))

    def get_source_name(self) -> str:
        """Return source identifier."""
        return "mock"

    def put(self, *transactions: Union[BankTransaction, Dict[str, Any]]) -> None:
        """Add or replace remote transactions (keyed by remote id)."""
        for tx in transactions:
            if not isinstance(tx, BankTransaction):
                tx = BankTransaction.model_validate(tx)
            self._ledger[tx.remote_id] = tx

    async def _simulate(self) -> None:
        if self.latency_ms > 0:
            await asyncio.sleep(self.latency_ms / 1000.0)
        if self.error is not None:
            raise self.error
        if random.random() < self.failure_rate:
            raise APIConnectionError("Simulated API connection failure")

    async def list_organization_accounts(self) -> List[BankAccount]:
        self.account_calls += 1
        await self._simulate()
        return list(self.accounts)

    async def list_transactions(
        self,
        account_id: str,
        status: str = COMPLETED,
        settled_from: Optional[datetime] = None,
    ) -> List[BankTransaction]:
        """Return ledger entries matching status and the inclusive lower bound."""
        self.calls.append(
            {"account_id": account_id, "status": status, "settled_from": settled_from}
        )
        if self.gate is not None:
            await self.gate.wait()
        await self._simulate()

        matched = [
            tx
            for tx in self._ledger.values()
            if tx.status == status
            and (settled_from is None or to_utc(tx.effective_at) >= to_utc(settled_from))
        ]
        matched.sort(key=lambda tx: to_utc(tx.effective_at))
        return matched

    async def validate_credentials(self) -> bool:
        """Mock credential validation always succeeds."""
        await self._simulate()
        return True
