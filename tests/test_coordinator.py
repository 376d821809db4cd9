"""
Tests for the sync coordinator.

Tests full and incremental runs, idempotency, the cursor watermark,
single-flight rejection, error wrapping and lifecycle events.
"""

import asyncio

import httpx
import pytest

from ledgersync.db.cache import TransactionCache
from ledgersync.sync.clients.base import (
    APIAuthenticationError,
    APIConnectionError,
    APIValidationError,
    BankAccount,
)
from ledgersync.sync.clients.mock_client import MockBankClient
from ledgersync.sync.config import SyncConfig
from ledgersync.sync.coordinator import SyncCoordinator
from ledgersync.sync.errors import NoBankAccount, RemoteUnavailable, SyncBusy
from ledgersync.sync.events import SyncObserver
from ledgersync.sync.models import SyncMode
from tests.fixtures.bank import ScriptedBankClient, at, make_tx


class RecordingObserver(SyncObserver):
    """Keeps every lifecycle event as a tuple."""

    def __init__(self):
        self.events = []

    def sync_started(self, run_id, mode, from_):
        self.events.append(("started", run_id, mode, from_))

    def sync_finished(self, run_id, result, fetched):
        self.events.append(("finished", run_id, result, fetched))

    def sync_failed(self, run_id, error):
        self.events.append(("failed", run_id, error))

    def sync_rejected(self):
        self.events.append(("rejected",))

    def names(self):
        return [event[0] for event in self.events]


class FailingCache(TransactionCache):
    """Cache whose upsert fails after `allowed` successful writes."""

    def __init__(self, session_factory, allowed: int):
        super().__init__(session_factory)
        self.allowed = allowed

    async def upsert(self, tx):
        if self.allowed == 0:
            raise RuntimeError("disk full")
        self.allowed -= 1
        return await super().upsert(tx)


async def wait_for_fetch(client: MockBankClient) -> None:
    """Wait until a sync has reached the transaction fetch."""

    async def _poll():
        while not client.calls:
            await asyncio.sleep(0.001)

    await asyncio.wait_for(_poll(), timeout=5)


@pytest.fixture
def observer():
    return RecordingObserver()


@pytest.fixture
def make_coordinator(cache, sync_config, clock, observer):
    def _make(client, config=None, **kwargs):
        return SyncCoordinator(
            client=client,
            cache=kwargs.pop("cache", cache),
            config=config or sync_config,
            observer=observer,
            clock=clock,
            **kwargs,
        )

    return _make


class TestSyncScenarios:
    """End-to-end sync runs against a scripted remote."""

    @pytest.mark.asyncio
    async def test_first_sync_fills_empty_cache(self, make_coordinator, cache, clock):
        """Empty cache + {A, B, C} -> synced 3, total 3, cursor at max settled_at."""
        client = ScriptedBankClient(
            [make_tx("A", at(0)), make_tx("B", at(2)), make_tx("C", at(1))]
        )
        coordinator = make_coordinator(client)

        result = await coordinator.sync()

        assert result.synced == 3
        assert result.total == 3
        assert result.mode == SyncMode.FULL
        assert result.from_ is None
        assert result.to == clock()

        cursor = await cache.get_cursor()
        assert cursor.last_synced_at == at(2)
        assert cursor.last_synced_id == "B"
        assert cursor.last_run_at == clock()

    @pytest.mark.asyncio
    async def test_incremental_overwrites_and_inserts(self, make_coordinator, cache):
        """Cache {A, B, C} + remote {B, D} -> synced 2, total 4, no duplicate B."""
        client = ScriptedBankClient(
            [make_tx("A", at(0)), make_tx("B", at(1)), make_tx("C", at(2))]
        )
        coordinator = make_coordinator(client)
        await coordinator.sync()

        client.batch = [make_tx("B", at(1)), make_tx("D", at(3))]
        result = await coordinator.sync()

        assert result.synced == 2
        assert result.total == 4
        assert result.mode == SyncMode.INCREMENTAL
        assert result.from_ == at(2)

        rows = await cache.list_cached()
        assert sorted(r.remote_id for r in rows) == ["A", "B", "C", "D"]
        assert (await cache.get_cursor()).last_synced_at == at(3)

    @pytest.mark.asyncio
    async def test_no_bank_account(self, make_coordinator, cache):
        """An empty account list fails before any cache write."""
        client = MockBankClient(accounts=[], transactions=[make_tx("A", at(0))])
        coordinator = make_coordinator(client)

        with pytest.raises(NoBankAccount):
            await coordinator.sync()

        assert client.calls == []
        assert await cache.count() == 0
        assert await cache.get_cursor() is None


class TestRemoteFilters:
    """Tests for the filters sent to the bank."""

    @pytest.mark.asyncio
    async def test_first_sync_fetches_everything(self, make_coordinator):
        """Without a cursor no lower bound is sent."""
        client = MockBankClient(transactions=[make_tx("A", at(0))])
        await make_coordinator(client).sync()

        assert client.calls == [
            {"account_id": "mock-account-1", "status": "completed", "settled_from": None}
        ]

    @pytest.mark.asyncio
    async def test_incremental_uses_watermark(self, make_coordinator):
        """After a sync the next request starts at the watermark."""
        client = MockBankClient(transactions=[make_tx("A", at(0)), make_tx("B", at(4))])
        coordinator = make_coordinator(client)
        await coordinator.sync()
        await coordinator.sync()

        assert client.calls[-1]["settled_from"] == at(4)

    @pytest.mark.asyncio
    async def test_boundary_record_refetched_harmlessly(self, make_coordinator, cache):
        """The inclusive bound returns the boundary record again; it stays one row."""
        client = MockBankClient(transactions=[make_tx("A", at(0)), make_tx("B", at(4))])
        coordinator = make_coordinator(client)
        await coordinator.sync()

        result = await coordinator.sync()

        assert result.synced == 1
        assert result.total == 2

    @pytest.mark.asyncio
    async def test_first_account_is_used(self, make_coordinator):
        """Only the first organization account is queried."""
        client = MockBankClient(
            accounts=[
                BankAccount(id="acc-main", name="Main"),
                BankAccount(id="acc-savings", name="Savings"),
            ]
        )
        await make_coordinator(client).sync()

        assert [call["account_id"] for call in client.calls] == ["acc-main"]

    @pytest.mark.asyncio
    async def test_only_completed_requested(self, make_coordinator, cache):
        """Pending remote transactions are never cached."""
        client = MockBankClient(
            transactions=[
                make_tx("A", at(0)),
                make_tx("P", at(1), status="pending"),
            ]
        )
        await make_coordinator(client).sync()

        assert await cache.get_cached("P") is None
        assert await cache.count() == 1


class TestForceSync:
    """Tests for force=True."""

    @pytest.mark.asyncio
    async def test_force_ignores_cursor(self, make_coordinator):
        """A forced run sends no lower bound even with a cursor stored."""
        client = MockBankClient(transactions=[make_tx("A", at(0)), make_tx("B", at(4))])
        coordinator = make_coordinator(client)
        await coordinator.sync()

        result = await coordinator.sync(force=True)

        assert result.mode == SyncMode.FULL
        assert result.from_ is None
        assert client.calls[-1]["settled_from"] is None
        assert result.synced == 2
        assert result.total == 2


class TestCursorAdvance:
    """Tests for the watermark rules."""

    @pytest.mark.asyncio
    async def test_watermark_never_regresses(self, make_coordinator, cache):
        """A forced run returning only older records keeps the watermark."""
        client = ScriptedBankClient([make_tx("A", at(0)), make_tx("C", at(5))])
        coordinator = make_coordinator(client)
        await coordinator.sync()

        client.batch = [make_tx("A", at(0))]
        await coordinator.sync(force=True)

        cursor = await cache.get_cursor()
        assert cursor.last_synced_at == at(5)
        assert cursor.last_synced_id == "C"

    @pytest.mark.asyncio
    async def test_empty_run_keeps_watermark_and_records_run(
        self, make_coordinator, cache, clock
    ):
        """Zero fetched records leaves the watermark but updates last_run_at."""
        client = ScriptedBankClient([make_tx("A", at(0))])
        coordinator = make_coordinator(client)
        await coordinator.sync()

        client.batch = []
        clock.advance(hours=2)
        result = await coordinator.sync()

        assert result.synced == 0
        assert result.total == 1
        cursor = await cache.get_cursor()
        assert cursor.last_synced_at == at(0)
        assert cursor.last_run_at == clock()

    @pytest.mark.asyncio
    async def test_empty_first_sync_stores_cursor(self, make_coordinator, cache):
        """An empty remote still records a successful run."""
        coordinator = make_coordinator(MockBankClient())

        result = await coordinator.sync()

        assert result.synced == 0
        cursor = await cache.get_cursor()
        assert cursor is not None
        assert cursor.last_synced_at is None

    @pytest.mark.asyncio
    async def test_partial_failure_leaves_cursor(
        self, make_coordinator, session_factory, observer
    ):
        """If an upsert fails the cursor is not written; earlier upserts stay."""
        failing = FailingCache(session_factory, allowed=1)
        client = ScriptedBankClient([make_tx("A", at(0)), make_tx("B", at(1))])
        coordinator = make_coordinator(client, cache=failing)

        with pytest.raises(RuntimeError, match="disk full"):
            await coordinator.sync()

        assert await failing.get_cursor() is None
        assert await failing.count() == 1
        assert observer.names() == ["started", "failed"]
        assert not coordinator.in_progress


class TestBoundaryExclusion:
    """Tests for the optional boundary-id exclusion."""

    @pytest.mark.asyncio
    async def test_excluded_when_enabled(self, make_coordinator):
        """With exclusion on, the previous boundary record is skipped."""
        config = SyncConfig(client_type="mock", exclude_boundary_id=True)
        client = MockBankClient(transactions=[make_tx("A", at(0)), make_tx("B", at(4))])
        coordinator = make_coordinator(client, config=config)
        await coordinator.sync()

        client.put(make_tx("C", at(6)))
        result = await coordinator.sync()

        assert result.synced == 1
        assert result.total == 3

    @pytest.mark.asyncio
    async def test_not_applied_on_forced_run(self, make_coordinator):
        """A full run never drops records."""
        config = SyncConfig(client_type="mock", exclude_boundary_id=True)
        client = MockBankClient(transactions=[make_tx("A", at(0)), make_tx("B", at(4))])
        coordinator = make_coordinator(client, config=config)
        await coordinator.sync()

        result = await coordinator.sync(force=True)

        assert result.synced == 2


class TestSingleFlight:
    """Tests for concurrent sync rejection."""

    @pytest.mark.asyncio
    async def test_concurrent_sync_rejected(self, make_coordinator, observer):
        """A second sync while one is in flight fails fast with SyncBusy."""
        client = MockBankClient(transactions=[make_tx("A", at(0))])
        client.gate = asyncio.Event()
        coordinator = make_coordinator(client)

        first = asyncio.create_task(coordinator.sync())
        await wait_for_fetch(client)
        assert coordinator.in_progress

        with pytest.raises(SyncBusy):
            await coordinator.sync()
        with pytest.raises(SyncBusy):
            await coordinator.sync(force=True)

        client.gate.set()
        result = await first

        assert result.synced == 1
        assert len(client.calls) == 1
        assert not coordinator.in_progress
        assert observer.names().count("rejected") == 2

    @pytest.mark.asyncio
    async def test_sync_allowed_after_completion(self, make_coordinator):
        """The lock is free again once a run returns."""
        coordinator = make_coordinator(MockBankClient())

        await coordinator.sync()
        await coordinator.sync()

        assert not coordinator.in_progress

    @pytest.mark.asyncio
    async def test_coordinators_do_not_share_lock(self, make_coordinator):
        """Independent coordinators run independently."""
        blocked = MockBankClient()
        blocked.gate = asyncio.Event()
        first = make_coordinator(blocked)
        second = make_coordinator(MockBankClient())

        task = asyncio.create_task(first.sync())
        await wait_for_fetch(blocked)

        result = await second.sync()
        assert result.synced == 0

        blocked.gate.set()
        await task

    @pytest.mark.asyncio
    async def test_shared_lock_is_honored(self, make_coordinator):
        """Coordinators given the same lock exclude each other."""
        lock = asyncio.Lock()
        blocked = MockBankClient()
        blocked.gate = asyncio.Event()
        first = make_coordinator(blocked, lock=lock)
        second = make_coordinator(MockBankClient(), lock=lock)

        task = asyncio.create_task(first.sync())
        await wait_for_fetch(blocked)

        with pytest.raises(SyncBusy):
            await second.sync()

        blocked.gate.set()
        await task


class TestErrorHandling:
    """Tests for remote failures."""

    @pytest.mark.asyncio
    async def test_connection_error_wrapped(self, make_coordinator, cache):
        """Client errors surface as RemoteUnavailable with the cause attached."""
        original = APIConnectionError("connection reset")
        coordinator = make_coordinator(MockBankClient(error=original))

        with pytest.raises(RemoteUnavailable) as exc_info:
            await coordinator.sync()

        assert exc_info.value.cause is original
        assert exc_info.value.__cause__ is original
        assert await cache.get_cursor() is None

    @pytest.mark.asyncio
    async def test_validation_error_wrapped(self, make_coordinator):
        """Malformed remote data is a remote failure."""
        coordinator = make_coordinator(
            MockBankClient(error=APIValidationError("bad json"))
        )

        with pytest.raises(RemoteUnavailable):
            await coordinator.sync()

    @pytest.mark.asyncio
    async def test_httpx_error_wrapped(self, make_coordinator):
        """Raw transport errors are wrapped too."""
        coordinator = make_coordinator(
            MockBankClient(error=httpx.ConnectError("refused"))
        )

        with pytest.raises(RemoteUnavailable):
            await coordinator.sync()

    @pytest.mark.asyncio
    async def test_authentication_error_propagates(self, make_coordinator):
        """Credential failures are not disguised as outages."""
        coordinator = make_coordinator(
            MockBankClient(error=APIAuthenticationError("bad secret"))
        )

        with pytest.raises(APIAuthenticationError):
            await coordinator.sync()

    @pytest.mark.asyncio
    async def test_lock_released_after_failure(self, make_coordinator):
        """A failed run never leaves the lock held."""
        client = MockBankClient(
            transactions=[make_tx("A", at(0))],
            error=APIConnectionError("down"),
        )
        coordinator = make_coordinator(client)

        with pytest.raises(RemoteUnavailable):
            await coordinator.sync()
        assert not coordinator.in_progress

        client.error = None
        result = await coordinator.sync()
        assert result.synced == 1

    @pytest.mark.asyncio
    async def test_no_internal_retry(self, make_coordinator):
        """One failed run makes exactly one account request."""
        client = MockBankClient(error=APIConnectionError("down"))
        coordinator = make_coordinator(client)

        with pytest.raises(RemoteUnavailable):
            await coordinator.sync()

        assert client.account_calls == 1


class TestLifecycleEvents:
    """Tests for observer notifications."""

    @pytest.mark.asyncio
    async def test_success_events(self, make_coordinator, observer):
        """A run reports started then finished with the fetched count."""
        client = MockBankClient(transactions=[make_tx("A", at(0)), make_tx("B", at(1))])
        result = await make_coordinator(client).sync()

        assert observer.names() == ["started", "finished"]
        _, run_id, mode, from_ = observer.events[0]
        assert run_id == result.run_id
        assert mode == SyncMode.FULL
        assert from_ is None
        assert observer.events[1][3] == 2

    @pytest.mark.asyncio
    async def test_failure_event(self, make_coordinator, observer):
        """A failing run reports failed with the raised error."""
        coordinator = make_coordinator(MockBankClient(accounts=[]))

        with pytest.raises(NoBankAccount):
            await coordinator.sync()

        assert observer.names() == ["started", "failed"]
        assert isinstance(observer.events[1][2], NoBankAccount)

    @pytest.mark.asyncio
    async def test_run_ids_are_unique(self, make_coordinator):
        """Two runs in the same second get different ids."""
        coordinator = make_coordinator(MockBankClient())

        first = await coordinator.sync()
        second = await coordinator.sync()

        assert first.run_id != second.run_id
