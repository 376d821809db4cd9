"""
Sync engine CLI commands.

Provides command-line access to manual and automatic syncs, the cache
read path and credential checks.
"""

import asyncio
import sys
from typing import List, Optional

import structlog

from ledgersync.core.config import get_settings
from ledgersync.core.logging import configure_logging
from ledgersync.db.init import create_tables
from ledgersync.db.models import CachedTransaction
from ledgersync.sync.clients.base import APIAuthenticationError
from ledgersync.sync.engine import get_sync_engine
from ledgersync.sync.errors import SyncBusy, SyncError
from ledgersync.sync.models import SyncResult, TransactionFilters

logger = structlog.get_logger()

USAGE = """Usage: python -m ledgersync.sync.cli <command> [options]

Commands:
  sync [--force]    Run a sync now (--force ignores the cursor)
  auto              Sync only if the cooldown has elapsed
  stats             Show cache statistics
  list [limit]      List cached transactions, newest first
  get <id>          Show one cached transaction
  refresh <id>      Sync, then show one cached transaction
  clear             Delete all cached transactions and the cursor
  check             Validate bank API credentials
  metrics [hours]   Show sync metrics for this process
  initdb            Create database tables
"""


def print_result(result: SyncResult):
    """Pretty print a sync result."""
    print(f"\nSync completed!")
    print(f"Run ID: {result.run_id}")
    print(f"Mode: {result.mode.value}")
    print(f"Synced: {result.synced}")
    print(f"Total cached: {result.total}")
    print(f"From: {result.from_.isoformat() if result.from_ else 'beginning'}")
    print(f"To: {result.to.isoformat()}")


def print_transaction(tx: Optional[CachedTransaction]):
    """Pretty print one cached transaction."""
    if tx is None:
        print("Transaction not found in cache.")
        return
    print(f"\n=== Transaction {tx.remote_id} ===\n")
    print(f"Date: {tx.effective_at.isoformat()}")
    print(f"Label: {tx.label or '-'}")
    print(f"Amount: {tx.signed_amount} {tx.currency}")
    print(f"Side: {tx.side or '-'}")
    print(f"Operation: {tx.operation_type or '-'}")
    print(f"Reference: {tx.reference or '-'}")
    print(f"Status: {tx.status}")
    if tx.web_url:
        print(f"URL: {tx.web_url}")


def print_transactions(transactions: List[CachedTransaction]):
    """Print cached transactions as one line each."""
    if not transactions:
        print("Cache is empty.")
        return
    for tx in transactions:
        print(
            f"{tx.effective_at.strftime('%Y-%m-%d %H:%M')}  "
            f"{tx.signed_amount:>12} {tx.currency}  "
            f"{(tx.label or '')[:40]:<40}  {tx.remote_id}"
        )


async def sync_command(force: bool = False):
    """Run a sync now."""
    result = await get_sync_engine().sync(force=force)
    print_result(result)
    return 0


async def auto_command():
    """Sync if the cooldown has elapsed."""
    engine = get_sync_engine()
    outcome = await engine.auto_sync()
    if not outcome.synced:
        print("Cache is fresh, no sync needed.")
        return 0
    print_result(outcome.result)
    return 0


async def stats_command():
    """Show cache statistics."""
    stats = await get_sync_engine().stats()

    def fmt(value):
        return value.isoformat() if value else "Never"

    print("\n=== Transaction Cache ===\n")
    print(f"Total cached: {stats.total_cached}")
    print(f"Watermark: {fmt(stats.last_sync_watermark)}")
    print(f"Last sync: {fmt(stats.last_run_at)}")
    print(f"Oldest: {fmt(stats.oldest_transaction)}")
    print(f"Newest: {fmt(stats.newest_transaction)}")
    return 0


async def list_command(limit: Optional[int] = None):
    """List cached transactions."""
    transactions = await get_sync_engine().list_cached(TransactionFilters(limit=limit))
    print_transactions(transactions)
    return 0


async def get_command(remote_id: str):
    """Show one cached transaction."""
    tx = await get_sync_engine().get_cached(remote_id)
    print_transaction(tx)
    return 0 if tx else 1


async def refresh_command(remote_id: str):
    """Sync, then show one cached transaction."""
    tx = await get_sync_engine().refresh(remote_id)
    print_transaction(tx)
    return 0 if tx else 1


async def clear_command():
    """Delete all cached transactions and the cursor."""
    removed = await get_sync_engine().clear_cache()
    print(f"Removed {removed} cached transactions.")
    return 0


async def check_command():
    """Validate bank API credentials."""
    engine = get_sync_engine()
    ok = await engine.client.validate_credentials()
    print(f"Credentials for {engine.client.get_source_name()}: {'valid' if ok else 'rejected'}")
    return 0 if ok else 1


async def metrics_command(hours: Optional[int] = None):
    """Show sync metrics."""
    metrics = get_sync_engine().get_metrics(hours=hours)
    agg = metrics["aggregate"]
    print("\n=== Sync Metrics ===\n")
    print(f"Total Runs: {agg['total_runs']}")
    print(f"Successful: {agg['successful_runs']}")
    print(f"Failed: {agg['failed_runs']}")
    print(f"Rejected (busy): {agg['rejected_calls']}")
    print(f"Success Rate: {metrics['success_rate']:.1%}")
    print(f"Total Synced: {agg['total_synced']}")
    print(f"Avg Duration: {agg['avg_duration_seconds']:.2f}s")
    return 0


async def _run(command: str, args: List[str]) -> int:
    await create_tables()
    if command == "initdb":
        print("Database tables created.")
        return 0

    if command == "sync":
        return await sync_command(force="--force" in args)
    elif command == "auto":
        return await auto_command()
    elif command == "stats":
        return await stats_command()
    elif command == "list":
        return await list_command(int(args[0]) if args else None)
    elif command == "get" and args:
        return await get_command(args[0])
    elif command == "refresh" and args:
        return await refresh_command(args[0])
    elif command == "clear":
        return await clear_command()
    elif command == "check":
        return await check_command()
    elif command == "metrics":
        return await metrics_command(int(args[0]) if args else None)

    print(f"Unknown command or missing argument: {command}")
    print(USAGE)
    return 1


def main():
    """Main CLI entry point."""
    if len(sys.argv) < 2:
        print(USAGE)
        return 1

    settings = get_settings()
    configure_logging(settings.ENV, settings.DEBUG)

    command = sys.argv[1]
    try:
        return asyncio.run(_run(command, sys.argv[2:]))
    except KeyboardInterrupt:
        print("\nInterrupted.")
        return 130
    except SyncBusy as e:
        print(f"Busy: {e}")
        return 75
    except APIAuthenticationError as e:
        print(f"Authentication failed: {e}")
        return 77
    except SyncError as e:
        print(f"Sync failed: {e}")
        return 1
    except Exception as e:
        print(f"Error: {str(e)}")
        logger.exception("cli_error", command=command)
        return 1


if __name__ == "__main__":
    sys.exit(main())
