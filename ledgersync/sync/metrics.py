"""
Sync run metrics.

Tracks run outcomes, durations and record counts in memory and provides
aggregates for the CLI and for callers that want to surface sync health.
"""

from typing import Dict, Any, Optional, List
from datetime import datetime, timedelta, timezone
from dataclasses import dataclass, asdict
from enum import Enum

from ledgersync.sync.events import SyncObserver
from ledgersync.sync.models import SyncMode, SyncResult


class SyncStatus(str, Enum):
    """Status of a sync run."""

    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class SyncRunMetrics:
    """Metrics for a single sync run."""

    run_id: str
    started_at: datetime
    mode: Optional[SyncMode] = None
    ended_at: Optional[datetime] = None
    status: SyncStatus = SyncStatus.RUNNING

    # Record counts
    transactions_fetched: int = 0
    transactions_synced: int = 0
    cache_total: int = 0

    duration_seconds: float = 0.0
    error: Optional[str] = None
    error_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        data = asdict(self)
        data["started_at"] = self.started_at.isoformat()
        data["ended_at"] = self.ended_at.isoformat() if self.ended_at else None
        data["status"] = self.status.value
        data["mode"] = self.mode.value if self.mode else None
        return data


@dataclass
class AggregateMetrics:
    """Aggregated metrics across multiple sync runs."""

    total_runs: int = 0
    successful_runs: int = 0
    failed_runs: int = 0
    rejected_calls: int = 0

    total_fetched: int = 0
    total_synced: int = 0

    avg_duration_seconds: float = 0.0
    avg_synced_per_run: float = 0.0

    first_run: Optional[datetime] = None
    last_run: Optional[datetime] = None
    last_success: Optional[datetime] = None
    last_failure: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        data = asdict(self)
        for key in ["first_run", "last_run", "last_success", "last_failure"]:
            if data[key]:
                data[key] = data[key].isoformat()
        return data


class SyncMetrics(SyncObserver):
    """
    In-memory metrics tracker fed by sync lifecycle events.

    Keeps the current run (if any) and a bounded history of finished runs.
    Busy rejections are counted but are not runs.
    """

    def __init__(self, history_size: int = 100):
        """
        Initialize metrics tracker.

        Args:
            history_size: Number of recent runs to keep in memory
        """
        self.history_size = history_size
        self._current_run: Optional[SyncRunMetrics] = None
        self._history: List[SyncRunMetrics] = []
        self._rejected: List[datetime] = []

    def sync_started(self, run_id, mode, from_):
        self._current_run = SyncRunMetrics(
            run_id=run_id, started_at=datetime.now(timezone.utc), mode=mode
        )

    def sync_finished(self, run_id: str, result: SyncResult, fetched: int):
        run = self._take(run_id)
        if run is None:
            return
        run.transactions_fetched = fetched
        run.transactions_synced = result.synced
        run.cache_total = result.total
        self._close(run, SyncStatus.SUCCESS)

    def sync_failed(self, run_id: str, error: BaseException):
        run = self._take(run_id)
        if run is None:
            # Failed before sync_started fired.
            run = SyncRunMetrics(run_id=run_id, started_at=datetime.now(timezone.utc))
        run.error = str(error)
        run.error_type = type(error).__name__
        self._close(run, SyncStatus.FAILED)

    def sync_rejected(self):
        self._rejected.append(datetime.now(timezone.utc))
        if len(self._rejected) > self.history_size:
            self._rejected = self._rejected[-self.history_size :]

    def _take(self, run_id: str) -> Optional[SyncRunMetrics]:
        run = self._current_run
        if run is None or run.run_id != run_id:
            return None
        self._current_run = None
        return run

    def _close(self, run: SyncRunMetrics, status: SyncStatus) -> None:
        run.ended_at = datetime.now(timezone.utc)
        run.status = status
        run.duration_seconds = (run.ended_at - run.started_at).total_seconds()

        self._history.append(run)
        if len(self._history) > self.history_size:
            self._history = self._history[-self.history_size :]

    def get_current_run(self) -> Optional[SyncRunMetrics]:
        """Get metrics for the run in flight."""
        return self._current_run

    def get_last_run(self) -> Optional[SyncRunMetrics]:
        """Get metrics for the most recent completed run."""
        return self._history[-1] if self._history else None

    def get_history(self, limit: Optional[int] = None) -> List[SyncRunMetrics]:
        """
        Get recent run history.

        Args:
            limit: Maximum number of runs to return (defaults to all)

        Returns:
            List of sync run metrics, newest first
        """
        history = list(reversed(self._history))
        if limit:
            history = history[:limit]
        return history

    def get_aggregate_metrics(self, hours: Optional[int] = None) -> AggregateMetrics:
        """
        Get aggregated metrics across recent runs.

        Args:
            hours: Only include runs from the last N hours (None = all history)

        Returns:
            Aggregated metrics
        """
        runs = self._history
        rejected = self._rejected

        if hours:
            cutoff = datetime.now(timezone.utc) - timedelta(hours=hours)
            runs = [r for r in runs if r.started_at >= cutoff]
            rejected = [r for r in rejected if r >= cutoff]

        metrics = AggregateMetrics(rejected_calls=len(rejected))
        if not runs:
            return metrics

        metrics.total_runs = len(runs)
        metrics.successful_runs = sum(1 for r in runs if r.status == SyncStatus.SUCCESS)
        metrics.failed_runs = sum(1 for r in runs if r.status == SyncStatus.FAILED)

        metrics.total_fetched = sum(r.transactions_fetched for r in runs)
        metrics.total_synced = sum(r.transactions_synced for r in runs)

        metrics.avg_duration_seconds = (
            sum(r.duration_seconds for r in runs) / metrics.total_runs
        )
        metrics.avg_synced_per_run = metrics.total_synced / metrics.total_runs

        metrics.first_run = runs[0].started_at
        metrics.last_run = runs[-1].started_at

        for run in reversed(runs):
            if run.status == SyncStatus.SUCCESS and not metrics.last_success:
                metrics.last_success = run.started_at
            if run.status == SyncStatus.FAILED and not metrics.last_failure:
                metrics.last_failure = run.started_at
            if metrics.last_success and metrics.last_failure:
                break

        return metrics

    def get_success_rate(self, hours: Optional[int] = None) -> float:
        """
        Calculate success rate.

        Args:
            hours: Only include runs from the last N hours

        Returns:
            Success rate as float (0.0 to 1.0)
        """
        agg = self.get_aggregate_metrics(hours)
        if agg.total_runs == 0:
            return 0.0
        return agg.successful_runs / agg.total_runs

    def clear_history(self):
        """Clear all metrics history."""
        self._history.clear()
        self._rejected.clear()
        self._current_run = None
