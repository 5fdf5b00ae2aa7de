"""
Orchestration of batch group syncs and the alert roster
"""

import threading
import time
import uuid
from collections import deque
from typing import Callable, Deque, List, Optional
from abc import ABC, abstractmethod

from aws_lambda_powertools import Logger, Metrics
from aws_lambda_powertools.metrics import MetricUnit

from group_sync.clients.sync_api_client import SyncAPIClientInterface
from group_sync.config import DEFAULT_HISTORY_LIMIT
from group_sync.exceptions import ConcurrentSyncError, GatewayError
from group_sync.models.group_sync_status import GroupSyncStatus
from group_sync.models.sync_result import BatchSyncResult

# Initialize structured logger and metrics
logger = Logger(child=True)
metrics = Metrics()


class SyncOrchestratorInterface(ABC):
    """
    Interface for sync orchestration operations
    """

    @abstractmethod
    def trigger_sync(self) -> BatchSyncResult:
        """
        Sync every active group as one batch

        Returns:
            BatchSyncResult: Outcome of the batch

        Raises:
            ConcurrentSyncError: If another batch is running
            GatewayError: If the backend call fails
        """
        pass

    @abstractmethod
    def retry_failed_groups(self, min_failure_count: int = 1) -> BatchSyncResult:
        """
        Retry groups with at least min_failure_count consecutive failures as one batch

        Raises:
            ConcurrentSyncError: If another batch is running
            GatewayError: If the backend call fails
        """
        pass

    @abstractmethod
    def sync_single_group(self, group_id: int) -> GroupSyncStatus:
        pass

    @abstractmethod
    def fetch_alert_groups(self) -> None:
        pass

    @abstractmethod
    def reset_failure_count(self, group_id: int) -> None:
        pass

    @abstractmethod
    def discover_new_groups(self, client_id: int) -> int:
        pass


class SyncOrchestrator(SyncOrchestratorInterface):
    """
    Serializes batch syncs, records their results and keeps the alert roster fresh

    Session state lives in memory for the lifetime of the instance. Only batch
    operations (trigger and retry) are mutually exclusive; single-group sync,
    reset and discovery may run alongside a batch.
    """

    def __init__(self, api_client: SyncAPIClientInterface, history_limit: int = DEFAULT_HISTORY_LIMIT,
                 correlation_id: Optional[str] = None):
        """
        Initialize orchestrator with an API client

        Args:
            api_client: Sync backend client
            history_limit: Number of batch results kept, newest first
            correlation_id: Request correlation ID for tracing
        """
        self.api_client = api_client
        self.correlation_id = correlation_id or str(uuid.uuid4())
        self._batch_lock = threading.Lock()
        self._last_sync_result: Optional[BatchSyncResult] = None
        self._alert_groups: List[GroupSyncStatus] = []
        self._sync_history: Deque[BatchSyncResult] = deque(maxlen=history_limit)

    @property
    def sync_in_progress(self) -> bool:
        return self._batch_lock.locked()

    @property
    def last_sync_result(self) -> Optional[BatchSyncResult]:
        return self._last_sync_result

    @property
    def alert_groups(self) -> List[GroupSyncStatus]:
        return list(self._alert_groups)

    @property
    def sync_history(self) -> List[BatchSyncResult]:
        """Batch results, most recent first"""
        return list(self._sync_history)

    def initialize(self) -> None:
        """Load the alert roster once at startup"""
        self.fetch_alert_groups()

    def trigger_sync(self) -> BatchSyncResult:
        return self._run_batch("trigger_sync", self.api_client.trigger_sync)

    def retry_failed_groups(self, min_failure_count: int = 1) -> BatchSyncResult:
        return self._run_batch(
            "retry_failed_groups",
            lambda: self.api_client.retry_failed_groups(min_failure_count),
            min_failure_count=min_failure_count,
        )

    def _run_batch(self, operation: str, call: Callable[[], BatchSyncResult], **context) -> BatchSyncResult:
        """
        Run one batch under the in-progress guard

        The guard is taken without blocking; a second batch fails immediately
        with ConcurrentSyncError before any request is sent. The result is
        recorded only after the backend call returns, and the guard is
        released on every exit path.
        """
        if not self._batch_lock.acquire(blocking=False):
            logger.warning("Rejected batch sync while another is running", extra={
                "correlation_id": self.correlation_id,
                "operation": operation,
                **context
            })
            metrics.add_metric(name="ConcurrentSyncRejections", unit=MetricUnit.Count, value=1)
            raise ConcurrentSyncError()

        start_time = time.time()
        try:
            logger.info("Starting batch sync", extra={
                "correlation_id": self.correlation_id,
                "operation": operation,
                **context
            })

            try:
                result = call()
            except GatewayError as e:
                logger.error("Batch sync failed", extra={
                    "correlation_id": self.correlation_id,
                    "operation": operation,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                    "status_code": e.status_code,
                    "trace_id": e.trace_id,
                    "duration_seconds": round(time.time() - start_time, 2)
                })
                metrics.add_metric(name="BatchSyncErrors", unit=MetricUnit.Count, value=1)
                raise

            self._record_result(result)

            logger.info("Batch sync completed", extra={
                "correlation_id": self.correlation_id,
                "operation": operation,
                "total_count": result.total_count,
                "success_count": result.success_count,
                "failure_count": result.failure_count,
                "success_rate_percent": round(result.success_rate, 2),
                "backend_duration_ms": result.duration_ms,
                "duration_seconds": round(time.time() - start_time, 2)
            })

            metrics.add_metric(name="BatchSyncGroups", unit=MetricUnit.Count, value=result.total_count)
            metrics.add_metric(name="BatchSyncFailures", unit=MetricUnit.Count, value=result.failure_count)
            metrics.add_metric(name="BatchSyncSuccessRate", unit=MetricUnit.Percent, value=result.success_rate)
            metrics.add_metric(name="BatchSyncDuration", unit=MetricUnit.Milliseconds, value=result.duration_ms)

            self.fetch_alert_groups()

            return result
        finally:
            self._batch_lock.release()

    def _record_result(self, result: BatchSyncResult) -> None:
        self._last_sync_result = result
        # deque(maxlen) evicts the oldest entry from the right
        self._sync_history.appendleft(result)

    def sync_single_group(self, group_id: int) -> GroupSyncStatus:
        """Sync one group; batch state, history and alerts are left untouched"""
        status = self.api_client.sync_group(group_id)
        logger.info("Single group sync completed", extra={
            "correlation_id": self.correlation_id,
            "group_id": group_id,
            "sync_status": status.sync_status.value,
            "consecutive_failure_count": status.consecutive_failure_count
        })
        return status

    def fetch_alert_groups(self) -> None:
        """Replace the alert roster with the backend's current list"""
        alert_groups = self.api_client.get_alert_groups()
        self._alert_groups = list(alert_groups)

        if self._alert_groups:
            logger.warning("Groups over the failure alert threshold", extra={
                "correlation_id": self.correlation_id,
                "alert_count": len(self._alert_groups),
                "group_ids": [group.group_id for group in self._alert_groups]
            })
        metrics.add_metric(name="AlertGroups", unit=MetricUnit.Count, value=len(self._alert_groups))

    def reset_failure_count(self, group_id: int) -> None:
        """Clear a group's failure count, then refresh the alert roster"""
        self.api_client.reset_failure_count(group_id)
        logger.info("Reset group failure count", extra={
            "correlation_id": self.correlation_id,
            "group_id": group_id
        })
        self.fetch_alert_groups()

    def discover_new_groups(self, client_id: int) -> int:
        new_group_count = self.api_client.discover_new_groups(client_id)
        logger.info("Group discovery completed", extra={
            "correlation_id": self.correlation_id,
            "client_id": client_id,
            "new_group_count": new_group_count
        })
        metrics.add_metric(name="GroupsDiscovered", unit=MetricUnit.Count, value=new_group_count)
        return new_group_count
