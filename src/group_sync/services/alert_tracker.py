"""
Read-only view over sync alerts and the latest batch outcome
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from aws_lambda_powertools import Logger

from group_sync.models.group_sync_status import GroupSyncStatus
from group_sync.services.sync_orchestrator import SyncOrchestrator

logger = Logger(child=True)

# Consecutive failures at which the backend lists a group as an alert.
# Informational only: the backend's roster is authoritative and is not re-filtered.
ALERT_THRESHOLD = 3

HEALTHY_SUCCESS_RATE = 90.0
DEGRADED_SUCCESS_RATE = 50.0


class SyncHealth(str, Enum):
    UP = "UP"
    DEGRADED = "DEGRADED"
    DOWN = "DOWN"
    UNKNOWN = "UNKNOWN"


class AlertTracker:
    """
    Projection of the orchestrator's state for operators

    Holds no state of its own; every property reads the orchestrator at call
    time. ``acknowledge`` is the only action and delegates to the orchestrator.
    """

    def __init__(self, orchestrator: SyncOrchestrator):
        self.orchestrator = orchestrator

    @property
    def alert_groups(self) -> List[GroupSyncStatus]:
        return self.orchestrator.alert_groups

    @property
    def has_alerts(self) -> bool:
        return len(self.orchestrator.alert_groups) > 0

    @property
    def last_sync_time(self) -> Optional[datetime]:
        result = self.orchestrator.last_sync_result
        return result.end_time if result else None

    @property
    def last_sync_success_rate(self) -> float:
        result = self.orchestrator.last_sync_result
        return result.success_rate if result else 0.0

    @property
    def health_status(self) -> SyncHealth:
        """
        Classify the latest batch by success rate

        UP at 90% or above, DEGRADED at 50% or above, DOWN below that and
        UNKNOWN before any batch has completed.
        """
        if self.orchestrator.last_sync_result is None:
            return SyncHealth.UNKNOWN
        rate = self.last_sync_success_rate
        if rate >= HEALTHY_SUCCESS_RATE:
            return SyncHealth.UP
        if rate >= DEGRADED_SUCCESS_RATE:
            return SyncHealth.DEGRADED
        return SyncHealth.DOWN

    def acknowledge(self, group_id: int) -> None:
        """Reset the group's failure count; the roster is re-fetched afterwards"""
        logger.info(f"Acknowledging alert for group {group_id}")
        self.orchestrator.reset_failure_count(group_id)

    def summary(self) -> Dict[str, Any]:
        last_sync_time = self.last_sync_time
        return {
            "sync_in_progress": self.orchestrator.sync_in_progress,
            "has_alerts": self.has_alerts,
            "alert_threshold": ALERT_THRESHOLD,
            "alert_count": len(self.alert_groups),
            "alert_groups": [
                {
                    "group_id": group.group_id,
                    "group_name": group.group_name,
                    "consecutive_failure_count": group.consecutive_failure_count,
                    "failure_reason": group.failure_reason,
                }
                for group in self.alert_groups
            ],
            "last_sync_time": last_sync_time.isoformat() if last_sync_time else None,
            "last_sync_success_rate": round(self.last_sync_success_rate, 2),
            "health_status": self.health_status.value,
            "history_size": len(self.orchestrator.sync_history),
        }
