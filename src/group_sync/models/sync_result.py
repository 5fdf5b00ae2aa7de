"""
Data models for batch synchronization results
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from group_sync.models.group_sync_status import SyncStatus, parse_timestamp


@dataclass(frozen=True)
class GroupSyncSummary:
    """
    Per-group line of a batch result
    """
    group_id: int
    group_name: str
    sync_status: SyncStatus
    failure_reason: Optional[str] = None
    member_count: Optional[int] = None
    active: Optional[bool] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GroupSyncSummary':
        return cls(
            group_id=int(data['groupId']),
            group_name=data.get('groupName') or '',
            sync_status=SyncStatus(data.get('syncStatus') or SyncStatus.PENDING.value),
            failure_reason=data.get('failureReason'),
            member_count=data.get('memberCount'),
            active=data.get('active'),
        )


@dataclass(frozen=True)
class BatchSyncResult:
    """
    Represents the result of one trigger or retry batch run by the backend
    """
    total_count: int = 0
    success_count: int = 0
    failure_count: int = 0
    duration_ms: int = 0
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    reported_success_rate: Optional[float] = None
    results: Tuple[GroupSyncSummary, ...] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BatchSyncResult':
        """Build a result from the backend's camelCase payload"""
        success_rate = data.get('successRate')
        return cls(
            total_count=int(data.get('totalCount') or 0),
            success_count=int(data.get('successCount') or 0),
            failure_count=int(data.get('failureCount') or 0),
            duration_ms=int(data.get('durationMs') or 0),
            start_time=parse_timestamp(data.get('startTime')),
            end_time=parse_timestamp(data.get('endTime')),
            reported_success_rate=float(success_rate) if success_rate is not None else None,
            results=tuple(GroupSyncSummary.from_dict(item) for item in data.get('results') or []),
        )

    @property
    def success_rate(self) -> float:
        """Success rate as percentage, 0 for an empty batch"""
        if self.reported_success_rate is not None:
            return self.reported_success_rate
        if self.total_count == 0:
            return 0.0
        return (self.success_count / self.total_count) * 100.0

    @property
    def is_all_success(self) -> bool:
        return self.failure_count == 0

    @property
    def failed_groups(self) -> List[GroupSyncSummary]:
        """Per-group summaries that ended in FAILED"""
        return [summary for summary in self.results if summary.sync_status == SyncStatus.FAILED]

    def to_dict(self) -> Dict[str, Any]:
        """Summary suitable for JSON execution reports"""
        return {
            "total_count": self.total_count,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "success_rate_percent": round(self.success_rate, 2),
            "duration_ms": self.duration_ms,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "failed_groups": [summary.group_id for summary in self.failed_groups],
        }
