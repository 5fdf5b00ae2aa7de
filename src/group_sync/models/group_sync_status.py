"""
Data models for per-group sync status
"""

import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class SyncStatus(str, Enum):
    """Outcome of the most recent sync attempt for a group"""
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    PENDING = "PENDING"


_FRACTION_PATTERN = re.compile(r'(\.\d{6})\d+')


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp from the backend, tolerating a trailing Z"""
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    if value.endswith('Z'):
        value = value[:-1] + '+00:00'
    # Java serializes nanoseconds; datetime keeps microseconds
    value = _FRACTION_PATTERN.sub(r'\1', value)
    return datetime.fromisoformat(value)


@dataclass(frozen=True)
class GroupSyncStatus:
    """
    Represents the sync outcome of a single chat group as reported by the backend
    """
    group_id: int
    group_name: str
    sync_status: SyncStatus
    consecutive_failure_count: int = 0
    last_sync_time: Optional[datetime] = None
    failure_reason: Optional[str] = None
    external_group_id: Optional[str] = None  # group number on the messaging gateway
    member_count: Optional[int] = None
    enabled: Optional[bool] = None
    active: Optional[bool] = None
    last_failure_time: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GroupSyncStatus':
        """
        Build a status from the backend's camelCase payload

        The backend reports the local roster id as ``id`` and the gateway-side
        group number as ``groupId``. When ``id`` is absent or null, ``groupId`` is
        taken as the roster id.
        """
        if data.get('id') is not None:
            group_id = data['id']
            external_group_id = data.get('groupId')
        else:
            group_id = data['groupId']
            external_group_id = None

        status = SyncStatus(data.get('syncStatus') or SyncStatus.PENDING.value)

        return cls(
            group_id=int(group_id),
            group_name=data.get('groupName') or '',
            sync_status=status,
            consecutive_failure_count=int(data.get('consecutiveFailureCount') or 0),
            last_sync_time=parse_timestamp(data.get('lastSyncTime')),
            failure_reason=data.get('failureReason') if status == SyncStatus.FAILED else None,
            external_group_id=str(external_group_id) if external_group_id is not None else None,
            member_count=data.get('memberCount'),
            enabled=data.get('enabled'),
            active=data.get('active'),
            last_failure_time=parse_timestamp(data.get('lastFailureTime')),
        )

    @property
    def is_failed(self) -> bool:
        return self.sync_status == SyncStatus.FAILED

    @property
    def is_success(self) -> bool:
        return self.sync_status == SyncStatus.SUCCESS

    def needs_alert(self, threshold: int) -> bool:
        """Check if the group has failed at least ``threshold`` times in a row"""
        return self.consecutive_failure_count >= threshold
