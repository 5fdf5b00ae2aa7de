"""
Sync payload model unit tests
"""
from datetime import datetime, timezone

import pytest

from group_sync.models.group_sync_status import GroupSyncStatus, SyncStatus, parse_timestamp
from group_sync.models.sync_result import BatchSyncResult


@pytest.mark.unit
def test_batch_result_from_backend_payload():
    """Test a full batch payload with per-group summaries."""
    result = BatchSyncResult.from_dict({
        "totalCount": 3,
        "successCount": 2,
        "failureCount": 1,
        "successRate": 66.66666666666666,
        "startTime": "2026-02-12T10:00:00",
        "endTime": "2026-02-12T10:00:02.123456789",
        "durationMs": 2123,
        "results": [
            {"groupId": 1, "groupName": "a", "syncStatus": "SUCCESS", "memberCount": 10, "active": True},
            {"groupId": 2, "groupName": "b", "syncStatus": "FAILED", "failureReason": "bot left group",
             "active": False},
            {"groupId": 3, "groupName": "c", "syncStatus": "SUCCESS"},
        ],
    })

    assert result.total_count == 3
    assert result.duration_ms == 2123
    assert result.end_time == datetime(2026, 2, 12, 10, 0, 2, 123456)
    assert result.is_all_success is False
    assert [summary.group_id for summary in result.failed_groups] == [2]
    assert result.failed_groups[0].failure_reason == "bot left group"
    assert result.to_dict()["success_rate_percent"] == 66.67


@pytest.mark.unit
def test_success_rate_computed_when_not_reported():
    """Test success rate falls back to the counts."""
    result = BatchSyncResult(total_count=4, success_count=3, failure_count=1)

    assert result.success_rate == 75.0


@pytest.mark.unit
def test_success_rate_zero_for_empty_batch():
    """Test an empty batch has a 0 success rate."""
    result = BatchSyncResult.from_dict({"totalCount": 0, "successCount": 0, "failureCount": 0})

    assert result.success_rate == 0.0
    assert result.is_all_success is True
    assert result.results == ()


@pytest.mark.unit
def test_batch_result_is_immutable():
    """Test results cannot be modified once built."""
    result = BatchSyncResult(total_count=1, success_count=1)

    with pytest.raises(AttributeError):
        result.total_count = 2


@pytest.mark.unit
def test_group_status_from_group_view():
    """Test the roster view with separate roster id and gateway group number."""
    status = GroupSyncStatus.from_dict({
        "id": 12,
        "groupId": "987654321",
        "groupName": "运维群",
        "memberCount": 120,
        "enabled": True,
        "active": True,
        "syncStatus": "FAILED",
        "lastSyncTime": "2026-02-12T10:00:00",
        "lastFailureTime": "2026-02-12T10:00:00Z",
        "failureReason": "连接超时",
        "consecutiveFailureCount": 4,
    })

    assert status.group_id == 12
    assert status.external_group_id == "987654321"
    assert status.is_failed is True
    assert status.failure_reason == "连接超时"
    assert status.last_failure_time == datetime(2026, 2, 12, 10, 0, 0, tzinfo=timezone.utc)
    assert status.needs_alert(3) is True


@pytest.mark.unit
def test_group_status_drops_reason_unless_failed():
    """Test failure reason is only kept for FAILED groups."""
    status = GroupSyncStatus.from_dict({
        "groupId": 5,
        "groupName": "g",
        "syncStatus": "SUCCESS",
        "failureReason": "stale",
        "consecutiveFailureCount": 0,
    })

    assert status.group_id == 5
    assert status.external_group_id is None
    assert status.is_success is True
    assert status.failure_reason is None
    assert status.last_sync_time is None
    assert status.needs_alert(3) is False


@pytest.mark.unit
def test_group_status_defaults_to_pending():
    """Test a group that was never synced."""
    status = GroupSyncStatus.from_dict({"groupId": 6, "groupName": "new"})

    assert status.sync_status == SyncStatus.PENDING
    assert status.consecutive_failure_count == 0


@pytest.mark.unit
def test_group_status_null_id_falls_back_to_group_id():
    """Test a null roster id is treated like a missing one."""
    status = GroupSyncStatus.from_dict({"id": None, "groupId": "123", "groupName": "ops"})

    assert status.group_id == 123
    assert status.external_group_id is None


@pytest.mark.unit
def test_group_status_rejects_unknown_status():
    """Test an unrecognized sync status is not silently accepted."""
    with pytest.raises(ValueError):
        GroupSyncStatus.from_dict({"id": 1, "syncStatus": "UNKNOWN"})


@pytest.mark.unit
def test_parse_timestamp_empty():
    """Test missing timestamps parse to None."""
    assert parse_timestamp(None) is None
    assert parse_timestamp("") is None
