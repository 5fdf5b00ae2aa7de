# Data models for group sync payloads

from group_sync.models.group_sync_status import GroupSyncStatus, SyncStatus
from group_sync.models.sync_result import BatchSyncResult, GroupSyncSummary

__all__ = ['BatchSyncResult', 'GroupSyncStatus', 'GroupSyncSummary', 'SyncStatus']
