"""
Custom exceptions for the group sync client
"""

from typing import Any, Optional


class GroupSyncError(Exception):
    """Base exception for group sync operations"""
    pass


class ConcurrentSyncError(GroupSyncError):
    """A batch sync was requested while another one is still running"""

    def __init__(self, message: str = "Sync already in progress"):
        super().__init__(message)


class GatewayError(GroupSyncError):
    """
    Failure reported by, or while talking to, the sync backend

    Covers transport errors, non-success HTTP statuses, invalid JSON and
    response envelopes whose business code is not a success.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[int] = None,
        trace_id: Optional[str] = None,
        payload: Any = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.trace_id = trace_id
        self.payload = payload


class SecretsManagerError(GroupSyncError):
    """Secrets Manager access errors"""
    pass


class ConfigurationError(GroupSyncError):
    """Configuration and setup errors"""
    pass
