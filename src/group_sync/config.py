"""
Environment-driven configuration for the group sync client
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from group_sync.exceptions import ConfigurationError

DEFAULT_SECRET_NAME = 'group-sync-credentials'
DEFAULT_REGION = 'us-east-1'
DEFAULT_TIMEOUT_SECONDS = 15.0
DEFAULT_HISTORY_LIMIT = 10
DEFAULT_RETRY_MIN_FAILURE_COUNT = 1


@dataclass
class SyncConfig:
    """
    Settings shared by the Lambda handler and the local runner
    """
    base_url: Optional[str]
    api_token: Optional[str]
    secret_name: str = DEFAULT_SECRET_NAME
    region_name: str = DEFAULT_REGION
    request_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    history_limit: int = DEFAULT_HISTORY_LIMIT
    retry_min_failure_count: int = DEFAULT_RETRY_MIN_FAILURE_COUNT
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'SyncConfig':
        """
        Read configuration from environment variables

        Raises:
            ConfigurationError: If a numeric setting is malformed or out of range
        """
        env = os.environ if environ is None else environ

        config = cls(
            base_url=env.get('SYNC_API_BASE_URL') or None,
            api_token=env.get('SYNC_API_TOKEN') or None,
            secret_name=env.get('SECRET_NAME', DEFAULT_SECRET_NAME),
            region_name=env.get('AWS_REGION', DEFAULT_REGION),
            request_timeout_seconds=_parse_number(
                env, 'SYNC_REQUEST_TIMEOUT_SECONDS', DEFAULT_TIMEOUT_SECONDS, float),
            history_limit=_parse_number(env, 'SYNC_HISTORY_LIMIT', DEFAULT_HISTORY_LIMIT, int),
            retry_min_failure_count=_parse_number(
                env, 'SYNC_RETRY_MIN_FAILURE_COUNT', DEFAULT_RETRY_MIN_FAILURE_COUNT, int),
            log_level=env.get('LOG_LEVEL', 'INFO').upper(),
        )

        if config.request_timeout_seconds <= 0:
            raise ConfigurationError("SYNC_REQUEST_TIMEOUT_SECONDS must be positive")
        if config.history_limit < 1:
            raise ConfigurationError("SYNC_HISTORY_LIMIT must be at least 1")
        if config.retry_min_failure_count < 1:
            raise ConfigurationError("SYNC_RETRY_MIN_FAILURE_COUNT must be at least 1")

        return config


def _parse_number(env: Mapping[str, str], name: str, default, cast):
    raw = env.get(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return cast(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got '{raw}'") from e
