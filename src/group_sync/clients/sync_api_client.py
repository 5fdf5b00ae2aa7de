"""
Group sync backend API client interface
"""

import time
import random
import uuid
from typing import Any, Callable, Dict, List, Optional, TypeVar
from abc import ABC, abstractmethod
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from aws_lambda_powertools import Logger, Metrics
from aws_lambda_powertools.metrics import MetricUnit

from group_sync.exceptions import GatewayError
from group_sync.models.group_sync_status import GroupSyncStatus
from group_sync.models.sync_result import BatchSyncResult

# Initialize structured logger and metrics
logger = Logger(child=True)
metrics = Metrics()

SYNC_API_PREFIX = "/api/groups/sync"
SUCCESS_CODE = 200

T = TypeVar('T')


def _retry_after_seconds(response: requests.Response) -> int:
    """Delay-seconds form of Retry-After; 0 when absent or given as an HTTP-date"""
    try:
        return max(int(response.headers.get('Retry-After', 0)), 0)
    except ValueError:
        return 0


class SyncAPIClientInterface(ABC):
    """
    Interface for the backend's group sync operations
    """

    @abstractmethod
    def trigger_sync(self) -> BatchSyncResult:
        """
        Sync every active group

        Returns:
            BatchSyncResult: Outcome of the batch
        """
        pass

    @abstractmethod
    def retry_failed_groups(self, min_failure_count: int = 1) -> BatchSyncResult:
        """
        Re-sync groups whose consecutive failure count is at least min_failure_count

        Args:
            min_failure_count: Lower bound on consecutive failures

        Returns:
            BatchSyncResult: Outcome of the batch
        """
        pass

    @abstractmethod
    def sync_group(self, group_id: int) -> GroupSyncStatus:
        """
        Sync a single group

        Args:
            group_id: Roster id of the group

        Returns:
            GroupSyncStatus: Status after the attempt
        """
        pass

    @abstractmethod
    def get_alert_groups(self) -> List[GroupSyncStatus]:
        """
        List groups whose consecutive failures reached the alert threshold

        Returns:
            list: Alert roster as filtered by the backend
        """
        pass

    @abstractmethod
    def reset_failure_count(self, group_id: int) -> None:
        """
        Clear the consecutive failure count and failure reason of a group

        Args:
            group_id: Roster id of the group
        """
        pass

    @abstractmethod
    def discover_new_groups(self, client_id: int) -> int:
        """
        Import groups the bot client belongs to that are missing from the roster

        Args:
            client_id: Bot client id

        Returns:
            int: Number of groups added
        """
        pass


class SyncAPIClient(SyncAPIClientInterface):
    """
    Sync backend API client with bearer authentication and envelope unwrapping

    Every response body is an envelope ``{"code", "message", "data", "timestamp",
    "traceId"}``; callers receive ``data`` only, and any code other than 200
    raises GatewayError.
    """

    def __init__(self, base_url: str, api_token: str, timeout_seconds: float = 15.0,
                 correlation_id: Optional[str] = None):
        """
        Initialize API client

        Args:
            base_url: Backend root URL, without the /api prefix
            api_token: Bearer token for the backend
            timeout_seconds: Per-request transport timeout
            correlation_id: Request correlation ID for tracing
        """
        self.base_url = base_url.rstrip('/')
        self.timeout_seconds = timeout_seconds
        self.correlation_id = correlation_id or str(uuid.uuid4())

        self.session = requests.Session()

        # Only idempotent reads are retried at the transport level
        retry_strategy = Retry(
            total=2,
            backoff_factor=0.5,
            status_forcelist=[502, 503, 504],
            allowed_methods=["GET"]
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

        self.session.headers.update({
            'Authorization': f'Bearer {api_token.strip()}',
            'Content-Type': 'application/json;charset=UTF-8',
            'User-Agent': 'GroupSyncClient/1.0'
        })

    def _make_request(self, method: str, endpoint: str, params: Dict = None, max_retries: int = 0) -> Any:
        """
        Make HTTP request and unwrap the response envelope

        Rate-limited and timed-out requests are retried with exponential backoff
        up to max_retries times; batch operations pass 0 so a trigger is never
        sent twice.

        Args:
            method: HTTP method (GET, POST)
            endpoint: Path below the sync API prefix
            params: Query parameters
            max_retries: Maximum number of retry attempts

        Returns:
            The envelope's ``data`` payload

        Raises:
            GatewayError: If the request fails or the backend reports a failure
        """
        path = f"{SYNC_API_PREFIX}{endpoint}"
        url = f"{self.base_url}{path}"
        request_start_time = time.time()

        for attempt in range(max_retries + 1):
            attempt_start_time = time.time()

            try:
                logger.debug("Making sync API request", extra={
                    "correlation_id": self.correlation_id,
                    "method": method,
                    "endpoint": path,
                    "attempt": attempt + 1,
                    "max_retries": max_retries + 1,
                    "params": params
                })

                response = self.session.request(method, url, params=params, timeout=self.timeout_seconds)
                attempt_duration = time.time() - attempt_start_time

                if response.status_code == 429:
                    if attempt < max_retries:
                        delay = _retry_after_seconds(response) or (2 ** attempt) + random.uniform(0, 1)

                        logger.warning("Rate limited by sync API", extra={
                            "correlation_id": self.correlation_id,
                            "endpoint": path,
                            "attempt": attempt + 1,
                            "retry_after_seconds": delay,
                            "attempt_duration_seconds": round(attempt_duration, 3)
                        })

                        metrics.add_metric(name="SyncAPIRateLimits", unit=MetricUnit.Count, value=1)
                        time.sleep(delay)
                        continue
                    metrics.add_metric(name="SyncAPIRateLimitFailures", unit=MetricUnit.Count, value=1)
                    raise self._error_from_response(response, path, "Too many requests")

                if response.status_code == 401:
                    metrics.add_metric(name="SyncAPIAuthErrors", unit=MetricUnit.Count, value=1)
                    raise self._error_from_response(response, path, "Authentication failed - invalid API token")
                elif response.status_code == 403:
                    metrics.add_metric(name="SyncAPIPermissionErrors", unit=MetricUnit.Count, value=1)
                    raise self._error_from_response(response, path, "Access forbidden - admin role required")
                elif response.status_code == 404:
                    metrics.add_metric(name="SyncAPINotFoundErrors", unit=MetricUnit.Count, value=1)
                    raise self._error_from_response(response, path, f"Resource not found: {path}")
                elif not response.ok:
                    metrics.add_metric(name="SyncAPIHTTPErrors", unit=MetricUnit.Count, value=1)
                    raise self._error_from_response(response, path, f"HTTP {response.status_code}")

                total_duration = time.time() - request_start_time

                logger.debug("Sync API request successful", extra={
                    "correlation_id": self.correlation_id,
                    "endpoint": path,
                    "status_code": response.status_code,
                    "attempt": attempt + 1,
                    "total_duration_seconds": round(total_duration, 3),
                    "response_size_bytes": len(response.content)
                })

                metrics.add_metric(name="SyncAPIRequests", unit=MetricUnit.Count, value=1)
                metrics.add_metric(name="SyncAPILatency", unit=MetricUnit.Seconds, value=total_duration)

                return self._unwrap(response, path)

            except requests.exceptions.Timeout as e:
                if attempt < max_retries:
                    delay = (2 ** attempt) + random.uniform(0, 1)
                    logger.warning("Sync API request timeout", extra={
                        "correlation_id": self.correlation_id,
                        "endpoint": path,
                        "attempt": attempt + 1,
                        "retry_delay_seconds": delay
                    })
                    metrics.add_metric(name="SyncAPITimeouts", unit=MetricUnit.Count, value=1)
                    time.sleep(delay)
                    continue
                logger.error("Sync API request timeout", extra={
                    "correlation_id": self.correlation_id,
                    "endpoint": path,
                    "max_retries": max_retries,
                    "total_duration_seconds": round(time.time() - request_start_time, 3)
                })
                metrics.add_metric(name="SyncAPITimeoutFailures", unit=MetricUnit.Count, value=1)
                raise GatewayError(f"Request timeout: {path}") from e

            except requests.exceptions.RequestException as e:
                logger.error("Sync API request exception", extra={
                    "correlation_id": self.correlation_id,
                    "endpoint": path,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                    "attempt_duration_seconds": round(time.time() - attempt_start_time, 3)
                })
                metrics.add_metric(name="SyncAPIRequestErrors", unit=MetricUnit.Count, value=1)
                raise GatewayError(f"Request failed: {e}") from e

        # Unreachable: the final attempt either returns or raises
        raise GatewayError("Maximum retries exceeded")

    def _unwrap(self, response: requests.Response, path: str) -> Any:
        """
        Return the envelope payload of a 2xx response

        Raises:
            GatewayError: If the body is not an envelope or carries a failure code
        """
        if not response.content:
            return None

        try:
            body = response.json()
        except ValueError as e:
            logger.error("Invalid JSON response from sync API", extra={
                "correlation_id": self.correlation_id,
                "endpoint": path,
                "error": str(e),
                "response_text": response.text[:500]
            })
            metrics.add_metric(name="SyncAPIJSONErrors", unit=MetricUnit.Count, value=1)
            raise GatewayError(f"Invalid JSON response: {e}", status_code=response.status_code) from e

        if not isinstance(body, dict) or 'code' not in body:
            metrics.add_metric(name="SyncAPIEnvelopeErrors", unit=MetricUnit.Count, value=1)
            raise GatewayError(f"Malformed response envelope from {path}", status_code=response.status_code)

        if body['code'] != SUCCESS_CODE:
            logger.warning("Sync API reported failure", extra={
                "correlation_id": self.correlation_id,
                "endpoint": path,
                "code": body['code'],
                "backend_message": body.get('message'),
                "trace_id": body.get('traceId')
            })
            metrics.add_metric(name="SyncAPIBusinessErrors", unit=MetricUnit.Count, value=1)
            raise GatewayError(
                body.get('message') or "Operation failed",
                status_code=response.status_code,
                code=body['code'],
                trace_id=body.get('traceId'),
                payload=body.get('data'),
            )

        return body.get('data')

    def _error_from_response(self, response: requests.Response, path: str, default_message: str) -> GatewayError:
        """Build a GatewayError for a non-2xx response, preferring the envelope message"""
        body = None
        try:
            body = response.json()
        except ValueError:
            pass

        if not isinstance(body, dict):
            body = {}

        logger.error("Sync API HTTP error", extra={
            "correlation_id": self.correlation_id,
            "endpoint": path,
            "status_code": response.status_code,
            "response_text": response.text[:500]
        })

        return GatewayError(
            body.get('message') or default_message,
            status_code=response.status_code,
            code=body.get('code'),
            trace_id=body.get('traceId'),
            payload=body.get('data'),
        )

    def _parse(self, path: str, parser: Callable[[Any], T], data: Any) -> T:
        """
        Convert an unwrapped payload into a model

        Raises:
            GatewayError: If the payload is missing fields or has the wrong shape
        """
        try:
            return parser(data)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.error("Malformed payload from sync API", extra={
                "correlation_id": self.correlation_id,
                "endpoint": f"{SYNC_API_PREFIX}{path}",
                "error_type": type(e).__name__,
                "error_message": str(e)
            })
            metrics.add_metric(name="SyncAPIPayloadErrors", unit=MetricUnit.Count, value=1)
            raise GatewayError(f"Malformed payload from {SYNC_API_PREFIX}{path}: {e!r}", payload=data) from e

    def trigger_sync(self) -> BatchSyncResult:
        logger.info("Triggering sync of all active groups")
        data = self._make_request("POST", "/trigger")
        return self._parse("/trigger", BatchSyncResult.from_dict, data or {})

    def retry_failed_groups(self, min_failure_count: int = 1) -> BatchSyncResult:
        logger.info(f"Retrying groups with at least {min_failure_count} consecutive failures")
        data = self._make_request("POST", "/retry", params={'minFailureCount': min_failure_count})
        return self._parse("/retry", BatchSyncResult.from_dict, data or {})

    def sync_group(self, group_id: int) -> GroupSyncStatus:
        """
        Sync a single group

        A failed sync is reported by the backend with a failure code and the
        group's status as data; the raised GatewayError carries that status
        as its payload.
        """
        logger.info(f"Syncing group {group_id}")
        try:
            data = self._make_request("POST", f"/{group_id}")
        except GatewayError as e:
            if isinstance(e.payload, dict):
                try:
                    e.payload = GroupSyncStatus.from_dict(e.payload)
                except (KeyError, TypeError, ValueError, AttributeError):
                    # Unparseable status stays as the raw dict
                    logger.warning(f"Unparseable failure status for group {group_id}", extra={
                        "correlation_id": self.correlation_id,
                        "group_id": group_id
                    })
            raise
        if not isinstance(data, dict):
            raise GatewayError(f"Missing group status in response for group {group_id}")
        return self._parse(f"/{group_id}", GroupSyncStatus.from_dict, data)

    def get_alert_groups(self) -> List[GroupSyncStatus]:
        data = self._make_request("GET", "/alert", max_retries=2)
        alert_groups = self._parse(
            "/alert", lambda items: [GroupSyncStatus.from_dict(item) for item in items], data or [])
        logger.debug(f"Retrieved {len(alert_groups)} alert groups")
        return alert_groups

    def reset_failure_count(self, group_id: int) -> None:
        logger.info(f"Resetting failure count for group {group_id}")
        self._make_request("POST", f"/{group_id}/reset")

    def discover_new_groups(self, client_id: int) -> int:
        logger.info(f"Discovering new groups for client {client_id}")
        data = self._make_request("POST", f"/discover/{client_id}")
        return self._parse(f"/discover/{client_id}", int, data or 0)
