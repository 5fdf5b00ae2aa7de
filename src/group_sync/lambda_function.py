"""
Scheduled Lambda handler for group synchronization
"""

import logging
import os
import time
from typing import Any, Dict, Optional

from aws_lambda_powertools import Logger, Metrics
from aws_lambda_powertools.utilities.typing import LambdaContext
from aws_lambda_powertools.metrics import MetricUnit

from group_sync.clients.secrets_client import SecretsClient
from group_sync.clients.sync_api_client import SyncAPIClient
from group_sync.config import SyncConfig
from group_sync.services.alert_tracker import AlertTracker
from group_sync.services.sync_orchestrator import SyncOrchestrator
from group_sync.exceptions import (
    ConcurrentSyncError, ConfigurationError, GatewayError, GroupSyncError, SecretsManagerError
)

# Initialize structured logger and metrics
logger = Logger()
metrics = Metrics(namespace="GroupSync")

# Configure standard logging for other modules
logging.basicConfig(
    level=getattr(logging, os.environ.get('LOG_LEVEL', 'INFO').upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

# Reused across warm invocations so the batch history outlives a single run
_orchestrator: Optional[SyncOrchestrator] = None


def get_orchestrator(config: SyncConfig, correlation_id: str) -> SyncOrchestrator:
    """
    Return the cached orchestrator, building it on first use

    The API token comes from SYNC_API_TOKEN or, failing that, from Secrets
    Manager, which may also supply the base URL.

    Raises:
        ConfigurationError: If no base URL is configured
        SecretsManagerError: If the token cannot be retrieved
    """
    global _orchestrator

    if _orchestrator is None:
        api_token = config.api_token
        base_url = config.base_url
        if not api_token:
            secrets_client = SecretsClient(secret_name=config.secret_name, region_name=config.region_name)
            api_token, secret_base_url = secrets_client.get_api_credentials()
            base_url = base_url or secret_base_url
        if not base_url:
            raise ConfigurationError("SYNC_API_BASE_URL environment variable is required")

        api_client = SyncAPIClient(
            base_url=base_url,
            api_token=api_token,
            timeout_seconds=config.request_timeout_seconds,
            correlation_id=correlation_id
        )
        _orchestrator = SyncOrchestrator(
            api_client=api_client,
            history_limit=config.history_limit,
            correlation_id=correlation_id
        )
        logger.info("Sync orchestrator initialized", extra={
            "correlation_id": correlation_id,
            "base_url": base_url,
            "history_limit": config.history_limit
        })
    else:
        _orchestrator.correlation_id = correlation_id
        _orchestrator.api_client.correlation_id = correlation_id

    return _orchestrator


def _run_sync(orchestrator: SyncOrchestrator, tracker: AlertTracker, config: SyncConfig,
             event: Dict[str, Any]) -> Dict[str, Any]:
    result = orchestrator.trigger_sync()

    if result.failure_count > 0 and tracker.has_alerts:
        logger.warning("Alert groups found after sync", extra={"alert_count": len(tracker.alert_groups)})
        for group in tracker.alert_groups:
            logger.warning("Alert group", extra={
                "group_id": group.group_id,
                "group_name": group.group_name,
                "consecutive_failure_count": group.consecutive_failure_count,
                "failure_reason": group.failure_reason
            })

    return {"sync_result": result.to_dict()}


def _run_retry(orchestrator: SyncOrchestrator, tracker: AlertTracker, config: SyncConfig,
              event: Dict[str, Any]) -> Dict[str, Any]:
    raw_min_failure_count = event.get('min_failure_count')
    if raw_min_failure_count is None:
        min_failure_count = config.retry_min_failure_count
    else:
        try:
            min_failure_count = int(raw_min_failure_count)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"min_failure_count must be a number, got '{raw_min_failure_count}'") from e
    if min_failure_count < 1:
        raise ConfigurationError("min_failure_count must be at least 1")

    result = orchestrator.retry_failed_groups(min_failure_count)

    if result.total_count == 0:
        logger.info("No failed groups needed a retry")
    elif result.failure_count > 0:
        logger.warning("Groups still failing after retry", extra={"failure_count": result.failure_count})

    return {"min_failure_count": min_failure_count, "sync_result": result.to_dict()}


def _run_discover(orchestrator: SyncOrchestrator, tracker: AlertTracker, config: SyncConfig,
                 event: Dict[str, Any]) -> Dict[str, Any]:
    client_id = event.get('client_id')
    if client_id is None:
        raise ConfigurationError("client_id is required for the discover action")

    new_group_count = orchestrator.discover_new_groups(int(client_id))
    return {"client_id": int(client_id), "new_group_count": new_group_count}


def _run_alerts(orchestrator: SyncOrchestrator, tracker: AlertTracker, config: SyncConfig,
               event: Dict[str, Any]) -> Dict[str, Any]:
    orchestrator.initialize()
    return {}


ACTIONS = {
    'sync': _run_sync,
    'retry': _run_retry,
    'discover': _run_discover,
    'alerts': _run_alerts,
}


def _error_response(error_type: str, error_msg: str, correlation_id: str, execution_start_time: float,
                     metric_name: str) -> Dict[str, Any]:
    execution_time = time.time() - execution_start_time

    metrics.add_metric(name="LambdaExecutionErrors", unit=MetricUnit.Count, value=1)
    metrics.add_metric(name=metric_name, unit=MetricUnit.Count, value=1)
    metrics.add_metric(name="LambdaExecutionDuration", unit=MetricUnit.Seconds, value=execution_time)

    return {
        "status": "error",
        "correlation_id": correlation_id,
        "error_type": error_type,
        "error_message": error_msg,
        "execution_time_seconds": round(execution_time, 2)
    }


@metrics.log_metrics
def lambda_handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    """
    Main Lambda handler for group synchronization

    Dispatches on ``event["action"]``:
    - ``sync`` (default): sync all active groups and report alert groups
    - ``retry``: retry failed groups, ``min_failure_count`` from the event or config
    - ``discover``: import new groups for ``client_id``
    - ``alerts``: refresh and report the alert roster

    Args:
        event: EventBridge event payload
        context: Lambda runtime context

    Returns:
        dict: Execution summary with the action result and alert summary
    """
    execution_start_time = time.time()
    correlation_id = context.aws_request_id
    event = event or {}
    action = event.get('action', 'sync')

    logger.info("Starting group sync task", extra={
        "correlation_id": correlation_id,
        "action": action,
        "event": event
    })

    try:
        handler = ACTIONS.get(action)
        if handler is None:
            raise ConfigurationError(f"Unknown action '{action}'")

        config = SyncConfig.from_env()
        orchestrator = get_orchestrator(config, correlation_id)
        tracker = AlertTracker(orchestrator)

        action_result = handler(orchestrator, tracker, config, event)

        total_execution_time = time.time() - execution_start_time

        execution_summary = {
            "status": "success",
            "correlation_id": correlation_id,
            "action": action,
            "execution_time_seconds": round(total_execution_time, 2),
            **action_result,
            "alerts": tracker.summary()
        }

        metrics.add_metric(name="LambdaExecutionDuration", unit=MetricUnit.Seconds, value=total_execution_time)
        metrics.add_metric(name="LambdaExecutionSuccess", unit=MetricUnit.Count, value=1)

        logger.info("Group sync task completed", extra={
            "correlation_id": correlation_id,
            "execution_summary": execution_summary
        })

        return execution_summary

    except ConfigurationError as e:
        logger.error(f"Configuration error: {str(e)}", extra={"correlation_id": correlation_id})
        return _error_response("ConfigurationError", f"Configuration error: {str(e)}", correlation_id,
                               execution_start_time, "ConfigurationErrors")

    except SecretsManagerError as e:
        logger.error(f"Secrets Manager error: {str(e)}", extra={"correlation_id": correlation_id})
        return _error_response("SecretsManagerError", f"Secrets Manager error: {str(e)}", correlation_id,
                               execution_start_time, "SecretsManagerErrors")

    except ConcurrentSyncError as e:
        logger.warning(f"Sync skipped: {str(e)}", extra={"correlation_id": correlation_id})
        return _error_response("ConcurrentSyncError", f"Sync skipped: {str(e)}", correlation_id,
                               execution_start_time, "ConcurrentSyncErrors")

    except GatewayError as e:
        logger.error(f"Sync API error: {str(e)}", extra={
            "correlation_id": correlation_id,
            "status_code": e.status_code,
            "code": e.code,
            "trace_id": e.trace_id
        })
        return _error_response("GatewayError", f"Sync API error: {str(e)}", correlation_id,
                               execution_start_time, "GatewayErrors")

    except GroupSyncError as e:
        logger.error(f"Sync error: {str(e)}", extra={"correlation_id": correlation_id})
        return _error_response("GroupSyncError", f"Sync error: {str(e)}", correlation_id,
                               execution_start_time, "SyncErrors")

    except Exception as e:
        logger.error(f"Unexpected error: {str(e)}", extra={
            "correlation_id": correlation_id,
            "exception": str(e)
        }, exc_info=True)
        return _error_response("UnexpectedError", f"Unexpected error: {str(e)}", correlation_id,
                               execution_start_time, "UnexpectedErrors")
