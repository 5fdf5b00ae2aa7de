"""
Lambda handler unit tests
"""
import importlib

import pytest
from unittest.mock import Mock, create_autospec, patch

from group_sync import lambda_function
from group_sync.clients.sync_api_client import SyncAPIClient, SyncAPIClientInterface
from group_sync.config import SyncConfig
from group_sync.exceptions import GatewayError, SecretsManagerError
from group_sync.models.group_sync_status import GroupSyncStatus, SyncStatus
from group_sync.models.sync_result import BatchSyncResult
from group_sync.services.sync_orchestrator import SyncOrchestrator


@pytest.fixture
def context():
    return Mock(aws_request_id="req-123")


@pytest.fixture
def api_client():
    client = create_autospec(SyncAPIClientInterface, instance=True)
    client.get_alert_groups.return_value = []
    return client


@pytest.fixture
def orchestrator(api_client):
    orchestrator = SyncOrchestrator(api_client=api_client)
    with patch.object(lambda_function, "get_orchestrator", return_value=orchestrator):
        yield orchestrator


def _batch(total, success):
    return BatchSyncResult(total_count=total, success_count=success, failure_count=total - success)


@pytest.mark.unit
def test_sync_action_reports_alerts(orchestrator, api_client, context):
    """Test the default action syncs and includes the alert summary."""
    api_client.trigger_sync.return_value = _batch(10, 8)
    api_client.get_alert_groups.return_value = [
        GroupSyncStatus(group_id=1, group_name="a", sync_status=SyncStatus.FAILED,
                        consecutive_failure_count=3, failure_reason="timeout"),
    ]

    result = lambda_function.lambda_handler({}, context)

    assert result["status"] == "success"
    assert result["correlation_id"] == "req-123"
    assert result["action"] == "sync"
    assert result["sync_result"]["failure_count"] == 2
    assert result["alerts"]["has_alerts"] is True
    assert result["alerts"]["alert_count"] == 1
    api_client.trigger_sync.assert_called_once_with()


@pytest.mark.unit
def test_retry_action_uses_event_threshold(orchestrator, api_client, context):
    """Test retry reads min_failure_count from the event."""
    api_client.retry_failed_groups.return_value = _batch(0, 0)

    result = lambda_function.lambda_handler({"action": "retry", "min_failure_count": 3}, context)

    assert result["status"] == "success"
    assert result["min_failure_count"] == 3
    api_client.retry_failed_groups.assert_called_once_with(3)


@pytest.mark.unit
def test_retry_action_defaults_to_config(orchestrator, api_client, context, monkeypatch):
    """Test retry falls back to the configured threshold."""
    monkeypatch.setenv("SYNC_RETRY_MIN_FAILURE_COUNT", "2")
    api_client.retry_failed_groups.return_value = _batch(2, 2)

    result = lambda_function.lambda_handler({"action": "retry"}, context)

    assert result["min_failure_count"] == 2
    api_client.retry_failed_groups.assert_called_once_with(2)


@pytest.mark.unit
@pytest.mark.parametrize("min_failure_count", [0, -1, "three"])
def test_retry_action_rejects_invalid_threshold(orchestrator, api_client, context, min_failure_count):
    """Test an explicit non-positive or non-numeric threshold is not replaced by the default."""
    result = lambda_function.lambda_handler({"action": "retry", "min_failure_count": min_failure_count}, context)

    assert result["status"] == "error"
    assert result["error_type"] == "ConfigurationError"
    api_client.retry_failed_groups.assert_not_called()


@pytest.mark.unit
def test_invalid_environment_reported(context, monkeypatch):
    """Test a malformed setting becomes an error summary instead of failing the import."""
    monkeypatch.setenv("SYNC_HISTORY_LIMIT", "abc")
    monkeypatch.setenv("LOG_LEVEL", "verbose")

    importlib.reload(lambda_function)
    with patch.object(lambda_function, "get_orchestrator") as mock_get_orchestrator:
        result = lambda_function.lambda_handler({"action": "sync"}, context)

    assert result["status"] == "error"
    assert result["error_type"] == "ConfigurationError"
    assert "SYNC_HISTORY_LIMIT" in result["error_message"]
    mock_get_orchestrator.assert_not_called()


@pytest.mark.unit
def test_discover_action(orchestrator, api_client, context):
    """Test discover returns the new group count."""
    api_client.discover_new_groups.return_value = 5

    result = lambda_function.lambda_handler({"action": "discover", "client_id": 42}, context)

    assert result["status"] == "success"
    assert result["new_group_count"] == 5
    api_client.discover_new_groups.assert_called_once_with(42)


@pytest.mark.unit
def test_discover_requires_client_id(orchestrator, context):
    """Test discover without client_id is a configuration error."""
    result = lambda_function.lambda_handler({"action": "discover"}, context)

    assert result["status"] == "error"
    assert result["error_type"] == "ConfigurationError"


@pytest.mark.unit
def test_alerts_action(orchestrator, api_client, context):
    """Test the alerts action refreshes the roster."""
    result = lambda_function.lambda_handler({"action": "alerts"}, context)

    assert result["status"] == "success"
    assert result["alerts"]["has_alerts"] is False
    api_client.get_alert_groups.assert_called_once_with()


@pytest.mark.unit
def test_unknown_action(orchestrator, context):
    """Test an unknown action is rejected."""
    result = lambda_function.lambda_handler({"action": "purge"}, context)

    assert result["status"] == "error"
    assert "purge" in result["error_message"]


@pytest.mark.unit
def test_gateway_error_reported(orchestrator, api_client, context):
    """Test backend failures become an error summary."""
    api_client.trigger_sync.side_effect = GatewayError("HTTP 503", status_code=503)

    result = lambda_function.lambda_handler({"action": "sync"}, context)

    assert result["status"] == "error"
    assert result["error_type"] == "GatewayError"
    assert orchestrator.sync_in_progress is False


@pytest.mark.unit
def test_secrets_error_reported(context):
    """Test credential failures become an error summary."""
    with patch.object(lambda_function, "get_orchestrator", side_effect=SecretsManagerError("denied")):
        result = lambda_function.lambda_handler({}, context)

    assert result["error_type"] == "SecretsManagerError"


@pytest.mark.unit
def test_get_orchestrator_builds_once(monkeypatch):
    """Test the orchestrator is cached across invocations."""
    monkeypatch.setattr(lambda_function, "_orchestrator", None)
    config = SyncConfig(base_url="http://backend.test", api_token="tok", history_limit=4)

    first = lambda_function.get_orchestrator(config, "req-1")
    second = lambda_function.get_orchestrator(config, "req-2")

    assert first is second
    assert isinstance(first.api_client, SyncAPIClient)
    assert first.api_client.base_url == "http://backend.test"
    assert second.correlation_id == "req-2"
    assert second.api_client.correlation_id == "req-2"
    monkeypatch.setattr(lambda_function, "_orchestrator", None)


@pytest.mark.unit
@patch("group_sync.lambda_function.SecretsClient")
def test_get_orchestrator_uses_secret(mock_secrets_client, monkeypatch):
    """Test the token and base URL come from Secrets Manager when not configured."""
    monkeypatch.setattr(lambda_function, "_orchestrator", None)
    mock_secrets_client.return_value.get_api_credentials.return_value = ("secret-tok", "https://router.example.com")
    config = SyncConfig(base_url=None, api_token=None)

    orchestrator = lambda_function.get_orchestrator(config, "req-1")

    assert orchestrator.api_client.base_url == "https://router.example.com"
    assert orchestrator.api_client.session.headers["Authorization"] == "Bearer secret-tok"
    monkeypatch.setattr(lambda_function, "_orchestrator", None)


@pytest.mark.unit
@patch("group_sync.lambda_function.SecretsClient")
def test_get_orchestrator_requires_base_url(mock_secrets_client, monkeypatch):
    """Test a missing base URL is a configuration error."""
    monkeypatch.setattr(lambda_function, "_orchestrator", None)
    mock_secrets_client.return_value.get_api_credentials.return_value = ("secret-tok", None)

    with pytest.raises(lambda_function.ConfigurationError):
        lambda_function.get_orchestrator(SyncConfig(base_url=None, api_token=None), "req-1")
