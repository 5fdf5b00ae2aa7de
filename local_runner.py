#!/usr/bin/env python3
"""
Local runner for the group sync Lambda function

This script allows you to run the lambda_handler locally for development and testing.

Usage:
    python local_runner.py [action] [client_id]

    action defaults to "sync"; one of sync, retry, discover, alerts.
    client_id is required for discover.

Environment Variables:
    # Backend configuration (required)
    SYNC_API_BASE_URL=http://localhost:8080
    SYNC_API_TOKEN=your_admin_jwt_here

    # AWS configuration (only used when SYNC_API_TOKEN is not set)
    AWS_REGION=us-east-1
    SECRET_NAME=group-sync-credentials

    # Tuning (optional)
    SYNC_REQUEST_TIMEOUT_SECONDS=15
    SYNC_RETRY_MIN_FAILURE_COUNT=1
    LOG_LEVEL=DEBUG

Example:
    export SYNC_API_BASE_URL="http://localhost:8080"
    export SYNC_API_TOKEN="eyJhbGciOi..."
    python local_runner.py retry
"""

import os
import sys
import json


class MockLambdaContext:
    """
    Mock Lambda context for local testing
    """
    def __init__(self):
        self.function_name = "group-sync-function-local"
        self.function_version = "$LATEST"
        self.invoked_function_arn = "arn:aws:lambda:local:123456789012:function:group-sync-function-local"
        self.memory_limit_in_mb = "256"
        self.remaining_time_in_millis = 300000
        self.log_group_name = "/aws/lambda/group-sync-function-local"
        self.log_stream_name = "local"
        self.aws_request_id = "local-test-request-id"

    def get_remaining_time_in_millis(self):
        return self.remaining_time_in_millis


def build_event(argv):
    """
    Build the handler event from command line arguments
    """
    event = {"action": argv[1] if len(argv) > 1 else "sync"}
    if len(argv) > 2:
        event["client_id"] = int(argv[2])
    return event


def validate_environment():
    """
    Validate that required environment variables are set
    """
    if not os.environ.get('SYNC_API_BASE_URL'):
        print("❌ Missing required environment variable: SYNC_API_BASE_URL")
        print("See the docstring at the top of this file for examples.")
        return False
    return True


def print_configuration():
    print("🔧 Configuration:")
    print(f"   Backend: {os.environ.get('SYNC_API_BASE_URL', 'Not set')}")
    print(f"   Log Level: {os.environ.get('LOG_LEVEL', 'INFO')}")
    if os.environ.get('SYNC_API_TOKEN'):
        print("   API Token: Environment variable")
    else:
        print(f"   API Token: AWS Secrets Manager ({os.environ.get('SECRET_NAME', 'group-sync-credentials')})")
    print()


def main():
    """
    Main function to run the Lambda handler locally
    """
    print("🚀 Starting Group Sync Local Runner")
    print("=" * 50)

    os.environ.setdefault('POWERTOOLS_SERVICE_NAME', 'group-sync-local')

    if not validate_environment():
        sys.exit(1)

    print_configuration()

    # Imported late so configuration is read after the checks above
    from group_sync.lambda_function import lambda_handler

    try:
        event = build_event(sys.argv)
    except ValueError:
        print("❌ client_id must be an integer")
        sys.exit(1)

    print(f"📋 Invoking lambda_handler with {event}...")
    print("-" * 30)

    try:
        result = lambda_handler(event, MockLambdaContext())
    except KeyboardInterrupt:
        print("\n⚠️  Execution interrupted by user")
        sys.exit(1)

    print("-" * 30)
    print("📊 Result:")
    print(json.dumps(result, indent=2, default=str))

    if result.get("status") != "success":
        sys.exit(1)


if __name__ == "__main__":
    main()
