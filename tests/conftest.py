import os


os.environ.setdefault("POWERTOOLS_SERVICE_NAME", "group-sync-test")
os.environ.setdefault("POWERTOOLS_METRICS_NAMESPACE", "GroupSyncTest")
os.environ.setdefault("SYNC_API_BASE_URL", "http://backend.test")
os.environ.setdefault("SYNC_API_TOKEN", "test-token")
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")
