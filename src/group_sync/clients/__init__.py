# Client classes for external services
# Import directly from individual modules as needed

__all__ = [
    'SecretsClient', 'SecretsClientInterface',
    'SyncAPIClient', 'SyncAPIClientInterface'
]
