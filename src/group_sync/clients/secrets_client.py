"""
AWS Secrets Manager client interface
"""

import json
import logging
import os
from typing import Optional, Tuple
from abc import ABC, abstractmethod

import boto3
from botocore.exceptions import ClientError, NoCredentialsError, BotoCoreError

from group_sync.exceptions import SecretsManagerError


logger = logging.getLogger(__name__)

_CLIENT_ERROR_MESSAGES = {
    'ResourceNotFoundException': "Secret '{secret}' not found",
    'InvalidRequestException': "Invalid request for secret '{secret}'",
    'InvalidParameterException': "Invalid parameter for secret '{secret}'",
    'DecryptionFailureException': "Failed to decrypt secret",
    'InternalServiceErrorException': "Secrets Manager service error",
    'UnauthorizedOperation': "Access denied to Secrets Manager",
    'AccessDenied': "Access denied to Secrets Manager",
    'AccessDeniedException': "Access denied to Secrets Manager",
}


class SecretsClientInterface(ABC):
    """
    Interface for AWS Secrets Manager operations
    """

    @abstractmethod
    def get_api_credentials(self) -> Tuple[str, Optional[str]]:
        """
        Retrieve the sync backend API token and optional base URL override

        Returns:
            tuple: (api_token, base_url or None)

        Raises:
            SecretsManagerError: If credentials cannot be retrieved
        """
        pass


class SecretsClient(SecretsClientInterface):
    """
    AWS Secrets Manager client implementation
    """

    def __init__(self, secret_name: str, region_name: str = 'us-east-1'):
        """
        Initialize Secrets Manager client

        Args:
            secret_name: Name of the secret holding the backend API token
            region_name: AWS region name
        """
        self.secret_name = secret_name
        self.region_name = region_name
        self._client = None

    @property
    def client(self):
        """Lazy initialization of boto3 client"""
        if self._client is None:
            try:
                self._client = boto3.client('secretsmanager', region_name=self.region_name)
            except NoCredentialsError as e:
                logger.error("AWS credentials not found")
                raise SecretsManagerError("AWS credentials not configured") from e
            except BotoCoreError as e:
                logger.error("Failed to initialize Secrets Manager client")
                raise SecretsManagerError(f"Failed to initialize Secrets Manager client: {str(e)}") from e
        return self._client

    def get_api_credentials(self) -> Tuple[str, Optional[str]]:
        """
        Retrieve the API token from the environment or Secrets Manager

        For local development, ``SYNC_API_TOKEN`` short-circuits the lookup.
        The secret is a JSON object with a required ``api_token`` key and an
        optional ``base_url`` key.

        Returns:
            tuple: (api_token, base_url or None)

        Raises:
            SecretsManagerError: If credentials cannot be retrieved
        """
        env_token = os.environ.get('SYNC_API_TOKEN')
        if env_token:
            logger.info("Using sync API token from environment variables")
            return env_token, None

        try:
            logger.info(f"Retrieving secret: {self.secret_name}")

            response = self.client.get_secret_value(SecretId=self.secret_name)
            secret_string = response.get('SecretString')

            if not secret_string:
                raise SecretsManagerError("Secret value is empty")

            try:
                secret_data = json.loads(secret_string)
            except json.JSONDecodeError as e:
                logger.error("Failed to parse secret JSON")
                raise SecretsManagerError("Secret is not valid JSON") from e

            if not isinstance(secret_data, dict):
                raise SecretsManagerError("Secret must be a JSON object")

            api_token = secret_data.get('api_token')
            if not api_token:
                raise SecretsManagerError("Missing 'api_token' in secret")

            base_url = secret_data.get('base_url') or None

            logger.info("Successfully retrieved sync API credentials")
            return api_token, base_url

        except ClientError as e:
            error_code = e.response['Error']['Code']
            error_message = e.response['Error']['Message']

            template = _CLIENT_ERROR_MESSAGES.get(error_code)
            if template:
                message = template.format(secret=self.secret_name)
                logger.error(message)
                raise SecretsManagerError(message) from e

            logger.error(f"Unexpected Secrets Manager error: {error_code} - {error_message}")
            raise SecretsManagerError(f"Secrets Manager error: {error_message}") from e

        except BotoCoreError as e:
            logger.error(f"Boto3 core error: {str(e)}")
            raise SecretsManagerError(f"AWS SDK error: {str(e)}") from e
