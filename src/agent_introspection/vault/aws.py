"""
AWS Secrets Manager provider
"""
from __future__ import annotations

import json
import threading
from typing import Any, Dict, Optional

from ..config import VaultConfig
from ..utils import get_logger
from .base import BaseSecretProvider

logger = get_logger(__name__)


def _error_code(error: Exception) -> Optional[str]:
    response = getattr(error, "response", None) or {}
    return response.get("Error", {}).get("Code")


class AWSSecretsManagerProvider(BaseSecretProvider):
    """Stores each bundle as one JSON SecretString named <prefix><key>"""

    provider_name = "aws_secrets_manager"

    def __init__(self, config: VaultConfig, client: Any = None):
        self.config = config
        self._client = client
        self._lock = threading.Lock()

    def _get_client(self):
        """Get or create the boto3 secretsmanager client (lazy initialization)"""
        if self._client is None:
            with self._lock:
                if self._client is None:
                    try:
                        import boto3
                        from botocore.config import Config
                    except ImportError:
                        raise ImportError(
                            "boto3 is required for AWS Secrets Manager. "
                            "Install it with: pip install boto3"
                        )
                    self._client = boto3.client(
                        "secretsmanager",
                        region_name=self.config.aws_region,
                        config=Config(
                            connect_timeout=self.config.request_timeout,
                            read_timeout=self.config.request_timeout,
                            retries={"max_attempts": 2, "mode": "standard"},
                        ),
                    )
                    logger.info(
                        "Initialized Secrets Manager client",
                        extra={"extra_fields": {"region": self.config.aws_region}}
                    )
        return self._client

    def _secret_id(self, key: str) -> str:
        return f"{self.config.aws_secret_prefix}{key}"

    def _write(self, key: str, payload: Dict[str, Any]) -> None:
        client = self._get_client()
        secret_string = json.dumps(payload)
        try:
            client.create_secret(Name=self._secret_id(key), SecretString=secret_string)
        except Exception as e:
            if _error_code(e) != "ResourceExistsException":
                raise
            client.put_secret_value(SecretId=self._secret_id(key), SecretString=secret_string)

    def _read(self, key: str) -> Optional[Any]:
        try:
            response = self._get_client().get_secret_value(SecretId=self._secret_id(key))
        except Exception as e:
            if _error_code(e) == "ResourceNotFoundException":
                return None
            raise
        return response.get("SecretString")

    def _remove(self, key: str) -> bool:
        try:
            self._get_client().delete_secret(
                SecretId=self._secret_id(key),
                ForceDeleteWithoutRecovery=True,
            )
        except Exception as e:
            if _error_code(e) == "ResourceNotFoundException":
                return False
            raise
        return True

    def test_connection(self) -> bool:
        try:
            self._get_client().list_secrets(MaxResults=1)
            return True
        except Exception as e:
            logger.error(f"Secrets Manager connection test failed: {e}")
            return False
