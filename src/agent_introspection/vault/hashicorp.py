"""
HashiCorp Vault provider (KV secrets engine, version 1 or 2) over HTTP
"""
from __future__ import annotations

import threading
from typing import Any, Dict, Optional

import requests

from ..config import VaultConfig
from ..utils import ConfigurationError, VaultError, get_logger
from .base import BaseSecretProvider

logger = get_logger(__name__)

# sys/health codes meaning "reachable": active, standby, DR secondary, perf standby
_HEALTHY_STATUS = {200, 429, 472, 473}


class HashiCorpVaultProvider(BaseSecretProvider):
    """
    Reads and writes bundles under <mount>/<path>/<key>

    KV v2 paths are <mount>/data/<path>/<key> for data and
    <mount>/metadata/<path>/<key> for permanent deletion.
    """

    provider_name = "hashicorp_vault"

    def __init__(self, config: VaultConfig, session: Optional[requests.Session] = None):
        if not config.vault_url:
            raise ConfigurationError("VAULT_URL is required for the HashiCorp Vault provider", config_key="vault_url")
        if not config.vault_token:
            raise ConfigurationError("VAULT_TOKEN is required for the HashiCorp Vault provider", config_key="vault_token")
        self.config = config
        self.base_url = config.vault_url.rstrip("/")
        self._session = session
        self._lock = threading.Lock()

    def _get_session(self) -> requests.Session:
        if self._session is None:
            with self._lock:
                if self._session is None:
                    session = requests.Session()
                    session.headers["X-Vault-Token"] = self.config.vault_token.get_secret_value()
                    if self.config.vault_namespace:
                        session.headers["X-Vault-Namespace"] = self.config.vault_namespace
                    if self.config.vault_skip_verify:
                        session.verify = False
                    elif self.config.vault_ca_cert:
                        session.verify = self.config.vault_ca_cert
                    self._session = session
        return self._session

    def _url(self, key: str, kind: str = "data") -> str:
        mount = self.config.vault_mount.strip("/")
        path = "/".join(p for p in (self.config.vault_path.strip("/"), key.strip("/")) if p)
        if self.config.vault_kv_version == 2:
            return f"{self.base_url}/v1/{mount}/{kind}/{path}"
        return f"{self.base_url}/v1/{mount}/{path}"

    def _check(self, response: requests.Response, action: str, key: str) -> None:
        if response.status_code >= 400:
            raise VaultError(
                f"Vault {action} for '{key}' failed with HTTP {response.status_code}",
                key=key,
            )

    def _write(self, key: str, payload: Dict[str, Any]) -> None:
        body = {"data": payload} if self.config.vault_kv_version == 2 else payload
        response = self._get_session().post(
            self._url(key), json=body, timeout=self.config.request_timeout
        )
        self._check(response, "write", key)

    def _read(self, key: str) -> Optional[Any]:
        response = self._get_session().get(self._url(key), timeout=self.config.request_timeout)
        if response.status_code == 404:
            return None
        self._check(response, "read", key)
        data = response.json().get("data") or {}
        if self.config.vault_kv_version == 2:
            # Soft-deleted versions come back with data=null
            return data.get("data")
        return data

    def _remove(self, key: str) -> bool:
        url = self._url(key, kind="metadata")
        response = self._get_session().delete(url, timeout=self.config.request_timeout)
        if response.status_code == 404:
            return False
        self._check(response, "delete", key)
        return True

    def test_connection(self) -> bool:
        try:
            response = self._get_session().get(
                f"{self.base_url}/v1/sys/health", timeout=self.config.request_timeout
            )
        except requests.RequestException as e:
            logger.error(f"Vault connection test failed: {e}")
            return False
        healthy = response.status_code in _HEALTHY_STATUS
        if not healthy:
            logger.error(
                "Vault reported unhealthy status",
                extra={"extra_fields": {"status_code": response.status_code}}
            )
        return healthy
