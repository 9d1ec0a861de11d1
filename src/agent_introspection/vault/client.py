"""
Vault client: lazily builds the configured provider and fronts it
"""
from __future__ import annotations

import threading
from typing import Any, Dict, Optional

from ..config import VaultConfig, VaultProviderType, get_config
from ..utils import ConfigurationError, VaultError, get_logger
from .base import BaseSecretProvider, SecretBundle

logger = get_logger(__name__)


def create_secret_provider(config: VaultConfig) -> Optional[BaseSecretProvider]:
    """Instantiate the provider named by config.provider (None for 'none')"""
    provider = VaultProviderType(config.provider)

    if provider == VaultProviderType.NONE:
        return None
    if provider == VaultProviderType.LOCAL:
        from .local import LocalSecretProvider
        return LocalSecretProvider(config.local_secrets_file, env_prefix=config.env_prefix)
    if provider == VaultProviderType.AWS_SECRETS_MANAGER:
        from .aws import AWSSecretsManagerProvider
        return AWSSecretsManagerProvider(config)
    if provider == VaultProviderType.HASHICORP_VAULT:
        from .hashicorp import HashiCorpVaultProvider
        return HashiCorpVaultProvider(config)

    raise ConfigurationError(f"Unsupported secret provider: {provider}", config_key="provider")


class VaultClient:
    """
    Injected handle on the credential vault

    init() is idempotent and safe to race; every other call triggers it.
    A provider whose connection test fails is discarded, leaving the client
    without a provider until init(force=True) succeeds.
    """

    def __init__(self, config: Optional[VaultConfig] = None, provider: Optional[BaseSecretProvider] = None):
        self.config = config or VaultConfig()
        self._provider = provider
        self._initialized = provider is not None
        self._lock = threading.Lock()

    def init(self, force: bool = False) -> bool:
        if self._initialized and not force:
            return self._provider is not None
        with self._lock:
            if self._initialized and not force:
                return self._provider is not None
            provider = None
            try:
                provider = create_secret_provider(self.config)
                if provider is not None and not provider.test_connection():
                    logger.error(
                        "Secret provider connection test failed; running without a provider",
                        extra={"extra_fields": {"provider": provider.provider_name}}
                    )
                    provider = None
            except ConfigurationError as e:
                logger.error(f"Secret provider misconfigured: {e}")
                provider = None
            self._provider = provider
            self._initialized = True
            if provider is not None:
                logger.info(
                    "Vault client initialized",
                    extra={"extra_fields": {"provider": provider.provider_name}}
                )
            return provider is not None

    def has_provider(self) -> bool:
        self.init()
        return self._provider is not None

    @property
    def provider_name(self) -> Optional[str]:
        self.init()
        return self._provider.provider_name if self._provider else None

    def store_secret(self, key: str, bundle: Any) -> bool:
        """Create or overwrite; False when no provider is configured"""
        if not self.has_provider():
            logger.warning(f"No secret provider configured; secret '{key}' not stored")
            return False
        if not isinstance(bundle, SecretBundle):
            bundle = SecretBundle.from_mapping(bundle)
        return self._provider.store_secret(key, bundle)

    def store_credentials(self, key: str, username: Optional[str], password: Any, **extra: Any) -> bool:
        return self.store_secret(key, SecretBundle(username=username, password=password, **extra))

    def get_secret(self, key: str) -> Optional[SecretBundle]:
        """None for unknown keys or when no provider is configured"""
        if not self.has_provider():
            return None
        return self._provider.get_secret(key)

    def require_secret(self, key: str) -> SecretBundle:
        """Like get_secret, but a missing or empty bundle is a VaultError"""
        if not self.has_provider():
            raise VaultError(f"No secret provider available to resolve '{key}'", key=key)
        bundle = self._provider.get_secret(key)
        if bundle is None or bundle.is_empty():
            raise VaultError(f"No credentials stored under '{key}'", key=key)
        return bundle

    def delete_secret(self, key: str) -> bool:
        if not self.has_provider():
            return False
        return self._provider.delete_secret(key)

    def describe(self) -> Dict[str, Any]:
        return {"provider": self.provider_name, "initialized": self._initialized}


_default_client: Optional[VaultClient] = None
_default_lock = threading.Lock()


def get_vault_client() -> VaultClient:
    """Process-wide client built from the global configuration"""
    global _default_client
    if _default_client is None:
        with _default_lock:
            if _default_client is None:
                _default_client = VaultClient(get_config().vault)
    return _default_client


def reset_vault_client() -> None:
    global _default_client
    with _default_lock:
        _default_client = None
