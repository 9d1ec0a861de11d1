"""
Credential Vault Package
Pluggable secret storage for connection credentials
"""
from .base import (
    BaseSecretProvider,
    SecretBundle,
    encode_payload,
    decode_payload,
    is_sensitive_field,
)
from .local import LocalSecretProvider
from .client import (
    VaultClient,
    create_secret_provider,
    get_vault_client,
    reset_vault_client,
)

__all__ = [
    "BaseSecretProvider",
    "SecretBundle",
    "encode_payload",
    "decode_payload",
    "is_sensitive_field",
    "LocalSecretProvider",
    "VaultClient",
    "create_secret_provider",
    "get_vault_client",
    "reset_vault_client",
]
