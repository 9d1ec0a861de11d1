"""
Credential Vault Base Module
SecretBundle model, at-rest encoding and the abstract secret provider
"""
from __future__ import annotations

import base64
import binascii
import json
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, SecretStr, ValidationError, field_validator, model_validator

from ..utils import IntrospectionMetrics, VaultError, get_logger

logger = get_logger(__name__)

_BUNDLE_KEY_ALIASES: Dict[str, str] = {
    "user": "username",
    "serviceAccountJson": "service_account_json",
    "keyFile": "key_file",
    "accessToken": "access_token",
    "token": "access_token",
    "projectId": "project_id",
    "serverHostname": "server_hostname",
    "httpPath": "http_path",
}

SENSITIVE_FIELD_MARKERS = (
    "password",
    "passwd",
    "secret",
    "token",
    "privatekey",
    "private_key",
    "keyfile",
    "key_file",
    "service_account",
    "credential",
    "apikey",
    "api_key",
)

ENCODED_FIELDS_KEY = "_encoded"


def is_sensitive_field(name: str) -> bool:
    lowered = name.lower()
    return any(marker in lowered for marker in SENSITIVE_FIELD_MARKERS)


def _as_string(value: Any) -> Any:
    """Bundle values are strings; documents are kept as JSON text"""
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, SecretStr):
        return value.get_secret_value()
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


class SecretBundle(BaseModel):
    """
    Credentials for one environment

    Wire-protocol engines use username/password, BigQuery uses a service
    account document, Databricks uses an access token. Scalar values of any
    type are stored and returned as strings.
    """
    username: Optional[str] = None
    password: Optional[str] = Field(default=None, repr=False)
    access_token: Optional[str] = Field(default=None, repr=False)
    service_account_json: Optional[str] = Field(default=None, repr=False)
    key_file: Optional[str] = None
    project_id: Optional[str] = None
    server_hostname: Optional[str] = None
    http_path: Optional[str] = None

    model_config = {"extra": "allow", "frozen": True}

    @model_validator(mode="before")
    @classmethod
    def normalize_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        normalized = {}
        for key, value in data.items():
            normalized[_BUNDLE_KEY_ALIASES.get(key, key)] = value
        return normalized

    @field_validator("*", mode="before")
    @classmethod
    def coerce_to_string(cls, v: Any) -> Any:
        return _as_string(v)

    @model_validator(mode="after")
    def coerce_extra_fields(self) -> "SecretBundle":
        extras = self.__pydantic_extra__ or {}
        for key, value in list(extras.items()):
            extras[key] = _as_string(value)
        return self

    def reveal(self, name: str) -> Optional[str]:
        """Plain value of a field, secret or not"""
        return getattr(self, name, None)

    def to_plain_dict(self) -> Dict[str, str]:
        """All non-empty fields with secrets revealed"""
        data: Dict[str, str] = {}
        for name in list(type(self).model_fields) + list((self.__pydantic_extra__ or {}).keys()):
            value = self.reveal(name)
            if value is not None:
                data[name] = value
        return data

    def secret_values(self) -> List[str]:
        """Values that must never appear in logs or error messages"""
        return [v for k, v in self.to_plain_dict().items() if is_sensitive_field(k) and v]

    def is_empty(self) -> bool:
        return not self.to_plain_dict()

    @classmethod
    def from_mapping(cls, data: Optional[Dict[str, Any]]) -> "SecretBundle":
        return cls(**(data or {}))


def encode_payload(bundle: SecretBundle) -> Dict[str, Any]:
    """Plain dict ready for storage; sensitive fields are base64-encoded"""
    payload: Dict[str, Any] = {}
    encoded: List[str] = []
    for name, value in bundle.to_plain_dict().items():
        if is_sensitive_field(name):
            payload[name] = base64.b64encode(value.encode("utf-8")).decode("ascii")
            encoded.append(name)
        else:
            payload[name] = value
    if encoded:
        payload[ENCODED_FIELDS_KEY] = encoded
    return payload


def decode_payload(payload: Any, key: str) -> SecretBundle:
    """Inverse of encode_payload; raises VaultError on corrupt payloads"""
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except ValueError as e:
            raise VaultError(f"Secret '{key}' is not valid JSON", key=key, original_error=e)
    if not isinstance(payload, dict):
        raise VaultError(f"Secret '{key}' has an unexpected shape", key=key)

    data = dict(payload)
    encoded = data.pop(ENCODED_FIELDS_KEY, [])
    try:
        for name in encoded:
            if data.get(name) is not None:
                data[name] = base64.b64decode(data[name], validate=True).decode("utf-8")
        return SecretBundle(**data)
    except (binascii.Error, UnicodeDecodeError, ValidationError, TypeError) as e:
        raise VaultError(f"Secret '{key}' is corrupt", key=key, original_error=e)


class BaseSecretProvider(ABC):
    """
    Abstract secret backend

    Subclasses move raw payload dicts; encoding, decoding and metrics are
    handled here.
    """

    provider_name: str = "base"

    @abstractmethod
    def _write(self, key: str, payload: Dict[str, Any]) -> None:
        """Create or overwrite the payload stored under key"""

    @abstractmethod
    def _read(self, key: str) -> Optional[Any]:
        """Return the stored payload or None when the key is unknown"""

    @abstractmethod
    def _remove(self, key: str) -> bool:
        """Delete key; False when it did not exist"""

    @abstractmethod
    def test_connection(self) -> bool:
        """Cheap round trip to the backend"""

    def store_secret(self, key: str, bundle: SecretBundle) -> bool:
        try:
            self._write(key, encode_payload(bundle))
        except VaultError:
            IntrospectionMetrics.record_vault_call(self.provider_name, "store", False)
            raise
        except Exception as e:
            IntrospectionMetrics.record_vault_call(self.provider_name, "store", False)
            raise VaultError(f"Failed to store secret '{key}': {e}", key=key, original_error=e)
        IntrospectionMetrics.record_vault_call(self.provider_name, "store", True)
        logger.info(
            "Stored secret",
            extra={"extra_fields": {"provider": self.provider_name, "key": key}}
        )
        return True

    def get_secret(self, key: str) -> Optional[SecretBundle]:
        try:
            payload = self._read(key)
        except VaultError:
            IntrospectionMetrics.record_vault_call(self.provider_name, "get", False)
            raise
        except Exception as e:
            IntrospectionMetrics.record_vault_call(self.provider_name, "get", False)
            raise VaultError(f"Failed to read secret '{key}': {e}", key=key, original_error=e)
        IntrospectionMetrics.record_vault_call(self.provider_name, "get", True)
        if payload is None:
            return None
        return decode_payload(payload, key)

    def delete_secret(self, key: str) -> bool:
        try:
            removed = self._remove(key)
        except VaultError:
            raise
        except Exception as e:
            raise VaultError(f"Failed to delete secret '{key}': {e}", key=key, original_error=e)
        IntrospectionMetrics.record_vault_call(self.provider_name, "delete", True)
        return removed
