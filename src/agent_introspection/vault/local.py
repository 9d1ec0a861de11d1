"""
Local secret provider backed by process memory, an optional JSON file
and SECRET__<KEY> environment variables
"""
from __future__ import annotations

import json
import os
import re
import tempfile
import threading
from typing import Any, Dict, Optional

from ..utils import VaultError, get_logger
from .base import BaseSecretProvider

logger = get_logger(__name__)


def env_var_name(prefix: str, key: str) -> str:
    return prefix + re.sub(r"[^A-Za-z0-9]", "_", key).upper()


class LocalSecretProvider(BaseSecretProvider):
    """Development and test backend; values in the file are base64-encoded like every other backend"""

    provider_name = "local"

    def __init__(self, secrets_file: Optional[str] = None, env_prefix: str = "SECRET__"):
        self.secrets_file = secrets_file
        self.env_prefix = env_prefix
        self._store: Dict[str, Any] = {}
        self._lock = threading.RLock()
        if secrets_file and os.path.exists(secrets_file):
            self._load()

    def _load(self) -> None:
        try:
            with open(self.secrets_file, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as e:
            raise VaultError(f"Cannot read local secrets file {self.secrets_file}", original_error=e)
        if not isinstance(data, dict):
            raise VaultError(f"Local secrets file {self.secrets_file} must contain a JSON object")
        self._store.update(data)

    def _persist(self) -> None:
        if not self.secrets_file:
            return
        directory = os.path.dirname(os.path.abspath(self.secrets_file))
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".secrets-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(self._store, fh, indent=2, sort_keys=True)
            os.replace(tmp_path, self.secrets_file)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def _write(self, key: str, payload: Dict[str, Any]) -> None:
        with self._lock:
            self._store[key] = payload
            self._persist()

    def _read(self, key: str) -> Optional[Any]:
        with self._lock:
            if key in self._store:
                return self._store[key]
        # Environment values are plain JSON documents
        return os.environ.get(env_var_name(self.env_prefix, key))

    def _remove(self, key: str) -> bool:
        with self._lock:
            if key not in self._store:
                return False
            del self._store[key]
            self._persist()
            return True

    def test_connection(self) -> bool:
        if not self.secrets_file:
            return True
        directory = os.path.dirname(os.path.abspath(self.secrets_file))
        writable = os.access(directory, os.W_OK)
        if not writable:
            logger.error(
                "Local secrets directory is not writable",
                extra={"extra_fields": {"directory": directory}}
            )
        return writable
