"""
Secret vault implementations
"""
import os
import re
import threading
from typing import Dict, MutableMapping, Optional

from ...core.constants import SECRET_ENV_PREFIX
from ...core.interfaces import SecretVault


class MemoryVault(SecretVault):
    """In-process vault, for injected secrets and tests"""

    def __init__(self, secrets: Optional[Dict[str, str]] = None):
        self._secrets: Dict[str, str] = dict(secrets or {})
        self._lock = threading.Lock()

    def retrieve(self, key: str) -> Optional[str]:
        with self._lock:
            return self._secrets.get(key)

    def store(self, key: str, secret: str) -> None:
        with self._lock:
            self._secrets[key] = secret

    def delete(self, key: str) -> None:
        with self._lock:
            self._secrets.pop(key, None)


class EnvironmentVault(SecretVault):
    """
    Vault backed by environment variables.

    The key ``credential_3`` is read from ``REMOTEFS_SECRET_CREDENTIAL_3``.
    """

    def __init__(
        self,
        prefix: str = SECRET_ENV_PREFIX,
        environ: Optional[MutableMapping[str, str]] = None,
    ):
        self.prefix = prefix
        self.environ = environ if environ is not None else os.environ

    def variable_name(self, key: str) -> str:
        return self.prefix + re.sub(r"[^A-Za-z0-9]", "_", key).upper()

    def retrieve(self, key: str) -> Optional[str]:
        value = self.environ.get(self.variable_name(key))
        # Keys in env vars are usually written with literal \n
        if value and "\\n" in value and "PRIVATE KEY" in value:
            value = value.replace("\\n", "\n")
        return value

    def store(self, key: str, secret: str) -> None:
        self.environ[self.variable_name(key)] = secret

    def delete(self, key: str) -> None:
        self.environ.pop(self.variable_name(key), None)
