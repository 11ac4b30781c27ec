"""
TOML host and credential inventory
"""
import tomllib
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ...core.constants import DEFAULT_INVENTORY_PATH
from ...core.exceptions import ConfigError
from ...core.interfaces import CredentialResolver, HostTargetResolver
from ...core.logging import get_logger
from ...domain.connection.models import Credential, HostTarget

logger = get_logger(__name__)


class InventoryStore(CredentialResolver, HostTargetResolver):
    """
    Host targets and credential metadata read from a TOML file.

    Layout::

        [[credentials]]
        id = 1
        username = "deploy"
        kind = "private_key"

        [[hosts]]
        id = 10
        name = "web"
        host = "10.0.0.5"
        credential_id = 1
        use_bastion = true
        bastion_host_id = 11

    Secrets are never read from the inventory; they live in a SecretVault.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        """
        Initialize inventory store.

        Args:
            path: Inventory file. A missing file gives an empty inventory.
        """
        self.path = Path(path or DEFAULT_INVENTORY_PATH).expanduser()
        self._hosts: Dict[int, HostTarget] = {}
        self._credentials: Dict[int, Credential] = {}
        if self.path.exists():
            self.load()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InventoryStore":
        """Build an in-memory inventory from parsed TOML data"""
        store = cls.__new__(cls)
        store.path = None
        store._hosts = {}
        store._credentials = {}
        store._populate(data)
        return store

    def load(self) -> None:
        """(Re)read the inventory file"""
        try:
            with open(self.path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid inventory file {self.path}: {e}") from e
        self._hosts.clear()
        self._credentials.clear()
        self._populate(data)
        logger.debug(
            f"Loaded inventory {self.path}: "
            f"{len(self._hosts)} host(s), {len(self._credentials)} credential(s)"
        )

    def _populate(self, data: Dict[str, Any]) -> None:
        try:
            for item in data.get("credentials", []):
                self.add_credential(Credential.from_dict(item))
            for item in data.get("hosts", []):
                self.add_host(HostTarget.from_dict(item))
        except (KeyError, ValueError, TypeError) as e:
            raise ConfigError(f"Invalid inventory entry: {e}") from e

    # --------------------
    # Resolvers
    # --------------------
    def get_credential(self, credential_id: int) -> Optional[Credential]:
        return self._credentials.get(credential_id)

    def get_host(self, host_id: int) -> Optional[HostTarget]:
        return self._hosts.get(host_id)

    # --------------------
    # Queries
    # --------------------
    def hosts(self) -> List[HostTarget]:
        return sorted(self._hosts.values(), key=lambda h: h.id)

    def credentials(self) -> List[Credential]:
        return sorted(self._credentials.values(), key=lambda c: c.id)

    def find_host(self, ref: str) -> HostTarget:
        """
        Look a host up by id, name or address.

        Raises:
            ConfigError: If no host matches
        """
        ref = str(ref).strip()
        if ref.isdigit() and int(ref) in self._hosts:
            return self._hosts[int(ref)]
        for host in self.hosts():
            if ref in (host.name, host.host):
                return host
        raise ConfigError(f"Unknown host: {ref}")

    def add_host(self, host: HostTarget) -> None:
        self._hosts[host.id] = host

    def add_credential(self, credential: Credential) -> None:
        self._credentials[credential.id] = credential
