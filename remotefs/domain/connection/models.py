"""
Connection domain models
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Dict, Any

from ...core.constants import DEFAULT_SSH_PORT


class SecretKind(str, Enum):
    """Kind of secret stored for a credential"""
    PASSWORD = "password"
    PRIVATE_KEY = "private_key"


class HostProtocol(str, Enum):
    """Protocol used to reach a host"""
    SSH = "ssh"
    WINRM = "winrm"
    TELNET = "telnet"


class OsType(str, Enum):
    """Operating system hint"""
    LINUX = "linux"
    WINDOWS = "windows"
    OTHER = "other"


@dataclass
class Credential:
    """Credential metadata; the secret itself lives in the vault"""
    id: int
    username: str
    kind: SecretKind = SecretKind.PASSWORD
    display_name: str = ""
    owner_id: str = ""

    @property
    def vault_key(self) -> str:
        """Key of the secret in the vault"""
        return f"credential_{self.id}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "kind": self.kind.value,
            "display_name": self.display_name,
            "owner_id": self.owner_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Credential":
        return cls(
            id=int(data["id"]),
            username=data.get("username", ""),
            kind=SecretKind(data.get("kind", SecretKind.PASSWORD.value)),
            display_name=data.get("display_name", ""),
            owner_id=data.get("owner_id", ""),
        )


@dataclass(frozen=True)
class ResolvedCredential:
    """Username, secret and secret kind ready for authentication"""
    username: str
    secret: str
    kind: SecretKind

    def __repr__(self) -> str:
        return f"ResolvedCredential(username={self.username!r}, kind={self.kind.value})"


@dataclass(frozen=True)
class BastionEndpoint:
    """Resolved bastion host/port/credential triple"""
    host: str
    port: int
    credential_id: Optional[int]


@dataclass
class HostTarget:
    """
    A remote host and how to reach it.

    The bastion is either a reference to another host target
    (``bastion_host_id``) or an inline host/port/credential triple.
    """
    id: int
    host: str
    port: int = DEFAULT_SSH_PORT
    name: str = ""
    protocol: HostProtocol = HostProtocol.SSH
    os: OsType = OsType.LINUX
    credential_id: Optional[int] = None
    use_bastion: bool = False
    bastion_host_id: Optional[int] = None
    bastion_host: Optional[str] = None
    bastion_port: int = DEFAULT_SSH_PORT
    bastion_credential_id: Optional[int] = None
    group: str = ""
    description: str = ""

    @property
    def display_name(self) -> str:
        return self.name or f"{self.host}:{self.port}"

    def inline_bastion(self) -> BastionEndpoint:
        """Inline bastion triple (may be incomplete)"""
        return BastionEndpoint(
            host=self.bastion_host or "",
            port=self.bastion_port,
            credential_id=self.bastion_credential_id,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "host": self.host,
            "port": self.port,
            "name": self.name,
            "protocol": self.protocol.value,
            "os": self.os.value,
            "credential_id": self.credential_id,
            "use_bastion": self.use_bastion,
            "bastion_host_id": self.bastion_host_id,
            "bastion_host": self.bastion_host,
            "bastion_port": self.bastion_port,
            "bastion_credential_id": self.bastion_credential_id,
            "group": self.group,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HostTarget":
        def _optional_int(key: str) -> Optional[int]:
            value = data.get(key)
            return int(value) if value is not None else None

        return cls(
            id=int(data["id"]),
            host=data["host"],
            port=int(data.get("port", DEFAULT_SSH_PORT)),
            name=data.get("name", ""),
            protocol=HostProtocol(data.get("protocol", HostProtocol.SSH.value)),
            os=OsType(data.get("os", OsType.LINUX.value)),
            credential_id=_optional_int("credential_id"),
            use_bastion=bool(data.get("use_bastion", False)),
            bastion_host_id=_optional_int("bastion_host_id"),
            bastion_host=data.get("bastion_host"),
            bastion_port=int(data.get("bastion_port", DEFAULT_SSH_PORT)),
            bastion_credential_id=_optional_int("bastion_credential_id"),
            group=data.get("group", ""),
            description=data.get("description", ""),
        )
