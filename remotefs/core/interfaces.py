"""
Core interfaces for dependency injection
"""
from abc import ABC, abstractmethod
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from ..domain.connection.models import Credential, HostTarget


class SecretVault(ABC):
    """Secret lookup-by-key service"""

    @abstractmethod
    def retrieve(self, key: str) -> Optional[str]:
        """Return the secret stored under key, or None"""
        pass

    @abstractmethod
    def store(self, key: str, secret: str) -> None:
        """Store a secret under key"""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove the secret stored under key"""
        pass


class CredentialResolver(ABC):
    """Credential metadata lookup"""

    @abstractmethod
    def get_credential(self, credential_id: int) -> Optional["Credential"]:
        """Return credential metadata by id, or None if unknown"""
        pass


class HostTargetResolver(ABC):
    """Host target lookup (used to follow bastion references)"""

    @abstractmethod
    def get_host(self, host_id: int) -> Optional["HostTarget"]:
        """Return the host target by id, or None if unknown"""
        pass
