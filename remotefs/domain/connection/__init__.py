"""
Connection domain module
"""
from .models import (
    Credential,
    ResolvedCredential,
    SecretKind,
    HostTarget,
    HostProtocol,
    OsType,
    BastionEndpoint,
)
from .session import Session
from .tunnel import LocalForwardTunnel
from .manager import ConnectionManager, create_client

__all__ = [
    "Credential",
    "ResolvedCredential",
    "SecretKind",
    "HostTarget",
    "HostProtocol",
    "OsType",
    "BastionEndpoint",
    "Session",
    "LocalForwardTunnel",
    "ConnectionManager",
    "create_client",
]
