"""
Core infrastructure layer
"""
from .client import RemoteClient, ClientConfig
from .constants import *
from .exceptions import *
from .logging import setup_logging, get_logger, get_stdout_console, get_stderr_console
from .interfaces import SecretVault, CredentialResolver, HostTargetResolver
from .hostkeys import (
    AcceptAnyHostKey,
    TrustOnFirstUse,
    PinnedHostKeys,
    fingerprint,
)
from .utils import (
    get_free_local_port,
    normalize_remote_path,
    join_remote,
    remote_parent,
    format_bytes,
    parse_size,
)

__all__ = [
    "RemoteClient",
    "ClientConfig",
    "setup_logging",
    "get_logger",
    "get_stdout_console",
    "get_stderr_console",
    "SecretVault",
    "CredentialResolver",
    "HostTargetResolver",
    "AcceptAnyHostKey",
    "TrustOnFirstUse",
    "PinnedHostKeys",
    "fingerprint",
    "get_free_local_port",
    "normalize_remote_path",
    "join_remote",
    "remote_parent",
    "format_bytes",
    "parse_size",
]
