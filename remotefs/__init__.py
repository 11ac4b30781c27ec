"""
remotefs - remote file access and transfer over SSH/SFTP

Provides:
- Sessions to SSH hosts, optionally tunnelled through a bastion
- Cached, sortable remote directory listings
- Resumable, checksum-verified uploads, downloads and server-to-server copies
- A bounded transfer queue
- Remote file operations, log tailing and host status
"""

__version__ = "0.1.0"

# Export core components
from .core import (
    RemoteClient,
    ClientConfig,
    AcceptAnyHostKey,
    TrustOnFirstUse,
    PinnedHostKeys,
)
from .core.exceptions import (
    RemoteError,
    ConfigError,
    ConnectionError,
    AuthError,
    TransferError,
    PermissionDeniedError,
    IntegrityWarning,
    CancelledError,
)

# Export domain services
from .domain.connection import ConnectionManager, Session, HostTarget, Credential
from .domain.listing import ListingService, ListingCache, FileEntry, SortColumn
from .domain.transfer import (
    TransferService,
    TransferQueue,
    TransferConfig,
    TransferTask,
    TransferProgress,
    TaskStatus,
    CancelToken,
)
from .domain.files import RemoteFileOps

__all__ = [
    # Version
    "__version__",
    # Client
    "RemoteClient",
    "ClientConfig",
    "AcceptAnyHostKey",
    "TrustOnFirstUse",
    "PinnedHostKeys",
    # Errors
    "RemoteError",
    "ConfigError",
    "ConnectionError",
    "AuthError",
    "TransferError",
    "PermissionDeniedError",
    "IntegrityWarning",
    "CancelledError",
    # Connections
    "ConnectionManager",
    "Session",
    "HostTarget",
    "Credential",
    # Listing
    "ListingService",
    "ListingCache",
    "FileEntry",
    "SortColumn",
    # Transfers
    "TransferService",
    "TransferQueue",
    "TransferConfig",
    "TransferTask",
    "TransferProgress",
    "TaskStatus",
    "CancelToken",
    # File operations
    "RemoteFileOps",
]
