"""
Unified exception definitions
"""


class RemoteError(Exception):
    """Base exception class"""
    pass


class ConfigError(RemoteError):
    """Configuration error"""
    pass


class ConnectionError(RemoteError):
    """Connection error (missing credentials, unreachable host, tunnel failure)"""
    pass


class AuthError(RemoteError):
    """Malformed or unsupported private key material"""
    pass


class TransferError(RemoteError):
    """Transfer error (I/O failure, permission denied)"""
    pass


class PermissionDeniedError(TransferError):
    """Remote or local permission denied"""
    pass


class IntegrityWarning(RemoteError):
    """
    Checksum mismatch after a transfer.

    Advisory only: it is logged, never raised out of a transfer.
    """

    def __init__(self, local_path: str, remote_path: str, local_hash: str, remote_hash: str):
        self.local_path = local_path
        self.remote_path = remote_path
        self.local_hash = local_hash
        self.remote_hash = remote_hash
        super().__init__(
            f"Checksum mismatch: {local_path} ({local_hash}) != {remote_path} ({remote_hash})"
        )


class CancelledError(RemoteError):
    """Operation cancelled through its cancel token"""
    pass
