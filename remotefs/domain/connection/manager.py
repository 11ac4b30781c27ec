"""
Connection manager - resolves host targets and builds live sessions
"""
import socket
import threading
from typing import Callable, Dict, List, Optional

import paramiko

from ...core.client import RemoteClient
from ...core.constants import (
    DEFAULT_KEEPALIVE_INTERVAL,
    DEFAULT_SSH_TIMEOUT,
    LOOPBACK_HOST,
)
from ...core.exceptions import AuthError, ConnectionError, RemoteError
from ...core.hostkeys import host_key_name
from ...core.interfaces import CredentialResolver, HostTargetResolver, SecretVault
from ...core.logging import get_logger
from ...core.utils import get_free_local_port
from .models import (
    BastionEndpoint,
    HostProtocol,
    HostTarget,
    ResolvedCredential,
    SecretKind,
)
from .session import Session
from .tunnel import LocalForwardTunnel

logger = get_logger(__name__)

ClientFactory = Callable[..., RemoteClient]
TunnelFactory = Callable[[RemoteClient, int, str, int], LocalForwardTunnel]


def create_client(
    host: str,
    port: int,
    credential: ResolvedCredential,
    timeout: float = DEFAULT_SSH_TIMEOUT,
    keepalive: int = DEFAULT_KEEPALIVE_INTERVAL,
    host_key_policy: Optional[paramiko.MissingHostKeyPolicy] = None,
    host_key_alias: Optional[str] = None,
) -> RemoteClient:
    """
    Create and connect a RemoteClient for a resolved credential.

    The client is closed again if authentication fails.
    """
    if credential.kind == SecretKind.PRIVATE_KEY:
        client = RemoteClient(
            host=host,
            user=credential.username,
            port=port,
            auth_method="key",
            key_data=credential.secret,
            timeout=timeout,
            keepalive=keepalive,
            host_key_policy=host_key_policy,
            host_key_alias=host_key_alias,
        )
    else:
        client = RemoteClient(
            host=host,
            user=credential.username,
            port=port,
            auth_method="password",
            password=credential.secret,
            timeout=timeout,
            keepalive=keepalive,
            host_key_policy=host_key_policy,
            host_key_alias=host_key_alias,
        )

    try:
        client.connect()
    except Exception:
        client.close()
        raise
    return client


class ConnectionManager:
    """
    Builds sessions for host targets, optionally through a bastion tunnel.

    Every session returned by ``connect`` must be released with
    ``disconnect`` (or ``Session.close``).
    """

    def __init__(
        self,
        credentials: CredentialResolver,
        hosts: HostTargetResolver,
        vault: SecretVault,
        client_factory: ClientFactory = create_client,
        tunnel_factory: TunnelFactory = LocalForwardTunnel,
        port_allocator: Callable[[], int] = get_free_local_port,
        host_key_policy: Optional[paramiko.MissingHostKeyPolicy] = None,
        timeout: float = DEFAULT_SSH_TIMEOUT,
        keepalive: int = DEFAULT_KEEPALIVE_INTERVAL,
    ):
        """
        Initialize connection manager.

        Args:
            credentials: Credential metadata lookup
            hosts: Host target lookup, used for bastion references
            vault: Secret store holding passwords and private keys
            client_factory: Creates a connected client (host, port, credential, **options)
            tunnel_factory: Creates a local forward tunnel (bastion, local_port, host, port)
            port_allocator: Returns a free loopback port
            host_key_policy: Host key trust policy (default: accept any)
            timeout: Connect timeout in seconds
            keepalive: Keep-alive interval in seconds
        """
        self.credentials = credentials
        self.hosts = hosts
        self.vault = vault
        self.client_factory = client_factory
        self.tunnel_factory = tunnel_factory
        self.port_allocator = port_allocator
        self.host_key_policy = host_key_policy
        self.timeout = timeout
        self.keepalive = keepalive
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    # --------------------
    # Public API
    # --------------------
    def connect(self, target: HostTarget) -> Session:
        """
        Open a session to target.

        Raises:
            ConnectionError: Missing credentials, unreachable host, tunnel failure
            AuthError: Malformed private key material
        """
        if target.protocol != HostProtocol.SSH:
            raise ConnectionError(
                f"Unsupported protocol for {target.display_name}: {target.protocol.value}"
            )

        target_credential = self.resolve_credential(
            target.credential_id, f"host {target.display_name}"
        )

        session = Session(target)
        try:
            if target.use_bastion:
                self._connect_via_bastion(session, target, target_credential)
            else:
                logger.info(f"Connecting to {target.display_name} ({target.host}:{target.port})")
                session.client = self._open_client(
                    target.host, target.port, target_credential, role="target",
                )
        except BaseException as e:
            logger.error(f"Connection to {target.display_name} failed: {e}")
            session.close()
            raise

        with self._lock:
            self._prune_closed()
            self._sessions[session.id] = session
        return session

    def disconnect(self, session: Optional[Session]) -> None:
        """Release a session. Safe to call repeatedly or with None."""
        if session is None:
            return
        with self._lock:
            self._sessions.pop(session.id, None)
        session.close()

    def active_sessions(self) -> List[Session]:
        """Sessions opened here and not closed yet"""
        with self._lock:
            self._prune_closed()
            return list(self._sessions.values())

    def close_all(self) -> None:
        """Release every session opened by this manager"""
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.close()

    def _prune_closed(self) -> None:
        # Sessions closed directly or through their context manager
        for session_id in [sid for sid, s in self._sessions.items() if s.closed]:
            del self._sessions[session_id]

    # --------------------
    # Resolution
    # --------------------
    def resolve_credential(self, credential_id: Optional[int], label: str) -> ResolvedCredential:
        """
        Resolve a credential id into username, secret and kind.

        Raises:
            ConnectionError: If the id is missing or cannot be resolved
        """
        if credential_id is None:
            raise ConnectionError(f"Missing credentials for {label}")

        credential = self.credentials.get_credential(credential_id)
        if credential is None or not credential.username:
            raise ConnectionError(f"Credential {credential_id} for {label} could not be resolved")

        secret = self.vault.retrieve(credential.vault_key)
        if secret is None:
            raise ConnectionError(f"No secret stored for credential {credential_id} ({label})")

        return ResolvedCredential(
            username=credential.username,
            secret=secret,
            kind=credential.kind,
        )

    def resolve_bastion(self, target: HostTarget) -> BastionEndpoint:
        """
        Resolve bastion host/port/credential: a host reference wins over the inline triple.

        Raises:
            ConnectionError: If no usable bastion host is configured
        """
        if target.bastion_host_id is not None:
            reference = self.hosts.get_host(target.bastion_host_id)
            if reference is not None:
                return BastionEndpoint(
                    host=reference.host,
                    port=reference.port,
                    credential_id=reference.credential_id,
                )
            logger.warning(
                f"Bastion host {target.bastion_host_id} not found, falling back to inline bastion config"
            )

        endpoint = target.inline_bastion()
        if not endpoint.host:
            raise ConnectionError(f"Incomplete bastion configuration for {target.display_name}")
        return endpoint

    # --------------------
    # Internals
    # --------------------
    def _connect_via_bastion(
        self,
        session: Session,
        target: HostTarget,
        target_credential: ResolvedCredential,
    ) -> None:
        endpoint = self.resolve_bastion(target)
        bastion_credential = self.resolve_credential(
            endpoint.credential_id, f"bastion {endpoint.host}"
        )

        logger.info(f"Connecting to {target.display_name} via bastion {endpoint.host}:{endpoint.port}")
        session.bastion = self._open_client(
            endpoint.host, endpoint.port, bastion_credential, role="bastion",
        )

        local_port = self.port_allocator()
        session.tunnel = self.tunnel_factory(session.bastion, local_port, target.host, target.port)
        try:
            session.tunnel.start()
        except RemoteError:
            raise
        except Exception as e:
            raise ConnectionError(f"Failed to start SSH tunnel: {e}") from e
        if not session.tunnel.is_started:
            raise ConnectionError("Failed to start SSH tunnel")

        logger.debug(
            f"Tunnel established: {LOOPBACK_HOST}:{session.tunnel.local_port} -> "
            f"{target.host}:{target.port}"
        )

        session.client = self._open_client(
            LOOPBACK_HOST,
            session.tunnel.local_port,
            target_credential,
            role="target",
            host_key_alias=host_key_name(target.host, target.port),
        )

    def _open_client(
        self,
        host: str,
        port: int,
        credential: ResolvedCredential,
        role: str,
        host_key_alias: Optional[str] = None,
    ) -> RemoteClient:
        """Connect one client, mapping protocol failures onto ConnectionError"""
        try:
            return self.client_factory(
                host,
                port,
                credential,
                timeout=self.timeout,
                keepalive=self.keepalive,
                host_key_policy=self.host_key_policy,
                host_key_alias=host_key_alias,
            )
        except (AuthError, ConnectionError):
            raise
        except paramiko.AuthenticationException as e:
            raise ConnectionError(
                f"Authentication failed for {credential.username}@{host}:{port} ({role}): {e}"
            ) from e
        except (paramiko.SSHException, socket.error, OSError) as e:
            raise ConnectionError(f"Cannot reach {role} {host}:{port}: {e}") from e
