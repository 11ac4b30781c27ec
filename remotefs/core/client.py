from __future__ import annotations
from dataclasses import dataclass
from io import StringIO
from pathlib import Path
from typing import Optional, Literal, Tuple

import paramiko

from .constants import DEFAULT_KEEPALIVE_INTERVAL, DEFAULT_SSH_TIMEOUT
from .exceptions import AuthError
from .hostkeys import AcceptAnyHostKey, AliasedHostKeyPolicy
from .logging import get_logger

logger = get_logger(__name__)

_KEY_CLASSES = (paramiko.Ed25519Key, paramiko.ECDSAKey, paramiko.RSAKey)


@dataclass
class ClientConfig:
    host: str
    user: str
    port: int = 22
    auth_method: Literal["password", "key"] = "password"
    password: Optional[str] = None
    key_data: Optional[str] = None
    key_path: Optional[str] = None
    timeout: float = DEFAULT_SSH_TIMEOUT
    keepalive: int = DEFAULT_KEEPALIVE_INTERVAL
    host_key_alias: Optional[str] = None


class RemoteClient:
    """
    Thin wrapper around paramiko's SSHClient.

    - keeps host / user / port explicitly (paramiko does not expose them)
    - password or private key login (key given as text or as a file)
    - pluggable host key policy, optionally checked under an alias
    - exec / sftp helpers, the SFTP channel is opened once and reused
    - context manager support
    """
    def __init__(
        self,
        host: str,
        user: str,
        port: int = 22,
        auth_method: Literal["password", "key"] = "password",
        password: Optional[str] = None,
        key_data: Optional[str] = None,
        key_path: Optional[str] = None,
        timeout: float = DEFAULT_SSH_TIMEOUT,
        keepalive: int = DEFAULT_KEEPALIVE_INTERVAL,
        host_key_policy: Optional[paramiko.MissingHostKeyPolicy] = None,
        host_key_alias: Optional[str] = None,
    ) -> None:
        self.config = ClientConfig(
            host=host,
            user=user,
            port=port,
            auth_method=auth_method,
            password=password,
            key_data=key_data,
            key_path=key_path,
            timeout=timeout,
            keepalive=keepalive,
            host_key_alias=host_key_alias,
        )

        policy = host_key_policy or AcceptAnyHostKey()
        if host_key_alias:
            policy = AliasedHostKeyPolicy(policy, host_key_alias)

        self.client = paramiko.SSHClient()
        self.client.set_missing_host_key_policy(policy)

        self._sftp: Optional[paramiko.SFTPClient] = None

    @property
    def host(self) -> str:
        return self.config.host

    @property
    def port(self) -> int:
        return self.config.port

    # --------------------
    # Connection management
    # --------------------
    def connect(self) -> None:
        """Open and authenticate the SSH connection"""
        cfg = self.config

        if cfg.auth_method == "password":
            self.client.connect(
                hostname=cfg.host,
                port=cfg.port,
                username=cfg.user,
                password=cfg.password,
                timeout=cfg.timeout,
                allow_agent=False,
                look_for_keys=False,
            )

        elif cfg.auth_method == "key":
            key = self._load_private_key()
            self.client.connect(
                hostname=cfg.host,
                port=cfg.port,
                username=cfg.user,
                pkey=key,
                timeout=cfg.timeout,
                allow_agent=False,
                look_for_keys=False,
            )

        else:
            raise ValueError(f"Unsupported auth method: {cfg.auth_method}")

        transport = self.client.get_transport()
        if transport is not None and cfg.keepalive:
            transport.set_keepalive(cfg.keepalive)

    @property
    def is_connected(self) -> bool:
        transport = self.client.get_transport()
        return transport is not None and transport.is_active()

    def get_transport(self) -> Optional[paramiko.Transport]:
        return self.client.get_transport()

    def disconnect(self) -> None:
        """Close the SFTP channel and the SSH transport"""
        if self._sftp is not None:
            try:
                self._sftp.close()
            except Exception as e:
                logger.debug(f"Error closing SFTP channel for {self.host}: {e}")
            self._sftp = None
        self.client.close()

    def close(self) -> None:
        """Release the client; disconnects first if still connected"""
        if self.is_connected or self._sftp is not None:
            self.disconnect()
        self.client.close()

    # --------------------
    # Load private key
    # --------------------
    def _load_private_key(self) -> paramiko.PKey:
        """Load key material from text or file, probing Ed25519 / ECDSA / RSA"""
        cfg = self.config
        if cfg.key_data:
            text = cfg.key_data.replace("\r\n", "\n").replace("\r", "\n").strip() + "\n"
            source = "inline key"
        elif cfg.key_path:
            p = Path(cfg.key_path).expanduser()
            try:
                text = p.read_text()
            except OSError as e:
                raise AuthError(f"Failed to read private key at {p}: {e}") from e
            source = str(p)
        else:
            raise AuthError("Key authentication requested without key material")

        last_error: Optional[Exception] = None
        for key_class in _KEY_CLASSES:
            try:
                return key_class.from_private_key(StringIO(text))
            except paramiko.PasswordRequiredException as e:
                raise AuthError(
                    f"Private key ({source}) is encrypted; passphrase-protected keys are not supported"
                ) from e
            except (paramiko.SSHException, ValueError) as e:
                last_error = e
        raise AuthError(f"Private key ({source}) is invalid or unsupported: {last_error}") from last_error

    # --------------------
    # Helpers
    # --------------------
    def exec(self, cmd: str) -> Tuple[str, str]:
        """Run a command and return (stdout, stderr)"""
        out, err, _ = self.exec_with_code(cmd)
        return out, err

    def exec_with_code(self, cmd: str) -> Tuple[str, str, int]:
        """Run a command and return (stdout, stderr, exit_code)"""
        stdin, stdout, stderr = self.client.exec_command(cmd, timeout=self.config.timeout)
        out = stdout.read().decode('utf-8', errors='replace')
        err = stderr.read().decode('utf-8', errors='replace')
        exit_code = stdout.channel.recv_exit_status()
        return out, err, exit_code

    def open_sftp(self) -> paramiko.SFTPClient:
        """Return the SFTP client, reusing the open channel"""
        if self._sftp is None or self._sftp.get_channel() is None or self._sftp.get_channel().closed:
            self._sftp = self.client.open_sftp()
        return self._sftp

    # --------------------
    # Context manager
    # --------------------
    def __enter__(self) -> RemoteClient:
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()
