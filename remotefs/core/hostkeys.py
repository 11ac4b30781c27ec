"""
Host key trust policies.

The historical behaviour of the file manager is to accept any host key. That
stays the default (``AcceptAnyHostKey``) but it is an explicit, swappable
policy: ``TrustOnFirstUse`` pins the first key seen per host, and
``PinnedHostKeys`` only accepts a fixed set of fingerprints.
"""
import base64
import hashlib
import threading
from pathlib import Path
from typing import Dict, Iterable, Optional, Union

import paramiko

from .constants import DEFAULT_KNOWN_HOSTS_PATH
from .logging import get_logger

logger = get_logger(__name__)


def fingerprint(key: paramiko.PKey) -> str:
    """Return the OpenSSH style ``SHA256:<base64>`` fingerprint of a key"""
    digest = hashlib.sha256(key.asbytes()).digest()
    return "SHA256:" + base64.b64encode(digest).decode("ascii").rstrip("=")


class AcceptAnyHostKey(paramiko.MissingHostKeyPolicy):
    """Accept every host key without verification (insecure default)"""

    def missing_host_key(self, client, hostname, key):
        logger.debug(f"Accepting unverified host key for {hostname}: {fingerprint(key)}")


class TrustOnFirstUse(paramiko.MissingHostKeyPolicy):
    """
    Pin the first key seen for a host in a known_hosts file.

    Later connections presenting a different key are rejected with
    ``paramiko.BadHostKeyException``.
    """

    def __init__(self, known_hosts_path: Optional[Union[str, Path]] = None):
        self.path = Path(known_hosts_path or DEFAULT_KNOWN_HOSTS_PATH).expanduser()
        self._lock = threading.Lock()

    def _load(self) -> paramiko.HostKeys:
        host_keys = paramiko.HostKeys()
        if self.path.exists():
            host_keys.load(str(self.path))
        return host_keys

    def missing_host_key(self, client, hostname, key):
        with self._lock:
            host_keys = self._load()
            known = host_keys.lookup(hostname)
            if known is not None and key.get_name() in known:
                expected = known[key.get_name()]
                if expected != key:
                    raise paramiko.BadHostKeyException(hostname, key, expected)
                return

            host_keys.add(hostname, key.get_name(), key)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            host_keys.save(str(self.path))
            logger.info(f"Pinned host key for {hostname}: {fingerprint(key)}")


class PinnedHostKeys(paramiko.MissingHostKeyPolicy):
    """Only accept keys whose fingerprint is listed for the host"""

    def __init__(self, pins: Dict[str, Iterable[str]]):
        self.pins = {host: set(prints) for host, prints in pins.items()}

    def missing_host_key(self, client, hostname, key):
        actual = fingerprint(key)
        if actual not in self.pins.get(hostname, set()):
            raise paramiko.SSHException(
                f"Host key for {hostname} is not pinned: {actual}"
            )


class AliasedHostKeyPolicy(paramiko.MissingHostKeyPolicy):
    """
    Check host keys under a fixed alias instead of the dialled address.

    Tunnelled sessions dial ``[127.0.0.1]:<ephemeral>``; the alias keeps the
    trust decision bound to the real target.
    """

    def __init__(self, policy: paramiko.MissingHostKeyPolicy, alias: str):
        self.policy = policy
        self.alias = alias

    def missing_host_key(self, client, hostname, key):
        self.policy.missing_host_key(client, self.alias, key)


def host_key_name(host: str, port: int) -> str:
    """known_hosts style name: bare host on port 22, ``[host]:port`` otherwise"""
    if port == 22:
        return host
    return f"[{host}]:{port}"
