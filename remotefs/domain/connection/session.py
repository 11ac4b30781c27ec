"""
Live session handle
"""
import threading
import uuid
from contextlib import ExitStack, contextmanager
from typing import Any, Iterator, Optional, Tuple

from ...core.logging import get_logger
from .models import HostTarget

logger = get_logger(__name__)


class Session:
    """
    A connected handle to one host, optionally chained through a bastion.

    Exclusively owns the target client and, when a bastion was used, the
    bastion client and the local forward tunnel. The protocol layer is not
    safe for concurrent operations, so callers hold ``exclusive()`` for the
    duration of one operation.
    """

    def __init__(
        self,
        target: HostTarget,
        client: Any = None,
        bastion: Any = None,
        tunnel: Any = None,
    ):
        self.id = str(uuid.uuid4())
        self.target = target
        self.client = client
        self.bastion = bastion
        self.tunnel = tunnel
        self._op_lock = threading.RLock()
        self._close_lock = threading.Lock()
        self._closed = False

    # --------------------
    # Identity
    # --------------------
    @property
    def host(self) -> str:
        return self.target.host

    @property
    def port(self) -> int:
        return self.target.port

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def is_connected(self) -> bool:
        return not self._closed and self.client is not None and self.client.is_connected

    # --------------------
    # Protocol access
    # --------------------
    def sftp(self):
        """SFTP client of the target session"""
        return self.client.open_sftp()

    def exec_with_code(self, cmd: str) -> Tuple[str, str, int]:
        """Run a one-shot command on the target"""
        return self.client.exec_with_code(cmd)

    @contextmanager
    def exclusive(self) -> Iterator["Session"]:
        """Hold the session for one in-flight operation"""
        with self._op_lock:
            yield self

    # --------------------
    # Teardown
    # --------------------
    def close(self) -> None:
        """
        Release every owned resource: tunnel, then bastion, then target.

        Idempotent. Parts that were never created are skipped and a failing
        step does not prevent the remaining ones.
        """
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        if self.tunnel is not None:
            _release(self.tunnel, "stop", "tunnel")
            _release(self.tunnel, "close", "tunnel")
        if self.bastion is not None:
            _release(self.bastion, "disconnect", "bastion")
            _release(self.bastion, "close", "bastion")
        if self.client is not None:
            _release(self.client, "disconnect", "target")
            _release(self.client, "close", "target")

        logger.debug(f"Session {self.id} to {self.target.display_name} released")

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def __repr__(self) -> str:
        via = " via bastion" if self.bastion is not None else ""
        state = "closed" if self._closed else "open"
        return f"Session({self.target.display_name}{via}, {state})"


def _release(resource: Any, method: str, label: str) -> None:
    try:
        getattr(resource, method)()
    except Exception as e:
        logger.warning(f"Error during {label} {method}: {e}")


@contextmanager
def hold_sessions(*sessions: Optional[Session]) -> Iterator[None]:
    """
    Hold several sessions exclusively.

    Locks are taken in a stable order so two relays running in opposite
    directions cannot deadlock.
    """
    unique = {s.id: s for s in sessions if s is not None}
    with ExitStack() as stack:
        for session_id in sorted(unique):
            stack.enter_context(unique[session_id].exclusive())
        yield
