"""
Local port-forward tunnel through an SSH session
"""
import select
import socket
import socketserver
import threading
from typing import Optional

import paramiko

from ...core.client import RemoteClient
from ...core.constants import LOOPBACK_HOST
from ...core.exceptions import ConnectionError
from ...core.logging import get_logger

logger = get_logger(__name__)

FORWARD_BUFFER_SIZE = 16384


class _ForwardServer(socketserver.ThreadingMixIn, socketserver.TCPServer):
    daemon_threads = True
    allow_reuse_address = True


class LocalForwardTunnel:
    """
    SSH local port forward: local_host:local_port -> remote_host:remote_port.

    How it works:
    1. A threaded TCP server listens on the loopback port
    2. Each accepted socket opens a ``direct-tcpip`` channel on the bastion transport
    3. Bytes are relayed both ways until either side closes

    Lifecycle is ``start()`` -> ``stop()`` -> ``close()``: ``stop`` ends the
    accept loop and live relays, ``close`` releases the listening socket.
    """

    def __init__(
        self,
        client: RemoteClient,
        local_port: int,
        remote_host: str,
        remote_port: int,
        local_host: str = LOOPBACK_HOST,
    ):
        """
        Initialize tunnel.

        Args:
            client: Connected RemoteClient of the bastion
            local_port: Loopback port to listen on
            remote_host: Target host, as seen from the bastion
            remote_port: Target port
            local_host: Listening address (loopback)
        """
        self.client = client
        self.local_host = local_host
        self.local_port = local_port
        self.remote_host = remote_host
        self.remote_port = remote_port
        self._server: Optional[_ForwardServer] = None
        self._acceptor_thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._lock = threading.Lock()

    @property
    def is_started(self) -> bool:
        with self._lock:
            return (
                self._server is not None
                and not self._stop_event.is_set()
                and self._acceptor_thread is not None
                and self._acceptor_thread.is_alive()
            )

    def start(self) -> None:
        """
        Bind the local port and start accepting connections.

        Raises:
            RuntimeError: If tunnel is already running
            ConnectionError: If the bastion transport is unavailable or the port cannot be bound
        """
        with self._lock:
            if self._server is not None:
                raise RuntimeError("Tunnel is already running")

            transport = self.client.get_transport()
            if transport is None or not transport.is_active():
                raise ConnectionError("Bastion SSH transport is not available")

            tunnel = self

            class ForwardHandler(socketserver.BaseRequestHandler):
                def handle(self):
                    tunnel._handle_connection(self.request)

            try:
                self._server = _ForwardServer((self.local_host, self.local_port), ForwardHandler)
            except OSError as e:
                raise ConnectionError(
                    f"Failed to bind tunnel on {self.local_host}:{self.local_port}: {e}"
                ) from e

            self.local_port = self._server.server_address[1]
            self._stop_event.clear()
            self._acceptor_thread = threading.Thread(
                target=self._server.serve_forever,
                kwargs={"poll_interval": 0.5},
                daemon=True,
                name=f"LocalForward-{self.local_port}",
            )
            self._acceptor_thread.start()

        logger.debug(
            f"Tunnel listening on {self.local_host}:{self.local_port} -> "
            f"{self.remote_host}:{self.remote_port}"
        )

    def stop(self) -> None:
        """Stop accepting connections and end live relays"""
        with self._lock:
            if self._server is None or self._stop_event.is_set():
                return
            self._stop_event.set()
            server = self._server
            acceptor = self._acceptor_thread

        server.shutdown()
        if acceptor is not None and acceptor.is_alive():
            acceptor.join(timeout=2.0)
        logger.debug(f"Tunnel on port {self.local_port} stopped")

    def close(self) -> None:
        """Release the listening socket (stops first if needed)"""
        self.stop()
        with self._lock:
            if self._server is not None:
                self._server.server_close()
                self._server = None
            self._acceptor_thread = None

    def _handle_connection(self, sock: socket.socket) -> None:
        """Open a channel for one accepted socket and relay until closed"""
        transport = self.client.get_transport()
        if transport is None or not transport.is_active():
            logger.error("Bastion transport lost, dropping tunnel connection")
            return

        try:
            chan = transport.open_channel(
                "direct-tcpip",
                (self.remote_host, self.remote_port),
                sock.getpeername(),
            )
        except (paramiko.SSHException, OSError) as e:
            logger.error(f"Tunnel channel to {self.remote_host}:{self.remote_port} failed: {e}")
            return

        try:
            self._forward_data(sock, chan)
        finally:
            chan.close()

    def _forward_data(self, sock: socket.socket, chan: paramiko.Channel) -> None:
        """Forward data bidirectionally between the local socket and the channel"""
        while not self._stop_event.is_set():
            r, _, _ = select.select([sock, chan], [], [], 0.5)
            try:
                if sock in r:
                    data = sock.recv(FORWARD_BUFFER_SIZE)
                    if not data:
                        break
                    chan.sendall(data)
                if chan in r:
                    data = chan.recv(FORWARD_BUFFER_SIZE)
                    if not data:
                        break
                    sock.sendall(data)
            except (OSError, paramiko.SSHException):
                break

    def __repr__(self) -> str:
        state = "started" if self.is_started else "stopped"
        return (
            f"LocalForwardTunnel({self.local_host}:{self.local_port} -> "
            f"{self.remote_host}:{self.remote_port}, {state})"
        )
