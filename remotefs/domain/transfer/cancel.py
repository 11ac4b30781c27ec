"""
Cooperative cancellation
"""
import threading
from typing import Optional

from ...core.exceptions import CancelledError


class CancelToken:
    """Cancellation signal shared between a caller and a running transfer"""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CancelledError("Transfer cancelled")

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Sleep up to timeout, waking early on cancellation"""
        return self._event.wait(timeout)


def ensure_token(token: Optional[CancelToken]) -> CancelToken:
    """Return token, or a fresh never-cancelled one"""
    return token if token is not None else CancelToken()
