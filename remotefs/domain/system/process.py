"""
Process control and log reading on a remote host
"""
import shlex
from typing import Optional, Union

from ...core.constants import DEFAULT_LOG_TAIL_LINES
from ...core.exceptions import TransferError
from ...core.logging import get_logger
from ..connection.session import Session

logger = get_logger(__name__)

STDERR_PREFIX = "[STDERR] "
_SUDO_PROMPT = "[sudo] password for"
_FAILURE_MARKERS = ("Permission denied", "Sorry, try again")


def stop_process(session: Session, pid: Union[int, str]) -> None:
    """
    Kill a remote process with SIGKILL.

    Raises:
        ValueError: pid is not a positive integer
        TransferError: kill reported an error
    """
    pid_text = str(pid).strip()
    if not pid_text.isdigit() or int(pid_text) <= 0:
        raise ValueError(f"Invalid pid: {pid!r}")

    with session.exclusive():
        _, err, code = session.exec_with_code(f"kill -9 {pid_text}")
    if code != 0:
        raise TransferError(f"kill {pid_text} failed: {err.strip()}")
    logger.info(f"Stopped process {pid_text} on {session.host}")


def read_log_tail(
    session: Session,
    path: str,
    lines: int = DEFAULT_LOG_TAIL_LINES,
    sudo_password: Optional[str] = None,
) -> str:
    """
    Last lines of a remote file.

    With a sudo password the file is read through ``sudo -S``. Password
    prompts are stripped from the output, and permission failures come back
    as text prefixed with ``[STDERR] `` rather than as exceptions.
    """
    tail = f"tail -n {int(lines)} {shlex.quote(path)} 2>&1"
    if sudo_password:
        command = f"printf '%s\\n' {shlex.quote(sudo_password)} | sudo -S {tail}"
    else:
        command = tail

    with session.exclusive():
        out, _, _ = session.exec_with_code(command)

    result = "\n".join(line for line in out.split("\n") if _SUDO_PROMPT not in line)
    if any(marker in result for marker in _FAILURE_MARKERS):
        return STDERR_PREFIX + result.strip()
    return result.strip()
