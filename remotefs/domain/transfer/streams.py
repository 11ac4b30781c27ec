"""
Byte copy and remote filesystem helpers shared by the transfer engines
"""
import dataclasses
from contextlib import contextmanager
from typing import BinaryIO, Callable, Iterator, List, Optional

import paramiko

from ...core.constants import DEFAULT_BUFFER_SIZE, ROOT_ENTRY_NAME
from ...core.exceptions import PermissionDeniedError, RemoteError, TransferError
from ...core.logging import get_logger
from ...core.utils import normalize_remote_path, remote_parent
from ..listing.models import FileEntry
from .cancel import CancelToken

logger = get_logger(__name__)


def copy_stream(
    source: BinaryIO,
    destination: BinaryIO,
    buffer_size: int = DEFAULT_BUFFER_SIZE,
    cancel: Optional[CancelToken] = None,
    on_chunk: Optional[Callable[[int], None]] = None,
) -> int:
    """
    Copy source into destination in fixed-size chunks.

    The cancel token is checked between chunks.

    Args:
        source: Readable stream, already positioned
        destination: Writable stream, already positioned
        buffer_size: Chunk size in bytes
        cancel: Optional cancel token
        on_chunk: Called with the byte count of every written chunk

    Returns:
        Number of bytes copied

    Raises:
        CancelledError: If the token is cancelled mid-copy
    """
    copied = 0
    while True:
        if cancel is not None:
            cancel.raise_if_cancelled()
        data = source.read(buffer_size)
        if not data:
            break
        destination.write(data)
        copied += len(data)
        if on_chunk:
            on_chunk(len(data))
    return copied


def remote_size(sftp, path: str) -> int:
    """Size of a remote file, 0 when it does not exist"""
    try:
        return sftp.stat(path).st_size or 0
    except FileNotFoundError:
        return 0


def ensure_remote_dir(sftp, remote_dir: str) -> None:
    """
    Ensure remote directory exists, create if it doesn't (similar to mkdir -p).

    Creation failures are ignored: another transfer may be creating the same
    chain concurrently.

    Args:
        sftp: SFTP client
        remote_dir: Remote directory path
    """
    if not remote_dir or remote_dir in (".", "/"):
        return

    path = remote_dir.replace("\\", "/").rstrip("/")
    parts = path.split("/")
    current_path = "/" if path.startswith("/") else ""

    for part in parts:
        if not part:
            continue
        if current_path in ("", "/"):
            current_path = current_path + part
        else:
            current_path = current_path + "/" + part
        try:
            sftp.stat(current_path)
        except FileNotFoundError:
            try:
                sftp.mkdir(current_path)
            except IOError as e:
                logger.debug(f"mkdir {current_path} failed (probably created concurrently): {e}")


@contextmanager
def transfer_errors(action: str) -> Iterator[None]:
    """Map OS and protocol errors raised inside the block onto TransferError"""
    try:
        yield
    except RemoteError:
        raise
    except PermissionError as e:
        raise PermissionDeniedError(f"Permission denied: {action}: {e}") from e
    except (paramiko.SSHException, EOFError) as e:
        raise TransferError(f"Session lost during {action}: {e}") from e
    except OSError as e:
        raise TransferError(f"{action} failed: {e}") from e


def remote_entry(sftp, path: str) -> FileEntry:
    """Stat a remote path into a FileEntry"""
    path = normalize_remote_path(path)
    with transfer_errors(f"stat {path}"):
        attr = sftp.stat(path)
    attr.filename = path.rsplit("/", 1)[-1] or ROOT_ENTRY_NAME
    entry = FileEntry.from_sftp_attr(remote_parent(path), attr)
    return dataclasses.replace(entry, full_path=path)


def list_remote_directory(sftp, path: str) -> List[FileEntry]:
    """
    List a remote directory for traversal, without touching the listing cache.

    Raises:
        PermissionDeniedError: The directory is not readable
        TransferError: Any other listing failure
    """
    with transfer_errors(f"list {path}"):
        attrs = sftp.listdir_attr(path)
    return [
        FileEntry.from_sftp_attr(path, attr)
        for attr in attrs
        if attr.filename not in (".", "..")
    ]


def checked_entry_name(name: str) -> str:
    """
    Return name if it is a single path segment.

    Names are joined onto a destination directory, so separators and
    ``.``/``..`` would let an entry land outside of it.

    Raises:
        TransferError: If the name is empty, a dot entry or contains a separator
    """
    if name in ("", ".", "..") or "/" in name or "\\" in name:
        raise TransferError(f"Refusing unsafe entry name: {name!r}")
    return name
