"""
Single-item remote file operations: rename, delete, edit, chmod, archives
"""
import posixpath
import re
import shlex
import stat
from datetime import datetime
from typing import Optional, Union

from ...core.exceptions import TransferError
from ...core.logging import get_logger
from ...core.utils import normalize_remote_path, remote_parent
from ..connection.session import Session
from ..listing.models import FileEntry
from ..listing.service import ListingService
from ..transfer.streams import transfer_errors

logger = get_logger(__name__)

_OCTAL_MODE = re.compile(r"^[0-7]{3,4}$")

# suffix -> extraction command
SUPPORTED_ARCHIVES = {
    ".tar.gz": "tar -xzf",
    ".tgz": "tar -xzf",
    ".gz": "tar -xzf",
    ".tar.bz2": "tar -xjf",
    ".bz2": "tar -xjf",
    ".zip": "unzip",
}


def parse_octal_mode(octal: str) -> int:
    """
    Parse a permission string such as ``"755"`` or ``"0644"``.

    Raises:
        ValueError: Not three or four octal digits
    """
    value = (octal or "").strip()
    if not _OCTAL_MODE.match(value):
        raise ValueError(f"Invalid permission mode: {octal!r}")
    return int(value, 8)


class RemoteFileOps:
    """
    File operations on one remote session.

    Operations that change a directory's contents discard that directory's
    cached listing so the next ``list_remote`` fetches fresh.
    """

    def __init__(self, listing: Optional[ListingService] = None):
        self.listing = listing

    def rename(self, session: Session, old_path: str, new_path: str) -> None:
        with session.exclusive(), transfer_errors(f"rename {old_path} -> {new_path}"):
            session.sftp().rename(old_path, new_path)
        self._invalidate(session, remote_parent(old_path))
        self._invalidate(session, remote_parent(new_path))

    def delete(self, session: Session, item: Union[FileEntry, str]) -> None:
        """Delete a file or an empty directory"""
        with session.exclusive(), transfer_errors(f"delete {item}"):
            sftp = session.sftp()
            if isinstance(item, FileEntry):
                path, is_dir = item.full_path, item.is_directory
            else:
                path = item
                is_dir = stat.S_ISDIR(sftp.stat(path).st_mode or 0)
            if is_dir:
                sftp.rmdir(path)
            else:
                sftp.remove(path)
        self._invalidate(session, remote_parent(path))

    def create_directory(self, session: Session, path: str) -> None:
        with session.exclusive(), transfer_errors(f"mkdir {path}"):
            session.sftp().mkdir(path)
        self._invalidate(session, remote_parent(path))

    def read_text(self, session: Session, path: str, encoding: str = "utf-8") -> str:
        with session.exclusive(), transfer_errors(f"read {path}"):
            with session.sftp().open(path, 'rb') as f:
                data = f.read()
        return data.decode(encoding, errors="replace")

    def write_text(self, session: Session, path: str, content: str, encoding: str = "utf-8") -> None:
        """Overwrite a remote file with text content"""
        with session.exclusive(), transfer_errors(f"write {path}"):
            with session.sftp().open(path, 'wb') as f:
                f.write(content.encode(encoding))
        self._invalidate(session, remote_parent(path))

    def get_permissions(self, session: Session, path: str) -> str:
        """Permission bits of a remote path as an octal string (``"755"``)"""
        with session.exclusive(), transfer_errors(f"stat {path}"):
            mode = session.sftp().stat(path).st_mode or 0
        return format(stat.S_IMODE(mode), "03o")

    def set_permissions(self, session: Session, path: str, octal: str) -> None:
        """
        Change permission bits.

        Raises:
            ValueError: If octal is not a valid permission string
        """
        mode = parse_octal_mode(octal)
        with session.exclusive(), transfer_errors(f"chmod {path}"):
            session.sftp().chmod(path, mode)
        self._invalidate(session, remote_parent(path))

    # --------------------
    # Archives
    # --------------------
    def compress(self, session: Session, path: str, now: Optional[datetime] = None) -> str:
        """
        Create ``<name>_<YYYYmmdd_HHMMSS>.tar.gz`` next to path.

        Returns:
            Remote path of the archive
        """
        path = normalize_remote_path(path)
        directory = remote_parent(path)
        name = posixpath.basename(path)
        stamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
        archive = f"{name}_{stamp}.tar.gz"

        self._run(
            session,
            f"cd {shlex.quote(directory)} && tar -czf {shlex.quote(archive)} {shlex.quote(name)}",
            f"compress {path}",
        )
        self._invalidate(session, directory)
        logger.info(f"Archive created: {archive}")
        return posixpath.join(directory, archive)

    def extract(self, session: Session, archive_path: str) -> str:
        """
        Extract an archive into its own directory.

        Returns:
            Directory the archive was extracted into

        Raises:
            TransferError: Unsupported archive format or extraction failure
        """
        archive_path = normalize_remote_path(archive_path)
        directory = remote_parent(archive_path)
        name = posixpath.basename(archive_path)

        lowered = name.lower()
        tool = next(
            (cmd for suffix, cmd in SUPPORTED_ARCHIVES.items() if lowered.endswith(suffix)),
            None,
        )
        if tool is None:
            raise TransferError(f"Unsupported archive format: {name}")

        self._run(
            session,
            f"cd {shlex.quote(directory)} && {tool} {shlex.quote(name)}",
            f"extract {archive_path}",
        )
        self._invalidate(session, directory)
        logger.info(f"Archive extracted: {name}")
        return directory

    @staticmethod
    def _run(session: Session, command: str, action: str) -> str:
        with session.exclusive(), transfer_errors(action):
            out, err, code = session.exec_with_code(command)
        if code != 0:
            raise TransferError(f"{action} failed ({code}): {err.strip() or out.strip()}")
        return out

    def _invalidate(self, session: Session, directory: str) -> None:
        if self.listing is not None:
            self.listing.invalidate_path(session, directory)
