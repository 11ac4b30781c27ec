"""
Upload engine - local files and directories to a remote session
"""
import os
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple, Union

from ...core.constants import ROOT_ENTRY_NAME
from ...core.logging import get_logger
from ...core.utils import join_remote, remote_parent
from ..connection.session import Session
from .cancel import CancelToken, ensure_token
from .integrity import verify_integrity
from .models import ProgressSink, TransferConfig, TransferProgress
from .streams import copy_stream, ensure_remote_dir, remote_size, transfer_errors

logger = get_logger(__name__)


def scan_local_sources(source_paths: Sequence[Union[str, Path]]) -> List[Tuple[Path, str]]:
    """
    Expand local sources into (local file, relative remote path) pairs.

    Directories are walked files-first, then subdirectories, each in name
    order; the directory name itself is kept as the first path segment.
    Unreadable directories are skipped.
    """
    files: List[Tuple[Path, str]] = []
    for source in source_paths:
        path = Path(source).expanduser()
        name = path.name
        if name in ("", ".."):
            # "." and ".." name the directory they resolve to
            name = path.resolve().name or ROOT_ENTRY_NAME
        if path.is_file():
            files.append((path, name))
        elif path.is_dir():
            _scan_local_directory(path, name, files)
        else:
            logger.warning(f"Skipping missing local source: {path}")
    return files


def _scan_local_directory(directory: Path, relative_base: str, files: List[Tuple[Path, str]]) -> None:
    try:
        children = sorted(os.scandir(directory), key=lambda e: e.name)
    except PermissionError:
        logger.warning(f"Access denied to local directory {directory}, skipped")
        return

    subdirectories = []
    for child in children:
        if child.is_dir(follow_symlinks=False):
            subdirectories.append(child)
        elif child.is_file():
            files.append((Path(child.path), f"{relative_base}/{child.name}"))

    for child in subdirectories:
        _scan_local_directory(Path(child.path), f"{relative_base}/{child.name}", files)


class UploadEngine:
    """Resumable local -> remote uploads over one session"""

    def __init__(self, config: Optional[TransferConfig] = None):
        """
        Initialize upload engine.

        Args:
            config: Transfer configuration
        """
        self.config = config or TransferConfig()

    def upload(
        self,
        session: Session,
        source_paths: Sequence[Union[str, Path]],
        dest_dir: str,
        progress: Optional[ProgressSink] = None,
        cancel: Optional[CancelToken] = None,
    ) -> int:
        """
        Upload files and directory trees into dest_dir.

        Args:
            session: Connected session
            source_paths: Local files or directories
            dest_dir: Remote destination directory
            progress: Optional progress sink, called once per file
            cancel: Optional cancel token, checked between files and chunks

        Returns:
            Number of files uploaded

        Raises:
            TransferError: If a file fails to upload
            CancelledError: If cancelled
        """
        cancel = ensure_token(cancel)
        files = scan_local_sources(source_paths)
        total = len(files)

        with session.exclusive():
            for index, (local_path, relative) in enumerate(files, start=1):
                cancel.raise_if_cancelled()
                remote_path = join_remote(dest_dir, relative)

                if progress:
                    progress(TransferProgress(
                        current_item_name=local_path.name,
                        items_processed=index,
                        total_items=total,
                        message=f"Uploading {local_path.name}...",
                    ))

                self.upload_file(session, local_path, remote_path, cancel)

        return total

    def upload_file(
        self,
        session: Session,
        local_path: Union[str, Path],
        remote_path: str,
        cancel: Optional[CancelToken] = None,
        on_chunk: Optional[Callable[[int], None]] = None,
        on_offset: Optional[Callable[[int], None]] = None,
    ) -> int:
        """
        Upload one file, resuming when the remote holds a shorter prefix.

        If the remote file is smaller than the local one (and not empty) only
        the missing tail is sent; otherwise the remote file is overwritten.
        ``on_offset`` receives the starting byte offset, ``on_chunk`` the size
        of every chunk written after it.

        Returns:
            Number of bytes sent
        """
        local_path = Path(local_path)
        cancel = ensure_token(cancel)

        with session.exclusive(), transfer_errors(f"upload {local_path} -> {remote_path}"):
            sftp = session.sftp()
            ensure_remote_dir(sftp, remote_parent(remote_path))

            local_size = local_path.stat().st_size
            existing = remote_size(sftp, remote_path)
            offset = existing if 0 < existing < local_size else 0
            if on_offset:
                on_offset(offset)

            with open(local_path, 'rb') as local_f:
                if offset:
                    logger.info(f"Resuming upload of {local_path.name} at byte {offset}/{local_size}")
                    local_f.seek(offset)
                    with sftp.open(remote_path, 'r+b') as remote_f:
                        remote_f.seek(offset)
                        _pipeline(remote_f)
                        sent = copy_stream(local_f, remote_f, self.config.buffer_size, cancel, on_chunk)
                else:
                    with sftp.open(remote_path, 'wb') as remote_f:
                        _pipeline(remote_f)
                        sent = copy_stream(local_f, remote_f, self.config.buffer_size, cancel, on_chunk)

        logger.debug(f"[upload] {local_path} -> {remote_path} ({sent} bytes)")

        if self.config.verify and local_size > self.config.verify_threshold:
            with session.exclusive():
                verify_integrity(session, local_path, remote_path, self.config.hash_algorithm)

        return sent


def _pipeline(remote_file) -> None:
    """Enable write pipelining on paramiko file handles"""
    set_pipelined = getattr(remote_file, "set_pipelined", None)
    if set_pipelined is not None:
        set_pipelined(True)
