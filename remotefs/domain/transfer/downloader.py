"""
Download engine - remote files and directory trees to the local disk
"""
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

from ...core.exceptions import PermissionDeniedError, TransferError
from ...core.logging import get_logger
from ..connection.session import Session
from ..listing.models import FileEntry
from .cancel import CancelToken, ensure_token
from .integrity import verify_integrity
from .models import ProgressSink, TransferConfig, TransferProgress
from .streams import checked_entry_name, copy_stream, list_remote_directory, remote_entry, transfer_errors

logger = get_logger(__name__)


class DownloadEngine:
    """Resumable remote -> local downloads over one session"""

    def __init__(self, config: Optional[TransferConfig] = None):
        self.config = config or TransferConfig()

    def download(
        self,
        session: Session,
        remote_items: Sequence[Union[FileEntry, str]],
        dest_local_dir: Union[str, Path],
        progress: Optional[ProgressSink] = None,
        cancel: Optional[CancelToken] = None,
    ) -> int:
        """
        Download remote files and directory trees into a local directory.

        The remote tree is walked as it is downloaded, so the total is
        unknown and progress records carry ``total_items = -1``.

        Args:
            session: Connected session
            remote_items: Remote entries, or paths to stat
            dest_local_dir: Local destination directory
            progress: Optional progress sink, called once per file
            cancel: Optional cancel token

        Returns:
            Number of files downloaded

        Raises:
            TransferError: If a file fails to download
            CancelledError: If cancelled
        """
        cancel = ensure_token(cancel)
        dest = Path(dest_local_dir).expanduser()
        dest.mkdir(parents=True, exist_ok=True)
        counter = [0]

        with session.exclusive():
            for item in remote_items:
                cancel.raise_if_cancelled()
                entry = item if isinstance(item, FileEntry) else remote_entry(session.sftp(), item)
                self._download_entry(session, entry, dest, progress, cancel, counter)

        return counter[0]

    def _download_entry(
        self,
        session: Session,
        entry: FileEntry,
        local_dir: Path,
        progress: Optional[ProgressSink],
        cancel: CancelToken,
        counter: List[int],
    ) -> None:
        local_path = local_dir / checked_entry_name(entry.name)

        if not entry.is_directory:
            counter[0] += 1
            if progress:
                progress(TransferProgress(
                    current_item_name=entry.name,
                    items_processed=counter[0],
                    message=f"Downloading {entry.name}...",
                ))
            self.download_file(session, entry, local_path, cancel)
            return

        local_path.mkdir(parents=True, exist_ok=True)
        try:
            children = list_remote_directory(session.sftp(), entry.full_path)
        except PermissionDeniedError as e:
            logger.warning(f"Skipping {entry.full_path}: {e}")
            return

        for child in children:
            cancel.raise_if_cancelled()
            self._download_entry(session, child, local_path, progress, cancel, counter)

    def download_file(
        self,
        session: Session,
        entry: FileEntry,
        local_path: Union[str, Path],
        cancel: Optional[CancelToken] = None,
        on_chunk: Optional[Callable[[int], None]] = None,
        on_offset: Optional[Callable[[int], None]] = None,
    ) -> int:
        """
        Download one file, resuming when the local copy is a shorter prefix.

        Returns:
            Number of bytes received
        """
        local_path = Path(local_path)
        cancel = ensure_token(cancel)
        if entry.is_directory:
            raise TransferError(f"Not a file: {entry.full_path}")

        local_path.parent.mkdir(parents=True, exist_ok=True)
        existing = local_path.stat().st_size if local_path.exists() else 0
        offset = existing if 0 < existing < entry.size else 0
        if on_offset:
            on_offset(offset)

        with session.exclusive(), transfer_errors(f"download {entry.full_path} -> {local_path}"):
            sftp = session.sftp()
            with sftp.open(entry.full_path, 'rb') as remote_f:
                if offset:
                    logger.info(f"Resuming download of {entry.name} at byte {offset}/{entry.size}")
                    remote_f.seek(offset)
                    mode = 'ab'
                else:
                    mode = 'wb'
                prefetch = getattr(remote_f, "prefetch", None)
                if prefetch is not None:
                    prefetch(entry.size)
                with open(local_path, mode) as local_f:
                    received = copy_stream(remote_f, local_f, self.config.buffer_size, cancel, on_chunk)

        logger.debug(f"[download] {entry.full_path} -> {local_path} ({received} bytes)")

        if self.config.verify and entry.size > self.config.verify_threshold:
            with session.exclusive():
                verify_integrity(session, local_path, entry.full_path, self.config.hash_algorithm)

        return received
