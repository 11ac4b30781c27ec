"""
Server-to-server relay - streams remote files between two sessions
without staging them on the local disk
"""
from typing import Callable, List, Optional, Sequence, Union

from ...core.exceptions import CancelledError, PermissionDeniedError, TransferError
from ...core.logging import get_logger
from ...core.utils import join_remote, remote_parent
from ..connection.session import Session, hold_sessions
from ..listing.models import FileEntry
from .cancel import CancelToken, ensure_token
from .integrity import verify_remote_copy
from .models import ProgressSink, TransferConfig, TransferProgress
from .streams import (
    checked_entry_name,
    copy_stream,
    ensure_remote_dir,
    list_remote_directory,
    remote_entry,
    remote_size,
    transfer_errors,
)

logger = get_logger(__name__)


class RelayEngine:
    """
    Remote -> remote copies.

    Both sessions are held exclusively for the whole call. A file that fails
    is recorded and the walk moves on; the failures are reported together
    once everything else has been attempted.
    """

    def __init__(self, config: Optional[TransferConfig] = None):
        self.config = config or TransferConfig()

    def transfer(
        self,
        source: Session,
        destination: Session,
        items: Sequence[Union[FileEntry, str]],
        dest_dir: str,
        progress: Optional[ProgressSink] = None,
        cancel: Optional[CancelToken] = None,
    ) -> int:
        """
        Copy remote entries from source into dest_dir on destination.

        Args:
            source: Session holding the items
            destination: Session receiving them
            items: Remote entries, or paths to stat on the source
            dest_dir: Destination directory
            progress: Optional progress sink (total unknown)
            cancel: Optional cancel token

        Returns:
            Number of files copied

        Raises:
            TransferError: Listing the failed files, after the walk finished
            CancelledError: If cancelled
        """
        cancel = ensure_token(cancel)
        failed: List[str] = []
        # files copied, files attempted
        counter = [0, 0]

        with hold_sessions(source, destination):
            self._mkdir(destination, dest_dir)
            for item in items:
                cancel.raise_if_cancelled()
                entry = item if isinstance(item, FileEntry) else remote_entry(source.sftp(), item)
                self._relay_entry(source, destination, entry, dest_dir, progress, cancel, counter, failed)

        if failed:
            raise TransferError(
                f"{len(failed)} file(s) failed to transfer: {', '.join(failed)}"
            )
        return counter[0]

    def _relay_entry(
        self,
        source: Session,
        destination: Session,
        entry: FileEntry,
        dest_dir: str,
        progress: Optional[ProgressSink],
        cancel: CancelToken,
        counter: List[int],
        failed: List[str],
    ) -> None:
        try:
            target_path = join_remote(dest_dir, checked_entry_name(entry.name))
        except TransferError as e:
            logger.error(f"Skipping {entry.full_path}: {e}")
            failed.append(entry.full_path)
            return

        if entry.is_directory:
            self._mkdir(destination, target_path)
            try:
                children = list_remote_directory(source.sftp(), entry.full_path)
            except PermissionDeniedError as e:
                logger.warning(f"Skipping {entry.full_path}: {e}")
                return
            for child in children:
                cancel.raise_if_cancelled()
                self._relay_entry(source, destination, child, target_path, progress, cancel, counter, failed)
            return

        counter[1] += 1
        if progress:
            progress(TransferProgress(
                current_item_name=entry.name,
                items_processed=counter[1],
                message=f"Transferring {entry.name}...",
            ))

        try:
            self.relay_file(source, destination, entry, target_path, cancel)
        except CancelledError:
            raise
        except TransferError as e:
            logger.error(f"Failed to transfer {entry.full_path}: {e}")
            failed.append(entry.full_path)
            return
        counter[0] += 1

    def relay_file(
        self,
        source: Session,
        destination: Session,
        entry: FileEntry,
        target_path: str,
        cancel: Optional[CancelToken] = None,
        on_chunk: Optional[Callable[[int], None]] = None,
        on_offset: Optional[Callable[[int], None]] = None,
    ) -> int:
        """
        Stream one file from source to destination.

        Resumes when the destination already holds a shorter prefix,
        otherwise overwrites it.

        Returns:
            Number of bytes copied
        """
        cancel = ensure_token(cancel)

        with hold_sessions(source, destination), \
                transfer_errors(f"relay {entry.full_path} -> {target_path}"):
            src_sftp = source.sftp()
            dst_sftp = destination.sftp()
            ensure_remote_dir(dst_sftp, remote_parent(target_path))

            existing = remote_size(dst_sftp, target_path)
            offset = existing if 0 < existing < entry.size else 0
            if on_offset:
                on_offset(offset)

            with src_sftp.open(entry.full_path, 'rb') as src_f:
                if offset:
                    logger.info(f"Resuming relay of {entry.name} at byte {offset}/{entry.size}")
                    src_f.seek(offset)
                    dst_f = dst_sftp.open(target_path, 'r+b')
                    dst_f.seek(offset)
                else:
                    dst_f = dst_sftp.open(target_path, 'wb')
                with dst_f:
                    copied = copy_stream(src_f, dst_f, self.config.buffer_size, cancel, on_chunk)

            logger.debug(f"[relay] {entry.full_path} -> {target_path} ({copied} bytes)")

            if self.config.verify and entry.size > self.config.verify_threshold:
                verify_remote_copy(
                    source, destination, entry.full_path, target_path, self.config.hash_algorithm
                )

        return copied

    @staticmethod
    def _mkdir(session: Session, path: str) -> None:
        """Best-effort directory creation, existing directories are fine"""
        try:
            ensure_remote_dir(session.sftp(), path)
        except OSError as e:
            logger.debug(f"mkdir {path} on {session.host} failed: {e}")
