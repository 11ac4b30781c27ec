"""
Transfer service - entry point for direct and queued transfers
"""
from pathlib import Path
from typing import Optional, Sequence, Union

from ...core.logging import get_logger
from ...core.utils import join_remote, remote_parent
from ..connection.session import Session
from ..listing.models import FileEntry
from ..listing.service import ListingService
from .cancel import CancelToken
from .downloader import DownloadEngine
from .models import ProgressSink, TransferConfig, TransferDirection, TransferTask
from .queue import TransferQueue
from .relay import RelayEngine
from .streams import remote_entry
from .uploader import UploadEngine

logger = get_logger(__name__)


class TransferService:
    """
    Transfer service - pure business logic.

    Direct calls (``upload``, ``download``, ``transfer_between_servers``) run
    on the caller's thread. The ``queue_*`` variants wrap a single file as a
    ``TransferTask`` and hand it to the bounded queue.
    """

    def __init__(
        self,
        config: Optional[TransferConfig] = None,
        listing: Optional[ListingService] = None,
        queue: Optional[TransferQueue] = None,
    ):
        """
        Initialize transfer service.

        Args:
            config: Transfer configuration
            listing: Listing service whose cache is invalidated after writes
            queue: Task queue (created from config if None)
        """
        self.config = config or TransferConfig()
        self.config.validate()
        self.listing = listing
        self.queue = queue or TransferQueue(self.config)
        self.uploader = UploadEngine(self.config)
        self.downloader = DownloadEngine(self.config)
        self.relay = RelayEngine(self.config)

    # --------------------
    # Direct transfers
    # --------------------
    def upload(
        self,
        session: Session,
        source_paths: Sequence[Union[str, Path]],
        dest_dir: str,
        progress: Optional[ProgressSink] = None,
        cancel: Optional[CancelToken] = None,
    ) -> int:
        """Upload local files and directories into dest_dir. Returns the file count."""
        try:
            count = self.uploader.upload(session, source_paths, dest_dir, progress, cancel)
        finally:
            self._invalidate(session, dest_dir)
        logger.info(f"Uploaded {count} file(s) to {session.host}:{dest_dir}")
        return count

    def download(
        self,
        session: Session,
        remote_items: Sequence[Union[FileEntry, str]],
        dest_local_dir: Union[str, Path],
        progress: Optional[ProgressSink] = None,
        cancel: Optional[CancelToken] = None,
    ) -> int:
        """Download remote entries into a local directory. Returns the file count."""
        count = self.downloader.download(session, remote_items, dest_local_dir, progress, cancel)
        logger.info(f"Downloaded {count} file(s) from {session.host} to {dest_local_dir}")
        return count

    def transfer_between_servers(
        self,
        source: Session,
        destination: Session,
        items: Sequence[Union[FileEntry, str]],
        dest_dir: str,
        progress: Optional[ProgressSink] = None,
        cancel: Optional[CancelToken] = None,
    ) -> int:
        """
        Copy remote entries from one session to another.

        Raises:
            TransferError: Listing every file that failed, after the walk
        """
        try:
            count = self.relay.transfer(source, destination, items, dest_dir, progress, cancel)
        finally:
            self._invalidate(destination, dest_dir)
        logger.info(f"Transferred {count} file(s) {source.host} -> {destination.host}:{dest_dir}")
        return count

    # --------------------
    # Queued transfers
    # --------------------
    def queue_upload(self, session: Session, local_path: Union[str, Path], remote_path: str) -> TransferTask:
        """Queue a single-file upload"""
        local_path = Path(local_path).expanduser()
        task = TransferTask(
            direction=TransferDirection.UPLOAD,
            source_path=str(local_path),
            destination_path=remote_path,
            file_name=local_path.name,
            total_bytes=local_path.stat().st_size,
        )

        def run(task: TransferTask, cancel: CancelToken) -> None:
            try:
                self.uploader.upload_file(
                    session, local_path, remote_path, cancel,
                    on_chunk=task.add_bytes,
                    on_offset=task.set_bytes_transferred,
                )
            finally:
                self._invalidate(session, remote_parent(remote_path))

        return self.queue.enqueue(task, run)

    def queue_download(
        self,
        session: Session,
        remote_item: Union[FileEntry, str],
        local_path: Union[str, Path],
    ) -> TransferTask:
        """Queue a single-file download"""
        entry = remote_item
        if not isinstance(entry, FileEntry):
            with session.exclusive():
                entry = remote_entry(session.sftp(), remote_item)
        local_path = Path(local_path).expanduser()
        task = TransferTask(
            direction=TransferDirection.DOWNLOAD,
            source_path=entry.full_path,
            destination_path=str(local_path),
            file_name=entry.name,
            total_bytes=entry.size,
        )

        def run(task: TransferTask, cancel: CancelToken) -> None:
            self.downloader.download_file(
                session, entry, local_path, cancel,
                on_chunk=task.add_bytes,
                on_offset=task.set_bytes_transferred,
            )

        return self.queue.enqueue(task, run)

    def queue_server_transfer(
        self,
        source: Session,
        destination: Session,
        remote_item: Union[FileEntry, str],
        dest_dir: str,
    ) -> TransferTask:
        """Queue a single-file server-to-server copy into dest_dir"""
        entry = remote_item
        if not isinstance(entry, FileEntry):
            with source.exclusive():
                entry = remote_entry(source.sftp(), remote_item)
        target_path = join_remote(dest_dir, entry.name)
        task = TransferTask(
            direction=TransferDirection.SERVER_TO_SERVER,
            source_path=f"{source.host}:{entry.full_path}",
            destination_path=f"{destination.host}:{target_path}",
            file_name=entry.name,
            total_bytes=entry.size,
        )

        def run(task: TransferTask, cancel: CancelToken) -> None:
            try:
                self.relay.relay_file(
                    source, destination, entry, target_path, cancel,
                    on_chunk=task.add_bytes,
                    on_offset=task.set_bytes_transferred,
                )
            finally:
                self._invalidate(destination, dest_dir)

        return self.queue.enqueue(task, run)

    def start(self) -> None:
        """Start processing queued tasks"""
        self.queue.start()

    def shutdown(self, wait: bool = True) -> None:
        self.queue.shutdown(wait=wait)

    def _invalidate(self, session: Session, path: str) -> None:
        if self.listing is not None:
            self.listing.invalidate_path(session, path)
