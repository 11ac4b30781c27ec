"""
Transfer domain module
"""
from .models import (
    TransferConfig,
    TransferProgress,
    TransferTask,
    TaskStatus,
    TransferDirection,
    ProgressSink,
)
from .cancel import CancelToken
from .integrity import compute_file_hash, compute_remote_hash, verify_integrity, verify_remote_copy
from .uploader import UploadEngine, scan_local_sources
from .downloader import DownloadEngine
from .relay import RelayEngine
from .queue import TransferQueue
from .service import TransferService

__all__ = [
    "TransferConfig",
    "TransferProgress",
    "TransferTask",
    "TaskStatus",
    "TransferDirection",
    "ProgressSink",
    "CancelToken",
    "compute_file_hash",
    "compute_remote_hash",
    "verify_integrity",
    "verify_remote_copy",
    "UploadEngine",
    "scan_local_sources",
    "DownloadEngine",
    "RelayEngine",
    "TransferQueue",
    "TransferService",
]
