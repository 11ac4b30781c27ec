"""
Listing domain models
"""
import stat
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import NamedTuple, Optional

from ...core.utils import format_bytes, join_remote


class SortColumn(str, Enum):
    """Column used to order a listing"""
    NAME = "name"
    SIZE = "size"
    DATE = "date"

    @classmethod
    def parse(cls, value) -> "SortColumn":
        """Parse a column name, falling back to NAME for unknown values"""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.NAME


class CacheKey(NamedTuple):
    """Structured listing cache key"""
    host: str
    port: int
    path: str


@dataclass(frozen=True)
class FileEntry:
    """One file or directory of a listing"""
    name: str
    full_path: str
    is_directory: bool
    size: int = 0
    modified: Optional[datetime] = None
    is_local: bool = False
    mode: Optional[int] = None

    @property
    def size_display(self) -> str:
        if self.is_directory:
            return ""
        return format_bytes(self.size)

    @classmethod
    def from_sftp_attr(cls, directory: str, attr) -> "FileEntry":
        """Build a remote entry from a paramiko SFTPAttributes"""
        is_dir = stat.S_ISDIR(attr.st_mode or 0)
        return cls(
            name=attr.filename,
            full_path=join_remote(directory, attr.filename),
            is_directory=is_dir,
            size=0 if is_dir else (attr.st_size or 0),
            modified=datetime.fromtimestamp(attr.st_mtime) if attr.st_mtime else None,
            is_local=False,
            mode=stat.S_IMODE(attr.st_mode) if attr.st_mode is not None else None,
        )
