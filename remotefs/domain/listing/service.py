"""
Listing service - local and cached remote directory enumeration
"""
import os
import stat
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Union

import paramiko

from ...core.exceptions import ConnectionError, PermissionDeniedError, TransferError
from ...core.logging import get_logger
from ...core.utils import normalize_remote_path
from ..connection.session import Session
from .cache import ListingCache
from .models import CacheKey, FileEntry, SortColumn

logger = get_logger(__name__)

PSEUDO_ENTRIES = (".", "..")


def sort_entries(
    entries: Iterable[FileEntry],
    sort_column: Union[str, SortColumn] = SortColumn.NAME,
    ascending: bool = True,
) -> List[FileEntry]:
    """
    Order entries: directories first, then files, each group by column.

    The sort is stable, so ties keep the original listing order in both
    directions.
    """
    column = SortColumn.parse(sort_column)
    if column == SortColumn.SIZE:
        key = lambda e: e.size
    elif column == SortColumn.DATE:
        key = lambda e: e.modified or datetime.min
    else:
        key = lambda e: e.name.casefold()

    ordered = sorted(entries, key=key, reverse=not ascending)
    return [e for e in ordered if e.is_directory] + [e for e in ordered if not e.is_directory]


class ListingService:
    """
    Directory listing for navigation and recursive traversal.

    Remote listings are cached per (host, port, path) in an owned
    ``ListingCache``.
    """

    def __init__(self, cache: Optional[ListingCache] = None):
        self.cache = cache or ListingCache()

    # --------------------
    # Local
    # --------------------
    def list_local(
        self,
        path: Union[str, Path],
        sort_column: Union[str, SortColumn] = SortColumn.NAME,
        ascending: bool = True,
    ) -> List[FileEntry]:
        """
        List a local directory.

        Missing or unreadable directories give an empty list.
        """
        directory = Path(path).expanduser()
        if not directory.is_dir():
            return []

        entries: List[FileEntry] = []
        try:
            with os.scandir(directory) as it:
                for item in it:
                    try:
                        info = item.stat()
                    except OSError as e:
                        logger.debug(f"Skipping unreadable local entry {item.path}: {e}")
                        continue
                    is_dir = stat.S_ISDIR(info.st_mode)
                    entries.append(FileEntry(
                        name=item.name,
                        full_path=os.path.abspath(item.path),
                        is_directory=is_dir,
                        size=0 if is_dir else info.st_size,
                        modified=datetime.fromtimestamp(info.st_mtime),
                        is_local=True,
                        mode=stat.S_IMODE(info.st_mode),
                    ))
        except PermissionError:
            return []
        except OSError as e:
            logger.error(f"Local listing of {directory} failed: {e}")
            return []

        return sort_entries(entries, sort_column, ascending)

    # --------------------
    # Remote
    # --------------------
    def list_remote(
        self,
        session: Optional[Session],
        path: str,
        sort_column: Union[str, SortColumn] = SortColumn.NAME,
        ascending: bool = True,
        force_refresh: bool = False,
    ) -> List[FileEntry]:
        """
        List a remote directory, served from cache unless force_refresh.

        Returns an empty list when the session is missing or disconnected.

        Raises:
            PermissionDeniedError: Permission denied while listing
            TransferError: I/O failure while listing
            ConnectionError: The session dropped during the listing
        """
        if session is None or not session.is_connected:
            return []

        key = self.cache_key(session, path)

        if not force_refresh:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug(f"Cache hit: {key.path}")
                return sort_entries(cached, sort_column, ascending)

        logger.debug(f"Cache miss: {key.path}")
        generation = self.cache.generation
        entries = self.fetch_remote(session, key.path)
        if not self.cache.put(key, entries, generation):
            logger.debug(f"Listing of {key.path} invalidated while fetching, not cached")
        return sort_entries(entries, sort_column, ascending)

    def fetch_remote(self, session: Session, path: str) -> List[FileEntry]:
        """List a remote directory bypassing the cache, in listing order"""
        try:
            with session.exclusive():
                attrs = session.sftp().listdir_attr(path)
        except PermissionError as e:
            raise PermissionDeniedError(f"Permission denied listing {path}: {e}") from e
        except (paramiko.SSHException, EOFError) as e:
            raise ConnectionError(f"Session lost while listing {path}: {e}") from e
        except OSError as e:
            raise TransferError(f"Failed to list {path}: {e}") from e

        return [
            FileEntry.from_sftp_attr(path, attr)
            for attr in attrs
            if attr.filename not in PSEUDO_ENTRIES
        ]

    # --------------------
    # Cache control
    # --------------------
    @staticmethod
    def cache_key(session: Session, path: str) -> CacheKey:
        return CacheKey(session.host, session.port, normalize_remote_path(path))

    def invalidate_cache(self) -> None:
        """Drop every cached listing"""
        self.cache.clear()

    def invalidate_path(self, session: Session, path: str) -> None:
        """Drop the cached listing of one directory"""
        self.cache.discard(self.cache_key(session, path))
