"""
Core utility functions
"""
import posixpath
import socket
from typing import Optional

from .constants import LOOPBACK_HOST


# ============================================================
# Ports
# ============================================================

def get_free_local_port(host: str = LOOPBACK_HOST) -> int:
    """
    Ask the OS for a free ephemeral TCP port on the loopback interface.

    The probe socket is closed before returning so the port can be bound
    again by the caller.

    Returns:
        Port number
    """
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((host, 0))
        return sock.getsockname()[1]


# ============================================================
# Remote Path Utilities
# ============================================================

def normalize_remote_path(path: str) -> str:
    """
    Normalize a POSIX remote path.

    Collapses duplicate separators and ``.``/``..`` segments, drops trailing
    slashes and maps the empty path to ``/``.
    """
    if not path:
        return "/"
    path = path.replace("\\", "/")
    normalized = posixpath.normpath(path)
    if normalized.startswith("//"):
        normalized = "/" + normalized.lstrip("/")
    return normalized


def join_remote(directory: str, name: str) -> str:
    """Join a remote directory and a child name with a single slash"""
    directory = directory.replace("\\", "/")
    if not directory:
        return name
    return directory.rstrip("/") + "/" + name


def remote_parent(path: str) -> str:
    """Parent directory of a remote path (``/`` for top-level entries)"""
    parent = posixpath.dirname(path.replace("\\", "/").rstrip("/"))
    return parent or "/"


# ============================================================
# Formatting
# ============================================================

def format_bytes(size: int) -> str:
    """Human readable byte count (``1.5 MB``)"""
    units = ["B", "KB", "MB", "GB", "TB"]
    value = float(size)
    order = 0
    while value >= 1024 and order < len(units) - 1:
        order += 1
        value /= 1024
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {units[order]}"


def parse_size(size_str: str) -> Optional[int]:
    """
    Parse size string (e.g., "4M", "100K", "1GB") to bytes.

    Args:
        size_str: Size string

    Returns:
        Size in bytes or None if invalid
    """
    size_str = size_str.strip().upper()
    if not size_str:
        return None

    unit_multipliers = {
        "B": 1,
        "K": 1024,
        "KB": 1024,
        "M": 1024 * 1024,
        "MB": 1024 * 1024,
        "G": 1024 * 1024 * 1024,
        "GB": 1024 * 1024 * 1024,
    }

    unit = None
    for u in sorted(unit_multipliers.keys(), key=len, reverse=True):
        if size_str.endswith(u):
            unit = u
            break

    if unit:
        number_str = size_str[:-len(unit)]
    else:
        number_str = size_str
        unit = "B"

    try:
        return int(float(number_str) * unit_multipliers[unit])
    except ValueError:
        return None
