"""
Remote file operations module
"""
from .operations import RemoteFileOps, parse_octal_mode, SUPPORTED_ARCHIVES

__all__ = [
    "RemoteFileOps",
    "parse_octal_mode",
    "SUPPORTED_ARCHIVES",
]
