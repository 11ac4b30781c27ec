"""
Remote system helpers module
"""
from .models import ServerStatus, ProcessInfo, DiskInfo
from .process import stop_process, read_log_tail
from .status import get_server_status, parse_status, STATUS_COMMAND

__all__ = [
    "ServerStatus",
    "ProcessInfo",
    "DiskInfo",
    "stop_process",
    "read_log_tail",
    "get_server_status",
    "parse_status",
    "STATUS_COMMAND",
]
