"""
Server status - one batched shell command parsed into a ServerStatus
"""
from typing import List

import paramiko

from ...core.constants import STATUS_SPLIT_MARKER
from ...core.logging import get_logger
from ..connection.session import Session
from .models import DiskInfo, ProcessInfo, ServerStatus, _to_float

logger = get_logger(__name__)

# Section order matters: parse_status reads them by index.
STATUS_SECTIONS = [
    "grep 'cpu ' /proc/stat | awk '{usage=($2+$4)*100/($2+$4+$5)} END {print usage}'",
    "free -m | awk 'NR==2{printf \"%s|%s\", $3, $2}'",
    "df -h / | awk 'NR==2 {print $5}'",
    "uptime -p",
    "echo",  # reserved, the address comes from the route section
    "grep -E '^(PRETTY_NAME)=' /etc/os-release | cut -d= -f2 | tr -d '\"'",
    "ps -eo pid,user,comm,%cpu,%mem,state --sort=-%cpu",
    "grep -m1 'model name' /proc/cpuinfo | cut -d: -f2 | tr -s ' '",
    "nproc",
    "uname -r",
    "ip -o -4 route get 1.1.1.1 2>/dev/null | awk '{print $7 \"|\" $5}'",
    "df -h | grep '^/dev/' | awk '{print $1 \"|\" $2 \"|\" $5 \"|\" $6}'",
    "IFACE=$(ip -o -4 route get 1.1.1.1 2>/dev/null | awk '{print $5}'); "
    "grep \"$IFACE\" /proc/net/dev | awk '{print $2 \"|\" $10}'",
]

STATUS_COMMAND = f'; echo "{STATUS_SPLIT_MARKER}"; '.join(STATUS_SECTIONS)


def get_server_status(session: Session) -> ServerStatus:
    """
    Collect host metrics in a single round trip.

    Failures to run the command are logged and give an empty status.
    """
    try:
        with session.exclusive():
            out, _, _ = session.exec_with_code(STATUS_COMMAND)
    except (paramiko.SSHException, EOFError, OSError) as e:
        logger.warning(f"Could not read status of {session.host}: {e}")
        return ServerStatus()
    return parse_status(out)


def parse_status(output: str) -> ServerStatus:
    """Parse the output of STATUS_COMMAND; malformed sections keep defaults"""
    status = ServerStatus()
    sections = output.split(STATUS_SPLIT_MARKER)

    def section(index: int) -> str:
        return sections[index].strip() if len(sections) > index else ""

    status.cpu_percent = _to_float(section(0))

    parts = section(1).split("|")
    if len(parts) == 2:
        used, total = _to_float(parts[0]), _to_float(parts[1])
        if total > 0:
            status.ram_percent = used / total * 100
            status.ram_text = f"{used / 1024:.1f}/{total / 1024:.1f} GB"
            status.ram_total = f"{total / 1024:.1f} GB"

    disk = section(2).rstrip("%")
    if disk:
        status.disk_percent = _to_float(disk)
        status.disk_text = f"{disk}%"

    status.uptime = section(3)
    status.os_name = section(5)
    status.processes = _parse_processes(section(6))
    status.cpu_model = section(7)
    status.cpu_cores = section(8)
    status.kernel_version = section(9)

    route = section(10)
    if route:
        parts = route.split("|")
        status.ip_address = parts[0]
        if len(parts) > 1:
            status.network_interface = parts[1]

    status.disks = [
        DiskInfo(*parts[:4])
        for parts in (line.split("|") for line in section(11).splitlines())
        if len(parts) >= 4
    ]

    parts = section(12).split("|")
    if len(parts) == 2 and parts[0].strip().isdigit() and parts[1].strip().isdigit():
        status.rx_bytes = int(parts[0])
        status.tx_bytes = int(parts[1])

    return status


def _parse_processes(block: str) -> List[ProcessInfo]:
    processes = []
    for line in block.splitlines():
        cols = line.split()
        if len(cols) >= 6 and cols[0] != "PID":
            processes.append(ProcessInfo(*cols[:6]))
    return processes
