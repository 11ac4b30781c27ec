"""
Server status models
"""
from dataclasses import dataclass, field
from typing import List


@dataclass
class ProcessInfo:
    """One row of the process table"""
    pid: str
    user: str
    command: str
    cpu: str = "0"
    mem: str = "0"
    state: str = ""

    @property
    def cpu_value(self) -> float:
        return _to_float(self.cpu)

    @property
    def mem_value(self) -> float:
        return _to_float(self.mem)


@dataclass
class DiskInfo:
    """One mounted block device"""
    name: str
    size: str
    used: str
    mount: str


@dataclass
class ServerStatus:
    """Snapshot of host metrics; unparsed fields keep their defaults"""
    cpu_percent: float = 0.0
    ram_percent: float = 0.0
    ram_text: str = ""
    ram_total: str = ""
    disk_percent: float = 0.0
    disk_text: str = ""
    uptime: str = ""
    os_name: str = ""
    cpu_model: str = ""
    cpu_cores: str = ""
    kernel_version: str = ""
    ip_address: str = ""
    network_interface: str = ""
    rx_bytes: int = 0
    tx_bytes: int = 0
    processes: List[ProcessInfo] = field(default_factory=list)
    disks: List[DiskInfo] = field(default_factory=list)


def _to_float(value: str) -> float:
    try:
        return float(value.strip().replace(",", "."))
    except (AttributeError, ValueError):
        return 0.0
