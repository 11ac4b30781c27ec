"""
Process control, log tailing and status parsing
"""
import pytest

from remotefs.core.exceptions import TransferError
from remotefs.domain.system import STATUS_COMMAND, get_server_status, parse_status, read_log_tail, stop_process

SAMPLE_STATUS = "\nSPLIT\n".join([
    "12.5",
    "2048|8192",
    "42%",
    "up 3 days, 4 hours",
    "",
    "Ubuntu 22.04.4 LTS",
    "    PID USER     COMMAND         %CPU %MEM S\n"
    "   1234 www-data nginx            5.2  1.3 S\n"
    "      1 root     systemd          0.0  0.1 S",
    " Intel(R) Xeon(R) CPU E5-2680 v4 @ 2.40GHz",
    "8",
    "5.15.0-105-generic",
    "10.0.0.5|eth0",
    "/dev/sda1|50G|42%|/\n/dev/sdb1|200G|10%|/data",
    "123456|654321",
])


def test_parse_full_status():
    status = parse_status(SAMPLE_STATUS)

    assert status.cpu_percent == pytest.approx(12.5)
    assert status.ram_percent == pytest.approx(25.0)
    assert status.ram_text == "2.0/8.0 GB"
    assert status.ram_total == "8.0 GB"
    assert status.disk_percent == 42
    assert status.disk_text == "42%"
    assert status.uptime == "up 3 days, 4 hours"
    assert status.os_name == "Ubuntu 22.04.4 LTS"
    assert [(p.pid, p.user, p.command) for p in status.processes] == [
        ("1234", "www-data", "nginx"),
        ("1", "root", "systemd"),
    ]
    assert status.processes[0].cpu_value == pytest.approx(5.2)
    assert status.cpu_model == "Intel(R) Xeon(R) CPU E5-2680 v4 @ 2.40GHz"
    assert status.cpu_cores == "8"
    assert status.kernel_version == "5.15.0-105-generic"
    assert (status.ip_address, status.network_interface) == ("10.0.0.5", "eth0")
    assert [(d.name, d.mount) for d in status.disks] == [("/dev/sda1", "/"), ("/dev/sdb1", "/data")]
    assert (status.rx_bytes, status.tx_bytes) == (123456, 654321)


def test_parse_garbage_gives_defaults():
    status = parse_status("not a number\nSPLIT\nbroken\nSPLIT\n")
    assert status.cpu_percent == 0.0
    assert status.ram_percent == 0.0
    assert status.processes == []
    assert status.rx_bytes == 0


def test_parse_empty_output():
    status = parse_status("")
    assert status.os_name == ""
    assert status.disks == []


def test_get_server_status_runs_one_command(session):
    session.client.responses[STATUS_COMMAND[:20]] = (SAMPLE_STATUS, "", 0)
    status = get_server_status(session)
    assert session.client.commands == [STATUS_COMMAND]
    assert status.kernel_version == "5.15.0-105-generic"


def test_get_server_status_survives_dropped_session(session):
    def dropped(cmd):
        raise EOFError("closed")

    session.client.exec_with_code = dropped
    assert get_server_status(session).cpu_percent == 0.0


def test_stop_process(session):
    stop_process(session, 4242)
    assert session.client.commands == ["kill -9 4242"]


@pytest.mark.parametrize("pid", ["", "abc", "12; rm -rf /", "-1", 0])
def test_stop_process_rejects_non_numeric_pid(session, pid):
    with pytest.raises(ValueError):
        stop_process(session, pid)
    assert session.client.commands == []


def test_stop_process_failure(session):
    session.client.responses["kill -9"] = ("", "kill: (99) - No such process", 1)
    with pytest.raises(TransferError, match="No such process"):
        stop_process(session, 99)


def test_read_log_tail(session):
    session.client.responses["tail -n 50"] = ("line1\nline2\n", "", 0)
    assert read_log_tail(session, "/var/log/syslog", lines=50) == "line1\nline2"
    assert session.client.commands == ["tail -n 50 /var/log/syslog 2>&1"]


def test_read_log_tail_with_sudo_strips_prompt(session):
    session.client.responses["printf"] = ("[sudo] password for deploy: \nsecure line\n", "", 0)

    output = read_log_tail(session, "/var/log/auth.log", lines=10, sudo_password="it's")

    assert output == "secure line"
    command = session.client.commands[0]
    assert command.startswith("printf '%s\\n' 'it'\"'\"'s' | sudo -S tail -n 10 /var/log/auth.log")


def test_read_log_tail_permission_failure_is_prefixed(session):
    session.client.responses["tail"] = ("tail: cannot open '/root/x' for reading: Permission denied\n", "", 1)
    output = read_log_tail(session, "/root/x")
    assert output.startswith("[STDERR] tail: cannot open")
