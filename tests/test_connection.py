"""
Connection manager: credential resolution, bastion chaining, teardown order
"""
import paramiko
import pytest

from remotefs.core.exceptions import AuthError, ConnectionError
from remotefs.domain.connection import ConnectionManager, HostProtocol, HostTarget, Session
from remotefs.domain.connection.models import Credential, SecretKind
from remotefs.infrastructure.state.inventory import InventoryStore
from remotefs.infrastructure.state.vault import MemoryVault

from conftest import FakeClient, RecordingTunnel

BASTION = HostTarget(id=2, host="bastion.example", port=2222, name="jump", credential_id=2)


def build_inventory(*hosts):
    inventory = InventoryStore.from_dict({
        "credentials": [
            {"id": 1, "username": "deploy", "kind": "password"},
            {"id": 2, "username": "jumper", "kind": "password"},
        ],
    })
    inventory.add_host(BASTION)
    for host in hosts:
        inventory.add_host(host)
    return inventory


class Recorder:
    """Client and tunnel factories appending to one shared event list"""

    def __init__(self, fail_on=None, tunnel_starts=True):
        self.events = []
        self.calls = []
        self.tunnels = []
        self.fail_on = fail_on or {}
        self.tunnel_starts = tunnel_starts

    def client_factory(self, host, port, credential, **options):
        label = "bastion" if credential.username == "jumper" else "target"
        self.calls.append((label, host, port, credential, options))
        self.events.append(f"{label}.connect")
        if label in self.fail_on:
            raise self.fail_on[label]
        return FakeClient(host, port, events=self.events, label=label)

    def tunnel_factory(self, client, local_port, remote_host, remote_port):
        tunnel = RecordingTunnel(
            client, local_port, remote_host, remote_port, self.events, self.tunnel_starts
        )
        self.tunnels.append(tunnel)
        return tunnel


def build_manager(recorder, inventory, vault=None):
    return ConnectionManager(
        credentials=inventory,
        hosts=inventory,
        vault=vault or MemoryVault({"credential_1": "s3cret", "credential_2": "jump-pass"}),
        client_factory=recorder.client_factory,
        tunnel_factory=recorder.tunnel_factory,
        port_allocator=lambda: 40022,
    )


def test_direct_connect_uses_target_credential():
    target = HostTarget(id=1, host="web.example", credential_id=1)
    recorder = Recorder()
    manager = build_manager(recorder, build_inventory(target))

    session = manager.connect(target)

    assert isinstance(session, Session)
    assert session.bastion is None and session.tunnel is None
    label, host, port, credential, options = recorder.calls[0]
    assert (label, host, port) == ("target", "web.example", 22)
    assert credential.username == "deploy"
    assert credential.secret == "s3cret"
    assert options["host_key_alias"] is None
    assert manager.active_sessions() == [session]


def test_bastion_reference_chains_through_loopback_tunnel():
    target = HostTarget(
        id=1, host="10.0.0.5", port=22, credential_id=1,
        use_bastion=True, bastion_host_id=2,
        bastion_host="ignored.example", bastion_credential_id=1,
    )
    recorder = Recorder()
    manager = build_manager(recorder, build_inventory(target))

    session = manager.connect(target)

    assert recorder.events == ["bastion.connect", "tunnel.start", "target.connect"]
    assert recorder.calls[0][1:3] == ("bastion.example", 2222)
    tunnel = recorder.tunnels[0]
    assert (tunnel.local_port, tunnel.remote_host, tunnel.remote_port) == (40022, "10.0.0.5", 22)
    assert tunnel.client is session.bastion
    _, host, port, credential, options = recorder.calls[1]
    assert (host, port) == ("127.0.0.1", 40022)
    assert credential.username == "deploy"
    assert options["host_key_alias"] == "10.0.0.5"


def test_inline_bastion_used_when_reference_missing():
    target = HostTarget(
        id=1, host="db.internal", port=5022, credential_id=1, use_bastion=True,
        bastion_host_id=99, bastion_host="edge.example", bastion_port=22, bastion_credential_id=2,
    )
    recorder = Recorder()
    manager = build_manager(recorder, build_inventory(target))

    manager.connect(target)

    assert recorder.calls[0][1:3] == ("edge.example", 22)
    assert recorder.calls[1][4]["host_key_alias"] == "[db.internal]:5022"


def test_incomplete_bastion_config_rejected():
    target = HostTarget(id=1, host="db.internal", credential_id=1, use_bastion=True)
    recorder = Recorder()
    manager = build_manager(recorder, build_inventory(target))

    with pytest.raises(ConnectionError, match="Incomplete bastion"):
        manager.connect(target)
    assert recorder.events == []


def test_missing_credentials_fail_before_connecting():
    target = HostTarget(id=1, host="web.example", credential_id=None)
    recorder = Recorder()
    manager = build_manager(recorder, build_inventory(target))

    with pytest.raises(ConnectionError, match="Missing credentials"):
        manager.connect(target)
    assert recorder.calls == []


def test_missing_secret_in_vault():
    target = HostTarget(id=1, host="web.example", credential_id=1)
    recorder = Recorder()
    manager = build_manager(recorder, build_inventory(target), vault=MemoryVault())

    with pytest.raises(ConnectionError, match="No secret"):
        manager.connect(target)


def test_target_failure_tears_down_tunnel_then_bastion():
    target = HostTarget(id=1, host="10.0.0.5", credential_id=1, use_bastion=True, bastion_host_id=2)
    recorder = Recorder(fail_on={"target": paramiko.AuthenticationException("denied")})
    manager = build_manager(recorder, build_inventory(target))

    with pytest.raises(ConnectionError, match="Authentication failed"):
        manager.connect(target)

    assert recorder.events == [
        "bastion.connect",
        "tunnel.start",
        "target.connect",
        "tunnel.stop",
        "tunnel.close",
        "bastion.disconnect",
        "bastion.close",
    ]
    assert manager.active_sessions() == []


def test_tunnel_that_does_not_start_is_a_connection_error():
    target = HostTarget(id=1, host="10.0.0.5", credential_id=1, use_bastion=True, bastion_host_id=2)
    recorder = Recorder(tunnel_starts=False)
    manager = build_manager(recorder, build_inventory(target))

    with pytest.raises(ConnectionError, match="tunnel"):
        manager.connect(target)

    assert "target.connect" not in recorder.events
    assert recorder.events[-2:] == ["bastion.disconnect", "bastion.close"]


def test_unreachable_host_mapped_to_connection_error():
    target = HostTarget(id=1, host="web.example", credential_id=1)
    recorder = Recorder(fail_on={"target": OSError("No route to host")})
    manager = build_manager(recorder, build_inventory(target))

    with pytest.raises(ConnectionError, match="Cannot reach"):
        manager.connect(target)


def test_auth_error_propagates_unchanged():
    target = HostTarget(id=1, host="web.example", credential_id=1)
    recorder = Recorder(fail_on={"target": AuthError("bad key")})
    manager = build_manager(recorder, build_inventory(target))

    with pytest.raises(AuthError):
        manager.connect(target)


def test_non_ssh_protocol_rejected():
    target = HostTarget(id=1, host="win.example", credential_id=1, protocol=HostProtocol.WINRM)
    recorder = Recorder()
    manager = build_manager(recorder, build_inventory(target))

    with pytest.raises(ConnectionError, match="Unsupported protocol"):
        manager.connect(target)


def test_disconnect_releases_in_order_and_is_idempotent():
    target = HostTarget(id=1, host="10.0.0.5", credential_id=1, use_bastion=True, bastion_host_id=2)
    recorder = Recorder()
    manager = build_manager(recorder, build_inventory(target))
    session = manager.connect(target)
    recorder.events.clear()

    manager.disconnect(session)
    manager.disconnect(session)
    manager.disconnect(None)

    assert recorder.events == [
        "tunnel.stop",
        "tunnel.close",
        "bastion.disconnect",
        "bastion.close",
        "target.disconnect",
        "target.close",
    ]
    assert session.closed
    assert not session.is_connected


def test_sessions_closed_outside_the_manager_are_dropped():
    first = HostTarget(id=1, host="web.example", credential_id=1)
    second = HostTarget(id=3, host="db.example", credential_id=1)
    recorder = Recorder()
    manager = build_manager(recorder, build_inventory(first, second))

    session = manager.connect(first)
    session.close()
    assert manager.active_sessions() == []

    with manager.connect(second) as other:
        assert manager.active_sessions() == [other]
    assert manager.active_sessions() == []

    manager.close_all()
    assert manager._sessions == {}


def test_teardown_continues_after_a_failing_step():
    events = []

    class ExplodingTunnel(RecordingTunnel):
        def stop(self):
            events.append("tunnel.stop")
            raise RuntimeError("already gone")

    bastion = FakeClient(events=events, label="bastion")
    target = FakeClient(events=events, label="target")
    tunnel = ExplodingTunnel(bastion, 1, "h", 22, events)
    session = Session(HostTarget(id=1, host="h"), client=target, bastion=bastion, tunnel=tunnel)

    session.close()

    assert events == [
        "tunnel.stop",
        "tunnel.close",
        "bastion.disconnect",
        "bastion.close",
        "target.disconnect",
        "target.close",
    ]


def test_credential_vault_key_and_secret_kind():
    credential = Credential.from_dict({"id": 7, "username": "ops", "kind": "private_key"})
    assert credential.vault_key == "credential_7"
    assert credential.kind == SecretKind.PRIVATE_KEY
