"""
Shared fakes: an in-memory SFTP server, a client double and recording
connection factories
"""
import hashlib
import posixpath
import shlex
import stat
import threading
import time

import pytest

from remotefs.domain.connection.models import Credential, HostTarget, SecretKind
from remotefs.domain.connection.session import Session


class FakeAttributes:
    def __init__(self, filename, st_size=0, st_mode=0, st_mtime=None):
        self.filename = filename
        self.st_size = st_size
        self.st_mode = st_mode
        self.st_mtime = st_mtime


class FakeRemoteFile:
    """File handle over one entry of a FakeSFTP"""

    def __init__(self, sftp, path, mode):
        self.sftp = sftp
        self.path = path
        self.mode = mode
        self.pos = 0

    def seek(self, offset, whence=0):
        self.pos = offset

    def read(self, size=-1):
        data = self.sftp.files[self.path]
        if size is None or size < 0:
            chunk = bytes(data[self.pos:])
        else:
            chunk = bytes(data[self.pos:self.pos + size])
        self.pos += len(chunk)
        return chunk

    def write(self, data):
        with self.sftp.lock:
            content = self.sftp.files[self.path]
            if self.pos > len(content):
                content.extend(b"\0" * (self.pos - len(content)))
            content[self.pos:self.pos + len(data)] = data
            self.sftp.writes.append((self.path, self.pos, len(data)))
        self.pos += len(data)
        if self.sftp.write_delay:
            time.sleep(self.sftp.write_delay)

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class FakeSFTP:
    """
    In-memory stand-in for paramiko.SFTPClient.

    ``denied`` holds directories whose listing raises PermissionError and
    ``broken`` holds files whose open raises OSError.
    """

    def __init__(self):
        self.files = {}
        self.dirs = {"/"}
        self.modes = {}
        self.denied = set()
        self.broken = set()
        self.writes = []
        self.listdir_calls = []
        self.opened = []
        self.write_delay = 0.0
        self.lock = threading.Lock()

    # helpers for tests
    def add_file(self, path, content=b"", mode=0o644):
        self.makedirs(posixpath.dirname(path))
        self.files[path] = bytearray(content)
        self.modes[path] = mode

    def makedirs(self, path):
        parts = [p for p in path.split("/") if p]
        current = ""
        for part in parts:
            current += "/" + part
            self.dirs.add(current)

    def content(self, path):
        return bytes(self.files[path])

    # SFTPClient API
    def stat(self, path):
        path = posixpath.normpath(path)
        if path in self.dirs:
            return FakeAttributes(posixpath.basename(path), 0, stat.S_IFDIR | self.modes.get(path, 0o755), 1700000000)
        if path in self.files:
            return FakeAttributes(
                posixpath.basename(path), len(self.files[path]),
                stat.S_IFREG | self.modes.get(path, 0o644), 1700000000,
            )
        raise FileNotFoundError(2, "No such file", path)

    def listdir_attr(self, path):
        path = posixpath.normpath(path)
        self.listdir_calls.append(path)
        if path in self.denied:
            raise PermissionError(13, "Permission denied", path)
        if path not in self.dirs:
            raise FileNotFoundError(2, "No such file", path)
        children = {
            p for p in list(self.dirs) + list(self.files)
            if p != path and posixpath.dirname(p) == path
        }
        attrs = [FakeAttributes("."), FakeAttributes("..")]
        attrs.extend(self.stat(p) for p in sorted(children))
        return attrs

    def open(self, path, mode="r"):
        path = posixpath.normpath(path)
        self.opened.append((path, mode))
        if path in self.broken:
            raise OSError(5, "Input/output error", path)
        if posixpath.dirname(path) not in self.dirs:
            raise FileNotFoundError(2, "No such file", path)
        if mode == "wb":
            with self.lock:
                self.files[path] = bytearray()
        elif path not in self.files:
            raise FileNotFoundError(2, "No such file", path)
        return FakeRemoteFile(self, path, mode)

    def mkdir(self, path, mode=0o777):
        path = posixpath.normpath(path)
        if path in self.dirs or path in self.files:
            raise OSError(17, "File exists", path)
        if posixpath.dirname(path) not in self.dirs:
            raise FileNotFoundError(2, "No such file", path)
        self.dirs.add(path)

    def rename(self, old, new):
        if old in self.files:
            self.files[new] = self.files.pop(old)
        elif old in self.dirs:
            self.dirs.discard(old)
            self.dirs.add(new)
        else:
            raise FileNotFoundError(2, "No such file", old)

    def remove(self, path):
        if path not in self.files:
            raise FileNotFoundError(2, "No such file", path)
        del self.files[path]

    def rmdir(self, path):
        if any(posixpath.dirname(p) == path for p in list(self.files) + list(self.dirs)):
            raise OSError(39, "Directory not empty", path)
        self.dirs.discard(path)

    def chmod(self, path, mode):
        self.stat(path)
        self.modes[path] = mode


class FakeClient:
    """
    RemoteClient double backed by a FakeSFTP.

    Hash commands are answered from the in-memory files unless a
    ``hash_override`` is set; other commands go to ``responses``.
    """

    def __init__(self, host="fake", port=22, sftp=None, events=None, label="target"):
        self.host = host
        self.port = port
        self.sftp_client = sftp or FakeSFTP()
        self.events = events if events is not None else []
        self.label = label
        self.connected = True
        self.commands = []
        self.responses = {}
        self.hash_override = None

    @property
    def is_connected(self):
        return self.connected

    def open_sftp(self):
        return self.sftp_client

    def exec_with_code(self, cmd):
        self.commands.append(cmd)
        if cmd.split(" ", 1)[0] in ("md5sum", "sha1sum", "sha256sum"):
            argv = shlex.split(cmd)
            if self.hash_override is not None:
                return f"{self.hash_override}  {argv[1]}\n", "", 0
            algorithm = argv[0][:-3]
            data = self.sftp_client.files.get(argv[1])
            if data is None:
                return "", f"{argv[0]}: {argv[1]}: No such file\n", 1
            return f"{hashlib.new(algorithm, bytes(data)).hexdigest()}  {argv[1]}\n", "", 0
        for prefix, response in self.responses.items():
            if cmd.startswith(prefix):
                return response
        return "", "", 0

    def disconnect(self):
        self.connected = False
        self.events.append(f"{self.label}.disconnect")

    def close(self):
        self.events.append(f"{self.label}.close")


class RecordingTunnel:
    """LocalForwardTunnel double recording its lifecycle"""

    def __init__(self, client, local_port, remote_host, remote_port, events, start_ok=True):
        self.client = client
        self.local_port = local_port
        self.remote_host = remote_host
        self.remote_port = remote_port
        self.events = events
        self.start_ok = start_ok
        self.is_started = False

    def start(self):
        self.events.append("tunnel.start")
        self.is_started = self.start_ok

    def stop(self):
        self.events.append("tunnel.stop")
        self.is_started = False

    def close(self):
        self.events.append("tunnel.close")


def make_session(host="fake", port=22, sftp=None, events=None):
    target = HostTarget(id=abs(hash((host, port))) % 10000, host=host, port=port)
    return Session(target, client=FakeClient(host, port, sftp, events))


@pytest.fixture
def sftp():
    return FakeSFTP()


@pytest.fixture
def session(sftp):
    return make_session("alpha", 22, sftp)


@pytest.fixture
def password_credential():
    return Credential(id=1, username="deploy", kind=SecretKind.PASSWORD)
