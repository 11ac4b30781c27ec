"""
Downloads: resume by appending, recursive walk, skipped subtrees
"""
import logging

import pytest

from remotefs.core.exceptions import TransferError
from remotefs.domain.transfer import DownloadEngine, TransferConfig
from remotefs.domain.transfer.streams import checked_entry_name, remote_entry


def test_download_file_resumes_by_appending(tmp_path, session, sftp):
    data = b"0123456789" * 100
    sftp.add_file("/logs/app.log", data)
    local = tmp_path / "app.log"
    local.write_bytes(data[:300])
    offsets = []

    entry = remote_entry(sftp, "/logs/app.log")
    received = DownloadEngine().download_file(session, entry, local, on_offset=offsets.append)

    assert received == 700
    assert offsets == [300]
    assert local.read_bytes() == data


def test_download_file_truncates_larger_local_copy(tmp_path, session, sftp):
    sftp.add_file("/etc/motd", b"hello")
    local = tmp_path / "motd"
    local.write_bytes(b"an older and longer file")

    DownloadEngine().download_file(session, remote_entry(sftp, "/etc/motd"), local)

    assert local.read_bytes() == b"hello"


def test_download_tree_skips_unreadable_subdirectory(tmp_path, session, sftp, caplog):
    sftp.add_file("/data/a.txt", b"a")
    sftp.add_file("/data/sub/b.txt", b"b")
    sftp.add_file("/data/secret/c.txt", b"c")
    sftp.denied.add("/data/secret")
    records = []

    with caplog.at_level(logging.WARNING):
        count = DownloadEngine().download(session, ["/data"], tmp_path, progress=records.append)

    assert count == 2
    assert (tmp_path / "data" / "a.txt").read_bytes() == b"a"
    assert (tmp_path / "data" / "sub" / "b.txt").read_bytes() == b"b"
    assert (tmp_path / "data" / "secret").is_dir()
    assert not (tmp_path / "data" / "secret" / "c.txt").exists()
    assert "/data/secret" in caplog.text
    assert all(r.total_items == -1 for r in records)
    assert [r.items_processed for r in records] == [1, 2]


def test_download_verifies_large_files(tmp_path, session, sftp):
    sftp.add_file("/big.bin", b"x" * 5000)
    DownloadEngine(TransferConfig(verify_threshold=1000)).download(session, ["/big.bin"], tmp_path)
    assert session.client.commands == ["md5sum /big.bin"]


def test_download_accepts_entries(tmp_path, session, sftp):
    sftp.add_file("/one.txt", b"1")
    entry = remote_entry(sftp, "/one.txt")
    assert entry.name == "one.txt" and entry.full_path == "/one.txt" and entry.size == 1

    assert DownloadEngine().download(session, [entry], tmp_path / "out") == 1
    assert (tmp_path / "out" / "one.txt").read_bytes() == b"1"


def test_download_of_remote_root_stays_inside_destination(tmp_path, session, sftp):
    sftp.add_file("/marker.txt", b"m")
    dest = tmp_path / "dest"

    assert remote_entry(sftp, "/").name == "root"
    assert DownloadEngine().download(session, ["/"], dest) == 1
    assert (dest / "root" / "marker.txt").read_bytes() == b"m"


def test_entry_name_with_separator_is_refused(tmp_path, session, sftp):
    sftp.add_file("/data/ok.txt", b"ok")
    sftp.add_file("/data/..\\evil.txt", b"evil")

    with pytest.raises(TransferError, match="unsafe entry name"):
        DownloadEngine().download(session, ["/data"], tmp_path / "dest")

    assert not (tmp_path / "evil.txt").exists()
    assert not (tmp_path / "dest" / "evil.txt").exists()


@pytest.mark.parametrize("name", ["", ".", "..", "a/b", "..\\b"])
def test_checked_entry_name_rejects(name):
    with pytest.raises(TransferError):
        checked_entry_name(name)


def test_checked_entry_name_passes_plain_names():
    assert checked_entry_name("report..txt") == "report..txt"
