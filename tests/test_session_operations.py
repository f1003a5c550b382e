"""
Tests for SftpSession file operations against a local-directory backed server.
"""

import logging
import os
import stat
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import paramiko
import pytest
from paramiko import SFTPAttributes

from sftp_session.sftp.errors import SFTPErrorCode, SFTPFileError
from sftp_session.sftp.session import EntryType, RemoteEntry
from sftp_session.utils.error_handler import ErrorCategory, get_error_handler


def failing_handle(method: str, error: Exception) -> MagicMock:
    handle = MagicMock()
    handle.__enter__.return_value = handle
    getattr(handle, method).side_effect = error
    return handle


class TestReadWrite:
    """Test read and write streams."""

    @pytest.mark.parametrize("payload", [
        b"",
        b"hello world",
        bytes(range(256)),
        b"x" * (1024 * 1024 + 7),
    ], ids=["empty", "text", "binary", "large"])
    def test_write_then_read(self, session, payload):
        session.write("/data.bin", payload)

        assert session.read("/data.bin") == payload

    def test_write_replaces_content(self, session, remote_root):
        (remote_root / "notes.txt").write_bytes(b"a much longer original content")

        session.write("/notes.txt", b"short")

        assert (remote_root / "notes.txt").read_bytes() == b"short"

    def test_write_encodes_text(self, session, remote_root):
        session.write("/greeting.txt", "héllo")

        assert (remote_root / "greeting.txt").read_bytes() == "héllo".encode("utf-8")

    def test_write_returns_session(self, session):
        assert session.write("/a.txt", b"a") is session

    def test_write_open_failure(self, session):
        with pytest.raises(SFTPFileError) as exc_info:
            session.write("/missing/dir/file.txt", b"data")

        assert exc_info.value.code is SFTPErrorCode.REMOTE_STREAM_OPEN_FAILED
        assert exc_info.value.path == "/missing/dir/file.txt"

    def test_write_incomplete(self, session, sftp_client, monkeypatch):
        handle = failing_handle("write", paramiko.SSHException("channel closed"))
        monkeypatch.setattr(sftp_client, "open", lambda path, mode="r": handle)

        with pytest.raises(SFTPFileError) as exc_info:
            session.write("/file.txt", b"data")

        assert exc_info.value.code is SFTPErrorCode.REMOTE_WRITE_INCOMPLETE
        assert isinstance(exc_info.value.__cause__, paramiko.SSHException)

    def test_read_missing_file(self, session):
        with pytest.raises(SFTPFileError) as exc_info:
            session.read("/nope.txt")

        assert exc_info.value.code is SFTPErrorCode.REMOTE_STREAM_OPEN_FAILED

    def test_read_failure(self, session, sftp_client, monkeypatch):
        handle = failing_handle("read", IOError("connection lost"))
        monkeypatch.setattr(sftp_client, "open", lambda path, mode="r": handle)

        with pytest.raises(SFTPFileError) as exc_info:
            session.read("/file.txt")

        assert exc_info.value.code is SFTPErrorCode.REMOTE_READ_FAILED

    def test_failures_are_reported(self, session):
        with pytest.raises(SFTPFileError):
            session.read("/nope.txt")

        context = get_error_handler().error_history[-1]
        assert context.operation == "read"
        assert context.category == ErrorCategory.SFTP_FILE_OPERATION
        assert context.additional_data["path"] == "/nope.txt"
        assert context.additional_data["code"] == "remote_stream_open_failed"

    def test_failures_carry_underlying_reason(self, session, caplog):
        with caplog.at_level(logging.DEBUG, logger="sftp_session.utils.error_handler"):
            with pytest.raises(SFTPFileError) as exc_info:
                session.read("/missing.txt")

        assert isinstance(exc_info.value.__cause__, FileNotFoundError)
        context = get_error_handler().error_history[-1]
        assert context.additional_data["cause"].startswith("FileNotFoundError:")
        assert "No such file" in context.additional_data["cause"]
        assert "FileNotFoundError" in context.stack_trace
        warning = [r for r in caplog.records if r.levelno == logging.WARNING][-1]
        assert "SftpSession.read" in warning.getMessage()
        assert "No such file" in warning.getMessage()


class TestUploadDownload:
    """Test transfers between local files and the server."""

    def test_upload_then_download(self, session, local_dir):
        original = local_dir / "report.csv"
        original.write_bytes(b"id,value\n1,42\n" * 100)
        copy = local_dir / "copy.csv"

        session.upload(original, "/report.csv")
        result = session.download("/report.csv", str(copy))

        assert result == str(copy)
        assert copy.read_bytes() == original.read_bytes()

    def test_upload_returns_session(self, session, local_dir):
        source = local_dir / "a.txt"
        source.write_bytes(b"a")

        assert session.upload(str(source), "/a.txt") is session

    def test_upload_missing_source(self, session, local_dir):
        with pytest.raises(SFTPFileError) as exc_info:
            session.upload(local_dir / "missing.txt", "/missing.txt")

        assert exc_info.value.code is SFTPErrorCode.SOURCE_UNREADABLE
        assert exc_info.value.category == ErrorCategory.LOCAL_FILE_OPERATION

    def test_upload_directory_source(self, session, local_dir):
        with pytest.raises(SFTPFileError) as exc_info:
            session.upload(local_dir, "/dir")

        assert exc_info.value.code is SFTPErrorCode.SOURCE_UNREADABLE

    def test_upload_remote_open_failure(self, session, local_dir):
        source = local_dir / "a.txt"
        source.write_bytes(b"a")

        with pytest.raises(SFTPFileError) as exc_info:
            session.upload(source, "/no/such/dir/a.txt")

        assert exc_info.value.code is SFTPErrorCode.REMOTE_STREAM_OPEN_FAILED

    def test_download_to_generated_file(self, session, remote_root, local_dir):
        (remote_root / "export.dat").write_bytes(b"payload")
        session.set_tmp_prefix("export_")

        result = Path(session.download("/export.dat"))

        assert result.parent == local_dir
        assert result.name.startswith("export_")
        assert result.read_bytes() == b"payload"

    def test_download_truncates_existing_file(self, session, remote_root, local_dir):
        (remote_root / "small.txt").write_bytes(b"new")
        target = local_dir / "small.txt"
        target.write_bytes(b"old content that is longer")

        session.download("/small.txt", target)

        assert target.read_bytes() == b"new"

    def test_download_missing_remote(self, session, local_dir):
        with pytest.raises(SFTPFileError) as exc_info:
            session.download("/missing.txt", str(local_dir / "out.txt"))

        assert exc_info.value.code is SFTPErrorCode.REMOTE_STREAM_OPEN_FAILED
        assert not (local_dir / "out.txt").exists()

    def test_download_local_write_failure(self, session, remote_root, local_dir):
        (remote_root / "file.txt").write_bytes(b"data")

        with pytest.raises(SFTPFileError) as exc_info:
            session.download("/file.txt", str(local_dir / "no" / "such" / "dir.txt"))

        assert exc_info.value.code is SFTPErrorCode.LOCAL_WRITE_FAILED

    def test_generated_file_removed_when_write_fails(self, session, remote_root, local_dir):
        (remote_root / "file.txt").write_bytes(b"data")

        with patch("sftp_session.sftp.session.write_bytes_locked",
                   side_effect=OSError("disk full")):
            with pytest.raises(SFTPFileError) as exc_info:
                session.download("/file.txt")

        assert exc_info.value.code is SFTPErrorCode.LOCAL_WRITE_FAILED
        assert list(local_dir.iterdir()) == []

    def test_given_file_kept_when_write_fails(self, session, remote_root, local_dir):
        (remote_root / "file.txt").write_bytes(b"data")
        target = local_dir / "keep.txt"
        target.write_bytes(b"previous")

        with patch("sftp_session.sftp.session.write_bytes_locked",
                   side_effect=OSError("disk full")):
            with pytest.raises(SFTPFileError):
                session.download("/file.txt", str(target))

        assert target.exists()


class TestFilesize:
    """Test remote size queries."""

    @pytest.mark.parametrize("size", [0, 1, 4096, 100003])
    def test_filesize_after_write(self, session, size):
        session.write("/sized.bin", b"\0" * size)

        assert session.filesize("/sized.bin") == size

    def test_filesize_of_directory(self, session, remote_root):
        (remote_root / "folder").mkdir()

        with pytest.raises(SFTPFileError) as exc_info:
            session.filesize("/folder")

        assert exc_info.value.code is SFTPErrorCode.NOT_A_FILE

    def test_filesize_of_missing_path(self, session):
        with pytest.raises(SFTPFileError) as exc_info:
            session.filesize("/missing")

        assert exc_info.value.code is SFTPErrorCode.NOT_A_FILE

    def test_filesize_without_size_attribute(self, session, sftp_client, monkeypatch):
        attrs = SFTPAttributes()
        attrs.st_mode = stat.S_IFREG | 0o644
        monkeypatch.setattr(sftp_client, "stat", lambda path: attrs)

        with pytest.raises(SFTPFileError) as exc_info:
            session.filesize("/file")

        assert exc_info.value.code is SFTPErrorCode.STAT_FAILED


class TestMkdirDelete:
    """Test directory creation and file removal."""

    def test_mkdir(self, session, remote_root):
        assert session.mkdir("/incoming") is session

        assert (remote_root / "incoming").is_dir()

    def test_mkdir_existing_directory(self, session, remote_root):
        existing = remote_root / "incoming"
        existing.mkdir()
        (existing / "keep.txt").write_bytes(b"keep")

        with pytest.raises(SFTPFileError) as exc_info:
            session.mkdir("/incoming")

        assert exc_info.value.code is SFTPErrorCode.DIRECTORY_ALREADY_EXISTS
        assert (existing / "keep.txt").read_bytes() == b"keep"

    def test_mkdir_missing_parent(self, session):
        with pytest.raises(SFTPFileError) as exc_info:
            session.mkdir("/a/b/c")

        assert exc_info.value.code is SFTPErrorCode.DIRECTORY_CREATE_FAILED

    def test_mkdir_recursive(self, session, remote_root):
        (remote_root / "a").mkdir()

        session.mkdir("/a/b/c", recursive=True)

        assert (remote_root / "a" / "b" / "c").is_dir()

    def test_mkdir_over_file(self, session, remote_root):
        (remote_root / "taken").write_bytes(b"")

        with pytest.raises(SFTPFileError) as exc_info:
            session.mkdir("/taken")

        assert exc_info.value.code is SFTPErrorCode.DIRECTORY_CREATE_FAILED

    def test_mkdir_passes_permissions(self, session, sftp_client, monkeypatch):
        calls = []
        monkeypatch.setattr(sftp_client, "mkdir", lambda path, mode=0o777: calls.append((path, mode)))

        session.mkdir("/private", permissions=0o700)

        assert calls == [("/private", 0o700)]

    def test_mkdir_connection_dropped(self, session, sftp_client, monkeypatch):
        def dropped(path):
            raise paramiko.SSHException("Server connection dropped")

        monkeypatch.setattr(sftp_client, "stat", dropped)

        with pytest.raises(SFTPFileError) as exc_info:
            session.mkdir("/data")

        assert exc_info.value.code is SFTPErrorCode.DIRECTORY_CREATE_FAILED
        assert isinstance(exc_info.value.__cause__, paramiko.SSHException)
        assert get_error_handler().error_history[-1].operation == "mkdir"

    def test_delete(self, session, remote_root):
        (remote_root / "old.log").write_bytes(b"log")

        assert session.delete("/old.log") is session
        assert not (remote_root / "old.log").exists()

    def test_delete_missing_file(self, session):
        with pytest.raises(SFTPFileError) as exc_info:
            session.delete("/missing.log")

        assert exc_info.value.code is SFTPErrorCode.DELETE_FAILED

    def test_chaining(self, session, remote_root):
        session.mkdir("/work").write("/work/tmp.txt", b"x").delete("/work/tmp.txt")

        assert list(os.listdir(remote_root / "work")) == []


class TestList:
    """Test directory listings."""

    @pytest.fixture
    def tree(self, remote_root):
        (remote_root / "docs").mkdir()
        (remote_root / "docs" / "a.txt").write_bytes(b"a")
        (remote_root / "docs" / "nested").mkdir()
        (remote_root / "docs" / "nested" / "b.txt").write_bytes(b"b")
        (remote_root / "docs" / "nested" / "deeper").mkdir()
        (remote_root / "docs" / "nested" / "deeper" / "c.txt").write_bytes(b"c")
        (remote_root / "docs" / "z.txt").write_bytes(b"z")
        return remote_root

    def test_list_flat(self, session, tree):
        entries = session.list("/docs")

        assert entries == [
            RemoteEntry(EntryType.FILE, "/docs", "a.txt", "/docs/a.txt"),
            RemoteEntry(EntryType.DIRECTORY, "/docs", "nested", "/docs/nested"),
            RemoteEntry(EntryType.FILE, "/docs", "z.txt", "/docs/z.txt"),
        ]

    def test_list_recursive(self, session, tree):
        entries = session.list("/docs", recursive=True)

        assert [entry.filepath for entry in entries] == [
            "/docs/a.txt",
            "/docs/nested",
            "/docs/nested/b.txt",
            "/docs/nested/deeper",
            "/docs/nested/deeper/c.txt",
            "/docs/z.txt",
        ]
        for entry in entries:
            assert entry.filepath == f"{entry.parent}/{entry.name}"

    def test_list_root(self, session, tree):
        entries = session.list()

        assert entries == [RemoteEntry(EntryType.DIRECTORY, "/", "docs", "/docs")]

    def test_list_empty_directory(self, session, remote_root):
        (remote_root / "empty").mkdir()

        assert session.list("/empty") == []

    def test_list_missing_path(self, session):
        assert session.list("/missing") == []
        assert session.list("/missing", recursive=True) == []

    def test_list_file_path(self, session, tree):
        assert session.list("/docs/a.txt") == []

    def test_list_skips_dot_entries(self, session, sftp_client, tree, monkeypatch):
        original = sftp_client.listdir_attr

        def with_dots(path="."):
            dots = [SFTPAttributes.from_stat(os.stat(tree), name) for name in (".", "..")]
            return dots + original(path)

        monkeypatch.setattr(sftp_client, "listdir_attr", with_dots)

        names = [entry.name for entry in session.list("/docs")]

        assert names == ["a.txt", "nested", "z.txt"]

    @pytest.mark.skipif(sys.platform == "win32", reason="symlinks need privileges on Windows")
    def test_list_follows_directory_links(self, session, tree):
        os.symlink(tree / "docs" / "nested", tree / "link")

        entries = {entry.name: entry for entry in session.list("/")}

        assert entries["link"].type is EntryType.DIRECTORY

    def test_list_directory_open_failure(self, session, sftp_client, tree, monkeypatch):
        def broken(path="."):
            raise IOError("permission denied")

        monkeypatch.setattr(sftp_client, "listdir_attr", broken)

        with pytest.raises(SFTPFileError) as exc_info:
            session.list("/docs")

        assert exc_info.value.code is SFTPErrorCode.DIRECTORY_OPEN_FAILED

    def test_list_connection_dropped(self, session, sftp_client, tree, monkeypatch):
        def dropped(path):
            raise paramiko.SSHException("Server connection dropped")

        monkeypatch.setattr(sftp_client, "stat", dropped)

        with pytest.raises(SFTPFileError) as exc_info:
            session.list("/docs")

        assert exc_info.value.code is SFTPErrorCode.DIRECTORY_OPEN_FAILED
        assert get_error_handler().error_history[-1].operation == "list"

    def test_list_connection_dropped_while_following_link(self, session, sftp_client,
                                                          tree, monkeypatch):
        original_stat = sftp_client.stat
        link = SFTPAttributes()
        link.filename = "link"
        link.st_mode = stat.S_IFLNK | 0o777

        def stat_until_link(path):
            if path == "/docs/link":
                raise paramiko.SSHException("Server connection dropped")
            return original_stat(path)

        monkeypatch.setattr(sftp_client, "stat", stat_until_link)
        monkeypatch.setattr(sftp_client, "listdir_attr", lambda path=".": [link])

        with pytest.raises(SFTPFileError) as exc_info:
            session.list("/docs")

        assert exc_info.value.code is SFTPErrorCode.DIRECTORY_OPEN_FAILED
        assert exc_info.value.path == "/docs"

    def test_list_keeps_server_order(self, session, sftp_client, tree, monkeypatch):
        original = sftp_client.listdir_attr
        monkeypatch.setattr(sftp_client, "listdir_attr",
                            lambda path=".": list(reversed(original(path))))

        names = [entry.name for entry in session.list("/docs")]

        assert names == ["z.txt", "nested", "a.txt"]

    def test_entry_to_dict(self):
        entry = RemoteEntry(EntryType.DIRECTORY, "/docs", "nested", "/docs/nested")

        assert entry.is_directory
        assert entry.to_dict() == {
            "type": "directory",
            "parent": "/docs",
            "name": "nested",
            "filepath": "/docs/nested",
        }
