"""Shared fixtures for sftp-session tests."""

import os
from pathlib import Path
from unittest.mock import Mock

import pytest
from paramiko import SFTPAttributes

from sftp_session.config.models import ConnectionConfig
from sftp_session.sftp.session import SftpSession
from sftp_session.sftp.transport import SecureTransport
from sftp_session.utils.error_handler import reset_error_handler


ENV_VARS = [
    'SFTP_HOST', 'SFTP_PORT', 'SFTP_USERNAME', 'SFTP_PASSWORD',
    'SFTP_PUBLIC_KEY', 'SFTP_PRIVATE_KEY', 'SFTP_PASSPHRASE',
    'SFTP_TIMEOUT', 'SFTP_KNOWN_HOSTS', 'SFTP_TMP_PREFIX', 'SFTP_TMP_DIR',
    'LOG_DIR', 'LOG_LEVEL', 'LOG_FILE_LEVEL', 'LOG_RETENTION_DAYS', 'ERROR_LOG_DIR',
]


class LocalSFTPClient:
    """Stand-in for ``paramiko.SFTPClient`` that serves a local directory.

    Remote paths are absolute POSIX paths rooted at ``root``.
    """

    def __init__(self, root: Path):
        self.root = root
        self.close_calls = 0

    def _local(self, path: str) -> Path:
        return self.root / path.lstrip("/")

    def open(self, path, mode="r"):
        return open(self._local(path), mode)

    def stat(self, path):
        return SFTPAttributes.from_stat(os.stat(self._local(path)))

    def mkdir(self, path, mode=0o777):
        os.mkdir(self._local(path), mode)

    def remove(self, path):
        os.remove(self._local(path))

    def listdir_attr(self, path="."):
        directory = self._local(path)
        return [
            SFTPAttributes.from_stat(os.lstat(directory / name), name)
            for name in sorted(os.listdir(directory))
        ]

    def close(self):
        self.close_calls += 1


@pytest.fixture(autouse=True)
def clean_state(monkeypatch):
    """Isolate tests from the caller's environment and the global error handler."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_error_handler()
    yield
    reset_error_handler()


@pytest.fixture
def remote_root(tmp_path) -> Path:
    root = tmp_path / "remote"
    root.mkdir()
    return root


@pytest.fixture
def local_dir(tmp_path) -> Path:
    directory = tmp_path / "local"
    directory.mkdir()
    return directory


@pytest.fixture
def sftp_client(remote_root) -> LocalSFTPClient:
    return LocalSFTPClient(remote_root)


@pytest.fixture
def ssh_client() -> Mock:
    return Mock(name="ssh_client")


@pytest.fixture
def transport(ssh_client, sftp_client) -> Mock:
    mock_transport = Mock(spec=SecureTransport)
    mock_transport.open.return_value = ssh_client
    mock_transport.open_subsystem.return_value = sftp_client
    return mock_transport


@pytest.fixture
def config(local_dir) -> ConnectionConfig:
    return ConnectionConfig(
        host="sftp.example.com",
        username="deploy",
        password="secret",
        tmp_dir=str(local_dir)
    )


@pytest.fixture
def session(config, transport):
    sftp_session = SftpSession(config, transport)
    sftp_session.connect()
    yield sftp_session
    sftp_session.disconnect()
