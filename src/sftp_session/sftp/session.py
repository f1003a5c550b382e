"""SFTP session: connection lifecycle and remote file operations."""

import logging
import os
import stat
import tempfile
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Optional, Union

import paramiko
from paramiko import SFTPAttributes, SFTPClient, SSHClient

from ..config.models import ConnectionConfig
from ..utils.error_handler import handle_error
from ..utils.file_lock import write_bytes_locked
from .errors import (
    AlreadyConnectedError, NotConnectedError, SFTPError, SFTPErrorCode, SFTPFileError
)
from .paths import RemotePath, resolve_remote_path
from .transport import SecureTransport


logger = logging.getLogger(__name__)

# Errors paramiko raises for failed remote calls
_REMOTE_ERRORS = (IOError, paramiko.SSHException)


class SessionState(Enum):
    """Lifecycle state of an :class:`SftpSession`."""
    UNCONNECTED = "unconnected"
    CONNECTED = "connected"
    CLOSED = "closed"


class EntryType(Enum):
    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class RemoteEntry:
    """One entry of a remote directory listing."""
    type: EntryType
    parent: str
    name: str
    filepath: str

    @property
    def is_directory(self) -> bool:
        return self.type is EntryType.DIRECTORY

    def to_dict(self) -> Dict[str, str]:
        return {
            'type': self.type.value,
            'parent': self.parent,
            'name': self.name,
            'filepath': self.filepath,
        }


class SftpSession:
    """Owns one SSH transport and its SFTP subsystem and exposes file operations.

    Not safe for concurrent use. Use as a context manager to guarantee the
    handles are released::

        with SftpSession(config) as session:
            session.write("/tmp/hello.txt", b"hello")
    """

    COMPONENT = "SftpSession"

    def __init__(self, config: ConnectionConfig, transport: Optional[SecureTransport] = None):
        """
        Initialize an unconnected session.

        Args:
            config: Connection configuration
            transport: Transport used to connect; a paramiko-backed one by default
        """
        self._config = config
        self._transport = transport or SecureTransport()
        self._ssh: Optional[SSHClient] = None
        self._sftp: Optional[SFTPClient] = None
        self._state = SessionState.UNCONNECTED

    @classmethod
    def for_host(cls, host: str, port: int = 22, transport: Optional[SecureTransport] = None) -> "SftpSession":
        return cls(ConnectionConfig(host=host, port=port), transport)

    @property
    def config(self) -> ConnectionConfig:
        return self._config

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is SessionState.CONNECTED

    # Configuration

    def configure_login(self, username: str, password: str) -> "SftpSession":
        """Store password credentials used by the next :meth:`connect`."""
        self._config = self._config.with_login(username, password)
        return self

    def configure_key_login(self, username: str, public_key_path: str, private_key_path: str,
                            passphrase: Optional[str] = None) -> "SftpSession":
        """Store key-pair credentials; they take precedence over a password."""
        self._config = self._config.with_key_login(username, public_key_path, private_key_path, passphrase)
        return self

    def set_tmp_prefix(self, prefix: str) -> "SftpSession":
        """Set the filename prefix for files :meth:`download` generates."""
        self._config = self._config.with_tmp_prefix(prefix)
        return self

    # Lifecycle

    def connect(self) -> "SftpSession":
        """
        Open the transport, authenticate and start the SFTP subsystem.

        Returns:
            The connected session

        Raises:
            AlreadyConnectedError: If the session is already connected
            ConnectError: If the host cannot be reached
            AuthError: If authentication fails
            SubsystemError: If the SFTP subsystem cannot be started
        """
        if self._state is SessionState.CONNECTED:
            raise self._error(AlreadyConnectedError(), "connect")

        config = self._config
        logger.info(f"Connecting to SFTP server {config.host}:{config.port} as {config.username}")

        ssh = None
        try:
            ssh = self._transport.open(config)
            sftp = self._transport.open_subsystem(ssh)
        except SFTPError as e:
            if ssh is not None:
                self._close_handle(ssh, "SSH client")
            raise self._error(e, "connect")

        self._ssh = ssh
        self._sftp = sftp
        self._state = SessionState.CONNECTED
        logger.info(f"Successfully connected to SFTP server {config.host}:{config.port}")
        return self

    def disconnect(self) -> None:
        """Close the SFTP subsystem, then the transport. Safe to call repeatedly."""
        was_connected = self._state is SessionState.CONNECTED

        if self._sftp is not None:
            self._close_handle(self._sftp, "SFTP client")
            self._sftp = None

        if self._ssh is not None:
            self._close_handle(self._ssh, "SSH client")
            self._ssh = None

        self._state = SessionState.CLOSED
        if was_connected:
            logger.info(f"Disconnected from SFTP server {self._config.host}:{self._config.port}")

    close = disconnect

    def __enter__(self) -> "SftpSession":
        if not self.is_connected:
            self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.disconnect()

    def __del__(self):
        # __init__ may have failed before the handles existed
        if getattr(self, "_state", None) is not None:
            self.disconnect()

    def __repr__(self) -> str:
        return f"SftpSession(host={self._config.host!r}, port={self._config.port}, state={self._state.value})"

    # File operations

    def mkdir(self, remote_path: str, permissions: int = 0o777, recursive: bool = False) -> "SftpSession":
        """
        Create a remote directory.

        Args:
            remote_path: Directory to create
            permissions: Mode bits for created directories
            recursive: Create missing parent directories as well

        Raises:
            NotConnectedError: If the session is not connected
            SFTPFileError: DIRECTORY_ALREADY_EXISTS or DIRECTORY_CREATE_FAILED
        """
        target = self._resolve(remote_path, "mkdir")

        try:
            exists = target.is_dir()
            if not exists:
                if recursive:
                    self._make_parents(target, permissions)
                target.mkdir(permissions)
        except _REMOTE_ERRORS as e:
            raise self._error(SFTPFileError(
                f"Could not create directory: {remote_path}.",
                SFTPErrorCode.DIRECTORY_CREATE_FAILED,
                remote_path
            ), "mkdir", e) from e

        if exists:
            raise self._error(SFTPFileError(
                f"Directory already exist: {remote_path}.",
                SFTPErrorCode.DIRECTORY_ALREADY_EXISTS,
                remote_path
            ), "mkdir")

        logger.debug(f"Created remote directory: {remote_path}")
        return self

    def upload(self, local_path: Union[str, Path], remote_path: str) -> "SftpSession":
        """
        Upload a local file to the remote server.

        The whole file is read into memory and sent in one write stream.

        Raises:
            NotConnectedError: If the session is not connected
            SFTPFileError: SOURCE_UNREADABLE, REMOTE_STREAM_OPEN_FAILED or REMOTE_WRITE_INCOMPLETE
        """
        target = self._resolve(remote_path, "upload")
        source = Path(local_path)

        if not source.is_file() or not os.access(source, os.R_OK):
            raise self._error(SFTPFileError(
                f"Source file is not readable: {local_path}.",
                SFTPErrorCode.SOURCE_UNREADABLE,
                str(local_path)
            ), "upload")

        try:
            data = source.read_bytes()
        except OSError as e:
            raise self._error(SFTPFileError(
                f"Can't read data from {local_path}.",
                SFTPErrorCode.SOURCE_UNREADABLE,
                str(local_path)
            ), "upload", e) from e

        started = time.monotonic()
        self._write_remote(target, data, "upload")
        logger.info(f"Uploaded {local_path} to {remote_path} "
                    f"({len(data)} bytes in {time.monotonic() - started:.3f}s)")
        return self

    def read(self, remote_path: str) -> bytes:
        """
        Read a remote file to the end.

        Raises:
            NotConnectedError: If the session is not connected
            SFTPFileError: REMOTE_STREAM_OPEN_FAILED or REMOTE_READ_FAILED
        """
        target = self._resolve(remote_path, "read")

        try:
            handle = target.open('rb')
        except _REMOTE_ERRORS as e:
            raise self._error(SFTPFileError(
                f"Can't open read stream for {remote_path}.",
                SFTPErrorCode.REMOTE_STREAM_OPEN_FAILED,
                remote_path
            ), "read", e) from e

        try:
            with handle:
                contents = handle.read()
        except _REMOTE_ERRORS as e:
            raise self._error(SFTPFileError(
                f"Can't read file {remote_path}.",
                SFTPErrorCode.REMOTE_READ_FAILED,
                remote_path
            ), "read", e) from e

        logger.debug(f"Read {len(contents)} bytes from {remote_path}")
        return contents

    def download(self, remote_path: str, local_path: Optional[Union[str, Path]] = None) -> str:
        """
        Download a remote file into a local file.

        Args:
            remote_path: Remote file to fetch
            local_path: Destination; when omitted a new file is created in
                ``config.tmp_dir`` (or the system temp dir) named with
                ``config.tmp_prefix``

        Returns:
            The local path written to

        Raises:
            NotConnectedError: If the session is not connected
            SFTPFileError: any :meth:`read` failure, or LOCAL_WRITE_FAILED
        """
        started = time.monotonic()
        data = self.read(remote_path)

        generated = not local_path
        if generated:
            try:
                fd, local_path = tempfile.mkstemp(prefix=self._config.tmp_prefix, dir=self._config.tmp_dir)
                os.close(fd)
            except OSError as e:
                raise self._error(SFTPFileError(
                    "Could not create temporary download file.",
                    SFTPErrorCode.LOCAL_WRITE_FAILED
                ), "download", e) from e

        local_path = str(local_path)
        try:
            write_bytes_locked(local_path, data)
        except OSError as e:
            if generated:
                self._discard_file(local_path)
            raise self._error(SFTPFileError(
                f"Could not write data into file: {local_path}.",
                SFTPErrorCode.LOCAL_WRITE_FAILED,
                local_path
            ), "download", e) from e

        logger.info(f"Downloaded {remote_path} to {local_path} "
                    f"({len(data)} bytes in {time.monotonic() - started:.3f}s)")
        return local_path

    def write(self, remote_path: str, data: Union[bytes, str]) -> "SftpSession":
        """
        Replace the content of a remote file with ``data``.

        ``str`` data is encoded as UTF-8.
        """
        target = self._resolve(remote_path, "write")
        if isinstance(data, str):
            data = data.encode('utf-8')
        self._write_remote(target, data, "write")
        logger.debug(f"Wrote {len(data)} bytes to {remote_path}")
        return self

    def delete(self, remote_path: str) -> "SftpSession":
        """Remove a remote file; failures raise DELETE_FAILED."""
        target = self._resolve(remote_path, "delete")

        try:
            target.remove()
        except _REMOTE_ERRORS as e:
            raise self._error(SFTPFileError(
                f"Could not delete {remote_path}.",
                SFTPErrorCode.DELETE_FAILED,
                remote_path
            ), "delete", e) from e

        logger.debug(f"Deleted remote file: {remote_path}")
        return self

    def filesize(self, remote_path: str) -> int:
        """
        Return the size in bytes of a remote regular file.

        Raises:
            NotConnectedError: If the session is not connected
            SFTPFileError: NOT_A_FILE if missing or not a regular file, STAT_FAILED otherwise
        """
        target = self._resolve(remote_path, "filesize")

        try:
            attrs = target.stat()
        except IOError as e:
            raise self._error(SFTPFileError(
                f"Can't read file {remote_path}.",
                SFTPErrorCode.NOT_A_FILE,
                remote_path
            ), "filesize", e) from e
        except paramiko.SSHException as e:
            raise self._error(SFTPFileError(
                f"Can't filesize {remote_path}.",
                SFTPErrorCode.STAT_FAILED,
                remote_path
            ), "filesize", e) from e

        if attrs.st_mode is None or not stat.S_ISREG(attrs.st_mode):
            raise self._error(SFTPFileError(
                f"Can't read file {remote_path}.",
                SFTPErrorCode.NOT_A_FILE,
                remote_path
            ), "filesize")

        if attrs.st_size is None:
            raise self._error(SFTPFileError(
                f"Can't filesize {remote_path}.",
                SFTPErrorCode.STAT_FAILED,
                remote_path
            ), "filesize")

        return int(attrs.st_size)

    def list(self, dir_path: str = "/", recursive: bool = False) -> List[RemoteEntry]:
        """
        List a remote directory.

        Entries come back in the server's enumeration order. With
        ``recursive`` each directory entry is followed by its own contents.
        A path that is missing or not a directory yields an empty list.

        Raises:
            NotConnectedError: If the session is not connected
            SFTPFileError: DIRECTORY_OPEN_FAILED if the directory cannot be enumerated
        """
        target = self._resolve(dir_path, "list")
        return self._list_directory(target, recursive)

    # Internals

    def _list_directory(self, target: RemotePath, recursive: bool) -> List[RemoteEntry]:
        try:
            if not target.is_dir():
                logger.debug(f"{target.path} is not a directory, nothing to list")
                return []
            attributes = target.listdir_attr()
        except _REMOTE_ERRORS as e:
            raise self._directory_open_failed(target, e) from e

        entries = []
        for attrs in attributes:
            name = attrs.filename
            if name in ('.', '..'):
                continue

            child = target.child(name)
            try:
                is_directory = self._is_directory(child, attrs)
            except _REMOTE_ERRORS as e:
                raise self._directory_open_failed(target, e) from e

            entry_type = EntryType.DIRECTORY if is_directory else EntryType.FILE
            entries.append(RemoteEntry(
                type=entry_type,
                parent=target.path,
                name=name,
                filepath=child.path
            ))

            if recursive and entry_type is EntryType.DIRECTORY:
                entries.extend(self._list_directory(child, recursive))

        return entries

    @staticmethod
    def _is_directory(path: RemotePath, attrs: SFTPAttributes) -> bool:
        mode = attrs.st_mode
        if mode is None:
            return False
        # listdir_attr reports links themselves; follow them like stat does
        if stat.S_ISLNK(mode):
            return path.is_dir()
        return stat.S_ISDIR(mode)

    def _directory_open_failed(self, target: RemotePath, cause: Exception) -> SFTPError:
        return self._error(SFTPFileError(
            f"Can't open directory for {target.path}.",
            SFTPErrorCode.DIRECTORY_OPEN_FAILED,
            target.path
        ), "list", cause)

    def _make_parents(self, target: RemotePath, permissions: int) -> None:
        ancestors = reversed(PurePosixPath(target.path).parents)
        for ancestor in ancestors:
            if str(ancestor) in ('/', '.'):
                continue
            parent = RemotePath(target.client, str(ancestor))
            if not parent.is_dir():
                parent.mkdir(permissions)
                logger.debug(f"Created remote directory: {parent.path}")

    def _write_remote(self, target: RemotePath, data: bytes, operation: str) -> None:
        try:
            handle = target.open('wb')
        except _REMOTE_ERRORS as e:
            raise self._error(SFTPFileError(
                f"Can't open write stream for {target.path}.",
                SFTPErrorCode.REMOTE_STREAM_OPEN_FAILED,
                target.path
            ), operation, e) from e

        try:
            with handle:
                handle.write(data)
        except _REMOTE_ERRORS as e:
            raise self._error(SFTPFileError(
                f"Could not write data into file {target.path}.",
                SFTPErrorCode.REMOTE_WRITE_INCOMPLETE,
                target.path
            ), operation, e) from e

    def _resolve(self, remote_path: str, operation: str) -> RemotePath:
        if self._state is not SessionState.CONNECTED or self._sftp is None:
            raise self._error(NotConnectedError(), operation)
        return resolve_remote_path(self._sftp, remote_path)

    def _error(self, error: SFTPError, operation: str,
               cause: Optional[BaseException] = None) -> SFTPError:
        """Report ``error`` to the error handler and hand it back for raising.

        ``cause`` is the library exception behind ``error``; it is chained
        before reporting so its reason and traceback reach the logs.
        """
        additional_data: Dict[str, Any] = {
            "host": self._config.host,
            "port": self._config.port,
            "code": error.code.value,
        }
        if error.path:
            additional_data["path"] = error.path
        if cause is not None:
            error.__cause__ = cause
            additional_data["cause"] = f"{type(cause).__name__}: {cause}"

        handle_error(
            error=error,
            category=error.category,
            severity=error.severity,
            component=self.COMPONENT,
            operation=operation,
            additional_data=additional_data
        )
        return error

    @staticmethod
    def _discard_file(path: str) -> None:
        try:
            os.remove(path)
        except OSError as e:
            logger.warning(f"Could not remove partial download {path}: {e}")

    @staticmethod
    def _close_handle(handle, label: str) -> None:
        try:
            handle.close()
        except Exception as e:
            logger.warning(f"Error closing {label}: {e}")
