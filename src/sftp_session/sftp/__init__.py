"""SFTP module for remote file operations."""

from .errors import (
    SFTPErrorCode, SFTPError, SFTPConnectionError, SFTPFileError,
    AlreadyConnectedError, ConnectError, AuthError, SubsystemError, NotConnectedError
)
from .paths import RemotePath, resolve_remote_path
from .session import SftpSession, SessionState, RemoteEntry, EntryType
from .transport import SecureTransport

__all__ = [
    'SftpSession', 'SessionState', 'RemoteEntry', 'EntryType',
    'SecureTransport', 'RemotePath', 'resolve_remote_path',
    'SFTPErrorCode', 'SFTPError', 'SFTPConnectionError', 'SFTPFileError',
    'AlreadyConnectedError', 'ConnectError', 'AuthError', 'SubsystemError', 'NotConnectedError'
]
