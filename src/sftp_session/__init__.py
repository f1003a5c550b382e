"""Session wrapper for SFTP file operations over paramiko."""

from .config import ConnectionConfig, CredentialMode, ConfigManager, ConfigurationError
from .sftp import (
    SftpSession, SessionState, RemoteEntry, EntryType, SecureTransport,
    SFTPErrorCode, SFTPError, SFTPConnectionError, SFTPFileError,
    AlreadyConnectedError, ConnectError, AuthError, SubsystemError, NotConnectedError
)

__version__ = "0.1.0"

__all__ = [
    'SftpSession', 'SessionState', 'RemoteEntry', 'EntryType', 'SecureTransport',
    'ConnectionConfig', 'CredentialMode', 'ConfigManager', 'ConfigurationError',
    'SFTPErrorCode', 'SFTPError', 'SFTPConnectionError', 'SFTPFileError',
    'AlreadyConnectedError', 'ConnectError', 'AuthError', 'SubsystemError', 'NotConnectedError'
]
