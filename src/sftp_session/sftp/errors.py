"""Error taxonomy for SFTP sessions."""

from enum import Enum
from typing import Optional

from ..utils.error_handler import ErrorCategory, ErrorSeverity


class SFTPErrorCode(Enum):
    """Tag identifying why an SFTP session operation failed."""
    ALREADY_CONNECTED = "already_connected"
    CONNECT_FAILED = "connect_failed"
    AUTH_FAILED = "auth_failed"
    SUBSYSTEM_INIT_FAILED = "subsystem_init_failed"
    NOT_CONNECTED = "not_connected"
    DIRECTORY_ALREADY_EXISTS = "directory_already_exists"
    DIRECTORY_CREATE_FAILED = "directory_create_failed"
    SOURCE_UNREADABLE = "source_unreadable"
    REMOTE_STREAM_OPEN_FAILED = "remote_stream_open_failed"
    REMOTE_WRITE_INCOMPLETE = "remote_write_incomplete"
    REMOTE_READ_FAILED = "remote_read_failed"
    LOCAL_WRITE_FAILED = "local_write_failed"
    NOT_A_FILE = "not_a_file"
    STAT_FAILED = "stat_failed"
    DIRECTORY_OPEN_FAILED = "directory_open_failed"
    DELETE_FAILED = "delete_failed"


_LOCAL_CODES = {SFTPErrorCode.SOURCE_UNREADABLE, SFTPErrorCode.LOCAL_WRITE_FAILED}


class SFTPError(Exception):
    """Base exception for SFTP session operations."""

    category = ErrorCategory.SFTP_FILE_OPERATION
    severity = ErrorSeverity.MEDIUM

    def __init__(self, message: str, code: SFTPErrorCode, path: Optional[str] = None):
        super().__init__(message)
        self.code = code
        self.path = path


class SFTPConnectionError(SFTPError):
    """Raised for lifecycle failures: connecting, authenticating, session state."""

    category = ErrorCategory.SFTP_CONNECTION
    severity = ErrorSeverity.HIGH


class AlreadyConnectedError(SFTPConnectionError):
    severity = ErrorSeverity.MEDIUM

    def __init__(self, message: str = "Already connected."):
        super().__init__(message, SFTPErrorCode.ALREADY_CONNECTED)


class ConnectError(SFTPConnectionError):
    """Raised when the transport to host:port cannot be established."""

    def __init__(self, message: str):
        super().__init__(message, SFTPErrorCode.CONNECT_FAILED)


class AuthError(SFTPConnectionError):
    """Raised when authentication is rejected or credentials are unusable."""

    category = ErrorCategory.SFTP_AUTHENTICATION

    def __init__(self, message: str, username: str):
        super().__init__(message, SFTPErrorCode.AUTH_FAILED)
        self.username = username


class SubsystemError(SFTPConnectionError):
    """Raised when the SFTP subsystem cannot be started on the transport."""

    def __init__(self, message: str = "Can't initialize SFTP subsystem."):
        super().__init__(message, SFTPErrorCode.SUBSYSTEM_INIT_FAILED)


class NotConnectedError(SFTPConnectionError):
    category = ErrorCategory.VALIDATION
    severity = ErrorSeverity.MEDIUM

    def __init__(self, message: str = "SFTP session is not connected."):
        super().__init__(message, SFTPErrorCode.NOT_CONNECTED)


class SFTPFileError(SFTPError):
    """Raised when a remote or local file operation fails."""

    def __init__(self, message: str, code: SFTPErrorCode, path: Optional[str] = None):
        super().__init__(message, code, path)
        if code in _LOCAL_CODES:
            self.category = ErrorCategory.LOCAL_FILE_OPERATION
