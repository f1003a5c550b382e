"""Configuration data models for SFTP sessions."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional


class CredentialMode(Enum):
    """How a session authenticates."""
    PASSWORD = "password"
    KEY = "key"


@dataclass(frozen=True)
class ConnectionConfig:
    """Immutable connection settings for an SFTP session.

    Key-based credentials take precedence over a password when both are
    present. Secrets are kept out of ``repr``.
    """
    host: str
    port: int = 22
    username: str = ""
    password: Optional[str] = field(default=None, repr=False)
    public_key_path: Optional[str] = None
    private_key_path: Optional[str] = None
    passphrase: Optional[str] = field(default=None, repr=False)
    tmp_prefix: str = ""
    tmp_dir: Optional[str] = None
    timeout: float = 30.0
    known_hosts_file: Optional[str] = None

    def __post_init__(self):
        if not self.host:
            raise ValueError("Host is required")
        if not (1 <= self.port <= 65535):
            raise ValueError(f"Port must be between 1 and 65535, got {self.port}")
        if self.timeout <= 0:
            raise ValueError("Timeout must be positive")

    @property
    def credential_mode(self) -> Optional[CredentialMode]:
        """The credential mode ``connect`` will use, or ``None`` if unusable."""
        if self.username and self.public_key_path and self.private_key_path:
            return CredentialMode.KEY
        if self.username and self.password:
            return CredentialMode.PASSWORD
        return None

    def with_login(self, username: str, password: str) -> "ConnectionConfig":
        return replace(self, username=username, password=password)

    def with_key_login(self, username: str, public_key_path: str, private_key_path: str,
                       passphrase: Optional[str] = None) -> "ConnectionConfig":
        return replace(
            self,
            username=username,
            public_key_path=public_key_path,
            private_key_path=private_key_path,
            passphrase=passphrase
        )

    def with_tmp_prefix(self, prefix: str) -> "ConnectionConfig":
        return replace(self, tmp_prefix=prefix)


@dataclass
class LoggingConfig:
    """Configuration for console and file logging.

    Set ``retention_days`` to 0 to disable automatic cleanup of old log files.
    """
    log_dir: Optional[str] = None
    console_level: str = "INFO"
    file_level: str = "DEBUG"
    enable_colors: bool = True
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5
    retention_days: int = 0  # 0 = disabled
    error_log_dir: Optional[str] = None
