"""Configuration manager for SFTP sessions."""

import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from .models import ConnectionConfig, LoggingConfig


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""
    pass


class ConfigManager:
    """Loads connection and logging settings from the environment and ``.env`` files."""

    def __init__(self, env_file: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None):
        """Initialize the configuration manager.

        Args:
            env_file: Explicit ``.env`` path; the default search is used when omitted
            overrides: Values taking precedence over the environment (``None`` values are ignored)
        """
        if env_file:
            load_dotenv(env_file)
        else:
            load_dotenv()
        self._config = self._load_config()
        for key, value in (overrides or {}).items():
            if value is not None:
                self._config[key] = value
        self._validate_required_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from environment variables."""
        return {
            # Connection
            'SFTP_HOST': os.getenv('SFTP_HOST'),
            'SFTP_PORT': self._int_env('SFTP_PORT', '22'),
            'SFTP_USERNAME': os.getenv('SFTP_USERNAME'),
            'SFTP_PASSWORD': os.getenv('SFTP_PASSWORD'),
            'SFTP_PUBLIC_KEY': os.getenv('SFTP_PUBLIC_KEY'),
            'SFTP_PRIVATE_KEY': os.getenv('SFTP_PRIVATE_KEY'),
            'SFTP_PASSPHRASE': os.getenv('SFTP_PASSPHRASE'),
            'SFTP_TIMEOUT': self._float_env('SFTP_TIMEOUT', '30'),
            'SFTP_KNOWN_HOSTS': os.getenv('SFTP_KNOWN_HOSTS'),

            # Downloads without an explicit destination
            'SFTP_TMP_PREFIX': os.getenv('SFTP_TMP_PREFIX', ''),
            'SFTP_TMP_DIR': os.getenv('SFTP_TMP_DIR'),

            # Logging (retention 0 = disabled)
            'LOG_DIR': os.getenv('LOG_DIR'),
            'LOG_LEVEL': os.getenv('LOG_LEVEL', 'INFO'),
            'LOG_FILE_LEVEL': os.getenv('LOG_FILE_LEVEL', 'DEBUG'),
            'LOG_RETENTION_DAYS': self._int_env('LOG_RETENTION_DAYS', '0'),
            'ERROR_LOG_DIR': os.getenv('ERROR_LOG_DIR'),
        }

    @staticmethod
    def _int_env(name: str, default: str) -> int:
        raw = os.getenv(name, default)
        try:
            return int(raw)
        except ValueError:
            raise ConfigurationError(f"{name} must be an integer, got {raw!r}")

    @staticmethod
    def _float_env(name: str, default: str) -> float:
        raw = os.getenv(name, default)
        try:
            return float(raw)
        except ValueError:
            raise ConfigurationError(f"{name} must be a number, got {raw!r}")

    def _validate_required_config(self) -> None:
        """Validate that all required configuration is present."""
        required_fields = ['SFTP_HOST', 'SFTP_USERNAME']

        missing_fields = [field for field in required_fields if not self._config.get(field)]
        if missing_fields:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing_fields)}"
            )

        if not (1 <= self._config['SFTP_PORT'] <= 65535):
            raise ConfigurationError("SFTP_PORT must be between 1 and 65535")

        if self._config['SFTP_TIMEOUT'] <= 0:
            raise ConfigurationError("SFTP_TIMEOUT must be positive")

        has_public = bool(self._config.get('SFTP_PUBLIC_KEY'))
        has_private = bool(self._config.get('SFTP_PRIVATE_KEY'))
        if has_public != has_private:
            raise ConfigurationError("SFTP_PUBLIC_KEY and SFTP_PRIVATE_KEY must be set together")

        if not has_private and not self._config.get('SFTP_PASSWORD'):
            raise ConfigurationError(
                "Either SFTP_PASSWORD or SFTP_PUBLIC_KEY/SFTP_PRIVATE_KEY must be set"
            )

        if self._config['LOG_RETENTION_DAYS'] < 0:
            raise ConfigurationError("LOG_RETENTION_DAYS cannot be negative")

    def get_connection_config(self) -> ConnectionConfig:
        """Get the SFTP connection configuration."""
        return ConnectionConfig(
            host=self._config['SFTP_HOST'],
            port=self._config['SFTP_PORT'],
            username=self._config['SFTP_USERNAME'],
            password=self._config.get('SFTP_PASSWORD'),
            public_key_path=self._config.get('SFTP_PUBLIC_KEY'),
            private_key_path=self._config.get('SFTP_PRIVATE_KEY'),
            passphrase=self._config.get('SFTP_PASSPHRASE'),
            tmp_prefix=self._config.get('SFTP_TMP_PREFIX') or '',
            tmp_dir=self._config.get('SFTP_TMP_DIR'),
            timeout=self._config['SFTP_TIMEOUT'],
            known_hosts_file=self._config.get('SFTP_KNOWN_HOSTS')
        )

    def get_logging_config(self) -> LoggingConfig:
        """Get logging configuration."""
        return LoggingConfig(
            log_dir=self._config.get('LOG_DIR'),
            console_level=self._config['LOG_LEVEL'],
            file_level=self._config['LOG_FILE_LEVEL'],
            retention_days=self._config['LOG_RETENTION_DAYS'],
            error_log_dir=self._config.get('ERROR_LOG_DIR')
        )

    def get_config_value(self, key: str, default: Any = None) -> Any:
        """Get a specific configuration value."""
        return self._config.get(key, default)
