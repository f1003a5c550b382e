# Configuration module

from .models import (
    ConnectionConfig,
    CredentialMode,
    LoggingConfig
)
from .settings import ConfigManager, ConfigurationError

__all__ = [
    'ConnectionConfig',
    'CredentialMode',
    'LoggingConfig',
    'ConfigManager',
    'ConfigurationError'
]
