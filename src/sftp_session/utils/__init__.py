# Utilities module

from .error_handler import ErrorCategory, ErrorSeverity, ErrorHandler, get_error_handler, handle_error
from .file_lock import write_bytes_locked
from .logging_config import LoggingManager, setup_logging

__all__ = [
    'ErrorCategory',
    'ErrorSeverity',
    'ErrorHandler',
    'get_error_handler',
    'handle_error',
    'write_bytes_locked',
    'LoggingManager',
    'setup_logging'
]
