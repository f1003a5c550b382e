"""Logging configuration for the sftp-session tooling."""

import logging
import logging.handlers
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..config.models import LoggingConfig


class ContextFilter(logging.Filter):
    """Custom filter to add context information to log records."""

    def __init__(self, component: str = ""):
        super().__init__()
        self.component = component

    def filter(self, record):
        """Add context information to the log record."""
        if not hasattr(record, 'component'):
            record.component = self.component

        record.process_id = os.getpid()
        return True


class ColoredFormatter(logging.Formatter):
    """Colored formatter for console output."""

    # ANSI color codes
    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
        'RESET': '\033[0m'       # Reset
    }

    def format(self, record):
        """Format the log record with colors."""
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = f"{self.COLORS[levelname]}{levelname}{self.COLORS['RESET']}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


class LoggingManager:
    """Configures console and file logging for the application."""

    def __init__(self, config: Optional[LoggingConfig] = None, app_name: str = "sftp_session"):
        """Initialize the logging manager.

        Args:
            config: Logging configuration; defaults to console-only logging
            app_name: Application name for log files
        """
        self.config = config or LoggingConfig()
        self.app_name = app_name
        self.log_dir = Path(self.config.log_dir) if self.config.log_dir else None

        self.main_log_file = None
        self.error_log_file = None
        if self.log_dir is not None:
            self.main_log_file = self.log_dir / f"{app_name}.log"
            self.error_log_file = self.log_dir / f"{app_name}_errors.log"

    def setup_logging(self) -> None:
        """Install handlers on the root logger according to the configuration."""
        root_logger = logging.getLogger()
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

        root_logger.setLevel(logging.DEBUG)

        detailed_formatter = logging.Formatter(
            '[%(asctime)s] [%(levelname)-8s] [%(name)s:%(funcName)s:%(lineno)d] '
            '[PID:%(process_id)s] - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        simple_formatter = logging.Formatter(
            '[%(asctime)s] [%(levelname)-8s] - %(message)s',
            datefmt='%H:%M:%S'
        )

        # Console goes to stderr so command output on stdout stays clean
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(getattr(logging, self.config.console_level.upper()))

        if self.config.enable_colors and sys.stderr.isatty():
            console_formatter = ColoredFormatter(
                '[%(asctime)s] [%(levelname)-8s] - %(message)s',
                datefmt='%H:%M:%S'
            )
        else:
            console_formatter = simple_formatter

        console_handler.setFormatter(console_formatter)
        console_handler.addFilter(ContextFilter())
        root_logger.addHandler(console_handler)

        if self.log_dir is not None:
            self._setup_file_handlers(root_logger, detailed_formatter)

        self._configure_third_party_loggers()

        logger = logging.getLogger(__name__)
        logger.debug(f"Logging system initialized - Console: {self.config.console_level}, "
                     f"File: {self.config.file_level if self.log_dir else 'disabled'}")

    def _setup_file_handlers(self, root_logger: logging.Logger, formatter: logging.Formatter):
        self.log_dir.mkdir(parents=True, exist_ok=True)

        try:
            main_file_handler = logging.handlers.TimedRotatingFileHandler(
                self.main_log_file,
                when='midnight',
                interval=1,
                backupCount=30,
                encoding='utf-8'
            )
            main_file_handler.setLevel(getattr(logging, self.config.file_level.upper()))
            main_file_handler.setFormatter(formatter)
            main_file_handler.addFilter(ContextFilter())
            root_logger.addHandler(main_file_handler)
        except OSError as e:
            print(f"Warning: Could not set up main log file: {e}", file=sys.stderr)

        try:
            error_file_handler = logging.handlers.RotatingFileHandler(
                self.error_log_file,
                maxBytes=self.config.max_file_size,
                backupCount=self.config.backup_count,
                encoding='utf-8'
            )
            error_file_handler.setLevel(logging.ERROR)
            error_file_handler.setFormatter(formatter)
            error_file_handler.addFilter(ContextFilter())
            root_logger.addHandler(error_file_handler)
        except OSError as e:
            print(f"Warning: Could not set up error log file: {e}", file=sys.stderr)

    def _configure_third_party_loggers(self):
        """Reduce noise from paramiko's transport chatter."""
        third_party_configs = {
            'paramiko': logging.WARNING,
            'paramiko.transport': logging.ERROR,
            'paramiko.transport.sftp': logging.WARNING,
        }

        for logger_name, level in third_party_configs.items():
            logging.getLogger(logger_name).setLevel(level)

    def cleanup_old_logs(self, days_to_keep: Optional[int] = None):
        """Clean up old log files.

        Args:
            days_to_keep: Number of days of logs to retain (uses config default if None)
        """
        if self.log_dir is None or not self.log_dir.exists():
            return

        retention_days = days_to_keep if days_to_keep is not None else self.config.retention_days
        if retention_days <= 0:
            logging.getLogger(__name__).debug("Log file retention is disabled - skipping cleanup")
            return

        cutoff_time = datetime.now().timestamp() - (retention_days * 24 * 3600)

        for log_file in self.log_dir.glob("*.log*"):
            try:
                if log_file.stat().st_mtime < cutoff_time:
                    log_file.unlink()
                    logging.getLogger(__name__).debug(f"Cleaned up old log file: {log_file}")
            except OSError as e:
                logging.getLogger(__name__).warning(f"Failed to clean up {log_file}: {e}")


def setup_logging(config: Optional[LoggingConfig] = None) -> LoggingManager:
    """Convenience function to set up logging.

    Args:
        config: Logging configuration

    Returns:
        Configured LoggingManager instance
    """
    manager = LoggingManager(config)
    manager.setup_logging()
    return manager
