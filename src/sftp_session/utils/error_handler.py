"""Error handling and reporting for SFTP session operations."""

import json
import logging
import traceback
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional


class ErrorCategory(Enum):
    """Categories of errors that can occur in the system."""
    CONFIGURATION = "configuration"
    SFTP_CONNECTION = "sftp_connection"
    SFTP_AUTHENTICATION = "sftp_authentication"
    SFTP_FILE_OPERATION = "sftp_file_operation"
    LOCAL_FILE_OPERATION = "local_file_operation"
    VALIDATION = "validation"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    CRITICAL = "critical"  # Session cannot be used
    HIGH = "high"         # Connection-level failure
    MEDIUM = "medium"     # Single operation failed
    LOW = "low"          # Informational


@dataclass
class ErrorContext:
    """Context information for an error occurrence."""
    timestamp: datetime = field(default_factory=datetime.now)
    category: ErrorCategory = ErrorCategory.UNKNOWN
    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    component: str = ""
    operation: str = ""
    error_message: str = ""
    exception_type: str = ""
    stack_trace: str = ""
    additional_data: Dict[str, Any] = field(default_factory=dict)


class ErrorHandler:
    """Categorized error handler with context tracking and optional JSONL storage."""

    MAX_HISTORY = 1000

    def __init__(self, storage_path: Optional[str] = None, retention_days: int = 0):
        """Initialize the error handler.

        Args:
            storage_path: Directory to store error context records; ``None``
                keeps records in memory only
            retention_days: Days of stored error records to keep (0 = keep all)
        """
        self.logger = logging.getLogger(__name__)
        self.storage_path = Path(storage_path) if storage_path else None
        self.retention_days = retention_days

        self.error_history: List[ErrorContext] = []
        self.error_counts: Dict[str, int] = {}
        self.last_error_times: Dict[str, datetime] = {}

        self.error_log_file = None
        if self.storage_path is not None:
            self.storage_path.mkdir(parents=True, exist_ok=True)
            self.error_log_file = self.storage_path / "error_context.jsonl"

        self.logger.debug("ErrorHandler initialized")

    def handle_error(self,
                    error: Exception,
                    category: ErrorCategory,
                    severity: ErrorSeverity,
                    component: str,
                    operation: str,
                    additional_data: Optional[Dict[str, Any]] = None) -> ErrorContext:
        """Handle an error with logging and context tracking.

        Args:
            error: The exception that occurred
            category: Category of the error
            severity: Severity level of the error
            component: Component where the error occurred
            operation: Operation being performed when error occurred
            additional_data: Additional context data

        Returns:
            ErrorContext object with error details
        """
        context = ErrorContext(
            category=category,
            severity=severity,
            component=component,
            operation=operation,
            error_message=str(error),
            exception_type=type(error).__name__,
            stack_trace=self._format_trace(error),
            additional_data=additional_data or {},
        )

        self._log_error(context, error)
        self._track_error_statistics(context)
        self._store_error_context(context)

        self.error_history.append(context)
        if len(self.error_history) > self.MAX_HISTORY:
            self.error_history.pop(0)

        return context

    @staticmethod
    def _format_trace(error: Exception) -> str:
        if error.__traceback__ is None and error.__cause__ is None:
            return ""
        return "".join(traceback.format_exception(type(error), error, error.__traceback__))

    def _log_error(self, context: ErrorContext, error: Exception):
        """Log error with appropriate level and formatting."""
        log_message = (f"[{context.category.value.upper()}] {context.component}.{context.operation}: "
                      f"{context.error_message}")

        if context.additional_data:
            log_message += f" | Context: {context.additional_data}"

        exc_info = error if context.stack_trace else None
        if context.severity == ErrorSeverity.CRITICAL:
            self.logger.critical(log_message, exc_info=exc_info)
        elif context.severity == ErrorSeverity.HIGH:
            self.logger.error(log_message, exc_info=exc_info)
        elif context.severity == ErrorSeverity.MEDIUM:
            self.logger.warning(log_message)
        else:
            self.logger.info(log_message)

        if context.stack_trace:
            self.logger.debug(f"Stack trace for {context.component}.{context.operation}:\n{context.stack_trace}")

    def _track_error_statistics(self, context: ErrorContext):
        """Track error statistics for reporting."""
        error_key = f"{context.category.value}:{context.component}:{context.operation}"

        self.error_counts[error_key] = self.error_counts.get(error_key, 0) + 1
        self.last_error_times[error_key] = context.timestamp

        if self.error_counts[error_key] % 10 == 0:
            self.logger.warning(f"Error {error_key} has occurred {self.error_counts[error_key]} times")

    def _store_error_context(self, context: ErrorContext):
        """Append the error context to the JSONL store, if one is configured."""
        if self.error_log_file is None:
            return

        try:
            error_data = {
                "timestamp": context.timestamp.isoformat(),
                "category": context.category.value,
                "severity": context.severity.value,
                "component": context.component,
                "operation": context.operation,
                "error_message": context.error_message,
                "exception_type": context.exception_type,
                "additional_data": context.additional_data
            }

            with open(self.error_log_file, 'a', encoding='utf-8') as f:
                f.write(json.dumps(error_data, default=str) + '\n')

        except OSError as e:
            self.logger.warning(f"Failed to store error context: {e}")

    def get_error_statistics(self, hours: int = 24) -> Dict[str, Any]:
        """Get error statistics for the specified time period.

        Args:
            hours: Number of hours to look back

        Returns:
            Dictionary containing error statistics
        """
        cutoff_time = datetime.now() - timedelta(hours=hours)
        recent_errors = [e for e in self.error_history if e.timestamp >= cutoff_time]

        stats = {
            "total_errors": len(recent_errors),
            "time_period_hours": hours,
            "errors_by_category": {},
            "errors_by_severity": {},
            "errors_by_operation": {},
            "most_frequent_errors": {},
        }

        error_type_counts = {}
        for error in recent_errors:
            category = error.category.value
            stats["errors_by_category"][category] = stats["errors_by_category"].get(category, 0) + 1

            severity = error.severity.value
            stats["errors_by_severity"][severity] = stats["errors_by_severity"].get(severity, 0) + 1

            operation = f"{error.component}.{error.operation}"
            stats["errors_by_operation"][operation] = stats["errors_by_operation"].get(operation, 0) + 1

            error_key = f"{category}:{error.exception_type}"
            error_type_counts[error_key] = error_type_counts.get(error_key, 0) + 1

        stats["most_frequent_errors"] = dict(sorted(error_type_counts.items(),
                                                   key=lambda x: x[1],
                                                   reverse=True)[:10])

        return stats

    def cleanup_old_error_logs(self, days_to_keep: Optional[int] = None):
        """Drop error records older than the retention window.

        Args:
            days_to_keep: Days of error records to retain (uses configured default if None)
        """
        retention_days = days_to_keep if days_to_keep is not None else self.retention_days
        if retention_days <= 0:
            self.logger.debug("Error log retention is disabled - skipping cleanup")
            return

        cutoff_time = datetime.now() - timedelta(days=retention_days)
        self.error_history = [e for e in self.error_history if e.timestamp >= cutoff_time]

        if self.error_log_file is None or not self.error_log_file.exists():
            return

        try:
            temp_file = self.error_log_file.with_suffix('.tmp')

            with open(self.error_log_file, 'r', encoding='utf-8') as infile, \
                 open(temp_file, 'w', encoding='utf-8') as outfile:

                for line in infile:
                    try:
                        error_data = json.loads(line.strip())
                        error_time = datetime.fromisoformat(error_data['timestamp'])

                        if error_time >= cutoff_time:
                            outfile.write(line)
                    except (json.JSONDecodeError, KeyError, ValueError):
                        # Skip malformed lines
                        continue

            temp_file.replace(self.error_log_file)
            self.logger.info(f"Cleaned up error logs older than {retention_days} days")

        except OSError as e:
            self.logger.warning(f"Failed to cleanup old error logs: {e}")

    def generate_error_report(self, hours: int = 24) -> str:
        """Generate a human-readable error report.

        Args:
            hours: Number of hours to include in the report

        Returns:
            Formatted error report string
        """
        stats = self.get_error_statistics(hours)

        report = f"""
ERROR REPORT - Last {hours} Hours
{'=' * 50}

SUMMARY:
- Total Errors: {stats['total_errors']}

ERRORS BY SEVERITY:
"""

        for severity, count in stats['errors_by_severity'].items():
            report += f"- {severity.upper()}: {count}\n"

        report += "\nERRORS BY CATEGORY:\n"
        for category, count in stats['errors_by_category'].items():
            report += f"- {category.upper()}: {count}\n"

        report += "\nERRORS BY OPERATION:\n"
        for operation, count in stats['errors_by_operation'].items():
            report += f"- {operation}: {count}\n"

        if stats['most_frequent_errors']:
            report += "\nMOST FREQUENT ERROR TYPES:\n"
            for error_type, count in list(stats['most_frequent_errors'].items())[:5]:
                report += f"- {error_type}: {count}\n"

        return report


# Global error handler instance
_global_error_handler: Optional[ErrorHandler] = None


def get_error_handler(storage_path: Optional[str] = None, retention_days: int = 0) -> ErrorHandler:
    """Get the global error handler instance.

    Args:
        storage_path: Directory to store error records (only used on first call)
        retention_days: Days of error records to keep (only used on first call)

    Returns:
        Global ErrorHandler instance
    """
    global _global_error_handler

    if _global_error_handler is None:
        _global_error_handler = ErrorHandler(storage_path, retention_days)

    return _global_error_handler


def reset_error_handler() -> None:
    """Discard the global error handler so the next call creates a fresh one."""
    global _global_error_handler
    _global_error_handler = None


def handle_error(error: Exception,
                category: ErrorCategory,
                severity: ErrorSeverity,
                component: str,
                operation: str,
                additional_data: Optional[Dict[str, Any]] = None) -> ErrorContext:
    """Convenience function to handle errors using the global error handler."""
    return get_error_handler().handle_error(
        error=error,
        category=category,
        severity=severity,
        component=component,
        operation=operation,
        additional_data=additional_data
    )
