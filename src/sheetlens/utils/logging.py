"""Structured logging utilities for SheetLens.

This module provides:
- Operation ID tracking using contextvars for correlation across a batch load
- Structured logging with consistent ``message | key=value`` format
- Performance metrics logging helpers
- Progress tracking for multi-file loads

Usage:
    from sheetlens.utils.logging import get_logger, LogContext

    logger = get_logger(__name__)

    with LogContext(operation_id="load-1", file_path="/data/a.xlsx"):
        logger.info("Reading workbook", sheets=3)

    with timed_operation(logger, "xlsx_read") as metrics:
        metrics.rows_read = 1200
"""

import logging
import time
from collections.abc import Generator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

_operation_id_var: ContextVar[str | None] = ContextVar("operation_id", default=None)
_file_path_var: ContextVar[str | None] = ContextVar("file_path", default=None)
_extra_context_var: ContextVar[dict[str, Any] | None] = ContextVar(
    "extra_context", default=None
)


def get_operation_id() -> str | None:
    """Get the current operation ID from context.

    Returns:
        The current operation ID or None if not set.
    """
    return _operation_id_var.get()


def set_operation_id(operation_id: str | None) -> None:
    """Set the operation ID in context.

    Args:
        operation_id: The operation ID to set, or None to clear.
    """
    _operation_id_var.set(operation_id)


def get_file_path() -> str | None:
    """Get the file currently being processed, if any."""
    return _file_path_var.get()


def set_file_path(file_path: str | None) -> None:
    """Set the file currently being processed."""
    _file_path_var.set(file_path)


def get_extra_context() -> dict[str, Any]:
    """Get additional context from context vars.

    Returns:
        Dictionary of extra context values.
    """
    ctx = _extra_context_var.get()
    return ctx if ctx is not None else {}


def set_extra_context(context: dict[str, Any]) -> None:
    """Set additional context in context vars.

    Args:
        context: Dictionary of extra context values.
    """
    _extra_context_var.set(context)


def clear_context() -> None:
    """Clear all context variables."""
    _operation_id_var.set(None)
    _file_path_var.set(None)
    _extra_context_var.set(None)


@dataclass
class PerformanceMetrics:
    """Container for performance metrics during loading.

    Attributes:
        operation: Name of the operation being measured.
        start_time: When the operation started.
        end_time: When the operation ended.
        duration_seconds: Duration in seconds.
        files_loaded: Number of files loaded (if applicable).
        sheets_read: Number of sheets read (if applicable).
        rows_read: Number of data rows read (if applicable).
        errors_recorded: Number of load errors captured.
        custom_metrics: Additional custom metrics.
    """

    operation: str
    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None
    duration_seconds: float = 0.0
    files_loaded: int = 0
    sheets_read: int = 0
    rows_read: int = 0
    errors_recorded: int = 0
    custom_metrics: dict[str, Any] = field(default_factory=dict)

    def finish(self) -> None:
        """Mark the operation as complete and calculate duration."""
        self.end_time = datetime.now(UTC)
        self.duration_seconds = (self.end_time - self.start_time).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging.

        Returns:
            Dictionary with all non-zero metrics.
        """
        result: dict[str, Any] = {
            "operation": self.operation,
            "duration_seconds": self.duration_seconds,
        }
        if self.files_loaded > 0:
            result["files_loaded"] = self.files_loaded
        if self.sheets_read > 0:
            result["sheets_read"] = self.sheets_read
        if self.rows_read > 0:
            result["rows_read"] = self.rows_read
        if self.errors_recorded > 0:
            result["errors_recorded"] = self.errors_recorded
        if self.custom_metrics:
            result["custom_metrics"] = self.custom_metrics
        return result


class StructuredLogFormatter(logging.Formatter):
    """Log formatter that prefixes records with the current context.

    Adds operation_id, file and any extra context keys to every record
    emitted inside a ``LogContext``.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record with context information.

        Args:
            record: The log record to format.

        Returns:
            Formatted log message string.
        """
        prefix_parts = []
        operation_id = get_operation_id()
        if operation_id:
            prefix_parts.append(f"operation_id={operation_id}")
        file_path = get_file_path()
        if file_path:
            prefix_parts.append(f"file={file_path}")
        for key, value in get_extra_context().items():
            prefix_parts.append(f"{key}={value}")

        prefix = f"[{' '.join(prefix_parts)}] " if prefix_parts else ""

        original_msg = record.msg
        record.msg = f"{prefix}{original_msg}"
        result = super().format(record)
        record.msg = original_msg

        return result


class StructuredLogger:
    """Logger wrapper with structured key-value logging.

    Wraps a standard Python logger with additional methods for:
    - Logging with keyword context rendered as ``key=value`` pairs
    - Performance metrics logging
    - Progress tracking
    - Per-file load outcome logging
    """

    def __init__(self, name: str) -> None:
        """Initialize the structured logger.

        Args:
            name: Logger name (typically __name__ of the module).
        """
        self._logger = logging.getLogger(name)
        self._name = name

    def _build_message(self, message: str, **kwargs: Any) -> str:
        if not kwargs:
            return message

        parts = [f"{k}={v}" for k, v in kwargs.items()]
        return f"{message} | {', '.join(parts)}"

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log a debug message."""
        self._logger.debug(self._build_message(message, **kwargs))

    def info(self, message: str, **kwargs: Any) -> None:
        """Log an info message."""
        self._logger.info(self._build_message(message, **kwargs))

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log a warning message."""
        self._logger.warning(self._build_message(message, **kwargs))

    def error(self, message: str, exc_info: bool = False, **kwargs: Any) -> None:
        """Log an error message.

        Args:
            message: Log message.
            exc_info: Whether to include exception info.
            **kwargs: Additional structured data.
        """
        self._logger.error(self._build_message(message, **kwargs), exc_info=exc_info)

    def exception(self, message: str, **kwargs: Any) -> None:
        """Log an exception with traceback."""
        self._logger.exception(self._build_message(message, **kwargs))

    def log_performance(self, metrics: PerformanceMetrics) -> None:
        """Log performance metrics.

        Args:
            metrics: Performance metrics to log.
        """
        self.info(f"Performance: {metrics.operation}", **metrics.to_dict())

    def log_progress(
        self,
        stage: str,
        current: int,
        total: int,
        details: str | None = None,
    ) -> None:
        """Log progress for long-running operations.

        Args:
            stage: Current processing stage.
            current: Current progress count.
            total: Total items to process.
            details: Optional additional details.
        """
        percentage = (current / total * 100) if total > 0 else 0
        kwargs: dict[str, Any] = {
            "current": current,
            "total": total,
            "percentage": f"{percentage:.1f}%",
        }
        if details:
            kwargs["details"] = details
        self.info(f"Progress: {stage}", **kwargs)

    def log_load_result(
        self,
        file_path: str,
        status: str,
        duration_seconds: float,
        sheet_count: int,
        error_count: int,
    ) -> None:
        """Log the outcome of a single file load.

        Failed loads are logged at ERROR, partial loads at WARNING.

        Args:
            file_path: File that was loaded.
            status: Final load status value.
            duration_seconds: Time spent reading.
            sheet_count: Number of sheets read.
            error_count: Number of captured load errors.
        """
        kwargs: dict[str, Any] = {
            "file_path": file_path,
            "status": status,
            "duration_seconds": f"{duration_seconds:.3f}",
            "sheets": sheet_count,
            "errors": error_count,
        }
        if status == "failed":
            level = logging.ERROR
        elif status == "partial_success":
            level = logging.WARNING
        else:
            level = logging.INFO
        self._logger.log(level, self._build_message("File load completed", **kwargs))


class LogContext:
    """Context manager for adding temporary context to logs.

    Usage:
        with LogContext(operation_id="123", sheet="Data"):
            logger.info("Reading...")  # includes operation_id and sheet
    """

    def __init__(self, **kwargs: Any) -> None:
        """Initialize with context values.

        Args:
            **kwargs: Key-value pairs to add to log context. ``operation_id``
                and ``file_path`` are stored in their dedicated variables.
        """
        self._new_context = kwargs
        self._old_context: dict[str, Any] = {}
        self._old_operation_id: str | None = None
        self._old_file_path: str | None = None

    def __enter__(self) -> "LogContext":
        """Enter the context, saving old values and setting new ones."""
        self._old_context = get_extra_context().copy()
        self._old_operation_id = get_operation_id()
        self._old_file_path = get_file_path()

        new_context = dict(self._new_context)
        operation_id = new_context.pop("operation_id", None)
        file_path = new_context.pop("file_path", None)

        if operation_id is not None:
            set_operation_id(operation_id)
        if file_path is not None:
            set_file_path(str(file_path))

        merged = self._old_context.copy()
        merged.update(new_context)
        set_extra_context(merged)

        return self

    def __exit__(self, *args: Any) -> None:
        """Exit the context, restoring old values."""
        set_extra_context(self._old_context)
        set_operation_id(self._old_operation_id)
        set_file_path(self._old_file_path)


@contextmanager
def timed_operation(
    logger: StructuredLogger,
    operation: str,
) -> Generator[PerformanceMetrics, None, None]:
    """Context manager for timing operations.

    Usage:
        with timed_operation(logger, "csv_read") as metrics:
            metrics.rows_read = 1000

    Args:
        logger: Logger to use for output.
        operation: Name of the operation.

    Yields:
        PerformanceMetrics instance for tracking.
    """
    metrics = PerformanceMetrics(operation=operation)
    try:
        yield metrics
    finally:
        metrics.finish()
        logger.log_performance(metrics)


def configure_logging(
    level: int | str = logging.INFO,
    format_string: str | None = None,
    use_structured_formatter: bool = True,
) -> None:
    """Configure logging for the application.

    Args:
        level: Log level (int or string like "INFO").
        format_string: Custom format string (uses default if None).
        use_structured_formatter: Whether to use the structured formatter.
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper())

    if format_string is None:
        format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setLevel(level)

    formatter: logging.Formatter
    if use_structured_formatter:
        formatter = StructuredLogFormatter(format_string)
    else:
        formatter = logging.Formatter(format_string)

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger for a module.

    Args:
        name: Logger name (typically __name__).

    Returns:
        StructuredLogger instance.

    Example:
        logger = get_logger(__name__)
        logger.info("Sheet read", sheet="Data", rows=10)
    """
    return StructuredLogger(name)


class ProgressTracker:
    """Helper for tracking and logging progress of multi-file loads.

    Thread-safe enough for worker callbacks: updates are serialised by the
    caller collecting futures, so only the counter is shared.

    Usage:
        tracker = ProgressTracker(logger, "Loading files", total=10)
        for path in paths:
            load(path)
            tracker.update(details=path)
        tracker.complete()
    """

    def __init__(
        self,
        logger: StructuredLogger,
        stage: str,
        total: int,
        log_interval: int = 1,
    ) -> None:
        """Initialize the progress tracker.

        Args:
            logger: Logger to use.
            stage: Description of the stage being tracked.
            total: Total number of items.
            log_interval: Log every N updates (1 = every update).
        """
        self._logger = logger
        self._stage = stage
        self._total = total
        self._current = 0
        self._log_interval = log_interval
        self._start_time = time.time()

    def update(self, increment: int = 1, details: str | None = None) -> None:
        """Update progress.

        Args:
            increment: Number of items completed.
            details: Optional details about current item.
        """
        self._current += increment
        if self._current % self._log_interval == 0 or self._current == self._total:
            self._logger.log_progress(
                self._stage,
                self._current,
                self._total,
                details,
            )

    def complete(self) -> float:
        """Mark progress as complete.

        Returns:
            Total duration in seconds.
        """
        duration = time.time() - self._start_time
        self._logger.info(
            f"Completed: {self._stage}",
            total_items=self._total,
            duration_seconds=f"{duration:.2f}",
        )
        return duration
