"""Utilities package for SheetLens.

This package provides:
- Centralized exception classes (exceptions.py)
- Structured logging utilities (logging.py)
"""

from sheetlens.utils.exceptions import (
    ComparisonError,
    ErrorCode,
    OperationCancelledError,
    ReaderError,
    SheetLensError,
    StaleReferenceError,
    UnsupportedFormatError,
)
from sheetlens.utils.logging import (
    LogContext,
    StructuredLogger,
    get_logger,
    get_operation_id,
    set_operation_id,
)

__all__ = [
    # Exceptions
    "ComparisonError",
    "ErrorCode",
    "OperationCancelledError",
    "ReaderError",
    "SheetLensError",
    "StaleReferenceError",
    "UnsupportedFormatError",
    # Logging
    "LogContext",
    "StructuredLogger",
    "get_logger",
    "get_operation_id",
    "set_operation_id",
]
