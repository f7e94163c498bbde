"""Centralized exception classes for SheetLens.

This module provides a hierarchy of custom exceptions with error codes and
structured error details. Readers never raise these for content problems
(those are reported as ``ExcelError`` records inside a ``FileDocument``);
they are reserved for programming errors, cancellation and the comparison
preconditions.

Exception Hierarchy:
    SheetLensError (base)
    ├── ReaderError
    │   └── UnsupportedFormatError
    ├── ComparisonError
    │   ├── InsufficientRowsError
    │   ├── MissingSheetError
    │   ├── InvalidSearchResultError
    │   └── RowOutOfRangeError
    ├── StaleReferenceError
    ├── DuplicateDocumentError
    ├── ConfigurationError
    └── OperationCancelledError

Error Codes:
    All errors have a unique error code (e.g., "E1002") that is shared with
    the ``ExcelError`` records produced by the readers, so callers can
    classify both raised faults and captured load errors the same way.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Enumeration of all error codes used in the application.

    Error codes are grouped by category:
    - E1xxx: File access and format errors
    - E2xxx: Sheet/content errors
    - E3xxx: Row comparison errors
    - E4xxx: Search errors
    - E9xxx: Internal/unexpected errors
    """

    # File errors (E1xxx)
    FILE_NOT_FOUND = "E1001"
    UNSUPPORTED_FORMAT = "E1002"
    FILE_READ_ERROR = "E1003"
    ACCESS_DENIED = "E1004"
    ENCODING_ERROR = "E1005"
    CORRUPTED_FILE = "E1006"
    DUPLICATE_DOCUMENT = "E1007"

    # Sheet/content errors (E2xxx)
    INVALID_STRUCTURE = "E2001"
    SHEET_READ_FAILED = "E2002"
    EMPTY_HEADER = "E2003"
    NO_DATA = "E2004"
    NO_SHEETS = "E2005"

    # Comparison errors (E3xxx)
    INSUFFICIENT_ROWS = "E3001"
    MISSING_SHEET = "E3002"
    INVALID_SEARCH_RESULT = "E3003"
    ROW_OUT_OF_RANGE = "E3004"
    STALE_REFERENCE = "E3005"

    # Search errors (E4xxx)
    INVALID_PATTERN = "E4001"

    # Internal errors (E9xxx)
    INTERNAL_ERROR = "E9001"
    CONFIGURATION_ERROR = "E9002"
    OPERATION_CANCELLED = "E9003"
    UNEXPECTED_ERROR = "E9999"


class SheetLensError(Exception):
    """Base exception for all SheetLens errors.

    Attributes:
        message: Human-readable error message.
        error_code: Unique error code from ErrorCode enum.
        details: Optional dictionary with additional error details.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Error code from ErrorCode enum.
            details: Optional additional details about the error.
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert the exception to a dictionary for structured logs.

        Returns:
            Dictionary with error information.
        """
        result: dict[str, Any] = {
            "error_code": self.error_code.value,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        """Return string representation with error code."""
        return f"[{self.error_code.value}] {self.message}"


# =============================================================================
# Reader Errors (E1xxx)
# =============================================================================


class ReaderError(SheetLensError):
    """Base class for reader-related errors."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.FILE_READ_ERROR,
        file_path: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with file path information.

        Args:
            message: Error message.
            error_code: Error code.
            file_path: Path to the problematic file.
            details: Additional details.
        """
        details = details or {}
        if file_path:
            details["file_path"] = file_path
        super().__init__(message, error_code, details)
        self.file_path = file_path


class UnsupportedFormatError(ReaderError):
    """Raised when no reader owns a file extension."""

    def __init__(
        self,
        extension: str,
        supported_extensions: list[str],
        file_path: str | None = None,
    ) -> None:
        """Initialize with extension information.

        Args:
            extension: The extension that has no reader.
            supported_extensions: Every extension that does have a reader.
            file_path: Optional file path.
        """
        shown = extension or "(none)"
        message = (
            f"Unsupported file format '{shown}'. "
            f"Supported formats: {', '.join(supported_extensions)}"
        )
        super().__init__(
            message=message,
            error_code=ErrorCode.UNSUPPORTED_FORMAT,
            file_path=file_path,
            details={
                "extension": extension,
                "supported_extensions": supported_extensions,
            },
        )
        self.extension = extension
        self.supported_extensions = supported_extensions


# =============================================================================
# Comparison Errors (E3xxx)
# =============================================================================


class ComparisonError(SheetLensError):
    """Base class for row comparison precondition failures."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INSUFFICIENT_ROWS,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, error_code, details)


class InsufficientRowsError(ComparisonError):
    """Raised when fewer than two rows are handed to the comparison engine."""

    def __init__(self, row_count: int) -> None:
        """Initialize with the number of rows received.

        Args:
            row_count: How many rows were supplied.
        """
        super().__init__(
            f"At least two rows are required for comparison, got {row_count}",
            error_code=ErrorCode.INSUFFICIENT_ROWS,
            details={"row_count": row_count},
        )
        self.row_count = row_count


class MissingSheetError(ComparisonError):
    """Raised when a row's sheet no longer exists on its source file."""

    def __init__(self, sheet_name: str, file_name: str) -> None:
        """Initialize with sheet and file names.

        Args:
            sheet_name: Name of the sheet that could not be found.
            file_name: File the sheet was expected in.
        """
        super().__init__(
            f"Sheet '{sheet_name}' not found in file {file_name}",
            error_code=ErrorCode.MISSING_SHEET,
            details={"sheet_name": sheet_name, "file_name": file_name},
        )
        self.sheet_name = sheet_name
        self.file_name = file_name


class InvalidSearchResultError(ComparisonError):
    """Raised when a file/sheet name match is used where a cell is needed."""

    def __init__(self, sheet_name: str, row: int, column: int) -> None:
        super().__init__(
            "Search result does not represent a valid cell",
            error_code=ErrorCode.INVALID_SEARCH_RESULT,
            details={"sheet_name": sheet_name, "row": row, "column": column},
        )


class RowOutOfRangeError(ComparisonError):
    """Raised when a search result points past the end of its sheet."""

    def __init__(self, sheet_name: str, row: int, row_count: int) -> None:
        super().__init__(
            f"Row index {row} is out of range for sheet '{sheet_name}' "
            f"({row_count} rows)",
            error_code=ErrorCode.ROW_OUT_OF_RANGE,
            details={"sheet_name": sheet_name, "row": row, "row_count": row_count},
        )


# =============================================================================
# Lifecycle Errors
# =============================================================================


class StaleReferenceError(SheetLensError):
    """Raised when a derived object outlives the document it points to."""

    def __init__(self, file_path: str | None = None) -> None:
        target = file_path or "unknown file"
        super().__init__(
            f"Source document for {target} has been released",
            error_code=ErrorCode.STALE_REFERENCE,
            details={"file_path": file_path} if file_path else None,
        )


class DuplicateDocumentError(SheetLensError):
    """Raised when a document for the same path is already registered."""

    def __init__(self, file_path: str) -> None:
        super().__init__(
            f"File {file_path} is already loaded",
            error_code=ErrorCode.DUPLICATE_DOCUMENT,
            details={"file_path": file_path},
        )
        self.file_path = file_path


class ConfigurationError(SheetLensError):
    """Raised when runtime configuration is inconsistent."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details)


class OperationCancelledError(SheetLensError):
    """Raised when a caller cancels an in-flight load.

    Cancellation is a distinct outcome: readers re-raise it instead of
    recording it as a load error.
    """

    def __init__(self, file_path: str | None = None) -> None:
        message = (
            f"Load cancelled: {file_path}" if file_path else "Operation cancelled"
        )
        super().__init__(
            message,
            error_code=ErrorCode.OPERATION_CANCELLED,
            details={"file_path": file_path} if file_path else None,
        )
        self.file_path = file_path
