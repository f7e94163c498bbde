"""Pydantic models for the per-file load log."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from sheetlens.sheet_model import ErrorLevel, ExcelError, LoadStatus

LOG_SCHEMA_VERSION = "1.0"


class FileInfo(BaseModel):
    """Identity of the file a load attempt was made on."""

    name: str = Field(..., description="File name without directory")
    original_path: str = Field(..., description="Path as given to the loader")
    size_bytes: int = Field(default=0, description="File size at load time")
    hash: str = Field(default="", description="SHA-256 of the file content")
    last_modified: datetime | None = Field(
        default=None, description="File modification time, if the file existed"
    )


class LoadAttemptInfo(BaseModel):
    """Outcome and timing of one load attempt."""

    timestamp: datetime = Field(..., description="When the attempt finished (UTC)")
    status: LoadStatus = Field(..., description="Final load status")
    duration_ms: int = Field(..., ge=0, description="Time spent loading")
    app_version: str = Field(..., description="Application version")


class CellLocation(BaseModel):
    """Zero-based cell position of an error."""

    row: int
    column: int
    cell: str = Field(..., description="A1-style reference")


class ErrorRecord(BaseModel):
    """Serialized ``ExcelError``."""

    level: ErrorLevel
    code: str
    message: str
    context: str
    timestamp: datetime
    location: CellLocation | None = None
    cause: str | None = None

    @classmethod
    def from_excel_error(cls, error: ExcelError) -> ErrorRecord:
        location = None
        if error.location is not None:
            location = CellLocation(
                row=error.location.row,
                column=error.location.column,
                cell=error.location.to_a1(),
            )
        cause = None
        if error.cause is not None:
            cause = f"{type(error.cause).__name__}: {error.cause}"
        return cls(
            level=error.level,
            code=error.code.value,
            message=error.message,
            context=error.context,
            timestamp=error.timestamp,
            location=location,
            cause=cause,
        )


class ErrorSummary(BaseModel):
    """Error counts by severity and by context."""

    total_errors: int = 0
    by_severity: dict[str, int] = Field(default_factory=dict)
    by_context: dict[str, int] = Field(default_factory=dict)

    @classmethod
    def from_errors(cls, errors: Iterable[ErrorRecord]) -> ErrorSummary:
        records = list(errors)
        return cls(
            total_errors=len(records),
            by_severity=dict(Counter(record.level.value for record in records)),
            by_context=dict(Counter(record.context for record in records)),
        )


class FileLogEntry(BaseModel):
    """One JSON record per load attempt."""

    schema_version: str = Field(default=LOG_SCHEMA_VERSION)
    file: FileInfo
    load_attempt: LoadAttemptInfo
    errors: list[ErrorRecord] = Field(default_factory=list)
    summary: ErrorSummary = Field(default_factory=ErrorSummary)
    extensions: dict[str, Any] | None = Field(
        default=None, description="Free-form data for future schema additions"
    )
