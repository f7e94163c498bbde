"""Data model for row comparisons.

Rows are extracted from search results as string snapshots and aligned by
header text. The classification itself lives in
``sheetlens.services.row_comparison``.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from sheetlens.sheet_model import DocumentRef, FileDocument


@dataclass(frozen=True)
class ExcelRow:
    """Snapshot of one sheet row, looked up by header rather than position."""

    source: DocumentRef = field(repr=False)
    sheet_name: str
    row_index: int
    values: tuple[str, ...]
    headers: tuple[str, ...]

    @property
    def document(self) -> FileDocument:
        """The source document.

        Raises:
            StaleReferenceError: If the document has been released.
        """
        return self.source.get()

    @property
    def is_valid(self) -> bool:
        return self.source.is_alive

    @property
    def file_path(self) -> str:
        return self.source.path

    @property
    def file_name(self) -> str:
        return Path(self.source.path).name

    @property
    def display_name(self) -> str:
        return f"{self.file_name} - {self.sheet_name} - Row {self.row_index + 1}"

    def value_by_header(self, header: str) -> str:
        """Return the value under ``header``.

        Tries an exact match first, then a trimmed, case-insensitive match.
        Returns an empty string if the row has no such header.
        """
        try:
            index = self.headers.index(header)
        except ValueError:
            wanted = header.strip().casefold()
            index = next(
                (
                    i
                    for i, candidate in enumerate(self.headers)
                    if candidate.strip().casefold() == wanted
                ),
                -1,
            )
        if 0 <= index < len(self.values):
            return self.values[index]
        return ""


class ComparisonKind(str, Enum):
    """Per-cell outcome of a comparison."""

    MATCH = "match"
    DIFFERENT = "different"
    NEW = "new"
    MISSING = "missing"


@dataclass(frozen=True)
class CellComparison:
    """Classification of one row's value for one header.

    Attributes:
        value: The row's trimmed value ("" when empty).
        kind: Match, Different, New or Missing.
        intensity: 0.0 for the most common value up to 1.0 for the rarest.
        frequency: How many rows share this value.
        total_values: Non-empty values in the column.
    """

    value: str
    kind: ComparisonKind
    intensity: float
    frequency: int
    total_values: int

    def __str__(self) -> str:
        return (
            f"{self.kind.value} (intensity: {self.intensity:.2f}, "
            f"frequency: {self.frequency}/{self.total_values})"
        )


class WarningType(str, Enum):
    """Structural issues found across compared rows."""

    MISSING_HEADER = "missing_header"
    STRUCTURE_MISMATCH = "structure_mismatch"
    DATA_INCONSISTENCY = "data_inconsistency"


@dataclass(frozen=True)
class ComparisonWarning:
    """A non-fatal structural warning attached to a comparison."""

    type: WarningType
    column_name: str
    message: str
    affected_files: tuple[str, ...]
    suggestion: str

    @classmethod
    def missing_header(
        cls, column_name: str, affected_files: list[str]
    ) -> ComparisonWarning:
        return cls(
            WarningType.MISSING_HEADER,
            column_name,
            f"Column '{column_name}' has missing or inconsistent headers across files",
            tuple(affected_files),
            f"Consider adding a proper header '{column_name}' to maintain data "
            "consistency",
        )

    @classmethod
    def structure_mismatch(
        cls, column_name: str, affected_files: list[str]
    ) -> ComparisonWarning:
        return cls(
            WarningType.STRUCTURE_MISMATCH,
            column_name,
            f"Column structure mismatch detected for '{column_name}' - data "
            "appears consistent but positioned differently",
            tuple(affected_files),
            "The comparison will proceed using intelligent column mapping, but "
            "standardizing file structures is recommended",
        )

    @classmethod
    def data_inconsistency(
        cls, column_name: str, affected_files: list[str]
    ) -> ComparisonWarning:
        return cls(
            WarningType.DATA_INCONSISTENCY,
            column_name,
            f"Rows taken from the same file have different headers around "
            f"column '{column_name}'",
            tuple(affected_files),
            "Check whether the rows were taken from sheets with different layouts",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "column_name": self.column_name,
            "message": self.message,
            "affected_files": list(self.affected_files),
            "suggestion": self.suggestion,
        }


def default_comparison_name(moment: datetime | None = None) -> str:
    return f"Comparison {(moment or datetime.now()).strftime('%H:%M:%S')}"


@dataclass
class RowComparison:
    """Two or more rows aligned by header, with per-cell classifications.

    ``columns`` maps each header (in ``headers`` order) to one
    ``CellComparison`` per row, in row order.
    """

    rows: tuple[ExcelRow, ...]
    headers: tuple[str, ...]
    columns: dict[str, tuple[CellComparison, ...]]
    warnings: tuple[ComparisonWarning, ...] = ()
    name: str = field(default_factory=default_comparison_name)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_valid(self) -> bool:
        """Whether every source document is still loaded."""
        return all(row.is_valid for row in self.rows)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)

    def cell(self, row_position: int, header: str) -> CellComparison:
        """Return the classification for one row under one header.

        Raises:
            KeyError: If ``header`` is not part of the comparison.
            IndexError: If ``row_position`` is out of range.
        """
        return self.columns[header][row_position]

    def references(self, document: FileDocument) -> bool:
        """Whether any compared row was taken from ``document``."""
        return any(row.source.refers_to(document) for row in self.rows)

    def summary(self) -> dict[str, int]:
        """Count cells per comparison kind."""
        counts = {kind.value: 0 for kind in ComparisonKind}
        for cells in self.columns.values():
            for cell in cells:
                counts[cell.kind.value] += 1
        return counts
