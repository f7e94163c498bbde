"""Row comparison and diff classification.

Rows pulled from different files or sheets are aligned by header text.
For every header each row's value is classified against the other rows:

- an empty value is MISSING when any other row has a value, else MATCH;
- the only non-empty value among otherwise empty rows is NEW;
- a value shared by every non-empty row is MATCH;
- otherwise the value is DIFFERENT, with an intensity from its frequency
  rank: values are grouped, ordered by descending count then text, and
  rank ``r`` of ``g`` groups maps to ``ln(1 + r/(g-1) * (e-1))``.

The rank rule is deterministic so the same rows always produce the same
intensities.
"""

from __future__ import annotations

import math
from collections import Counter
from collections.abc import Sequence

from sheetlens.comparison import (
    CellComparison,
    ComparisonKind,
    ComparisonWarning,
    ExcelRow,
    RowComparison,
    default_comparison_name,
)
from sheetlens.services.search import SearchResult
from sheetlens.sheet_model import DocumentRef
from sheetlens.utils.exceptions import (
    InsufficientRowsError,
    InvalidSearchResultError,
    MissingSheetError,
    RowOutOfRangeError,
    StaleReferenceError,
)
from sheetlens.utils.logging import get_logger

logger = get_logger(__name__)

MISSING_INTENSITY = 0.5
NEW_INTENSITY = 1.0


def logarithmic_intensity(rank: int, group_count: int) -> float:
    """Map a frequency rank to a display intensity in [0, 1].

    Args:
        rank: Zero-based rank, 0 being the most frequent value.
        group_count: Number of distinct values.

    Returns:
        0.0 for the most common value rising to 1.0 for the rarest.
    """
    if group_count <= 1:
        return 0.0
    normalized = rank / (group_count - 1)
    intensity = math.log(1 + normalized * (math.e - 1)) / math.log(math.e)
    return min(max(intensity, 0.0), 1.0)


def classify_values(values: Sequence[str]) -> list[CellComparison]:
    """Classify every row's value for one header.

    Args:
        values: One raw value per row, in row order.

    Returns:
        One ``CellComparison`` per input value.
    """
    normalized = [value.strip() for value in values]
    non_empty = [value for value in normalized if value]
    total = len(non_empty)
    counts = Counter(non_empty)

    # Most frequent first, alphabetical within equal counts
    groups = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    ranks = {value: rank for rank, (value, _) in enumerate(groups)}

    results: list[CellComparison] = []
    for value in normalized:
        if not value:
            if total:
                results.append(
                    CellComparison(value, ComparisonKind.MISSING, MISSING_INTENSITY, 0, total)
                )
            else:
                results.append(
                    CellComparison(value, ComparisonKind.MATCH, 0.0, len(values), len(values))
                )
        elif total == 1 and len(normalized) > 1:
            results.append(CellComparison(value, ComparisonKind.NEW, NEW_INTENSITY, 1, total))
        elif len(groups) == 1:
            results.append(CellComparison(value, ComparisonKind.MATCH, 0.0, total, total))
        else:
            results.append(
                CellComparison(
                    value,
                    ComparisonKind.DIFFERENT,
                    logarithmic_intensity(ranks[value], len(groups)),
                    counts[value],
                    total,
                )
            )
    return results


def union_headers(rows: Sequence[ExcelRow]) -> list[str]:
    """Ordered union of all headers, in first-seen order."""
    seen: dict[str, None] = {}
    for row in rows:
        for header in row.headers:
            seen.setdefault(header, None)
    return list(seen)


def analyze_structure(
    rows: Sequence[ExcelRow], headers: Sequence[str]
) -> list[ComparisonWarning]:
    """Find structural differences between the compared rows' files.

    The first row of each file stands for that file. A header absent from
    it is a missing header; a header at another index than in the union
    is a structure mismatch. Rows of one file with different header lists
    are a data inconsistency.
    """
    by_file: dict[str, list[ExcelRow]] = {}
    for row in rows:
        by_file.setdefault(row.file_name, []).append(row)

    warnings: list[ComparisonWarning] = []
    for position, header in enumerate(headers):
        missing: list[str] = []
        moved: list[str] = []
        inconsistent: list[str] = []
        for file_name, file_rows in by_file.items():
            sample = file_rows[0]
            if header not in sample.headers:
                missing.append(file_name)
            elif sample.headers.index(header) != position:
                moved.append(file_name)

            indices = {
                row.headers.index(header) if header in row.headers else -1
                for row in file_rows
            }
            if len(indices) > 1:
                inconsistent.append(file_name)

        if missing:
            warnings.append(ComparisonWarning.missing_header(header, missing))
        if moved:
            warnings.append(ComparisonWarning.structure_mismatch(header, moved))
        if inconsistent:
            warnings.append(ComparisonWarning.data_inconsistency(header, inconsistent))
    return warnings


class RowComparisonEngine:
    """Build row comparisons from search results or extracted rows."""

    def extract_row(self, result: SearchResult) -> ExcelRow:
        """Snapshot the full row a cell search result points at.

        Raises:
            InvalidSearchResultError: If the result is a file or sheet name match.
            StaleReferenceError: If the source document was released.
            MissingSheetError: If the sheet no longer exists.
            RowOutOfRangeError: If the row is past the end of the sheet.
        """
        if not result.is_cell:
            raise InvalidSearchResultError(result.sheet_name, result.row, result.column)

        document = result.document
        sheet = document.get_sheet(result.sheet_name)
        if sheet is None:
            raise MissingSheetError(result.sheet_name, document.file_name)
        if result.row >= sheet.row_count:
            raise RowOutOfRangeError(result.sheet_name, result.row, sheet.row_count)

        return ExcelRow(
            source=DocumentRef(document),
            sheet_name=result.sheet_name,
            row_index=result.row,
            values=tuple(str(cell) for cell in sheet.get_row(result.row)),
            headers=sheet.column_names,
        )

    def compare(self, rows: Sequence[ExcelRow], name: str | None = None) -> RowComparison:
        """Compare two or more rows.

        Args:
            rows: Extracted rows, in display order.
            name: Optional comparison name; defaults to ``Comparison HH:MM:SS``.

        Returns:
            The comparison with per-header classifications and warnings.

        Raises:
            InsufficientRowsError: If fewer than two rows are given.
            MissingSheetError: If a row's sheet vanished from its source, or
                its source was released.
        """
        if len(rows) < 2:
            raise InsufficientRowsError(len(rows))

        for row in rows:
            try:
                document = row.document
            except StaleReferenceError:
                raise MissingSheetError(row.sheet_name, row.file_name) from None
            if document.get_sheet(row.sheet_name) is None:
                raise MissingSheetError(row.sheet_name, row.file_name)

        headers = union_headers(rows)
        columns = {
            header: tuple(classify_values([row.value_by_header(header) for row in rows]))
            for header in headers
        }
        warnings = analyze_structure(rows, headers)

        comparison = RowComparison(
            rows=tuple(rows),
            headers=tuple(headers),
            columns=columns,
            warnings=tuple(warnings),
            name=name or default_comparison_name(),
        )
        logger.info(
            "Row comparison created",
            comparison_id=comparison.id,
            rows=len(rows),
            headers=len(headers),
            warnings=len(warnings),
        )
        return comparison

    def compare_results(
        self, results: Sequence[SearchResult], name: str | None = None
    ) -> RowComparison:
        """Extract the rows behind cell search results and compare them.

        Raises:
            InsufficientRowsError: If fewer than two results are given.
        """
        if len(results) < 2:
            raise InsufficientRowsError(len(results))
        logger.info("Creating row comparison", results=len(results))

        rows = []
        for result in results:
            try:
                rows.append(self.extract_row(result))
            except Exception:
                logger.error(
                    "Failed to extract row from search result",
                    file=result.file_path,
                    sheet=result.sheet_name,
                    row=result.row,
                )
                raise
        return self.compare(rows, name)
