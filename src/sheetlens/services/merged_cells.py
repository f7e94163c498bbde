"""Merged-cell resolution.

Only the top-left (origin) cell of a merged range stores a value. The
resolver reads that value once per range and maps every coordinate of the
range to it, so the reader can consult it before decoding a cell.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

from sheetlens.services.cell_reference import parse_range
from sheetlens.sheet_model import CellValue
from sheetlens.utils.logging import get_logger

logger = get_logger(__name__)

OriginLookup = Callable[[int, int], CellValue]
"""Callback returning the decoded value at zero-based ``(row, column)``."""


class MergedCellResolver:
    """Lookup of merged coordinates to their origin cell's value."""

    def __init__(self) -> None:
        self._values: dict[tuple[int, int], CellValue] = {}
        self.range_count = 0
        self.skipped_ranges: list[str] = []

    @classmethod
    def from_ranges(
        cls, ranges: Iterable[str], origin_value: OriginLookup
    ) -> MergedCellResolver:
        """Build a resolver for a sheet.

        Args:
            ranges: Range references such as ``"A1:B2"``.
            origin_value: Callback decoding the origin cell of a range.

        Returns:
            A populated resolver. Malformed ranges are skipped and listed in
            ``skipped_ranges``.
        """
        resolver = cls()
        for range_ref in ranges:
            resolver.add_range(str(range_ref), origin_value)
        return resolver

    def add_range(self, range_ref: str, origin_value: OriginLookup) -> bool:
        """Register one merged range.

        Returns:
            True if the range was registered, False if it was malformed.
        """
        try:
            (first_col, first_row), (last_col, last_row) = parse_range(range_ref)
        except ValueError:
            self.skipped_ranges.append(range_ref)
            logger.warning("Skipping malformed merged range", range=range_ref)
            return False

        value = origin_value(first_row, first_col)
        for row in range(first_row, last_row + 1):
            for col in range(first_col, last_col + 1):
                self._values[(row, col)] = value
        self.range_count += 1
        return True

    def lookup(self, row: int, column: int) -> CellValue | None:
        """Return the merged value at a coordinate, or None if not merged."""
        return self._values.get((row, column))

    def resolve(self, row: int, column: int, own_value: CellValue) -> CellValue:
        """Return the merged value if the coordinate is merged, else ``own_value``."""
        merged = self._values.get((row, column))
        return own_value if merged is None else merged

    def __contains__(self, coordinate: object) -> bool:
        return coordinate in self._values

    def __len__(self) -> int:
        return len(self._values)
