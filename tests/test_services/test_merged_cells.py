"""Tests for merged-cell resolution."""

from sheetlens.services.merged_cells import MergedCellResolver
from sheetlens.sheet_model import EMPTY, CellValue


def _origin(values: dict[tuple[int, int], str]):
    calls: list[tuple[int, int]] = []

    def lookup(row: int, column: int) -> CellValue:
        calls.append((row, column))
        return CellValue.text(values.get((row, column), ""))

    return lookup, calls


class TestMergedCellResolver:
    """Tests for MergedCellResolver."""

    def test_range_maps_every_coordinate_to_origin(self) -> None:
        lookup, calls = _origin({(0, 0): "X"})
        resolver = MergedCellResolver.from_ranges(["A1:B2"], lookup)

        for row in (0, 1):
            for col in (0, 1):
                assert resolver.lookup(row, col) == CellValue.text("X")
        assert calls == [(0, 0)]
        assert resolver.range_count == 1
        assert len(resolver) == 4

    def test_unmerged_coordinate(self) -> None:
        lookup, _ = _origin({(0, 0): "X"})
        resolver = MergedCellResolver.from_ranges(["A1:B2"], lookup)
        assert resolver.lookup(2, 0) is None
        assert (2, 0) not in resolver
        assert (1, 1) in resolver

    def test_resolve_prefers_merged_value(self) -> None:
        lookup, _ = _origin({(1, 2): "Total"})
        resolver = MergedCellResolver.from_ranges(["C2:E2"], lookup)
        own = CellValue.text("own")
        assert resolver.resolve(1, 4, EMPTY) == CellValue.text("Total")
        assert resolver.resolve(0, 0, own) is own

    def test_malformed_ranges_are_skipped(self) -> None:
        lookup, _ = _origin({(0, 0): "X"})
        resolver = MergedCellResolver.from_ranges(["bogus", "A1:A2"], lookup)
        assert resolver.skipped_ranges == ["bogus"]
        assert resolver.range_count == 1
        assert resolver.lookup(1, 0) == CellValue.text("X")

    def test_empty_origin(self) -> None:
        lookup, _ = _origin({})
        resolver = MergedCellResolver.from_ranges(["A1:A3"], lookup)
        assert resolver.lookup(2, 0) is EMPTY
