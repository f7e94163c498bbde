from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from pathlib import Path

import pytest
from openpyxl import Workbook

from sheetlens.services.string_pool import (
    StringPool,
    StringPoolConfig,
    reset_string_pool,
)
from sheetlens.sheet_model import FileDocument
from sheetlens.utils.logging import clear_context
from tests.fixtures import build_document

PEOPLE_CSV = "Name,Age\nAlice,30\nBob,25"


@pytest.fixture(autouse=True)
def _isolate_globals() -> Iterator[None]:
    """Reset process-wide state between tests."""
    yield
    reset_string_pool()
    clear_context()


@pytest.fixture
def string_pool() -> StringPool:
    return StringPool(StringPoolConfig(max_entries=1000, max_length=100))


@pytest.fixture
def write_csv(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing CSV text to a file under tmp_path."""

    def _write(content: str, name: str = "data.csv", encoding: str = "utf-8") -> Path:
        path = tmp_path / name
        path.write_bytes(content.encode(encoding))
        return path

    return _write


@pytest.fixture
def people_csv(write_csv: Callable[..., Path]) -> Path:
    return write_csv(PEOPLE_CSV, name="people.csv")


@pytest.fixture
def make_xlsx(tmp_path: Path) -> Callable[..., Path]:
    """Factory saving an openpyxl workbook built from row lists.

    ``sheets`` maps sheet title to rows; ``merges`` maps sheet title to
    range references to merge.
    """

    def _make(
        sheets: dict[str, Sequence[Sequence[object]]],
        name: str = "book.xlsx",
        merges: dict[str, Sequence[str]] | None = None,
    ) -> Path:
        wb = Workbook()
        wb.remove(wb.active)
        for title, rows in sheets.items():
            ws = wb.create_sheet(title)
            for row in rows:
                ws.append(list(row))
            for range_ref in (merges or {}).get(title, ()):
                ws.merge_cells(range_ref)
        path = tmp_path / name
        wb.save(path)
        return path

    return _make


@pytest.fixture
def people_document() -> FileDocument:
    return build_document(
        "/data/people.csv",
        {"Data": (["Name", "Age"], [["Alice", "30"], ["Bob", "25"]])},
    )
