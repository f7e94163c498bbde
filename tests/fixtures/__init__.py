"""Helpers for building in-memory documents in tests.

Example usage:
    from tests.fixtures import build_document

    doc = build_document(
        "/data/people.csv",
        {"Data": (["Name", "Age"], [["Alice", "30"], ["Bob", "25"]])},
    )
"""

from collections.abc import Sequence

from sheetlens.sheet_model import CellValue, FileDocument, SheetData

SheetSpec = tuple[Sequence[str], Sequence[Sequence[str]]]


def build_document(path: str, sheets: dict[str, SheetSpec]) -> FileDocument:
    """Build a document from column names and textual rows.

    Args:
        path: Path recorded on the document; the file need not exist.
        sheets: Sheet name mapped to ``(column_names, rows)``.

    Returns:
        A SUCCESS document with frozen sheets.
    """
    built = []
    for name, (columns, rows) in sheets.items():
        sheet = SheetData(name, columns)
        for row in rows:
            sheet.add_row([CellValue.from_string(value) for value in row])
        built.append(sheet.freeze())
    return FileDocument.create(path, built)
