"""Decode raw spreadsheet cell payloads into typed ``CellValue`` objects."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any

from openpyxl.cell import Cell

from sheetlens.services.string_pool import StringPool
from sheetlens.sheet_model import EMPTY, CellValue, parse_number


class CellValueDecoder:
    """Pure mapping from a raw cell payload to a ``CellValue``.

    Data type flags follow the openpyxl/SpreadsheetML convention: ``s``
    shared string, ``b`` boolean, ``d`` date, ``e`` error, ``n`` number,
    ``str``/``inlineStr`` literal text. Text payloads are interned through
    the string pool when one is given.
    """

    def __init__(self, pool: StringPool | None = None, culture: str = "invariant"):
        self.pool = pool
        self.culture = culture

    def decode(
        self,
        raw_value: Any,
        data_type: str | None = None,
        shared_strings: Sequence[str] | None = None,
    ) -> CellValue:
        """Decode one raw payload.

        Args:
            raw_value: The stored cell value.
            data_type: Optional SpreadsheetML type flag.
            shared_strings: Read-only shared string table for ``s`` cells.

        Returns:
            The typed cell value.
        """
        if raw_value is None:
            return EMPTY

        if data_type == "s" and shared_strings is not None:
            index = _as_index(raw_value)
            if index is not None and 0 <= index < len(shared_strings):
                return self._text(shared_strings[index])

        if data_type == "b" or isinstance(raw_value, bool):
            return CellValue.boolean(_as_bool(raw_value))

        if isinstance(raw_value, (datetime, date)):
            return CellValue.date(raw_value)
        if isinstance(raw_value, time):
            return self._text(raw_value.isoformat())
        if data_type == "d" and isinstance(raw_value, str):
            try:
                return CellValue.date(datetime.fromisoformat(raw_value.strip()))
            except ValueError:
                return self._text(raw_value)

        if data_type == "e":
            return self._text(str(raw_value))

        if isinstance(raw_value, (int, float, Decimal)):
            return CellValue.number(raw_value)

        text = str(raw_value)
        number = parse_number(text.strip(), self.culture)
        if number is not None:
            return CellValue.number(number)
        return self._text(text)

    def decode_cell(self, cell: Cell) -> CellValue:
        """Decode an openpyxl cell, honouring its date number format."""
        data_type = "d" if getattr(cell, "is_date", False) else cell.data_type
        return self.decode(cell.value, data_type)

    def _text(self, text: str) -> CellValue:
        if not text.strip():
            return EMPTY
        if self.pool is not None:
            text = self.pool.intern(text)
        return CellValue.text(text)


def _as_index(raw_value: Any) -> int | None:
    if isinstance(raw_value, bool):
        return None
    if isinstance(raw_value, int):
        return raw_value
    if isinstance(raw_value, str) and raw_value.strip().isdigit():
        return int(raw_value)
    return None


def _as_bool(raw_value: Any) -> bool:
    if isinstance(raw_value, str):
        return raw_value.strip().lower() in ("1", "true")
    return bool(raw_value)
