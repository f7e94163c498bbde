"""Reader for legacy BIFF workbooks (.xls, .xlt).

xlrd exposes native cell types but neither merged ranges (without
formatting_info) nor formulas, so this reader does not resolve merged
cells and reads stored values only.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any

import xlrd
from xlrd.biffh import error_text_from_code
from xlrd.compdoc import CompDocError
from xlrd.sheet import Sheet
from xlrd.xldate import XLDateError, xldate_as_datetime

from sheetlens.services.cell_decoder import CellValueDecoder
from sheetlens.services.readers.base import FormatReader
from sheetlens.services.string_pool import StringPool
from sheetlens.sheet_model import EMPTY, CellValue, ExcelError, SheetData
from sheetlens.utils.exceptions import ErrorCode
from sheetlens.utils.logging import get_logger

logger = get_logger(__name__)


class XlsReader(FormatReader):
    """Read legacy workbooks with xlrd."""

    supported_extensions = frozenset({".xls", ".xlt"})
    format_name = "xls"
    corruption_errors = (xlrd.XLRDError, CompDocError)

    def __init__(self, pool: StringPool | None = None) -> None:
        super().__init__(pool)
        self.decoder = CellValueDecoder(self.pool)

    def _read_into(
        self,
        path: Path,
        sheets: list[SheetData],
        errors: list[ExcelError],
        cancel_event: threading.Event | None,
    ) -> None:
        book = xlrd.open_workbook(str(path), on_demand=True)
        try:
            if book.nsheets == 0:
                errors.append(
                    ExcelError.file_error(
                        "Workbook contains no worksheets", ErrorCode.NO_SHEETS
                    )
                )
                return

            for index, name in enumerate(book.sheet_names()):
                self.check_cancelled(cancel_event, path)
                self.read_sheet_isolated(
                    name,
                    lambda i=index: self._read_sheet(
                        book.sheet_by_index(i), book.datemode, errors
                    ),
                    sheets,
                    errors,
                )
        finally:
            book.release_resources()

    def _read_sheet(
        self, sheet: Sheet, datemode: int, errors: list[ExcelError]
    ) -> SheetData:
        decoded = [
            [self._decode(cell.ctype, cell.value, datemode) for cell in sheet.row(r)]
            for r in range(sheet.nrows)
        ]
        logger.debug("Worksheet decoded", sheet=sheet.name, rows=sheet.nrows)
        header = decoded[0] if decoded else []
        return self.build_sheet(sheet.name, header, decoded[1:], errors)

    def _decode(self, ctype: int, value: Any, datemode: int) -> CellValue:
        if ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK):
            return EMPTY
        if ctype == xlrd.XL_CELL_NUMBER:
            return CellValue.number(value)
        if ctype == xlrd.XL_CELL_DATE:
            try:
                return CellValue.date(xldate_as_datetime(value, datemode))
            except (XLDateError, ValueError, OverflowError):
                return CellValue.number(value)
        if ctype == xlrd.XL_CELL_BOOLEAN:
            return CellValue.boolean(bool(value))
        if ctype == xlrd.XL_CELL_ERROR:
            return self.decoder.decode(
                error_text_from_code.get(value, f"#ERR{value}"), "e"
            )
        return self.decoder.decode(value)
