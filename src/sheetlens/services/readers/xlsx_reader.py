"""Reader for Office Open XML workbooks (.xlsx, .xlsm, .xltx, .xltm)."""

from __future__ import annotations

import threading
import zipfile
from pathlib import Path

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.worksheet.worksheet import Worksheet

from sheetlens.services.cell_decoder import CellValueDecoder
from sheetlens.services.merged_cells import MergedCellResolver
from sheetlens.services.readers.base import FormatReader
from sheetlens.services.string_pool import StringPool
from sheetlens.sheet_model import CellValue, ExcelError, SheetData
from sheetlens.utils.exceptions import ErrorCode
from sheetlens.utils.logging import get_logger

logger = get_logger(__name__)


class XlsxReader(FormatReader):
    """Read workbooks with openpyxl.

    Only cached formula results are read (``data_only=True``). Merged
    ranges are resolved so every covered cell carries the origin's value.
    """

    supported_extensions = frozenset({".xlsx", ".xlsm", ".xltx", ".xltm"})
    format_name = "xlsx"
    corruption_errors = (zipfile.BadZipFile, InvalidFileException, KeyError)

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
        # read_only mode does not expose merged ranges
        workbook = load_workbook(filename=path, data_only=True, read_only=False)
        try:
            if not workbook.worksheets:
                errors.append(
                    ExcelError.file_error(
                        "Workbook contains no worksheets", ErrorCode.NO_SHEETS
                    )
                )
                return

            for worksheet in workbook.worksheets:
                self.check_cancelled(cancel_event, path)
                self.read_sheet_isolated(
                    worksheet.title,
                    lambda ws=worksheet: self._read_sheet(ws, errors),
                    sheets,
                    errors,
                )
        finally:
            workbook.close()

    def _read_sheet(self, worksheet: Worksheet, errors: list[ExcelError]) -> SheetData:
        merged = MergedCellResolver.from_ranges(
            (str(rng) for rng in worksheet.merged_cells.ranges),
            lambda row, col: self.decoder.decode_cell(
                worksheet.cell(row=row + 1, column=col + 1)
            ),
        )
        for range_ref in merged.skipped_ranges:
            errors.append(
                ExcelError.warning(
                    f"Sheet:{worksheet.title}",
                    f"Ignored malformed merged range '{range_ref}'",
                    ErrorCode.INVALID_STRUCTURE,
                )
            )

        decoded = [
            [
                merged.resolve(r, c, self.decoder.decode_cell(cell))
                for c, cell in enumerate(row)
            ]
            for r, row in enumerate(worksheet.iter_rows())
        ]
        logger.debug(
            "Worksheet decoded",
            sheet=worksheet.title,
            rows=len(decoded),
            merged_ranges=merged.range_count,
        )

        header: list[CellValue] = decoded[0] if decoded else []
        return self.build_sheet(worksheet.title, header, decoded[1:], errors)
