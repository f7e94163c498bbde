"""Shared contract and behaviour for spreadsheet format readers.

A reader turns one file into a ``FileDocument``. Content problems (missing
files, corruption, a bad sheet) are captured as ``ExcelError`` records on
the returned document; only programming errors and cancellation are raised.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path
from typing import ClassVar

from sheetlens.services.string_pool import StringPool, get_string_pool
from sheetlens.sheet_model import (
    CellValue,
    ExcelError,
    FileDocument,
    SheetData,
    unique_column_names,
)
from sheetlens.utils.exceptions import ErrorCode, OperationCancelledError
from sheetlens.utils.logging import LogContext, get_logger, timed_operation

logger = get_logger(__name__)


class FormatReader(ABC):
    """Base class for readers owning a set of file extensions.

    Subclasses implement ``_read_into`` and list the library exceptions that
    indicate a corrupted file in ``corruption_errors``.
    """

    supported_extensions: ClassVar[frozenset[str]] = frozenset()
    format_name: ClassVar[str] = "spreadsheet"
    corruption_errors: ClassVar[tuple[type[BaseException], ...]] = ()

    def __init__(self, pool: StringPool | None = None) -> None:
        self.pool = pool if pool is not None else get_string_pool()

    def read(
        self,
        path: str | Path,
        cancel_event: threading.Event | None = None,
    ) -> FileDocument:
        """Read a file into a document.

        Args:
            path: File to read.
            cancel_event: Optional event; when set, reading stops at the next
                sheet boundary.

        Returns:
            The loaded document. Its status reflects any captured errors.

        Raises:
            ValueError: If ``path`` is empty.
            OperationCancelledError: If ``cancel_event`` was set.
        """
        if path is None or not str(path).strip():
            raise ValueError("File path must not be empty")

        file_path = Path(path)
        sheets: list[SheetData] = []
        errors: list[ExcelError] = []

        with (
            LogContext(file_path=str(file_path), reader=self.format_name),
            timed_operation(logger, f"{self.format_name}_read") as metrics,
        ):
            self.check_cancelled(cancel_event, file_path)
            try:
                self._read_into(file_path, sheets, errors, cancel_event)
            except OperationCancelledError:
                raise
            except FileNotFoundError as exc:
                errors.append(
                    ExcelError.critical(
                        "File",
                        f"File not found: {file_path}",
                        ErrorCode.FILE_NOT_FOUND,
                        exc,
                    )
                )
            except PermissionError as exc:
                errors.append(
                    ExcelError.critical(
                        "File",
                        f"Access denied: {file_path}",
                        ErrorCode.ACCESS_DENIED,
                        exc,
                    )
                )
            except OSError as exc:
                errors.append(
                    ExcelError.critical(
                        "File",
                        f"Unable to read file: {exc}",
                        ErrorCode.FILE_READ_ERROR,
                        exc,
                    )
                )
            except UnicodeDecodeError as exc:
                errors.append(
                    ExcelError.critical(
                        "File",
                        f"Unable to decode file content: {exc.reason}",
                        ErrorCode.ENCODING_ERROR,
                        exc,
                    )
                )
            except Exception as exc:
                if isinstance(exc, self.corruption_errors):
                    errors.append(
                        ExcelError.critical(
                            "File",
                            f"File is corrupted or not a valid "
                            f"{self.format_name} file: {exc}",
                            ErrorCode.CORRUPTED_FILE,
                            exc,
                        )
                    )
                else:
                    logger.exception("Unexpected error while reading file")
                    errors.append(
                        ExcelError.critical(
                            "File",
                            f"Unexpected error: {exc}",
                            ErrorCode.UNEXPECTED_ERROR,
                            exc,
                        )
                    )

            metrics.files_loaded = 1
            metrics.sheets_read = len(sheets)
            metrics.rows_read = sum(sheet.row_count for sheet in sheets)
            metrics.errors_recorded = sum(1 for error in errors if error.is_error)

        document = FileDocument.create(file_path, sheets, errors)
        logger.log_load_result(
            str(file_path),
            document.status.value,
            metrics.duration_seconds,
            len(sheets),
            len(errors),
        )
        return document

    @abstractmethod
    def _read_into(
        self,
        path: Path,
        sheets: list[SheetData],
        errors: list[ExcelError],
        cancel_event: threading.Event | None,
    ) -> None:
        """Append sheets read from ``path`` and any captured errors."""

    # ------------------------------------------------------------------ #
    # Helpers shared by the concrete readers
    # ------------------------------------------------------------------ #

    @staticmethod
    def check_cancelled(cancel_event: threading.Event | None, path: Path) -> None:
        """Raise if the caller asked to stop."""
        if cancel_event is not None and cancel_event.is_set():
            logger.info("Load cancelled")
            raise OperationCancelledError(str(path))

    @staticmethod
    def read_sheet_isolated(
        sheet_name: str,
        read_sheet: Callable[[], SheetData],
        sheets: list[SheetData],
        errors: list[ExcelError],
    ) -> None:
        """Run one sheet's read, turning any failure into a sheet error.

        A failing sheet never aborts the remaining sheets.
        """
        try:
            sheet = read_sheet()
        except OperationCancelledError:
            raise
        except Exception as exc:
            logger.warning(
                "Failed to read sheet", sheet=sheet_name, error=type(exc).__name__
            )
            errors.append(
                ExcelError.sheet_error(
                    sheet_name,
                    f"Failed to read sheet '{sheet_name}': {exc}",
                    ErrorCode.SHEET_READ_FAILED,
                    exc,
                )
            )
            return
        sheets.append(sheet.freeze())

    @staticmethod
    def build_sheet(
        name: str,
        header: Sequence[CellValue],
        rows: Iterable[Sequence[CellValue]],
        errors: list[ExcelError],
    ) -> SheetData:
        """Build a sheet from a decoded header row and data rows.

        The column span runs from the first to the last non-blank header
        cell; data outside it is ignored. Wholly empty data rows are
        skipped. A blank header yields an empty sheet plus a warning.
        """
        filled = [i for i, cell in enumerate(header) if not cell.is_empty]
        if not filled:
            errors.append(
                ExcelError.warning(
                    f"Sheet:{name}",
                    f"Sheet '{name}' has no header row; no data was read",
                    ErrorCode.EMPTY_HEADER,
                )
            )
            return SheetData(name)

        first, last = filled[0], filled[-1]
        sheet = SheetData(
            name, unique_column_names([str(cell) for cell in header[first : last + 1]])
        )
        for row in rows:
            cells = row[first : last + 1]
            if all(cell.is_empty for cell in cells):
                continue
            sheet.add_row(cells)
        return sheet
