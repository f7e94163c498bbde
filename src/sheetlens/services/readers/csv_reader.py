"""Reader for delimited text files (.csv).

The file becomes a single sheet named ``Data``. Encoding is detected with
chardet unless configured, the delimiter is sniffed from the leading lines
unless configured, and values are typed with ``CellValue.from_string``
using the configured culture's number separators.
"""

from __future__ import annotations

import codecs
import io
import threading
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

import chardet
import pandas as pd

from sheetlens.config import settings
from sheetlens.services.readers.base import FormatReader
from sheetlens.services.string_pool import StringPool
from sheetlens.sheet_model import (
    CellValue,
    ExcelError,
    SheetData,
    get_number_format,
)
from sheetlens.utils.exceptions import ErrorCode
from sheetlens.utils.logging import get_logger

logger = get_logger(__name__)

CSV_SHEET_NAME = "Data"

# Candidate delimiters in tie-break order
DELIMITER_CANDIDATES = (",", ";", "\t", "|")


@dataclass(frozen=True)
class CsvReaderOptions:
    """Runtime options for the CSV reader.

    Attributes:
        delimiter: Field separator, or None to auto-detect.
        encoding: Text encoding, or None to detect with chardet.
        has_header_row: Whether the first record holds column names.
        culture: Culture name controlling numeric separators.
    """

    delimiter: str | None = None
    encoding: str | None = None
    has_header_row: bool = True
    culture: str = "invariant"

    def __post_init__(self) -> None:
        if self.delimiter is not None and len(self.delimiter) != 1:
            raise ValueError(
                f"Delimiter must be a single character, got {self.delimiter!r}"
            )
        if self.encoding is not None:
            try:
                codecs.lookup(self.encoding)
            except LookupError:
                raise ValueError(f"Unknown encoding: {self.encoding}") from None
        get_number_format(self.culture)


def detect_delimiter(lines: Sequence[str], sample_size: int = 5) -> str:
    """Pick the delimiter used consistently across the leading lines.

    A candidate qualifies when it appears on every sampled non-blank line
    the same, positive number of times. The qualifying candidate with the
    highest count wins; ties keep candidate order. Falls back to comma.

    Args:
        lines: Lines of the file.
        sample_size: Maximum number of non-blank lines to sample.

    Returns:
        The detected delimiter.
    """
    sample = [line for line in lines if line.strip()][:sample_size]
    if not sample:
        return ","

    best = ","
    best_count = 0
    for candidate in DELIMITER_CANDIDATES:
        counts = {line.count(candidate) for line in sample}
        if len(counts) != 1:
            continue
        count = counts.pop()
        if count > best_count:
            best, best_count = candidate, count
    return best


class CsvReader(FormatReader):
    """Read delimited text with pandas."""

    supported_extensions = frozenset({".csv"})
    format_name = "csv"
    corruption_errors = (pd.errors.ParserError,)

    # Common encodings to try if chardet is not confident
    FALLBACK_ENCODINGS = ["utf-8", "latin-1", "cp1252", "iso-8859-1", "ascii"]

    # Minimum confidence threshold for encoding detection
    MIN_ENCODING_CONFIDENCE = 0.5

    def __init__(
        self,
        options: CsvReaderOptions | None = None,
        pool: StringPool | None = None,
    ) -> None:
        super().__init__(pool)
        self.options = options or CsvReaderOptions()

    def configure(self, options: CsvReaderOptions) -> None:
        """Replace the reader options for subsequent reads.

        Raises:
            TypeError: If ``options`` is not a ``CsvReaderOptions``.
        """
        if not isinstance(options, CsvReaderOptions):
            raise TypeError(
                f"Expected CsvReaderOptions, got {type(options).__name__}"
            )
        self.options = options
        logger.info(
            "CSV reader reconfigured",
            delimiter=repr(options.delimiter),
            encoding=options.encoding,
            has_header_row=options.has_header_row,
            culture=options.culture,
        )

    def _read_into(
        self,
        path: Path,
        sheets: list[SheetData],
        errors: list[ExcelError],
        cancel_event: threading.Event | None,
    ) -> None:
        options = self.options
        content = path.read_bytes()
        context = f"Sheet:{CSV_SHEET_NAME}"

        if not content.strip():
            errors.append(
                ExcelError.warning(context, "File is empty", ErrorCode.NO_DATA)
            )
            sheets.append(SheetData(CSV_SHEET_NAME).freeze())
            return

        if options.encoding:
            encoding = options.encoding
            text = content.decode(encoding)
        else:
            encoding, text = self._decode_detected(content)
        text = text.lstrip("\ufeff")
        delimiter = options.delimiter or detect_delimiter(
            text.splitlines(), settings.csv_sample_lines
        )
        logger.debug("CSV format resolved", encoding=encoding, delimiter=repr(delimiter))

        self.check_cancelled(cancel_event, path)
        self.read_sheet_isolated(
            CSV_SHEET_NAME,
            lambda: self._parse(text, delimiter, options, errors),
            sheets,
            errors,
        )

    def _parse(
        self,
        text: str,
        delimiter: str,
        options: CsvReaderOptions,
        errors: list[ExcelError],
    ) -> SheetData:
        read_options = {
            "sep": delimiter,
            "header": None,
            "dtype": str,  # Keep all values as strings
            "keep_default_na": False,  # Don't convert empty strings to NaN
            "engine": "python",
            "skip_blank_lines": True,
        }
        truncated_rows = 0

        try:
            # The first record fixes the column count
            width = pd.read_csv(io.StringIO(text), nrows=1, **read_options).shape[1]

            def keep_leading_fields(fields: list[str]) -> list[str]:
                nonlocal truncated_rows
                truncated_rows += 1
                return fields[:width]

            frame = pd.read_csv(
                io.StringIO(text), on_bad_lines=keep_leading_fields, **read_options
            )
        except pd.errors.EmptyDataError:
            errors.append(
                ExcelError.warning(
                    f"Sheet:{CSV_SHEET_NAME}", "File has no data", ErrorCode.NO_DATA
                )
            )
            return SheetData(CSV_SHEET_NAME)

        if truncated_rows:
            logger.warning(
                "Extra CSV fields ignored", rows=truncated_rows, columns=width
            )
            errors.append(
                ExcelError.warning(
                    f"Sheet:{CSV_SHEET_NAME}",
                    f"{truncated_rows} row(s) had more than {width} fields; "
                    "the extra fields were ignored",
                    ErrorCode.INVALID_STRUCTURE,
                )
            )

        records = frame.fillna("").values.tolist()

        def typed(record: Sequence[str]) -> list[CellValue]:
            return [
                CellValue.from_string(value, options.culture, self.pool)
                for value in record
            ]

        if not options.has_header_row:
            sheet = SheetData(
                CSV_SHEET_NAME, [f"Column_{i}" for i in range(frame.shape[1])]
            )
            for record in records:
                row = typed(record)
                if not all(cell.is_empty for cell in row):
                    sheet.add_row(row)
            return sheet

        header = [CellValue.text(str(value).strip()) for value in records[0]]
        return self.build_sheet(
            CSV_SHEET_NAME, header, (typed(r) for r in records[1:]), errors
        )

    def _detect_encoding(self, content: bytes) -> str:
        """Detect the encoding of byte content.

        Args:
            content: File content as bytes.

        Returns:
            A Python codec name able to decode ``content``.
        """
        if content.startswith(codecs.BOM_UTF8):
            return "utf-8-sig"

        result = chardet.detect(content)
        encoding = result.get("encoding")
        confidence = result.get("confidence", 0.0) or 0.0

        if encoding and confidence >= self.MIN_ENCODING_CONFIDENCE:
            logger.debug(
                f"Detected encoding: {encoding} (confidence: {confidence:.2f})"
            )
            return encoding

        for fallback in self.FALLBACK_ENCODINGS:
            try:
                content.decode(fallback)
                logger.debug(f"Using fallback encoding: {fallback}")
                return fallback
            except UnicodeDecodeError:
                continue

        logger.warning("Could not detect encoding, falling back to latin-1")
        return "latin-1"

    def _decode_detected(self, content: bytes) -> tuple[str, str]:
        """Decode with the detected encoding, trying fallbacks if it fails.

        Returns:
            Tuple of (encoding_used, text).
        """
        encoding = self._detect_encoding(content)
        try:
            return encoding, content.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            for fallback in self.FALLBACK_ENCODINGS:
                try:
                    return fallback, content.decode(fallback)
                except UnicodeDecodeError:
                    continue
            raise
