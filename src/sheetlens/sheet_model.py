"""Canonical in-memory model for loaded spreadsheet files.

Every reader produces the same shapes: a ``FileDocument`` holding named
``SheetData`` grids of immutable ``CellValue`` objects, plus the list of
``ExcelError`` records collected while reading.
"""

from __future__ import annotations

import re
import weakref
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, NamedTuple

import pandas as pd

from sheetlens.services.cell_reference import to_reference
from sheetlens.utils.exceptions import ErrorCode, StaleReferenceError

if TYPE_CHECKING:
    from sheetlens.services.string_pool import StringPool


# =============================================================================
# Cell values
# =============================================================================


class CellValueType(str, Enum):
    """Kind of content held by a cell."""

    EMPTY = "empty"
    TEXT = "text"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"


class NumberFormat(NamedTuple):
    """Decimal and digit-group separators used by a culture."""

    decimal_separator: str
    group_separators: str


CULTURES: dict[str, NumberFormat] = {
    "invariant": NumberFormat(".", ","),
    "en-US": NumberFormat(".", ","),
    "en-GB": NumberFormat(".", ","),
    "it-IT": NumberFormat(",", "."),
    "de-DE": NumberFormat(",", "."),
    "es-ES": NumberFormat(",", "."),
    "nl-NL": NumberFormat(",", "."),
    "pt-BR": NumberFormat(",", "."),
    "fr-FR": NumberFormat(",", " \u00a0\u202f"),
    "de-CH": NumberFormat(".", "'’"),
}

_ISO_DATE_PATTERN = re.compile(
    r"^\d{4}-\d{2}-\d{2}(?:[T ]\d{2}:\d{2}(?::\d{2}(?:\.\d{1,6})?)?)?$"
)
_number_patterns: dict[str, re.Pattern[str]] = {}


def get_number_format(culture: str) -> NumberFormat:
    """Look up the separators for a culture name.

    Args:
        culture: Culture name such as ``invariant``, ``en-US`` or ``it-IT``.

    Returns:
        The culture's number format.

    Raises:
        ValueError: If the culture is not known.
    """
    try:
        return CULTURES[culture]
    except KeyError:
        raise ValueError(
            f"Unknown culture '{culture}'. Known cultures: {', '.join(sorted(CULTURES))}"
        ) from None


def _number_pattern(culture: str) -> re.Pattern[str]:
    pattern = _number_patterns.get(culture)
    if pattern is None:
        fmt = get_number_format(culture)
        decimal = re.escape(fmt.decimal_separator)
        group = "[" + re.escape(fmt.group_separators) + "]"
        pattern = re.compile(
            rf"^(?P<sign>[+-]?)"
            rf"(?P<int>\d{{1,3}}(?:{group}\d{{3}})+|\d+)"
            rf"(?:{decimal}(?P<frac>\d+))?"
            rf"(?P<exp>[eE][+-]?\d+)?$"
        )
        _number_patterns[culture] = pattern
    return pattern


def parse_number(text: str, culture: str = "invariant") -> Decimal | None:
    """Parse culture-formatted numeric text.

    Integer parts with a leading zero (``007``) are identifiers, not numbers.

    Args:
        text: Already trimmed text.
        culture: Culture controlling the separators.

    Returns:
        The parsed decimal, or None if the text is not numeric.
    """
    match = _number_pattern(culture).match(text)
    if match is None:
        return None

    fmt = get_number_format(culture)
    int_part = match.group("int")
    for sep in fmt.group_separators:
        int_part = int_part.replace(sep, "")
    if len(int_part) > 1 and int_part.startswith("0"):
        return None

    literal = match.group("sign") + int_part
    if match.group("frac"):
        literal += "." + match.group("frac")
    if match.group("exp"):
        literal += match.group("exp")
    try:
        return Decimal(literal)
    except InvalidOperation:
        return None


def format_number(value: Decimal) -> str:
    """Render a decimal without exponent or trailing zeros."""
    if not value.is_finite():
        return str(value)
    normalized = value.normalize()
    if normalized == 0:
        return "0"
    return format(normalized, "f")


@dataclass(frozen=True, slots=True)
class CellValue:
    """Immutable typed cell content.

    Use the factory classmethods rather than the constructor so payloads are
    normalized (numbers become ``Decimal``, dates become ``datetime``).
    """

    type: CellValueType
    value: str | Decimal | bool | datetime | None = None

    @classmethod
    def empty(cls) -> CellValue:
        return EMPTY

    @classmethod
    def text(cls, value: str) -> CellValue:
        if value == "":
            return EMPTY
        return cls(CellValueType.TEXT, value)

    @classmethod
    def number(cls, value: int | float | Decimal) -> CellValue:
        if isinstance(value, bool):
            raise TypeError("Use CellValue.boolean for bool payloads")
        if isinstance(value, float):
            value = Decimal(repr(value))
        elif isinstance(value, int):
            value = Decimal(value)
        return cls(CellValueType.NUMBER, value)

    @classmethod
    def boolean(cls, value: bool) -> CellValue:
        return cls(CellValueType.BOOLEAN, bool(value))

    @classmethod
    def date(cls, value: datetime | date) -> CellValue:
        if not isinstance(value, datetime):
            value = datetime(value.year, value.month, value.day)
        return cls(CellValueType.DATE, value)

    @classmethod
    def from_string(
        cls,
        text: str | None,
        culture: str = "invariant",
        pool: StringPool | None = None,
    ) -> CellValue:
        """Build a cell from text, auto-detecting its type.

        Detection order: blank, boolean, number, ISO-8601 date, text.

        Args:
            text: Raw text from a textual source.
            culture: Culture used for numeric separators.
            pool: Optional string pool for text payloads.

        Returns:
            The typed cell value.
        """
        if text is None:
            return EMPTY
        stripped = text.strip()
        if not stripped:
            return EMPTY

        lowered = stripped.lower()
        if lowered == "true":
            return cls.boolean(True)
        if lowered == "false":
            return cls.boolean(False)

        number = parse_number(stripped, culture)
        if number is not None:
            return cls(CellValueType.NUMBER, number)

        if _ISO_DATE_PATTERN.match(stripped):
            try:
                return cls.date(datetime.fromisoformat(stripped))
            except ValueError:
                pass

        if pool is not None:
            stripped = pool.intern(stripped)
        return cls.text(stripped)

    @property
    def is_empty(self) -> bool:
        return self.type is CellValueType.EMPTY

    def to_python(self) -> Any:
        """Return a plain Python payload (numbers as float) for tabular export."""
        if self.type is CellValueType.NUMBER:
            return float(self.value)  # type: ignore[arg-type]
        return self.value

    def __str__(self) -> str:
        if self.type is CellValueType.EMPTY:
            return ""
        if self.type is CellValueType.TEXT:
            return self.value  # type: ignore[return-value]
        if self.type is CellValueType.NUMBER:
            return format_number(self.value)  # type: ignore[arg-type]
        if self.type is CellValueType.BOOLEAN:
            return "TRUE" if self.value else "FALSE"
        moment: datetime = self.value  # type: ignore[assignment]
        if moment.hour == moment.minute == moment.second == moment.microsecond == 0:
            return moment.strftime("%Y-%m-%d")
        return moment.strftime("%Y-%m-%d %H:%M:%S")


EMPTY = CellValue(CellValueType.EMPTY)


# =============================================================================
# Sheets
# =============================================================================


def unique_column_names(raw_headers: Sequence[Any]) -> list[str]:
    """Turn a raw header row into unique column names.

    Blank headers become ``Column_<index>``; collisions get ``_2``, ``_3``
    suffixes in encounter order, skipping names already taken.

    Args:
        raw_headers: Header cell contents, in column order.

    Returns:
        Column names with the same length as the input.
    """
    taken: set[str] = set()
    names: list[str] = []
    for index, raw in enumerate(raw_headers):
        base = "" if raw is None else str(raw).strip()
        if not base:
            base = f"Column_{index}"
        name = base
        suffix = 2
        while name in taken:
            name = f"{base}_{suffix}"
            suffix += 1
        taken.add(name)
        names.append(name)
    return names


class SheetData:
    """One worksheet as a column-name header plus fixed-length typed rows.

    Rows are appended while the reader runs, then ``freeze()`` compacts
    storage and makes the sheet read-only.
    """

    def __init__(self, name: str, column_names: Sequence[str] = ()) -> None:
        names = tuple(column_names)
        if len(set(names)) != len(names):
            raise ValueError(f"Column names for sheet '{name}' must be unique")
        self.name = name
        self._column_names = names
        self._index = {column: i for i, column in enumerate(names)}
        self._rows: list[tuple[CellValue, ...]] | tuple[tuple[CellValue, ...], ...] = []
        self._frozen = False
        self._released = False

    @classmethod
    def from_header(cls, name: str, raw_headers: Sequence[Any]) -> SheetData:
        """Create a sheet whose column names are derived from a raw header row."""
        return cls(name, unique_column_names(raw_headers))

    @property
    def column_names(self) -> tuple[str, ...]:
        return self._column_names

    @property
    def rows(self) -> Sequence[tuple[CellValue, ...]]:
        return self._rows

    @property
    def row_count(self) -> int:
        return len(self._rows)

    @property
    def column_count(self) -> int:
        return len(self._column_names)

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    @property
    def is_released(self) -> bool:
        return self._released

    def add_row(self, values: Sequence[CellValue]) -> None:
        """Append a data row, padding short rows with empty cells.

        Raises:
            RuntimeError: If the sheet is frozen or released.
            ValueError: If the row is wider than the header.
        """
        if self._frozen or self._released:
            raise RuntimeError(f"Sheet '{self.name}' is read-only")
        width = len(self._column_names)
        if len(values) > width:
            raise ValueError(
                f"Row has {len(values)} cells but sheet '{self.name}' "
                f"has {width} columns"
            )
        row = tuple(values)
        if len(row) < width:
            row = row + (EMPTY,) * (width - len(row))
        self._rows.append(row)  # type: ignore[union-attr]

    def freeze(self) -> SheetData:
        """Compact row storage and forbid further mutation."""
        if not self._frozen:
            self._rows = tuple(self._rows)
            self._frozen = True
        return self

    def release(self) -> None:
        """Drop all row storage. Column names are kept for diagnostics."""
        self._rows = ()
        self._frozen = True
        self._released = True

    def column_index(self, column_name: str) -> int | None:
        return self._index.get(column_name)

    def get_row(self, row: int) -> tuple[CellValue, ...]:
        if row < 0:
            raise IndexError(f"Row index {row} out of range")
        return self._rows[row]

    def get_cell(self, row: int, column: int) -> CellValue:
        if column < 0:
            raise IndexError(f"Column index {column} out of range")
        return self.get_row(row)[column]

    def get_cell_by_name(self, row: int, column_name: str) -> CellValue:
        index = self._index.get(column_name)
        if index is None:
            raise KeyError(column_name)
        return self.get_row(row)[index]

    def iter_cells(self) -> Iterator[tuple[int, int, CellValue]]:
        """Yield ``(row, column, value)`` in row-major order."""
        for r, row in enumerate(self._rows):
            for c, value in enumerate(row):
                yield r, c, value

    def to_dataframe(self) -> pd.DataFrame:
        """Export the sheet as a pandas DataFrame with native payloads."""
        return pd.DataFrame(
            [[cell.to_python() for cell in row] for row in self._rows],
            columns=list(self._column_names),
        )

    def __repr__(self) -> str:
        return (
            f"SheetData(name={self.name!r}, columns={self.column_count}, "
            f"rows={self.row_count})"
        )


# =============================================================================
# Errors captured during loading
# =============================================================================


class ErrorLevel(str, Enum):
    """Severity of a captured load error."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


@dataclass(frozen=True)
class CellReference:
    """Zero-based cell coordinates."""

    row: int
    column: int

    def to_a1(self) -> str:
        return to_reference(self.column, self.row)

    def __str__(self) -> str:
        return f"R{self.row}C{self.column}"


@dataclass(frozen=True)
class ExcelError:
    """A problem found while loading a file, recorded as data."""

    level: ErrorLevel
    code: ErrorCode
    message: str
    context: str
    location: CellReference | None = None
    cause: BaseException | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def file_error(
        cls,
        message: str,
        code: ErrorCode = ErrorCode.FILE_READ_ERROR,
        cause: BaseException | None = None,
    ) -> ExcelError:
        return cls(ErrorLevel.ERROR, code, message, "File", cause=cause)

    @classmethod
    def sheet_error(
        cls,
        sheet_name: str,
        message: str,
        code: ErrorCode = ErrorCode.SHEET_READ_FAILED,
        cause: BaseException | None = None,
    ) -> ExcelError:
        return cls(ErrorLevel.ERROR, code, message, f"Sheet:{sheet_name}", cause=cause)

    @classmethod
    def cell_error(
        cls,
        sheet_name: str,
        location: CellReference,
        message: str,
        code: ErrorCode = ErrorCode.INVALID_STRUCTURE,
        cause: BaseException | None = None,
    ) -> ExcelError:
        return cls(
            ErrorLevel.ERROR,
            code,
            message,
            f"Cell:{sheet_name}",
            location=location,
            cause=cause,
        )

    @classmethod
    def warning(cls, context: str, message: str, code: ErrorCode) -> ExcelError:
        return cls(ErrorLevel.WARNING, code, message, context)

    @classmethod
    def info(cls, context: str, message: str, code: ErrorCode) -> ExcelError:
        return cls(ErrorLevel.INFO, code, message, context)

    @classmethod
    def critical(
        cls,
        context: str,
        message: str,
        code: ErrorCode = ErrorCode.UNEXPECTED_ERROR,
        cause: BaseException | None = None,
    ) -> ExcelError:
        return cls(ErrorLevel.CRITICAL, code, message, context, cause=cause)

    @property
    def is_error(self) -> bool:
        """Whether this record degrades the load status."""
        return self.level in (ErrorLevel.ERROR, ErrorLevel.CRITICAL)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "level": self.level.value,
            "code": self.code.value,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.location is not None:
            result["location"] = {
                "row": self.location.row,
                "column": self.location.column,
                "cell": self.location.to_a1(),
            }
        if self.cause is not None:
            result["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return result

    def __str__(self) -> str:
        where = f" at {self.location}" if self.location is not None else ""
        return f"[{self.level.value.upper()}] {self.context}: {self.message}{where}"


# =============================================================================
# Documents
# =============================================================================


class LoadStatus(str, Enum):
    """Outcome of loading one file."""

    SUCCESS = "success"
    PARTIAL_SUCCESS = "partial_success"
    FAILED = "failed"


def determine_load_status(
    sheets: Sequence[SheetData] | dict[str, SheetData],
    errors: Iterable[ExcelError],
) -> LoadStatus:
    """Derive the load status from what was read.

    Warnings and info records never degrade the status.
    """
    if len(sheets) == 0:
        return LoadStatus.FAILED
    if any(error.is_error for error in errors):
        return LoadStatus.PARTIAL_SUCCESS
    return LoadStatus.SUCCESS


class FileDocument:
    """A loaded spreadsheet file: its sheets, status and captured errors.

    A document exclusively owns its sheets. ``release()`` (or leaving a
    ``with`` block) drops their storage; derived search results and rows
    hold only weak references and become stale afterwards.
    """

    def __init__(
        self,
        path: str | Path,
        status: LoadStatus,
        sheets: Iterable[SheetData] = (),
        errors: Iterable[ExcelError] = (),
        loaded_at: datetime | None = None,
    ) -> None:
        self.path = str(path)
        self.status = status
        sheet_map: dict[str, SheetData] = {}
        for sheet in sheets:
            if sheet.name in sheet_map:
                raise ValueError(f"Duplicate sheet name '{sheet.name}' in {self.path}")
            sheet_map[sheet.name] = sheet
        if (status is LoadStatus.FAILED) != (not sheet_map):
            raise ValueError(
                f"Inconsistent document state: status={status.value} "
                f"with {len(sheet_map)} sheet(s)"
            )
        self._sheets = sheet_map
        self.errors: tuple[ExcelError, ...] = tuple(errors)
        self.loaded_at = loaded_at or datetime.now(UTC)
        self._released = False

    @classmethod
    def create(
        cls,
        path: str | Path,
        sheets: Sequence[SheetData],
        errors: Sequence[ExcelError] = (),
    ) -> FileDocument:
        """Build a document whose status is derived from its content."""
        return cls(path, determine_load_status(sheets, errors), sheets, errors)

    @classmethod
    def failed(cls, path: str | Path, errors: Sequence[ExcelError]) -> FileDocument:
        return cls(path, LoadStatus.FAILED, (), errors)

    @property
    def sheets(self) -> MappingProxyType[str, SheetData]:
        return MappingProxyType(self._sheets)

    @property
    def file_name(self) -> str:
        return Path(self.path).name

    @property
    def sheet_names(self) -> list[str]:
        return list(self._sheets)

    @property
    def is_released(self) -> bool:
        return self._released

    @property
    def has_errors(self) -> bool:
        return any(error.is_error for error in self.errors)

    @property
    def has_warnings(self) -> bool:
        return any(error.level is ErrorLevel.WARNING for error in self.errors)

    @property
    def has_critical_errors(self) -> bool:
        return any(error.level is ErrorLevel.CRITICAL for error in self.errors)

    def get_sheet(self, name: str) -> SheetData | None:
        return self._sheets.get(name)

    def errors_by_level(self, level: ErrorLevel) -> list[ExcelError]:
        return [error for error in self.errors if error.level is level]

    def release(self) -> None:
        """Release every sheet's storage."""
        if self._released:
            return
        for sheet in self._sheets.values():
            sheet.release()
        self._released = True

    def __enter__(self) -> FileDocument:
        return self

    def __exit__(self, *args: Any) -> None:
        self.release()

    def __repr__(self) -> str:
        return (
            f"FileDocument(path={self.path!r}, status={self.status.value}, "
            f"sheets={len(self._sheets)}, errors={len(self.errors)})"
        )


class DocumentRef:
    """Non-owning reference to a ``FileDocument``.

    Derived objects (search results, extracted rows) hold one of these so
    they never keep a released document's memory alive.
    """

    __slots__ = ("_ref", "path")

    def __init__(self, document: FileDocument) -> None:
        self._ref = weakref.ref(document)
        self.path = document.path

    @property
    def is_alive(self) -> bool:
        document = self._ref()
        return document is not None and not document.is_released

    def get(self) -> FileDocument:
        """Return the referenced document.

        Raises:
            StaleReferenceError: If the document was released or collected.
        """
        document = self._ref()
        if document is None or document.is_released:
            raise StaleReferenceError(self.path)
        return document

    def refers_to(self, document: FileDocument) -> bool:
        return self._ref() is document

    def __repr__(self) -> str:
        state = "alive" if self.is_alive else "stale"
        return f"DocumentRef({self.path!r}, {state})"
