"""Tests for the in-memory sheet model."""

import gc
from datetime import date, datetime
from decimal import Decimal

import pytest

from sheetlens.sheet_model import (
    EMPTY,
    CellReference,
    CellValue,
    CellValueType,
    DocumentRef,
    ErrorLevel,
    ExcelError,
    FileDocument,
    LoadStatus,
    SheetData,
    determine_load_status,
    format_number,
    get_number_format,
    parse_number,
    unique_column_names,
)
from sheetlens.services.string_pool import StringPool
from sheetlens.utils.exceptions import ErrorCode, StaleReferenceError
from tests.fixtures import build_document


class TestCellValue:
    """Tests for CellValue factories and rendering."""

    def test_empty_is_singleton(self) -> None:
        assert CellValue.empty() is EMPTY
        assert EMPTY.is_empty
        assert str(EMPTY) == ""

    def test_empty_text_becomes_empty(self) -> None:
        assert CellValue.text("").is_empty

    def test_number_normalizes_payload(self) -> None:
        assert CellValue.number(30).value == Decimal(30)
        assert CellValue.number(0.1).value == Decimal("0.1")
        assert str(CellValue.number(30.0)) == "30"
        assert str(CellValue.number(Decimal("1.500"))) == "1.5"

    def test_number_rejects_bool(self) -> None:
        with pytest.raises(TypeError):
            CellValue.number(True)

    def test_boolean_rendering(self) -> None:
        assert str(CellValue.boolean(True)) == "TRUE"
        assert str(CellValue.boolean(False)) == "FALSE"

    def test_date_rendering(self) -> None:
        assert str(CellValue.date(date(2024, 1, 15))) == "2024-01-15"
        assert str(CellValue.date(datetime(2024, 1, 15, 9, 30))) == "2024-01-15 09:30:00"

    def test_date_from_date_becomes_datetime(self) -> None:
        value = CellValue.date(date(2024, 1, 15))
        assert value.value == datetime(2024, 1, 15)

    def test_values_are_immutable(self) -> None:
        value = CellValue.text("x")
        with pytest.raises(AttributeError):
            value.value = "y"  # type: ignore[misc]

    def test_equality_by_value(self) -> None:
        assert CellValue.text("a") == CellValue.text("a")
        assert CellValue.number(1) == CellValue.number(1.0)

    def test_to_python(self) -> None:
        assert CellValue.number(2.5).to_python() == 2.5
        assert isinstance(CellValue.number(2).to_python(), float)
        assert CellValue.text("a").to_python() == "a"
        assert EMPTY.to_python() is None


class TestFromString:
    """Tests for type detection from text."""

    @pytest.mark.parametrize("text", [None, "", "   ", "\t"])
    def test_blank_is_empty(self, text: str | None) -> None:
        assert CellValue.from_string(text).is_empty

    @pytest.mark.parametrize(("text", "expected"), [("true", True), ("FALSE", False), (" True ", True)])
    def test_booleans(self, text: str, expected: bool) -> None:
        value = CellValue.from_string(text)
        assert value.type is CellValueType.BOOLEAN
        assert value.value is expected

    @pytest.mark.parametrize(
        ("text", "expected"),
        [("30", "30"), ("-4.25", "-4.25"), ("1,234.5", "1234.5"), ("1e3", "1000"), ("0.5", "0.5"), ("0", "0")],
    )
    def test_invariant_numbers(self, text: str, expected: str) -> None:
        value = CellValue.from_string(text)
        assert value.type is CellValueType.NUMBER
        assert str(value) == expected

    def test_leading_zero_stays_text(self) -> None:
        value = CellValue.from_string("007")
        assert value.type is CellValueType.TEXT
        assert value.value == "007"

    def test_iso_dates(self) -> None:
        value = CellValue.from_string("2024-03-01")
        assert value.type is CellValueType.DATE
        assert value.value == datetime(2024, 3, 1)
        stamped = CellValue.from_string("2024-03-01T08:15:00")
        assert stamped.value == datetime(2024, 3, 1, 8, 15)

    def test_invalid_date_is_text(self) -> None:
        assert CellValue.from_string("2024-13-45").type is CellValueType.TEXT

    def test_text_is_trimmed(self) -> None:
        assert CellValue.from_string("  Alice ").value == "Alice"

    def test_text_is_pooled(self, string_pool: StringPool) -> None:
        first = CellValue.from_string("".join(["Bo", "b"]), pool=string_pool)
        second = CellValue.from_string("".join(["B", "ob"]), pool=string_pool)
        assert first.value is second.value

    def test_culture_separators(self) -> None:
        assert str(CellValue.from_string("1.234,5", culture="it-IT")) == "1234.5"
        assert str(CellValue.from_string("1 234,5", culture="fr-FR")) == "1234.5"
        assert str(CellValue.from_string("1'234.5", culture="de-CH")) == "1234.5"

    def test_wrong_culture_separator_is_text(self) -> None:
        assert CellValue.from_string("1.234,5").type is CellValueType.TEXT


class TestNumbers:
    """Tests for number parsing helpers."""

    def test_unknown_culture(self) -> None:
        with pytest.raises(ValueError, match="Unknown culture"):
            get_number_format("xx-XX")

    def test_parse_number_rejects_malformed_groups(self) -> None:
        assert parse_number("1,23,4") is None
        assert parse_number("abc") is None

    def test_format_number(self) -> None:
        assert format_number(Decimal("1E+3")) == "1000"
        assert format_number(Decimal("-0.0")) == "0"


class TestUniqueColumnNames:
    """Tests for header normalization."""

    def test_blank_headers_get_positional_names(self) -> None:
        assert unique_column_names(["A", None, " "]) == ["A", "Column_1", "Column_2"]

    def test_duplicates_get_suffixes(self) -> None:
        assert unique_column_names(["A", "A", "A"]) == ["A", "A_2", "A_3"]

    def test_suffix_skips_taken_names(self) -> None:
        assert unique_column_names(["A", "A_2", "A"]) == ["A", "A_2", "A_3"]


class TestSheetData:
    """Tests for SheetData."""

    def test_rows_are_padded(self) -> None:
        sheet = SheetData("S", ["A", "B", "C"])
        sheet.add_row([CellValue.text("x")])
        assert sheet.get_row(0) == (CellValue.text("x"), EMPTY, EMPTY)

    def test_wide_row_rejected(self) -> None:
        sheet = SheetData("S", ["A"])
        with pytest.raises(ValueError):
            sheet.add_row([EMPTY, EMPTY])

    def test_duplicate_columns_rejected(self) -> None:
        with pytest.raises(ValueError, match="unique"):
            SheetData("S", ["A", "A"])

    def test_from_header(self) -> None:
        sheet = SheetData.from_header("S", ["Name", "", "Name"])
        assert sheet.column_names == ("Name", "Column_1", "Name_2")

    def test_freeze_makes_read_only(self) -> None:
        sheet = SheetData("S", ["A"]).freeze()
        assert sheet.is_frozen
        with pytest.raises(RuntimeError):
            sheet.add_row([EMPTY])

    def test_cell_access(self) -> None:
        sheet = SheetData("S", ["Name", "Age"])
        sheet.add_row([CellValue.text("Alice"), CellValue.number(30)])
        sheet.freeze()
        assert sheet.row_count == 1
        assert sheet.column_count == 2
        assert sheet.column_index("Age") == 1
        assert sheet.column_index("Missing") is None
        assert sheet.get_cell(0, 1) == CellValue.number(30)
        assert sheet.get_cell_by_name(0, "Name") == CellValue.text("Alice")
        with pytest.raises(KeyError):
            sheet.get_cell_by_name(0, "Missing")
        with pytest.raises(IndexError):
            sheet.get_cell(5, 0)
        with pytest.raises(IndexError):
            sheet.get_row(-1)

    def test_iter_cells_row_major(self) -> None:
        sheet = SheetData("S", ["A", "B"])
        sheet.add_row([CellValue.text("a1"), CellValue.text("b1")])
        sheet.add_row([CellValue.text("a2")])
        cells = [(r, c, str(v)) for r, c, v in sheet.iter_cells()]
        assert cells == [(0, 0, "a1"), (0, 1, "b1"), (1, 0, "a2"), (1, 1, "")]

    def test_release_drops_rows(self) -> None:
        sheet = SheetData("S", ["A"])
        sheet.add_row([CellValue.text("x")])
        sheet.release()
        assert sheet.is_released
        assert sheet.row_count == 0
        assert sheet.column_names == ("A",)

    def test_to_dataframe(self) -> None:
        sheet = SheetData("S", ["Name", "Age"])
        sheet.add_row([CellValue.text("Alice"), CellValue.number(30)])
        frame = sheet.to_dataframe()
        assert list(frame.columns) == ["Name", "Age"]
        assert frame.iloc[0]["Age"] == 30.0


class TestExcelError:
    """Tests for captured load errors."""

    def test_factories_set_level_and_context(self) -> None:
        assert ExcelError.file_error("x").context == "File"
        assert ExcelError.file_error("x").level is ErrorLevel.ERROR
        assert ExcelError.sheet_error("Data", "x").context == "Sheet:Data"
        assert ExcelError.warning("File", "x", ErrorCode.NO_DATA).level is ErrorLevel.WARNING
        assert ExcelError.info("File", "x", ErrorCode.NO_DATA).level is ErrorLevel.INFO
        assert ExcelError.critical("File", "x").code is ErrorCode.UNEXPECTED_ERROR

    def test_cell_error_location(self) -> None:
        error = ExcelError.cell_error("Data", CellReference(2, 27), "bad")
        assert error.context == "Cell:Data"
        data = error.to_dict()
        assert data["location"] == {"row": 2, "column": 27, "cell": "AB3"}
        assert "R2C27" in str(error)

    def test_to_dict_includes_cause(self) -> None:
        error = ExcelError.file_error("x", cause=OSError("disk"))
        data = error.to_dict()
        assert data["cause"] == "OSError: disk"
        assert data["level"] == "error"
        assert data["code"] == ErrorCode.FILE_READ_ERROR.value

    def test_is_error(self) -> None:
        assert ExcelError.critical("File", "x").is_error
        assert not ExcelError.warning("File", "x", ErrorCode.NO_DATA).is_error


class TestLoadStatus:
    """Tests for load status derivation."""

    def test_no_sheets_is_failed(self) -> None:
        assert determine_load_status([], []) is LoadStatus.FAILED

    def test_warnings_do_not_degrade(self) -> None:
        sheet = SheetData("S", ["A"])
        warning = ExcelError.warning("File", "x", ErrorCode.EMPTY_HEADER)
        assert determine_load_status([sheet], [warning]) is LoadStatus.SUCCESS

    def test_errors_degrade_to_partial(self) -> None:
        sheet = SheetData("S", ["A"])
        error = ExcelError.sheet_error("Other", "boom")
        assert determine_load_status([sheet], [error]) is LoadStatus.PARTIAL_SUCCESS


class TestFileDocument:
    """Tests for FileDocument."""

    def test_create_derives_status(self, people_document: FileDocument) -> None:
        assert people_document.status is LoadStatus.SUCCESS
        assert people_document.file_name == "people.csv"
        assert people_document.sheet_names == ["Data"]
        assert not people_document.has_errors

    def test_failed_document(self) -> None:
        doc = FileDocument.failed("/x.xlsx", [ExcelError.critical("File", "boom")])
        assert doc.status is LoadStatus.FAILED
        assert doc.sheets == {}
        assert doc.has_critical_errors

    def test_inconsistent_state_rejected(self) -> None:
        with pytest.raises(ValueError):
            FileDocument("/x.xlsx", LoadStatus.SUCCESS)
        with pytest.raises(ValueError):
            FileDocument("/x.xlsx", LoadStatus.FAILED, [SheetData("S", ["A"])])

    def test_duplicate_sheet_names_rejected(self) -> None:
        with pytest.raises(ValueError, match="Duplicate sheet"):
            FileDocument.create("/x.xlsx", [SheetData("S"), SheetData("S")])

    def test_sheets_mapping_is_read_only(self, people_document: FileDocument) -> None:
        with pytest.raises(TypeError):
            people_document.sheets["Other"] = SheetData("Other")  # type: ignore[index]

    def test_errors_by_level(self) -> None:
        warning = ExcelError.warning("File", "w", ErrorCode.NO_DATA)
        error = ExcelError.sheet_error("B", "e")
        doc = FileDocument.create("/x.xlsx", [SheetData("A", ["c"])], [warning, error])
        assert doc.errors_by_level(ErrorLevel.WARNING) == [warning]
        assert doc.has_warnings
        assert doc.status is LoadStatus.PARTIAL_SUCCESS

    def test_context_manager_releases(self) -> None:
        with build_document("/d.csv", {"Data": (["A"], [["1"]])}) as doc:
            sheet = doc.get_sheet("Data")
            assert sheet is not None and sheet.row_count == 1
        assert doc.is_released
        assert sheet.is_released


class TestDocumentRef:
    """Tests for weak document references."""

    def test_get_returns_live_document(self, people_document: FileDocument) -> None:
        ref = DocumentRef(people_document)
        assert ref.is_alive
        assert ref.get() is people_document
        assert ref.refers_to(people_document)

    def test_released_document_is_stale(self, people_document: FileDocument) -> None:
        ref = DocumentRef(people_document)
        people_document.release()
        assert not ref.is_alive
        with pytest.raises(StaleReferenceError):
            ref.get()

    def test_collected_document_is_stale(self) -> None:
        doc = build_document("/d.csv", {"Data": (["A"], [["1"]])})
        ref = DocumentRef(doc)
        del doc
        gc.collect()
        assert not ref.is_alive
        assert ref.path == "/d.csv"
        with pytest.raises(StaleReferenceError):
            ref.get()
