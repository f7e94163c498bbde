"""Format readers turning spreadsheet files into ``FileDocument`` objects."""

from sheetlens.services.readers.base import FormatReader
from sheetlens.services.readers.csv_reader import CsvReader, CsvReaderOptions
from sheetlens.services.readers.xls_reader import XlsReader
from sheetlens.services.readers.xlsx_reader import XlsxReader

__all__ = [
    "CsvReader",
    "CsvReaderOptions",
    "FormatReader",
    "XlsReader",
    "XlsxReader",
]
