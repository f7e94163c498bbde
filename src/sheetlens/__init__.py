"""SheetLens - spreadsheet ingestion and row comparison."""

__version__ = "0.1.0"
