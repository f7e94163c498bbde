"""Services for spreadsheet ingestion, search and row comparison."""
