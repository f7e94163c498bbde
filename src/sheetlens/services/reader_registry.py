"""Extension-based dispatch to format readers.

The registry maps each lowercase, dot-prefixed extension to exactly one
reader. It is built once, typically via ``default_registry()``.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from pathlib import Path

from sheetlens.services.readers import (
    CsvReader,
    CsvReaderOptions,
    FormatReader,
    XlsReader,
    XlsxReader,
)
from sheetlens.services.string_pool import StringPool
from sheetlens.sheet_model import ExcelError, FileDocument
from sheetlens.utils.exceptions import ErrorCode, UnsupportedFormatError
from sheetlens.utils.logging import get_logger

logger = get_logger(__name__)


class ReaderRegistry:
    """Table of extension to reader."""

    def __init__(self, readers: Iterable[FormatReader] = ()) -> None:
        self._readers: dict[str, FormatReader] = {}
        for reader in readers:
            self.register(reader)

    def register(self, reader: FormatReader) -> None:
        """Add a reader for all of its extensions.

        Raises:
            ValueError: If any extension already has a reader.
        """
        extensions = {ext.lower() for ext in reader.supported_extensions}
        taken = sorted(ext for ext in extensions if ext in self._readers)
        if taken:
            raise ValueError(
                f"Extension(s) {', '.join(taken)} already registered to "
                f"{type(self._readers[taken[0]]).__name__}"
            )
        for ext in extensions:
            self._readers[ext] = reader
        logger.debug(
            "Reader registered",
            reader=type(reader).__name__,
            extensions=",".join(sorted(extensions)),
        )

    def supported_extensions(self) -> list[str]:
        """List every supported extension, sorted."""
        return sorted(self._readers)

    def get_reader(self, path: str | Path) -> FormatReader | None:
        """Return the reader owning the file's extension, if any."""
        return self._readers.get(Path(path).suffix.lower())

    def can_read(self, path: str | Path) -> bool:
        return self.get_reader(path) is not None

    def get_csv_reader(self) -> CsvReader | None:
        reader = self._readers.get(".csv")
        return reader if isinstance(reader, CsvReader) else None

    def read(
        self,
        path: str | Path,
        cancel_event: threading.Event | None = None,
    ) -> FileDocument:
        """Read a file with the reader owning its extension.

        Args:
            path: File to read.
            cancel_event: Optional cancellation event passed to the reader.

        Returns:
            The loaded document. Unsupported extensions yield a FAILED
            document whose error lists every supported extension.

        Raises:
            ValueError: If ``path`` is empty.
            OperationCancelledError: If the load was cancelled.
        """
        if path is None or not str(path).strip():
            raise ValueError("File path must not be empty")

        reader = self.get_reader(path)
        if reader is None:
            error = UnsupportedFormatError(
                Path(path).suffix.lower(), self.supported_extensions(), str(path)
            )
            logger.warning(
                "Unsupported file format",
                file_path=str(path),
                extension=error.extension or "(none)",
                error_code=error.error_code.value,
            )
            return FileDocument.failed(
                path,
                [
                    ExcelError.file_error(
                        error.message, ErrorCode.UNSUPPORTED_FORMAT, error
                    )
                ],
            )
        return reader.read(path, cancel_event)


def default_registry(
    pool: StringPool | None = None,
    csv_options: CsvReaderOptions | None = None,
) -> ReaderRegistry:
    """Build a registry wired with the xlsx, xls and csv readers."""
    return ReaderRegistry(
        [
            XlsxReader(pool),
            XlsReader(pool),
            CsvReader(csv_options, pool),
        ]
    )
