"""Registry of the currently loaded documents.

The registry owns every active ``FileDocument``. Search results and row
comparisons derived from a document are tracked alongside it; removing or
replacing the document releases it and drops those derived objects in the
same step, so nothing keeps pointing at released sheet data.

Key features:
- Thread-safe add/replace/remove keyed by normalized path
- Duplicate detection on add and on batch load
- Retry of a file (reload and replace)
- Removal listeners
"""

from __future__ import annotations

import os
import threading
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from sheetlens.comparison import RowComparison
from sheetlens.services.search import SearchResult
from sheetlens.services.workbook_loader import WorkbookLoader
from sheetlens.sheet_model import FileDocument
from sheetlens.utils.exceptions import DuplicateDocumentError
from sheetlens.utils.logging import get_logger

logger = get_logger(__name__)

RemovalListener = Callable[[FileDocument], None]


def normalize_path(path: str | Path) -> str:
    """Canonical key for a file path."""
    return os.path.normcase(str(Path(path).expanduser().resolve()))


@dataclass
class LoadReport:
    """Outcome of a batch load through the registry."""

    loaded: list[FileDocument] = field(default_factory=list)
    duplicates: list[str] = field(default_factory=list)

    @property
    def failed(self) -> list[FileDocument]:
        return [doc for doc in self.loaded if not doc.sheets]


class DocumentRegistry:
    """Thread-safe owner of loaded documents and their derived objects."""

    def __init__(self, loader: WorkbookLoader | None = None) -> None:
        """Initialize the registry.

        Args:
            loader: Loader used by ``load`` and ``retry``.
        """
        self.loader = loader or WorkbookLoader()
        self._documents: dict[str, FileDocument] = {}
        self._search_results: list[SearchResult] = []
        self._comparisons: list[RowComparison] = []
        self._listeners: list[RemovalListener] = []
        self._lock = threading.RLock()

    # ------------------------------------------------------------------ #
    # Documents
    # ------------------------------------------------------------------ #

    @property
    def documents(self) -> list[FileDocument]:
        with self._lock:
            return list(self._documents.values())

    def get(self, path: str | Path) -> FileDocument | None:
        with self._lock:
            return self._documents.get(normalize_path(path))

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, Path)):
            return False
        return self.get(path) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._documents)

    def add(self, document: FileDocument) -> None:
        """Register a newly loaded document.

        Raises:
            DuplicateDocumentError: If a document with the same path exists.
        """
        key = normalize_path(document.path)
        with self._lock:
            if key in self._documents:
                raise DuplicateDocumentError(document.path)
            self._documents[key] = document
        logger.info(
            "Document added",
            file_path=document.path,
            status=document.status.value,
            sheets=len(document.sheets),
        )

    def replace(self, document: FileDocument) -> FileDocument | None:
        """Register ``document``, releasing any document with the same path.

        Returns:
            The replaced document, if there was one.
        """
        key = normalize_path(document.path)
        with self._lock:
            previous = self._documents.get(key)
            if previous is not None and previous is not document:
                self._discard(previous)
            self._documents[key] = document
        if previous is not None and previous is not document:
            logger.info("Document replaced", file_path=document.path)
            self._notify(previous)
        return previous

    def remove(self, path: str | Path) -> bool:
        """Release and unregister a document.

        Returns:
            True if a document was removed.
        """
        with self._lock:
            document = self._documents.pop(normalize_path(path), None)
            if document is None:
                return False
            self._discard(document)
        logger.info("Document removed", file_path=document.path)
        self._notify(document)
        return True

    def clear(self) -> None:
        """Release and unregister every document."""
        with self._lock:
            removed = list(self._documents.values())
            self._documents.clear()
            for document in removed:
                self._discard(document)
        for document in removed:
            self._notify(document)
        logger.info("All documents cleared", removed=len(removed))

    # ------------------------------------------------------------------ #
    # Loading
    # ------------------------------------------------------------------ #

    def load(
        self,
        paths: Sequence[str | Path],
        max_concurrency: int | None = None,
    ) -> LoadReport:
        """Load and register files, skipping ones already registered.

        Failed loads are registered too, so their errors stay visible and
        they can be retried.
        """
        report = LoadReport()
        pending: list[str | Path] = []
        seen: set[str] = set()
        for path in paths:
            key = normalize_path(path)
            if key in seen or path in self:
                report.duplicates.append(str(path))
                continue
            seen.add(key)
            pending.append(path)

        if report.duplicates:
            logger.warning("Skipping already loaded files", count=len(report.duplicates))

        for document in self.loader.load_files(pending, max_concurrency):
            try:
                self.add(document)
            except DuplicateDocumentError:
                # Added concurrently by another caller
                document.release()
                report.duplicates.append(document.path)
                continue
            report.loaded.append(document)
        return report

    def retry(self, path: str | Path) -> FileDocument:
        """Reload a file and replace the registered document."""
        document = self.loader.load_file(path)
        self.replace(document)
        logger.info(
            "Document reloaded", file_path=document.path, status=document.status.value
        )
        return document

    # ------------------------------------------------------------------ #
    # Derived objects
    # ------------------------------------------------------------------ #

    def track_search_results(self, results: Iterable[SearchResult]) -> None:
        with self._lock:
            self._search_results.extend(results)

    def track_comparison(self, comparison: RowComparison) -> None:
        with self._lock:
            self._comparisons.append(comparison)

    @property
    def search_results(self) -> list[SearchResult]:
        with self._lock:
            return list(self._search_results)

    @property
    def comparisons(self) -> list[RowComparison]:
        with self._lock:
            return list(self._comparisons)

    def on_removed(self, listener: RemovalListener) -> RemovalListener:
        """Register a callback invoked with each removed or replaced document."""
        with self._lock:
            self._listeners.append(listener)
        return listener

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    def _discard(self, document: FileDocument) -> None:
        # Purge before release while weak references still resolve
        results_before = len(self._search_results)
        comparisons_before = len(self._comparisons)
        self._search_results = [
            result
            for result in self._search_results
            if not result.source.refers_to(document)
        ]
        self._comparisons = [
            comparison
            for comparison in self._comparisons
            if not comparison.references(document)
        ]
        document.release()
        logger.debug(
            "Derived objects purged",
            file_path=document.path,
            search_results=results_before - len(self._search_results),
            comparisons=comparisons_before - len(self._comparisons),
        )

    def _notify(self, document: FileDocument) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(document)


_document_registry: DocumentRegistry | None = None


def get_document_registry() -> DocumentRegistry:
    """Get the global document registry instance.

    Creates the instance on first call (lazy initialization).

    Returns:
        The global DocumentRegistry instance.
    """
    global _document_registry
    if _document_registry is None:
        _document_registry = DocumentRegistry()
    return _document_registry


def reset_document_registry() -> None:
    """Reset the global document registry. Used primarily for testing."""
    global _document_registry
    if _document_registry is not None:
        _document_registry.clear()
        _document_registry = None
