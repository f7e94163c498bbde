"""Parallel loading of many spreadsheet files.

Reads are independent per file, so they run on a thread pool. Results come
back in input order. When a ``FileLogService`` is attached every attempt
is recorded, including failed ones.
"""

from __future__ import annotations

import contextvars
import threading
import time
import uuid
from collections.abc import Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path

from sheetlens.config import settings
from sheetlens.services.file_log import FileLogService
from sheetlens.services.reader_registry import ReaderRegistry, default_registry
from sheetlens.sheet_model import FileDocument
from sheetlens.utils.logging import LogContext, ProgressTracker, get_logger, timed_operation

logger = get_logger(__name__)


class WorkbookLoader:
    """Load files through a reader registry, optionally in parallel."""

    def __init__(
        self,
        registry: ReaderRegistry | None = None,
        file_log: FileLogService | None = None,
    ) -> None:
        """Initialize the loader.

        Args:
            registry: Reader registry. Defaults to ``default_registry()``.
            file_log: Optional load log; no entries are written without one.
        """
        self.registry = registry or default_registry()
        self.file_log = file_log

    def load_file(
        self,
        path: str | Path,
        cancel_event: threading.Event | None = None,
    ) -> FileDocument:
        """Load one file.

        Raises:
            ValueError: If ``path`` is empty.
            OperationCancelledError: If ``cancel_event`` is set.
        """
        started = time.perf_counter()
        document = self.registry.read(path, cancel_event)
        duration = time.perf_counter() - started
        self._record(document, duration)
        return document

    def load_files(
        self,
        paths: Sequence[str | Path],
        max_concurrency: int | None = None,
        cancel_event: threading.Event | None = None,
    ) -> list[FileDocument]:
        """Load several files concurrently.

        Args:
            paths: Files to load.
            max_concurrency: Worker count. Defaults to
                ``settings.max_concurrent_file_loads``.
            cancel_event: Optional event stopping pending and running loads.

        Returns:
            One document per path, in input order.

        Raises:
            OperationCancelledError: If the batch was cancelled.
        """
        if not paths:
            return []

        workers = max(1, min(max_concurrency or settings.max_concurrent_file_loads, len(paths)))
        operation_id = uuid.uuid4().hex[:12]

        with (
            LogContext(operation_id=operation_id),
            timed_operation(logger, "load_files") as metrics,
        ):
            tracker = ProgressTracker(logger, "Loading files", total=len(paths))
            with ThreadPoolExecutor(
                max_workers=workers, thread_name_prefix="sheetlens-load"
            ) as executor:
                # Each task runs in a copy of the caller's context so the
                # operation id reaches the reader log records
                futures = [
                    executor.submit(
                        contextvars.copy_context().run, self.load_file, path, cancel_event
                    )
                    for path in paths
                ]
                try:
                    documents = []
                    for path, future in zip(paths, futures, strict=True):
                        documents.append(future.result())
                        tracker.update(details=str(path))
                except BaseException:
                    for future in futures:
                        future.cancel()
                    executor.shutdown(wait=True)
                    released = _release_completed(futures)
                    logger.warning("Batch load aborted", released_documents=released)
                    raise

            tracker.complete()
            metrics.files_loaded = len(documents)
            metrics.sheets_read = sum(len(doc.sheets) for doc in documents)
            metrics.rows_read = sum(
                sheet.row_count for doc in documents for sheet in doc.sheets.values()
            )
            metrics.errors_recorded = sum(1 for doc in documents if doc.has_errors)
            metrics.custom_metrics["workers"] = workers

        return documents

    def _record(self, document: FileDocument, duration: float) -> None:
        if self.file_log is None or not settings.enable_file_logging:
            return
        try:
            self.file_log.save(self.file_log.build_entry(document, duration))
        except OSError as exc:
            logger.warning(
                "Failed to write load log", file_path=document.path, error=str(exc)
            )


def _release_completed(futures: Sequence[Future[FileDocument]]) -> int:
    """Release the documents of every load that finished successfully."""
    released = 0
    for future in futures:
        if future.done() and not future.cancelled() and future.exception() is None:
            future.result().release()
            released += 1
    return released
