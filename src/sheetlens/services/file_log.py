"""Append-only JSON log of file load attempts.

Layout under the root directory::

    <root>/<stem>_<path hash>/<timestamp>.json

Each source file gets its own folder, keyed by its name and a short hash of
its absolute path so same-named files in different folders stay apart.
"""

from __future__ import annotations

import hashlib
import re
import shutil
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path

from pydantic import ValidationError

from sheetlens.config import settings
from sheetlens.models import ErrorRecord, ErrorSummary, FileInfo, FileLogEntry, LoadAttemptInfo
from sheetlens.sheet_model import FileDocument
from sheetlens.utils.logging import get_logger

logger = get_logger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass
class PurgeResult:
    """Result of a log retention purge run."""

    scanned: int = 0
    removed: int = 0
    skipped: int = 0
    errors: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "scanned": self.scanned,
            "removed": self.removed,
            "skipped": self.skipped,
            "errors": self.errors,
        }


def file_sha256(path: Path, chunk_size: int = 1024 * 1024) -> str:
    """Hash a file's content."""
    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(chunk_size), b""):
            digest.update(chunk)
    return digest.hexdigest()


class FileLogService:
    """Store and query per-file load log entries on disk."""

    def __init__(self, root_dir: str | Path | None = None) -> None:
        """Initialize the service.

        Args:
            root_dir: Log root. Defaults to ``settings.file_log_dir``.
        """
        self._root = Path(root_dir).expanduser() if root_dir else settings.file_log_path

    @property
    def root_directory(self) -> Path:
        return self._root

    def folder_for(self, file_path: str | Path) -> Path:
        """Directory holding the entries for one source file."""
        resolved = Path(file_path).expanduser().resolve()
        stem = _UNSAFE_CHARS.sub("_", resolved.stem) or "file"
        path_hash = hashlib.sha256(str(resolved).encode("utf-8")).hexdigest()[:8]
        return self._root / f"{stem}_{path_hash}"

    def build_entry(
        self,
        document: FileDocument,
        duration_seconds: float,
        app_version: str | None = None,
    ) -> FileLogEntry:
        """Describe one load attempt.

        Args:
            document: The document the attempt produced.
            duration_seconds: Time spent loading.
            app_version: Version to record. Defaults to ``settings.app_version``.
        """
        path = Path(document.path)
        info = FileInfo(name=path.name, original_path=document.path)
        try:
            stat = path.stat()
            info.size_bytes = stat.st_size
            info.last_modified = datetime.fromtimestamp(stat.st_mtime, UTC)
            info.hash = file_sha256(path)
        except OSError:
            # Missing or unreadable files are logged with identity only
            logger.debug("File metadata unavailable", file_path=document.path)

        records = [ErrorRecord.from_excel_error(error) for error in document.errors]
        return FileLogEntry(
            file=info,
            load_attempt=LoadAttemptInfo(
                timestamp=datetime.now(UTC),
                status=document.status,
                duration_ms=max(int(duration_seconds * 1000), 0),
                app_version=app_version or settings.app_version,
            ),
            errors=records,
            summary=ErrorSummary.from_errors(records),
        )

    def save(self, entry: FileLogEntry) -> Path:
        """Write an entry as a new JSON file.

        Returns:
            Path of the written file.
        """
        folder = self.folder_for(entry.file.original_path)
        folder.mkdir(parents=True, exist_ok=True)

        stamp = entry.load_attempt.timestamp.strftime("%Y%m%dT%H%M%S%fZ")
        target = folder / f"{stamp}.json"
        counter = 1
        while target.exists():
            target = folder / f"{stamp}_{counter}.json"
            counter += 1

        target.write_text(entry.model_dump_json(indent=2), encoding="utf-8")
        logger.debug("Load log saved", path=str(target))
        return target

    def history(self, file_path: str | Path) -> list[FileLogEntry]:
        """All entries for a file, newest first. Unreadable entries are skipped."""
        folder = self.folder_for(file_path)
        if not folder.is_dir():
            return []

        entries: list[FileLogEntry] = []
        for item in folder.glob("*.json"):
            try:
                entries.append(
                    FileLogEntry.model_validate_json(item.read_text(encoding="utf-8"))
                )
            except (OSError, ValidationError) as exc:
                logger.warning(
                    "Skipping unreadable load log", path=str(item), error=type(exc).__name__
                )
        entries.sort(key=lambda entry: entry.load_attempt.timestamp, reverse=True)
        return entries

    def latest(self, file_path: str | Path) -> FileLogEntry | None:
        entries = self.history(file_path)
        return entries[0] if entries else None

    def delete_logs(self, file_path: str | Path) -> int:
        """Remove every entry for a file.

        Returns:
            Number of entry files removed.
        """
        folder = self.folder_for(file_path)
        if not folder.is_dir():
            return 0
        count = sum(1 for _ in folder.glob("*.json"))
        shutil.rmtree(folder)
        logger.info("Load logs deleted", file_path=str(file_path), removed=count)
        return count

    def cleanup_old_logs(
        self,
        retention_days: int | None = None,
        now: datetime | None = None,
    ) -> PurgeResult:
        """Remove entries older than the retention window.

        Args:
            retention_days: Window in days; 0 disables cleanup. Defaults to
                ``settings.log_retention_days``.
            now: Optional reference time (useful for testing).

        Returns:
            PurgeResult with counts.
        """
        result = PurgeResult()
        if retention_days is None:
            retention_days = settings.log_retention_days
        if retention_days <= 0 or not self._root.is_dir():
            return result

        cutoff = (now or datetime.now(UTC)) - timedelta(days=retention_days)
        for item in self._root.rglob("*.json"):
            result.scanned += 1
            try:
                if datetime.fromtimestamp(item.stat().st_mtime, UTC) < cutoff:
                    item.unlink()
                    result.removed += 1
                else:
                    result.skipped += 1
            except OSError:
                result.errors += 1
                logger.warning("Failed to remove expired load log", path=str(item))

        for folder in self._root.iterdir():
            if folder.is_dir() and not any(folder.iterdir()):
                folder.rmdir()

        logger.info(
            "Load log cleanup complete",
            **result.to_dict(),
            retention_days=retention_days,
        )
        return result
