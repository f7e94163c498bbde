"""Full-text search over loaded documents.

A search walks a document in a fixed order: the file name, then for every
sheet its name followed by its cells in row-major order. Matches on a file
or sheet name carry ``row == column == -1``.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum

from sheetlens.sheet_model import DocumentRef, FileDocument, SheetData
from sheetlens.utils.exceptions import ErrorCode
from sheetlens.utils.logging import get_logger

logger = get_logger(__name__)


class MatchType(str, Enum):
    """What a search result matched."""

    FILE_NAME = "file_name"
    SHEET_NAME = "sheet_name"
    CELL = "cell"


@dataclass(frozen=True)
class SearchOptions:
    """Independent search toggles.

    With every flag off, matching is a case-insensitive substring test.
    ``use_regex`` takes precedence over ``exact_match``.
    """

    case_sensitive: bool = False
    exact_match: bool = False
    use_regex: bool = False


@dataclass(frozen=True)
class SearchContext:
    """Where a match sits, for display next to the matched text."""

    type: MatchType
    column_header: str | None = None
    row_header: str | None = None
    cell_coordinates: str | None = None

    def to_dict(self) -> dict[str, str]:
        result = {"type": self.type.value}
        if self.column_header is not None:
            result["column_header"] = self.column_header
        if self.row_header is not None:
            result["row_header"] = self.row_header
        if self.cell_coordinates is not None:
            result["cell_coordinates"] = self.cell_coordinates
        return result


@dataclass(frozen=True)
class SearchResult:
    """One match, holding a non-owning reference to its document."""

    source: DocumentRef = field(repr=False)
    sheet_name: str
    row: int
    column: int
    matched_text: str
    context: SearchContext

    @property
    def document(self) -> FileDocument:
        """The source document.

        Raises:
            StaleReferenceError: If the document has been released.
        """
        return self.source.get()

    @property
    def is_valid(self) -> bool:
        return self.source.is_alive

    @property
    def is_cell(self) -> bool:
        return self.row >= 0 and self.column >= 0

    @property
    def file_path(self) -> str:
        return self.source.path


Matcher = Callable[[str], bool]


class SearchEngine:
    """Find text in file names, sheet names and cell values."""

    def search(
        self,
        document: FileDocument,
        query: str,
        options: SearchOptions | None = None,
    ) -> list[SearchResult]:
        """Search one document.

        Args:
            document: Document to search.
            query: Text, or a pattern when ``options.use_regex`` is set.
            options: Matching options; defaults to case-insensitive contains.

        Returns:
            Matches in file, sheet, row-major cell order. A blank query
            returns no results.
        """
        if not query or not query.strip():
            return []

        matches = self._build_matcher(query, options or SearchOptions())
        ref = DocumentRef(document)
        results: list[SearchResult] = []

        if matches(document.file_name):
            results.append(
                SearchResult(
                    ref,
                    "",
                    -1,
                    -1,
                    document.file_name,
                    SearchContext(MatchType.FILE_NAME),
                )
            )

        for name, sheet in document.sheets.items():
            if matches(name):
                results.append(
                    SearchResult(ref, name, -1, -1, name, SearchContext(MatchType.SHEET_NAME))
                )
            results.extend(self._search_cells(ref, sheet, matches))

        logger.debug(
            "Search completed",
            file=document.file_name,
            query=query,
            results=len(results),
        )
        return results

    def search_sheet(
        self,
        document: FileDocument,
        sheet_name: str,
        query: str,
        options: SearchOptions | None = None,
    ) -> list[SearchResult]:
        """Search the cells of a single sheet. Unknown sheets yield no results."""
        if not query or not query.strip():
            return []
        sheet = document.get_sheet(sheet_name)
        if sheet is None:
            return []
        matches = self._build_matcher(query, options or SearchOptions())
        return list(self._search_cells(DocumentRef(document), sheet, matches))

    def search_documents(
        self,
        documents: Iterable[FileDocument],
        query: str,
        options: SearchOptions | None = None,
    ) -> list[SearchResult]:
        """Search several documents, concatenating results in input order."""
        results: list[SearchResult] = []
        for document in documents:
            results.extend(self.search(document, query, options))
        return results

    @staticmethod
    def _search_cells(
        ref: DocumentRef, sheet: SheetData, matches: Matcher
    ) -> Iterable[SearchResult]:
        columns = sheet.column_names
        for row_index, row in enumerate(sheet.rows):
            for col_index, cell in enumerate(row):
                if cell.is_empty:
                    continue
                text = str(cell)
                if not matches(text):
                    continue
                yield SearchResult(
                    ref,
                    sheet.name,
                    row_index,
                    col_index,
                    text,
                    SearchContext(
                        MatchType.CELL,
                        column_header=columns[col_index],
                        row_header=str(row[0]) if col_index > 0 else None,
                        cell_coordinates=f"R{row_index + 1}C{col_index + 1}",
                    ),
                )

    @staticmethod
    def _build_matcher(query: str, options: SearchOptions) -> Matcher:
        folded_query = query.casefold()

        def contains_ignore_case(text: str) -> bool:
            return folded_query in text.casefold()

        if options.use_regex:
            flags = 0 if options.case_sensitive else re.IGNORECASE
            try:
                pattern = re.compile(query, flags)
            except re.error as exc:
                logger.warning(
                    "Invalid search pattern, using substring match",
                    pattern=query,
                    error=str(exc),
                    error_code=ErrorCode.INVALID_PATTERN.value,
                )
                return contains_ignore_case
            return lambda text: pattern.search(text) is not None

        if options.exact_match:
            if options.case_sensitive:
                return lambda text: text == query
            return lambda text: text.casefold() == folded_query

        if options.case_sensitive:
            return lambda text: query in text
        return contains_ignore_case
