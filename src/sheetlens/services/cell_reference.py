"""A1-style cell reference codec.

Columns are encoded base-26 with letters only (A=1 ... Z=26, AA=27, ...)
and exposed as zero-based indices. Rows are one-based in the reference
text and zero-based in the index pair.

Example:
    >>> to_indices("AB123")
    (27, 122)
    >>> to_reference(27, 122)
    'AB123'
"""

import re

_REFERENCE_PATTERN = re.compile(r"^([A-Za-z]+)([1-9][0-9]*)$")


def column_index(letters: str) -> int:
    """Convert column letters to a zero-based column index.

    Args:
        letters: Column letters, case-insensitive (e.g. ``"AB"``).

    Returns:
        Zero-based column index.

    Raises:
        ValueError: If ``letters`` is empty or contains non-letters.
    """
    if not letters or not letters.isascii() or not letters.isalpha():
        raise ValueError(f"Invalid column letters: {letters!r}")
    result = 0
    for char in letters.upper():
        result = result * 26 + (ord(char) - ord("A") + 1)
    return result - 1


def column_letters(index: int) -> str:
    """Convert a zero-based column index to column letters.

    Raises:
        ValueError: If ``index`` is negative.
    """
    if index < 0:
        raise ValueError(f"Column index must be non-negative, got {index}")
    letters = []
    n = index + 1
    while n > 0:
        n, remainder = divmod(n - 1, 26)
        letters.append(chr(ord("A") + remainder))
    return "".join(reversed(letters))


def to_indices(reference: str) -> tuple[int, int]:
    """Decode an A1 reference into zero-based ``(column, row)``.

    Args:
        reference: Reference such as ``"B7"`` or ``"ab123"``.

    Returns:
        Tuple of zero-based column and row indices.

    Raises:
        ValueError: If the reference is malformed.
    """
    match = _REFERENCE_PATTERN.match(reference.strip()) if reference else None
    if match is None:
        raise ValueError(f"Invalid cell reference: {reference!r}")
    letters, digits = match.groups()
    return column_index(letters), int(digits) - 1


def to_reference(column: int, row: int) -> str:
    """Encode zero-based ``(column, row)`` as an A1 reference.

    Raises:
        ValueError: If either index is negative.
    """
    if row < 0:
        raise ValueError(f"Row index must be non-negative, got {row}")
    return f"{column_letters(column)}{row + 1}"


def parse_range(range_ref: str) -> tuple[tuple[int, int], tuple[int, int]]:
    """Decode a ``start:end`` range into normalized corner indices.

    Single-cell ranges (``"C3"``) are accepted. Corners are reordered so
    the first is top-left.

    Returns:
        ``((first_col, first_row), (last_col, last_row))``.

    Raises:
        ValueError: If either endpoint is malformed.
    """
    parts = range_ref.split(":")
    if len(parts) == 1:
        parts = parts * 2
    if len(parts) != 2:
        raise ValueError(f"Invalid range: {range_ref!r}")
    start_col, start_row = to_indices(parts[0])
    end_col, end_row = to_indices(parts[1])
    return (
        (min(start_col, end_col), min(start_row, end_row)),
        (max(start_col, end_col), max(start_row, end_row)),
    )
