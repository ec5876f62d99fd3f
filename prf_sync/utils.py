"""Utility functions for PRF cloud sync: cell addressing and text normalization."""

import re
from typing import Tuple

_CELL_REF = re.compile(r"^([A-Za-z]+)(\d+)$")


# ── Header normalization ──

def normalize_header(text) -> str:
    """Normalize a header cell for matching.

    Steps: trim, uppercase, replace - and _ with space,
    remove other punctuation, collapse whitespace.
    """
    if text is None:
        return ""
    s = str(text).strip().upper()
    if not s:
        return ""
    s = s.replace("-", " ").replace("_", " ")
    s = re.sub(r"[^\w\s]", "", s)
    s = re.sub(r"\s+", " ", s).strip()
    return s


def squash(text) -> str:
    """Lowercase and drop all whitespace. Used for sheet-name matching."""
    if text is None:
        return ""
    return re.sub(r"\s+", "", str(text)).lower()


def cell_text(value) -> str:
    """Render a cell value as trimmed text; integral floats lose their '.0'."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value).upper()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


# ── Column letters ──

def index_to_letters(index: int) -> str:
    """Convert a zero-based column index to spreadsheet letters (0 -> A, 26 -> AA)."""
    if index < 0:
        raise ValueError(f"Column index must be >= 0, got {index}")
    letters = []
    n = index + 1
    while n:
        n, remainder = divmod(n - 1, 26)
        letters.append(chr(65 + remainder))
    return "".join(reversed(letters))


def letters_to_index(letters: str) -> int:
    """Convert spreadsheet column letters to a zero-based index (A -> 0, ZZ -> 701)."""
    s = (letters or "").strip().upper()
    if not s or not s.isalpha() or not s.isascii():
        raise ValueError(f"Invalid column letters: '{letters}'")
    n = 0
    for ch in s:
        n = n * 26 + (ord(ch) - 64)
    return n - 1


# ── Range addresses ──

def parse_used_range_start(address: str) -> Tuple[int, int]:
    """Return (start_row, start_col) of a range address.

    start_row is 1-based, start_col is 0-based, so "Sheet1!C5:F10" -> (5, 2).
    Absolute markers ($) and the sheet prefix (quoted or not) are ignored.
    An empty or unparsable address falls back to A1 -> (1, 0).
    """
    if not address:
        return 1, 0
    s = str(address).replace("$", "")
    if "!" in s:
        s = s.rsplit("!", 1)[1]
    first = s.split(":", 1)[0].strip()
    m = _CELL_REF.match(first)
    if not m:
        return 1, 0
    return int(m.group(2)), letters_to_index(m.group(1))


def a1_range(start_col: int, row_number: int, width: int) -> str:
    """Build a single-row A1 address, e.g. a1_range(2, 11, 4) -> "C11:F11"."""
    if row_number < 1:
        raise ValueError("Row number must be >= 1")
    if width < 1:
        raise ValueError("Width must be >= 1")
    first = index_to_letters(start_col)
    last = index_to_letters(start_col + width - 1)
    return f"{first}{row_number}:{last}{row_number}"
