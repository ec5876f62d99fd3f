"""Row matcher - finds the row holding a PRF number in a worksheet."""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from .columns import KEY_FIELD, build_header_map, locate_header
from .errors import ResolutionError
from .models import UsedRange
from .utils import cell_text

logger = logging.getLogger("prf_sync.matcher")


@dataclass
class SheetMatch:
    """A worksheet read, its header located, and maybe the key's row found."""
    sheet: str
    used: UsedRange
    header_index: int
    header_map: Dict[str, int]
    row_index: Optional[int] = None  # index into used.values

    @property
    def found(self) -> bool:
        return self.row_index is not None

    @property
    def row_number(self) -> int:
        """1-based worksheet row of the matched row."""
        if self.row_index is None:
            return 0
        return self.used.start_row + self.row_index

    @property
    def row(self) -> List:
        if self.row_index is None:
            return []
        return self.used.values[self.row_index]


def find_row(values: Sequence[Sequence], header_index: int, key_col: int, key: str) -> Optional[int]:
    """Index of the first row after the header whose key cell equals ``key`` (trimmed)."""
    target = (key or "").strip()
    if not target:
        return None
    for idx in range(header_index + 1, len(values)):
        row = values[idx] or []
        if key_col < len(row) and cell_text(row[key_col]) == target:
            return idx
    return None


def read_sheet(book, sheet: str, key: str, strict: bool = True) -> Optional[SheetMatch]:
    """Read ``sheet`` and look for ``key``.

    With ``strict`` an empty sheet or a missing PRF No column raises
    ResolutionError; otherwise the sheet is skipped (None).
    """
    used = book.used_range(sheet)
    if used.is_empty:
        if strict:
            raise ResolutionError("Worksheet has no data", operation="read worksheet", sheet=sheet)
        logger.debug("Sheet '%s' is empty, skipping.", sheet)
        return None

    header_index = locate_header(used.values)
    header_map = build_header_map(used.values[header_index])
    if KEY_FIELD not in header_map:
        if strict:
            raise ResolutionError("PRF No column not found", operation="read worksheet", sheet=sheet)
        logger.debug("Sheet '%s' has no PRF No column, skipping.", sheet)
        return None

    match = SheetMatch(sheet=sheet, used=used, header_index=header_index, header_map=header_map)
    match.row_index = find_row(used.values, header_index, header_map[KEY_FIELD], key)
    return match


def find_in_sheets(book, sheets: Iterable[str], key: str, strict: bool = True) -> Optional[SheetMatch]:
    """First sheet (in order) where ``key`` is found, or None."""
    for sheet in sheets:
        match = read_sheet(book, sheet, key, strict=strict)
        if match is not None and match.found:
            logger.debug("PRF %s found in '%s' row %d.", key, sheet, match.row_number)
            return match
    return None
