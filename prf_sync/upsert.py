"""Upsert engine - pushes one PRF into the workbook.

Matches the PRF by its number.  A match is updated in place, touching only
the cells under recognised headers, so columns people maintain by hand
survive.  No match means a new row written just below the used range.
"""

import logging
from typing import Dict, List, Optional

from .columns import KEY_FIELD, build_header_map, locate_header
from .errors import ResolutionError
from .logging_setup import log_event
from .matcher import SheetMatch, find_in_sheets
from .models import PRFRecord, SyncOutcome
from .utils import a1_range
from .values import to_cell
from .workbook import write_row_cells
from .worksheets import SINGLE, plan_sheets

logger = logging.getLogger("prf_sync.upsert")


def build_cells(record: PRFRecord, header_map: Dict[str, int]) -> Dict[int, object]:
    """{column_index: cell_value} for every mapped field."""
    return {col: to_cell(record.get_field(field)) for field, col in header_map.items()}


def build_row(record: PRFRecord, header_map: Dict[str, int], width: int) -> List[object]:
    """A full row ``width`` wide; unmapped columns are blank."""
    row: List[object] = [""] * width
    for col, value in build_cells(record, header_map).items():
        if col < width:
            row[col] = value
    return row


class UpsertEngine:
    """Update-or-append of a single PRF row."""

    def __init__(self, book, default_sheet: str, sheet_token: str):
        self.book = book
        self.default_sheet = default_sheet
        self.sheet_token = sheet_token

    def upsert(self, record: PRFRecord, mode: str = SINGLE, year: Optional[int] = None) -> SyncOutcome:
        key = str(record.prf_no or "").strip()
        plan = plan_sheets(self.book, mode, self.default_sheet, self.sheet_token, year)
        strict = mode == SINGLE

        match = find_in_sheets(self.book, plan.search_order, key, strict=strict)
        if match is not None:
            return self._update(record, match)
        return self._append(record, plan.append_target)

    def _update(self, record: PRFRecord, match: SheetMatch) -> SyncOutcome:
        # The key cell already holds the PRF number; leave it alone.
        cells = build_cells(record, match.header_map)
        cells.pop(match.header_map[KEY_FIELD], None)
        addresses = write_row_cells(self.book, match.sheet, match.row_number,
                                    match.used.start_col, cells)
        log_event(logger, "info", f"PRF {record.prf_no} updated in '{match.sheet}'",
                  prf_no=record.prf_no, sheet=match.sheet, row=match.row_number,
                  ranges=addresses)
        return SyncOutcome(updated=True, appended=False, sheet_name=match.sheet,
                           row_number=match.row_number)

    def _append(self, record: PRFRecord, sheet: str) -> SyncOutcome:
        used = self.book.used_range(sheet)
        if used.is_empty:
            raise ResolutionError("Worksheet has no data", operation="append row", sheet=sheet)

        header_index = locate_header(used.values)
        header = used.values[header_index]
        header_map = build_header_map(header)
        if KEY_FIELD not in header_map:
            raise ResolutionError("PRF No column not found", operation="append row", sheet=sheet)

        width = max(len(header), max(header_map.values()) + 1)
        row_number = used.start_row + used.row_count
        address = a1_range(used.start_col, row_number, width)
        self.book.update_range(sheet, address, [build_row(record, header_map, width)])

        log_event(logger, "info", f"PRF {record.prf_no} appended to '{sheet}'",
                  prf_no=record.prf_no, sheet=sheet, row=row_number, range=address)
        return SyncOutcome(updated=False, appended=True, sheet_name=sheet, row_number=row_number)
