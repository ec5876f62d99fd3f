"""Pull/diff engine - reads a PRF's row back from the workbook.

The pull is a reconciliation aid: it reports every field where the sheet and
the database disagree, then writes the sheet's values with
COALESCE(sheet, database).  A blank cell never erases stored data, but the
difference still shows up in ``changes`` so someone can look at it.
"""

import logging
from typing import Dict, List, Optional

from .columns import FIELD_KINDS, KEY_FIELD
from .errors import NotFoundError
from .logging_setup import log_event
from .matcher import SheetMatch, find_in_sheets
from .models import FieldChange, PRFRecord, PullOutcome
from .values import TEXT, normalize_value, values_equal
from .worksheets import SINGLE, plan_sheets

logger = logging.getLogger("prf_sync.pull")


def extract_values(match: SheetMatch) -> Dict[str, object]:
    """Normalized {field: value} for every mapped field of the matched row."""
    row = match.row
    values = {}
    for field, col in match.header_map.items():
        if field == KEY_FIELD:
            continue
        raw = row[col] if col < len(row) else None
        values[field] = normalize_value(raw, FIELD_KINDS.get(field, TEXT))
    return values


def diff_record(record: PRFRecord, remote: Dict[str, object]) -> List[FieldChange]:
    """Fields where the remote value differs from the record (remote None included)."""
    changes = []
    for field, remote_value in remote.items():
        kind = FIELD_KINDS.get(field, TEXT)
        current = normalize_value(record.get_field(field), kind)
        if not values_equal(current, remote_value, kind):
            changes.append(FieldChange(field=field, from_value=current, to_value=remote_value))
    return changes


class PullEngine:
    """Locate the PRF row, diff it against the record, persist with COALESCE."""

    def __init__(self, book, store, default_sheet: str, sheet_token: str):
        self.book = book
        self.store = store
        self.default_sheet = default_sheet
        self.sheet_token = sheet_token

    def pull(self, record: PRFRecord, mode: str = SINGLE, year: Optional[int] = None) -> PullOutcome:
        key = str(record.prf_no or "").strip()
        plan = plan_sheets(self.book, mode, self.default_sheet, self.sheet_token, year)
        match = find_in_sheets(self.book, plan.search_order, key, strict=(mode == SINGLE))
        if match is None:
            sheets = ", ".join(plan.search_order) or "(no candidate sheets)"
            raise NotFoundError(f"PRF {key or '(blank)'} not found in: {sheets}",
                                operation="pull",
                                sheet=plan.search_order[0] if len(plan.search_order) == 1 else None)

        remote = extract_values(match)
        changes = diff_record(record, remote)
        updated = self.store.apply_pull(record.prf_id, remote)

        log_event(logger, "info", f"PRF {key} pulled from '{match.sheet}'",
                  prf_no=key, sheet=match.sheet, row=match.row_number,
                  changed_fields=[c.field for c in changes], updated=updated)
        return PullOutcome(updated=updated, sheet_name=match.sheet,
                           row_number=match.row_number, changes=changes)
