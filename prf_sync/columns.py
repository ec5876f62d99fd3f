"""Column alias map and header-row locator.

The workbook is maintained by people, so column titles drift ("PRF No",
"PRF No.", "PR/PO No") and banner rows sit above the real header.  Fields
are matched by alias, never by position.  Everything here is pure and works
on plain lists of cell values.
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from .utils import normalize_header
from .values import DATE, INTEGER, NUMBER, TEXT

logger = logging.getLogger("prf_sync.columns")

KEY_FIELD = "PRFNo"
HEADER_SCAN_ROWS = 30

# Ordered: when one header cell matches several fields, the earlier field wins.
FIELD_ALIASES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("PRFNo", ("PRF No", "PRF No.", "PRFNo", "PRF Number", "PR/PO No", "PR No")),
    ("BudgetYear", ("Budget", "Budget Year", "Year")),
    ("DateSubmit", ("Date Submit", "Date Submitted", "Submit Date", "Submission Date")),
    ("SubmitBy", ("Submit By", "Submitted By", "Requestor", "Requester")),
    ("SumDescriptionRequested", ("Sum Description Requested", "Sum Description", "Summary")),
    ("Description", ("Description", "Item Description")),
    ("PurchaseCostCode", ("Purchase Cost Code", "Cost Code", "COA")),
    ("RequestedAmount", ("Amount", "Requested Amount", "Total Amount")),
    ("RequiredFor", ("Required for", "Required For Purpose")),
    ("Status", ("Status in Pronto", "Status")),
)

FIELD_KINDS: Dict[str, str] = {
    "PRFNo": TEXT,
    "BudgetYear": INTEGER,
    "DateSubmit": DATE,
    "SubmitBy": TEXT,
    "SumDescriptionRequested": TEXT,
    "Description": TEXT,
    "PurchaseCostCode": TEXT,
    "RequestedAmount": NUMBER,
    "RequiredFor": TEXT,
    "Status": TEXT,
}

AliasTable = Sequence[Tuple[str, Sequence[str]]]


def _normalized_table(aliases: AliasTable) -> List[Tuple[str, set]]:
    return [(field, {normalize_header(a) for a in variants}) for field, variants in aliases]


def resolve_header(text, aliases: AliasTable = FIELD_ALIASES) -> Optional[str]:
    """Resolve a header cell to its field name, or None.

    Fields are checked in table order, so the first declared field wins.
    """
    norm = normalize_header(text)
    if not norm:
        return None
    for field, variants in _normalized_table(aliases):
        if norm in variants:
            return field
    return None


def build_header_map(cells: Sequence, aliases: AliasTable = FIELD_ALIASES) -> Dict[str, int]:
    """Build {field: column_index} from a header row.

    If several cells match the same field, the leftmost one wins.
    """
    table = _normalized_table(aliases)
    hmap: Dict[str, int] = {}
    for idx, cell in enumerate(cells):
        norm = normalize_header(cell)
        if not norm:
            continue
        for field, variants in table:
            if norm in variants:
                if field not in hmap:
                    hmap[field] = idx
                break
    return hmap


def is_key_header(text, aliases: AliasTable = FIELD_ALIASES) -> bool:
    return resolve_header(text, aliases) == KEY_FIELD


def locate_header(values: Sequence[Sequence], max_rows: int = HEADER_SCAN_ROWS,
                  aliases: AliasTable = FIELD_ALIASES) -> int:
    """Return the index of the header row within ``values``.

    First choice is the earliest row (within ``max_rows``) holding a
    business-key alias.  Next is the earliest row with at least two cells
    matching any alias.  Row 0 is the last resort.
    """
    window = list(values[:max_rows])

    for idx, row in enumerate(window):
        if any(is_key_header(cell, aliases) for cell in row or []):
            return idx

    for idx, row in enumerate(window):
        hits = sum(1 for cell in row or [] if resolve_header(cell, aliases))
        if hits >= 2:
            logger.debug("Header row %d chosen by alias count (%d hits).", idx, hits)
            return idx

    logger.debug("No header row recognised in first %d rows; using row 0.", len(window))
    return 0
