"""Worksheet resolver - picks candidate sheets in scan mode.

The PRF workbook keeps one detail sheet per period ("PRF Detail 2024",
"PRF Detail 2025", ...).  Names are matched case- and space-insensitively
against a token; when a year is given, sheets carrying that year go first.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .models import WorksheetCandidate
from .utils import squash

logger = logging.getLogger("prf_sync.worksheets")

SINGLE = "single"
SCAN = "scan"
MODES = (SINGLE, SCAN)


@dataclass
class SheetPlan:
    """Where to look for the key, and where to append if it isn't found."""
    search_order: List[str] = field(default_factory=list)
    append_target: str = ""
    year_matches: List[str] = field(default_factory=list)


def select_candidates(sheets: Sequence[WorksheetCandidate], token: str,
                      year: Optional[int] = None) -> List[WorksheetCandidate]:
    """Sheets whose name contains ``token``; year-matching ones first."""
    wanted = squash(token)
    matching = [s for s in sheets if wanted in squash(s.name)]
    if year is None:
        return matching
    year_text = str(year)
    preferred = [s for s in matching if year_text in s.name]
    rest = [s for s in matching if year_text not in s.name]
    return preferred + rest


def list_candidates(book, token: str, year: Optional[int] = None) -> List[WorksheetCandidate]:
    """Fetch the workbook's worksheets and select candidates."""
    sheets = book.worksheets()
    candidates = select_candidates(sheets, token, year)
    logger.debug(
        "Scan candidates for '%s' (year=%s): %s of %d sheets",
        token, year, [c.name for c in candidates], len(sheets),
    )
    return candidates


def plan_sheets(book, mode: str, default_sheet: str, token: str,
                year: Optional[int] = None) -> SheetPlan:
    """Build the search order and append target for a push or pull."""
    if mode not in MODES:
        raise ValueError(f"Unknown sync mode: '{mode}' (expected 'single' or 'scan')")
    if mode == SINGLE:
        return SheetPlan(search_order=[default_sheet], append_target=default_sheet)

    candidates = list_candidates(book, token, year)
    names = [c.name for c in candidates]
    year_matches = [n for n in names if year is not None and str(year) in n]

    # TODO: confirm with finance whether appending without a year match is wanted
    if year_matches:
        target = year_matches[0]
    elif names:
        target = names[0]
    else:
        target = default_sheet
    return SheetPlan(search_order=names, append_target=target, year_matches=year_matches)
