"""One resolved workbook: worksheet listing, used-range reads, range writes."""

import logging
from typing import Dict, List

from .graph_client import GraphClient
from .models import UsedRange, WorksheetCandidate
from .utils import a1_range

logger = logging.getLogger("prf_sync.workbook")


class Workbook:
    """Worksheet-level operations on the workbook at (drive_id, item_id)."""

    def __init__(self, client: GraphClient, drive_id: str, item_id: str):
        self.client = client
        self.drive_id = drive_id
        self.item_id = item_id

    def worksheets(self) -> List[WorksheetCandidate]:
        raw = self.client.list_worksheets(self.drive_id, self.item_id)
        return [
            WorksheetCandidate(
                name=ws.get("name", ""),
                position=ws.get("position", idx),
                visibility=ws.get("visibility", "Visible"),
            )
            for idx, ws in enumerate(raw)
        ]

    def used_range(self, sheet: str, values_only: bool = True) -> UsedRange:
        payload = self.client.get_used_range(self.drive_id, self.item_id, sheet,
                                             values_only=values_only)
        return UsedRange.from_payload(payload)

    def update_range(self, sheet: str, address: str, values: List[list]):
        self.client.update_range(self.drive_id, self.item_id, sheet, address, values)
        logger.debug("Patched %s!%s", sheet, address)


def contiguous_runs(cells: Dict[int, object]) -> List[List[int]]:
    """Group column indices into runs of adjacent columns: {0,1,3} -> [[0,1],[3]]."""
    runs: List[List[int]] = []
    for col in sorted(cells):
        if runs and col == runs[-1][-1] + 1:
            runs[-1].append(col)
        else:
            runs.append([col])
    return runs


def write_row_cells(book, sheet: str, row_number: int, start_col: int,
                    cells: Dict[int, object]) -> List[str]:
    """PATCH only the given cells of one row, one request per contiguous run.

    ``cells`` maps column offsets (relative to ``start_col``) to values.
    Columns not in ``cells`` are never touched.  Returns the addresses written.
    """
    addresses = []
    for run in contiguous_runs(cells):
        address = a1_range(start_col + run[0], row_number, len(run))
        book.update_range(sheet, address, [[cells[c] for c in run]])
        addresses.append(address)
    return addresses
