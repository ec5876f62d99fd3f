"""Domain types shared by the sync engines."""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple, Union

from .utils import parse_used_range_start

# DB column name -> PRFRecord attribute
RECORD_ATTRS: Dict[str, str] = {
    "PRFNo": "prf_no",
    "BudgetYear": "budget_year",
    "DateSubmit": "date_submit",
    "SubmitBy": "submit_by",
    "SumDescriptionRequested": "sum_description_requested",
    "Description": "description",
    "PurchaseCostCode": "purchase_cost_code",
    "RequestedAmount": "requested_amount",
    "RequiredFor": "required_for",
    "Status": "status",
}


@dataclass
class PRFRecord:
    """A purchase request as stored in the database."""
    prf_id: int
    prf_no: str
    date_submit: Optional[Union[date, datetime]] = None
    submit_by: Optional[str] = None
    sum_description_requested: Optional[str] = None
    description: Optional[str] = None
    purchase_cost_code: Optional[str] = None
    required_for: Optional[str] = None
    budget_year: Optional[int] = None
    requested_amount: Optional[float] = None
    status: Optional[str] = None

    def get_field(self, field_name: str):
        """Read a value by DB column name (e.g. "RequestedAmount")."""
        return getattr(self, RECORD_ATTRS[field_name])


@dataclass
class WorksheetCandidate:
    name: str
    position: int = 0
    visibility: str = "Visible"


@dataclass
class UsedRange:
    """Values of a worksheet's used range plus its origin cell."""
    address: str
    values: List[List[Any]]
    row_count: int = 0
    column_count: int = 0
    _origin: Tuple[int, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        self._origin = parse_used_range_start(self.address)

    @property
    def start_row(self) -> int:
        """1-based row number of the first row in ``values``."""
        return self._origin[0]

    @property
    def start_col(self) -> int:
        """0-based column index of the first column in ``values``."""
        return self._origin[1]

    @property
    def is_empty(self) -> bool:
        return not self.values or all(
            all(c is None or str(c).strip() == "" for c in row) for row in self.values
        )

    @staticmethod
    def from_payload(payload: dict) -> "UsedRange":
        values = payload.get("values") or []
        return UsedRange(
            address=payload.get("address", ""),
            values=[list(row) for row in values],
            row_count=payload.get("rowCount", len(values)),
            column_count=payload.get("columnCount", max((len(r) for r in values), default=0)),
        )


@dataclass
class SyncOutcome:
    """Result of a push. Exactly one of updated/appended is True."""
    updated: bool
    appended: bool
    sheet_name: str = ""
    row_number: int = 0

    def to_dict(self) -> dict:
        return {
            "updated": self.updated,
            "appended": self.appended,
            "sheetName": self.sheet_name,
            "rowNumber": self.row_number,
        }


@dataclass
class FieldChange:
    field: str
    from_value: Any
    to_value: Any

    def to_dict(self) -> dict:
        return {"field": self.field, "from": self.from_value, "to": self.to_value}


@dataclass
class PullOutcome:
    updated: bool
    sheet_name: str
    row_number: int
    changes: List[FieldChange] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "updated": self.updated,
            "sheetName": self.sheet_name,
            "rowNumber": self.row_number,
            "changes": [c.to_dict() for c in self.changes],
        }
