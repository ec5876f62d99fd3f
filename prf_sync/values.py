"""Value normalizer: spreadsheet cells <-> typed PRF values.

Reads go through ``normalize_value`` with a field kind (date, number,
integer, text).  Writes go through ``to_cell``.
"""

import re
from datetime import date, datetime, time, timedelta
from typing import Optional, Union

# Month name lookup for strings like "January 15, 2023" or "15-Jan-2023"
_MONTH_NAMES = {
    "january": 1, "february": 2, "march": 3, "april": 4,
    "may": 5, "june": 6, "july": 7, "august": 8,
    "september": 9, "october": 10, "november": 11, "december": 12,
    "jan": 1, "feb": 2, "mar": 3, "apr": 4,
    "jun": 6, "jul": 7, "aug": 8,
    "sep": 9, "sept": 9, "oct": 10, "nov": 11, "dec": 12,
}

EXCEL_EPOCH = date(1899, 12, 30)
# Excel counts 1900-02-29 (serial 60), a day that never existed.
_EXCEL_FAKE_LEAP_DAY = 60
_SECONDS_PER_DAY = 86400

# "1.500.000": dots as thousands separators (no leading zero group)
_DOT_GROUPED = re.compile(r"^-?[1-9]\d{0,2}(\.\d{3})+$")

DATE = "date"
NUMBER = "number"
INTEGER = "integer"
TEXT = "text"


def _is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


# ── Dates ──

def excel_serial_to_date(serial: float) -> Union[date, datetime]:
    """Convert an Excel serial to a date, or a datetime when it has a time part.

    44927 -> date(2023, 1, 1).  Serials below 60 use 1899-12-31 as the epoch
    so that serial 1 is 1900-01-01; serial 60 is Excel's 1900-02-29 and maps
    to 1900-02-28.
    """
    serial = float(serial)
    if serial < 0:
        raise ValueError(f"Negative Excel serial: {serial}")
    days = int(serial)
    fraction = serial - days

    if days < _EXCEL_FAKE_LEAP_DAY:
        d = EXCEL_EPOCH + timedelta(days=days + 1)
    elif days == _EXCEL_FAKE_LEAP_DAY:
        d = date(1900, 2, 28)
    else:
        d = EXCEL_EPOCH + timedelta(days=days)

    seconds = int(round(fraction * _SECONDS_PER_DAY))
    if seconds <= 0:
        return d
    if seconds >= _SECONDS_PER_DAY:
        return d + timedelta(days=1)
    return datetime.combine(d, time()) + timedelta(seconds=seconds)


def parse_date_text(text: str) -> Optional[Union[date, datetime]]:
    """Parse a loosely formatted date string. Returns None when unrecognised.

    Accepts:
      - YYYY-MM-DD, optionally followed by a time (ISO 8601)
      - M/D/YYYY, falling back to D/M/YYYY when the first part exceeds 12
      - D-Mon-YYYY (e.g. "15-Jan-2023")
      - "Month Day, Year" (e.g. "January 15, 2023")
    """
    s = (text or "").strip()
    if not s:
        return None

    m = re.match(r"^(\d{4})-(\d{1,2})-(\d{1,2})([T ].*)?$", s)
    if m:
        if m.group(4):
            try:
                return datetime.fromisoformat(s.replace("Z", "+00:00"))
            except ValueError:
                pass
        return _safe_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))

    m = re.match(r"^(\d{1,2})[/.](\d{1,2})[/.](\d{4})$", s)
    if m:
        first, second, year = int(m.group(1)), int(m.group(2)), int(m.group(3))
        if first > 12:
            return _safe_date(year, second, first)
        return _safe_date(year, first, second)

    m = re.match(r"^(\d{1,2})[-\s]([A-Za-z]+)[-\s](\d{4})$", s)
    if m:
        month_num = _MONTH_NAMES.get(m.group(2).lower())
        if month_num:
            return _safe_date(int(m.group(3)), month_num, int(m.group(1)))

    m = re.match(r"^([A-Za-z]+)\s+(\d{1,2}),?\s+(\d{4})$", s)
    if m:
        month_num = _MONTH_NAMES.get(m.group(1).lower())
        if month_num:
            return _safe_date(int(m.group(3)), month_num, int(m.group(2)))

    return None


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def to_date(value) -> Optional[Union[date, datetime]]:
    """Normalize a cell or DB value to a date/datetime. Blank -> None."""
    if _is_blank(value):
        return None
    if isinstance(value, datetime):
        if value.time() == time():
            return value.date()
        return value
    if isinstance(value, date):
        return value
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return excel_serial_to_date(value)

    s = str(value).strip()
    try:
        serial = float(s)
    except ValueError:
        return parse_date_text(s)
    if 0 < serial < 2958466:  # 9999-12-31
        return excel_serial_to_date(serial)
    return None


# ── Numbers ──

def to_number(value) -> Optional[float]:
    """Normalize a number, stripping thousands separators and currency marks."""
    if _is_blank(value) or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    s = str(value).strip()
    negative = s.startswith("(") and s.endswith(")")
    s = re.sub(r"^\(?[^\d\-.(]*?[A-Za-z$€£¥]+\.?\s*", "", s)  # "Rp. ", "USD ", "$"
    s = re.sub(r"[^\d.,\-]", "", s)
    if "," in s and "." in s and s.rfind(",") > s.rfind("."):
        s = s.replace(".", "").replace(",", ".")  # 1.500,50
    elif "," not in s and _DOT_GROUPED.match(s):
        s = s.replace(".", "")  # 1.500.000
    else:
        s = s.replace(",", "")
    if s in ("", "-", ".", "-."):
        return None
    try:
        num = float(s)
    except ValueError:
        return None
    return -num if negative else num


def to_integer(value) -> Optional[int]:
    num = to_number(value)
    if num is None:
        return None
    return int(round(num))


def to_text(value) -> Optional[str]:
    if _is_blank(value):
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


_NORMALIZERS = {
    DATE: to_date,
    NUMBER: to_number,
    INTEGER: to_integer,
    TEXT: to_text,
}


def normalize_value(value, kind: str = TEXT):
    """Normalize ``value`` according to its field kind."""
    try:
        normalizer = _NORMALIZERS[kind]
    except KeyError:
        raise ValueError(f"Unknown field kind: '{kind}'")
    return normalizer(value)


def values_equal(a, b, kind: str = TEXT) -> bool:
    """Compare two already-normalized values of the same field kind."""
    if a is None or b is None:
        return a is None and b is None
    if kind == NUMBER:
        return round(float(a), 2) == round(float(b), 2)
    if kind == DATE:
        if isinstance(a, datetime) != isinstance(b, datetime):
            a = a.date() if isinstance(a, datetime) else a
            b = b.date() if isinstance(b, datetime) else b
        return a == b
    return a == b


# ── Write direction ──

def to_cell(value):
    """Convert a PRF value into something the range PATCH body accepts."""
    if value is None:
        return ""
    if isinstance(value, datetime):
        if value.time() == time():
            return value.date().isoformat()
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, bool):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, (int, float, str)):
        return value
    return str(value)
