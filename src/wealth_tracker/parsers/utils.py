"""
Value helpers shared by the export parsers: French number/date
conventions and spreadsheet cell cleanup.
"""
import re
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import pandas as pd

ZERO = Decimal("0")

# Excel serial day 0
EXCEL_EPOCH = datetime(1899, 12, 30)

_WHITESPACE = re.compile(r"\s+")
_FRENCH_DATE = re.compile(
    r"^(\d{1,2})/(\d{1,2})/(\d{4})(?:\s+(\d{1,2}):(\d{2})(?::(\d{2}))?)?$"
)


def is_blank(value: Any) -> bool:
    """True for None, NaN cells and empty strings"""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def cell_text(value: Any) -> str:
    """Render a spreadsheet/CSV cell as trimmed text ('' for blank cells)"""
    if is_blank(value):
        return ""
    return str(value).strip()


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def parse_number(value: Any) -> Decimal:
    """
    Parse a number written in either French or English notation.

    - Whitespace (including non-breaking spaces) is removed
    - When both ',' and '.' appear, ',' is the thousands separator
    - When only ',' appears, it is the decimal separator
    - Unparseable input gives 0

    Examples:
        "1 234,56" -> 1234.56
        "1,234.56" -> 1234.56
        "-45,50"   -> -45.50
    """
    if is_blank(value):
        return ZERO

    if isinstance(value, bool):
        return ZERO

    if isinstance(value, (int, float, Decimal)):
        try:
            return Decimal(str(value))
        except InvalidOperation:
            return ZERO

    text = _WHITESPACE.sub("", str(value))

    if "," in text and "." in text:
        text = text.replace(",", "")
    elif "," in text:
        text = text.replace(",", ".")

    try:
        number = Decimal(text)
    except InvalidOperation:
        return ZERO

    return number if number.is_finite() else ZERO


def parse_french_date(value: Any) -> Optional[date]:
    """Parse DD/MM/YYYY, returning None when the cell is not a valid date"""
    text = cell_text(value)
    if not text:
        return None

    match = _FRENCH_DATE.match(text)
    if not match:
        return None

    day, month, year = (int(part) for part in match.group(1, 2, 3))
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_iso_date(value: Any) -> Optional[date]:
    """Parse YYYY-MM-DD, returning None when the cell is not a valid date"""
    text = cell_text(value)
    if not text:
        return None

    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def parse_spreadsheet_date(value: Any) -> Optional[date]:
    """
    Parse a date cell coming from an XLSX export.

    Accepts native datetimes, Excel serial numbers, ISO strings and
    DD/MM/YYYY [HH:MM[:SS]] strings.
    """
    if is_blank(value):
        return None

    if isinstance(value, datetime):
        return value.date()

    if isinstance(value, date):
        return value

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (EXCEL_EPOCH + timedelta(days=float(value))).date()

    text = cell_text(value)

    french = parse_french_date(text)
    if french:
        return french

    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return parse_iso_date(text)
