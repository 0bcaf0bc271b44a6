import math
import re
import unicodedata
from datetime import date, datetime
from typing import Any, Optional

_CURRENCY_MARKERS = ("₹", "$", "Rs.", "Rs", "INR")
_LEADING_NUMBER = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_DISPLAY_DATE = re.compile(r"^\d{2}/\d{2}/\d{4}$")
_DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y", "%Y/%m/%d")


def parse_number(value: Any) -> float | None:
    """Parses a spreadsheet cell into a float.

    Accepts ints/floats as-is and strings such as '1,500.50', '₹ 2,000' or
    ' 12 '. Commas are always thousands separators (Indian and US grouping
    both use them that way). Returns None when nothing numeric is found.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else None
    if not isinstance(value, str):
        return None
    cleaned = value.strip()
    for marker in _CURRENCY_MARKERS:
        cleaned = cleaned.replace(marker, "")
    cleaned = cleaned.replace(",", "").replace(" ", "")
    if not cleaned:
        return None
    try:
        number = float(cleaned)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def to_non_negative_number(value: Any) -> float:
    """Best-effort numeric coercion for quantities and prices: malformed or negative cells become 0."""
    number = parse_number(value)
    if number is None or number < 0:
        return 0.0
    return number


def parse_leading_number(text: Any) -> float | None:
    """Reads the number a free-text cell starts with ('25.5 extra' -> 25.5)."""
    if isinstance(text, (int, float)) and not isinstance(text, bool):
        return parse_number(text)
    if not isinstance(text, str):
        return None
    match = _LEADING_NUMBER.match(text.replace(",", ""))
    if not match:
        return None
    return parse_number(match.group(0))


def normalize_text(text: str) -> str:
    if not isinstance(text, str):
        return ""
    text = text.lower().strip()
    nfkd_form = unicodedata.normalize('NFKD', text)
    normalized_text = "".join([c for c in nfkd_form if not unicodedata.combining(c)])
    return normalized_text


def names_match(left: Any, right: Any) -> bool:
    """Case-insensitive company name comparison. Empty names never match."""
    left_normalized = normalize_text(str(left)) if left is not None else ""
    right_normalized = normalize_text(str(right)) if right is not None else ""
    return bool(left_normalized) and left_normalized == right_normalized


def clean_cell(value: Any) -> str:
    """Renders a cell as a stripped string; None becomes ''."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def parse_date(value: Any) -> Optional[date]:
    """Parses ISO ('2024-05-01', '2024-05-01T10:00:00') or 'dd/mm/yyyy' cells. Returns None if unparseable."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    candidate = text.split("T")[0].split(" ")[0]
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(candidate, fmt).date()
        except ValueError:
            continue
    return None


def format_display_date(value: Any) -> str:
    """Formats a date as dd/mm/yyyy. Already formatted or unparseable strings pass through unchanged."""
    if value is None or value == "":
        return ""
    if isinstance(value, str) and _DISPLAY_DATE.match(value.strip()):
        return value.strip()
    parsed = parse_date(value)
    if parsed is None:
        return str(value)
    return parsed.strftime("%d/%m/%Y")
