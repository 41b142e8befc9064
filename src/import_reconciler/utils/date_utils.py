"""Date parsing utilities for ledger payloads."""

import re
from datetime import date, datetime

# Formats the ledger and statement providers emit for transaction dates.
#
# ISO strings with a time component ("2024-01-15T00:00:00.000Z") are cut to
# their date part before matching; the time of day carries no meaning for a
# statement row.
DATE_PATTERNS = [
    (r"^(\d{4})-(\d{1,2})-(\d{1,2})$", "%Y-%m-%d"),
    (r"^(\d{1,2})/(\d{1,2})/(\d{4})$", "%d/%m/%Y"),
    (r"^(\d{1,2})\.(\d{1,2})\.(\d{4})$", "%d.%m.%Y"),
    (r"^(\d{8})$", "%Y%m%d"),
]

COMPILED_PATTERNS = [(re.compile(pattern), fmt) for pattern, fmt in DATE_PATTERNS]

_ISO_DATETIME = re.compile(r"^(\d{4}-\d{2}-\d{2})[T ]")


def parse_date(raw_date: object) -> date:
    """Parse a raw date value into a date object.

    Handles:
    - date / datetime objects
    - ISO: 2024-01-15, 2024-01-15T10:00:00.000Z
    - European: 15/01/2024, 15.01.2024
    - Compact: 20240115

    Args:
        raw_date: The raw date value to parse.

    Returns:
        Parsed date object.

    Raises:
        ValueError: If the date cannot be parsed.
    """
    if isinstance(raw_date, datetime):
        return raw_date.date()
    if isinstance(raw_date, date):
        return raw_date
    if not raw_date or not isinstance(raw_date, str):
        raise ValueError(f"Cannot parse date: {raw_date!r}")

    date_str = raw_date.strip()
    iso_match = _ISO_DATETIME.match(date_str)
    if iso_match:
        date_str = iso_match.group(1)

    for pattern, fmt in COMPILED_PATTERNS:
        if pattern.match(date_str):
            try:
                return datetime.strptime(date_str, fmt).date()
            except ValueError:
                continue

    raise ValueError(f"Cannot parse date: '{raw_date}'")


def date_to_iso(d: date) -> str:
    """Convert a date to ISO 8601 format (YYYY-MM-DD)."""
    return d.isoformat()
