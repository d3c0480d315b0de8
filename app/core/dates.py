import re
from datetime import date, datetime
from typing import Optional, Union

ISO_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}")


def parse_iso_date(value: Union[str, date, None], field: str = "date") -> Optional[date]:
    """Parse a zero-padded YYYY-MM-DD string strictly. ``None`` passes through."""
    if value is None or (isinstance(value, date) and not isinstance(value, datetime)):
        return value
    if isinstance(value, str) and ISO_DATE_RE.fullmatch(value):
        try:
            return datetime.strptime(value, "%Y-%m-%d").date()
        except ValueError:
            pass
    raise ValueError(f"Invalid {field} format (use YYYY-MM-DD)")
