from datetime import date, datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def academic_year_label(today: Optional[date] = None) -> str:
    """Session label "YYYY-YYYY+1" starting in the calendar year of `today`."""
    year = (today or utcnow().date()).year
    return f"{year}-{year + 1}"
