# display_update_service/app/utils/dates.py
import datetime
import re
from zoneinfo import ZoneInfo

_EVENT_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def normalize_event_date(value: str) -> str:
    """Accepts YYYY/MM/DD or YYYY-MM-DD and returns YYYY-MM-DD.

    Raises ValueError for anything else, including impossible dates like 2026-02-30.
    """
    normalized = (value or "").strip().replace("/", "-")
    if not _EVENT_DATE_RE.match(normalized):
        raise ValueError("Invalid date format. Use YYYY/MM/DD or YYYY-MM-DD")
    datetime.date.fromisoformat(normalized)
    return normalized


def source_date_to_key(source_date: str) -> str:
    """Council API "DD/MM/YYYY HH:MM:SS" (time optional) -> "YYYY-MM-DD"."""
    date_part = (source_date or "").strip().split(" ")[0]
    return datetime.datetime.strptime(date_part, "%d/%m/%Y").date().isoformat()


def expiry_for(date_key: str, ttl_days: int) -> datetime.datetime:
    """Midnight UTC, ttl_days after the record's date."""
    day = datetime.date.fromisoformat(date_key) + datetime.timedelta(days=ttl_days)
    return datetime.datetime.combine(day, datetime.time.min, tzinfo=datetime.timezone.utc)


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def local_today(timezone_name: str) -> datetime.date:
    return datetime.datetime.now(ZoneInfo(timezone_name)).date()
