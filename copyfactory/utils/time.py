# copyfactory/utils/time.py
from datetime import datetime, timezone, timedelta
from typing import Any, Optional


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def format_iso(t: datetime) -> str:
    """2020-12-08T09:08:57.715Z; naive datetimes are taken as UTC."""
    if t.tzinfo is None:
        t = t.replace(tzinfo=timezone.utc)
    t = t.astimezone(timezone.utc)
    return t.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    t = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    return t if t.tzinfo else t.replace(tzinfo=timezone.utc)


def next_millisecond(t: datetime) -> datetime:
    return t + timedelta(milliseconds=1)
