# timeutil.py
from datetime import datetime, date, time, timedelta
from zoneinfo import ZoneInfo

from flask import current_app

TIME_FORMAT = "%H:%M:%S"


def local_zone():
    return ZoneInfo(current_app.config.get("TIMEZONE", "Asia/Kolkata"))


def now_local() -> datetime:
    """Current wall-clock time in the institution's timezone."""
    return datetime.now(local_zone())


def today_local() -> date:
    return now_local().date()


def parse_hms(value):
    """Parse an HH:MM:SS string into a time; None when malformed."""
    if isinstance(value, time):
        return value
    try:
        return datetime.strptime(str(value or "").strip(), TIME_FORMAT).time()
    except ValueError:
        return None


def parse_iso_date(value):
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    raw = str(value or "").strip()
    if not raw:
        return None
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        return None


def parse_iso_datetime(value):
    raw = str(value or "").strip()
    if not raw:
        return None
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(ZoneInfo("UTC")).replace(tzinfo=None)
    return parsed


def minutes_of(t: time) -> float:
    return t.hour * 60 + t.minute + t.second / 60.0


def within_window(now: time, start: time, end: time) -> bool:
    """Inclusive window check. Windows that cross midnight wrap."""
    n, s, e = minutes_of(now), minutes_of(start), minutes_of(end)
    if s <= e:
        return s <= n <= e
    return n >= s or n <= e


def add_minutes(t: time, minutes: int) -> time:
    stamp = datetime.combine(date(2000, 1, 1), t) + timedelta(minutes=minutes)
    return stamp.time()


def in_day_open_window(now: time, open_at: time, grace_minutes: int) -> bool:
    return within_window(now, open_at, add_minutes(open_at, grace_minutes))
