"""
Time arithmetic for reminders.

All comparisons operate on absolute, offset-aware instants. The display
timezone never takes part in a comparison; it is only used by ``render()``.
"""

import zoneinfo
from datetime import datetime, timedelta, timezone
from typing import Callable, Union

from remindq.errors import InvalidTimestamp, OutOfWindow, ValidationError

Clock = Callable[[], datetime]

DEFAULT_MAX_AHEAD = timedelta(days=3)


def utcnow() -> datetime:
    """Current instant as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Union[str, datetime]) -> datetime:
    """Parse *value* as an absolute instant with an explicit UTC offset.

    Accepts ISO 8601 strings (a trailing ``Z`` is read as UTC) and aware
    datetimes. The offset of the input is kept on the returned value.

    Raises:
        InvalidTimestamp: unparseable input, or input without an offset.
    """
    if isinstance(value, datetime):
        dt = value
    else:
        if not isinstance(value, str) or not value.strip():
            raise InvalidTimestamp(f"Invalid timestamp: {value!r}")
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            raise InvalidTimestamp(
                f"Invalid timestamp format: '{value}'. "
                "Use ISO 8601 with an offset (e.g. 2025-01-15T09:00:00+01:00)."
            ) from None

    if dt.tzinfo is None or dt.utcoffset() is None:
        raise InvalidTimestamp(
            f"Timestamp '{value}' has no UTC offset; an absolute instant is required."
        )
    return dt


def is_future(t: datetime, now: datetime) -> bool:
    return t > now


def is_due(t: datetime, now: datetime) -> bool:
    return t <= now


def within_horizon(t: datetime, now: datetime, max_ahead: timedelta = DEFAULT_MAX_AHEAD) -> bool:
    return t <= now + max_ahead


def check_window(t: datetime, now: datetime, max_ahead: timedelta = DEFAULT_MAX_AHEAD) -> None:
    """Raise ``OutOfWindow`` unless *t* is in ``(now, now + max_ahead]``."""
    if not is_future(t, now):
        raise OutOfWindow(
            f"Reminder time {t.isoformat()} is not in the future (now is {now.isoformat()})."
        )
    if not within_horizon(t, now, max_ahead):
        raise OutOfWindow(
            f"Reminder time {t.isoformat()} is more than {_describe(max_ahead)} ahead."
        )


def resolve_timezone(name: str) -> zoneinfo.ZoneInfo:
    """Return the ``ZoneInfo`` for an IANA name, or raise ``ValidationError``."""
    try:
        return zoneinfo.ZoneInfo(name)
    except (KeyError, ValueError, zoneinfo.ZoneInfoNotFoundError):
        raise ValidationError(
            f"Unknown timezone: '{name}'. Use an IANA timezone name (e.g. America/Los_Angeles)."
        ) from None


def render(t: datetime, tz: zoneinfo.ZoneInfo) -> str:
    """Human-readable rendering of *t* in the display timezone."""
    return t.astimezone(tz).strftime("%Y-%m-%d %H:%M %Z")


def _describe(delta: timedelta) -> str:
    hours = delta.total_seconds() / 3600
    if hours % 24 == 0:
        days = int(hours // 24)
        return f"{days} day" + ("s" if days != 1 else "")
    return f"{hours:g} hours"
