"""
Matching stored delivery schedules against the current UTC time.

Schedules are coarse: a profile is due for the whole UTC hour named by its
``schedule_time`` on each of its ``schedule_days``.
"""

from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Tuple

from stock_digest.models import DAY_NAMES, UserProfile


SLOT_MINUTES = 15


def as_utc(now: datetime) -> datetime:
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def day_name(now: datetime) -> str:
    return DAY_NAMES[as_utc(now).weekday()]


def current_slot(now: datetime) -> Tuple[str, str]:
    """
    Return ``("HH:MM", day)`` for ``now`` in UTC, with minutes rounded down
    to a 15-minute boundary.
    """
    utc = as_utc(now)
    minute = (utc.minute // SLOT_MINUTES) * SLOT_MINUTES
    return f"{utc.hour:02d}:{minute:02d}", day_name(utc)


def is_due(profile: UserProfile, now: datetime) -> bool:
    """True when ``profile`` should receive a digest during this UTC hour."""
    utc = as_utc(now)
    return (
        day_name(utc) in profile.schedule_days
        and profile.schedule_hour == utc.hour
        and bool(profile.tickers)
        and not profile.emails_paused
    )


def select_due_profiles(
    profiles: Iterable[UserProfile], now: datetime
) -> List[UserProfile]:
    return [profile for profile in profiles if is_due(profile, now)]


def sent_in_current_hour(sent_at: Optional[datetime], now: datetime) -> bool:
    """True if ``sent_at`` falls in the same UTC date and hour as ``now``."""
    if sent_at is None:
        return False
    slot_start = as_utc(now).replace(minute=0, second=0, microsecond=0)
    return slot_start <= as_utc(sent_at) < slot_start + timedelta(hours=1)


def next_delivery(profile: UserProfile, now: datetime) -> Optional[datetime]:
    """Next UTC datetime strictly after ``now`` at which ``profile`` is scheduled."""
    if not profile.schedule_days:
        return None

    utc = as_utc(now)
    hour, minute = (int(part) for part in profile.schedule_time.split(":"))
    for offset in range(8):
        candidate = (utc + timedelta(days=offset)).replace(
            hour=hour, minute=minute, second=0, microsecond=0
        )
        if candidate > utc and day_name(candidate) in profile.schedule_days:
            return candidate
    return None
