"""
Pure booking rules shared by the ledger CRUD, the absence sweep and the
GraphQL layer. Nothing here touches the database.
"""
import os
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

GYM_TIMEZONE = ZoneInfo(os.getenv("GYM_TIMEZONE", "Africa/Tunis"))
CANCELLATION_WINDOW = timedelta(hours=int(os.getenv("CANCELLATION_WINDOW_HOURS", 24)))

REGISTERED = "registered"
ATTENDED = "attended"
CANCELLED = "cancelled"
ABSENT = "absent"

REGISTRATION_STATUSES = (REGISTERED, ATTENDED, CANCELLED, ABSENT)
# Statuses that hold a seat in the course
SEAT_HOLDING_STATUSES = (REGISTERED, ATTENDED)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def localize(course_date: date, wall_time: time) -> datetime:
    """Combine a course date and a local wall-clock time into an aware datetime."""
    return datetime.combine(course_date, wall_time).replace(tzinfo=GYM_TIMEZONE)


def course_bounds(course_date: date, start_time: time, end_time: time) -> Tuple[datetime, datetime]:
    start_at = localize(course_date, start_time)
    end_at = localize(course_date, end_time)
    if end_at <= start_at:
        # Late classes may end after midnight
        end_at += timedelta(days=1)
    return start_at, end_at


def has_started(start_at: datetime, now: datetime) -> bool:
    return ensure_aware(now) >= start_at


def cancellation_cutoff(start_at: datetime) -> datetime:
    return start_at - CANCELLATION_WINDOW


def is_within_cancellation_window(start_at: datetime, now: datetime) -> bool:
    """True when a cancellation at ``now`` forfeits the session.

    The cutoff instant itself belongs to the window: cancelling at exactly
    ``start - 24h`` forfeits, one second earlier refunds.
    """
    return ensure_aware(now) >= cancellation_cutoff(start_at)


def derive_status(
    stored_status: str,
    has_checkin: bool,
    course_end: datetime,
    now: datetime,
) -> str:
    """Status shown to callers.

    The CheckIn row is authoritative for attendance; the stored status is a
    cache kept in step by the check-in and check-out writes.
    """
    if stored_status == CANCELLED:
        return CANCELLED
    if has_checkin:
        return ATTENDED
    if ensure_aware(now) >= course_end:
        return ABSENT
    return REGISTERED


def ranges_overlap(
    first: Tuple[datetime, datetime],
    second: Tuple[datetime, datetime],
) -> bool:
    return first[0] < second[1] and first[1] > second[0]


def find_overlap(
    target: Tuple[datetime, datetime],
    booked: Iterable[Tuple[int, Tuple[datetime, datetime]]],
) -> Optional[int]:
    """Return the id of the first booked course whose time range overlaps ``target``."""
    for course_id, bounds in booked:
        if ranges_overlap(target, bounds):
            return course_id
    return None


def order_balances(candidates: Sequence[Tuple[int, date, int]]) -> List[int]:
    """Order eligible balances for debit.

    Each candidate is ``(balance_id, subscription_end_date, sessions_remaining)``.
    The soonest-expiring subscription is debited first; ties go to the
    lowest balance id.
    """
    eligible = [c for c in candidates if c[2] > 0]
    eligible.sort(key=lambda c: (c[1], c[0]))
    return [c[0] for c in eligible]
