from __future__ import annotations

import logging
import math
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Union

logger = logging.getLogger("insuretrack.services.expiry")

DEFAULT_WINDOW_DAYS = 7

DateLike = Union[str, date, datetime]


class ExpiryStatus(str, Enum):
    ACTIVE = "active"
    EXPIRING = "expiring"
    EXPIRED = "expired"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    """Timestamp in the `2025-01-05T08:00:00.000Z` form the UI sorts on."""
    return utc_now().isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_expiry_date(value: DateLike) -> datetime:
    """
    Parse an ISO-8601 date or date-time into an aware UTC datetime.

    Date-only values mean midnight UTC; naive date-times are taken as UTC.
    Raises ValueError for anything else.
    """
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if not isinstance(value, str):
        raise ValueError(f"Unsupported expiry date type: {type(value).__name__}")

    raw = value.strip()
    if not raw:
        raise ValueError("Expiry date is empty")
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"

    if len(raw) == 10:
        return datetime.combine(date.fromisoformat(raw), time.min, tzinfo=timezone.utc)
    return _as_utc(datetime.fromisoformat(raw))


def classify(
    expiry_date: DateLike,
    as_of: Optional[datetime] = None,
    window_days: int = DEFAULT_WINDOW_DAYS,
) -> ExpiryStatus:
    """
    Classify a policy expiry relative to `as_of`.

    expired:  expiry <= as_of
    expiring: as_of < expiry <= as_of + window_days
    active:   otherwise
    """
    if window_days <= 0:
        raise ValueError("window_days must be > 0")

    expiry = parse_expiry_date(expiry_date)
    now = _as_utc(as_of) if as_of is not None else utc_now()

    if expiry <= now:
        return ExpiryStatus.EXPIRED
    if expiry <= now + timedelta(days=window_days):
        return ExpiryStatus.EXPIRING
    return ExpiryStatus.ACTIVE


def days_until_expiry(expiry_date: DateLike, now: Optional[datetime] = None) -> int:
    """Ceiling of (expiry - now) in days; negative once expired."""
    expiry = parse_expiry_date(expiry_date)
    current = _as_utc(now) if now is not None else utc_now()
    return math.ceil((expiry - current).total_seconds() / 86400)


def summarize(
    entries: Iterable[Mapping[str, Any]],
    as_of: Optional[datetime] = None,
    window_days: int = DEFAULT_WINDOW_DAYS,
) -> Dict[str, int]:
    """Aggregate expiry status counts for the dashboard."""
    now = as_of or utc_now()
    counts = {status.value: 0 for status in ExpiryStatus}
    counts["invalid"] = 0
    total = 0

    for entry in entries:
        total += 1
        try:
            status = classify(entry.get("expiryDate"), now, window_days)
        except (TypeError, ValueError):
            logger.debug("Entry %s has an unparsable expiry date", entry.get("id"))
            counts["invalid"] += 1
            continue
        counts[status.value] += 1

    counts["total"] = total
    return counts
