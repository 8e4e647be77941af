"""
Date normalization for fixture records.

Fixture dates reach us in several shapes depending on who wrote the record:
store timestamp objects, serialized timestamps ({"seconds": ..}), native
datetimes, epoch numbers and ISO strings. Everything is converted to an
aware UTC datetime so fixtures can be compared and sorted.

parse_date() is strict and returns None for anything it cannot read.
normalize_date() never raises: unreadable values fall back to "now" with a
warning and a metric, so one bad record cannot break a classification pass.
"""

import logging
import math
from collections.abc import Mapping
from datetime import date, datetime, time, timezone
from typing import Any, Optional

from cifastats.telemetry.metrics import record_malformed_date

logger = logging.getLogger(__name__)

# Epoch values above this are milliseconds (1e11 s is year 5138)
_MILLIS_THRESHOLD = 1e11

# Method names exposed by store timestamp types
_CONVERSION_METHODS = ("to_datetime", "toDate")


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _from_epoch(value: float) -> Optional[datetime]:
    if math.isnan(value) or math.isinf(value):
        return None
    if abs(value) > _MILLIS_THRESHOLD:
        value = value / 1000.0
    try:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def _from_string(value: str) -> Optional[datetime]:
    text = value.strip()
    if not text:
        return None
    try:
        return as_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except ValueError:
        pass
    try:
        return _from_epoch(float(text))
    except ValueError:
        return None


def _from_mapping(value: Mapping) -> Optional[datetime]:
    seconds = value.get("seconds", value.get("_seconds"))
    if isinstance(seconds, bool) or not isinstance(seconds, (int, float)):
        return None
    nanos = value.get("nanoseconds", value.get("_nanoseconds")) or 0
    if isinstance(nanos, bool) or not isinstance(nanos, (int, float)):
        nanos = 0
    return _from_epoch(seconds + nanos / 1e9)


def parse_date(raw: Any) -> Optional[datetime]:
    """
    Convert a raw date value to an aware UTC datetime.

    Accepted shapes, tried in order:
    1. Objects with a to_datetime()/toDate() conversion (store timestamps)
    2. datetime (naive taken as UTC) and date (midnight UTC)
    3. Serialized timestamps: {"seconds": s, "nanoseconds": ns}
    4. int/float epoch (seconds, or milliseconds above 1e11)
    5. ISO-8601 strings ("Z" accepted) and numeric strings

    Returns:
        The instant, or None if raw matches no shape or fails to convert.
    """
    if raw is None:
        return None

    for method_name in _CONVERSION_METHODS:
        method = getattr(raw, method_name, None)
        if callable(method):
            try:
                converted = method()
            except Exception as e:
                logger.debug(f"[DATES] {method_name}() failed on {type(raw).__name__}: {e}")
                return None
            # The conversion may itself return any accepted shape
            if converted is raw:
                return None
            return parse_date(converted)

    if isinstance(raw, datetime):
        return as_utc(raw)
    if isinstance(raw, date):
        return datetime.combine(raw, time.min, tzinfo=timezone.utc)
    if isinstance(raw, Mapping):
        return _from_mapping(raw)
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return _from_epoch(float(raw))
    if isinstance(raw, str):
        return _from_string(raw)
    return None


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_date_checked(raw: Any, now: Optional[datetime] = None) -> tuple[datetime, bool]:
    """
    Normalize a date, reporting whether the fallback was used.

    Returns:
        Tuple (instant, malformed). When malformed is True the instant is
        `now` (or the current UTC time) rather than the record's date.
    """
    parsed = parse_date(raw)
    if parsed is not None:
        return parsed, False

    fallback = as_utc(now) if now is not None else utc_now()
    logger.warning(f"[DATES] Unparseable date {raw!r} ({type(raw).__name__}), using {fallback.isoformat()}")
    record_malformed_date()
    return fallback, True


def normalize_date(raw: Any, now: Optional[datetime] = None) -> datetime:
    """Normalize a date to aware UTC. Never raises; falls back to now."""
    instant, _ = normalize_date_checked(raw, now)
    return instant
