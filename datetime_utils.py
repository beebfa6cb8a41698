from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


UTC = timezone.utc

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def utc_now() -> datetime:
    return datetime.now(UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def _normalize_fraction(s: str) -> str:
    """Pad or trim fractional seconds to 6 digits."""

    digits = s[:6]
    if len(digits) < 6:
        digits = digits + "0" * (6 - len(digits))
    return digits


def parse_iso(s: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp (``Z`` suffix allowed) into aware UTC."""

    if not s or not isinstance(s, str):
        return None

    value = s.strip()
    if not value:
        return None

    if value.endswith("Z"):
        value = value[:-1] + "+00:00"

    if "." in value:
        head, tail = value.split(".", 1)
        tz_sign = "+"
        tz_suffix = "00:00"
        if "+" in tail:
            frac, tz_suffix = tail.split("+", 1)
            tz_sign = "+"
        elif "-" in tail:
            frac, tz_suffix = tail.split("-", 1)
            tz_sign = "-"
        else:
            frac = tail
        frac = _normalize_fraction(frac)
        value = f"{head}.{frac}{tz_sign}{tz_suffix}"
    try:
        dt = datetime.fromisoformat(value)
    except ValueError:
        return None

    return ensure_utc(dt)


def to_iso(dt: Optional[datetime] = None) -> str:
    """Serialize ``dt`` (default: now) like ``Date.toISOString``: millis + ``Z``."""

    value = ensure_utc(dt) or utc_now()
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def timestamp_key(value: Optional[str]) -> datetime:
    """Sort key for stored timestamps; unparseable values sort as the epoch."""

    return parse_iso(value) or _EPOCH


def epoch_millis(dt: Optional[datetime] = None) -> int:
    value = ensure_utc(dt) or utc_now()
    return int(value.timestamp() * 1000)


__all__ = [
    "UTC",
    "ensure_utc",
    "epoch_millis",
    "parse_iso",
    "timestamp_key",
    "to_iso",
    "utc_now",
]
