"""
Timestamp coercion shared by the log, metric and event ingestion paths.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

Clock = Callable[[], datetime]

# unix values below this are seconds, at or above are milliseconds
_MS_CUTOFF = 1e12

_OFFSET_RE = re.compile(r"([+-]\d{2})(\d{2})$")
_FRACTION_RE = re.compile(r"[.,](\d+)")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def from_epoch(value: float) -> datetime:
    seconds = value if value < _MS_CUTOFF else value / 1000.0
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def from_ms(ms: float) -> datetime:
    return datetime.fromtimestamp(ms / 1000.0, tz=timezone.utc)


def to_ms(dt: datetime) -> int:
    return int(round(dt.timestamp() * 1000))


def elapsed_ms(start: datetime, end: datetime) -> float:
    return (end - start) / timedelta(milliseconds=1)


def ensure_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _parse_iso(text: str) -> Optional[datetime]:
    value = text.strip()
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    value = _OFFSET_RE.sub(r"\1:\2", value)
    value = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), value, count=1)
    try:
        return ensure_utc(datetime.fromisoformat(value))
    except ValueError:
        return None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Coerce an ISO-8601 string, unix seconds or unix milliseconds to an aware UTC datetime.

    Returns None when the value cannot be interpreted.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if value != value:
            return None
        try:
            return from_epoch(float(value))
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        parsed = _parse_iso(value)
        if parsed is not None:
            return parsed
        try:
            return parse_timestamp(float(value.strip()))
        except ValueError:
            return None
    return None
