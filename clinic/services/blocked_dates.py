"""
Normalization of doctor blocked dates.

Blocked dates arrive in several shapes depending on who wrote them: plain
``"YYYY-MM-DD"`` strings (possibly with a time part), ``{"date": ...,
"reason": ...}`` objects from the leave request form, ``{"seconds": n}``
unix timestamps from older exports, or ``date`` objects from Python code.
Everything is compared as ``YYYY-MM-DD``.
"""
from __future__ import annotations

import datetime
from typing import Any, Iterable, List, Optional

from django.utils import timezone


def normalize_blocked_date(value: Any) -> str:
    if not value:
        return ""
    if isinstance(value, str):
        return value[:10]
    if isinstance(value, datetime.datetime):
        if timezone.is_aware(value):
            value = timezone.localtime(value)
        return value.date().isoformat()
    if isinstance(value, datetime.date):
        return value.isoformat()
    if isinstance(value, dict):
        if isinstance(value.get("date"), str):
            return value["date"][:10]
        seconds = value.get("seconds")
        if isinstance(seconds, (int, float)) and seconds:
            dt = datetime.datetime.fromtimestamp(seconds, tz=datetime.timezone.utc)
            return timezone.localtime(dt).date().isoformat()
    return ""


def normalize_blocked_dates(entries: Optional[Iterable[Any]]) -> List[str]:
    if not isinstance(entries, (list, tuple)):
        return []
    return [d for d in (normalize_blocked_date(e) for e in entries) if d]


def _as_iso(day: Any) -> str:
    return day.isoformat() if isinstance(day, datetime.date) else str(day or "")[:10]


def is_date_blocked(day: Any, entries: Optional[Iterable[Any]]) -> bool:
    iso = _as_iso(day)
    if not iso:
        return False
    return iso in normalize_blocked_dates(entries)


def blocked_date_reason(day: Any, entries: Optional[Iterable[Any]]) -> Optional[str]:
    """Reason recorded for ``day`` or None when the date is not blocked."""
    iso = _as_iso(day)
    for entry in entries or []:
        if normalize_blocked_date(entry) == iso:
            reason = entry.get("reason") if isinstance(entry, dict) else None
            return reason or "Doctor not available"
    return None
