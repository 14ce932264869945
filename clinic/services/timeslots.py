"""
Visiting hours and 15-minute appointment slots.

Visiting hours are stored per doctor as
``{day: {"isAvailable": bool, "slots": [{"start": "HH:MM", "end": "HH:MM"}]}}``
with lowercase English day names.  A booked appointment blocks the window
``[time, time + 15 minutes)``.
"""
from __future__ import annotations

import datetime
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from django.core.cache import cache
from django.utils import timezone

from clinic.services.blocked_dates import blocked_date_reason, is_date_blocked

DOCTORS_CACHE_KEY = "doctors:active"

SLOT_MINUTES = 15
TODAY_BUFFER_MINUTES = 15

DAY_NAMES = ['monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday']

_WEEKDAY = {"isAvailable": True, "slots": [{"start": "09:00", "end": "13:00"}, {"start": "14:00", "end": "17:00"}]}

DEFAULT_VISITING_HOURS: Dict[str, Dict[str, Any]] = {
    'monday': _WEEKDAY,
    'tuesday': _WEEKDAY,
    'wednesday': _WEEKDAY,
    'thursday': _WEEKDAY,
    'friday': _WEEKDAY,
    'saturday': {"isAvailable": True, "slots": [{"start": "09:00", "end": "13:00"}]},
    'sunday': {"isAvailable": False, "slots": []},
}

_TWELVE_HOUR = re.compile(r'^(\d{1,2})[:\-]?(\d{2})(AM|PM)$')


def normalize_time(value: str) -> str:
    """Return ``HH:MM`` for "2:30 PM", "14-30", "9:5" style input.

    Anything that cannot be parsed is returned stripped of whitespace.
    """
    if not value or not isinstance(value, str):
        return value
    normalized = re.sub(r'\s+', '', value.strip()).upper()
    if 'AM' in normalized or 'PM' in normalized:
        m = _TWELVE_HOUR.match(normalized)
        if m:
            hours, minutes, period = int(m.group(1)), int(m.group(2)), m.group(3)
            if period == 'PM' and hours != 12:
                hours += 12
            elif period == 'AM' and hours == 12:
                hours = 0
            return f"{hours:02d}:{minutes:02d}"
        return normalized
    normalized = normalized.replace('-', ':')
    parts = normalized.split(':')
    if len(parts) == 2 and parts[0].isdigit() and parts[1].isdigit():
        return f"{int(parts[0]):02d}:{int(parts[1]):02d}"
    return normalized


def time_to_minutes(value: str) -> int:
    hours, minutes = normalize_time(value).split(':')
    return int(hours) * 60 + int(minutes)


def minutes_to_time(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def day_name(day: datetime.date) -> str:
    return DAY_NAMES[day.weekday()]


def generate_time_slots(day_schedule: Optional[Dict[str, Any]]) -> List[str]:
    if not day_schedule or not day_schedule.get('isAvailable'):
        return []
    slots = set()
    for window in day_schedule.get('slots') or []:
        start = time_to_minutes(window['start'])
        end = time_to_minutes(window['end'])
        for minutes in range(start, end, SLOT_MINUTES):
            slots.add(minutes_to_time(minutes))
    return sorted(slots)


def is_time_slot_available(slot: str, booked_times: Iterable[str]) -> bool:
    slot_minutes = time_to_minutes(slot)
    for booked in booked_times:
        if not booked:
            continue
        booked_minutes = time_to_minutes(booked)
        if booked_minutes <= slot_minutes < booked_minutes + SLOT_MINUTES:
            return False
    return True


def visiting_hours_for(doctor) -> Dict[str, Any]:
    hours = getattr(doctor, 'visiting_hours', None) if doctor is not None else None
    return hours or DEFAULT_VISITING_HOURS


def day_schedule_for(doctor, day: datetime.date) -> Dict[str, Any]:
    return visiting_hours_for(doctor).get(day_name(day)) or {"isAvailable": False, "slots": []}


def available_time_slots(doctor, day: datetime.date, booked_times: Iterable[str]) -> List[str]:
    """Free slots for ``doctor`` on ``day`` given the confirmed booking times."""
    if is_date_blocked(day, doctor.blocked_dates):
        return []
    booked = list(booked_times)
    return [s for s in generate_time_slots(day_schedule_for(doctor, day)) if is_time_slot_available(s, booked)]


def format_time_display(value: str) -> str:
    hours, minutes = (int(p) for p in value.split(':'))
    period = 'PM' if hours >= 12 else 'AM'
    return f"{hours % 12 or 12}:{minutes:02d} {period}"


def availability_days(visiting_hours: Optional[Dict[str, Any]] = None) -> List[str]:
    hours = visiting_hours or DEFAULT_VISITING_HOURS
    return [
        day[:3].capitalize()
        for day in DAY_NAMES
        if (hours.get(day) or {}).get('isAvailable') and (hours.get(day) or {}).get('slots')
    ]


def is_doctor_available_on(doctor, day: datetime.date) -> bool:
    schedule = day_schedule_for(doctor, day)
    return bool(schedule.get('isAvailable') and schedule.get('slots'))


def visiting_hours_text(day_schedule: Optional[Dict[str, Any]]) -> str:
    if not day_schedule or not day_schedule.get('isAvailable'):
        return "Closed"
    return ', '.join(
        f"{format_time_display(w['start'])} - {format_time_display(w['end'])}" for w in day_schedule.get('slots') or []
    )


def is_slot_in_past(slot: str, day: datetime.date, now: Optional[datetime.datetime] = None) -> bool:
    now = timezone.localtime(now or timezone.now())
    hours, minutes = (int(p) for p in normalize_time(slot).split(':'))
    slot_at = timezone.make_aware(datetime.datetime.combine(day, datetime.time(hours, minutes)), now.tzinfo)
    return slot_at < now


def is_within_today_buffer(slot: str, day: datetime.date, now: Optional[datetime.datetime] = None) -> bool:
    """True when ``slot`` on ``day`` starts less than 15 minutes from now."""
    now = timezone.localtime(now or timezone.now())
    if day != now.date():
        return False
    return time_to_minutes(slot) <= now.hour * 60 + now.minute + TODAY_BUFFER_MINUTES


def booking_time_slots() -> List[str]:
    """The fixed grid offered over WhatsApp: 09:00-13:00 and 14:00-17:00, both ends included."""
    slots = [minutes_to_time(m) for m in range(9 * 60, 13 * 60, SLOT_MINUTES)]
    slots.append("13:00")
    slots += [minutes_to_time(m) for m in range(14 * 60, 17 * 60, SLOT_MINUTES)]
    slots.append("17:00")
    return slots


def is_morning(slot: str) -> bool:
    return 9 <= int(slot.split(':')[0]) <= 13


def is_afternoon(slot: str) -> bool:
    return 14 <= int(slot.split(':')[0]) <= 17


@dataclass
class DateAvailability:
    available: bool
    reason: str = ""


def check_date_availability(day: datetime.date, doctor) -> DateAvailability:
    if not is_doctor_available_on(doctor, day):
        return DateAvailability(False, f"{day.strftime('%A')} is a blocked day. Please select another date.")
    reason = blocked_date_reason(day, getattr(doctor, 'blocked_dates', None))
    if reason:
        return DateAvailability(False, f"This date is blocked: {reason}. Please select another date.")
    return DateAvailability(True)


def doctors_cache_key(day: Optional[datetime.date] = None) -> str:
    return f"{DOCTORS_CACHE_KEY}:{(day or timezone.localdate()).isoformat()}"


def invalidate_doctors_cache() -> None:
    """Drop today's cached doctor list after hours or blocked dates change."""
    cache.delete(doctors_cache_key())
