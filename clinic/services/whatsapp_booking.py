"""
WhatsApp booking conversation behind the Meta webhook.

One :class:`BookingSession` row per normalized phone number carries the
conversation through ``selecting_language -> selecting_date ->
selecting_time -> confirming``.  Interactive messages (lists, buttons) are
preferred; when WhatsApp rejects one we retry once with a simpler payload
and then fall back to plain text the user can answer by typing.

Text-flow requests become ``whatsapp_pending`` appointments without a
doctor; reception assigns the doctor and claims the slot later.  WhatsApp
Flow submissions carry a doctor and are booked straight away.
"""
from __future__ import annotations

import datetime
import logging
import random
import re
import string
import time as _time
from typing import Any, Dict, List, Optional

from django.conf import settings
from django.utils import timezone
from django.utils.dateparse import parse_date

from clinic.exceptions import SlotAlreadyBooked
from clinic.models import Appointment, BookingSession, Doctor
from clinic.services import appointments, notifications, whatsapp
from clinic.services import whatsapp_texts as texts
from clinic.services.timeslots import (
    booking_time_slots, check_date_availability, format_time_display, is_afternoon, is_morning,
    is_within_today_buffer, normalize_time,
)

logger = logging.getLogger(__name__)

CANCEL_KEYWORDS = (
    'cancel', 'stop', 'abort', 'quit', 'exit', 'no', 'nevermind', 'never mind',
    "don't", 'dont', 'skip', 'end', 'finish',
)
GREETINGS = ('hello', 'hi', 'hy', 'hey', 'hii', 'hiii', 'hlo', 'helo', 'hie', 'hai')

DATE_WINDOW_DAYS = 14
MAX_LIST_ROWS = 10
MAX_ROW_TITLE = 24
MAX_BUTTON_TEXT = 20

_DATE_ID = re.compile(r'^\d{4}-\d{2}-\d{2}$')
_DATE_IN_TEXT = re.compile(r'(\d{4})-(\d{2})-(\d{2})')
_TIME_IN_TEXT = re.compile(r'(\d{1,2})([:.\s]?)(\d{2})')
_FLOW_DATE_FORMATS = ('%d/%m/%Y', '%d-%m-%Y', '%d %b %Y', '%d %B %Y', '%b %d, %Y', '%B %d, %Y')


def _footer() -> str:
    return settings.HOSPITAL_DISPLAY_NAME


def verify_subscription(mode: Optional[str], token: Optional[str], challenge: Optional[str]) -> Optional[str]:
    """Challenge to echo back for a valid ``hub.*`` handshake, else None."""
    expected = settings.META_WHATSAPP_VERIFY_TOKEN
    if mode == 'subscribe' and expected and token == expected:
        return challenge or ''
    return None


def _first(items) -> Dict[str, Any]:
    if isinstance(items, list) and items and isinstance(items[0], dict):
        return items[0]
    return {}


def handle_webhook_payload(body: Dict[str, Any]) -> Dict[str, Any]:
    """Dispatch one webhook delivery; the returned dict is the JSON response body."""
    entry = _first(body.get('entry') if isinstance(body, dict) else None)
    value = _first(entry.get('changes')).get('value') or {}
    if value.get('statuses'):
        logger.debug("WhatsApp status update: %s", value['statuses'])
        return {'success': True}
    message = _first(value.get('messages'))
    if not message:
        return {'success': True}

    sender = message.get('from') or ''
    kind = message.get('type')

    if kind == 'flow':
        return handle_flow_completion(message)

    interactive = message.get('interactive') or {}
    if kind == 'interactive' and interactive.get('type') == 'button_reply':
        button_id = (interactive.get('button_reply') or {}).get('id') or ''
        if button_id == 'book_appointment':
            start_booking_with_flow(sender)
        elif button_id == 'help_center':
            whatsapp.send_text(sender, texts.help_center())
        elif button_id in ('booking_confirm', 'booking_cancel'):
            handle_confirmation_button(sender, 'confirm' if button_id == 'booking_confirm' else 'cancel')
        elif button_id.startswith('date_'):
            handle_date_button(sender, button_id)
        elif button_id.startswith('time_quick_'):
            handle_time_button(sender, button_id)
        return {'success': True}

    if kind == 'interactive' and interactive.get('type') == 'list_reply':
        handle_list_selection(sender, (interactive.get('list_reply') or {}).get('id') or '')
        return {'success': True}

    if kind == 'text':
        text = (message.get('text') or {}).get('body') or ''
        if not handle_booking_conversation(sender, text):
            trimmed = text.strip().lower()
            if 'thank' in trimmed:
                whatsapp.send_text(sender, texts.THANKS_REPLY)
            elif any(trimmed == g or trimmed.startswith(g + ' ') for g in GREETINGS):
                send_greeting(sender)
            else:
                send_welcome(sender)
        return {'success': True}

    whatsapp.send_text(sender, texts.UNSUPPORTED_TYPE)
    return {'success': True}


def _session_for(phone: str) -> Optional[BookingSession]:
    return BookingSession.objects.select_related('doctor').filter(pk=whatsapp.format_phone_number(phone)).first()


def _update(session: BookingSession, **fields) -> None:
    for name, value in fields.items():
        setattr(session, name, value)
    session.save(update_fields=[*fields, 'updated_at'])


def send_greeting(phone: str) -> None:
    buttons = [
        {'id': 'book_appointment', 'title': '📅 Book Appointment'},
        {'id': 'help_center', 'title': '🆘 Help Center'},
    ]
    result = whatsapp.send_buttons(phone, texts.GREETING, buttons, footer=_footer())
    if not result.success:
        logger.warning("Greeting buttons to %s failed: %s", whatsapp.mask_phone(phone), result.error)
        whatsapp.send_text(phone, texts.greeting_fallback())


def send_welcome(phone: str) -> None:
    result = whatsapp.send_button(phone, texts.welcome(), 'book_appointment', 'Book Appointment', footer=_footer())
    if not result.success:
        logger.warning("Welcome button to %s failed: %s", whatsapp.mask_phone(phone), result.error)
        whatsapp.send_text(phone, texts.welcome_fallback())


def _flow_token() -> str:
    suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"token_{int(_time.time() * 1000)}_{suffix}"


def start_booking_with_flow(phone: str) -> None:
    if appointments.find_patient_by_phone(phone) is None:
        whatsapp.send_text(phone, texts.registration_required())
        return
    flow_id = settings.META_WHATSAPP_FLOW_ID
    if flow_id:
        result = whatsapp.send_flow(
            phone, flow_id, _flow_token(),
            header='Book Your Appointment',
            body='Please fill out the form below to schedule your appointment with our doctors.',
            footer=_footer(),
        )
        if result.success:
            return
        logger.warning("Flow to %s failed, using text booking: %s", whatsapp.mask_phone(phone), result.error)
    start_booking_conversation(phone)


def start_booking_conversation(phone: str) -> None:
    if appointments.find_patient_by_phone(phone) is None:
        whatsapp.send_text(phone, texts.registration_required())
        return
    BookingSession.objects.filter(pk=whatsapp.format_phone_number(phone)).delete()
    BookingSession.objects.create(
        phone=whatsapp.format_phone_number(phone),
        state=BookingSession.STATE_SELECTING_LANGUAGE,
        needs_registration=False,
    )
    send_language_picker(phone)


def send_language_picker(phone: str) -> None:
    rows = [
        {'id': 'lang_english', 'title': '🇬🇧 English', 'description': 'Continue in English'},
        {'id': 'lang_gujarati', 'title': '🇮🇳 ગુજરાતી (Gujarati)', 'description': 'ગુજરાતીમાં ચાલુ રાખો'},
    ]
    result = whatsapp.send_list(
        phone, texts.t('language_selection'), '🌐 Choose Language',
        [{'title': 'Available Languages', 'rows': rows}], footer=_footer(),
    )
    if not result.success:
        whatsapp.send_text(phone, texts.LANGUAGE_FALLBACK)


def handle_booking_conversation(phone: str, text: str) -> bool:
    """Route free text to the open session; False when the number is not booking."""
    session = _session_for(phone)
    if session is None:
        return False
    trimmed = text.strip().lower()
    if any(trimmed == k or k in trimmed for k in CANCEL_KEYWORDS):
        session.delete()
        whatsapp.send_text(phone, texts.BOOKING_CANCELLED)
        return True

    if session.state == BookingSession.STATE_SELECTING_LANGUAGE:
        _language_from_text(phone, session, trimmed)
    elif session.state == BookingSession.STATE_SELECTING_DATE:
        _date_from_text(phone, session, text)
    elif session.state == BookingSession.STATE_SELECTING_TIME:
        _time_from_text(phone, session, trimmed)
    elif session.state == BookingSession.STATE_CONFIRMING:
        if trimmed in ('confirm', 'yes'):
            process_confirmation(phone, session, 'confirm')
        else:
            session.delete()
            whatsapp.send_text(phone, texts.TEXT_CONFIRMATION_CANCELLED)
    else:
        session.delete()
        return False
    return True


def _language_from_text(phone: str, session: BookingSession, trimmed: str) -> None:
    if trimmed in ('english', 'en', '1'):
        language = texts.ENGLISH
    elif trimmed in ('gujarati', 'guj', 'gu', '2'):
        language = texts.GUJARATI
    else:
        send_language_picker(phone)
        return
    _move_to_date_selection(phone, session, language)


def _move_to_date_selection(phone: str, session: BookingSession, language: str) -> None:
    _update(session, language=language, state=BookingSession.STATE_SELECTING_DATE)
    whatsapp.send_text(phone, texts.t('date_intro', language))
    send_date_picker(phone, None, language)


def date_options(doctor: Optional[Doctor] = None, today: Optional[datetime.date] = None) -> List[Dict[str, str]]:
    """List rows for the next two weeks, skipping dates ``doctor`` cannot see patients."""
    today = today or timezone.localdate()
    rows = []
    for offset in range(DATE_WINDOW_DAYS):
        day = today + datetime.timedelta(days=offset)
        if doctor is not None and not check_date_availability(day, doctor).available:
            continue
        weekday = day.strftime('%a')
        label = {0: 'Today', 1: 'Tomorrow'}.get(offset, weekday)
        rows.append({'id': f'date_{day.isoformat()}', 'title': f'{label} - {texts.short_date(day)}',
                     'description': label})
    return rows


def _simplified_rows(rows: List[Dict[str, str]]) -> List[Dict[str, str]]:
    return [
        {
            'id': row['id'],
            'title': row['title'] if len(row['title']) <= MAX_ROW_TITLE else row['title'][:21] + '...',
            'description': row.get('description') or 'Available',
        }
        for row in rows
    ]


def send_date_picker(phone: str, doctor: Optional[Doctor], language: str = texts.ENGLISH) -> None:
    rows = date_options(doctor)
    if not rows:
        whatsapp.send_text(phone, texts.t('no_dates', language, reception=texts.reception_phone()))
        return
    rows = rows[:MAX_LIST_ROWS]
    button = texts.t('date_button', language)[:MAX_BUTTON_TEXT]
    result = whatsapp.send_list(
        phone, texts.t('date_selection', language), button,
        [{'title': texts.t('date_section', language), 'rows': rows}], footer=_footer(),
    )
    if result.success:
        return
    logger.warning("Date picker to %s failed (%s), retrying simplified", whatsapp.mask_phone(phone), result.error)
    retry = whatsapp.send_list(
        phone, texts.t('date_retry_body', language), 'Select',
        [{'title': 'Dates', 'rows': _simplified_rows(rows)}], footer='HMS',
    )
    if not retry.success:
        whatsapp.send_text(phone, texts.t('date_list_failed', language))


def _select_date(phone: str, session: BookingSession, day: datetime.date) -> None:
    language = session.language
    if day < timezone.localdate():
        whatsapp.send_text(phone, texts.t('past_date', language))
        send_date_picker(phone, session.doctor, language)
        return
    if session.doctor is not None:
        availability = check_date_availability(day, session.doctor)
        if not availability.available:
            whatsapp.send_text(phone, texts.t('date_not_available', language, reason=availability.reason))
            send_date_picker(phone, session.doctor, language)
            return
    patient = appointments.find_patient_by_phone(phone)
    existing = appointments.patient_booking_on(patient, day) if patient is not None else None
    if existing is not None:
        at = f" at {existing.appointment_time}" if existing.appointment_time else ''
        whatsapp.send_text(phone, texts.t('already_booked', language, date=day.isoformat(), at=at))
        send_date_picker(phone, session.doctor, language)
        return
    _update(session, state=BookingSession.STATE_SELECTING_TIME, appointment_date=day)
    send_time_picker(phone, None, day, language)


def _date_from_text(phone: str, session: BookingSession, text: str) -> None:
    trimmed = text.strip().lower()
    today = timezone.localdate()
    day = None
    if trimmed == 'today':
        day = today
    elif trimmed == 'tomorrow':
        day = today + datetime.timedelta(days=1)
    else:
        m = _DATE_IN_TEXT.search(text)
        if m:
            try:
                day = parse_date(m.group(0))
            except ValueError:
                day = None
    if day is None:
        send_date_picker(phone, session.doctor, session.language)
        return
    _select_date(phone, session, day)


def handle_date_button(phone: str, button_id: str) -> None:
    session = _session_for(phone)
    if session is None:
        return
    value = button_id[len('date_'):]
    if button_id == 'date_show_all' or not _DATE_ID.match(value):
        send_date_picker(phone, session.doctor, session.language)
        return
    try:
        day = parse_date(value)
    except ValueError:
        day = None
    if day is None:
        send_date_picker(phone, session.doctor, session.language)
        return
    _select_date(phone, session, day)


def offered_slots(doctor: Optional[Doctor], day: datetime.date, now=None) -> List[str]:
    """Grid slots still bookable on ``day``: 15 minutes ahead today, and free for ``doctor`` if set."""
    slots = []
    for slot in booking_time_slots():
        if is_within_today_buffer(slot, day, now):
            continue
        if doctor is not None and appointments.is_slot_taken(doctor.pk, day, slot):
            continue
        slots.append(slot)
    return slots


def _slot_rows(slots: List[str], language: str) -> List[Dict[str, str]]:
    return [
        {'id': f'time_{s}', 'title': format_time_display(s)[:MAX_ROW_TITLE],
         'description': texts.t('slot_available', language)}
        for s in slots
    ]


def _list_selection(slots: List[str]) -> List[str]:
    morning = [s for s in slots if is_morning(s)]
    afternoon = [s for s in slots if is_afternoon(s)]
    if morning and afternoon:
        m = min(len(morning), MAX_LIST_ROWS // 2)
        return morning[:m] + afternoon[:MAX_LIST_ROWS - m]
    if morning:
        return morning[:MAX_LIST_ROWS]
    if afternoon:
        return afternoon[:MAX_LIST_ROWS]
    return slots[:MAX_LIST_ROWS]


def send_time_picker(phone: str, doctor: Optional[Doctor], day: datetime.date, language: str = texts.ENGLISH,
                     show_buttons: bool = True) -> None:
    slots = offered_slots(doctor, day)
    if not slots:
        whatsapp.send_text(phone, texts.t('no_slots_for_date', language))
        send_date_picker(phone, None, language)
        return

    if show_buttons:
        buttons = []
        if any(is_morning(s) for s in slots):
            buttons.append({'id': 'time_quick_morning', 'title': texts.t('morning_button', language)})
        if any(is_afternoon(s) for s in slots):
            buttons.append({'id': 'time_quick_afternoon', 'title': texts.t('afternoon_button', language)})
        if buttons:
            result = whatsapp.send_buttons(phone, texts.t('time_periods', language), buttons, footer=_footer())
            if result.success:
                return
            logger.warning("Time buttons to %s failed (%s), retrying", whatsapp.mask_phone(phone), result.error)
            retry = whatsapp.send_buttons(phone, texts.t('time_retry_body', language), buttons, footer='HMS')
            if retry.success:
                return

    rows = _slot_rows(_list_selection(slots), language)
    result = whatsapp.send_list(
        phone, texts.t('time_selection', language), texts.t('time_button', language)[:MAX_BUTTON_TEXT],
        [{'title': texts.t('time_section', language), 'rows': rows}], footer=_footer(),
    )
    if result.success:
        return
    logger.warning("Time list to %s failed (%s), retrying simplified", whatsapp.mask_phone(phone), result.error)
    retry = whatsapp.send_list(
        phone, texts.t('time_retry_body', language), 'Select',
        [{'title': 'Times', 'rows': _simplified_rows(rows)}], footer='HMS',
    )
    if not retry.success:
        whatsapp.send_text(phone, texts.t('time_list_failed', language))


def _period_title(label: str, language: str) -> str:
    if language == texts.GUJARATI:
        return label.replace('સવાર', 'સવાર સ્લોટ્સ').replace('બપોર', 'બપોર સ્લોટ્સ')
    return label.replace('Morning', 'Morning Slots').replace('Afternoon', 'Afternoon Slots')


def send_period_slots(phone: str, slots: List[str], language: str, period_label: str) -> None:
    """Send ``slots`` as lists of at most ten rows; a chunk WhatsApp rejects goes out as text."""
    chunks = [slots[i:i + MAX_LIST_ROWS] for i in range(0, len(slots), MAX_LIST_ROWS)]
    base = _period_title(period_label, language)
    for index, chunk in enumerate(chunks):
        title = f"{base} {index + 1}/{len(chunks)}" if len(chunks) > 1 else base
        title = title[:MAX_ROW_TITLE]
        result = whatsapp.send_list(
            phone, texts.t('time_period_selection', language, period=period_label),
            texts.t('time_button', language), [{'title': title, 'rows': _slot_rows(chunk, language)}],
            footer=_footer(),
        )
        if result.success:
            continue
        logger.warning("Slot list chunk %s to %s failed: %s", index, whatsapp.mask_phone(phone), result.error)
        lines = [texts.t('time_slots_heading', language, title=title)]
        lines += [f"• {format_time_display(s)}\n" for s in chunk]
        lines.append(texts.t('time_slots_reply', language))
        whatsapp.send_text(phone, ''.join(lines))


def handle_time_button(phone: str, button_id: str) -> None:
    session = _session_for(phone)
    if session is None:
        logger.warning("Time button from %s without a session", whatsapp.mask_phone(phone))
        return
    language = session.language
    day = session.appointment_date
    if day is None:
        whatsapp.send_text(phone, texts.t('session_not_found', language))
        return

    if button_id == 'time_quick_morning':
        in_period, label = is_morning, texts.t('morning_label', language)
    elif button_id == 'time_quick_afternoon':
        in_period, label = is_afternoon, texts.t('afternoon_label', language)
    else:
        send_time_picker(phone, None, day, language)
        return

    slots = [s for s in booking_time_slots() if in_period(s) and not is_within_today_buffer(s, day)]
    if not slots:
        whatsapp.send_text(phone, texts.t('period_full', language))
        send_time_picker(phone, None, day, language)
        return
    send_period_slots(phone, slots, language, label)


def _select_time(phone: str, session: BookingSession, value: str) -> None:
    language = session.language
    slot = normalize_time(value)
    day = session.appointment_date
    if day is not None and is_within_today_buffer(slot, day):
        whatsapp.send_text(phone, texts.t('time_too_soon', language))
        send_time_picker(phone, None, day, language)
        return
    _update(session, appointment_time=slot)
    send_confirmation_buttons(phone, session)


def _time_from_text(phone: str, session: BookingSession, trimmed: str) -> None:
    grid = booking_time_slots()
    selected = None
    if trimmed.isdigit() and 1 <= int(trimmed) <= len(grid):
        selected = grid[int(trimmed) - 1]
    if selected is None:
        m = _TIME_IN_TEXT.search(trimmed)
        if m:
            hours, minutes = int(m.group(1)), int(m.group(3))
            if 'pm' in trimmed and hours < 12:
                hours += 12
            if 'am' in trimmed and hours == 12:
                hours = 0
            candidate = f"{hours:02d}:{minutes:02d}"
            if minutes < 60 and candidate in grid:
                selected = candidate
    if selected is None:
        _reject_time(phone, session)
        return
    _select_time(phone, session, selected)


def _reject_time(phone: str, session: BookingSession) -> None:
    whatsapp.send_text(phone, texts.t('invalid_time', session.language))
    if session.appointment_date is not None:
        send_time_picker(phone, None, session.appointment_date, session.language)


def handle_list_selection(phone: str, selected_id: str) -> None:
    session = _session_for(phone)
    if session is None:
        return
    if selected_id.startswith('lang_'):
        language = selected_id[len('lang_'):]
        _move_to_date_selection(phone, session, language if language in texts.LANGUAGES else texts.ENGLISH)
    elif selected_id.startswith('date_'):
        try:
            day = parse_date(selected_id[len('date_'):])
        except ValueError:
            day = None
        if day is None:
            send_date_picker(phone, session.doctor, session.language)
            return
        _select_date(phone, session, day)
    elif selected_id.startswith('time_'):
        slot = selected_id[len('time_'):]
        if slot not in booking_time_slots():
            _reject_time(phone, session)
            return
        _select_time(phone, session, slot)


def send_confirmation_buttons(phone: str, session: BookingSession) -> None:
    language = session.language
    if not session.appointment_date or not session.appointment_time:
        whatsapp.send_text(phone, texts.t('missing_date_time', language))
        _update(session, state=BookingSession.STATE_SELECTING_DATE)
        return

    fee = settings.DEFAULT_CONSULTATION_FEE
    _update(
        session,
        state=BookingSession.STATE_CONFIRMING,
        consultation_fee=fee,
        payment_method='cash',
        payment_type='full',
        payment_amount=0,
        remaining_amount=fee,
    )
    body = texts.t(
        'confirm_details', language,
        date=texts.long_date(session.appointment_date),
        time=format_time_display(session.appointment_time),
    )
    buttons = [
        {'id': 'booking_confirm', 'title': texts.t('confirm_button', language)},
        {'id': 'booking_cancel', 'title': texts.t('cancel_button', language)},
    ]
    result = whatsapp.send_buttons(phone, body, buttons, footer=_footer())
    if not result.success:
        logger.warning("Confirmation buttons to %s failed: %s", whatsapp.mask_phone(phone), result.error)
        whatsapp.send_text(phone, body + texts.t('confirm_reply_hint', language))


def handle_confirmation_button(phone: str, action: str) -> None:
    session = _session_for(phone)
    if session is None:
        whatsapp.send_text(phone, texts.SESSION_EXPIRED if action == 'confirm' else texts.ALREADY_CANCELLED)
        return
    process_confirmation(phone, session, action)


def process_confirmation(phone: str, session: BookingSession, action: str) -> Optional[Appointment]:
    language = session.language
    if action == 'cancel':
        session.delete()
        whatsapp.send_text(phone, texts.t('booking_cancelled_button', language))
        return None

    if not session.appointment_date or not session.appointment_time:
        whatsapp.send_text(phone, texts.t('missing_date_time_restart', language))
        session.delete()
        return None

    patient = appointments.find_patient_by_phone(phone)
    if patient is None:
        whatsapp.send_text(phone, texts.t('patient_not_found', language, base_url=settings.PUBLIC_BASE_URL))
        session.delete()
        return None

    fee = session.consultation_fee or settings.DEFAULT_CONSULTATION_FEE
    try:
        appointment = appointments.create_whatsapp_pending(
            patient=patient,
            phone=session.phone,
            day=session.appointment_date,
            time=session.appointment_time,
            consultation_fee=fee,
            payment_method=session.payment_method or 'cash',
            payment_amount=session.payment_amount or 0,
        )
    except SlotAlreadyBooked:
        whatsapp.send_text(phone, texts.t('slot_just_booked', language))
        _update(session, state=BookingSession.STATE_SELECTING_TIME)
        return None
    except Exception:
        logger.exception("WhatsApp booking for %s failed", whatsapp.mask_phone(phone))
        whatsapp.send_text(phone, texts.t('booking_error', language))
        session.delete()
        return None

    whatsapp.send_text(session.phone, texts.request_received(appointment))
    session.delete()
    notifications.broadcast_event('whatsapp_booking.created', {
        'appointmentId': appointment.id,
        'appointmentDate': appointment.appointment_date.isoformat(),
        'appointmentTime': appointment.appointment_time,
    })
    return appointment


def _flow_date(value: str) -> Optional[datetime.date]:
    value = (value or '').strip()
    head = value.split('T')[0].split(' ')[0]
    if _DATE_ID.match(head):
        try:
            return parse_date(head)
        except ValueError:
            return None
    for fmt in _FLOW_DATE_FORMATS:
        try:
            return datetime.datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return None


def _flow_time(value: str) -> str:
    value = (value or '').strip()
    if not value or ':' in value:
        return value
    if value.startswith('slot_'):
        digits = value[len('slot_'):]
        return f"{digits[:2]}:{digits[2:]}" if len(digits) == 4 else ''
    if len(value) == 4:
        return f"{value[:2]}:{value[2:]}"
    return value


def _flow_doctor(reference: str) -> Optional[Doctor]:
    if not reference:
        return None
    if str(reference).isdigit():
        doctor = Doctor.objects.filter(pk=int(reference)).first()
        if doctor is not None:
            return doctor
    active = list(Doctor.objects.filter(status='active').order_by('id')[:20])
    wanted = str(reference).lower()
    for doctor in active:
        full_name = re.sub(r'\s+', '_', f"{doctor.first_name} {doctor.last_name}".lower())
        if full_name in wanted or wanted.replace('doctor_', '') in full_name:
            return doctor
    return active[0] if active else None


def handle_flow_completion(message: Dict[str, Any]) -> Dict[str, Any]:
    """Book the appointment submitted through the WhatsApp Flow form."""
    flow = message.get('flow') or {}
    if not flow:
        return {'success': True}
    sender = whatsapp.format_phone_number(message.get('from') or '')
    data = (flow.get('response') or {}).get('data') or {}

    day = _flow_date(data.get('appointment_date') or data.get('date') or '')
    slot = _flow_time(data.get('appointment_time') or data.get('time') or data.get('time_slot') or '')
    symptoms = data.get('symptom_category') or data.get('symptoms') or data.get('chief_complaint') or ''
    method = data.get('payment_option') or data.get('payment_method') or 'cash'
    payment_type = data.get('payment_type') or 'full'

    if day is None or not slot:
        whatsapp.send_text(sender, texts.FLOW_MISSING_DATA)
        return {'success': True}

    patient = appointments.find_patient_by_phone(sender)
    if patient is None:
        whatsapp.send_text(sender, texts.flow_patient_not_found())
        return {'success': True}

    existing = appointments.patient_booking_on(patient, day)
    if existing is not None:
        whatsapp.send_text(sender, texts.flow_already_booked(day, existing.appointment_time))
        return {'success': True}

    doctor = _flow_doctor(data.get('doctor_id') or data.get('doctor') or '')
    if doctor is None:
        whatsapp.send_text(sender, texts.FLOW_DOCTOR_NOT_FOUND)
        return {'success': True}

    availability = check_date_availability(day, doctor)
    if not availability.available:
        whatsapp.send_text(sender, texts.flow_date_unavailable(availability.reason))
        return {'success': True}

    slot = normalize_time(slot)
    if appointments.is_slot_taken(doctor.pk, day, slot):
        whatsapp.send_text(sender, texts.flow_slot_taken(slot, day))
        return {'success': True}

    payment = appointments.calculate_payment(doctor.consultation_fee, method, payment_type)
    try:
        appointment = appointments.book_appointment(
            patient=patient,
            doctor=doctor,
            day=day,
            time=slot,
            patient_phone=sender,
            chief_complaint=symptoms or 'General consultation',
            payment_method=method,
            payment_type=payment_type,
            payment_status=payment.status,
            consultation_fee=payment.consultation_fee,
            payment_amount=payment.collected,
            remaining_amount=payment.remaining,
            created_by='whatsapp_flow',
        )
    except SlotAlreadyBooked:
        whatsapp.send_text(sender, texts.FLOW_SLOT_RACE)
        return {'success': False}
    except Exception:
        logger.exception("Flow booking for %s failed", whatsapp.mask_phone(sender))
        whatsapp.send_text(sender, texts.flow_booking_error())
        return {'success': False}

    whatsapp.send_text(sender, texts.booking_confirmed(appointment))
    notifications.broadcast_event('appointment.booked', {
        'appointmentId': appointment.id,
        'doctorId': doctor.id,
        'appointmentDate': day.isoformat(),
        'appointmentTime': appointment.appointment_time,
    })
    return {'success': True, 'appointmentId': appointment.id}
