import datetime

import pytest
from django.utils import timezone

from clinic.models import Appointment, BookingSession
from clinic.services import appointments, whatsapp_booking
from clinic.services import whatsapp_texts as texts

pytestmark = pytest.mark.django_db

SENDER = '919876500001'
SESSION_KEY = '+919876500001'


def _deliver(message):
    return whatsapp_booking.handle_webhook_payload({'entry': [{'changes': [{'value': {'messages': [message]}}]}]})


def _text(body, sender=SENDER):
    return _deliver({'from': sender, 'type': 'text', 'text': {'body': body}})


def _button(button_id, sender=SENDER):
    return _deliver({'from': sender, 'type': 'interactive',
                     'interactive': {'type': 'button_reply', 'button_reply': {'id': button_id}}})


def _pick(row_id, sender=SENDER):
    return _deliver({'from': sender, 'type': 'interactive',
                     'interactive': {'type': 'list_reply', 'list_reply': {'id': row_id}}})


def _session():
    return BookingSession.objects.filter(pk=SESSION_KEY).first()


def _row_ids(message):
    return [row['id'] for section in message['sections'] for row in section['rows']]


@pytest.fixture(autouse=True)
def _fee(settings):
    settings.DEFAULT_CONSULTATION_FEE = 500


def test_status_updates_are_acknowledged(outbox):
    body = {'entry': [{'changes': [{'value': {'statuses': [{'id': 'wamid.1', 'status': 'read'}]}}]}]}
    assert whatsapp_booking.handle_webhook_payload(body) == {'success': True}
    assert whatsapp_booking.handle_webhook_payload({}) == {'success': True}
    assert outbox.messages == []


def test_greeting_offers_booking_buttons(outbox):
    assert _text('Hi there') == {'success': True}
    sent = outbox.last()
    assert sent['kind'] == 'buttons'
    assert [b['id'] for b in sent['buttons']] == ['book_appointment', 'help_center']


def test_other_messages_get_welcome_or_thanks(outbox):
    _text('what are your timings?')
    assert outbox.last()['kind'] == 'button'
    _text('Thank you!')
    assert outbox.last()['body'] == texts.THANKS_REPLY
    _deliver({'from': SENDER, 'type': 'image', 'image': {'id': 'media-1'}})
    assert outbox.last()['body'] == texts.UNSUPPORTED_TYPE


def test_greeting_falls_back_to_text(outbox):
    outbox.fail.add('buttons')
    _text('hello')
    assert outbox.kinds() == ['buttons', 'text']
    assert 'Book' in outbox.last()['body']


def test_unregistered_number_is_sent_to_registration(outbox):
    _button('book_appointment', sender='919999999999')
    assert outbox.kinds() == ['text']
    assert 'register' in outbox.last()['body']
    assert not BookingSession.objects.exists()


def test_full_text_booking_conversation(patient, outbox):
    day = timezone.localdate() + datetime.timedelta(days=2)

    _button('book_appointment')
    assert _session().state == BookingSession.STATE_SELECTING_LANGUAGE
    assert _row_ids(outbox.last('list')) == ['lang_english', 'lang_gujarati']

    _pick('lang_english')
    assert _session().state == BookingSession.STATE_SELECTING_DATE
    dates = _row_ids(outbox.last('list'))
    assert len(dates) == whatsapp_booking.MAX_LIST_ROWS
    assert f'date_{day.isoformat()}' in dates

    outbox.clear()
    _pick(f'date_{day.isoformat()}')
    session = _session()
    assert session.state == BookingSession.STATE_SELECTING_TIME
    assert session.appointment_date == day
    assert [b['id'] for b in outbox.last('buttons')['buttons']] == ['time_quick_morning', 'time_quick_afternoon']

    outbox.clear()
    _button('time_quick_morning')
    assert set(outbox.kinds()) == {'list'}
    offered = [i for m in outbox.messages for i in _row_ids(m)]
    assert 'time_10:30' in offered
    assert all(len(_row_ids(m)) <= whatsapp_booking.MAX_LIST_ROWS for m in outbox.messages)

    _pick('time_10:30')
    session = _session()
    assert session.state == BookingSession.STATE_CONFIRMING
    assert session.appointment_time == '10:30'
    assert session.consultation_fee == 500
    assert [b['id'] for b in outbox.last('buttons')['buttons']] == ['booking_confirm', 'booking_cancel']

    _button('booking_confirm')
    appt = Appointment.objects.get()
    assert appt.status == Appointment.STATUS_WHATSAPP_PENDING
    assert appt.whatsapp_pending
    assert appt.doctor is None
    assert (appt.appointment_date, appt.appointment_time) == (day, '10:30')
    assert appt.created_by == 'whatsapp'
    assert appt.consultation_fee == 500
    assert 'Request Received' in outbox.last('text')['body']
    assert _session() is None


def test_typed_answers_drive_the_conversation(patient, outbox):
    _button('book_appointment')
    _text('english')
    assert _session().state == BookingSession.STATE_SELECTING_DATE
    _text('tomorrow')
    assert _session().appointment_date == timezone.localdate() + datetime.timedelta(days=1)
    _text('3:30 pm')
    assert _session().appointment_time == '15:30'
    _text('yes')
    assert Appointment.objects.get().appointment_time == '15:30'


def test_gujarati_conversation_uses_translations(patient, outbox):
    _button('book_appointment')
    _pick('lang_gujarati')
    assert _session().language == texts.GUJARATI
    assert outbox.texts()[-1] == texts.t('date_intro', texts.GUJARATI)


def test_cancel_keyword_ends_session(patient, outbox):
    _button('book_appointment')
    _text('stop')
    assert _session() is None
    assert outbox.last()['body'] == texts.BOOKING_CANCELLED


def test_cancel_button_and_expired_confirmation(patient, outbox):
    _button('booking_confirm')
    assert outbox.last()['body'] == texts.SESSION_EXPIRED
    _button('booking_cancel')
    assert outbox.last()['body'] == texts.ALREADY_CANCELLED

    _button('book_appointment')
    _button('booking_cancel')
    assert _session() is None
    assert not Appointment.objects.exists()


def test_past_date_is_rejected(patient, outbox):
    _button('book_appointment')
    _pick('lang_english')
    yesterday = timezone.localdate() - datetime.timedelta(days=1)
    _pick(f'date_{yesterday.isoformat()}')
    assert _session().state == BookingSession.STATE_SELECTING_DATE
    assert texts.t('past_date') in outbox.texts()
    assert outbox.last()['kind'] == 'list'


def test_second_booking_on_same_day_is_refused(patient, doctor, outbox):
    day = timezone.localdate() + datetime.timedelta(days=3)
    appointments.book_appointment(patient=patient, doctor=doctor, day=day, time='11:00')
    _button('book_appointment')
    _pick('lang_english')
    _pick(f'date_{day.isoformat()}')
    assert _session().state == BookingSession.STATE_SELECTING_DATE
    assert any('Already Booked' in body and '11:00' in body for body in outbox.texts())


def test_rejected_lists_fall_back(patient, outbox):
    outbox.fail.add('list')
    _button('book_appointment')
    assert outbox.last()['body'] == texts.LANGUAGE_FALLBACK

    outbox.clear()
    _text('english')
    # the full list and the simplified retry both fail
    assert outbox.kinds() == ['text', 'list', 'list', 'text']
    assert outbox.last()['body'] == texts.t('date_list_failed')


def test_period_chunk_rejected_goes_out_as_text(patient, outbox):
    day = timezone.localdate() + datetime.timedelta(days=2)
    _button('book_appointment')
    _pick('lang_english')
    _pick(f'date_{day.isoformat()}')
    outbox.clear()
    outbox.fail.add('list')
    _button('time_quick_afternoon')
    assert outbox.kinds()[0] == 'list'
    assert any('2:00 PM' in body for body in outbox.texts())


def test_flow_is_preferred_when_configured(patient, outbox, settings):
    settings.META_WHATSAPP_FLOW_ID = 'flow-123'
    _button('book_appointment')
    assert outbox.kinds() == ['flow']
    assert outbox.last()['flow_id'] == 'flow-123'
    assert outbox.last()['flow_token'].startswith('token_')
    assert _session() is None

    outbox.fail.add('flow')
    _button('book_appointment')
    assert _session().state == BookingSession.STATE_SELECTING_LANGUAGE


def _flow_message(data, sender=SENDER):
    return {'from': sender, 'type': 'flow', 'flow': {'response': {'data': data}}}


def test_flow_completion_books_directly(patient, other_patient, doctor, outbox):
    day = timezone.localdate() + datetime.timedelta(days=4)
    data = {'appointment_date': day.isoformat(), 'appointment_time': 'slot_1030',
            'doctor_id': str(doctor.id), 'payment_option': 'cash', 'symptom_category': 'Fever'}
    result = _deliver(_flow_message(data))
    appt = Appointment.objects.get(pk=result['appointmentId'])
    assert result['success'] is True
    assert appt.doctor == doctor
    assert appt.status == Appointment.STATUS_PENDING
    assert appt.appointment_time == '10:30'
    assert appt.created_by == 'whatsapp_flow'
    assert appt.remaining_amount == 500
    assert appt.chief_complaint == 'Fever'

    # the same slot for someone else
    assert _deliver(_flow_message(data, sender='919876500002')) == {'success': True}
    assert Appointment.objects.count() == 1
    assert outbox.last()['to'] == '+919876500002'


def test_flow_completion_missing_data(patient, outbox):
    assert _deliver(_flow_message({'appointment_time': '10:30'})) == {'success': True}
    assert outbox.last()['body'] == texts.FLOW_MISSING_DATA
    assert not Appointment.objects.exists()


def test_flow_date_and_time_formats():
    assert whatsapp_booking._flow_date('2025-10-06T00:00:00Z') == datetime.date(2025, 10, 6)
    assert whatsapp_booking._flow_date('06/10/2025') == datetime.date(2025, 10, 6)
    assert whatsapp_booking._flow_date('someday') is None
    assert whatsapp_booking._flow_time('slot_0915') == '09:15'
    assert whatsapp_booking._flow_time('1400') == '14:00'
    assert whatsapp_booking._flow_time('10:30') == '10:30'


def test_date_options_skip_unavailable_days(doctor):
    monday = datetime.date(2025, 10, 6)
    rows = whatsapp_booking.date_options(None, today=monday)
    assert len(rows) == whatsapp_booking.DATE_WINDOW_DAYS
    assert rows[0] == {'id': 'date_2025-10-06', 'title': 'Today - 6 Oct', 'description': 'Today'}
    assert rows[1]['title'] == 'Tomorrow - 7 Oct'

    doctor.blocked_dates = ['2025-10-07']
    rows = whatsapp_booking.date_options(doctor, today=monday)
    assert 'date_2025-10-07' not in [r['id'] for r in rows]


def test_verify_subscription(settings):
    settings.META_WHATSAPP_VERIFY_TOKEN = 'verify-me'
    assert whatsapp_booking.verify_subscription('subscribe', 'verify-me', '1158201444') == '1158201444'
    assert whatsapp_booking.verify_subscription('subscribe', 'wrong', '1158201444') is None
    settings.META_WHATSAPP_VERIFY_TOKEN = ''
    assert whatsapp_booking.verify_subscription('subscribe', '', 'x') is None


@pytest.mark.parametrize('row_id', ['time_abc', 'time_23:45'])
def test_time_outside_the_grid_is_rejected(patient, outbox, row_id):
    BookingSession.objects.create(phone=SESSION_KEY, state=BookingSession.STATE_SELECTING_TIME,
                                  appointment_date=timezone.localdate())
    assert _pick(row_id) == {'success': True}
    session = _session()
    assert session.state == BookingSession.STATE_SELECTING_TIME
    assert session.appointment_time == ''
    assert outbox.texts()[0] == texts.t('invalid_time')


def test_unknown_session_state_drops_the_session(patient, outbox):
    BookingSession.objects.create(phone=SESSION_KEY, state=BookingSession.STATE_IDLE)
    assert whatsapp_booking.handle_booking_conversation(SENDER, 'hello') is False
    assert _session() is None
    assert outbox.messages == []


def test_patient_names_are_capitalized_in_messages():
    assert texts.capitalize_name('rAVI  kumar') == 'Ravi Kumar'
    assert texts.capitalize_name('') == ''
    appt = Appointment(patient_name='ravi kumar', doctor_name='Dr. Anil Mehta',
                       appointment_date=datetime.date(2030, 1, 11), appointment_time='10:30')
    assert 'Hello Ravi Kumar,' in texts.reminder_message(appt)
    appt.patient_name = ''
    assert 'Hello Patient,' in texts.reminder_message(appt)
