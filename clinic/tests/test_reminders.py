import datetime
import io

import pytest
from django.core.management import call_command
from django.utils import timezone

from clinic.management.commands import send_reminders
from clinic.models import Appointment, OutboundMessage
from clinic.services import appointments

pytestmark = pytest.mark.django_db

NOW = timezone.make_aware(datetime.datetime(2030, 1, 10, 10, 0))
TOMORROW = datetime.date(2030, 1, 11)


def _confirmed(patient, doctor, time, day=TOMORROW, **fields):
    fields.setdefault('status', Appointment.STATUS_CONFIRMED)
    return appointments.book_appointment(patient=patient, doctor=doctor, day=day, time=time, **fields)


def test_due_reminders_window(patient, other_patient, doctor):
    due = _confirmed(patient, doctor, '10:30')
    _confirmed(other_patient, doctor, '15:00')
    _confirmed(patient, doctor, '11:00', status=Appointment.STATUS_PENDING)
    _confirmed(other_patient, doctor, '09:00', day=datetime.date(2030, 1, 10))
    assert send_reminders.due_reminders(NOW) == [due]


def test_reminder_is_sent_once(patient, doctor, outbox):
    appt = _confirmed(patient, doctor, '10:30')
    assert send_reminders.send_due_reminders(NOW) == (1, 0)
    assert outbox.last('text')['to'] == patient.phone
    assert 'Reminder' in outbox.last('text')['body']
    assert OutboundMessage.objects.get(appointment=appt, kind='reminder_24h').status == 'sent'

    assert send_reminders.due_reminders(NOW + datetime.timedelta(minutes=30)) == []


def test_failed_reminder_is_retried(patient, doctor, outbox):
    appt = _confirmed(patient, doctor, '10:30')
    outbox.fail.add('text')
    assert send_reminders.send_due_reminders(NOW) == (0, 1)
    assert OutboundMessage.objects.get(appointment=appt).status == 'failed'
    assert send_reminders.due_reminders(NOW) == [appt]


def test_command_reports_counts(outbox):
    out = io.StringIO()
    call_command('send_reminders', stdout=out)
    assert 'Reminders sent: 0, failed: 0' in out.getvalue()
