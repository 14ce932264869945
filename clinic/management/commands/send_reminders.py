"""
Send the 24-hour WhatsApp reminder for upcoming confirmed appointments.

Meant to run from cron every 30-60 minutes; an appointment is picked up
while its "24 hours before" moment lies within REMINDER_WINDOW of now, and
a sent ``reminder_24h`` message keeps it from being reminded twice.
"""
import datetime
import logging

from django.core.management.base import BaseCommand
from django.utils import timezone

from clinic.models import Appointment, OutboundMessage
from clinic.services import whatsapp, whatsapp_texts
from clinic.services.appointments import record_outbound
from clinic.services.timeslots import normalize_time

logger = logging.getLogger(__name__)

REMINDER_LEAD = datetime.timedelta(hours=24)
REMINDER_WINDOW = datetime.timedelta(minutes=90)


def _starts_at(appointment: Appointment, tz):
    try:
        hours, minutes = (int(p) for p in normalize_time(appointment.appointment_time).split(':'))
    except ValueError:
        return None
    naive = datetime.datetime.combine(appointment.appointment_date, datetime.time(hours, minutes))
    return timezone.make_aware(naive, tz)


def due_reminders(now=None):
    now = timezone.localtime(now or timezone.now())
    candidates = (
        Appointment.objects.filter(
            status=Appointment.STATUS_CONFIRMED,
            appointment_date__range=(now.date(), (now + REMINDER_LEAD + REMINDER_WINDOW).date()),
        )
        .exclude(appointment_time='')
        .exclude(pk__in=OutboundMessage.objects.filter(kind='reminder_24h', status='sent').values('appointment_id'))
        .select_related('patient')
    )
    due = []
    for appointment in candidates:
        starts_at = _starts_at(appointment, now.tzinfo)
        if starts_at is None or starts_at <= now:
            continue
        if abs(starts_at - REMINDER_LEAD - now) <= REMINDER_WINDOW:
            due.append(appointment)
    return due


def send_due_reminders(now=None):
    """Returns (sent, failed)."""
    sent = failed = 0
    for appointment in due_reminders(now):
        phone = appointment.patient_phone or appointment.patient.phone
        if not phone:
            logger.warning("Appointment %s has no phone number, reminder skipped", appointment.pk)
            continue
        result = whatsapp.send_text(phone, whatsapp_texts.reminder_message(appointment))
        record_outbound(appointment, 'reminder_24h', phone, result)
        if result.success:
            sent += 1
        else:
            failed += 1
            logger.warning("Reminder for appointment %s to %s failed: %s",
                           appointment.pk, whatsapp.mask_phone(phone), result.error)
    return sent, failed


class Command(BaseCommand):
    help = "Send 24-hour WhatsApp reminders for confirmed appointments."

    def handle(self, *args, **options):
        sent, failed = send_due_reminders()
        self.stdout.write(self.style.SUCCESS(f"Reminders sent: {sent}, failed: {failed}"))
