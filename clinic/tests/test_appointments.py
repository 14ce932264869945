import datetime

import pytest
from django.utils import timezone

from clinic.exceptions import SlotAlreadyBooked
from clinic.models import Appointment, AppointmentSlot, OutboundMessage
from clinic.services import appointments

pytestmark = pytest.mark.django_db


def _future(days=3):
    return timezone.localdate() + datetime.timedelta(days=days)


def _book(patient, doctor, day, time='10:00', **fields):
    return appointments.book_appointment(patient=patient, doctor=doctor, day=day, time=time, **fields)


def test_slot_key_format():
    assert appointments.slot_key(7, datetime.date(2025, 10, 6), '2:30 PM') == '7_2025-10-06_14-30'
    assert appointments.slot_key(7, datetime.date(2025, 10, 6), '') is None
    assert appointments.slot_key(None, '2025-10-06', '10:00') is None


@pytest.mark.parametrize('method,ptype,expected', [
    ('cash', 'full', (500, 500, 0, 500, 'pending')),
    ('card', 'full', (500, 500, 500, 0, 'paid')),
    ('upi', 'partial', (500, 50, 50, 450, 'pending')),
])
def test_calculate_payment(method, ptype, expected):
    p = appointments.calculate_payment(500, method, ptype)
    assert (p.consultation_fee, p.amount_to_pay, p.collected, p.remaining, p.status) == expected


def test_partial_payment_rounds_up():
    assert appointments.calculate_payment(555, 'card', 'partial').amount_to_pay == 56


def test_booking_same_slot_twice_is_rejected(doctor, patient, other_patient):
    day = _future()
    first = _book(patient, doctor, day)
    assert AppointmentSlot.objects.filter(pk=appointments.slot_key(doctor.id, day, '10:00'), appointment=first).exists()
    assert first.doctor_name == 'Anil Mehta'
    assert first.patient_phone == patient.phone

    with pytest.raises(SlotAlreadyBooked):
        _book(other_patient, doctor, day, '10:00 AM')
    assert Appointment.objects.count() == 1
    assert not appointments.check_slot(doctor.id, day, '10:00')
    assert appointments.check_slot(doctor.id, day, '10:15')


def test_reschedule_moves_the_slot(doctor, patient):
    day = _future()
    appt = _book(patient, doctor, day)
    appointments.reschedule_appointment(appt.id, day=day, time='11:00', user=patient.user)
    appt.refresh_from_db()
    assert appt.appointment_time == '11:00'
    assert not appointments.is_slot_taken(doctor.id, day, '10:00')
    assert appointments.is_slot_taken(doctor.id, day, '11:00')


def test_reschedule_rules(doctor, patient, other_patient):
    day = _future()
    appt = _book(patient, doctor, day)
    _book(other_patient, doctor, day, '12:00')
    with pytest.raises(PermissionError):
        appointments.reschedule_appointment(appt.id, day=day, time='11:00', user=other_patient.user)
    with pytest.raises(SlotAlreadyBooked):
        appointments.reschedule_appointment(appt.id, day=day, time='12:00', user=patient.user)
    with pytest.raises(Appointment.DoesNotExist):
        appointments.reschedule_appointment(9999, day=day, time='11:00', user=patient.user)


def test_patient_booking_on_ignores_cancelled(doctor, patient):
    day = _future()
    appt = _book(patient, doctor, day)
    assert appointments.patient_booking_on(patient, day) == appt
    Appointment.objects.filter(pk=appt.pk).update(status=Appointment.STATUS_CANCELLED)
    assert appointments.patient_booking_on(patient, day) is None


def test_find_patient_by_phone_accepts_local_numbers(patient):
    assert appointments.find_patient_by_phone('9876500001') == patient
    assert appointments.find_patient_by_phone('whatsapp:+91 98765 00001') == patient
    assert appointments.find_patient_by_phone('919999999999') is None


def test_mark_not_attended_notifies_patient(doctor, patient, receptionist, outbox):
    appt = _book(patient, doctor, _future(), status=Appointment.STATUS_CONFIRMED)
    appointments.mark_not_attended(appt.id, user=receptionist)
    appt.refresh_from_db()
    assert appt.status == Appointment.STATUS_NOT_ATTENDED
    assert appt.marked_not_attended_by == receptionist
    assert appt.not_attended_at is not None
    assert outbox.last('text')['to'] == patient.phone
    assert OutboundMessage.objects.get(appointment=appt).kind == 'not_attended'


def test_mark_not_attended_rejects_completed(doctor, patient, receptionist):
    appt = _book(patient, doctor, _future(), status=Appointment.STATUS_COMPLETED)
    with pytest.raises(ValueError):
        appointments.mark_not_attended(appt.id, user=receptionist)


def test_send_failure_is_recorded(doctor, patient, receptionist, outbox):
    outbox.fail.add('text')
    appt = _book(patient, doctor, _future(), status=Appointment.STATUS_CONFIRMED)
    appointments.mark_not_attended(appt.id, user=receptionist)
    assert OutboundMessage.objects.get(appointment=appt).status == 'failed'


def test_assign_whatsapp_booking(doctor, patient, receptionist, outbox):
    day = _future()
    pending = appointments.create_whatsapp_pending(patient=patient, phone=patient.phone, day=day, time='10:30',
                                                   consultation_fee=300)
    assert list(appointments.whatsapp_bookings()) == [pending]

    doctor.consultation_fee = 700
    doctor.save()
    appt = appointments.assign_whatsapp_booking(pending.id, {'doctorId': doctor.id, 'chiefComplaint': 'Fever'},
                                                user=receptionist)
    assert appt.status == Appointment.STATUS_CONFIRMED
    assert not appt.whatsapp_pending
    assert appt.consultation_fee == 700
    assert appt.remaining_amount == 700
    assert appt.chief_complaint == 'Fever'
    assert appointments.is_slot_taken(doctor.id, day, '10:30')
    assert OutboundMessage.objects.get(appointment=appt).kind == 'confirmation'
    assert list(appointments.whatsapp_bookings()) == []

    with pytest.raises(ValueError):
        appointments.assign_whatsapp_booking(pending.id, {'doctorId': doctor.id})


def test_assign_whatsapp_booking_slot_taken(doctor, patient, other_patient, receptionist):
    day = _future()
    _book(other_patient, doctor, day, '10:30')
    pending = appointments.create_whatsapp_pending(patient=patient, phone=patient.phone, day=day, time='10:30',
                                                   consultation_fee=500)
    with pytest.raises(SlotAlreadyBooked):
        appointments.assign_whatsapp_booking(pending.id, {'doctorId': doctor.id}, user=receptionist)


def test_assign_without_confirmation_keeps_pending(doctor, patient, receptionist, outbox):
    pending = appointments.create_whatsapp_pending(patient=patient, phone=patient.phone, day=_future(), time='09:15',
                                                   consultation_fee=500)
    appt = appointments.assign_whatsapp_booking(pending.id, {'doctorId': doctor.id, 'markConfirmed': False},
                                                user=receptionist)
    assert appt.status == Appointment.STATUS_WHATSAPP_PENDING
    assert outbox.messages == []
