"""
Appointment booking, rescheduling and the front-desk follow ups.

A booked slot is represented by an :class:`AppointmentSlot` row whose primary
key is derived from (doctor, date, time).  Creating the appointment and its
slot row happens in one transaction; the unique key turns a concurrent
second booking into :class:`SlotAlreadyBooked`.
"""
from __future__ import annotations

import datetime
import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone
from django.utils.dateparse import parse_date

from clinic.exceptions import SlotAlreadyBooked
from clinic.models import Appointment, AppointmentSlot, Doctor, OutboundMessage, Patient
from clinic.services import whatsapp, whatsapp_texts
from clinic.services.timeslots import normalize_time

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (Appointment.STATUS_PENDING, Appointment.STATUS_CONFIRMED)
PARTIAL_PAYMENT_RATE = 0.1


def slot_key(doctor_id: Any, day: Any, time: Optional[str]) -> Optional[str]:
    if not doctor_id or not day or not time:
        return None
    iso = day.isoformat() if isinstance(day, datetime.date) else str(day)
    return re.sub(r'[:\s]', '-', f"{doctor_id}_{iso}_{normalize_time(time)}")


def is_slot_taken(doctor_id: Any, day: Any, time: str) -> bool:
    key = slot_key(doctor_id, day, time)
    return bool(key) and AppointmentSlot.objects.filter(pk=key).exists()


def check_slot(doctor_id: Any, day: Any, time: str) -> bool:
    """True when the slot is still free."""
    if not slot_key(doctor_id, day, time):
        raise ValueError('Missing required parameters: doctorId, date, time')
    return not is_slot_taken(doctor_id, day, time)


def booked_times(doctor_id: Any, day: datetime.date):
    return list(
        AppointmentSlot.objects.filter(doctor_id=doctor_id, appointment_date=day)
        .values_list('appointment_time', flat=True)
    )


def parse_day(value: Any) -> datetime.date:
    if isinstance(value, datetime.date):
        return value
    day = parse_date(str(value or '')[:10])
    if day is None:
        raise ValueError('Invalid date, expected YYYY-MM-DD')
    return day


@dataclass
class PaymentBreakdown:
    consultation_fee: int
    amount_to_pay: int
    collected: int
    remaining: int
    status: str


def calculate_payment(fee: Optional[int], method: str = 'cash', payment_type: str = 'full') -> PaymentBreakdown:
    fee = fee or settings.DEFAULT_CONSULTATION_FEE
    partial = math.ceil(fee * PARTIAL_PAYMENT_RATE)
    amount_to_pay = partial if payment_type == 'partial' else fee
    collected = 0 if method == 'cash' else amount_to_pay
    remaining = max(fee - collected, 0)
    status = 'paid' if method != 'cash' and remaining == 0 else 'pending'
    return PaymentBreakdown(fee, amount_to_pay, collected, remaining, status)


def _snapshot(appointment: Appointment, patient: Patient, doctor: Optional[Doctor]) -> None:
    if not appointment.patient_name:
        appointment.patient_name = patient.full_name
    if not appointment.patient_phone:
        appointment.patient_phone = patient.phone
    if not appointment.patient_email:
        appointment.patient_email = patient.email
    if doctor is not None:
        appointment.doctor_name = doctor.full_name
        appointment.doctor_specialization = doctor.specialization


def book_appointment(*, patient: Patient, doctor: Doctor, day: datetime.date, time: str, **fields) -> Appointment:
    """Create a booked appointment and claim its slot, or raise SlotAlreadyBooked."""
    time = normalize_time(time)
    key = slot_key(doctor.pk, day, time)
    if not key:
        raise ValueError('Invalid slot information')
    try:
        with transaction.atomic():
            if AppointmentSlot.objects.select_for_update().filter(pk=key).exists():
                raise SlotAlreadyBooked(key)
            appointment = Appointment(patient=patient, doctor=doctor, appointment_date=day,
                                      appointment_time=time, **fields)
            _snapshot(appointment, patient, doctor)
            appointment.save()
            AppointmentSlot.objects.create(id=key, appointment=appointment, doctor=doctor,
                                           appointment_date=day, appointment_time=time)
    except IntegrityError as exc:
        raise SlotAlreadyBooked(key) from exc
    return appointment


def reschedule_appointment(appointment_id, *, day: datetime.date, time: str, user=None) -> Appointment:
    time = normalize_time(time)
    try:
        with transaction.atomic():
            appointment = Appointment.objects.select_for_update().select_related('patient').get(pk=appointment_id)
            if getattr(user, 'role', None) == 'patient' and appointment.patient.user_id != user.id:
                raise PermissionError('You cannot modify this appointment')
            new_key = slot_key(appointment.doctor_id, day, time)
            if not new_key:
                raise ValueError('Invalid slot information')
            if AppointmentSlot.objects.filter(pk=new_key).exists():
                raise SlotAlreadyBooked(new_key)
            old_key = slot_key(appointment.doctor_id, appointment.appointment_date, appointment.appointment_time)
            if old_key:
                AppointmentSlot.objects.filter(pk=old_key).delete()
            appointment.appointment_date = day
            appointment.appointment_time = time
            appointment.save(update_fields=['appointment_date', 'appointment_time', 'updated_at'])
            AppointmentSlot.objects.create(id=new_key, appointment=appointment, doctor_id=appointment.doctor_id,
                                           appointment_date=day, appointment_time=time)
    except IntegrityError as exc:
        raise SlotAlreadyBooked() from exc
    return appointment


def create_whatsapp_pending(*, patient: Patient, phone: str, day: datetime.date, time: str,
                            consultation_fee: int, payment_method: str = 'cash',
                            payment_amount: int = 0) -> Appointment:
    """Appointment request from the WhatsApp conversation; reception assigns the doctor and slot."""
    appointment = Appointment(
        patient=patient,
        patient_phone=phone,
        appointment_date=day,
        appointment_time=normalize_time(time),
        status=Appointment.STATUS_WHATSAPP_PENDING,
        chief_complaint='General consultation',
        payment_method=payment_method,
        payment_type='full',
        payment_status='pending',
        consultation_fee=consultation_fee,
        payment_amount=payment_amount,
        remaining_amount=consultation_fee,
        created_by='whatsapp',
        whatsapp_pending=True,
    )
    _snapshot(appointment, patient, None)
    appointment.save()
    return appointment


def patient_booking_on(patient: Patient, day: datetime.date) -> Optional[Appointment]:
    return (
        Appointment.objects.filter(patient=patient, appointment_date=day, status__in=ACTIVE_STATUSES)
        .order_by('created_at')
        .first()
    )


def find_patient_by_phone(phone: str) -> Optional[Patient]:
    normalized = whatsapp.format_phone_number(phone)
    candidates = {normalized, phone}
    if normalized.startswith('+91'):
        candidates.add(normalized[3:])
    return Patient.objects.filter(phone__in=[c for c in candidates if c]).order_by('id').first()


def record_outbound(appointment: Appointment, kind: str, phone: str, result) -> OutboundMessage:
    return OutboundMessage.objects.create(
        appointment=appointment,
        kind=kind,
        phone=phone,
        status='sent' if result.success else 'failed',
        message_id=result.message_id or '',
        error=result.error or '',
    )


_NOT_ATTENDED_BLOCKED = (Appointment.STATUS_COMPLETED, Appointment.STATUS_CANCELLED)


def mark_not_attended(appointment_id, *, user) -> Appointment:
    appointment = Appointment.objects.select_related('patient').get(pk=appointment_id)
    if appointment.status in _NOT_ATTENDED_BLOCKED:
        raise ValueError('Cannot mark completed/cancelled appointment as not attended')
    appointment.status = Appointment.STATUS_NOT_ATTENDED
    appointment.not_attended_at = timezone.now()
    appointment.marked_not_attended_by = user
    appointment.save(update_fields=['status', 'not_attended_at', 'marked_not_attended_by', 'updated_at'])

    phone = appointment.patient_phone or appointment.patient.phone
    if phone:
        text = whatsapp_texts.not_attended_message(appointment)
        result = whatsapp.send_text(phone, text)
        if not result.success:
            logger.warning("Not-attended notice for appointment %s failed: %s", appointment.pk, result.error)
        record_outbound(appointment, 'not_attended', phone, result)
    return appointment


def whatsapp_bookings():
    return (
        Appointment.objects.filter(Q(whatsapp_pending=True) | Q(status=Appointment.STATUS_WHATSAPP_PENDING))
        .select_related('patient', 'doctor')
        .order_by('-created_at')
    )


def _claim_slot(appointment: Appointment) -> None:
    key = slot_key(appointment.doctor_id, appointment.appointment_date, appointment.appointment_time)
    if not key:
        return
    slot = AppointmentSlot.objects.select_for_update().filter(pk=key).first()
    if slot is not None and slot.appointment_id != appointment.pk:
        raise SlotAlreadyBooked(key)
    AppointmentSlot.objects.update_or_create(
        id=key,
        defaults={
            'appointment': appointment,
            'doctor_id': appointment.doctor_id,
            'appointment_date': appointment.appointment_date,
            'appointment_time': appointment.appointment_time,
        },
    )


_EDITABLE = {
    'patientName': 'patient_name',
    'patientPhone': 'patient_phone',
    'patientEmail': 'patient_email',
    'chiefComplaint': 'chief_complaint',
    'medicalHistory': 'medical_history',
    'paymentMethod': 'payment_method',
    'paymentStatus': 'payment_status',
}


def assign_whatsapp_booking(appointment_id, data: Dict[str, Any], *, user=None) -> Appointment:
    """Reception completes a WhatsApp request: doctor, slot, edits, confirmation."""
    with transaction.atomic():
        appointment = Appointment.objects.select_for_update().select_related('patient').get(pk=appointment_id)
        if not (appointment.whatsapp_pending or appointment.status == Appointment.STATUS_WHATSAPP_PENDING):
            raise ValueError('This appointment is not a pending WhatsApp booking')

        for src, attr in _EDITABLE.items():
            if data.get(src) not in (None, ''):
                setattr(appointment, attr, data[src])
        if data.get('appointmentDate'):
            appointment.appointment_date = parse_day(data['appointmentDate'])
        if data.get('appointmentTime'):
            appointment.appointment_time = normalize_time(str(data['appointmentTime']))
        if data.get('consultationFee') not in (None, ''):
            appointment.consultation_fee = int(data['consultationFee'])
        if data.get('paymentAmount') not in (None, ''):
            appointment.payment_amount = int(data['paymentAmount'])
            fee = appointment.consultation_fee or settings.DEFAULT_CONSULTATION_FEE
            appointment.remaining_amount = max(fee - appointment.payment_amount, 0)

        doctor = None
        if data.get('doctorId'):
            doctor = Doctor.objects.get(pk=data['doctorId'])
            appointment.doctor = doctor
            appointment.doctor_name = doctor.full_name
            appointment.doctor_specialization = doctor.specialization
            if doctor.consultation_fee:
                appointment.consultation_fee = doctor.consultation_fee
                appointment.remaining_amount = max(doctor.consultation_fee - appointment.payment_amount, 0)
            if not appointment.appointment_time:
                raise ValueError('Appointment time is required to assign a doctor')
            _claim_slot(appointment)

        confirm = doctor is not None and data.get('markConfirmed') is not False
        if confirm:
            appointment.status = Appointment.STATUS_CONFIRMED
            appointment.whatsapp_pending = False
        appointment.save()

    if confirm:
        phone = appointment.patient_phone or appointment.patient.phone
        if phone:
            result = whatsapp.send_text(phone, whatsapp_texts.reception_confirmation(appointment))
            if not result.success:
                logger.warning("Confirmation for appointment %s not delivered: %s", appointment.pk, result.error)
            record_outbound(appointment, 'confirmation', phone, result)
        else:
            logger.warning("Appointment %s confirmed without a phone number, no WhatsApp sent", appointment.pk)
    return appointment


def serialize(a: Appointment) -> Dict[str, Any]:
    return {
        'id': a.id,
        'patientId': a.patient_id,
        'patientName': a.patient_name,
        'patientPhone': a.patient_phone,
        'patientEmail': a.patient_email,
        'doctorId': a.doctor_id,
        'doctorName': a.doctor_name,
        'doctorSpecialization': a.doctor_specialization,
        'appointmentDate': a.appointment_date.isoformat() if a.appointment_date else None,
        'appointmentTime': a.appointment_time,
        'status': a.status,
        'chiefComplaint': a.chief_complaint,
        'medicalHistory': a.medical_history,
        'paymentMethod': a.payment_method,
        'paymentType': a.payment_type,
        'paymentStatus': a.payment_status,
        'consultationFee': a.consultation_fee,
        'paymentAmount': a.payment_amount,
        'remainingAmount': a.remaining_amount,
        'transactionId': a.transaction_id or None,
        'refundRequested': a.refund_requested,
        'refundApproved': a.refund_approved,
        'createdBy': a.created_by,
        'whatsappPending': a.whatsapp_pending,
        'createdAt': a.created_at.isoformat() if a.created_at else None,
    }
