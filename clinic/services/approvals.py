"""
Requests that need an administrator: patient refunds and doctor schedule
changes (new visiting hours, leave days).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from django.db import transaction
from django.utils import timezone

from clinic.models import (
    Appointment, AppointmentChangeEvent, Doctor, RefundRequest, ScheduleRequest, User,
)
from clinic.services import notifications
from clinic.services.blocked_dates import normalize_blocked_date, normalize_blocked_dates
from clinic.services.timeslots import invalidate_doctors_cache

logger = logging.getLogger(__name__)

REQUEST_TYPES = ('visitingHours', 'blockedDates', 'both')


def create_refund_request(user: User, appointment_id, reason: str = '') -> RefundRequest:
    with transaction.atomic():
        appointment = Appointment.objects.select_for_update().select_related('patient').get(pk=appointment_id)
        if appointment.patient.user_id != user.id:
            raise PermissionError('You can only request refunds for your own appointments')
        if RefundRequest.objects.filter(appointment=appointment, status='pending').exists():
            raise ValueError('A refund request is already pending for this appointment')
        request = RefundRequest.objects.create(
            appointment=appointment,
            patient=appointment.patient,
            reason=reason or 'doctor_unavailable',
            payment_amount=appointment.payment_amount or appointment.consultation_fee or 0,
        )
        appointment.refund_requested = True
        appointment.save(update_fields=['refund_requested', 'updated_at'])
    return request


def approve_refund(request_id, admin: User) -> int:
    """Approve a pending refund; returns the refunded amount."""
    with transaction.atomic():
        request = RefundRequest.objects.select_for_update().get(pk=request_id)
        if request.status != 'pending':
            raise ValueError('Refund request is not pending')
        appointment = Appointment.objects.select_for_update().get(pk=request.appointment_id)
        if request.payment_amount is not None:
            amount = request.payment_amount
        else:
            amount = appointment.payment_amount or appointment.consultation_fee or 0
        now = timezone.now()
        appointment.payment_status = 'refunded'
        appointment.refund_approved = True
        appointment.refund_requested = False
        appointment.refund_amount = amount
        appointment.refunded_at = now
        appointment.status = Appointment.STATUS_DOCTOR_CANCELLED
        appointment.save()
        request.status = 'approved'
        request.approved_at = now
        request.approved_by = admin
        request.save(update_fields=['status', 'approved_at', 'approved_by'])
    return amount


def create_schedule_request(doctor: Doctor, request_type: str, visiting_hours: Optional[Dict[str, Any]] = None,
                            blocked_dates: Optional[List[Any]] = None) -> ScheduleRequest:
    if request_type not in REQUEST_TYPES:
        raise ValueError('requestType must be visitingHours, blockedDates or both')
    request = ScheduleRequest(doctor=doctor, request_type=request_type)
    if request_type in ('visitingHours', 'both'):
        request.visiting_hours = visiting_hours or None
    if request_type in ('blockedDates', 'both'):
        request.blocked_dates = blocked_dates or []
    request.save()
    return request


@dataclass
class ScheduleApproval:
    conflicts: int
    awaiting_count: int
    cancelled_count: int = 0

    def as_dict(self) -> Dict[str, Any]:
        return {
            'success': True,
            'conflicts': self.conflicts,
            'awaitingCount': self.awaiting_count,
            'cancelledCount': self.cancelled_count,
        }


def approve_schedule_request(request_id, admin: User) -> ScheduleApproval:
    """Apply the request to the doctor; confirmed appointments on new leave days await reschedule."""
    with transaction.atomic():
        request = ScheduleRequest.objects.select_for_update().select_related('doctor').get(pk=request_id)
        if request.status != 'pending':
            raise ValueError('Request is not pending')
        doctor = request.doctor
        apply_hours = request.request_type in ('visitingHours', 'both')
        apply_blocked = request.request_type in ('blockedDates', 'both')
        if apply_hours:
            doctor.visiting_hours = request.visiting_hours or None
        if apply_blocked:
            doctor.blocked_dates = request.blocked_dates or []
        doctor.save()

        days = normalize_blocked_dates(request.blocked_dates) if apply_blocked else []
        conflicts = list(
            Appointment.objects.select_for_update()
            .filter(doctor=doctor, status=Appointment.STATUS_CONFIRMED, appointment_date__in=days)
            .select_related('patient')
        ) if days else []

        now = timezone.now()
        for appointment in conflicts:
            appointment.status = Appointment.STATUS_AWAITING_RESCHEDULE
            appointment.cancellation_reason = 'doctor_unavailable'
            appointment.affected_by_request = request
            appointment.conflict_detected_at = now
            appointment.save(update_fields=[
                'status', 'cancellation_reason', 'affected_by_request', 'conflict_detected_at', 'updated_at',
            ])
            AppointmentChangeEvent.objects.create(
                appointment=appointment,
                type='doctor_leave_conflict',
                previous_status=Appointment.STATUS_CONFIRMED,
                next_status=Appointment.STATUS_AWAITING_RESCHEDULE,
                request=request,
            )
            notifications.notify(
                patient=appointment.patient,
                type="warning",
                title='Appointment affected by doctor leave',
                message=(
                    f"Your appointment with Dr. {appointment.doctor_name} on "
                    f"{normalize_blocked_date(appointment.appointment_date)} is awaiting reschedule. Please reschedule."
                ),
            )

        request.status = 'approved'
        request.approved_at = now
        request.approved_by = admin
        request.conflicts_detected = len(conflicts)
        request.awaiting_count = len(conflicts)
        request.cancelled_count = 0
        request.save()

    invalidate_doctors_cache()
    if conflicts:
        logger.info("Schedule request %s moved %s appointments to awaiting_reschedule", request.pk, len(conflicts))
        notifications.broadcast_event("schedule.conflicts", {
            "requestId": request.pk,
            "doctorId": request.doctor_id,
            "appointmentIds": [a.pk for a in conflicts],
        })
    return ScheduleApproval(conflicts=len(conflicts), awaiting_count=len(conflicts))
