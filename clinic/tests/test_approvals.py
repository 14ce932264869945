import datetime

import pytest
from django.utils import timezone

from clinic.models import Appointment, AppointmentChangeEvent, Notification, RefundRequest, ScheduleRequest
from clinic.services import appointments, approvals

pytestmark = pytest.mark.django_db


def _day(offset=3):
    return timezone.localdate() + datetime.timedelta(days=offset)


def _confirmed(patient, doctor, day, time='10:00', **fields):
    return appointments.book_appointment(patient=patient, doctor=doctor, day=day, time=time,
                                         status=Appointment.STATUS_CONFIRMED, **fields)


def test_refund_request_and_approval(patient, doctor, admin_user):
    appt = _confirmed(patient, doctor, _day(), consultation_fee=500, payment_amount=500)
    req = approvals.create_refund_request(patient.user, appt.id, 'Doctor on leave')
    appt.refresh_from_db()
    assert appt.refund_requested
    assert req.payment_amount == 500

    with pytest.raises(ValueError):
        approvals.create_refund_request(patient.user, appt.id)

    assert approvals.approve_refund(req.id, admin_user) == 500
    appt.refresh_from_db()
    req.refresh_from_db()
    assert appt.payment_status == 'refunded'
    assert appt.refund_approved and not appt.refund_requested
    assert appt.status == Appointment.STATUS_DOCTOR_CANCELLED
    assert appt.refund_amount == 500
    assert req.status == 'approved' and req.approved_by == admin_user

    with pytest.raises(ValueError, match='not pending'):
        approvals.approve_refund(req.id, admin_user)


def test_refund_amount_falls_back_to_fee(patient, doctor, admin_user):
    appt = _confirmed(patient, doctor, _day(), consultation_fee=650)
    req = RefundRequest.objects.create(appointment=appt, patient=patient)
    assert approvals.approve_refund(req.id, admin_user) == 650


def test_refund_request_for_someone_else(patient, other_patient, doctor):
    appt = _confirmed(patient, doctor, _day())
    with pytest.raises(PermissionError):
        approvals.create_refund_request(other_patient.user, appt.id)


def test_schedule_request_type_is_validated(doctor):
    with pytest.raises(ValueError):
        approvals.create_schedule_request(doctor, 'holidays')


def test_approving_leave_moves_confirmed_appointments(patient, other_patient, doctor, admin_user):
    leave = _day(5)
    hit = _confirmed(patient, doctor, leave)
    pending = appointments.book_appointment(patient=other_patient, doctor=doctor, day=leave, time='11:00')
    untouched = _confirmed(other_patient, doctor, _day(6))

    req = approvals.create_schedule_request(doctor, 'blockedDates',
                                            blocked_dates=[{'date': leave.isoformat(), 'reason': 'Conference'}])
    result = approvals.approve_schedule_request(req.id, admin_user)
    assert result.as_dict() == {'success': True, 'conflicts': 1, 'awaitingCount': 1, 'cancelledCount': 0}

    hit.refresh_from_db()
    assert hit.status == Appointment.STATUS_AWAITING_RESCHEDULE
    assert hit.cancellation_reason == 'doctor_unavailable'
    assert hit.affected_by_request_id == req.id
    assert hit.conflict_detected_at is not None
    pending.refresh_from_db()
    untouched.refresh_from_db()
    assert pending.status == Appointment.STATUS_PENDING
    assert untouched.status == Appointment.STATUS_CONFIRMED

    event = AppointmentChangeEvent.objects.get(appointment=hit)
    assert (event.previous_status, event.next_status) == ('confirmed', 'awaiting_reschedule')
    note = Notification.objects.get(patient=patient)
    assert note.user == patient.user and note.type == 'warning'

    doctor.refresh_from_db()
    assert doctor.blocked_dates == [{'date': leave.isoformat(), 'reason': 'Conference'}]
    req.refresh_from_db()
    assert req.status == 'approved' and req.conflicts_detected == 1

    with pytest.raises(ValueError):
        approvals.approve_schedule_request(req.id, admin_user)


def test_visiting_hours_request_only_touches_hours(doctor, admin_user):
    doctor.blocked_dates = ['2030-01-01']
    doctor.save()
    hours = {'monday': {'isAvailable': True, 'slots': [{'start': '10:00', 'end': '12:00'}]}}
    req = approvals.create_schedule_request(doctor, 'visitingHours', visiting_hours=hours)
    result = approvals.approve_schedule_request(req.id, admin_user)
    assert result.conflicts == 0
    doctor.refresh_from_db()
    assert doctor.visiting_hours == hours
    assert doctor.blocked_dates == ['2030-01-01']


def test_request_endpoints(api_client, patient, doctor, admin_user):
    appt = _confirmed(patient, doctor, _day(), payment_amount=500)

    api_client.force_authenticate(patient.user)
    r = api_client.post('/api/patient/refund-request', {'appointmentId': appt.id, 'reason': 'Changed plans'},
                        format='json')
    assert r.status_code == 200
    refund_id = r.data['refundRequestId']
    assert api_client.post('/api/admin/approve-refund', {'refundRequestId': refund_id}, format='json').status_code == 403

    api_client.force_authenticate(doctor.user)
    r = api_client.post('/api/doctor/schedule-request', {
        'requestType': 'blockedDates', 'blockedDates': [_day(8).isoformat()]}, format='json')
    assert r.status_code == 201
    schedule_id = r.data['requestId']
    assert ScheduleRequest.objects.get(pk=schedule_id).doctor == doctor
    r = api_client.post('/api/doctor/schedule-request', {
        'requestType': 'visitingHours', 'visitingHours': {'funday': {'isAvailable': True}}}, format='json')
    assert r.status_code == 400

    api_client.force_authenticate(admin_user)
    r = api_client.post('/api/doctor/schedule-request', {'requestType': 'both'}, format='json')
    assert r.status_code == 400
    r = api_client.post('/api/admin/approve-refund', {'refundRequestId': refund_id}, format='json')
    assert r.status_code == 200
    assert r.data['refundAmount'] == 500
    r = api_client.post('/api/admin/approve-schedule-request', {'requestId': schedule_id}, format='json')
    assert r.status_code == 200
    assert r.data['conflicts'] == 0
    r = api_client.post('/api/admin/approve-schedule-request', {'requestId': 9999}, format='json')
    assert r.status_code == 404


def test_approved_schedule_shows_in_doctor_list(api_client, patient, doctor, admin_user):
    api_client.force_authenticate(patient.user)
    row = api_client.get('/api/doctors').data['data'][0]
    assert row['blockedDates'] == []

    leave = _day(5).isoformat()
    req = approvals.create_schedule_request(doctor, 'blockedDates', blocked_dates=[leave])
    approvals.approve_schedule_request(req.id, admin_user)

    row = api_client.get('/api/doctors').data['data'][0]
    assert row['blockedDates'] == [leave]
