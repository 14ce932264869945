"""
Appointment endpoints used by the patient portal and the front desk.

Service errors map to HTTP statuses the same way everywhere:
``PermissionError`` -> 403, ``ValueError`` -> 400, missing rows -> 404 and
:class:`SlotAlreadyBooked` -> 409.
"""
import logging
import time

from django.utils import timezone
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from clinic.exceptions import SlotAlreadyBooked
from clinic.models import Appointment, Doctor, Patient
from clinic.permissions import IsPatientRole, IsStaffRole, STAFF_ROLES
from clinic.serializers.appointments import (
    BookAppointmentSerializer, CheckSlotQuerySerializer, WhatsAppBookingUpdateSerializer,
)
from clinic.services import appointments
from clinic.services.audit import log_action
from clinic.services.notifications import broadcast_event
from clinic.services.timeslots import check_date_availability

logger = logging.getLogger(__name__)


def _patient_for(user, patient_id=None) -> Patient:
    role = getattr(user, 'role', None)
    if role == 'patient':
        return Patient.objects.get(user=user)
    if role in STAFF_ROLES:
        if not patient_id:
            raise ValueError('patientId is required')
        return Patient.objects.get(pk=patient_id)
    raise PermissionError('Only patients and front desk staff can book appointments')


def _create(user, data) -> Appointment:
    patient = _patient_for(user, data.get('patientId'))
    doctor = Doctor.objects.get(pk=data['doctorId'], status='active')
    day = data['appointmentDate']
    if day < timezone.localdate():
        raise ValueError('Cannot book an appointment in the past')
    availability = check_date_availability(day, doctor)
    if not availability.available:
        raise ValueError(availability.reason)

    payment = appointments.calculate_payment(doctor.consultation_fee, data['paymentMethod'], data['paymentType'])
    extra = {}
    if payment.status == 'paid':
        extra = {'paid_at': timezone.now(), 'transaction_id': f"TXN-{int(time.time() * 1000)}"}
    return appointments.book_appointment(
        patient=patient,
        doctor=doctor,
        day=day,
        time=data['appointmentTime'],
        status=Appointment.STATUS_PENDING,
        chief_complaint=data.get('chiefComplaint', ''),
        medical_history=data.get('medicalHistory', ''),
        symptom_category=data.get('symptomCategory', ''),
        payment_method=data['paymentMethod'],
        payment_type=data['paymentType'],
        payment_status=payment.status,
        consultation_fee=payment.consultation_fee,
        payment_amount=payment.collected,
        remaining_amount=payment.remaining,
        created_by=user.role,
        **extra,
    )


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def book_appointment(request):
    """Create (``mode=create``) or move (``mode=reschedule``) an appointment."""
    s = BookAppointmentSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    try:
        if vd['mode'] == 'reschedule':
            appt = appointments.reschedule_appointment(
                vd['appointmentId'], day=vd['appointmentDate'], time=vd['appointmentTime'], user=request.user,
            )
            event = 'appointment.rescheduled'
        else:
            appt = _create(request.user, vd['appointmentData'])
            event = 'appointment.booked'
    except PermissionError as e:
        return Response({'ok': False, 'detail': str(e)}, status=403)
    except SlotAlreadyBooked as e:
        return Response({'ok': False, 'detail': str(e)}, status=409)
    except Patient.DoesNotExist:
        return Response({'ok': False, 'detail': 'Patient not found'}, status=404)
    except Doctor.DoesNotExist:
        return Response({'ok': False, 'detail': 'Doctor not found'}, status=404)
    except Appointment.DoesNotExist:
        return Response({'ok': False, 'detail': 'Appointment not found'}, status=404)
    except ValueError as e:
        return Response({'ok': False, 'detail': str(e)}, status=400)

    try:
        log_action(user=request.user, action=event, object_type='appointment', object_id=appt.id,
                   detail={'mode': vd['mode'], 'date': appt.appointment_date.isoformat(), 'time': appt.appointment_time})
    except Exception:
        pass
    broadcast_event(event, {'appointmentId': appt.id, 'doctorId': appt.doctor_id})
    return Response({'ok': True, 'success': True, 'id': appt.id, 'data': appointments.serialize(appt)})


@api_view(['GET'])
@permission_classes([AllowAny])
def check_slot(request):
    qp = request.query_params
    if not (qp.get('doctorId') and qp.get('date') and qp.get('time')):
        return Response({'ok': False, 'detail': 'Missing required parameters: doctorId, date, time'}, status=400)
    s = CheckSlotQuerySerializer(data=qp)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    if not appointments.check_slot(vd['doctorId'], vd['date'], vd['time']):
        return Response({'available': False, 'error': 'Slot is already booked'}, status=409)
    return Response({'available': True})


@api_view(['GET'])
@permission_classes([IsPatientRole])
def patient_appointments(request):
    qs = Appointment.objects.filter(patient__user=request.user).order_by('-appointment_date', '-appointment_time')
    status_filter = (request.query_params.get('status') or '').strip()
    if status_filter:
        qs = qs.filter(status=status_filter)
    return Response({'ok': True, 'data': [appointments.serialize(a) for a in qs]})


@api_view(['POST'])
@permission_classes([IsStaffRole])
def mark_not_attended(request, pk: int):
    try:
        appt = appointments.mark_not_attended(pk, user=request.user)
    except Appointment.DoesNotExist:
        return Response({'ok': False, 'detail': 'Appointment not found'}, status=404)
    except ValueError as e:
        return Response({'ok': False, 'detail': str(e)}, status=400)

    try:
        log_action(user=request.user, action='appointment_not_attended', object_type='appointment', object_id=pk)
    except Exception:
        pass
    return Response({'ok': True, 'success': True, 'status': appt.status})


@api_view(['GET'])
@permission_classes([IsStaffRole])
def whatsapp_bookings(request):
    data = [appointments.serialize(a) for a in appointments.whatsapp_bookings()]
    return Response({'ok': True, 'success': True, 'count': len(data), 'bookings': data})


@api_view(['PUT'])
@permission_classes([IsStaffRole])
def update_whatsapp_booking(request, pk: int):
    """Reception assigns doctor and slot to a WhatsApp request and confirms it."""
    s = WhatsAppBookingUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    try:
        appt = appointments.assign_whatsapp_booking(pk, s.validated_data, user=request.user)
    except Appointment.DoesNotExist:
        return Response({'ok': False, 'detail': 'Appointment not found'}, status=404)
    except Doctor.DoesNotExist:
        return Response({'ok': False, 'detail': 'Doctor not found'}, status=404)
    except SlotAlreadyBooked:
        return Response({'ok': False, 'detail': 'Selected slot is already booked'}, status=400)
    except ValueError as e:
        return Response({'ok': False, 'detail': str(e)}, status=400)

    try:
        log_action(user=request.user, action='whatsapp_booking_update', object_type='appointment', object_id=pk,
                   detail={'doctorId': appt.doctor_id, 'status': appt.status})
    except Exception:
        pass
    broadcast_event('whatsapp_booking.updated', {'appointmentId': appt.id, 'status': appt.status})
    return Response({'ok': True, 'success': True, 'data': appointments.serialize(appt)})
