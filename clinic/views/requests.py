"""
Refund and schedule-change requests, and their approval by an administrator.
"""
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from clinic.models import Appointment, Doctor, RefundRequest, ScheduleRequest
from clinic.permissions import IsAdminRole, IsDoctorOrAdmin, IsPatientRole
from clinic.serializers.appointments import RefundRequestSerializer
from clinic.serializers.requests import (
    ApproveRefundSerializer, ApproveScheduleRequestSerializer, ScheduleRequestSerializer,
)
from clinic.services import approvals
from clinic.services.audit import log_action


@api_view(['POST'])
@permission_classes([IsPatientRole])
def refund_request(request):
    s = RefundRequestSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    try:
        req = approvals.create_refund_request(request.user, vd['appointmentId'], vd.get('reason', ''))
    except Appointment.DoesNotExist:
        return Response({'ok': False, 'detail': 'Appointment not found'}, status=404)
    except PermissionError as e:
        return Response({'ok': False, 'detail': str(e)}, status=403)
    except ValueError as e:
        return Response({'ok': False, 'detail': str(e)}, status=400)

    try:
        log_action(user=request.user, action='refund_request', object_type='appointment',
                   object_id=vd['appointmentId'], detail={'requestId': req.id})
    except Exception:
        pass
    return Response({'ok': True, 'success': True, 'refundRequestId': req.id})


@api_view(['POST'])
@permission_classes([IsAdminRole])
def approve_refund(request):
    s = ApproveRefundSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    request_id = s.validated_data['refundRequestId']
    try:
        amount = approvals.approve_refund(request_id, request.user)
    except RefundRequest.DoesNotExist:
        return Response({'ok': False, 'detail': 'Refund request not found'}, status=404)
    except Appointment.DoesNotExist:
        return Response({'ok': False, 'detail': 'Appointment not found'}, status=404)
    except ValueError as e:
        return Response({'ok': False, 'detail': str(e)}, status=400)

    try:
        log_action(user=request.user, action='refund_approve', object_type='refund_request', object_id=request_id,
                   detail={'amount': amount})
    except Exception:
        pass
    return Response({'ok': True, 'success': True, 'refundAmount': amount})


@api_view(['POST'])
@permission_classes([IsDoctorOrAdmin])
def schedule_request(request):
    """A doctor asks for new visiting hours and/or leave days; admins may file for any doctor."""
    s = ScheduleRequestSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    try:
        if request.user.role == 'doctor':
            doctor = Doctor.objects.get(user=request.user)
        else:
            if not vd.get('doctorId'):
                return Response({'ok': False, 'detail': 'doctorId is required'}, status=400)
            doctor = Doctor.objects.get(pk=vd['doctorId'])
        req = approvals.create_schedule_request(
            doctor, vd['requestType'], visiting_hours=vd.get('visitingHours'), blocked_dates=vd.get('blockedDates'),
        )
    except Doctor.DoesNotExist:
        return Response({'ok': False, 'detail': 'Doctor not found'}, status=404)
    except ValueError as e:
        return Response({'ok': False, 'detail': str(e)}, status=400)

    try:
        log_action(user=request.user, action='schedule_request', object_type='doctor', object_id=doctor.id,
                   detail={'requestId': req.id, 'type': req.request_type})
    except Exception:
        pass
    return Response({'ok': True, 'success': True, 'requestId': req.id}, status=201)


@api_view(['POST'])
@permission_classes([IsAdminRole])
def approve_schedule_request(request):
    s = ApproveScheduleRequestSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    request_id = s.validated_data['requestId']
    try:
        result = approvals.approve_schedule_request(request_id, request.user)
    except ScheduleRequest.DoesNotExist:
        return Response({'ok': False, 'detail': 'Schedule request not found'}, status=404)
    except ValueError as e:
        return Response({'ok': False, 'detail': str(e)}, status=400)

    try:
        log_action(user=request.user, action='schedule_approve', object_type='schedule_request',
                   object_id=request_id, detail={'conflicts': result.conflicts})
    except Exception:
        pass
    return Response({'ok': True, **result.as_dict()})
