from django.core.cache import cache
from django.utils import timezone
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from clinic.models import Doctor
from clinic.serializers.appointments import DoctorSlotsQuerySerializer
from clinic.services.appointments import booked_times
from clinic.services.blocked_dates import normalize_blocked_dates
from clinic.services.timeslots import (
    availability_days, available_time_slots, day_schedule_for, doctors_cache_key, is_doctor_available_on,
    is_slot_in_past, visiting_hours_for, visiting_hours_text,
)


def doctor_row(d: Doctor, today):
    return {
        'id': d.id,
        'name': f"Dr. {d.full_name}",
        'specialization': d.specialization,
        'consultationFee': d.consultation_fee,
        'visitingHours': visiting_hours_for(d),
        'todayHours': visiting_hours_text(day_schedule_for(d, today)),
        'availabilityDays': availability_days(d.visiting_hours),
        'blockedDates': normalize_blocked_dates(d.blocked_dates),
    }


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def list_doctors(request):
    """Active doctors with their visiting hours.

    ``todayHours`` is the human readable window for the local date,
    e.g. ``"9:00 AM - 1:00 PM, 2:00 PM - 5:00 PM"`` or ``"Closed"``.
    """
    today = timezone.localdate()
    cache_key = doctors_cache_key(today)
    cached = cache.get(cache_key)
    if cached:
        return Response(cached)

    doctors = Doctor.objects.filter(status='active').order_by('first_name', 'last_name')
    payload = {'ok': True, 'data': [doctor_row(d, today) for d in doctors]}
    cache.set(cache_key, payload, 300)
    return Response(payload)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def doctor_slots(request, pk: int):
    s = DoctorSlotsQuerySerializer(data=request.query_params)
    s.is_valid(raise_exception=True)
    day = s.validated_data['date']
    try:
        doctor = Doctor.objects.get(pk=pk, status='active')
    except Doctor.DoesNotExist:
        return Response({'ok': False, 'detail': 'Doctor not found'}, status=404)

    slots = available_time_slots(doctor, day, booked_times(doctor.id, day))
    if day == timezone.localdate():
        slots = [slot for slot in slots if not is_slot_in_past(slot, day)]
    return Response({
        'ok': True,
        'doctorId': doctor.id,
        'date': day.isoformat(),
        'available': is_doctor_available_on(doctor, day),
        'visitingHours': visiting_hours_text(day_schedule_for(doctor, day)),
        'slots': slots,
    })
