import bleach
from rest_framework import serializers

from clinic.services.timeslots import normalize_time

PAYMENT_METHODS = ['card', 'upi', 'cash', 'wallet', 'demo']


def _clean(v):
    return bleach.clean((v or '').strip(), strip=True)


def _hhmm(v):
    v = normalize_time(v or '')
    parts = v.split(':') if isinstance(v, str) else []
    if len(parts) != 2 or not all(p.isdigit() for p in parts) or int(parts[0]) > 23 or int(parts[1]) > 59:
        raise serializers.ValidationError('Invalid time, expected HH:MM')
    return v


class AppointmentDataSerializer(serializers.Serializer):
    doctorId = serializers.IntegerField(min_value=1)
    patientId = serializers.IntegerField(min_value=1, required=False)
    appointmentDate = serializers.DateField()
    appointmentTime = serializers.CharField(max_length=16)
    chiefComplaint = serializers.CharField(max_length=2000, required=False, allow_blank=True)
    medicalHistory = serializers.CharField(max_length=4000, required=False, allow_blank=True)
    symptomCategory = serializers.CharField(max_length=64, required=False, allow_blank=True)
    paymentMethod = serializers.ChoiceField(choices=PAYMENT_METHODS, required=False, default='cash')
    paymentType = serializers.ChoiceField(choices=['full', 'partial'], required=False, default='full')

    def validate_appointmentTime(self, v):
        return _hhmm(v)

    def validate_chiefComplaint(self, v):
        return _clean(v)

    def validate_medicalHistory(self, v):
        return _clean(v)


class BookAppointmentSerializer(serializers.Serializer):
    mode = serializers.ChoiceField(choices=['create', 'reschedule'], required=False, default='create')
    appointmentData = AppointmentDataSerializer(required=False)
    appointmentId = serializers.IntegerField(min_value=1, required=False)
    appointmentDate = serializers.DateField(required=False)
    appointmentTime = serializers.CharField(max_length=16, required=False)

    def validate_appointmentTime(self, v):
        return _hhmm(v)

    def validate(self, attrs):
        if attrs['mode'] == 'create' and not attrs.get('appointmentData'):
            raise serializers.ValidationError('Missing appointment data')
        if attrs['mode'] == 'reschedule' and not (
            attrs.get('appointmentId') and attrs.get('appointmentDate') and attrs.get('appointmentTime')
        ):
            raise serializers.ValidationError('Missing reschedule parameters')
        return attrs


class CheckSlotQuerySerializer(serializers.Serializer):
    doctorId = serializers.IntegerField(min_value=1)
    date = serializers.DateField()
    time = serializers.CharField(max_length=16)

    def validate_time(self, v):
        return _hhmm(v)


class DoctorSlotsQuerySerializer(serializers.Serializer):
    date = serializers.DateField()


class WhatsAppBookingUpdateSerializer(serializers.Serializer):
    doctorId = serializers.IntegerField(min_value=1, required=False)
    appointmentDate = serializers.DateField(required=False)
    appointmentTime = serializers.CharField(max_length=16, required=False)
    patientName = serializers.CharField(max_length=128, required=False, allow_blank=True)
    patientPhone = serializers.CharField(max_length=20, required=False, allow_blank=True)
    patientEmail = serializers.EmailField(required=False, allow_blank=True)
    chiefComplaint = serializers.CharField(max_length=2000, required=False, allow_blank=True)
    medicalHistory = serializers.CharField(max_length=4000, required=False, allow_blank=True)
    paymentMethod = serializers.ChoiceField(choices=PAYMENT_METHODS, required=False)
    paymentStatus = serializers.ChoiceField(choices=['pending', 'paid'], required=False)
    consultationFee = serializers.IntegerField(min_value=0, required=False)
    paymentAmount = serializers.IntegerField(min_value=0, required=False)
    markConfirmed = serializers.BooleanField(required=False, default=True)

    def validate_appointmentTime(self, v):
        return _hhmm(v)

    def validate_patientName(self, v):
        return _clean(v)

    def validate_chiefComplaint(self, v):
        return _clean(v)

    def validate_medicalHistory(self, v):
        return _clean(v)


class RefundRequestSerializer(serializers.Serializer):
    appointmentId = serializers.IntegerField(min_value=1)
    reason = serializers.CharField(max_length=500, required=False, allow_blank=True)

    def validate_reason(self, v):
        return _clean(v)
