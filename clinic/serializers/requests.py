from rest_framework import serializers

from clinic.services.timeslots import DAY_NAMES


class ScheduleRequestSerializer(serializers.Serializer):
    doctorId = serializers.IntegerField(min_value=1, required=False)
    requestType = serializers.ChoiceField(choices=['visitingHours', 'blockedDates', 'both'])
    visitingHours = serializers.DictField(required=False, allow_null=True)
    blockedDates = serializers.ListField(required=False, allow_null=True)

    def validate_visitingHours(self, v):
        if not v:
            return v
        unknown = set(v) - set(DAY_NAMES)
        if unknown:
            raise serializers.ValidationError(f"Unknown day(s): {', '.join(sorted(unknown))}")
        for day, schedule in v.items():
            if not isinstance(schedule, dict):
                raise serializers.ValidationError(f'{day}: expected an object')
            for window in schedule.get('slots') or []:
                if not isinstance(window, dict) or not window.get('start') or not window.get('end'):
                    raise serializers.ValidationError(f'{day}: every slot needs start and end')
        return v


class ApproveRefundSerializer(serializers.Serializer):
    refundRequestId = serializers.IntegerField(min_value=1)


class ApproveScheduleRequestSerializer(serializers.Serializer):
    requestId = serializers.IntegerField(min_value=1)


class NotificationReadSerializer(serializers.Serializer):
    ids = serializers.ListField(child=serializers.IntegerField(min_value=1), required=False)
