from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from clinic.serializers.requests import NotificationReadSerializer
from clinic.services import notifications


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def list_notifications(request):
    unread_only = (request.query_params.get('unread') or '0') in ['1', 'true', 'True']
    qs = notifications.notifications_for(request.user, unread_only=unread_only)
    data = [notifications.serialize(n) for n in qs[:100]]
    unread = notifications.notifications_for(request.user, unread_only=True).count()
    return Response({'ok': True, 'data': data, 'unread': unread})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def mark_notifications_read(request):
    """Mark the given ``ids`` (or everything) as read."""
    s = NotificationReadSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    updated = notifications.mark_read(request.user, s.validated_data.get('ids'))
    return Response({'ok': True, 'updated': updated})
