import logging
from typing import Any, Dict, Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.utils import timezone

from clinic.models import Notification, Patient, User

logger = logging.getLogger(__name__)

UPDATES_GROUP = "updates"


def notify(*, title: str, message: str = '', user: Optional[User] = None, patient: Optional[Patient] = None,
           type: str = 'info') -> Notification:
    if user is None and patient is not None:
        user = patient.user
    return Notification.objects.create(user=user, patient=patient, type=type, title=title, message=message)


def notifications_for(user: User, *, unread_only: bool = False):
    qs = Notification.objects.filter(user=user)
    if unread_only:
        qs = qs.filter(read=False)
    return qs


def mark_read(user: User, ids=None) -> int:
    qs = Notification.objects.filter(user=user, read=False)
    if ids:
        qs = qs.filter(id__in=ids)
    return qs.update(read=True)


def serialize(n: Notification) -> Dict[str, Any]:
    return {
        'id': n.id,
        'type': n.type,
        'title': n.title,
        'message': n.message,
        'read': n.read,
        'createdAt': n.created_at.isoformat() if n.created_at else None,
    }


def broadcast_event(event: str, data: Dict[str, Any]) -> None:
    """Push an ``appointment.event`` to staff dashboards listening on ``ws/updates/``."""
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    payload = {"type": "appointment.event", "event": event, "ts": timezone.now().isoformat(), "data": data}
    try:
        async_to_sync(channel_layer.group_send)(UPDATES_GROUP, payload)
    except Exception:
        logger.warning("Broadcast of %s failed", event, exc_info=True)
