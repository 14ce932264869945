"""
Meta WhatsApp Cloud API webhook.

``GET`` answers the subscription handshake (``hub.mode``, ``hub.verify_token``,
``hub.challenge``); ``POST`` receives message deliveries.  Deliveries are
acknowledged with 200 even when handling fails so Meta does not redeliver
a message the conversation already reacted to.
"""
import json
import logging

from django.conf import settings
from django.http import HttpResponse, HttpResponseNotAllowed, JsonResponse
from django.views.decorators.csrf import csrf_exempt

from clinic.services import whatsapp_booking
from clinic.services.webhook_signature import WebhookSignature

logger = logging.getLogger(__name__)


@csrf_exempt
def meta_webhook(request):
    if request.method == 'GET':
        challenge = whatsapp_booking.verify_subscription(
            request.GET.get('hub.mode'), request.GET.get('hub.verify_token'), request.GET.get('hub.challenge'),
        )
        if challenge is None:
            return HttpResponse('Forbidden', status=403)
        return HttpResponse(challenge, content_type='text/plain')

    if request.method != 'POST':
        return HttpResponseNotAllowed(['GET', 'POST'])

    app_secret = settings.META_WHATSAPP_APP_SECRET
    if app_secret and not WebhookSignature.verify(
        request.body, request.headers.get('X-Hub-Signature-256', ''), app_secret,
    ):
        logger.warning("Rejected webhook delivery with an invalid signature")
        return HttpResponse('Forbidden', status=403)

    try:
        body = json.loads(request.body or b'{}')
    except ValueError:
        return JsonResponse({'success': False, 'error': 'Invalid JSON'}, status=400)

    try:
        result = whatsapp_booking.handle_webhook_payload(body)
    except Exception:
        logger.exception("WhatsApp webhook handling failed")
        return JsonResponse({'success': False, 'error': 'Internal error'})
    return JsonResponse(result)
