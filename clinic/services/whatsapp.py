"""
Meta WhatsApp Cloud API client.

Every send returns a :class:`SendResult` instead of raising, so callers can
fall back to a simpler message type when an interactive one is rejected.
"""
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests
from django.conf import settings

logger = logging.getLogger(__name__)

GRAPH_BASE_URL = 'https://graph.facebook.com'


@dataclass
class SendResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[int] = None


def format_phone_number(phone: str) -> str:
    """E.164 form of ``phone``; bare 10 digit numbers are taken as Indian."""
    if not phone:
        return ''
    normalized = re.sub(r'^whatsapp:', '', phone).strip()
    normalized = re.sub(r'[^\d+]', '', normalized)
    if not normalized:
        return ''
    if not normalized.startswith('+'):
        normalized = f'+91{normalized}' if len(normalized) == 10 else f'+{normalized}'
    return normalized


def mask_phone(phone: str) -> str:
    return f"{(phone or '')[:3]}***"


def _messages_url() -> str:
    return f"{GRAPH_BASE_URL}/{settings.META_WHATSAPP_API_VERSION}/{settings.META_WHATSAPP_PHONE_NUMBER_ID}/messages"


def _post(to: str, message: Dict[str, Any]) -> SendResult:
    if not settings.META_WHATSAPP_ACCESS_TOKEN or not settings.META_WHATSAPP_PHONE_NUMBER_ID:
        return SendResult(False, error='Meta WhatsApp credentials not configured')
    phone = format_phone_number(to)
    if not phone:
        return SendResult(False, error='Invalid phone number')
    payload = {'messaging_product': 'whatsapp', 'to': phone, **message}
    headers = {'Authorization': f'Bearer {settings.META_WHATSAPP_ACCESS_TOKEN}'}
    try:
        r = requests.post(_messages_url(), json=payload, headers=headers, timeout=settings.META_WHATSAPP_TIMEOUT)
        data = r.json() if r.content else {}
    except (requests.RequestException, ValueError) as exc:
        logger.warning("WhatsApp send to %s failed: %s", mask_phone(phone), exc)
        return SendResult(False, error=str(exc) or 'Unknown error')
    if not r.ok:
        err = data.get('error') or {}
        logger.warning("WhatsApp API rejected %s message to %s: %s", message.get('type'), mask_phone(phone), err)
        return SendResult(False, error=err.get('message') or f'HTTP {r.status_code}', error_code=err.get('code'))
    messages = data.get('messages') or [{}]
    return SendResult(True, message_id=messages[0].get('id'))


def _interactive(kind: str, body: str, action: Dict[str, Any], header: Optional[str] = None,
                 footer: Optional[str] = None) -> Dict[str, Any]:
    interactive: Dict[str, Any] = {'type': kind, 'body': {'text': body}, 'action': action}
    if header:
        interactive['header'] = {'type': 'text', 'text': header}
    if footer:
        interactive['footer'] = {'text': footer}
    return {'type': 'interactive', 'interactive': interactive}


def send_text(to: str, body: str) -> SendResult:
    return _post(to, {'type': 'text', 'text': {'body': body}})


def send_buttons(to: str, body: str, buttons: List[Dict[str, str]], *, header: Optional[str] = None,
                 footer: Optional[str] = None) -> SendResult:
    """Reply buttons; WhatsApp accepts at most three, ``buttons`` items are ``{id, title}``."""
    if not buttons or len(buttons) > 3:
        return SendResult(False, error='Between 1 and 3 buttons are allowed')
    action = {'buttons': [{'type': 'reply', 'reply': {'id': b['id'], 'title': b['title']}} for b in buttons]}
    return _post(to, _interactive('button', body, action, header, footer))


def send_button(to: str, body: str, button_id: str, title: str, *, header: Optional[str] = None,
                footer: Optional[str] = None) -> SendResult:
    return send_buttons(to, body, [{'id': button_id, 'title': title}], header=header, footer=footer)


def send_list(to: str, body: str, button_text: str, sections: List[Dict[str, Any]], *,
              header: Optional[str] = None, footer: Optional[str] = None) -> SendResult:
    """List message; ``sections`` is ``[{title, rows: [{id, title, description?}]}]``."""
    return _post(to, _interactive('list', body, {'button': button_text, 'sections': sections}, header, footer))


def send_flow(to: str, flow_id: str, flow_token: str, *, header: Optional[str] = None,
              body: Optional[str] = None, footer: Optional[str] = None,
              data: Optional[Dict[str, Any]] = None) -> SendResult:
    action = {
        'name': 'flow',
        'parameters': {
            'flow_token': flow_token,
            'flow_id': flow_id,
            'flow_cta': 'Book Appointment',
            'flow_action': 'navigate',
            'flow_action_payload': data or {},
        },
    }
    text = body or 'Please fill out the form to book your appointment'
    return _post(to, _interactive('flow', text, action, header, footer))
