import json

import pytest

from clinic.models import BookingSession
from clinic.services import whatsapp_booking
from clinic.services.webhook_signature import WebhookSignature

pytestmark = pytest.mark.django_db

URL = '/api/meta-webhook'


def _greeting(sender='919876500001'):
    return json.dumps({'entry': [{'changes': [{'value': {'messages': [
        {'from': sender, 'type': 'text', 'text': {'body': 'hi'}}]}}]}]}).encode()


def test_subscription_handshake(client, settings):
    settings.META_WHATSAPP_VERIFY_TOKEN = 'verify-me'
    params = {'hub.mode': 'subscribe', 'hub.verify_token': 'verify-me', 'hub.challenge': '42'}
    r = client.get(URL, params)
    assert r.status_code == 200
    assert r.content == b'42'

    params['hub.verify_token'] = 'nope'
    assert client.get(URL, params).status_code == 403


def test_delivery_without_app_secret(client, outbox):
    r = client.post(URL, _greeting(), content_type='application/json')
    assert r.status_code == 200
    assert r.json() == {'success': True}
    assert outbox.kinds() == ['buttons']


def test_signature_is_checked_when_secret_is_set(client, settings, outbox):
    settings.META_WHATSAPP_APP_SECRET = 'app-secret'
    body = _greeting()
    r = client.post(URL, body, content_type='application/json', HTTP_X_HUB_SIGNATURE_256='sha256=deadbeef')
    assert r.status_code == 403
    assert client.post(URL, body, content_type='application/json').status_code == 403
    assert outbox.messages == []

    signature = WebhookSignature.compute(body, 'app-secret')
    r = client.post(URL, body, content_type='application/json', HTTP_X_HUB_SIGNATURE_256=signature)
    assert r.status_code == 200
    assert outbox.kinds() == ['buttons']


def test_signature_helpers():
    sig = WebhookSignature.compute(b'{}', 's3cret')
    assert sig.startswith('sha256=')
    assert WebhookSignature.verify(b'{}', sig, 's3cret')
    assert not WebhookSignature.verify(b'{}', sig, 'other')
    assert not WebhookSignature.verify(b'{}', sig[len('sha256='):], 's3cret')
    assert not WebhookSignature.verify(b'{}', 'sha256=zz', 's3cret')


def test_invalid_json(client):
    r = client.post(URL, b'{not json', content_type='application/json')
    assert r.status_code == 400
    assert r.json() == {'success': False, 'error': 'Invalid JSON'}


def test_handler_failure_is_acknowledged(client, monkeypatch):
    def boom(body):
        raise RuntimeError('db down')

    monkeypatch.setattr(whatsapp_booking, 'handle_webhook_payload', boom)
    r = client.post(URL, _greeting(), content_type='application/json')
    assert r.status_code == 200
    assert r.json() == {'success': False, 'error': 'Internal error'}


def test_other_methods_are_not_allowed(client):
    assert client.put(URL, b'{}', content_type='application/json').status_code == 405


def test_webhook_starts_booking_session(client, patient, outbox):
    body = json.dumps({'entry': [{'changes': [{'value': {'messages': [{
        'from': '919876500001', 'type': 'interactive',
        'interactive': {'type': 'button_reply', 'button_reply': {'id': 'book_appointment'}},
    }]}}]}]}).encode()
    assert client.post(URL, body, content_type='application/json').status_code == 200
    assert BookingSession.objects.get(pk='+919876500001').state == BookingSession.STATE_SELECTING_LANGUAGE
