import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

from clinic.models import Doctor, Patient, User
from clinic.services import whatsapp
from clinic.services.timeslots import DAY_NAMES

ALL_WEEK = {
    day: {"isAvailable": True, "slots": [{"start": "09:00", "end": "13:00"}, {"start": "14:00", "end": "17:00"}]}
    for day in DAY_NAMES
}


@pytest.fixture(autouse=True)
def _clear_cache():
    # throttle counters and cached lists must not leak between tests
    cache.clear()
    yield
    cache.clear()


@pytest.fixture(autouse=True)
def _no_whatsapp_credentials(settings):
    settings.META_WHATSAPP_ACCESS_TOKEN = ''
    settings.META_WHATSAPP_PHONE_NUMBER_ID = ''
    settings.META_WHATSAPP_FLOW_ID = ''
    settings.META_WHATSAPP_APP_SECRET = ''


class Outbox:
    """Records WhatsApp sends; ``fail`` lists message kinds that should be rejected."""

    def __init__(self):
        self.messages = []
        self.fail = set()

    def _record(self, kind, to, **payload):
        self.messages.append({'kind': kind, 'to': to, **payload})
        if kind in self.fail:
            return whatsapp.SendResult(False, error='rejected')
        return whatsapp.SendResult(True, message_id=f'wamid.{len(self.messages)}')

    def kinds(self):
        return [m['kind'] for m in self.messages]

    def texts(self):
        return [m['body'] for m in self.messages if m['kind'] == 'text']

    def last(self, kind=None):
        items = [m for m in self.messages if kind is None or m['kind'] == kind]
        return items[-1] if items else None

    def clear(self):
        self.messages.clear()


@pytest.fixture
def outbox(monkeypatch):
    box = Outbox()
    monkeypatch.setattr(whatsapp, 'send_text', lambda to, body: box._record('text', to, body=body))
    monkeypatch.setattr(
        whatsapp, 'send_buttons',
        lambda to, body, buttons, header=None, footer=None: box._record('buttons', to, body=body, buttons=buttons),
    )
    monkeypatch.setattr(
        whatsapp, 'send_button',
        lambda to, body, button_id, title, header=None, footer=None: box._record(
            'button', to, body=body, buttons=[{'id': button_id, 'title': title}]),
    )
    monkeypatch.setattr(
        whatsapp, 'send_list',
        lambda to, body, button_text, sections, header=None, footer=None: box._record(
            'list', to, body=body, sections=sections),
    )
    monkeypatch.setattr(
        whatsapp, 'send_flow',
        lambda to, flow_id, flow_token, header=None, body=None, footer=None, data=None: box._record(
            'flow', to, body=body, flow_id=flow_id, flow_token=flow_token),
    )
    return box


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def admin_user(db):
    return User.objects.create_user(username='admin1', password='P@ssw0rd1', role='admin')


@pytest.fixture
def receptionist(db):
    return User.objects.create_user(username='reception1', password='P@ssw0rd1', role='receptionist')


@pytest.fixture
def doctor(db):
    user = User.objects.create_user(username='dr.mehta', password='P@ssw0rd1', role='doctor')
    return Doctor.objects.create(user=user, first_name='Anil', last_name='Mehta',
                                 specialization='General Medicine', consultation_fee=500, visiting_hours=ALL_WEEK)


@pytest.fixture
def patient(db):
    user = User.objects.create_user(username='kiran', password='P@ssw0rd1', role='patient')
    return Patient.objects.create(user=user, first_name='Kiran', last_name='Desai', phone='+919876500001',
                                  email='kiran@example.com', hospital_id='harmony-main')


@pytest.fixture
def other_patient(db):
    user = User.objects.create_user(username='meera', password='P@ssw0rd1', role='patient')
    return Patient.objects.create(user=user, first_name='Meera', last_name='Joshi', phone='+919876500002')
