import pytest
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken

from clinic.models import User

pytestmark = pytest.mark.django_db


def test_login_returns_tokens_and_profile(api_client, patient):
    r = api_client.post('/api/auth/login', {'username': 'kiran', 'password': 'P@ssw0rd1'}, format='json')
    assert r.status_code == 200
    assert r.data['ok'] is True
    assert r.data['token']
    assert r.data['jwt_access'] and r.data['jwt_refresh']
    assert r.data['role'] == 'patient'
    assert r.data['profile']['patientId'] == patient.id
    assert r.data['profile']['hospitalId'] == 'harmony-main'

    api_client.credentials(HTTP_AUTHORIZATION=f"Token {r.data['token']}")
    assert api_client.get('/api/patient/appointments').status_code == 200


def test_doctor_login_profile(api_client, doctor):
    r = api_client.post('/api/auth/login', {'username': 'dr.mehta', 'password': 'P@ssw0rd1'}, format='json')
    assert r.data['profile'] == {'doctorId': doctor.id, 'specialization': 'General Medicine'}


def test_bad_credentials(api_client, patient):
    r = api_client.post('/api/auth/login', {'username': 'kiran', 'password': 'wrong'}, format='json')
    assert r.status_code == 400
    assert r.data['detail'] == 'Invalid username or password'
    r = api_client.post('/api/auth/login', {'username': '  ', 'password': 'x'}, format='json')
    assert r.status_code == 400


def test_login_cannot_choose_role(api_client, patient):
    r = api_client.post('/api/auth/login',
                        {'username': 'kiran', 'password': 'P@ssw0rd1', 'role': 'admin'}, format='json')
    assert r.status_code == 200
    assert r.data['role'] == 'patient'
    assert User.objects.get(username='kiran').role == 'patient'


def test_refresh_and_logout(api_client, patient):
    r = api_client.post('/api/auth/login', {'username': 'kiran', 'password': 'P@ssw0rd1'}, format='json')
    refresh = r.data['jwt_refresh']

    r = api_client.post('/api/auth/refresh', {'refresh': refresh}, format='json')
    assert r.status_code == 200
    assert 'jwt_access' in r.data

    api_client.force_authenticate(patient.user)
    r = api_client.post('/api/auth/logout', {}, format='json')
    assert r.status_code == 200
    assert r.data['blacklisted'] >= 1
    assert BlacklistedToken.objects.filter(token__user=patient.user).exists()


def test_logout_requires_authentication(api_client):
    assert api_client.post('/api/auth/logout', {}, format='json').status_code in (401, 403)


def test_healthz_is_public(api_client):
    r = api_client.get('/healthz')
    assert r.status_code == 200
    assert r.json()['whatsapp'] is False
