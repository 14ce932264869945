import io

import pytest
from django.core.cache import cache
from django.core.management import call_command

from clinic.models import Campaign, Doctor, Patient, User
from clinic.services.timeslots import doctors_cache_key

pytestmark = pytest.mark.django_db


def test_ensure_test_users_is_idempotent():
    call_command('ensure_test_users', stdout=io.StringIO())
    call_command('ensure_test_users', stdout=io.StringIO())
    assert sorted(User.objects.values_list('role', flat=True)) == ['admin', 'doctor', 'patient', 'receptionist']
    assert User.objects.get(username='doctor1').check_password('123456')
    assert Doctor.objects.filter(user__username='doctor1').count() == 1
    assert Patient.objects.filter(user__username='patient1').count() == 1


def test_refresh_caches_warms_doctor_list(doctor):
    Campaign.objects.create(title='Camp', slug='camp', audience='all', status='published', hospital_id='h1')
    out = io.StringIO()
    call_command('refresh_caches', stdout=out)
    assert 'Refreshed' in out.getvalue()
    cached = cache.get(doctors_cache_key())
    assert [row['id'] for row in cached['data']] == [doctor.id]
