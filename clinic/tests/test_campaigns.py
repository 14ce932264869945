import datetime

import pytest
from django.utils import timezone

from clinic.models import Campaign
from clinic.services import campaigns


def test_slugify():
    assert campaigns.slugify('  Free Health   Camp!! 2025 ') == 'free-health-camp-2025'
    assert campaigns.slugify('A -- B') == 'a-b'


def test_plain_text_and_truncation():
    assert campaigns.get_plain_text('<p>Tom&nbsp;&amp; <b>Jerry</b></p>\n<p>x</p>') == 'Tom & Jerry x'
    text = 'word ' * 60
    cut = campaigns.truncate_text(text.strip(), 200)
    assert cut.endswith('...')
    assert len(cut) <= 203
    assert campaigns.truncate_text('short', 200) == 'short'


def test_content_preview_uses_first_paragraph():
    html = '<p>First paragraph.</p><p>Second paragraph.</p>'
    assert campaigns.content_preview(html) == '<p>First paragraph.</p>'
    assert not campaigns.should_truncate(html)
    assert campaigns.should_truncate('<p>' + 'x' * 151 + '</p>')


@pytest.mark.django_db
def test_create_normalizes_slug_and_sanitizes_content(admin_user):
    c = campaigns.create_campaign({
        'title': 'Monsoon Care Camp',
        'slug': 'Monsoon  CARE camp!',
        'content': '<p>Hello<script>alert(1)</script></p>',
    }, user=admin_user)
    assert c.slug == 'monsoon-care-camp'
    assert '<script>' not in c.content
    assert c.priority == 0

    default_slug = campaigns.create_campaign({'title': 'Eye Check Week'})
    assert default_slug.slug == 'eye-check-week'


@pytest.mark.django_db
def test_create_requires_title():
    with pytest.raises(ValueError):
        campaigns.create_campaign({'title': '   '})


@pytest.mark.django_db
def test_published_for_audience_filters_and_orders():
    now = timezone.now()
    base = {'status': 'published', 'hospital_id': 'h1'}
    low = Campaign.objects.create(title='low', slug='low', audience='all', priority=1, **base)
    high = Campaign.objects.create(title='high', slug='high', audience='patients', priority=5, **base)
    Campaign.objects.create(title='doctors', slug='doctors', audience='doctors', **base)
    Campaign.objects.create(title='draft', slug='draft', audience='all', status='draft', hospital_id='h1')
    Campaign.objects.create(title='no hospital', slug='nh', audience='all', status='published')
    Campaign.objects.create(title='other hospital', slug='oh', audience='all', status='published', hospital_id='h2')
    Campaign.objects.create(title='expired', slug='exp', audience='all', end_at=now - datetime.timedelta(days=1), **base)
    Campaign.objects.create(title='future', slug='fut', audience='all', start_at=now + datetime.timedelta(days=1), **base)

    assert [c.title for c in campaigns.published_for_audience('patients', 'h1', now)] == [high.title, low.title]
    assert [c.title for c in campaigns.published_for_audience('all', 'h1', now)] == [low.title]


@pytest.mark.django_db
def test_campaign_endpoints(api_client, admin_user, patient):
    api_client.force_authenticate(admin_user)
    r = api_client.post('/api/campaigns/create', {
        'title': 'Diabetes Screening', 'content': '<p>Free test</p>', 'audience': 'patients',
        'status': 'published', 'hospitalId': 'harmony-main', 'priority': 3,
    }, format='json')
    assert r.status_code == 201
    campaign_id = r.data['data']['id']
    assert r.data['data']['slug'] == 'diabetes-screening'

    api_client.force_authenticate(patient.user)
    r = api_client.get('/api/campaigns', {'audience': 'patients'})
    assert r.status_code == 200
    assert [c['id'] for c in r.data['data']] == [campaign_id]

    r = api_client.post('/api/campaigns/create', {'title': 'Nope'}, format='json')
    assert r.status_code == 403

    api_client.force_authenticate(admin_user)
    r = api_client.post('/api/campaigns/update', {'id': campaign_id, 'status': 'archived'}, format='json')
    assert r.status_code == 200

    # writes invalidate the cached list
    api_client.force_authenticate(patient.user)
    r = api_client.get('/api/campaigns', {'audience': 'patients'})
    assert r.data['data'] == []

    api_client.force_authenticate(admin_user)
    assert api_client.post('/api/campaigns/delete', {'id': campaign_id}, format='json').status_code == 200
    assert api_client.post('/api/campaigns/delete', {'id': campaign_id}, format='json').status_code == 404


@pytest.mark.django_db
def test_viewer_without_hospital_sees_nothing():
    Campaign.objects.create(title='h2 only', slug='h2', audience='all', status='published', hospital_id='h2')
    assert campaigns.published_for_audience('patients', None) == []
    assert campaigns.published_for_audience('patients', '') == []
    assert [c.title for c in campaigns.published_for_audience('patients', 'h2')] == ['h2 only']


@pytest.mark.django_db
def test_patient_cannot_read_another_hospitals_campaigns(api_client, patient, other_patient, receptionist):
    Campaign.objects.create(title='own', slug='own', audience='all', status='published', hospital_id='harmony-main')
    Campaign.objects.create(title='h2 only', slug='h2', audience='all', status='published', hospital_id='h2')

    api_client.force_authenticate(patient.user)
    r = api_client.get('/api/campaigns', {'audience': 'patients', 'hospitalId': 'h2'})
    assert r.status_code == 200
    assert [c['title'] for c in r.data['data']] == ['own']

    # no hospital on file
    api_client.force_authenticate(other_patient.user)
    r = api_client.get('/api/campaigns', {'audience': 'patients', 'hospitalId': 'h2'})
    assert r.data['data'] == []

    api_client.force_authenticate(receptionist)
    r = api_client.get('/api/campaigns', {'audience': 'patients', 'hospitalId': 'h2'})
    assert [c['title'] for c in r.data['data']] == ['h2 only']
    assert api_client.get('/api/campaigns', {'audience': 'patients'}).data['data'] == []
