"""
Campaigns: announcements shown on the patient and doctor dashboards.

Content is stored as sanitized HTML; list responses are cached per
(audience, hospital) and a version counter in the cache invalidates every
cached list whenever a campaign is written.
"""
from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

import bleach
from django.conf import settings
from django.core.cache import cache
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from clinic.models import Campaign

ALLOWED_TAGS = ['p', 'br', 'strong', 'b', 'em', 'i', 'u', 'ul', 'ol', 'li', 'a', 'h2', 'h3', 'h4', 'blockquote']
ALLOWED_ATTRIBUTES = {'a': ['href', 'title', 'target', 'rel']}
AUDIENCES = {'all', 'patients', 'doctors'}
STATUSES = {'draft', 'published', 'archived'}
VERSION_KEY = 'campaigns:version'

_ENTITIES = [('&nbsp;', ' '), ('&amp;', '&'), ('&lt;', '<'), ('&gt;', '>'), ('&quot;', '"'), ('&#39;', "'")]


def slugify(value: str) -> str:
    value = (value or '').lower().strip()
    value = re.sub(r'[^a-z0-9\s-]', '', value)
    value = re.sub(r'\s+', '-', value)
    return re.sub(r'-+', '-', value)


def sanitize_content(html: str) -> str:
    return bleach.clean(html or '', tags=ALLOWED_TAGS, attributes=ALLOWED_ATTRIBUTES, strip=True)


def get_plain_text(html: str) -> str:
    if not html:
        return ''
    text = re.sub(r'<[^>]*>', '', html)
    for entity, char in _ENTITIES:
        text = text.replace(entity, char)
    return re.sub(r'\s+', ' ', text).strip()


def truncate_text(text: str, max_length: int = 200) -> str:
    if not text or len(text) <= max_length:
        return text
    truncated = text[:max_length]
    last_space = truncated.rfind(' ')
    if last_space > max_length * 0.8:
        return truncated[:last_space] + '...'
    return truncated + '...'


def content_preview(html: str, max_length: int = 150) -> str:
    """First paragraph (or sentence) of ``html``, truncated to ``max_length`` characters of text."""
    if not html:
        return ''
    m = re.search(r'<p[^>]*>([\s\S]*?)</p>', html, re.IGNORECASE)
    if m:
        first = m.group(1)
        plain = get_plain_text(first)
        if len(plain) <= max_length:
            return f'<p>{first}</p>'
        return f'<p>{truncate_text(plain, max_length)}</p>'
    plain = get_plain_text(html)
    if len(plain) <= max_length:
        sentence = re.match(r'^[^.!?]+[.!?]', plain)
        if sentence and len(sentence.group(0)) <= max_length:
            return f'<p>{sentence.group(0)}</p>'
        return html
    return f'<p>{truncate_text(plain, max_length)}</p>'


def should_truncate(html: str, max_length: int = 150) -> bool:
    return bool(html) and len(get_plain_text(html)) > max_length


def _cache_version() -> int:
    return cache.get(VERSION_KEY) or 1


def invalidate_cache() -> None:
    cache.set(VERSION_KEY, _cache_version() + 1, None)


def _parse_when(value):
    if value in (None, ''):
        return None
    if isinstance(value, str):
        dt = parse_datetime(value)
        if dt is None:
            raise ValueError(f'Invalid datetime: {value}')
        value = dt
    if timezone.is_naive(value):
        value = timezone.make_aware(value)
    return value


def _apply(campaign: Campaign, data: Dict[str, Any]) -> None:
    if 'title' in data:
        title = (data.get('title') or '').strip()
        if not title:
            raise ValueError('Title is required')
        campaign.title = title
    if 'slug' in data and data.get('slug'):
        campaign.slug = slugify(data['slug'])
    if 'content' in data:
        campaign.content = sanitize_content(data.get('content') or '')
    if 'audience' in data:
        if data['audience'] not in AUDIENCES:
            raise ValueError('Invalid audience')
        campaign.audience = data['audience']
    if 'status' in data:
        if data['status'] not in STATUSES:
            raise ValueError('Invalid status')
        campaign.status = data['status']
    for src, attr in (('imageUrl', 'image_url'), ('ctaText', 'cta_text'), ('ctaHref', 'cta_href')):
        if src in data:
            setattr(campaign, attr, (data.get(src) or '').strip())
    if 'priority' in data:
        campaign.priority = int(data.get('priority') or 0)
    if 'startAt' in data:
        campaign.start_at = _parse_when(data.get('startAt'))
    if 'endAt' in data:
        campaign.end_at = _parse_when(data.get('endAt'))
    if 'hospitalId' in data:
        campaign.hospital_id = data.get('hospitalId') or None


def create_campaign(data: Dict[str, Any], *, user=None) -> Campaign:
    if not (data.get('title') or '').strip():
        raise ValueError('Title is required')
    campaign = Campaign(created_by=user, updated_by=user)
    _apply(campaign, data)
    if not campaign.slug:
        campaign.slug = slugify(campaign.title)
    campaign.save()
    invalidate_cache()
    return campaign


def update_campaign(campaign_id, data: Dict[str, Any], *, user=None) -> Campaign:
    campaign = Campaign.objects.get(pk=campaign_id)
    _apply(campaign, data)
    campaign.updated_by = user
    campaign.save()
    invalidate_cache()
    return campaign


def delete_campaign(campaign_id) -> None:
    campaign = Campaign.objects.get(pk=campaign_id)
    campaign.delete()
    invalidate_cache()


def published_for_audience(audience: str, hospital_id: Optional[str] = None, now=None) -> List[Campaign]:
    """Published campaigns visible to ``audience`` right now, highest priority first.

    Campaigns are scoped to a hospital: a viewer without one sees nothing.
    """
    if not hospital_id:
        return []
    now = now or timezone.now()
    qs = Campaign.objects.filter(status='published', hospital_id=hospital_id)
    if audience == 'all':
        qs = qs.filter(audience='all')
    else:
        qs = qs.filter(audience__in=['all', audience])
    qs = qs.order_by('-priority', '-updated_at')
    return [
        c for c in qs
        if (c.start_at is None or c.start_at <= now) and (c.end_at is None or c.end_at >= now)
    ]


def serialize(c: Campaign) -> Dict[str, Any]:
    return {
        'id': c.id,
        'title': c.title,
        'slug': c.slug,
        'content': c.content,
        'preview': content_preview(c.content),
        'truncated': should_truncate(c.content),
        'imageUrl': c.image_url,
        'ctaText': c.cta_text,
        'ctaHref': c.cta_href,
        'audience': c.audience,
        'status': c.status,
        'priority': c.priority,
        'startAt': c.start_at.isoformat() if c.start_at else None,
        'endAt': c.end_at.isoformat() if c.end_at else None,
        'hospitalId': c.hospital_id,
        'updatedAt': c.updated_at.isoformat() if c.updated_at else None,
    }


def cached_published(audience: str, hospital_id: Optional[str] = None) -> List[Dict[str, Any]]:
    cache_key = f"campaigns:v={_cache_version()}:a={audience}:h={hospital_id or ''}"
    cached = cache.get(cache_key)
    if cached is not None:
        return cached
    data = [serialize(c) for c in published_for_audience(audience, hospital_id)]
    cache.set(cache_key, data, settings.CAMPAIGN_CACHE_SECONDS)
    return data
