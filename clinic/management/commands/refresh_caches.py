from django.core.management.base import BaseCommand
from django.core.cache import cache
from django.utils import timezone
from channels.layers import get_channel_layer
from asgiref.sync import async_to_sync

from clinic.models import Campaign, Doctor
from clinic.services import campaigns
from clinic.services.timeslots import doctors_cache_key
from clinic.views.doctors import doctor_row

class Command(BaseCommand):
    help = "Warm published campaign and doctor caches; broadcast WebSocket refresh event."

    def handle(self, *args, **options):
        now = timezone.now()
        keys_refreshed = []

        # Campaigns per (audience, hospital); invalidate first so stale versions are skipped
        campaigns.invalidate_cache()
        hospital_ids = sorted(set(
            Campaign.objects.filter(status='published').exclude(hospital_id__isnull=True).exclude(hospital_id='')
            .values_list('hospital_id', flat=True)
        ))
        for audience in sorted(campaigns.AUDIENCES):
            for hid in hospital_ids:
                campaigns.cached_published(audience, hid)
                keys_refreshed.append(f'campaigns:a={audience}:h={hid or ""}')

        # Active doctors for today
        today = timezone.localdate()
        ck = doctors_cache_key(today)
        doctors = Doctor.objects.filter(status='active').order_by('first_name', 'last_name')
        cache.set(ck, {'ok': True, 'data': [doctor_row(d, today) for d in doctors]}, 300)
        keys_refreshed.append(ck)

        channel_layer = get_channel_layer()
        if channel_layer is not None:
            event = {"type": "broadcast.refresh", "version": int(now.timestamp()), "ts": now.isoformat(), "keys": keys_refreshed[:50]}
            async_to_sync(channel_layer.group_send)("updates", event)

        self.stdout.write(self.style.SUCCESS(f"Refreshed {len(keys_refreshed)} keys at {now}"))
