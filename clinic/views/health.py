from django.conf import settings
from django.db import connections
from django.http import JsonResponse


def healthz(request):
    whatsapp = bool(settings.META_WHATSAPP_ACCESS_TOKEN and settings.META_WHATSAPP_PHONE_NUMBER_ID)
    try:
        with connections['default'].cursor() as c:
            c.execute('SELECT 1')
            row = c.fetchone()
        return JsonResponse({'ok': True, 'db': bool(row and row[0] == 1), 'whatsapp': whatsapp})
    except Exception as e:
        return JsonResponse({'ok': False, 'error': str(e)}, status=500)
