"""
URL configuration for Maintenance Service
"""

from django.urls import path
from django.http import JsonResponse


def health_check(request):
    return JsonResponse({'status': 'ok', 'service': 'maintenance-service'})


def readiness_check(request):
    from django.db import connection
    try:
        with connection.cursor() as cursor:
            cursor.execute('SELECT 1')
        return JsonResponse({'status': 'ready', 'service': 'maintenance-service'})
    except Exception as e:
        return JsonResponse({'status': 'not_ready', 'error': str(e)}, status=503)


urlpatterns = [
    path('health/', health_check, name='health_check'),
    path('ready/', readiness_check, name='readiness_check'),
]
