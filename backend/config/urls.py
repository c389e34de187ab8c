from django.contrib import admin
from django.urls import path, include
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from django.db import connection
from django.core.cache import cache
import logging

logger = logging.getLogger(__name__)


@api_view(['GET'])
@permission_classes([AllowAny])
def health_check(request):
    # Check DB
    db_ok = False
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
        db_ok = True
    except Exception as e:
        logger.warning(f'Health check: database unreachable: {e}')

    # Check cache (throttling)
    cache_ok = False
    try:
        cache.set('health_check', 'ok', 10)
        if cache.get('health_check') == 'ok':
            cache_ok = True
    except Exception as e:
        logger.warning(f'Health check: cache unreachable: {e}')

    status_code = 200 if (db_ok and cache_ok) else 503
    return Response({
        'status': 'ok' if (db_ok and cache_ok) else 'degraded',
        'db': 'connected' if db_ok else 'disconnected',
        'cache': 'connected' if cache_ok else 'disconnected',
        'version': '1.0.0',
    }, status=status_code)


urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/health/', health_check, name='health-check'),
    path('api/auth/token/', TokenObtainPairView.as_view(), name='token-obtain'),
    path('api/auth/token/refresh/', TokenRefreshView.as_view(), name='token-refresh'),
    path('api/verification/', include('verification.urls')),
]
