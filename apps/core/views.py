# apps/core/views.py

import logging

from django.core.cache import cache
from django.db import connection
from django.http import HttpResponse, JsonResponse
from django.utils import timezone
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from .auth_service import auth_service
from .serializers import serialize_user
from .utils import parse_json_body

logger = logging.getLogger(__name__)

VERSION = '0.1.0'


@require_http_methods(['GET', 'HEAD'])
def health_check(request):
    """
    Health check for monitoring and for the offline client's
    connectivity check
    """
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")

        cache.set('health_check', 'ok', 60)
        cache.get('health_check')

    except Exception as e:
        logger.error("Health check failed: %s", e)
        return JsonResponse({
            'status': 'unhealthy',
            'error': str(e),
            'timestamp': timezone.now().isoformat(),
            'version': VERSION,
        }, status=503)

    if request.method == 'HEAD':
        return HttpResponse(status=200)

    return JsonResponse({
        'status': 'healthy',
        'database': 'ok',
        'cache': 'ok',
        'timestamp': timezone.now().isoformat(),
        'version': VERSION,
    })


# === AUTH API ===

@csrf_exempt
@require_POST
def signup(request):
    data = parse_json_body(request)

    success, message, user = auth_service.register(data)
    if not success:
        status = 409 if message == "User already exists" else 400
        return JsonResponse({'error': message}, status=status)

    return JsonResponse({'user': serialize_user(user), 'message': message}, status=201)


@csrf_exempt
@require_POST
def signin(request):
    data = parse_json_body(request)
    identifier = data.get('username') or data.get('email') or ''

    success, message = auth_service.sign_in(request, identifier, data.get('password') or '')
    if not success:
        return JsonResponse({'error': message}, status=401)

    return JsonResponse({'user': serialize_user(request.user), 'message': message})


@csrf_exempt
@require_POST
def signout(request):
    auth_service.sign_out(request)
    return JsonResponse({'success': True})


@require_GET
def session(request):
    """Current session, user is null when signed out"""
    if not request.user.is_authenticated:
        return JsonResponse({'user': None})
    return JsonResponse({'user': serialize_user(request.user)})
