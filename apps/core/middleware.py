# apps/core/middleware.py

import logging

from django.core.exceptions import BadRequest, PermissionDenied, ValidationError
from django.http import Http404, JsonResponse

logger = logging.getLogger(__name__)


class ApiExceptionMiddleware:
    """
    Turns exceptions raised by API views into JSON responses

    Only requests under /api/ are touched; the rest keeps Django's
    default error pages.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        return self.get_response(request)

    def process_exception(self, request, exception):
        if not request.path.startswith('/api/'):
            return None

        if isinstance(exception, Http404):
            return JsonResponse({'error': str(exception) or 'Not found'}, status=404)

        if isinstance(exception, PermissionDenied):
            return JsonResponse({'error': str(exception) or 'Forbidden'}, status=403)

        if isinstance(exception, ValidationError):
            if hasattr(exception, 'error_dict'):
                details = {field: [str(m) for m in msgs] for field, msgs in exception.message_dict.items()}
            else:
                details = exception.messages
            return JsonResponse({'error': 'Validation error', 'details': details}, status=400)

        if isinstance(exception, BadRequest):
            return JsonResponse({'error': str(exception) or 'Bad request'}, status=400)

        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return JsonResponse({'error': 'Internal server error'}, status=500)
