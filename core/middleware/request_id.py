import logging
import uuid
from threading import local

from django.utils.deprecation import MiddlewareMixin

_thread_locals = local()

REQUEST_ID_HEADER = "HTTP_X_REQUEST_ID"


class RequestIDMiddleware(MiddlewareMixin):
    """
    Tags every request with an ID so log lines from one checkout can be
    correlated. An incoming X-Request-ID (set by the storefront or a proxy)
    is reused; otherwise a UUID4 is generated.
    """

    def process_request(self, request):
        incoming = (request.META.get(REQUEST_ID_HEADER) or "").strip()
        request_id = incoming[:64] if incoming else str(uuid.uuid4())
        request.request_id = request_id
        _thread_locals.request_id = request_id
        return None

    def process_response(self, request, response):
        if hasattr(request, 'request_id'):
            response['X-Request-ID'] = request.request_id
        _clear()
        return response

    def process_exception(self, request, exception):
        _clear()
        return None


def _clear():
    if hasattr(_thread_locals, 'request_id'):
        delattr(_thread_locals, 'request_id')


def get_request_id():
    """Current request ID, or None outside a request."""
    return getattr(_thread_locals, 'request_id', None)


class RequestIDFilter(logging.Filter):
    """Adds ``request_id`` to log records so formatters can reference it."""

    def filter(self, record):
        record.request_id = get_request_id() or 'no-request-id'
        return True
