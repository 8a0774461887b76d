import re
import time
import uuid
import logging
import threading

logger = logging.getLogger(__name__)

_thread_locals = threading.local()

# Caller-supplied ids end up in every log line; anything else gets a fresh uuid
VALID_REQUEST_ID = re.compile(r'^[A-Za-z0-9._:-]{1,64}$')
SLOW_BILLING_REQUEST_SECONDS = 5.0


def get_current_request_id():
    return getattr(_thread_locals, 'request_id', None) or 'no-id'


class RequestIDFilter(logging.Filter):
    def filter(self, record):
        record.request_id = get_current_request_id()
        return True


class RequestIDMiddleware:
    """
    Tag each request, and every log line it produces, with an X-Request-ID.

    Billing API calls are also timed: slow calls and failed calls log a
    warning so a stuck payment or credit lock shows up with its request id.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        incoming = request.headers.get('X-Request-ID', '')
        request_id = incoming if VALID_REQUEST_ID.match(incoming) else str(uuid.uuid4())
        request.request_id = request_id
        previous = getattr(_thread_locals, 'request_id', None)
        _thread_locals.request_id = request_id

        started = time.monotonic()
        try:
            response = self.get_response(request)
            if request.path.startswith('/api/v1/billing/'):
                self.log_billing_call(request, response.status_code, time.monotonic() - started)
        finally:
            _thread_locals.request_id = previous

        response['X-Request-ID'] = request_id
        return response

    @staticmethod
    def log_billing_call(request, status, duration):
        if status >= 400 or duration > SLOW_BILLING_REQUEST_SECONDS:
            logger.warning(f"BILLING: {request.method} {request.path} - {status} - {duration:.2f}s")
        else:
            logger.info(f"BILLING: {request.method} {request.path} - {status} - {duration:.2f}s")
