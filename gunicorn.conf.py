"""
Gunicorn configuration for the backoffice billing API.

    gunicorn backoffice.wsgi:application -c gunicorn.conf.py

Billing sweeps are not run by the web workers; schedule
`python manage.py run_billing_sweeps` and `process_reminders` with cron.
"""

import multiprocessing
import os
import logging

IS_PRODUCTION = os.getenv("PRODUCTION") == "true"

logging.basicConfig(
    level=logging.INFO if IS_PRODUCTION else logging.DEBUG,
    format='[%(asctime)s] %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# =============================================================================
# SERVER BINDING
# =============================================================================

PORT = int(os.getenv("PORT", 8000))
bind = [f"0.0.0.0:{PORT}"]


# =============================================================================
# WORKERS
# =============================================================================

workers = int(os.getenv("WEB_CONCURRENCY", min((multiprocessing.cpu_count() * 2) + 1, 9)))
worker_class = "gthread"
threads = int(os.getenv("GUNICORN_THREADS", 4))

# Restart workers periodically; jitter avoids restarting them all at once
max_requests = int(os.getenv("GUNICORN_MAX_REQUESTS", 1000))
max_requests_jitter = int(os.getenv("GUNICORN_MAX_REQUESTS_JITTER", 100))

timeout = 60
graceful_timeout = int(os.getenv("GUNICORN_GRACEFUL_TIMEOUT", 10))
keepalive = 5

limit_request_line = 8190
limit_request_fields = 100
limit_request_field_size = 8190

preload_app = True
reload = os.getenv("GUNICORN_RELOAD", "false").lower() == "true"

forwarded_allow_ips = os.getenv("FORWARDED_ALLOW_IPS", "127.0.0.1")
if IS_PRODUCTION:
    secure_scheme_headers = {
        "X-FORWARDED-PROTO": "https",
    }


# =============================================================================
# LOGGING
# =============================================================================

accesslog = "-"
errorlog = "-"
loglevel = "info" if IS_PRODUCTION else "debug"
capture_output = True

access_log_format = (
    '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s '
    '"%(f)s" "%(a)s" response_time=%(D)s_us request_id=%({x-request-id}o)s'
)

proc_name = "backoffice"


# =============================================================================
# HOOKS
# =============================================================================

def when_ready(server):
    logger.info(f"Gunicorn ready at {server.address} with {workers} workers")


def post_fork(server, worker):
    """Open the database connection before the first billing request lands."""
    try:
        from django.db import connection
        connection.ensure_connection()
        logger.info(f"Worker {worker.pid}: database connection ready")
    except Exception as e:
        logger.warning(f"Worker {worker.pid}: failed to pre-warm database connection: {e}")


def on_exit(server):
    logger.info("Gunicorn shutting down")
