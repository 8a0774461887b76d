"""
Backoffice billing service - Django settings
"""

from pathlib import Path
import os
import environ
import dj_database_url

# =============================================================================
# BASE SETUP
# =============================================================================
BASE_DIR = Path(__file__).resolve().parent.parent
env = environ.Env()
environ.Env.read_env(BASE_DIR / ".env", overwrite=False)

IS_PRODUCTION = env.bool("PRODUCTION", default=False)
DEBUG = env.bool("DEBUG", default=not IS_PRODUCTION)

# =============================================================================
# ENVIRONMENT VALIDATION (FAIL-FAST)
# =============================================================================
from backoffice.env_validation import validate_env  # noqa: E402
validate_env()

# =============================================================================
# SECURITY
# =============================================================================
SECRET_KEY = env("SECRET_KEY", default="django-insecure-dev-only-change-in-production")
ALLOWED_HOSTS = env.list("ALLOWED_HOSTS", default=[] if IS_PRODUCTION else ["*"])

SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")

if IS_PRODUCTION:
    SECURE_SSL_REDIRECT = env.bool("SECURE_SSL_REDIRECT", default=True)
    SESSION_COOKIE_SECURE = True
    CSRF_COOKIE_SECURE = True
    SECURE_HSTS_SECONDS = 31536000
    SECURE_CONTENT_TYPE_NOSNIFF = True
    X_FRAME_OPTIONS = "DENY"

# Structured Logging
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'structured': {
            'format': '[%(asctime)s] %(levelname)s [%(name)s:%(lineno)s] [request_id=%(request_id)s] %(message)s',
        },
    },
    'filters': {
        'request_id': {
            '()': 'backoffice.middleware.RequestIDFilter',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'structured',
            'filters': ['request_id'],
        },
    },
    'root': {
        'handlers': ['console'],
        'level': env("LOG_LEVEL", default="INFO"),
    },
    'loggers': {
        'billing': {
            'handlers': ['console'],
            'level': env("BILLING_LOG_LEVEL", default="INFO"),
            'propagate': False,
        },
    },
}

# =============================================================================
# INSTALLED APPS
# =============================================================================
INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "drf_spectacular",
    "billing.apps.BillingConfig",
]

# =============================================================================
# DATABASE
# =============================================================================
DATABASES = {
    "default": dj_database_url.config(
        default="sqlite:///" + str(BASE_DIR / "db.sqlite3"),
        conn_max_age=600,
        conn_health_checks=True,
        ssl_require=IS_PRODUCTION and env.bool("DATABASE_SSL_REQUIRE", default=True),
    )
}

# =============================================================================
# MIDDLEWARE
# =============================================================================
MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
    "backoffice.middleware.RequestIDMiddleware",
]

ROOT_URLCONF = "backoffice.urls"
WSGI_APPLICATION = "backoffice.wsgi.application"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    }
]

LANGUAGE_CODE = "en-us"
TIME_ZONE = env("TIME_ZONE", default="UTC")
USE_I18N = True
USE_TZ = True

STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# =============================================================================
# REST FRAMEWORK
# =============================================================================
# Authentication belongs to the host platform; the billing API trusts its callers.
REST_FRAMEWORK = {
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.AllowAny",
    ],
    "DEFAULT_AUTHENTICATION_CLASSES": [],
    "UNAUTHENTICATED_USER": None,
    "EXCEPTION_HANDLER": "billing.api.exceptions.billing_exception_handler",
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "COERCE_DECIMAL_TO_STRING": True,
}

SPECTACULAR_SETTINGS = {
    "TITLE": "Backoffice Billing API",
    "DESCRIPTION": "Invoice lifecycle, deposits, late fees, recurring billing and receivables reporting",
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
    "ENUM_NAME_OVERRIDES": {
        "InvoiceStatusEnum": "billing.models.Invoice.Status",
        "ScheduledInvoiceStatusEnum": "billing.models.ScheduledInvoice.Status",
        "ReminderStatusEnum": "billing.models.InvoiceReminder.Status",
        "LateFeeTypeEnum": "billing.models.Invoice.LateFeeType",
    },
}

# =============================================================================
# BILLING
# =============================================================================
BILLING_PAYMENT_TOLERANCE = env("BILLING_PAYMENT_TOLERANCE", default="0.01")
BILLING_DEFAULT_DUE_DAYS = env.int("BILLING_DEFAULT_DUE_DAYS", default=30)
BILLING_DEPOSIT_DUE_DAYS = env.int("BILLING_DEPOSIT_DUE_DAYS", default=14)
BILLING_INVOICE_PREFIX = env("BILLING_INVOICE_PREFIX", default="INV")
BILLING_DEFAULT_CURRENCY = env("BILLING_DEFAULT_CURRENCY", default="USD")
BILLING_DEFAULT_TERMS = env("BILLING_DEFAULT_TERMS", default="Payment due within 14 days of receipt.")
# Dotted path to a callable taking an InvoiceReminder; used by process_reminders
BILLING_REMINDER_DISPATCHER = env("BILLING_REMINDER_DISPATCHER", default="")

# Issuer defaults; any non-empty per-invoice override wins
BUSINESS_INFO = {
    "name": env("BUSINESS_NAME", default=""),
    "contact": env("BUSINESS_CONTACT", default=""),
    "email": env("BUSINESS_EMAIL", default=""),
    "website": env("BUSINESS_WEBSITE", default=""),
    "venmo_handle": env("BUSINESS_VENMO_HANDLE", default=""),
    "paypal_email": env("BUSINESS_PAYPAL_EMAIL", default=""),
}
