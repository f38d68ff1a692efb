"""
PATH: backend/settings/base.py

BASE SETTINGS (shared by dev + prod)

Operational maturity:
- Throttling (webhook scope kept separate from user traffic)
- Sentry (optional): error visibility in production
- Structured console logging (LOG_LEVEL)
- Settlement knobs: reservation TTL, order-number retries, webhook retry policy
"""

from __future__ import annotations

import sys
from datetime import timedelta
from pathlib import Path

import environ
from corsheaders.defaults import default_headers, default_methods

# -----------------------------------------
# BASE DIRECTORY
# -----------------------------------------
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# -----------------------------------------
# TEST MODE DETECTION
# -----------------------------------------
TESTING = "test" in sys.argv or "pytest" in sys.modules

# -----------------------------------------
# ENV (django-environ)
# -----------------------------------------
env = environ.Env(
    DEBUG=(bool, True),
    SECRET_KEY=(str, ""),
    TIME_ZONE=(str, "UTC"),
    LOG_LEVEL=(str, "INFO"),
    ALLOWED_HOSTS=(list, ["localhost", "127.0.0.1"]),
    CORS_ALLOWED_ORIGINS=(list, ["http://localhost:5173"]),
    CSRF_TRUSTED_ORIGINS=(list, ["http://localhost:5173"]),
    DATABASE_URL=(str, f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
    # Payment providers
    MERCADOPAGO_ACCESS_TOKEN=(str, ""),
    MERCADOPAGO_WEBHOOK_SECRET=(str, ""),
    PAYSTACK_SECRET_KEY=(str, ""),
    PROVIDER_TIMEOUT_SECONDS=(int, 10),
    # Throttling
    THROTTLE_ANON_RATE=(str, "60/min"),
    THROTTLE_USER_RATE=(str, "600/min"),
    THROTTLE_WEBHOOK_RATE=(str, "600/min"),
    # Ledger / settlement
    LEDGER_CURRENCY=(str, "ARS"),
    ORDER_NUMBER_MAX_ATTEMPTS=(int, 3),
    DRAFT_ORDER_TTL_HOURS=(int, 72),
    # Inventory
    STOCK_RESERVATION_TTL_HOURS=(int, 24),
    LOW_STOCK_DEFAULT_THRESHOLD=(int, 10),
    # Webhook inbox worker
    WEBHOOK_QUEUE_BACKEND=(str, "deferred"),
    WEBHOOK_MAX_RETRIES=(int, 5),
    WEBHOOK_RETRY_BATCH_SIZE=(int, 50),
    # Receipts / collaborators
    RECEIPT_AUTO_APPLY_MIN_CONFIDENCE=(float, 0.85),
    RECEIPT_MAX_UPLOAD_BYTES=(int, 10 * 1024 * 1024),
    VISION_API_URL=(str, ""),
    VISION_API_KEY=(str, ""),
    VISION_TIMEOUT_SECONDS=(int, 15),
    TAX_AUTHORITY_URL=(str, ""),
    TAX_AUTHORITY_TIMEOUT_SECONDS=(int, 20),
    NOTIFICATIONS_ENABLED=(bool, True),
    # Sentry (optional; enable by setting SENTRY_DSN)
    SENTRY_DSN=(str, ""),
    SENTRY_ENVIRONMENT=(str, "development"),
    SENTRY_TRACES_SAMPLE_RATE=(float, 0.0),
    SENTRY_SEND_PII=(bool, False),
)

# -----------------------------------------
# LOAD .env
# -----------------------------------------
env_file_1 = BASE_DIR / ".env"
env_file_2 = BASE_DIR.parent / ".env"

if env_file_1.exists():
    env.read_env(str(env_file_1))
elif env_file_2.exists():
    env.read_env(str(env_file_2))

# -----------------------------------------
# CORE SECURITY
# -----------------------------------------
SECRET_KEY = (env("SECRET_KEY") or "dev-insecure-change-me").strip()
DEBUG = env.bool("DEBUG")
ALLOWED_HOSTS = env.list("ALLOWED_HOSTS")

# -----------------------------------------
# I18N / TZ
# -----------------------------------------
LANGUAGE_CODE = "en-us"
TIME_ZONE = (env("TIME_ZONE") or "UTC").strip()
USE_I18N = True
USE_TZ = True

# -----------------------------------------
# INSTALLED APPS
# -----------------------------------------
INSTALLED_APPS = [
    "corsheaders",
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "rest_framework_simplejwt",
    "drf_spectacular",
    "django_filters",
    "workspaces.apps.WorkspacesConfig",
    "customers.apps.CustomersConfig",
    "ledger.apps.LedgerConfig",
    "inventory.apps.InventoryConfig",
    "orders.apps.OrdersConfig",
    "payments.apps.PaymentsConfig",
    "receipts.apps.ReceiptsConfig",
    "notifications.apps.NotificationsConfig",
]

# -----------------------------------------
# MIDDLEWARE
# -----------------------------------------
MIDDLEWARE = [
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "backend.urls"
WSGI_APPLICATION = "backend.wsgi.application"
APPEND_SLASH = True

# -----------------------------------------
# TEMPLATES (required for Django admin)
# -----------------------------------------
TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [str(BASE_DIR / "templates")],
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

# -----------------------------------------
# REST FRAMEWORK
# -----------------------------------------
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "rest_framework_simplejwt.authentication.JWTAuthentication",
        "rest_framework.authentication.SessionAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": ("rest_framework.permissions.IsAuthenticated",),
    "DEFAULT_FILTER_BACKENDS": ("django_filters.rest_framework.DjangoFilterBackend",),
    "DEFAULT_PAGINATION_CLASS": "rest_framework.pagination.PageNumberPagination",
    "PAGE_SIZE": 20,
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "EXCEPTION_HANDLER": "backend.api_errors.domain_exception_handler",
    "DEFAULT_THROTTLE_CLASSES": (
        "rest_framework.throttling.AnonRateThrottle",
        "rest_framework.throttling.UserRateThrottle",
    ),
    "DEFAULT_THROTTLE_RATES": {
        "anon": env("THROTTLE_ANON_RATE"),
        "user": env("THROTTLE_USER_RATE"),
        "webhook": env("THROTTLE_WEBHOOK_RATE"),
    },
}

# -----------------------------------------
# SIMPLE JWT
# -----------------------------------------
SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(minutes=30),
    "REFRESH_TOKEN_LIFETIME": timedelta(days=1),
    "ROTATE_REFRESH_TOKENS": True,
}

# -----------------------------------------
# DATABASE
# -----------------------------------------
DATABASES = {
    "default": env.db("DATABASE_URL"),
}

# -----------------------------------------
# LOGGING
# -----------------------------------------
LOG_LEVEL = (env("LOG_LEVEL") or "INFO").strip().upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "console": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "console",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "WARNING" if TESTING else LOG_LEVEL,
    },
    "loggers": {
        "django.db.backends": {"level": "WARNING"},
    },
}

# -----------------------------------------
# PAYMENTS
# -----------------------------------------
PAYMENTS = {
    "MERCADOPAGO": {
        "ACCESS_TOKEN": (env("MERCADOPAGO_ACCESS_TOKEN") or "").strip(),
        "WEBHOOK_SECRET": (env("MERCADOPAGO_WEBHOOK_SECRET") or "").strip(),
    },
    "PAYSTACK": {
        "SECRET_KEY": (env("PAYSTACK_SECRET_KEY") or "").strip(),
    },
    "TIMEOUT_SECONDS": env.int("PROVIDER_TIMEOUT_SECONDS"),
}

# -----------------------------------------
# LEDGER / ORDERS
# -----------------------------------------
LEDGER_CURRENCY = (env("LEDGER_CURRENCY") or "ARS").strip().upper()
ORDER_NUMBER_MAX_ATTEMPTS = env.int("ORDER_NUMBER_MAX_ATTEMPTS")
DRAFT_ORDER_TTL_HOURS = env.int("DRAFT_ORDER_TTL_HOURS")

# -----------------------------------------
# INVENTORY
# -----------------------------------------
STOCK_RESERVATION_TTL_HOURS = env.int("STOCK_RESERVATION_TTL_HOURS")
LOW_STOCK_DEFAULT_THRESHOLD = env.int("LOW_STOCK_DEFAULT_THRESHOLD")

# -----------------------------------------
# WEBHOOK INBOX
# -----------------------------------------
WEBHOOK_QUEUE_BACKEND = (env("WEBHOOK_QUEUE_BACKEND") or "deferred").strip().lower()
WEBHOOK_QUEUE_ALLOWED_BACKENDS = ["immediate", "deferred"]
WEBHOOK_MAX_RETRIES = env.int("WEBHOOK_MAX_RETRIES")
WEBHOOK_RETRY_BATCH_SIZE = env.int("WEBHOOK_RETRY_BATCH_SIZE")

# -----------------------------------------
# RECEIPTS + COLLABORATORS
# -----------------------------------------
RECEIPT_AUTO_APPLY_MIN_CONFIDENCE = float(env("RECEIPT_AUTO_APPLY_MIN_CONFIDENCE"))
RECEIPT_MAX_UPLOAD_BYTES = env.int("RECEIPT_MAX_UPLOAD_BYTES")

COLLABORATORS = {
    "VISION": {
        "URL": (env("VISION_API_URL") or "").strip(),
        "API_KEY": (env("VISION_API_KEY") or "").strip(),
        "TIMEOUT_SECONDS": env.int("VISION_TIMEOUT_SECONDS"),
    },
    "TAX_AUTHORITY": {
        "URL": (env("TAX_AUTHORITY_URL") or "").strip(),
        "TIMEOUT_SECONDS": env.int("TAX_AUTHORITY_TIMEOUT_SECONDS"),
    },
}

NOTIFICATIONS_ENABLED = env.bool("NOTIFICATIONS_ENABLED")

# -----------------------------------------
# SENTRY (optional)
# -----------------------------------------
SENTRY_DSN = (env("SENTRY_DSN") or "").strip()
SENTRY_ENVIRONMENT = (env("SENTRY_ENVIRONMENT") or "development").strip()
SENTRY_TRACES_SAMPLE_RATE = float(env("SENTRY_TRACES_SAMPLE_RATE"))
SENTRY_SEND_PII = env.bool("SENTRY_SEND_PII")

if SENTRY_DSN:
    import sentry_sdk
    from sentry_sdk.integrations.django import DjangoIntegration

    sentry_sdk.init(
        dsn=SENTRY_DSN,
        environment=SENTRY_ENVIRONMENT,
        integrations=[DjangoIntegration()],
        traces_sample_rate=SENTRY_TRACES_SAMPLE_RATE,
        send_default_pii=SENTRY_SEND_PII,
    )

# -----------------------------------------
# CORS / CSRF
# -----------------------------------------
CORS_ALLOWED_ORIGINS = env.list("CORS_ALLOWED_ORIGINS")
CORS_ALLOW_CREDENTIALS = True
CORS_ALLOW_METHODS = list(default_methods)
CORS_ALLOW_HEADERS = list(default_headers)

CSRF_TRUSTED_ORIGINS = env.list("CSRF_TRUSTED_ORIGINS")

# -----------------------------------------
# STATIC FILES
# -----------------------------------------
STATIC_URL = "static/"
MEDIA_URL = "media/"
MEDIA_ROOT = env("MEDIA_ROOT", default=str(BASE_DIR / "media"))
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# -----------------------------------------
# SWAGGER
# -----------------------------------------
SPECTACULAR_SETTINGS = {
    "TITLE": "Settlement Backend API",
    "DESCRIPTION": "Customer ledger, order settlement, stock reservations and payment intake",
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
}
