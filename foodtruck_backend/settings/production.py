# foodtruck_backend/settings/production.py
from .base import *
import sentry_sdk
from sentry_sdk.integrations.django import DjangoIntegration
from sentry_sdk.integrations.celery import CeleryIntegration

# -----------------------------------------------------------------------------
# Production Settings
# -----------------------------------------------------------------------------
DEBUG = False

if not SECRET_KEY:
    raise ValueError("DJANGO_SECRET_KEY environment variable is required")

ALLOWED_HOSTS = _split_csv("DJANGO_ALLOWED_HOSTS")
if not ALLOWED_HOSTS:
    raise ValueError("DJANGO_ALLOWED_HOSTS must be set in production")

# -----------------------------------------------------------------------------
# Security Settings (Enhanced for Production)
# -----------------------------------------------------------------------------
SECURE_SSL_REDIRECT = True
SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True

SECURE_HSTS_SECONDS = 31536000  # 1 year
SECURE_HSTS_INCLUDE_SUBDOMAINS = True
SECURE_HSTS_PRELOAD = True

# -----------------------------------------------------------------------------
# Database Configuration (Production)
# -----------------------------------------------------------------------------
if not DATABASE_URL:
    raise ValueError("DATABASE_URL is required in production")

DATABASES["default"]["CONN_MAX_AGE"] = 600  # 10 minutes

# -----------------------------------------------------------------------------
# Cache Configuration (Production)
# -----------------------------------------------------------------------------
if REDIS_URL:
    CACHES = {
        "default": {
            "BACKEND": "django_redis.cache.RedisCache",
            "LOCATION": REDIS_URL,
            "OPTIONS": {
                "CLIENT_CLASS": "django_redis.client.DefaultClient",
                "CONNECTION_POOL_KWARGS": {
                    "max_connections": int(os.getenv("REDIS_MAX_CONNECTIONS", "50")),
                    "retry_on_timeout": True,
                },
            },
            "KEY_PREFIX": "foodtruck",
        }
    }
SESSION_CACHE_ALIAS = "default"

# -----------------------------------------------------------------------------
# Static Files (Production)
# -----------------------------------------------------------------------------
WHITENOISE_USE_FINDERS = False
WHITENOISE_AUTOREFRESH = False

# -----------------------------------------------------------------------------
# Email Configuration (Production)
# -----------------------------------------------------------------------------
if not EMAIL_HOST:
    raise ValueError("Email configuration is required in production")

# -----------------------------------------------------------------------------
# Logging Configuration (Production)
# -----------------------------------------------------------------------------
if os.getenv("USE_JSON_LOGGING", "1") == "1":
    LOGGING["handlers"]["json_file"] = {
        "level": "INFO",
        "class": "logging.handlers.RotatingFileHandler",
        "filename": LOG_DIR / "django.json",
        "maxBytes": 1024 * 1024 * 15,  # 15MB
        "backupCount": 10,
        "formatter": "json",
        "filters": ["request_id"],
    }
    LOGGING["handlers"]["console"]["formatter"] = "json"

    for logger_name in ("django", *LOCAL_APPS):
        LOGGING["loggers"][logger_name]["handlers"].append("json_file")

# -----------------------------------------------------------------------------
# Error Monitoring (Sentry)
# -----------------------------------------------------------------------------
SENTRY_DSN = os.getenv("SENTRY_DSN")
if SENTRY_DSN:
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        integrations=[
            DjangoIntegration(transaction_style="url"),
            CeleryIntegration(),
        ],
        traces_sample_rate=float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.1")),
        send_default_pii=False,
        environment=os.getenv("ENVIRONMENT", "production"),
        release=os.getenv("APP_VERSION", "unknown"),
    )

# -----------------------------------------------------------------------------
# API / CORS (Production)
# -----------------------------------------------------------------------------
REST_FRAMEWORK["DEFAULT_RENDERER_CLASSES"] = [
    "rest_framework.renderers.JSONRenderer",
]

CORS_ALLOWED_ORIGINS = _split_csv("CORS_ALLOWED_ORIGINS")
if not CORS_ALLOWED_ORIGINS:
    raise ValueError("CORS_ALLOWED_ORIGINS must be set in production")

# -----------------------------------------------------------------------------
# Celery Configuration (Production)
# -----------------------------------------------------------------------------
CELERY_TASK_ALWAYS_EAGER = False
CELERY_WORKER_HIJACK_ROOT_LOGGER = False
CELERY_WORKER_LOG_FORMAT = "[%(asctime)s: %(levelname)s/%(processName)s] %(message)s"
CELERY_WORKER_TASK_LOG_FORMAT = "[%(asctime)s: %(levelname)s/%(processName)s][%(task_name)s(%(task_id)s)] %(message)s"
