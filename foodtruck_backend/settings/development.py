# foodtruck_backend/settings/development.py
from .base import *

# -----------------------------------------------------------------------------
# Development Settings
# -----------------------------------------------------------------------------
DEBUG = True

if not SECRET_KEY:
    SECRET_KEY = "dev-insecure-foodtruck-secret-key"

ALLOWED_HOSTS = ["*"]

CORS_ALLOW_ALL_ORIGINS = True
CORS_ALLOWED_ORIGINS = []

CSRF_TRUSTED_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://localhost:8000",
    "http://127.0.0.1:8000",
]

# -----------------------------------------------------------------------------
# Security Settings (Relaxed for Development)
# -----------------------------------------------------------------------------
SECURE_SSL_REDIRECT = False
SESSION_COOKIE_SECURE = False
CSRF_COOKIE_SECURE = False
X_FRAME_OPTIONS = "SAMEORIGIN"

# -----------------------------------------------------------------------------
# Email Configuration (Development)
# -----------------------------------------------------------------------------
EMAIL_BACKEND = "django.core.mail.backends.console.EmailBackend"

# -----------------------------------------------------------------------------
# Logging Configuration (Development)
# -----------------------------------------------------------------------------
LOGGING["root"]["level"] = "INFO"
for _name in ("django", "django.request", *LOCAL_APPS):
    LOGGING["loggers"][_name]["handlers"] = ["console"]

LOGGING["loggers"]["django.db.backends"] = {
    "handlers": ["console"],
    "level": "DEBUG" if os.getenv("DEBUG_SQL", "0") == "1" else "INFO",
    "propagate": False,
}

# -----------------------------------------------------------------------------
# Cache Configuration (Development)
# -----------------------------------------------------------------------------
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.dummy.DummyCache",
    }
}
SESSION_ENGINE = "django.contrib.sessions.backends.db"

# -----------------------------------------------------------------------------
# Celery (Development)
# -----------------------------------------------------------------------------
# Run tasks inline unless a broker is explicitly configured
CELERY_TASK_ALWAYS_EAGER = os.getenv("CELERY_TASK_ALWAYS_EAGER", "1") == "1"
CELERY_TASK_EAGER_PROPAGATES = True

# -----------------------------------------------------------------------------
# Static Files (Development)
# -----------------------------------------------------------------------------
STORAGES["staticfiles"] = {
    "BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage",
}

# -----------------------------------------------------------------------------
# DRF Configuration (Development)
# -----------------------------------------------------------------------------
REST_FRAMEWORK["DEFAULT_RENDERER_CLASSES"] = [
    "rest_framework.renderers.JSONRenderer",
    "rest_framework.renderers.BrowsableAPIRenderer",
]

REST_FRAMEWORK["DEFAULT_THROTTLE_CLASSES"] = []
