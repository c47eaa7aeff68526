"""
Django settings package for the foodtruck backend.

- development: local development and tests (debug, console email, eager Celery)
- production: hardened settings, JSON logs, Sentry

The module is chosen by the ENVIRONMENT variable and defaults to development.
"""

import os

ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower()

VALID_ENVIRONMENTS = ["development", "production"]
if ENVIRONMENT not in VALID_ENVIRONMENTS:
    raise ValueError(
        f"Invalid ENVIRONMENT '{ENVIRONMENT}'. "
        f"Must be one of: {', '.join(VALID_ENVIRONMENTS)}"
    )

if ENVIRONMENT == "production":
    from .production import *
else:
    from .development import *
