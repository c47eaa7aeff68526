import os
from datetime import timedelta

import pytest
from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APIClient


# Ensure development-like environment during tests if not provided externally
os.environ.setdefault("ENVIRONMENT", "development")


@pytest.fixture
def api_client() -> APIClient:
    """Unauthenticated DRF APIClient, as a customer on the storefront."""
    return APIClient(enforce_csrf_checks=False)


@pytest.fixture
def user(db):
    """A persisted user instance; owns the ``foodtruck`` fixture."""
    User = get_user_model()
    return User.objects.create_user(
        username="testuser",
        email="test@example.com",
        password="password123!",
    )


@pytest.fixture
def auth_api_client(api_client: APIClient, user):
    """APIClient authenticated as the provided user via force_authenticate."""
    api_client.force_authenticate(user=user)
    return api_client


@pytest.fixture
def foodtruck(user):
    from tests.factories import FoodtruckFactory

    return FoodtruckFactory(owner=user, name="Le Camion")


@pytest.fixture
def pickup_time():
    """A pickup time safely in the future, during opening hours."""
    local = timezone.localtime(timezone.now() + timedelta(days=1))
    return local.replace(hour=12, minute=30, second=0, microsecond=0)
