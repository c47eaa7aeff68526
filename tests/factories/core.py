import factory
from django.contrib.auth import get_user_model

from core import models as core_models


class UserFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = get_user_model()
        django_get_or_create = ("username",)

    username = factory.Sequence(lambda n: f"owner{n}")
    email = factory.LazyAttribute(lambda o: f"{o.username}@example.com")
    password = factory.django.Password("password123!")


class FoodtruckFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = core_models.Foodtruck

    owner = factory.SubFactory(UserFactory)
    name = factory.Sequence(lambda n: f"Truck {n}")
    email = factory.LazyAttribute(lambda o: f"contact@{o.name.replace(' ', '').lower()}.fr")
    is_active = True
    auto_accept_orders = False
    offers_stackable = True
    promo_codes_stackable = True
    loyalty_enabled = False
