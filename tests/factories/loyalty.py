import factory

from loyalty import models as loyalty_models
from .core import FoodtruckFactory


class CustomerFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = loyalty_models.Customer

    foodtruck = factory.SubFactory(FoodtruckFactory)
    email = factory.Sequence(lambda n: f"client{n}@example.com")
    name = factory.Sequence(lambda n: f"Client {n}")
    loyalty_points = 0
    loyalty_opt_in = True
