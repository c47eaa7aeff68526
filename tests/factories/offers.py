import factory

from offers import models as offer_models
from .core import FoodtruckFactory
from .menu import MenuItemFactory


class OfferFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = offer_models.Offer

    foodtruck = factory.SubFactory(FoodtruckFactory)
    name = factory.Sequence(lambda n: f"Offer {n}")
    offer_type = "threshold_discount"
    config = factory.LazyFunction(lambda: {"min_amount": 2000, "discount_type": "percentage", "discount_value": 10})
    is_active = True


class OfferItemFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = offer_models.OfferItem

    offer = factory.SubFactory(OfferFactory)
    menu_item = factory.SubFactory(MenuItemFactory, category__foodtruck=factory.SelfAttribute("...offer.foodtruck"))
    role = offer_models.OfferItem.ROLE_BUNDLE_ITEM
    quantity = 1
