from .core import FoodtruckFactory, UserFactory
from .loyalty import CustomerFactory
from .menu import CategoryFactory, MenuItemFactory, OptionFactory, OptionGroupFactory
from .offers import OfferFactory, OfferItemFactory
from .orders import OrderFactory, OrderItemFactory

__all__ = [
    "UserFactory",
    "FoodtruckFactory",
    "CategoryFactory",
    "MenuItemFactory",
    "OptionGroupFactory",
    "OptionFactory",
    "OfferFactory",
    "OfferItemFactory",
    "CustomerFactory",
    "OrderFactory",
    "OrderItemFactory",
]
