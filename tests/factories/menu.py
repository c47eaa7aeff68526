import factory

from menu import models as menu_models
from .core import FoodtruckFactory


class CategoryFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = menu_models.Category

    foodtruck = factory.SubFactory(FoodtruckFactory)
    name = factory.Sequence(lambda n: f"Category {n}")
    display_order = 0


class MenuItemFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = menu_models.MenuItem

    foodtruck = factory.SelfAttribute("category.foodtruck")
    category = factory.SubFactory(CategoryFactory)
    name = factory.Sequence(lambda n: f"Item {n}")
    description = ""
    price = 1000
    is_available = True
    is_archived = False


class OptionGroupFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = menu_models.OptionGroup

    menu_item = factory.SubFactory(MenuItemFactory)
    name = factory.Sequence(lambda n: f"Group {n}")
    is_required = False
    is_multiple = False
    is_size_group = False


class OptionFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = menu_models.Option

    option_group = factory.SubFactory(OptionGroupFactory)
    name = factory.Sequence(lambda n: f"Option {n}")
    price_modifier = 100
    is_available = True
