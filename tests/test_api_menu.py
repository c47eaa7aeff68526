import pytest
from rest_framework.test import APIClient

from menu.models import MenuItem
from tests.factories import CategoryFactory, FoodtruckFactory, MenuItemFactory, OptionFactory, OptionGroupFactory


@pytest.mark.django_db
def test_public_menu_shows_orderable_items_with_options(foodtruck):
    category = CategoryFactory(foodtruck=foodtruck, name="Burgers")
    burger = MenuItemFactory(category=category, name="Burger")
    MenuItemFactory(category=category, is_available=False)
    MenuItemFactory(category=category, is_archived=True)
    sizes = OptionGroupFactory(menu_item=burger, name="Taille", is_size_group=True)
    OptionFactory(option_group=sizes, name="XL", price_modifier=1400)

    resp = APIClient().get(f"/api/menu/items/?foodtruck={foodtruck.id}")

    assert resp.status_code == 200
    [item] = resp.json()["results"]
    assert item["id"] == burger.id
    assert item["category_name"] == "Burgers"
    assert item["option_groups"][0]["options"][0]["price_modifier"] == 1400


@pytest.mark.django_db
def test_owner_sees_and_creates_items(auth_api_client, foodtruck):
    category = CategoryFactory(foodtruck=foodtruck)
    MenuItemFactory(category=category, is_available=False)

    resp = auth_api_client.get(f"/api/menu/items/?foodtruck={foodtruck.id}")
    assert len(resp.json()["results"]) == 1

    resp = auth_api_client.post(
        "/api/menu/items/",
        {"foodtruck": foodtruck.id, "category": category.id, "name": "Wrap", "price": 850},
        format="json",
    )
    assert resp.status_code == 201, resp.content
    assert MenuItem.objects.get(name="Wrap").price == 850


@pytest.mark.django_db
def test_items_cannot_be_added_to_someone_elses_truck(auth_api_client, foodtruck):
    other = FoodtruckFactory()

    resp = auth_api_client.post(
        "/api/menu/items/", {"foodtruck": other.id, "name": "Intrus", "price": 100}, format="json",
    )
    assert resp.status_code == 403

    resp = auth_api_client.post(
        "/api/menu/items/",
        {"foodtruck": foodtruck.id, "category": CategoryFactory(foodtruck=other).id, "name": "Mal rangé", "price": 100},
        format="json",
    )
    assert resp.status_code == 400


@pytest.mark.django_db
def test_owner_updates_foodtruck_settings(auth_api_client, foodtruck):
    resp = auth_api_client.patch(
        f"/api/foodtrucks/{foodtruck.id}/",
        {"loyalty_enabled": True, "loyalty_threshold": 80, "auto_accept_orders": True},
        format="json",
    )

    assert resp.status_code == 200, resp.content
    foodtruck.refresh_from_db()
    assert foodtruck.loyalty_enabled and foodtruck.auto_accept_orders
    assert foodtruck.loyalty_threshold == 80

    stranger_truck = FoodtruckFactory()
    resp = auth_api_client.patch(f"/api/foodtrucks/{stranger_truck.id}/", {"name": "Pris"}, format="json")
    assert resp.status_code == 403
