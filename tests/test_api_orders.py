import pytest
from rest_framework.test import APIClient

from orders.models import Order
from tests.factories import CategoryFactory, FoodtruckFactory, MenuItemFactory, OrderFactory, UserFactory


@pytest.fixture
def burger(foodtruck):
    return MenuItemFactory(category=CategoryFactory(foodtruck=foodtruck), name="Burger", price=1000)


def order_payload(foodtruck, burger, pickup_time, **extra):
    data = {
        "foodtruck": foodtruck.id,
        "items": [{"menu_item_id": burger.id, "quantity": 2, "notes": "sans oignons"}],
        "customer_email": "client@example.com",
        "customer_name": "Dominique",
        "pickup_time": pickup_time.isoformat(),
    }
    data.update(extra)
    return data


@pytest.mark.django_db
def test_customer_places_an_order(api_client, foodtruck, burger, pickup_time):
    resp = api_client.post("/api/orders/", order_payload(foodtruck, burger, pickup_time, expected_total=2000),
                           format="json")

    assert resp.status_code == 201, resp.content
    data = resp.json()
    assert data["message"] == "Order created"
    assert data["order"]["status"] == "pending"
    assert data["order"]["total_amount"] == 2000
    assert data["order"]["items"][0]["notes"] == "sans oignons"
    assert data["order"]["items"][0]["line_total"] == 2000

    resp = api_client.get(f"/api/orders/{data['order']['id']}/")
    assert resp.status_code == 200
    assert resp.json()["customer_name"] == "Dominique"


@pytest.mark.django_db
def test_checkout_errors_carry_a_code(api_client, foodtruck, burger, pickup_time):
    resp = api_client.post("/api/orders/", order_payload(foodtruck, burger, pickup_time, expected_total=1500),
                           format="json")
    assert resp.status_code == 409
    assert resp.json() == {
        "error": "The order total has changed, please review your order",
        "code": "price_mismatch",
        "server_total": 2000,
    }

    resp = api_client.post("/api/orders/", order_payload(foodtruck, burger, pickup_time, customer_name="  "),
                           format="json")
    assert resp.status_code == 400
    assert "customer_name" in resp.json()

    resp = api_client.post("/api/orders/", order_payload(foodtruck, burger, pickup_time, items=[]), format="json")
    assert resp.status_code == 400
    assert not Order.objects.exists()


@pytest.mark.django_db
def test_malformed_offer_claims_are_rejected(api_client, foodtruck, burger, pickup_time):
    for claims in (
        [{"offer_id": "abc"}],
        [{"offer_id": 1, "discount_amount": "beaucoup"}],
        [{"offer_id": 1, "items_consumed": [{"menu_item_id": burger.id, "quantity": "deux"}]}],
    ):
        resp = api_client.post(
            "/api/orders/", order_payload(foodtruck, burger, pickup_time, applied_offers=claims), format="json",
        )
        assert resp.status_code == 400, claims
        assert "applied_offers" in resp.json()
    assert not Order.objects.exists()


@pytest.mark.django_db
def test_oversized_carts_are_refused(api_client, foodtruck, burger):
    resp = api_client.post(
        "/api/orders/quote/",
        {"foodtruck": foodtruck.id, "items": [{"menu_item_id": burger.id, "quantity": 600}] * 6},
        format="json",
    )

    assert resp.status_code == 400
    assert resp.json()["code"] == "too_many_items"


@pytest.mark.django_db
def test_bracketed_notes_are_reserved_for_bundles(api_client, foodtruck, burger, pickup_time):
    items = [{"menu_item_id": burger.id, "notes": "[Menu Midi]"}]

    resp = api_client.post("/api/orders/", order_payload(foodtruck, burger, pickup_time, items=items), format="json")

    assert resp.status_code == 201
    assert resp.json()["order"]["items"][0]["notes"] == "Menu Midi"


@pytest.mark.django_db
def test_only_the_owner_can_force_a_full_slot(api_client, foodtruck, burger, pickup_time):
    foodtruck.max_orders_per_slot = 1
    foodtruck.save()
    OrderFactory(foodtruck=foodtruck, pickup_time=pickup_time)
    payload = order_payload(foodtruck, burger, pickup_time, force_slot=True)

    resp = APIClient().post("/api/orders/", payload, format="json")
    assert resp.status_code == 409
    assert resp.json()["code"] == "slot_full"

    api_client.force_authenticate(foodtruck.owner)
    resp = api_client.post("/api/orders/", payload, format="json")
    assert resp.status_code == 201
    assert resp.json()["order"]["status"] == "confirmed"


@pytest.mark.django_db
def test_quote(api_client, foodtruck, burger):
    resp = api_client.post(
        "/api/orders/quote/",
        {"foodtruck": foodtruck.id, "items": [{"menu_item_id": burger.id, "quantity": 3}]},
        format="json",
    )

    assert resp.status_code == 200, resp.content
    data = resp.json()
    assert (data["subtotal"], data["total"], data["loyalty"]) == (3000, 3000, None)
    assert not Order.objects.exists()


@pytest.mark.django_db
def test_merchant_lists_only_their_orders(auth_api_client, foodtruck):
    mine = OrderFactory(foodtruck=foodtruck)
    OrderFactory(foodtruck=FoodtruckFactory())

    resp = auth_api_client.get("/api/orders/")

    assert resp.status_code == 200
    assert [o["id"] for o in resp.json()["results"]] == [mine.id]
    assert APIClient().get("/api/orders/").status_code in (401, 403)


@pytest.mark.django_db
def test_update_status(auth_api_client, foodtruck):
    order = OrderFactory(foodtruck=foodtruck)

    resp = auth_api_client.post(f"/api/orders/{order.id}/update_status/", {"status": "confirmed"}, format="json")
    assert resp.status_code == 200
    assert resp.json()["status"] == "confirmed"

    resp = auth_api_client.post(f"/api/orders/{order.id}/update_status/", {"status": "pending"}, format="json")
    assert resp.status_code == 400
    assert resp.json()["code"] == "invalid_transition"

    resp = auth_api_client.post(f"/api/orders/{order.id}/update_status/", {"status": "eaten"}, format="json")
    assert resp.status_code == 400


@pytest.mark.django_db
def test_other_merchants_cannot_update_status(foodtruck):
    order = OrderFactory(foodtruck=foodtruck)
    stranger = APIClient()
    stranger.force_authenticate(UserFactory(username="voisin"))

    resp = stranger.post(f"/api/orders/{order.id}/update_status/", {"status": "confirmed"}, format="json")

    assert resp.status_code in (403, 404)
    order.refresh_from_db()
    assert order.status == Order.STATUS_PENDING
