from datetime import timedelta

import pytest
from django.utils import timezone

from offers.models import OfferUse
from offers.services import validate_promo_code
from tests.factories import OfferFactory, OrderFactory


def promo_offer(foodtruck, code="BIENVENUE", **kwargs):
    config = {"code": code, "discount_type": "percentage", "discount_value": 10, "min_order_amount": 1500}
    config.update(kwargs.pop("config", {}))
    return OfferFactory(foodtruck=foodtruck, offer_type="promo_code", config=config, **kwargs)


@pytest.mark.django_db
def test_valid_code_is_case_insensitive(foodtruck):
    offer = promo_offer(foodtruck, config={"max_discount": 300})

    result = validate_promo_code(foodtruck, " bienvenue ", None, 2000)

    assert result.is_valid
    assert result.offer_id == offer.id
    assert result.discount_type == "percentage"
    assert result.calculated_discount == 200
    assert result.max_discount == 300
    assert validate_promo_code(foodtruck, "BIENVENUE", None, 5000).calculated_discount == 300


@pytest.mark.django_db
def test_unknown_code_and_other_foodtrucks_codes_are_invalid(foodtruck):
    promo_offer(OfferFactory().foodtruck, code="AILLEURS")

    result = validate_promo_code(foodtruck, "AILLEURS", None, 2000)

    assert not result.is_valid
    assert result.error_message == "Invalid promo code"


@pytest.mark.django_db
def test_inactive_and_out_of_date_codes(foodtruck):
    now = timezone.now()
    promo_offer(foodtruck, code="OFF", is_active=False)
    promo_offer(foodtruck, code="SOON", start_date=now + timedelta(days=2))
    promo_offer(foodtruck, code="OLD", start_date=now - timedelta(days=10), end_date=now - timedelta(days=1))

    messages = {
        code: validate_promo_code(foodtruck, code, None, 2000).error_message
        for code in ("OFF", "SOON", "OLD")
    }
    assert messages == {
        "OFF": "This promo code is no longer active",
        "SOON": "This promo code is not valid yet",
        "OLD": "This promo code has expired",
    }


@pytest.mark.django_db
def test_minimum_amount_is_reported_in_euros(foodtruck):
    promo_offer(foodtruck)

    result = validate_promo_code(foodtruck, "BIENVENUE", None, 1499)

    assert not result.is_valid
    assert result.error_message == "Minimum order amount of 15.00 EUR required"


@pytest.mark.django_db
def test_usage_limits(foodtruck):
    promo_offer(foodtruck, code="FULL", max_uses=1, current_uses=1)
    once = promo_offer(foodtruck, code="ONCE", max_uses_per_customer=1)
    order = OrderFactory(foodtruck=foodtruck, customer_email="fidele@example.com")
    OfferUse.objects.create(offer=once, order=order, customer_email="fidele@example.com", discount_amount=200)

    assert validate_promo_code(foodtruck, "FULL", None, 2000).error_message == (
        "This promo code has reached its usage limit"
    )
    assert validate_promo_code(foodtruck, "ONCE", "Fidele@example.com", 2000).error_message == (
        "You have already used this promo code"
    )
    assert validate_promo_code(foodtruck, "ONCE", "nouveau@example.com", 2000).is_valid


@pytest.mark.django_db
def test_validate_promo_code_endpoint(api_client, foodtruck):
    promo_offer(foodtruck, config={"discount_type": "fixed", "discount_value": 500})

    resp = api_client.post(
        "/api/offers/validate_promo_code/",
        {"foodtruck": foodtruck.id, "code": "bienvenue", "order_amount": 2000},
        format="json",
    )

    assert resp.status_code == 200
    data = resp.json()
    assert data["is_valid"] is True
    assert data["calculated_discount"] == 500

    resp = api_client.post(
        "/api/offers/validate_promo_code/",
        {"foodtruck": foodtruck.id, "code": "NOPE", "order_amount": 2000},
        format="json",
    )
    assert resp.status_code == 200
    assert resp.json()["is_valid"] is False
