from datetime import datetime, time, timedelta

import pytest
from django.utils import timezone

from offers.engine import AppliedOffer, CartLine, ConsumedItem, OptimizedOffers
from offers.models import OfferItem, OfferUse
from offers.services import (
    OfferValidationError,
    build_rules,
    get_applicable_offers,
    get_offer_stats,
    get_optimized_offers,
    is_within_schedule,
    record_offer_uses,
    to_rule,
    validate_applied_offers,
)
from tests.factories import CategoryFactory, MenuItemFactory, OfferFactory, OfferItemFactory, OrderFactory


def _paris(*args):
    return timezone.make_aware(datetime(*args))


# 2026-03-02 is a Monday
MONDAY_NOON = (2026, 3, 2, 12, 0)
SUNDAY_NOON = (2026, 3, 1, 12, 0)


@pytest.mark.django_db
def test_build_rules_keeps_only_usable_offers(foodtruck):
    now = timezone.now()
    live = OfferFactory(foodtruck=foodtruck, name="Live")
    OfferFactory(foodtruck=foodtruck, is_active=False)
    OfferFactory(foodtruck=foodtruck, start_date=now + timedelta(days=1))
    OfferFactory(foodtruck=foodtruck, end_date=now - timedelta(days=1))
    OfferFactory(foodtruck=foodtruck, max_uses=5, current_uses=5)
    OfferFactory(foodtruck=foodtruck, offer_type="bundle", config={"type": "specific_items"})
    OfferFactory()

    assert [r.offer_id for r in build_rules(foodtruck, now)] == [live.id]


@pytest.mark.django_db
def test_schedule_windows_use_local_pickup_time(foodtruck):
    offer = OfferFactory(
        foodtruck=foodtruck,
        time_start=time(11, 0),
        time_end=time(14, 0),
        days_of_week=[1, 2, 3, 4, 5],
    )

    assert is_within_schedule(offer, _paris(*MONDAY_NOON))
    assert is_within_schedule(offer, _paris(2026, 3, 2, 14, 0))
    assert not is_within_schedule(offer, _paris(2026, 3, 2, 14, 1))
    assert not is_within_schedule(offer, _paris(*SUNDAY_NOON))

    assert [r.offer_id for r in build_rules(foodtruck, _paris(*MONDAY_NOON))] == [offer.id]
    assert build_rules(foodtruck, _paris(*SUNDAY_NOON)) == []


@pytest.mark.django_db
def test_per_customer_limit_counts_previous_orders(foodtruck):
    offer = OfferFactory(foodtruck=foodtruck, max_uses_per_customer=1)
    order = OrderFactory(foodtruck=foodtruck, customer_email="deja@example.com")
    OfferUse.objects.create(offer=offer, order=order, customer_email="deja@example.com", discount_amount=100)

    assert build_rules(foodtruck, customer_email=" DEJA@example.com") == []
    assert [r.offer_id for r in build_rules(foodtruck, customer_email="new@example.com")] == [offer.id]


@pytest.mark.django_db
def test_to_rule_maps_offer_items_by_role(foodtruck):
    category = CategoryFactory(foodtruck=foodtruck)
    burger = MenuItemFactory(category=category)
    fries = MenuItemFactory(category=category)
    offer = OfferFactory(
        foodtruck=foodtruck,
        offer_type="buy_x_get_y",
        config={"trigger_quantity": 1, "reward_quantity": 1},
        max_uses=10,
        current_uses=4,
    )
    OfferItemFactory(offer=offer, menu_item=burger, role=OfferItem.ROLE_TRIGGER)
    OfferItemFactory(offer=offer, menu_item=fries, role=OfferItem.ROLE_REWARD)

    rule = to_rule(offer)

    assert rule.trigger_items == frozenset({str(burger.id)})
    assert rule.reward_items == frozenset({str(fries.id)})
    assert rule.bundle_items == ()
    assert rule.max_applications == 6


@pytest.mark.django_db
def test_get_optimized_offers_follows_foodtruck_stacking(foodtruck):
    category = CategoryFactory(foodtruck=foodtruck)
    burger = MenuItemFactory(category=category, price=1000)
    fries = MenuItemFactory(category=category, price=500)
    bundle = OfferFactory(foodtruck=foodtruck, offer_type="bundle", config={"fixed_price": 1200})
    OfferItemFactory(offer=bundle, menu_item=burger)
    OfferItemFactory(offer=bundle, menu_item=fries)
    OfferFactory(foodtruck=foodtruck, config={"min_amount": 1000, "discount_type": "fixed", "discount_value": 200})
    lines = [
        CartLine(menu_item_id=burger.id, quantity=1, unit_price=1000, category_id=category.id),
        CartLine(menu_item_id=fries.id, quantity=1, unit_price=500, category_id=category.id),
    ]

    assert get_optimized_offers(foodtruck, lines).total_discount == 300 + 200

    foodtruck.offers_stackable = False
    assert get_optimized_offers(foodtruck, lines).total_discount == 300


@pytest.mark.django_db
def test_get_applicable_offers_lists_live_offers(foodtruck):
    offer = OfferFactory(foodtruck=foodtruck)
    lines = [CartLine(menu_item_id=1, quantity=1, unit_price=2500)]

    hints = get_applicable_offers(foodtruck, lines)

    assert [(h.offer_id, h.calculated_discount, h.is_applicable) for h in hints] == [(offer.id, 250, True)]


@pytest.mark.django_db
def test_record_offer_uses_splits_discount_and_updates_counters(foodtruck):
    offer = OfferFactory(foodtruck=foodtruck, offer_type="bundle", config={"fixed_price": 1000})
    order = OrderFactory(foodtruck=foodtruck, customer_email="Client@Example.com")
    optimized = OptimizedOffers(
        applied_offers=[AppliedOffer(
            offer_id=offer.id,
            offer_name=offer.name,
            offer_type="bundle",
            times_applied=3,
            discount_amount=1000,
            items_consumed=[ConsumedItem(5, 3)],
        )],
        total_discount=1000,
    )

    uses = record_offer_uses(order, optimized)

    assert [u.discount_amount for u in uses] == [334, 333, 333]
    assert uses[0].items_consumed == [{"menu_item_id": 5, "quantity": 3}]
    assert uses[1].items_consumed == []
    assert {u.customer_email for u in uses} == {"client@example.com"}
    offer.refresh_from_db()
    assert (offer.current_uses, offer.total_discount_given) == (3, 1000)

    stats = get_offer_stats(offer)
    assert stats["total_uses"] == 3
    assert stats["total_discount"] == 1000
    assert stats["unique_customers"] == 1


@pytest.mark.django_db
def test_customer_built_bundles_are_tracked_without_discount(foodtruck):
    bundle = OfferFactory(foodtruck=foodtruck, offer_type="bundle", config={"fixed_price": 1000})
    order = OrderFactory(foodtruck=foodtruck)

    record_offer_uses(order, OptimizedOffers(), bundles_used=[(bundle, 2)])

    assert list(order.offer_uses.values_list("discount_amount", flat=True)) == [0, 0]
    bundle.refresh_from_db()
    assert (bundle.current_uses, bundle.total_discount_given) == (2, 0)


@pytest.mark.django_db
def test_validate_applied_offers_rejects_impossible_claims(foodtruck):
    offer = OfferFactory(foodtruck=foodtruck)
    inactive = OfferFactory(foodtruck=foodtruck, is_active=False)
    foreign = OfferFactory()
    lines = [CartLine(menu_item_id=1, quantity=2, unit_price=500)]

    def claim(offer_id, discount=100, consumed=2):
        return [{
            "offer_id": offer_id,
            "discount_amount": discount,
            "items_consumed": [{"menu_item_id": 1, "quantity": consumed}],
        }]

    validate_applied_offers(foodtruck, claim(offer.id), lines)
    validate_applied_offers(foodtruck, [], lines)

    with pytest.raises(OfferValidationError):
        validate_applied_offers(foodtruck, claim(foreign.id), lines)
    with pytest.raises(OfferValidationError):
        validate_applied_offers(foodtruck, claim(inactive.id), lines)
    with pytest.raises(OfferValidationError, match="more items"):
        validate_applied_offers(foodtruck, claim(offer.id, consumed=3), lines)
    with pytest.raises(OfferValidationError, match="exceeds"):
        validate_applied_offers(foodtruck, claim(offer.id, discount=1500), lines)


@pytest.mark.django_db
def test_validate_applied_offers_rejects_malformed_claims(foodtruck):
    offer = OfferFactory(foodtruck=foodtruck)
    lines = [CartLine(menu_item_id=1, quantity=2, unit_price=500)]

    for claimed in (
        [{"offer_id": "abc"}],
        [{"offer_id": offer.id, "discount_amount": "lots"}],
        [{"offer_id": offer.id, "items_consumed": [{"menu_item_id": 1, "quantity": "two"}]}],
        [{"offer_id": offer.id, "items_consumed": ["1"]}],
        ["not a claim"],
    ):
        with pytest.raises(OfferValidationError, match="Malformed"):
            validate_applied_offers(foodtruck, claimed, lines)
