from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Mapping, Optional, Tuple

from django.db import transaction
from django.utils import timezone

from loyalty.services import (
    LoyaltyError,
    credit_points,
    get_customer_loyalty,
    normalize_email,
    redeem_reward,
    upsert_customer,
)
from menu.models import MenuItem, Option
from offers.engine import OFFER_BUNDLE, CartLine, OptimizedOffers
from offers.models import Offer
from offers.services import (
    OfferValidationError,
    build_rules,
    customer_use_count,
    get_optimized_offers,
    is_bundle_valid_for_pickup,
    record_offer_uses,
    validate_applied_offers,
    validate_promo_code,
)

from ..models import Order, OrderItem, OrderItemOption
from .pricing import (
    PriceBreakdown,
    PricedLine,
    build_cart_lines,
    calculate_order,
    compute_price_breakdown,
    resolve_bundles,
)
from .validation import (
    OrderValidationError,
    check_slot_availability,
    validate_cart_size,
    validate_menu_items,
    validate_option_prices,
    validate_order_total,
    validate_pickup_time,
)

logger = logging.getLogger(__name__)


@dataclass
class PricedCart:
    lines: List[PricedLine]
    cart_lines: List[CartLine]
    subtotal: int
    optimized: OptimizedOffers
    bundles_used: List[Tuple[Offer, int]] = field(default_factory=list)
    promo_error: Optional[str] = None


def _load_catalog(foodtruck, items):
    menu_ids = {int(i['menu_item_id']) for i in items}
    option_ids = {int(o['option_id']) for i in items for o in (i.get('options') or [])}
    bundle_ids = {int(i['bundle_offer_id']) for i in items if i.get('bundle_offer_id') not in (None, "")}
    menu_items = MenuItem.objects.select_related('category').in_bulk(menu_ids)
    options = Option.objects.select_related('option_group').in_bulk(option_ids)
    bundle_offers = (
        Offer.objects.filter(foodtruck=foodtruck, offer_type=OFFER_BUNDLE)
        .prefetch_related('offer_items')
        .in_bulk(bundle_ids)
    )
    return menu_items, options, bundle_offers


def _check_bundle_availability(bundles_used, pickup_time: datetime, email: Optional[str]) -> None:
    for offer, count in bundles_used:
        if not offer.is_active:
            raise OrderValidationError(f"The bundle '{offer.name}' is no longer available", code="bundle_inactive")
        if (offer.start_date and pickup_time < offer.start_date) or (offer.end_date and pickup_time > offer.end_date):
            raise OrderValidationError(f"The bundle '{offer.name}' is not available on that date", code="bundle_unavailable")
        if not is_bundle_valid_for_pickup(offer, pickup_time):
            raise OrderValidationError(
                f"The bundle '{offer.name}' is not available at the chosen pickup time",
                code="bundle_unavailable",
            )
        remaining = offer.remaining_uses
        if remaining is not None and count > remaining:
            raise OrderValidationError(f"The bundle '{offer.name}' is sold out", code="bundle_sold_out")
        if offer.max_uses_per_customer and customer_use_count(offer, email) >= offer.max_uses_per_customer:
            raise OrderValidationError(
                f"You have already used the bundle '{offer.name}' the maximum number of times",
                code="bundle_limit_reached",
            )


def price_cart(foodtruck, payload: Mapping, now: Optional[datetime] = None) -> PricedCart:
    """Validate and price a checkout payload, offers included. Nothing is written.

    Raises OrderValidationError for anything the order could not be placed with.
    """
    now = now or timezone.now()
    items = list(payload.get('items') or [])
    if not items:
        raise OrderValidationError("The order has no items", code="empty_order")
    validate_cart_size(items)
    pickup_time = payload.get('pickup_time')
    email = normalize_email(payload.get('customer_email'))

    menu_items, options, bundle_offers = _load_catalog(foodtruck, items)
    validate_menu_items(foodtruck, items, menu_items)
    validate_option_prices(items, options)
    validate_pickup_time(pickup_time, now)

    items, bundles_used = resolve_bundles(items, menu_items, options, bundle_offers)
    lines, subtotal = calculate_order(items, menu_items, options)
    cart_lines = build_cart_lines(lines)

    rules = build_rules(foodtruck, pickup_time, email)
    _check_bundle_availability(bundles_used, pickup_time, email)

    promo_code = (payload.get('promo_code') or "").strip()
    promo_error = None
    if promo_code:
        check = validate_promo_code(foodtruck, promo_code, email, subtotal, at=now)
        if not check.is_valid:
            promo_error = check.error_message
            promo_code = ""
    optimized = get_optimized_offers(
        foodtruck, cart_lines, promo_code=promo_code or None, rules=rules, subtotal=subtotal,
    )
    return PricedCart(
        lines=lines,
        cart_lines=cart_lines,
        subtotal=subtotal,
        optimized=optimized,
        bundles_used=bundles_used,
        promo_error=promo_error,
    )


def quote_order(foodtruck, payload: Mapping, now: Optional[datetime] = None) -> dict:
    """The price breakdown a checkout would produce right now, without placing the order."""
    priced = price_cart(foodtruck, payload, now)
    loyalty_info = None
    if foodtruck.loyalty_enabled and payload.get('customer_email'):
        loyalty_info = get_customer_loyalty(foodtruck, payload.get('customer_email'))
    breakdown = compute_price_breakdown(
        priced.subtotal, priced.optimized, loyalty_info, use_loyalty=bool(payload.get('use_loyalty')),
    )
    data = breakdown.to_dict()
    data['applied_offers'] = [o.to_dict() for o in priced.optimized.applied_offers]
    data['promo_error'] = priced.promo_error
    data['loyalty'] = loyalty_info.to_dict() if loyalty_info else None
    return data


def _persist_items(order: Order, lines: List[PricedLine]) -> None:
    for line in lines:
        item = OrderItem.objects.create(
            order=order,
            menu_item=line.menu_item,
            quantity=line.quantity,
            unit_price=line.unit_price,
            notes=line.notes[:500],
            bundle_offer=line.bundle_offer,
            bundle_instance=line.bundle_instance,
        )
        OrderItemOption.objects.bulk_create([
            OrderItemOption(
                order_item=item,
                option=option,
                option_name=option.name,
                price_modifier=option.price_modifier,
            )
            for option in line.options
        ])


def _queue_confirmation_email(order_id: int) -> None:
    from orders.tasks import send_order_confirmation_email_task

    send_order_confirmation_email_task.delay(order_id)


def create_order(foodtruck, payload: Mapping, force_slot: bool = False,
                 now: Optional[datetime] = None) -> Order:
    """
    Place an order from a validated checkout payload.

    Every amount is recomputed here; client figures (``applied_offers``,
    ``expected_total``) are only compared against the server's. The whole
    checkout is one transaction: a refused loyalty redemption or a price
    mismatch leaves nothing behind.
    """
    now = now or timezone.now()
    if not foodtruck.is_active:
        raise OrderValidationError("This foodtruck is not taking orders", code="foodtruck_inactive")

    with transaction.atomic():
        priced = price_cart(foodtruck, payload, now)
        if priced.promo_error:
            raise OrderValidationError(priced.promo_error, code="invalid_promo_code")
        check_slot_availability(foodtruck, payload['pickup_time'], force_slot=force_slot)

        try:
            validate_applied_offers(foodtruck, payload.get('applied_offers'), priced.cart_lines, at=now)
        except OfferValidationError as exc:
            logger.warning("Rejected applied offers for %s: %s", foodtruck.pk, exc)
            raise OrderValidationError(str(exc), code="invalid_offer")

        use_loyalty = bool(payload.get('use_loyalty')) and foodtruck.loyalty_enabled
        loyalty_info = get_customer_loyalty(foodtruck, payload['customer_email']) if use_loyalty else None
        breakdown: PriceBreakdown = compute_price_breakdown(
            priced.subtotal, priced.optimized, loyalty_info, use_loyalty=use_loyalty,
        )
        validate_order_total(breakdown.total, payload.get('expected_total'))

        customer = upsert_customer(
            foodtruck,
            payload['customer_email'],
            name=payload.get('customer_name', ""),
            phone=payload.get('customer_phone', ""),
            opt_in=payload.get('loyalty_opt_in'),
            amount=breakdown.total,
        )

        confirmed = foodtruck.auto_accept_orders or force_slot
        order = Order.objects.create(
            foodtruck=foodtruck,
            customer=customer,
            customer_email=customer.email,
            customer_name=payload.get('customer_name', ""),
            customer_phone=payload.get('customer_phone', ""),
            pickup_time=payload['pickup_time'],
            status=Order.STATUS_CONFIRMED if confirmed else Order.STATUS_PENDING,
            subtotal=breakdown.subtotal,
            offers_discount=breakdown.offers_discount,
            promo_discount=breakdown.promo_discount,
            loyalty_discount=breakdown.loyalty_discount,
            discount_amount=breakdown.discount_amount,
            total_amount=breakdown.total,
            promo_code=(payload.get('promo_code') or "").strip().upper() if breakdown.promo_discount else "",
            notes=payload.get('notes', ""),
        )
        _persist_items(order, priced.lines)

        if breakdown.loyalty_redemptions:
            try:
                tx = redeem_reward(customer, breakdown.loyalty_redemptions, order=order)
            except LoyaltyError as exc:
                raise OrderValidationError(str(exc), code="loyalty_error")
            order.loyalty_points_used = -tx.points
            order.save(update_fields=['loyalty_points_used'])

        record_offer_uses(order, priced.optimized, priced.bundles_used)

        if confirmed:
            credit_points(order)
            order.refresh_from_db()

        transaction.on_commit(lambda: _queue_confirmation_email(order.id))

    logger.info(
        "Order %s created for foodtruck %s: subtotal=%s discount=%s total=%s status=%s",
        order.pk, foodtruck.pk, order.subtotal, order.discount_amount, order.total_amount, order.status,
    )
    return order
