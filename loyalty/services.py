from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Optional

from django.conf import settings
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from .models import Customer, LoyaltyTransaction

logger = logging.getLogger(__name__)


class LoyaltyError(Exception):
    """Raised when a redemption or adjustment cannot be honoured."""
    pass


def onsite_email() -> str:
    return getattr(settings, "ONSITE_CUSTOMER_EMAIL", "surplace@local")


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


@dataclass
class CustomerLoyaltyInfo:
    customer_id: Optional[int]
    loyalty_points: int
    threshold: int
    reward: int
    allow_multiple: bool
    points_per_euro: int
    opt_in: bool
    can_redeem: bool
    redeemable_count: int
    max_discount: int
    progress_percent: int

    def to_dict(self) -> dict:
        return asdict(self)


def points_for_amount(amount_cents: int, points_per_euro: int) -> int:
    """Points earned for a paid amount; partial euros do not count."""
    if amount_cents <= 0 or points_per_euro <= 0:
        return 0
    return (amount_cents * points_per_euro) // 100


def redeemable_count(foodtruck, points: int, opt_in: bool) -> int:
    threshold = foodtruck.loyalty_threshold
    if not foodtruck.loyalty_enabled or not opt_in or threshold <= 0 or points < threshold:
        return 0
    count = points // threshold
    return count if foodtruck.loyalty_allow_multiple else min(1, count)


def loyalty_info_for(foodtruck, customer: Optional[Customer]) -> CustomerLoyaltyInfo:
    points = customer.loyalty_points if customer else 0
    opt_in = customer.loyalty_opt_in if customer else False
    count = redeemable_count(foodtruck, points, opt_in)
    threshold = foodtruck.loyalty_threshold
    progress = min(100, (points * 100) // threshold) if threshold > 0 else 0
    return CustomerLoyaltyInfo(
        customer_id=customer.id if customer else None,
        loyalty_points=points,
        threshold=threshold,
        reward=foodtruck.loyalty_reward,
        allow_multiple=foodtruck.loyalty_allow_multiple,
        points_per_euro=foodtruck.loyalty_points_per_euro,
        opt_in=opt_in,
        can_redeem=count > 0,
        redeemable_count=count,
        max_discount=foodtruck.loyalty_reward * count,
        progress_percent=progress,
    )


def get_customer_loyalty(foodtruck, email: Optional[str]) -> CustomerLoyaltyInfo:
    """Loyalty status of ``email`` at ``foodtruck``; unknown emails get an empty balance."""
    email = normalize_email(email)
    customer = Customer.objects.filter(foodtruck=foodtruck, email=email).first() if email else None
    return loyalty_info_for(foodtruck, customer)


def upsert_customer(foodtruck, email: str, name: str = "", phone: str = "",
                    opt_in: Optional[bool] = None, amount: int = 0) -> Customer:
    """Create or update the customer behind an order and bump their order stats."""
    email = normalize_email(email)
    customer, created = Customer.objects.select_for_update().get_or_create(
        foodtruck=foodtruck,
        email=email,
        defaults={'name': name or "", 'phone': phone or "", 'loyalty_opt_in': bool(opt_in)},
    )
    updates = {
        'total_orders': F('total_orders') + 1,
        'total_spent': F('total_spent') + max(0, amount),
        'last_order_at': timezone.now(),
    }
    if not created:
        if name:
            updates['name'] = name
        if phone:
            updates['phone'] = phone
        if opt_in is not None:
            updates['loyalty_opt_in'] = bool(opt_in)
    Customer.objects.filter(pk=customer.pk).update(**updates)
    customer.refresh_from_db()
    return customer


def _apply(customer: Customer, points: int, tx_type: str, description: str, order=None) -> LoyaltyTransaction:
    Customer.objects.filter(pk=customer.pk).update(loyalty_points=F('loyalty_points') + points)
    customer.refresh_from_db(fields=['loyalty_points'])
    return LoyaltyTransaction.objects.create(
        customer=customer,
        order=order,
        type=tx_type,
        points=points,
        balance_after=customer.loyalty_points,
        description=description,
    )


@transaction.atomic
def credit_points(order) -> Optional[LoyaltyTransaction]:
    """Credit the points earned by a confirmed order, once.

    Returns None when nothing is credited: loyalty disabled, no opt-in, the
    on-site placeholder customer, zero points or an order already credited.
    """
    from orders.models import Order

    order = Order.objects.select_for_update().select_related('foodtruck', 'customer').get(pk=order.pk)
    foodtruck = order.foodtruck
    customer = order.customer
    if order.loyalty_credited:
        return None
    if not foodtruck.loyalty_enabled or customer is None:
        return None
    if normalize_email(order.customer_email) == onsite_email():
        logger.info("Skipping loyalty credit for on-site order %s", order.pk)
        return None
    if not customer.loyalty_opt_in:
        logger.warning("Customer %s has not opted in, order %s earns no points", customer.pk, order.pk)
        return None

    points = points_for_amount(order.total_amount, foodtruck.loyalty_points_per_euro)
    Order.objects.filter(pk=order.pk).update(loyalty_credited=True)
    if points <= 0:
        return None
    tx = _apply(customer, points, LoyaltyTransaction.TYPE_EARN, f"Order #{order.pk}", order=order)
    logger.info("Credited %d loyalty points to customer %s for order %s", points, customer.pk, order.pk)
    return tx


@transaction.atomic
def redeem_reward(customer: Customer, count: int, order=None) -> LoyaltyTransaction:
    """Spend ``threshold * count`` points; raises LoyaltyError when the balance is short."""
    if count <= 0:
        raise LoyaltyError("Nothing to redeem")
    customer = Customer.objects.select_for_update().select_related('foodtruck').get(pk=customer.pk)
    foodtruck = customer.foodtruck
    if not foodtruck.loyalty_enabled:
        raise LoyaltyError("Loyalty program is disabled")
    cost = foodtruck.loyalty_threshold * count
    if customer.loyalty_points < cost:
        raise LoyaltyError(
            f"Insufficient loyalty points: {customer.loyalty_points} available, {cost} required"
        )
    description = f"{count} reward(s)" + (f" on order #{order.pk}" if order is not None else "")
    return _apply(customer, -cost, LoyaltyTransaction.TYPE_REDEEM, description, order=order)


@transaction.atomic
def adjust_points(customer: Customer, delta: int, description: str = "") -> LoyaltyTransaction:
    """Manual correction by the merchant; the balance never goes below zero."""
    customer = Customer.objects.select_for_update().get(pk=customer.pk)
    if delta == 0:
        raise LoyaltyError("delta must not be zero")
    if customer.loyalty_points + delta < 0:
        raise LoyaltyError("Adjustment would make the balance negative")
    tx = _apply(customer, delta, LoyaltyTransaction.TYPE_ADJUST, description or "Manual adjustment")
    logger.info("Adjusted customer %s by %+d points", customer.pk, delta)
    return tx
