from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from django.conf import settings
from django.db import transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone

from .engine import (
    ITEM_LEVEL_TYPES,
    MODE_SPECIFIC,
    OFFER_BUY_X_GET_Y,
    OFFER_PROMO_CODE,
    ApplicableOffer,
    CartLine,
    OfferConfigError,
    OfferRule,
    OptimizedOffers,
    applicable_offers,
    compute_discount,
    optimize_offers,
)
from .models import Offer, OfferItem, OfferUse

logger = logging.getLogger(__name__)


class OfferValidationError(Exception):
    """Raised when an offer (or a client's claim about one) does not hold."""
    pass


# ---------------------------------------------------------------------------
# Availability windows
# ---------------------------------------------------------------------------

def js_weekday(moment: datetime) -> int:
    """Day index with 0 = Sunday, as stored in ``Offer.days_of_week``."""
    return moment.isoweekday() % 7


def is_offer_live(offer: Offer, at: Optional[datetime] = None) -> bool:
    """Active, inside its date range, and inside its daily/weekly window at ``at``."""
    if not offer.is_active:
        return False
    at = at or timezone.now()
    if offer.start_date and at < offer.start_date:
        return False
    if offer.end_date and at > offer.end_date:
        return False
    return is_within_schedule(offer, at)


def is_within_schedule(offer: Offer, at: datetime) -> bool:
    local = timezone.localtime(at) if timezone.is_aware(at) else at
    if offer.days_of_week and js_weekday(local) not in offer.days_of_week:
        return False
    if offer.time_start and offer.time_end:
        minutes = local.hour * 60 + local.minute
        start = offer.time_start.hour * 60 + offer.time_start.minute
        end = offer.time_end.hour * 60 + offer.time_end.minute
        if not (start <= minutes <= end):
            return False
    return True


def is_bundle_valid_for_pickup(offer: Offer, pickup_time: Optional[datetime]) -> bool:
    """Whether a customer-built bundle may be ordered for that pickup time."""
    if pickup_time is None:
        return True
    return is_within_schedule(offer, pickup_time)


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------

def customer_use_count(offer: Offer, customer_email: Optional[str]) -> int:
    if not customer_email:
        return 0
    return (
        OfferUse.objects.filter(offer=offer, customer_email__iexact=customer_email.strip())
        .values('order_id').distinct().count()
    )


def to_rule(offer: Offer) -> OfferRule:
    """Engine view of an offer; raises OfferConfigError on a broken config."""
    config = offer.parsed_config
    triggers, rewards, bundle = set(), set(), []
    for item in offer.offer_items.all():
        key = str(item.menu_item_id)
        if item.role == OfferItem.ROLE_TRIGGER:
            triggers.add(key)
        elif item.role == OfferItem.ROLE_REWARD:
            rewards.add(key)
        else:
            bundle.append((key, item.quantity))
    return OfferRule(
        offer_id=offer.id,
        name=offer.name,
        offer_type=offer.offer_type,
        config=config,
        trigger_items=frozenset(triggers),
        reward_items=frozenset(rewards),
        bundle_items=tuple(bundle),
        max_applications=offer.remaining_uses,
        display_order=offer.display_order,
        description=offer.description,
    )


def live_offers(foodtruck, at: Optional[datetime] = None):
    at = at or timezone.now()
    qs = (
        Offer.objects.filter(foodtruck=foodtruck, is_active=True)
        .filter(Q(start_date__isnull=True) | Q(start_date__lte=at))
        .filter(Q(end_date__isnull=True) | Q(end_date__gte=at))
        .prefetch_related('offer_items')
    )
    return [offer for offer in qs if is_within_schedule(offer, at)]


def build_rules(foodtruck, at: Optional[datetime] = None,
                customer_email: Optional[str] = None) -> List[OfferRule]:
    """Rules for every offer usable at ``at`` by ``customer_email``.

    Offers that ran out of uses, globally or for this customer, are left out.
    Offers with a config the engine cannot read are skipped and logged.
    """
    rules = []
    for offer in live_offers(foodtruck, at):
        if offer.remaining_uses == 0:
            continue
        if offer.max_uses_per_customer and customer_use_count(offer, customer_email) >= offer.max_uses_per_customer:
            continue
        try:
            rules.append(to_rule(offer))
        except OfferConfigError as exc:
            logger.warning("Skipping offer %s with invalid config: %s", offer.pk, exc)
    return rules


def get_optimized_offers(foodtruck, lines: Sequence[CartLine], promo_code: Optional[str] = None,
                         at: Optional[datetime] = None, customer_email: Optional[str] = None,
                         rules: Optional[Sequence[OfferRule]] = None,
                         subtotal: Optional[int] = None) -> OptimizedOffers:
    if rules is None:
        rules = build_rules(foodtruck, at, customer_email)
    return optimize_offers(
        lines,
        rules,
        promo_code=promo_code,
        promo_codes_stackable=foodtruck.promo_codes_stackable,
        offers_stackable=foodtruck.offers_stackable,
        max_permutation=getattr(settings, "OFFER_OPTIMIZER_MAX_PERMUTATION", 6),
        subtotal=subtotal,
    )


def get_applicable_offers(foodtruck, lines: Sequence[CartLine], promo_code: Optional[str] = None,
                          at: Optional[datetime] = None,
                          customer_email: Optional[str] = None) -> List[ApplicableOffer]:
    rules = build_rules(foodtruck, at, customer_email)
    return applicable_offers(lines, rules, promo_code=promo_code)


# ---------------------------------------------------------------------------
# Promo codes
# ---------------------------------------------------------------------------

@dataclass
class PromoCodeValidation:
    is_valid: bool
    offer_id: Optional[int] = None
    discount_type: Optional[str] = None
    discount_value: Optional[int] = None
    max_discount: Optional[int] = None
    calculated_discount: Optional[int] = None
    error_message: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            'is_valid': self.is_valid,
            'offer_id': self.offer_id,
            'discount_type': self.discount_type,
            'discount_value': self.discount_value,
            'max_discount': self.max_discount,
            'calculated_discount': self.calculated_discount,
            'error_message': self.error_message,
        }


def find_promo_offer(foodtruck, code: str) -> Optional[Offer]:
    code = (code or "").strip().upper()
    if not code:
        return None
    for offer in Offer.objects.filter(foodtruck=foodtruck, offer_type=OFFER_PROMO_CODE):
        if str((offer.config or {}).get('code', '')).strip().upper() == code:
            return offer
    return None


def validate_promo_code(foodtruck, code: str, customer_email: Optional[str],
                        order_amount: int, at: Optional[datetime] = None) -> PromoCodeValidation:
    """Check a promo code for a given order amount, in the order a customer would hit the problems."""
    at = at or timezone.now()
    offer = find_promo_offer(foodtruck, code)
    if offer is None:
        return PromoCodeValidation(False, error_message="Invalid promo code")
    if not offer.is_active:
        return PromoCodeValidation(False, offer_id=offer.id, error_message="This promo code is no longer active")
    if offer.start_date and at < offer.start_date:
        return PromoCodeValidation(False, offer_id=offer.id, error_message="This promo code is not valid yet")
    if offer.end_date and at > offer.end_date:
        return PromoCodeValidation(False, offer_id=offer.id, error_message="This promo code has expired")
    try:
        cfg = offer.parsed_config
    except OfferConfigError as exc:
        logger.warning("Promo offer %s has invalid config: %s", offer.pk, exc)
        return PromoCodeValidation(False, offer_id=offer.id, error_message="Invalid promo code")
    if order_amount < cfg.min_order_amount:
        return PromoCodeValidation(
            False, offer_id=offer.id,
            error_message=f"Minimum order amount of {cfg.min_order_amount / 100:.2f} EUR required",
        )
    if offer.max_uses is not None and offer.current_uses >= offer.max_uses:
        return PromoCodeValidation(False, offer_id=offer.id, error_message="This promo code has reached its usage limit")
    if offer.max_uses_per_customer and customer_use_count(offer, customer_email) >= offer.max_uses_per_customer:
        return PromoCodeValidation(False, offer_id=offer.id, error_message="You have already used this promo code")

    return PromoCodeValidation(
        True,
        offer_id=offer.id,
        discount_type=cfg.discount_type,
        discount_value=cfg.discount_value,
        max_discount=cfg.max_discount,
        calculated_discount=compute_discount(order_amount, cfg.discount_type, cfg.discount_value, cfg.max_discount),
    )


# ---------------------------------------------------------------------------
# Client claims
# ---------------------------------------------------------------------------

def _claim_int(value) -> int:
    if value in (None, ""):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        raise OfferValidationError(f"Malformed applied offer value: {value!r}")


def validate_applied_offers(foodtruck, claimed: Iterable[dict], lines: Sequence[CartLine],
                            at: Optional[datetime] = None) -> None:
    """Reject a client's list of applied offers that cannot be true for this cart.

    Raises OfferValidationError. Only sanity is checked here; the discount
    actually granted always comes from the server-side optimisation.
    """
    claimed = list(claimed or [])
    if not claimed:
        return
    if any(not isinstance(c, Mapping) for c in claimed):
        raise OfferValidationError("Malformed applied offers")
    at = at or timezone.now()
    ids = {_claim_int(c.get('offer_id')) for c in claimed if c.get('offer_id') is not None}
    offers = {o.id: o for o in Offer.objects.filter(id__in=ids)}
    for offer_id in ids:
        offer = offers.get(offer_id)
        if offer is None or offer.foodtruck_id != foodtruck.id:
            raise OfferValidationError(f"Offer {offer_id} not found")
        if not offer.is_active:
            raise OfferValidationError(f"Offer '{offer.name}' is no longer active")
        if (offer.start_date and at < offer.start_date) or (offer.end_date and at > offer.end_date):
            raise OfferValidationError(f"Offer '{offer.name}' is not valid at this date")

    in_cart: Dict[str, int] = defaultdict(int)
    for line in lines:
        if line.bundle_id is None:
            in_cart[str(line.menu_item_id)] += line.quantity
    consumed: Dict[str, int] = defaultdict(int)
    for claim in claimed:
        for item in claim.get('items_consumed') or []:
            if not isinstance(item, Mapping):
                raise OfferValidationError("Malformed applied offers")
            consumed[str(_claim_int(item.get('menu_item_id')))] += _claim_int(item.get('quantity'))
    for item_id, quantity in consumed.items():
        if quantity > in_cart.get(item_id, 0):
            raise OfferValidationError("Offers consume more items than the cart contains")

    cart_total = sum(line.total for line in lines)
    claimed_discount = sum(_claim_int(c.get('discount_amount')) for c in claimed)
    if claimed_discount > cart_total:
        raise OfferValidationError("Offer discount exceeds the cart total")


# ---------------------------------------------------------------------------
# Tracking
# ---------------------------------------------------------------------------

def record_offer_uses(order, optimized: OptimizedOffers,
                      bundles_used: Iterable[Tuple[Offer, int]] = ()) -> List[OfferUse]:
    """Persist one OfferUse per application and bump the offers' counters.

    The discount is split evenly between applications, the remainder going
    to the first one so rows add up to the applied discount.
    """
    created = []
    email = (order.customer_email or "").strip().lower()
    offers = {o.id: o for o in Offer.objects.filter(id__in=[a.offer_id for a in optimized.applied_offers])}
    with transaction.atomic():
        for applied in optimized.applied_offers:
            offer = offers.get(applied.offer_id)
            if offer is None:
                continue
            times = max(1, applied.times_applied)
            share, remainder = divmod(applied.discount_amount, times)
            for n in range(times):
                created.append(OfferUse(
                    offer=offer,
                    order=order,
                    customer_email=email,
                    discount_amount=share + (remainder if n == 0 else 0),
                    free_item_name=(applied.free_item_name or "") if applied.offer_type == OFFER_BUY_X_GET_Y else "",
                    items_consumed=[c.to_dict() for c in applied.items_consumed] if n == 0 else [],
                ))
            offer.record_usage(times, applied.discount_amount)

        for offer, count in bundles_used:
            for _ in range(count):
                created.append(OfferUse(offer=offer, order=order, customer_email=email, discount_amount=0))
            offer.record_usage(count, 0)

        OfferUse.objects.bulk_create(created)
    logger.info("Recorded %d offer uses for order %s", len(created), order.pk)
    return created


def get_offer_stats(offer: Offer) -> dict:
    agg = offer.uses.aggregate(
        total_uses=Count('id'),
        total_discount=Sum('discount_amount'),
        unique_customers=Count('customer_email', distinct=True, filter=~Q(customer_email='')),
    )
    return {
        'offer_id': offer.id,
        'total_uses': agg['total_uses'] or 0,
        'total_discount': agg['total_discount'] or 0,
        'unique_customers': agg['unique_customers'] or 0,
        'current_uses': offer.current_uses,
        'total_discount_given': offer.total_discount_given,
    }


def needs_offer_items(offer_type: str, config: dict) -> bool:
    return offer_type in ITEM_LEVEL_TYPES and (config or {}).get("type", MODE_SPECIFIC) == MODE_SPECIFIC
