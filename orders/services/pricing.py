"""
Server-side pricing of a checkout payload.

Item payloads look like::

    {"menu_item_id": 3, "quantity": 2, "notes": "",
     "options": [{"option_id": 7, "price_modifier": 150}],
     "bundle_offer_id": 12, "bundle_instance": 1}

Prices always come from the database; a client ``price_modifier`` is only
sanity-checked by ``validation.validate_option_prices``.
"""
from __future__ import annotations

from collections import OrderedDict
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from offers.engine import CartLine, OptimizedOffers, compose_bundle
from offers.services import to_rule

from .validation import OrderValidationError


@dataclass
class PricedLine:
    menu_item: object
    quantity: int
    unit_price: int
    options: List[object] = field(default_factory=list)
    size_option: Optional[object] = None
    options_price: int = 0
    notes: str = ""
    bundle_offer: Optional[object] = None
    bundle_instance: Optional[int] = None

    @property
    def total(self) -> int:
        return self.unit_price * self.quantity


def _selected_options(item: Mapping, options: Mapping[int, object]) -> List[object]:
    return [options[int(o['option_id'])] for o in item.get('options') or []]


def _split_size(selected: Sequence[object]) -> Tuple[Optional[object], int]:
    """The size option if any, and the sum of the other modifiers."""
    size = next((o for o in selected if o.option_group.is_size_group), None)
    extras = sum(o.price_modifier for o in selected if o is not size)
    return size, extras


def regular_unit_price(menu_item, selected: Sequence[object]) -> int:
    """A size option carries the full price for that size; other options add on top."""
    size, extras = _split_size(selected)
    base = size.price_modifier if size is not None else menu_item.price
    return base + extras


def calculate_order(items: Sequence[Mapping], menu_items: Mapping[int, object],
                    options: Mapping[int, object]) -> Tuple[List[PricedLine], int]:
    """Price every line; returns the lines and the subtotal in cents.

    Bundle lines (annotated by ``resolve_bundles``) are charged the bundle's
    fixed price on their first line, plus their supplement, plus their
    non-size options unless the bundle makes options free.
    """
    lines = []
    for item in items:
        menu_item = menu_items[int(item['menu_item_id'])]
        selected = _selected_options(item, options)
        size, extras = _split_size(selected)
        if item.get('bundle_offer') is not None:
            unit = int(item.get('bundle_fixed_price') or 0) + int(item.get('bundle_supplement') or 0)
            if not item.get('bundle_free_options'):
                unit += extras
        else:
            unit = regular_unit_price(menu_item, selected)
        lines.append(PricedLine(
            menu_item=menu_item,
            quantity=int(item.get('quantity') or 1),
            unit_price=max(0, unit),
            options=selected,
            size_option=size,
            options_price=extras,
            notes=item.get('notes') or "",
            bundle_offer=item.get('bundle_offer'),
            bundle_instance=item.get('bundle_instance'),
        ))
    return lines, sum(line.total for line in lines)


def build_cart_lines(lines: Sequence[PricedLine]) -> List[CartLine]:
    return [
        CartLine(
            menu_item_id=line.menu_item.id,
            quantity=line.quantity,
            unit_price=line.unit_price,
            category_id=line.menu_item.category_id,
            size_id=line.size_option.id if line.size_option is not None else None,
            options_price=line.options_price,
            name=line.menu_item.name,
            bundle_id=line.bundle_offer.id if line.bundle_offer is not None else None,
        )
        for line in lines
    ]


def resolve_bundles(items: Sequence[Mapping], menu_items: Mapping[int, object],
                    options: Mapping[int, object], bundle_offers: Mapping[int, object]):
    """
    Check customer-built bundles and annotate their lines for pricing.

    Lines are grouped by ``(bundle_offer_id, bundle_instance)``; each group
    must form exactly one instance of the bundle. Returns the annotated item
    copies and ``[(offer, instances)]`` for usage tracking.
    Raises OrderValidationError.
    """
    resolved = [dict(item) for item in items]
    groups: "OrderedDict[Tuple[int, int], List[int]]" = OrderedDict()
    for index, item in enumerate(resolved):
        offer_id = item.get('bundle_offer_id')
        if offer_id in (None, ""):
            continue
        if int(item.get('quantity') or 1) != 1:
            raise OrderValidationError("Bundle lines must have a quantity of 1", code="invalid_bundle")
        instance = int(item.get('bundle_instance') or 1)
        item['bundle_instance'] = instance
        groups.setdefault((int(offer_id), instance), []).append(index)

    used: Dict[int, int] = OrderedDict()
    for (offer_id, instance), indexes in groups.items():
        offer = bundle_offers.get(offer_id)
        if offer is None:
            raise OrderValidationError(f"Bundle {offer_id} not found", code="bundle_not_found")
        rule = to_rule(offer)
        cart_lines = []
        for index in indexes:
            item = resolved[index]
            menu_item = menu_items[int(item['menu_item_id'])]
            selected = _selected_options(item, options)
            size, extras = _split_size(selected)
            cart_lines.append(CartLine(
                menu_item_id=menu_item.id,
                quantity=1,
                unit_price=regular_unit_price(menu_item, selected),
                category_id=menu_item.category_id,
                size_id=size.id if size is not None else None,
                options_price=extras,
                name=menu_item.name,
            ))
        supplements = compose_bundle(rule, cart_lines)
        if supplements is None:
            raise OrderValidationError(
                f"The items chosen do not make up the bundle '{offer.name}'", code="invalid_bundle"
            )
        for position, index in enumerate(indexes):
            resolved[index].update({
                'bundle_offer': offer,
                'bundle_fixed_price': rule.config.fixed_price if position == 0 else 0,
                'bundle_supplement': supplements[position],
                'bundle_free_options': rule.config.free_options,
                'notes': f"[{offer.name}]",
            })
        used[offer_id] = used.get(offer_id, 0) + 1
    return resolved, [(bundle_offers[offer_id], count) for offer_id, count in used.items()]


@dataclass
class PriceBreakdown:
    subtotal: int
    offers_discount: int = 0
    promo_discount: int = 0
    loyalty_discount: int = 0
    loyalty_redemptions: int = 0
    total: int = 0

    @property
    def discount_amount(self) -> int:
        return self.offers_discount + self.promo_discount + self.loyalty_discount

    def to_dict(self) -> dict:
        data = asdict(self)
        data['discount_amount'] = self.discount_amount
        return data


def compute_price_breakdown(subtotal: int, optimized: Optional[OptimizedOffers], loyalty_info=None,
                            use_loyalty: bool = False,
                            promo_discount_override: Optional[int] = None) -> PriceBreakdown:
    """Stack the discounts in order: offers, promo code, then loyalty on what is left."""
    offers = optimized.offers_discount if optimized else 0
    promo = optimized.promo_discount if optimized else 0
    if promo_discount_override is not None:
        promo = promo_discount_override
    offers = min(offers, subtotal)
    promo = min(promo, subtotal - offers)
    remaining = subtotal - offers - promo

    loyalty, redemptions = 0, 0
    if use_loyalty and loyalty_info is not None and loyalty_info.can_redeem and loyalty_info.reward > 0:
        # Only spend the rewards the remaining amount can absorb
        needed = -(-remaining // loyalty_info.reward)
        redemptions = min(loyalty_info.redeemable_count, needed)
        loyalty = min(loyalty_info.reward * redemptions, remaining)

    return PriceBreakdown(
        subtotal=subtotal,
        offers_discount=offers,
        promo_discount=promo,
        loyalty_discount=loyalty,
        loyalty_redemptions=redemptions,
        total=max(0, subtotal - offers - promo - loyalty),
    )
