"""
Rebuild how an order's discounts break down, for the order status page.

Display-only: totals stored on the order stay authoritative. Older orders
without ``items_consumed`` or ``bundle_instance`` fall back on heuristics.
"""
from __future__ import annotations

import re
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from offers.engine import MODE_CATEGORY, OFFER_BUNDLE, OFFER_BUY_X_GET_Y, OFFER_PROMO_CODE, OfferConfigError

BUNDLE_NOTE_RE = re.compile(r'^\[(.+)\]$')


@dataclass
class SummaryItem:
    menu_item_id: int
    name: str
    quantity: int
    unit_price: int
    options: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'menu_item_id': self.menu_item_id,
            'name': self.name,
            'quantity': self.quantity,
            'unit_price': self.unit_price,
            'options': list(self.options),
        }


@dataclass
class SummaryBundle:
    name: str
    quantity: int
    total: int
    items: List[SummaryItem] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'quantity': self.quantity,
            'total': self.total,
            'items': [i.to_dict() for i in self.items],
        }


@dataclass
class SummaryOffer:
    offer_id: int
    name: str
    offer_type: str
    times_applied: int
    discount_amount: int
    free_item_name: Optional[str] = None
    items: List[SummaryItem] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'offer_id': self.offer_id,
            'name': self.name,
            'offer_type': self.offer_type,
            'times_applied': self.times_applied,
            'discount_amount': self.discount_amount,
            'free_item_name': self.free_item_name,
            'items': [i.to_dict() for i in self.items],
        }


@dataclass
class OrderSummary:
    bundles: List[SummaryBundle]
    offers: List[SummaryOffer]
    items: List[SummaryItem]
    loyalty_discount: int
    promo_discount: int

    def to_dict(self) -> dict:
        return {
            'bundles': [b.to_dict() for b in self.bundles],
            'offers': [o.to_dict() for o in self.offers],
            'items': [i.to_dict() for i in self.items],
            'loyalty_discount': self.loyalty_discount,
            'promo_discount': self.promo_discount,
        }


def _summary_item(order_item, quantity: Optional[int] = None) -> SummaryItem:
    return SummaryItem(
        menu_item_id=order_item.menu_item_id,
        name=order_item.menu_item.name,
        quantity=order_item.quantity if quantity is None else quantity,
        unit_price=order_item.unit_price,
        options=[o.option_name for o in order_item.options.all()],
    )


def _manual_bundles(items) -> List[SummaryBundle]:
    # Keyed by offer as well as name: two bundles may share a name
    groups: "OrderedDict[Tuple[Optional[int], str], list]" = OrderedDict()
    for item in items:
        match = BUNDLE_NOTE_RE.match((item.notes or "").strip())
        if match:
            groups.setdefault((item.bundle_offer_id, match.group(1)), []).append(item)
    bundles = []
    for (_, name), group in groups.items():
        instances = {i.bundle_instance for i in group if i.bundle_instance is not None}
        if instances:
            count = len(instances)
        else:
            count = max(1, sum(1 for i in group if i.unit_price > 0))
        bundles.append(SummaryBundle(
            name=name,
            quantity=count,
            total=sum(i.line_total for i in group),
            items=[_summary_item(i) for i in group],
        ))
    return bundles


def _take(remaining: Dict[int, int], item_id: int, wanted: int) -> int:
    taken = min(wanted, remaining.get(item_id, 0))
    if taken:
        remaining[item_id] -= taken
    return taken


def _guess_bundle_items(offer, times: int, pool, remaining: Dict[int, int]) -> Dict[int, int]:
    """Match bundle slots against leftover items, most expensive first."""
    consumed: Dict[int, int] = {}
    try:
        config = offer.parsed_config
    except OfferConfigError:
        return consumed
    by_price = sorted(pool, key=lambda i: -i.unit_price)
    for _ in range(max(1, times)):
        if config.mode == MODE_CATEGORY:
            for slot in config.bundle_categories:
                needed = slot.quantity
                for item in by_price:
                    if needed <= 0:
                        break
                    category = item.menu_item.category_id
                    if category is None or str(category) not in slot.category_ids:
                        continue
                    taken = _take(remaining, item.menu_item_id, needed)
                    needed -= taken
                    if taken:
                        consumed[item.menu_item_id] = consumed.get(item.menu_item_id, 0) + taken
        else:
            for offer_item in offer.offer_items.all():
                taken = _take(remaining, offer_item.menu_item_id, offer_item.quantity)
                if taken:
                    consumed[offer_item.menu_item_id] = consumed.get(offer_item.menu_item_id, 0) + taken
    return consumed


def reconstruct_order(order) -> OrderSummary:
    items = list(order.items.select_related('menu_item').prefetch_related('options'))
    bundles = _manual_bundles(items)
    pool = [i for i in items if not BUNDLE_NOTE_RE.match((i.notes or "").strip())]
    remaining: Dict[int, int] = {}
    for item in pool:
        remaining[item.menu_item_id] = remaining.get(item.menu_item_id, 0) + item.quantity
    names = {i.menu_item_id: i for i in pool}

    # Promo code uses are reported through promo_discount
    uses = [
        u for u in order.offer_uses.select_related('offer').prefetch_related('offer__offer_items')
        if u.offer.offer_type != OFFER_PROMO_CODE
    ]
    grouped: "OrderedDict[int, list]" = OrderedDict()
    for use in uses:
        grouped.setdefault(use.offer_id, []).append(use)

    offers = []
    for offer_id, offer_uses in grouped.items():
        offer = offer_uses[0].offer
        if offer.offer_type == OFFER_BUNDLE and not any(u.discount_amount for u in offer_uses):
            # Customer-built bundle, already shown with the bundles
            continue
        consumed: Dict[int, int] = {}
        stored = [entry for u in offer_uses for entry in (u.items_consumed or [])]
        if stored:
            for entry in stored:
                item_id = int(entry.get('menu_item_id'))
                taken = _take(remaining, item_id, int(entry.get('quantity') or 0))
                if taken:
                    consumed[item_id] = consumed.get(item_id, 0) + taken
        elif offer.offer_type == OFFER_BUNDLE:
            consumed = _guess_bundle_items(offer, len(offer_uses), pool, remaining)

        free_name = next((u.free_item_name for u in offer_uses if u.free_item_name), None)
        offers.append(SummaryOffer(
            offer_id=offer_id,
            name=offer.name,
            offer_type=offer.offer_type,
            times_applied=len(offer_uses),
            discount_amount=sum(u.discount_amount for u in offer_uses),
            free_item_name=free_name if offer.offer_type == OFFER_BUY_X_GET_Y else None,
            items=[_summary_item(names[k], quantity=v) for k, v in consumed.items() if k in names],
        ))

    leftovers = []
    for item in pool:
        left = remaining.get(item.menu_item_id, 0)
        if left <= 0:
            continue
        quantity = min(left, item.quantity)
        remaining[item.menu_item_id] -= quantity
        leftovers.append(_summary_item(item, quantity=quantity))

    offer_total = sum(u.discount_amount for u in uses)
    loyalty = max(0, order.discount_amount - offer_total - order.promo_discount)
    return OrderSummary(
        bundles=bundles,
        offers=offers,
        items=leftovers,
        loyalty_discount=loyalty,
        promo_discount=order.promo_discount,
    )
