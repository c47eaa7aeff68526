from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Dict, Iterable, Mapping, Optional

from django.conf import settings
from django.utils import timezone

logger = logging.getLogger(__name__)


class OrderValidationError(Exception):
    """A checkout the server refuses; ``code`` and ``status_code`` go back to the client as is."""

    def __init__(self, message: str, code: str = "invalid_order", status_code: int = 400, **extra):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.extra = extra

    def to_dict(self) -> dict:
        data = {"error": self.message, "code": self.code}
        data.update(self.extra)
        return data


def validate_pickup_time(pickup_time: Optional[datetime], now: Optional[datetime] = None) -> None:
    if pickup_time is None:
        raise OrderValidationError("Pickup time is required", code="pickup_time_required")
    now = now or timezone.now()
    grace = getattr(settings, "ORDER_PICKUP_GRACE_SECONDS", 60)
    if pickup_time < now - timedelta(seconds=grace):
        raise OrderValidationError("Pickup time is in the past", code="pickup_time_past")


def validate_cart_size(items: Iterable[Mapping]) -> None:
    """Refuse carts holding more than ``ORDER_MAX_UNITS`` units in total."""
    limit = getattr(settings, "ORDER_MAX_UNITS", 100)
    units = sum(int(item.get('quantity') or 1) for item in items)
    if units > limit:
        raise OrderValidationError(
            f"An order cannot hold more than {limit} items", code="too_many_items"
        )


def validate_menu_items(foodtruck, items: Iterable[Mapping], menu_items: Mapping[int, object]) -> None:
    """Every ordered item must exist, belong to ``foodtruck`` and be orderable."""
    for item in items:
        menu_item_id = int(item['menu_item_id'])
        menu_item = menu_items.get(menu_item_id)
        if menu_item is None or menu_item.foodtruck_id != foodtruck.id:
            raise OrderValidationError(f"Menu item {menu_item_id} not found", code="menu_item_not_found")
        if menu_item.is_archived or not menu_item.is_available:
            raise OrderValidationError(f"'{menu_item.name}' is not available", code="menu_item_unavailable")


def validate_option_prices(items: Iterable[Mapping], options: Mapping[int, object]) -> None:
    """
    Check the options sent with each item.

    The stored ``price_modifier`` is what gets charged; a client figure is
    only checked for sanity: never negative, never more than
    ``ORDER_OPTION_PRICE_MAX_RATIO`` times the stored one.
    """
    ratio = getattr(settings, "ORDER_OPTION_PRICE_MAX_RATIO", 10)
    for item in items:
        menu_item_id = int(item['menu_item_id'])
        seen_groups: Dict[int, int] = {}
        for selected in item.get('options') or []:
            option_id = int(selected['option_id'])
            option = options.get(option_id)
            if option is None or option.option_group.menu_item_id != menu_item_id:
                raise OrderValidationError(f"Option {option_id} not found for this item", code="option_not_found")
            if not option.is_available:
                raise OrderValidationError(f"Option '{option.name}' is not available", code="option_unavailable")
            group = option.option_group
            seen_groups[group.id] = seen_groups.get(group.id, 0) + 1
            if seen_groups[group.id] > 1 and not group.is_multiple:
                raise OrderValidationError(
                    f"Only one option can be chosen in '{group.name}'", code="option_group_single"
                )

            claimed = selected.get('price_modifier')
            if claimed is None:
                continue
            claimed = int(claimed)
            if claimed < 0:
                raise OrderValidationError("Option price cannot be negative", code="invalid_option_price")
            if claimed > abs(option.price_modifier) * ratio:
                logger.warning(
                    "Option %s price %s far above stored %s", option_id, claimed, option.price_modifier
                )
                raise OrderValidationError("Option price does not match the menu", code="invalid_option_price")


def slot_bounds(foodtruck, pickup_time: datetime):
    """Start and end of the pickup slot that contains ``pickup_time``."""
    minutes = max(1, foodtruck.pickup_slot_minutes)
    local = timezone.localtime(pickup_time) if timezone.is_aware(pickup_time) else pickup_time
    midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)
    elapsed = int((local - midnight).total_seconds() // 60)
    start = midnight + timedelta(minutes=(elapsed // minutes) * minutes)
    return start, start + timedelta(minutes=minutes)


def check_slot_availability(foodtruck, pickup_time: datetime, force_slot: bool = False) -> None:
    """Raise a 409 when the pickup slot already holds ``max_orders_per_slot`` active orders."""
    from orders.models import Order

    if force_slot or not foodtruck.max_orders_per_slot:
        return
    start, end = slot_bounds(foodtruck, pickup_time)
    taken = (
        Order.objects.filter(foodtruck=foodtruck, pickup_time__gte=start, pickup_time__lt=end)
        .exclude(status__in=Order.INACTIVE_STATUSES)
        .count()
    )
    if taken >= foodtruck.max_orders_per_slot:
        raise OrderValidationError(
            "This pickup slot is full, please choose another time",
            code="slot_full",
            status_code=409,
        )


def validate_order_total(server_total: int, client_total: Optional[int]) -> None:
    """Refuse the order when the client displayed a different total than the server computed."""
    if client_total is None:
        return
    tolerance = getattr(settings, "ORDER_PRICE_TOLERANCE_CENTS", 1)
    if abs(int(client_total) - server_total) > tolerance:
        logger.warning("Price mismatch: client %s, server %s", client_total, server_total)
        raise OrderValidationError(
            "The order total has changed, please review your order",
            code="price_mismatch",
            status_code=409,
            server_total=server_total,
        )
