from __future__ import annotations

import logging

from django.db import transaction
from django.dispatch import receiver

from loyalty.services import credit_points

from .models import Order
from .signals import order_status_changed

logger = logging.getLogger(__name__)


@receiver(order_status_changed)
def on_order_status_changed(sender, order: Order, old, new, by_user=None, **kwargs):
    logger.info("Order %s: %s -> %s", order.pk, old, new)
    if new == Order.STATUS_CONFIRMED:
        credit_points(order)

    from .tasks import send_order_status_email_task

    order_id = order.pk
    transaction.on_commit(lambda: send_order_status_email_task.delay(order_id, new))
