from __future__ import annotations

import logging

from celery import shared_task
from django.apps import apps
from django.conf import settings
from django.core.mail import send_mail
from django.utils import timezone

logger = logging.getLogger(__name__)


def _euros(cents: int) -> str:
    return f"{cents / 100:.2f} EUR"


def _order_lines(order) -> str:
    rows = []
    for item in order.items.select_related('menu_item').prefetch_related('options'):
        options = ", ".join(o.option_name for o in item.options.all())
        suffix = f" ({options})" if options else ""
        rows.append(f"  {item.quantity} x {item.menu_item.name}{suffix}: {_euros(item.line_total)}")
    return "\n".join(rows)


def _send(order, subject: str, body: str) -> None:
    foodtruck = order.foodtruck
    send_mail(
        subject=subject,
        message=body,
        from_email=getattr(settings, 'DEFAULT_FROM_EMAIL', None),
        recipient_list=[order.customer_email],
        fail_silently=False,
    )
    logger.info("Sent '%s' to %s for order %s (%s)", subject, order.customer_email, order.pk, foodtruck.slug)


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def send_order_confirmation_email_task(self, order_id: int):
    """Receipt sent right after checkout."""
    Order = apps.get_model("orders", "Order")
    order = Order.objects.select_related('foodtruck').filter(pk=order_id).first()
    if order is None:
        logger.warning("Order %s vanished before its confirmation email", order_id)
        return
    if not order.customer_email or order.customer_email == getattr(settings, "ONSITE_CUSTOMER_EMAIL", "surplace@local"):
        return

    pickup = timezone.localtime(order.pickup_time).strftime("%d/%m/%Y %H:%M")
    lines = [
        f"Hello {order.customer_name},",
        "",
        f"Thank you for your order #{order.pk} at {order.foodtruck.name}.",
        f"Pickup: {pickup}",
        f"Status: {order.get_status_display()}",
        "",
        _order_lines(order),
        "",
        f"Subtotal: {_euros(order.subtotal)}",
    ]
    if order.discount_amount:
        lines.append(f"Discounts: -{_euros(order.discount_amount)}")
    lines.append(f"Total: {_euros(order.total_amount)}")
    try:
        _send(order, f"Order #{order.pk} - {order.foodtruck.name}", "\n".join(lines))
    except Exception as exc:
        logger.exception("Confirmation email for order %s failed", order_id)
        raise self.retry(exc=exc)


STATUS_MESSAGES = {
    "confirmed": "Your order has been confirmed.",
    "ready": "Your order is ready for pickup!",
    "cancelled": "Your order has been cancelled.",
    "refused": "Sorry, the foodtruck could not accept your order.",
}


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def send_order_status_email_task(self, order_id: int, status: str):
    """Notify the customer of a status change they care about."""
    message = STATUS_MESSAGES.get(status)
    if message is None:
        return
    Order = apps.get_model("orders", "Order")
    order = Order.objects.select_related('foodtruck').filter(pk=order_id).first()
    if order is None or not order.customer_email:
        return
    if order.customer_email == getattr(settings, "ONSITE_CUSTOMER_EMAIL", "surplace@local"):
        return
    body = f"Hello {order.customer_name},\n\n{message}\n\n{order.foodtruck.name}"
    try:
        _send(order, f"Order #{order.pk}: {order.get_status_display()}", body)
    except Exception as exc:
        logger.exception("Status email for order %s failed", order_id)
        raise self.retry(exc=exc)
