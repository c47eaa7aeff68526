from __future__ import annotations

from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models


class Order(models.Model):
    """
    A customer pre-order for a pickup time.

    Amounts are cents computed server-side at checkout:
    ``total_amount = subtotal - discount_amount`` where ``discount_amount``
    is the sum of the offers, promo code and loyalty discounts.
    """
    STATUS_PENDING = "pending"
    STATUS_CONFIRMED = "confirmed"
    STATUS_READY = "ready"
    STATUS_PICKED_UP = "picked_up"
    STATUS_CANCELLED = "cancelled"
    STATUS_REFUSED = "refused"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_CONFIRMED, "Confirmed"),
        (STATUS_READY, "Ready for pickup"),
        (STATUS_PICKED_UP, "Picked up"),
        (STATUS_CANCELLED, "Cancelled"),
        (STATUS_REFUSED, "Refused"),
    ]

    VALID_STATUS_TRANSITIONS = {
        STATUS_PENDING: [STATUS_CONFIRMED, STATUS_REFUSED, STATUS_CANCELLED],
        STATUS_CONFIRMED: [STATUS_READY, STATUS_CANCELLED],
        STATUS_READY: [STATUS_PICKED_UP],
        STATUS_PICKED_UP: [],
        STATUS_CANCELLED: [],
        STATUS_REFUSED: [],
    }

    # Statuses that no longer hold a pickup slot
    INACTIVE_STATUSES = (STATUS_CANCELLED, STATUS_REFUSED)

    foodtruck = models.ForeignKey(
        "core.Foodtruck",
        on_delete=models.CASCADE,
        related_name="orders",
    )
    customer = models.ForeignKey(
        "loyalty.Customer",
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name="orders",
    )
    customer_email = models.EmailField()
    customer_name = models.CharField(max_length=200)
    customer_phone = models.CharField(max_length=20, blank=True)
    pickup_time = models.DateTimeField(db_index=True)

    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_PENDING,
        db_index=True,
    )

    subtotal = models.PositiveIntegerField(default=0, help_text="Cents, before discounts")
    offers_discount = models.PositiveIntegerField(default=0)
    promo_discount = models.PositiveIntegerField(default=0)
    loyalty_discount = models.PositiveIntegerField(default=0)
    discount_amount = models.PositiveIntegerField(default=0, help_text="Sum of all discounts")
    total_amount = models.PositiveIntegerField(default=0)

    promo_code = models.CharField(max_length=50, blank=True)
    loyalty_points_used = models.PositiveIntegerField(default=0)
    loyalty_credited = models.BooleanField(default=False)

    notes = models.TextField(blank=True, max_length=1000)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['foodtruck', 'status'], name='order_ft_status_idx'),
            models.Index(fields=['foodtruck', 'pickup_time'], name='order_ft_pickup_idx'),
            models.Index(fields=['customer_email'], name='order_email_idx'),
        ]

    def can_transition_to(self, new_status: str) -> bool:
        return new_status in self.VALID_STATUS_TRANSITIONS.get(self.status, [])

    def transition_to(self, new_status: str, by_user=None):
        """Move to ``new_status`` if the workflow allows it, then emit ``order_status_changed``."""
        from .signals import order_status_changed

        new_status = (new_status or '').strip().lower()
        old_status = self.status
        if not self.can_transition_to(new_status):
            raise ValidationError(f"Invalid transition from {old_status} to {new_status}")

        self.status = new_status
        self.save(update_fields=['status', 'updated_at'])
        order_status_changed.send(sender=Order, order=self, old=old_status, new=new_status, by_user=by_user)

    @property
    def is_active(self) -> bool:
        return self.status not in self.INACTIVE_STATUSES

    def __str__(self):
        return f"Order #{self.pk} - {self.customer_name} ({self.status})"


class OrderItem(models.Model):
    """
    One ordered line. Lines of a customer-built bundle carry ``bundle_offer``
    and their bundle name in brackets in ``notes``; the bundle's fixed price
    sits on the first line of each instance.
    """
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    menu_item = models.ForeignKey(
        "menu.MenuItem",
        on_delete=models.PROTECT,
        related_name="order_items",
    )
    quantity = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1), MaxValueValidator(999)],
    )
    unit_price = models.PositiveIntegerField(help_text="Cents at time of order, options included")
    notes = models.CharField(max_length=500, blank=True)
    bundle_offer = models.ForeignKey(
        "offers.Offer",
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name="order_items",
    )
    bundle_instance = models.PositiveIntegerField(
        null=True, blank=True,
        help_text="Groups the lines of one bundle when several are ordered"
    )

    class Meta:
        ordering = ['id']

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity

    def __str__(self):
        return f"{self.quantity}x {self.menu_item.name}"


class OrderItemOption(models.Model):
    order_item = models.ForeignKey(OrderItem, on_delete=models.CASCADE, related_name="options")
    option = models.ForeignKey(
        "menu.Option",
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name="+",
    )
    option_name = models.CharField(max_length=100)
    price_modifier = models.IntegerField(default=0)

    class Meta:
        ordering = ['id']

    def __str__(self):
        return self.option_name
