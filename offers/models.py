from __future__ import annotations

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import F
from django.utils import timezone

from .engine import (
    OFFER_BUNDLE,
    OFFER_BUY_X_GET_Y,
    OFFER_PROMO_CODE,
    OFFER_THRESHOLD,
    OfferConfigError,
    parse_config,
)


class Offer(models.Model):
    """A promotion configured by a foodtruck.

    The shape of ``config`` depends on ``offer_type`` and is validated by the
    engine's config classes. Item-level offers (bundles, buy-X-get-Y in
    specific-items mode) list their menu items as ``OfferItem`` rows.
    """

    OFFER_TYPE_CHOICES = [
        (OFFER_BUNDLE, 'Bundle'),
        (OFFER_BUY_X_GET_Y, 'Buy X get Y'),
        (OFFER_PROMO_CODE, 'Promo code'),
        (OFFER_THRESHOLD, 'Threshold discount'),
    ]

    foodtruck = models.ForeignKey(
        "core.Foodtruck",
        on_delete=models.CASCADE,
        related_name="offers",
    )
    name = models.CharField(max_length=128)
    description = models.TextField(blank=True, max_length=500)
    offer_type = models.CharField(max_length=32, choices=OFFER_TYPE_CHOICES)
    config = models.JSONField(default=dict, help_text="Type-specific settings, amounts in cents")

    is_active = models.BooleanField(default=True)
    start_date = models.DateTimeField(null=True, blank=True)
    end_date = models.DateTimeField(null=True, blank=True)
    time_start = models.TimeField(null=True, blank=True, help_text="Daily start (pickup time)")
    time_end = models.TimeField(null=True, blank=True, help_text="Daily end, inclusive")
    days_of_week = models.JSONField(
        null=True, blank=True,
        help_text="Allowed pickup days, 0 = Sunday ... 6 = Saturday (empty = every day)"
    )

    max_uses = models.PositiveIntegerField(
        null=True, blank=True,
        validators=[MinValueValidator(1)],
        help_text="Maximum applications across all orders"
    )
    max_uses_per_customer = models.PositiveIntegerField(
        null=True, blank=True,
        validators=[MinValueValidator(1)],
        help_text="Maximum orders per customer email using this offer"
    )
    current_uses = models.PositiveIntegerField(default=0)
    total_discount_given = models.PositiveIntegerField(default=0, help_text="Cents")
    display_order = models.IntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['display_order', '-created_at']
        indexes = [
            models.Index(fields=['foodtruck', 'is_active'], name='offer_ft_active_idx'),
            models.Index(fields=['offer_type'], name='offer_type_idx'),
        ]

    def clean(self):
        super().clean()
        try:
            parse_config(self.offer_type, self.config)
        except OfferConfigError as exc:
            raise ValidationError({'config': str(exc)})
        if self.start_date and self.end_date and self.start_date >= self.end_date:
            raise ValidationError({'end_date': 'End date must be after start date.'})
        if self.days_of_week is not None:
            if not isinstance(self.days_of_week, list) or any(
                not isinstance(d, int) or d < 0 or d > 6 for d in self.days_of_week
            ):
                raise ValidationError({'days_of_week': 'Days must be integers between 0 (Sunday) and 6.'})

    @property
    def parsed_config(self):
        return parse_config(self.offer_type, self.config)

    @property
    def remaining_uses(self):
        if self.max_uses is None:
            return None
        return max(0, self.max_uses - self.current_uses)

    def record_usage(self, times: int, discount: int) -> None:
        Offer.objects.filter(pk=self.pk).update(
            current_uses=F('current_uses') + times,
            total_discount_given=F('total_discount_given') + discount,
        )
        self.refresh_from_db(fields=['current_uses', 'total_discount_given'])

    def __str__(self) -> str:
        return f"{self.name} ({self.get_offer_type_display()})"


class OfferItem(models.Model):
    ROLE_TRIGGER = 'trigger'
    ROLE_REWARD = 'reward'
    ROLE_BUNDLE_ITEM = 'bundle_item'
    ROLE_CHOICES = [
        (ROLE_TRIGGER, 'Trigger'),
        (ROLE_REWARD, 'Reward'),
        (ROLE_BUNDLE_ITEM, 'Bundle item'),
    ]

    offer = models.ForeignKey(Offer, on_delete=models.CASCADE, related_name="offer_items")
    menu_item = models.ForeignKey("menu.MenuItem", on_delete=models.CASCADE, related_name="offer_items")
    role = models.CharField(max_length=16, choices=ROLE_CHOICES)
    quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])

    class Meta:
        ordering = ['id']

    def __str__(self) -> str:
        return f"{self.offer.name}: {self.quantity} x {self.menu_item.name} ({self.role})"


class OfferUse(models.Model):
    """One application of an offer on an order."""

    offer = models.ForeignKey(Offer, on_delete=models.CASCADE, related_name="uses")
    order = models.ForeignKey("orders.Order", on_delete=models.CASCADE, related_name="offer_uses")
    customer_email = models.EmailField(blank=True)
    discount_amount = models.PositiveIntegerField(default=0, help_text="Cents")
    free_item_name = models.CharField(max_length=200, blank=True)
    items_consumed = models.JSONField(default=list, blank=True)
    used_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['used_at', 'id']
        indexes = [
            models.Index(fields=['offer', 'customer_email'], name='offeruse_offer_email_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.offer.name} on order #{self.order_id} (-{self.discount_amount})"
