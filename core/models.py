from __future__ import annotations

import re

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator, RegexValidator
from django.db import models
from django.utils.html import strip_tags
from django.utils.text import slugify


class Foodtruck(models.Model):
    """A merchant. Owns the menu, the offers, the customers and the orders.

    The pricing settings below drive checkout: whether orders are confirmed
    automatically, how offers and promo codes combine, and how loyalty points
    are earned and redeemed.
    """

    phone_regex = RegexValidator(
        regex=r'^\+?\d{9,15}$',
        message="Phone number must be entered in the format: '+999999999'. Up to 15 digits allowed."
    )

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="foodtrucks",
    )
    name = models.CharField(
        max_length=200,
        help_text="Public name (HTML tags will be stripped)"
    )
    slug = models.SlugField(max_length=220, unique=True, blank=True)
    email = models.EmailField(blank=True, help_text="Contact email, also used as reply-to")
    phone = models.CharField(max_length=20, blank=True, validators=[phone_regex])
    is_active = models.BooleanField(default=True)

    # Ordering
    auto_accept_orders = models.BooleanField(
        default=False,
        help_text="Confirm new orders immediately instead of leaving them pending"
    )
    max_orders_per_slot = models.PositiveIntegerField(
        null=True, blank=True,
        help_text="Maximum orders per pickup slot (empty = unlimited)"
    )
    pickup_slot_minutes = models.PositiveIntegerField(
        default=15,
        validators=[MinValueValidator(5)],
        help_text="Length of a pickup slot in minutes"
    )

    # Offers
    offers_stackable = models.BooleanField(
        default=True,
        help_text="Allow item offers and threshold discounts on the same order"
    )
    promo_codes_stackable = models.BooleanField(
        default=True,
        help_text="Allow a promo code on top of automatic offers"
    )

    # Loyalty
    loyalty_enabled = models.BooleanField(default=False)
    loyalty_points_per_euro = models.PositiveIntegerField(
        default=1,
        help_text="Points earned per euro spent"
    )
    loyalty_threshold = models.PositiveIntegerField(
        default=50,
        validators=[MinValueValidator(1)],
        help_text="Points needed for one reward"
    )
    loyalty_reward = models.PositiveIntegerField(
        default=500,
        help_text="Reward value in cents"
    )
    loyalty_allow_multiple = models.BooleanField(
        default=True,
        help_text="Allow redeeming several rewards on a single order"
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']
        indexes = [
            models.Index(fields=['owner'], name='core_foodtr_owner_i_3c1a2e_idx'),
            models.Index(fields=['is_active'], name='core_foodtr_is_acti_8f0b4d_idx'),
        ]

    def clean(self):
        super().clean()
        if self.name:
            self.name = strip_tags(self.name).strip()
            if not self.name:
                raise ValidationError({'name': 'Name cannot be empty after sanitization.'})
            if re.search(r'[<>"\\]', self.name):
                raise ValidationError({'name': 'Name contains invalid characters.'})

    def save(self, *args, **kwargs):
        if not self.slug:
            base = slugify(self.name) or "foodtruck"
            slug = base
            n = 1
            while Foodtruck.objects.filter(slug=slug).exclude(pk=self.pk).exists():
                n += 1
                slug = f"{base}-{n}"
            self.slug = slug
        super().save(*args, **kwargs)

    def is_managed_by(self, user) -> bool:
        if not user or not getattr(user, "is_authenticated", False):
            return False
        return bool(user.is_staff or self.owner_id == user.id)

    def __str__(self):
        return self.name
