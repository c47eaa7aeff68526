from __future__ import annotations

from django.db import models


class Customer(models.Model):
    """A customer of one foodtruck, identified by email.

    Customers are created at checkout; there is no account behind them.
    ``loyalty_points`` only moves through ``LoyaltyTransaction`` rows.
    """

    foodtruck = models.ForeignKey(
        "core.Foodtruck",
        on_delete=models.CASCADE,
        related_name="customers",
    )
    email = models.EmailField(help_text="Stored lower-cased")
    name = models.CharField(max_length=200, blank=True)
    phone = models.CharField(max_length=20, blank=True)

    loyalty_points = models.IntegerField(default=0)
    loyalty_opt_in = models.BooleanField(default=False)

    total_orders = models.PositiveIntegerField(default=0)
    total_spent = models.PositiveIntegerField(default=0, help_text="Cents")
    last_order_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-last_order_at', 'email']
        constraints = [
            models.UniqueConstraint(fields=['foodtruck', 'email'], name='customer_ft_email_uniq'),
        ]

    def save(self, *args, **kwargs):
        if self.email:
            self.email = self.email.strip().lower()
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.email} ({self.loyalty_points} pts)"


class LoyaltyTransaction(models.Model):
    TYPE_EARN = 'earn'
    TYPE_REDEEM = 'redeem'
    TYPE_ADJUST = 'adjust'
    TYPE_CHOICES = [
        (TYPE_EARN, 'Earned'),
        (TYPE_REDEEM, 'Redeemed'),
        (TYPE_ADJUST, 'Adjustment'),
    ]

    customer = models.ForeignKey(Customer, on_delete=models.CASCADE, related_name="loyalty_transactions")
    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name="loyalty_transactions",
    )
    type = models.CharField(max_length=10, choices=TYPE_CHOICES)
    points = models.IntegerField(help_text="Signed: negative for redemptions")
    balance_after = models.IntegerField()
    description = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at', '-id']

    def __str__(self) -> str:
        return f"{self.customer.email}: {self.points:+d} ({self.type})"
