from __future__ import annotations

from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator
from django.db import models
from django.utils.html import strip_tags


class Category(models.Model):
    """A section of a foodtruck menu. Bundles and offers match on it."""

    foodtruck = models.ForeignKey(
        "core.Foodtruck",
        on_delete=models.CASCADE,
        related_name="categories",
    )
    name = models.CharField(
        max_length=100,
        help_text="Category name (HTML tags will be stripped)",
    )
    display_order = models.PositiveIntegerField(
        default=0,
        validators=[MaxValueValidator(9999)],
        help_text="Display order (0-9999)"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name_plural = "Categories"
        ordering = ['display_order', 'name']
        unique_together = [["foodtruck", "name"]]
        indexes = [
            models.Index(fields=["foodtruck", "display_order"], name="menu_cat_ft_order_idx"),
        ]

    def clean(self):
        super().clean()
        if self.name:
            self.name = strip_tags(self.name).strip()
            if not self.name:
                raise ValidationError({'name': 'Category name cannot be empty after removing HTML tags.'})

    def __str__(self):
        return self.name


class MenuItem(models.Model):
    """A sellable dish. ``price`` is in cents and may be overridden by a size option."""

    foodtruck = models.ForeignKey(
        "core.Foodtruck",
        on_delete=models.CASCADE,
        related_name="menu_items",
    )
    category = models.ForeignKey(
        Category,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="items",
    )
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    price = models.PositiveIntegerField(help_text="Base price in cents")
    is_available = models.BooleanField(
        default=True,
        help_text="Temporarily out of stock when unchecked"
    )
    is_archived = models.BooleanField(
        default=False,
        help_text="Archived items are hidden but kept for past orders"
    )
    display_order = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['display_order', 'name']
        indexes = [
            models.Index(fields=["foodtruck", "is_available", "is_archived"], name="menu_item_ft_avail_idx"),
            models.Index(fields=["category", "display_order"], name="menu_item_cat_order_idx"),
        ]

    def clean(self):
        super().clean()
        if self.name:
            self.name = strip_tags(self.name).strip()
        if self.category_id and self.category.foodtruck_id != self.foodtruck_id:
            raise ValidationError({'category': 'Category belongs to another foodtruck.'})

    @property
    def is_orderable(self) -> bool:
        return self.is_available and not self.is_archived

    def __str__(self):
        return self.name


class OptionGroup(models.Model):
    """Options offered on one menu item (sauces, extras, sizes...)."""

    menu_item = models.ForeignKey(
        MenuItem,
        on_delete=models.CASCADE,
        related_name="option_groups",
    )
    name = models.CharField(max_length=100)
    is_required = models.BooleanField(default=False)
    is_multiple = models.BooleanField(
        default=False,
        help_text="Allow selecting several options from this group"
    )
    is_size_group = models.BooleanField(
        default=False,
        help_text="Options of a size group carry the full item price for that size"
    )
    display_order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['display_order', 'id']

    def __str__(self):
        return f"{self.menu_item.name} / {self.name}"


class Option(models.Model):
    option_group = models.ForeignKey(
        OptionGroup,
        on_delete=models.CASCADE,
        related_name="options",
    )
    name = models.CharField(max_length=100)
    price_modifier = models.IntegerField(
        default=0,
        help_text="Cents added to the item price; for size options, the full price"
    )
    is_available = models.BooleanField(default=True)
    display_order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['display_order', 'id']

    @property
    def is_size_option(self) -> bool:
        return self.option_group.is_size_group

    def __str__(self):
        return self.name
