from django.db import transaction
from rest_framework import serializers

from .engine import OFFER_BUNDLE, OFFER_PROMO_CODE, OfferConfigError, parse_config
from .models import Offer, OfferItem
from .services import needs_offer_items


class OfferItemSerializer(serializers.ModelSerializer):
    menu_item_name = serializers.CharField(source='menu_item.name', read_only=True)

    class Meta:
        model = OfferItem
        fields = ['id', 'menu_item', 'menu_item_name', 'role', 'quantity']
        read_only_fields = ['id']


class OfferSerializer(serializers.ModelSerializer):
    """Offer with its items; items are written together with the offer."""
    offer_items = OfferItemSerializer(many=True, required=False)
    remaining_uses = serializers.IntegerField(read_only=True)

    class Meta:
        model = Offer
        fields = [
            'id', 'foodtruck', 'name', 'description', 'offer_type', 'config',
            'is_active', 'start_date', 'end_date', 'time_start', 'time_end', 'days_of_week',
            'max_uses', 'max_uses_per_customer', 'current_uses', 'remaining_uses',
            'total_discount_given', 'display_order', 'offer_items',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'current_uses', 'total_discount_given', 'created_at', 'updated_at']

    def validate_days_of_week(self, value):
        if value is None:
            return value
        if not isinstance(value, list) or any(not isinstance(d, int) or not 0 <= d <= 6 for d in value):
            raise serializers.ValidationError("Days must be integers between 0 (Sunday) and 6.")
        return sorted(set(value))

    def validate(self, data):
        instance = self.instance
        offer_type = data.get('offer_type', getattr(instance, 'offer_type', None))
        config = data.get('config', getattr(instance, 'config', None)) or {}
        foodtruck = data.get('foodtruck', getattr(instance, 'foodtruck', None))
        try:
            parse_config(offer_type, config)
        except OfferConfigError as exc:
            raise serializers.ValidationError({'config': str(exc)})

        start = data.get('start_date', getattr(instance, 'start_date', None))
        end = data.get('end_date', getattr(instance, 'end_date', None))
        if start and end and start >= end:
            raise serializers.ValidationError({'end_date': 'End date must be after start date.'})

        if offer_type == OFFER_PROMO_CODE:
            code = str(config.get('code', '')).strip().upper()
            others = Offer.objects.filter(foodtruck=foodtruck, offer_type=OFFER_PROMO_CODE)
            if instance is not None:
                others = others.exclude(pk=instance.pk)
            if any(str((o.config or {}).get('code', '')).strip().upper() == code for o in others):
                raise serializers.ValidationError({'config': f"Promo code {code} already exists."})

        items = data.get('offer_items')
        if items is None and instance is not None:
            items = [{'menu_item': i.menu_item, 'role': i.role} for i in instance.offer_items.all()]
        items = items or []
        for item in items:
            if foodtruck is not None and item['menu_item'].foodtruck_id != foodtruck.id:
                raise serializers.ValidationError({'offer_items': 'Menu items must belong to the same foodtruck.'})
        if needs_offer_items(offer_type, config):
            wanted = OfferItem.ROLE_BUNDLE_ITEM if offer_type == OFFER_BUNDLE else OfferItem.ROLE_TRIGGER
            if not any(item['role'] == wanted for item in items):
                raise serializers.ValidationError({'offer_items': f"At least one '{wanted}' item is required."})
        return data

    @transaction.atomic
    def create(self, validated_data):
        items = validated_data.pop('offer_items', [])
        offer = Offer.objects.create(**validated_data)
        OfferItem.objects.bulk_create([OfferItem(offer=offer, **item) for item in items])
        return offer

    @transaction.atomic
    def update(self, instance, validated_data):
        items = validated_data.pop('offer_items', None)
        offer = super().update(instance, validated_data)
        if items is not None:
            offer.offer_items.all().delete()
            OfferItem.objects.bulk_create([OfferItem(offer=offer, **item) for item in items])
        return offer


class PromoCodeCheckSerializer(serializers.Serializer):
    foodtruck = serializers.IntegerField()
    code = serializers.CharField(max_length=50)
    customer_email = serializers.EmailField(required=False, allow_blank=True, default="")
    order_amount = serializers.IntegerField(min_value=0)
