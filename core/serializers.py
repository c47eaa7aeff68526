from rest_framework import serializers

from .models import Foodtruck


class FoodtruckSerializer(serializers.ModelSerializer):
    class Meta:
        model = Foodtruck
        fields = [
            'id', 'name', 'slug', 'email', 'phone', 'is_active',
            'auto_accept_orders', 'max_orders_per_slot', 'pickup_slot_minutes',
            'offers_stackable', 'promo_codes_stackable',
            'loyalty_enabled', 'loyalty_points_per_euro', 'loyalty_threshold',
            'loyalty_reward', 'loyalty_allow_multiple',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'slug', 'created_at', 'updated_at']

    def validate(self, data):
        threshold = data.get('loyalty_threshold', getattr(self.instance, 'loyalty_threshold', 1))
        if data.get('loyalty_enabled') and not threshold:
            raise serializers.ValidationError("loyalty_threshold must be positive when loyalty is enabled.")
        return data
