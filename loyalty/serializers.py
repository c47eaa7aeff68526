from rest_framework import serializers

from .models import Customer, LoyaltyTransaction


class LoyaltyTransactionSerializer(serializers.ModelSerializer):
    class Meta:
        model = LoyaltyTransaction
        fields = ['id', 'order', 'type', 'points', 'balance_after', 'description', 'created_at']
        read_only_fields = fields


class CustomerSerializer(serializers.ModelSerializer):
    class Meta:
        model = Customer
        fields = [
            'id', 'foodtruck', 'email', 'name', 'phone',
            'loyalty_points', 'loyalty_opt_in',
            'total_orders', 'total_spent', 'last_order_at', 'created_at',
        ]
        read_only_fields = [
            'id', 'foodtruck', 'email', 'loyalty_points',
            'total_orders', 'total_spent', 'last_order_at', 'created_at',
        ]


class LoyaltyLookupSerializer(serializers.Serializer):
    foodtruck = serializers.IntegerField()
    email = serializers.EmailField()


class AdjustPointsSerializer(serializers.Serializer):
    delta = serializers.IntegerField()
    description = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")

    def validate_delta(self, value):
        if value == 0:
            raise serializers.ValidationError("delta must not be zero.")
        return value
