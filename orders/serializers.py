from rest_framework import serializers

from core.models import Foodtruck

from .models import Order, OrderItem, OrderItemOption
from .services.reconstruction import BUNDLE_NOTE_RE


class CartOptionSerializer(serializers.Serializer):
    option_id = serializers.IntegerField(min_value=1)
    price_modifier = serializers.IntegerField(required=False, allow_null=True)


class CartItemSerializer(serializers.Serializer):
    """One cart line as the storefront sends it."""
    menu_item_id = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(min_value=1, max_value=999, default=1)
    options = CartOptionSerializer(many=True, required=False, default=list)
    notes = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")
    bundle_offer_id = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    bundle_instance = serializers.IntegerField(min_value=1, required=False, allow_null=True)

    def validate_notes(self, value):
        # Bracketed notes are reserved for bundle lines
        match = BUNDLE_NOTE_RE.match(value.strip())
        return match.group(1) if match else value.strip()


class ConsumedItemClaimSerializer(serializers.Serializer):
    menu_item_id = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(min_value=0, max_value=999)


class AppliedOfferClaimSerializer(serializers.Serializer):
    """An offer the storefront believes applies; only sanity-checked against the server's result."""
    offer_id = serializers.IntegerField(min_value=1)
    discount_amount = serializers.IntegerField(min_value=0, required=False, default=0)
    items_consumed = ConsumedItemClaimSerializer(many=True, required=False, default=list)


class CartSerializer(serializers.Serializer):
    """A cart to price: used by the offer previews and the quote endpoint."""
    foodtruck = serializers.PrimaryKeyRelatedField(queryset=Foodtruck.objects.filter(is_active=True))
    items = CartItemSerializer(many=True, allow_empty=False)
    promo_code = serializers.CharField(max_length=50, required=False, allow_blank=True, default="")
    pickup_time = serializers.DateTimeField(required=False)
    customer_email = serializers.EmailField(required=False, allow_blank=True, default="")
    use_loyalty = serializers.BooleanField(required=False, default=False)


class CheckoutSerializer(CartSerializer):
    customer_email = serializers.EmailField()
    customer_name = serializers.CharField(max_length=200)
    customer_phone = serializers.CharField(max_length=20, required=False, allow_blank=True, default="")
    pickup_time = serializers.DateTimeField()
    loyalty_opt_in = serializers.BooleanField(required=False, allow_null=True, default=None)
    applied_offers = AppliedOfferClaimSerializer(many=True, required=False, default=list)
    expected_total = serializers.IntegerField(min_value=0, required=False, allow_null=True)
    notes = serializers.CharField(max_length=1000, required=False, allow_blank=True, default="")
    force_slot = serializers.BooleanField(required=False, default=False)

    def validate_customer_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Name is required.")
        return value


class OrderItemOptionSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItemOption
        fields = ['id', 'option', 'option_name', 'price_modifier']


class OrderItemSerializer(serializers.ModelSerializer):
    menu_item_name = serializers.CharField(source='menu_item.name', read_only=True)
    options = OrderItemOptionSerializer(many=True, read_only=True)
    line_total = serializers.IntegerField(read_only=True)

    class Meta:
        model = OrderItem
        fields = [
            'id', 'menu_item', 'menu_item_name', 'quantity', 'unit_price', 'line_total',
            'notes', 'bundle_offer', 'bundle_instance', 'options',
        ]


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)
    foodtruck_name = serializers.CharField(source='foodtruck.name', read_only=True)

    class Meta:
        model = Order
        fields = [
            'id', 'foodtruck', 'foodtruck_name', 'customer_email', 'customer_name', 'customer_phone',
            'pickup_time', 'status', 'subtotal', 'offers_discount', 'promo_discount',
            'loyalty_discount', 'discount_amount', 'total_amount', 'promo_code',
            'loyalty_points_used', 'notes', 'items', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class OrderStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Order.STATUS_CHOICES)
