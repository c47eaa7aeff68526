from rest_framework import serializers

from .models import Category, MenuItem, OptionGroup, Option


class OptionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Option
        fields = ['id', 'name', 'price_modifier', 'is_available', 'display_order']


class OptionGroupSerializer(serializers.ModelSerializer):
    options = OptionSerializer(many=True, read_only=True)

    class Meta:
        model = OptionGroup
        fields = ['id', 'name', 'is_required', 'is_multiple', 'is_size_group', 'display_order', 'options']


class CategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = Category
        fields = ['id', 'foodtruck', 'name', 'display_order', 'created_at']
        read_only_fields = ['id', 'created_at']

    def validate_name(self, value):
        if not value or not value.strip():
            raise serializers.ValidationError("Name is required.")
        return value.strip()


class MenuItemSerializer(serializers.ModelSerializer):
    """Menu item with its option groups, as the storefront renders it."""
    option_groups = OptionGroupSerializer(many=True, read_only=True)
    category_name = serializers.CharField(source='category.name', read_only=True, default=None)

    class Meta:
        model = MenuItem
        fields = [
            'id', 'foodtruck', 'category', 'category_name', 'name', 'description',
            'price', 'is_available', 'is_archived', 'display_order',
            'option_groups', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate(self, data):
        foodtruck = data.get('foodtruck') or getattr(self.instance, 'foodtruck', None)
        category = data.get('category')
        if category is not None and foodtruck is not None and category.foodtruck_id != foodtruck.id:
            raise serializers.ValidationError({'category': 'Category belongs to another foodtruck.'})
        return data
