from django.contrib import admin

from .models import Order, OrderItem, OrderItemOption


class OrderItemOptionInline(admin.TabularInline):
    model = OrderItemOption
    extra = 0
    readonly_fields = ('option', 'option_name', 'price_modifier')


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ('menu_item', 'quantity', 'unit_price', 'notes', 'bundle_offer', 'bundle_instance')
    show_change_link = True


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ('id', 'foodtruck', 'customer_name', 'pickup_time', 'status', 'total_amount', 'created_at')
    list_filter = ('foodtruck', 'status')
    search_fields = ('customer_name', 'customer_email', 'customer_phone', 'promo_code')
    date_hierarchy = 'pickup_time'
    readonly_fields = (
        'subtotal', 'offers_discount', 'promo_discount', 'loyalty_discount',
        'discount_amount', 'total_amount', 'loyalty_points_used', 'loyalty_credited',
    )
    inlines = [OrderItemInline]


@admin.register(OrderItem)
class OrderItemAdmin(admin.ModelAdmin):
    list_display = ('order', 'menu_item', 'quantity', 'unit_price', 'bundle_offer')
    inlines = [OrderItemOptionInline]
