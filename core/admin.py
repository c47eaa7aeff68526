from django.contrib import admin

from .models import Foodtruck


@admin.register(Foodtruck)
class FoodtruckAdmin(admin.ModelAdmin):
    list_display = ('name', 'owner', 'is_active', 'auto_accept_orders', 'loyalty_enabled', 'created_at')
    list_filter = ('is_active', 'auto_accept_orders', 'loyalty_enabled')
    search_fields = ('name', 'slug', 'email', 'owner__username')
    readonly_fields = ('slug', 'created_at', 'updated_at')

    fieldsets = (
        ('Basic Information', {
            'fields': ('owner', 'name', 'slug', 'email', 'phone', 'is_active')
        }),
        ('Ordering', {
            'fields': ('auto_accept_orders', 'max_orders_per_slot', 'pickup_slot_minutes')
        }),
        ('Offers', {
            'fields': ('offers_stackable', 'promo_codes_stackable')
        }),
        ('Loyalty', {
            'fields': (
                'loyalty_enabled', 'loyalty_points_per_euro', 'loyalty_threshold',
                'loyalty_reward', 'loyalty_allow_multiple',
            )
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )
