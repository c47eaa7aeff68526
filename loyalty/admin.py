from django.contrib import admin

from .models import Customer, LoyaltyTransaction


class LoyaltyTransactionInline(admin.TabularInline):
    model = LoyaltyTransaction
    extra = 0
    can_delete = False
    readonly_fields = ('type', 'points', 'balance_after', 'order', 'description', 'created_at')


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ('email', 'foodtruck', 'loyalty_points', 'loyalty_opt_in', 'total_orders', 'total_spent')
    list_filter = ('foodtruck', 'loyalty_opt_in')
    search_fields = ('email', 'name', 'phone')
    readonly_fields = ('loyalty_points', 'total_orders', 'total_spent', 'last_order_at')
    inlines = [LoyaltyTransactionInline]


@admin.register(LoyaltyTransaction)
class LoyaltyTransactionAdmin(admin.ModelAdmin):
    list_display = ('customer', 'type', 'points', 'balance_after', 'order', 'created_at')
    list_filter = ('type',)
    search_fields = ('customer__email', 'description')
