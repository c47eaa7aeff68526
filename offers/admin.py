from django.contrib import admin

from .models import Offer, OfferItem, OfferUse


class OfferItemInline(admin.TabularInline):
    model = OfferItem
    extra = 0


@admin.register(Offer)
class OfferAdmin(admin.ModelAdmin):
    list_display = ('name', 'foodtruck', 'offer_type', 'is_active', 'current_uses', 'total_discount_given')
    list_filter = ('foodtruck', 'offer_type', 'is_active')
    search_fields = ('name', 'description')
    readonly_fields = ('current_uses', 'total_discount_given')
    inlines = [OfferItemInline]


@admin.register(OfferUse)
class OfferUseAdmin(admin.ModelAdmin):
    list_display = ('offer', 'order', 'customer_email', 'discount_amount', 'used_at')
    list_filter = ('offer__offer_type',)
    search_fields = ('customer_email', 'offer__name')
