from django.contrib import admin

from .models import Category, MenuItem, OptionGroup, Option


class OptionInline(admin.TabularInline):
    model = Option
    extra = 0


class OptionGroupInline(admin.TabularInline):
    model = OptionGroup
    extra = 0
    show_change_link = True


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ('name', 'foodtruck', 'display_order')
    list_filter = ('foodtruck',)
    search_fields = ('name',)
    ordering = ('foodtruck', 'display_order', 'name')


@admin.register(MenuItem)
class MenuItemAdmin(admin.ModelAdmin):
    list_display = ('name', 'foodtruck', 'category', 'price', 'is_available', 'is_archived')
    list_filter = ('foodtruck', 'category', 'is_available', 'is_archived')
    list_editable = ('is_available',)
    search_fields = ('name', 'description')
    inlines = [OptionGroupInline]


@admin.register(OptionGroup)
class OptionGroupAdmin(admin.ModelAdmin):
    list_display = ('name', 'menu_item', 'is_required', 'is_multiple', 'is_size_group')
    list_filter = ('is_size_group',)
    inlines = [OptionInline]
