from django.db.models import Q
from rest_framework import viewsets
from rest_framework.exceptions import PermissionDenied

from core.permissions import IsFoodtruckOwnerOrReadOnly

from .models import Category, MenuItem
from .serializers import CategorySerializer, MenuItemSerializer


class FoodtruckScopedMixin:
    """Filter by ``?foodtruck=<id>`` and only let owners create under their truck."""

    def filter_foodtruck(self, queryset):
        foodtruck_id = self.request.query_params.get('foodtruck')
        if foodtruck_id:
            queryset = queryset.filter(foodtruck_id=foodtruck_id)
        return queryset

    def perform_create(self, serializer):
        foodtruck = serializer.validated_data['foodtruck']
        if not foodtruck.is_managed_by(self.request.user):
            raise PermissionDenied("You do not manage this foodtruck.")
        serializer.save()


class CategoryViewSet(FoodtruckScopedMixin, viewsets.ModelViewSet):
    serializer_class = CategorySerializer
    permission_classes = [IsFoodtruckOwnerOrReadOnly]
    ordering_fields = ['display_order', 'name']
    ordering = ['display_order', 'name']

    def get_queryset(self):
        return self.filter_foodtruck(Category.objects.all())


class MenuItemViewSet(FoodtruckScopedMixin, viewsets.ModelViewSet):
    """
    Menu items. The public sees orderable items only; owners also see
    unavailable and archived ones.
    """
    serializer_class = MenuItemSerializer
    permission_classes = [IsFoodtruckOwnerOrReadOnly]
    filterset_fields = ['category', 'is_available']
    search_fields = ['name', 'description']
    ordering_fields = ['display_order', 'name', 'price']
    ordering = ['display_order', 'name']

    def get_queryset(self):
        qs = MenuItem.objects.select_related('category').prefetch_related('option_groups__options')
        qs = self.filter_foodtruck(qs)
        user = self.request.user
        if not (user and user.is_authenticated):
            qs = qs.filter(is_available=True, is_archived=False)
        elif not user.is_staff:
            qs = qs.filter(Q(foodtruck__owner=user) | Q(is_available=True, is_archived=False))
        return qs
