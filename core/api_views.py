# core/api_views.py
from rest_framework import mixins, viewsets

from .models import Foodtruck
from .permissions import IsFoodtruckOwnerOrReadOnly
from .serializers import FoodtruckSerializer


class FoodtruckViewSet(mixins.ListModelMixin,
                       mixins.RetrieveModelMixin,
                       mixins.UpdateModelMixin,
                       viewsets.GenericViewSet):
    """Public foodtruck profiles and settings; owners update their own."""
    serializer_class = FoodtruckSerializer
    permission_classes = [IsFoodtruckOwnerOrReadOnly]
    search_fields = ['name']
    ordering_fields = ['name', 'created_at']

    def get_queryset(self):
        qs = Foodtruck.objects.all()
        user = self.request.user
        if not (user and user.is_authenticated and user.is_staff):
            qs = qs.filter(is_active=True)
        return qs
