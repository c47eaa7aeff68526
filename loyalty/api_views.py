from __future__ import annotations

from django.shortcuts import get_object_or_404
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from core.models import Foodtruck
from core.permissions import IsFoodtruckOwner

from .models import Customer
from .serializers import (
    AdjustPointsSerializer,
    CustomerSerializer,
    LoyaltyLookupSerializer,
    LoyaltyTransactionSerializer,
)
from .services import LoyaltyError, adjust_points, get_customer_loyalty


class LoyaltyLookupView(APIView):
    """GET ?foodtruck=<id>&email=<email>: the balance a customer sees at checkout."""
    permission_classes = [AllowAny]

    def get(self, request):
        params = LoyaltyLookupSerializer(data=request.query_params)
        params.is_valid(raise_exception=True)
        foodtruck = get_object_or_404(Foodtruck, pk=params.validated_data['foodtruck'], is_active=True)
        info = get_customer_loyalty(foodtruck, params.validated_data['email'])
        return Response(info.to_dict())


class CustomerViewSet(mixins.ListModelMixin,
                      mixins.RetrieveModelMixin,
                      mixins.UpdateModelMixin,
                      viewsets.GenericViewSet):
    """A merchant's customers, with their loyalty history."""
    serializer_class = CustomerSerializer
    permission_classes = [IsFoodtruckOwner]
    filterset_fields = ['foodtruck', 'loyalty_opt_in']
    search_fields = ['email', 'name', 'phone']
    ordering_fields = ['loyalty_points', 'total_spent', 'total_orders', 'last_order_at']

    def get_queryset(self):
        qs = Customer.objects.select_related('foodtruck')
        user = self.request.user
        if not user.is_staff:
            qs = qs.filter(foodtruck__owner=user)
        return qs

    @action(detail=True, methods=['post'])
    def adjust(self, request, pk=None):
        """Body: {delta: int, description?: str}"""
        customer = self.get_object()
        ser = AdjustPointsSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        try:
            tx = adjust_points(customer, ser.validated_data['delta'], ser.validated_data['description'])
        except LoyaltyError as exc:
            return Response({'error': str(exc), 'code': 'loyalty_error'}, status=status.HTTP_400_BAD_REQUEST)
        return Response(LoyaltyTransactionSerializer(tx).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['get'])
    def transactions(self, request, pk=None):
        customer = self.get_object()
        ser = LoyaltyTransactionSerializer(customer.loyalty_transactions.all()[:200], many=True)
        return Response(ser.data)
