from __future__ import annotations

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.utils import timezone
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from core.permissions import IsFoodtruckOwner

from .models import Order
from .serializers import CartSerializer, CheckoutSerializer, OrderSerializer, OrderStatusSerializer
from .services.checkout import create_order, quote_order
from .services.reconstruction import reconstruct_order
from .services.validation import OrderValidationError

logger = logging.getLogger(__name__)


class OrderViewSet(mixins.CreateModelMixin,
                   mixins.ListModelMixin,
                   mixins.RetrieveModelMixin,
                   viewsets.GenericViewSet):
    """
    Checkout and order tracking.

    Customers place (``create``), price (``quote``) and follow (``retrieve``,
    ``summary``) orders without an account; merchants list their orders and
    move them through the workflow with ``update_status``.
    """
    serializer_class = OrderSerializer
    filterset_fields = ['foodtruck', 'status']
    ordering_fields = ['created_at', 'pickup_time', 'total_amount']
    ordering = ['-created_at']

    PUBLIC_ACTIONS = ('create', 'quote', 'retrieve', 'summary')

    def get_permissions(self):
        if self.action in self.PUBLIC_ACTIONS:
            return [AllowAny()]
        return [IsFoodtruckOwner()]

    def get_queryset(self):
        qs = Order.objects.select_related('foodtruck').prefetch_related('items__menu_item', 'items__options')
        if self.action in self.PUBLIC_ACTIONS:
            return qs
        user = self.request.user
        if not user.is_staff:
            qs = qs.filter(foodtruck__owner=user)
        return qs

    def create(self, request, *args, **kwargs):
        ser = CheckoutSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        payload = ser.validated_data
        foodtruck = payload['foodtruck']
        force_slot = payload.get('force_slot') and foodtruck.is_managed_by(request.user)
        try:
            order = create_order(foodtruck, payload, force_slot=bool(force_slot))
        except OrderValidationError as exc:
            return Response(exc.to_dict(), status=exc.status_code)
        return Response(
            {'message': 'Order created', 'order': OrderSerializer(order).data},
            status=status.HTTP_201_CREATED,
        )

    @action(detail=False, methods=['post'])
    def quote(self, request):
        """Price a cart as checkout would, without placing the order."""
        ser = CartSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        payload = dict(ser.validated_data)
        payload.setdefault('pickup_time', timezone.now())
        try:
            data = quote_order(payload['foodtruck'], payload)
        except OrderValidationError as exc:
            return Response(exc.to_dict(), status=exc.status_code)
        return Response(data)

    @action(detail=True, methods=['get'])
    def summary(self, request, pk=None):
        order = self.get_object()
        return Response(reconstruct_order(order).to_dict())

    @action(detail=True, methods=['post'])
    def update_status(self, request, pk=None):
        order = self.get_object()
        ser = OrderStatusSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        try:
            order.transition_to(ser.validated_data['status'], by_user=request.user)
        except DjangoValidationError as exc:
            return Response(
                {'error': exc.messages[0], 'code': 'invalid_transition'},
                status=status.HTTP_400_BAD_REQUEST,
            )
        order.refresh_from_db()
        return Response(OrderSerializer(order).data)
