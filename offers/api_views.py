from __future__ import annotations

from django.db.models import Q
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from core.models import Foodtruck
from core.permissions import IsFoodtruckOwner, IsFoodtruckOwnerOrReadOnly
from orders.serializers import CartSerializer
from orders.services.checkout import price_cart
from orders.services.validation import OrderValidationError

from .engine import OFFER_PROMO_CODE
from .models import Offer
from .serializers import OfferSerializer, PromoCodeCheckSerializer
from .services import get_applicable_offers, get_offer_stats, is_within_schedule, validate_promo_code


class OfferViewSet(viewsets.ModelViewSet):
    """
    Offers of a foodtruck.

    The public only sees offers running now, and never promo codes; owners
    see and manage all of their offers. Cart previews (``optimize``,
    ``applicable``) run the same engine as checkout.
    """
    serializer_class = OfferSerializer
    permission_classes = [IsFoodtruckOwnerOrReadOnly]
    filterset_fields = ['offer_type', 'is_active']
    search_fields = ['name', 'description']
    ordering_fields = ['display_order', 'created_at', 'current_uses']
    ordering = ['display_order', '-created_at']

    def get_permissions(self):
        if self.action in ('optimize', 'applicable', 'validate_promo_code'):
            return [AllowAny()]
        if self.action in ('toggle_active', 'stats'):
            return [IsFoodtruckOwner()]
        return super().get_permissions()

    def get_queryset(self):
        qs = Offer.objects.select_related('foodtruck').prefetch_related('offer_items__menu_item')
        foodtruck_id = self.request.query_params.get('foodtruck')
        if foodtruck_id:
            qs = qs.filter(foodtruck_id=foodtruck_id)
        user = self.request.user
        if user and user.is_authenticated and user.is_staff:
            return qs
        now = timezone.now()
        public = (
            Q(is_active=True)
            & (Q(start_date__isnull=True) | Q(start_date__lte=now))
            & (Q(end_date__isnull=True) | Q(end_date__gte=now))
            & ~Q(offer_type=OFFER_PROMO_CODE)
        )
        if user and user.is_authenticated:
            return qs.filter(Q(foodtruck__owner=user) | public)
        return qs.filter(public)

    def list(self, request, *args, **kwargs):
        queryset = self.filter_queryset(self.get_queryset())
        user = request.user
        # Daily and weekly windows are checked in Python
        offers = [
            o for o in queryset
            if o.foodtruck.is_managed_by(user) or is_within_schedule(o, timezone.now())
        ]
        page = self.paginate_queryset(offers)
        if page is not None:
            return self.get_paginated_response(self.get_serializer(page, many=True).data)
        return Response(self.get_serializer(offers, many=True).data)

    def perform_create(self, serializer):
        foodtruck = serializer.validated_data['foodtruck']
        if not foodtruck.is_managed_by(self.request.user):
            raise PermissionDenied("You do not manage this foodtruck.")
        serializer.save()

    def perform_update(self, serializer):
        foodtruck = serializer.validated_data.get('foodtruck')
        if foodtruck is not None and not foodtruck.is_managed_by(self.request.user):
            raise PermissionDenied("You do not manage this foodtruck.")
        serializer.save()

    def _priced_cart(self, request):
        ser = CartSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        payload = dict(ser.validated_data)
        payload.setdefault('pickup_time', timezone.now())
        return payload, price_cart(payload['foodtruck'], payload)

    @action(detail=False, methods=['post'])
    def optimize(self, request):
        """Best combination of offers for a cart."""
        try:
            payload, priced = self._priced_cart(request)
        except OrderValidationError as exc:
            return Response(exc.to_dict(), status=exc.status_code)
        data = priced.optimized.to_dict()
        data['subtotal'] = priced.subtotal
        data['promo_error'] = priced.promo_error
        return Response(data)

    @action(detail=False, methods=['post'])
    def applicable(self, request):
        """Every running offer with the discount it would give alone and the progress towards it."""
        try:
            payload, priced = self._priced_cart(request)
        except OrderValidationError as exc:
            return Response(exc.to_dict(), status=exc.status_code)
        offers = get_applicable_offers(
            payload['foodtruck'],
            priced.cart_lines,
            promo_code=payload.get('promo_code') or None,
            at=payload['pickup_time'],
            customer_email=payload.get('customer_email') or None,
        )
        return Response([o.to_dict() for o in offers])

    @action(detail=False, methods=['post'])
    def validate_promo_code(self, request):
        ser = PromoCodeCheckSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data
        foodtruck = get_object_or_404(Foodtruck, pk=data['foodtruck'], is_active=True)
        result = validate_promo_code(foodtruck, data['code'], data['customer_email'] or None, data['order_amount'])
        return Response(result.to_dict())

    @action(detail=True, methods=['post'])
    def toggle_active(self, request, pk=None):
        offer = self.get_object()
        offer.is_active = not offer.is_active
        offer.save(update_fields=['is_active', 'updated_at'])
        return Response({'id': offer.id, 'is_active': offer.is_active}, status=status.HTTP_200_OK)

    @action(detail=True, methods=['get'])
    def stats(self, request, pk=None):
        return Response(get_offer_stats(self.get_object()))
