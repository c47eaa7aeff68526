from __future__ import annotations

from rest_framework.permissions import BasePermission, SAFE_METHODS


def foodtruck_of(obj):
    """Walk from an owned object (offer, order, customer...) up to its foodtruck."""
    if hasattr(obj, "is_managed_by"):
        return obj
    return getattr(obj, "foodtruck", None)


class IsFoodtruckOwnerOrReadOnly(BasePermission):
    """Reads are public; writes need the owning merchant or staff."""

    def has_permission(self, request, view):
        if request.method in SAFE_METHODS:
            return True
        return bool(request.user and request.user.is_authenticated)

    def has_object_permission(self, request, view, obj):
        if request.method in SAFE_METHODS:
            return True
        foodtruck = foodtruck_of(obj)
        return bool(foodtruck and foodtruck.is_managed_by(request.user))


class IsFoodtruckOwner(BasePermission):
    """Owner or staff only, for reads and writes alike."""

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated)

    def has_object_permission(self, request, view, obj):
        foodtruck = foodtruck_of(obj)
        return bool(foodtruck and foodtruck.is_managed_by(request.user))
