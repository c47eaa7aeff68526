# menu/api_urls.py
from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .api_views import CategoryViewSet, MenuItemViewSet

router = DefaultRouter()
router.register(r'categories', CategoryViewSet, basename='category')
router.register(r'items', MenuItemViewSet, basename='menuitem')

urlpatterns = [
    path('', include(router.urls)),
]

# /api/menu/categories/?foodtruck=<id>
# /api/menu/items/?foodtruck=<id>&category=<id>
