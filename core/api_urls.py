# core/api_urls.py
from rest_framework.routers import DefaultRouter

from .api_views import FoodtruckViewSet

router = DefaultRouter()
router.register(r'foodtrucks', FoodtruckViewSet, basename='foodtruck')

urlpatterns = router.urls
