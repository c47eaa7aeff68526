from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .api_views import CustomerViewSet, LoyaltyLookupView

router = DefaultRouter()
router.register(r'customers', CustomerViewSet, basename='loyalty-customer')

urlpatterns = [
    path('lookup/', LoyaltyLookupView.as_view(), name='loyalty-lookup'),
    path('', include(router.urls)),
]
