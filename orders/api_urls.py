from rest_framework.routers import SimpleRouter

from .api_views import OrderViewSet

router = SimpleRouter()
router.register(r'', OrderViewSet, basename='order')

urlpatterns = router.urls
