from rest_framework.routers import SimpleRouter

from .api_views import OfferViewSet

router = SimpleRouter()
router.register(r'', OfferViewSet, basename='offer')

urlpatterns = router.urls
