# foodtruck_backend/urls.py
from __future__ import annotations

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView, SpectacularSwaggerView

urlpatterns = [
    path("admin/", admin.site.urls),

    # DRF browsable login for merchants
    path("api/auth/", include("rest_framework.urls")),

    # OpenAPI
    path("api/schema/", SpectacularAPIView.as_view(), name="schema"),
    path("api/docs/", SpectacularSwaggerView.as_view(url_name="schema"), name="swagger-ui"),
    path("api/redoc/", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),

    # APIs
    path("api/", include(("core.api_urls", "core_api"), namespace="core_api")),
    path("api/menu/", include(("menu.api_urls", "menu_api"), namespace="menu_api")),
    path("api/offers/", include(("offers.api_urls", "offers_api"), namespace="offers_api")),
    path("api/loyalty/", include(("loyalty.api_urls", "loyalty_api"), namespace="loyalty_api")),
    path("api/orders/", include(("orders.api_urls", "orders_api"), namespace="orders_api")),
]
