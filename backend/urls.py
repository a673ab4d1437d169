"""
Root URL configuration for the payout backend.

- /api/token/            JWT login (admin users operate the payout endpoints)
- /api/token/refresh/    JWT refresh
- /api/payments/         Stripe onboarding, payouts and webhooks
"""

from django.urls import include, path
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

urlpatterns = [
    path("api/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("api/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    path("api/payments/", include("core.stripe_integration.urls")),
]
