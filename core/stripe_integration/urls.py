from django.urls import path
from .views import (
    AccountPayoutListView,
    BalanceView,
    ConnectedAccountStatusView,
    ConnectedAccountView,
    CreateCheckoutSessionView,
    OnboardingLinkView,
    PayoutStatusView,
    SendMoneyView,
    StripeWebhookView,
    TestFundsView,
)

app_name = "stripe_integration"

urlpatterns = [
    path("stripe/accounts/", ConnectedAccountView.as_view(), name="stripe-accounts"),
    path("stripe/accounts/<str:account_id>/", ConnectedAccountStatusView.as_view(), name="stripe-account-status"),
    path("stripe/accounts/<str:account_id>/onboarding-link/", OnboardingLinkView.as_view(), name="stripe-onboarding-link"),
    path("stripe/accounts/<str:account_id>/payouts/", AccountPayoutListView.as_view(), name="stripe-account-payouts"),
    path("stripe/payouts/", SendMoneyView.as_view(), name="stripe-send-money"),
    path("stripe/payouts/<str:payout_id>/", PayoutStatusView.as_view(), name="stripe-payout-status"),
    path("stripe/balance/", BalanceView.as_view(), name="stripe-balance"),
    path("stripe/balance/test-funds/", TestFundsView.as_view(), name="stripe-test-funds"),
    path("stripe/checkout-session/", CreateCheckoutSessionView.as_view(), name="stripe-checkout-session"),
    path("stripe/webhook/", StripeWebhookView.as_view(), name="stripe-webhook"),
]
