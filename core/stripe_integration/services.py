"""
Service wiring for the Stripe payout integration.

Builds the process-wide gateway, tracker, orchestrator and webhook verifier
from Django settings on first use. All of them are immutable, so sharing one
instance across requests and threads is safe.
"""

from functools import lru_cache

from django.core.exceptions import ImproperlyConfigured

from .config import PayoutConfig
from .gateway import StripeGateway
from .onboarding import AccountOnboardingTracker
from .payouts import PayoutOrchestrator
from .webhooks import WebhookVerifier


@lru_cache(maxsize=None)
def get_payout_config() -> PayoutConfig:
    return PayoutConfig.from_settings()


@lru_cache(maxsize=None)
def get_gateway() -> StripeGateway:
    return StripeGateway(get_payout_config())


def get_onboarding_tracker() -> AccountOnboardingTracker:
    return AccountOnboardingTracker(get_gateway(), get_payout_config())


def get_payout_orchestrator() -> PayoutOrchestrator:
    return PayoutOrchestrator(get_gateway(), get_payout_config())


@lru_cache(maxsize=None)
def get_webhook_verifier() -> WebhookVerifier:
    config = get_payout_config()
    if not config.webhook_secret:
        raise ImproperlyConfigured("STRIPE_WEBHOOK_SECRET must be configured.")
    return WebhookVerifier(
        get_gateway(), config.webhook_secret, tolerance=config.webhook_tolerance
    )
