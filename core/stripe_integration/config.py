"""
Payout configuration.

`PayoutConfig` is the read-only, process-wide configuration of the payout
integration. It is built once from Django settings (see backend/settings.py)
and handed to the gateway, tracker, orchestrator and webhook verifier at
construction time. Nothing in this app toggles Stripe modes at runtime.

Author: DSP Development Team
Version: 1.0.0
"""

from dataclasses import dataclass

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

LIVE_KEY_PREFIXES = ("sk_live_", "rk_live_")


@dataclass(frozen=True)
class PayoutConfig:
    """
    Immutable settings for the payout integration.

    Attributes:
        secret_key: Stripe secret key (test or live)
        webhook_secret: Signing secret of the webhook endpoint (whsec_...)
        country: Country of connected accounts (e.g. "DE")
        currency: Currency of transfers and payouts (e.g. "eur")
        default_statement_descriptor: Used when a request has none
        onboarding_return_url: Where Stripe sends payees after onboarding
        onboarding_refresh_url: Where Stripe sends payees with an expired link
        test_mode: Enables sandbox-only helpers such as test funding
        webhook_tolerance: Accepted webhook timestamp skew in seconds
        request_timeout: Timeout per Stripe API call in seconds
        api_version: Pinned Stripe API version
    """

    secret_key: str
    webhook_secret: str = ""
    country: str = "DE"
    currency: str = "eur"
    default_statement_descriptor: str = "Payout"
    onboarding_return_url: str = "http://localhost:5173/payouts/onboarding/return"
    onboarding_refresh_url: str = "http://localhost:5173/payouts/onboarding/refresh"
    test_mode: bool = True
    webhook_tolerance: int = 300
    request_timeout: int = 30
    api_version: str = "2024-06-20"

    @property
    def uses_live_key(self) -> bool:
        return self.secret_key.startswith(LIVE_KEY_PREFIXES)

    @property
    def sandbox_allowed(self) -> bool:
        """Test helpers need the test-mode flag AND a non-live key."""
        return self.test_mode and not self.uses_live_key

    @classmethod
    def from_settings(cls) -> "PayoutConfig":
        """
        Build the configuration from Django settings.

        Raises:
            ImproperlyConfigured: If no Stripe secret key is configured
        """
        secret_key = getattr(settings, "STRIPE_SECRET_KEY", "")
        if not secret_key:
            raise ImproperlyConfigured(
                "STRIPE_SECRET_KEY must be configured "
                "(set STRIPE_TEST_SECRET_KEY or STRIPE_LIVE_SECRET_KEY)."
            )

        return cls(
            secret_key=secret_key,
            webhook_secret=getattr(settings, "STRIPE_WEBHOOK_SECRET", ""),
            country=getattr(settings, "STRIPE_CONNECT_COUNTRY", "DE"),
            currency=getattr(settings, "DEFAULT_CURRENCY", "eur").lower(),
            default_statement_descriptor=getattr(
                settings, "STRIPE_PAYOUT_STATEMENT_DESCRIPTOR", "Payout"
            ),
            onboarding_return_url=settings.STRIPE_ONBOARDING_RETURN_URL,
            onboarding_refresh_url=settings.STRIPE_ONBOARDING_REFRESH_URL,
            test_mode=not getattr(settings, "STRIPE_LIVE_MODE", False),
            webhook_tolerance=int(getattr(settings, "STRIPE_WEBHOOK_TOLERANCE", 300)),
            request_timeout=int(getattr(settings, "STRIPE_REQUEST_TIMEOUT", 30)),
            api_version=getattr(settings, "STRIPE_API_VERSION", "2024-06-20"),
        )
