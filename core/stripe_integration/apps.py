"""
Stripe Integration AppConfig
============================

This module defines the Django application configuration for
`core.stripe_integration`. It is responsible for:

- Registering with Django (name, verbose label, default PK field).
- Configuring the Stripe SDK's HTTP client once per process (request
  timeout, no automatic retries).
- Importing the signal module so the built-in webhook receivers are connected.

Operational notes
-----------------
- `ready()` runs on every process start (runserver, gunicorn worker, test
  runner); it makes no network calls.
- The Stripe secret key is not set globally; the gateway passes it per request.

Author: DSP Development Team
Date: 2025-09-03
"""

from django.apps import AppConfig
from django.conf import settings


class StripeIntegrationConfig(AppConfig):
    """
    App configuration for the `core.stripe_integration` package.
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "core.stripe_integration"
    verbose_name = "Stripe Integration"

    def ready(self):
        from .gateway import configure_stripe_http_client
        from . import signals  # noqa: F401

        configure_stripe_http_client(getattr(settings, "STRIPE_REQUEST_TIMEOUT", 30))
