"""
Stripe Integration Package - DSP
=============================================================

This package centralizes all Stripe-related logic for paying out money to
payees (Stripe Connect Express accounts) and for verifying Stripe webhooks.

Current Scope
--------------------
- Onboarding of payees: create connected accounts, issue onboarding links,
  report whether payouts are enabled (onboarding.py).
- Sending money: validated two-phase transfer + payout, payout status,
  payout history, platform balance, test funding in test mode (payouts.py).
- Webhooks: signature verification with replay protection (webhooks.py)
  and dispatch of verified events via a Django signal (signals.py).
- Hosted checkout sessions for one-time and recurring payments.

Design Rationale
----------------
- One seam to Stripe: every API call goes through `ProcessorGateway`
  (gateway.py), so the rest of the package works with plain records
  (domain.py) instead of SDK objects.
- Explicit configuration: `PayoutConfig` (config.py) is built once from
  Django settings; test mode is a constructor argument, not a global flag.
- No persistence: callers store connected account ids themselves.

Structure
---------
- __init__.py     → this file
- apps.py         → App configuration (`StripeIntegrationConfig`)
- config.py       → `PayoutConfig`
- domain.py       → Records and enums
- exceptions.py   → Error hierarchy
- validators.py   → Amount and IBAN validation
- gateway.py      → `ProcessorGateway` + `StripeGateway`
- onboarding.py   → `AccountOnboardingTracker`
- payouts.py      → `PayoutOrchestrator`
- webhooks.py     → `WebhookVerifier`
- signals.py      → `webhook_event_received`
- services.py     → Process-wide instances
- serializers.py  → Request validation
- views.py        → API endpoints
- urls.py         → Routes

Author: DSP Development Team
Date: 2025-09-03
"""
