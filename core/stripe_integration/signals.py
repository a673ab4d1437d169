"""
Stripe Webhook Dispatch
=======================

Verified Stripe events are broadcast through the `webhook_event_received`
signal. Business logic (bookkeeping, notifications, ...) lives in other apps
and connects receivers here, so this app does not need to know about them:

    from django.dispatch import receiver
    from core.stripe_integration.signals import webhook_event_received

    @receiver(webhook_event_received)
    def on_payout_paid(sender, event, **kwargs):
        if event.type != "payout.paid":
            return False
        ...
        return True

A receiver returns a truthy value when it handled the event. Events that no
receiver handled are logged and still acknowledged with HTTP 200; unknown
event types are not an error.

Receivers only ever see events whose signature was verified.

Author: DSP Development Team
Date: 2025-09-03
"""

from __future__ import annotations

import logging
from typing import List

from django.dispatch import Signal, receiver

from .domain import WebhookEvent

logger = logging.getLogger(__name__)

# Sent with keyword argument `event` (a verified WebhookEvent)
webhook_event_received = Signal()

PAYOUT_LIFECYCLE_EVENTS = (
    "payout.created",
    "payout.updated",
    "payout.paid",
    "payout.failed",
    "payout.canceled",
)


def dispatch_event(sender, event: WebhookEvent) -> List:
    """
    Send a verified event to all receivers.

    Returns:
        The receivers that reported the event as handled.
    """
    if not event.verified:
        raise ValueError("Refusing to dispatch an unverified webhook event")

    responses = webhook_event_received.send(sender=sender, event=event)
    handled = [recv for recv, response in responses if response]
    if not handled:
        logger.info("Received unhandled Stripe event type %s (%s)", event.type, event.id)
    return handled


@receiver(webhook_event_received, dispatch_uid="stripe_payout_lifecycle_log")
def log_payout_lifecycle(sender, event: WebhookEvent, **kwargs) -> bool:
    """
    Log payout and account lifecycle events for reconciliation.

    Only logs, so it does not mark the event as handled.
    """
    obj = event.data_object
    if event.type in PAYOUT_LIFECYCLE_EVENTS:
        level = logging.WARNING if event.type == "payout.failed" else logging.INFO
        logger.log(
            level,
            "Stripe %s: payout %s on account %s status=%s failure=%s",
            event.type,
            obj.get("id"),
            event.data.get("account"),
            obj.get("status"),
            obj.get("failure_code"),
        )
    elif event.type == "account.updated":
        logger.info(
            "Stripe account.updated: %s charges_enabled=%s payouts_enabled=%s",
            obj.get("id"),
            obj.get("charges_enabled"),
            obj.get("payouts_enabled"),
        )
    return False
