"""
Webhook Verifier

Authenticates inbound Stripe events before anything acts on them.

Stripe signs each delivery with the endpoint's signing secret and sends

    Stripe-Signature: t=<unix timestamp>,v1=<hex hmac>[,v1=<hex hmac>...]

The signature itself is checked by the processor gateway
(`ProcessorGateway.verify_signature`, backed by `stripe.WebhookSignature`).
Verification must run over the exact bytes received, so views pass
`request.body` and the raw header value straight through, before any parsing.

Outcomes of `WebhookVerifier.verify`:
- a `WebhookEvent` with `verified=True`
- `SignatureMismatch`: header unparsable, no v1 signature, none matches, or
  a body that is not UTF-8 and therefore cannot be verified
- `StaleEvent`: signature valid but timestamp outside the tolerance window
  (replay protection)
- `MalformedPayload`: signature valid but the body is not a JSON event

The event type is not interpreted here; unknown types are a normal outcome.

Author: DSP Development Team
Version: 1.0.0
"""

import json
import logging
import time
from typing import Callable, Union

from .domain import WebhookEvent
from .exceptions import MalformedPayload, SignatureMismatch, StaleEvent
from .gateway import ProcessorGateway

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = 300


def signed_timestamp(signature_header: str) -> int:
    """
    Return the `t=` value of a Stripe-Signature header.

    Reads the first `t=` entry, like `stripe.WebhookSignature` does. Only
    call this on a header whose signature was verified.
    """
    for item in signature_header.split(","):
        parts = item.split("=", 2)
        if parts[0] == "t":
            return int(parts[1])
    raise SignatureMismatch("Unable to extract timestamp from header")


class WebhookVerifier:
    """
    Stateless verifier for Stripe webhook deliveries.

    Attributes:
        gateway (ProcessorGateway): Provides the signature check
        signing_secret (str): Endpoint signing secret (whsec_...)
        tolerance (int): Maximum accepted age/skew of the signed timestamp in seconds

    Example:
        >>> verifier = WebhookVerifier(gateway, settings.STRIPE_WEBHOOK_SECRET)
        >>> event = verifier.verify(request.body, request.META["HTTP_STRIPE_SIGNATURE"])
        >>> event.type
        'payout.paid'
    """

    def __init__(
        self,
        gateway: ProcessorGateway,
        signing_secret: str,
        tolerance: int = DEFAULT_TOLERANCE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not signing_secret:
            raise ValueError("A webhook signing secret is required")
        self.gateway = gateway
        self.signing_secret = signing_secret
        self.tolerance = tolerance
        self._clock = clock

    def verify(self, payload: Union[bytes, str], signature_header: str) -> WebhookEvent:
        """
        Verify a webhook delivery and parse it into a WebhookEvent.

        Args:
            payload: Raw request body exactly as received
            signature_header: Raw value of the Stripe-Signature header

        Returns:
            WebhookEvent with verified=True

        Raises:
            SignatureMismatch: Invalid, missing or non-matching signature
            StaleEvent: Timestamp outside the tolerance window
            MalformedPayload: Body is not a JSON event object
        """
        if isinstance(payload, bytes):
            try:
                text = payload.decode("utf-8")
            except UnicodeDecodeError as e:
                # Stripe signs UTF-8 JSON; other bytes cannot be authenticated
                raise SignatureMismatch("Payload is not valid UTF-8") from e
        else:
            text = payload
            payload = text.encode("utf-8")
        signature_header = signature_header or ""

        self.gateway.verify_signature(text, signature_header, self.signing_secret)

        timestamp = signed_timestamp(signature_header)
        if abs(self._clock() - timestamp) > self.tolerance:
            raise StaleEvent(
                f"Timestamp {timestamp} is outside the tolerance of {self.tolerance}s"
            )

        data = self._parse_payload(text)
        return WebhookEvent(
            id=data.get("id"),
            type=data["type"],
            payload=payload,
            signature_header=signature_header,
            data=data,
            created=data.get("created"),
            livemode=bool(data.get("livemode")),
            verified=True,
        )

    @staticmethod
    def _parse_payload(text: str) -> dict:
        try:
            data = json.loads(text)
        except ValueError as e:
            raise MalformedPayload(f"Invalid payload: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("type"), str):
            raise MalformedPayload("Invalid payload: not a Stripe event object")
        return data
