"""
Processor Gateway

This module isolates every call to the Stripe API behind one interface.
`ProcessorGateway` defines the capability set the onboarding tracker and the
payout orchestrator rely on; `StripeGateway` implements it with the official
`stripe` SDK and converts Stripe objects into the records in `domain.py`.

Design
------
- The secret key and API version are passed per request (`api_key=`,
  `stripe_version=`) instead of being assigned to `stripe.api_key`, so two
  gateways with different keys never interfere.
- The HTTP client (timeout, no SDK-level retries) is configured once at app
  startup by `configure_stripe_http_client()`, called from `apps.py`.
- Every `stripe.StripeError` is translated into `GatewayError` (or
  `AccountNotFound` for unknown account ids). The Stripe message, code and
  HTTP status are preserved and the original exception is chained.
- Idempotency keys on transfers and payouts make Stripe the source of truth
  for duplicate prevention when a call is repeated after a timeout.
- Webhook signatures are checked with `stripe.WebhookSignature`; the age of
  the signed timestamp is checked by `WebhookVerifier`.

Author: DSP Development Team
Version: 1.0.0
"""

import logging
import time
from abc import ABC, abstractmethod
from functools import wraps
from typing import Any, Dict, List, Optional

import stripe

from .config import PayoutConfig
from .domain import (
    AccountRequirements,
    Balance,
    BalanceEntry,
    ConnectedAccount,
    PayeeProfile,
    Payout,
    PayoutStatus,
    TestCharge,
    Transfer,
)
from .exceptions import AccountNotFound, GatewayError, SignatureMismatch
from .validators import normalize_iban

logger = logging.getLogger(__name__)

# Transient failures: network problems, timeouts, rate limits and 5xx responses
RETRYABLE_STRIPE_ERRORS = (
    stripe.APIConnectionError,
    stripe.RateLimitError,
    stripe.APIError,
)

MISSING_ACCOUNT_CODES = ("resource_missing", "account_invalid")

TEST_FUNDING_SOURCE = "tok_bypassPending"


def configure_stripe_http_client(timeout: int) -> None:
    """
    Configure the Stripe SDK's HTTP client for this process.

    Called once from `StripeIntegrationConfig.ready()`. Retries are disabled
    because account creation and transfers must not be repeated blindly.
    """
    stripe.default_http_client = stripe.RequestsClient(timeout=timeout)
    stripe.max_network_retries = 0


def gateway_error_from_stripe(exc: stripe.StripeError, operation: str) -> GatewayError:
    """
    Factory function to create a GatewayError from a Stripe SDK error.

    Args:
        exc: The error raised by the Stripe SDK
        operation: Human-readable name of the failed operation

    Returns:
        GatewayError with retryability derived from the Stripe error class
    """
    message = getattr(exc, "user_message", None) or str(exc)
    return GatewayError(
        f"{operation} failed: {message}",
        retryable=isinstance(exc, RETRYABLE_STRIPE_ERRORS),
        stripe_code=getattr(exc, "code", None),
        http_status=getattr(exc, "http_status", None),
    )


def translate_stripe_errors(operation: str):
    """
    Decorator translating Stripe SDK errors into GatewayError.

    Args:
        operation: Name of the operation, used in the error message and logs
    """

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except stripe.StripeError as e:
                error = gateway_error_from_stripe(e, operation)
                logger.error(
                    "Stripe call '%s' failed (retryable=%s, code=%s, status=%s): %s",
                    operation,
                    error.retryable,
                    error.stripe_code,
                    error.http_status,
                    error.message,
                )
                raise error from e

        return wrapper

    return decorator


def _compact(params: Dict[str, Any]) -> Dict[str, Any]:
    """Drop keys whose value is None."""
    return {key: value for key, value in params.items() if value is not None}


def _payout_status(value: Optional[str]) -> PayoutStatus:
    try:
        return PayoutStatus(value)
    except ValueError as e:
        raise GatewayError(f"Unknown payout status from Stripe: {value!r}") from e


class ProcessorGateway(ABC):
    """
    Abstract interface to the payment processor.

    All amounts are integers in minor units. Implementations raise
    `GatewayError` for processor-side or network failures and
    `AccountNotFound` when an account id is unknown.
    """

    @abstractmethod
    def create_account(self, profile: PayeeProfile) -> ConnectedAccount:
        """Create a connected account without accepting the ToS on the payee's behalf."""

    @abstractmethod
    def retrieve_account(self, account_id: str) -> ConnectedAccount:
        """Fetch a connected account. Raises AccountNotFound for unknown ids."""

    @abstractmethod
    def create_account_link(
        self, account_id: str, return_url: str, refresh_url: str
    ) -> str:
        """Return the URL of a hosted onboarding page."""

    @abstractmethod
    def create_transfer(
        self,
        destination: str,
        amount_minor_units: int,
        currency: str,
        description: str,
        metadata: Dict[str, str],
        idempotency_key: Optional[str] = None,
    ) -> Transfer:
        """Move funds from the platform balance to a connected account."""

    @abstractmethod
    def create_payout(
        self,
        account_id: str,
        amount_minor_units: int,
        currency: str,
        statement_descriptor: str,
        metadata: Dict[str, str],
        idempotency_key: Optional[str] = None,
    ) -> Payout:
        """
        Move funds from a connected account to its bank account.

        Repeating a call with the same idempotency key returns the payout
        created by the first call instead of creating a second one.
        """

    @abstractmethod
    def retrieve_payout(self, payout_id: str, account_id: str) -> Payout:
        """Fetch a payout of a connected account."""

    @abstractmethod
    def list_payouts(self, account_id: str, limit: int = 10) -> List[Payout]:
        """List the most recent payouts of a connected account."""

    @abstractmethod
    def retrieve_balance(self) -> Balance:
        """Fetch the platform balance."""

    @abstractmethod
    def create_test_charge(
        self,
        amount_minor_units: int,
        currency: str,
        source: str,
        description: str,
        metadata: Dict[str, str],
    ) -> TestCharge:
        """Charge a test instrument to credit the platform balance."""

    @abstractmethod
    def create_checkout_session(
        self,
        *,
        product_name: str,
        product_description: str,
        amount_minor_units: int,
        quantity: int,
        success_url: str,
        cancel_url: str,
        mode: str = "payment",
        interval: str = "month",
        interval_count: int = 1,
        expires_in: int = 3600,
    ) -> Dict[str, Any]:
        """Create a hosted checkout session for a one-time or recurring payment."""

    @abstractmethod
    def verify_signature(self, payload: str, signature_header: str, secret: str) -> None:
        """
        Check the Stripe-Signature header against the payload.

        Only the signature is checked, not the age of the timestamp.
        Raises SignatureMismatch if the header is unparsable or no v1
        signature matches.
        """


class StripeGateway(ProcessorGateway):
    """
    `ProcessorGateway` backed by the Stripe Python SDK.

    Example:
        >>> gateway = StripeGateway(PayoutConfig.from_settings())
        >>> account = gateway.retrieve_account("acct_123")
        >>> account.payouts_enabled
        True
    """

    def __init__(self, config: PayoutConfig) -> None:
        self.config = config

    def _request_options(self, **extra: Any) -> Dict[str, Any]:
        options = {
            "api_key": self.config.secret_key,
            "stripe_version": self.config.api_version,
        }
        options.update(_compact(extra))
        return options

    # ---------- accounts ----------

    @translate_stripe_errors("create account")
    def create_account(self, profile: PayeeProfile) -> ConnectedAccount:
        account = stripe.Account.create(
            type="express",
            country=self.config.country,
            email=profile.email,
            capabilities={"transfers": {"requested": True}},
            business_type=profile.business_type or "individual",
            individual=self._build_individual_data(profile),
            external_account=self._build_bank_account_data(profile),
            # No tos_acceptance: the payee accepts the terms during hosted onboarding
            settings={"payouts": {"schedule": {"interval": "manual"}}},
            **self._request_options(),
        )
        logger.info("Created Stripe Express account %s", account.get("id"))
        return self._to_account(account)

    @translate_stripe_errors("retrieve account")
    def retrieve_account(self, account_id: str) -> ConnectedAccount:
        try:
            account = stripe.Account.retrieve(account_id, **self._request_options())
        except (stripe.InvalidRequestError, stripe.PermissionError) as e:
            code = getattr(e, "code", None)
            # A 403 without a missing-account code is a key permission problem
            if code in MISSING_ACCOUNT_CODES or (
                code is None and getattr(e, "http_status", None) == 404
            ):
                raise AccountNotFound(
                    account_id, getattr(e, "user_message", None) or str(e)
                ) from e
            raise
        return self._to_account(account)

    @translate_stripe_errors("create account link")
    def create_account_link(
        self, account_id: str, return_url: str, refresh_url: str
    ) -> str:
        account_link = stripe.AccountLink.create(
            account=account_id,
            refresh_url=refresh_url,
            return_url=return_url,
            type="account_onboarding",
            **self._request_options(),
        )
        return account_link.get("url")

    # ---------- money movement ----------

    @translate_stripe_errors("create transfer")
    def create_transfer(
        self,
        destination: str,
        amount_minor_units: int,
        currency: str,
        description: str,
        metadata: Dict[str, str],
        idempotency_key: Optional[str] = None,
    ) -> Transfer:
        transfer = stripe.Transfer.create(
            amount=amount_minor_units,
            currency=currency,
            destination=destination,
            description=description,
            metadata=dict(metadata),
            **self._request_options(idempotency_key=idempotency_key),
        )
        logger.info(
            "Created transfer %s of %s %s to %s",
            transfer.get("id"),
            amount_minor_units,
            currency,
            destination,
        )
        return Transfer(
            id=transfer.get("id"),
            amount_minor_units=transfer.get("amount", amount_minor_units),
            currency=transfer.get("currency", currency),
            destination=transfer.get("destination", destination),
            description=transfer.get("description"),
            metadata=dict(transfer.get("metadata") or {}),
            created=transfer.get("created"),
        )

    @translate_stripe_errors("create payout")
    def create_payout(
        self,
        account_id: str,
        amount_minor_units: int,
        currency: str,
        statement_descriptor: str,
        metadata: Dict[str, str],
        idempotency_key: Optional[str] = None,
    ) -> Payout:
        payout = stripe.Payout.create(
            amount=amount_minor_units,
            currency=currency,
            method="standard",
            statement_descriptor=statement_descriptor,
            metadata=dict(metadata),
            **self._request_options(
                stripe_account=account_id, idempotency_key=idempotency_key
            ),
        )
        logger.info("Created payout %s on account %s", payout.get("id"), account_id)
        return self._to_payout(payout)

    @translate_stripe_errors("retrieve payout")
    def retrieve_payout(self, payout_id: str, account_id: str) -> Payout:
        payout = stripe.Payout.retrieve(
            payout_id, **self._request_options(stripe_account=account_id)
        )
        return self._to_payout(payout)

    @translate_stripe_errors("list payouts")
    def list_payouts(self, account_id: str, limit: int = 10) -> List[Payout]:
        payouts = stripe.Payout.list(
            limit=limit, **self._request_options(stripe_account=account_id)
        )
        return [self._to_payout(payout) for payout in payouts.get("data") or []]

    @translate_stripe_errors("retrieve balance")
    def retrieve_balance(self) -> Balance:
        balance = stripe.Balance.retrieve(**self._request_options())
        return Balance(
            available=[self._to_balance_entry(item) for item in balance.get("available") or []],
            pending=[self._to_balance_entry(item) for item in balance.get("pending") or []],
            livemode=bool(balance.get("livemode")),
        )

    @translate_stripe_errors("create test charge")
    def create_test_charge(
        self,
        amount_minor_units: int,
        currency: str,
        source: str,
        description: str,
        metadata: Dict[str, str],
    ) -> TestCharge:
        charge = stripe.Charge.create(
            amount=amount_minor_units,
            currency=currency,
            source=source,
            description=description,
            metadata=dict(metadata),
            **self._request_options(),
        )
        logger.info("Created test charge %s (%s %s)", charge.get("id"), amount_minor_units, currency)
        return TestCharge(
            id=charge.get("id"),
            amount_minor_units=charge.get("amount", amount_minor_units),
            currency=charge.get("currency", currency),
            status=charge.get("status"),
        )

    # ---------- checkout ----------

    @translate_stripe_errors("create checkout session")
    def create_checkout_session(
        self,
        *,
        product_name: str,
        product_description: str,
        amount_minor_units: int,
        quantity: int,
        success_url: str,
        cancel_url: str,
        mode: str = "payment",
        interval: str = "month",
        interval_count: int = 1,
        expires_in: int = 3600,
    ) -> Dict[str, Any]:
        price_data = {
            "currency": self.config.currency,
            "product_data": _compact(
                {"name": product_name, "description": product_description or None}
            ),
            "unit_amount": amount_minor_units,
        }
        if mode == "subscription":
            price_data["recurring"] = {
                "interval": interval,
                "interval_count": interval_count,
            }

        session = stripe.checkout.Session.create(
            line_items=[{"price_data": price_data, "quantity": quantity}],
            mode=mode,
            success_url=success_url,
            cancel_url=cancel_url,
            expires_at=int(time.time()) + expires_in,
            **self._request_options(),
        )
        return {
            "url": session.get("url"),
            "id": session.get("id"),
            "payment_intent": session.get("payment_intent"),
            "expires_at": session.get("expires_at"),
        }

    # ---------- webhooks ----------

    def verify_signature(self, payload: str, signature_header: str, secret: str) -> None:
        try:
            # tolerance=None: staleness is reported separately as StaleEvent
            stripe.WebhookSignature.verify_header(
                payload, signature_header, secret, tolerance=None
            )
        except stripe.SignatureVerificationError as e:
            raise SignatureMismatch(str(e)) from e

    # ---------- builders ----------

    def _build_individual_data(self, profile: PayeeProfile) -> Dict[str, Any]:
        """Baut die Individual-Daten für den Account auf."""
        return _compact(
            {
                "first_name": profile.first_name,
                "last_name": profile.last_name,
                "email": profile.email,
                "phone": profile.phone,
                "dob": {
                    "day": profile.birth_day,
                    "month": profile.birth_month,
                    "year": profile.birth_year,
                },
                "address": _compact(
                    {
                        "line1": profile.address_line1,
                        "line2": profile.address_line2,
                        "city": profile.city,
                        "postal_code": profile.postal_code,
                        "state": profile.state,
                        "country": self.config.country,
                    }
                ),
            }
        )

    def _build_bank_account_data(self, profile: PayeeProfile) -> Dict[str, Any]:
        """Baut die Bankkonto-Daten auf (BIC ist für Deutschland optional)."""
        return _compact(
            {
                "object": "bank_account",
                "country": self.config.country,
                "currency": self.config.currency,
                "account_number": normalize_iban(profile.iban),
                "routing_number": profile.bic,
                "account_holder_name": profile.account_holder_name,
            }
        )

    # ---------- converters ----------

    def _to_account(self, account: Any) -> ConnectedAccount:
        requirements = account.get("requirements") or {}
        return ConnectedAccount(
            id=account.get("id"),
            country=account.get("country") or self.config.country,
            currency=account.get("default_currency") or self.config.currency,
            details_submitted=bool(account.get("details_submitted")),
            charges_enabled=bool(account.get("charges_enabled")),
            payouts_enabled=bool(account.get("payouts_enabled")),
            email=account.get("email"),
            requirements=AccountRequirements(
                currently_due=list(requirements.get("currently_due") or []),
                eventually_due=list(requirements.get("eventually_due") or []),
                past_due=list(requirements.get("past_due") or []),
                pending_verification=list(requirements.get("pending_verification") or []),
                disabled_reason=requirements.get("disabled_reason"),
            ),
        )

    @staticmethod
    def _to_payout(payout: Any) -> Payout:
        return Payout(
            id=payout.get("id"),
            amount_minor_units=payout.get("amount"),
            currency=payout.get("currency"),
            status=_payout_status(payout.get("status")),
            arrival_date=payout.get("arrival_date"),
            method=payout.get("method"),
            description=payout.get("description"),
            statement_descriptor=payout.get("statement_descriptor"),
            failure_code=payout.get("failure_code"),
            failure_message=payout.get("failure_message"),
            created=payout.get("created"),
        )

    @staticmethod
    def _to_balance_entry(item: Any) -> BalanceEntry:
        source_types = item.get("source_types")
        return BalanceEntry(
            amount_minor_units=item.get("amount", 0),
            currency=item.get("currency"),
            source_types=dict(source_types) if source_types else None,
        )
