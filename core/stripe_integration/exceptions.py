"""
Payout Orchestration Exceptions

This module provides the exception hierarchy for the Stripe payout
integration. Every error raised by the validator, the processor gateway,
the onboarding tracker, the payout orchestrator and the webhook verifier
derives from `PayoutError`, so views can translate any of them into a JSON
response with a single `except` clause.

Hierarchy
---------
PayoutError
├── PayoutValidationError        (400)
│   ├── InvalidAmount
│   ├── InvalidIban
│   └── UnsupportedCurrency
├── AccountNotFound              (404)
├── AccountNotReady              (409)
├── SandboxOperationNotAllowed   (403)
├── GatewayError                 (502 / 503 when retryable)
│   └── PartialTransfer          (502, carries transfer_id)
└── WebhookVerificationError     (400)
    ├── MalformedPayload
    ├── SignatureMismatch
    └── StaleEvent

Author: DSP Development Team
Version: 1.0.0
"""

from typing import Optional, Dict, Any, List


class PayoutError(Exception):
    """
    Base exception class for all payout orchestration errors.

    Attributes:
        message (str): Human-readable error message
        status_code (int): HTTP status code used by the API views
        error_code (str): Stable, machine-readable error identifier
        details (Dict[str, Any]): Additional error context

    Example:
        >>> try:
        ...     orchestrator.send_money(request)
        ... except PayoutError as e:
        ...     logger.error(f"Payout failed: {e.message}")
        ...     return Response(e.to_dict(), status=e.status_code)
    """

    status_code = 400
    error_code = "payout_error"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error_code is not None:
            self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for serialization.

        Returns:
            Dictionary representation of the exception
        """
        return {
            "detail": self.message,
            "error_code": self.error_code,
            "details": self.details,
            "exception_type": self.__class__.__name__,
        }


# --- Validation ---


class PayoutValidationError(PayoutError):
    """Input rejected before any call to Stripe was made."""

    status_code = 400
    error_code = "validation_error"


class InvalidAmount(PayoutValidationError):
    """
    Exception raised when an amount is outside the allowed bounds.

    Attributes:
        reason (str): Why the amount was rejected
        amount (Any): The rejected value
    """

    error_code = "invalid_amount"

    def __init__(self, reason: str, amount: Any = None) -> None:
        self.reason = reason
        self.amount = amount
        super().__init__(reason, details={"amount": amount})


class InvalidIban(PayoutValidationError):
    """Exception raised when a bank account number fails IBAN validation."""

    error_code = "invalid_iban"

    def __init__(self, message: str = "Ungültige IBAN") -> None:
        # The IBAN itself is never echoed back
        super().__init__(message)


class UnsupportedCurrency(PayoutValidationError):
    """Exception raised for a currency other than the configured one."""

    error_code = "unsupported_currency"

    def __init__(self, currency: str, supported: str) -> None:
        self.currency = currency
        self.supported = supported
        super().__init__(
            f"Currency '{currency}' is not supported, expected '{supported}'",
            details={"currency": currency, "supported": supported},
        )


# --- Connected accounts ---


class AccountNotFound(PayoutError):
    """
    Exception raised when Stripe does not know a connected account id.

    Attributes:
        account_id (str): The unknown account id
    """

    status_code = 404
    error_code = "account_not_found"

    def __init__(self, account_id: str, message: Optional[str] = None) -> None:
        self.account_id = account_id
        super().__init__(
            message or f"Connected account {account_id} not found",
            details={"account_id": account_id},
        )


class AccountNotReady(PayoutError):
    """
    Exception raised when a connected account lacks charges or payouts capability.

    Attributes:
        account_id (str): The account that is not ready
        missing (List[str]): Names of the disabled capability flags
    """

    status_code = 409
    error_code = "account_not_ready"

    def __init__(self, account_id: str, missing: List[str]) -> None:
        self.account_id = account_id
        self.missing = list(missing)
        super().__init__(
            f"Account {account_id} is not ready for payouts ({', '.join(self.missing)} disabled)",
            details={"account_id": account_id, "missing": self.missing},
        )


class SandboxOperationNotAllowed(PayoutError):
    """Exception raised when a test-mode-only helper is called outside test mode."""

    status_code = 403
    error_code = "sandbox_only"

    def __init__(
        self, message: str = "Test funding is only available in Stripe test mode"
    ) -> None:
        super().__init__(message)


# --- Gateway ---


class GatewayError(PayoutError):
    """
    Exception for failures talking to Stripe (network, timeout or API errors).

    Attributes:
        retryable (bool): Whether repeating the same call may succeed
        stripe_code (Optional[str]): Stripe error code, if any
        http_status (Optional[int]): HTTP status returned by Stripe, if any
    """

    status_code = 502
    error_code = "gateway_error"

    def __init__(
        self,
        message: str,
        retryable: bool = False,
        stripe_code: Optional[str] = None,
        http_status: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.retryable = retryable
        self.stripe_code = stripe_code
        self.http_status = http_status
        merged = {
            "retryable": retryable,
            "stripe_code": stripe_code,
            "http_status": http_status,
        }
        merged.update(details or {})
        super().__init__(
            message,
            status_code=503 if retryable else None,
            details=merged,
        )


class PartialTransfer(GatewayError):
    """
    Exception raised when the transfer succeeded but the payout failed.

    Funds already left the platform balance. Callers must reconcile or retry
    the payout only (see `PayoutOrchestrator.retry_payout`) and must never
    re-send the whole transfer.

    Attributes:
        transfer_id (str): Id of the successful transfer
        account_id (str): Destination connected account
        amount_minor_units (int): Transferred amount
        currency (str): Transfer currency
        metadata (Dict[str, str]): Metadata of the original request
        statement_descriptor (str): Statement descriptor of the failed payout
    """

    status_code = 502
    error_code = "partial_transfer"

    def __init__(
        self,
        message: str,
        transfer_id: str,
        account_id: str,
        amount_minor_units: int,
        currency: str,
        metadata: Optional[Dict[str, str]] = None,
        statement_descriptor: Optional[str] = None,
    ) -> None:
        self.transfer_id = transfer_id
        self.account_id = account_id
        self.amount_minor_units = amount_minor_units
        self.currency = currency
        self.metadata = dict(metadata or {})
        self.statement_descriptor = statement_descriptor
        super().__init__(
            message,
            retryable=False,
            details={
                "transfer_id": transfer_id,
                "account_id": account_id,
                "amount_minor_units": amount_minor_units,
                "currency": currency,
            },
        )
        # A partial transfer is never a 503, even though the payout alone may be retried
        self.status_code = 502


# --- Webhooks ---


class WebhookVerificationError(PayoutError):
    """
    Base exception for rejected webhook deliveries.

    Attributes:
        reason (str): One of "malformed_payload", "signature_mismatch", "stale"
    """

    status_code = 400
    error_code = "webhook_rejected"
    reason = "rejected"

    def __init__(self, message: str) -> None:
        super().__init__(message, details={"reason": self.reason})


class MalformedPayload(WebhookVerificationError):
    """The payload is not a JSON event object."""

    error_code = "malformed_payload"
    reason = "malformed_payload"


class SignatureMismatch(WebhookVerificationError):
    """No signature in the header matches the payload."""

    error_code = "signature_mismatch"
    reason = "signature_mismatch"


class StaleEvent(WebhookVerificationError):
    """The signed timestamp is outside the tolerance window."""

    error_code = "stale_event"
    reason = "stale"
