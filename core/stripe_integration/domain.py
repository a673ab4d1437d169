"""
Domain records for the Stripe payout integration.

Plain dataclasses and enums exchanged between the gateway, the onboarding
tracker, the payout orchestrator and the API views. None of these are
persisted by this app; storing account ids against payees is the caller's job.

Amounts are always carried as integers in minor units (cents). Conversion to
major units only happens in `to_dict()` for API responses.

Author: DSP Development Team
Version: 1.0.0
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional


def minor_to_major(amount_minor_units: int) -> Decimal:
    """Convert cents to euros (150 -> Decimal("1.5"))."""
    return Decimal(amount_minor_units) / 100


class OnboardingState(str, Enum):
    """Lifecycle states of a connected account."""

    NOT_CREATED = "not_created"
    CREATED = "created"
    ONBOARDING_PENDING = "onboarding_pending"
    DETAILS_SUBMITTED = "details_submitted"
    PAYOUTS_ENABLED = "payouts_enabled"
    REJECTED = "rejected"


class PayoutStatus(str, Enum):
    """Payout states, mirroring Stripe's vocabulary."""

    PENDING = "pending"
    IN_TRANSIT = "in_transit"
    PAID = "paid"
    FAILED = "failed"
    CANCELED = "canceled"


@dataclass
class AccountRequirements:
    """Outstanding verification items of a connected account (read-only mirror)."""

    currently_due: List[str] = field(default_factory=list)
    eventually_due: List[str] = field(default_factory=list)
    past_due: List[str] = field(default_factory=list)
    pending_verification: List[str] = field(default_factory=list)
    disabled_reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currently_due": list(self.currently_due),
            "eventually_due": list(self.eventually_due),
            "past_due": list(self.past_due),
            "pending_verification": list(self.pending_verification),
            "disabled_reason": self.disabled_reason,
        }


@dataclass
class ConnectedAccount:
    """A payee's Stripe Connect account."""

    id: str
    country: str
    currency: str
    details_submitted: bool = False
    charges_enabled: bool = False
    payouts_enabled: bool = False
    email: Optional[str] = None
    requirements: AccountRequirements = field(default_factory=AccountRequirements)

    @property
    def onboarding_state(self) -> OnboardingState:
        disabled_reason = self.requirements.disabled_reason or ""
        if disabled_reason.startswith("rejected"):
            return OnboardingState.REJECTED
        if self.details_submitted and self.payouts_enabled:
            return OnboardingState.PAYOUTS_ENABLED
        if self.details_submitted:
            return OnboardingState.DETAILS_SUBMITTED
        return OnboardingState.CREATED


@dataclass
class PayeeProfile:
    """
    Identity and bank data of a payee, used to create a connected account.
    """

    email: str
    first_name: str
    last_name: str
    birth_day: int
    birth_month: int
    birth_year: int
    address_line1: str
    city: str
    postal_code: str
    iban: str
    account_holder_name: str
    phone: Optional[str] = None
    address_line2: Optional[str] = None
    state: Optional[str] = None
    bic: Optional[str] = None
    business_type: str = "individual"


@dataclass
class AccountStatus:
    """Result of an onboarding check."""

    account_id: str
    state: OnboardingState
    details_submitted: bool
    charges_enabled: bool
    payouts_enabled: bool
    requirements: AccountRequirements
    onboarding_url: Optional[str] = None
    created: bool = False

    @property
    def ready(self) -> bool:
        return self.state == OnboardingState.PAYOUTS_ENABLED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "account_id": self.account_id,
            "state": self.state.value,
            "ready": self.ready,
            "onboarding_url": self.onboarding_url,
            "created": self.created,
            "details_submitted": self.details_submitted,
            "charges_enabled": self.charges_enabled,
            "payouts_enabled": self.payouts_enabled,
            "requirements": self.requirements.to_dict(),
        }


@dataclass
class TransferRequest:
    """A request to move funds to a payee's bank account."""

    destination_account_id: str
    amount_minor_units: int
    currency: Optional[str] = None
    description: str = "Payout transfer"
    statement_descriptor: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)
    # Caller-supplied request id; repeating a request with it never transfers twice
    idempotency_key: Optional[str] = None


@dataclass
class Transfer:
    """Platform balance -> connected account balance."""

    id: str
    amount_minor_units: int
    currency: str
    destination: str
    description: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)
    created: Optional[int] = None


@dataclass
class Payout:
    """Connected account balance -> external bank account."""

    id: str
    amount_minor_units: int
    currency: str
    status: PayoutStatus
    arrival_date: Optional[int] = None
    method: Optional[str] = None
    description: Optional[str] = None
    statement_descriptor: Optional[str] = None
    failure_code: Optional[str] = None
    failure_message: Optional[str] = None
    created: Optional[int] = None

    @property
    def amount(self) -> Decimal:
        return minor_to_major(self.amount_minor_units)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status.value,
            "amount": self.amount,
            "currency": self.currency,
            "arrival_date": self.arrival_date,
            "method": self.method,
            "description": self.description,
            "statement_descriptor": self.statement_descriptor,
            "failure_code": self.failure_code,
            "failure_message": self.failure_message,
            "created": self.created,
        }


@dataclass
class TransferResult:
    """Combined result of a successful transfer + payout."""

    transfer_id: str
    payout_id: str
    amount_minor_units: int
    currency: str
    account_id: str
    status: PayoutStatus

    @property
    def amount(self) -> Decimal:
        return minor_to_major(self.amount_minor_units)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transfer_id": self.transfer_id,
            "payout_id": self.payout_id,
            "amount": self.amount,
            "amount_minor_units": self.amount_minor_units,
            "currency": self.currency,
            "account_id": self.account_id,
            "status": self.status.value,
        }


@dataclass
class BalanceEntry:
    amount_minor_units: int
    currency: str
    source_types: Optional[Dict[str, int]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "amount": minor_to_major(self.amount_minor_units),
            "currency": self.currency,
            "source_types": self.source_types,
        }


@dataclass
class Balance:
    """Platform balance split into available and pending funds."""

    available: List[BalanceEntry] = field(default_factory=list)
    pending: List[BalanceEntry] = field(default_factory=list)
    livemode: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "available": [entry.to_dict() for entry in self.available],
            "pending": [entry.to_dict() for entry in self.pending],
            "livemode": self.livemode,
        }


@dataclass
class TestCharge:
    """A synthetic charge that credits the platform balance in test mode."""

    __test__ = False  # not a test class

    id: str
    amount_minor_units: int
    currency: str
    status: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "amount": minor_to_major(self.amount_minor_units),
            "currency": self.currency,
            "status": self.status,
        }


@dataclass
class WebhookEvent:
    """
    An inbound Stripe event.

    `payload` and `signature_header` hold exactly what was received; `data`
    is only filled in after the signature has been verified.
    """

    id: Optional[str]
    type: str
    payload: bytes
    signature_header: str
    data: Dict[str, Any] = field(default_factory=dict)
    created: Optional[int] = None
    livemode: bool = False
    verified: bool = False

    @property
    def data_object(self) -> Dict[str, Any]:
        """The event's `data.object`, or `{}`."""
        inner = self.data.get("data")
        if isinstance(inner, dict) and isinstance(inner.get("object"), dict):
            return inner["object"]
        return {}
