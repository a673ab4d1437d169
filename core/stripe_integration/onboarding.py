"""
Account Onboarding Tracker

Ensures a payee has a Stripe Connect account and reports whether it can
receive payouts. The tracker is stateless: the caller persists the returned
account id against the payee and passes it back on the next call.

Flow of `ensure_account`:
1. Retrieve the cached account id, if any. A stale id (unknown to Stripe) is
   logged and falls through to creation instead of failing the call.
2. Create an Express account when there is no working account. The payee
   accepts the terms of service during hosted onboarding; this app never
   asserts acceptance on their behalf.
3. Issue an onboarding link while details or payouts are missing.
4. Report PayoutsEnabled once Stripe enabled payouts.

Gateway errors propagate unchanged. There are no retries here because account
creation must not be duplicated blindly.

Author: DSP Development Team
Version: 1.0.0
"""

import logging
from typing import Optional

from .config import PayoutConfig
from .domain import AccountStatus, ConnectedAccount, OnboardingState, PayeeProfile
from .exceptions import AccountNotFound, InvalidIban
from .gateway import ProcessorGateway
from .validators import validate_german_iban

logger = logging.getLogger(__name__)


class AccountOnboardingTracker:
    """
    Manages the lifecycle of connected (payee) accounts.

    Example:
        >>> tracker = AccountOnboardingTracker(gateway, config)
        >>> status = tracker.ensure_account(profile, existing_account_id="acct_123")
        >>> if not status.ready:
        ...     redirect(status.onboarding_url)
    """

    def __init__(self, gateway: ProcessorGateway, config: PayoutConfig) -> None:
        self.gateway = gateway
        self.config = config

    def ensure_account(
        self, profile: PayeeProfile, existing_account_id: Optional[str] = None
    ) -> AccountStatus:
        """
        Ensure a connected account exists for the payee.

        Args:
            profile: Identity and bank data of the payee
            existing_account_id: Account id previously stored for this payee

        Returns:
            AccountStatus with state PayoutsEnabled, OnboardingPending
            (including the onboarding URL) or Rejected

        Raises:
            InvalidIban: If a new account is needed and the IBAN is invalid
            GatewayError: If Stripe is unreachable or rejects a call
        """
        account = None
        created = False

        if existing_account_id:
            try:
                account = self.gateway.retrieve_account(existing_account_id)
            except AccountNotFound:
                logger.warning(
                    "Stored Stripe account %s is unknown to Stripe, creating a new one",
                    existing_account_id,
                )

        if account is None:
            self._validate_bank_account(profile)
            account = self.gateway.create_account(profile)
            created = True
            logger.info("Created connected account %s for payee", account.id)

        return self._status_for(account, created=created, issue_link=True)

    def check_account_status(self, account_id: str) -> AccountStatus:
        """Prüft den Onboarding-Status eines Accounts, ohne einen Link zu erstellen."""
        account = self.gateway.retrieve_account(account_id)
        return self._status_for(account, created=False, issue_link=False)

    def create_onboarding_link(self, account_id: str) -> str:
        """Erstellt einen neuen Onboarding-Link, z.B. wenn der alte abgelaufen ist."""
        return self.gateway.create_account_link(
            account_id,
            return_url=self.config.onboarding_return_url,
            refresh_url=self.config.onboarding_refresh_url,
        )

    def _validate_bank_account(self, profile: PayeeProfile) -> None:
        # Only German IBANs are checked locally, Stripe validates the rest
        if self.config.country.upper() == "DE" and not validate_german_iban(profile.iban):
            raise InvalidIban()

    def _status_for(
        self, account: ConnectedAccount, created: bool, issue_link: bool
    ) -> AccountStatus:
        state = account.onboarding_state
        onboarding_url = None

        if state == OnboardingState.REJECTED:
            logger.warning(
                "Connected account %s was rejected (%s)",
                account.id,
                account.requirements.disabled_reason,
            )
        elif not (account.details_submitted and account.payouts_enabled) and issue_link:
            onboarding_url = self.create_onboarding_link(account.id)
            state = OnboardingState.ONBOARDING_PENDING

        return AccountStatus(
            account_id=account.id,
            state=state,
            details_submitted=account.details_submitted,
            charges_enabled=account.charges_enabled,
            payouts_enabled=account.payouts_enabled,
            requirements=account.requirements,
            onboarding_url=onboarding_url,
            created=created,
        )
