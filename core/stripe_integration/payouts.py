"""
Payout Orchestrator

Executes the two-phase fund movement to a payee's bank account:

    platform balance --(Transfer)--> connected account --(Payout)--> bank account

Validation happens before any money moves: the amount bounds are checked
locally and the destination account is fetched from Stripe on every call,
because capabilities can change between onboarding and payout.

If the transfer succeeds and the payout fails, `PartialTransfer` is raised
with the transfer id. The caller must then retry the payout only
(`retry_payout`) or reconcile; re-sending the whole request without an
idempotency key would transfer the funds twice. The payout idempotency key is
derived from the transfer id, so a payout Stripe created before a timeout is
never duplicated by the retry.

Test funding (`add_test_funds`) is the only sandbox helper and is refused
unless the configuration is in test mode with a test key.

Author: DSP Development Team
Version: 1.0.0
"""

import logging
from typing import Dict, List, Optional

from .config import PayoutConfig
from .domain import Balance, Payout, TestCharge, TransferRequest, TransferResult
from .exceptions import (
    AccountNotReady,
    PartialTransfer,
    SandboxOperationNotAllowed,
    UnsupportedCurrency,
)
from .gateway import TEST_FUNDING_SOURCE, ProcessorGateway
from .validators import validate_amount

logger = logging.getLogger(__name__)


def payout_idempotency_key(transfer_id: str) -> str:
    """One payout per transfer: the key is derived from the transfer id."""
    return f"payout-{transfer_id}"


class PayoutOrchestrator:
    """
    Validates and executes transfers + payouts to connected accounts.

    Instances hold no per-call state, so one orchestrator can serve
    concurrent requests for different payees.

    Example:
        >>> orchestrator = PayoutOrchestrator(gateway, config)
        >>> result = orchestrator.send_money(
        ...     TransferRequest(destination_account_id="acct_123", amount_minor_units=150)
        ... )
        >>> result.amount
        Decimal('1.5')
    """

    def __init__(self, gateway: ProcessorGateway, config: PayoutConfig) -> None:
        self.gateway = gateway
        self.config = config

    def send_money(self, request: TransferRequest) -> TransferResult:
        """
        Sendet Geld an das Bankkonto eines Connected Accounts.

        Args:
            request: Ziel-Account, Betrag in Cents und optionale Angaben

        Returns:
            TransferResult mit Transfer- und Payout-ID

        Raises:
            InvalidAmount: Betrag außerhalb von 1.00 - 1.000.000,00 EUR
            UnsupportedCurrency: Andere Währung als konfiguriert
            AccountNotFound: Ziel-Account existiert nicht
            AccountNotReady: Transaktionen oder Payouts deaktiviert
            PartialTransfer: Transfer erfolgreich, Payout fehlgeschlagen
            GatewayError: Stripe nicht erreichbar oder Fehler beim Transfer
        """
        amount = validate_amount(request.amount_minor_units)
        currency = self._resolve_currency(request.currency)
        account_id = request.destination_account_id

        self._validate_account(account_id)

        statement_descriptor = self._statement_descriptor(request.statement_descriptor)

        # 1. Transfer zum Express Account
        transfer = self.gateway.create_transfer(
            destination=account_id,
            amount_minor_units=amount,
            currency=currency,
            description=request.description,
            metadata=request.metadata,
            idempotency_key=(
                f"transfer-{request.idempotency_key}" if request.idempotency_key else None
            ),
        )

        # 2. Payout zum Bankkonto
        try:
            payout = self.gateway.create_payout(
                account_id=account_id,
                amount_minor_units=amount,
                currency=currency,
                statement_descriptor=statement_descriptor,
                metadata=self._payout_metadata(request.metadata, transfer.id),
                idempotency_key=payout_idempotency_key(transfer.id),
            )
        except Exception as e:
            # Whatever failed, the caller must learn the transfer id
            message = getattr(e, "message", None) or str(e)
            logger.error(
                "Payout failed after transfer %s to %s succeeded: %s",
                transfer.id,
                account_id,
                message,
            )
            raise PartialTransfer(
                f"Transfer {transfer.id} succeeded but payout failed: {message}",
                transfer_id=transfer.id,
                account_id=account_id,
                amount_minor_units=amount,
                currency=currency,
                metadata=request.metadata,
                statement_descriptor=statement_descriptor,
            ) from e

        logger.info(
            "Sent %s %s to %s (transfer %s, payout %s)",
            amount,
            currency,
            account_id,
            transfer.id,
            payout.id,
        )
        return TransferResult(
            transfer_id=transfer.id,
            payout_id=payout.id,
            amount_minor_units=amount,
            currency=currency,
            account_id=account_id,
            status=payout.status,
        )

    def retry_payout(self, partial: PartialTransfer) -> TransferResult:
        """
        Retry only the payout step of a partial transfer.

        The funds are already on the connected account, so no transfer is
        created. The payout is sent with the same parameters and idempotency
        key as the failed attempt: if Stripe did create it before the error,
        that payout is returned instead of a second one. Raises GatewayError
        again if the payout still fails.
        """
        payout = self.gateway.create_payout(
            account_id=partial.account_id,
            amount_minor_units=partial.amount_minor_units,
            currency=partial.currency,
            statement_descriptor=self._statement_descriptor(partial.statement_descriptor),
            metadata=self._payout_metadata(partial.metadata, partial.transfer_id),
            idempotency_key=payout_idempotency_key(partial.transfer_id),
        )
        logger.info(
            "Completed payout %s for transfer %s", payout.id, partial.transfer_id
        )
        return TransferResult(
            transfer_id=partial.transfer_id,
            payout_id=payout.id,
            amount_minor_units=partial.amount_minor_units,
            currency=partial.currency,
            account_id=partial.account_id,
            status=payout.status,
        )

    def check_payout_status(self, payout_id: str, account_id: str) -> Payout:
        """Überprüft den Status eines Payouts."""
        return self.gateway.retrieve_payout(payout_id, account_id)

    def list_payouts(self, account_id: str, limit: int = 10) -> List[Payout]:
        """Listet die letzten Payouts eines Accounts auf."""
        return self.gateway.list_payouts(account_id, limit=limit)

    def check_available_balance(self) -> Balance:
        """Prüft das verfügbare und ausstehende Guthaben der Plattform."""
        return self.gateway.retrieve_balance()

    def add_test_funds(self, amount_minor_units: int) -> TestCharge:
        """
        Lädt Testguthaben über eine Charge mit `tok_bypassPending`.

        Der Betrag ist sofort verfügbar. Nur im Test-Modus mit Test-Key erlaubt.

        Raises:
            SandboxOperationNotAllowed: Live-Modus oder Live-Key konfiguriert
            InvalidAmount: Betrag außerhalb der erlaubten Grenzen
        """
        if not self.config.sandbox_allowed:
            logger.warning("Refused test funding outside of Stripe test mode")
            raise SandboxOperationNotAllowed()

        amount = validate_amount(amount_minor_units)
        return self.gateway.create_test_charge(
            amount_minor_units=amount,
            currency=self.config.currency,
            source=TEST_FUNDING_SOURCE,
            description="Test funds for payout",
            metadata={"type": "test_funding", "purpose": "available_balance"},
        )

    # ---------- helpers ----------

    def _resolve_currency(self, currency: Optional[str]) -> str:
        if not currency:
            return self.config.currency
        if currency.lower() != self.config.currency:
            raise UnsupportedCurrency(currency, self.config.currency)
        return self.config.currency

    def _validate_account(self, account_id: str) -> None:
        account = self.gateway.retrieve_account(account_id)
        missing = []
        if not account.charges_enabled:
            missing.append("charges_enabled")
        if not account.payouts_enabled:
            missing.append("payouts_enabled")
        if missing:
            raise AccountNotReady(account_id, missing)

    def _statement_descriptor(self, statement_descriptor: Optional[str]) -> str:
        return statement_descriptor or self.config.default_statement_descriptor

    @staticmethod
    def _payout_metadata(metadata: Dict[str, str], transfer_id: str) -> Dict[str, str]:
        payout_metadata = dict(metadata)
        payout_metadata["transfer_id"] = transfer_id
        return payout_metadata
