"""
Stripe Payout Views (core.stripe_integration)
=============================================

REST API endpoints for onboarding payees, sending money to their bank
accounts and receiving Stripe webhooks. The views only parse requests and
format responses; all logic lives in the onboarding tracker, the payout
orchestrator and the webhook verifier.

Endpoints
---------

1. ConnectedAccountView
   - URL: /api/payments/stripe/accounts/
   - Method: POST
   - Auth: Admin
   - Body: payee profile (see PayeeProfileSerializer) + optional "existing_account_id"
   - Purpose:
       Ensures the payee has a connected account. Returns the account id,
       its onboarding state and, while onboarding is incomplete, the
       onboarding URL. 201 when a new account was created.

2. ConnectedAccountStatusView
   - URL: /api/payments/stripe/accounts/<account_id>/
   - Method: GET
   - Auth: Admin

3. OnboardingLinkView
   - URL: /api/payments/stripe/accounts/<account_id>/onboarding-link/
   - Method: POST
   - Auth: Admin
   - Purpose: Issues a fresh onboarding link (old links expire).

4. AccountPayoutListView
   - URL: /api/payments/stripe/accounts/<account_id>/payouts/?limit=10
   - Method: GET
   - Auth: Admin

5. SendMoneyView
   - URL: /api/payments/stripe/payouts/
   - Method: POST
   - Auth: Admin
   - Body: {"destination_account_id": "acct_...", "amount_minor_units": 150,
            "description": "...", "statement_descriptor": "...", "metadata": {...},
            "idempotency_key": "..."}
   - Purpose:
       Transfer + payout. A failed payout after a successful transfer is
       answered with 502 and error_code "partial_transfer" including the
       transfer_id; the client must not resend the request.

6. PayoutStatusView
   - URL: /api/payments/stripe/payouts/<payout_id>/?account_id=acct_...
   - Method: GET
   - Auth: Admin

7. BalanceView
   - URL: /api/payments/stripe/balance/
   - Method: GET
   - Auth: Admin

8. TestFundsView
   - URL: /api/payments/stripe/balance/test-funds/
   - Method: POST
   - Auth: Admin, only in Stripe test mode

9. CreateCheckoutSessionView
   - URL: /api/payments/stripe/checkout-session/
   - Method: POST
   - Auth: Required

10. StripeWebhookView
   - URL: /api/payments/stripe/webhook/
   - Method: POST
   - Auth: None (authenticated by the Stripe-Signature header)

Error responses
---------------
Every `PayoutError` is returned as `{"detail", "error_code", "details",
"exception_type"}` with the status code of the error class.

Dependencies
------------
- Django REST Framework (API endpoints)
- stripe (official Python SDK, via the gateway)

Author: DSP Development Team
Date: 2025-09-03
"""

import logging

from rest_framework import status
from rest_framework.permissions import AllowAny, IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .exceptions import PayoutError
from .serializers import (
    CheckoutSessionSerializer,
    PayeeProfileSerializer,
    TestFundsSerializer,
    TransferRequestSerializer,
)
from .services import (
    get_gateway,
    get_onboarding_tracker,
    get_payout_orchestrator,
    get_webhook_verifier,
)
from .signals import dispatch_event

logger = logging.getLogger(__name__)


def error_response(exc: PayoutError) -> Response:
    return Response(exc.to_dict(), status=exc.status_code)


class ConnectedAccountView(APIView):
    permission_classes = [IsAdminUser]

    def post(self, request):
        serializer = PayeeProfileSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        existing_account_id = serializer.validated_data.get("existing_account_id") or None
        try:
            account_status = get_onboarding_tracker().ensure_account(
                serializer.to_domain(), existing_account_id=existing_account_id
            )
        except PayoutError as e:
            return error_response(e)

        return Response(
            account_status.to_dict(),
            status=status.HTTP_201_CREATED if account_status.created else status.HTTP_200_OK,
        )


class ConnectedAccountStatusView(APIView):
    permission_classes = [IsAdminUser]

    def get(self, request, account_id):
        try:
            account_status = get_onboarding_tracker().check_account_status(account_id)
        except PayoutError as e:
            return error_response(e)
        return Response(account_status.to_dict(), status=200)


class OnboardingLinkView(APIView):
    permission_classes = [IsAdminUser]

    def post(self, request, account_id):
        try:
            url = get_onboarding_tracker().create_onboarding_link(account_id)
        except PayoutError as e:
            return error_response(e)
        return Response({"account_id": account_id, "onboarding_url": url}, status=200)


class AccountPayoutListView(APIView):
    permission_classes = [IsAdminUser]

    def get(self, request, account_id):
        try:
            limit = int(request.query_params.get("limit", 10))
        except ValueError:
            return Response({"detail": "limit must be an integer."}, status=400)
        if not 1 <= limit <= 100:
            return Response({"detail": "limit must be between 1 and 100."}, status=400)

        try:
            payouts = get_payout_orchestrator().list_payouts(account_id, limit=limit)
        except PayoutError as e:
            return error_response(e)
        return Response({"payouts": [payout.to_dict() for payout in payouts]}, status=200)


class SendMoneyView(APIView):
    permission_classes = [IsAdminUser]

    def post(self, request):
        serializer = TransferRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            result = get_payout_orchestrator().send_money(serializer.to_domain())
        except PayoutError as e:
            return error_response(e)
        return Response(result.to_dict(), status=status.HTTP_201_CREATED)


class PayoutStatusView(APIView):
    permission_classes = [IsAdminUser]

    def get(self, request, payout_id):
        account_id = request.query_params.get("account_id")
        if not account_id:
            return Response({"detail": "account_id required."}, status=400)

        try:
            payout = get_payout_orchestrator().check_payout_status(payout_id, account_id)
        except PayoutError as e:
            return error_response(e)
        return Response(payout.to_dict(), status=200)


class BalanceView(APIView):
    permission_classes = [IsAdminUser]

    def get(self, request):
        try:
            balance = get_payout_orchestrator().check_available_balance()
        except PayoutError as e:
            return error_response(e)
        resp = Response(balance.to_dict(), status=200)
        resp["Cache-Control"] = "no-store"
        return resp


class TestFundsView(APIView):
    __test__ = False  # not a test class

    permission_classes = [IsAdminUser]

    def post(self, request):
        serializer = TestFundsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            charge = get_payout_orchestrator().add_test_funds(
                serializer.validated_data["amount_minor_units"]
            )
        except PayoutError as e:
            return error_response(e)
        return Response(charge.to_dict(), status=status.HTTP_201_CREATED)


class CreateCheckoutSessionView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = CheckoutSessionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            session = get_gateway().create_checkout_session(**serializer.validated_data)
        except PayoutError as e:
            return Response(
                {
                    "detail": "Stripe Checkout konnte nicht erstellt werden.",
                    "stripe_error": e.message,
                },
                status=e.status_code,
            )
        return Response(session, status=200)


class StripeWebhookView(APIView):
    """
    Receives Stripe events. The raw body and signature header are read before
    anything parses the request, because the signature covers the exact bytes.
    """

    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request):
        payload = request.body
        signature_header = request.META.get("HTTP_STRIPE_SIGNATURE", "")

        try:
            event = get_webhook_verifier().verify(payload, signature_header)
        except PayoutError as e:
            logger.warning("Rejected Stripe webhook: %s", e.message)
            return error_response(e)

        dispatch_event(sender=self.__class__, event=event)
        return Response({"received": True, "type": event.type}, status=200)
