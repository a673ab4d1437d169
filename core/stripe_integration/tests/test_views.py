"""
API-Tests für die Stripe-Payout-Endpunkte.

Die Service-Getter werden gepatcht, damit kein Request Stripe erreicht.

Author: DSP Development Team
Version: 1.0.0
"""

import json
from unittest import mock

from django.contrib.auth.models import User
from django.test import SimpleTestCase
from rest_framework.test import APIClient

from core.stripe_integration.exceptions import GatewayError
from core.stripe_integration.gateway import StripeGateway
from core.stripe_integration.onboarding import AccountOnboardingTracker
from core.stripe_integration.payouts import PayoutOrchestrator
from core.stripe_integration.signals import webhook_event_received
from core.stripe_integration.webhooks import WebhookVerifier

from .fakes import VALID_IBAN, FakeGateway, build_signature_header, make_account, make_config

BASE_URL = "/api/payments/stripe"


class PayoutApiTestCase(SimpleTestCase):
    def setUp(self):
        self.config = make_config()
        self.gateway = FakeGateway([make_account("acct_ready")])
        self.client = APIClient()
        self.client.force_authenticate(user=User(username="admin", is_staff=True))

        patches = [
            mock.patch(
                "core.stripe_integration.views.get_payout_orchestrator",
                return_value=PayoutOrchestrator(self.gateway, self.config),
            ),
            mock.patch(
                "core.stripe_integration.views.get_onboarding_tracker",
                return_value=AccountOnboardingTracker(self.gateway, self.config),
            ),
            mock.patch(
                "core.stripe_integration.views.get_gateway", return_value=self.gateway
            ),
        ]
        for patcher in patches:
            patcher.start()
            self.addCleanup(patcher.stop)


class AuthenticationTests(PayoutApiTestCase):
    def testOhneLoginGibtEs401(self):
        client = APIClient()
        response = client.post(
            f"{BASE_URL}/payouts/",
            {"destination_account_id": "acct_ready", "amount_minor_units": 150},
            format="json",
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(self.gateway.calls, [])

    def testNonAdminGetsForbidden(self):
        client = APIClient()
        client.force_authenticate(user=User(username="max", is_staff=False))
        response = client.get(f"{BASE_URL}/balance/")
        self.assertEqual(response.status_code, 403)


class ConnectedAccountViewTests(PayoutApiTestCase):
    def profile_data(self, **overrides):
        data = {
            "email": "max@example.com",
            "first_name": "Max",
            "last_name": "Mustermann",
            "birth_day": 1,
            "birth_month": 1,
            "birth_year": 1990,
            "address_line1": "Musterstraße 1",
            "city": "Berlin",
            "postal_code": "10115",
            "iban": "de89 3704 0044 0532 0130 00",
            "account_holder_name": "Max Mustermann",
        }
        data.update(overrides)
        return data

    def testNeuerAccountGibt201(self):
        response = self.client.post(f"{BASE_URL}/accounts/", self.profile_data(), format="json")

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["state"], "onboarding_pending")
        self.assertTrue(body["onboarding_url"].startswith("https://connect.stripe.com/"))
        profile = self.gateway.calls[0][1]
        self.assertEqual(profile.iban, VALID_IBAN)
        self.assertIsNone(profile.phone)

    def testExistingAccountGibt200(self):
        response = self.client.post(
            f"{BASE_URL}/accounts/",
            self.profile_data(existing_account_id="acct_ready"),
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["ready"])

    def testUngueltigeIbanGibt400(self):
        response = self.client.post(
            f"{BASE_URL}/accounts/",
            self.profile_data(iban="DE00000000000000000000"),
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("iban", response.json())
        self.assertEqual(self.gateway.calls, [])

    def testAccountStatus(self):
        response = self.client.get(f"{BASE_URL}/accounts/acct_ready/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["state"], "payouts_enabled")

    def testUnknownAccountGives404(self):
        response = self.client.get(f"{BASE_URL}/accounts/acct_missing/")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error_code"], "account_not_found")

    def testOnboardingLink(self):
        response = self.client.post(f"{BASE_URL}/accounts/acct_ready/onboarding-link/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["account_id"], "acct_ready")

    def testAccountPayoutList(self):
        response = self.client.get(f"{BASE_URL}/accounts/acct_ready/payouts/?limit=1")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()["payouts"]), 1)

    def testInvalidLimit(self):
        for limit in ("0", "101", "abc"):
            with self.subTest(limit=limit):
                response = self.client.get(f"{BASE_URL}/accounts/acct_ready/payouts/?limit={limit}")
                self.assertEqual(response.status_code, 400)


class SendMoneyViewTests(PayoutApiTestCase):
    def testAuszahlungGibt201(self):
        response = self.client.post(
            f"{BASE_URL}/payouts/",
            {"destination_account_id": "acct_ready", "amount_minor_units": 150},
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["amount"], 1.5)
        self.assertEqual(body["amount_minor_units"], 150)
        self.assertEqual(body["status"], "pending")

    def testIdempotencyKeyReachesTransfer(self):
        response = self.client.post(
            f"{BASE_URL}/payouts/",
            {
                "destination_account_id": "acct_ready",
                "amount_minor_units": 150,
                "idempotency_key": "order-42",
            },
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        transfer_call = self.gateway.calls[0]
        self.assertEqual(transfer_call[0], "create_transfer")
        self.assertEqual(transfer_call[6], "transfer-order-42")

    def testBetragUnterMinimumGibt400(self):
        response = self.client.post(
            f"{BASE_URL}/payouts/",
            {"destination_account_id": "acct_ready", "amount_minor_units": 99},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error_code"], "invalid_amount")
        self.assertEqual(self.gateway.calls, [])

    def testPartialTransferGibt502MitTransferId(self):
        self.gateway.payout_error = GatewayError("create payout failed: bank down")

        with self.assertLogs("core.stripe_integration.payouts", level="ERROR"):
            response = self.client.post(
                f"{BASE_URL}/payouts/",
                {"destination_account_id": "acct_ready", "amount_minor_units": 150},
                format="json",
            )

        self.assertEqual(response.status_code, 502)
        body = response.json()
        self.assertEqual(body["error_code"], "partial_transfer")
        self.assertTrue(body["details"]["transfer_id"].startswith("tr_"))

    def testPayoutStatusNeedsAccountId(self):
        response = self.client.get(f"{BASE_URL}/payouts/po_123/")
        self.assertEqual(response.status_code, 400)

        response = self.client.get(f"{BASE_URL}/payouts/po_123/?account_id=acct_ready")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "in_transit")


class BalanceViewTests(PayoutApiTestCase):
    def testBalance(self):
        response = self.client.get(f"{BASE_URL}/balance/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response["Cache-Control"], "no-store")
        self.assertEqual(response.json()["available"][0]["amount"], 123.45)

    def testTestguthaben(self):
        response = self.client.post(
            f"{BASE_URL}/balance/test-funds/", {"amount_minor_units": 10000}, format="json"
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["status"], "succeeded")

    def testTestguthabenImLiveModusGibt403(self):
        live = make_config(secret_key="sk_live_123", test_mode=False)
        with mock.patch(
            "core.stripe_integration.views.get_payout_orchestrator",
            return_value=PayoutOrchestrator(self.gateway, live),
        ):
            response = self.client.post(
                f"{BASE_URL}/balance/test-funds/", {"amount_minor_units": 10000}, format="json"
            )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["error_code"], "sandbox_only")


class CheckoutSessionViewTests(PayoutApiTestCase):
    def testCheckoutSession(self):
        client = APIClient()
        client.force_authenticate(user=User(username="max", is_staff=False))
        response = client.post(
            f"{BASE_URL}/checkout-session/",
            {
                "product_name": "Kurs",
                "amount_minor_units": 4900,
                "success_url": "https://example.com/ok",
                "cancel_url": "https://example.com/cancel",
            },
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["id"], "cs_test_1")
        kwargs = self.gateway.calls[0][1]
        self.assertEqual(kwargs["mode"], "payment")
        self.assertEqual(kwargs["expires_in"], 3600)

    def testExpiryOutOfRange(self):
        response = self.client.post(
            f"{BASE_URL}/checkout-session/",
            {
                "product_name": "Kurs",
                "amount_minor_units": 4900,
                "success_url": "https://example.com/ok",
                "cancel_url": "https://example.com/cancel",
                "expires_in": 60,
            },
            format="json",
        )
        self.assertEqual(response.status_code, 400)


class StripeWebhookViewTests(SimpleTestCase):
    SECRET = "whsec_test_secret"

    def setUp(self):
        patcher = mock.patch(
            "core.stripe_integration.views.get_webhook_verifier",
            return_value=WebhookVerifier(StripeGateway(make_config()), self.SECRET),
        )
        patcher.start()
        self.addCleanup(patcher.stop)
        self.client = APIClient()
        self.payload = json.dumps(
            {"id": "evt_1", "type": "payout.paid", "data": {"object": {"id": "po_1"}}}
        ).encode("utf-8")

    def post(self, payload, header):
        return self.client.post(
            f"{BASE_URL}/webhook/",
            payload,
            content_type="application/json",
            HTTP_STRIPE_SIGNATURE=header,
        )

    def testGueltigerWebhookGibt200(self):
        received = []

        def handler(sender, event, **kwargs):
            received.append(event.type)
            return True

        webhook_event_received.connect(handler)
        self.addCleanup(webhook_event_received.disconnect, handler)

        response = self.post(self.payload, build_signature_header(self.payload, self.SECRET))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"received": True, "type": "payout.paid"})
        self.assertEqual(received, ["payout.paid"])

    def testFalscheSignaturGibt400(self):
        header = build_signature_header(self.payload, "whsec_other")
        with self.assertLogs("core.stripe_integration.views", level="WARNING"):
            response = self.post(self.payload, header)

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["details"]["reason"], "signature_mismatch")

    def testFehlenderHeaderGibt400(self):
        with self.assertLogs("core.stripe_integration.views", level="WARNING"):
            response = self.client.post(
                f"{BASE_URL}/webhook/", self.payload, content_type="application/json"
            )
        self.assertEqual(response.status_code, 400)

    def testAltesEventGibt400(self):
        header = build_signature_header(self.payload, self.SECRET, timestamp=1_000_000_000)
        with self.assertLogs("core.stripe_integration.views", level="WARNING"):
            response = self.post(self.payload, header)

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["details"]["reason"], "stale")
