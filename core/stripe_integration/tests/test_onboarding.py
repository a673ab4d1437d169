"""
Tests für den AccountOnboardingTracker.

Author: DSP Development Team
Version: 1.0.0
"""

from django.test import SimpleTestCase

from core.stripe_integration.domain import AccountRequirements, OnboardingState
from core.stripe_integration.exceptions import AccountNotFound, GatewayError, InvalidIban
from core.stripe_integration.onboarding import AccountOnboardingTracker

from .fakes import FakeGateway, make_account, make_config, make_profile


class EnsureAccountTests(SimpleTestCase):
    def setUp(self):
        self.gateway = FakeGateway()
        self.tracker = AccountOnboardingTracker(self.gateway, make_config())

    def testNeuerAccountBekommtOnboardingLink(self):
        status = self.tracker.ensure_account(make_profile())

        self.assertTrue(status.created)
        self.assertEqual(status.state, OnboardingState.ONBOARDING_PENDING)
        self.assertFalse(status.ready)
        self.assertEqual(
            status.onboarding_url, f"https://connect.stripe.com/setup/e/{status.account_id}"
        )
        self.assertEqual(self.gateway.call_names(), ["create_account", "create_account_link"])
        link_call = self.gateway.calls[1]
        self.assertEqual(link_call[2], "https://example.com/return")
        self.assertEqual(link_call[3], "https://example.com/refresh")

    def testExistingReadyAccountIsReusedWithoutLink(self):
        self.gateway.accounts["acct_ready"] = make_account("acct_ready")

        status = self.tracker.ensure_account(make_profile(), existing_account_id="acct_ready")

        self.assertFalse(status.created)
        self.assertEqual(status.state, OnboardingState.PAYOUTS_ENABLED)
        self.assertTrue(status.ready)
        self.assertIsNone(status.onboarding_url)
        self.assertEqual(self.gateway.call_names(), ["retrieve_account"])

    def testWiederholterAufrufErstelltKeinenZweitenAccount(self):
        first = self.tracker.ensure_account(make_profile())
        second = self.tracker.ensure_account(make_profile(), existing_account_id=first.account_id)

        self.assertEqual(first.account_id, second.account_id)
        self.assertEqual(self.gateway.call_names().count("create_account"), 1)

    def testStaleAccountIdFallsThroughToCreation(self):
        with self.assertLogs("core.stripe_integration.onboarding", level="WARNING"):
            status = self.tracker.ensure_account(
                make_profile(), existing_account_id="acct_deleted"
            )

        self.assertTrue(status.created)
        self.assertNotEqual(status.account_id, "acct_deleted")
        self.assertEqual(
            self.gateway.call_names(),
            ["retrieve_account", "create_account", "create_account_link"],
        )

    def testUngueltigeIbanVorJedemGatewayAufruf(self):
        with self.assertRaises(InvalidIban):
            self.tracker.ensure_account(make_profile(iban="DE89370400440532013001"))
        self.assertEqual(self.gateway.calls, [])

    def testIbanIsNotCheckedWhenAccountExists(self):
        self.gateway.accounts["acct_ready"] = make_account("acct_ready")

        status = self.tracker.ensure_account(
            make_profile(iban="invalid"), existing_account_id="acct_ready"
        )

        self.assertTrue(status.ready)

    def testDetailsSubmittedButPayoutsDisabledStillPending(self):
        self.gateway.accounts["acct_half"] = make_account(
            "acct_half", ready=False, details_submitted=True
        )

        status = self.tracker.ensure_account(make_profile(), existing_account_id="acct_half")

        self.assertEqual(status.state, OnboardingState.ONBOARDING_PENDING)
        self.assertIsNotNone(status.onboarding_url)

    def testRejectedAccountGetsNoLink(self):
        self.gateway.accounts["acct_rejected"] = make_account(
            "acct_rejected",
            ready=False,
            requirements=AccountRequirements(disabled_reason="rejected.fraud"),
        )

        status = self.tracker.ensure_account(
            make_profile(), existing_account_id="acct_rejected"
        )

        self.assertEqual(status.state, OnboardingState.REJECTED)
        self.assertIsNone(status.onboarding_url)
        self.assertNotIn("create_account_link", self.gateway.call_names())

    def testGatewayErrorPropagates(self):
        def fail(profile):
            raise GatewayError("create account failed: timeout", retryable=True)

        self.gateway.create_account = fail

        with self.assertRaises(GatewayError) as ctx:
            self.tracker.ensure_account(make_profile())
        self.assertTrue(ctx.exception.retryable)


class AccountStatusTests(SimpleTestCase):
    def setUp(self):
        self.gateway = FakeGateway(
            [make_account("acct_new", ready=False, requirements=AccountRequirements(
                currently_due=["individual.id_number"]
            ))]
        )
        self.tracker = AccountOnboardingTracker(self.gateway, make_config())

    def testStatusCheckDoesNotIssueLink(self):
        status = self.tracker.check_account_status("acct_new")

        self.assertEqual(status.state, OnboardingState.CREATED)
        self.assertIsNone(status.onboarding_url)
        self.assertEqual(status.requirements.currently_due, ["individual.id_number"])
        self.assertEqual(self.gateway.call_names(), ["retrieve_account"])

    def testStatusOfUnknownAccount(self):
        with self.assertRaises(AccountNotFound):
            self.tracker.check_account_status("acct_missing")

    def testCreateOnboardingLink(self):
        url = self.tracker.create_onboarding_link("acct_new")
        self.assertEqual(url, "https://connect.stripe.com/setup/e/acct_new")

    def testStatusToDict(self):
        data = self.tracker.check_account_status("acct_new").to_dict()
        self.assertEqual(data["state"], "created")
        self.assertFalse(data["ready"])
        self.assertEqual(data["requirements"]["currently_due"], ["individual.id_number"])
