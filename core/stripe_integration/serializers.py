"""
Stripe Payout Serializers

Django REST Framework serializers validating the request bodies of the payout
API before they reach the onboarding tracker or payout orchestrator. Each
serializer exposes a `to_domain()` helper returning the matching record from
`domain.py`.

Amount bounds are deliberately not checked here: the orchestrator owns that
rule and reports it as `InvalidAmount`.

Author: DSP Development Team
Version: 1.0.0
"""

from rest_framework import serializers

from .domain import PayeeProfile, TransferRequest
from .validators import normalize_iban, validate_german_iban


class PayeeProfileSerializer(serializers.Serializer):
    """
    Serializer für die Stammdaten eines Zahlungsempfängers
    """

    existing_account_id = serializers.CharField(required=False, allow_blank=True)
    email = serializers.EmailField()
    first_name = serializers.CharField(max_length=100)
    last_name = serializers.CharField(max_length=100)
    phone = serializers.CharField(required=False, allow_blank=True, max_length=30)
    birth_day = serializers.IntegerField(min_value=1, max_value=31)
    birth_month = serializers.IntegerField(min_value=1, max_value=12)
    birth_year = serializers.IntegerField(min_value=1900, max_value=2100)
    address_line1 = serializers.CharField(max_length=200)
    address_line2 = serializers.CharField(required=False, allow_blank=True, max_length=200)
    city = serializers.CharField(max_length=100)
    postal_code = serializers.CharField(max_length=20)
    state = serializers.CharField(required=False, allow_blank=True, max_length=100)
    iban = serializers.CharField(max_length=42)
    bic = serializers.CharField(required=False, allow_blank=True, max_length=11)
    account_holder_name = serializers.CharField(max_length=200)
    business_type = serializers.ChoiceField(
        choices=["individual", "company"], default="individual"
    )

    def validate_iban(self, value):
        """
        Validiere dass die IBAN eine gültige deutsche IBAN ist
        """
        if not validate_german_iban(value):
            raise serializers.ValidationError("Ungültige IBAN.")
        return normalize_iban(value)

    def to_domain(self) -> PayeeProfile:
        data = dict(self.validated_data)
        data.pop("existing_account_id", None)
        # Blank optional fields are sent to Stripe as "not provided"
        for optional in ("phone", "address_line2", "state", "bic"):
            data[optional] = data.get(optional) or None
        return PayeeProfile(**data)


class TransferRequestSerializer(serializers.Serializer):
    """
    Serializer für eine Auszahlung an einen Connected Account
    """

    destination_account_id = serializers.CharField(max_length=255)
    amount_minor_units = serializers.IntegerField()
    currency = serializers.CharField(required=False, allow_blank=True, max_length=3)
    description = serializers.CharField(
        required=False, max_length=500, default="Payout transfer"
    )
    # Stripe limits statement descriptors to 22 characters
    statement_descriptor = serializers.CharField(
        required=False, allow_blank=True, max_length=22
    )
    metadata = serializers.DictField(
        child=serializers.CharField(max_length=500), required=False, default=dict
    )
    idempotency_key = serializers.CharField(required=False, allow_blank=True, max_length=200)

    def to_domain(self) -> TransferRequest:
        data = self.validated_data
        return TransferRequest(
            destination_account_id=data["destination_account_id"],
            amount_minor_units=data["amount_minor_units"],
            currency=data.get("currency") or None,
            description=data.get("description") or "Payout transfer",
            statement_descriptor=data.get("statement_descriptor") or None,
            metadata=dict(data.get("metadata") or {}),
            idempotency_key=data.get("idempotency_key") or None,
        )


class TestFundsSerializer(serializers.Serializer):
    __test__ = False  # not a test class

    amount_minor_units = serializers.IntegerField()


class CheckoutSessionSerializer(serializers.Serializer):
    """
    Serializer für eine Checkout Session (Einmalzahlung oder Abo)
    """

    product_name = serializers.CharField(max_length=250)
    product_description = serializers.CharField(
        required=False, allow_blank=True, default="", max_length=500
    )
    amount_minor_units = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(min_value=1, default=1)
    success_url = serializers.URLField()
    cancel_url = serializers.URLField()
    mode = serializers.ChoiceField(choices=["payment", "subscription"], default="payment")
    interval = serializers.ChoiceField(
        choices=["day", "week", "month", "year"], default="month"
    )
    interval_count = serializers.IntegerField(min_value=1, default=1)
    # Stripe accepts expiry between 30 minutes and 24 hours
    expires_in = serializers.IntegerField(min_value=1800, max_value=86400, default=3600)
