from decimal import Decimal

from rest_framework import serializers

MIN_AMOUNT = Decimal("0.01")


class FundWalletSerializer(serializers.Serializer):
    """Validates gateway-confirmed funding requests."""

    amount = serializers.DecimalField(
        max_digits=14, decimal_places=2, min_value=MIN_AMOUNT
    )
    payment_method = serializers.CharField(
        max_length=40, required=False, default="Bank Transfer"
    )


class ManualFundingSerializer(serializers.Serializer):
    """Validates bank transfers submitted with a proof of payment."""

    amount = serializers.DecimalField(
        max_digits=14, decimal_places=2, min_value=MIN_AMOUNT
    )
    proof_reference = serializers.CharField(max_length=255)


class AdjustBalanceSerializer(serializers.Serializer):
    amount = serializers.DecimalField(
        max_digits=14, decimal_places=2, min_value=MIN_AMOUNT
    )
    direction = serializers.ChoiceField(choices=["credit", "debit"])
