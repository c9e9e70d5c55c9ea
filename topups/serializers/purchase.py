from decimal import Decimal

from rest_framework import serializers

from topups.models import BillProvider, Provider, Transaction

MIN_AMOUNT = Decimal("0.01")


class PinSerializer(serializers.Serializer):
    pin = serializers.CharField(max_length=4, trim_whitespace=True)


class AirtimePurchaseSerializer(PinSerializer):
    """Validates airtime purchase requests."""

    provider = serializers.ChoiceField(choices=Provider.choices)
    amount = serializers.DecimalField(
        max_digits=14, decimal_places=2, min_value=MIN_AMOUNT
    )
    phone = serializers.CharField(max_length=20)
    round_up_savings = serializers.BooleanField(default=False)


class DataPurchaseSerializer(PinSerializer):
    """Validates data bundle purchase requests."""

    bundle_id = serializers.IntegerField(min_value=1)
    phone = serializers.CharField(max_length=20)
    round_up_savings = serializers.BooleanField(default=False)


class BillPaymentSerializer(PinSerializer):
    """
    Validates cable and electricity payments.

    Cable needs the subscription bundle; electricity needs the amount.
    """

    transaction_type = serializers.ChoiceField(
        choices=[
            Transaction.TransactionType.CABLE,
            Transaction.TransactionType.ELECTRICITY,
        ]
    )
    provider = serializers.ChoiceField(choices=BillProvider.choices)
    number = serializers.CharField(max_length=30)
    amount = serializers.DecimalField(
        max_digits=14, decimal_places=2, min_value=MIN_AMOUNT, required=False
    )
    bundle_id = serializers.IntegerField(min_value=1, required=False)
    customer_name = serializers.CharField(
        max_length=200, required=False, allow_blank=True, default=""
    )

    def validate(self, attrs):
        tx_type = attrs["transaction_type"]
        if tx_type == Transaction.TransactionType.CABLE and not attrs.get("bundle_id"):
            raise serializers.ValidationError({"bundle_id": "Required for cable payments."})
        if tx_type == Transaction.TransactionType.ELECTRICITY and not attrs.get("amount"):
            raise serializers.ValidationError({"amount": "Required for electricity payments."})
        return attrs
