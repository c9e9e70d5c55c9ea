from rest_framework import serializers

from topups.models import Transaction


class TransactionSerializer(serializers.ModelSerializer):
    """Read-only serializer for ledger entries."""

    account_uuid = serializers.UUIDField(source="account.uuid", read_only=True)

    class Meta:
        model = Transaction
        fields = (
            "id",
            "reference",
            "account_uuid",
            "transaction_type",
            "status",
            "provider",
            "amount",
            "cost_price",
            "profit",
            "service_fee",
            "savings_amount",
            "destination",
            "bundle_name",
            "previous_balance",
            "new_balance",
            "expiry_date",
            "vendor_reference",
            "payment_method",
            "proof_reference",
            "customer_name",
            "meter_token",
            "admin_action_at",
            "created_at",
            "updated_at",
        )
        read_only_fields = fields
