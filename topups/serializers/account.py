from rest_framework import serializers

from topups.models import Account
from topups.models.account import PIN_PATTERN


class AccountSerializer(serializers.ModelSerializer):
    has_pin = serializers.BooleanField(read_only=True)

    class Meta:
        model = Account
        fields = (
            "uuid",
            "name",
            "phone",
            "role",
            "balance",
            "savings",
            "bonus_balance",
            "data_used_gb",
            "is_verified",
            "has_pin",
            "created_at",
            "updated_at",
        )
        read_only_fields = (
            "uuid",
            "role",
            "balance",
            "savings",
            "bonus_balance",
            "data_used_gb",
            "is_verified",
            "created_at",
            "updated_at",
        )


class SetPinSerializer(serializers.Serializer):
    """Validates PIN creation and change requests."""

    pin = serializers.CharField(min_length=4, max_length=4)
    current_pin = serializers.CharField(required=False, allow_blank=True)

    def validate_pin(self, value):
        if not PIN_PATTERN.match(value):
            raise serializers.ValidationError("PIN must be exactly 4 digits.")
        return value
