from rest_framework import serializers

from topups.models import Bundle


class BundleSerializer(serializers.ModelSerializer):
    class Meta:
        model = Bundle
        fields = (
            "id",
            "provider",
            "plan_type",
            "name",
            "price",
            "reseller_price",
            "data_amount",
            "validity",
            "is_available",
        )
        read_only_fields = fields
