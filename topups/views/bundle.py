from rest_framework.generics import ListAPIView

from topups.models import Bundle
from topups.serializers import BundleSerializer


class BundleListView(ListAPIView):
    """
    GET /accounts/bundles/: Purchasable data and cable plans.

    Query params:
        - provider: Filter by network or bill provider (MTN, DSTV, ...)
    """

    serializer_class = BundleSerializer

    def get_queryset(self):
        queryset = Bundle.objects.filter(is_available=True).order_by("provider", "price")

        provider = self.request.query_params.get("provider")
        if provider:
            queryset = queryset.filter(provider=provider.upper())

        return queryset
