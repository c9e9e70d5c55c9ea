from rest_framework.generics import ListAPIView, RetrieveAPIView

from topups.models import Transaction
from topups.serializers import TransactionSerializer


class TransactionListView(ListAPIView):
    """
    GET /accounts/<uuid>/transactions/: Ledger for an account, newest first.

    Query params:
        - status: Filter by transaction status (PENDING, SUCCESS, FAILED)
        - type: Filter by transaction type (AIRTIME, DATA, WALLET_FUND, ...)
    """

    serializer_class = TransactionSerializer

    def get_queryset(self):
        account_uuid = self.kwargs["uuid"]
        queryset = Transaction.objects.select_related("account").filter(
            account__uuid=account_uuid
        )

        tx_status = self.request.query_params.get("status")
        if tx_status:
            queryset = queryset.filter(status=tx_status.upper())

        tx_type = self.request.query_params.get("type")
        if tx_type:
            queryset = queryset.filter(transaction_type=tx_type.upper())

        return queryset


class TransactionDetailView(RetrieveAPIView):
    """GET /accounts/<uuid>/transactions/<id>/: Retrieve a single ledger entry."""

    serializer_class = TransactionSerializer
    lookup_field = "id"

    def get_queryset(self):
        account_uuid = self.kwargs["uuid"]
        return Transaction.objects.select_related("account").filter(
            account__uuid=account_uuid
        )
