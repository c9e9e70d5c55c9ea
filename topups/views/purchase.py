import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from topups.exceptions import SettlementError
from topups.models import Bundle
from topups.serializers import (
    AccountSerializer,
    AirtimePurchaseSerializer,
    BillPaymentSerializer,
    DataPurchaseSerializer,
    TransactionSerializer,
)
from topups.services import SettlementService
from topups.views.errors import bad_request, error_response, not_found

logger = logging.getLogger(__name__)


def settlement_response(tx):
    return Response(
        {
            "account": AccountSerializer(tx.account).data,
            "transaction": TransactionSerializer(tx).data,
        },
        status=status.HTTP_201_CREATED,
    )


class AirtimePurchaseView(APIView):
    """
    POST /accounts/<uuid>/airtime: Buy airtime from the wallet.

    Request body: {"provider": "MTN", "amount": "1000", "phone": "080...",
                   "pin": "1234", "round_up_savings": false}
    """

    def post(self, request, uuid, *args, **kwargs):
        serializer = AirtimePurchaseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            tx = SettlementService.purchase_airtime(
                account_uuid=uuid,
                provider=data["provider"],
                amount=data["amount"],
                phone=data["phone"],
                pin=data["pin"],
                round_up_savings=data["round_up_savings"],
                idempotency_key=request.META.get("HTTP_IDEMPOTENCY_KEY"),
            )
        except SettlementError as exc:
            return error_response(exc)

        return settlement_response(tx)


class DataPurchaseView(APIView):
    """
    POST /accounts/<uuid>/data: Buy a data bundle from the wallet.

    Request body: {"bundle_id": 1, "phone": "080...", "pin": "1234"}
    """

    def post(self, request, uuid, *args, **kwargs):
        serializer = DataPurchaseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            tx = SettlementService.purchase_data(
                account_uuid=uuid,
                bundle_id=data["bundle_id"],
                phone=data["phone"],
                pin=data["pin"],
                round_up_savings=data["round_up_savings"],
                idempotency_key=request.META.get("HTTP_IDEMPOTENCY_KEY"),
            )
        except Bundle.DoesNotExist:
            return not_found("Bundle not found.")
        except SettlementError as exc:
            return error_response(exc)

        return settlement_response(tx)


class BillPaymentView(APIView):
    """
    POST /accounts/<uuid>/bills: Pay for cable TV or electricity.

    Request body: {"transaction_type": "ELECTRICITY", "provider": "IKEDC",
                   "number": "<meter>", "amount": "5000", "pin": "1234",
                   "customer_name": "<from verification>"}
    Cable payments send "bundle_id" instead of "amount".
    """

    def post(self, request, uuid, *args, **kwargs):
        serializer = BillPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            tx = SettlementService.pay_bill(
                account_uuid=uuid,
                transaction_type=data["transaction_type"],
                provider=data["provider"],
                number=data["number"],
                pin=data["pin"],
                amount=data.get("amount"),
                bundle_id=data.get("bundle_id"),
                customer_name=data["customer_name"],
                idempotency_key=request.META.get("HTTP_IDEMPOTENCY_KEY"),
            )
        except Bundle.DoesNotExist:
            return not_found("Bundle not found.")
        except SettlementError as exc:
            return error_response(exc)
        except ValueError as exc:
            return bad_request(str(exc))

        return settlement_response(tx)
