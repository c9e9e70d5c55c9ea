import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from topups.exceptions import SettlementError
from topups.serializers import (
    AccountSerializer,
    FundWalletSerializer,
    ManualFundingSerializer,
    TransactionSerializer,
)
from topups.services import FundingService
from topups.views.errors import bad_request, error_response

logger = logging.getLogger(__name__)


class FundWalletView(APIView):
    """
    POST /accounts/<uuid>/fund: Credit a gateway-confirmed payment.

    Request body: {"amount": "5000", "payment_method": "Paystack"}
    """

    def post(self, request, uuid, *args, **kwargs):
        serializer = FundWalletSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            tx = FundingService.fund_wallet(
                account_uuid=uuid,
                amount=serializer.validated_data["amount"],
                payment_method=serializer.validated_data["payment_method"],
                idempotency_key=request.META.get("HTTP_IDEMPOTENCY_KEY"),
            )
        except SettlementError as exc:
            return error_response(exc)

        return Response(
            {
                "account": AccountSerializer(tx.account).data,
                "transaction": TransactionSerializer(tx).data,
            },
            status=status.HTTP_200_OK,
        )


class ManualFundingView(APIView):
    """
    POST /accounts/<uuid>/fund/manual: Submit a bank transfer for review.

    Request body: {"amount": "5000", "proof_reference": "<receipt url or id>"}
    Note: The balance is credited when an admin approves, not now.
    """

    def post(self, request, uuid, *args, **kwargs):
        serializer = ManualFundingSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            tx = FundingService.submit_manual_funding(
                account_uuid=uuid,
                amount=serializer.validated_data["amount"],
                proof_reference=serializer.validated_data["proof_reference"],
            )
        except SettlementError as exc:
            return error_response(exc)
        except ValueError as exc:
            return bad_request(str(exc))

        return Response(
            TransactionSerializer(tx).data,
            status=status.HTTP_201_CREATED,
        )
