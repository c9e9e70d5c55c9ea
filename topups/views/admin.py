import logging

from rest_framework import status
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response
from rest_framework.views import APIView

from topups.exceptions import SettlementError
from topups.models import Transaction
from topups.serializers import (
    AccountSerializer,
    AdjustBalanceSerializer,
    TransactionSerializer,
)
from topups.services import FundingService
from topups.views.errors import error_response, not_found

logger = logging.getLogger(__name__)


class ApproveTransactionView(APIView):
    """POST /accounts/admin/transactions/<id>/approve: Credit a pending funding."""

    permission_classes = [IsAdminUser]

    def post(self, request, id, *args, **kwargs):
        try:
            tx = FundingService.approve_transaction(id)
        except Transaction.DoesNotExist:
            return not_found("Transaction not found.")
        except SettlementError as exc:
            return error_response(exc)

        logger.info("Funding approved by %s: tx=%s", request.user, tx.reference)
        return Response(TransactionSerializer(tx).data, status=status.HTTP_200_OK)


class DeclineTransactionView(APIView):
    """POST /accounts/admin/transactions/<id>/decline: Reject a pending funding."""

    permission_classes = [IsAdminUser]

    def post(self, request, id, *args, **kwargs):
        try:
            tx = FundingService.decline_transaction(id)
        except Transaction.DoesNotExist:
            return not_found("Transaction not found.")
        except SettlementError as exc:
            return error_response(exc)

        logger.info("Funding declined by %s: tx=%s", request.user, tx.reference)
        return Response(TransactionSerializer(tx).data, status=status.HTTP_200_OK)


class AdjustBalanceView(APIView):
    """
    POST /accounts/admin/<uuid>/adjust: Manual credit or debit.

    Request body: {"amount": "500", "direction": "credit" | "debit"}
    """

    permission_classes = [IsAdminUser]

    def post(self, request, uuid, *args, **kwargs):
        serializer = AdjustBalanceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            tx = FundingService.adjust_balance(
                account_uuid=uuid,
                amount=serializer.validated_data["amount"],
                credit=serializer.validated_data["direction"] == "credit",
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
