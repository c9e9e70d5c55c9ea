import logging

from rest_framework import status
from rest_framework.generics import CreateAPIView, RetrieveAPIView
from rest_framework.response import Response
from rest_framework.views import APIView

from topups.exceptions import SettlementError
from topups.models import Account
from topups.serializers import AccountSerializer, SetPinSerializer
from topups.services import AccountService
from topups.views.errors import bad_request, error_response

logger = logging.getLogger(__name__)


class CreateAccountView(CreateAPIView):
    """POST /accounts/: Open a new wallet account."""

    serializer_class = AccountSerializer


class RetrieveAccountView(RetrieveAPIView):
    """GET /accounts/<uuid>/: Retrieve account balances."""

    serializer_class = AccountSerializer
    queryset = Account.objects.all()
    lookup_field = "uuid"


class SetPinView(APIView):
    """
    POST /accounts/<uuid>/pin: Create or change the transaction PIN.

    Request body: {"pin": "1234", "current_pin": "<required when changing>"}
    """

    def post(self, request, uuid, *args, **kwargs):
        serializer = SetPinSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            account = AccountService.set_pin(
                account_uuid=uuid,
                pin=serializer.validated_data["pin"],
                current_pin=serializer.validated_data.get("current_pin"),
            )
        except SettlementError as exc:
            return error_response(exc)
        except ValueError as exc:
            return bad_request(str(exc))

        return Response(AccountSerializer(account).data, status=status.HTTP_200_OK)
