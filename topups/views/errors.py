from rest_framework import status
from rest_framework.response import Response

from topups.exceptions import (
    AccountNotFound,
    IdempotencyConflict,
    SettlementError,
    TransactionNotPending,
    VendorError,
)

ERROR_STATUS = {
    AccountNotFound: status.HTTP_404_NOT_FOUND,
    IdempotencyConflict: status.HTTP_409_CONFLICT,
    TransactionNotPending: status.HTTP_409_CONFLICT,
    VendorError: status.HTTP_502_BAD_GATEWAY,
}


def error_response(exc: SettlementError) -> Response:
    """Render a service-layer failure; anything unmapped is a client error."""
    http_status = ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    return Response({"error": str(exc), "code": exc.code}, status=http_status)


def not_found(message: str) -> Response:
    return Response(
        {"error": message, "code": "not_found"},
        status=status.HTTP_404_NOT_FOUND,
    )


def bad_request(message: str) -> Response:
    return Response(
        {"error": message, "code": "invalid_request"},
        status=status.HTTP_400_BAD_REQUEST,
    )
