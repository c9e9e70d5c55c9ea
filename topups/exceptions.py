"""
Typed failures raised by the settlement and funding services.

Every error is a per-request failure: views translate them into JSON error
responses and nothing here is fatal to the process. ``code`` is the stable
machine-readable name returned to API clients.
"""


class SettlementError(Exception):
    code = "settlement_error"
    default_message = "Transaction could not be completed."

    def __init__(self, message=None):
        super().__init__(message or self.default_message)


class AccountNotFound(SettlementError):
    code = "account_not_found"
    default_message = "Account not found."


class InvalidAmount(SettlementError):
    code = "invalid_amount"
    default_message = "Amount must be positive."


class PinNotSet(SettlementError):
    code = "pin_not_set"
    default_message = "Transaction PIN not set. Please create one in your Profile."


class PinMismatch(SettlementError):
    code = "pin_mismatch"
    default_message = "Incorrect transaction PIN."


class InsufficientFunds(SettlementError):
    code = "insufficient_funds"
    default_message = "Insufficient wallet balance."


class MissingPlanId(SettlementError):
    code = "missing_plan_id"
    default_message = (
        "Configuration Error: This bundle is missing an API Plan ID. "
        "Please contact support."
    )


class BundleUnavailable(SettlementError):
    code = "bundle_unavailable"
    default_message = "This bundle is not available."


class TransactionNotPending(SettlementError):
    code = "transaction_not_pending"
    default_message = "Transaction has already been processed."


class VendorError(SettlementError):
    """The upstream vendor refused, failed or timed out."""

    code = "vendor_error"
    default_message = "Service temporarily unavailable. Please try again later."

    def __init__(self, reason=None):
        self.reason = reason or self.default_message
        super().__init__(self.reason)


class IdempotencyConflict(SettlementError):
    code = "idempotency_conflict"
    default_message = "Idempotency key was already used by another account."
