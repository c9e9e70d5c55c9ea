import logging
import secrets
import threading
from contextlib import contextmanager
from decimal import Decimal

from django.conf import settings
from django.db import IntegrityError, connection, transaction
from django.db.models import F

from topups.exceptions import (
    AccountNotFound,
    BundleUnavailable,
    IdempotencyConflict,
    InsufficientFunds,
    MissingPlanId,
    PinMismatch,
    PinNotSet,
    VendorError,
)
from topups.models import Account, Bundle, Transaction
from topups.services.notifications import notify_after_commit
from topups.services.pricing import (
    PricingConfig,
    quote_airtime,
    quote_bill,
    quote_bundle,
    round_up_savings,
)
from topups.utils import (
    calculate_expiry_date,
    get_gateway,
    parse_data_to_gb,
    record_successful_connection,
)

logger = logging.getLogger(__name__)

GB_QUANT = Decimal("0.00000001")

_guard_registry_lock = threading.Lock()
_account_guards = {}


@contextmanager
def account_guard(account_uuid):
    """
    Serialize wallet mutations for one account within this process.

    Backends with row locks (Postgres) already serialize through
    select_for_update(). On SQLite that call is a no-op, so a process-local
    lock per account stands in for it. Enter it outside transaction.atomic()
    so it is held until the commit.
    """
    if connection.features.has_select_for_update:
        yield
        return

    with _guard_registry_lock:
        guard = _account_guards.setdefault(str(account_uuid).lower(), threading.RLock())
    with guard:
        yield


def lock_account(account_uuid) -> Account:
    """Fetch the account row under a lock held until the transaction ends."""
    try:
        return Account.objects.select_for_update().get(uuid=account_uuid)
    except Account.DoesNotExist:
        raise AccountNotFound()


def authorize(account: Account, pin: str) -> None:
    if not account.has_pin:
        raise PinNotSet()
    if not account.check_pin(pin):
        logger.warning("PIN mismatch: account=%s", account.uuid)
        raise PinMismatch()


def find_idempotent(idempotency_key, account_uuid):
    """
    Return the account's transaction already recorded under `idempotency_key`.

    Raises:
        IdempotencyConflict: If the key belongs to a different account.
    """
    if not idempotency_key:
        return None
    existing_tx = (
        Transaction.objects.select_related("account")
        .filter(idempotency_key=idempotency_key)
        .first()
    )
    if existing_tx is None:
        return None

    if str(existing_tx.account.uuid) != str(account_uuid).lower():
        logger.warning(
            "Idempotency conflict: key=%s existing_account=%s new_account=%s",
            idempotency_key,
            existing_tx.account.uuid,
            account_uuid,
        )
        raise IdempotencyConflict()

    logger.info(
        "Idempotent request: key=%s tx=%s", idempotency_key, existing_tx.reference
    )
    return existing_tx


def generate_meter_token() -> str:
    return "-".join(str(1000 + secrets.randbelow(9000)) for _ in range(4))


def sender_id() -> str:
    return getattr(settings, "SMS_SENDER_ID", "JadanPay")


class SettlementService:
    """
    Settles airtime, data and bill purchases against an account's wallet.

    Every purchase runs the same sequence inside one database transaction,
    with the account row locked by select_for_update() (account_guard() on
    SQLite) from the funds check to the ledger write:

    1. Verify the transaction PIN.
    2. Price the product and check the balance covers it.
    3. Ask the vendor to deliver. A failure raises VendorError and nothing
       has been written yet.
    4. Debit the wallet with a conditional F() update and append the SUCCESS
       ledger entry carrying the balance snapshots.
    5. Queue the SMS receipt for after commit.
    """

    @staticmethod
    def purchase_airtime(
        account_uuid,
        provider: str,
        amount,
        phone: str,
        pin: str,
        round_up_savings: bool = False,
        idempotency_key: str = None,
    ) -> Transaction:
        existing_tx = find_idempotent(idempotency_key, account_uuid)
        if existing_tx:
            return existing_tx

        quote = quote_airtime(amount, PricingConfig.from_settings())
        gateway = get_gateway()

        def fulfil():
            return gateway.buy_airtime(provider, phone, amount)

        def receipt(tx, account):
            return (
                f"{sender_id()}: {provider} Airtime of N{amount} to {phone} "
                f"Successful. New Bal: N{account.balance:.2f}. Ref: {tx.reference}"
            )

        return _settle(
            account_uuid,
            pin,
            quote=lambda account: quote,
            fulfil=fulfil,
            receipt=receipt,
            vendor=gateway.name,
            round_up=round_up_savings,
            idempotency_key=idempotency_key,
            transaction_type=Transaction.TransactionType.AIRTIME,
            provider=provider,
            destination=phone,
        )

    @staticmethod
    def purchase_data(
        account_uuid,
        bundle_id,
        phone: str,
        pin: str,
        round_up_savings: bool = False,
        idempotency_key: str = None,
    ) -> Transaction:
        existing_tx = find_idempotent(idempotency_key, account_uuid)
        if existing_tx:
            return existing_tx

        bundle = _get_bundle(bundle_id)
        config = PricingConfig.from_settings()
        gateway = get_gateway()

        def fulfil():
            return gateway.buy_data(bundle.provider, phone, bundle.plan_id)

        def receipt(tx, account):
            return (
                f"{sender_id()}: {bundle.data_amount} Data sent to {phone}. "
                f"Plan: {bundle.name}. New Bal: N{account.balance:.2f}."
            )

        return _settle(
            account_uuid,
            pin,
            quote=lambda account: quote_bundle(
                bundle.price_for(account), bundle.cost_price, "data", config
            ),
            fulfil=fulfil,
            receipt=receipt,
            vendor=gateway.name,
            round_up=round_up_savings,
            data_gb=parse_data_to_gb(bundle.data_amount),
            idempotency_key=idempotency_key,
            transaction_type=Transaction.TransactionType.DATA,
            provider=bundle.provider,
            destination=phone,
            bundle_name=bundle.name,
            expiry_date=calculate_expiry_date(bundle.validity),
        )

    @staticmethod
    def pay_bill(
        account_uuid,
        transaction_type: str,
        provider: str,
        number: str,
        pin: str,
        amount=None,
        bundle_id=None,
        customer_name: str = "",
        idempotency_key: str = None,
    ) -> Transaction:
        """
        Pay a cable subscription (needs `bundle_id`) or buy electricity
        (needs `amount`).

        `customer_name` comes from the meter/smartcard verification the
        client performed beforehand and is stored on the ledger entry.

        Raises:
            ValueError: If `transaction_type` is not CABLE or ELECTRICITY.
        """
        existing_tx = find_idempotent(idempotency_key, account_uuid)
        if existing_tx:
            return existing_tx

        config = PricingConfig.from_settings()

        if transaction_type == Transaction.TransactionType.CABLE:
            if bundle_id is None:
                raise ValueError("Cable payments require a bundle.")
            bundle = _get_bundle(bundle_id)
            gateway = get_gateway()

            def quote(account):
                return quote_bundle(
                    bundle.price_for(account), bundle.cost_price, "cable", config
                )

            def fulfil():
                return gateway.buy_bill(
                    provider, number, bundle.price, plan_id=bundle.plan_id
                )

            extra = {
                "bundle_name": bundle.name,
                "expiry_date": calculate_expiry_date(bundle.validity),
            }

        elif transaction_type == Transaction.TransactionType.ELECTRICITY:
            bill_quote = quote_bill(amount, "electricity", config)
            gateway = get_gateway()

            def quote(account):
                return bill_quote

            def fulfil():
                return gateway.buy_bill(provider, number, amount)

            extra = {"bundle_name": "Top-up"}

        else:
            raise ValueError(f"Unsupported bill type: {transaction_type}")

        def receipt(tx, account):
            return (
                f"{sender_id()}: Bill Payment ({provider}) for {number} of "
                f"N{tx.amount} was successful. New Bal: N{account.balance:.2f}"
            )

        return _settle(
            account_uuid,
            pin,
            quote=quote,
            fulfil=fulfil,
            receipt=receipt,
            vendor=gateway.name,
            idempotency_key=idempotency_key,
            transaction_type=transaction_type,
            provider=provider,
            destination=number,
            customer_name=customer_name,
            **extra,
        )


def _get_bundle(bundle_id) -> Bundle:
    bundle = Bundle.objects.get(pk=bundle_id)
    if not bundle.is_available:
        raise BundleUnavailable()
    if not bundle.plan_id:
        raise MissingPlanId()
    return bundle


def _settle(
    account_uuid,
    pin,
    quote,
    fulfil,
    receipt,
    vendor,
    round_up=False,
    data_gb=None,
    idempotency_key=None,
    **ledger_fields,
) -> Transaction:
    delivered = False
    settled = False
    try:
        with account_guard(account_uuid), transaction.atomic():
            account = lock_account(account_uuid)
            authorize(account, pin)

            # A duplicate request that waited on the lock sees the winner here.
            existing_tx = find_idempotent(idempotency_key, account_uuid)
            if existing_tx:
                return existing_tx

            priced = quote(account)
            saved = round_up_savings(priced.gross_amount) if round_up else Decimal("0")
            total = priced.gross_amount + saved

            if account.balance < total:
                logger.warning(
                    "Settlement refused (insufficient balance): account=%s "
                    "balance=%s amount=%s",
                    account.uuid,
                    account.balance,
                    total,
                )
                raise InsufficientFunds()

            result = fulfil()
            if not result["success"]:
                logger.warning(
                    "Settlement failed (vendor error): account=%s type=%s response=%s",
                    account.uuid,
                    ledger_fields.get("transaction_type"),
                    result["response"],
                )
                raise VendorError(result["error"] or None)
            delivered = True

            previous_balance = account.balance
            updates = {"balance": F("balance") - total}
            if saved:
                updates["savings"] = F("savings") + saved
            if data_gb:
                updates["data_used_gb"] = F("data_used_gb") + data_gb.quantize(GB_QUANT)

            # Conditional decrement: never below zero even on a stale read.
            updated = Account.objects.filter(pk=account.pk, balance__gte=total).update(
                **updates
            )
            if not updated:
                raise InsufficientFunds()
            account.refresh_from_db()

            if ledger_fields.get("transaction_type") == Transaction.TransactionType.ELECTRICITY:
                ledger_fields["meter_token"] = str(
                    result["response"].get("token") or generate_meter_token()
                )

            tx = Transaction.objects.create(
                account=account,
                status=Transaction.Status.SUCCESS,
                amount=priced.gross_amount,
                cost_price=priced.cost_price,
                profit=priced.profit,
                service_fee=priced.service_fee,
                savings_amount=saved or None,
                previous_balance=previous_balance,
                new_balance=account.balance,
                vendor_reference=result["reference"],
                vendor_response=result["response"],
                idempotency_key=idempotency_key,
                **ledger_fields,
            )

            notify_after_commit(account.phone, receipt(tx, account))
        settled = True

    except IntegrityError:
        # Lost a race on the idempotency key; the debit above rolled back.
        existing_tx = find_idempotent(idempotency_key, account_uuid)
        if existing_tx:
            return existing_tx
        logger.exception(
            "Settlement write failed after vendor call: account=%s type=%s",
            account_uuid,
            ledger_fields.get("transaction_type"),
        )
        raise

    finally:
        # The gateway's own stamp rolled back with the settlement.
        if delivered and not settled:
            record_successful_connection(vendor)

    logger.info(
        "Settlement completed: account=%s type=%s amount=%s new_balance=%s tx=%s",
        account.uuid,
        tx.transaction_type,
        tx.amount,
        tx.new_balance,
        tx.reference,
    )
    return tx
