import logging

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from topups.exceptions import InsufficientFunds, TransactionNotPending
from topups.models import Account, Transaction, generate_reference
from topups.services.notifications import notify_after_commit
from topups.services.pricing import positive_amount
from topups.services.settlement import (
    account_guard,
    find_idempotent,
    lock_account,
    sender_id,
)

logger = logging.getLogger(__name__)


def _positive_amount(amount):
    return positive_amount(amount, "Funding amount")


class FundingService:
    """
    Credits and admin adjustments to the wallet balance.

    Gateway-confirmed fundings credit immediately. Bank transfers with a proof
    of payment are recorded PENDING and only credit when an admin approves
    them; the approval locks the ledger row so a second approval can never
    credit twice.
    """

    @staticmethod
    def fund_wallet(
        account_uuid,
        amount,
        payment_method: str = "Bank Transfer",
        idempotency_key: str = None,
    ) -> Transaction:
        """
        Credit a funding the payment gateway has already confirmed.

        Returns:
            The created (or existing, for a repeated idempotency key) SUCCESS
            Transaction.

        Raises:
            AccountNotFound: If the account doesn't exist.
            InvalidAmount: If amount is not positive.
            IdempotencyConflict: If the key belongs to another account.
        """
        amount = _positive_amount(amount)

        existing_tx = find_idempotent(idempotency_key, account_uuid)
        if existing_tx:
            return existing_tx

        try:
            with account_guard(account_uuid), transaction.atomic():
                account = lock_account(account_uuid)

                existing_tx = find_idempotent(idempotency_key, account_uuid)
                if existing_tx:
                    return existing_tx

                previous_balance = account.balance
                Account.objects.filter(pk=account.pk).update(
                    balance=F("balance") + amount
                )
                account.refresh_from_db()

                tx = Transaction.objects.create(
                    account=account,
                    transaction_type=Transaction.TransactionType.WALLET_FUND,
                    status=Transaction.Status.SUCCESS,
                    amount=amount,
                    previous_balance=previous_balance,
                    new_balance=account.balance,
                    payment_method=payment_method,
                    idempotency_key=idempotency_key,
                )

                notify_after_commit(
                    account.phone,
                    f"{sender_id()}: Wallet funded with N{amount} Successfully. "
                    f"New Bal: N{account.balance:.2f}. Ref: {tx.reference}",
                )

        except IntegrityError:
            # Lost a race on the idempotency key; the credit above rolled back.
            existing_tx = find_idempotent(idempotency_key, account_uuid)
            if existing_tx:
                return existing_tx
            raise

        logger.info(
            "Wallet funded: account=%s amount=%s new_balance=%s tx=%s",
            account.uuid,
            amount,
            account.balance,
            tx.reference,
        )
        return tx

    @staticmethod
    @transaction.atomic
    def submit_manual_funding(
        account_uuid, amount, proof_reference: str, payment_method: str = "Manual Transfer"
    ) -> Transaction:
        """
        Record a bank transfer awaiting admin review.

        The balance is NOT touched here; approve_transaction() credits it.
        """
        amount = _positive_amount(amount)
        if not proof_reference:
            raise ValueError("Proof of payment is required.")

        account = lock_account(account_uuid)
        tx = Transaction.objects.create(
            account=account,
            transaction_type=Transaction.TransactionType.WALLET_FUND,
            status=Transaction.Status.PENDING,
            amount=amount,
            payment_method=payment_method,
            proof_reference=proof_reference,
        )

        logger.info(
            "Manual funding submitted: account=%s amount=%s tx=%s",
            account.uuid,
            amount,
            tx.reference,
        )
        return tx

    @staticmethod
    @transaction.atomic
    def approve_transaction(transaction_id: int) -> Transaction:
        """
        Approve a pending manual funding and credit the wallet now.

        Raises:
            Transaction.DoesNotExist: If the transaction doesn't exist.
            TransactionNotPending: If it was already approved or declined.
        """
        tx = _lock_pending_funding(transaction_id)
        account = lock_account(tx.account.uuid)
        previous_balance = account.balance

        Account.objects.filter(pk=account.pk).update(
            balance=F("balance") + tx.amount
        )
        account.refresh_from_db()

        tx.status = Transaction.Status.SUCCESS
        tx.previous_balance = previous_balance
        tx.new_balance = account.balance
        tx.admin_action_at = timezone.now()
        tx.save(
            update_fields=[
                "status",
                "previous_balance",
                "new_balance",
                "admin_action_at",
                "updated_at",
            ]
        )

        notify_after_commit(
            account.phone,
            f"{sender_id()}: Your payment of N{tx.amount} has been approved. "
            f"New Bal: N{account.balance:.2f}. Ref: {tx.reference}",
        )

        logger.info(
            "Manual funding approved: account=%s amount=%s new_balance=%s tx=%s",
            account.uuid,
            tx.amount,
            account.balance,
            tx.reference,
        )
        return tx

    @staticmethod
    @transaction.atomic
    def decline_transaction(transaction_id: int) -> Transaction:
        """Decline a pending manual funding; the balance is never credited."""
        tx = _lock_pending_funding(transaction_id)
        tx.status = Transaction.Status.FAILED
        tx.admin_action_at = timezone.now()
        tx.save(update_fields=["status", "admin_action_at", "updated_at"])

        logger.info(
            "Manual funding declined: account=%s amount=%s tx=%s",
            tx.account.uuid,
            tx.amount,
            tx.reference,
        )
        return tx

    @staticmethod
    def adjust_balance(account_uuid, amount, credit: bool = True) -> Transaction:
        """
        Admin credit or debit. A debit may not take the balance below zero.

        Raises:
            InsufficientFunds: If a debit exceeds the current balance.
        """
        amount = _positive_amount(amount)
        with account_guard(account_uuid), transaction.atomic():
            account = lock_account(account_uuid)
            previous_balance = account.balance

            if credit:
                Account.objects.filter(pk=account.pk).update(
                    balance=F("balance") + amount
                )
                tx_type = Transaction.TransactionType.ADMIN_CREDIT
            else:
                updated = Account.objects.filter(
                    pk=account.pk, balance__gte=amount
                ).update(balance=F("balance") - amount)
                if not updated:
                    raise InsufficientFunds()
                tx_type = Transaction.TransactionType.ADMIN_DEBIT
            account.refresh_from_db()

            tx = Transaction.objects.create(
                account=account,
                transaction_type=tx_type,
                status=Transaction.Status.SUCCESS,
                reference=generate_reference("ADMIN"),
                amount=amount,
                previous_balance=previous_balance,
                new_balance=account.balance,
                payment_method="Admin Adjustment",
            )

        logger.info(
            "Admin balance adjustment: account=%s type=%s amount=%s new_balance=%s tx=%s",
            account.uuid,
            tx_type,
            amount,
            account.balance,
            tx.reference,
        )
        return tx


def _lock_pending_funding(transaction_id) -> Transaction:
    tx = (
        Transaction.objects.select_for_update()
        .select_related("account")
        .get(
            id=transaction_id,
            transaction_type=Transaction.TransactionType.WALLET_FUND,
        )
    )
    if tx.status != Transaction.Status.PENDING:
        logger.warning(
            "Funding already processed: tx=%s status=%s", tx.reference, tx.status
        )
        raise TransactionNotPending()
    return tx
