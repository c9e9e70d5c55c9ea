import logging

from django.db import transaction

from topups.exceptions import PinMismatch
from topups.models import Account
from topups.services.settlement import lock_account

logger = logging.getLogger(__name__)


class AccountService:
    @staticmethod
    @transaction.atomic
    def set_pin(account_uuid, pin: str, current_pin: str = None) -> Account:
        """
        Create or change the transaction PIN.

        Changing an existing PIN requires the current one.

        Raises:
            AccountNotFound: If the account doesn't exist.
            PinMismatch: If `current_pin` doesn't match the stored PIN.
            ValueError: If `pin` is not 4 digits.
        """
        account = lock_account(account_uuid)
        if account.has_pin and not account.check_pin(current_pin or ""):
            logger.warning("PIN change refused (wrong current PIN): account=%s", account.uuid)
            raise PinMismatch("Current PIN is incorrect.")

        account.set_pin(pin)
        account.save(update_fields=["transaction_pin", "updated_at"])
        logger.info("Transaction PIN updated: account=%s", account.uuid)
        return account
