import secrets

from django.db import models

from topups.models.account import Account
from topups.models.base import BaseModel


def generate_reference(prefix: str = "REF") -> str:
    return f"{prefix}-{secrets.token_hex(8).upper()}"


class Transaction(BaseModel):
    """
    Append-only ledger entry for every wallet movement.

    Purchases are written once, in SUCCESS, after the vendor has confirmed
    delivery. Manual wallet fundings are written PENDING with a proof of
    payment and only transition to SUCCESS or FAILED through an admin
    decision. SUCCESS and FAILED entries are never modified again.
    """

    class TransactionType(models.TextChoices):
        AIRTIME = "AIRTIME", "Airtime"
        DATA = "DATA", "Data"
        CABLE = "CABLE", "Cable"
        ELECTRICITY = "ELECTRICITY", "Electricity"
        WALLET_FUND = "WALLET_FUND", "Wallet funding"
        ADMIN_CREDIT = "ADMIN_CREDIT", "Admin credit"
        ADMIN_DEBIT = "ADMIN_DEBIT", "Admin debit"

    class Status(models.TextChoices):
        PENDING = "PENDING", "Pending"
        SUCCESS = "SUCCESS", "Success"
        FAILED = "FAILED", "Failed"

    account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        related_name="transactions",
    )
    reference = models.CharField(
        max_length=40, unique=True, default=generate_reference, editable=False
    )
    transaction_type = models.CharField(
        max_length=12,
        choices=TransactionType.choices,
    )
    status = models.CharField(
        max_length=8,
        choices=Status.choices,
        default=Status.PENDING,
    )
    provider = models.CharField(max_length=12, blank=True, default="")
    amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        help_text="Gross amount charged to (or credited to) the wallet.",
    )
    cost_price = models.DecimalField(
        max_digits=14, decimal_places=2, null=True, blank=True
    )
    profit = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    service_fee = models.DecimalField(
        max_digits=14, decimal_places=2, null=True, blank=True
    )
    savings_amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Round-up moved into savings on top of the gross amount.",
    )
    destination = models.CharField(
        max_length=30,
        blank=True,
        default="",
        help_text="Phone, meter or smartcard number.",
    )
    bundle_name = models.CharField(max_length=120, blank=True, default="")
    previous_balance = models.DecimalField(
        max_digits=14, decimal_places=2, null=True, blank=True
    )
    new_balance = models.DecimalField(
        max_digits=14, decimal_places=2, null=True, blank=True
    )
    expiry_date = models.DateTimeField(null=True, blank=True)
    vendor_reference = models.CharField(max_length=100, blank=True, default="")
    vendor_response = models.JSONField(
        null=True,
        blank=True,
        help_text="Raw response from the top-up vendor.",
    )
    payment_method = models.CharField(max_length=40, blank=True, default="")
    proof_reference = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Proof of payment submitted with a manual funding.",
    )
    customer_name = models.CharField(max_length=200, blank=True, default="")
    meter_token = models.CharField(max_length=40, blank=True, default="")
    admin_action_at = models.DateTimeField(null=True, blank=True)
    idempotency_key = models.CharField(
        max_length=64,
        unique=True,
        null=True,
        blank=True,
        editable=False,
        help_text="Client-generated key for idempotency.",
    )

    class Meta(BaseModel.Meta):
        indexes = [
            models.Index(fields=["account", "status"], name="idx_account_status"),
            models.Index(
                fields=["transaction_type", "status"], name="idx_type_status"
            ),
        ]

    def __str__(self):
        return (
            f"Transaction {self.reference} | {self.transaction_type} | "
            f"{self.amount} | {self.status}"
        )

    @property
    def is_final(self) -> bool:
        return self.status != self.Status.PENDING

    @classmethod
    def get_pending_fundings(cls):
        """Manual wallet fundings awaiting an admin decision."""
        return cls.objects.filter(
            transaction_type=cls.TransactionType.WALLET_FUND,
            status=cls.Status.PENDING,
        )
