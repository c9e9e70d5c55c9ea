import re
import uuid
from decimal import Decimal

from django.contrib.auth.hashers import check_password, make_password
from django.db import models

from topups.models.base import BaseModel

PIN_PATTERN = re.compile(r"^\d{4}$")


class Account(BaseModel):
    """
    A customer's wallet: spendable balance, round-up savings and referral bonus.

    Balances are Decimal naira amounts. They are only mutated by the services
    layer, which locks the row with select_for_update() and writes through F()
    expressions. The transaction PIN is stored as a salted password hash.
    """

    class Role(models.TextChoices):
        USER = "USER", "User"
        RESELLER = "RESELLER", "Reseller"
        ADMIN = "ADMIN", "Admin"

    uuid = models.UUIDField(
        default=uuid.uuid4, unique=True, editable=False, db_index=True
    )
    name = models.CharField(max_length=200, blank=True, default="")
    phone = models.CharField(max_length=20, blank=True, default="")
    role = models.CharField(max_length=10, choices=Role.choices, default=Role.USER)
    balance = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00")
    )
    savings = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00")
    )
    bonus_balance = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00")
    )
    data_used_gb = models.DecimalField(
        max_digits=20,
        decimal_places=8,
        default=Decimal("0"),
        help_text="Cumulative data purchased, in GB.",
    )
    transaction_pin = models.CharField(max_length=128, null=True, blank=True)
    is_verified = models.BooleanField(default=False)

    def __str__(self):
        return f"Account {self.uuid} (balance={self.balance})"

    @property
    def has_pin(self) -> bool:
        return bool(self.transaction_pin)

    @property
    def is_reseller(self) -> bool:
        return self.role == self.Role.RESELLER

    def set_pin(self, raw_pin: str) -> None:
        """Hash and store a new 4-digit PIN. Caller saves the row."""
        if not PIN_PATTERN.match(str(raw_pin or "")):
            raise ValueError("PIN must be exactly 4 digits.")
        self.transaction_pin = make_password(str(raw_pin))

    def check_pin(self, raw_pin: str) -> bool:
        if not self.transaction_pin:
            return False
        return check_password(str(raw_pin), self.transaction_pin)
