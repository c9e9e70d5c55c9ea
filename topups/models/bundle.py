from django.db import models

from topups.models.base import BaseModel


class Provider(models.TextChoices):
    """Mobile networks that airtime and data are sold for."""

    MTN = "MTN", "MTN"
    GLO = "GLO", "Glo"
    AIRTEL = "AIRTEL", "Airtel"
    NINE_MOBILE = "9MOBILE", "9mobile"


class BillProvider(models.TextChoices):
    DSTV = "DSTV", "DStv"
    GOTV = "GOTV", "GOtv"
    STARTIMES = "STARTIMES", "StarTimes"
    IKEDC = "IKEDC", "Ikeja Electric"
    EKEDC = "EKEDC", "Eko Electric"
    AEDC = "AEDC", "Abuja Electric"
    IBEDC = "IBEDC", "Ibadan Electric"
    KEDCO = "KEDCO", "Kano Electric"


class Bundle(BaseModel):
    """
    A purchasable data or cable plan.

    `plan_id` is the vendor's identifier for the plan and must be present
    before the bundle can be settled. `data_amount` ("1.5GB", "500MB") feeds
    the account's data usage counter and `validity` ("30 Days") the expiry
    date stamped on the ledger entry.
    """

    class PlanType(models.TextChoices):
        SME = "SME", "SME"
        GIFTING = "GIFTING", "Gifting"
        CORPORATE = "CORPORATE", "Corporate"
        CABLE = "CABLE", "Cable"

    provider = models.CharField(max_length=12)
    plan_type = models.CharField(
        max_length=12, choices=PlanType.choices, default=PlanType.SME
    )
    name = models.CharField(max_length=120)
    price = models.DecimalField(max_digits=14, decimal_places=2)
    reseller_price = models.DecimalField(
        max_digits=14, decimal_places=2, null=True, blank=True
    )
    cost_price = models.DecimalField(
        max_digits=14, decimal_places=2, null=True, blank=True
    )
    plan_id = models.CharField(max_length=50, blank=True, default="")
    data_amount = models.CharField(max_length=30, blank=True, default="")
    validity = models.CharField(max_length=30, blank=True, default="")
    is_available = models.BooleanField(default=True)

    class Meta(BaseModel.Meta):
        indexes = [
            models.Index(fields=["provider", "is_available"], name="idx_bundle_provider"),
        ]

    def __str__(self):
        return f"{self.provider} {self.name} ({self.price})"

    def price_for(self, account):
        """Resellers pay the reseller price when one is configured."""
        if account.is_reseller and self.reseller_price is not None:
            return self.reseller_price
        return self.price
