"""
Pricing policy: what a purchase costs the customer and what it earns us.

Pure functions over a `PricingConfig` snapshot; nothing here touches the
database. All amounts are Decimal naira rounded to kobo.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import NamedTuple

from django.conf import settings

from topups.exceptions import InvalidAmount

MONEY_QUANT = Decimal("0.01")
HUNDRED = Decimal("100")
# Assumed vendor discount when a bundle has no recorded cost price.
DEFAULT_BUNDLE_COST_RATIO = Decimal("0.95")

SERVICES = ("airtime", "data", "cable", "electricity")


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


class Quote(NamedTuple):
    gross_amount: Decimal
    cost_price: Decimal
    profit: Decimal
    service_fee: Decimal


class PricingConfig(NamedTuple):
    service_fees: dict
    airtime_cost_percentage: Decimal = Decimal("98")
    airtime_selling_percentage: Decimal = Decimal("100")

    @classmethod
    def from_settings(cls) -> "PricingConfig":
        fees = getattr(settings, "VTU_SERVICE_FEES", {}) or {}
        return cls(
            service_fees={service: to_money(fees.get(service) or 0) for service in SERVICES},
            airtime_cost_percentage=Decimal(
                str(getattr(settings, "VTU_AIRTIME_COST_PERCENTAGE", None) or "98")
            ),
            airtime_selling_percentage=Decimal(
                str(getattr(settings, "VTU_AIRTIME_SELLING_PERCENTAGE", None) or "100")
            ),
        )

    def fee_for(self, service: str) -> Decimal:
        return to_money(self.service_fees.get(service) or 0)


def positive_amount(value, label="Amount") -> Decimal:
    """Parse `value` as a Decimal and require it to be finite and above zero."""
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmount(f"{label} must be a number.")
    if not amount.is_finite() or amount <= 0:
        raise InvalidAmount(f"{label} must be positive.")
    return amount


def quote_airtime(amount, config: PricingConfig) -> Quote:
    """
    Airtime is sold at a percentage of face value and bought from the vendor
    at another percentage; the flat fee is pure margin.
    """
    amount = positive_amount(amount)
    fee = config.fee_for("airtime")
    selling_price = amount * config.airtime_selling_percentage / HUNDRED
    cost_price = amount * config.airtime_cost_percentage / HUNDRED
    return Quote(
        gross_amount=to_money(selling_price + fee),
        cost_price=to_money(cost_price),
        profit=to_money(selling_price - cost_price + fee),
        service_fee=fee,
    )


def quote_bundle(price, cost_price, service: str, config: PricingConfig) -> Quote:
    """Data and cable plans: catalog price plus the service's flat fee."""
    price = positive_amount(price, "Bundle price")
    fee = config.fee_for(service)
    if cost_price is None or Decimal(str(cost_price)) <= 0:
        cost = price * DEFAULT_BUNDLE_COST_RATIO
    else:
        cost = Decimal(str(cost_price))
    return Quote(
        gross_amount=to_money(price + fee),
        cost_price=to_money(cost),
        profit=to_money(price - cost + fee),
        service_fee=fee,
    )


def quote_bill(base_amount, service: str, config: PricingConfig) -> Quote:
    """Metered bills pass the base amount through; only the fee is profit."""
    base_amount = positive_amount(base_amount)
    fee = config.fee_for(service)
    return Quote(
        gross_amount=to_money(base_amount + fee),
        cost_price=to_money(base_amount),
        profit=fee,
        service_fee=fee,
    )


def round_up_savings(total: Decimal) -> Decimal:
    """Difference between `total` and the next multiple of 100."""
    remainder = total % HUNDRED
    if remainder == 0:
        return Decimal("0.00")
    return to_money(HUNDRED - remainder)
