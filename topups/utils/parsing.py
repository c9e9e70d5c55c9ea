import re
from datetime import timedelta
from decimal import Decimal, InvalidOperation

from dateutil.relativedelta import relativedelta
from django.utils import timezone

_VOLUME_RE = re.compile(r"^([0-9]*\.?[0-9]+)")

# Multipliers into GB; checked in this order so "TB" wins over a stray "B".
_VOLUME_UNITS = (
    ("TB", Decimal("1024")),
    ("GB", Decimal("1")),
    ("MB", Decimal("1") / Decimal("1024")),
)


def parse_data_to_gb(amount: str) -> Decimal:
    """
    Normalise a bundle volume such as "1.5GB", "500MB" or "1TB" to GB.

    A bare number is taken as GB. Anything unparseable counts as zero usage.
    """
    if not amount:
        return Decimal("0")

    normalized = re.sub(r"\s", "", str(amount)).upper()
    match = _VOLUME_RE.match(normalized)
    if not match:
        return Decimal("0")

    try:
        value = Decimal(match.group(1))
    except InvalidOperation:
        return Decimal("0")

    for unit, multiplier in _VOLUME_UNITS:
        if unit in normalized:
            return value * multiplier
    return value


def calculate_expiry_date(validity: str, now=None):
    """
    Add a validity period ("30 Days", "1 month", "24 hours") to `now`.

    Returns None when the string cannot be parsed; an unknown validity is not
    an error, the ledger entry simply carries no expiry.
    """
    if not validity:
        return None

    parts = str(validity).strip().lower().split()
    if len(parts) < 2:
        return None

    try:
        value = int(parts[0])
    except ValueError:
        return None

    start = now or timezone.now()
    unit = parts[1]
    if unit.startswith("hour"):
        return start + timedelta(hours=value)
    if unit.startswith("day"):
        return start + timedelta(days=value)
    if unit.startswith("month"):
        return start + relativedelta(months=value)
    if unit.startswith("year"):
        return start + relativedelta(years=value)
    return None
