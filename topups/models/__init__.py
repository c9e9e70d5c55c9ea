from topups.models.account import Account
from topups.models.bundle import BillProvider, Bundle, Provider
from topups.models.transaction import Transaction, generate_reference
from topups.models.vendor import VendorConnection

__all__ = [
    "Account",
    "BillProvider",
    "Bundle",
    "Provider",
    "Transaction",
    "VendorConnection",
    "generate_reference",
]
