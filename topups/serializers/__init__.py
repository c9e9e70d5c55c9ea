from topups.serializers.account import AccountSerializer, SetPinSerializer
from topups.serializers.bundle import BundleSerializer
from topups.serializers.funding import (
    AdjustBalanceSerializer,
    FundWalletSerializer,
    ManualFundingSerializer,
)
from topups.serializers.purchase import (
    AirtimePurchaseSerializer,
    BillPaymentSerializer,
    DataPurchaseSerializer,
)
from topups.serializers.transaction import TransactionSerializer

__all__ = [
    "AccountSerializer",
    "AdjustBalanceSerializer",
    "AirtimePurchaseSerializer",
    "BillPaymentSerializer",
    "BundleSerializer",
    "DataPurchaseSerializer",
    "FundWalletSerializer",
    "ManualFundingSerializer",
    "SetPinSerializer",
    "TransactionSerializer",
]
