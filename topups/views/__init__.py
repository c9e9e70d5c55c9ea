from topups.views.account import CreateAccountView, RetrieveAccountView, SetPinView
from topups.views.admin import (
    AdjustBalanceView,
    ApproveTransactionView,
    DeclineTransactionView,
)
from topups.views.bundle import BundleListView
from topups.views.funding import FundWalletView, ManualFundingView
from topups.views.purchase import AirtimePurchaseView, BillPaymentView, DataPurchaseView
from topups.views.transaction import TransactionDetailView, TransactionListView

__all__ = [
    "AdjustBalanceView",
    "AirtimePurchaseView",
    "ApproveTransactionView",
    "BillPaymentView",
    "BundleListView",
    "CreateAccountView",
    "DataPurchaseView",
    "DeclineTransactionView",
    "FundWalletView",
    "ManualFundingView",
    "RetrieveAccountView",
    "SetPinView",
    "TransactionDetailView",
    "TransactionListView",
]
