from django.urls import path

from topups.views import (
    AdjustBalanceView,
    AirtimePurchaseView,
    ApproveTransactionView,
    BillPaymentView,
    BundleListView,
    CreateAccountView,
    DataPurchaseView,
    DeclineTransactionView,
    FundWalletView,
    ManualFundingView,
    RetrieveAccountView,
    SetPinView,
    TransactionDetailView,
    TransactionListView,
)

urlpatterns = [
    path("", CreateAccountView.as_view(), name="account-create"),
    path("bundles/", BundleListView.as_view(), name="bundle-list"),
    path(
        "admin/transactions/<int:id>/approve",
        ApproveTransactionView.as_view(),
        name="transaction-approve",
    ),
    path(
        "admin/transactions/<int:id>/decline",
        DeclineTransactionView.as_view(),
        name="transaction-decline",
    ),
    path("admin/<uuid:uuid>/adjust", AdjustBalanceView.as_view(), name="account-adjust"),
    path("<uuid:uuid>/", RetrieveAccountView.as_view(), name="account-detail"),
    path("<uuid:uuid>/pin", SetPinView.as_view(), name="account-pin"),
    path("<uuid:uuid>/airtime", AirtimePurchaseView.as_view(), name="account-airtime"),
    path("<uuid:uuid>/data", DataPurchaseView.as_view(), name="account-data"),
    path("<uuid:uuid>/bills", BillPaymentView.as_view(), name="account-bills"),
    path("<uuid:uuid>/fund", FundWalletView.as_view(), name="account-fund"),
    path(
        "<uuid:uuid>/fund/manual",
        ManualFundingView.as_view(),
        name="account-fund-manual",
    ),
    path(
        "<uuid:uuid>/transactions/",
        TransactionListView.as_view(),
        name="account-transactions",
    ),
    path(
        "<uuid:uuid>/transactions/<int:id>/",
        TransactionDetailView.as_view(),
        name="transaction-detail",
    ),
]
