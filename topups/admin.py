from django.contrib import admin, messages

from topups.exceptions import TransactionNotPending
from topups.models import Account, Bundle, Transaction, VendorConnection
from topups.services import FundingService


class ReadOnlyAdminMixin:
    """
    Mixin that makes an admin model completely read-only.
    Balances and ledger entries only change through the services layer.
    """

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Account)
class AccountAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("id", "uuid", "name", "phone", "role", "balance", "savings", "created_at")
    list_filter = ("role", "is_verified")
    search_fields = ("uuid", "name", "phone")
    readonly_fields = (
        "uuid",
        "name",
        "phone",
        "role",
        "balance",
        "savings",
        "bonus_balance",
        "data_used_gb",
        "is_verified",
        "created_at",
        "updated_at",
    )
    exclude = ("transaction_pin",)


@admin.register(Bundle)
class BundleAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "provider",
        "plan_type",
        "name",
        "price",
        "reseller_price",
        "cost_price",
        "plan_id",
        "is_available",
    )
    list_filter = ("provider", "plan_type", "is_available")
    search_fields = ("name", "plan_id")


@admin.register(Transaction)
class TransactionAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = (
        "id",
        "reference",
        "account",
        "transaction_type",
        "amount",
        "status",
        "destination",
        "created_at",
    )
    list_filter = ("transaction_type", "status")
    search_fields = ("reference", "account__uuid", "destination")
    readonly_fields = (
        "reference",
        "account",
        "transaction_type",
        "status",
        "provider",
        "amount",
        "cost_price",
        "profit",
        "service_fee",
        "savings_amount",
        "destination",
        "bundle_name",
        "previous_balance",
        "new_balance",
        "expiry_date",
        "vendor_reference",
        "vendor_response",
        "payment_method",
        "proof_reference",
        "customer_name",
        "meter_token",
        "admin_action_at",
        "idempotency_key",
        "created_at",
        "updated_at",
    )
    actions = ("approve_fundings", "decline_fundings")

    @admin.action(description="Approve selected pending fundings")
    def approve_fundings(self, request, queryset):
        self._decide(request, queryset, FundingService.approve_transaction, "approved")

    @admin.action(description="Decline selected pending fundings")
    def decline_fundings(self, request, queryset):
        self._decide(request, queryset, FundingService.decline_transaction, "declined")

    def _decide(self, request, queryset, decide, verb):
        done = 0
        for tx in queryset.filter(transaction_type=Transaction.TransactionType.WALLET_FUND):
            try:
                decide(tx.id)
                done += 1
            except TransactionNotPending:
                self.message_user(
                    request, f"{tx.reference} was already processed.", messages.WARNING
                )
        self.message_user(request, f"{done} funding(s) {verb}.")


@admin.register(VendorConnection)
class VendorConnectionAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("vendor", "last_success_at")
