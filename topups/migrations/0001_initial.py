import uuid
from decimal import Decimal

import django.db.models.deletion
from django.db import migrations, models

import topups.models.transaction


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Account",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("uuid", models.UUIDField(db_index=True, default=uuid.uuid4, editable=False, unique=True)),
                ("name", models.CharField(blank=True, default="", max_length=200)),
                ("phone", models.CharField(blank=True, default="", max_length=20)),
                (
                    "role",
                    models.CharField(
                        choices=[("USER", "User"), ("RESELLER", "Reseller"), ("ADMIN", "Admin")],
                        default="USER",
                        max_length=10,
                    ),
                ),
                ("balance", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("savings", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("bonus_balance", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                (
                    "data_used_gb",
                    models.DecimalField(
                        decimal_places=8,
                        default=Decimal("0"),
                        help_text="Cumulative data purchased, in GB.",
                        max_digits=20,
                    ),
                ),
                ("transaction_pin", models.CharField(blank=True, max_length=128, null=True)),
                ("is_verified", models.BooleanField(default=False)),
            ],
            options={
                "ordering": ["-created_at"],
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="Bundle",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("provider", models.CharField(max_length=12)),
                (
                    "plan_type",
                    models.CharField(
                        choices=[
                            ("SME", "SME"),
                            ("GIFTING", "Gifting"),
                            ("CORPORATE", "Corporate"),
                            ("CABLE", "Cable"),
                        ],
                        default="SME",
                        max_length=12,
                    ),
                ),
                ("name", models.CharField(max_length=120)),
                ("price", models.DecimalField(decimal_places=2, max_digits=14)),
                ("reseller_price", models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ("cost_price", models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ("plan_id", models.CharField(blank=True, default="", max_length=50)),
                ("data_amount", models.CharField(blank=True, default="", max_length=30)),
                ("validity", models.CharField(blank=True, default="", max_length=30)),
                ("is_available", models.BooleanField(default=True)),
            ],
            options={
                "ordering": ["-created_at"],
                "abstract": False,
                "indexes": [
                    models.Index(fields=["provider", "is_available"], name="idx_bundle_provider"),
                ],
            },
        ),
        migrations.CreateModel(
            name="VendorConnection",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("vendor", models.CharField(max_length=20, unique=True)),
                ("last_success_at", models.DateTimeField(blank=True, null=True)),
            ],
        ),
        migrations.CreateModel(
            name="Transaction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "reference",
                    models.CharField(
                        default=topups.models.transaction.generate_reference,
                        editable=False,
                        max_length=40,
                        unique=True,
                    ),
                ),
                (
                    "transaction_type",
                    models.CharField(
                        choices=[
                            ("AIRTIME", "Airtime"),
                            ("DATA", "Data"),
                            ("CABLE", "Cable"),
                            ("ELECTRICITY", "Electricity"),
                            ("WALLET_FUND", "Wallet funding"),
                            ("ADMIN_CREDIT", "Admin credit"),
                            ("ADMIN_DEBIT", "Admin debit"),
                        ],
                        max_length=12,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[("PENDING", "Pending"), ("SUCCESS", "Success"), ("FAILED", "Failed")],
                        default="PENDING",
                        max_length=8,
                    ),
                ),
                ("provider", models.CharField(blank=True, default="", max_length=12)),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Gross amount charged to (or credited to) the wallet.",
                        max_digits=14,
                    ),
                ),
                ("cost_price", models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ("profit", models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ("service_fee", models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                (
                    "savings_amount",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Round-up moved into savings on top of the gross amount.",
                        max_digits=14,
                        null=True,
                    ),
                ),
                (
                    "destination",
                    models.CharField(
                        blank=True, default="", help_text="Phone, meter or smartcard number.", max_length=30
                    ),
                ),
                ("bundle_name", models.CharField(blank=True, default="", max_length=120)),
                ("previous_balance", models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ("new_balance", models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ("expiry_date", models.DateTimeField(blank=True, null=True)),
                ("vendor_reference", models.CharField(blank=True, default="", max_length=100)),
                (
                    "vendor_response",
                    models.JSONField(blank=True, help_text="Raw response from the top-up vendor.", null=True),
                ),
                ("payment_method", models.CharField(blank=True, default="", max_length=40)),
                (
                    "proof_reference",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Proof of payment submitted with a manual funding.",
                        max_length=255,
                    ),
                ),
                ("customer_name", models.CharField(blank=True, default="", max_length=200)),
                ("meter_token", models.CharField(blank=True, default="", max_length=40)),
                ("admin_action_at", models.DateTimeField(blank=True, null=True)),
                (
                    "idempotency_key",
                    models.CharField(
                        blank=True,
                        editable=False,
                        help_text="Client-generated key for idempotency.",
                        max_length=64,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to="topups.account",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "abstract": False,
                "indexes": [
                    models.Index(fields=["account", "status"], name="idx_account_status"),
                    models.Index(fields=["transaction_type", "status"], name="idx_type_status"),
                ],
            },
        ),
    ]
