import re
import threading
import time
import uuid
from datetime import datetime
from datetime import timezone as dt_timezone
from decimal import Decimal
from io import StringIO
from unittest.mock import MagicMock, patch

import requests
from django.contrib import admin
from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.db import connection
from django.test import (
    RequestFactory,
    TestCase,
    TransactionTestCase,
    override_settings,
)
from rest_framework.test import APIClient

from topups.admin import TransactionAdmin
from topups.exceptions import (
    AccountNotFound,
    BundleUnavailable,
    IdempotencyConflict,
    InsufficientFunds,
    InvalidAmount,
    MissingPlanId,
    PinMismatch,
    PinNotSet,
    TransactionNotPending,
    VendorError,
)
from topups.management.commands.seed_bundles import SAMPLE_BUNDLES
from topups.middleware import redact_body
from topups.models import Account, Bundle, Transaction, VendorConnection
from topups.services import AccountService, FundingService, SettlementService
from topups.services.notifications import notify_after_commit
from topups.services.pricing import (
    PricingConfig,
    positive_amount,
    quote_airtime,
    quote_bill,
    quote_bundle,
    round_up_savings,
)
from topups.tasks import format_phone, send_sms_notification
from topups.utils import calculate_expiry_date, parse_data_to_gb
from topups.utils.vendors import (
    BilalSadaGateway,
    DemoGateway,
    NumericCodeGateway,
    get_gateway,
)

TEST_SETTINGS = dict(
    VENDOR_ACTIVE="BILALSADA",
    VENDOR_API_KEYS={},
    VENDOR_BASE_URLS={},
    VENDOR_DEMO_MODE=True,
    VENDOR_DEMO_DELAY=0,
    VENDOR_SIMULATED_FAILURE_RATE=0,
    VTU_SERVICE_FEES={
        "airtime": Decimal("10"),
        "data": Decimal("0"),
        "cable": Decimal("100"),
        "electricity": Decimal("100"),
    },
    VTU_AIRTIME_COST_PERCENTAGE=Decimal("98"),
    VTU_AIRTIME_SELLING_PERCENTAGE=Decimal("100"),
    SMS_ENABLED=False,
    PASSWORD_HASHERS=["django.contrib.auth.hashers.MD5PasswordHasher"],
)

PIN = "1234"
PHONE = "08012345678"


def make_account(balance="0", pin=PIN, role=Account.Role.USER):
    account = Account(phone=PHONE, role=role, balance=Decimal(balance))
    if pin:
        account.set_pin(pin)
    account.save()
    return account


def make_bundle(**overrides):
    fields = {
        "provider": "MTN",
        "plan_type": Bundle.PlanType.SME,
        "name": "1.5GB SME Monthly",
        "price": Decimal("1000"),
        "cost_price": Decimal("950"),
        "plan_id": "1001",
        "data_amount": "1.5GB",
        "validity": "30 Days",
    }
    fields.update(overrides)
    return Bundle.objects.create(**fields)


def vendor_result(success=True, reference="V-1", error="", response=None):
    return {
        "success": success,
        "reference": reference,
        "error": error,
        "response": response if response is not None else {"status": "success"},
    }


def mock_response(data, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.json.return_value = data
    return response


# ============================================================
# Model Tests
# ============================================================


@override_settings(**TEST_SETTINGS)
class AccountModelTest(TestCase):
    def test_create_account(self):
        account = Account.objects.create()
        self.assertIsNotNone(account.uuid)
        self.assertEqual(account.balance, 0)
        self.assertEqual(account.savings, 0)
        self.assertEqual(account.role, Account.Role.USER)
        self.assertFalse(account.has_pin)

    def test_pin_is_hashed(self):
        account = make_account()
        self.assertTrue(account.has_pin)
        self.assertNotEqual(account.transaction_pin, PIN)
        self.assertTrue(account.check_pin(PIN))
        self.assertFalse(account.check_pin("9999"))

    def test_set_pin_rejects_non_digits(self):
        account = Account()
        for bad in ("12a4", "123", "12345", ""):
            with self.assertRaises(ValueError):
                account.set_pin(bad)

    def test_check_pin_without_pin(self):
        self.assertFalse(Account().check_pin("1234"))


class BundleModelTest(TestCase):
    def test_reseller_price(self):
        bundle = make_bundle(reseller_price=Decimal("900"))
        self.assertEqual(bundle.price_for(Account(role=Account.Role.RESELLER)), Decimal("900"))
        self.assertEqual(bundle.price_for(Account(role=Account.Role.USER)), Decimal("1000"))

    def test_reseller_without_reseller_price_pays_list_price(self):
        bundle = make_bundle()
        self.assertEqual(bundle.price_for(Account(role=Account.Role.RESELLER)), Decimal("1000"))


class TransactionModelTest(TestCase):
    def setUp(self):
        self.account = Account.objects.create()

    def _create(self, **overrides):
        fields = {
            "account": self.account,
            "amount": Decimal("500"),
            "transaction_type": Transaction.TransactionType.WALLET_FUND,
        }
        fields.update(overrides)
        return Transaction.objects.create(**fields)

    def test_defaults(self):
        tx = self._create()
        self.assertEqual(tx.status, Transaction.Status.PENDING)
        self.assertTrue(tx.reference.startswith("REF-"))
        self.assertFalse(tx.is_final)

    def test_references_are_unique(self):
        refs = {self._create().reference for _ in range(20)}
        self.assertEqual(len(refs), 20)

    def test_get_pending_fundings(self):
        pending = self._create(proof_reference="receipt.png")
        self._create(status=Transaction.Status.SUCCESS)
        self._create(transaction_type=Transaction.TransactionType.AIRTIME)

        result = Transaction.get_pending_fundings()
        self.assertEqual(list(result), [pending])

    def test_transaction_str(self):
        tx = self._create(status=Transaction.Status.SUCCESS)
        self.assertIn("WALLET_FUND", str(tx))
        self.assertIn("500", str(tx))
        self.assertTrue(tx.is_final)


# ============================================================
# Parsing Tests
# ============================================================


class ParseDataToGbTest(TestCase):
    def test_units(self):
        self.assertEqual(parse_data_to_gb("1.5GB"), Decimal("1.5"))
        self.assertEqual(parse_data_to_gb("500MB"), Decimal("0.48828125"))
        self.assertEqual(parse_data_to_gb("1TB"), Decimal("1024"))

    def test_case_and_spacing(self):
        self.assertEqual(parse_data_to_gb("2 gb"), Decimal("2"))
        self.assertEqual(parse_data_to_gb("750 mb"), Decimal("750") / Decimal("1024"))

    def test_bare_number_is_gb(self):
        self.assertEqual(parse_data_to_gb("3"), Decimal("3"))

    def test_unparseable_is_zero(self):
        for value in ("", None, "unlimited", "GB"):
            self.assertEqual(parse_data_to_gb(value), Decimal("0"))


class CalculateExpiryDateTest(TestCase):
    def setUp(self):
        self.now = datetime(2024, 1, 1, tzinfo=dt_timezone.utc)

    def test_days(self):
        self.assertEqual(
            calculate_expiry_date("30 Days", now=self.now),
            datetime(2024, 1, 31, tzinfo=dt_timezone.utc),
        )

    def test_hours(self):
        self.assertEqual(
            calculate_expiry_date("24 hours", now=self.now),
            datetime(2024, 1, 2, tzinfo=dt_timezone.utc),
        )

    def test_months_and_years(self):
        self.assertEqual(
            calculate_expiry_date("1 Month", now=self.now),
            datetime(2024, 2, 1, tzinfo=dt_timezone.utc),
        )
        self.assertEqual(
            calculate_expiry_date("1 year", now=self.now),
            datetime(2025, 1, 1, tzinfo=dt_timezone.utc),
        )

    def test_month_end_is_clamped(self):
        end_of_january = datetime(2024, 1, 31, tzinfo=dt_timezone.utc)
        self.assertEqual(
            calculate_expiry_date("1 month", now=end_of_january),
            datetime(2024, 2, 29, tzinfo=dt_timezone.utc),
        )

    def test_unparseable_returns_none(self):
        for value in ("", None, "Monthly", "x days", "3 fortnights"):
            self.assertIsNone(calculate_expiry_date(value, now=self.now))

    def test_defaults_to_now(self):
        self.assertIsNotNone(calculate_expiry_date("7 days"))


# ============================================================
# Pricing Tests
# ============================================================


class PricingTest(TestCase):
    def setUp(self):
        self.config = PricingConfig(
            service_fees={
                "airtime": Decimal("10"),
                "data": Decimal("0"),
                "cable": Decimal("100"),
                "electricity": Decimal("100"),
            },
            airtime_cost_percentage=Decimal("98"),
            airtime_selling_percentage=Decimal("100"),
        )

    def test_quote_airtime(self):
        quote = quote_airtime(Decimal("1000"), self.config)
        self.assertEqual(quote.gross_amount, Decimal("1010.00"))
        self.assertEqual(quote.cost_price, Decimal("980.00"))
        self.assertEqual(quote.profit, Decimal("30.00"))
        self.assertEqual(quote.service_fee, Decimal("10.00"))

    def test_quote_airtime_discounted_selling_price(self):
        config = self.config._replace(airtime_selling_percentage=Decimal("99"))
        quote = quote_airtime(Decimal("500"), config)
        self.assertEqual(quote.gross_amount, Decimal("505.00"))
        self.assertEqual(quote.profit, Decimal("15.00"))

    def test_quote_bundle_with_cost_price(self):
        quote = quote_bundle(Decimal("1000"), Decimal("950"), "data", self.config)
        self.assertEqual(quote.gross_amount, Decimal("1000.00"))
        self.assertEqual(quote.cost_price, Decimal("950.00"))
        self.assertEqual(quote.profit, Decimal("50.00"))

    def test_quote_bundle_without_cost_price(self):
        quote = quote_bundle(Decimal("2500"), None, "cable", self.config)
        self.assertEqual(quote.gross_amount, Decimal("2600.00"))
        self.assertEqual(quote.cost_price, Decimal("2375.00"))
        self.assertEqual(quote.profit, Decimal("225.00"))

    def test_quote_bill(self):
        quote = quote_bill(Decimal("5000"), "electricity", self.config)
        self.assertEqual(quote.gross_amount, Decimal("5100.00"))
        self.assertEqual(quote.cost_price, Decimal("5000.00"))
        self.assertEqual(quote.profit, Decimal("100.00"))

    def test_non_positive_amounts_raise(self):
        with self.assertRaises(InvalidAmount):
            quote_airtime(Decimal("0"), self.config)
        with self.assertRaises(InvalidAmount):
            quote_bill(Decimal("-5"), "electricity", self.config)
        with self.assertRaises(InvalidAmount):
            quote_bundle(Decimal("0"), None, "data", self.config)

    def test_missing_or_non_numeric_amounts_raise(self):
        for value in (None, "", "abc", "NaN", "Infinity", "-Infinity"):
            with self.subTest(value=value):
                with self.assertRaises(InvalidAmount):
                    positive_amount(value)
        with self.assertRaises(InvalidAmount):
            quote_bill(None, "electricity", self.config)

    def test_positive_amount_parses_strings(self):
        self.assertEqual(positive_amount("250.50"), Decimal("250.50"))
        self.assertEqual(positive_amount(100), Decimal("100"))

    def test_round_up_savings(self):
        self.assertEqual(round_up_savings(Decimal("1050")), Decimal("50.00"))
        self.assertEqual(round_up_savings(Decimal("1010.50")), Decimal("89.50"))
        self.assertEqual(round_up_savings(Decimal("1000")), Decimal("0"))

    @override_settings(
        VTU_SERVICE_FEES={"cable": "150"},
        VTU_AIRTIME_COST_PERCENTAGE=Decimal("97.5"),
        VTU_AIRTIME_SELLING_PERCENTAGE=Decimal("100"),
    )
    def test_config_from_settings(self):
        config = PricingConfig.from_settings()
        self.assertEqual(config.fee_for("cable"), Decimal("150.00"))
        self.assertEqual(config.fee_for("airtime"), Decimal("0.00"))
        self.assertEqual(config.airtime_cost_percentage, Decimal("97.5"))


# ============================================================
# Vendor Gateway Tests
# ============================================================


@override_settings(**TEST_SETTINGS)
class HttpVendorGatewayTest(TestCase):
    def setUp(self):
        self.gateway = BilalSadaGateway("BILALSADA", "secret-key")

    @patch("topups.utils.vendors.requests.post")
    def test_buy_airtime_success(self, mock_post):
        mock_post.return_value = mock_response({"status": "success", "ref": "BS-123"})

        result = self.gateway.buy_airtime("MTN", PHONE, Decimal("1000"))

        self.assertTrue(result["success"])
        self.assertEqual(result["reference"], "BS-123")
        self.assertTrue(VendorConnection.objects.filter(vendor="BILALSADA").exists())

        args, kwargs = mock_post.call_args
        self.assertTrue(args[0].endswith("/topup"))
        self.assertEqual(kwargs["json"]["network"], "mtn")
        self.assertEqual(kwargs["json"]["amount"], "1000")
        self.assertEqual(kwargs["headers"]["Authorization"], "Token secret-key")

    @patch("topups.utils.vendors.requests.post")
    def test_numeric_network_codes(self, mock_post):
        mock_post.return_value = mock_response({"success": True, "request_id": "R9"})
        gateway = NumericCodeGateway("MASKAWA", "key")

        result = gateway.buy_data("GLO", PHONE, "2001")

        self.assertTrue(result["success"])
        self.assertEqual(result["reference"], "R9")
        args, kwargs = mock_post.call_args
        self.assertTrue(args[0].endswith("/data"))
        self.assertEqual(kwargs["json"]["network"], "2")
        self.assertEqual(kwargs["json"]["plan"], "2001")

    @patch("topups.utils.vendors.requests.post")
    def test_buy_bill_sends_plan(self, mock_post):
        mock_post.return_value = mock_response({"status": "successful", "token": "1"})

        result = self.gateway.buy_bill("DSTV", "7023456789", Decimal("2500"), plan_id="padi")

        self.assertTrue(result["success"])
        kwargs = mock_post.call_args[1]
        self.assertEqual(kwargs["json"]["provider"], "dstv")
        self.assertEqual(kwargs["json"]["plan"], "padi")

    @patch("topups.utils.vendors.requests.post")
    def test_vendor_refusal(self, mock_post):
        mock_post.return_value = mock_response(
            {"status": "failed", "message": "Insufficient vendor balance"}
        )

        result = self.gateway.buy_airtime("MTN", PHONE, Decimal("100"))

        self.assertFalse(result["success"])
        self.assertEqual(result["error"], "Insufficient vendor balance")
        self.assertFalse(VendorConnection.objects.exists())

    @patch("topups.utils.vendors.requests.post")
    def test_http_error_status(self, mock_post):
        mock_post.return_value = mock_response({"error": "Server exploded"}, status_code=500)

        result = self.gateway.buy_airtime("MTN", PHONE, Decimal("100"))

        self.assertFalse(result["success"])
        self.assertEqual(result["error"], "Server exploded")

    @patch("topups.utils.vendors.requests.post")
    def test_timeout(self, mock_post):
        mock_post.side_effect = requests.exceptions.Timeout("read timed out")

        result = self.gateway.buy_airtime("MTN", PHONE, Decimal("100"))

        self.assertFalse(result["success"])
        self.assertEqual(result["error"], "Vendor Connection Timed Out")
        self.assertEqual(result["response"]["error"], "timeout")

    @patch("topups.utils.vendors.requests.post")
    def test_connection_error(self, mock_post):
        mock_post.side_effect = requests.exceptions.ConnectionError("refused")

        result = self.gateway.buy_airtime("MTN", PHONE, Decimal("100"))

        self.assertFalse(result["success"])
        self.assertEqual(result["response"]["error"], "connection_error")

    @patch("topups.utils.vendors.requests.post")
    def test_non_json_body(self, mock_post):
        response = mock_response(None, status_code=200)
        response.json.side_effect = ValueError("no json")
        mock_post.return_value = response

        result = self.gateway.buy_airtime("MTN", PHONE, Decimal("100"))

        self.assertFalse(result["success"])
        self.assertEqual(result["error"], "Provider returned an invalid response.")

    @override_settings(VENDOR_SIMULATED_FAILURE_RATE=1.0)
    @patch("topups.utils.vendors.requests.post")
    def test_simulated_failure_skips_network(self, mock_post):
        result = self.gateway.buy_airtime("MTN", PHONE, Decimal("100"))

        self.assertFalse(result["success"])
        self.assertEqual(result["error"], "Vendor Connection Timed Out")
        mock_post.assert_not_called()

    @patch("topups.utils.vendors.requests.get")
    def test_get_balance(self, mock_get):
        mock_get.return_value = mock_response({"balance": "1234.50"})
        self.assertEqual(self.gateway.get_balance(), Decimal("1234.50"))

    @patch("topups.utils.vendors.requests.get")
    def test_get_balance_failure_raises(self, mock_get):
        mock_get.side_effect = requests.exceptions.ConnectionError("down")
        with self.assertRaises(VendorError):
            self.gateway.get_balance()


@override_settings(**TEST_SETTINGS)
class GetGatewayTest(TestCase):
    def test_demo_gateway_without_key(self):
        gateway = get_gateway()
        self.assertIsInstance(gateway, DemoGateway)
        self.assertEqual(gateway.name, "BILALSADA")

    @override_settings(VENDOR_DEMO_MODE=False)
    def test_missing_key_without_demo_mode_raises(self):
        with self.assertRaises(VendorError):
            get_gateway()

    @override_settings(VENDOR_API_KEYS={"BILALSADA": "key"})
    def test_configured_vendor(self):
        gateway = get_gateway()
        self.assertIsInstance(gateway, BilalSadaGateway)
        self.assertEqual(gateway.api_key, "key")

    @override_settings(
        VENDOR_ACTIVE="maskawa",
        VENDOR_API_KEYS={"MASKAWA": "key"},
        VENDOR_BASE_URLS={"MASKAWA": "https://vendor.example/api/"},
    )
    def test_base_url_override(self):
        gateway = get_gateway()
        self.assertIsInstance(gateway, NumericCodeGateway)
        self.assertEqual(gateway.base_url, "https://vendor.example/api")

    def test_unknown_vendor_raises(self):
        with self.assertRaises(VendorError):
            get_gateway("NOPE")

    def test_demo_gateway_succeeds(self):
        result = DemoGateway("SIMHOST").buy_airtime("MTN", PHONE, Decimal("100"))
        self.assertTrue(result["success"])
        self.assertTrue(result["reference"].startswith("DEMO-"))
        self.assertTrue(VendorConnection.objects.filter(vendor="SIMHOST").exists())


# ============================================================
# Settlement Service Tests
# ============================================================


@override_settings(**TEST_SETTINGS)
class AirtimeSettlementTest(TransactionTestCase):
    def setUp(self):
        self.account = make_account(balance="5000")

    def test_purchase_success(self):
        tx = SettlementService.purchase_airtime(
            self.account.uuid, "MTN", Decimal("1000"), PHONE, PIN
        )

        self.account.refresh_from_db()
        self.assertEqual(self.account.balance, Decimal("3990.00"))
        self.assertEqual(tx.status, Transaction.Status.SUCCESS)
        self.assertEqual(tx.transaction_type, Transaction.TransactionType.AIRTIME)
        self.assertEqual(tx.amount, Decimal("1010.00"))
        self.assertEqual(tx.cost_price, Decimal("980.00"))
        self.assertEqual(tx.profit, Decimal("30.00"))
        self.assertEqual(tx.service_fee, Decimal("10.00"))
        self.assertEqual(tx.previous_balance, Decimal("5000.00"))
        self.assertEqual(tx.new_balance, Decimal("3990.00"))
        self.assertEqual(tx.destination, PHONE)
        self.assertTrue(tx.vendor_reference.startswith("DEMO-"))

    def test_round_up_savings(self):
        tx = SettlementService.purchase_airtime(
            self.account.uuid, "MTN", Decimal("1040"), PHONE, PIN, round_up_savings=True
        )

        self.account.refresh_from_db()
        self.assertEqual(tx.amount, Decimal("1050.00"))
        self.assertEqual(tx.savings_amount, Decimal("50.00"))
        self.assertEqual(self.account.savings, Decimal("50.00"))
        self.assertEqual(self.account.balance, Decimal("3900.00"))

    def test_wrong_pin_never_reaches_vendor(self):
        with patch("topups.services.settlement.get_gateway") as mock_get_gateway:
            with self.assertRaises(PinMismatch):
                SettlementService.purchase_airtime(
                    self.account.uuid, "MTN", Decimal("100"), PHONE, "0000"
                )
            mock_get_gateway.return_value.buy_airtime.assert_not_called()

        self.account.refresh_from_db()
        self.assertEqual(self.account.balance, Decimal("5000.00"))
        self.assertFalse(Transaction.objects.exists())

    def test_pin_not_set(self):
        account = make_account(balance="5000", pin=None)
        with self.assertRaises(PinNotSet):
            SettlementService.purchase_airtime(account.uuid, "MTN", Decimal("100"), PHONE, PIN)

    def test_insufficient_balance_never_reaches_vendor(self):
        with patch("topups.services.settlement.get_gateway") as mock_get_gateway:
            with self.assertRaises(InsufficientFunds):
                SettlementService.purchase_airtime(
                    self.account.uuid, "MTN", Decimal("5000"), PHONE, PIN
                )
            mock_get_gateway.return_value.buy_airtime.assert_not_called()

        self.account.refresh_from_db()
        self.assertEqual(self.account.balance, Decimal("5000.00"))

    @patch("topups.services.notifications.send_sms_notification")
    @patch("topups.services.settlement.get_gateway")
    def test_vendor_failure_leaves_balance_untouched(self, mock_get_gateway, mock_sms):
        mock_get_gateway.return_value.buy_airtime.return_value = vendor_result(
            success=False, reference="", error="Network busy", response={"status": "failed"}
        )

        with self.assertRaises(VendorError) as ctx:
            SettlementService.purchase_airtime(
                self.account.uuid, "MTN", Decimal("1000"), PHONE, PIN
            )

        self.assertEqual(str(ctx.exception), "Network busy")
        self.account.refresh_from_db()
        self.assertEqual(self.account.balance, Decimal("5000.00"))
        self.assertFalse(Transaction.objects.exists())
        mock_sms.delay.assert_not_called()

    @patch("topups.services.settlement.get_gateway")
    def test_balance_drained_during_vendor_call(self, mock_get_gateway):
        def drain(*args, **kwargs):
            Account.objects.filter(pk=self.account.pk).update(balance=Decimal("0"))
            return vendor_result()

        mock_get_gateway.return_value.name = "BILALSADA"
        mock_get_gateway.return_value.buy_airtime.side_effect = drain

        with self.assertRaises(InsufficientFunds):
            SettlementService.purchase_airtime(
                self.account.uuid, "MTN", Decimal("1000"), PHONE, PIN
            )

        # The whole settlement rolled back, including the concurrent drain.
        self.account.refresh_from_db()
        self.assertEqual(self.account.balance, Decimal("5000.00"))
        self.assertFalse(Transaction.objects.exists())
        # The vendor did answer, so its health stamp survives the rollback.
        self.assertTrue(VendorConnection.objects.filter(vendor="BILALSADA").exists())

    def test_unknown_account(self):
        with self.assertRaises(AccountNotFound):
            SettlementService.purchase_airtime(uuid.uuid4(), "MTN", Decimal("100"), PHONE, PIN)

    def test_non_positive_amount(self):
        with self.assertRaises(InvalidAmount):
            SettlementService.purchase_airtime(
                self.account.uuid, "MTN", Decimal("0"), PHONE, PIN
            )

    @override_settings(VENDOR_DEMO_MODE=False)
    def test_unconfigured_vendor(self):
        with self.assertRaises(VendorError):
            SettlementService.purchase_airtime(
                self.account.uuid, "MTN", Decimal("100"), PHONE, PIN
            )
        self.account.refresh_from_db()
        self.assertEqual(self.account.balance, Decimal("5000.00"))

    def test_idempotency(self):
        key = str(uuid.uuid4())
        tx1 = SettlementService.purchase_airtime(
            self.account.uuid, "MTN", Decimal("1000"), PHONE, PIN, idempotency_key=key
        )
        tx2 = SettlementService.purchase_airtime(
            self.account.uuid, "MTN", Decimal("1000"), PHONE, PIN, idempotency_key=key
        )

        self.assertEqual(tx1.id, tx2.id)
        self.account.refresh_from_db()
        self.assertEqual(self.account.balance, Decimal("3990.00"))
        self.assertEqual(Transaction.objects.count(), 1)

    def test_idempotency_key_is_scoped_to_account(self):
        key = str(uuid.uuid4())
        SettlementService.purchase_airtime(
            self.account.uuid, "MTN", Decimal("1000"), PHONE, PIN, idempotency_key=key
        )
        other = make_account(balance="5000")

        with self.assertRaises(IdempotencyConflict):
            SettlementService.purchase_airtime(
                other.uuid, "MTN", Decimal("1000"), PHONE, PIN, idempotency_key=key
            )

        other.refresh_from_db()
        self.assertEqual(other.balance, Decimal("5000.00"))
        self.assertFalse(Transaction.objects.filter(account=other).exists())

    def test_sequential_double_submit(self):
        account = make_account(balance="1010")
        SettlementService.purchase_airtime(account.uuid, "MTN", Decimal("1000"), PHONE, PIN)

        with self.assertRaises(InsufficientFunds):
            SettlementService.purchase_airtime(account.uuid, "MTN", Decimal("1000"), PHONE, PIN)

        account.refresh_from_db()
        self.assertEqual(account.balance, Decimal("0.00"))
        self.assertEqual(Transaction.objects.filter(account=account).count(), 1)

    def test_references_are_unique(self):
        txs = [
            SettlementService.purchase_airtime(
                self.account.uuid, "MTN", Decimal("100"), PHONE, PIN
            )
            for _ in range(5)
        ]
        self.assertEqual(len({tx.reference for tx in txs}), 5)

    @patch("topups.services.notifications.send_sms_notification")
    def test_receipt_queued_after_commit(self, mock_sms):
        tx = SettlementService.purchase_airtime(
            self.account.uuid, "MTN", Decimal("1000"), PHONE, PIN
        )

        mock_sms.delay.assert_called_once()
        phone, message = mock_sms.delay.call_args[0]
        self.assertEqual(phone, PHONE)
        self.assertIn("Airtime", message)
        self.assertIn(tx.reference, message)
        self.assertIn("3990.00", message)


class SlowGateway:
    name = "BILALSADA"

    def __init__(self):
        self.calls = 0
        self._lock = threading.Lock()

    def buy_airtime(self, provider, phone, amount):
        with self._lock:
            self.calls += 1
        # Hold the first request inside the vendor call while the second arrives.
        time.sleep(0.2)
        return vendor_result(reference=f"V-{self.calls}")


@override_settings(**TEST_SETTINGS)
class ConcurrentSettlementTest(TransactionTestCase):
    @patch("topups.services.settlement.get_gateway")
    def test_concurrent_double_submit_debits_once(self, mock_get_gateway):
        gateway = SlowGateway()
        mock_get_gateway.return_value = gateway
        account = make_account(balance="1010")
        outcomes = []

        def buy():
            try:
                outcomes.append(
                    SettlementService.purchase_airtime(
                        account.uuid, "MTN", Decimal("1000"), PHONE, PIN
                    )
                )
            except InsufficientFunds as exc:
                outcomes.append(exc)
            finally:
                connection.close()

        threads = [threading.Thread(target=buy) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        account.refresh_from_db()
        self.assertEqual(account.balance, Decimal("0.00"))
        self.assertEqual(sum(isinstance(o, Transaction) for o in outcomes), 1)
        self.assertEqual(sum(isinstance(o, InsufficientFunds) for o in outcomes), 1)
        self.assertEqual(gateway.calls, 1)
        self.assertEqual(Transaction.objects.filter(account=account).count(), 1)


@override_settings(**TEST_SETTINGS)
class DataSettlementTest(TransactionTestCase):
    def setUp(self):
        self.account = make_account(balance="5000")
        self.bundle = make_bundle()

    def test_purchase_success(self):
        tx = SettlementService.purchase_data(self.account.uuid, self.bundle.id, PHONE, PIN)

        self.account.refresh_from_db()
        self.assertEqual(self.account.balance, Decimal("4000.00"))
        self.assertEqual(self.account.data_used_gb, Decimal("1.5"))
        self.assertEqual(tx.transaction_type, Transaction.TransactionType.DATA)
        self.assertEqual(tx.amount, Decimal("1000.00"))
        self.assertEqual(tx.cost_price, Decimal("950.00"))
        self.assertEqual(tx.profit, Decimal("50.00"))
        self.assertEqual(tx.bundle_name, "1.5GB SME Monthly")
        self.assertEqual(tx.provider, "MTN")
        self.assertIsNotNone(tx.expiry_date)

    def test_usage_accumulates(self):
        small = make_bundle(
            plan_id="1005", data_amount="500MB", price=Decimal("300"), cost_price=Decimal("280")
        )
        SettlementService.purchase_data(self.account.uuid, self.bundle.id, PHONE, PIN)
        SettlementService.purchase_data(self.account.uuid, small.id, PHONE, PIN)

        self.account.refresh_from_db()
        self.assertEqual(self.account.data_used_gb, Decimal("1.98828125"))

    def test_reseller_price(self):
        reseller = make_account(balance="5000", role=Account.Role.RESELLER)
        self.bundle.reseller_price = Decimal("900")
        self.bundle.save()

        tx = SettlementService.purchase_data(reseller.uuid, self.bundle.id, PHONE, PIN)

        self.assertEqual(tx.amount, Decimal("900.00"))
        self.assertEqual(tx.new_balance, Decimal("4100.00"))

    @patch("topups.services.settlement.get_gateway")
    def test_sends_plan_id_to_vendor(self, mock_get_gateway):
        mock_get_gateway.return_value.buy_data.return_value = vendor_result()
        SettlementService.purchase_data(self.account.uuid, self.bundle.id, PHONE, PIN)
        mock_get_gateway.return_value.buy_data.assert_called_once_with("MTN", PHONE, "1001")

    def test_unavailable_bundle(self):
        self.bundle.is_available = False
        self.bundle.save()
        with self.assertRaises(BundleUnavailable):
            SettlementService.purchase_data(self.account.uuid, self.bundle.id, PHONE, PIN)

    def test_missing_plan_id(self):
        bundle = make_bundle(plan_id="")
        with self.assertRaises(MissingPlanId):
            SettlementService.purchase_data(self.account.uuid, bundle.id, PHONE, PIN)
        self.account.refresh_from_db()
        self.assertEqual(self.account.balance, Decimal("5000.00"))

    def test_unknown_bundle(self):
        with self.assertRaises(Bundle.DoesNotExist):
            SettlementService.purchase_data(self.account.uuid, 999999, PHONE, PIN)


@override_settings(**TEST_SETTINGS)
class BillSettlementTest(TransactionTestCase):
    def setUp(self):
        self.account = make_account(balance="10000")

    def test_electricity(self):
        tx = SettlementService.pay_bill(
            self.account.uuid,
            Transaction.TransactionType.ELECTRICITY,
            "IKEDC",
            "45012345678",
            PIN,
            amount=Decimal("5000"),
            customer_name="ADA OBI",
        )

        self.account.refresh_from_db()
        self.assertEqual(self.account.balance, Decimal("4900.00"))
        self.assertEqual(tx.amount, Decimal("5100.00"))
        self.assertEqual(tx.profit, Decimal("100.00"))
        self.assertEqual(tx.service_fee, Decimal("100.00"))
        self.assertEqual(tx.customer_name, "ADA OBI")
        self.assertEqual(tx.destination, "45012345678")
        self.assertRegex(tx.meter_token, r"^\d{4}-\d{4}-\d{4}-\d{4}$")

    @patch("topups.services.settlement.get_gateway")
    def test_electricity_token_from_vendor(self, mock_get_gateway):
        mock_get_gateway.return_value.buy_bill.return_value = vendor_result(
            response={"status": "success", "token": "1111-2222-3333-4444"}
        )

        tx = SettlementService.pay_bill(
            self.account.uuid,
            Transaction.TransactionType.ELECTRICITY,
            "EKEDC",
            "45012345678",
            PIN,
            amount=Decimal("2000"),
        )

        self.assertEqual(tx.meter_token, "1111-2222-3333-4444")

    def test_cable(self):
        bundle = make_bundle(
            provider="DSTV",
            plan_type=Bundle.PlanType.CABLE,
            name="DStv Padi",
            price=Decimal("2500"),
            cost_price=Decimal("2400"),
            plan_id="dstv-padi",
            data_amount="",
        )

        tx = SettlementService.pay_bill(
            self.account.uuid,
            Transaction.TransactionType.CABLE,
            "DSTV",
            "7023456789",
            PIN,
            bundle_id=bundle.id,
        )

        self.account.refresh_from_db()
        self.assertEqual(tx.amount, Decimal("2600.00"))
        self.assertEqual(tx.profit, Decimal("200.00"))
        self.assertEqual(tx.bundle_name, "DStv Padi")
        self.assertEqual(self.account.balance, Decimal("7400.00"))
        self.assertEqual(self.account.data_used_gb, Decimal("0"))
        self.assertEqual(tx.meter_token, "")

    def test_cable_requires_bundle(self):
        with self.assertRaises(ValueError):
            SettlementService.pay_bill(
                self.account.uuid, Transaction.TransactionType.CABLE, "GOTV", "702", PIN
            )

    @patch("topups.services.settlement.get_gateway")
    def test_electricity_without_amount(self, mock_get_gateway):
        with self.assertRaises(InvalidAmount):
            SettlementService.pay_bill(
                self.account.uuid,
                Transaction.TransactionType.ELECTRICITY,
                "IKEDC",
                "45012345678",
                PIN,
                amount=None,
            )

        mock_get_gateway.return_value.buy_bill.assert_not_called()
        self.account.refresh_from_db()
        self.assertEqual(self.account.balance, Decimal("10000.00"))
        self.assertFalse(Transaction.objects.exists())

    def test_unsupported_bill_type(self):
        with self.assertRaises(ValueError):
            SettlementService.pay_bill(
                self.account.uuid,
                Transaction.TransactionType.AIRTIME,
                "MTN",
                PHONE,
                PIN,
                amount=Decimal("100"),
            )


@override_settings(**TEST_SETTINGS)
class FundsConservationTest(TransactionTestCase):
    def test_balance_matches_ledger(self):
        account = make_account()
        bundle = make_bundle()
        FundingService.fund_wallet(account.uuid, Decimal("10000"))

        SettlementService.purchase_airtime(
            account.uuid, "MTN", Decimal("1000"), PHONE, PIN, round_up_savings=True
        )
        SettlementService.purchase_data(account.uuid, bundle.id, PHONE, PIN)
        SettlementService.pay_bill(
            account.uuid,
            Transaction.TransactionType.ELECTRICITY,
            "AEDC",
            "45012345678",
            PIN,
            amount=Decimal("2000"),
        )
        with self.assertRaises(InsufficientFunds):
            SettlementService.purchase_airtime(
                account.uuid, "MTN", Decimal("50000"), PHONE, PIN
            )

        account.refresh_from_db()
        credited = sum(
            tx.amount
            for tx in account.transactions.filter(
                transaction_type=Transaction.TransactionType.WALLET_FUND,
                status=Transaction.Status.SUCCESS,
            )
        )
        spent = sum(
            tx.amount + (tx.savings_amount or 0)
            for tx in account.transactions.exclude(
                transaction_type=Transaction.TransactionType.WALLET_FUND
            )
        )
        self.assertEqual(account.balance, credited - spent)
        self.assertEqual(account.balance, Decimal("5800.00"))
        self.assertEqual(account.savings, Decimal("90.00"))

        for tx in account.transactions.exclude(previous_balance=None):
            self.assertGreaterEqual(tx.new_balance, 0)


# ============================================================
# Funding Service Tests
# ============================================================


@override_settings(**TEST_SETTINGS)
class FundingServiceTest(TransactionTestCase):
    def setUp(self):
        self.account = make_account()

    def test_fund_wallet(self):
        tx = FundingService.fund_wallet(self.account.uuid, Decimal("5000"), payment_method="Paystack")

        self.account.refresh_from_db()
        self.assertEqual(self.account.balance, Decimal("5000.00"))
        self.assertEqual(tx.status, Transaction.Status.SUCCESS)
        self.assertEqual(tx.transaction_type, Transaction.TransactionType.WALLET_FUND)
        self.assertEqual(tx.previous_balance, Decimal("0.00"))
        self.assertEqual(tx.new_balance, Decimal("5000.00"))
        self.assertEqual(tx.payment_method, "Paystack")

    def test_fund_wallet_idempotency(self):
        key = str(uuid.uuid4())
        tx1 = FundingService.fund_wallet(self.account.uuid, Decimal("5000"), idempotency_key=key)
        tx2 = FundingService.fund_wallet(self.account.uuid, Decimal("5000"), idempotency_key=key)

        self.assertEqual(tx1.id, tx2.id)
        self.account.refresh_from_db()
        self.assertEqual(self.account.balance, Decimal("5000.00"))

    def test_fund_wallet_idempotency_key_is_scoped_to_account(self):
        key = str(uuid.uuid4())
        FundingService.fund_wallet(self.account.uuid, Decimal("5000"), idempotency_key=key)
        other = make_account()

        with self.assertRaises(IdempotencyConflict):
            FundingService.fund_wallet(other.uuid, Decimal("5000"), idempotency_key=key)

        other.refresh_from_db()
        self.assertEqual(other.balance, Decimal("0.00"))
        self.assertFalse(Transaction.objects.filter(account=other).exists())

    def test_fund_wallet_invalid_amount(self):
        for amount in (Decimal("0"), Decimal("-100"), None, "abc"):
            with self.assertRaises(InvalidAmount):
                FundingService.fund_wallet(self.account.uuid, amount)

    def test_fund_unknown_account(self):
        with self.assertRaises(AccountNotFound):
            FundingService.fund_wallet(uuid.uuid4(), Decimal("100"))

    def test_manual_funding_does_not_credit(self):
        tx = FundingService.submit_manual_funding(
            self.account.uuid, Decimal("3000"), "https://receipts.example/123.png"
        )

        self.account.refresh_from_db()
        self.assertEqual(tx.status, Transaction.Status.PENDING)
        self.assertEqual(tx.proof_reference, "https://receipts.example/123.png")
        self.assertEqual(self.account.balance, Decimal("0.00"))

    def test_manual_funding_requires_proof(self):
        with self.assertRaises(ValueError):
            FundingService.submit_manual_funding(self.account.uuid, Decimal("3000"), "")

    @patch("topups.services.notifications.send_sms_notification")
    def test_approve_credits_once(self, mock_sms):
        tx = FundingService.submit_manual_funding(self.account.uuid, Decimal("3000"), "proof")

        approved = FundingService.approve_transaction(tx.id)

        self.assertEqual(approved.status, Transaction.Status.SUCCESS)
        self.assertEqual(approved.previous_balance, Decimal("0.00"))
        self.assertEqual(approved.new_balance, Decimal("3000.00"))
        self.assertIsNotNone(approved.admin_action_at)
        mock_sms.delay.assert_called_once()

        with self.assertRaises(TransactionNotPending):
            FundingService.approve_transaction(tx.id)

        self.account.refresh_from_db()
        self.assertEqual(self.account.balance, Decimal("3000.00"))

    def test_decline(self):
        tx = FundingService.submit_manual_funding(self.account.uuid, Decimal("3000"), "proof")

        declined = FundingService.decline_transaction(tx.id)

        self.assertEqual(declined.status, Transaction.Status.FAILED)
        self.assertIsNotNone(declined.admin_action_at)
        with self.assertRaises(TransactionNotPending):
            FundingService.approve_transaction(tx.id)

        self.account.refresh_from_db()
        self.assertEqual(self.account.balance, Decimal("0.00"))

    def test_approve_only_targets_fundings(self):
        account = make_account(balance="5000")
        purchase = SettlementService.purchase_airtime(
            account.uuid, "MTN", Decimal("100"), PHONE, PIN
        )
        with self.assertRaises(Transaction.DoesNotExist):
            FundingService.approve_transaction(purchase.id)

    def test_adjust_balance(self):
        credit = FundingService.adjust_balance(self.account.uuid, Decimal("1000"))
        debit = FundingService.adjust_balance(self.account.uuid, Decimal("400"), credit=False)

        self.assertEqual(credit.transaction_type, Transaction.TransactionType.ADMIN_CREDIT)
        self.assertEqual(debit.transaction_type, Transaction.TransactionType.ADMIN_DEBIT)
        self.assertTrue(debit.reference.startswith("ADMIN-"))
        self.assertEqual(debit.new_balance, Decimal("600.00"))

    def test_adjust_debit_cannot_overdraw(self):
        FundingService.adjust_balance(self.account.uuid, Decimal("100"))
        with self.assertRaises(InsufficientFunds):
            FundingService.adjust_balance(self.account.uuid, Decimal("101"), credit=False)

        self.account.refresh_from_db()
        self.assertEqual(self.account.balance, Decimal("100.00"))


@override_settings(**TEST_SETTINGS)
class AccountServiceTest(TestCase):
    def test_create_pin(self):
        account = make_account(pin=None)
        AccountService.set_pin(account.uuid, "4321")
        account.refresh_from_db()
        self.assertTrue(account.check_pin("4321"))

    def test_change_pin_requires_current(self):
        account = make_account()
        with self.assertRaises(PinMismatch):
            AccountService.set_pin(account.uuid, "4321")
        with self.assertRaises(PinMismatch):
            AccountService.set_pin(account.uuid, "4321", current_pin="0000")

        AccountService.set_pin(account.uuid, "4321", current_pin=PIN)
        account.refresh_from_db()
        self.assertTrue(account.check_pin("4321"))

    def test_invalid_pin(self):
        account = make_account(pin=None)
        with self.assertRaises(ValueError):
            AccountService.set_pin(account.uuid, "abcd")


# ============================================================
# Notification and Celery Task Tests
# ============================================================


@override_settings(**TEST_SETTINGS)
class NotificationTest(TestCase):
    @patch("topups.services.notifications.send_sms_notification")
    def test_dispatched_on_commit(self, mock_sms):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            notify_after_commit(PHONE, "hello")

        self.assertEqual(len(callbacks), 1)
        mock_sms.delay.assert_called_once_with(PHONE, "hello")

    @patch("topups.services.notifications.send_sms_notification")
    def test_broker_failure_is_swallowed(self, mock_sms):
        mock_sms.delay.side_effect = RuntimeError("broker down")

        with self.captureOnCommitCallbacks(execute=True):
            notify_after_commit(PHONE, "hello")

        mock_sms.delay.assert_called_once()

    def test_no_phone_no_callback(self):
        with self.captureOnCommitCallbacks() as callbacks:
            notify_after_commit("", "hello")
        self.assertEqual(callbacks, [])


class SmsTaskTest(TestCase):
    def test_format_phone(self):
        self.assertEqual(format_phone("08012345678"), "+2348012345678")
        self.assertEqual(format_phone("+2348012345678"), "+2348012345678")

    @override_settings(SMS_ENABLED=False)
    def test_disabled(self):
        result = send_sms_notification.apply(args=[PHONE, "hi"])
        self.assertEqual(result.get()["status"], "SKIPPED")

    @override_settings(SMS_ENABLED=True, SMS_API_URL="")
    def test_log_only_without_api_url(self):
        result = send_sms_notification.apply(args=[PHONE, "hi"])
        self.assertEqual(result.get(), {"phone": "+2348012345678", "status": "LOGGED"})

    @override_settings(SMS_ENABLED=True, SMS_API_URL="https://sms.example/send")
    @patch("topups.tasks.requests.post")
    def test_sent(self, mock_post):
        mock_post.return_value = MagicMock()

        result = send_sms_notification.apply(args=[PHONE, "hi"])

        self.assertEqual(result.get()["status"], "SENT")
        self.assertEqual(mock_post.call_args[1]["json"]["to"], "+2348012345678")

    @override_settings(SMS_ENABLED=True, SMS_API_URL="https://sms.example/send")
    @patch("topups.tasks.requests.post")
    def test_delivery_failure(self, mock_post):
        mock_post.side_effect = requests.exceptions.ConnectionError("down")

        result = send_sms_notification.apply(args=[PHONE, "hi"])

        self.assertEqual(result.get()["status"], "FAILED")


# ============================================================
# Admin, Middleware and Command Tests
# ============================================================


@override_settings(**TEST_SETTINGS)
class TransactionAdminActionTest(TestCase):
    def setUp(self):
        self.account = make_account()
        self.model_admin = TransactionAdmin(Transaction, admin.site)
        self.model_admin.message_user = MagicMock()
        self.request = RequestFactory().post("/admin/topups/transaction/")

    def test_approve_action(self):
        tx = FundingService.submit_manual_funding(self.account.uuid, Decimal("700"), "proof")
        queryset = Transaction.objects.filter(pk=tx.pk)

        self.model_admin.approve_fundings(self.request, queryset)
        self.model_admin.approve_fundings(self.request, queryset)

        self.account.refresh_from_db()
        self.assertEqual(self.account.balance, Decimal("700.00"))
        # second run warns about the processed funding, then reports zero
        self.assertEqual(self.model_admin.message_user.call_count, 3)

    def test_decline_action(self):
        tx = FundingService.submit_manual_funding(self.account.uuid, Decimal("700"), "proof")
        self.model_admin.decline_fundings(self.request, Transaction.objects.filter(pk=tx.pk))

        tx.refresh_from_db()
        self.assertEqual(tx.status, Transaction.Status.FAILED)


class RedactBodyTest(TestCase):
    def test_pins_masked(self):
        body = redact_body('{"pin": "1234", "current_pin": "9999", "amount": "10"}')
        self.assertNotIn("1234", body)
        self.assertNotIn("9999", body)
        self.assertIn('"amount": "10"', body)

    def test_non_json_passthrough(self):
        self.assertEqual(redact_body("pin=1234"), "pin=1234")


class SeedBundlesCommandTest(TestCase):
    def test_idempotent(self):
        call_command("seed_bundles", stdout=StringIO())
        call_command("seed_bundles", stdout=StringIO())

        self.assertEqual(Bundle.objects.count(), len(SAMPLE_BUNDLES))
        bundle = Bundle.objects.get(plan_id="1001")
        self.assertEqual(bundle.price, Decimal("1000.00"))
        self.assertFalse(Bundle.objects.get(plan_id="1002").is_available)


# ============================================================
# API Tests
# ============================================================


@override_settings(**TEST_SETTINGS)
class AccountAPITest(TestCase):
    def setUp(self):
        self.client = APIClient()

    def test_create_account(self):
        response = self.client.post("/accounts/", {"name": "Ada", "phone": PHONE}, format="json")
        self.assertEqual(response.status_code, 201)
        self.assertIn("uuid", response.data)
        self.assertEqual(response.data["balance"], "0.00")
        self.assertFalse(response.data["has_pin"])

    def test_balance_is_read_only(self):
        response = self.client.post("/accounts/", {"balance": "999999"}, format="json")
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["balance"], "0.00")

    def test_retrieve_account(self):
        account = make_account(balance="250")
        response = self.client.get(f"/accounts/{account.uuid}/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["uuid"], str(account.uuid))
        self.assertEqual(response.data["balance"], "250.00")
        self.assertNotIn("transaction_pin", response.data)

    def test_retrieve_nonexistent_account(self):
        response = self.client.get(f"/accounts/{uuid.uuid4()}/")
        self.assertEqual(response.status_code, 404)

    def test_set_pin(self):
        account = make_account(pin=None)
        response = self.client.post(f"/accounts/{account.uuid}/pin", {"pin": "2468"}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data["has_pin"])

    def test_set_pin_invalid(self):
        account = make_account(pin=None)
        response = self.client.post(f"/accounts/{account.uuid}/pin", {"pin": "12ab"}, format="json")
        self.assertEqual(response.status_code, 400)

    def test_change_pin_wrong_current(self):
        account = make_account()
        response = self.client.post(
            f"/accounts/{account.uuid}/pin",
            {"pin": "2468", "current_pin": "0000"},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "pin_mismatch")


@override_settings(**TEST_SETTINGS)
class PurchaseAPITest(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.account = make_account(balance="5000")

    def _airtime(self, amount="1000", pin=PIN, **extra):
        return self.client.post(
            f"/accounts/{self.account.uuid}/airtime",
            {"provider": "MTN", "amount": amount, "phone": PHONE, "pin": pin},
            format="json",
            **extra,
        )

    def test_airtime_success(self):
        response = self._airtime()
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["account"]["balance"], "3990.00")
        self.assertEqual(response.data["transaction"]["amount"], "1010.00")
        self.assertEqual(response.data["transaction"]["status"], "SUCCESS")
        self.assertEqual(response.data["transaction"]["account_uuid"], str(self.account.uuid))

    def test_airtime_wrong_pin(self):
        response = self._airtime(pin="0000")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "pin_mismatch")

    def test_airtime_insufficient_funds(self):
        response = self._airtime(amount="9000")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "insufficient_funds")

    def test_airtime_invalid_payload(self):
        self.assertEqual(self._airtime(amount="0").status_code, 400)
        response = self.client.post(
            f"/accounts/{self.account.uuid}/airtime",
            {"provider": "VODAFONE", "amount": "100", "phone": PHONE, "pin": PIN},
            format="json",
        )
        self.assertEqual(response.status_code, 400)

    def test_airtime_unknown_account(self):
        response = self.client.post(
            f"/accounts/{uuid.uuid4()}/airtime",
            {"provider": "MTN", "amount": "100", "phone": PHONE, "pin": PIN},
            format="json",
        )
        self.assertEqual(response.status_code, 404)

    @patch("topups.services.settlement.get_gateway")
    def test_airtime_vendor_failure(self, mock_get_gateway):
        mock_get_gateway.return_value.buy_airtime.return_value = vendor_result(
            success=False, reference="", error="Network busy"
        )

        response = self._airtime()

        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.data["code"], "vendor_error")
        self.assertEqual(response.data["error"], "Network busy")
        self.account.refresh_from_db()
        self.assertEqual(self.account.balance, Decimal("5000.00"))

    def test_airtime_idempotency_key(self):
        key = str(uuid.uuid4())
        response1 = self._airtime(HTTP_IDEMPOTENCY_KEY=key)
        response2 = self._airtime(HTTP_IDEMPOTENCY_KEY=key)

        self.assertEqual(response1.status_code, 201)
        self.assertEqual(response2.status_code, 201)
        self.assertEqual(response1.data["transaction"]["id"], response2.data["transaction"]["id"])
        self.assertEqual(response2.data["account"]["balance"], "3990.00")

    def test_airtime_idempotency_key_reused_by_another_account(self):
        key = str(uuid.uuid4())
        self.assertEqual(self._airtime(HTTP_IDEMPOTENCY_KEY=key).status_code, 201)
        other = make_account(balance="5000")

        response = self.client.post(
            f"/accounts/{other.uuid}/airtime",
            {"provider": "MTN", "amount": "1000", "phone": PHONE, "pin": PIN},
            format="json",
            HTTP_IDEMPOTENCY_KEY=key,
        )

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data["code"], "idempotency_conflict")
        self.assertNotIn(str(self.account.uuid), response.content.decode())
        other.refresh_from_db()
        self.assertEqual(other.balance, Decimal("5000.00"))

    def test_data_success(self):
        bundle = make_bundle()
        response = self.client.post(
            f"/accounts/{self.account.uuid}/data",
            {"bundle_id": bundle.id, "phone": PHONE, "pin": PIN},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["account"]["balance"], "4000.00")
        self.assertEqual(response.data["account"]["data_used_gb"], "1.50000000")
        self.assertEqual(response.data["transaction"]["bundle_name"], bundle.name)

    def test_data_unknown_bundle(self):
        response = self.client.post(
            f"/accounts/{self.account.uuid}/data",
            {"bundle_id": 999999, "phone": PHONE, "pin": PIN},
            format="json",
        )
        self.assertEqual(response.status_code, 404)

    def test_data_missing_plan_id(self):
        bundle = make_bundle(plan_id="")
        response = self.client.post(
            f"/accounts/{self.account.uuid}/data",
            {"bundle_id": bundle.id, "phone": PHONE, "pin": PIN},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "missing_plan_id")

    def test_electricity(self):
        response = self.client.post(
            f"/accounts/{self.account.uuid}/bills",
            {
                "transaction_type": "ELECTRICITY",
                "provider": "IKEDC",
                "number": "45012345678",
                "amount": "1000",
                "pin": PIN,
                "customer_name": "ADA OBI",
            },
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["transaction"]["amount"], "1100.00")
        self.assertTrue(
            re.match(r"^\d{4}-\d{4}-\d{4}-\d{4}$", response.data["transaction"]["meter_token"])
        )

    def test_electricity_requires_amount(self):
        response = self.client.post(
            f"/accounts/{self.account.uuid}/bills",
            {
                "transaction_type": "ELECTRICITY",
                "provider": "IKEDC",
                "number": "45012345678",
                "pin": PIN,
            },
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("amount", response.data)

    def test_cable_requires_bundle(self):
        response = self.client.post(
            f"/accounts/{self.account.uuid}/bills",
            {"transaction_type": "CABLE", "provider": "DSTV", "number": "702", "pin": PIN},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("bundle_id", response.data)


@override_settings(**TEST_SETTINGS)
class FundingAPITest(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.account = make_account()
        self.admin_user = get_user_model().objects.create_user(
            username="ops", password="ops-pass", is_staff=True
        )

    def test_fund_wallet(self):
        response = self.client.post(
            f"/accounts/{self.account.uuid}/fund", {"amount": "5000"}, format="json"
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["account"]["balance"], "5000.00")
        self.assertEqual(response.data["transaction"]["status"], "SUCCESS")
        self.assertEqual(response.data["transaction"]["payment_method"], "Bank Transfer")

    def test_fund_wallet_zero_amount(self):
        response = self.client.post(
            f"/accounts/{self.account.uuid}/fund", {"amount": "0"}, format="json"
        )
        self.assertEqual(response.status_code, 400)

    def test_fund_unknown_account(self):
        response = self.client.post(f"/accounts/{uuid.uuid4()}/fund", {"amount": "10"}, format="json")
        self.assertEqual(response.status_code, 404)

    def test_manual_funding_lifecycle(self):
        response = self.client.post(
            f"/accounts/{self.account.uuid}/fund/manual",
            {"amount": "2500", "proof_reference": "receipt-778"},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["status"], "PENDING")
        tx_id = response.data["id"]

        self.client.force_authenticate(self.admin_user)
        response = self.client.post(f"/accounts/admin/transactions/{tx_id}/approve")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["status"], "SUCCESS")
        self.assertEqual(response.data["new_balance"], "2500.00")

        response = self.client.post(f"/accounts/admin/transactions/{tx_id}/approve")
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data["code"], "transaction_not_pending")

        self.account.refresh_from_db()
        self.assertEqual(self.account.balance, Decimal("2500.00"))

    def test_decline(self):
        tx = FundingService.submit_manual_funding(self.account.uuid, Decimal("800"), "proof")

        self.client.force_authenticate(self.admin_user)
        response = self.client.post(f"/accounts/admin/transactions/{tx.id}/decline")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["status"], "FAILED")

    def test_approve_requires_staff(self):
        tx = FundingService.submit_manual_funding(self.account.uuid, Decimal("800"), "proof")
        response = self.client.post(f"/accounts/admin/transactions/{tx.id}/approve")
        self.assertIn(response.status_code, (401, 403))

    def test_approve_unknown_transaction(self):
        self.client.force_authenticate(self.admin_user)
        response = self.client.post("/accounts/admin/transactions/999999/approve")
        self.assertEqual(response.status_code, 404)

    def test_adjust_balance(self):
        self.client.force_authenticate(self.admin_user)
        response = self.client.post(
            f"/accounts/admin/{self.account.uuid}/adjust",
            {"amount": "300", "direction": "credit"},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["account"]["balance"], "300.00")

        response = self.client.post(
            f"/accounts/admin/{self.account.uuid}/adjust",
            {"amount": "301", "direction": "debit"},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "insufficient_funds")


@override_settings(**TEST_SETTINGS)
class CatalogAndLedgerAPITest(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.account = make_account()
        FundingService.fund_wallet(self.account.uuid, Decimal("5000"))
        FundingService.submit_manual_funding(self.account.uuid, Decimal("100"), "proof")
        SettlementService.purchase_airtime(self.account.uuid, "MTN", Decimal("100"), PHONE, PIN)

    def test_list_bundles(self):
        make_bundle()
        make_bundle(plan_id="1002", is_available=False)
        make_bundle(plan_id="2001", provider="GLO")

        response = self.client.get("/accounts/bundles/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data), 2)

        response = self.client.get("/accounts/bundles/?provider=mtn")
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]["provider"], "MTN")

    def test_list_transactions(self):
        response = self.client.get(f"/accounts/{self.account.uuid}/transactions/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data), 3)

    def test_filter_by_status(self):
        response = self.client.get(f"/accounts/{self.account.uuid}/transactions/?status=pending")
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]["status"], "PENDING")

    def test_filter_by_type(self):
        response = self.client.get(f"/accounts/{self.account.uuid}/transactions/?type=AIRTIME")
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]["transaction_type"], "AIRTIME")

    def test_transaction_detail(self):
        tx = Transaction.objects.filter(account=self.account).first()
        response = self.client.get(f"/accounts/{self.account.uuid}/transactions/{tx.id}/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["id"], tx.id)

    def test_transaction_detail_other_account(self):
        other = make_account()
        tx = Transaction.objects.filter(account=self.account).first()
        response = self.client.get(f"/accounts/{other.uuid}/transactions/{tx.id}/")
        self.assertEqual(response.status_code, 404)
