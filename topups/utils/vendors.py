"""
Adapters over the upstream VTU vendors that actually deliver airtime, data and
bill payments to the networks.

Each vendor family gets one gateway class; the active one is picked from
settings by `get_gateway()`. Every call returns a structured result dict
(`success`, `reference`, `error`, `response`) so the settlement service can
treat all vendors the same way and never has to catch transport exceptions.
"""

import logging
import random
import time
from decimal import Decimal, InvalidOperation

import requests
from django.conf import settings
from django.db import DatabaseError, transaction
from django.utils import timezone

from topups.exceptions import VendorError
from topups.models import VendorConnection, generate_reference

logger = logging.getLogger(__name__)

DEFAULT_BASE_URLS = {
    "BILALSADA": "https://app.bilalsadasub.com/api/v1",
    "MASKAWA": "https://api.maskawasub.com/api/v1",
    "ALRAHUZ": "https://alrahuzdata.com.ng/api/v1",
    "ABBAPHANTAMI": "https://abbaphantami.com/api/v1",
    "SIMHOST": "https://simhostng.com/api/v1",
}

SUCCESS_STATUSES = ("success", "successful", "ok")


def record_successful_connection(vendor: str) -> None:
    """
    Stamp the vendor's last successful round trip.

    Runs in its own savepoint so a failed write never poisons the
    surrounding settlement transaction.
    """
    try:
        with transaction.atomic():
            VendorConnection.objects.update_or_create(
                vendor=vendor, defaults={"last_success_at": timezone.now()}
            )
    except DatabaseError:
        logger.exception("Failed to record vendor connection: vendor=%s", vendor)


def _result(success, reference="", error="", response=None) -> dict:
    return {
        "success": success,
        "reference": reference,
        "error": error,
        "response": response or {},
    }


class VendorGateway:
    """Interface every vendor adapter implements."""

    def __init__(self, name: str):
        self.name = name

    def buy_airtime(self, network: str, phone: str, amount) -> dict:
        raise NotImplementedError

    def buy_data(self, network: str, phone: str, plan_id: str) -> dict:
        raise NotImplementedError

    def buy_bill(self, provider: str, number: str, amount, plan_id: str = "") -> dict:
        raise NotImplementedError

    def get_balance(self) -> Decimal:
        raise NotImplementedError


class HttpVendorGateway(VendorGateway):
    """
    Shared HTTP plumbing: token auth, JSON payloads and a bounded timeout.

    Subclasses only decide how a network is encoded on the wire.
    """

    def __init__(self, name: str, api_key: str, base_url: str = None, timeout=None):
        super().__init__(name)
        self.api_key = api_key
        self.base_url = (base_url or DEFAULT_BASE_URLS.get(name, "")).rstrip("/")
        self.timeout = timeout or getattr(settings, "VENDOR_TIMEOUT", 15)

    def network_code(self, network: str) -> str:
        raise NotImplementedError

    def buy_airtime(self, network: str, phone: str, amount) -> dict:
        payload = {
            "network": self.network_code(network),
            "mobile_number": phone,
            "phone": phone,
            "amount": str(amount),
            "Ported_number": True,
            "airtime_type": "VTU",
        }
        return self._request("/topup", payload)

    def buy_data(self, network: str, phone: str, plan_id: str) -> dict:
        payload = {
            "network": self.network_code(network),
            "mobile_number": phone,
            "phone": phone,
            "plan": plan_id,
            "Ported_number": True,
        }
        return self._request("/data", payload)

    def buy_bill(self, provider: str, number: str, amount, plan_id: str = "") -> dict:
        payload = {
            "provider": provider.lower(),
            "number": number,
            "amount": str(amount),
        }
        if plan_id:
            payload["plan"] = plan_id
        return self._request("/bill", payload)

    def get_balance(self) -> Decimal:
        try:
            response = requests.get(
                f"{self.base_url}/balance",
                headers=self._headers(),
                timeout=self.timeout,
            )
            data = response.json()
            return Decimal(str(data.get("balance", "0")))
        except (requests.exceptions.RequestException, ValueError, InvalidOperation) as exc:
            logger.error("Vendor balance check failed: vendor=%s error=%s", self.name, exc)
            raise VendorError(f"Could not fetch {self.name} balance.") from exc

    def _headers(self) -> dict:
        return {"Authorization": f"Token {self.api_key}"}

    def _request(self, endpoint: str, payload: dict) -> dict:
        url = f"{self.base_url}{endpoint}"
        logger.info("Vendor request: vendor=%s url=%s payload=%s", self.name, url, payload)

        failure_rate = getattr(settings, "VENDOR_SIMULATED_FAILURE_RATE", 0)
        if failure_rate and random.random() < failure_rate:
            logger.warning("Vendor simulated failure: vendor=%s url=%s", self.name, url)
            return _result(False, error="Vendor Connection Timed Out")

        try:
            response = requests.post(
                url, json=payload, headers=self._headers(), timeout=self.timeout
            )

        except requests.exceptions.Timeout as exc:
            logger.error("Vendor timeout: vendor=%s url=%s error=%s", self.name, url, exc)
            return _result(
                False,
                error="Vendor Connection Timed Out",
                response={"error": "timeout", "detail": str(exc)},
            )

        except requests.exceptions.ConnectionError as exc:
            logger.error(
                "Vendor connection error: vendor=%s url=%s error=%s", self.name, url, exc
            )
            return _result(
                False,
                error="Could not reach the service provider.",
                response={"error": "connection_error", "detail": str(exc)},
            )

        except requests.exceptions.RequestException as exc:
            logger.error("Vendor request error: vendor=%s url=%s error=%s", self.name, url, exc)
            return _result(
                False,
                error="Provider service temporarily unavailable.",
                response={"error": "request_error", "detail": str(exc)},
            )

        try:
            response_data = response.json()
        except ValueError:
            response_data = None

        if not isinstance(response_data, dict):
            logger.error(
                "Vendor returned non-JSON body: vendor=%s url=%s status=%d",
                self.name,
                url,
                response.status_code,
            )
            return _result(
                False,
                error="Provider returned an invalid response.",
                response={"error": "invalid_json", "status": response.status_code},
            )

        if response.ok and self._is_success(response_data):
            reference = str(
                response_data.get("ref")
                or response_data.get("reference")
                or response_data.get("request_id")
                or ""
            )
            record_successful_connection(self.name)
            logger.info(
                "Vendor request succeeded: vendor=%s url=%s reference=%s",
                self.name,
                url,
                reference,
            )
            return _result(True, reference=reference, response=response_data)

        message = (
            response_data.get("message")
            or response_data.get("error")
            or "Provider failed to process transaction"
        )
        logger.warning(
            "Vendor request failed: vendor=%s url=%s status=%d response=%s",
            self.name,
            url,
            response.status_code,
            response_data,
        )
        return _result(False, error=str(message), response=response_data)

    @staticmethod
    def _is_success(data: dict) -> bool:
        if data.get("success") is True:
            return True
        return str(data.get("status", "")).lower() in SUCCESS_STATUSES


class BilalSadaGateway(HttpVendorGateway):
    """BilalSadaSub identifies networks by lower-case name."""

    NETWORK_CODES = {
        "MTN": "mtn",
        "GLO": "glo",
        "AIRTEL": "airtel",
        "9MOBILE": "9mobile",
    }

    def network_code(self, network: str) -> str:
        key = network.upper()
        return self.NETWORK_CODES.get(key, key.lower())


class NumericCodeGateway(HttpVendorGateway):
    """Vendors on the common VTU script use numeric network ids."""

    NETWORK_CODES = {
        "MTN": "1",
        "GLO": "2",
        "AIRTEL": "3",
        "9MOBILE": "4",
    }

    def network_code(self, network: str) -> str:
        key = network.upper()
        return self.NETWORK_CODES.get(key, key.lower())


class DemoGateway(VendorGateway):
    """
    Stand-in for a vendor with no API key, used only when VENDOR_DEMO_MODE is on.

    Always succeeds after a short simulated latency and still records the
    connection timestamp so the admin view behaves as it would live.
    """

    def buy_airtime(self, network: str, phone: str, amount) -> dict:
        return self._simulate({"network": network, "phone": phone, "amount": str(amount)})

    def buy_data(self, network: str, phone: str, plan_id: str) -> dict:
        return self._simulate({"network": network, "phone": phone, "plan": plan_id})

    def buy_bill(self, provider: str, number: str, amount, plan_id: str = "") -> dict:
        return self._simulate(
            {"provider": provider, "number": number, "amount": str(amount), "plan": plan_id}
        )

    def get_balance(self) -> Decimal:
        return getattr(settings, "VENDOR_DEMO_BALANCE", Decimal("50000.00"))

    def _simulate(self, payload: dict) -> dict:
        logger.warning(
            "Demo mode: API key for %s is missing, simulating success. payload=%s",
            self.name,
            payload,
        )
        delay = getattr(settings, "VENDOR_DEMO_DELAY", 0)
        if delay:
            time.sleep(delay)

        reference = generate_reference("DEMO")
        record_successful_connection(self.name)
        return _result(
            True,
            reference=reference,
            response={
                "status": "success",
                "message": "Transaction successful (Demo Mode - No API Key)",
                "ref": reference,
                "api_response": {
                    **payload,
                    "timestamp": timezone.now().isoformat(),
                    "note": "Simulated Response",
                },
            },
        )


VENDOR_GATEWAYS = {
    "BILALSADA": BilalSadaGateway,
    "MASKAWA": NumericCodeGateway,
    "ALRAHUZ": NumericCodeGateway,
    "ABBAPHANTAMI": NumericCodeGateway,
    "SIMHOST": NumericCodeGateway,
}


def get_gateway(vendor: str = None) -> VendorGateway:
    """
    Resolve the configured vendor into a gateway instance.

    Raises:
        VendorError: If the vendor is unknown, or has no key while demo mode
            is disabled.
    """
    vendor = (vendor or getattr(settings, "VENDOR_ACTIVE", "BILALSADA")).upper()
    gateway_cls = VENDOR_GATEWAYS.get(vendor)
    if gateway_cls is None:
        raise VendorError(f"Unknown vendor {vendor}.")

    api_key = (getattr(settings, "VENDOR_API_KEYS", {}).get(vendor) or "").strip()
    if not api_key:
        if getattr(settings, "VENDOR_DEMO_MODE", False):
            return DemoGateway(vendor)
        logger.error("Vendor %s has no API key and demo mode is disabled.", vendor)
        raise VendorError(f"Vendor {vendor} is not configured.")

    base_url = getattr(settings, "VENDOR_BASE_URLS", {}).get(vendor)
    return gateway_cls(vendor, api_key, base_url=base_url)
