import logging

import requests
from celery import shared_task
from django.conf import settings

logger = logging.getLogger(__name__)


def format_phone(phone: str) -> str:
    """Local "080..." numbers are rewritten to international format."""
    phone = (phone or "").strip()
    if phone.startswith("0"):
        prefix = getattr(settings, "SMS_COUNTRY_PREFIX", "+234")
        return prefix + phone[1:]
    return phone


@shared_task(bind=True, acks_late=True, ignore_result=True)
def send_sms_notification(self, phone: str, message: str):
    """
    Deliver a settlement receipt by SMS.

    Queued after the settlement commits and never awaited by the request. A
    delivery failure is logged and dropped; the ledger entry it describes is
    already final. Without SMS_API_URL the message is only logged.
    """
    if not getattr(settings, "SMS_ENABLED", False):
        logger.info("SMS disabled in settings, skipped: phone=%s", phone)
        return {"phone": phone, "status": "SKIPPED"}

    if not phone or not message:
        return {"phone": phone, "status": "SKIPPED"}

    formatted = format_phone(phone)
    sender = getattr(settings, "SMS_SENDER_ID", "JadanPay")
    api_url = getattr(settings, "SMS_API_URL", "")

    if not api_url:
        logger.info("SMS (log only): to=%s sender=%s body=%s", formatted, sender, message)
        return {"phone": formatted, "status": "LOGGED"}

    try:
        response = requests.post(
            api_url,
            json={"to": formatted, "from": sender, "body": message},
            headers={"Authorization": f"Bearer {getattr(settings, 'SMS_API_KEY', '')}"},
            timeout=getattr(settings, "SMS_TIMEOUT", 10),
        )
        response.raise_for_status()

    except requests.exceptions.RequestException as exc:
        logger.error("Failed to send SMS: to=%s error=%s", formatted, str(exc))
        return {"phone": formatted, "status": "FAILED"}

    logger.info("SMS sent: to=%s sender=%s", formatted, sender)
    return {"phone": formatted, "status": "SENT"}
