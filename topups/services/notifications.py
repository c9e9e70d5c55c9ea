import logging

from django.db import transaction

from topups.tasks import send_sms_notification

logger = logging.getLogger(__name__)


def notify_after_commit(phone: str, message: str) -> None:
    """
    Queue an SMS once the surrounding transaction commits.

    Dispatch is fire-and-forget: a broker outage is logged and never reaches
    the caller, whose settlement is already committed by then.
    """
    if not phone or not message:
        return

    def _dispatch():
        try:
            send_sms_notification.delay(phone, message)
        except Exception:
            logger.exception("Failed to queue SMS notification: phone=%s", phone)

    transaction.on_commit(_dispatch)
