"""Send Web Push notifications via pywebpush."""

import json
import logging

from pywebpush import WebPushException, webpush

from app.config import Settings

logger = logging.getLogger(__name__)

SENT = "sent"
FAILED = "failed"
EXPIRED = "expired"


def vapid_configured(settings: Settings) -> bool:
    return bool(settings.vapid_private_key and settings.vapid_public_key)


def send_web_push(
    subscription_info: dict,
    payload: dict,
    settings: Settings,
) -> str:
    """
    Send a single web push notification.

    Args:
        subscription_info: The PushSubscription JSON (endpoint + keys).
        payload: Dict with at least 'title' and 'body'.
        settings: App settings containing VAPID keys.

    Returns:
        ``SENT``, ``FAILED``, or ``EXPIRED`` when the push service reports
        the subscription gone (the caller should drop it).
    """
    if not vapid_configured(settings):
        logger.error("VAPID keys not configured, cannot send web push")
        return FAILED

    try:
        webpush(
            subscription_info=subscription_info,
            data=json.dumps(payload, ensure_ascii=False),
            vapid_private_key=settings.vapid_private_key,
            vapid_claims={"sub": settings.vapid_claims_email},
        )
        logger.info("Web push sent to %s", subscription_info.get("endpoint", "?")[:60])
        return SENT
    except WebPushException as ex:
        logger.error("Web push failed: %s", ex)
        if ex.response is not None and ex.response.status_code in (404, 410):
            logger.warning("Subscription expired or invalid, dropping it")
            return EXPIRED
        return FAILED
    except Exception as ex:
        logger.error("Unexpected error sending web push: %s", ex)
        return FAILED
