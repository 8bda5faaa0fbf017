import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request

from sports_api.core.api_response import success_response_payload
from sports_api.core.errors import Forbidden
from sports_api.core.metrics import increment_counter
from sports_api.core.observability import log_business_event
from sports_api.core.phone import mask_phone, normalize_phone
from sports_api.core.settings import Settings, get_settings
from sports_api.schemas.sms import SmsStatusCallback, SmsTestIn
from sports_api.services.sms import SmsSender, get_sms_sender, verification_message

router = APIRouter(prefix="/sms", tags=["sms"])
logger = logging.getLogger(__name__)

FAILED_STATUSES = {"failed", "undelivered"}
DEFAULT_TEST_CODE = "123456"


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.post("/status")
async def delivery_status(request: Request):
    """Twilio delivery status callback. Only logged."""
    form = await request.form()
    callback = SmsStatusCallback.model_validate({key: str(value) for key, value in form.items()})
    status = (callback.message_status or "unknown").lower()
    increment_counter("sms_status_total", status=status)

    level = logging.ERROR if status in FAILED_STATUSES else logging.INFO
    log_business_event(
        logger,
        request,
        event="sms.status",
        level=level,
        phone=callback.to,
        sid=callback.message_sid or "-",
        status=status,
        error_code=callback.error_code or "-",
        error_message=callback.error_message or "-",
    )
    return success_response_payload(request)


@router.get("/status-check")
def status_check(
    request: Request,
    settings: Settings = Depends(get_settings),
    sms_sender: SmsSender = Depends(get_sms_sender),
):
    return success_response_payload(
        request,
        smsService=sms_sender.status(),
        environment=settings.app_env,
        timestamp=_timestamp(),
    )


@router.post("/test")
def send_test_message(
    payload: SmsTestIn,
    request: Request,
    settings: Settings = Depends(get_settings),
    sms_sender: SmsSender = Depends(get_sms_sender),
):
    if settings.is_production:
        raise Forbidden("Test endpoint only available in development")

    phone = normalize_phone(payload.phone_number)
    code = payload.test_code or DEFAULT_TEST_CODE
    dispatch = sms_sender.send(phone, verification_message(code, settings.verification_code_ttl_seconds))
    logger.info("sms_test phone=%s outcome=%s", mask_phone(phone), dispatch.outcome)
    return success_response_payload(
        request,
        test={
            "phoneNumber": phone,
            "code": code,
            "smsResult": {
                "outcome": dispatch.outcome,
                "messageSid": dispatch.message_sid,
                "error": dispatch.error,
            },
            "serviceStatus": sms_sender.status(),
            "environment": settings.app_env,
            "timestamp": _timestamp(),
        },
    )
