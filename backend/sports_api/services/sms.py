"""
SMS delivery for verification codes.

Twilio is used when credentials are configured. Without them the logging
sender stands in: messages are written to the log and reported as simulated.
"""
import logging
from dataclasses import dataclass

from fastapi import Request
from twilio.base.exceptions import TwilioException
from twilio.rest import Client

from sports_api.core.phone import mask_phone
from sports_api.core.settings import Settings

logger = logging.getLogger(__name__)

DISPATCH_SENT = "sent"
DISPATCH_SIMULATED = "simulated"
DISPATCH_FAILED = "dispatch_failed"


@dataclass(frozen=True)
class SmsDispatch:
    outcome: str
    message_sid: str | None = None
    error: str | None = None


def verification_message(code: str, ttl_seconds: int) -> str:
    minutes = max(1, ttl_seconds // 60)
    return f"Your verification code is: {code}. It expires in {minutes} minutes."


class SmsSender:
    provider = "none"

    def send(self, to: str, body: str) -> SmsDispatch:
        raise NotImplementedError

    def status(self) -> dict:
        return {"configured": False, "provider": self.provider, "fromNumber": None}


class LoggingSmsSender(SmsSender):
    provider = "log"

    def send(self, to: str, body: str) -> SmsDispatch:
        logger.info("sms_simulated to=%s body=%r", mask_phone(to), body)
        return SmsDispatch(outcome=DISPATCH_SIMULATED)


class TwilioSmsSender(SmsSender):
    provider = "twilio"

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        *,
        status_callback_url: str | None = None,
        client: Client | None = None,
    ):
        self.from_number = from_number
        self.status_callback_url = status_callback_url
        self.client = client or Client(account_sid, auth_token)

    def send(self, to: str, body: str) -> SmsDispatch:
        kwargs = {"body": body, "from_": self.from_number, "to": to}
        if self.status_callback_url:
            kwargs["status_callback"] = self.status_callback_url
        try:
            message = self.client.messages.create(**kwargs)
        except (TwilioException, OSError) as exc:
            logger.error("sms_dispatch_failed provider=twilio to=%s error=%s", mask_phone(to), exc)
            return SmsDispatch(outcome=DISPATCH_FAILED, error=str(exc))
        logger.info("sms_sent provider=twilio to=%s sid=%s", mask_phone(to), message.sid)
        return SmsDispatch(outcome=DISPATCH_SENT, message_sid=message.sid)

    def status(self) -> dict:
        return {"configured": True, "provider": self.provider, "fromNumber": mask_phone(self.from_number)}


def build_sms_sender(settings: Settings) -> SmsSender:
    if not settings.sms_configured:
        logger.warning("Twilio credentials not configured, SMS messages will only be logged")
        return LoggingSmsSender()
    return TwilioSmsSender(
        settings.twilio_account_sid,
        settings.twilio_auth_token,
        settings.twilio_phone_number,
        status_callback_url=settings.twilio_status_callback_url,
    )


def get_sms_sender(request: Request) -> SmsSender:
    return request.app.state.sms_sender
