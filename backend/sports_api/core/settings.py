import os
from dataclasses import dataclass

from fastapi import Request

PRODUCTION_ENVS = {"production", "prod"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw else default


@dataclass(frozen=True)
class Settings:
    database_url: str
    app_env: str = "development"
    secret_key: str = "change-me-in-production"
    session_cookie_name: str = "sports-auth-token"
    session_expire_days: int = 7
    verification_code_ttl_seconds: int = 300
    verification_max_attempts: int = 3
    send_code_interval_seconds: int = 60
    twilio_account_sid: str | None = None
    twilio_auth_token: str | None = None
    twilio_phone_number: str | None = None
    twilio_status_callback_url: str | None = None

    @property
    def is_production(self) -> bool:
        return self.app_env.strip().lower() in PRODUCTION_ENVS

    @property
    def sms_configured(self) -> bool:
        return bool(self.twilio_account_sid and self.twilio_auth_token and self.twilio_phone_number)

    @classmethod
    def from_env(cls) -> "Settings":
        database_url = os.getenv("DATABASE_URL", "").strip()
        if not database_url:
            raise RuntimeError("DATABASE_URL is not set")

        app_env = os.getenv("APP_ENV", "development").strip().lower() or "development"
        secret_key = os.getenv("SECRET_KEY", "").strip()
        if not secret_key:
            if app_env in PRODUCTION_ENVS:
                raise RuntimeError("SECRET_KEY is not set")
            secret_key = "change-me-in-production"

        return cls(
            database_url=database_url,
            app_env=app_env,
            secret_key=secret_key,
            session_cookie_name=os.getenv("SESSION_COOKIE_NAME", "sports-auth-token"),
            session_expire_days=_env_int("SESSION_EXPIRE_DAYS", 7),
            verification_code_ttl_seconds=_env_int("VERIFICATION_CODE_TTL_SECONDS", 300),
            verification_max_attempts=_env_int("VERIFICATION_MAX_ATTEMPTS", 3),
            send_code_interval_seconds=_env_int("SEND_CODE_INTERVAL_SECONDS", 60),
            twilio_account_sid=os.getenv("TWILIO_ACCOUNT_SID") or None,
            twilio_auth_token=os.getenv("TWILIO_AUTH_TOKEN") or None,
            twilio_phone_number=os.getenv("TWILIO_PHONE_NUMBER") or None,
            twilio_status_callback_url=os.getenv("TWILIO_STATUS_CALLBACK_URL") or None,
        )


def get_settings(request: Request) -> Settings:
    return request.app.state.settings
