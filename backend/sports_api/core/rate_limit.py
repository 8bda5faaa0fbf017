from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from sports_api.core.errors import RateLimited
from sports_api.db.models.verification_code import VerificationCode


def _utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def recent_code_count(db: Session, phone_number: str, window_seconds: int, now: datetime | None = None) -> int:
    since = (now or _utc_now()) - timedelta(seconds=window_seconds)
    return (
        db.query(VerificationCode)
        .filter(VerificationCode.phone_number == phone_number, VerificationCode.created_at > since)
        .count()
    )


def check_send_rate_limit(db: Session, phone_number: str, window_seconds: int = 60, now: datetime | None = None) -> None:
    """Deny a send when this phone already got a code inside the window.

    The check reads the verification codes table and takes no lock, so two
    concurrent sends for one number can both pass.
    """
    if recent_code_count(db, phone_number, window_seconds, now=now) > 0:
        raise RateLimited()
