"""
Phone verification code lifecycle.

A code record is usable while it is unverified, unexpired and below its
attempt cap. ``CodeIssuer`` creates records and hands the code to the SMS
sender; ``CodeVerifier`` consumes them and finds or creates the user.
"""
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from sports_api.core.errors import AlreadyUsed, DependencyFailure, InvalidOrExpired, TooManyAttempts
from sports_api.core.phone import mask_phone, normalize_phone
from sports_api.core.rate_limit import check_send_rate_limit
from sports_api.core.security import generate_verification_code
from sports_api.core.settings import Settings
from sports_api.db.models.user import User
from sports_api.db.models.verification_code import VerificationCode
from sports_api.services.sms import DISPATCH_SENT, SmsSender, verification_message

logger = logging.getLogger(__name__)

CODE_GENERATION_RETRIES = 5


def utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class VerificationStore:
    def __init__(self, db: Session):
        self.db = db

    def code_exists(self, phone_number: str, code: str) -> bool:
        return (
            self.db.query(VerificationCode.id)
            .filter(VerificationCode.phone_number == phone_number, VerificationCode.code == code)
            .first()
            is not None
        )

    def create(
        self,
        *,
        phone_number: str,
        code: str,
        created_at: datetime,
        expires_at: datetime,
        max_attempts: int,
        ip_address: str | None = None,
    ) -> VerificationCode:
        record = VerificationCode(
            phone_number=phone_number,
            code=code,
            created_at=created_at,
            expires_at=expires_at,
            attempts=0,
            max_attempts=max_attempts,
            verified_at=None,
            ip_address=ip_address,
        )
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return record

    def find_match(self, phone_number: str, code: str, now: datetime) -> VerificationCode | None:
        return (
            self.db.query(VerificationCode)
            .filter(
                VerificationCode.phone_number == phone_number,
                VerificationCode.code == code,
                VerificationCode.expires_at > now,
            )
            .order_by(VerificationCode.created_at.asc(), VerificationCode.id.asc())
            .first()
        )

    def find_latest_pending(self, phone_number: str, now: datetime) -> VerificationCode | None:
        return (
            self.db.query(VerificationCode)
            .filter(
                VerificationCode.phone_number == phone_number,
                VerificationCode.verified_at.is_(None),
                VerificationCode.expires_at > now,
            )
            .order_by(VerificationCode.created_at.desc(), VerificationCode.id.desc())
            .first()
        )

    def _pending(self, record: VerificationCode):
        return self.db.query(VerificationCode).filter(
            VerificationCode.id == record.id,
            VerificationCode.verified_at.is_(None),
            VerificationCode.attempts < VerificationCode.max_attempts,
        )

    def mark_verified(self, record: VerificationCode, now: datetime) -> bool:
        """Consume the record; False when a concurrent call got there first."""
        updated = self._pending(record).update(
            {VerificationCode.verified_at: now, VerificationCode.attempts: VerificationCode.attempts + 1},
            synchronize_session=False,
        )
        self.db.commit()
        self.db.refresh(record)
        return updated == 1

    def record_failed_attempt(self, record: VerificationCode) -> int:
        self._pending(record).update(
            {VerificationCode.attempts: VerificationCode.attempts + 1},
            synchronize_session=False,
        )
        self.db.commit()
        self.db.refresh(record)
        return record.attempts


@dataclass(frozen=True)
class IssueResult:
    phone_number: str
    code: str
    expires_at: datetime
    dispatch: str


@dataclass(frozen=True)
class VerifiedUser:
    id: int
    phone_number: str
    onboarding_completed: bool
    created: bool = False

    def to_payload(self) -> dict:
        return {
            "id": self.id,
            "phoneNumber": self.phone_number,
            "onboardingCompleted": self.onboarding_completed,
        }


class CodeIssuer:
    def __init__(
        self,
        db: Session,
        settings: Settings,
        sms_sender: SmsSender,
        *,
        clock: Callable[[], datetime] = utc_now_naive,
        code_factory: Callable[[], str] = generate_verification_code,
    ):
        self.db = db
        self.settings = settings
        self.sms_sender = sms_sender
        self.store = VerificationStore(db)
        self.clock = clock
        self.code_factory = code_factory

    def _fresh_code(self, phone_number: str) -> str:
        for _ in range(CODE_GENERATION_RETRIES):
            code = self.code_factory()
            if not self.store.code_exists(phone_number, code):
                return code
        raise DependencyFailure("Could not allocate a verification code")

    def issue(self, phone_number: str, ip_address: str | None = None) -> IssueResult:
        phone = normalize_phone(phone_number)
        now = self.clock()
        check_send_rate_limit(self.db, phone, self.settings.send_code_interval_seconds, now=now)

        expires_at = now + timedelta(seconds=self.settings.verification_code_ttl_seconds)
        code = self._fresh_code(phone)
        try:
            self.store.create(
                phone_number=phone,
                code=code,
                created_at=now,
                expires_at=expires_at,
                max_attempts=self.settings.verification_max_attempts,
                ip_address=ip_address,
            )
        except IntegrityError as exc:
            self.db.rollback()
            raise DependencyFailure("Could not store verification code") from exc

        # The record stays usable even when delivery fails.
        dispatch = self.sms_sender.send(phone, verification_message(code, self.settings.verification_code_ttl_seconds))
        if dispatch.outcome != DISPATCH_SENT:
            logger.info("verification_code_dispatch phone=%s outcome=%s", mask_phone(phone), dispatch.outcome)
        return IssueResult(phone_number=phone, code=code, expires_at=expires_at, dispatch=dispatch.outcome)


class CodeVerifier:
    def __init__(self, db: Session, settings: Settings, *, clock: Callable[[], datetime] = utc_now_naive):
        self.db = db
        self.settings = settings
        self.store = VerificationStore(db)
        self.clock = clock

    def verify(self, phone_number: str, code: str) -> VerifiedUser:
        phone = normalize_phone(phone_number)
        now = self.clock()

        record = self.store.find_match(phone, code.strip(), now)
        if record is None:
            self._count_wrong_guess(phone, now)
            raise InvalidOrExpired()
        if record.verified_at is not None:
            raise AlreadyUsed()
        if record.attempts >= record.max_attempts:
            raise TooManyAttempts()
        if not self.store.mark_verified(record, now):
            # Lost a race with a concurrent verify of the same record.
            raise AlreadyUsed() if record.verified_at is not None else TooManyAttempts()

        return self._find_or_create_user(phone, now)

    def _count_wrong_guess(self, phone: str, now: datetime) -> None:
        pending = self.store.find_latest_pending(phone, now)
        if pending is None:
            return
        if not pending.is_usable(now):
            raise TooManyAttempts()
        if self.store.record_failed_attempt(pending) >= pending.max_attempts:
            raise TooManyAttempts()

    def _find_or_create_user(self, phone: str, now: datetime) -> VerifiedUser:
        user = self.db.query(User).filter(User.phone_number == phone).first()
        if user is None:
            user = User(
                phone_number=phone,
                phone_verified=True,
                onboarding_completed=False,
                last_sign_in=now,
                token_version=0,
                created_at=now,
                updated_at=now,
            )
            self.db.add(user)
            try:
                self.db.commit()
            except IntegrityError:
                # A concurrent verify created the row between lookup and insert.
                self.db.rollback()
                return self._find_or_create_user(phone, now)
            self.db.refresh(user)
            logger.info("user_created id=%s phone=%s", user.id, mask_phone(phone))
            return VerifiedUser(user.id, phone, bool(user.onboarding_completed), created=True)

        user.phone_verified = True
        user.last_sign_in = now
        user.updated_at = now
        self.db.commit()
        return VerifiedUser(user.id, phone, bool(user.onboarding_completed))
