from datetime import datetime

from sqlalchemy import DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from sports_api.core.phone import PHONE_NUMBER_MAX_LENGTH
from sports_api.db.base import Base


class VerificationCode(Base):
    __tablename__ = "sms_verification_codes"
    __table_args__ = (UniqueConstraint("phone_number", "code", name="uq_sms_verification_codes_phone_code"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    phone_number: Mapped[str] = mapped_column(String(PHONE_NUMBER_MAX_LENGTH), index=True)
    code: Mapped[str] = mapped_column(String(6))
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, default=3)
    expires_at: Mapped[datetime] = mapped_column(DateTime, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, index=True)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)

    def is_usable(self, now: datetime) -> bool:
        return self.verified_at is None and now < self.expires_at and self.attempts < self.max_attempts
