from datetime import timedelta

import pytest
from sqlalchemy import false, func, select

from sports_api.core.errors import AlreadyUsed, DependencyFailure, InvalidOrExpired, RateLimited, TooManyAttempts
from sports_api.db.models.user import User
from sports_api.db.models.verification_code import VerificationCode
from sports_api.services.sms import DISPATCH_FAILED, DISPATCH_SENT
from sports_api.services.verification import CodeIssuer, CodeVerifier, VerificationStore

from conftest import RecordingSmsSender

PHONE = "+15551234567"


def _issuer(db_session, settings, clock, sms_sender=None, code="482913"):
    return CodeIssuer(db_session, settings, sms_sender or RecordingSmsSender(), clock=clock, code_factory=lambda: code)


def _verifier(db_session, settings, clock):
    return CodeVerifier(db_session, settings, clock=clock)


def _record(db_session, phone=PHONE) -> VerificationCode:
    return db_session.scalars(
        select(VerificationCode).where(VerificationCode.phone_number == phone).order_by(VerificationCode.id.desc())
    ).first()


def test_issue_creates_pending_record_and_sends_sms(db_session, settings, clock):
    sender = RecordingSmsSender()
    result = _issuer(db_session, settings, clock, sender).issue("(555) 123-4567", ip_address="10.0.0.1")

    assert result.phone_number == PHONE
    assert result.code == "482913"
    assert result.dispatch == DISPATCH_SENT

    record = _record(db_session)
    assert record.code == "482913"
    assert record.attempts == 0
    assert record.max_attempts == 3
    assert record.verified_at is None
    assert record.ip_address == "10.0.0.1"
    assert record.created_at == clock.now
    assert record.expires_at - record.created_at == timedelta(seconds=300)

    assert sender.messages == [(PHONE, "Your verification code is: 482913. It expires in 5 minutes.")]


def test_second_issue_within_interval_is_rate_limited(db_session, settings, clock):
    _issuer(db_session, settings, clock, code="111111").issue(PHONE)

    clock.now += timedelta(seconds=30)
    with pytest.raises(RateLimited):
        _issuer(db_session, settings, clock, code="222222").issue(PHONE)

    count = db_session.scalar(select(func.count(VerificationCode.id)))
    assert count == 1


def test_issue_is_allowed_again_after_interval(db_session, settings, clock):
    _issuer(db_session, settings, clock, code="111111").issue(PHONE)

    clock.now += timedelta(seconds=61)
    result = _issuer(db_session, settings, clock, code="222222").issue(PHONE)
    assert result.code == "222222"


def test_rate_limit_is_per_phone_number(db_session, settings, clock):
    _issuer(db_session, settings, clock, code="111111").issue(PHONE)
    result = _issuer(db_session, settings, clock, code="111111").issue("+15559876543")
    assert result.phone_number == "+15559876543"


def test_dispatch_failure_keeps_record_usable(db_session, settings, clock):
    sender = RecordingSmsSender(outcome=DISPATCH_FAILED)
    result = _issuer(db_session, settings, clock, sender).issue(PHONE)
    assert result.dispatch == DISPATCH_FAILED

    verified = _verifier(db_session, settings, clock).verify(PHONE, result.code)
    assert verified.phone_number == PHONE


def test_correct_code_verifies_exactly_once(db_session, settings, clock):
    _issuer(db_session, settings, clock).issue(PHONE)
    verifier = _verifier(db_session, settings, clock)

    verified = verifier.verify(PHONE, "482913")
    assert verified.phone_number == PHONE

    record = _record(db_session)
    assert record.verified_at == clock.now
    assert record.attempts == 1

    with pytest.raises(AlreadyUsed):
        verifier.verify(PHONE, "482913")


def test_expired_code_is_rejected(db_session, settings, clock):
    _issuer(db_session, settings, clock).issue(PHONE)

    clock.now += timedelta(seconds=300)
    with pytest.raises(InvalidOrExpired):
        _verifier(db_session, settings, clock).verify(PHONE, "482913")

    assert _record(db_session).verified_at is None


def test_unknown_phone_is_invalid(db_session, settings, clock):
    with pytest.raises(InvalidOrExpired):
        _verifier(db_session, settings, clock).verify(PHONE, "482913")


def test_wrong_guesses_exhaust_the_record(db_session, settings, clock):
    _issuer(db_session, settings, clock).issue("+15551234567")
    verifier = _verifier(db_session, settings, clock)

    with pytest.raises(InvalidOrExpired):
        verifier.verify(PHONE, "000001")
    with pytest.raises(InvalidOrExpired):
        verifier.verify(PHONE, "000002")
    with pytest.raises(TooManyAttempts):
        verifier.verify(PHONE, "000003")
    assert _record(db_session).attempts == 3

    with pytest.raises(TooManyAttempts):
        verifier.verify(PHONE, "482913")

    record = _record(db_session)
    assert record.attempts == 3
    assert record.verified_at is None


def test_exhausted_record_by_direct_attempt_count(db_session, settings, clock):
    _issuer(db_session, settings, clock).issue(PHONE)
    record = _record(db_session)
    record.attempts = record.max_attempts
    db_session.commit()

    with pytest.raises(TooManyAttempts):
        _verifier(db_session, settings, clock).verify(PHONE, "482913")


def test_first_verification_creates_user(db_session, settings, clock):
    _issuer(db_session, settings, clock).issue("+15559876543")

    verified = _verifier(db_session, settings, clock).verify("+15559876543", "482913")
    assert verified.created is True
    assert verified.onboarding_completed is False

    user = db_session.scalars(select(User).where(User.phone_number == "+15559876543")).one()
    assert user.id == verified.id
    assert user.phone_verified is True
    assert user.onboarding_completed is False


def test_reverification_updates_existing_user(db_session, settings, clock):
    _issuer(db_session, settings, clock, code="111111").issue(PHONE)
    first = _verifier(db_session, settings, clock).verify(PHONE, "111111")

    user = db_session.get(User, first.id)
    user.onboarding_completed = True
    db_session.commit()

    clock.now += timedelta(minutes=10)
    _issuer(db_session, settings, clock, code="222222").issue(PHONE)
    second = _verifier(db_session, settings, clock).verify(PHONE, "222222")

    assert second.id == first.id
    assert second.created is False
    assert second.onboarding_completed is True

    db_session.expire_all()
    user = db_session.get(User, first.id)
    assert user.last_sign_in == clock.now
    assert user.phone_verified is True
    assert db_session.scalar(select(func.count(User.id))) == 1


def test_mark_verified_only_succeeds_once(db_session, settings, clock):
    _issuer(db_session, settings, clock).issue(PHONE)
    store = VerificationStore(db_session)
    record = _record(db_session)

    assert store.mark_verified(record, clock.now) is True
    assert store.mark_verified(record, clock.now) is False
    assert record.attempts == 1


def _lose_mark_verified_race(monkeypatch, apply_winner):
    def _mark_verified(self, record, now):
        apply_winner(record, now)
        self.db.commit()
        return False

    monkeypatch.setattr(VerificationStore, "mark_verified", _mark_verified)


def test_concurrent_verify_of_same_code_reports_already_used(db_session, settings, clock, monkeypatch):
    _issuer(db_session, settings, clock).issue(PHONE)

    def _winner(record, now):
        record.verified_at = now
        record.attempts += 1

    _lose_mark_verified_race(monkeypatch, _winner)
    with pytest.raises(AlreadyUsed):
        _verifier(db_session, settings, clock).verify(PHONE, "482913")
    assert db_session.scalar(select(func.count(User.id))) == 0


def test_concurrent_guesses_exhausting_record_report_too_many_attempts(db_session, settings, clock, monkeypatch):
    _issuer(db_session, settings, clock).issue(PHONE)

    def _winner(record, now):
        record.attempts = record.max_attempts

    _lose_mark_verified_race(monkeypatch, _winner)
    with pytest.raises(TooManyAttempts):
        _verifier(db_session, settings, clock).verify(PHONE, "482913")

    record = _record(db_session)
    assert record.verified_at is None
    assert db_session.scalar(select(func.count(User.id))) == 0


def test_user_created_concurrently_is_reused(db_session, settings, clock, monkeypatch):
    existing = User(
        phone_number=PHONE,
        phone_verified=True,
        onboarding_completed=True,
        token_version=0,
        created_at=clock.now,
        updated_at=clock.now,
    )
    db_session.add(existing)
    db_session.commit()
    _issuer(db_session, settings, clock).issue(PHONE)

    # The first user lookup misses, as if the other request had not committed yet.
    original_query = db_session.query
    missed = []

    def _query(*entities, **kwargs):
        query = original_query(*entities, **kwargs)
        if entities == (User,) and not missed:
            missed.append(True)
            return query.filter(false())
        return query

    monkeypatch.setattr(db_session, "query", _query)
    verified = _verifier(db_session, settings, clock).verify(PHONE, "482913")

    assert missed == [True]
    assert verified.id == existing.id
    assert verified.created is False
    assert verified.onboarding_completed is True
    assert db_session.scalar(select(func.count(User.id))) == 1
    assert _record(db_session).verified_at == clock.now


def test_issue_gives_up_when_every_generated_code_collides(db_session, settings, clock):
    _issuer(db_session, settings, clock, code="482913").issue(PHONE)
    clock.now += timedelta(seconds=61)

    sender = RecordingSmsSender()
    with pytest.raises(DependencyFailure):
        _issuer(db_session, settings, clock, sender, code="482913").issue(PHONE)

    assert sender.messages == []
    assert db_session.scalar(select(func.count(VerificationCode.id))) == 1
