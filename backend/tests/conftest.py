from collections.abc import Generator
from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from sports_api.core.metrics import reset_metrics
from sports_api.core.settings import Settings
from sports_api.db import models  # noqa: F401
from sports_api.db.base import Base
from sports_api.db.session import Database
from sports_api.main import create_app
from sports_api.services.sms import DISPATCH_SENT, SmsDispatch, SmsSender


class RecordingSmsSender(SmsSender):
    provider = "recording"

    def __init__(self, outcome: str = DISPATCH_SENT):
        self.outcome = outcome
        self.messages: list[tuple[str, str]] = []

    def send(self, to: str, body: str) -> SmsDispatch:
        self.messages.append((to, body))
        return SmsDispatch(outcome=self.outcome, message_sid="SM-test" if self.outcome == DISPATCH_SENT else None)

    def status(self) -> dict:
        return {"configured": True, "provider": self.provider, "fromNumber": "***0000"}


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture(autouse=True)
def _clean_metrics() -> Generator[None, None, None]:
    reset_metrics()
    yield
    reset_metrics()


@pytest.fixture()
def settings() -> Settings:
    return Settings(database_url="sqlite://", app_env="test", secret_key="test-secret")


@pytest.fixture()
def database() -> Generator[Database, None, None]:
    database = Database("sqlite://").open()
    Base.metadata.create_all(bind=database.engine)
    try:
        yield database
    finally:
        Base.metadata.drop_all(bind=database.engine)
        database.close()


@pytest.fixture()
def db_session(database: Database) -> Generator[Session, None, None]:
    session = database.session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def sms_sender() -> RecordingSmsSender:
    return RecordingSmsSender()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 1, 12, 0, 0))


@pytest.fixture()
def client(settings: Settings, database: Database, sms_sender: RecordingSmsSender) -> Generator[TestClient, None, None]:
    app = create_app(settings=settings, database=database, sms_sender=sms_sender)
    with TestClient(app) as test_client:
        yield test_client
