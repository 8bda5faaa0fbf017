import pytest

from sports_api.core.errors import NotAuthenticated
from sports_api.core.security import create_session_token, decode_session_token, generate_verification_code
from sports_api.core.settings import Settings
from sports_api.db.models.user import User


def test_generated_codes_are_six_digits_in_range():
    for _ in range(500):
        code = generate_verification_code()
        assert len(code) == 6
        assert code.isdigit()
        assert 100000 <= int(code) <= 999999


def test_session_token_carries_user_identity(settings):
    user = User(id=7, phone_number="+15551234567", token_version=2)
    payload = decode_session_token(create_session_token(user, settings), settings)
    assert payload["sub"] == "7"
    assert payload["phone"] == "+15551234567"
    assert payload["tv"] == 2


def test_session_token_signed_with_other_secret_is_rejected(settings):
    user = User(id=1, phone_number="+15551234567", token_version=0)
    token = create_session_token(user, Settings(database_url="sqlite://", secret_key="other"))
    with pytest.raises(NotAuthenticated):
        decode_session_token(token, settings)
