import random
from datetime import datetime, timedelta, timezone

from fastapi import Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from sports_api.core.errors import NotAuthenticated
from sports_api.core.settings import Settings, get_settings
from sports_api.db.models.user import User
from sports_api.db.session import get_db

ALGORITHM = "HS256"
VERIFICATION_CODE_MIN = 100000
VERIFICATION_CODE_MAX = 999999

bearer_scheme = HTTPBearer(auto_error=False)


def generate_verification_code() -> str:
    # Not a CSPRNG; codes are short-lived, rate limited and attempt capped.
    return str(random.randint(VERIFICATION_CODE_MIN, VERIFICATION_CODE_MAX))


def create_session_token(user: User, settings: Settings) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user.id),
        "phone": user.phone_number,
        "tv": int(user.token_version or 0),
        "iat": now,
        "exp": now + timedelta(days=settings.session_expire_days),
    }
    return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM)


def decode_session_token(token: str, settings: Settings) -> dict:
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError as exc:
        raise NotAuthenticated("Invalid session") from exc


def set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=settings.session_expire_days * 24 * 60 * 60,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path="/",
    )


def clear_session_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(key=settings.session_cookie_name, path="/")


def _extract_token(request: Request, credentials: HTTPAuthorizationCredentials | None, settings: Settings) -> str | None:
    token = request.cookies.get(settings.session_cookie_name)
    if token:
        return token
    if credentials and credentials.scheme.lower() == "bearer":
        return credentials.credentials
    return None


def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db),
) -> User:
    token = _extract_token(request, credentials, settings)
    if not token:
        raise NotAuthenticated("Not authenticated")

    payload = decode_session_token(token, settings)
    subject = payload.get("sub")
    token_version = payload.get("tv")
    if not subject or not str(subject).isdigit():
        raise NotAuthenticated("Invalid session")

    user = db.get(User, int(subject))
    if not user:
        raise NotAuthenticated("Invalid session")
    if token_version is None or int(token_version) != int(user.token_version or 0):
        raise NotAuthenticated("Session has been revoked")
    return user
