import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from sports_api.core.api_response import success_response_payload
from sports_api.core.errors import ApiError, NotAuthenticated
from sports_api.core.metrics import increment_counter
from sports_api.core.observability import client_ip, log_business_event
from sports_api.core.phone import mask_phone
from sports_api.core.security import (
    bearer_scheme,
    clear_session_cookie,
    create_session_token,
    get_current_user,
    set_session_cookie,
)
from sports_api.core.settings import Settings, get_settings
from sports_api.db.models.user import User
from sports_api.db.session import get_db
from sports_api.schemas.auth import SendCodeIn, UserOut, VerifyCodeIn
from sports_api.services.sms import DISPATCH_FAILED, SmsSender, get_sms_sender
from sports_api.services.verification import CodeIssuer, CodeVerifier

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)


@router.post("/phone/send-code")
def send_code(
    payload: SendCodeIn,
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    sms_sender: SmsSender = Depends(get_sms_sender),
):
    issuer = CodeIssuer(db, settings, sms_sender)
    try:
        result = issuer.issue(payload.phone_number, ip_address=client_ip(request) or "unknown")
    except ApiError as exc:
        increment_counter("phone_send_total", result=exc.code)
        log_business_event(logger, request, event="auth.phone.send_code", result=exc.code, phone=payload.phone_number)
        raise

    increment_counter("phone_send_total", result=result.dispatch)
    log_business_event(
        logger,
        request,
        event="auth.phone.send_code",
        result=result.dispatch,
        phone=result.phone_number,
        level=logging.WARNING if result.dispatch == DISPATCH_FAILED else logging.INFO,
    )
    if not settings.is_production:
        logger.info("dev_verification_code phone=%s code=%s", mask_phone(result.phone_number), result.code)
        return success_response_payload(request, message="Verification code sent", code=result.code)
    return success_response_payload(request, message="Verification code sent")


@router.post("/phone/verify-code")
def verify_code(
    payload: VerifyCodeIn,
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    verifier = CodeVerifier(db, settings)
    try:
        verified = verifier.verify(payload.phone_number, payload.code)
    except ApiError as exc:
        increment_counter("phone_verify_total", result=exc.code)
        log_business_event(logger, request, event="auth.phone.verify_code", result=exc.code, phone=payload.phone_number)
        raise

    user = db.get(User, verified.id)
    if user is None:
        raise NotAuthenticated("User not found")

    increment_counter("phone_verify_total", result="success")
    log_business_event(
        logger,
        request,
        event="auth.phone.verify_code",
        result="success",
        phone=verified.phone_number,
        user_id=verified.id,
        created=verified.created,
    )
    response = JSONResponse(
        content=success_response_payload(
            request,
            message="Phone number verified successfully",
            user=verified.to_payload(),
        )
    )
    set_session_cookie(response, create_session_token(user, settings), settings)
    return response


@router.get("/me")
def me(request: Request, current_user: User = Depends(get_current_user)):
    return success_response_payload(
        request,
        data=UserOut.model_validate(current_user).model_dump(by_alias=True),
    )


@router.post("/signout")
def signout(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    try:
        user = get_current_user(request, credentials, settings, db)
    except NotAuthenticated:
        user = None
    if user is not None:
        # Invalidates every token issued to this user so far.
        user.token_version = int(user.token_version or 0) + 1
        db.commit()
        log_business_event(logger, request, event="auth.signout", user_id=user.id)

    response = JSONResponse(content=success_response_payload(request, message="Signed out successfully"))
    clear_session_cookie(response, settings)
    return response
