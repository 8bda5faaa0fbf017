import logging

from fastapi import Request

from sports_api.core.api_response import get_request_id
from sports_api.core.phone import mask_phone


def client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded:
        return forwarded.split(",")[0].strip()[:64]
    if request.client and request.client.host:
        return request.client.host[:64]
    return None


def log_business_event(
    logger: logging.Logger,
    request: Request,
    *,
    event: str,
    level: int = logging.INFO,
    phone: str | None = None,
    **fields,
) -> None:
    request_id = get_request_id(request)
    chunks = [f"event={event}", f"request_id={request_id}"]
    if phone is not None:
        chunks.append(f"phone={mask_phone(phone)}")
    for key, value in fields.items():
        chunks.append(f"{key}={value}")
    logger.log(level, "business_event %s", " ".join(chunks))
