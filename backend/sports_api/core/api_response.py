from fastapi import Request


def get_request_id(request: Request) -> str:
    rid = getattr(request.state, "request_id", None)
    return str(rid) if rid else "-"


def error_response_payload(
    request: Request,
    *,
    code: str,
    message: str,
    details=None,
) -> dict:
    payload = {
        "success": False,
        "error": message,
        "code": code,
        "request_id": get_request_id(request),
    }
    if details is not None:
        payload["details"] = details
    return payload


def success_response_payload(request: Request, **fields) -> dict:
    return {"success": True, **fields, "request_id": get_request_id(request)}
