import re

_NON_DIGITS_RE = re.compile(r"\D")

PHONE_INPUT_MAX_LENGTH = 32
# Widest normalized form: "+1" prepended to an all-digit input.
PHONE_NUMBER_MAX_LENGTH = PHONE_INPUT_MAX_LENGTH + 2


def normalize_phone(raw: str) -> str:
    """Canonicalize a user supplied phone number to E.164.

    US numbers (10 digits, or 11 digits with a leading ``1``) are recognised.
    Anything else that was typed with a leading ``+`` is passed through as-is;
    the rest falls back to ``+1`` + digits, which may not be a valid number.
    """
    digits = _NON_DIGITS_RE.sub("", raw)

    if len(digits) == 10:
        return f"+1{digits}"
    if len(digits) == 11 and digits.startswith("1"):
        return f"+{digits}"
    if raw.startswith("+"):
        return raw
    return f"+1{digits}"


def mask_phone(phone: str | None) -> str:
    if not phone:
        return "-"
    digits = _NON_DIGITS_RE.sub("", phone)
    if len(digits) <= 4:
        return "***"
    return f"***{digits[-4:]}"
