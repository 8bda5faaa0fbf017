from fastapi import status


class ApiError(Exception):
    """Failure that is reported to the client as ``{"success": false, "error": ...}``."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "error"
    message = "Request failed"

    def __init__(self, message: str | None = None, *, details=None):
        self.message = message or self.message
        self.details = details
        super().__init__(self.message)


class ValidationError(ApiError):
    code = "validation_error"
    message = "Invalid request"


class RateLimited(ApiError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "rate_limited"
    message = "Please wait before requesting another code"


class InvalidOrExpired(ApiError):
    code = "invalid_or_expired"
    message = "Invalid or expired code"


class AlreadyUsed(ApiError):
    code = "already_used"
    message = "Code has already been used"


class TooManyAttempts(ApiError):
    code = "too_many_attempts"
    message = "Too many attempts. Please request a new code"


class DependencyFailure(ApiError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "dependency_failure"
    message = "A required service is unavailable"


class NotAuthenticated(ApiError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "not_authenticated"
    message = "Authentication required"


class Forbidden(ApiError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"
    message = "Forbidden"
