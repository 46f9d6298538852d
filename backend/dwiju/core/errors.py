"""Application error taxonomy. Every error carries a stable machine-readable code."""

from datetime import datetime
from typing import Any


class AppError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}
        self.headers = headers or {}


class InvalidInputError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"


class UnauthorizedError(AppError):
    status_code = 401
    code = "INVALID_TOKEN"


class ForbiddenError(AppError):
    status_code = 403
    code = "INSUFFICIENT_ROLE"


class DuplicateKeyError(AppError):
    status_code = 409
    code = "DUPLICATE_ERROR"

    def __init__(self, field: str, message: str | None = None):
        super().__init__(message or f"Duplicate value for {field}", details={"field": field})
        self.field = field


class InternalError(AppError):
    pass


class RateLimitExceededError(AppError):
    status_code = 429
    code = "RATE_LIMIT_EXCEEDED"

    def __init__(self, retry_after: int, limit: int, remaining: int, reset_at: datetime):
        super().__init__(
            "Too many requests",
            details={"retryAfter": retry_after, "limit": limit, "remaining": remaining},
            headers={
                "Retry-After": str(retry_after),
                "X-RateLimit-Limit": str(limit),
                "X-RateLimit-Remaining": str(remaining),
                "X-RateLimit-Reset": reset_at.isoformat(),
            },
        )
        self.retry_after = retry_after


# --- Text-generation provider failures ---


class ProviderError(AppError):
    status_code = 502
    code = "AI_PROVIDER_ERROR"


class ProviderAuthError(ProviderError):
    status_code = 500
    code = "AI_AUTH_ERROR"


class ProviderRateLimitedError(ProviderError):
    status_code = 429
    code = "AI_RATE_LIMIT"

    def __init__(self, message: str, retry_after: int = 60, **kwargs: Any):
        super().__init__(message, headers={"Retry-After": str(retry_after)}, **kwargs)
        self.retry_after = retry_after
        self.details.setdefault("retryAfter", retry_after)


class ProviderUnavailableError(ProviderError):
    status_code = 503
    code = "AI_SERVICE_ERROR"


class ProviderTimeoutError(ProviderError):
    status_code = 504
    code = "TIMEOUT"
