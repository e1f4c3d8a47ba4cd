from typing import Optional


class ServiceError(Exception):
    """Base class for service-layer errors rendered as JSON error envelopes.

    Every subclass fixes an HTTP status and may carry a symbolic ``code`` that
    clients branch on (for example ``TOKEN_EXPIRED`` vs ``SESSION_INVALIDATED``).
    """

    status_code: int = 400
    code: Optional[str] = None
    expose: bool = True

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        remaining_seconds: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        self.remaining_seconds = remaining_seconds

    def to_payload(self) -> dict:
        payload = {"error": self.message}
        if self.code:
            payload["code"] = self.code
        if self.remaining_seconds is not None:
            payload["remainingSeconds"] = self.remaining_seconds
        return payload


class ValidationError(ServiceError):
    """Client-fixable request problem (400)."""
    status_code = 400


class AuthenticationError(ServiceError):
    """Generic authentication failure (401)."""
    status_code = 401


class TokenExpiredError(AuthenticationError):
    code = "TOKEN_EXPIRED"


class SessionNotFoundError(AuthenticationError):
    code = "SESSION_NOT_FOUND"


class SessionInvalidatedError(AuthenticationError):
    code = "SESSION_INVALIDATED"


class ForbiddenError(ServiceError):
    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    status_code = 409


class GoneError(ServiceError):
    status_code = 410


class RateLimitedError(ServiceError):
    status_code = 429


class ServerError(ServiceError):
    """Unexpected failure; the message never reaches the client."""
    status_code = 500
    expose = False


class ServiceUnavailableError(ServiceError):
    """Upstream dependency (mail transport, news source) failed; safe to retry."""
    status_code = 503


class NewsSourceError(ServiceError):
    """The news source answered with an error; status mirrors the upstream mapping."""
    status_code = 502


# OTP ledger outcomes
class OtpNotFoundError(ValidationError):
    pass


class OtpMismatchError(ValidationError):
    pass


class OtpExpiredError(GoneError):
    pass


__all__ = [
    "ServiceError",
    "ValidationError",
    "AuthenticationError",
    "TokenExpiredError",
    "SessionNotFoundError",
    "SessionInvalidatedError",
    "ForbiddenError",
    "NotFoundError",
    "ConflictError",
    "GoneError",
    "RateLimitedError",
    "ServerError",
    "ServiceUnavailableError",
    "NewsSourceError",
    "OtpNotFoundError",
    "OtpMismatchError",
    "OtpExpiredError",
]
