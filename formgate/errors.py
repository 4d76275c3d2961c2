"""Exception taxonomy for request-level failures.

Every failure a request can end in is represented by an ``ApiError``
subclass carrying its HTTP status, a stable machine-readable ``code`` and a
human-readable message. The service layer raises these and a single FastAPI
exception handler renders them through the response envelope, so endpoints
never build error payloads by hand.

Taxonomy:
    - UnauthorizedError (401): missing/unknown key or failed request signature
    - ForbiddenError (403): known key lacking the required permission
    - IpRejectedError (403): known key, client IP outside the whitelist
    - RateLimitedError (429): per-key quota exhausted
    - NotFoundError (404): requested form or submission does not exist
    - BadRequestError (400): invalid caller input (e.g. unknown form handle filter)

All outcomes are terminal for the current request; nothing here retries.
"""

from typing import Optional


class ApiError(Exception):
    """Base class for errors that map directly onto an HTTP error response."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        headers: Optional[dict[str, str]] = None,
        detail: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.headers = headers or {}
        self.detail = detail


class UnauthorizedError(ApiError):
    """Raised when a request presents no valid credentials."""

    status_code = 401
    code = "UNAUTHORIZED"


class ForbiddenError(ApiError):
    """Raised when a valid key lacks the permission an endpoint requires."""

    status_code = 403
    code = "FORBIDDEN"


class IpRejectedError(ApiError):
    """Raised when the client IP is not on the key's whitelist."""

    status_code = 403
    code = "IP_NOT_ALLOWED"


class RateLimitedError(ApiError):
    """Raised when the key has used up its quota for the current window."""

    status_code = 429
    code = "RATE_LIMITED"


class NotFoundError(ApiError):
    status_code = 404
    code = "NOT_FOUND"


class BadRequestError(ApiError):
    status_code = 400
    code = "BAD_REQUEST"
