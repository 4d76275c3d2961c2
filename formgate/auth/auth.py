"""FastAPI authentication dependencies for the formgate API.

This module adapts the framework-independent ``RequestAuthorizer`` to FastAPI.
Endpoints declare the permission they need with ``require_permission``; the
dependency reads the ``X-API-Key`` header, collects the request attributes
needed for signature verification, asks the authorizer for a decision and
either returns the admitted key record or raises the matching ``ApiError``.

Decision to HTTP mapping:
    - UNAUTHORIZED  -> 401 with ``WWW-Authenticate: ApiKey``
    - FORBIDDEN     -> 403
    - IP_REJECTED   -> 403
    - RATE_LIMITED  -> 429 with X-RateLimit-* headers
    - ADMITTED      -> record returned, quota stored on ``request.state``

Dependencies:
    - fastapi: For the APIKeyHeader security scheme and dependency injection
    - structlog: For authentication logging

Used by:
    - formgate.service.main: Every protected endpoint
"""

from typing import Optional

import structlog
from fastapi import Request, Security
from fastapi.security import APIKeyHeader

from ..errors import (
    ApiError,
    ForbiddenError,
    IpRejectedError,
    RateLimitedError,
    UnauthorizedError,
)
from .authorizer import RequestAuthorizer
from .models import ApiKeyRecord, AuthDecision, AuthOutcome, SignedRequest

logger = structlog.get_logger()

# API Key header scheme for FastAPI Security
# auto_error=False allows manual error handling with the response envelope
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

_ERRORS: dict[AuthOutcome, type[ApiError]] = {
    AuthOutcome.UNAUTHORIZED: UnauthorizedError,
    AuthOutcome.FORBIDDEN: ForbiddenError,
    AuthOutcome.IP_REJECTED: IpRejectedError,
    AuthOutcome.RATE_LIMITED: RateLimitedError,
}


def get_authorizer(request: Request) -> RequestAuthorizer:
    """Fetch the authorizer from the service container on the app state."""
    return request.app.state.container.get("authorizer")


def client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


async def signed_request_from(request: Request) -> SignedRequest:
    """Collect the request attributes covered by the HMAC signature."""
    path = request.url.path
    if request.url.query:
        path = f"{path}?{request.url.query}"
    return SignedRequest(
        method=request.method,
        path=path,
        body=await request.body(),
        timestamp=request.headers.get("X-Timestamp"),
        signature=request.headers.get("X-Signature"),
    )


def decision_error(decision: AuthDecision) -> ApiError:
    """Convert a rejected decision into the ApiError the endpoint raises."""
    error_cls = _ERRORS[decision.outcome]
    headers: dict[str, str] = {}
    if decision.outcome is AuthOutcome.UNAUTHORIZED:
        headers["WWW-Authenticate"] = "ApiKey"
    if decision.rate_limit is not None:
        headers.update(decision.rate_limit.as_headers())
    return error_cls(
        decision.message or "Request not authorized",
        code=decision.error_code,
        headers=headers,
        detail=decision.detail,
    )


def require_permission(permission: Optional[str]):
    """Build a dependency admitting requests whose key holds ``permission``.

    Pass ``None`` to accept any valid key regardless of permissions.
    """

    async def dependency(
        request: Request,
        api_key: Optional[str] = Security(api_key_header),
    ) -> ApiKeyRecord:
        authorizer = get_authorizer(request)
        decision = authorizer.authorize(
            api_key,
            permission,
            client_ip(request),
            request=await signed_request_from(request),
        )
        request.state.auth = decision

        if not decision.admitted:
            raise decision_error(decision)

        logger.debug(
            "API key admitted",
            key_prefix=decision.record.key_prefix,
            permission=permission,
        )
        return decision.record

    return dependency
