"""Request admission decisions combining every API key policy.

The authorizer is the single policy point for inbound requests. It composes
the key registry, permission check, IP whitelist, optional HMAC signature and
the per-key rate limiter into one ``AuthDecision``.

Decision Order (short-circuit, first failure wins):
    1. Resolve key via KeyRegistry       -> UNAUTHORIZED if missing/unknown
    2. Required permission in record     -> FORBIDDEN if absent
    3. Client IP against ip_whitelist    -> IP_REJECTED if no entry matches
    4. HMAC signature (when required)    -> UNAUTHORIZED if missing/invalid
    5. RateLimiter.allow                 -> RATE_LIMITED if quota exhausted
    otherwise                            -> ADMITTED

Error Handling:
    Any unexpected exception raised while deciding is caught here, logged,
    and converted into an UNAUTHORIZED decision with code
    ``AUTH_INTERNAL_ERROR`` (fail closed). The exception text is attached as
    ``detail`` only in development mode.

Dependencies:
    - structlog: For security event logging (key prefixes only)
    - formgate.security: IP matching and signature verification

Used by:
    - formgate.auth.auth: FastAPI security dependency
    - formgate.container: Registered as a singleton service

Complexity: O(c + w) per request where c = custom keys, w = whitelist entries
"""

import time
from typing import Optional

import structlog

from ..security.ip_whitelist import is_ip_allowed
from ..security.signature import verify_signature
from .key_registry import KeyRegistry
from .models import ApiKeyRecord, AuthDecision, AuthOutcome, SignedRequest, mask_key
from .rate_limiter import DEFAULT_WINDOW_SECONDS, RateLimiter

logger = structlog.get_logger()


class RequestAuthorizer:
    """Single admission decision per inbound request.

    Args:
        registry: Key registry used to resolve presented keys
        limiter: Rate limiter holding per-key windows
        window_seconds: Sliding window length applied to every key
        debug: Attach exception text to internal-error decisions
    """

    def __init__(
        self,
        registry: KeyRegistry,
        limiter: RateLimiter,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        debug: bool = False,
    ):
        self.registry = registry
        self.limiter = limiter
        self.window_seconds = window_seconds
        self.debug = debug

    def authorize(
        self,
        candidate_key: Optional[str],
        required_permission: Optional[str],
        client_ip: Optional[str],
        now: Optional[float] = None,
        request: Optional[SignedRequest] = None,
    ) -> AuthDecision:
        """Decide whether a request is admitted.

        Args:
            candidate_key: Raw X-API-Key header value
            required_permission: Permission the endpoint needs; None skips the check
            client_ip: Remote address of the caller
            now: Current epoch seconds; defaults to time.time()
            request: Signed request attributes, needed when the key requires signatures

        Returns:
            AuthDecision with one of the five AuthOutcome values
        """
        if now is None:
            now = time.time()

        try:
            return self._decide(candidate_key, required_permission, client_ip, now, request)
        except Exception as e:
            logger.error(
                "Authorization failed unexpectedly",
                key_prefix=mask_key(candidate_key),
                error=str(e),
                exc_info=True,
            )
            return AuthDecision(
                outcome=AuthOutcome.UNAUTHORIZED,
                error_code="AUTH_INTERNAL_ERROR",
                message="Unable to authorize request",
                detail=str(e) if self.debug else None,
            )

    def _decide(
        self,
        candidate_key: Optional[str],
        required_permission: Optional[str],
        client_ip: Optional[str],
        now: float,
        request: Optional[SignedRequest],
    ) -> AuthDecision:
        record = self.registry.resolve(candidate_key)
        if record is None:
            logger.warning(
                "Invalid or missing API key",
                key_prefix=mask_key(candidate_key),
                extra={"security_event": True},
            )
            return AuthDecision(
                outcome=AuthOutcome.UNAUTHORIZED,
                error_code="UNAUTHORIZED",
                message="Invalid or missing API key. Please provide X-API-Key header.",
            )

        if required_permission is not None and not record.has_permission(required_permission):
            logger.warning(
                "API key lacks permission",
                key_prefix=record.key_prefix,
                permission=required_permission,
                extra={"security_event": True},
            )
            return AuthDecision(
                outcome=AuthOutcome.FORBIDDEN,
                record=record,
                error_code="FORBIDDEN",
                message=f"API key does not have permission: {required_permission}",
            )

        if not is_ip_allowed(client_ip, record.ip_whitelist):
            logger.warning(
                "Client IP not whitelisted",
                key_prefix=record.key_prefix,
                client_ip=client_ip,
                extra={"security_event": True},
            )
            return AuthDecision(
                outcome=AuthOutcome.IP_REJECTED,
                record=record,
                error_code="IP_NOT_ALLOWED",
                message="Client IP address is not allowed for this API key",
            )

        if record.require_signature and not self._signature_valid(record, request, now):
            logger.warning(
                "Request signature rejected",
                key_prefix=record.key_prefix,
                extra={"security_event": True},
            )
            return AuthDecision(
                outcome=AuthOutcome.UNAUTHORIZED,
                record=record,
                error_code="INVALID_SIGNATURE",
                message="Missing or invalid request signature",
            )

        admitted = self.limiter.allow(
            record.secret, record.rate_limit, self.window_seconds, now=now
        )
        status = self.limiter.headers(record.secret, record.rate_limit, self.window_seconds, now=now)
        if not admitted:
            logger.warning(
                "API key rate limited",
                key_prefix=record.key_prefix,
                limit=record.rate_limit,
                extra={"security_event": True},
            )
            return AuthDecision(
                outcome=AuthOutcome.RATE_LIMITED,
                record=record,
                error_code="RATE_LIMITED",
                message="Rate limit exceeded. Please retry later.",
                rate_limit=status,
            )

        return AuthDecision(outcome=AuthOutcome.ADMITTED, record=record, rate_limit=status)

    @staticmethod
    def _signature_valid(record: ApiKeyRecord, request: Optional[SignedRequest], now: float) -> bool:
        if request is None:
            return False
        return verify_signature(
            record.secret,
            request.method,
            request.path,
            request.timestamp,
            request.body,
            request.signature,
            now=now,
        )
