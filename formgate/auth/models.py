"""Authentication models for formgate API key management.

This module defines the Pydantic models shared by the key registry, the rate
limiter and the request authorizer. These models provide type-safe, immutable
representations of credentials and admission decisions.

Authentication Models:
    - ApiKeyRecord: One credential with permissions, limits and restrictions
    - KeyTier: Source tier of a key, drives the rate limit table
    - SignedRequest: Request attributes covered by the HMAC signature
    - AuthOutcome / AuthDecision: Closed result of one admission check

Dependencies:
    - pydantic: For data validation and immutability

Used by:
    - formgate.auth.key_registry: Materializes ApiKeyRecord instances
    - formgate.auth.authorizer: Produces AuthDecision values
    - formgate.auth.auth: Maps decisions onto HTTP errors
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# Permission names recognised by the service endpoints
READ_FORMS = "read_forms"
READ_SUBMISSIONS = "read_submissions"
CREATE_SUBMISSIONS = "create_submissions"

FULL_PERMISSIONS = frozenset({READ_FORMS, READ_SUBMISSIONS, CREATE_SUBMISSIONS})
LIMITED_PERMISSIONS = frozenset({READ_FORMS})


class KeyTier(str, Enum):
    """Source tier of an API key.

    Key Tier Hierarchy:
        - PRIMARY: Configured full-access key
        - LIMITED: Configured read-only key
        - DEVELOPMENT: Test key, only present in dev mode
        - CUSTOM: Supplied by an injected custom key provider
    """

    PRIMARY = "primary"
    LIMITED = "limited"
    DEVELOPMENT = "development"
    CUSTOM = "custom"


class ApiKeyRecord(BaseModel):
    """A single API credential and the policy attached to it.

    Records are re-derived from configuration on every resolution and are
    never mutated, so the model is frozen. The ``secret`` is the key value
    itself and must never be logged in full; use ``key_prefix`` instead.

    Validation Rules:
        - secret: Required, non-empty
        - permissions: Unordered set, membership test only
        - rate_limit: Requests allowed per rolling window, at least 1
        - ip_whitelist: Literal IPs or CIDR blocks; empty means unrestricted

    Usage Example:
        record = ApiKeyRecord(
            secret="sk_live_123",
            name="Primary API Key",
            permissions={"read_forms"},
            rate_limit=100,
            environment="production",
        )
    """

    model_config = ConfigDict(frozen=True)

    secret: str = Field(..., min_length=1, repr=False)
    name: str
    permissions: frozenset[str] = Field(default_factory=frozenset)
    rate_limit: int = Field(1000, ge=1)
    environment: str = "development"
    ip_whitelist: tuple[str, ...] = Field(default_factory=tuple)
    require_signature: bool = False
    tier: KeyTier = KeyTier.CUSTOM

    def has_permission(self, permission: str) -> bool:
        return permission in self.permissions

    @property
    def key_prefix(self) -> str:
        """Safe, truncated form of the secret for logs."""
        return mask_key(self.secret)


def mask_key(api_key: Optional[str], visible: int = 8) -> str:
    """Return a log-safe prefix of an API key."""
    if not api_key:
        return "***"
    return api_key[:visible] + "..." if len(api_key) > visible else "***"


class SignedRequest(BaseModel):
    """The parts of an inbound request covered by the HMAC signature.

    ``timestamp`` and ``signature`` are the raw ``X-Timestamp`` and
    ``X-Signature`` header values; either may be absent. ``body`` holds the
    request body bytes exactly as received.
    """

    method: str
    path: str
    body: bytes = b""
    timestamp: Optional[str] = None
    signature: Optional[str] = None


class RateLimitStatus(BaseModel):
    """Quota snapshot for one key.

    ``reset_at`` is ``now + window`` (epoch seconds). It is an upper-bound
    approximation, not the instant the oldest recorded request expires.
    """

    model_config = ConfigDict(frozen=True)

    limit: int
    remaining: int
    reset_at: int

    def as_headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_at),
        }


class AuthOutcome(str, Enum):
    """Closed set of admission results."""

    ADMITTED = "admitted"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    RATE_LIMITED = "rate_limited"
    IP_REJECTED = "ip_rejected"


class AuthDecision(BaseModel):
    """Terminal outcome of authorizing one request.

    Attributes:
        outcome: Which of the five admission results applies
        record: The resolved key record (None when the key was not found)
        error_code: Stable code for rejected outcomes
        message: Human-readable explanation for rejected outcomes
        detail: Debug information, populated only in development mode
        rate_limit: Quota snapshot, present once the rate limiter was consulted
    """

    model_config = ConfigDict(frozen=True)

    outcome: AuthOutcome
    record: Optional[ApiKeyRecord] = None
    error_code: Optional[str] = None
    message: Optional[str] = None
    detail: Optional[str] = None
    rate_limit: Optional[RateLimitStatus] = None

    @property
    def admitted(self) -> bool:
        return self.outcome is AuthOutcome.ADMITTED
