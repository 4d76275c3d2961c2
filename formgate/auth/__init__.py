"""Authentication module for formgate."""

from .auth import api_key_header, require_permission
from .authorizer import RequestAuthorizer
from .key_registry import CustomKeyProvider, KeyRegistry, StaticKeyProvider, generate_api_key, rate_limit_for
from .models import (
    CREATE_SUBMISSIONS,
    READ_FORMS,
    READ_SUBMISSIONS,
    ApiKeyRecord,
    AuthDecision,
    AuthOutcome,
    KeyTier,
    RateLimitStatus,
    SignedRequest,
)
from .rate_limiter import RateLimiter

__all__ = [
    "CREATE_SUBMISSIONS",
    "READ_FORMS",
    "READ_SUBMISSIONS",
    "ApiKeyRecord",
    "AuthDecision",
    "AuthOutcome",
    "CustomKeyProvider",
    "KeyRegistry",
    "KeyTier",
    "RateLimitStatus",
    "RateLimiter",
    "RequestAuthorizer",
    "SignedRequest",
    "StaticKeyProvider",
    "api_key_header",
    "generate_api_key",
    "rate_limit_for",
    "require_permission",
]
