"""API key registry resolving presented key strings to key records.

This module derives the set of valid API keys from configuration on every
resolution call and looks up presented keys by exact string match. Nothing is
cached or persisted: the registry is re-derived, not stored, so configuration
changes and custom provider updates take effect on the next request.

Key Sources (in precedence order, later sources override earlier ones):
    1. Primary key: full permission set (read_forms, read_submissions, create_submissions)
    2. Limited key: read_forms only
    3. Development key: full permissions, only when dev mode is enabled
    4. Custom key provider: injectable source (e.g. database-backed keys)

Rate Limit Table:
    (production, primary) -> 1000
    (production, limited) -> 100
    (staging, primary)    -> 500
    (staging, limited)    -> 50
    anything else         -> 1000

Dependencies:
    - secrets: For cryptographically secure key generation
    - structlog: For security event logging (key prefixes only)
    - formgate.config: For key values, environment and dev flag

Used by:
    - formgate.auth.authorizer: First step of every admission decision
    - formgate.container: Registered as a singleton service
    - scripts/generate_api_key.py: Key generation helper

Complexity:
    - Snapshot derivation: O(c) where c = number of custom keys
    - Lookup: O(1) dictionary access after derivation
"""

import secrets
from collections.abc import Iterable
from typing import Optional, Protocol

import structlog

from ..config import Settings
from .models import (
    FULL_PERMISSIONS,
    LIMITED_PERMISSIONS,
    ApiKeyRecord,
    KeyTier,
    mask_key,
)

logger = structlog.get_logger()

DEFAULT_RATE_LIMIT = 1000
DEVELOPMENT_RATE_LIMIT = 1000

_RATE_LIMITS: dict[tuple[str, KeyTier], int] = {
    ("production", KeyTier.PRIMARY): 1000,
    ("production", KeyTier.LIMITED): 100,
    ("staging", KeyTier.PRIMARY): 500,
    ("staging", KeyTier.LIMITED): 50,
}


def rate_limit_for(environment: str, tier: KeyTier) -> int:
    """Get the per-window request allowance for a key tier in an environment.

    Pure function of its arguments; unknown combinations (including every
    development environment) fall back to ``DEFAULT_RATE_LIMIT``.
    """
    return _RATE_LIMITS.get((environment, KeyTier(tier)), DEFAULT_RATE_LIMIT)


def generate_api_key(prefix: str = "sk_") -> str:
    """Generate a new random API key.

    The key is ``prefix`` followed by 64 hex characters (32 random bytes
    from the operating system CSPRNG).
    """
    return prefix + secrets.token_hex(32)


class CustomKeyProvider(Protocol):
    """Source of additional API key records, merged after configured keys."""

    def get_keys(self) -> Iterable[ApiKeyRecord]:
        ...


class StaticKeyProvider:
    """Custom key provider backed by a fixed list of records."""

    def __init__(self, records: Optional[Iterable[ApiKeyRecord]] = None):
        self._records = list(records or [])

    def get_keys(self) -> list[ApiKeyRecord]:
        return list(self._records)


class KeyRegistry:
    """Resolves presented API keys to their records.

    The registry holds only configuration (a ``Settings`` instance and an
    optional custom provider). Every call to :meth:`valid_keys` rebuilds the
    snapshot from those inputs, so the registry is safe for unsynchronized
    concurrent use.

    Thread Safety:
        - No mutable state; snapshots are built per call
        - Custom providers must be safe to call concurrently
    """

    def __init__(self, settings: Settings, provider: Optional[CustomKeyProvider] = None):
        self._settings = settings
        self._provider = provider

    @property
    def settings(self) -> Settings:
        return self._settings

    def valid_keys(self) -> dict[str, ApiKeyRecord]:
        """Build the current key snapshot, mapping secret -> record.

        Returns:
            Dictionary of every currently valid key. When two sources yield the
            same secret, the later source wins (custom provider last).
        """
        settings = self._settings
        environment = settings.environment
        require_signature = environment == "production"
        keys: dict[str, ApiKeyRecord] = {}

        if settings.primary_key:
            keys[settings.primary_key] = ApiKeyRecord(
                secret=settings.primary_key,
                name="Primary API Key",
                permissions=FULL_PERMISSIONS,
                rate_limit=rate_limit_for(environment, KeyTier.PRIMARY),
                environment=environment,
                ip_whitelist=settings.ip_whitelist,
                require_signature=require_signature,
                tier=KeyTier.PRIMARY,
            )

        if settings.limited_key:
            keys[settings.limited_key] = ApiKeyRecord(
                secret=settings.limited_key,
                name="Limited Access Key",
                permissions=LIMITED_PERMISSIONS,
                rate_limit=rate_limit_for(environment, KeyTier.LIMITED),
                environment=environment,
                ip_whitelist=settings.ip_whitelist,
                require_signature=require_signature,
                tier=KeyTier.LIMITED,
            )

        # Development key never carries a whitelist or signature requirement
        if settings.dev_mode:
            keys[settings.test_key] = ApiKeyRecord(
                secret=settings.test_key,
                name="Development Test Key",
                permissions=FULL_PERMISSIONS,
                rate_limit=DEVELOPMENT_RATE_LIMIT,
                environment="development",
                tier=KeyTier.DEVELOPMENT,
            )

        if self._provider is not None:
            for record in self._provider.get_keys():
                keys[record.secret] = record

        return keys

    def resolve(self, candidate_key: Optional[str]) -> Optional[ApiKeyRecord]:
        """Resolve a presented key string to its record.

        Args:
            candidate_key: Raw value of the X-API-Key header, possibly None

        Returns:
            The matching ApiKeyRecord, or None when the key is missing or unknown

        Complexity: O(c) to derive the snapshot, O(1) lookup
        """
        if not candidate_key:
            return None

        record = self.valid_keys().get(candidate_key)
        if record is None:
            logger.debug("API key not found", key_prefix=mask_key(candidate_key))
        return record

    @staticmethod
    def has_permission(record: ApiKeyRecord, permission: str) -> bool:
        return record.has_permission(permission)
