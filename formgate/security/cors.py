"""CORS header selection per deployment environment.

Allowed origins are looked up in a per-environment table (or an explicit
override list from configuration). When the request ``Origin`` is listed, or
the table allows any origin, the full set of CORS response headers is
returned; otherwise no CORS headers are emitted at all.
"""

from collections.abc import Sequence
from typing import Optional

ALLOWED_METHODS = "GET, POST, OPTIONS"
ALLOWED_HEADERS = "X-API-Key, Content-Type, X-Timestamp, X-Signature"
MAX_AGE_SECONDS = "86400"

CORS_ORIGINS: dict[str, tuple[str, ...]] = {
    "production": ("https://alhatab.com.sa", "https://sap.alhatab.com"),
    "staging": ("https://staging.alhatab.com.sa",),
    "dev": ("http://localhost:3000", "https://ahf.ddev.site"),
}
ANY_ORIGIN = ("*",)


def allowed_origins(environment: str, override: Optional[Sequence[str]] = None) -> tuple[str, ...]:
    if override:
        return tuple(override)
    return CORS_ORIGINS.get(environment, ANY_ORIGIN)


def cors_headers(
    origin: Optional[str],
    environment: str,
    override: Optional[Sequence[str]] = None,
) -> dict[str, str]:
    """Select CORS response headers for a request.

    Args:
        origin: Value of the request Origin header, if any
        environment: Deployment environment tag
        override: Explicit origin list replacing the environment table

    Returns:
        Header mapping, empty when the origin is not allowed
    """
    origins = allowed_origins(environment, override)
    if "*" not in origins and origin not in origins:
        return {}

    return {
        "Access-Control-Allow-Origin": origin or "*",
        "Access-Control-Allow-Methods": ALLOWED_METHODS,
        "Access-Control-Allow-Headers": ALLOWED_HEADERS,
        "Access-Control-Max-Age": MAX_AGE_SECONDS,
    }
