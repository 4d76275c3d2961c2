"""HMAC request signing for API keys that require signed requests.

Signature Scheme:
    signature = hex(HMAC-SHA256(secret, method + "\\n" + path + "\\n" + timestamp + "\\n" + body))

The caller sends the signature in ``X-Signature`` and the Unix timestamp it
signed in ``X-Timestamp``. Verification rejects requests whose timestamp is
missing, unparseable, or more than ``MAX_CLOCK_SKEW_SECONDS`` away from the
server clock (replay mitigation), and compares signatures in constant time.

Dependencies:
    - hmac / hashlib: For HMAC-SHA256 and timing-safe comparison
    - structlog: For security event logging

Called by:
    - formgate.auth.authorizer: Signature step of the admission decision
    - API clients and tests: ``compute_signature`` produces valid signatures
"""

import hashlib
import hmac
import time
from typing import Optional, Union

import structlog

logger = structlog.get_logger()

MAX_CLOCK_SKEW_SECONDS = 300

Body = Union[bytes, str]


def signature_base(method: str, path: str, timestamp: str, body: Body = b"") -> bytes:
    """Build the newline-joined bytes the signature is computed over.

    The body is used exactly as received; text bodies are UTF-8 encoded.
    """
    if isinstance(body, str):
        body = body.encode()
    return b"\n".join([method.encode(), path.encode(), timestamp.encode(), body])


def compute_signature(secret: str, method: str, path: str, timestamp: str, body: Body = b"") -> str:
    """Compute the hex HMAC-SHA256 signature of a request."""
    message = signature_base(method, path, timestamp, body)
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def verify_signature(
    secret: str,
    method: str,
    path: str,
    timestamp: Optional[str],
    body: Body,
    signature: Optional[str],
    now: Optional[float] = None,
    max_skew: int = MAX_CLOCK_SKEW_SECONDS,
) -> bool:
    """Verify a request signature.

    Args:
        secret: Shared secret the client signed with
        method: HTTP method exactly as received
        path: Request path (including query string) exactly as received
        timestamp: Raw X-Timestamp header value
        body: Raw request body bytes (text is UTF-8 encoded)
        signature: Raw X-Signature header value
        now: Current epoch seconds; defaults to time.time()
        max_skew: Allowed distance between timestamp and now, in seconds

    Returns:
        True only for a present, fresh, matching signature
    """
    if not signature or not timestamp:
        return False

    try:
        signed_at = int(timestamp)
    except (TypeError, ValueError):
        logger.warning("Unparseable request timestamp", extra={"security_event": True})
        return False

    if now is None:
        now = time.time()

    if abs(now - signed_at) > max_skew:
        logger.warning(
            "Request timestamp outside allowed window",
            skew_seconds=int(now - signed_at),
            extra={"security_event": True},
        )
        return False

    expected = compute_signature(secret, method, path, timestamp, body)
    return hmac.compare_digest(expected.encode(), signature.encode())
