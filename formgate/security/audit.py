"""Structured access logging for authenticated API requests."""

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Optional

import structlog

logger = structlog.get_logger("formgate.access")

SENSITIVE_PARAMS = frozenset({"password", "token", "secret"})


def sanitize_params(params: Mapping[str, Any]) -> dict[str, Any]:
    """Drop request parameters that may carry credentials."""
    return {k: v for k, v in params.items() if k.lower() not in SENSITIVE_PARAMS}


def sanitize_output(data: Mapping[str, Any], allowed_fields: list[str]) -> dict[str, Any]:
    """Keep only explicitly allowed keys of a payload."""
    return {k: v for k, v in data.items() if k in allowed_fields}


def build_access_record(
    api_key: str,
    endpoint: str,
    method: str,
    params: Mapping[str, Any],
    response_code: int,
    environment: str,
    ip: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> dict[str, Any]:
    # Only the first 10 characters of the key are ever logged
    return {
        "timestamp": int(datetime.now(timezone.utc).timestamp()),
        "api_key": api_key[:10] + "...",
        "endpoint": endpoint,
        "method": method,
        "ip": ip,
        "user_agent": user_agent,
        "params": sanitize_params(params),
        "response_code": response_code,
        "environment": environment,
    }


def log_api_access(
    api_key: str,
    endpoint: str,
    method: str,
    params: Mapping[str, Any],
    response_code: int,
    environment: str,
    ip: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> dict[str, Any]:
    """Emit one access log event and return the logged record."""
    record = build_access_record(
        api_key, endpoint, method, params, response_code, environment, ip, user_agent
    )
    logger.info("API access", **record)
    return record
