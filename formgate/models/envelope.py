"""Deterministic success / error response envelopes.

Every API response body has one of two shapes:

    {"success": true,  "data": ..., "meta": {"timestamp": "...", ...}}
    {"success": false, "error": {"code": "...", "message": "...", "detail": ...}}

``detail`` carries debug information (such as exception text) and is only
populated when debug output is enabled; production responses always send
``null`` so internal details never leak to API consumers.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field


class ErrorBody(BaseModel):
    code: str
    message: str
    detail: Optional[str] = None


class SuccessResponse(BaseModel):
    success: bool = True
    data: Any = None
    meta: dict[str, Any] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    success: bool = False
    error: ErrorBody


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def success(data: Any, meta: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    """Wrap a payload in the success envelope; meta always gets a timestamp."""
    merged = {"timestamp": utc_timestamp()}
    if meta:
        merged.update(meta)
    return SuccessResponse(data=data, meta=merged).model_dump()


def error(code: str, message: str, detail: Optional[str] = None, debug: bool = False) -> dict[str, Any]:
    """Build the error envelope, dropping ``detail`` unless ``debug`` is set."""
    body = ErrorBody(code=code, message=message, detail=detail if debug else None)
    return ErrorResponse(error=body).model_dump()
