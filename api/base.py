"""
Response envelope shared by every billing endpoint.

    {"success": true, "data": [...], "error": null,
     "meta": {"timestamp": "...", "request_id": "...", "count": 3}}

`meta.count` is filled in only when `data` is a list.
"""

from typing import Any
from datetime import datetime
from uuid import uuid4

from pydantic import BaseModel, Field
from starlette.requests import Request

from utils.timezone import now_utc


class APIError(BaseModel):
    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")


class APIMeta(BaseModel):
    timestamp: datetime = Field(..., description="Response timestamp (UTC)")
    request_id: str = Field(..., description="Matches the X-Request-ID response header")
    count: int | None = Field(None, description="Number of records when data is a list")


class APIResponse(BaseModel):
    """Envelope: exactly one of data or error is meaningful, per success."""

    success: bool
    data: Any | None = None
    error: APIError | None = None
    meta: APIMeta


def request_id_of(request: Request | None) -> str:
    """Request ID assigned by RequestIDMiddleware, or a fresh one outside it."""
    request_id = getattr(getattr(request, "state", None), "request_id", None)
    return request_id or str(uuid4())


def success_response(data: Any, request: Request | None = None) -> APIResponse:
    meta = APIMeta(
        timestamp=now_utc(),
        request_id=request_id_of(request),
        count=len(data) if isinstance(data, list) else None,
    )
    return APIResponse(success=True, data=data, meta=meta)


def error_response(code: str, message: str, request: Request | None = None) -> APIResponse:
    meta = APIMeta(timestamp=now_utc(), request_id=request_id_of(request))
    return APIResponse(success=False, error=APIError(code=code, message=message), meta=meta)


class ErrorCodes:
    """Values of error.code, one per HTTP status the API answers with."""

    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"  # 401
    PERMISSION_DENIED = "PERMISSION_DENIED"  # 403
    NOT_FOUND = "NOT_FOUND"                  # 404
    ALREADY_EXISTS = "ALREADY_EXISTS"        # 409, identifier retries exhausted
    INVALID_REQUEST = "INVALID_REQUEST"      # 400
    VALIDATION_ERROR = "VALIDATION_ERROR"    # 422
    INTERNAL_ERROR = "INTERNAL_ERROR"        # 500
