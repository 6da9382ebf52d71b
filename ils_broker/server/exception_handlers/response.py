"""Shared JSON error body for the exception handlers."""

import uuid

from fastapi import Request
from fastapi.responses import JSONResponse

REQUEST_ID_HEADER = "X-Request-ID"


def request_id_for(request: Request) -> str:
    """Return the caller's request id, or a fresh one when none was sent."""
    request_id = request.headers.get(REQUEST_ID_HEADER)
    return request_id or uuid.uuid4().hex


def error_response(status_code: int, detail: str, exc: Exception, request_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "detail": detail,
            "error_type": type(exc).__name__,
            "request_id": request_id,
        },
        headers={REQUEST_ID_HEADER: request_id},
    )
