"""
ILS Exception Handler.

Maps the ``ILSError`` hierarchy to HTTP status codes so API clients can tell
an offline library system from an unsupported operation or a broken setup.
"""

from fastapi import Request
from fastapi.responses import JSONResponse

from ils_broker.core.exceptions import (
    BadConfigError,
    ILSError,
    ILSOfflineError,
    MethodNotSupportedError,
)
from ils_broker.core.logging_config import get_logger

from .response import error_response, request_id_for

logger = get_logger(__name__)


def status_code_for(exc: ILSError) -> int:
    if isinstance(exc, ILSOfflineError):
        return 503
    if isinstance(exc, MethodNotSupportedError):
        return 501
    if isinstance(exc, BadConfigError):
        return 500
    return 502


async def ils_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Convert an ILS error into a JSON response.

    Args:
        request: The HTTP request that caused the exception
        exc: The ILS error that was raised

    Returns:
        JSONResponse with the error message, type and request id
    """
    assert isinstance(exc, ILSError)
    status_code = status_code_for(exc)
    request_id = request_id_for(request)
    log = logger.error if status_code == 500 else logger.warning
    log(f"ILS error [{request_id}] in {request.method} {request.url.path}: {type(exc).__name__}: {exc}")
    return error_response(status_code, str(exc), exc, request_id)
