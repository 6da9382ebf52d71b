"""
Global Exception Handler for FastAPI Application.

Anything that is not an ``ILSError`` is a bug in the broker or one of its
drivers. The client gets a generic 500 with a request id; the log gets the
traceback under the same id so the two can be matched up.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ils_broker.core.exceptions import ILSError
from ils_broker.core.logging_config import get_logger

from .ils_handler import ils_exception_handler
from .response import error_response, request_id_for

logger = get_logger(__name__)


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Log an unexpected error and answer with a generic 500.

    Args:
        request: The HTTP request that caused the exception
        exc: The exception that was raised

    Returns:
        JSONResponse with the request id the error was logged under
    """
    request_id = request_id_for(request)
    logger.error(
        f"Unhandled exception [{request_id}] in {request.method} {request.url.path}: {type(exc).__name__}: {exc}",
        exc_info=exc,
        extra={
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "query_params": dict(request.query_params),
            "client": request.client.host if request.client else "unknown",
            "error_type": type(exc).__name__,
        },
    )
    return error_response(500, "Internal server error", exc, request_id)


def setup_exception_handlers(app: FastAPI) -> None:
    """
    Register exception handlers with the FastAPI application.

    Args:
        app: The FastAPI application instance
    """
    app.add_exception_handler(ILSError, ils_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
    logger.debug("Exception handlers registered successfully")
