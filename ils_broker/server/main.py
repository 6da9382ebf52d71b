"""
Main Application Entry Point.

This module initializes the FastAPI application, configures middleware (CORS),
and includes all API routers. It serves as the root of the web server.
"""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ils_broker import __version__
from ils_broker.core.config import settings
from ils_broker.core.logging_config import get_logger, setup_logging

from .api.v1 import health, ils, patrons, records
from .core import constant
from .exception_handlers import setup_exception_handlers

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifespan events.

    The ILS connection itself is built lazily on the first request so that a
    broken ILS never keeps the server from starting.
    """
    logger.info(f"Starting up {constant.PROJECT_NAME} (driver: {settings.driver})...")

    yield

    logger.info(f"Shutting down {constant.PROJECT_NAME}...")


app = FastAPI(
    title=constant.PROJECT_NAME,
    description="""
    ILS Broker API

    A resilient front for Integrated Library Systems: item availability,
    holdings and patron login, with capability checks and automatic failover
    to an offline driver when the library system is unavailable.
    """,
    version=__version__,
    openapi_url=f"{constant.API_V1_STR}/openapi.json",
    docs_url=f"{constant.API_V1_STR}/docs",
    redoc_url=f"{constant.API_V1_STR}/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_exception_handlers(app)

app.include_router(health.router, tags=["health"])
app.include_router(ils.router, prefix=f"{constant.API_V1_STR}/ils", tags=["ils"])
app.include_router(records.router, prefix=f"{constant.API_V1_STR}/records", tags=["records"])
app.include_router(patrons.router, prefix=f"{constant.API_V1_STR}/patrons", tags=["patrons"])


def main() -> None:
    """Run the server with uvicorn."""
    setup_logging(enable_file=settings.enable_file_logging)
    uvicorn.run(app, host=settings.server_host, port=settings.server_port, log_config=None)


if __name__ == "__main__":
    main()
