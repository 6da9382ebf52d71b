"""
Unit tests for FastAPI application lifespan management.

Tests verify that startup and shutdown are logged without touching the ILS,
and that ``main`` configures logging before handing the app to uvicorn.
"""

from unittest.mock import patch

import pytest
from fastapi import FastAPI

from ils_broker.server import main as server_main
from ils_broker.server.main import lifespan

pytestmark = pytest.mark.asyncio


class TestLifespan:
    """Test application startup and shutdown."""

    async def test_lifespan_logs_startup_and_shutdown(self):
        with patch("ils_broker.server.main.logger") as mock_logger:
            async with lifespan(FastAPI()):
                assert "Starting up ILS Broker" in mock_logger.info.call_args_list[0][0][0]
            assert "Shutting down ILS Broker" in mock_logger.info.call_args_list[-1][0][0]

    async def test_lifespan_does_not_build_connection(self):
        with patch("ils_broker.server.services.deps.build_connection") as build:
            async with lifespan(FastAPI()):
                pass
        build.assert_not_called()


class TestMain:
    """Test the command line entry point."""

    async def test_main_sets_up_logging_and_runs_uvicorn(self):
        with patch.object(server_main, "setup_logging") as setup_logging, patch.object(
            server_main.uvicorn, "run"
        ) as run:
            server_main.main()

        setup_logging.assert_called_once_with(enable_file=server_main.settings.enable_file_logging)
        run.assert_called_once_with(
            server_main.app,
            host=server_main.settings.server_host,
            port=server_main.settings.server_port,
            log_config=None,
        )
