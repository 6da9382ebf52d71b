"""
Connection Dependencies.

Provides process-wide ``Connection`` and ``HoldLogic`` instances for API
endpoints. Tests replace them through ``app.dependency_overrides``.
"""

import threading
from typing import Annotated, Optional

from fastapi import Depends

from ils_broker.connection.connection import Connection
from ils_broker.core.config import settings
from ils_broker.core.logging_config import get_logger
from ils_broker.drivers.config_reader import JsonConfigReader
from ils_broker.drivers.registry import build_default_registry
from ils_broker.logic.holds import HoldLogic, RequestSigner

logger = get_logger(__name__)

_connection: Optional[Connection] = None
_lock = threading.Lock()


def build_connection() -> Connection:
    """Build a connection from the application settings."""
    reader = JsonConfigReader(settings.driver_config_dir)
    registry = build_default_registry(reader, load_plugins=True)
    logger.info(f"Building ILS connection for driver {settings.driver} (drivers: {', '.join(registry.names())})")
    return Connection(
        settings.ils,
        registry,
        reader,
        hold_settings=settings.holds,
        locale=settings.locale,
    )


def get_connection() -> Connection:
    global _connection
    if _connection is None:
        with _lock:
            if _connection is None:
                _connection = build_connection()
    return _connection


def reset_connection() -> None:
    """Drop the shared connection so the next request rebuilds it."""
    global _connection
    with _lock:
        _connection = None


ConnectionDep = Annotated[Connection, Depends(get_connection)]


def get_hold_logic(connection: ConnectionDep) -> HoldLogic:
    return HoldLogic(connection, RequestSigner(settings.hmac_key), connection.config)


HoldLogicDep = Annotated[HoldLogic, Depends(get_hold_logic)]
