from typing import Any, AsyncGenerator, Dict

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from ils_broker.connection.connection import Connection
from ils_broker.core.config import HoldSettings, IlsConfig
from ils_broker.drivers.config_reader import StaticConfigReader
from ils_broker.drivers.registry import build_default_registry

SERVER_CATALOG = {
    "1001": [
        {
            "id": "1001",
            "item_id": "1001-1",
            "availability": True,
            "status": "On shelf",
            "location": "Main",
            "holdings_id": "h1",
            "callnumber": "QA 76",
        },
        {
            "id": "1001",
            "item_id": "1001-2",
            "availability": False,
            "status": "Checked out",
            "location": "Main",
            "holdings_id": "h1",
            "duedate": "2024-05-01",
        },
    ],
    "1002": [{"id": "1002", "item_id": "1002-1", "availability": 3, "status": "", "location": "Branch"}],
}


@pytest.fixture
def driver_configs() -> Dict[str, Dict[str, Any]]:
    """Per-driver configuration used by the test connection."""
    return {
        "Demo": {"catalog": SERVER_CATALOG, "users": {"jdoe": "secret"}},
        "NoILS": {
            "settings": {"use_status": "custom", "use_holdings": "custom", "mode": "ils-offline"},
            "status": {"availability": False, "status": "ILS offline", "location": "Unknown"},
            "holdings": {"availability": False, "status": "ILS offline", "location": "Unknown"},
        },
    }


@pytest.fixture
def ils_config() -> IlsConfig:
    return IlsConfig(driver="Demo", load_noils_on_failure=True)


@pytest.fixture
def connection(driver_configs: Dict[str, Dict[str, Any]], ils_config: IlsConfig) -> Connection:
    """Connection to the Demo driver, with NoILS failover unless ``ils_config`` says otherwise."""
    reader = StaticConfigReader(driver_configs)
    return Connection(
        ils_config,
        build_default_registry(reader),
        reader,
        hold_settings=HoldSettings(holds_mode="all"),
    )


@pytest_asyncio.fixture(name="client")
async def client_fixture(connection: Connection) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client with the connection dependency overridden."""
    from ils_broker.server.main import app
    from ils_broker.server.services.deps import get_connection

    app.dependency_overrides[get_connection] = lambda: connection

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://localhost") as client:
        yield client

    app.dependency_overrides.clear()
