import pytest
from httpx import AsyncClient

from ils_broker import __version__

# Mark all tests in this module as async
pytestmark = pytest.mark.asyncio


async def test_health_check(client: AsyncClient):
    response = await client.get("http://localhost/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


async def test_version(client: AsyncClient):
    response = await client.get("http://localhost/version")
    assert response.status_code == 200
    assert response.json() == {"version": __version__, "schema_version": "v1"}


async def test_openapi_is_served_under_api_prefix(client: AsyncClient):
    response = await client.get("http://localhost/api/v1/openapi.json")
    assert response.status_code == 200
    assert response.json()["info"]["title"] == "ILS Broker"
