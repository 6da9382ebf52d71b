from __future__ import annotations

import time
from typing import Any, Dict, List, Optional

import pytest

from ils_broker.connection.connection import Connection
from ils_broker.core.config import CircuitBreakerConfig, HoldSettings, IlsConfig
from ils_broker.core.exceptions import ILSError
from ils_broker.drivers.base import ILSDriver, IlsMethod, capability
from ils_broker.drivers.config_reader import StaticConfigReader
from ils_broker.drivers.noils import NoILS
from ils_broker.drivers.registry import DriverRegistry

NOILS_CONFIG: Dict[str, Any] = {
    "settings": {"use_status": "custom", "use_holdings": "custom", "mode": "ils-offline"},
    "status": {"availability": False, "status": "ILS offline", "location": "Unknown"},
    "holdings": {"availability": False, "status": "ILS offline", "location": "Unknown", "number": "1"},
}


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FlakyDriver(ILSDriver):
    """Test driver whose failures are switched on and off by the test."""

    name = "Flaky"

    def __init__(self) -> None:
        super().__init__()
        self.fail = False
        self.init_error: Optional[Exception] = None
        self.init_calls = 0
        self.init_delay = 0.0
        self.calls: List[str] = []

    def init(self) -> None:
        self.init_calls += 1
        if self.init_delay:
            time.sleep(self.init_delay)
        if self.init_error is not None:
            raise self.init_error

    def _record(self, method: str) -> None:
        self.calls.append(method)
        if self.fail:
            raise ILSError("backend exploded")

    @capability(IlsMethod.get_config)
    def get_config(self, function: str, params: Any = None) -> Any:
        return self._config.get(function, {})

    @capability(IlsMethod.get_status)
    def get_status(self, record_id: str) -> List[Dict[str, Any]]:
        self._record("get_status")
        return [{"id": record_id, "availability": True, "status": "On shelf", "location": "Main"}]

    @capability(IlsMethod.get_statuses)
    def get_statuses(self, ids: List[str]) -> List[List[Dict[str, Any]]]:
        self._record("get_statuses")
        return [[{"id": record_id, "availability": record_id != "2", "status": ""}] for record_id in ids]

    @capability(IlsMethod.get_holding)
    def get_holding(self, record_id: str, patron: Any = None, options: Any = None) -> List[Dict[str, Any]]:
        self._record("get_holding")
        return [
            {"id": record_id, "item_id": "a", "availability": True, "status": "", "location": "Main"},
            {"id": record_id, "item_id": "b", "availability": False, "status": "", "location": "Branch"},
        ]

    @capability(IlsMethod.get_purchase_history)
    def get_purchase_history(self, record_id: str) -> List[Dict[str, Any]]:
        self._record("get_purchase_history")
        return [{"issue": f"{record_id}-vol1"}]

    @capability(IlsMethod.patron_login)
    def patron_login(self, username: str, password: str) -> Optional[Dict[str, Any]]:
        self._record("patron_login")
        if password != "secret":
            return None
        return {"id": username, "cat_username": username, "cat_password": password}

    @capability(IlsMethod.change_password)
    def change_password(self, details: Dict[str, Any]) -> Dict[str, Any]:
        self._record("change_password")
        return {"success": True}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def flaky_driver() -> FlakyDriver:
    return FlakyDriver()


@pytest.fixture
def config_reader() -> StaticConfigReader:
    return StaticConfigReader({"NoILS": NOILS_CONFIG, "Flaky": {"holds": {"hmac_keys": "id:item_id"}}})


@pytest.fixture
def registry(flaky_driver: FlakyDriver) -> DriverRegistry:
    reg = DriverRegistry()
    reg.register("Flaky", lambda: flaky_driver)
    reg.register("NoILS", NoILS)
    return reg


@pytest.fixture
def make_connection(registry: DriverRegistry, config_reader: StaticConfigReader, clock: FakeClock):
    """Factory building a connection to the flaky driver."""

    def _make(
        failover: bool = False,
        threshold: int = 1,
        reset_timeout: float = 30.0,
        holds_mode: str = "disabled",
        **overrides: Any,
    ) -> Connection:
        config = IlsConfig(
            driver=overrides.pop("driver", "Flaky"),
            load_noils_on_failure=failover,
            breaker=CircuitBreakerConfig(failure_threshold=threshold, reset_timeout=reset_timeout),
            **overrides,
        )
        return Connection(
            config,
            registry,
            config_reader,
            hold_settings=HoldSettings(holds_mode=holds_mode),
            clock=clock,
        )

    return _make
