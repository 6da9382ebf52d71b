from __future__ import annotations

from typing import Any, Sequence

import pytest

from ils_broker.core.exceptions import MethodNotSupportedError
import ils_broker.drivers.base as base_module
from ils_broker.drivers.base import ILSDriver, IlsMethod, capability


class _StatusOnly(ILSDriver):
    name = "StatusOnly"

    def init(self) -> None:
        return None

    @capability(IlsMethod.get_status)
    def lookup(self, record_id: str) -> Any:
        return [{"id": record_id}]

    def get_holding(self, record_id: str) -> Any:
        # Not decorated, so not a capability.
        return []


class _WithHoldings(_StatusOnly):
    name = "WithHoldings"

    @capability(IlsMethod.get_holding)
    def holdings(self, record_id: str, patron: Any = None, options: Any = None) -> Any:
        return [{"id": record_id, "number": 1}]


class _PickyDriver(_StatusOnly):
    name = "Picky"

    def supports_method(self, method: IlsMethod, params: Sequence[Any]) -> bool:
        return bool(params) and params[0] != "forbidden"


def test_capability_table_lists_decorated_methods_only() -> None:
    assert _StatusOnly.capabilities() == frozenset({IlsMethod.get_status})


def test_capabilities_are_inherited() -> None:
    assert _WithHoldings.capabilities() == frozenset({IlsMethod.get_status, IlsMethod.get_holding})
    # The parent's table is not touched by the subclass.
    assert IlsMethod.get_holding not in _StatusOnly.capabilities()


def test_invoke_dispatches_by_method_name() -> None:
    driver = _WithHoldings()
    assert driver.invoke(IlsMethod.get_status, "7") == [{"id": "7"}]
    assert driver.invoke(IlsMethod.get_holding, "7") == [{"id": "7", "number": 1}]


def test_invoke_unimplemented_method_raises() -> None:
    with pytest.raises(MethodNotSupportedError, match="StatusOnly::get_holding"):
        _StatusOnly().invoke(IlsMethod.get_holding, "7")


def test_implements_and_supports_method() -> None:
    driver = _PickyDriver()
    assert driver.implements(IlsMethod.get_status) is True
    assert driver.implements(IlsMethod.place_hold) is False
    assert driver.supports_method(IlsMethod.get_status, ["1"]) is True
    assert driver.supports_method(IlsMethod.get_status, ["forbidden"]) is False


def test_config_and_sections() -> None:
    driver = _StatusOnly()
    source = {"settings": {"seed": 3}, "mode": "plain"}
    driver.set_config(source)

    assert driver.config == source
    assert driver.config is not source
    assert driver.section("settings") == {"seed": 3}
    assert driver.section("mode") == {}
    assert driver.section("missing") == {}


def test_method_names_are_strings() -> None:
    assert IlsMethod("place_hold") is IlsMethod.place_hold
    assert IlsMethod.get_status == "get_status"


def test_module_docstring_is_kept() -> None:
    assert base_module.__doc__ is not None
    assert base_module.__doc__.startswith("Driver protocol and capability registry.")
