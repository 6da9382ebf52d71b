from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest

from ils_broker.connection.availability import AvailabilityStatus
from ils_broker.connection.breaker import CircuitState
from ils_broker.connection.connection import Connection
from ils_broker.core.config import IlsConfig
from ils_broker.core.exceptions import (
    BadConfigError,
    DriverNotFoundError,
    ILSError,
    ILSOfflineError,
    MethodNotSupportedError,
)
from ils_broker.drivers.base import IlsMethod
from ils_broker.drivers.demo import Demo


class _BrokenReader:
    def get(self, name):
        raise ValueError("unreadable")


# ---------------------------------------------------------------------------
# Construction and driver lifecycle
# ---------------------------------------------------------------------------


def test_missing_driver_setting_raises_bad_config(registry, config_reader) -> None:
    with pytest.raises(BadConfigError, match="ILS driver setting missing."):
        Connection(IlsConfig(), registry, config_reader)


def test_unknown_driver_raises_driver_not_found(registry, config_reader) -> None:
    with pytest.raises(DriverNotFoundError, match="ILS driver missing: Nope"):
        Connection(IlsConfig(driver="Nope"), registry, config_reader)


def test_get_driver_class_does_not_initialise(make_connection, flaky_driver) -> None:
    conn = make_connection()
    assert conn.get_driver_class() == "Flaky"
    assert flaky_driver.init_calls == 0


def test_get_driver_initialises_once_with_reader_config(make_connection, flaky_driver) -> None:
    conn = make_connection()
    conn.get_driver()
    conn.get_driver()
    assert flaky_driver.init_calls == 1
    assert flaky_driver.config == {"holds": {"hmac_keys": "id:item_id"}}


def test_concurrent_first_calls_initialise_once(make_connection, flaky_driver) -> None:
    flaky_driver.init_delay = 0.05
    conn = make_connection()

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: conn.get_status("1"), range(16)))

    assert flaky_driver.init_calls == 1
    assert all(rows == results[0] for rows in results)


def test_concurrent_failures_fail_over_once(make_connection, flaky_driver) -> None:
    flaky_driver.init_delay = 0.05
    flaky_driver.init_error = ILSError("connection refused")
    conn = make_connection(failover=True)

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: conn.get_status("1"), range(16)))

    assert flaky_driver.init_calls == 1
    assert conn.breaker.failures == 1
    assert conn.get_driver_class() == "NoILS"
    assert all(rows[0]["availability"] == AvailabilityStatus(False, "ILS offline") for rows in results)


def test_configuration_errors_are_cast_to_bad_config(registry) -> None:
    conn = Connection(IlsConfig(driver="Flaky", load_noils_on_failure=True), registry, _BrokenReader())
    with pytest.raises(BadConfigError, match="Failure during configuration."):
        conn.get_driver()


def test_bad_config_never_fails_over(make_connection, flaky_driver) -> None:
    flaky_driver.init_error = BadConfigError("missing url")
    conn = make_connection(failover=True)

    with pytest.raises(BadConfigError, match="missing url"):
        conn.get_status("1")

    assert conn.status()["active_driver"] == "Flaky"
    assert conn.breaker.state is CircuitState.closed


def test_runtime_init_failure_fails_over_to_noils(make_connection, flaky_driver) -> None:
    flaky_driver.init_error = ILSError("connection refused")
    conn = make_connection(failover=True)

    rows = conn.get_status("1")

    assert rows[0]["availability"] == AvailabilityStatus(False, "ILS offline")
    assert conn.get_driver_class() == "NoILS"


def test_runtime_init_failure_without_failover_is_counted(make_connection, flaky_driver) -> None:
    flaky_driver.init_error = ILSError("connection refused")
    conn = make_connection(threshold=2)

    with pytest.raises(ILSError, match="connection refused"):
        conn.get_status("1")
    assert conn.breaker.failures == 1

    with pytest.raises(ILSError, match="connection refused"):
        conn.get_status("1")
    with pytest.raises(ILSOfflineError):
        conn.get_status("1")

    assert flaky_driver.init_calls == 2


# ---------------------------------------------------------------------------
# Failover and circuit breaker
# ---------------------------------------------------------------------------


def test_status_is_parsed(make_connection) -> None:
    conn = make_connection()
    rows = conn.get_status("1")
    assert rows == [{"id": "1", "availability": AvailabilityStatus(True, "On shelf"), "location": "Main"}]


def test_runtime_failure_fails_over_and_opens_breaker(make_connection, flaky_driver) -> None:
    flaky_driver.fail = True
    conn = make_connection(failover=True)

    rows = conn.get_status("1")

    assert rows[0]["availability"].status_description() == "ILS offline"
    status = conn.status()
    assert status["active_driver"] == "NoILS"
    assert status["on_fallback"] is True
    assert status["state"] == "open"


def test_open_breaker_keeps_calls_away_from_primary(make_connection, flaky_driver) -> None:
    flaky_driver.fail = True
    conn = make_connection(failover=True)
    conn.get_status("1")

    conn.get_status("2")
    conn.get_status("3")

    assert flaky_driver.calls == ["get_status"]


def test_half_open_success_restores_primary(make_connection, flaky_driver, clock) -> None:
    flaky_driver.fail = True
    conn = make_connection(failover=True, reset_timeout=30)
    conn.get_status("1")

    clock.advance(30)
    assert conn.breaker.state is CircuitState.half_open
    flaky_driver.fail = False

    rows = conn.get_status("1")

    assert rows[0]["availability"].status_description() == "On shelf"
    assert conn.status()["active_driver"] == "Flaky"
    assert conn.breaker.state is CircuitState.closed
    # The primary driver was not initialised a second time.
    assert flaky_driver.init_calls == 1


def test_half_open_failure_reopens_and_fails_over_again(make_connection, flaky_driver, clock) -> None:
    flaky_driver.fail = True
    conn = make_connection(failover=True, reset_timeout=30)
    conn.get_status("1")

    clock.advance(31)
    rows = conn.get_status("1")

    assert rows[0]["availability"].status_description() == "ILS offline"
    assert flaky_driver.calls == ["get_status", "get_status"]
    assert conn.breaker.state is CircuitState.open
    assert conn.get_driver_class() == "NoILS"


def test_open_breaker_without_failover_fails_fast(make_connection, flaky_driver, clock) -> None:
    flaky_driver.fail = True
    conn = make_connection(failover=False, reset_timeout=30)

    with pytest.raises(ILSError, match="backend exploded"):
        conn.get_status("1")
    with pytest.raises(ILSOfflineError):
        conn.get_status("1")
    assert flaky_driver.calls == ["get_status"]

    clock.advance(30)
    flaky_driver.fail = False
    assert conn.get_status("1")[0]["id"] == "1"
    assert conn.breaker.state is CircuitState.closed


def test_failure_threshold_counts_consecutive_failures(make_connection, flaky_driver) -> None:
    flaky_driver.fail = True
    conn = make_connection(failover=True, threshold=3)

    for _ in range(4):
        assert conn.get_status("1")[0]["availability"].status_description() == "ILS offline"

    # Below the threshold every call probes the primary again.
    assert flaky_driver.calls == ["get_status"] * 3
    assert conn.breaker.state is CircuitState.open


def test_success_resets_failure_count(make_connection, flaky_driver) -> None:
    conn = make_connection(threshold=2)
    flaky_driver.fail = True
    with pytest.raises(ILSError):
        conn.get_status("1")
    flaky_driver.fail = False
    conn.get_status("1")
    assert conn.breaker.failures == 0


# ---------------------------------------------------------------------------
# Capability checks and defaults
# ---------------------------------------------------------------------------


def test_check_capability(make_connection) -> None:
    conn = make_connection()
    assert conn.check_capability(IlsMethod.get_status, ["1"]) is True
    assert conn.check_capability("get_holding") is True
    assert conn.check_capability(IlsMethod.place_hold) is False
    assert conn.check_capability("no_such_method") is False


def test_call_unsupported_method_raises(make_connection) -> None:
    conn = make_connection()
    with pytest.raises(MethodNotSupportedError, match="Cannot call method: Flaky::place_hold"):
        conn.call(IlsMethod.place_hold, {})
    with pytest.raises(MethodNotSupportedError):
        conn.call("no_such_method")


def test_attribute_dispatch(make_connection) -> None:
    conn = make_connection()
    assert conn.get_purchase_history("x") == [{"issue": "x-vol1"}]
    with pytest.raises(AttributeError):
        conn.not_a_driver_method  # noqa: B018


def test_graceful_defaults(make_connection) -> None:
    conn = make_connection()
    assert conn.has_holdings("1") is True
    assert conn.login_is_hidden() is False
    assert conn.check_request_is_valid("1", {}, {}) is True
    assert conn.check_storage_retrieval_request_is_valid("1", {}, {}) is False
    assert conn.check_ill_request_is_valid("1", {}, {}) is False


def test_holds_modes(make_connection) -> None:
    conn = make_connection(holds_mode="all")
    assert conn.get_holds_mode() == "all"
    assert conn.get_title_holds_mode() == "disabled"


def test_holdings_text_field_names(make_connection) -> None:
    assert make_connection().get_holdings_text_field_names() == [
        "holdings_notes",
        "summary",
        "supplements",
        "indexes",
    ]
    conn = make_connection(holdings_text_fields=["notes"])
    assert conn.get_holdings_text_field_names() == ["notes"]


# ---------------------------------------------------------------------------
# Offline mode
# ---------------------------------------------------------------------------


def test_offline_mode_is_none_when_healthy(make_connection) -> None:
    assert make_connection().get_offline_mode() is None


def test_offline_mode_after_failure_without_failover(make_connection, flaky_driver) -> None:
    conn = make_connection()
    flaky_driver.fail = True
    # The health check failure is absorbed but recorded.
    assert conn.get_offline_mode(health_check=True) == "ils-offline"
    assert conn.breaker.failing is True


@pytest.mark.parametrize("failover", [False, True])
def test_health_check_surfaces_configuration_errors(make_connection, flaky_driver, failover) -> None:
    flaky_driver.init_error = BadConfigError("missing url")
    conn = make_connection(failover=failover)

    with pytest.raises(BadConfigError, match="missing url"):
        conn.get_offline_mode(health_check=True)

    assert conn.breaker.state is CircuitState.closed


def test_offline_mode_comes_from_noils_after_failover(make_connection, flaky_driver) -> None:
    conn = make_connection(failover=True)
    flaky_driver.fail = True
    assert conn.get_offline_mode(health_check=True) == "ils-offline"
    assert conn.get_driver_class() == "NoILS"


# ---------------------------------------------------------------------------
# Caching
# ---------------------------------------------------------------------------


def test_patron_login_is_cached_per_session(make_connection, flaky_driver) -> None:
    conn = make_connection()
    first = conn.call(IlsMethod.patron_login, "jdoe", "secret")
    second = conn.call(IlsMethod.patron_login, "jdoe", "secret")
    assert first == second
    assert flaky_driver.calls.count("patron_login") == 1


def test_none_results_are_cached(make_connection, flaky_driver) -> None:
    conn = make_connection()
    assert conn.call(IlsMethod.patron_login, "jdoe", "wrong") is None
    assert conn.call(IlsMethod.patron_login, "jdoe", "wrong") is None
    assert flaky_driver.calls.count("patron_login") == 1


def test_change_password_clears_session_cache(make_connection, flaky_driver) -> None:
    conn = make_connection()
    conn.call(IlsMethod.patron_login, "jdoe", "secret")
    conn.call(IlsMethod.change_password, {"patron": {"cat_username": "jdoe"}})
    conn.call(IlsMethod.patron_login, "jdoe", "secret")
    assert flaky_driver.calls.count("patron_login") == 2


def test_cache_entries_expire(make_connection, flaky_driver, clock) -> None:
    conn = make_connection()
    conn.get_purchase_history("r1")
    clock.advance(61)
    conn.get_purchase_history("r1")
    assert flaky_driver.calls.count("get_purchase_history") == 2


def test_cache_life_time_can_disable_caching(make_connection, flaky_driver) -> None:
    conn = make_connection()
    conn.set_cache_life_time({"get_purchase_history": 0})
    conn.get_purchase_history("r1")
    conn.get_purchase_history("r1")
    assert flaky_driver.calls.count("get_purchase_history") == 2


def test_uncached_methods_always_reach_driver(make_connection, flaky_driver) -> None:
    conn = make_connection()
    conn.get_status("1")
    conn.get_status("1")
    assert flaky_driver.calls.count("get_status") == 2


# ---------------------------------------------------------------------------
# Normalised lookups
# ---------------------------------------------------------------------------


def test_get_holding_normalises_plain_lists(make_connection) -> None:
    result = make_connection().get_holding("r1")
    assert result["total"] == 2
    assert result["electronic_holdings"] == []
    assert result["page"] == 1
    assert result["item_limit"] is None
    assert all(isinstance(item["availability"], AvailabilityStatus) for item in result["holdings"])


def test_get_holding_pages_with_driver_item_limit(registry, config_reader, clock) -> None:
    registry.register("Demo", Demo)
    config_reader.set(
        "Demo",
        {
            "holdings": {"item_limit": 1},
            "catalog": {
                "r1": [
                    {"id": "r1", "item_id": "a", "availability": True, "status": "", "location": "Main"},
                    {"id": "r1", "item_id": "b", "availability": False, "status": "", "location": "Main"},
                ]
            },
        },
    )
    conn = Connection(IlsConfig(driver="Demo"), registry, config_reader, clock=clock)

    result = conn.get_holding("r1", page=2)

    assert result["total"] == 2
    assert [item["item_id"] for item in result["holdings"]] == ["b"]
    assert result["page"] == 2
    assert result["item_limit"] == 1


def test_get_statuses_parses_each_record(make_connection) -> None:
    statuses = make_connection().get_statuses(["1", "2"])
    assert [status[0]["availability"].is_available() for status in statuses] == [True, False]


def test_get_my_transactions_normalises_list(registry, config_reader, clock) -> None:
    registry.register("Demo", Demo)
    config_reader.set("Demo", {"settings": {"transactions": 2}})
    conn = Connection(IlsConfig(driver="Demo"), registry, config_reader, clock=clock)

    result = conn.get_my_transactions({"id": "p1", "cat_username": "p1"})

    assert result["count"] == 2
    assert len(result["records"]) == 2


def test_get_password_policy(registry, config_reader, clock) -> None:
    registry.register("Demo", Demo)
    conn = Connection(IlsConfig(driver="Demo"), registry, config_reader, clock=clock)
    assert conn.get_password_policy({"id": "p1"}) == {"min_length": 4, "max_length": 20}
