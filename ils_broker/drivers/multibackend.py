"""Multi-backend routing driver.

Lets one catalog talk to several library systems. Record ids and patron
``cat_username`` values carry a ``<source>.`` prefix (``"main.12345"``); the
prefix picks the sub-driver and is stripped before the call and added back to
ids in the result.

Configuration:

- ``drivers``: ``{source: driver_name}``. Each sub-driver is configured from
  the reader entry named after its *source*.
- ``default_driver``: source used when a call carries no usable prefix.
- ``login``: ``drivers`` (sources offered at login) and ``default_driver``.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from ..core.exceptions import BadConfigError, ILSError
from .base import ILSDriver, IlsMethod, capability
from .config_reader import DriverConfigReader
from .demo import Demo

_LOGGER = logging.getLogger(__name__)

ID_FIELDS = ("id", "cat_username")
NO_DRIVER_MESSAGE = "No suitable backend driver found"

# Methods whose source is decided by the patron only, never by a record id.
SOURCE_CHECK_FIELDS: Dict[IlsMethod, Sequence[Any]] = {
    method: ("cat_username",)
    for method in (
        IlsMethod.cancel_holds,
        IlsMethod.cancel_ill_requests,
        IlsMethod.cancel_storage_retrieval_requests,
        IlsMethod.change_password,
        IlsMethod.get_cancel_hold_details,
        IlsMethod.get_cancel_ill_request_details,
        IlsMethod.get_cancel_storage_retrieval_request_details,
        IlsMethod.get_my_fines,
        IlsMethod.get_my_profile,
        IlsMethod.get_my_transaction_history,
        IlsMethod.get_my_transactions,
        IlsMethod.renew_my_items,
    )
}

# Methods without a parameter that identifies a source; only the default driver serves them.
NO_SOURCE_METHODS = frozenset(
    {
        IlsMethod.find_reserves,
        IlsMethod.get_courses,
        IlsMethod.get_departments,
        IlsMethod.get_funds,
        IlsMethod.get_instructors,
        IlsMethod.get_new_items,
        IlsMethod.get_offline_mode,
        IlsMethod.get_suppressed_authority_records,
        IlsMethod.get_suppressed_records,
        IlsMethod.login_is_hidden,
    }
)


def get_source(value: str) -> str:
    """Return the source prefix of ``value`` or ``""`` when it has none."""
    pos = value.find(".")
    return value[:pos] if pos > 0 else ""


def get_local_id(value: str) -> str:
    """Return ``value`` without its source prefix."""
    pos = value.find(".")
    if pos > 0:
        return value[pos + 1 :]
    _LOGGER.debug("Could not find local id in '%s'", value)
    return value


def add_id_prefixes(data: Any, source: str, fields: Iterable[str] = ID_FIELDS) -> Any:
    """Prefix every ``id``/``cat_username`` value in nested dicts and lists."""
    fields = tuple(fields)
    if not source or not data:
        return data
    if isinstance(data, Mapping):
        result = {}
        for key, value in data.items():
            if isinstance(value, (Mapping, list)):
                result[key] = add_id_prefixes(value, source, fields)
            elif key in fields and value is not None and value != "":
                result[key] = f"{source}.{value}"
            else:
                result[key] = value
        return result
    if isinstance(data, list):
        return [add_id_prefixes(value, source, fields) for value in data]
    return data


def strip_id_prefixes(
    data: Any,
    source: str,
    fields: Iterable[str] = ID_FIELDS,
    ignore_fields: Iterable[str] = (),
) -> Any:
    """Remove the ``<source>.`` prefix from ids in nested data.

    A bare string is stripped directly. Inside containers only keys named in
    ``fields`` are touched; plain list elements are left as they are.
    """
    fields = tuple(fields)
    ignore_fields = tuple(ignore_fields)
    prefix = f"{source}."
    if not data:
        return data
    if isinstance(data, str):
        return data[len(prefix) :] if data.startswith(prefix) else data
    if isinstance(data, Mapping):
        result = {}
        for key, value in data.items():
            if isinstance(value, (Mapping, list)):
                result[key] = value if key in ignore_fields else strip_id_prefixes(value, source, fields)
            elif key in fields and isinstance(value, str) and value.startswith(prefix):
                result[key] = value[len(prefix) :]
            else:
                result[key] = value
        return result
    if isinstance(data, list):
        return [
            strip_id_prefixes(value, source, fields) if isinstance(value, (Mapping, list)) else value
            for value in data
        ]
    return data


def _routed(method: IlsMethod) -> Callable[..., Any]:
    """Build a pass-through implementation of ``method``."""

    @capability(method)
    def call(self: "MultiBackend", *args: Any) -> Any:
        return self._call_method_if_supported(None, method, list(args))

    call.__name__ = method.value
    call.__doc__ = f"Route ``{method.value}`` to the sub-driver owning the call's source."
    return call


def _default_only(method: IlsMethod) -> Callable[..., Any]:
    """Build an implementation of ``method`` served by the default driver."""

    @capability(method)
    def call(self: "MultiBackend", *args: Any) -> Any:
        return self._call_method_if_supported(self._default_driver or "", method, list(args), add_prefixes=False)

    call.__name__ = method.value
    return call


class MultiBackend(ILSDriver):
    """Driver that routes each call to a per-source sub-driver."""

    name = "MultiBackend"

    def __init__(self, registry: Any, config_reader: DriverConfigReader) -> None:
        super().__init__()
        self._registry = registry
        self._config_reader = config_reader
        self._drivers: Dict[str, str] = {}
        self._default_driver: Optional[str] = None
        self._instances: Dict[str, ILSDriver] = {}

    def init(self) -> None:
        drivers = self._config.get("drivers", {})
        if not isinstance(drivers, Mapping):
            raise BadConfigError("MultiBackend 'drivers' must map sources to driver names")
        if self.name in drivers.values():
            raise BadConfigError("MultiBackend cannot use itself as a sub-driver")
        self._drivers = {str(source): str(driver) for source, driver in drivers.items()}
        self._default_driver = self._config.get("default_driver") or None
        self._instances = {}
        if not self._drivers:
            _LOGGER.warning("MultiBackend: no drivers configured")

    # ------------------------------------------------------------------
    # Sub-driver resolution
    # ------------------------------------------------------------------

    def get_driver(self, source: Optional[str]) -> Optional[ILSDriver]:
        """Return the initialised driver for ``source`` (default driver when empty)."""
        if not source and self._default_driver:
            _LOGGER.debug("MultiBackend: using default driver %s", self._default_driver)
            source = self._default_driver
        if not source or source not in self._drivers:
            return None
        if source not in self._instances:
            driver = self._registry.create(self._drivers[source])
            try:
                driver.set_config(self._config_reader.get(source))
                driver.init()
            except Exception:
                _LOGGER.exception("MultiBackend: failed to initialise driver for source %s", source)
                return None
            self._instances[source] = driver
        return self._instances[source]

    def _source_from_params(self, params: Any, allowed_keys: Sequence[Any] = (0, "id", "cat_username")) -> str:
        if isinstance(params, str):
            source = get_source(params)
            return source if source in self._drivers else ""
        if isinstance(params, Mapping):
            items: Iterable = params.items()
        elif isinstance(params, (list, tuple)):
            items = enumerate(params)
        else:
            return ""
        for key, value in items:
            source = ""
            if isinstance(value, (Mapping, list)) and (isinstance(key, int) or key == "patron"):
                source = self._source_from_params(value, allowed_keys)
            elif key in allowed_keys and isinstance(value, str):
                source = get_source(value)
            if source and source in self._drivers:
                return source
        return ""

    def _source_for_method(self, method: IlsMethod, params: Sequence[Any]) -> str:
        check_fields = SOURCE_CHECK_FIELDS.get(method)
        if check_fields:
            return self._source_from_params(list(params), check_fields)
        return self._source_from_params(list(params))

    def _driver_supports_source(self, source: str, value: str) -> bool:
        if get_source(value) == source:
            return True
        # The demo driver serves records from any source.
        return isinstance(self.get_driver(source), Demo)

    def supports_method(self, method: IlsMethod, params: Sequence[Any]) -> bool:
        if method in (IlsMethod.get_login_drivers, IlsMethod.get_default_login_driver):
            return True
        source = self._source_for_method(method, params) or self._default_driver
        if not source:
            return method not in NO_SOURCE_METHODS
        driver = self.get_driver(source)
        return driver is not None and driver.implements(method) and driver.supports_method(method, params)

    def _call_method_if_supported(
        self,
        source: Optional[str],
        method: IlsMethod,
        params: List[Any],
        strip_prefixes: bool = True,
        add_prefixes: bool = True,
    ) -> Any:
        if source is None:
            source = self._source_for_method(method, params)
        driver = self.get_driver(source)
        if driver is not None:
            if strip_prefixes and method is IlsMethod.patron_login:
                # Only the username carries a source prefix; passwords go through as typed.
                params = [strip_id_prefixes(params[0], source), *params[1:]] if params else params
            elif strip_prefixes:
                params = [strip_id_prefixes(param, source) for param in params]
            if driver.implements(method) and driver.supports_method(method, params):
                result = driver.invoke(method, *params)
                return add_id_prefixes(result, source) if add_prefixes else result
        raise ILSError(NO_DRIVER_MESSAGE)

    # ------------------------------------------------------------------
    # Record lookups: unknown sources yield empty results
    # ------------------------------------------------------------------

    @capability(IlsMethod.get_status)
    def get_status(self, record_id: str) -> List[Dict[str, Any]]:
        source = get_source(record_id)
        driver = self.get_driver(source)
        if driver is None:
            return []
        return add_id_prefixes(driver.invoke(IlsMethod.get_status, get_local_id(record_id)), source)

    @capability(IlsMethod.get_statuses)
    def get_statuses(self, ids: List[str]) -> List[List[Dict[str, Any]]]:
        grouped: Dict[str, List[str]] = {}
        for record_id in ids:
            grouped.setdefault(get_source(record_id), []).append(record_id)

        results: List[List[Dict[str, Any]]] = []
        for source, source_ids in grouped.items():
            driver = self.get_driver(source)
            if driver is None:
                continue
            local_ids = [get_local_id(record_id) for record_id in source_ids]
            try:
                statuses = driver.invoke(IlsMethod.get_statuses, local_ids)
            except ILSError as exc:
                _LOGGER.warning("MultiBackend: get_statuses failed for source %s: %s", source, exc)
                statuses = [[{"id": local_id, "error": "An error has occurred"}] for local_id in local_ids]
            results.extend(add_id_prefixes(status, source) for status in statuses)
        return results

    @capability(IlsMethod.get_holding)
    def get_holding(
        self, record_id: str, patron: Optional[Dict[str, Any]] = None, options: Optional[Dict[str, Any]] = None
    ) -> Any:
        source = get_source(record_id)
        driver = self.get_driver(source)
        if driver is None:
            return []
        if patron and not self._driver_supports_source(source, str(patron.get("cat_username", ""))):
            # Logged in, but not a patron of this catalog.
            patron = {}
        holdings = driver.invoke(
            IlsMethod.get_holding,
            get_local_id(record_id),
            strip_id_prefixes(patron, source),
            options or {},
        )
        return add_id_prefixes(holdings, source)

    @capability(IlsMethod.get_purchase_history)
    def get_purchase_history(self, record_id: str) -> List[Dict[str, Any]]:
        driver = self.get_driver(get_source(record_id))
        if driver is None:
            return []
        return driver.invoke(IlsMethod.get_purchase_history, get_local_id(record_id))

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    @capability(IlsMethod.get_login_drivers)
    def get_login_drivers(self) -> List[str]:
        return list(self.section("login").get("drivers") or [])

    @capability(IlsMethod.get_default_login_driver)
    def get_default_login_driver(self) -> str:
        login = self.section("login")
        if login.get("default_driver"):
            return str(login["default_driver"])
        drivers = self.get_login_drivers()
        return drivers[0] if drivers else ""

    @capability(IlsMethod.get_config)
    def get_config(self, function: str, params: Any = None) -> Any:
        source = self._source_from_params(params) if params else ""
        driver = self.get_driver(source)
        if driver is None or not driver.implements(IlsMethod.get_config):
            return {}
        source = source or self._default_driver or ""
        return driver.invoke(IlsMethod.get_config, function, strip_id_prefixes(params, source))

    # ------------------------------------------------------------------
    # Everything else routes by source
    # ------------------------------------------------------------------

    patron_login = _routed(IlsMethod.patron_login)
    get_my_profile = _routed(IlsMethod.get_my_profile)
    get_my_fines = _routed(IlsMethod.get_my_fines)
    get_my_transactions = _routed(IlsMethod.get_my_transactions)
    get_my_transaction_history = _routed(IlsMethod.get_my_transaction_history)
    purge_transaction_history = _routed(IlsMethod.purge_transaction_history)
    get_proxied_users = _routed(IlsMethod.get_proxied_users)
    get_proxying_users = _routed(IlsMethod.get_proxying_users)
    get_request_blocks = _routed(IlsMethod.get_request_blocks)
    get_account_blocks = _routed(IlsMethod.get_account_blocks)
    change_password = _routed(IlsMethod.change_password)
    get_my_holds = _routed(IlsMethod.get_my_holds)
    place_hold = _routed(IlsMethod.place_hold)
    update_holds = _routed(IlsMethod.update_holds)
    cancel_holds = _routed(IlsMethod.cancel_holds)
    get_cancel_hold_details = _routed(IlsMethod.get_cancel_hold_details)
    get_cancel_hold_link = _routed(IlsMethod.get_cancel_hold_link)
    get_hold_link = _routed(IlsMethod.get_hold_link)
    get_pickup_locations = _routed(IlsMethod.get_pickup_locations)
    get_default_pickup_location = _routed(IlsMethod.get_default_pickup_location)
    check_request_is_valid = _routed(IlsMethod.check_request_is_valid)
    renew_my_items = _routed(IlsMethod.renew_my_items)
    renew_my_items_link = _routed(IlsMethod.renew_my_items_link)
    get_renew_details = _routed(IlsMethod.get_renew_details)
    get_my_storage_retrieval_requests = _routed(IlsMethod.get_my_storage_retrieval_requests)
    place_storage_retrieval_request = _routed(IlsMethod.place_storage_retrieval_request)
    check_storage_retrieval_request_is_valid = _routed(IlsMethod.check_storage_retrieval_request_is_valid)
    cancel_storage_retrieval_requests = _routed(IlsMethod.cancel_storage_retrieval_requests)
    get_cancel_storage_retrieval_request_details = _routed(IlsMethod.get_cancel_storage_retrieval_request_details)
    get_cancel_storage_retrieval_request_link = _routed(IlsMethod.get_cancel_storage_retrieval_request_link)
    get_my_ill_requests = _routed(IlsMethod.get_my_ill_requests)
    place_ill_request = _routed(IlsMethod.place_ill_request)
    check_ill_request_is_valid = _routed(IlsMethod.check_ill_request_is_valid)
    cancel_ill_requests = _routed(IlsMethod.cancel_ill_requests)
    get_cancel_ill_request_details = _routed(IlsMethod.get_cancel_ill_request_details)
    get_cancel_ill_request_link = _routed(IlsMethod.get_cancel_ill_request_link)
    get_ill_pickup_libraries = _routed(IlsMethod.get_ill_pickup_libraries)
    get_ill_pickup_locations = _routed(IlsMethod.get_ill_pickup_locations)

    get_new_items = _default_only(IlsMethod.get_new_items)
    get_funds = _default_only(IlsMethod.get_funds)
    get_departments = _default_only(IlsMethod.get_departments)
    get_instructors = _default_only(IlsMethod.get_instructors)
    get_courses = _default_only(IlsMethod.get_courses)
    find_reserves = _default_only(IlsMethod.find_reserves)
    get_suppressed_records = _default_only(IlsMethod.get_suppressed_records)
    get_suppressed_authority_records = _default_only(IlsMethod.get_suppressed_authority_records)
