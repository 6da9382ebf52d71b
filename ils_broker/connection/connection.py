"""ILS connection.

``Connection`` is the single entry point callers use to talk to the library
system. It wraps the configured driver and adds:

- capability checks against the driver's capability table,
- feature checks (``check_function``) combining driver configuration with
  broker settings,
- result caching for a few expensive or per-session calls,
- failover to the NoILS driver, guarded by a circuit breaker so a broken ILS
  is not hammered on every request.

Breaker behaviour:

- closed: calls go to the configured driver. A runtime failure is recorded
  and, when ``load_noils_on_failure`` is set, the call is retried once on
  NoILS.
- open: calls go to NoILS when failover is configured, otherwise they fail
  fast with ``ILSOfflineError`` without touching the driver.
- half-open: the next call probes the configured driver again.

Configuration errors (``BadConfigError``) are never failed over or counted:
an administrator has to fix them.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, TypeVar, Union

from ..core.config import DEFAULT_HOLDINGS_TEXT_FIELDS, HoldSettings, IlsConfig
from ..core.exceptions import BadConfigError, DriverNotFoundError, ILSError, ILSOfflineError, MethodNotSupportedError
from ..drivers.base import ILSDriver, IlsMethod
from ..drivers.config_reader import DriverConfigReader
from ..drivers.registry import DriverRegistry
from .availability import parse_item
from .breaker import CircuitBreaker, CircuitState
from .cache import CacheStorage, ResultCache, cache_key, cache_settings
from .checks import FEATURE_CHECKS, IlsFeature

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

NOILS = "NoILS"

# Calls that change patron data invalidate everything cached for the session.
SESSION_CACHE_INVALIDATING_METHODS = frozenset({IlsMethod.change_password})


class Connection:
    """Facade over the configured ILS driver.

    Args:
        config: Connection configuration (driver name, failover, switches).
        registry: Registry used to resolve the driver and NoILS.
        config_reader: Supplies each driver's configuration mapping by name.
        hold_settings: Holds mode settings.
        locale: Locale used to resolve localised help texts.
        session_cache: Cache for per-session results (e.g. patron login).
        shared_cache: Cache for results shared by all users.
        clock: Monotonic clock used by the breaker and caches.

    Raises:
        BadConfigError: If no driver is configured.
        DriverNotFoundError: If the configured driver is not registered.
    """

    def __init__(
        self,
        config: IlsConfig,
        registry: DriverRegistry,
        config_reader: DriverConfigReader,
        *,
        hold_settings: Optional[HoldSettings] = None,
        locale: str = "en",
        session_cache: Optional[ResultCache] = None,
        shared_cache: Optional[ResultCache] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        if not config.driver:
            raise BadConfigError("ILS driver setting missing.")
        if not registry.has(config.driver):
            raise DriverNotFoundError(config.driver)
        self.config = config
        self.locale = locale
        self._registry = registry
        self._config_reader = config_reader
        clock = clock or time.monotonic
        self._session_cache = session_cache if session_cache is not None else ResultCache(clock)
        self._shared_cache = shared_cache if shared_cache is not None else ResultCache(clock)
        self._cache_life_time: Dict[str, int] = dict(config.cache_life_time)
        self.breaker = CircuitBreaker(
            failure_threshold=config.breaker.failure_threshold,
            reset_timeout=config.breaker.reset_timeout,
            clock=clock,
        )
        self._lock = threading.RLock()
        self._driver: Optional[ILSDriver] = None
        self._driver_initialized = False
        self._primary: Optional[ILSDriver] = None
        self._primary_initialized = False
        self._on_fallback = False
        self.set_hold_config(hold_settings or HoldSettings())

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def set_hold_config(self, hold_settings: HoldSettings) -> "Connection":
        self._holds_mode = hold_settings.holds_mode.value
        self._title_holds_mode = hold_settings.title_holds_mode
        return self

    def get_holds_mode(self) -> str:
        return self._holds_mode

    def get_title_holds_mode(self) -> str:
        return self._title_holds_mode

    def set_session_cache(self, cache: ResultCache) -> "Connection":
        """Use ``cache`` for session-scoped results (one cache per user session)."""
        self._session_cache = cache
        return self

    def set_cache_life_time(self, life_times: Mapping[str, int]) -> None:
        """Merge per-method cache life times (seconds) into the current ones."""
        self._cache_life_time.update(life_times)

    # ------------------------------------------------------------------
    # Driver lifecycle and failover
    # ------------------------------------------------------------------

    def get_driver(self, init: bool = True) -> ILSDriver:
        """
        Return the active driver, loading and initialising it on demand.

        Args:
            init: Initialise the driver if that has not happened yet.

        Raises:
            BadConfigError: If the driver configuration is unusable.
            ILSError: If initialisation fails and no failover is possible.
        """
        with self._lock:
            if self._driver is None:
                self.set_driver(self._registry.get(self.config.driver))
                self._primary = self._driver
            if not self._driver_initialized and init:
                try:
                    self._initialize_driver()
                except Exception as exc:
                    # Without failover the caller records the failure.
                    if not self._has_noils_failover() or not self._fail_over_to_noils(exc):
                        raise
            assert self._driver is not None
            return self._driver

    def set_driver(self, driver: ILSDriver, initialized: bool = False) -> None:
        with self._lock:
            self._driver_initialized = initialized
            self._driver = driver

    def get_driver_class(self) -> str:
        """Return the registry name of the active driver without initialising it."""
        return self.get_driver(init=False).name

    def _initialize_driver(self) -> None:
        driver = self._driver
        assert driver is not None
        try:
            driver.set_config(self._config_reader.get(driver.name))
        except BadConfigError:
            raise
        except Exception as exc:
            raise BadConfigError("Failure during configuration.") from exc
        driver.init()
        self._driver_initialized = True
        if driver is self._primary:
            self._primary_initialized = True
        _LOGGER.debug("Connection: initialised driver %s", driver.name)

    def _has_noils_failover(self) -> bool:
        return self.config.load_noils_on_failure

    def _install_noils(self) -> None:
        self.set_driver(self._registry.get(NOILS))
        self._on_fallback = True
        self._initialize_driver()

    def _fail_over_to_noils(self, exc: BaseException) -> bool:
        """Record a runtime failure and switch to NoILS when allowed.

        Returns:
            True when NoILS was installed and the failed call should be retried.
        """
        if isinstance(exc, BadConfigError):
            return False
        with self._lock:
            if not self._on_fallback:
                _LOGGER.warning("Connection: ILS driver %s failed: %s", self.config.driver, exc)
                self.breaker.record_failure()
            if self._has_noils_failover() and not self._on_fallback and self.config.driver != NOILS:
                _LOGGER.warning("Connection: failing over to NoILS")
                self._install_noils()
                return True
        return False

    def _restore_primary(self) -> None:
        with self._lock:
            if self._on_fallback and self._primary is not None:
                _LOGGER.info("Connection: retrying primary driver %s", self._primary.name)
                self.set_driver(self._primary, initialized=self._primary_initialized)
                self._on_fallback = False

    def _guard(self) -> None:
        """Pick the driver for the next call according to the breaker state."""
        # Breaker state and the active driver change together under the lock.
        with self._lock:
            state = self.breaker.state
            if state is CircuitState.open:
                if not self._has_noils_failover():
                    raise ILSOfflineError(f"ILS driver {self.config.driver} is offline; circuit breaker open")
                if not self._on_fallback and self.config.driver != NOILS:
                    self._install_noils()
                return
            if self._on_fallback:
                self._restore_primary()

    def _with_failover(self, fn: Callable[[], T]) -> T:
        self._guard()
        try:
            result = fn()
        except Exception as exc:
            if self._fail_over_to_noils(exc):
                return fn()
            raise
        if not self._on_fallback and (self.breaker.failures or self.breaker.state is not CircuitState.closed):
            self.breaker.record_success()
        return result

    def status(self) -> Dict[str, Any]:
        """Return the breaker and driver state."""
        return {
            "state": self.breaker.state.value,
            "failures": self.breaker.failures,
            "failing": self.breaker.failing,
            "active_driver": self._driver.name if self._driver is not None else None,
            "primary_driver": self.config.driver,
            "on_fallback": self._on_fallback,
        }

    # ------------------------------------------------------------------
    # Capability and feature checks
    # ------------------------------------------------------------------

    def check_capability(
        self, method: Union[IlsMethod, str], params: Sequence[Any] = (), throw: bool = False
    ) -> bool:
        """
        Return True when the active driver can serve ``method`` with ``params``.

        Without NoILS failover the driver's capability table is checked without
        initialising it; with failover the driver is initialised first so the
        check runs against whichever driver will actually answer.

        Raises:
            BadConfigError: If the driver cannot be configured.
            ILSError: Other driver errors, only when ``throw`` is set.
        """
        if not isinstance(method, IlsMethod):
            try:
                method = IlsMethod(method)
            except ValueError:
                return False
        try:
            driver = self.get_driver(init=self._has_noils_failover())
            if driver.implements(method):
                return self.get_driver().supports_method(method, list(params))
        except BadConfigError:
            raise
        except ILSError as exc:
            _LOGGER.error("check_capability(%s) with params: %r failed: %s", method.value, params, exc)
            if throw:
                raise
        return False

    def check_function(self, feature: Union[IlsFeature, str], params: Any = None) -> Any:
        """
        Check whether a feature is available and how to offer it.

        Returns:
            The feature description dict, or False when unavailable.
        """
        try:
            feature = IlsFeature(feature)
        except ValueError:
            return False
        check = FEATURE_CHECKS.get(feature)
        if check is None:
            return False
        try:
            function_config: Any = False
            if self.check_capability(IlsMethod.get_config, [feature.value, params], throw=True):
                function_config = self.get_driver().invoke(IlsMethod.get_config, feature.value, params)
            return check(self, function_config, params)
        except ILSError as exc:
            _LOGGER.error("check_function(%s) with params: %r failed: %s", feature.value, params, exc)
            return False

    def _validity_check(self, method: IlsMethod, default: Any, params: List[Any]) -> Any:
        def attempt() -> Any:
            if self.check_capability(method, params, throw=True):
                return self.get_driver().invoke(method, *params)
            return default

        return self._with_failover(attempt)

    def check_request_is_valid(self, record_id: str, data: Dict[str, Any], patron: Dict[str, Any]) -> Any:
        # Without a driver check every hold is assumed valid; placing it reports problems.
        return self._validity_check(IlsMethod.check_request_is_valid, True, [record_id, data, patron])

    def check_storage_retrieval_request_is_valid(
        self, record_id: str, data: Dict[str, Any], patron: Dict[str, Any]
    ) -> Any:
        return self._validity_check(
            IlsMethod.check_storage_retrieval_request_is_valid, False, [record_id, data, patron]
        )

    def check_ill_request_is_valid(self, record_id: str, data: Dict[str, Any], patron: Dict[str, Any]) -> Any:
        return self._validity_check(IlsMethod.check_ill_request_is_valid, False, [record_id, data, patron])

    # ------------------------------------------------------------------
    # Graceful-degradation helpers
    # ------------------------------------------------------------------

    def get_offline_mode(self, health_check: bool = False) -> Optional[str]:
        """
        Return the offline mode string, or None when the ILS is online.

        Args:
            health_check: Look up ``health_check_id`` first so a broken ILS is
                detected even when nothing else has failed yet.
        """
        if self._has_noils_failover():
            self._guard()
            self.get_driver()
        if health_check:
            try:
                self.get_status(self.config.health_check_id)
            except BadConfigError:
                raise
            except Exception as exc:
                _LOGGER.warning("Connection: health check failed: %s", exc)
        default = "ils-offline" if self.breaker.failing else None
        if self.check_capability(IlsMethod.get_offline_mode):
            return self.get_driver().invoke(IlsMethod.get_offline_mode)
        return default

    def has_holdings(self, record_id: str) -> bool:
        def attempt() -> bool:
            if self.check_capability(IlsMethod.has_holdings, [record_id], throw=True):
                return self.get_driver().invoke(IlsMethod.has_holdings, record_id)
            return True

        return self._with_failover(attempt)

    def login_is_hidden(self) -> bool:
        def attempt() -> bool:
            if self.check_capability(IlsMethod.login_is_hidden, throw=True):
                return self.get_driver().invoke(IlsMethod.login_is_hidden)
            return False

        return self._with_failover(attempt)

    def get_holdings_text_field_names(self) -> List[str]:
        return list(self.config.holdings_text_fields or DEFAULT_HOLDINGS_TEXT_FIELDS)

    def _driver_config(self, function: str, params: Any) -> Any:
        if self.check_capability(IlsMethod.get_config, [function, params]):
            return self.get_driver().invoke(IlsMethod.get_config, function, params)
        return False

    def get_password_policy(self, patron: Dict[str, Any]) -> Any:
        return self._driver_config("change_password", {"patron": patron})

    # ------------------------------------------------------------------
    # Normalised lookups
    # ------------------------------------------------------------------

    def get_my_transactions(self, patron: Dict[str, Any], params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        result = self.call(IlsMethod.get_my_transactions, patron, params or {})
        if isinstance(result, Mapping) and "count" in result:
            return dict(result)
        records = list(result or [])
        return {"count": len(records), "records": records}

    def get_holding(
        self,
        record_id: str,
        patron: Optional[Dict[str, Any]] = None,
        options: Optional[Dict[str, Any]] = None,
        page: int = 1,
    ) -> Dict[str, Any]:
        """
        Return holdings for a record with paging details.

        The page size comes from the driver's ``holdings`` configuration,
        falling back to its ``holds`` configuration.

        Returns:
            Dict with ``total``, ``holdings``, ``electronic_holdings``, ``page``
            and ``item_limit``; availability values are parsed.
        """
        params = {"id": record_id, "patron": patron}
        config = self._driver_config("holdings", params) or {}
        if not config.get("item_limit"):
            config = self._driver_config("holds", params) or {}
        item_limit = config.get("item_limit") or None
        offset = None
        if item_limit is not None and str(item_limit).isdigit():
            item_limit = int(item_limit)
            offset = page * item_limit - item_limit
        final_options: Dict[str, Any] = {"page": page, "item_limit": item_limit, "offset": offset}
        final_options.update(options or {})

        holdings = self.call(IlsMethod.get_holding, record_id, patron, final_options)
        if isinstance(holdings, Mapping) and "holdings" in holdings:
            result = dict(holdings)
            result.setdefault("total", len(result["holdings"]))
            result.setdefault("electronic_holdings", [])
        else:
            rows = list(holdings or [])
            result = {"total": len(rows), "holdings": rows, "electronic_holdings": []}
        result["holdings"] = [parse_item(item) for item in result["holdings"]]
        result["electronic_holdings"] = [parse_item(item) for item in result["electronic_holdings"]]
        result["page"] = final_options["page"]
        result["item_limit"] = final_options["item_limit"]
        return result

    def get_status(self, record_id: str) -> List[Dict[str, Any]]:
        return [parse_item(item) for item in self.call(IlsMethod.get_status, record_id) or []]

    def get_statuses(self, ids: Sequence[str]) -> List[List[Dict[str, Any]]]:
        statuses = self.call(IlsMethod.get_statuses, list(ids)) or []
        return [[parse_item(item) for item in status] for status in statuses]

    # ------------------------------------------------------------------
    # Generic dispatch
    # ------------------------------------------------------------------

    def call_ils_with_failover(self, method: IlsMethod, params: Sequence[Any]) -> Any:
        """
        Call ``method`` on the active driver, failing over to NoILS on errors.

        Raises:
            MethodNotSupportedError: If the active driver cannot serve the call.
            ILSOfflineError: If the breaker is open and no failover is set up.
        """
        params = list(params)

        def attempt() -> Tuple[bool, Any]:
            if self.check_capability(method, params, throw=True):
                return True, self.get_driver().invoke(method, *params)
            return False, None

        supported, result = self._with_failover(attempt)
        if not supported:
            raise MethodNotSupportedError(self.get_driver_class(), method.value)
        return result

    def _cache_for(self, storage: CacheStorage) -> ResultCache:
        return self._shared_cache if storage is CacheStorage.shared else self._session_cache

    def call(self, method: Union[IlsMethod, str], *args: Any) -> Any:
        """
        Call a driver method by name with caching and failover.

        Raises:
            MethodNotSupportedError: For unknown or unsupported methods.
        """
        if not isinstance(method, IlsMethod):
            try:
                method = IlsMethod(method)
            except ValueError:
                raise MethodNotSupportedError(self.get_driver_class(), str(method)) from None

        storage, life_time = cache_settings(method, self._cache_life_time)
        key = cache_key(method, args) if storage is not None and life_time > 0 else None
        if key is not None and storage is not None:
            entry = self._cache_for(storage).get(key)
            if entry is not None:
                return entry.value

        if method in SESSION_CACHE_INVALIDATING_METHODS:
            self._session_cache.clear()

        data = self.call_ils_with_failover(method, args)
        if key is not None and storage is not None:
            self._cache_for(storage).set(key, data, life_time)
        return data

    def __getattr__(self, name: str) -> Callable[..., Any]:
        # Lets callers write ``conn.get_my_holds(patron)`` for any driver method.
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            method = IlsMethod(name)
        except ValueError:
            raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}") from None
        return lambda *args: self.call(method, *args)
