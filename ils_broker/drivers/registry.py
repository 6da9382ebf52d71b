"""Driver registry.

The registry maps a driver name (e.g. ``"Demo"``, ``"NoILS"``) to a factory
that builds the driver. The connection layer resolves its configured driver
and the NoILS fallback through this registry.

Two sources of drivers are supported:

* The in-repo drivers registered by ``build_default_registry``.
* External packages that expose a factory via the ``ils_broker.drivers``
  entry-point group. Broken plugins are logged and skipped; they never
  prevent the built-in drivers from loading.
"""

from __future__ import annotations

import logging
from importlib import metadata
from typing import Callable, Dict, Iterable, List, Optional

import httpx

from ..core.exceptions import DriverNotFoundError
from .base import ILSDriver, RecordLoader
from .config_reader import DriverConfigReader

_LOGGER = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "ils_broker.drivers"

DriverFactory = Callable[[], ILSDriver]


class DriverRegistry:
    """
    In-memory mapping of driver names to factories.

    Notes:
        - ``register`` overwrites any existing factory and drops a cached
          instance for the same name.
        - ``get`` returns one shared instance per name; ``create`` always
          builds a new one.
        - Unknown names raise ``DriverNotFoundError``.
    """

    def __init__(self) -> None:
        self._factories: Dict[str, DriverFactory] = {}
        self._instances: Dict[str, ILSDriver] = {}

    def register(self, name: str, factory: DriverFactory) -> None:
        """
        Register a driver factory.

        Args:
            name: The driver name used in configuration.
            factory: Zero-argument callable returning a new driver.
        """
        self._factories[name] = factory
        self._instances.pop(name, None)

    def has(self, name: str) -> bool:
        return name in self._factories

    def names(self) -> List[str]:
        return sorted(self._factories)

    def create(self, name: str) -> ILSDriver:
        """
        Build a fresh driver instance.

        Raises:
            DriverNotFoundError: If no factory is registered for ``name``.
        """
        try:
            factory = self._factories[name]
        except KeyError:
            raise DriverNotFoundError(name) from None
        return factory()

    def get(self, name: str) -> ILSDriver:
        """
        Return the shared driver instance for ``name``, creating it on first use.

        Raises:
            DriverNotFoundError: If no factory is registered for ``name``.
        """
        if name not in self._instances:
            self._instances[name] = self.create(name)
        return self._instances[name]


def _iter_entry_points(group: str) -> Iterable[metadata.EntryPoint]:
    """Return entry points for ``group``.

    Kept as a separate function so tests can control which plugins are seen.
    """
    return metadata.entry_points().select(group=group)


def load_entry_point_drivers(registry: DriverRegistry) -> List[str]:
    """
    Register drivers published through the ``ils_broker.drivers`` entry points.

    Each entry point must load to a zero-argument factory (usually the driver
    class itself). Plugins that fail to import are logged and skipped.

    Returns:
        The names that were registered.
    """
    loaded: List[str] = []
    for ep in _iter_entry_points(ENTRY_POINT_GROUP):
        try:
            factory = ep.load()
        except Exception as exc:
            _LOGGER.warning(
                "DriverRegistry: failed to load driver plugin; name=%s error=%s",
                ep.name,
                type(exc).__name__,
            )
            continue
        if not callable(factory):
            _LOGGER.warning("DriverRegistry: entry point %s is not callable; skipping", ep.name)
            continue
        registry.register(ep.name, factory)
        loaded.append(ep.name)
    return loaded


def build_default_registry(
    config_reader: DriverConfigReader,
    *,
    record_loader: Optional[RecordLoader] = None,
    http_client: Optional[httpx.Client] = None,
    translator: Optional[Callable[[str], str]] = None,
    load_plugins: bool = False,
) -> DriverRegistry:
    """
    Build a registry holding the bundled drivers.

    Args:
        config_reader: Reader used by MultiBackend to configure its sub-drivers.
        record_loader: Optional index lookup used by NoILS MARC modes.
        http_client: Optional shared client for HTTP based drivers.
        translator: Optional callable used to translate display strings.
        load_plugins: Also register drivers from entry points.
    """
    from .daia import DAIA
    from .demo import Demo
    from .multibackend import MultiBackend
    from .noils import NoILS

    registry = DriverRegistry()
    registry.register(NoILS.name, lambda: NoILS(record_loader=record_loader, translator=translator))
    registry.register(Demo.name, Demo)
    registry.register(DAIA.name, lambda: DAIA(http_client=http_client))
    registry.register(MultiBackend.name, lambda: MultiBackend(registry, config_reader))
    if load_plugins:
        load_entry_point_drivers(registry)
    return registry
