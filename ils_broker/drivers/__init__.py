"""
ILS drivers.

Each driver adapts one library system to the operations named by
``IlsMethod``. Drivers are looked up by name through ``DriverRegistry``.
"""

from ils_broker.drivers.base import ILSDriver, IlsMethod, RecordLoader, capability
from ils_broker.drivers.config_reader import DriverConfigReader, JsonConfigReader, StaticConfigReader
from ils_broker.drivers.registry import DriverRegistry, build_default_registry, load_entry_point_drivers

__all__ = [
    "DriverConfigReader",
    "DriverRegistry",
    "ILSDriver",
    "IlsMethod",
    "JsonConfigReader",
    "RecordLoader",
    "StaticConfigReader",
    "build_default_registry",
    "capability",
    "load_entry_point_drivers",
]
