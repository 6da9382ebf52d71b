"""
Connection layer.

``Connection`` wraps the configured ILS driver with capability and feature
checks, result caching and circuit-breaker guarded failover to NoILS.
"""

from ils_broker.connection.availability import Availability, AvailabilityStatus, parse_item
from ils_broker.connection.breaker import CircuitBreaker, CircuitState
from ils_broker.connection.cache import CacheStorage, ResultCache
from ils_broker.connection.checks import IlsFeature
from ils_broker.connection.connection import Connection

__all__ = [
    "Availability",
    "AvailabilityStatus",
    "CacheStorage",
    "CircuitBreaker",
    "CircuitState",
    "Connection",
    "IlsFeature",
    "ResultCache",
    "parse_item",
]
