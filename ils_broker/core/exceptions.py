"""Error types raised by ILS drivers and the connection layer.

Purpose:
- Give callers one base type (`ILSError`) to catch for any ILS failure.
- Separate configuration problems (`BadConfigError`) from runtime failures so
  the connection layer knows which errors may trigger failover.

Usage:
- Drivers raise `ILSError` when the backend misbehaves (timeouts, bad
  responses) and `BadConfigError` when their own settings are unusable.
- The connection raises `MethodNotSupportedError` when the active driver
  cannot serve a call and `ILSOfflineError` when the circuit breaker is open.
"""

from __future__ import annotations

from typing import Any, Optional


class ILSError(Exception):
    """Base error for ILS failures.

    Args:
        message: Human-readable error description.
        details: Optional structured context (e.g. a response body).
    """

    def __init__(self, message: str, *, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.details = details


class BadConfigError(ILSError):
    """Raised when an ILS driver or the connection is misconfigured.

    These errors are never masked by failing over to the NoILS driver; an
    administrator has to fix the configuration.
    """


class DriverNotFoundError(BadConfigError):
    """Raised when a driver name is not known to the registry.

    Args:
        name: The requested driver name.
    """

    def __init__(self, name: str) -> None:
        super().__init__(f"ILS driver missing: {name}")
        self.name = name


class MethodNotSupportedError(ILSError):
    """Raised when the active driver does not implement a requested method.

    Args:
        driver: Registry name of the active driver.
        method: The method that was requested.
    """

    def __init__(self, driver: str, method: str) -> None:
        super().__init__(f"Cannot call method: {driver}::{method}")
        self.driver = driver
        self.method = method


class ILSOfflineError(ILSError):
    """Raised when the circuit breaker is open and no fallback driver is configured."""
