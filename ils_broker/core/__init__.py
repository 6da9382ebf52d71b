"""
Core utilities and configuration for ils_broker.

This package provides the shared building blocks used by drivers, the
connection layer and the HTTP service: logging configuration, settings and
the exception hierarchy.
"""

from ils_broker.core.logging_config import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
