"""
ILS Broker Server Package.

This package exposes the ILS connection over HTTP.

Subpackages:
    api: FastAPI route definitions and endpoint logic.
    core: Server constants.
    exception_handlers: Mapping of ILS errors to HTTP responses.
    services: Dependency providers for the connection and holds logic.
"""
