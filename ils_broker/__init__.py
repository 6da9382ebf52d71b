"""ILS Broker.

This package puts a single, resilient interface in front of Integrated Library
Systems (ILS). A catalog front-end asks the broker for item availability,
holdings and patron account data; the broker dispatches each request to a
pluggable driver and keeps serving degraded answers when the library system
misbehaves.

High-level architecture
-----------------------

- ``ils_broker.drivers``:

  - The driver interface with a typed capability table (``IlsMethod``).
  - Bundled drivers: ``Demo``, ``DAIA``, ``MultiBackend`` and the ``NoILS``
    offline fallback.
  - A registry that also discovers third-party drivers via entry points.

- ``ils_broker.connection``:

  - The ``Connection`` facade: capability and feature checks, result caching
    and failover to NoILS guarded by a circuit breaker.
  - Availability status parsing.

- ``ils_broker.logic``:

  - Holdings presentation and signed hold/request link generation.

- ``ils_broker.server``:

  - A FastAPI service exposing the connection over HTTP.

Typical workflow
----------------

1. Build a ``DriverRegistry`` with ``build_default_registry``.
2. Create a ``Connection`` from ``IlsConfig`` and a driver config reader.
3. Call ``Connection.get_status`` / ``get_holding`` / ``call``; failures of
   the configured ILS are absorbed by the breaker and the NoILS fallback.
"""

__version__ = "0.1.0"
