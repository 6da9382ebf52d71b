"""Driver configuration readers.

Each driver is configured by a mapping of sections (``{"settings": {...},
"holds": {...}}``). The connection asks a reader for the mapping that belongs
to the driver's registry name.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Protocol, Union, runtime_checkable

from ..core.exceptions import BadConfigError

_LOGGER = logging.getLogger(__name__)


@runtime_checkable
class DriverConfigReader(Protocol):
    """Protocol for objects that supply per-driver configuration."""

    def get(self, name: str) -> Dict[str, Any]:
        """Return the configuration mapping for driver ``name`` (empty when unset)."""
        ...


class JsonConfigReader:
    """Read ``<directory>/<name>.json`` files.

    Missing files yield an empty mapping; unreadable or malformed files raise
    ``BadConfigError`` so that they are never mistaken for a runtime outage.
    """

    def __init__(self, directory: Union[str, Path]) -> None:
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def get(self, name: str) -> Dict[str, Any]:
        path = self._directory / f"{name}.json"
        if not path.is_file():
            _LOGGER.debug("No driver configuration file at %s", path)
            return {}
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise BadConfigError(f"Cannot read driver configuration {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise BadConfigError(f"Driver configuration {path} must contain a JSON object")
        return data


class StaticConfigReader:
    """In-memory reader, handy for embedding and tests."""

    def __init__(self, configs: Optional[Mapping[str, Mapping[str, Any]]] = None) -> None:
        self._configs: Dict[str, Dict[str, Any]] = {k: dict(v) for k, v in (configs or {}).items()}

    def set(self, name: str, config: Mapping[str, Any]) -> None:
        self._configs[name] = dict(config)

    def get(self, name: str) -> Dict[str, Any]:
        return dict(self._configs.get(name, {}))
