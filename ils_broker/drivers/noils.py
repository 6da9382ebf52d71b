"""NoILS fallback driver.

Used when no ILS is available: either deliberately (a catalog without a
library system behind it) or after the connection layer failed over because
the real ILS broke down. Everything it returns comes from its own
configuration or from the search index through a ``RecordLoader``.

Configuration sections:

- ``settings``: ``use_status`` / ``use_holdings`` (``none``, ``custom`` or
  ``marc``), ``mode`` (offline mode string), ``hide_login``, ``id_prefix``.
- ``status`` / ``holdings``: static values for ``custom`` mode.
- ``marc_status`` / ``marc_holdings``: ``marc_field`` plus the subfield
  mapping for ``marc`` mode.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from .base import ILSDriver, IlsMethod, RecordLoader, capability

_LOGGER = logging.getLogger(__name__)


class NoILS(ILSDriver):
    """Driver that serves offline-mode data instead of talking to an ILS."""

    name = "NoILS"

    def __init__(
        self,
        record_loader: Optional[RecordLoader] = None,
        translator: Optional[Callable[[str], str]] = None,
    ) -> None:
        super().__init__()
        self._record_loader = record_loader
        self._translate = translator or (lambda text: text)

    def init(self) -> None:
        # Nothing to connect to.
        return None

    @capability(IlsMethod.get_config)
    def get_config(self, function: str, params: Any = None) -> Any:
        return self._config.get(function, False)

    def _id_prefix(self) -> str:
        return str(self.section("settings").get("id_prefix") or "")

    def _setting(self, key: str, default: str = "none") -> str:
        return str(self.section("settings").get(key) or default)

    @capability(IlsMethod.get_status)
    def get_status(self, record_id: str) -> List[Dict[str, Any]]:
        use_status = self._setting("use_status")
        if use_status == "custom":
            cfg = self.section("status")
            status = self._translate(cfg.get("status", ""))
            return [
                {
                    "id": record_id,
                    "availability": cfg.get("availability", False),
                    "status": status,
                    "use_unknown_message": bool(cfg.get("use_unknown_message", False)),
                    "status_array": [status],
                    "location": self._translate(cfg.get("location", "")),
                    "reserve": cfg.get("reserve", "N"),
                    "callnumber": self._translate(cfg.get("callnumber", "")),
                }
            ]
        if use_status == "marc":
            return self._formatted_marc_details(record_id, "marc_status")
        return []

    @capability(IlsMethod.get_statuses)
    def get_statuses(self, ids: List[str]) -> List[List[Dict[str, Any]]]:
        if self._setting("use_status") in ("custom", "marc"):
            return [self.get_status(record_id) for record_id in ids]
        return []

    @capability(IlsMethod.get_holding)
    def get_holding(
        self, record_id: str, patron: Optional[Dict[str, Any]] = None, options: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        use_holdings = self._setting("use_holdings")
        if use_holdings == "custom":
            cfg = self.section("holdings")
            return [
                {
                    "id": record_id,
                    "number": self._translate(cfg.get("number", "")),
                    "availability": cfg.get("availability", False),
                    "status": self._translate(cfg.get("status", "")),
                    "use_unknown_message": bool(cfg.get("use_unknown_message", False)),
                    "location": self._translate(cfg.get("location", "")),
                    "reserve": cfg.get("reserve", "N"),
                    "callnumber": self._translate(cfg.get("callnumber", "")),
                    "barcode": cfg.get("barcode", ""),
                    "notes": cfg.get("notes", []),
                    "summary": cfg.get("summary", []),
                }
            ]
        if use_holdings == "marc":
            return self._formatted_marc_details(record_id, "marc_holdings")
        return []

    def _formatted_marc_details(self, record_id: str, section: str) -> List[Dict[str, Any]]:
        spec = self.section(section)
        if not spec or "marc_field" not in spec:
            return []
        if self._record_loader is None:
            _LOGGER.warning("NoILS: %s configured but no record loader available", section)
            return []
        field = spec.pop("marc_field")
        prefix = self._id_prefix()
        result = self._record_loader.get_formatted_marc_details(prefix + record_id, field, spec)
        if not result:
            return []
        result = [dict(row) for row in result]
        # The index knows records by their prefixed id; callers expect the local one.
        first_id = str(result[0].get("id", ""))
        if prefix and first_id.startswith(prefix):
            result[0]["id"] = first_id[len(prefix):]
        return result

    @capability(IlsMethod.has_holdings)
    def has_holdings(self, record_id: str) -> bool:
        use_holdings = str(self.section("settings").get("use_holdings") or "")
        return use_holdings not in ("", "none") and bool(self.get_holding(record_id))

    @capability(IlsMethod.get_purchase_history)
    def get_purchase_history(self, record_id: str) -> List[Dict[str, Any]]:
        return []

    @capability(IlsMethod.get_new_items)
    def get_new_items(self, page: int, limit: int, days_old: int, fund_id: Optional[str] = None) -> List[Any]:
        return []

    @capability(IlsMethod.get_offline_mode)
    def get_offline_mode(self) -> str:
        return str(self.section("settings").get("mode") or "ils-offline")

    @capability(IlsMethod.login_is_hidden)
    def login_is_hidden(self) -> bool:
        return bool(self.section("settings").get("hide_login", False))

    @capability(IlsMethod.patron_login)
    def patron_login(self, username: str, password: str) -> None:
        # Authentication is blocked while offline.
        return None

    @capability(IlsMethod.get_funds)
    def get_funds(self) -> List[Any]:
        return []

    @capability(IlsMethod.get_departments)
    def get_departments(self) -> List[Any]:
        return []

    @capability(IlsMethod.get_instructors)
    def get_instructors(self) -> List[Any]:
        return []

    @capability(IlsMethod.get_courses)
    def get_courses(self) -> List[Any]:
        return []

    @capability(IlsMethod.find_reserves)
    def find_reserves(self, course: str, instructor: str, department: str) -> List[Any]:
        return []
