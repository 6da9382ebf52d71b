"""Holdings presentation and request links.

``HoldLogic`` turns the connection's raw holdings into location groups ready
for display and decides, per copy, whether to offer a hold, a storage
retrieval request or an ILL request link. Request links carry a signature
over the configured ``hmac_keys`` so the request form can trust them.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence
from urllib.parse import quote_plus

from ..connection.availability import AvailabilityStatus
from ..connection.checks import IlsFeature
from ..connection.connection import Connection
from ..core.config import IlsConfig
from ..drivers.base import IlsMethod

_LOGGER = logging.getLogger(__name__)

DEFAULT_SEARCH_BACKEND = "Solr"


class RequestSigner:
    """Sign and verify request details with HMAC-SHA256."""

    def __init__(self, secret: str) -> None:
        if not secret:
            raise ValueError("RequestSigner needs a non-empty secret")
        self._secret = secret.encode("utf-8")

    def generate(self, keys: Sequence[str], details: Mapping[str, Any]) -> str:
        payload = "".join(f"{key}={self._value(details.get(key))}|" for key in keys)
        return hmac.new(self._secret, payload.encode("utf-8"), hashlib.sha256).hexdigest()

    def verify(self, keys: Sequence[str], details: Mapping[str, Any], signature: str) -> bool:
        return hmac.compare_digest(self.generate(keys, details), signature)

    @staticmethod
    def _value(value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, AvailabilityStatus):
            return str(int(value.availability))
        return str(value)


class HoldLogic:
    """Build grouped holdings with hold and request links."""

    def __init__(self, connection: Connection, signer: RequestSigner, config: IlsConfig) -> None:
        self.connection = connection
        self.signer = signer
        self.config = config
        self.hide_holdings: List[str] = list(config.hide_holdings)

    def get_suppressed_locations(self) -> List[str]:
        return list(self.hide_holdings)

    def get_holdings(
        self,
        record_id: str,
        patron: Optional[Dict[str, Any]] = None,
        options: Optional[Dict[str, Any]] = None,
        page: int = 1,
    ) -> Dict[str, Any]:
        """
        Return holdings for ``record_id`` grouped for display.

        Args:
            record_id: Record id.
            patron: Logged-in patron, if any; needed for patron-specific links.
            options: Extra options passed to the driver.
            page: Holdings page.

        Returns:
            The connection's holdings result with ``holdings`` replaced by the
            formatted groups and ``blocks`` set to the patron's request blocks.
        """
        hold_config = self.connection.check_function(IlsFeature.holds, {"id": record_id, "patron": patron})
        result = self.connection.get_holding(record_id, patron, options, page=page)

        blocks: Any = False
        if patron and self.connection.check_capability(IlsMethod.get_request_blocks, [{"patron": patron}]):
            blocks = self.connection.call(IlsMethod.get_request_blocks, patron)
        blocked = bool(blocks)

        mode = self.connection.get_holds_mode()
        if mode == "disabled":
            holdings = self._standard_holdings(result)
        elif mode == "driver":
            holdings = self._driver_holdings(result, hold_config, blocked)
        else:
            holdings = self._generate_holdings(result, mode, hold_config)

        holdings = self._process_requests(
            holdings,
            record_id,
            patron,
            blocked,
            feature=IlsFeature.storage_retrieval_requests,
            flag="add_storage_retrieval_request_link",
            link_key="storage_retrieval_request_link",
            action="StorageRetrievalRequest",
        )
        holdings = self._process_requests(
            holdings,
            record_id,
            patron,
            blocked,
            feature=IlsFeature.ill_requests,
            flag="add_ill_request_link",
            link_key="ill_request_link",
            action="ILLRequest",
        )

        result = dict(result)
        result["blocks"] = blocks
        result["holdings"] = self.format_holdings(holdings)
        return result

    def _visible(self, copy: Mapping[str, Any]) -> bool:
        return copy.get("location") not in self.hide_holdings

    def _standard_holdings(self, result: Mapping[str, Any]) -> Dict[str, List[Dict[str, Any]]]:
        holdings: Dict[str, List[Dict[str, Any]]] = {}
        for copy in result.get("holdings") or []:
            if self._visible(copy):
                holdings.setdefault(self.get_holdings_group_key(copy), []).append(dict(copy))
        return holdings

    def _driver_holdings(
        self, result: Mapping[str, Any], hold_config: Any, requests_blocked: bool
    ) -> Dict[str, List[Dict[str, Any]]]:
        holdings: Dict[str, List[Dict[str, Any]]] = {}
        for original in result.get("holdings") or []:
            if not self._visible(original):
                continue
            copy = dict(original)
            if hold_config and not requests_blocked and copy.get("add_link") and copy.get("is_holdable", True):
                copy["link"] = self.get_request_details(copy, hold_config.get("hmac_keys", []), "Hold")
                copy["link_lightbox"] = True
                # "check" means the UI has to confirm hold options later.
                copy["check"] = copy.get("add_link") == "check"
            holdings.setdefault(self.get_holdings_group_key(copy), []).append(copy)
        return holdings

    def _generate_holdings(
        self, result: Mapping[str, Any], mode: str, hold_config: Any
    ) -> Dict[str, List[Dict[str, Any]]]:
        holdings = self._standard_holdings(result)
        any_available = any(
            self._is_available(copy) for copies in holdings.values() for copy in copies
        )
        if not hold_config:
            return holdings

        for copies in holdings.values():
            for copy in copies:
                current = mode
                if self.config.allow_holds_override and "hold_override" in copy:
                    current = copy["hold_override"]
                available = self._is_available(copy)
                if current == "all":
                    add_link = True
                elif current == "holds":
                    add_link = available
                elif current == "recalls":
                    add_link = not available
                elif current == "availability":
                    add_link = not available and not any_available
                else:
                    add_link = False
                if not add_link or not copy.get("is_holdable", True):
                    continue
                if hold_config.get("function") == "get_hold_link":
                    copy["link"] = self.connection.call(IlsMethod.get_hold_link, copy["id"], copy)
                    copy["link_lightbox"] = False
                else:
                    copy["link"] = self.get_request_details(copy, hold_config.get("hmac_keys", []), "Hold")
                    copy["link_lightbox"] = True
        return holdings

    @staticmethod
    def _is_available(copy: Mapping[str, Any]) -> bool:
        availability = copy.get("availability")
        if isinstance(availability, AvailabilityStatus):
            return availability.is_available()
        return bool(availability)

    def _process_requests(
        self,
        holdings: Dict[str, List[Dict[str, Any]]],
        record_id: str,
        patron: Optional[Dict[str, Any]],
        requests_blocked: bool,
        *,
        feature: IlsFeature,
        flag: str,
        link_key: str,
        action: str,
    ) -> Dict[str, List[Dict[str, Any]]]:
        request_config = self.connection.check_function(feature, {"id": record_id, "patron": patron})
        if not request_config:
            return holdings
        for copies in holdings.values():
            for copy in copies:
                if requests_blocked or not copy.get(flag):
                    continue
                copy[link_key] = self.get_request_details(copy, request_config.get("hmac_keys", []), action)
                copy[f"check_{link_key}"] = copy[flag] == "check"
        return holdings

    def get_request_details(self, details: Mapping[str, Any], hmac_keys: Sequence[str], action: str) -> Dict[str, Any]:
        """
        Build signed link parameters for a request form.

        Returns:
            Dict with ``action``, ``record``, ``source``, ``query`` (the signed
            query string) and ``anchor``.
        """
        details = dict(details)
        details["request_type"] = action
        availability = details.get("availability")
        if isinstance(availability, AvailabilityStatus) and not details.get("status"):
            details["status"] = availability.status_description()

        signature = self.signer.generate(hmac_keys, details)
        parts = [
            f"{key}={quote_plus(RequestSigner._value(value))}"
            for key, value in details.items()
            if key in hmac_keys
        ]
        parts.append(f"hash_key={quote_plus(signature)}")
        return {
            "action": action,
            "record": details.get("id"),
            "source": details.get("source", DEFAULT_SEARCH_BACKEND),
            "query": "&".join(parts),
            "anchor": "#tabnav",
        }

    def get_holdings_group_key(self, copy: Mapping[str, Any]) -> str:
        parts = []
        for key in (part.strip() for part in self.config.holdings_grouping.split(",")):
            # location_name is the historical name of the location key.
            if key == "location_name":
                key = "location"
            if copy.get(key) is not None:
                parts.append(str(copy[key]))
        return "|".join(parts) if parts else str(copy.get("location", ""))

    def format_holdings(self, holdings: Mapping[str, List[Dict[str, Any]]]) -> Dict[str, Dict[str, Any]]:
        """Collect item text fields and purchase history per holdings group."""
        text_field_names = self.connection.get_holdings_text_field_names()
        formatted: Dict[str, Dict[str, Any]] = {}
        for group_key, items in holdings.items():
            group: Dict[str, Any] = {
                "items": items,
                "location": items[0].get("location", "") if items else "",
                "locationhref": items[0].get("locationhref", "") if items else "",
            }
            for item in items:
                for field_name in text_field_names:
                    values = item.get(field_name)
                    if not values and field_name == "notes":
                        values = item.get("holdings_notes")
                    elif not values and field_name == "holdings_notes":
                        values = item.get("notes")
                    if values:
                        _append_unique(group.setdefault("textfields", {}).setdefault(field_name, []), values)
                if item.get("purchase_history"):
                    _append_unique(group.setdefault("purchase_history", []), item["purchase_history"])
            formatted[group_key] = group
        return formatted


def _append_unique(target: List[Any], values: Any) -> None:
    if not isinstance(values, (list, tuple)):
        values = [values]
    for value in values:
        if value not in target:
            target.append(value)
