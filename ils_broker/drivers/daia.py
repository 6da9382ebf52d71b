"""DAIA availability driver.

Talks to a DAIA (Document Availability Information API) service over HTTP and
maps its JSON documents to item status rows. DAIA only answers availability
questions, so this driver implements status and holdings lookups plus the
hold link; every patron operation is left to other drivers.

Configuration (section ``daia``):

- ``base_url`` (required): the DAIA endpoint.
- ``timeout``: request timeout in seconds (default 10).
- ``id_prefix``: prepended to record ids to build document URIs (default
  ``ppn:``).
- ``multi_query``: fetch several documents with one ``|``-joined request.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from ..core.exceptions import BadConfigError, ILSError
from .base import ILSDriver, IlsMethod, capability

_LOGGER = logging.getLogger(__name__)

AVAILABLE_SERVICES = ("loan", "presentation", "openaccess")
HOLD_SERVICES = ("loan", "presentation")


class DAIA(ILSDriver):
    """Driver for DAIA JSON availability services."""

    name = "DAIA"

    def __init__(self, http_client: Optional[httpx.Client] = None) -> None:
        super().__init__()
        self._client = http_client
        self._owns_client = http_client is None
        self.base_url = ""
        self.timeout = 10.0
        self.id_prefix = "ppn:"
        self.multi_query = False

    def init(self) -> None:
        daia = self.section("daia")
        base_url = daia.get("base_url")
        if not base_url:
            raise BadConfigError("DAIA/base_url configuration needs to be set.")
        self.base_url = str(base_url)
        self.timeout = float(daia.get("timeout", 10))
        self.id_prefix = str(daia.get("id_prefix", "ppn:"))
        self.multi_query = bool(daia.get("multi_query", False))
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout)
        _LOGGER.debug("DAIA driver initialised for %s (multi_query=%s)", self.base_url, self.multi_query)

    def close(self) -> None:
        """Close the HTTP client when this driver created it."""
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None

    @capability(IlsMethod.get_config)
    def get_config(self, function: str, params: Any = None) -> Any:
        return self._config.get(function, False)

    @capability(IlsMethod.get_hold_link)
    def get_hold_link(self, record_id: str, details: Dict[str, Any]) -> Optional[str]:
        return details.get("ilslink")

    @capability(IlsMethod.get_status)
    def get_status(self, record_id: str) -> List[Dict[str, Any]]:
        response = self._request(self._uri(record_id))
        doc = self._extract_document(record_id, response)
        return self._parse_document(record_id, doc) if doc is not None else []

    @capability(IlsMethod.get_statuses)
    def get_statuses(self, ids: List[str]) -> List[List[Dict[str, Any]]]:
        statuses: List[List[Dict[str, Any]]] = []
        if not ids:
            return statuses
        if self.multi_query:
            response = self._request("|".join(self._uri(record_id) for record_id in ids))
            for record_id in ids:
                doc = self._extract_document(record_id, response)
                if doc is not None:
                    statuses.append(self._parse_document(record_id, doc))
            return statuses
        for record_id in ids:
            doc = self._extract_document(record_id, self._request(self._uri(record_id)))
            if doc is not None:
                statuses.append(self._parse_document(record_id, doc))
        return statuses

    @capability(IlsMethod.get_holding)
    def get_holding(
        self, record_id: str, patron: Optional[Dict[str, Any]] = None, options: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        return self.get_status(record_id)

    @capability(IlsMethod.get_purchase_history)
    def get_purchase_history(self, record_id: str) -> List[Dict[str, Any]]:
        return []

    def _uri(self, record_id: str) -> str:
        return self.id_prefix + record_id

    def _request(self, query: str) -> Dict[str, Any]:
        if self._client is None:
            raise ILSError("DAIA driver used before init()")
        try:
            response = self._client.get(
                self.base_url,
                params={"id": query, "format": "json"},
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        except httpx.HTTPError as exc:
            raise ILSError(f"HTTP request exited with exception {exc} for record: {query}") from exc
        if response.status_code >= 400:
            raise ILSError(
                f"HTTP status {response.status_code} received, "
                f"retrieving availability information for record: {query}"
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise ILSError(f"Invalid DAIA response for record: {query}") from exc
        if not isinstance(data, dict):
            raise ILSError(f"Invalid DAIA response for record: {query}")
        return data

    def _extract_document(self, record_id: str, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        for message in data.get("message") or []:
            _LOGGER.debug("DAIA message: %s", message)
        uri = self._uri(record_id)
        for doc in data.get("document") or []:
            doc_id = str(doc.get("id", ""))
            if doc_id == uri or doc_id.endswith(uri) or doc_id.endswith(":" + record_id):
                return doc
        return None

    def _parse_document(self, record_id: str, doc: Dict[str, Any]) -> List[Dict[str, Any]]:
        rows = []
        for number, item in enumerate(doc.get("item") or [], start=1):
            department = item.get("department") or {}
            storage = item.get("storage") or {}
            row = {
                "id": record_id,
                "doc_id": doc.get("id"),
                "item_id": item.get("id"),
                "ilslink": item.get("href") or doc.get("href"),
                "number": number,
                "barcode": "1",
                "reserve": "N",
                "callnumber": item.get("label") or "Unknown",
                "location": department.get("content") or "Unknown",
                "locationid": department.get("id") or "",
                "locationhref": department.get("href") or False,
                "storage": storage.get("content") or "Unknown",
                "storageid": storage.get("id") or "",
                "storagehref": storage.get("href") or False,
            }
            row.update(self._item_status(item))
            rows.append(row)
        return rows

    def _item_status(self, item: Dict[str, Any]) -> Dict[str, Any]:
        availability = False
        duedate = None
        queue = ""
        service_link = ""
        notes: List[str] = []
        available_services: List[str] = []
        unavailable_services: List[str] = []
        href = False

        for available in item.get("available") or []:
            service = available.get("service")
            if service in HOLD_SERVICES:
                available_services.append(service)
            if service in AVAILABLE_SERVICES:
                availability = True
                if service == "loan" and available.get("href"):
                    service_link = available["href"]
            notes.extend(self._limitations(available.get("limitation")))

        for unavailable in item.get("unavailable") or []:
            service = unavailable.get("service")
            if service in HOLD_SERVICES:
                unavailable_services.append(service)
                href = href or "href" in unavailable
            if service in AVAILABLE_SERVICES:
                if service == "loan" and unavailable.get("href"):
                    service_link = unavailable["href"]
                notes.extend(self._limitations(unavailable.get("limitation")))
            if unavailable.get("expected"):
                duedate = self._convert_date(unavailable["expected"])
            if "queue" in unavailable:
                queue = unavailable["queue"]

        holdable = bool(href) and bool(set(unavailable_services) - set(available_services))
        status: Dict[str, Any] = {
            "item_notes": notes,
            "status": "",
            "availability": availability,
            "duedate": duedate,
            "requests_placed": queue,
            "services": sorted(set(available_services)),
            "add_link": holdable,
            "is_holdable": holdable,
            "holdtype": "recall" if holdable else "hold",
        }
        if service_link:
            status["ilslink"] = service_link
        return status

    @staticmethod
    def _limitations(limitations: Any) -> List[str]:
        if not limitations:
            return []
        if isinstance(limitations, dict):
            limitations = [limitations]
        return [str(entry["content"]) for entry in limitations if entry.get("content")]

    @staticmethod
    def _convert_date(value: str) -> Optional[str]:
        try:
            return datetime.strptime(value[:10], "%Y-%m-%d").strftime("%Y-%m-%d")
        except ValueError:
            _LOGGER.debug("DAIA: date conversion failed for %r", value)
            return None
