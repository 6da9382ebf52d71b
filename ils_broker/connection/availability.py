"""Item availability values.

Drivers report ``availability`` either as a boolean or as one of the
``Availability`` levels. ``parse_item`` turns the raw value of a driver row
into an ``AvailabilityStatus`` so callers never deal with the raw forms.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any, Dict, Union


class Availability(IntEnum):
    UNAVAILABLE = 0
    AVAILABLE = 1
    UNKNOWN = 2
    UNCERTAIN = 3


class AvailabilityStatus:
    """Availability of an item plus an optional status text."""

    def __init__(self, availability: Union[bool, int, Availability], status: str = "") -> None:
        if isinstance(availability, bool):
            availability = Availability.AVAILABLE if availability else Availability.UNAVAILABLE
        self.availability = Availability(int(availability))
        self.status = status or ""

    def is_available(self) -> bool:
        """Return True for any level that lets a patron get the item now."""
        return self.availability in (Availability.AVAILABLE, Availability.UNCERTAIN)

    def is_(self, availability: Union[bool, int, Availability]) -> bool:
        if isinstance(availability, bool):
            availability = Availability.AVAILABLE if availability else Availability.UNAVAILABLE
        return self.availability == availability

    def status_description(self) -> str:
        """Return the explicit status text, or a default for the level."""
        if self.status:
            return self.status
        if self.availability is Availability.AVAILABLE:
            return "Available"
        if self.availability is Availability.UNCERTAIN:
            return "Uncertain"
        if self.availability is Availability.UNKNOWN:
            return "status_unknown_message"
        return "Charged"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "availability": int(self.availability),
            "available": self.is_available(),
            "status": self.status_description(),
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AvailabilityStatus):
            return NotImplemented
        return self.availability == other.availability and self.status == other.status

    def __repr__(self) -> str:
        return f"AvailabilityStatus({self.availability.name}, {self.status!r})"


def parse_item(item: Dict[str, Any]) -> Dict[str, Any]:
    """Replace the raw ``availability`` of a driver row with an ``AvailabilityStatus``.

    ``use_unknown_message`` forces the UNKNOWN level. The ``status`` and
    ``use_unknown_message`` keys are folded into the new value and removed.
    Rows without ``availability`` and rows already parsed are returned as-is.
    """
    if "availability" not in item or isinstance(item["availability"], AvailabilityStatus):
        return item
    parsed = dict(item)
    availability = parsed["availability"]
    if parsed.pop("use_unknown_message", False):
        availability = Availability.UNKNOWN
    status = parsed.pop("status", "") or ""
    parsed["availability"] = AvailabilityStatus(availability if availability is not None else False, status)
    return parsed
