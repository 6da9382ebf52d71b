from __future__ import annotations

import pytest

from ils_broker.connection.availability import Availability, AvailabilityStatus, parse_item


@pytest.mark.parametrize(
    "raw,level,available",
    [
        (True, Availability.AVAILABLE, True),
        (False, Availability.UNAVAILABLE, False),
        (0, Availability.UNAVAILABLE, False),
        (1, Availability.AVAILABLE, True),
        (2, Availability.UNKNOWN, False),
        (Availability.UNCERTAIN, Availability.UNCERTAIN, True),
    ],
)
def test_levels(raw, level, available) -> None:
    status = AvailabilityStatus(raw)
    assert status.availability is level
    assert status.is_available() is available


def test_unknown_level_rejected() -> None:
    with pytest.raises(ValueError):
        AvailabilityStatus(7)


@pytest.mark.parametrize(
    "status,description",
    [
        (AvailabilityStatus(True), "Available"),
        (AvailabilityStatus(False), "Charged"),
        (AvailabilityStatus(Availability.UNKNOWN), "status_unknown_message"),
        (AvailabilityStatus(Availability.UNCERTAIN), "Uncertain"),
        (AvailabilityStatus(False, "On order"), "On order"),
    ],
)
def test_status_description(status, description) -> None:
    assert status.status_description() == description


def test_is_and_equality() -> None:
    status = AvailabilityStatus(True, "On shelf")
    assert status.is_(True)
    assert status.is_(Availability.AVAILABLE)
    assert not status.is_(Availability.UNCERTAIN)
    assert status == AvailabilityStatus(1, "On shelf")
    assert status != AvailabilityStatus(True)
    assert repr(status) == "AvailabilityStatus(AVAILABLE, 'On shelf')"


def test_to_dict() -> None:
    assert AvailabilityStatus(Availability.UNCERTAIN).to_dict() == {
        "availability": 3,
        "available": True,
        "status": "Uncertain",
    }


def test_parse_item_folds_status() -> None:
    item = {"id": "1", "availability": False, "status": "Checked out", "location": "Main"}

    parsed = parse_item(item)

    assert parsed == {"id": "1", "availability": AvailabilityStatus(False, "Checked out"), "location": "Main"}
    # The driver row is left untouched.
    assert item["status"] == "Checked out"


def test_parse_item_unknown_message() -> None:
    parsed = parse_item({"availability": True, "use_unknown_message": True})
    assert parsed["availability"].availability is Availability.UNKNOWN
    assert "use_unknown_message" not in parsed


def test_parse_item_passthrough() -> None:
    no_availability = {"id": "1", "status": "x"}
    assert parse_item(no_availability) is no_availability

    parsed = parse_item({"availability": True})
    assert parse_item(parsed) is parsed

    assert parse_item({"availability": None})["availability"] == AvailabilityStatus(False)
