"""
API Schemas.

This module contains Pydantic models used for API request bodies and response validation.
These schemas define the interface contract between the client and the server.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ils_broker.connection.availability import AvailabilityStatus


class StatusesRequest(BaseModel):
    """Record ids whose item statuses are requested in one call."""

    ids: List[str] = Field(
        ...,
        min_length=1,
        description="Record ids to look up.",
        examples=[["1001", "1002"]],
    )


class LoginRequest(BaseModel):
    """Patron credentials checked against the ILS."""

    username: str = Field(..., description="Catalog username (``source.username`` for multi-backend setups).")
    password: str = Field(default="", description="Catalog password.")

    model_config = ConfigDict(json_schema_extra={"example": {"username": "main.jdoe", "password": "secret"}})


class IlsStatus(BaseModel):
    """Breaker and driver state of the connection."""

    state: str = Field(..., description="Circuit breaker state: closed, open or half_open.")
    failures: int = Field(..., description="Runtime failures recorded since the last success.")
    failing: bool
    active_driver: Optional[str] = Field(default=None, description="Driver answering calls right now.")
    primary_driver: str = Field(..., description="Configured driver.")
    on_fallback: bool = Field(..., description="True while NoILS stands in for the configured driver.")
    offline_mode: Optional[str] = Field(default=None, description="Offline mode string, null when online.")


class CapabilityResponse(BaseModel):
    method: str
    supported: bool


class FunctionResponse(BaseModel):
    feature: str
    config: Any = Field(default=False, description="Feature description, or false when unavailable.")


def to_jsonable(data: Any) -> Any:
    """Replace ``AvailabilityStatus`` values in nested driver data with plain dicts."""
    if isinstance(data, AvailabilityStatus):
        return data.to_dict()
    if isinstance(data, dict):
        return {key: to_jsonable(value) for key, value in data.items()}
    if isinstance(data, (list, tuple)):
        return [to_jsonable(value) for value in data]
    return data


def item_rows(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [to_jsonable(item) for item in items]
