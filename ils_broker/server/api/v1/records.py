"""
Record Availability Endpoints.

Item status and holdings lookups for catalog records.
"""

from typing import Any, Dict, List

from fastapi import APIRouter, Query

from ils_broker.server.schemas import StatusesRequest, item_rows, to_jsonable
from ils_broker.server.services.deps import ConnectionDep, HoldLogicDep

router = APIRouter()


@router.get(
    "/{record_id}/status",
    summary="Record Status",
    description="Item-level availability for one record.",
)
def record_status(record_id: str, connection: ConnectionDep) -> List[Dict[str, Any]]:
    return item_rows(connection.get_status(record_id))


@router.post(
    "/statuses",
    summary="Record Statuses",
    description="Item-level availability for several records in one call.",
)
def record_statuses(body: StatusesRequest, connection: ConnectionDep) -> List[List[Dict[str, Any]]]:
    """
    Look up statuses for many records.

    The result holds one list of items per record the ILS knows about; with a
    multi-backend setup, records of a failing source come back as rows with an
    ``error`` key instead of failing the whole batch.
    """
    return [item_rows(status) for status in connection.get_statuses(body.ids)]


@router.get(
    "/{record_id}/holdings",
    summary="Record Holdings",
    description="Holdings grouped by location, with hold and request links.",
)
def record_holdings(
    record_id: str,
    hold_logic: HoldLogicDep,
    page: int = Query(default=1, ge=1, description="Holdings page when the driver pages items."),
) -> Dict[str, Any]:
    return to_jsonable(hold_logic.get_holdings(record_id, page=page))
