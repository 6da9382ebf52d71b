"""
ILS Connection Endpoints.

Exposes the connection's own state: breaker status, offline mode,
capability checks and feature checks.
"""

from fastapi import APIRouter, Query

from ils_broker.server.schemas import CapabilityResponse, FunctionResponse, IlsStatus, to_jsonable
from ils_broker.server.services.deps import ConnectionDep

router = APIRouter()


@router.get(
    "/status",
    response_model=IlsStatus,
    summary="ILS Status",
    description="Report the circuit breaker state, the active driver and the offline mode.",
)
def ils_status(
    connection: ConnectionDep,
    health_check: bool = Query(default=False, description="Probe the ILS with a status lookup first."),
) -> IlsStatus:
    """
    Get the connection status.

    With ``health_check=true`` a status lookup for the configured health check
    record is made first, so a broken ILS is detected (and the breaker opened)
    even when no other request has failed yet.
    """
    offline_mode = connection.get_offline_mode(health_check=health_check)
    return IlsStatus(offline_mode=offline_mode or None, **connection.status())


@router.get(
    "/capabilities/{method}",
    response_model=CapabilityResponse,
    summary="Check Capability",
    description="Check whether the active driver can serve a method.",
)
def capability(method: str, connection: ConnectionDep) -> CapabilityResponse:
    return CapabilityResponse(method=method, supported=connection.check_capability(method))


@router.get(
    "/functions/{feature}",
    response_model=FunctionResponse,
    summary="Check Feature",
    description="Return how a feature (holds, renewals, ...) is offered, or false.",
)
def function(feature: str, connection: ConnectionDep) -> FunctionResponse:
    return FunctionResponse(feature=feature, config=to_jsonable(connection.check_function(feature)))
