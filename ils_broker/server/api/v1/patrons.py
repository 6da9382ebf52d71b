"""
Patron Endpoints.

Only authentication is exposed; account pages belong to the discovery
front-end, which calls the connection directly.
"""

from typing import Any, Dict

from fastapi import APIRouter, HTTPException

from ils_broker.drivers.base import IlsMethod
from ils_broker.server.schemas import LoginRequest
from ils_broker.server.services.deps import ConnectionDep

router = APIRouter()


@router.post(
    "/login",
    summary="Patron Login",
    description="Check patron credentials against the ILS.",
    responses={401: {"description": "Invalid credentials or login unavailable"}},
)
def login(body: LoginRequest, connection: ConnectionDep) -> Dict[str, Any]:
    """
    Authenticate a patron.

    Returns the patron record from the ILS. While the ILS is offline (NoILS
    fallback) logins are refused with 401.
    """
    patron = connection.call(IlsMethod.patron_login, body.username, body.password)
    if not patron:
        raise HTTPException(status_code=401, detail="Invalid patron login")
    return {key: value for key, value in patron.items() if key != "cat_password"}
