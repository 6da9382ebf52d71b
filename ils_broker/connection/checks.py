"""Feature checks.

A *feature* is something a user interface offers (placing holds, renewing
loans, ...). Whether it is available depends on the driver's capabilities,
the driver's own configuration for the feature and the broker settings.
Each ``IlsFeature`` has one check function; ``Connection.check_function``
fetches the driver configuration and dispatches here.

A check returns a dict describing how to offer the feature (at least a
``function`` key naming the driver method to use) or ``False`` when it is
unavailable.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Union

from ..drivers.base import IlsMethod

if TYPE_CHECKING:
    from .connection import Connection

CheckResult = Union[Dict[str, Any], bool]
CheckFn = Callable[["Connection", Any, Any], CheckResult]


class IlsFeature(str, Enum):
    holds = "holds"
    cancel_holds = "cancel_holds"
    renewals = "renewals"
    storage_retrieval_requests = "storage_retrieval_requests"
    cancel_storage_retrieval_requests = "cancel_storage_retrieval_requests"
    ill_requests = "ill_requests"
    cancel_ill_requests = "cancel_ill_requests"
    change_password = "change_password"
    get_my_transactions = "get_my_transactions"
    get_my_transaction_history = "get_my_transaction_history"
    purge_transaction_history = "purge_transaction_history"
    patron_login = "patron_login"


FEATURE_CHECKS: Dict[IlsFeature, CheckFn] = {}


def feature_check(feature: IlsFeature) -> Callable[[CheckFn], CheckFn]:
    """Register the decorated function as the check for ``feature``."""

    def decorator(fn: CheckFn) -> CheckFn:
        FEATURE_CHECKS[feature] = fn
        return fn

    return decorator


def get_help_text(help_text: Any, locale: str) -> str:
    """Resolve a help text that may be a ``{locale: text}`` map."""
    if isinstance(help_text, Mapping):
        return str(help_text.get(locale, help_text.get("*", "")))
    return help_text or ""


def _config(function_config: Any) -> Mapping[str, Any]:
    return function_config if isinstance(function_config, Mapping) else {}


def _split(value: str) -> List[str]:
    return str(value).split(":")


@feature_check(IlsFeature.holds)
def check_holds(conn: "Connection", function_config: Any, params: Any) -> CheckResult:
    cfg = _config(function_config)
    if (
        conn.get_holds_mode() != "none"
        and conn.check_capability(IlsMethod.place_hold, [params or {}])
        and "hmac_keys" in cfg
    ):
        response: Dict[str, Any] = {"function": "place_hold", "hmac_keys": _split(cfg["hmac_keys"])}
        if "default_required_date" in cfg:
            response["default_required_date"] = cfg["default_required_date"]
        if "extra_hold_fields" in cfg:
            response["extra_hold_fields"] = cfg["extra_hold_fields"]
        if cfg.get("update_fields"):
            response["update_fields"] = [field.strip() for field in _split(cfg["update_fields"])]
        response["help_text"] = get_help_text(cfg.get("help_text", ""), conn.locale)
        response["update_help_text"] = get_help_text(cfg.get("update_help_text", ""), conn.locale)
        if "consortium" in cfg:
            response["consortium"] = cfg["consortium"]
        response["pickup_location_check_limit"] = int(cfg.get("pickup_location_check_limit") or 0)
        return response
    record_id = params.get("id") if isinstance(params, Mapping) else None
    if conn.check_capability(IlsMethod.get_hold_link, [record_id, {}]):
        return {"function": "get_hold_link"}
    return False


def _check_enabled_with_link(
    conn: "Connection", enabled: bool, method: IlsMethod, link_method: IlsMethod, params: Any
) -> CheckResult:
    if not enabled:
        return False
    if conn.check_capability(method, [params or {}]):
        return {"function": method.value}
    patron = params.get("patron") if isinstance(params, Mapping) else None
    if conn.check_capability(link_method, [params or {}, patron]):
        return {"function": link_method.value}
    return False


@feature_check(IlsFeature.cancel_holds)
def check_cancel_holds(conn: "Connection", function_config: Any, params: Any) -> CheckResult:
    return _check_enabled_with_link(
        conn, conn.config.cancel_holds_enabled, IlsMethod.cancel_holds, IlsMethod.get_cancel_hold_link, params
    )


@feature_check(IlsFeature.renewals)
def check_renewals(conn: "Connection", function_config: Any, params: Any) -> CheckResult:
    return _check_enabled_with_link(
        conn, conn.config.renewals_enabled, IlsMethod.renew_my_items, IlsMethod.renew_my_items_link, params
    )


@feature_check(IlsFeature.storage_retrieval_requests)
def check_storage_retrieval_requests(conn: "Connection", function_config: Any, params: Any) -> CheckResult:
    cfg = _config(function_config)
    if not conn.check_capability(IlsMethod.place_storage_retrieval_request, [params or {}]) or "hmac_keys" not in cfg:
        return False
    response: Dict[str, Any] = {
        "function": "place_storage_retrieval_request",
        "hmac_keys": _split(cfg["hmac_keys"]),
    }
    if "extra_fields" in cfg:
        response["extra_fields"] = cfg["extra_fields"]
    response["help_text"] = get_help_text(cfg.get("help_text", ""), conn.locale)
    return response


@feature_check(IlsFeature.cancel_storage_retrieval_requests)
def check_cancel_storage_retrieval_requests(conn: "Connection", function_config: Any, params: Any) -> CheckResult:
    return _check_enabled_with_link(
        conn,
        conn.config.cancel_storage_retrieval_requests_enabled,
        IlsMethod.cancel_storage_retrieval_requests,
        IlsMethod.get_cancel_storage_retrieval_request_link,
        params,
    )


@feature_check(IlsFeature.ill_requests)
def check_ill_requests(conn: "Connection", function_config: Any, params: Any) -> CheckResult:
    cfg = _config(function_config)
    if not conn.check_capability(IlsMethod.place_ill_request, [params or {}]) or "hmac_keys" not in cfg:
        return False
    response: Dict[str, Any] = {"function": "place_ill_request"}
    if "default_required_date" in cfg:
        response["default_required_date"] = cfg["default_required_date"]
    response["hmac_keys"] = _split(cfg["hmac_keys"])
    if "extra_fields" in cfg:
        response["extra_fields"] = cfg["extra_fields"]
    response["help_text"] = get_help_text(cfg.get("help_text", ""), conn.locale)
    return response


@feature_check(IlsFeature.cancel_ill_requests)
def check_cancel_ill_requests(conn: "Connection", function_config: Any, params: Any) -> CheckResult:
    return _check_enabled_with_link(
        conn,
        conn.config.cancel_ill_requests_enabled,
        IlsMethod.cancel_ill_requests,
        IlsMethod.get_cancel_ill_request_link,
        params,
    )


@feature_check(IlsFeature.change_password)
def check_change_password(conn: "Connection", function_config: Any, params: Any) -> CheckResult:
    if conn.check_capability(IlsMethod.change_password, [params or {}]):
        return {"function": "change_password"}
    return False


def _config_when_supported(method: IlsMethod) -> CheckFn:
    def check(conn: "Connection", function_config: Any, params: Any) -> CheckResult:
        if conn.check_capability(method, [params or {}]):
            return function_config
        return False

    check.__name__ = f"check_{method.value}"
    return check


feature_check(IlsFeature.get_my_transactions)(_config_when_supported(IlsMethod.get_my_transactions))
feature_check(IlsFeature.get_my_transaction_history)(_config_when_supported(IlsMethod.get_my_transaction_history))
feature_check(IlsFeature.purge_transaction_history)(_config_when_supported(IlsMethod.purge_transaction_history))


@feature_check(IlsFeature.patron_login)
def check_patron_login(conn: "Connection", function_config: Any, params: Any) -> CheckResult:
    return function_config
