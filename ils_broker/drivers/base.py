"""Driver protocol and capability registry.

An ILS driver is an adapter for one vendor's library system. Drivers only
implement part of the full interface, so every driver advertises exactly
which operations it provides:

- ``IlsMethod`` names every operation the connection layer may dispatch.
- The ``capability`` decorator marks a driver method as the implementation of
  one ``IlsMethod``.
- ``ILSDriver`` collects the decorated methods once per class into an
  immutable capability table, so capability checks are a set lookup rather
  than attribute probing at call time.

A driver whose support depends on call arguments (for example one that
routes by record id) overrides ``supports_method`` to refine the answer.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, FrozenSet, List, Mapping, Protocol, Sequence, TypeVar

from ..core.exceptions import MethodNotSupportedError

F = TypeVar("F", bound=Callable[..., Any])

_MARKER = "__ils_method__"


class IlsMethod(str, Enum):
    """Every driver operation known to the connection layer."""

    # Availability and holdings
    get_status = "get_status"
    get_statuses = "get_statuses"
    get_holding = "get_holding"
    has_holdings = "has_holdings"
    get_purchase_history = "get_purchase_history"
    get_new_items = "get_new_items"
    get_suppressed_records = "get_suppressed_records"
    get_suppressed_authority_records = "get_suppressed_authority_records"
    # Course reserves
    get_funds = "get_funds"
    get_departments = "get_departments"
    get_instructors = "get_instructors"
    get_courses = "get_courses"
    find_reserves = "find_reserves"
    # Patron account
    patron_login = "patron_login"
    get_my_profile = "get_my_profile"
    get_my_fines = "get_my_fines"
    get_my_transactions = "get_my_transactions"
    get_my_transaction_history = "get_my_transaction_history"
    purge_transaction_history = "purge_transaction_history"
    get_proxied_users = "get_proxied_users"
    get_proxying_users = "get_proxying_users"
    get_request_blocks = "get_request_blocks"
    get_account_blocks = "get_account_blocks"
    change_password = "change_password"
    get_login_drivers = "get_login_drivers"
    get_default_login_driver = "get_default_login_driver"
    # Holds
    get_my_holds = "get_my_holds"
    place_hold = "place_hold"
    update_holds = "update_holds"
    cancel_holds = "cancel_holds"
    get_cancel_hold_details = "get_cancel_hold_details"
    get_cancel_hold_link = "get_cancel_hold_link"
    get_hold_link = "get_hold_link"
    get_pickup_locations = "get_pickup_locations"
    get_default_pickup_location = "get_default_pickup_location"
    check_request_is_valid = "check_request_is_valid"
    # Renewals
    renew_my_items = "renew_my_items"
    renew_my_items_link = "renew_my_items_link"
    get_renew_details = "get_renew_details"
    # Storage retrieval requests
    get_my_storage_retrieval_requests = "get_my_storage_retrieval_requests"
    place_storage_retrieval_request = "place_storage_retrieval_request"
    check_storage_retrieval_request_is_valid = "check_storage_retrieval_request_is_valid"
    cancel_storage_retrieval_requests = "cancel_storage_retrieval_requests"
    get_cancel_storage_retrieval_request_details = "get_cancel_storage_retrieval_request_details"
    get_cancel_storage_retrieval_request_link = "get_cancel_storage_retrieval_request_link"
    # Inter-library loan requests
    get_my_ill_requests = "get_my_ill_requests"
    place_ill_request = "place_ill_request"
    check_ill_request_is_valid = "check_ill_request_is_valid"
    cancel_ill_requests = "cancel_ill_requests"
    get_cancel_ill_request_details = "get_cancel_ill_request_details"
    get_cancel_ill_request_link = "get_cancel_ill_request_link"
    get_ill_pickup_libraries = "get_ill_pickup_libraries"
    get_ill_pickup_locations = "get_ill_pickup_locations"
    # Driver-level
    get_config = "get_config"
    get_offline_mode = "get_offline_mode"
    login_is_hidden = "login_is_hidden"


def capability(method: IlsMethod) -> Callable[[F], F]:
    """Mark a driver method as the implementation of ``method``."""

    def decorator(fn: F) -> F:
        setattr(fn, _MARKER, method)
        return fn

    return decorator


class RecordLoader(Protocol):
    """Protocol for looking up catalog records outside of the ILS.

    Used by drivers that derive availability from the search index (the
    NoILS MARC modes). Implementations return an empty list when the record
    does not exist.
    """

    def get_formatted_marc_details(
        self, record_id: str, field: str, spec: Mapping[str, Any]
    ) -> List[Dict[str, Any]]: ...


class ILSDriver(ABC):
    """
    Abstract base class for ILS drivers.

    Subclasses set ``name`` (the registry and configuration name), implement
    ``init`` and decorate each supported operation with ``capability``.

    Lifecycle:
        1. ``set_config`` receives the driver's configuration mapping.
        2. ``init`` validates it and prepares connections. Configuration
           problems should raise ``BadConfigError``.
        3. Operations are dispatched through ``invoke``.
    """

    name: ClassVar[str] = "ILSDriver"
    _capability_table: ClassVar[Dict[IlsMethod, str]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        table: Dict[IlsMethod, str] = {}
        for klass in reversed(cls.__mro__):
            for attr_name, attr in vars(klass).items():
                method = getattr(attr, _MARKER, None)
                if method is not None:
                    table[method] = attr_name
        cls._capability_table = table

    def __init__(self) -> None:
        self._config: Dict[str, Any] = {}

    @property
    def config(self) -> Dict[str, Any]:
        """Return the driver configuration mapping."""
        return self._config

    def set_config(self, config: Mapping[str, Any]) -> None:
        """Replace the driver configuration."""
        self._config = dict(config)

    def section(self, name: str) -> Dict[str, Any]:
        """Return one configuration section, or an empty dict when missing."""
        value = self._config.get(name)
        return dict(value) if isinstance(value, Mapping) else {}

    @abstractmethod
    def init(self) -> None:
        """Validate configuration and prepare the driver for use."""

    @classmethod
    def capabilities(cls) -> FrozenSet[IlsMethod]:
        """Return the set of operations this driver implements."""
        return frozenset(cls._capability_table)

    def implements(self, method: IlsMethod) -> bool:
        return method in self._capability_table

    def supports_method(self, method: IlsMethod, params: Sequence[Any]) -> bool:
        """Refine capability checks using call parameters.

        The default accepts every implemented method. Drivers that can only
        decide per call override this.
        """
        return True

    def invoke(self, method: IlsMethod, *args: Any, **kwargs: Any) -> Any:
        """
        Call the implementation of ``method``.

        Raises:
            MethodNotSupportedError: If the driver does not implement ``method``.
        """
        attr_name = self._capability_table.get(method)
        if attr_name is None:
            raise MethodNotSupportedError(self.name, method.value)
        return getattr(self, attr_name)(*args, **kwargs)
