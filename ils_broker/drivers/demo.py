"""In-memory demonstration ILS.

``Demo`` behaves like a small library system without needing one: it keeps a
catalog of items, patron holds, loans, loan history and storage retrieval
requests in memory. Random values come from a seeded ``random.Random`` so the
same configuration always produces the same catalog.

Failures can be simulated per method through the ``failure_probabilities``
section (method name -> percentage). Every public operation first runs the
``check_intermittent_failure`` probe, which raises ``ILSError`` the way a
broken backend would; this is what exercises the connection's failover.

Configuration sections:

- ``settings``: ``seed``, ``transactions`` (initial loans per patron),
  ``history_transactions`` (past loans per patron, random when unset),
  ``storage_retrieval_requests`` (bool), ``login_method`` (``password`` or
  ``email``).
- ``catalog``: optional explicit ``{record_id: [item, ...]}`` data.
- ``users``: optional ``{username: password}``; any credentials are accepted
  when absent.
- ``holds``, ``holdings``, ``loans``, ``transaction_history``,
  ``change_password``: feature configuration returned by ``get_config``.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Union

from ..core.exceptions import ILSError
from .base import ILSDriver, IlsMethod, capability

_LOGGER = logging.getLogger(__name__)

LOCATIONS = ["Campus A", "Campus B", "Campus C", "Campus D"]
DATE_FORMAT = "%Y-%m-%d"
RENEW_LIMIT = 3
LOAN_DAYS = 21
HISTORY_SORT_FIELDS = {"checkout": "checkout_date", "return": "return_date", "due": "duedate"}

FAILURE_MESSAGE = "Demonstrating failure; keep trying and it will work eventually."


@dataclass
class _PatronState:
    """Mutable account data for one patron."""

    holds: List[Dict[str, Any]] = field(default_factory=list)
    transactions: Optional[List[Dict[str, Any]]] = None
    history: Optional[List[Dict[str, Any]]] = None
    storage_retrieval_requests: List[Dict[str, Any]] = field(default_factory=list)
    next_request_id: int = 0


class Demo(ILSDriver):
    """Deterministic in-memory ILS for development and tests."""

    name = "Demo"

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        today: Optional[Callable[[], date]] = None,
    ) -> None:
        super().__init__()
        self._rng = rng
        self._today = today or date.today
        self._seed: Union[int, str] = 0
        self._failure_probabilities: Dict[str, int] = {}
        self._patrons: Dict[str, _PatronState] = {}
        self._catalog: Dict[str, List[Dict[str, Any]]] = {}

    def init(self) -> None:
        settings = self.section("settings")
        self._seed = settings.get("seed", 0)
        if self._rng is None:
            self._rng = random.Random(self._seed)
        self._failure_probabilities = {
            str(k): int(v) for k, v in self.section("failure_probabilities").items()
        }
        self._catalog = {
            str(record_id): [dict(item) for item in items]
            for record_id, items in self.section("catalog").items()
        }
        self._patrons = {}
        self.check_intermittent_failure()

    # ------------------------------------------------------------------
    # Failure simulation
    # ------------------------------------------------------------------

    def is_failing(self, method: str, default: int = 0) -> bool:
        """Return True when a simulated failure should happen for ``method``."""
        probability = self._failure_probabilities.get(method, default)
        if probability <= 0:
            return False
        return self._random().randint(1, 100) <= probability

    def check_intermittent_failure(self) -> None:
        if self.is_failing("check_intermittent_failure"):
            raise ILSError("Simulating low-level system failure")

    def _random(self) -> random.Random:
        if self._rng is None:
            self._rng = random.Random(self._seed)
        return self._rng

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def _items(self, record_id: str) -> List[Dict[str, Any]]:
        if record_id not in self._catalog:
            self._catalog[record_id] = self._generate_items(record_id)
        return self._catalog[record_id]

    def _generate_items(self, record_id: str) -> List[Dict[str, Any]]:
        # Per-record generator keeps a record's items stable regardless of lookup order.
        rng = random.Random(f"{self._seed}:{record_id}")
        items = []
        for number in range(1, rng.randint(1, 3) + 1):
            available = rng.random() < 0.6
            location = rng.choice(LOCATIONS)
            due = None if available else (self._today() + timedelta(days=rng.randint(1, 30))).strftime(DATE_FORMAT)
            items.append(
                {
                    "id": record_id,
                    "item_id": f"{record_id}-{number}",
                    "number": number,
                    "barcode": f"{rng.randint(10**9, 10**10 - 1)}",
                    "location": location,
                    "holdings_id": location,
                    "callnumber": f"{rng.choice('ABCDEFGHJK')}{rng.randint(1, 999)} .{rng.choice('ABCDE')}{rng.randint(1, 99)}",
                    "availability": available,
                    "status": "Available" if available else "Checked Out",
                    "reserve": "N",
                    "duedate": due,
                    "is_holdable": True,
                    "add_link": not available,
                    "add_storage_retrieval_request_link": bool(
                        self.section("settings").get("storage_retrieval_requests")
                    )
                    and available,
                }
            )
        return items

    @capability(IlsMethod.get_status)
    def get_status(self, record_id: str) -> List[Dict[str, Any]]:
        self.check_intermittent_failure()
        keys = ("id", "item_id", "availability", "status", "location", "reserve", "callnumber", "duedate")
        return [{k: item.get(k) for k in keys} for item in self._items(record_id)]

    @capability(IlsMethod.get_statuses)
    def get_statuses(self, ids: List[str]) -> List[List[Dict[str, Any]]]:
        return [self.get_status(record_id) for record_id in ids]

    @capability(IlsMethod.get_holding)
    def get_holding(
        self,
        record_id: str,
        patron: Optional[Dict[str, Any]] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> Union[List[Dict[str, Any]], Dict[str, Any]]:
        self.check_intermittent_failure()
        items = [dict(item) for item in self._items(record_id)]
        options = options or {}
        limit = options.get("item_limit")
        if not limit:
            return items
        offset = int(options.get("offset") or 0)
        return {"total": len(items), "holdings": items[offset : offset + int(limit)]}

    @capability(IlsMethod.get_purchase_history)
    def get_purchase_history(self, record_id: str) -> List[Dict[str, Any]]:
        self.check_intermittent_failure()
        return [dict(row) for row in self.section("purchase_history").get(record_id, [])]

    @capability(IlsMethod.get_new_items)
    def get_new_items(self, page: int, limit: int, days_old: int, fund_id: Optional[str] = None) -> Dict[str, Any]:
        self.check_intermittent_failure()
        ids = sorted(self._catalog) or [str(n) for n in range(1, 21)]
        start = max(page - 1, 0) * limit
        return {"count": len(ids), "results": [{"id": record_id} for record_id in ids[start : start + limit]]}

    # ------------------------------------------------------------------
    # Course reserves
    # ------------------------------------------------------------------

    @capability(IlsMethod.get_funds)
    def get_funds(self) -> List[str]:
        return ["Fund A", "Fund B", "Fund C"]

    @capability(IlsMethod.get_departments)
    def get_departments(self) -> Dict[str, str]:
        return {"dept1": "Dept. A", "dept2": "Dept. B", "dept3": "Dept. C"}

    @capability(IlsMethod.get_instructors)
    def get_instructors(self) -> Dict[str, str]:
        return {"inst1": "Instructor A", "inst2": "Instructor B", "inst3": "Instructor C"}

    @capability(IlsMethod.get_courses)
    def get_courses(self) -> Dict[str, str]:
        return {"course1": "Course A", "course2": "Course B", "course3": "Course C"}

    @capability(IlsMethod.find_reserves)
    def find_reserves(self, course: str, instructor: str, department: str) -> List[Dict[str, Any]]:
        self.check_intermittent_failure()
        rng = random.Random(f"{self._seed}:{course}:{instructor}:{department}")
        return [
            {
                "BIB_ID": str(rng.randint(1, 1000)),
                "COURSE_ID": course or "course1",
                "INSTRUCTOR_ID": instructor or "inst1",
                "DEPARTMENT_ID": department or "dept1",
            }
            for _ in range(rng.randint(1, 5))
        ]

    # ------------------------------------------------------------------
    # Patron account
    # ------------------------------------------------------------------

    def _state(self, patron: Optional[Dict[str, Any]]) -> _PatronState:
        key = str((patron or {}).get("id") or "")
        if key not in self._patrons:
            self._patrons[key] = _PatronState()
        return self._patrons[key]

    @capability(IlsMethod.patron_login)
    def patron_login(self, username: str, password: str) -> Optional[Dict[str, Any]]:
        self.check_intermittent_failure()
        username = username.strip()
        user = {
            "id": username,
            "firstname": "Lib",
            "lastname": "Rarian",
            "cat_username": username,
            "cat_password": password.strip(),
            "email": "Lib.Rarian@library.not",
            "major": None,
            "college": None,
        }
        if self.section("settings").get("login_method", "password") == "email":
            user["email"] = username
            user["cat_password"] = ""
            return user
        users = self._config.get("users")
        if users is not None and users.get(username) != password:
            return None
        return user

    @capability(IlsMethod.get_my_profile)
    def get_my_profile(self, patron: Dict[str, Any]) -> Dict[str, Any]:
        self.check_intermittent_failure()
        return {
            "firstname": f"Lib-{patron['cat_username']}",
            "lastname": "Rarian",
            "address1": "Somewhere...",
            "address2": "Over the Rainbow",
            "zip": "12345",
            "city": "City",
            "country": "Country",
            "phone": "1900 CALL ME",
            "group": "Library Staff",
            "expiration_date": "Someday",
        }

    @capability(IlsMethod.get_my_fines)
    def get_my_fines(self, patron: Dict[str, Any]) -> List[Dict[str, Any]]:
        self.check_intermittent_failure()
        return [dict(fine) for fine in self.section("fines").get(str(patron.get("id")), [])]

    @capability(IlsMethod.get_request_blocks)
    def get_request_blocks(self, patron: Dict[str, Any]) -> Union[bool, List[str]]:
        if self.is_failing("get_request_blocks"):
            return ["Simulated request block"]
        return False

    @capability(IlsMethod.get_account_blocks)
    def get_account_blocks(self, patron: Dict[str, Any]) -> Union[bool, List[str]]:
        if self.is_failing("get_account_blocks"):
            return ["Simulated account block"]
        return False

    @capability(IlsMethod.change_password)
    def change_password(self, details: Dict[str, Any]) -> Dict[str, Any]:
        self.check_intermittent_failure()
        if self.is_failing("change_password"):
            return {"success": False, "status": "An error has occurred", "sys_message": FAILURE_MESSAGE}
        return {"success": True, "status": "change_password_ok"}

    # ------------------------------------------------------------------
    # Loans
    # ------------------------------------------------------------------

    def _transactions(self, patron: Dict[str, Any]) -> List[Dict[str, Any]]:
        state = self._state(patron)
        if state.transactions is None:
            state.transactions = self._generate_transactions(patron)
        return state.transactions

    def _generate_transactions(self, patron: Dict[str, Any]) -> List[Dict[str, Any]]:
        rng = random.Random(f"{self._seed}:loans:{patron.get('id')}")
        count = int(self.section("settings").get("transactions", 3))
        rows = []
        for index in range(count):
            record_id = str(rng.randint(1, 1000))
            due = self._today() + timedelta(days=rng.randint(-5, LOAN_DAYS))
            renew = rng.randint(0, RENEW_LIMIT - 1)
            rows.append(
                {
                    "id": record_id,
                    "item_id": f"{record_id}-{index}",
                    "title": f"Demo Title {record_id}",
                    "duedate": due.strftime(DATE_FORMAT),
                    "due_status": self._due_status(due),
                    "renew": renew,
                    "renew_limit": RENEW_LIMIT,
                    "renewable": renew < RENEW_LIMIT,
                    "barcode": f"{rng.randint(10**9, 10**10 - 1)}",
                }
            )
        return rows

    def _due_status(self, due: date) -> Union[bool, str]:
        delta = (due - self._today()).days
        if delta < 0:
            return "overdue"
        if delta <= 1:
            return "due"
        return False

    @capability(IlsMethod.get_my_transactions)
    def get_my_transactions(
        self, patron: Dict[str, Any], params: Optional[Dict[str, Any]] = None
    ) -> Union[List[Dict[str, Any]], Dict[str, Any]]:
        self.check_intermittent_failure()
        rows = [dict(row) for row in self._transactions(patron)]
        loans = self.section("loans")
        if not loans.get("paging"):
            return rows
        params = params or {}
        sort = params.get("sort", "due asc")
        key, _, direction = sort.partition(" ")
        field_name = "title" if key == "title" else "duedate"
        rows.sort(key=lambda row: row[field_name], reverse=direction == "desc")
        limit = int(params.get("limit") or loans.get("max_page_size", 100))
        page = int(params.get("page") or 1)
        start = (page - 1) * limit
        return {"count": len(rows), "records": rows[start : start + limit]}

    @capability(IlsMethod.get_my_transaction_history)
    def get_my_transaction_history(
        self, patron: Dict[str, Any], params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        self.check_intermittent_failure()
        if not self.section("transaction_history").get("enabled"):
            return {"success": False, "status": "Transaction history is disabled"}
        rows = [dict(row) for row in self._history(patron)]
        params = params or {}
        key, _, direction = str(params.get("sort") or "checkout desc").partition(" ")
        field_name = HISTORY_SORT_FIELDS.get(key, "checkout_date")
        rows.sort(key=lambda row: row[field_name], reverse=direction != "asc")
        limit = int(params.get("limit") or 50)
        page = int(params.get("page") or 1)
        start = (page - 1) * limit
        return {"count": len(rows), "transactions": rows[start : start + limit]}

    def _history(self, patron: Dict[str, Any]) -> List[Dict[str, Any]]:
        state = self._state(patron)
        if state.history is None:
            state.history = self._generate_history(patron)
        return state.history

    def _generate_history(self, patron: Dict[str, Any]) -> List[Dict[str, Any]]:
        rng = random.Random(f"{self._seed}:history:{patron.get('id')}")
        count = self.section("settings").get("history_transactions")
        count = rng.randint(0, 15) if count is None else int(count)
        today = self._today()
        rows = []
        for index in range(count):
            record_id = str(rng.randint(1, 1000))
            checkout = today - timedelta(days=rng.randint(1, 300))
            due = checkout + timedelta(days=rng.randint(7, 29))
            returned = min(checkout + timedelta(days=rng.randint(1, 39)), today)
            rows.append(
                {
                    "id": record_id,
                    "item_id": f"{record_id}-h{index}",
                    "row_id": f"h{index}",
                    "title": f"Demo Title {record_id}",
                    "checkout_date": checkout.strftime(DATE_FORMAT),
                    "duedate": due.strftime(DATE_FORMAT),
                    "return_date": returned.strftime(DATE_FORMAT),
                }
            )
        return rows

    @capability(IlsMethod.purge_transaction_history)
    def purge_transaction_history(self, patron: Dict[str, Any], ids: Optional[List[str]]) -> Dict[str, Any]:
        self.check_intermittent_failure()
        state = self._state(patron)
        if ids is None:
            state.history = []
            status = "loan_history_all_purged"
        else:
            wanted = set(ids)
            state.history = [row for row in self._history(patron) if row["row_id"] not in wanted]
            status = "loan_history_selected_purged"
        return {"success": True, "status": status, "sys_message": ""}

    @capability(IlsMethod.get_renew_details)
    def get_renew_details(self, checkout_details: Dict[str, Any]) -> str:
        return checkout_details["item_id"]

    @capability(IlsMethod.renew_my_items)
    def renew_my_items(self, renew_details: Dict[str, Any]) -> Dict[str, Any]:
        self.check_intermittent_failure()
        if self.is_failing("check_renew_block"):
            return {"blocks": ["Simulated account block; try again and it will work eventually."], "details": {}}
        patron = renew_details.get("patron") or {}
        wanted = set(renew_details.get("details") or [])
        result: Dict[str, Any] = {"blocks": False, "details": {}}
        for row in self._transactions(patron):
            if row["item_id"] not in wanted:
                continue
            if not row["renewable"] or self.is_failing("renew_my_items"):
                result["details"][row["item_id"]] = {
                    "success": False,
                    "new_date": False,
                    "item_id": row["item_id"],
                    "sys_message": FAILURE_MESSAGE,
                }
                continue
            due = datetime.strptime(row["duedate"], DATE_FORMAT).date() + timedelta(days=LOAN_DAYS)
            row["duedate"] = due.strftime(DATE_FORMAT)
            row["due_status"] = self._due_status(due)
            row["renew"] += 1
            row["renewable"] = row["renew"] < row["renew_limit"]
            result["details"][row["item_id"]] = {
                "success": True,
                "new_date": row["duedate"],
                "new_time": "",
                "item_id": row["item_id"],
            }
        return result

    # ------------------------------------------------------------------
    # Holds
    # ------------------------------------------------------------------

    @capability(IlsMethod.get_my_holds)
    def get_my_holds(self, patron: Dict[str, Any]) -> List[Dict[str, Any]]:
        self.check_intermittent_failure()
        return [dict(hold) for hold in self._state(patron).holds]

    @capability(IlsMethod.get_pickup_locations)
    def get_pickup_locations(
        self, patron: Optional[Dict[str, Any]] = None, hold_details: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, str]]:
        return [
            {"location_id": location.lower().replace(" ", "_"), "location_display_name": location}
            for location in LOCATIONS
        ]

    @capability(IlsMethod.get_default_pickup_location)
    def get_default_pickup_location(
        self, patron: Optional[Dict[str, Any]] = None, hold_details: Optional[Dict[str, Any]] = None
    ) -> Union[str, bool]:
        default = self.section("holds").get("default_pickup_location", "")
        if default == "user-selected":
            return False
        return default or self.get_pickup_locations()[0]["location_id"]

    @capability(IlsMethod.check_request_is_valid)
    def check_request_is_valid(self, record_id: str, data: Dict[str, Any], patron: Dict[str, Any]) -> Dict[str, Any]:
        self.check_intermittent_failure()
        if self.is_failing("check_request_is_valid"):
            return {"valid": False, "status": "hold_error_blocked"}
        return {"valid": True, "status": "request_place_text"}

    @capability(IlsMethod.place_hold)
    def place_hold(self, hold_details: Dict[str, Any]) -> Dict[str, Any]:
        self.check_intermittent_failure()
        if self.is_failing("place_hold"):
            return {"success": False, "sys_message": FAILURE_MESSAGE}
        state = self._state(hold_details.get("patron"))
        request_number = f"{state.next_request_id:06d}"
        state.holds.append(
            {
                "id": hold_details["id"],
                "item_id": hold_details.get("item_id", state.next_request_id),
                "location": hold_details.get("pickup_location") or self.get_default_pickup_location(),
                "expire": hold_details.get("required_by"),
                "create": self._today().strftime(DATE_FORMAT),
                "reqnum": request_number,
                "frozen": False,
                "cancel_details": request_number,
                "update_details": request_number,
            }
        )
        state.next_request_id += 1
        return {"success": True}

    @capability(IlsMethod.get_cancel_hold_details)
    def get_cancel_hold_details(self, hold: Dict[str, Any], patron: Optional[Dict[str, Any]] = None) -> str:
        return hold["reqnum"]

    @capability(IlsMethod.cancel_holds)
    def cancel_holds(self, cancel_details: Dict[str, Any]) -> Dict[str, Any]:
        self.check_intermittent_failure()
        state = self._state(cancel_details.get("patron"))
        wanted = set(cancel_details.get("details") or [])
        kept: List[Dict[str, Any]] = []
        result: Dict[str, Any] = {"count": 0, "items": {}}
        for hold in state.holds:
            if hold["reqnum"] not in wanted:
                kept.append(hold)
            elif self.is_failing("cancel_holds"):
                kept.append(hold)
                result["items"][hold["item_id"]] = {
                    "success": False,
                    "status": "hold_cancel_fail",
                    "sys_message": FAILURE_MESSAGE,
                }
            else:
                result["count"] += 1
                result["items"][hold["item_id"]] = {"success": True, "status": "hold_cancel_success"}
        state.holds = kept
        return result

    # ------------------------------------------------------------------
    # Storage retrieval requests
    # ------------------------------------------------------------------

    @capability(IlsMethod.get_my_storage_retrieval_requests)
    def get_my_storage_retrieval_requests(self, patron: Dict[str, Any]) -> List[Dict[str, Any]]:
        self.check_intermittent_failure()
        return [dict(row) for row in self._state(patron).storage_retrieval_requests]

    @capability(IlsMethod.check_storage_retrieval_request_is_valid)
    def check_storage_retrieval_request_is_valid(
        self, record_id: str, data: Dict[str, Any], patron: Dict[str, Any]
    ) -> Union[bool, Dict[str, Any]]:
        self.check_intermittent_failure()
        if not self.section("settings").get("storage_retrieval_requests"):
            return False
        if self.is_failing("check_storage_retrieval_request_is_valid"):
            return {"valid": False, "status": "storage_retrieval_request_error_blocked"}
        return True

    @capability(IlsMethod.place_storage_retrieval_request)
    def place_storage_retrieval_request(self, details: Dict[str, Any]) -> Dict[str, Any]:
        self.check_intermittent_failure()
        if self.is_failing("place_storage_retrieval_request"):
            return {"success": False, "sys_message": FAILURE_MESSAGE}
        state = self._state(details.get("patron"))
        request_number = f"{state.next_request_id:06d}"
        state.storage_retrieval_requests.append(
            {
                "id": details["id"],
                "item_id": details.get("item_id", state.next_request_id),
                "location": details.get("pickup_location", ""),
                "create": self._today().strftime(DATE_FORMAT),
                "reqnum": request_number,
                "cancel_details": request_number,
            }
        )
        state.next_request_id += 1
        return {"success": True, "status": "storage_retrieval_request_place_success"}

    @capability(IlsMethod.get_cancel_storage_retrieval_request_details)
    def get_cancel_storage_retrieval_request_details(
        self, request: Dict[str, Any], patron: Optional[Dict[str, Any]] = None
    ) -> str:
        return request["reqnum"]

    @capability(IlsMethod.cancel_storage_retrieval_requests)
    def cancel_storage_retrieval_requests(self, cancel_details: Dict[str, Any]) -> Dict[str, Any]:
        self.check_intermittent_failure()
        state = self._state(cancel_details.get("patron"))
        wanted = set(cancel_details.get("details") or [])
        result: Dict[str, Any] = {"count": 0, "items": {}}
        kept = []
        for row in state.storage_retrieval_requests:
            if row["reqnum"] in wanted:
                result["count"] += 1
                result["items"][row["item_id"]] = {
                    "success": True,
                    "status": "storage_retrieval_request_cancel_success",
                }
            else:
                kept.append(row)
        state.storage_retrieval_requests = kept
        return result

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @capability(IlsMethod.get_config)
    def get_config(self, function: str, params: Any = None) -> Any:
        self.check_intermittent_failure()
        if function == "holds":
            return self._config.get("holds") or {
                "hmac_keys": "id:item_id:level",
                "extra_hold_fields": "comments:request_group:pickup_location:required_by_date",
                "default_required_date": "driver:0:2:0",
            }
        if function == "holdings":
            return {"item_limit": self.section("holdings").get("item_limit")}
        if function == "storage_retrieval_requests" and self.section("settings").get("storage_retrieval_requests"):
            return {
                "hmac_keys": "id",
                "extra_fields": "comments:pickup_location:required_by_date:item_issue",
                "help_text": "This is a storage retrieval request help text.",
            }
        if function == "change_password":
            return self._config.get("change_password") or {"min_length": 4, "max_length": 20}
        if function == "get_my_transaction_history":
            history = self.section("transaction_history")
            if not history.get("enabled"):
                return False
            config: Dict[str, Any] = {
                "sort": {
                    "checkout desc": "sort_checkout_date_desc",
                    "checkout asc": "sort_checkout_date_asc",
                    "return desc": "sort_return_date_desc",
                    "return asc": "sort_return_date_asc",
                    "due desc": "sort_due_date_desc",
                    "due asc": "sort_due_date_asc",
                },
                "default_sort": "checkout desc",
                "purge_all": history.get("purge_all", True),
                "purge_selected": history.get("purge_selected", True),
            }
            if self.section("loans").get("paging"):
                config["max_results"] = self.section("loans").get("max_page_size", 100)
            return config
        if function == "get_my_transactions":
            loans = self.section("loans")
            if not loans.get("paging"):
                return {}
            return {
                "max_results": loans.get("max_page_size", 100),
                "sort": {"due desc": "sort_due_date_desc", "due asc": "sort_due_date_asc", "title asc": "sort_title"},
                "default_sort": "due asc",
            }
        if function == "patron_login":
            return {"login_method": self.section("settings").get("login_method", "password")}
        return {}
