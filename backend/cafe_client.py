"""
Client-side mirror of the cafe: menu, orders, users (admins only) and a
local shopping cart.

Every server mutation is followed by a full refetch; nothing is patched in
place. The cart lives only here until place_order sends it.

    client = CafeClient("http://localhost:8000", role="Waiter", token=token)
    client.refetch()
    client.add_to_cart(7)
    client.place_order("Abebe", "4")
"""
import logging
from enum import Enum
from typing import Any, Dict, List, Optional

import requests

from permissions import Role

logger = logging.getLogger(__name__)


class CacheState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"


class CafeClientError(Exception):
    """Short, user-facing failure message plus the HTTP status when there was one."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class CafeClient:
    def __init__(self, base_url: str, role: Optional[str] = None, token: Optional[str] = None,
                 session=None, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        # role is fixed for the lifetime of the client
        self.role = Role.parse(role)
        self.token = token
        self.session = session or requests.Session()
        self.timeout = timeout

        self.state = CacheState.UNINITIALIZED
        self.menu_items: List[Dict[str, Any]] = []
        self.orders: List[Dict[str, Any]] = []
        self.users: List[Dict[str, Any]] = []
        self.cart: List[Dict[str, int]] = []

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def loading(self) -> bool:
        return self.state == CacheState.LOADING

    # ---------- transport ----------

    def _request(self, method: str, path: str, json: Any = None) -> Any:
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        kwargs = {"headers": headers}
        if json is not None:
            kwargs["json"] = json
        if isinstance(self.session, requests.Session):
            kwargs["timeout"] = self.timeout
        try:
            resp = self.session.request(method, f"{self.base_url}{path}", **kwargs)
        except requests.RequestException as e:
            logger.error(f"{method} {path} failed: {e}")
            raise CafeClientError("Could not reach the server") from e

        if resp.status_code >= 400:
            try:
                message = resp.json().get("detail") or "Request failed"
            except ValueError:
                message = "Request failed"
            if not isinstance(message, str):
                message = "Request failed"
            raise CafeClientError(message, resp.status_code)

        if not resp.content:
            return None
        return resp.json()

    # ---------- loading ----------

    def refetch(self) -> None:
        previous = self.state
        self.state = CacheState.LOADING
        try:
            menu = self._request("GET", "/menu")
            orders = self._request("GET", "/orders")
            users = self._request("GET", "/users") if self.is_admin else []
        except CafeClientError:
            self.state = previous
            logger.error("Failed to load data")
            raise

        self.menu_items = menu
        self.orders = orders
        self.users = users
        self.state = CacheState.READY

    def _mutate(self, method: str, path: str, json: Any = None) -> Any:
        result = self._request(method, path, json)
        self.refetch()
        return result

    # ---------- cart (local only) ----------

    def _cart_entry(self, item_id: int) -> Optional[Dict[str, int]]:
        return next((entry for entry in self.cart if entry["menu_item_id"] == item_id), None)

    def add_to_cart(self, item_id: int) -> None:
        entry = self._cart_entry(item_id)
        if entry:
            entry["quantity"] += 1
        else:
            self.cart.append({"menu_item_id": item_id, "quantity": 1})

    def remove_from_cart(self, item_id: int) -> None:
        entry = self._cart_entry(item_id)
        if not entry:
            return
        if entry["quantity"] <= 1:
            self.cart.remove(entry)
        else:
            entry["quantity"] -= 1

    def clear_cart(self) -> None:
        self.cart = []

    def cart_quantity(self, item_id: int) -> int:
        entry = self._cart_entry(item_id)
        return entry["quantity"] if entry else 0

    def cart_total(self) -> float:
        """Sum over the cart at the cached menu prices; the server re-checks it."""
        prices = {item["id"]: item["price"] for item in self.menu_items}
        total = sum(prices.get(entry["menu_item_id"], 0) * entry["quantity"] for entry in self.cart)
        return round(total, 2)

    @property
    def cart_item_count(self) -> int:
        return sum(entry["quantity"] for entry in self.cart)

    # ---------- mutations ----------

    def place_order(self, customer_name: str, table_number: str, notes: Optional[str] = None) -> Dict[str, Any]:
        if not self.cart:
            raise CafeClientError("Cart empty")
        if not customer_name or not table_number:
            raise CafeClientError("Fill name & table")

        payload = {
            "customer_name": customer_name,
            "table_number": str(table_number),
            "notes": notes,
            "items": [dict(entry) for entry in self.cart],
            "total": self.cart_total(),
        }
        order = self._request("POST", "/orders", payload)
        self.clear_cart()
        logger.info(f"Order {order['id']} sent to kitchen")
        # the order is saved; a failed reload must not look like a failed order
        try:
            self.refetch()
        except CafeClientError as e:
            logger.warning(f"Order {order['id']} placed but reload failed: {e.message}")
        return order

    def update_order_status(self, order_id: int, status: str) -> Dict[str, Any]:
        return self._mutate("PUT", f"/orders/{order_id}/status", {"status": status})

    def update_payment_status(self, order_id: int, payment_status: str) -> Dict[str, Any]:
        return self._mutate("PUT", f"/orders/{order_id}/payment", {"payment_status": payment_status})

    def clear_sales_data(self) -> int:
        return self._mutate("POST", "/orders/clear-completed")["deleted_count"]

    def delete_order(self, order_id: int) -> None:
        self._mutate("DELETE", f"/orders/{order_id}")

    def toggle_availability(self, item_id: int, is_available: bool) -> Dict[str, Any]:
        return self._mutate("POST", f"/menu/{item_id}/availability", {"is_available": is_available})

    def create_menu_item(self, **fields) -> Dict[str, Any]:
        return self._mutate("POST", "/menu", fields)

    def update_menu_item(self, item_id: int, **fields) -> Dict[str, Any]:
        return self._mutate("PUT", f"/menu/{item_id}", fields)

    def delete_menu_item(self, item_id: int) -> None:
        self._mutate("DELETE", f"/menu/{item_id}")

    def save_user(self, role: str, email: Optional[str] = None, name: Optional[str] = None,
                  user_id: Optional[int] = None, password: Optional[str] = None) -> Dict[str, Any]:
        payload = {"role": role, "email": email, "name": name, "user_id": user_id, "password": password}
        return self._mutate("POST", "/users", {k: v for k, v in payload.items() if v is not None})

    def delete_user(self, user_id: int) -> None:
        self._mutate("DELETE", f"/users/{user_id}")
