"""
Role based authorization policy.

    if not is_allowed(user.role, Action.DELETE_ORDER):
        ...

or, inside a service, before any write:

    require(actor, Action.UPDATE_PAYMENT_STATUS)
"""
from enum import Enum
from typing import Optional, Union

from errors import LoginRequired, Unauthorized


class Role(str, Enum):
    GUEST = "Guest"
    CUSTOMER = "Customer"
    WAITER = "Waiter"
    CHEF = "Chef"
    ADMIN = "Admin"

    @classmethod
    def parse(cls, value: Union["Role", str, None]) -> "Role":
        """Case-insensitive. Missing or unknown roles fall back to Guest."""
        if isinstance(value, Role):
            return value
        if not value:
            return cls.GUEST
        wanted = str(value).strip().lower()
        for role in cls:
            if role.value.lower() == wanted:
                return role
        return cls.GUEST

    @classmethod
    def validate(cls, value: str) -> "Role":
        """Strict variant of parse used when assigning roles."""
        wanted = (value or "").strip().lower()
        for role in cls:
            if role.value.lower() == wanted:
                return role
        raise ValueError(f"Role must be one of: {', '.join(r.value for r in cls)}")


class Action(str, Enum):
    TOGGLE_MENU_AVAILABILITY = "toggle_menu_availability"
    MANAGE_MENU_ITEM = "manage_menu_item"
    LIST_USERS = "list_users"
    MANAGE_USER = "manage_user"
    READ_ORDERS = "read_orders"
    CREATE_ORDER = "create_order"
    UPDATE_ORDER_STATUS = "update_order_status"
    UPDATE_PAYMENT_STATUS = "update_payment_status"
    CLEAR_COMPLETED_ORDERS = "clear_completed_orders"
    DELETE_ORDER = "delete_order"
    VIEW_REPORTS = "view_reports"


STAFF_ROLES = frozenset({Role.CHEF, Role.ADMIN})

POLICY = {
    Action.TOGGLE_MENU_AVAILABILITY: frozenset({Role.CHEF, Role.ADMIN}),
    Action.MANAGE_MENU_ITEM: frozenset({Role.CHEF, Role.ADMIN}),
    Action.LIST_USERS: frozenset({Role.ADMIN}),
    Action.MANAGE_USER: frozenset({Role.ADMIN}),
    Action.READ_ORDERS: frozenset(Role),
    Action.CREATE_ORDER: frozenset({Role.GUEST, Role.CUSTOMER, Role.WAITER}),
    Action.UPDATE_ORDER_STATUS: frozenset({Role.WAITER, Role.CHEF, Role.ADMIN}),
    Action.UPDATE_PAYMENT_STATUS: frozenset({Role.WAITER, Role.ADMIN}),
    Action.CLEAR_COMPLETED_ORDERS: frozenset({Role.ADMIN}),
    Action.DELETE_ORDER: frozenset({Role.ADMIN}),
    Action.VIEW_REPORTS: frozenset({Role.ADMIN}),
}

DENIAL_REASONS = {
    Action.TOGGLE_MENU_AVAILABILITY: "Chef or Admin only",
    Action.MANAGE_MENU_ITEM: "Chef or Admin only",
    Action.LIST_USERS: "Admin only",
    Action.MANAGE_USER: "Admin only",
    Action.CREATE_ORDER: "Chefs & Admins cannot place orders",
    Action.UPDATE_ORDER_STATUS: "Only Waiter, Chef, or Admin can update status",
    Action.UPDATE_PAYMENT_STATUS: "Only Waiter or Admin can update payment",
    Action.CLEAR_COMPLETED_ORDERS: "Admin only",
    Action.DELETE_ORDER: "Admin only",
    Action.VIEW_REPORTS: "Admin only",
}


def role_of(actor) -> Role:
    """Role of a user object, a role string, or None (Guest)."""
    if actor is None:
        return Role.GUEST
    if isinstance(actor, (Role, str)):
        return Role.parse(actor)
    return Role.parse(getattr(actor, "role", None))


def is_allowed(role: Optional[Union[Role, str]], action: Action) -> bool:
    return Role.parse(role) in POLICY[action]


def is_staff(role: Optional[Union[Role, str]]) -> bool:
    return Role.parse(role) in STAFF_ROLES


def require(actor, action: Action) -> Role:
    role = role_of(actor)
    if role in POLICY[action]:
        return role
    if actor is None and Role.GUEST not in POLICY[action]:
        raise LoginRequired()
    raise Unauthorized(DENIAL_REASONS.get(action, "Not allowed"))
