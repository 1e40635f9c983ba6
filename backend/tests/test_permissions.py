import pytest

from errors import LoginRequired, Unauthorized
from permissions import Action, Role, is_allowed, is_staff, require

EXPECTED = {
    Action.TOGGLE_MENU_AVAILABILITY: {"Chef", "Admin"},
    Action.MANAGE_MENU_ITEM: {"Chef", "Admin"},
    Action.LIST_USERS: {"Admin"},
    Action.MANAGE_USER: {"Admin"},
    Action.READ_ORDERS: {"Guest", "Customer", "Waiter", "Chef", "Admin"},
    Action.CREATE_ORDER: {"Guest", "Customer", "Waiter"},
    Action.UPDATE_ORDER_STATUS: {"Waiter", "Chef", "Admin"},
    Action.UPDATE_PAYMENT_STATUS: {"Waiter", "Admin"},
    Action.CLEAR_COMPLETED_ORDERS: {"Admin"},
    Action.DELETE_ORDER: {"Admin"},
    Action.VIEW_REPORTS: {"Admin"},
}

ALL_ROLES = ["Guest", "Customer", "Waiter", "Chef", "Admin"]


@pytest.mark.parametrize("action", list(Action))
@pytest.mark.parametrize("role", ALL_ROLES)
def test_policy_table(role, action):
    expected = role in EXPECTED[action]
    assert is_allowed(role, action) is expected
    assert is_allowed(role.lower(), action) is expected
    assert is_allowed(role.upper(), action) is expected


def test_missing_role_is_guest():
    assert is_allowed(None, Action.CREATE_ORDER) is True
    assert is_allowed(None, Action.UPDATE_ORDER_STATUS) is False
    assert is_allowed("", Action.READ_ORDERS) is True


def test_unknown_role_gets_guest_rights():
    assert Role.parse("sommelier") == Role.GUEST
    assert is_allowed("sommelier", Action.CREATE_ORDER) is True
    assert is_allowed("sommelier", Action.TOGGLE_MENU_AVAILABILITY) is False


def test_role_validate_is_strict():
    assert Role.validate(" chef ") == Role.CHEF
    with pytest.raises(ValueError):
        Role.validate("sommelier")


def test_is_staff():
    assert is_staff("CHEF") and is_staff("admin")
    assert not any(is_staff(r) for r in ("Guest", "Customer", "Waiter", None))


def test_require_without_session_asks_for_login():
    with pytest.raises(LoginRequired) as exc:
        require(None, Action.UPDATE_PAYMENT_STATUS)
    assert exc.value.message == "Login required"
    assert isinstance(exc.value, Unauthorized)


def test_require_wrong_role_gives_reason():
    with pytest.raises(Unauthorized) as exc:
        require("Chef", Action.UPDATE_PAYMENT_STATUS)
    assert not isinstance(exc.value, LoginRequired)
    assert exc.value.message == "Only Waiter or Admin can update payment"


def test_require_accepts_user_objects():
    class Someone:
        role = "admin"

    assert require(Someone(), Action.DELETE_ORDER) == Role.ADMIN
    assert require(None, Action.CREATE_ORDER) == Role.GUEST
