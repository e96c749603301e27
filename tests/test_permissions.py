import pytest

from console_rental.core import permissions
from console_rental.core.exceptions import NotFoundError, PermissionDeniedError
from console_rental.core.outcome import capture
from console_rental.core.permissions import Role

ADMIN_ONLY = [
    permissions.PRICING_SET,
    permissions.CONSOLE_MANAGE,
    permissions.PRODUCT_CREATE,
    permissions.PRODUCT_DELETE,
]

SHARED = [
    permissions.SESSION_OPEN,
    permissions.SESSION_ADD_ITEM,
    permissions.SESSION_CLOSE,
    permissions.SESSION_OVERRIDE_FEE,
    permissions.PACKAGE_PURCHASE,
    permissions.MEMBER_CREATE,
    permissions.PRODUCT_UPDATE,
    permissions.EXPENSE_RECORD,
]


@pytest.mark.parametrize("action", ADMIN_ONLY)
def test_admin_only_actions(action):
    assert permissions.is_allowed(Role.ADMIN, action)
    assert not permissions.is_allowed(Role.STAFF, action)
    with pytest.raises(PermissionDeniedError):
        permissions.require(Role.STAFF, action)


@pytest.mark.parametrize("action", SHARED)
def test_shared_actions(action):
    assert permissions.is_allowed(Role.ADMIN, action)
    assert permissions.is_allowed("staff", action)


def test_unknown_role_or_action():
    assert not permissions.is_allowed("owner", permissions.SESSION_OPEN)
    assert not permissions.is_allowed(Role.ADMIN, "shop.burn_down")


def test_capture_wraps_engine_errors():
    def fail():
        raise NotFoundError("Console tv-9 not found")

    outcome = capture(fail)
    assert not outcome.ok
    assert outcome.error_kind == "NotFoundError"
    assert outcome.error.status_code == 404

    outcome = capture(lambda x: x * 2, 21)
    assert outcome.ok
    assert outcome.value == 42


def test_capture_lets_programming_errors_through():
    with pytest.raises(ZeroDivisionError):
        capture(lambda: 1 / 0)
