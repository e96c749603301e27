from enum import Enum
from typing import Dict, FrozenSet

from loguru import logger

from console_rental.core.exceptions import PermissionDeniedError


class Role(str, Enum):
    ADMIN = "admin"
    STAFF = "staff"


# Actions checked before every mutating engine operation
SESSION_OPEN = "session.open"
SESSION_ADD_ITEM = "session.add_item"
SESSION_CLOSE = "session.close"
SESSION_OVERRIDE_FEE = "session.override_fee"
PACKAGE_PURCHASE = "package.purchase"
MEMBER_CREATE = "member.create"
PRICING_SET = "pricing.set"
CONSOLE_MANAGE = "console.manage"
PRODUCT_CREATE = "product.create"
PRODUCT_UPDATE = "product.update"
PRODUCT_DELETE = "product.delete"
EXPENSE_RECORD = "expense.record"

_STAFF_ACTIONS = frozenset(
    {
        SESSION_OPEN,
        SESSION_ADD_ITEM,
        SESSION_CLOSE,
        SESSION_OVERRIDE_FEE,
        PACKAGE_PURCHASE,
        MEMBER_CREATE,
        PRODUCT_UPDATE,
        EXPENSE_RECORD,
    }
)

_ADMIN_ACTIONS = _STAFF_ACTIONS | frozenset(
    {PRICING_SET, CONSOLE_MANAGE, PRODUCT_CREATE, PRODUCT_DELETE}
)

GRANTS: Dict[Role, FrozenSet[str]] = {
    Role.ADMIN: _ADMIN_ACTIONS,
    Role.STAFF: _STAFF_ACTIONS,
}


def is_allowed(role, action: str) -> bool:
    try:
        role = Role(role)
    except ValueError:
        return False
    return action in GRANTS.get(role, frozenset())


def require(role, action: str) -> None:
    if not is_allowed(role, action):
        logger.warning(f"Permission denied: role={role} action={action}")
        raise PermissionDeniedError(f"Role '{role}' may not perform '{action}'")
