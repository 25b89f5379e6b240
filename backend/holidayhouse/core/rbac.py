# holidayhouse/core/rbac.py
from enum import Enum
from typing import Dict, FrozenSet, Optional


class UserRole(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    SHAREHOLDER = "SHAREHOLDER"
    FAMILY_MEMBER = "FAMILY_MEMBER"
    GUEST = "GUEST"


class Permission(str, Enum):
    BOOKING_CREATE_EXTERNAL = "booking:create:external"
    BOOKING_CREATE_FAMILY = "booking:create:family"
    BOOKING_APPROVE = "booking:approve"
    BOOKING_MANAGE = "booking:manage"
    FINANCE_VIEW = "finance:view"
    FINANCE_EDIT = "finance:edit"


_STAFF: FrozenSet[Permission] = frozenset(Permission)

# Flat table, no role inheritance
PERMISSIONS: Dict[UserRole, FrozenSet[Permission]] = {
    UserRole.SUPER_ADMIN: _STAFF,
    UserRole.SHAREHOLDER: _STAFF,
    UserRole.FAMILY_MEMBER: frozenset(
        {Permission.BOOKING_CREATE_FAMILY}
    ),
    UserRole.GUEST: frozenset(
        {Permission.BOOKING_CREATE_EXTERNAL}
    ),
}


def has_permission(role: Optional[UserRole], permission: Permission) -> bool:
    if role is None:
        return False
    try:
        role = UserRole(role)
    except ValueError:
        return False
    return permission in PERMISSIONS[role]
