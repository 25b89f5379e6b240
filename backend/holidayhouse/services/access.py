# holidayhouse/services/access.py
from dataclasses import dataclass
from typing import Optional

from holidayhouse.core.errors import AccessDeniedError
from holidayhouse.core.rbac import Permission, UserRole, has_permission
from holidayhouse.core.security import tokens_match
from holidayhouse.db.models import Booking, User


@dataclass
class Actor:
    """
    Whoever drives an operation. Anonymous leads (manage token or email
    match) have no user id or role.
    """

    user_id: Optional[int] = None
    role: Optional[UserRole] = None
    label: str = "Guest"
    email: Optional[str] = None

    @classmethod
    def from_user(cls, user: Optional[User]) -> "Actor":
        if user is None:
            return cls()
        return cls(
            user_id=user.id,
            role=user.role,
            label=user.name or user.email or str(user.id),
            email=user.email,
        )

    def can(self, permission: Permission) -> bool:
        return has_permission(self.role, permission)


def resolve_booking_access(
    booking: Booking,
    user: Optional[User] = None,
    token: Optional[str] = None,
    email: Optional[str] = None,
) -> Actor:
    """
    Manage access to one booking: staff with booking:manage, the requester,
    a holder of the booking's manage token, or someone who knows the lead
    (or requester) email.
    """
    if user is not None:
        actor = Actor.from_user(user)
        if actor.can(Permission.BOOKING_MANAGE) or booking.requested_by_id == user.id:
            return actor

    if token and tokens_match(booking.manage_token, token):
        return Actor(label="Guest (magic link)")

    if email:
        candidate = email.strip().lower()
        known = [booking.external_lead_email]
        if booking.requested_by is not None:
            known.append(booking.requested_by.email)
        if any(value and value.lower() == candidate for value in known):
            return Actor(label=email, email=email)

    raise AccessDeniedError("Booking not found or access denied")
