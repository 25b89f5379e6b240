import pytest
from jose import JWTError

from holidayhouse.core.errors import AccessDeniedError
from holidayhouse.core.rbac import Permission, UserRole, has_permission
from holidayhouse.core.security import (
    create_access_token,
    generate_manage_token,
    tokens_match,
    verify_access_token,
)
from holidayhouse.db.models import Booking, User
from holidayhouse.services.access import resolve_booking_access


def _user(id, role, email="someone@example.com", name="Someone"):
    return User(id=id, name=name, email=email, role=role, is_active=True)


def _booking(**overrides):
    values = dict(
        id="c" * 32,
        requested_by_id=None,
        external_lead_email="Lead@Example.com",
        manage_token="f" * 48,
    )
    values.update(overrides)
    return Booking(**values)


def test_permission_table():
    assert has_permission(UserRole.SHAREHOLDER, Permission.BOOKING_APPROVE)
    assert has_permission(UserRole.SUPER_ADMIN, Permission.FINANCE_EDIT)
    assert has_permission(UserRole.FAMILY_MEMBER, Permission.BOOKING_CREATE_FAMILY)
    assert not has_permission(UserRole.FAMILY_MEMBER, Permission.BOOKING_APPROVE)
    assert has_permission(UserRole.GUEST, Permission.BOOKING_CREATE_EXTERNAL)
    assert not has_permission(UserRole.GUEST, Permission.BOOKING_CREATE_FAMILY)
    assert not has_permission(None, Permission.BOOKING_CREATE_EXTERNAL)
    assert not has_permission("JANITOR", Permission.BOOKING_MANAGE)


def test_staff_and_owner_have_access():
    admin = _user(1, UserRole.SUPER_ADMIN, name="Alice")
    owner = _user(2, UserRole.FAMILY_MEMBER, name="Mo")

    assert resolve_booking_access(_booking(), admin).user_id == 1
    actor = resolve_booking_access(_booking(requested_by_id=2), owner)
    assert actor.label == "Mo"
    assert actor.role == UserRole.FAMILY_MEMBER


def test_token_and_email_access():
    booking = _booking()
    assert resolve_booking_access(booking, token="f" * 48).label == "Guest (magic link)"
    assert resolve_booking_access(booking, email=" lead@example.COM").email == " lead@example.COM"


def test_access_denied():
    stranger = _user(3, UserRole.FAMILY_MEMBER)
    booking = _booking(requested_by_id=2)
    with pytest.raises(AccessDeniedError):
        resolve_booking_access(booking, stranger)
    with pytest.raises(AccessDeniedError):
        resolve_booking_access(booking, token="0" * 48)
    with pytest.raises(AccessDeniedError):
        resolve_booking_access(booking, email="other@example.com")
    with pytest.raises(AccessDeniedError):
        resolve_booking_access(_booking(manage_token=None), token="")


def test_access_tokens():
    token = create_access_token({"user_id": 7, "role": "SHAREHOLDER"})
    payload = verify_access_token(token)
    assert payload["user_id"] == 7
    assert payload["type"] == "access"


def test_access_token_requires_user_id():
    with pytest.raises(JWTError):
        verify_access_token(create_access_token({"sub": "7"}))


def test_manage_tokens():
    token = generate_manage_token()
    assert len(token) == 48
    int(token, 16)
    assert token != generate_manage_token()
    assert tokens_match(token, token)
    assert not tokens_match(token, token[:-1] + "x")
    assert not tokens_match(None, token)
