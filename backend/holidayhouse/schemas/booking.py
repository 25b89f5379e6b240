# holidayhouse/schemas/booking.py
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field

from holidayhouse.core.rbac import UserRole
from holidayhouse.db.models import (
    AuditAction,
    BookingScope,
    BookingSource,
    BookingStatus,
    GuestType,
)
from holidayhouse.schemas.fees import GuestBreakdown


class BookingGuestIn(BaseModel):
    full_name: str = Field(min_length=1, max_length=255)
    age: Optional[int] = Field(None, ge=0, le=130)
    guest_type: GuestType
    user_id: Optional[int] = None
    is_primary_contact: bool = False


class RoomAllocationIn(BaseModel):
    room_id: int
    guest_label: Optional[str] = Field(None, max_length=120)
    guest_count: int = Field(gt=0)


class BookingCreate(BaseModel):
    # defaults from the caller's role when omitted
    source: Optional[BookingSource] = None
    scope: BookingScope = BookingScope.WHOLE_HOUSE
    start_date: date
    end_date: date
    pet_count: int = Field(0, ge=0)
    notes: Optional[str] = Field(None, max_length=2000)

    guest_breakdown: GuestBreakdown = Field(default_factory=GuestBreakdown)
    guests: List[BookingGuestIn] = []
    room_allocations: List[RoomAllocationIn] = []

    external_lead_name: Optional[str] = Field(None, max_length=120)
    external_lead_email: Optional[EmailStr] = None
    external_lead_phone: Optional[str] = Field(None, max_length=50)

    def total_guests(self) -> int:
        """Named guests when given, otherwise the priced head count."""
        if self.guests:
            return len(self.guests)
        return self.guest_breakdown.total


class BookingLookup(BaseModel):
    """How an anonymous lead proves access to a booking."""

    reference: str = Field(min_length=1, max_length=64)
    token: Optional[str] = None
    email: Optional[str] = None


class BookingUpdate(BookingLookup):
    start_date: date
    end_date: date
    total_guests: Optional[int] = Field(None, ge=1)
    pet_count: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = Field(None, max_length=2000)
    guest_breakdown: Optional[GuestBreakdown] = None
    recalculate_fees: bool = False
    external_lead_name: Optional[str] = Field(None, max_length=120)
    external_lead_email: Optional[EmailStr] = None
    external_lead_phone: Optional[str] = Field(None, max_length=50)


class RejectRequest(BaseModel):
    # length is checked by the state machine so it answers 400, not 422
    reason: Optional[str] = None


class CommentCreate(BaseModel):
    comment: str
    token: Optional[str] = None
    email: Optional[str] = None


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)
    token: Optional[str] = None
    email: Optional[str] = None


# ---------------------------
# Responses
# ---------------------------

class GuestOut(BaseModel):
    id: int
    full_name: str
    age: Optional[int] = None
    guest_type: GuestType
    user_id: Optional[int] = None
    is_primary_contact: bool

    model_config = {"from_attributes": True}


class RoomAllocationOut(BaseModel):
    id: int
    room_id: int
    guest_label: Optional[str] = None
    guest_count: int

    model_config = {"from_attributes": True}


class AuditLogOut(BaseModel):
    id: int
    action: AuditAction
    actor_id: Optional[int] = None
    actor_role: Optional[UserRole] = None
    comment: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class BookingOut(BaseModel):
    # never carries manage_token
    id: str
    source: BookingSource
    scope: BookingScope
    status: BookingStatus
    start_date: date
    end_date: date
    nights: int
    total_guests: int
    pet_count: int
    notes: Optional[str] = None
    guest_breakdown: Optional[Dict[str, int]] = None

    requested_by_id: Optional[int] = None
    external_lead_name: Optional[str] = None
    external_lead_email: Optional[str] = None
    external_lead_phone: Optional[str] = None

    approved_by_id: Optional[int] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None

    total_amount: Optional[Decimal] = None
    currency: str
    fee_snapshot: Optional[Dict[str, Any]] = None

    guests: List[GuestOut] = []
    room_allocations: List[RoomAllocationOut] = []
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BookingDetailOut(BookingOut):
    audit_logs: List[AuditLogOut] = []


class BookingManageView(BaseModel):
    id: str
    source: BookingSource
    scope: BookingScope
    status: BookingStatus
    start_date: date
    end_date: date
    nights: int
    total_guests: int
    pet_count: int
    notes: Optional[str] = None
    external_lead_name: Optional[str] = None
    external_lead_email: Optional[str] = None
    external_lead_phone: Optional[str] = None
    total_amount: Optional[Decimal] = None
    currency: str
    rejection_reason: Optional[str] = None
    fee_snapshot: Optional[Dict[str, Any]] = None
    audit_logs: List[AuditLogOut] = []

    model_config = {"from_attributes": True}


class AvailabilityOut(BaseModel):
    id: str
    start_date: date
    end_date: date
    status: BookingStatus

    model_config = {"from_attributes": True}
