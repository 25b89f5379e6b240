# holidayhouse/db/models.py

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Date,
    Text,
    ForeignKey,
    Numeric,
    Boolean,
    JSON,
    CheckConstraint,
    Index,
    Enum as SAEnum,
)
from sqlalchemy.orm import relationship

from holidayhouse.core.config import settings
from holidayhouse.core.rbac import UserRole
from holidayhouse.db.base import Base


class BookingSource(str, Enum):
    INTERNAL = "INTERNAL"
    EXTERNAL_PUBLIC = "EXTERNAL_PUBLIC"
    MANUAL_IMPORT = "MANUAL_IMPORT"


class BookingScope(str, Enum):
    WHOLE_HOUSE = "WHOLE_HOUSE"
    ROOM_SPECIFIC = "ROOM_SPECIFIC"


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class GuestType(str, Enum):
    MEMBER = "MEMBER"
    DEPENDENT_WITH_MEMBER = "DEPENDENT_WITH_MEMBER"
    DEPENDENT_WITHOUT_MEMBER = "DEPENDENT_WITHOUT_MEMBER"
    GUEST_OF_MEMBER = "GUEST_OF_MEMBER"
    GUEST_OF_DEPENDENT = "GUEST_OF_DEPENDENT"
    MERE_FAMILY = "MERE_FAMILY"
    VISITOR_ADULT = "VISITOR_ADULT"
    VISITOR_CHILD_UNDER_6 = "VISITOR_CHILD_UNDER_6"


class AuditAction(str, Enum):
    CREATED = "CREATED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    COMMENT = "COMMENT"


def _enum(enum_cls):
    # Stored as VARCHAR so MySQL/SQLite/PostgreSQL share one schema
    return SAEnum(enum_cls, native_enum=False, length=32, validate_strings=True)


def new_booking_reference() -> str:
    return uuid.uuid4().hex


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(50), nullable=True)

    role = Column(_enum(UserRole), nullable=False, default=UserRole.GUEST)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    bookings = relationship(
        "Booking",
        back_populates="requested_by",
        foreign_keys="Booking.requested_by_id",
    )


class Room(Base):
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(32), unique=True, nullable=False)
    name = Column(String(120), nullable=False)
    capacity = Column(Integer, nullable=False, default=2)
    is_active = Column(Boolean, nullable=False, default=True)


class FeeConfig(Base):
    __tablename__ = "fee_configs"

    id = Column(Integer, primary_key=True, index=True)

    # Only the fallback row carries a key ("default"); the unique index is
    # what makes creating it an upsert instead of check-then-insert.
    key = Column(String(32), unique=True, nullable=True)

    monthly_member_subscription = Column(Numeric(10, 2), nullable=False, default=Decimal("100.00"))

    # Internal (family) nightly rates, per person
    member_night_rate = Column(Numeric(10, 2), nullable=False, default=Decimal("50.00"))
    dependent_with_member_night_rate = Column(Numeric(10, 2), nullable=False, default=Decimal("25.00"))
    dependent_without_member_night_rate = Column(Numeric(10, 2), nullable=False, default=Decimal("50.00"))
    guest_of_member_night_rate = Column(Numeric(10, 2), nullable=False, default=Decimal("50.00"))
    guest_of_dependent_night_rate = Column(Numeric(10, 2), nullable=False, default=Decimal("25.00"))
    mere_family_night_rate = Column(Numeric(10, 2), nullable=False, default=Decimal("200.00"))

    # External (public) nightly rates, per person
    external_adult_night_rate = Column(Numeric(10, 2), nullable=False, default=Decimal("400.00"))
    external_child_night_rate = Column(Numeric(10, 2), nullable=False, default=Decimal("200.00"))
    external_whole_house_min_rate = Column(Numeric(10, 2), nullable=True)

    overdue_reminder_enabled = Column(Boolean, nullable=False, default=True)
    currency = Column(String(3), nullable=False, default=lambda: settings.DEFAULT_CURRENCY)

    is_active = Column(Boolean, nullable=False, default=True, index=True)
    effective_from = Column(Date, nullable=False, index=True)
    effective_to = Column(Date, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    seasonal_rates = relationship(
        "SeasonalRate",
        back_populates="fee_config",
        cascade="all,delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by=lambda: [SeasonalRate.priority.desc(), SeasonalRate.name],
    )


class SeasonalRate(Base):
    __tablename__ = "seasonal_rates"
    __table_args__ = (
        CheckConstraint("start_month BETWEEN 1 AND 12", name="ck_seasonal_rates_start_month"),
        CheckConstraint("end_month BETWEEN 1 AND 12", name="ck_seasonal_rates_end_month"),
        CheckConstraint("start_day BETWEEN 1 AND 31", name="ck_seasonal_rates_start_day"),
        CheckConstraint("end_day BETWEEN 1 AND 31", name="ck_seasonal_rates_end_day"),
    )

    id = Column(Integer, primary_key=True, index=True)
    fee_config_id = Column(
        Integer,
        ForeignKey("fee_configs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name = Column(String(120), nullable=False)
    start_month = Column(Integer, nullable=False)
    start_day = Column(Integer, nullable=False)
    end_month = Column(Integer, nullable=False)
    end_day = Column(Integer, nullable=False)
    priority = Column(Integer, nullable=False, default=0)

    external_adult_night_rate = Column(Numeric(10, 2), nullable=False)
    external_child_night_rate = Column(Numeric(10, 2), nullable=False)
    enabled = Column(Boolean, nullable=False, default=True)

    fee_config = relationship("FeeConfig", back_populates="seasonal_rates")


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("end_date > start_date", name="ck_bookings_date_order"),
        CheckConstraint("nights >= 1", name="ck_bookings_nights"),
        CheckConstraint("total_guests >= 1", name="ck_bookings_total_guests"),
        CheckConstraint("pet_count >= 0", name="ck_bookings_pet_count"),
        # the overlap query filters on status and both dates
        Index("ix_bookings_status_dates", "status", "start_date", "end_date"),
    )

    # Also shown to users as the booking "reference"
    id = Column(String(32), primary_key=True, default=new_booking_reference)

    source = Column(_enum(BookingSource), nullable=False)
    scope = Column(_enum(BookingScope), nullable=False, default=BookingScope.WHOLE_HOUSE)
    status = Column(_enum(BookingStatus), nullable=False, default=BookingStatus.PENDING, index=True)

    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    nights = Column(Integer, nullable=False)

    total_guests = Column(Integer, nullable=False)
    pet_count = Column(Integer, nullable=False, default=0)
    notes = Column(Text, nullable=True)

    # per-guest-type counts the booking was priced with
    guest_breakdown = Column(JSON, nullable=True)

    requested_by_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    external_lead_name = Column(String(120), nullable=True)
    external_lead_email = Column(String(255), nullable=True, index=True)
    external_lead_phone = Column(String(50), nullable=True)

    # Set on APPROVED and on REJECTED (records who rejected)
    approved_by_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    approved_at = Column(DateTime, nullable=True)
    rejection_reason = Column(String(500), nullable=True)

    total_amount = Column(Numeric(12, 2), nullable=True)
    currency = Column(String(3), nullable=False, default=lambda: settings.DEFAULT_CURRENCY)
    # {lineItems: [{label, amount}], total, currency, effectiveRateName?}
    fee_snapshot = Column(JSON, nullable=True)

    manage_token = Column(String(64), nullable=True, unique=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    requested_by = relationship(
        "User",
        back_populates="bookings",
        foreign_keys=[requested_by_id],
        lazy="selectin",
    )
    approved_by = relationship(
        "User",
        foreign_keys=[approved_by_id],
        lazy="selectin",
    )

    guests = relationship(
        "BookingGuest",
        back_populates="booking",
        cascade="all,delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by="BookingGuest.id",
    )
    room_allocations = relationship(
        "RoomAllocation",
        back_populates="booking",
        cascade="all,delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by="RoomAllocation.id",
    )
    # Autoincrement id is the ordering signal; created_at can tie
    audit_logs = relationship(
        "BookingAuditLog",
        back_populates="booking",
        cascade="all,delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by="BookingAuditLog.id",
    )


class BookingGuest(Base):
    __tablename__ = "booking_guests"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(
        String(32),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    full_name = Column(String(255), nullable=False)
    age = Column(Integer, nullable=True)
    guest_type = Column(_enum(GuestType), nullable=False)
    is_primary_contact = Column(Boolean, nullable=False, default=False)

    booking = relationship("Booking", back_populates="guests")


class RoomAllocation(Base):
    __tablename__ = "room_allocations"
    __table_args__ = (
        CheckConstraint("guest_count > 0", name="ck_room_allocations_guest_count"),
    )

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(
        String(32),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False)
    guest_label = Column(String(120), nullable=True)
    guest_count = Column(Integer, nullable=False)

    booking = relationship("Booking", back_populates="room_allocations")
    room = relationship("Room", lazy="selectin")


class BookingAuditLog(Base):
    __tablename__ = "booking_audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(
        String(32),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    actor_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    actor_role = Column(_enum(UserRole), nullable=True)
    action = Column(_enum(AuditAction), nullable=False)
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    booking = relationship("Booking", back_populates="audit_logs")
