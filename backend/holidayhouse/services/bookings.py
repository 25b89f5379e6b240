# holidayhouse/services/bookings.py
"""
Booking lifecycle.

    PENDING  -> APPROVED | REJECTED | CANCELLED
    APPROVED -> PENDING (edit) | REJECTED | CANCELLED
    REJECTED -> PENDING (edit) | APPROVED
    CANCELLED is terminal.

Each operation runs in one unit of work and returns a BookingOutcome. The
outcome's messages are only built here; the caller delivers them once the
transaction has committed.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from holidayhouse.core.config import get_settings
from holidayhouse.core.errors import (
    AccessDeniedError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from holidayhouse.core.rbac import Permission
from holidayhouse.core.security import generate_manage_token
from holidayhouse.db import crud_bookings, crud_fees
from holidayhouse.db.models import (
    AuditAction,
    Booking,
    BookingAuditLog,
    BookingGuest,
    BookingScope,
    BookingSource,
    BookingStatus,
    RoomAllocation,
    User,
    new_booking_reference,
)
from holidayhouse.db.session import SERIALIZABLE, unit_of_work
from holidayhouse.schemas.booking import BookingCreate, BookingGuestIn, BookingLookup, BookingUpdate
from holidayhouse.schemas.fees import FeeBreakdown, FeeInput, GuestBreakdown
from holidayhouse.services import notifications
from holidayhouse.services.access import Actor, resolve_booking_access
from holidayhouse.services.dates import calculate_nights
from holidayhouse.services.fees import calculate_fees

logger = logging.getLogger(__name__)

OVERLAP_MESSAGE = "Booking dates overlap with an existing pending or approved booking"

REASON_MAX_LENGTH = 500
COMMENT_MIN_LENGTH = 2
COMMENT_MAX_LENGTH = 2000

_NOT_CANCELLED = frozenset({BookingStatus.PENDING, BookingStatus.APPROVED, BookingStatus.REJECTED})

# operation -> statuses it may start from
TRANSITIONS: Dict[str, FrozenSet[BookingStatus]] = {
    "approve": _NOT_CANCELLED,
    "reject": _NOT_CANCELLED,
    "edit": _NOT_CANCELLED,
    "cancel": frozenset({BookingStatus.PENDING, BookingStatus.APPROVED}),
}


@dataclass
class BookingOutcome:
    booking: Booking
    messages: List[notifications.MailMessage] = field(default_factory=list)
    changed: bool = True
    requires_reapproval: bool = False
    # only set when a token was issued to an anonymous requester
    manage_token: Optional[str] = None
    fee_breakdown: Optional[FeeBreakdown] = None
    audit_entry: Optional[BookingAuditLog] = None


def ensure_transition(booking: Booking, operation: str) -> None:
    if booking.status in TRANSITIONS[operation]:
        return
    if booking.status == BookingStatus.CANCELLED:
        raise InvalidTransitionError("Cancelled bookings cannot be changed.", status=booking.status.value)
    raise InvalidTransitionError(
        f"Cannot {operation} a booking that is {booking.status.value}",
        status=booking.status.value,
    )


def _audit(booking: Booking, action: AuditAction, actor: Actor, comment: Optional[str]) -> BookingAuditLog:
    return crud_bookings.append_audit_entry(
        booking,
        action,
        actor_id=actor.user_id,
        actor_role=actor.role,
        comment=comment,
    )


def _counts_from_guests(guests: List[BookingGuestIn]) -> GuestBreakdown:
    # GuestType values are the upper-cased GuestBreakdown field names
    counts: Dict[str, int] = {}
    for guest in guests:
        key = guest.guest_type.value.lower()
        counts[key] = counts.get(key, 0) + 1
    return GuestBreakdown(**counts)


async def _check_overlap(db: AsyncSession, booking_start, booking_end, exclude_id: Optional[str] = None) -> None:
    conflict = await crud_bookings.find_conflicting_booking(db, booking_start, booking_end, exclude_id=exclude_id)
    if conflict is not None:
        raise ConflictError(OVERLAP_MESSAGE, conflicting=conflict)


async def _price(db: AsyncSession, fee_input: FeeInput) -> FeeBreakdown:
    config, rates = await crud_fees.get_active_fee_config(db, fee_input.start_date)
    return calculate_fees(fee_input, config, rates)


async def _load(db: AsyncSession, booking_id: str) -> Booking:
    booking = await crud_bookings.get_booking(db, booking_id, for_update=True)
    if booking is None:
        raise NotFoundError("Booking not found")
    return booking


def _resolve_source(data: BookingCreate, actor: Actor) -> BookingSource:
    source = data.source
    if source is None:
        source = (
            BookingSource.INTERNAL
            if actor.can(Permission.BOOKING_CREATE_FAMILY)
            else BookingSource.EXTERNAL_PUBLIC
        )

    if source == BookingSource.INTERNAL and not actor.can(Permission.BOOKING_CREATE_FAMILY):
        raise AccessDeniedError(
            "Only family members, shareholders, or super admins can create internal bookings"
        )
    if source == BookingSource.MANUAL_IMPORT and not actor.can(Permission.BOOKING_MANAGE):
        raise AccessDeniedError("Only booking managers can import bookings")
    return source


# ---------------------------
# create
# ---------------------------

async def create_booking(db: AsyncSession, data: BookingCreate, user: Optional[User] = None) -> BookingOutcome:
    actor = Actor.from_user(user)
    source = _resolve_source(data, actor)

    nights = calculate_nights(data.start_date, data.end_date)
    total_guests = data.total_guests()
    if total_guests < 1:
        raise ValidationError("At least one guest is required")

    if user is None and not data.external_lead_email:
        raise ValidationError("A contact email is required for public booking requests")

    scope = BookingScope.WHOLE_HOUSE if source == BookingSource.EXTERNAL_PUBLIC else data.scope
    allocations = data.room_allocations if scope == BookingScope.ROOM_SPECIFIC else []
    if scope == BookingScope.ROOM_SPECIFIC and not allocations:
        raise ValidationError("Room-specific bookings need at least one room allocation")

    counts = data.guest_breakdown
    if counts.total == 0 and data.guests:
        counts = _counts_from_guests(data.guests)

    manage_token = generate_manage_token() if user is None else None

    async with unit_of_work(db, isolation_level=SERIALIZABLE):
        missing = await crud_bookings.missing_room_ids(db, (a.room_id for a in allocations))
        if missing:
            raise ValidationError("Unknown room", room_ids=sorted(missing))

        await _check_overlap(db, data.start_date, data.end_date)

        breakdown = await _price(
            db,
            FeeInput(source=source, start_date=data.start_date, nights=nights, counts=counts),
        )

        booking = Booking(
            id=new_booking_reference(),
            source=source,
            scope=scope,
            status=BookingStatus.PENDING,
            start_date=data.start_date,
            end_date=data.end_date,
            nights=nights,
            total_guests=total_guests,
            pet_count=data.pet_count,
            notes=data.notes,
            guest_breakdown=counts.model_dump(),
            requested_by_id=actor.user_id,
            external_lead_name=data.external_lead_name,
            external_lead_email=data.external_lead_email,
            external_lead_phone=data.external_lead_phone,
            total_amount=breakdown.total,
            currency=breakdown.currency,
            fee_snapshot=breakdown.to_snapshot(),
            manage_token=manage_token,
            guests=[
                BookingGuest(
                    user_id=g.user_id,
                    full_name=g.full_name,
                    age=g.age,
                    guest_type=g.guest_type,
                    is_primary_contact=g.is_primary_contact,
                )
                for g in data.guests
            ],
            room_allocations=[
                RoomAllocation(room_id=a.room_id, guest_label=a.guest_label, guest_count=a.guest_count)
                for a in allocations
            ],
            audit_logs=[],
        )
        _audit(
            booking,
            AuditAction.CREATED,
            actor,
            "Public booking request submitted."
            if source == BookingSource.EXTERNAL_PUBLIC
            else "Member booking request submitted.",
        )
        db.add(booking)
        await db.flush()

    logger.info("booking %s created (%s, %s to %s)", booking.id, source.value, booking.start_date, booking.end_date)

    messages = notifications.approval_required(booking)
    messages += notifications.request_received(booking, data.external_lead_email or actor.email)
    return BookingOutcome(
        booking=booking,
        messages=messages,
        manage_token=manage_token,
        fee_breakdown=breakdown,
    )


# ---------------------------
# approve / reject
# ---------------------------

async def approve_booking(db: AsyncSession, booking_id: str, user: Optional[User]) -> BookingOutcome:
    actor = Actor.from_user(user)
    if not actor.can(Permission.BOOKING_APPROVE):
        raise AccessDeniedError("Approval permission required")

    async with unit_of_work(db, isolation_level=SERIALIZABLE):
        booking = await _load(db, booking_id)
        if booking.status == BookingStatus.APPROVED:
            return BookingOutcome(booking=booking, changed=False)
        ensure_transition(booking, "approve")

        if booking.status == BookingStatus.REJECTED:
            # a rejected booking stopped blocking its dates; someone may have taken them
            await _check_overlap(db, booking.start_date, booking.end_date, exclude_id=booking.id)

        booking.status = BookingStatus.APPROVED
        booking.approved_by_id = actor.user_id
        booking.approved_at = datetime.utcnow()
        booking.rejection_reason = None
        _audit(booking, AuditAction.APPROVED, actor, "Booking approved.")

    logger.info("booking %s approved by %s", booking.id, actor.label)
    return BookingOutcome(booking=booking, messages=notifications.booking_approved(booking))


def _clean_reason(reason: Optional[str]) -> str:
    cleaned = (reason or "").strip()
    min_length = get_settings().REJECTION_REASON_MIN_LENGTH
    if len(cleaned) < min_length or len(cleaned) > REASON_MAX_LENGTH:
        raise ValidationError(
            f"A rejection reason between {min_length} and {REASON_MAX_LENGTH} characters is required"
        )
    return cleaned


async def reject_booking(
    db: AsyncSession,
    booking_id: str,
    user: Optional[User],
    reason: Optional[str],
) -> BookingOutcome:
    actor = Actor.from_user(user)
    if not actor.can(Permission.BOOKING_APPROVE):
        raise AccessDeniedError("Approval permission required")
    cleaned = _clean_reason(reason)

    async with unit_of_work(db):
        booking = await _load(db, booking_id)
        ensure_transition(booking, "reject")

        booking.status = BookingStatus.REJECTED
        booking.approved_by_id = actor.user_id
        booking.approved_at = datetime.utcnow()
        booking.rejection_reason = cleaned
        if not booking.manage_token:
            # the decline mail links back to the booking so the dates can be changed
            booking.manage_token = generate_manage_token()
        _audit(booking, AuditAction.REJECTED, actor, cleaned)

    logger.info("booking %s rejected by %s", booking.id, actor.label)
    return BookingOutcome(booking=booking, messages=notifications.booking_rejected(booking))


# ---------------------------
# manage access: view / edit / comment / cancel
# ---------------------------

async def get_managed_booking(db: AsyncSession, lookup: BookingLookup, user: Optional[User]):
    booking = await crud_bookings.get_booking(db, lookup.reference)
    if booking is None:
        raise NotFoundError("Booking not found")
    actor = resolve_booking_access(booking, user, lookup.token, lookup.email)
    return booking, actor


def _edit_counts(booking: Booking, data: BookingUpdate, total_guests: int) -> GuestBreakdown:
    if data.guest_breakdown is not None:
        return data.guest_breakdown
    stored = GuestBreakdown(**(booking.guest_breakdown or {}))
    if booking.source == BookingSource.EXTERNAL_PUBLIC and (
        stored.total == 0 or total_guests != booking.total_guests
    ):
        # no breakdown for the new head count: price everyone as an adult
        return GuestBreakdown(visitor_adult=total_guests)
    return stored


async def edit_booking(db: AsyncSession, data: BookingUpdate, user: Optional[User]) -> BookingOutcome:
    nights = calculate_nights(data.start_date, data.end_date)
    if data.guest_breakdown is not None:
        if data.guest_breakdown.total < 1:
            raise ValidationError("At least one guest is required")
        if data.total_guests is not None and data.total_guests != data.guest_breakdown.total:
            raise ValidationError(
                "Guest total does not match the guest breakdown",
                total_guests=data.total_guests,
                breakdown_total=data.guest_breakdown.total,
            )

    async with unit_of_work(db, isolation_level=SERIALIZABLE):
        booking = await _load(db, data.reference)
        actor = resolve_booking_access(booking, user, data.token, data.email)
        ensure_transition(booking, "edit")

        await _check_overlap(db, data.start_date, data.end_date, exclude_id=booking.id)

        if data.total_guests is not None:
            total_guests = data.total_guests
        elif data.guest_breakdown is not None:
            total_guests = data.guest_breakdown.total
        else:
            total_guests = booking.total_guests

        if booking.source == BookingSource.EXTERNAL_PUBLIC or data.recalculate_fees:
            counts = _edit_counts(booking, data, total_guests)
            if counts.total < 1:
                raise ValidationError("At least one guest is required")
            breakdown = await _price(
                db,
                FeeInput(source=booking.source, start_date=data.start_date, nights=nights, counts=counts),
            )
            booking.guest_breakdown = counts.model_dump()
            booking.total_amount = breakdown.total
            booking.currency = breakdown.currency
            booking.fee_snapshot = breakdown.to_snapshot()
        else:
            breakdown = None

        requires_reapproval = booking.status != BookingStatus.PENDING

        booking.start_date = data.start_date
        booking.end_date = data.end_date
        booking.nights = nights
        booking.total_guests = total_guests
        if data.pet_count is not None:
            booking.pet_count = data.pet_count
        if data.notes is not None:
            booking.notes = data.notes
        for attr in ("external_lead_name", "external_lead_email", "external_lead_phone"):
            value = getattr(data, attr)
            if value is not None:
                setattr(booking, attr, value)

        booking.status = BookingStatus.PENDING
        booking.approved_by_id = None
        booking.approved_at = None
        booking.rejection_reason = None
        _audit(
            booking,
            AuditAction.COMMENT,
            actor,
            f"Booking updated by {actor.label}; reset to pending approval."
            if requires_reapproval
            else f"Booking updated by {actor.label}.",
        )

    logger.info("booking %s updated by %s", booking.id, actor.label)

    messages = notifications.request_received(
        booking, notifications.requester_email(booking, fallback=data.email)
    )
    messages += notifications.approval_required(booking)
    return BookingOutcome(
        booking=booking,
        messages=messages,
        requires_reapproval=requires_reapproval,
        fee_breakdown=breakdown,
    )


async def add_comment(
    db: AsyncSession,
    booking_id: str,
    text: Optional[str],
    user: Optional[User],
    token: Optional[str] = None,
    email: Optional[str] = None,
) -> BookingOutcome:
    cleaned = (text or "").strip()
    if not COMMENT_MIN_LENGTH <= len(cleaned) <= COMMENT_MAX_LENGTH:
        raise ValidationError(
            f"Comments must be between {COMMENT_MIN_LENGTH} and {COMMENT_MAX_LENGTH} characters"
        )

    async with unit_of_work(db):
        booking = await _load(db, booking_id)
        actor = resolve_booking_access(booking, user, token, email)
        entry = _audit(booking, AuditAction.COMMENT, actor, cleaned)

    return BookingOutcome(booking=booking, audit_entry=entry)


async def cancel_booking(
    db: AsyncSession,
    booking_id: str,
    user: Optional[User],
    reason: Optional[str] = None,
    token: Optional[str] = None,
    email: Optional[str] = None,
) -> BookingOutcome:
    async with unit_of_work(db):
        booking = await _load(db, booking_id)
        actor = resolve_booking_access(booking, user, token, email)
        ensure_transition(booking, "cancel")

        booking.status = BookingStatus.CANCELLED
        comment = f"Booking cancelled by {actor.label}."
        if reason and reason.strip():
            comment = f"{comment} Reason: {reason.strip()}"
        _audit(booking, AuditAction.COMMENT, actor, comment)

    logger.info("booking %s cancelled by %s", booking.id, actor.label)
    return BookingOutcome(booking=booking, messages=notifications.booking_cancelled(booking))
