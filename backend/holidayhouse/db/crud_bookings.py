# holidayhouse/db/crud_bookings.py

from datetime import date, datetime
from typing import Iterable, List, Optional, Set

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from holidayhouse.db.models import (
    AuditAction,
    Booking,
    BookingAuditLog,
    BookingStatus,
    Room,
)

# Only these statuses occupy the house
BLOCKING_STATUSES = (BookingStatus.PENDING, BookingStatus.APPROVED)


async def get_booking(
    db: AsyncSession,
    booking_id: str,
    *,
    for_update: bool = False,
) -> Optional[Booking]:
    """
    Load a booking with its collections. Always re-reads the row so a status
    loaded earlier in the request cannot be acted on stale.
    """
    stmt = (
        select(Booking)
        .where(Booking.id == booking_id)
        .execution_options(populate_existing=True)
    )
    if for_update:
        stmt = stmt.with_for_update()
    res = await db.execute(stmt)
    return res.scalar_one_or_none()


async def find_conflicting_booking(
    db: AsyncSession,
    start_date: date,
    end_date: date,
    exclude_id: Optional[str] = None,
) -> Optional[Booking]:
    """
    First PENDING/APPROVED booking whose [start, end) intersects the
    candidate [start_date, end_date). Ranges that only touch do not clash.
    """
    stmt = select(Booking).where(
        Booking.status.in_(BLOCKING_STATUSES),
        Booking.start_date < end_date,
        Booking.end_date > start_date,
    )
    if exclude_id is not None:
        stmt = stmt.where(Booking.id != exclude_id)
    stmt = stmt.order_by(Booking.start_date.asc(), Booking.id.asc()).limit(1)
    res = await db.execute(stmt)
    return res.scalars().first()


async def list_blocking_bookings(
    db: AsyncSession,
    window_start: date,
    window_end: date,
    limit: int = 2000,
) -> List[Booking]:
    """
    Public availability calendar: every range that currently blocks dates
    inside [window_start, window_end).
    """
    stmt = (
        select(Booking)
        .where(
            Booking.status.in_(BLOCKING_STATUSES),
            Booking.start_date < window_end,
            Booking.end_date > window_start,
        )
        .order_by(Booking.start_date.asc())
        .limit(limit)
    )
    res = await db.execute(stmt)
    return list(res.scalars().all())


async def list_bookings(
    db: AsyncSession,
    *,
    visible_to_user_id: Optional[int] = None,
    mine_only: bool = False,
    status: Optional[BookingStatus] = None,
    limit: int = 200,
) -> List[Booking]:
    """
    visible_to_user_id=None lists everything (staff view). Otherwise the
    user sees their own requests plus approved stays, or only their own
    with mine_only.
    """
    stmt = select(Booking)
    if visible_to_user_id is not None:
        if mine_only:
            stmt = stmt.where(Booking.requested_by_id == visible_to_user_id)
        else:
            stmt = stmt.where(
                or_(
                    Booking.requested_by_id == visible_to_user_id,
                    Booking.status == BookingStatus.APPROVED,
                )
            )
    if status is not None:
        stmt = stmt.where(Booking.status == status)
    stmt = stmt.order_by(Booking.start_date.desc()).limit(limit)
    res = await db.execute(stmt)
    return list(res.scalars().all())


async def missing_room_ids(db: AsyncSession, room_ids: Iterable[int]) -> Set[int]:
    wanted = set(room_ids)
    if not wanted:
        return set()
    res = await db.execute(select(Room.id).where(Room.id.in_(wanted)))
    return wanted - set(res.scalars().all())


def append_audit_entry(
    booking: Booking,
    action: AuditAction,
    *,
    actor_id: Optional[int] = None,
    actor_role=None,
    comment: Optional[str] = None,
) -> BookingAuditLog:
    """
    Audit entries are only ever appended through the booking's collection;
    nothing updates or deletes them.
    """
    entry = BookingAuditLog(
        actor_id=actor_id,
        actor_role=actor_role,
        action=action,
        comment=comment,
        created_at=datetime.utcnow(),
    )
    booking.audit_logs.append(entry)
    return entry
