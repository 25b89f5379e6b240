from datetime import date
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from holidayhouse.api.dependencies import get_current_user, get_current_user_optional
from holidayhouse.core.config import get_settings
from holidayhouse.core.rbac import Permission, has_permission
from holidayhouse.db.session import get_db
from holidayhouse.db.models import BookingStatus
from holidayhouse.db import crud_bookings
from holidayhouse.schemas.booking import (
    AuditLogOut,
    AvailabilityOut,
    BookingCreate,
    BookingDetailOut,
    BookingLookup,
    BookingManageView,
    BookingOut,
    BookingUpdate,
    CancelRequest,
    CommentCreate,
    RejectRequest,
)
from holidayhouse.services import bookings as booking_service
from holidayhouse.services.dates import add_months
from holidayhouse.services.notifications import MailSender, deliver, get_mail_sender

router = APIRouter()


def _schedule_mail(background_tasks: BackgroundTasks, sender: MailSender, outcome) -> None:
    # runs after the response, i.e. after the unit of work committed
    if outcome.messages:
        background_tasks.add_task(deliver, sender, outcome.messages)


@router.post("")
async def create_booking(
    body: BookingCreate,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user_optional),
    sender: MailSender = Depends(get_mail_sender),
):
    outcome = await booking_service.create_booking(db, body, current_user)
    _schedule_mail(background_tasks, sender, outcome)

    data = {
        "booking": BookingOut.model_validate(outcome.booking),
        "status": "PENDING_APPROVAL",
        "fee_breakdown": outcome.fee_breakdown,
    }
    if outcome.manage_token:
        data["manage_token"] = outcome.manage_token
    return {"success": True, "data": data}


@router.get("")
async def list_bookings(
    status: Optional[BookingStatus] = None,
    mine: bool = False,
    limit: int = Query(200, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user),
):
    """
    Booking managers see every booking; everyone else sees their own
    requests plus approved stays (or only their own with ?mine=true).
    """
    if has_permission(current_user.role, Permission.BOOKING_MANAGE) and not mine:
        bookings = await crud_bookings.list_bookings(db, status=status, limit=limit)
    else:
        bookings = await crud_bookings.list_bookings(
            db,
            visible_to_user_id=current_user.id,
            mine_only=mine,
            status=status,
            limit=limit,
        )
    return {"items": [BookingDetailOut.model_validate(b) for b in bookings]}


@router.get("/availability")
async def availability(db: AsyncSession = Depends(get_db)):
    """Dates blocked by pending or approved bookings, for the public calendar."""
    today = date.today()
    horizon = add_months(today, get_settings().AVAILABILITY_HORIZON_MONTHS)
    bookings = await crud_bookings.list_blocking_bookings(db, today, horizon)
    return {
        "from": today,
        "to": horizon,
        "items": [AvailabilityOut.model_validate(b) for b in bookings],
    }


@router.get("/manage")
async def manage_view(
    reference: str = Query(..., min_length=1, max_length=64),
    token: Optional[str] = None,
    email: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user_optional),
):
    lookup = BookingLookup(reference=reference, token=token, email=email)
    booking, _actor = await booking_service.get_managed_booking(db, lookup, current_user)
    return {"data": BookingManageView.model_validate(booking)}


@router.patch("/manage")
async def edit_booking(
    body: BookingUpdate,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user_optional),
    sender: MailSender = Depends(get_mail_sender),
):
    outcome = await booking_service.edit_booking(db, body, current_user)
    _schedule_mail(background_tasks, sender, outcome)

    message = (
        "Booking updated and moved back to pending approval."
        if outcome.requires_reapproval
        else "Booking updated and still pending approval."
    )
    return {
        "success": True,
        "data": {
            "booking": BookingManageView.model_validate(outcome.booking),
            "requires_reapproval": outcome.requires_reapproval,
            "message": message,
        },
    }


@router.post("/{booking_id}/approve")
async def approve_booking(
    booking_id: str,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user),
    sender: MailSender = Depends(get_mail_sender),
):
    outcome = await booking_service.approve_booking(db, booking_id, current_user)
    _schedule_mail(background_tasks, sender, outcome)
    return {
        "success": True,
        "changed": outcome.changed,
        "data": BookingDetailOut.model_validate(outcome.booking),
    }


@router.post("/{booking_id}/reject")
async def reject_booking(
    booking_id: str,
    body: RejectRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user),
    sender: MailSender = Depends(get_mail_sender),
):
    outcome = await booking_service.reject_booking(db, booking_id, current_user, body.reason)
    _schedule_mail(background_tasks, sender, outcome)
    return {"success": True, "data": BookingDetailOut.model_validate(outcome.booking)}


@router.post("/{booking_id}/comment", status_code=201)
async def add_comment(
    booking_id: str,
    body: CommentCreate,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user_optional),
):
    outcome = await booking_service.add_comment(
        db,
        booking_id,
        body.comment,
        current_user,
        token=body.token,
        email=body.email,
    )
    return {"success": True, "data": AuditLogOut.model_validate(outcome.audit_entry)}


@router.post("/{booking_id}/cancel")
async def cancel_booking(
    booking_id: str,
    background_tasks: BackgroundTasks,
    body: Optional[CancelRequest] = None,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user_optional),
    sender: MailSender = Depends(get_mail_sender),
):
    body = body or CancelRequest()
    outcome = await booking_service.cancel_booking(
        db,
        booking_id,
        current_user,
        reason=body.reason,
        token=body.token,
        email=body.email,
    )
    _schedule_mail(background_tasks, sender, outcome)
    return {"success": True, "data": BookingManageView.model_validate(outcome.booking)}
