# holidayhouse/services/notifications.py
"""
Outgoing booking mail.

The state machine only *builds* messages; they are handed to a sender after
the transaction has committed (FastAPI background task), and a failed send
is logged, never raised back into the request.
"""
import logging
import smtplib
from dataclasses import dataclass, field
from email.message import EmailMessage
from typing import Iterable, List, Optional
from urllib.parse import urlencode

from fastapi.concurrency import run_in_threadpool

from holidayhouse.core.config import Settings, get_settings
from holidayhouse.db.models import Booking

logger = logging.getLogger(__name__)


@dataclass
class MailMessage:
    to: List[str]
    subject: str
    text: str
    tags: List[str] = field(default_factory=list)


class MailSender:
    async def send(self, message: MailMessage) -> None:
        raise NotImplementedError


class SkippingMailSender(MailSender):
    async def send(self, message: MailMessage) -> None:
        logger.warning("SMTP is not configured. Mail skipped: %s", message.subject)


class SmtpMailSender(MailSender):
    def __init__(self, settings: Settings):
        self.settings = settings

    def _send_sync(self, message: MailMessage) -> None:
        msg = EmailMessage()
        msg["From"] = self.settings.SMTP_FROM
        msg["To"] = ", ".join(message.to)
        msg["Subject"] = message.subject
        msg.set_content(message.text)

        port = self.settings.SMTP_PORT
        timeout = self.settings.SMTP_TIMEOUT_SECONDS
        if port == 465:
            server = smtplib.SMTP_SSL(self.settings.SMTP_HOST, port, timeout=timeout)
        else:
            server = smtplib.SMTP(self.settings.SMTP_HOST, port, timeout=timeout)
        with server:
            if port != 465:
                server.starttls()
            server.login(self.settings.SMTP_USER, self.settings.SMTP_PASS)
            server.send_message(msg)

    async def send(self, message: MailMessage) -> None:
        await run_in_threadpool(self._send_sync, message)


def get_mail_sender() -> MailSender:
    settings = get_settings()
    if settings.smtp_configured:
        return SmtpMailSender(settings)
    return SkippingMailSender()


async def deliver(sender: MailSender, messages: Iterable[MailMessage]) -> None:
    for message in messages:
        try:
            await sender.send(message)
        except Exception:
            # the booking is already committed; losing a mail must not undo it
            logger.exception("failed to send booking mail %r to %s", message.subject, message.to)


# ---------------------------
# Message builders
# ---------------------------

def build_manage_url(reference: str, token: Optional[str] = None, email: Optional[str] = None) -> str:
    params = {"reference": reference}
    if token:
        params["token"] = token
    if email:
        params["email"] = email
    return f"{get_settings().app_base_url}/booking/manage?{urlencode(params)}"


def requester_email(booking: Booking, fallback: Optional[str] = None) -> Optional[str]:
    # requested_by is eagerly loaded for persisted bookings only
    user = booking.__dict__.get("requested_by")
    if user is not None and user.email:
        return user.email
    return booking.external_lead_email or fallback


def _date_range(booking: Booking) -> str:
    return f"{booking.start_date.isoformat()} to {booking.end_date.isoformat()}"


def _amount(booking: Booking) -> str:
    return f"{booking.currency} {booking.total_amount if booking.total_amount is not None else 0}"


def approval_required(booking: Booking) -> List[MailMessage]:
    approvers = get_settings().approver_emails
    if not approvers:
        return []
    return [
        MailMessage(
            to=approvers,
            subject=f"Booking approval required: {_date_range(booking)}",
            text="\n".join(
                [
                    "A booking requires approval.",
                    f"Booking ID: {booking.id}",
                    f"Source: {booking.source.value}",
                    f"Scope: {booking.scope.value}",
                    f"Guests: {booking.total_guests}",
                    f"Pets: {booking.pet_count}",
                    f"Estimated amount: {_amount(booking)}",
                    f"Review: {get_settings().app_base_url}/admin/bookings",
                ]
            ),
            tags=["approval_required"],
        )
    ]


def request_received(booking: Booking, to: Optional[str]) -> List[MailMessage]:
    if not to:
        return []
    return [
        MailMessage(
            to=[to],
            subject=f"Booking request received ({_date_range(booking)})",
            text="\n".join(
                [
                    f"We received your booking request {booking.id} and it is pending approval.",
                    f"Guests: {booking.total_guests}, pets: {booking.pet_count}",
                    f"Estimated amount: {_amount(booking)}",
                    f"Manage your booking: {build_manage_url(booking.id, booking.manage_token, to)}",
                ]
            ),
            tags=["request_received"],
        )
    ]


def booking_approved(booking: Booking) -> List[MailMessage]:
    to = requester_email(booking)
    if not to:
        return []
    return [
        MailMessage(
            to=[to],
            subject=f"Booking approved ({_date_range(booking)})",
            text=f"Your booking ({booking.id}) is approved. Amount due: {_amount(booking)}.",
            tags=["approved"],
        )
    ]


def booking_rejected(booking: Booking) -> List[MailMessage]:
    to = requester_email(booking)
    if not to:
        return []
    return [
        MailMessage(
            to=[to],
            subject=f"Booking declined ({_date_range(booking)})",
            text="\n".join(
                [
                    f"Your booking ({booking.id}) was not approved. Reason: {booking.rejection_reason}",
                    f"You can change the dates here: {build_manage_url(booking.id, booking.manage_token, to)}",
                ]
            ),
            tags=["rejected"],
        )
    ]


def booking_cancelled(booking: Booking) -> List[MailMessage]:
    to = requester_email(booking)
    if not to:
        return []
    return [
        MailMessage(
            to=[to],
            subject=f"Booking cancelled ({_date_range(booking)})",
            text=f"Your booking ({booking.id}) has been cancelled.",
            tags=["cancelled"],
        )
    ]
