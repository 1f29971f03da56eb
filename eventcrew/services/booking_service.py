import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from eventcrew.errors import AlreadyConsumed, AppError, ConflictingState, ValidationFailure
from eventcrew.extensions import db
from eventcrew.integrations import get_integrations
from eventcrew.models import Booking, ClientApproval
from eventcrew.models.base import utcnow
from eventcrew.schemas import EventDetails, parse_optional_decimal
from eventcrew.services.calendar_service import CalendarService
from eventcrew.services.notification_service import NotificationService
from eventcrew.services.reconciliation_service import ReconciliationService, ResolvedAmount
from eventcrew.services.token_service import TokenService

logger = logging.getLogger(__name__)

# Every status write goes through this table. "sent_to_contractors" is the
# notified state of the direct (first-responder) protocol; the roster protocol
# uses "contractors_notified".
BOOKING_TRANSITIONS = {
    "pending": {"sent_to_client", "client_approved"},
    "sent_to_client": {"sent_to_client", "client_approved"},
    "client_approved": {"contractors_notified", "sent_to_contractors"},
    "contractors_notified": {"contractors_notified", "fully_assigned"},
    "sent_to_contractors": {"assigned"},
    "assigned": set(),
    "fully_assigned": set(),
}

RESENDABLE_STATUSES = {"pending", "sent_to_client"}
APPROVED_STATUSES = {"client_approved", "contractors_notified", "sent_to_contractors", "assigned", "fully_assigned"}


@dataclass
class SendResult:
    booking: Booking
    approval: ClientApproval
    amount: ResolvedAmount
    is_resend: bool
    auto_approved: bool


class BookingService:
    @staticmethod
    def can_transition(current, new_status):
        return new_status in BOOKING_TRANSITIONS.get(current, set())

    @staticmethod
    def _advance(booking, new_status):
        if not BookingService.can_transition(booking.status, new_status):
            raise ConflictingState(f"Invalid status transition from {booking.status} to {new_status}.")
        booking.status = new_status

    @staticmethod
    def compare_and_set(booking_id, expected, new_status, **values):
        """Atomically move a booking from ``expected`` to ``new_status``.

        The status check happens inside the UPDATE itself, so exactly one of
        several concurrent callers can win. Returns whether this caller did.
        The caller owns the commit.
        """
        if not BookingService.can_transition(expected, new_status):
            raise ConflictingState(f"Invalid status transition from {expected} to {new_status}.")
        updated = Booking.query.filter(Booking.id == booking_id, Booking.status == expected).update(
            {"status": new_status, **values}, synchronize_session=False
        )
        return updated == 1

    @staticmethod
    def get_booking(booking_id):
        booking = db.session.get(Booking, booking_id)
        if not booking:
            raise AppError("Booking not found.", 404)
        return booking

    @staticmethod
    def _next_quote_number():
        prefix = f"Q-{datetime.now(timezone.utc).year}-"
        count = Booking.query.filter(Booking.quote_number.like(f"{prefix}%")).count() + 1
        return f"{prefix}{count:04d}"

    @staticmethod
    def _invoice_number(booking):
        sequence = (booking.quote_number or "").split("-")[-1] or str(booking.id)
        return f"INV-{datetime.now(timezone.utc).year}-{sequence}"

    @staticmethod
    def create_booking(payload):
        details = EventDetails.from_payload(payload)
        quote_total = parse_optional_decimal(payload.get("quote_total"), "quote_total")
        quote_sheet_id = (str(payload.get("quote_sheet_id") or "").strip()) or None

        booking = Booking(
            quote_number=BookingService._next_quote_number(),
            status="pending",
            client_name=details.client_name,
            client_email=details.client_email,
            client_phone=details.client_phone,
            event_name=details.event_name,
            event_date=details.event_date,
            event_time=details.event_time,
            location=details.location,
            details_json=details.extra_json(),
            approval_token=TokenService.generate(),
            quote_total=quote_total,
            quote_sheet_id=quote_sheet_id,
        )
        db.session.add(booking)
        db.session.commit()
        logger.info("Booking %s created (%s)", booking.id, booking.quote_number)
        return booking

    @staticmethod
    def send_to_client(booking_id, notes=None, deposit_percent=None, adjusted_amount=None, purchase_order=None):
        percent = parse_optional_decimal(deposit_percent, "deposit_percent")
        if percent is not None and percent > 100:
            raise ValidationFailure("deposit_percent cannot exceed 100.")
        override = parse_optional_decimal(adjusted_amount, "adjusted_amount")

        booking = BookingService.get_booking(booking_id)
        if booking.status not in RESENDABLE_STATUSES:
            raise ConflictingState(f"A quote cannot be sent for a booking that is {booking.status}.")

        resolved = ReconciliationService.resolve_amount(booking, override=override)
        if resolved.source == "none":
            raise ValidationFailure("This booking has no quote total; supply adjusted_amount or fill in the sheet.")
        if percent is None:
            percent = get_integrations().settings.default_deposit_percent
        deposit = ReconciliationService.deposit_for(resolved.amount, percent)

        approval = booking.approval
        is_resend = approval is not None
        if approval is None:
            approval = ClientApproval(booking_id=booking.id, resend_count=0)
            db.session.add(approval)
        else:
            approval.resend_count = (approval.resend_count or 0) + 1

        # A fresh token on every send; the previous link stops resolving.
        approval.client_approval_token = TokenService.generate()
        approval.client_email = booking.client_email
        approval.adjusted_quote_total = resolved.amount
        approval.deposit_amount = deposit
        approval.quote_notes = (notes or "").strip() or None
        approval.sent_to_client_at = utcnow()

        if resolved.source == "sheet":
            booking.quote_total = resolved.amount
        booking.invoice_number = BookingService._invoice_number(booking)
        booking.purchase_order = (purchase_order or "").strip() or None
        BookingService._advance(booking, "sent_to_client")
        db.session.commit()
        logger.info(
            "Quote for booking %s sent (amount %s from %s, deposit %s, resend %s)",
            booking.id,
            resolved.amount,
            resolved.source,
            deposit,
            approval.resend_count,
        )

        NotificationService.quote_to_client(booking, approval, is_resend=is_resend)

        # Only an explicit zero deposit skips the wait; no deposit at all does not.
        auto_approved = False
        if deposit is not None and deposit == Decimal("0"):
            try:
                BookingService.finalize_client_approval(approval)
                auto_approved = True
            except AlreadyConsumed:
                auto_approved = False

        return SendResult(
            booking=booking,
            approval=approval,
            amount=resolved,
            is_resend=is_resend,
            auto_approved=auto_approved,
        )

    @staticmethod
    def approve_by_client(token):
        approval = TokenService.resolve_client_approval(token)
        if approval.client_approved_at:
            raise AlreadyConsumed(code="already_approved")
        return BookingService.finalize_client_approval(approval)

    @staticmethod
    def finalize_client_approval(approval):
        """``sent_to_client -> client_approved`` for an approval record.

        Shared by the emailed link, the zero-deposit shortcut and the payment
        callback. The approval timestamp is claimed with a conditional update,
        so a replay or a concurrent second request sees ``already_approved``.
        """
        booking = approval.booking
        if booking.status != "sent_to_client":
            if booking.status in APPROVED_STATUSES:
                raise AlreadyConsumed(code="already_approved")
            raise ConflictingState()

        now = utcnow()
        claimed = ClientApproval.query.filter(
            ClientApproval.id == approval.id, ClientApproval.client_approved_at.is_(None)
        ).update({"client_approved_at": now}, synchronize_session=False)
        if claimed != 1:
            db.session.rollback()
            raise AlreadyConsumed(code="already_approved")

        booking.client_approved_at = now
        booking.contractor_selection_token = TokenService.generate()
        BookingService._advance(booking, "client_approved")
        db.session.commit()
        logger.info("Booking %s approved by client", booking.id)

        CalendarService.create_for_booking(
            booking, "AWAITING CONTRACTORS", ["Status: Client approved, awaiting contractor selection"]
        )
        NotificationService.client_approved_to_business(booking, approval)
        return booking

    @staticmethod
    def approve_quote(token):
        """Legacy one-step approval: approve, then offer the job to every
        active contractor on a first-responder-wins basis."""
        from eventcrew.services.assignment_service import AssignmentService

        booking = TokenService.resolve_quote_approval(token)
        if booking.status != "pending":
            raise AlreadyConsumed(code="already_processed")

        won = BookingService.compare_and_set(
            booking.id,
            "pending",
            "client_approved",
            client_approved_at=utcnow(),
            contractor_token=TokenService.generate(),
        )
        if not won:
            db.session.rollback()
            raise AlreadyConsumed(code="already_processed")
        db.session.commit()
        db.session.refresh(booking)
        logger.info("Booking %s approved through the quote link", booking.id)

        CalendarService.create_for_booking(booking, "AWAITING CONTRACTOR", ["Status: Awaiting contractor assignment"])
        AssignmentService.broadcast_direct_offer(booking)
        return booking

    @staticmethod
    def approval_summary(token):
        approval = TokenService.resolve_client_approval(token)
        booking = approval.booking
        quote_total = approval.adjusted_quote_total or booking.quote_total or Decimal("0")
        deposit = approval.deposit_amount
        return {
            "booking_id": booking.id,
            "client_name": booking.client_name,
            "event_name": booking.event_name,
            "event_date": booking.event_date.isoformat() if booking.event_date else None,
            "location": booking.location,
            "invoice_number": booking.invoice_number,
            "quote_total": str(quote_total),
            "deposit_amount": str(deposit) if deposit is not None else None,
            "deposit_percent": ReconciliationService.deposit_percent(deposit, quote_total),
            "notes": approval.quote_notes,
            "already_approved": approval.client_approved_at is not None or booking.status in APPROVED_STATUSES,
            "payment_status": approval.payment_status or "pending",
            "ready_for_approval": deposit is not None,
        }

    @staticmethod
    def serialize(booking):
        from eventcrew.services.assignment_service import AssignmentService

        mode = AssignmentService.assignment_mode(booking)
        return {
            "id": booking.id,
            "quote_number": booking.quote_number,
            "invoice_number": booking.invoice_number,
            "status": booking.status,
            "client_name": booking.client_name,
            "client_email": booking.client_email,
            "event_name": booking.event_name,
            "event_date": booking.event_date.isoformat() if booking.event_date else None,
            "location": booking.location,
            "quote_total": str(booking.quote_total) if booking.quote_total is not None else None,
            "quote_sheet_id": booking.quote_sheet_id,
            "client_approved_at": booking.client_approved_at.isoformat() if booking.client_approved_at else None,
            "contractors_notified_at": (
                booking.contractors_notified_at.isoformat() if booking.contractors_notified_at else None
            ),
            "assignment": mode.to_dict() if mode else None,
        }
