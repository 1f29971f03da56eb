import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional, Tuple, Union

from eventcrew.errors import AlreadyConsumed, AppError, ConflictingState, InvalidToken, ValidationFailure
from eventcrew.extensions import db
from eventcrew.models import Assignment, Contractor
from eventcrew.models.assignment import TERMINAL_ASSIGNMENT_STATUSES
from eventcrew.models.base import utcnow
from eventcrew.schemas import parse_roster
from eventcrew.services.booking_service import BookingService
from eventcrew.services.calendar_service import CalendarService
from eventcrew.services.contractor_service import ContractorService
from eventcrew.services.notification_service import NotificationService
from eventcrew.services.token_service import TokenService

logger = logging.getLogger(__name__)

RESPONSE_ACTIONS = {"accept": "accepted", "decline": "declined"}
ROSTER_EDITABLE_STATUSES = {"client_approved", "contractors_notified"}


@dataclass(frozen=True)
class DirectAssignment:
    """First-responder-wins: one opening, claimed by a conditional booking update."""

    booking_id: int
    status: str
    assigned_contractor_id: Optional[int] = None

    kind = "direct"

    @property
    def filled(self):
        return self.assigned_contractor_id is not None

    def to_dict(self):
        return {
            "kind": self.kind,
            "status": self.status,
            "assigned_contractor_id": self.assigned_contractor_id,
            "filled": self.filled,
        }


@dataclass(frozen=True)
class RosterAssignment:
    """One assignment row per selected contractor, each answered separately."""

    booking_id: int
    status: str
    row_statuses: Tuple[str, ...] = ()

    kind = "roster"

    @property
    def complete(self):
        return roster_complete(self.row_statuses)

    def to_dict(self):
        return {
            "kind": self.kind,
            "status": self.status,
            "rows": len(self.row_statuses),
            "accepted": sum(1 for status in self.row_statuses if status == "accepted"),
            "complete": self.complete,
        }


AssignmentMode = Union[DirectAssignment, RosterAssignment]


def roster_complete(statuses):
    """A roster is filled only when it has rows and every one was accepted."""
    statuses = list(statuses)
    return bool(statuses) and all(status == "accepted" for status in statuses)


def _serialize_assignment(row):
    return {
        "id": row.id,
        "booking_id": row.booking_id,
        "contractor_id": row.contractor_id,
        "contractor_name": row.contractor.name if row.contractor else None,
        "status": row.status,
        "hourly_rate": str(row.hourly_rate),
        "estimated_hours": str(row.estimated_hours),
        "pay_amount": str(row.pay_amount),
        "tasks_description": row.tasks_description,
        "notified_at": row.notified_at.isoformat() if row.notified_at else None,
        "responded_at": row.responded_at.isoformat() if row.responded_at else None,
        "reminder_date": row.reminder_date.isoformat() if row.reminder_date else None,
        "payment_status": row.payment_status,
    }


class AssignmentService:
    @staticmethod
    def assignment_mode(booking) -> Optional[AssignmentMode]:
        direct = DirectAssignment(
            booking_id=booking.id,
            status=booking.status,
            assigned_contractor_id=booking.assigned_contractor_id,
        )
        if booking.status in {"sent_to_contractors", "assigned"}:
            return direct
        # Roster rows outrank a leftover contractor_token from an offer that
        # never went out.
        statuses = tuple(row.status for row in booking.assignments.order_by(Assignment.id.asc()))
        if statuses or booking.status in {"contractors_notified", "fully_assigned"}:
            return RosterAssignment(booking_id=booking.id, status=booking.status, row_statuses=statuses)
        if booking.contractor_token:
            return direct
        return None

    # Direct (first-responder-wins) protocol

    @staticmethod
    def broadcast_direct_offer(booking):
        contractors = Contractor.query.filter_by(active=True).order_by(Contractor.name.asc()).all()
        if not contractors:
            logger.warning("No active contractors to offer booking %s to", booking.id)
            return 0

        won = BookingService.compare_and_set(
            booking.id, "client_approved", "sent_to_contractors", contractors_notified_at=utcnow()
        )
        if not won:
            db.session.rollback()
            logger.info("Booking %s was already offered to contractors", booking.id)
            return 0
        db.session.commit()
        db.session.refresh(booking)

        sent = sum(1 for contractor in contractors if NotificationService.direct_offer(booking, contractor))
        logger.info("Offered booking %s to %s of %s contractors", booking.id, sent, len(contractors))
        return sent

    @staticmethod
    def claim_direct(booking_id, contractor_id):
        """The conditional write that decides the race. Exactly one caller
        per booking sees ``True``."""
        won = BookingService.compare_and_set(
            booking_id,
            "sent_to_contractors",
            "assigned",
            assigned_contractor_id=contractor_id,
            assigned_at=utcnow(),
        )
        if not won:
            db.session.rollback()
            return False
        db.session.commit()
        return True

    @staticmethod
    def accept_direct(token, contractor_id):
        booking = TokenService.resolve_direct_offer(token)
        contractor = ContractorService.get_active(contractor_id)
        if contractor is None:
            raise InvalidToken()

        if booking.assigned_contractor_id == contractor.id:
            raise AlreadyConsumed(code="already_yours")
        if booking.status != "sent_to_contractors":
            raise ConflictingState(code="already_taken")

        if not AssignmentService.claim_direct(booking.id, contractor.id):
            logger.info("Contractor %s lost the race for booking %s", contractor.id, booking.id)
            raise ConflictingState(code="already_taken")

        db.session.refresh(booking)
        logger.info("Booking %s assigned to contractor %s", booking.id, contractor.id)

        CalendarService.update_for_booking(
            booking, f"{contractor.name} ASSIGNED", [f"Assigned contractor: {contractor.name} ({contractor.email})"]
        )
        others = Contractor.query.filter(Contractor.active.is_(True), Contractor.id != contractor.id).all()
        NotificationService.direct_assigned(booking, contractor, others)
        return booking, contractor

    # Roster protocol

    @staticmethod
    def roster_view(token):
        booking = TokenService.resolve_roster_access(token)
        rows = booking.assignments.order_by(Assignment.id.asc()).all()
        return {
            "booking": BookingService.serialize(booking),
            "contractors": [card.to_dict() for card in ContractorService.active_contractors()],
            "assignments": [_serialize_assignment(row) for row in rows],
        }

    @staticmethod
    def save_roster(token, booking_id, payload):
        """Rebuild the roster from the submitted selection.

        Pending rows are rewritten, declined rows that are selected again go
        back to pending, and rows already notified or accepted keep their
        token and terms. Accepted rows cannot be dropped.
        """
        entries = parse_roster(payload)
        booking = TokenService.resolve_roster_access(token, booking_id)
        if booking.status not in ROSTER_EDITABLE_STATUSES:
            raise ConflictingState(f"Contractors cannot be selected for a booking that is {booking.status}.")

        wanted_ids = [entry.contractor_id for entry in entries]
        active_ids = {
            row.id for row in Contractor.query.filter(Contractor.id.in_(wanted_ids), Contractor.active.is_(True))
        }
        missing = [contractor_id for contractor_id in wanted_ids if contractor_id not in active_ids]
        if missing:
            raise ValidationFailure(f"Unknown or inactive contractor(s): {', '.join(str(i) for i in missing)}.")

        existing = {row.contractor_id: row for row in booking.assignments}
        for contractor_id, row in existing.items():
            if contractor_id in wanted_ids:
                continue
            if row.status == "accepted":
                raise ConflictingState(code="already_accepted")
            db.session.delete(row)

        for entry in entries:
            row = existing.get(entry.contractor_id)
            if row is None:
                row = Assignment(booking_id=booking.id, contractor_id=entry.contractor_id, status="pending")
                db.session.add(row)
            elif row.status in {"notified", "accepted"}:
                continue
            elif row.status == "declined":
                row.status = "pending"
                row.assignment_token = None
                row.notified_at = None
                row.responded_at = None
            row.hourly_rate = entry.hourly_rate
            row.estimated_hours = entry.estimated_hours
            row.pay_amount = entry.pay_amount
            row.tasks_description = entry.tasks_description

        db.session.commit()
        logger.info("Roster for booking %s saved with %s contractor(s)", booking.id, len(entries))

        # Dropping the last outstanding row can leave an already-notified roster filled.
        if booking.status == "contractors_notified":
            AssignmentService._check_roster_complete(booking.id)
        return booking.assignments.order_by(Assignment.id.asc()).all()

    @staticmethod
    def notify_roster(token, booking_id):
        booking = TokenService.resolve_roster_access(token, booking_id)
        if booking.status not in ROSTER_EDITABLE_STATUSES:
            raise ConflictingState(f"Contractors cannot be notified for a booking that is {booking.status}.")

        pending = booking.assignments.filter_by(status="pending").order_by(Assignment.id.asc()).all()
        if not pending:
            raise ConflictingState("There are no pending assignments to notify.", code="no_pending_assignments")

        now = utcnow()
        for row in pending:
            row.assignment_token = TokenService.generate()
            row.status = "notified"
            row.notified_at = now
        if booking.status == "client_approved":
            booking.contractors_notified_at = now
        BookingService._advance(booking, "contractors_notified")
        db.session.commit()

        sent = sum(1 for row in pending if NotificationService.roster_offer(row))
        logger.info("Notified %s of %s contractor(s) for booking %s", sent, len(pending), booking.id)
        return pending

    @staticmethod
    def respond(token, action):
        action = (action or "").strip().lower()
        if action not in RESPONSE_ACTIONS:
            raise ValidationFailure("Action must be accept or decline.")

        assignment = TokenService.resolve_assignment(token)
        if assignment.status in TERMINAL_ASSIGNMENT_STATUSES:
            raise AlreadyConsumed(code="already_responded")
        if assignment.status != "notified":
            raise ConflictingState()

        new_status = RESPONSE_ACTIONS[action]
        updated = Assignment.query.filter(Assignment.id == assignment.id, Assignment.status == "notified").update(
            {"status": new_status, "responded_at": utcnow()}, synchronize_session=False
        )
        if updated != 1:
            db.session.rollback()
            raise AlreadyConsumed(code="already_responded")
        db.session.commit()
        db.session.refresh(assignment)
        logger.info(
            "Contractor %s %s assignment %s on booking %s",
            assignment.contractor_id,
            new_status,
            assignment.id,
            assignment.booking_id,
        )

        if new_status == "accepted":
            AssignmentService._check_roster_complete(assignment.booking_id)
            NotificationService.roster_confirmation(assignment)
        else:
            NotificationService.roster_declined(assignment)
        return assignment

    @staticmethod
    def _check_roster_complete(booking_id):
        """Re-read every row and fill the booking when all have accepted.

        Two acceptances can both reach this point; the conditional status
        write lets only one of them run the side effects.
        """
        rows = Assignment.query.filter_by(booking_id=booking_id).order_by(Assignment.id.asc()).all()
        if not roster_complete(row.status for row in rows):
            return False
        if not BookingService.compare_and_set(booking_id, "contractors_notified", "fully_assigned"):
            db.session.rollback()
            return False
        db.session.commit()

        booking = BookingService.get_booking(booking_id)
        db.session.refresh(booking)
        logger.info("Booking %s fully assigned (%s contractors)", booking_id, len(rows))
        CalendarService.update_for_booking(
            booking,
            "CONFIRMED",
            [f"Contractor: {row.contractor.name} ({row.tasks_description or 'General'})" for row in rows],
        )
        NotificationService.roster_complete(booking, rows)
        return True

    # Staff maintenance

    @staticmethod
    def update_assignment(assignment_id, payload):
        if not isinstance(payload, dict) or set(payload) != {"reminder_date"}:
            raise ValidationFailure("Only reminder_date can be updated.")
        raw = payload["reminder_date"]
        reminder_date = None
        if raw not in (None, ""):
            try:
                reminder_date = date.fromisoformat(str(raw))
            except ValueError as exc:
                raise ValidationFailure("reminder_date must be YYYY-MM-DD.") from exc

        assignment = db.session.get(Assignment, assignment_id)
        if not assignment:
            raise AppError("Assignment not found.", 404)
        assignment.reminder_date = reminder_date
        # A new date re-arms the reminder.
        assignment.reminder_sent_at = None
        db.session.commit()
        return assignment

    @staticmethod
    def serialize(assignment):
        return _serialize_assignment(assignment)
