import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from eventcrew.errors import AlreadyConsumed, ConflictingState
from eventcrew.extensions import db
from eventcrew.models import Assignment, Booking, ClientApproval
from eventcrew.models.base import utcnow
from eventcrew.services.booking_service import APPROVED_STATUSES
from eventcrew.services.notification_service import NotificationService
from eventcrew.services.reconciliation_service import CENTS
from eventcrew.services.token_service import TokenService

logger = logging.getLogger(__name__)

MAX_REFERENCE_LENGTH = 128


@dataclass(frozen=True)
class SettlementSummary:
    contractor_payments: int
    client_balances: int


def _clean_reference(reference):
    return (reference or "").strip()[:MAX_REFERENCE_LENGTH] or None


class SettlementService:
    """Money owed once an event is over: contractor pay and client balances.

    Both flows are driven by capability tokens issued by ``collect_due`` and
    settle with a conditional write, so replaying a confirmation link reports
    ``already_paid`` instead of paying twice.
    """

    @staticmethod
    def balance_due(approval):
        total = Decimal(str(approval.adjusted_quote_total or 0))
        deposit = Decimal(str(approval.deposit_amount or 0))
        return (total - deposit).quantize(CENTS)

    @staticmethod
    def collect_due(today=None):
        """Issue payment tokens for finished events and email the office a digest."""
        today = today or date.today()

        unpaid_rows = (
            Assignment.query.join(Booking, Assignment.booking_id == Booking.id)
            .filter(
                Assignment.status == "accepted",
                Assignment.payment_status == "pending",
                Booking.event_date < today,
            )
            .order_by(Booking.event_date.asc(), Assignment.id.asc())
            .all()
        )
        for row in unpaid_rows:
            if not row.payment_token:
                row.payment_token = TokenService.generate()

        candidates = (
            ClientApproval.query.join(Booking, ClientApproval.booking_id == Booking.id)
            .filter(
                ClientApproval.deposit_amount.isnot(None),
                ClientApproval.balance_status == "pending",
                Booking.event_date < today,
                Booking.status.in_(APPROVED_STATUSES),
            )
            .order_by(Booking.event_date.asc(), ClientApproval.id.asc())
            .all()
        )
        balances = []
        for approval in candidates:
            amount = SettlementService.balance_due(approval)
            if amount <= 0:
                continue
            if not approval.balance_payment_token:
                approval.balance_payment_token = TokenService.generate()
            balances.append((approval, amount))
        db.session.commit()

        if unpaid_rows:
            NotificationService.contractor_payments_due(unpaid_rows)
        if balances:
            NotificationService.client_balances_due(balances)
        logger.info(
            "Settlement check for %s: %s contractor payment(s), %s client balance(s)",
            today,
            len(unpaid_rows),
            len(balances),
        )
        return SettlementSummary(contractor_payments=len(unpaid_rows), client_balances=len(balances))

    @staticmethod
    def balance_details(token):
        approval = TokenService.resolve_balance(token)
        booking = approval.booking
        return {
            "id": approval.id,
            "total": str(Decimal(str(approval.adjusted_quote_total or 0)).quantize(CENTS)),
            "deposit": str(Decimal(str(approval.deposit_amount or 0)).quantize(CENTS)),
            "balance": str(SettlementService.balance_due(approval)),
            "balance_status": approval.balance_status,
            "client": {
                "name": booking.client_name,
                "email": booking.client_email,
                "phone": booking.client_phone,
            },
            "event": {
                "name": booking.event_name,
                "date": booking.event_date.isoformat() if booking.event_date else None,
                "quote_number": booking.quote_number,
            },
        }

    @staticmethod
    def send_balance_invoice(token):
        approval = TokenService.resolve_balance(token)
        if approval.balance_status == "paid":
            raise AlreadyConsumed("This balance has already been paid.", code="already_paid")
        amount = SettlementService.balance_due(approval)
        if amount <= 0:
            raise ConflictingState("There is no balance owing on this booking.", code="no_balance_due")

        approval.balance_status = "invoiced"
        approval.balance_invoiced_at = utcnow()
        db.session.commit()
        logger.info("Balance invoice for approval %s sent (%s)", approval.id, amount)

        NotificationService.balance_invoice(approval, amount)
        return amount

    @staticmethod
    def confirm_balance_payment(token, reference=None):
        approval = TokenService.resolve_balance(token)
        marked = ClientApproval.query.filter(
            ClientApproval.id == approval.id, ClientApproval.balance_status != "paid"
        ).update(
            {
                "balance_status": "paid",
                "balance_paid_at": utcnow(),
                "balance_reference": _clean_reference(reference),
            },
            synchronize_session=False,
        )
        if marked != 1:
            db.session.rollback()
            raise AlreadyConsumed("This balance has already been paid.", code="already_paid")
        db.session.commit()
        db.session.refresh(approval)

        amount = SettlementService.balance_due(approval)
        logger.info("Balance for approval %s paid (%s)", approval.id, amount)
        NotificationService.balance_paid(approval, amount)
        return approval

    @staticmethod
    def confirm_contractor_payment(token, reference=None):
        assignment = TokenService.resolve_contractor_payment(token)
        if assignment.status != "accepted":
            raise ConflictingState("Only accepted jobs can be paid.")

        marked = Assignment.query.filter(
            Assignment.id == assignment.id, Assignment.payment_status != "paid"
        ).update(
            {
                "payment_status": "paid",
                "payment_confirmed_at": utcnow(),
                "payment_reference": _clean_reference(reference),
            },
            synchronize_session=False,
        )
        if marked != 1:
            db.session.rollback()
            raise AlreadyConsumed("This contractor has already been paid.", code="already_paid")
        db.session.commit()
        db.session.refresh(assignment)

        logger.info("Payment to contractor %s for assignment %s confirmed", assignment.contractor_id, assignment.id)
        NotificationService.contractor_paid(assignment)
        return assignment
