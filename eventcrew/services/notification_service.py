import logging
from decimal import Decimal
from urllib.parse import urlencode

from eventcrew.integrations import get_integrations
from eventcrew.schemas import EventDetails

logger = logging.getLogger(__name__)


def _money(value):
    return f"${Decimal(str(value or 0)):,.2f}"


class NotificationService:
    """Assembles the outgoing emails and hands them to the mailer.

    Every method returns whether the message was accepted. Failures are logged
    and never raised, so one bad address cannot abort a fan-out and a send
    can never undo a transition that has already been committed.
    """

    @staticmethod
    def link(path, **params):
        settings = get_integrations().settings
        query = urlencode({key: value for key, value in params.items() if value is not None})
        return f"{settings.site_url}{path}" + (f"?{query}" if query else "")

    @staticmethod
    def dispatch(to, subject, body):
        try:
            sent = get_integrations().mailer.send(to=to, subject=subject, body=body)
        except Exception:
            logger.exception("Email dispatch to %s raised", to)
            return False
        if not sent:
            logger.warning("Email to %s was not delivered: %s", to, subject)
        return bool(sent)

    @staticmethod
    def _business_email():
        return get_integrations().settings.business_email

    @staticmethod
    def quote_to_client(booking, approval, is_resend=False):
        approve_url = NotificationService.link("/client-approve", token=approval.client_approval_token)
        first_name = (booking.client_name or "").split(" ")[0] or "there"
        lines = [
            f"Hi {first_name},",
            "",
            "We've updated your quote based on your feedback. Please review the changes and approve when ready."
            if is_resend
            else "Thank you for your inquiry! Your quote is ready.",
            "",
            booking.event_label,
            *EventDetails.from_booking(booking).summary_lines(),
            f"Quote total: {_money(approval.adjusted_quote_total)}",
        ]
        if booking.invoice_number:
            lines.append(f"Invoice: {booking.invoice_number}")
        if approval.deposit_amount is not None and approval.deposit_amount > 0:
            lines.append(f"Deposit required: {_money(approval.deposit_amount)}")
            pay_url = NotificationService.link("/pay-deposit", token=approval.client_approval_token)
            lines.append(f"Pay your deposit online: {pay_url}")
        if approval.quote_notes:
            lines += ["", f"Note from us: {approval.quote_notes}"]
        lines += ["", f"Approve your quote: {approve_url}"]
        subject = f"{'Updated quote' if is_resend else 'Your quote'} - {booking.event_label}"
        return NotificationService.dispatch(booking.client_email, subject, "\n".join(lines))

    @staticmethod
    def client_approved_to_business(booking, approval=None):
        select_url = NotificationService.link("/select-contractors", token=booking.contractor_selection_token)
        lines = [
            "The client has approved the quote.",
            "",
            f"{booking.event_label} - Quote #{booking.quote_number}",
            f"Client: {booking.client_name}",
        ]
        if approval is not None and approval.adjusted_quote_total:
            lines.append(f"Amount: {_money(approval.adjusted_quote_total)}")
        lines += ["", f"Select contractors: {select_url}"]
        return NotificationService.dispatch(
            NotificationService._business_email(),
            f"Client Approved: {booking.event_label} - Quote #{booking.quote_number}",
            "\n".join(lines),
        )

    @staticmethod
    def direct_offer(booking, contractor):
        accept_url = NotificationService.link("/accept-job", token=booking.contractor_token, contractor=contractor.id)
        lines = [
            f"Hi {contractor.name},",
            "",
            "A new job is available:",
            booking.event_label,
            *EventDetails.from_booking(booking).summary_lines(),
            "",
            f"Accept this job: {accept_url}",
            "",
            "If you can't take this job, no action is needed.",
        ]
        return NotificationService.dispatch(
            contractor.email, f"Job Available: {booking.event_label}", "\n".join(lines)
        )

    @staticmethod
    def direct_assigned(booking, contractor, others):
        """Tell the office, the winner and everyone else who was offered the job."""
        NotificationService.dispatch(
            NotificationService._business_email(),
            f"Contractor Assigned: {contractor.name} for {booking.event_label}",
            f"{contractor.name} ({contractor.email}) accepted {booking.event_label}, Quote #{booking.quote_number}.",
        )
        for other in others:
            NotificationService.dispatch(
                other.email,
                f"Job Filled: {booking.event_label}",
                f"Hi {other.name},\n\nThe job {booking.event_label} has been filled. Thanks for your interest.",
            )
        return NotificationService.dispatch(
            contractor.email,
            f"Confirmed: You're booked for {booking.event_label}",
            "\n".join(
                [f"Hi {contractor.name},", "", "You're confirmed for:", booking.event_label]
                + EventDetails.from_booking(booking).summary_lines()
            ),
        )

    @staticmethod
    def roster_offer(assignment):
        booking = assignment.booking
        contractor = assignment.contractor
        accept_url = NotificationService.link(
            "/contractor-respond", token=assignment.assignment_token, action="accept"
        )
        decline_url = NotificationService.link(
            "/contractor-respond", token=assignment.assignment_token, action="decline"
        )
        lines = [
            f"Hi {contractor.name},",
            "",
            "You've been selected for a job:",
            booking.event_label,
            *EventDetails.from_booking(booking).summary_lines(),
            f"Pay: {NotificationService.pay_breakdown(assignment)}",
        ]
        if assignment.tasks_description:
            lines.append(f"Your tasks: {assignment.tasks_description}")
        lines += ["", f"Accept: {accept_url}", f"Decline: {decline_url}"]
        return NotificationService.dispatch(
            contractor.email, f"Job Offer: {booking.event_label}", "\n".join(lines)
        )

    @staticmethod
    def pay_breakdown(assignment):
        rate = Decimal(str(assignment.hourly_rate or 0))
        hours = Decimal(str(assignment.estimated_hours or 0))
        if rate and hours:
            return f"{_money(rate)}/hr x {format(hours.normalize(), 'f')} hrs = {_money(assignment.pay_amount)}"
        return _money(assignment.pay_amount)

    @staticmethod
    def roster_confirmation(assignment):
        booking = assignment.booking
        lines = [
            f"Hi {assignment.contractor.name},",
            "",
            f"You're booked for {booking.event_label}.",
            *EventDetails.from_booking(booking).summary_lines(),
            f"Pay: {NotificationService.pay_breakdown(assignment)}",
        ]
        return NotificationService.dispatch(
            assignment.contractor.email, f"Confirmed: You're booked for {booking.event_label}", "\n".join(lines)
        )

    @staticmethod
    def roster_complete(booking, assignments):
        lines = [f"All contractors confirmed for {booking.event_label} (Quote #{booking.quote_number}):", ""]
        lines += [
            f"- {row.contractor.name} - {_money(row.pay_amount)} - {row.tasks_description or 'General'}"
            for row in assignments
        ]
        return NotificationService.dispatch(
            NotificationService._business_email(),
            f"All Contractors Confirmed: {booking.event_label}",
            "\n".join(lines),
        )

    @staticmethod
    def roster_declined(assignment):
        booking = assignment.booking
        select_url = NotificationService.link("/select-contractors", token=booking.contractor_selection_token)
        body = "\n".join(
            [
                f"{assignment.contractor.name} declined {booking.event_label} (Quote #{booking.quote_number}).",
                "A replacement is needed.",
                "",
                f"Select a new contractor: {select_url}",
            ]
        )
        return NotificationService.dispatch(
            NotificationService._business_email(),
            f"Contractor Declined: {assignment.contractor.name} for {booking.event_label}",
            body,
        )

    @staticmethod
    def reminder(assignment):
        booking = assignment.booking
        lines = [
            f"Hi {assignment.contractor.name},",
            "",
            f"A reminder that you're booked for {booking.event_label}.",
            *EventDetails.from_booking(booking).summary_lines(),
        ]
        if assignment.tasks_description:
            lines.append(f"Your tasks: {assignment.tasks_description}")
        return NotificationService.dispatch(
            assignment.contractor.email, f"Upcoming job: {booking.event_label}", "\n".join(lines)
        )

    # Settlement after the event

    @staticmethod
    def contractor_payments_due(assignments):
        lines = ["These contractors worked events that have now finished and are waiting to be paid:", ""]
        for row in assignments:
            confirm_url = NotificationService.link("/confirm-contractor-payment", token=row.payment_token)
            lines += [
                f"- {row.contractor.name}: {_money(row.pay_amount)} for {row.booking.event_label} "
                f"(Quote #{row.booking.quote_number})",
                f"  Confirm paid: {confirm_url}",
            ]
        count = len(assignments)
        return NotificationService.dispatch(
            NotificationService._business_email(),
            f"{count} Contractor Payment{'s' if count != 1 else ''} Ready",
            "\n".join(lines),
        )

    @staticmethod
    def client_balances_due(balances):
        """``balances`` is a list of ``(approval, amount)`` pairs."""
        lines = ["These clients have a balance owing on finished events:", ""]
        for approval, amount in balances:
            booking = approval.booking
            collect_url = NotificationService.link("/collect-balance", token=approval.balance_payment_token)
            lines += [
                f"- {booking.client_name}: {_money(amount)} for {booking.event_label} (Quote #{booking.quote_number})",
                f"  Send invoice: {collect_url}",
            ]
        count = len(balances)
        return NotificationService.dispatch(
            NotificationService._business_email(),
            f"Client Balances Due: {count} event{'s' if count != 1 else ''}",
            "\n".join(lines),
        )

    @staticmethod
    def balance_invoice(approval, amount):
        booking = approval.booking
        pay_url = NotificationService.link("/pay-balance", token=approval.balance_payment_token)
        first_name = (booking.client_name or "").split(" ")[0] or "there"
        lines = [
            f"Hi {first_name},",
            "",
            "Thank you for having us at your event. The balance of your quote is now due.",
            "",
            booking.event_label,
            f"Quote #{booking.quote_number}",
            f"Total quote: {_money(approval.adjusted_quote_total)}",
            f"Deposit paid: -{_money(approval.deposit_amount)}",
            f"Balance due: {_money(amount)}",
            "",
            f"Pay your balance: {pay_url}",
            "",
            "Payment is due within 7 days.",
        ]
        return NotificationService.dispatch(
            booking.client_email, f"Balance Due: {_money(amount)} - {booking.event_label}", "\n".join(lines)
        )

    @staticmethod
    def balance_paid(approval, amount):
        booking = approval.booking
        reference_line = [f"Reference: {approval.balance_reference}"] if approval.balance_reference else []
        NotificationService.dispatch(
            booking.client_email,
            "Payment Received - Thank You!",
            "\n".join(
                [f"We've received your balance payment of {_money(amount)} for {booking.event_label}."]
                + reference_line
                + ["", "Your account is now fully paid."]
            ),
        )
        return NotificationService.dispatch(
            NotificationService._business_email(),
            f"Balance Paid: {_money(amount)} - {booking.client_name}",
            "\n".join(
                [f"{booking.client_name} reported paying {_money(amount)} for {booking.event_label}."]
                + reference_line
                + ["", "Please check the payment has reached the bank account."]
            ),
        )

    @staticmethod
    def contractor_paid(assignment):
        booking = assignment.booking
        lines = [
            f"Hi {assignment.contractor.name},",
            "",
            f"Your payment of {_money(assignment.pay_amount)} for {booking.event_label} has been sent.",
        ]
        if assignment.payment_reference:
            lines.append(f"Reference: {assignment.payment_reference}")
        lines += ["", "It should arrive in your account within 1-2 business days."]
        return NotificationService.dispatch(
            assignment.contractor.email, f"Payment Confirmed: {_money(assignment.pay_amount)}", "\n".join(lines)
        )
