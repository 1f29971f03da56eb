import logging

from eventcrew.errors import AlreadyConsumed, ConflictingState, UpstreamUnavailable, ValidationFailure
from eventcrew.extensions import db
from eventcrew.integrations import get_integrations
from eventcrew.integrations.payments import PaymentRequest
from eventcrew.models import ClientApproval
from eventcrew.services.booking_service import BookingService
from eventcrew.services.notification_service import NotificationService
from eventcrew.services.token_service import TokenService

logger = logging.getLogger(__name__)

FAILED_REDIRECT_STATUSES = {"cancelled", "failure"}


class PaymentService:
    """Deposit payments arriving from the gateway approve the quote by proxy.

    Both the browser redirect and the server-to-server webhook end in
    ``_apply_payment``; whichever arrives second finds the approval already
    paid and changes nothing.
    """

    @staticmethod
    def initiate(client_token):
        """Open a gateway transaction for the deposit on a sent quote.

        The transaction id is stored before the payer leaves, so a webhook
        can settle the deposit even if the browser never comes back.
        """
        approval = TokenService.resolve_client_approval(client_token)
        if approval.client_approved_at is not None:
            raise AlreadyConsumed("This quote has already been approved.", code="already_approved")
        if approval.payment_status == "paid":
            raise AlreadyConsumed("This deposit has already been paid.", code="already_paid")
        if approval.deposit_amount is None or approval.deposit_amount <= 0:
            raise ConflictingState("No deposit is payable on this quote.", code="no_payment_required")

        booking = approval.booking
        token = approval.client_approval_token
        payment_request = PaymentRequest(
            amount=approval.deposit_amount,
            merchant_reference=booking.invoice_number or f"QUOTE-{booking.quote_number}",
            merchant_data=f"approval={approval.id};booking={booking.id}",
            success_url=NotificationService.link("/payment-callback", status="success", token=token),
            failure_url=NotificationService.link("/payment-callback", status="failure", token=token),
            cancellation_url=NotificationService.link("/payment-callback", status="cancelled", token=token),
            notification_url=NotificationService.link("/api/v1/payments/webhook"),
        )
        started = get_integrations().payments.initiate(payment_request)

        approval.gateway_transaction_id = started.transaction_token
        approval.payment_status = "processing"
        db.session.commit()
        logger.info("Deposit payment %s started for approval %s", started.transaction_token, approval.id)
        return started

    @staticmethod
    def handle_callback(client_token, status=None, transaction_token=None):
        approval = TokenService.resolve_client_approval(client_token)

        status = (status or "").strip().lower()
        if status in FAILED_REDIRECT_STATUSES:
            raise ConflictingState("The payment was not completed.", code=f"payment_{status}")
        if approval.payment_status == "paid":
            raise AlreadyConsumed("This deposit has already been paid.", code="already_paid")

        transaction_token = (transaction_token or "").strip() or approval.gateway_transaction_id
        if not transaction_token:
            raise ValidationFailure("No payment transaction was supplied.", code="no_transaction")
        if approval.gateway_transaction_id != transaction_token:
            approval.gateway_transaction_id = transaction_token
            db.session.commit()

        transaction = get_integrations().payments.get_transaction(transaction_token)
        if not transaction.completed:
            logger.info(
                "Payment %s for approval %s not completed: %s", transaction_token, approval.id, transaction.status_code
            )
            raise ConflictingState("The payment has not completed.", code="payment_incomplete")

        PaymentService._apply_payment(approval, transaction.reference or transaction_token)
        return approval

    @staticmethod
    def handle_webhook(transaction_token):
        """Gateway notification; always acknowledged, whatever the outcome."""
        transaction_token = (transaction_token or "").strip()
        if not transaction_token:
            logger.info("Payment webhook without a transaction token")
            return False

        approval = ClientApproval.query.filter_by(gateway_transaction_id=transaction_token).first()
        if not approval:
            logger.info("Payment webhook for unknown transaction %s", transaction_token)
            return False
        if approval.payment_status == "paid":
            return False

        try:
            transaction = get_integrations().payments.get_transaction(transaction_token)
        except UpstreamUnavailable as exc:
            logger.warning("Payment webhook could not query transaction %s: %s", transaction_token, exc.message)
            return False
        if not transaction.completed:
            logger.info("Payment webhook: transaction %s is %s", transaction_token, transaction.status_code)
            return False

        return PaymentService._apply_payment(approval, transaction.reference or transaction_token)

    @staticmethod
    def _apply_payment(approval, reference):
        marked = ClientApproval.query.filter(
            ClientApproval.id == approval.id, ClientApproval.payment_status != "paid"
        ).update({"payment_status": "paid", "payment_reference": reference}, synchronize_session=False)
        if marked != 1:
            db.session.rollback()
            return False
        db.session.commit()
        db.session.refresh(approval)
        logger.info("Deposit for approval %s paid (%s)", approval.id, reference)

        if approval.client_approved_at is None:
            try:
                BookingService.finalize_client_approval(approval)
            except AlreadyConsumed:
                pass
            except ConflictingState:
                logger.warning(
                    "Approval %s paid but booking %s is %s", approval.id, approval.booking_id, approval.booking.status
                )
        return True
