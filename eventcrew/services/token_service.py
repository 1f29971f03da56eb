import secrets

from eventcrew.errors import InvalidToken
from eventcrew.models import Assignment, Booking, ClientApproval

TOKEN_BYTES = 32
MAX_TOKEN_LENGTH = 64


class TokenService:
    """Issues and resolves the capability tokens carried in emailed links.

    Every resolver looks the owning row up by its own token column only, so a
    token can never authorize a different kind of transition or a different
    row. Absent, blank, malformed and foreign tokens all raise the same
    ``InvalidToken``.
    """

    @staticmethod
    def generate():
        return secrets.token_urlsafe(TOKEN_BYTES)

    @staticmethod
    def _normalize(token):
        token = (token or "").strip()
        if not token or len(token) > MAX_TOKEN_LENGTH:
            raise InvalidToken()
        return token

    @staticmethod
    def resolve_client_approval(token):
        token = TokenService._normalize(token)
        approval = ClientApproval.query.filter_by(client_approval_token=token).first()
        if not approval:
            raise InvalidToken()
        return approval

    @staticmethod
    def resolve_assignment(token):
        token = TokenService._normalize(token)
        assignment = Assignment.query.filter_by(assignment_token=token).first()
        if not assignment:
            raise InvalidToken()
        return assignment

    @staticmethod
    def resolve_quote_approval(token):
        token = TokenService._normalize(token)
        booking = Booking.query.filter_by(approval_token=token).first()
        if not booking:
            raise InvalidToken()
        return booking

    @staticmethod
    def resolve_direct_offer(token):
        token = TokenService._normalize(token)
        booking = Booking.query.filter_by(contractor_token=token).first()
        if not booking:
            raise InvalidToken()
        return booking

    @staticmethod
    def resolve_balance(token):
        token = TokenService._normalize(token)
        approval = ClientApproval.query.filter_by(balance_payment_token=token).first()
        if not approval:
            raise InvalidToken()
        return approval

    @staticmethod
    def resolve_contractor_payment(token):
        token = TokenService._normalize(token)
        assignment = Assignment.query.filter_by(payment_token=token).first()
        if not assignment:
            raise InvalidToken()
        return assignment

    @staticmethod
    def resolve_roster_access(token, booking_id=None):
        """Selection links also accept the booking's approval token, which is
        how staff reach the roster screen when client approval was skipped."""
        token = TokenService._normalize(token)
        booking = Booking.query.filter_by(contractor_selection_token=token).first()
        if not booking:
            booking = Booking.query.filter_by(approval_token=token).first()
        if not booking:
            raise InvalidToken()
        if booking_id is not None and str(booking.id) != str(booking_id):
            raise InvalidToken()
        return booking
