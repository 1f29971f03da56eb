"""
Tests for the booking state machine: quote sending and client approval
"""
from decimal import Decimal

import pytest

from eventcrew.errors import AlreadyConsumed, AppError, ConflictingState, InvalidToken, ValidationFailure
from eventcrew.extensions import db
from eventcrew.models import Booking
from eventcrew.services import BookingService
from eventcrew.services.booking_service import BOOKING_TRANSITIONS


@pytest.mark.unit
class TestTransitionGraph:
    def test_every_target_is_a_known_status(self):
        targets = set().union(*BOOKING_TRANSITIONS.values())
        assert targets <= set(BOOKING_TRANSITIONS)

    def test_terminal_statuses_have_no_successors(self):
        assert BOOKING_TRANSITIONS["assigned"] == set()
        assert BOOKING_TRANSITIONS["fully_assigned"] == set()

    @pytest.mark.parametrize(
        "current,target",
        [
            ("pending", "fully_assigned"),
            ("sent_to_client", "contractors_notified"),
            ("client_approved", "sent_to_client"),
            ("fully_assigned", "pending"),
        ],
    )
    def test_skipping_or_moving_backwards_is_refused(self, app, make_booking, current, target):
        booking = make_booking()
        with pytest.raises(ConflictingState):
            BookingService.compare_and_set(booking.id, current, target)

    def test_compare_and_set_only_wins_from_expected_status(self, make_booking):
        booking = make_booking()
        assert BookingService.compare_and_set(booking.id, "sent_to_client", "client_approved") is False
        db.session.rollback()
        assert BookingService.compare_and_set(booking.id, "pending", "sent_to_client") is True
        db.session.commit()
        assert db.session.get(Booking, booking.id).status == "sent_to_client"


@pytest.mark.unit
class TestCreateBooking:
    def test_creates_pending_booking_with_quote_number(self, make_booking):
        booking = make_booking()
        assert booking.status == "pending"
        assert booking.quote_number.startswith("Q-")
        assert booking.quote_number.endswith("-0001")
        assert booking.approval_token
        assert booking.details_json["equipment"] == [{"name": "Line array", "quantity": 2}]

    def test_rejects_missing_client_email(self, make_booking):
        with pytest.raises(ValidationFailure):
            make_booking(client_email="not-an-email")
        assert Booking.query.count() == 0


@pytest.mark.unit
class TestSendToClient:
    def test_half_deposit_on_cached_total(self, fakes, make_booking):
        booking = make_booking()
        result = BookingService.send_to_client(booking.id)

        assert booking.status == "sent_to_client"
        assert result.approval.deposit_amount == Decimal("500.00")
        assert result.approval.adjusted_quote_total == Decimal("1000.00")
        assert result.approval.resend_count == 0
        assert result.auto_approved is False
        assert booking.invoice_number.startswith("INV-")
        assert len(fakes.mailer.to("aroha@example.com")) == 1
        assert result.approval.client_approval_token in fakes.mailer.sent[0]["body"]

    def test_resend_counts_and_keeps_status(self, fakes, make_booking):
        booking = make_booking()
        BookingService.send_to_client(booking.id)
        result = BookingService.send_to_client(booking.id, notes="Added a second monitor")

        assert booking.status == "sent_to_client"
        assert result.is_resend is True
        assert result.approval.resend_count == 1
        assert result.approval.quote_notes == "Added a second monitor"
        assert fakes.mailer.sent[-1]["subject"].startswith("Updated quote")

    def test_explicit_percentage_and_adjusted_amount(self, make_booking):
        booking = make_booking()
        result = BookingService.send_to_client(booking.id, deposit_percent="25", adjusted_amount="1200")
        assert result.approval.adjusted_quote_total == Decimal("1200.00")
        assert result.approval.deposit_amount == Decimal("300.00")

    def test_invalid_percentage_rejected_before_any_change(self, make_booking):
        booking = make_booking()
        with pytest.raises(ValidationFailure):
            BookingService.send_to_client(booking.id, deposit_percent="150")
        assert booking.approval is None
        assert booking.status == "pending"

    def test_unknown_booking(self, app):
        with pytest.raises(AppError) as exc_info:
            BookingService.send_to_client(9999)
        assert exc_info.value.status_code == 404

    def test_cannot_send_after_approval(self, approved_booking):
        with pytest.raises(ConflictingState):
            BookingService.send_to_client(approved_booking.id)

    def test_zero_deposit_auto_approves(self, fakes, make_booking):
        booking = make_booking()
        result = BookingService.send_to_client(booking.id, deposit_percent="0")

        assert result.auto_approved is True
        assert booking.status == "client_approved"
        assert result.approval.client_approved_at is not None
        assert len(fakes.mailer.to("office@example.com")) == 1

    def test_unpriced_booking_is_not_sent(self, fakes, make_booking):
        booking = make_booking(quote_total=None)

        with pytest.raises(ValidationFailure) as exc_info:
            BookingService.send_to_client(booking.id)

        assert exc_info.value.code == "invalid_params"
        assert booking.status == "pending"
        assert booking.approval is None
        assert fakes.mailer.sent == []

    def test_unpriced_booking_with_override_is_sent(self, make_booking):
        booking = make_booking(quote_total=None)
        result = BookingService.send_to_client(booking.id, adjusted_amount="800")

        assert result.amount.source == "override"
        assert result.approval.deposit_amount == Decimal("400.00")
        assert result.auto_approved is False


@pytest.mark.unit
class TestAbsentDeposit:
    @pytest.fixture
    def deposit_percent(self):
        return None

    def test_absent_deposit_does_not_auto_approve(self, fakes, make_booking):
        booking = make_booking()
        result = BookingService.send_to_client(booking.id)

        assert result.approval.deposit_amount is None
        assert result.auto_approved is False
        assert booking.status == "sent_to_client"
        assert fakes.mailer.to("office@example.com") == []

    def test_approval_summary_is_not_ready(self, make_booking):
        booking = make_booking()
        token = BookingService.send_to_client(booking.id).approval.client_approval_token
        summary = BookingService.approval_summary(token)
        assert summary["ready_for_approval"] is False
        assert summary["deposit_amount"] is None


@pytest.mark.unit
class TestClientApproval:
    def test_approve_then_replay(self, fakes, make_booking):
        booking = make_booking()
        token = BookingService.send_to_client(booking.id).approval.client_approval_token

        BookingService.approve_by_client(token)
        approved_at = booking.approval.client_approved_at

        assert booking.status == "client_approved"
        assert approved_at is not None
        assert booking.contractor_selection_token
        assert len(fakes.calendar.created) == 1
        assert booking.calendar_event_id == "evt-1"
        business_mail = fakes.mailer.to("office@example.com")
        assert len(business_mail) == 1
        assert booking.contractor_selection_token in business_mail[0]["body"]

        with pytest.raises(AlreadyConsumed) as exc_info:
            BookingService.approve_by_client(token)
        assert exc_info.value.code == "already_approved"
        assert booking.approval.client_approved_at == approved_at
        assert len(fakes.calendar.created) == 1
        assert len(fakes.mailer.to("office@example.com")) == 1

    def test_calendar_outage_does_not_undo_approval(self, fakes, make_booking):
        booking = make_booking()
        token = BookingService.send_to_client(booking.id).approval.client_approval_token
        fakes.calendar.unavailable = True

        BookingService.approve_by_client(token)

        assert booking.status == "client_approved"
        assert booking.calendar_event_id is None

    def test_undated_event_skips_calendar(self, fakes, make_booking):
        booking = make_booking(event_date=None)
        token = BookingService.send_to_client(booking.id).approval.client_approval_token
        BookingService.approve_by_client(token)
        assert fakes.calendar.created == []

    def test_invalid_token_changes_nothing(self, fakes, make_booking):
        booking = make_booking()
        BookingService.send_to_client(booking.id)
        with pytest.raises(InvalidToken):
            BookingService.approve_by_client("bogus")
        assert booking.status == "sent_to_client"
        assert fakes.calendar.created == []

    def test_approval_summary(self, make_booking):
        booking = make_booking()
        token = BookingService.send_to_client(booking.id).approval.client_approval_token

        summary = BookingService.approval_summary(token)
        assert summary["quote_total"] == "1000.00"
        assert summary["deposit_amount"] == "500.00"
        assert summary["deposit_percent"] == 50
        assert summary["ready_for_approval"] is True
        assert summary["already_approved"] is False

        BookingService.approve_by_client(token)
        assert BookingService.approval_summary(token)["already_approved"] is True


@pytest.mark.unit
class TestLegacyQuoteApproval:
    def test_approve_quote_offers_job_to_active_contractors(self, fakes, make_booking, make_contractor):
        first = make_contractor()
        second = make_contractor()
        make_contractor(active=False)
        booking = make_booking()

        BookingService.approve_quote(booking.approval_token)

        assert booking.status == "sent_to_contractors"
        assert booking.contractor_token
        assert booking.contractors_notified_at is not None
        assert len(fakes.mailer.with_subject("Job Available")) == 2
        assert {m["to"] for m in fakes.mailer.with_subject("Job Available")} == {first.email, second.email}

    def test_replay_reports_already_processed(self, make_booking, make_contractor):
        make_contractor()
        booking = make_booking()
        BookingService.approve_quote(booking.approval_token)
        with pytest.raises(AlreadyConsumed) as exc_info:
            BookingService.approve_quote(booking.approval_token)
        assert exc_info.value.code == "already_processed"

    def test_without_contractors_booking_waits_at_approved(self, fakes, make_booking):
        booking = make_booking()
        BookingService.approve_quote(booking.approval_token)
        assert booking.status == "client_approved"
        assert fakes.mailer.with_subject("Job Available") == []
