"""
Tests for the emailed link endpoints and their result redirects
"""
from unittest.mock import patch

import pytest

from eventcrew.services import AssignmentService, BookingService


def _emailed_url(message, label):
    line = next(line for line in message["body"].splitlines() if line.startswith(f"{label}: "))
    return line.split(": ", 1)[1].replace("http://testserver", "")


def _location(response):
    assert response.status_code == 302
    return response.headers["Location"]


@pytest.mark.integration
class TestClientApproveLink:
    def test_success_redirect(self, client, make_booking):
        booking = make_booking()
        token = BookingService.send_to_client(booking.id).approval.client_approval_token

        location = _location(client.get(f"/client-approve?token={token}"))

        assert "/result" in location
        assert "type=client-approve" in location
        assert "success=1" in location
        assert booking.status == "client_approved"

    def test_replay_redirects_with_already_approved(self, client, make_booking):
        booking = make_booking()
        token = BookingService.send_to_client(booking.id).approval.client_approval_token
        client.get(f"/client-approve?token={token}")

        assert "error=already_approved" in _location(client.get(f"/client-approve?token={token}"))

    @pytest.mark.parametrize("query", ["", "?token=", "?token=bogus"])
    def test_missing_and_invalid_tokens_share_one_code(self, client, app, query):
        assert "error=invalid_token" in _location(client.get(f"/client-approve{query}"))

    def test_unexpected_failure_is_a_server_error(self, client, make_booking):
        booking = make_booking()
        token = BookingService.send_to_client(booking.id).approval.client_approval_token

        with patch.object(BookingService, "finalize_client_approval", side_effect=RuntimeError("db down")):
            location = _location(client.get(f"/client-approve?token={token}"))

        assert "error=server_error" in location
        assert booking.status == "sent_to_client"


@pytest.mark.integration
class TestContractorLinks:
    def test_accept_and_replay(self, client, notified_roster):
        (row,) = notified_roster(1)
        url = f"/contractor-respond?token={row.assignment_token}&action=accept"

        assert "type=contractor-accept" in _location(client.get(url))
        assert "error=already_responded" in _location(client.get(url))

    def test_bad_action(self, client, notified_roster):
        (row,) = notified_roster(1)
        location = _location(client.get(f"/contractor-respond?token={row.assignment_token}&action=maybe"))
        assert "error=invalid_params" in location

    def test_direct_accept_race_outcomes(self, client, make_booking, make_contractor):
        first = make_contractor()
        second = make_contractor()
        booking = make_booking()
        client.get(f"/approve-quote?token={booking.approval_token}")
        token = booking.contractor_token

        assert "success=1" in _location(client.get(f"/accept-job?token={token}&contractor={first.id}"))
        assert "error=already_taken" in _location(client.get(f"/accept-job?token={token}&contractor={second.id}"))
        assert "error=already_yours" in _location(client.get(f"/accept-job?token={token}&contractor={first.id}"))

    def test_approve_quote_replay(self, client, make_booking):
        booking = make_booking()
        client.get(f"/approve-quote?token={booking.approval_token}")
        location = _location(client.get(f"/approve-quote?token={booking.approval_token}"))
        assert "error=already_processed" in location


@pytest.mark.integration
class TestPaymentLink:
    def test_cancelled_payment(self, client, make_booking):
        booking = make_booking()
        token = BookingService.send_to_client(booking.id).approval.client_approval_token
        location = _location(client.get(f"/payment-callback?token={token}&status=cancelled"))
        assert "error=payment_cancelled" in location

    def test_completed_payment(self, client, fakes, make_booking):
        booking = make_booking()
        token = BookingService.send_to_client(booking.id).approval.client_approval_token
        fakes.payments.complete("txn-9")

        location = _location(client.get(f"/payment-callback?token={token}&Token=txn-9"))

        assert "success=1" in location
        assert booking.status == "client_approved"

    def test_gateway_outage_is_a_server_error(self, client, make_booking):
        booking = make_booking()
        token = BookingService.send_to_client(booking.id).approval.client_approval_token
        location = _location(client.get(f"/payment-callback?token={token}&Token=unknown"))
        assert "error=server_error" in location


@pytest.mark.integration
class TestResultPage:
    def test_known_error_message(self, client):
        response = client.get("/result?type=accept-job&error=already_taken")
        assert response.status_code == 200
        assert b"already been taken" in response.data

    def test_unknown_error_falls_back(self, client):
        response = client.get("/result?type=accept-job&error=weird")
        assert b"Something went wrong" in response.data

    def test_success_message(self, client):
        response = client.get("/result?type=contractor-decline&success=1")
        assert b"Thanks for letting us know" in response.data


@pytest.mark.integration
class TestRosterCompletesThroughLinks:
    def test_two_accept_links_fill_the_booking(self, client, approved_booking, notified_roster):
        rows = notified_roster(2)
        for row in rows:
            client.get(f"/contractor-respond?token={row.assignment_token}&action=accept")
        assert approved_booking.status == "fully_assigned"
        assert AssignmentService.assignment_mode(approved_booking).complete is True


@pytest.mark.integration
class TestSelectContractorsPage:
    def test_approval_email_link_opens_the_roster(self, client, fakes, approved_booking, make_contractor):
        crew = make_contractor(name="Mere Tane")
        (message,) = fakes.mailer.with_subject("Client Approved")
        url = _emailed_url(message, "Select contractors")

        response = client.get(url)

        assert url.startswith("/select-contractors?token=")
        assert response.status_code == 200
        assert b"Mere Tane" in response.data

        posted = client.post(
            "/select-contractors",
            data={
                "token": approved_booking.contractor_selection_token,
                "booking_id": str(approved_booking.id),
                "contractor_id": [str(crew.id)],
                f"pay_amount_{crew.id}": "300",
                "notify": "1",
            },
        )
        location = _location(posted)
        assert "saved=1" in location
        assert "notified=1" in location
        assert approved_booking.status == "contractors_notified"
        assert len(fakes.mailer.with_subject("Job Offer")) == 1

    def test_declined_email_link_opens_the_roster(self, client, fakes, notified_roster):
        (row,) = notified_roster(1)
        client.get(f"/contractor-respond?token={row.assignment_token}&action=decline")
        (message,) = fakes.mailer.with_subject("Contractor Declined")

        response = client.get(_emailed_url(message, "Select a new contractor"))

        assert response.status_code == 200
        assert b"declined" in response.data

    def test_bad_token(self, client, app):
        assert "error=invalid_token" in _location(client.get("/select-contractors?token=bogus"))


@pytest.mark.integration
class TestDepositLink:
    def test_pay_deposit_then_webhook(self, client, fakes, make_booking):
        booking = make_booking()
        BookingService.send_to_client(booking.id)
        (quote_email,) = fakes.mailer.with_subject("Your quote")

        location = _location(client.get(_emailed_url(quote_email, "Pay your deposit online")))
        assert location == "https://pay.example/POLI-T1"

        fakes.payments.complete("POLI-T1")
        response = client.post("/api/v1/payments/webhook", data={"Token": "POLI-T1"})

        assert response.get_json() == {"received": True}
        assert booking.approval.payment_status == "paid"
        assert booking.status == "client_approved"
