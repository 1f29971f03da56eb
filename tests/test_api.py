"""
Tests for the JSON API
"""
import pytest

from eventcrew.errors import AppError
from eventcrew.services import AuthService, BookingService


@pytest.mark.integration
class TestStaffAuth:
    def test_login_with_wrong_password(self, app, client):
        AuthService.create_staff("Office", "office-staff@example.com", "right-password")
        response = client.post("/api/v1/auth/login", json={"email": "office-staff@example.com", "password": "nope"})
        assert response.status_code == 401
        assert response.get_json() == {"error": "Invalid credentials."}

    def test_staff_routes_need_login(self, client):
        response = client.post("/api/v1/bookings", json={})
        assert response.status_code == 401
        assert response.get_json() == {"error": "Unauthorized"}

    def test_duplicate_staff_email(self, app):
        AuthService.create_staff("Office", "dup@example.com", "long-enough")
        with pytest.raises(AppError) as exc_info:
            AuthService.create_staff("Office Two", "DUP@example.com", "long-enough")
        assert exc_info.value.status_code == 409

    def test_logout(self, staff_client):
        assert staff_client.post("/api/v1/auth/logout").get_json() == {"ok": True}
        assert staff_client.get("/api/v1/contractors").status_code == 401


@pytest.mark.integration
class TestBookingApi:
    def test_create_and_send(self, staff_client, fakes, sample_inquiry):
        created = staff_client.post("/api/v1/bookings", json=sample_inquiry)
        assert created.status_code == 201
        booking_id = created.get_json()["id"]

        sent = staff_client.post(f"/api/v1/bookings/{booking_id}/send-to-client", json={"deposit_percent": 50})
        body = sent.get_json()

        assert sent.status_code == 200
        assert body["status"] == "sent_to_client"
        assert body["amount"] == "1000.00"
        assert body["amount_source"] == "cached"
        assert body["deposit_amount"] == "500.00"
        assert body["auto_approved"] is False

        fetched = staff_client.get(f"/api/v1/bookings/{booking_id}").get_json()
        assert fetched["status"] == "sent_to_client"
        assert fetched["invoice_number"].startswith("INV-")

    def test_validation_error_shape(self, staff_client):
        response = staff_client.post("/api/v1/bookings", json={"client_name": "No Email"})
        assert response.status_code == 400
        assert response.get_json()["code"] == "invalid_params"

    def test_send_conflict(self, staff_client, approved_booking):
        response = staff_client.post(f"/api/v1/bookings/{approved_booking.id}/send-to-client", json={})
        assert response.status_code == 409
        assert response.get_json()["code"] == "invalid_state"

    def test_unknown_booking(self, staff_client):
        assert staff_client.get("/api/v1/bookings/424242").status_code == 404


@pytest.mark.integration
class TestApprovalApi:
    def test_summary(self, client, make_booking):
        booking = make_booking()
        token = BookingService.send_to_client(booking.id).approval.client_approval_token

        body = client.get(f"/api/v1/approvals?token={token}").get_json()
        assert body["deposit_amount"] == "500.00"
        assert body["ready_for_approval"] is True

    def test_invalid_token(self, client, app):
        response = client.get("/api/v1/approvals?token=bogus")
        assert response.status_code == 404
        assert response.get_json()["code"] == "invalid_token"


@pytest.mark.integration
class TestRosterApi:
    def test_select_and_notify(self, client, fakes, approved_booking, make_contractor):
        first = make_contractor()
        second = make_contractor()
        token = approved_booking.contractor_selection_token

        view = client.get(f"/api/v1/roster?token={token}").get_json()
        assert {c["id"] for c in view["contractors"]} == {first.id, second.id}
        assert view["assignments"] == []

        saved = client.post(
            "/api/v1/roster",
            json={
                "token": token,
                "booking_id": approved_booking.id,
                "assignments": [
                    {"contractor_id": first.id, "hourly_rate": 40, "estimated_hours": 4},
                    {"contractor_id": second.id, "pay_amount": 300, "tasks_description": "Lighting"},
                ],
            },
        )
        assert saved.status_code == 200
        assert [row["pay_amount"] for row in saved.get_json()["assignments"]] == ["160.00", "300.00"]

        notified = client.post("/api/v1/roster/notify", json={"token": token, "booking_id": approved_booking.id})
        assert notified.get_json() == {"success": True, "notified": 2}
        assert len(fakes.mailer.with_subject("Job Offer")) == 2

        again = client.post("/api/v1/roster/notify", json={"token": token, "booking_id": approved_booking.id})
        assert again.status_code == 409
        assert again.get_json()["code"] == "no_pending_assignments"

    def test_empty_roster_rejected(self, client, approved_booking):
        response = client.post(
            "/api/v1/roster",
            json={"token": approved_booking.contractor_selection_token, "booking_id": approved_booking.id},
        )
        assert response.status_code == 400
        assert response.get_json()["code"] == "invalid_params"


@pytest.mark.integration
class TestStaffMaintenanceApi:
    def test_contractor_directory(self, staff_client):
        created = staff_client.post("/api/v1/contractors", json={"name": "Rangi", "email": "Rangi@Example.com"})
        assert created.status_code == 201
        assert created.get_json()["email"] == "rangi@example.com"

        listed = staff_client.get("/api/v1/contractors").get_json()
        assert [c["name"] for c in listed] == ["Rangi"]

        duplicate = staff_client.post("/api/v1/contractors", json={"name": "Rangi", "email": "rangi@example.com"})
        assert duplicate.status_code == 409

        deactivated = staff_client.patch(f"/api/v1/contractors/{created.get_json()['id']}", json={"active": False})
        assert deactivated.get_json()["active"] is False
        assert staff_client.get("/api/v1/contractors").get_json() == []

    def test_assignment_reminder_date(self, staff_client, notified_roster):
        (row,) = notified_roster(1)
        response = staff_client.patch(f"/api/v1/assignments/{row.id}", json={"reminder_date": "2030-05-01"})
        assert response.status_code == 200
        assert response.get_json()["reminder_date"] == "2030-05-01"

        rejected = staff_client.patch(f"/api/v1/assignments/{row.id}", json={"status": "accepted"})
        assert rejected.status_code == 400

    def test_payment_webhook_always_acknowledges(self, client, app):
        response = client.post("/api/v1/payments/webhook", json={"Token": "unknown"})
        assert response.status_code == 200
        assert response.get_json() == {"received": True}
