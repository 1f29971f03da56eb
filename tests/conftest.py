"""
Pytest configuration and shared fixtures
"""
from datetime import date, timedelta
from decimal import Decimal

import pytest

from eventcrew import create_app
from eventcrew.errors import UpstreamUnavailable
from eventcrew.extensions import db
from eventcrew.integrations import Integrations, WorkflowSettings
from eventcrew.integrations.calendar import CalendarClient
from eventcrew.integrations.mailer import Mailer
from eventcrew.integrations.payments import InitiatedTransaction, PaymentGateway, TransactionStatus
from eventcrew.integrations.sheets import QuoteSheetReader
from eventcrew.models import Contractor
from eventcrew.services import AssignmentService, AuthService, BookingService


class FakeMailer(Mailer):
    def __init__(self):
        self.sent = []
        self.undeliverable = set()

    def send(self, to, subject, body):
        self.sent.append({"to": to, "subject": subject, "body": body})
        return to not in self.undeliverable

    def to(self, address):
        return [message for message in self.sent if message["to"] == address]

    def with_subject(self, prefix):
        return [message for message in self.sent if message["subject"].startswith(prefix)]


class FakeSheets(QuoteSheetReader):
    def __init__(self):
        self.totals = {}
        self.unavailable = False
        self.reads = []

    def read_total(self, sheet_id):
        self.reads.append(sheet_id)
        if self.unavailable:
            raise UpstreamUnavailable("Sheet offline.")
        return self.totals.get(sheet_id)


class FakeCalendar(CalendarClient):
    def __init__(self):
        self.created = []
        self.updated = []
        self.unavailable = False

    def create_event(self, summary, description, start):
        if self.unavailable:
            raise UpstreamUnavailable("Calendar offline.")
        self.created.append({"summary": summary, "description": description, "start": start})
        return f"evt-{len(self.created)}"

    def update_event(self, event_id, summary, description):
        if self.unavailable:
            raise UpstreamUnavailable("Calendar offline.")
        self.updated.append({"event_id": event_id, "summary": summary, "description": description})


class FakeGateway(PaymentGateway):
    def __init__(self):
        self.transactions = {}
        self.queries = []
        self.initiated = []

    def initiate(self, payment_request):
        self.initiated.append(payment_request)
        transaction_token = f"POLI-T{len(self.initiated)}"
        self.transactions[transaction_token] = TransactionStatus("Initiated")
        return InitiatedTransaction(transaction_token, f"https://pay.example/{transaction_token}")

    def get_transaction(self, transaction_token):
        self.queries.append(transaction_token)
        if transaction_token not in self.transactions:
            raise UpstreamUnavailable("Unknown transaction.")
        return self.transactions[transaction_token]

    def complete(self, transaction_token, reference="REF-1"):
        self.transactions[transaction_token] = TransactionStatus("Completed", reference)


def build_fakes(default_deposit_percent=Decimal("50")):
    return Integrations(
        settings=WorkflowSettings(
            site_url="http://testserver",
            business_email="office@example.com",
            default_deposit_percent=default_deposit_percent,
            reminder_lead_days=14,
        ),
        mailer=FakeMailer(),
        sheets=FakeSheets(),
        calendar=FakeCalendar(),
        payments=FakeGateway(),
    )


@pytest.fixture
def deposit_percent():
    """Override in a test module to change the configured default deposit."""
    return Decimal("50")


@pytest.fixture
def fakes(deposit_percent):
    return build_fakes(deposit_percent)


@pytest.fixture
def app(fakes):
    app = create_app("testing", integrations=fakes)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def sample_inquiry():
    return {
        "client_name": "Aroha Smith",
        "client_email": "aroha@example.com",
        "client_phone": "021 555 0100",
        "event_name": "Winter Gala",
        "event_date": (date.today() + timedelta(days=30)).isoformat(),
        "event_time": "6pm",
        "location": "Town Hall",
        "booking_type": "fullsystem",
        "attendance": "200",
        "equipment": [{"name": "Line array", "quantity": 2}],
        "quote_total": "1000",
    }


@pytest.fixture
def make_booking(app, sample_inquiry):
    def _make(**overrides):
        return BookingService.create_booking({**sample_inquiry, **overrides})

    return _make


@pytest.fixture
def make_contractor(app):
    counter = {"n": 0}

    def _make(name=None, active=True):
        counter["n"] += 1
        contractor = Contractor(
            name=name or f"Crew {counter['n']}",
            email=f"crew{counter['n']}@example.com",
            active=active,
        )
        db.session.add(contractor)
        db.session.commit()
        return contractor

    return _make


@pytest.fixture
def approved_booking(make_booking):
    """A booking the client has approved, ready for roster selection."""
    booking = make_booking()
    result = BookingService.send_to_client(booking.id)
    BookingService.approve_by_client(result.approval.client_approval_token)
    return booking


@pytest.fixture
def notified_roster(approved_booking, make_contractor):
    def _notify(size):
        contractors = [make_contractor() for _ in range(size)]
        payload = [
            {"contractor_id": c.id, "hourly_rate": "40", "estimated_hours": "5", "tasks_description": "Audio"}
            for c in contractors
        ]
        token = approved_booking.contractor_selection_token
        AssignmentService.save_roster(token, approved_booking.id, payload)
        return AssignmentService.notify_roster(token, approved_booking.id)

    return _notify


@pytest.fixture
def staff_client(app, client):
    AuthService.create_staff("Office Admin", "admin@example.com", "correct-horse", role="admin")
    response = client.post("/api/v1/auth/login", json={"email": "admin@example.com", "password": "correct-horse"})
    assert response.status_code == 200
    return client
