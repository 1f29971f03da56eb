from eventcrew.services.assignment_service import AssignmentService
from eventcrew.services.auth_service import AuthService
from eventcrew.services.booking_service import BookingService
from eventcrew.services.calendar_service import CalendarService
from eventcrew.services.contractor_service import ContractorService
from eventcrew.services.notification_service import NotificationService
from eventcrew.services.payment_service import PaymentService
from eventcrew.services.reconciliation_service import ReconciliationService
from eventcrew.services.reminder_service import ReminderService
from eventcrew.services.settlement_service import SettlementService
from eventcrew.services.token_service import TokenService

__all__ = [
    "AssignmentService",
    "AuthService",
    "BookingService",
    "CalendarService",
    "ContractorService",
    "NotificationService",
    "PaymentService",
    "ReconciliationService",
    "ReminderService",
    "SettlementService",
    "TokenService",
]
