from eventcrew.models.assignment import Assignment
from eventcrew.models.booking import Booking
from eventcrew.models.client_approval import ClientApproval
from eventcrew.models.contractor import Contractor
from eventcrew.models.user import StaffUser

__all__ = [
    "Assignment",
    "Booking",
    "ClientApproval",
    "Contractor",
    "StaffUser",
]
