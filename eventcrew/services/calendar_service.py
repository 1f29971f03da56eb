import logging

from eventcrew.errors import UpstreamUnavailable
from eventcrew.extensions import db
from eventcrew.integrations import get_integrations
from eventcrew.integrations.calendar import parse_event_start

logger = logging.getLogger(__name__)


class CalendarService:
    """Best-effort calendar bookkeeping for a booking.

    The calendar is never a precondition: every failure is logged and the
    caller carries on with the transition it has already committed.
    """

    @staticmethod
    def _description(booking, extra_lines=()):
        lines = [
            f"Quote: #{booking.quote_number}",
            f"Client: {booking.client_name}",
            f"Email: {booking.client_email}",
            f"Phone: {booking.client_phone or 'N/A'}",
        ]
        if extra_lines:
            lines.append("")
            lines.extend(extra_lines)
        return "\n".join(lines)

    @staticmethod
    def create_for_booking(booking, status_label, extra_lines=()):
        if not booking.event_date:
            return None
        try:
            event_id = get_integrations().calendar.create_event(
                summary=f"{booking.event_label} - {status_label}",
                description=CalendarService._description(booking, extra_lines),
                start=parse_event_start(booking.event_date, booking.event_time),
            )
        except UpstreamUnavailable as exc:
            logger.warning("Calendar event not created for booking %s: %s", booking.id, exc.message)
            return None

        booking.calendar_event_id = event_id
        db.session.commit()
        return event_id

    @staticmethod
    def update_for_booking(booking, label, extra_lines=()):
        if not booking.calendar_event_id:
            return False
        try:
            get_integrations().calendar.update_event(
                booking.calendar_event_id,
                summary=f"{booking.event_label} - {label}",
                description=CalendarService._description(booking, extra_lines),
            )
        except UpstreamUnavailable as exc:
            logger.warning("Calendar event %s not updated: %s", booking.calendar_event_id, exc.message)
            return False
        return True
