import logging
from datetime import date, timedelta

from sqlalchemy import and_, or_

from eventcrew.extensions import db
from eventcrew.integrations import get_integrations
from eventcrew.models import Assignment, Booking
from eventcrew.models.base import utcnow
from eventcrew.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


class ReminderService:
    @staticmethod
    def due_assignments(today=None):
        """Accepted assignments owed a reminder today.

        An explicit ``reminder_date`` wins; otherwise the reminder goes out
        ``reminder_lead_days`` before the event.
        """
        today = today or date.today()
        lead_date = today + timedelta(days=get_integrations().settings.reminder_lead_days)
        return (
            Assignment.query.join(Booking, Assignment.booking_id == Booking.id)
            .filter(
                Assignment.status == "accepted",
                Assignment.reminder_sent_at.is_(None),
                or_(
                    Assignment.reminder_date == today,
                    and_(Assignment.reminder_date.is_(None), Booking.event_date == lead_date),
                ),
            )
            .order_by(Assignment.id.asc())
            .all()
        )

    @staticmethod
    def send_due(today=None):
        sent = 0
        for assignment in ReminderService.due_assignments(today):
            claimed = Assignment.query.filter(
                Assignment.id == assignment.id, Assignment.reminder_sent_at.is_(None)
            ).update({"reminder_sent_at": utcnow()}, synchronize_session=False)
            if claimed != 1:
                db.session.rollback()
                continue
            db.session.commit()
            if NotificationService.reminder(assignment):
                sent += 1
        logger.info("Sent %s contractor reminder(s)", sent)
        return sent
