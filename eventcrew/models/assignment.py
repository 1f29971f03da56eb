from eventcrew.extensions import db
from eventcrew.models.base import PKType, TimestampMixin

ASSIGNMENT_STATUSES = ("pending", "notified", "accepted", "declined")
TERMINAL_ASSIGNMENT_STATUSES = frozenset({"accepted", "declined"})
PAYMENT_STATUSES = ("pending", "paid")


class Assignment(TimestampMixin, db.Model):
    __tablename__ = "booking_contractor_assignments"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    booking_id = db.Column(PKType, db.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    contractor_id = db.Column(
        PKType, db.ForeignKey("contractors.id", ondelete="CASCADE"), nullable=False, index=True
    )

    status = db.Column(db.String(24), nullable=False, default="pending", index=True)
    assignment_token = db.Column(db.String(64), nullable=True, unique=True, index=True)

    hourly_rate = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    estimated_hours = db.Column(db.Numeric(6, 2), nullable=False, default=0)
    pay_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tasks_description = db.Column(db.Text, nullable=True)

    notified_at = db.Column(db.DateTime(timezone=True), nullable=True)
    responded_at = db.Column(db.DateTime(timezone=True), nullable=True)
    reminder_date = db.Column(db.Date, nullable=True)
    reminder_sent_at = db.Column(db.DateTime(timezone=True), nullable=True)

    payment_status = db.Column(db.String(24), nullable=False, default="pending", index=True)
    payment_token = db.Column(db.String(64), nullable=True, unique=True, index=True)
    payment_confirmed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    payment_reference = db.Column(db.String(128), nullable=True)

    booking = db.relationship("Booking", back_populates="assignments")
    contractor = db.relationship("Contractor", back_populates="assignments")

    __table_args__ = (
        db.UniqueConstraint("booking_id", "contractor_id", name="uq_assignment_booking_contractor"),
        db.CheckConstraint(
            "status IN (" + ", ".join(f"'{s}'" for s in ASSIGNMENT_STATUSES) + ")",
            name="ck_assignment_status",
        ),
        db.CheckConstraint(
            "payment_status IN (" + ", ".join(f"'{s}'" for s in PAYMENT_STATUSES) + ")",
            name="ck_assignment_payment_status",
        ),
    )
