from eventcrew.extensions import db
from eventcrew.models.base import PKType, TimestampMixin

BOOKING_STATUSES = (
    "pending",
    "sent_to_client",
    "client_approved",
    "contractors_notified",
    "sent_to_contractors",
    "assigned",
    "fully_assigned",
)


class Booking(TimestampMixin, db.Model):
    __tablename__ = "bookings"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    quote_number = db.Column(db.String(32), nullable=False, unique=True, index=True)
    invoice_number = db.Column(db.String(32), nullable=True)
    purchase_order = db.Column(db.String(64), nullable=True)

    status = db.Column(db.String(32), nullable=False, default="pending", index=True)

    client_name = db.Column(db.String(120), nullable=False)
    client_email = db.Column(db.String(255), nullable=False, index=True)
    client_phone = db.Column(db.String(32), nullable=True)
    event_name = db.Column(db.String(180), nullable=True)
    event_date = db.Column(db.Date, nullable=True, index=True)
    event_time = db.Column(db.String(32), nullable=True)
    location = db.Column(db.String(255), nullable=True)
    details_json = db.Column(db.JSON, nullable=True)

    approval_token = db.Column(db.String(64), nullable=False, unique=True, index=True)
    contractor_selection_token = db.Column(db.String(64), nullable=True, unique=True, index=True)
    contractor_token = db.Column(db.String(64), nullable=True, unique=True, index=True)

    quote_total = db.Column(db.Numeric(12, 2), nullable=True)
    quote_sheet_id = db.Column(db.String(128), nullable=True)
    calendar_event_id = db.Column(db.String(255), nullable=True)

    assigned_contractor_id = db.Column(
        PKType, db.ForeignKey("contractors.id", ondelete="SET NULL"), nullable=True, index=True
    )
    assigned_at = db.Column(db.DateTime(timezone=True), nullable=True)

    client_approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    contractors_notified_at = db.Column(db.DateTime(timezone=True), nullable=True)

    approval = db.relationship("ClientApproval", back_populates="booking", uselist=False)
    assignments = db.relationship(
        "Assignment", back_populates="booking", lazy="dynamic", cascade="all, delete-orphan"
    )
    assigned_contractor = db.relationship("Contractor", foreign_keys=[assigned_contractor_id])

    __table_args__ = (
        db.CheckConstraint(
            "status IN (" + ", ".join(f"'{s}'" for s in BOOKING_STATUSES) + ")",
            name="ck_booking_status",
        ),
    )

    @property
    def event_label(self):
        return self.event_name or "Event"
