from eventcrew.extensions import db
from eventcrew.models.base import PKType, TimestampMixin


class ClientApproval(TimestampMixin, db.Model):
    __tablename__ = "client_approvals"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    booking_id = db.Column(
        PKType, db.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, unique=True, index=True
    )
    client_approval_token = db.Column(db.String(64), nullable=False, unique=True, index=True)
    client_email = db.Column(db.String(255), nullable=False)

    adjusted_quote_total = db.Column(db.Numeric(12, 2), nullable=True)
    deposit_amount = db.Column(db.Numeric(12, 2), nullable=True)
    quote_notes = db.Column(db.Text, nullable=True)
    resend_count = db.Column(db.Integer, nullable=False, default=0)
    sent_to_client_at = db.Column(db.DateTime(timezone=True), nullable=True)
    client_approved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    payment_status = db.Column(db.String(24), nullable=False, default="pending", index=True)
    payment_reference = db.Column(db.String(128), nullable=True)
    gateway_transaction_id = db.Column(db.String(128), nullable=True, unique=True, index=True)

    balance_status = db.Column(db.String(24), nullable=False, default="pending", index=True)
    balance_payment_token = db.Column(db.String(64), nullable=True, unique=True, index=True)
    balance_invoiced_at = db.Column(db.DateTime(timezone=True), nullable=True)
    balance_paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    balance_reference = db.Column(db.String(128), nullable=True)

    booking = db.relationship("Booking", back_populates="approval")

    __table_args__ = (
        db.CheckConstraint(
            "payment_status IN ('pending', 'processing', 'paid')", name="ck_client_approval_payment_status"
        ),
        db.CheckConstraint("balance_status IN ('pending', 'invoiced', 'paid')", name="ck_client_approval_balance_status"),
    )
