from eventcrew.extensions import db
from eventcrew.models.base import PKType, TimestampMixin


class Contractor(TimestampMixin, db.Model):
    __tablename__ = "contractors"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    name = db.Column(db.String(120), nullable=False, index=True)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    phone = db.Column(db.String(32), nullable=True)
    active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    assignments = db.relationship("Assignment", back_populates="contractor", lazy="dynamic")
