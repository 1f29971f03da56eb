from dataclasses import asdict, dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError

from eventcrew.errors import AppError, ValidationFailure
from eventcrew.extensions import cache, db
from eventcrew.models import Contractor
from eventcrew.schemas import EMAIL_RE


@dataclass(frozen=True)
class ContractorCard:
    id: int
    name: str
    email: str
    phone: Optional[str] = None

    def to_dict(self):
        return asdict(self)


@cache.memoize(timeout=300)
def _load_active_contractors():
    rows = Contractor.query.filter_by(active=True).order_by(Contractor.name.asc()).all()
    return [ContractorCard(id=row.id, name=row.name, email=row.email, phone=row.phone) for row in rows]


class ContractorService:
    @staticmethod
    def active_contractors():
        return _load_active_contractors()

    @staticmethod
    def get_active(contractor_id):
        try:
            contractor_id = int(contractor_id)
        except (TypeError, ValueError):
            return None
        contractor = db.session.get(Contractor, contractor_id)
        if not contractor or not contractor.active:
            return None
        return contractor

    @staticmethod
    def create_contractor(payload):
        name = (payload.get("name") or "").strip()
        email = (payload.get("email") or "").strip().lower()
        if not name or not EMAIL_RE.match(email):
            raise ValidationFailure("Contractor name and a valid email are required.")

        contractor = Contractor(name=name, email=email, phone=(payload.get("phone") or "").strip() or None)
        try:
            db.session.add(contractor)
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            raise AppError("A contractor with that email already exists.", 409) from exc
        cache.delete_memoized(_load_active_contractors)
        return contractor

    @staticmethod
    def set_active(contractor_id, active):
        contractor = db.session.get(Contractor, contractor_id)
        if not contractor:
            raise AppError("Contractor not found.", 404)
        contractor.active = bool(active)
        db.session.commit()
        cache.delete_memoized(_load_active_contractors)
        return contractor
