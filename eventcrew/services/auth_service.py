from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError

from eventcrew.errors import AppError
from eventcrew.extensions import bcrypt, db
from eventcrew.models import StaffUser
from eventcrew.schemas import EMAIL_RE

STAFF_ROLES = {"staff", "admin"}
MIN_PASSWORD_LENGTH = 8


class AuthService:
    @staticmethod
    def create_staff(full_name, email, password, role="staff"):
        if role not in STAFF_ROLES:
            raise AppError("Invalid role.", 400)

        normalized_email = (email or "").strip().lower()
        full_name = (full_name or "").strip()
        if not full_name or not EMAIL_RE.match(normalized_email):
            raise AppError("Name and a valid email are required.", 400)
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise AppError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.", 400)

        if StaffUser.query.filter_by(email=normalized_email).first():
            raise AppError("Email already registered.", 409)

        user = StaffUser(
            full_name=full_name,
            email=normalized_email,
            role=role,
            password_hash=bcrypt.generate_password_hash(password).decode("utf-8"),
        )
        try:
            db.session.add(user)
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            raise AppError("Email already registered.", 409) from exc
        return user

    @staticmethod
    def authenticate(email, password):
        user = StaffUser.query.filter_by(email=(email or "").strip().lower()).first()
        if not user:
            raise AppError("Invalid credentials.", 401)

        try:
            is_valid = bcrypt.check_password_hash(user.password_hash, password or "")
        except ValueError:
            is_valid = False

        if not is_valid:
            raise AppError("Invalid credentials.", 401)
        if not user.is_active_user:
            raise AppError("User account is inactive.", 403)
        user.last_login = datetime.now(timezone.utc)
        db.session.commit()
        return user
