from flask import Blueprint

from eventcrew.extensions import csrf
from eventcrew.routes.api.v1.approvals import api_approval_bp
from eventcrew.routes.api.v1.assignments import api_assignment_bp
from eventcrew.routes.api.v1.auth import api_auth_bp
from eventcrew.routes.api.v1.balances import api_balance_bp
from eventcrew.routes.api.v1.bookings import api_booking_bp
from eventcrew.routes.api.v1.contractors import api_contractor_bp
from eventcrew.routes.api.v1.payments import api_payment_bp
from eventcrew.routes.api.v1.roster import api_roster_bp

api_v1_bp = Blueprint("api_v1", __name__)
api_v1_bp.register_blueprint(api_auth_bp, url_prefix="/auth")
api_v1_bp.register_blueprint(api_booking_bp, url_prefix="/bookings")
api_v1_bp.register_blueprint(api_approval_bp, url_prefix="/approvals")
api_v1_bp.register_blueprint(api_roster_bp, url_prefix="/roster")
api_v1_bp.register_blueprint(api_assignment_bp, url_prefix="/assignments")
api_v1_bp.register_blueprint(api_contractor_bp, url_prefix="/contractors")
api_v1_bp.register_blueprint(api_payment_bp, url_prefix="/payments")
api_v1_bp.register_blueprint(api_balance_bp, url_prefix="/balances")

csrf.exempt(api_v1_bp)
