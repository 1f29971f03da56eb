from flask import Blueprint, jsonify, request
from flask_login import login_required, login_user, logout_user

from eventcrew.services import AuthService

api_auth_bp = Blueprint("api_auth", __name__)


@api_auth_bp.post("/login")
def api_login():
    payload = request.get_json(silent=True) or {}
    user = AuthService.authenticate(payload.get("email", ""), payload.get("password", ""))
    login_user(user)
    return jsonify({"id": user.id, "email": user.email, "role": user.role})


@api_auth_bp.post("/logout")
@login_required
def api_logout():
    logout_user()
    return jsonify({"ok": True})
