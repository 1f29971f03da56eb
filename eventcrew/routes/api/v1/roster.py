from flask import Blueprint, jsonify, request

from eventcrew.extensions import limiter
from eventcrew.services import AssignmentService

api_roster_bp = Blueprint("api_roster", __name__)


@api_roster_bp.get("")
def roster_view():
    return jsonify(AssignmentService.roster_view(request.args.get("token")))


@api_roster_bp.post("")
@limiter.limit("20 per minute")
def save_roster():
    payload = request.get_json(silent=True) or {}
    rows = AssignmentService.save_roster(payload.get("token"), payload.get("booking_id"), payload.get("assignments"))
    return jsonify({"success": True, "assignments": [AssignmentService.serialize(row) for row in rows]})


@api_roster_bp.post("/notify")
@limiter.limit("20 per minute")
def notify_roster():
    payload = request.get_json(silent=True) or {}
    rows = AssignmentService.notify_roster(payload.get("token"), payload.get("booking_id"))
    return jsonify({"success": True, "notified": len(rows)})
