from flask import Blueprint, jsonify, request

from eventcrew.services import BookingService

api_approval_bp = Blueprint("api_approval", __name__)


@api_approval_bp.get("")
def approval_summary():
    return jsonify(BookingService.approval_summary(request.args.get("token")))
