from flask import Blueprint, jsonify, request
from flask_login import login_required

from eventcrew.decorators import role_required
from eventcrew.services import AssignmentService

api_assignment_bp = Blueprint("api_assignment", __name__)


@api_assignment_bp.patch("/<int:assignment_id>")
@login_required
@role_required("staff", "admin")
def update_assignment(assignment_id):
    assignment = AssignmentService.update_assignment(assignment_id, request.get_json(silent=True))
    return jsonify(AssignmentService.serialize(assignment))
