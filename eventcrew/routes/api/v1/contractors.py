from flask import Blueprint, jsonify, request
from flask_login import login_required

from eventcrew.decorators import role_required
from eventcrew.services import ContractorService

api_contractor_bp = Blueprint("api_contractor", __name__)


@api_contractor_bp.get("")
@login_required
@role_required("staff", "admin")
def list_contractors():
    return jsonify([card.to_dict() for card in ContractorService.active_contractors()])


@api_contractor_bp.post("")
@login_required
@role_required("staff", "admin")
def create_contractor():
    contractor = ContractorService.create_contractor(request.get_json(silent=True) or {})
    return jsonify({"id": contractor.id, "name": contractor.name, "email": contractor.email}), 201


@api_contractor_bp.patch("/<int:contractor_id>")
@login_required
@role_required("admin")
def set_contractor_active(contractor_id):
    payload = request.get_json(silent=True) or {}
    contractor = ContractorService.set_active(contractor_id, payload.get("active", True))
    return jsonify({"id": contractor.id, "active": contractor.active})
