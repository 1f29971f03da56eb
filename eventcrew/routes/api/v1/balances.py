from flask import Blueprint, jsonify, request

from eventcrew.services import SettlementService

api_balance_bp = Blueprint("api_balance", __name__)


@api_balance_bp.get("")
def balance_details():
    return jsonify(SettlementService.balance_details(request.args.get("token")))
