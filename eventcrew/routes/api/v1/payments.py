from flask import Blueprint, jsonify, request

from eventcrew.services import PaymentService

api_payment_bp = Blueprint("api_payment", __name__)


@api_payment_bp.post("/initiate")
def initiate_payment():
    payload = request.get_json(silent=True) or {}
    started = PaymentService.initiate(payload.get("token"))
    return jsonify({"navigate_url": started.navigate_url, "transaction_token": started.transaction_token})


@api_payment_bp.post("/webhook")
def payment_webhook():
    # POLi nudges are form encoded; JSON is accepted for replays.
    payload = request.get_json(silent=True) or {}
    PaymentService.handle_webhook(request.form.get("Token") or payload.get("Token"))
    return jsonify({"received": True})
