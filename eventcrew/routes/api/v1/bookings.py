from flask import Blueprint, jsonify, request
from flask_login import login_required

from eventcrew.decorators import role_required
from eventcrew.services import BookingService

api_booking_bp = Blueprint("api_booking", __name__)


@api_booking_bp.post("")
@login_required
@role_required("staff", "admin")
def create_booking():
    booking = BookingService.create_booking(request.get_json(silent=True) or {})
    return (
        jsonify(
            {
                "id": booking.id,
                "quote_number": booking.quote_number,
                "status": booking.status,
                "approval_token": booking.approval_token,
            }
        ),
        201,
    )


@api_booking_bp.get("/<int:booking_id>")
@login_required
@role_required("staff", "admin")
def get_booking(booking_id):
    return jsonify(BookingService.serialize(BookingService.get_booking(booking_id)))


@api_booking_bp.post("/<int:booking_id>/send-to-client")
@login_required
@role_required("staff", "admin")
def send_to_client(booking_id):
    payload = request.get_json(silent=True) or {}
    result = BookingService.send_to_client(
        booking_id,
        notes=payload.get("notes"),
        deposit_percent=payload.get("deposit_percent"),
        adjusted_amount=payload.get("adjusted_amount"),
        purchase_order=payload.get("purchase_order"),
    )
    deposit = result.approval.deposit_amount
    return jsonify(
        {
            "id": result.booking.id,
            "status": result.booking.status,
            "invoice_number": result.booking.invoice_number,
            "amount": str(result.amount.amount),
            "amount_source": result.amount.source,
            "deposit_amount": str(deposit) if deposit is not None else None,
            "resend_count": result.approval.resend_count,
            "is_resend": result.is_resend,
            "auto_approved": result.auto_approved,
        }
    )
