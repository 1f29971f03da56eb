from flask import Blueprint, current_app, redirect, render_template, request, url_for

from eventcrew.decorators import link_handler
from eventcrew.extensions import limiter
from eventcrew.services import AssignmentService, BookingService, PaymentService, SettlementService

web_links_bp = Blueprint("web_links", __name__)

RESULT_MESSAGES = {
    "invalid_token": "This link is invalid or has expired.",
    "invalid_params": "This link is missing some information.",
    "already_approved": "This quote has already been approved.",
    "already_processed": "This quote has already been processed.",
    "already_responded": "You have already responded to this job.",
    "already_taken": "Sorry, this job has already been taken by another contractor.",
    "already_yours": "You have already accepted this job.",
    "already_paid": "This payment has already been recorded.",
    "already_accepted": "A contractor who has accepted cannot be removed from the roster.",
    "no_pending_assignments": "There are no new contractors to notify.",
    "no_payment_required": "No deposit is payable on this quote.",
    "no_balance_due": "There is no balance owing on this booking.",
    "invalid_state": "This booking can no longer be updated from this link.",
    "payment_cancelled": "The payment was cancelled.",
    "payment_failure": "The payment failed. Please try again.",
    "payment_incomplete": "The payment has not completed yet.",
    "no_transaction": "No payment was found for this quote.",
    "server_error": "Something went wrong. Please try again or contact us.",
}

SUCCESS_MESSAGES = {
    "client-approve": "Thank you! Your quote has been approved.",
    "approve-quote": "Thank you! Your quote has been approved.",
    "contractor-accept": "Thanks, you're confirmed for this job.",
    "contractor-decline": "Thanks for letting us know.",
    "accept-job": "You've got the job. A confirmation is on its way.",
    "payment": "Payment received. Your quote has been approved.",
    "collect-balance": "The balance invoice has been sent to the client.",
    "balance-paid": "Thank you, your balance payment has been recorded.",
    "contractor-paid": "The contractor payment has been confirmed.",
}


def _link_limit():
    return current_app.config["LINK_RATE_LIMIT"]


def _success(page):
    return redirect(url_for("web_links.result", type=page, success=1))


@web_links_bp.get("/client-approve")
@limiter.limit(_link_limit)
@link_handler("client-approve")
def client_approve():
    BookingService.approve_by_client(request.args.get("token"))
    return _success("client-approve")


@web_links_bp.get("/approve-quote")
@limiter.limit(_link_limit)
@link_handler("approve-quote")
def approve_quote():
    BookingService.approve_quote(request.args.get("token"))
    return _success("approve-quote")


@web_links_bp.get("/contractor-respond")
@limiter.limit(_link_limit)
@link_handler("contractor-respond")
def contractor_respond():
    assignment = AssignmentService.respond(request.args.get("token"), request.args.get("action"))
    page = "contractor-accept" if assignment.status == "accepted" else "contractor-decline"
    return _success(page)


@web_links_bp.get("/accept-job")
@limiter.limit(_link_limit)
@link_handler("accept-job")
def accept_job():
    AssignmentService.accept_direct(request.args.get("token"), request.args.get("contractor"))
    return _success("accept-job")


@web_links_bp.get("/payment-callback")
@limiter.limit(_link_limit)
@link_handler("payment")
def payment_callback():
    PaymentService.handle_callback(
        request.args.get("token"),
        status=request.args.get("status"),
        transaction_token=request.args.get("Token"),
    )
    return _success("payment")


@web_links_bp.get("/pay-deposit")
@limiter.limit(_link_limit)
@link_handler("payment")
def pay_deposit():
    started = PaymentService.initiate(request.args.get("token"))
    return redirect(started.navigate_url)


ROSTER_FORM_FIELDS = ("hourly_rate", "estimated_hours", "pay_amount", "tasks_description")


def _roster_form_entry(form, contractor_id):
    entry = {"contractor_id": contractor_id}
    for field in ROSTER_FORM_FIELDS:
        value = (form.get(f"{field}_{contractor_id}") or "").strip()
        if value:
            entry[field] = value
    return entry


@web_links_bp.route("/select-contractors", methods=["GET", "POST"])
@limiter.limit(_link_limit)
@link_handler("select-contractors")
def select_contractors():
    token = request.values.get("token")
    if request.method == "POST":
        booking_id = request.form.get("booking_id")
        payload = [_roster_form_entry(request.form, cid) for cid in request.form.getlist("contractor_id")]
        AssignmentService.save_roster(token, booking_id, payload)
        notified = 0
        if request.form.get("notify"):
            notified = len(AssignmentService.notify_roster(token, booking_id))
        return redirect(url_for("web_links.select_contractors", token=token, saved=1, notified=notified))

    view = AssignmentService.roster_view(token)
    selected = {row["contractor_id"]: row for row in view["assignments"]}
    return render_template(
        "select_contractors.html",
        token=token,
        view=view,
        selected=selected,
        saved=request.args.get("saved") == "1",
        notified=request.args.get("notified", type=int) or 0,
    )


@web_links_bp.get("/collect-balance")
@limiter.limit(_link_limit)
@link_handler("collect-balance")
def collect_balance():
    SettlementService.send_balance_invoice(request.args.get("token"))
    return _success("collect-balance")


@web_links_bp.get("/pay-balance")
@limiter.limit(_link_limit)
@link_handler("balance-paid")
def pay_balance():
    details = SettlementService.balance_details(request.args.get("token"))
    return render_template("pay_balance.html", token=request.args.get("token"), details=details)


@web_links_bp.get("/confirm-balance-payment")
@limiter.limit(_link_limit)
@link_handler("balance-paid")
def confirm_balance_payment():
    SettlementService.confirm_balance_payment(request.args.get("token"), request.args.get("reference"))
    return _success("balance-paid")


@web_links_bp.get("/confirm-contractor-payment")
@limiter.limit(_link_limit)
@link_handler("contractor-paid")
def confirm_contractor_payment():
    SettlementService.confirm_contractor_payment(request.args.get("token"), request.args.get("reference"))
    return _success("contractor-paid")


@web_links_bp.get("/result")
def result():
    page = request.args.get("type", "")
    error = request.args.get("error")
    if error:
        message = RESULT_MESSAGES.get(error, RESULT_MESSAGES["server_error"])
    else:
        message = SUCCESS_MESSAGES.get(page, "Done.")
    return render_template("result.html", page=page, error=error, message=message), 200
