from flask import Blueprint, jsonify, request

from scheduling import admission
from scheduling.errors import BookingConflictError, NotFoundError, PaymentProviderError, ValidationError
from utils import payments
from utils.timeutil import to_iso

booking_bp = Blueprint("booking", __name__, url_prefix="/bookings")

# ---------- PUBLIC: start checkout (creates a PENDING hold) ----------
@booking_bp.post("/checkout")
def checkout():
    data = request.get_json(silent=True) or {}
    booking, url = admission.create_hold(data)
    return jsonify(
        bookingId=booking.id,
        status=booking.status,
        start=to_iso(booking.start_at),
        end=to_iso(booking.end_at),
        amountDue=booking.amount_due,
        currency=booking.currency,
        url=url,
    ), 201


# ---------- PUBLIC: success redirect lands here ----------
@booking_bp.post("/confirm")
def confirm():
    data = request.get_json(silent=True) or {}
    session_id = (data.get("session_id") or "").strip()
    if not session_id:
        raise ValidationError("session_id required")

    booking, outcome = admission.confirm_from_session(session_id)
    if outcome == admission.CONFLICT:
        raise BookingConflictError("Time was taken by another confirmed booking", booking_id=booking.id)

    return jsonify(
        bookingId=booking.id,
        status=outcome,
        externalEventId=booking.external_event_id,
    ), 200


# ---------- PUBLIC: cancel redirect, give the hold back ----------
@booking_bp.post("/release")
def release():
    data = request.get_json(silent=True) or {}
    session_id = (data.get("session_id") or "").strip()
    booking_id = data.get("bookingId")
    email = (data.get("customerEmail") or "").strip().lower()

    if session_id:
        # the checkout session id is only known to whoever was redirected from Stripe
        booking = admission.booking_for_session(session_id)
    elif booking_id and email:
        booking = admission.booking_for_session(None, booking_id)
        if booking.customer_email.lower() != email:
            raise NotFoundError("Booking not found", booking_id=booking_id)
    else:
        raise ValidationError("session_id, or bookingId and customerEmail, required")

    if booking.status == "PENDING" and booking.stripe_session_id:
        try:
            payments.expire_session(booking.stripe_session_id)
        except payments.PaymentError as exc:
            # the session may already be paid; let the webhook decide
            raise PaymentProviderError("Could not close the payment session") from exc

    booking_id = booking.id
    outcome = admission.release_hold(booking, "checkout_cancelled", payment_attempted=False)
    return jsonify(bookingId=booking_id, outcome=outcome), 200
