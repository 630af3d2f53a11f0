import logging

from flask import Blueprint, request, jsonify
import stripe

from models import db
from scheduling import admission
from scheduling.errors import BookingError
from utils import payments
from utils.audit import log_event

logger = logging.getLogger(__name__)

webhook_bp = Blueprint("webhook", __name__, url_prefix="/webhooks")

CONFIRM_EVENTS = ("checkout.session.completed", "checkout.session.async_payment_succeeded")
RELEASE_EVENTS = ("checkout.session.expired", "checkout.session.async_payment_failed")


def _payment_intent_id(session: dict):
    pi = session.get("payment_intent")
    if isinstance(pi, dict):
        return pi.get("id")
    return pi


def _handle_session_event(event_type: str, session: dict):
    session_id = session.get("id")
    meta = session.get("metadata") or {}
    booking = admission.booking_for_session(session_id, meta.get("booking_id"))
    payment_intent_id = _payment_intent_id(session)

    if event_type in CONFIRM_EVENTS:
        if session.get("payment_status") != "paid":
            # async payment methods complete later with async_payment_succeeded
            logger.info("session %s completed unpaid, waiting for async payment", session_id)
            return {"booking_id": booking.id, "outcome": "awaiting_payment"}
        outcome = admission.confirm_booking(booking, payment_intent_id)
    else:
        reason = "checkout_expired" if event_type == "checkout.session.expired" else "payment_failed"
        attempted = event_type == "checkout.session.async_payment_failed" or bool(payment_intent_id)
        outcome = admission.release_hold(booking, reason, payment_attempted=attempted)

    return {"booking_id": booking.id, "outcome": outcome}


@webhook_bp.post("/stripe")
def stripe_webhook():
    sig_header = request.headers.get("Stripe-Signature")
    payload = request.get_data()

    if not sig_header:
        return jsonify(error="Missing Stripe-Signature header"), 400

    try:
        event = payments.verify_webhook(payload, sig_header)
    except payments.PaymentError as exc:
        logger.error("stripe webhook misconfigured: %s", exc)
        return jsonify(error="Webhook secret not configured"), 500
    except (stripe.SignatureVerificationError, ValueError):
        logger.warning("stripe webhook signature verification failed")
        return jsonify(error="Invalid webhook signature"), 400

    event_type = event.get("type")
    if event_type not in CONFIRM_EVENTS + RELEASE_EVENTS:
        return jsonify(received=True), 200

    session = (event.get("data") or {}).get("object") or {}
    try:
        result = _handle_session_event(event_type, session)
    except BookingError as exc:
        # acknowledge anyway so Stripe doesn't retry forever
        logger.warning("stripe %s for session %s not applied: %s", event_type, session.get("id"), exc.message)
        return jsonify(received=True, warning=exc.message), 200
    except Exception:
        db.session.rollback()
        logger.exception("stripe webhook handler error event=%s", event.get("id"))
        return jsonify(received=True, warning="non-fatal"), 200

    log_event("STRIPE_WEBHOOK", entity="booking", entity_id=result["booking_id"],
              metadata={"event_type": event_type, "event_id": event.get("id"), "outcome": result["outcome"]})
    return jsonify(received=True, **result), 200
