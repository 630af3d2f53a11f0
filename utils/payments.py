import json
import logging
from urllib.parse import urlencode

import stripe
from flask import current_app

logger = logging.getLogger(__name__)


class PaymentError(Exception):
    pass


def _configure():
    stripe.api_key = current_app.config.get("STRIPE_SECRET_KEY")
    if not stripe.api_key:
        raise PaymentError("Stripe secret key missing (STRIPE_SECRET_KEY)")


def _field(obj, key):
    if obj is None:
        return None
    try:
        return obj[key]
    except (KeyError, TypeError):
        return None


def _site_url(path: str, params: dict) -> str:
    base = (current_app.config.get("SITE_URL") or "").rstrip("/")
    return f"{base}{path}?{urlencode(params)}"


def create_checkout_session(booking, artist_name: str, service_title: str, when_label: str) -> dict:
    """Open a Stripe Checkout session for a PENDING booking. Returns {"id", "url"}."""
    _configure()
    try:
        session = stripe.checkout.Session.create(
            mode="payment",
            line_items=[{
                "price_data": {
                    "currency": booking.currency,
                    "product_data": {
                        "name": service_title,
                        "description": f"Artist: {artist_name} - {when_label}",
                    },
                    "unit_amount": booking.amount_due,
                },
                "quantity": 1,
            }],
            customer_email=booking.customer_email,
            client_reference_id=str(booking.id),
            # session_id is substituted by Stripe on redirect
            success_url=_site_url("/booking/success", {"bookingId": booking.id}) + "&session_id={CHECKOUT_SESSION_ID}",
            cancel_url=_site_url("/booking/cancelled", {"bookingId": booking.id}),
            metadata={
                "booking_id": str(booking.id),
                "artist_id": str(booking.artist_id),
                "service_id": str(booking.service_id),
            },
            payment_intent_data={
                "metadata": {"booking_id": str(booking.id)},
            },
        )
    except stripe.StripeError as exc:
        logger.error("stripe checkout create failed booking=%s: %s", booking.id, exc)
        raise PaymentError(str(exc)) from exc

    return {"id": _field(session, "id"), "url": _field(session, "url")}


def retrieve_session(session_id: str) -> dict:
    """Checkout session summary: id, payment_status, payment_intent id, booking_id."""
    _configure()
    try:
        session = stripe.checkout.Session.retrieve(session_id)
    except stripe.StripeError as exc:
        logger.error("stripe session retrieve failed session=%s: %s", session_id, exc)
        raise PaymentError(str(exc)) from exc

    metadata = _field(session, "metadata")
    payment_intent = _field(session, "payment_intent")
    if payment_intent is not None and not isinstance(payment_intent, str):
        payment_intent = _field(payment_intent, "id")
    return {
        "id": _field(session, "id"),
        "payment_status": _field(session, "payment_status"),
        "payment_intent": payment_intent,
        "booking_id": _field(metadata, "booking_id"),
    }


def verify_webhook(payload: bytes, sig_header: str) -> dict:
    """Check the Stripe-Signature header and return the event as plain dicts."""
    secret = current_app.config.get("STRIPE_WEBHOOK_SECRET")
    if not secret:
        raise PaymentError("Webhook secret not configured")
    text = payload.decode("utf-8")
    stripe.WebhookSignature.verify_header(text, sig_header, secret)
    return json.loads(text)


def refund(payment_intent_id: str) -> str:
    _configure()
    try:
        result = stripe.Refund.create(payment_intent=payment_intent_id)
    except stripe.StripeError as exc:
        logger.error("stripe refund failed payment_intent=%s: %s", payment_intent_id, exc)
        raise PaymentError(str(exc)) from exc
    return _field(result, "id")


def expire_session(session_id: str):
    """Close an open checkout session so it can no longer be paid."""
    _configure()
    try:
        stripe.checkout.Session.expire(session_id)
    except stripe.StripeError as exc:
        logger.error("stripe session expire failed session=%s: %s", session_id, exc)
        raise PaymentError(str(exc)) from exc
