"""Booking admission: PENDING holds, payment confirmation, release and cancellation."""
import logging
from datetime import timedelta, timezone

from flask import current_app
from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError

from models import db
from models.booking import Booking
from scheduling import catalog
from scheduling.availability import business_tz
from scheduling.calendar_sync import sync_booking_to_calendar
from scheduling.errors import (
    InvalidStateError,
    NotFoundError,
    PaymentProviderError,
    PaymentRequiredError,
    SlotTakenError,
    ValidationError,
)
from utils import payments
from utils.audit import log_event
from utils.timeutil import parse_iso, utcnow

logger = logging.getLogger(__name__)

CONFIRMED = "confirmed"
ALREADY_CONFIRMED = "already_confirmed"
CONFLICT = "conflict"

MAX_REFERENCE_IMAGES = 10


def find_conflict(artist_id, start, end, now, exclude_id=None, include_holds=True):
    # CONFIRMED rows always block; PENDING ones only while younger than HOLD_MINUTES
    blocking = Booking.status == "CONFIRMED"
    if include_holds:
        hold_cutoff = now - timedelta(minutes=current_app.config.get("HOLD_MINUTES", 20))
        blocking = or_(blocking, and_(Booking.status == "PENDING", Booking.created_at >= hold_cutoff))

    q = Booking.query.filter(
        Booking.artist_id == artist_id,
        Booking.start_at < end,
        Booking.end_at > start,
        blocking,
    )
    if exclude_id is not None:
        q = q.filter(Booking.id != exclude_id)
    return q.order_by(Booking.start_at.asc()).first()


def _clean(value, limit=None):
    text = (value or "").strip() if isinstance(value, str) else ""
    if limit:
        text = text[:limit]
    return text or None


def _reference_images(value):
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(u, str) for u in value):
        raise ValidationError("referenceImageUrls must be a list of URLs")
    urls = [u.strip() for u in value if u.strip()]
    if len(urls) > MAX_REFERENCE_IMAGES:
        raise ValidationError(f"At most {MAX_REFERENCE_IMAGES} reference images")
    return urls


def create_hold(data, now=None):
    """Returns (booking, checkout_url)."""
    now = now or utcnow()
    artist_id = data.get("artistId")
    service_id = data.get("serviceId")
    start_iso = data.get("startISO")
    customer_email = _clean(data.get("customerEmail"), 255)

    if not artist_id or not service_id or not start_iso or not customer_email:
        raise ValidationError("artistId, serviceId, startISO, customerEmail are required")
    try:
        artist_id, service_id = int(artist_id), int(service_id)
    except (TypeError, ValueError):
        raise ValidationError("Invalid artistId or serviceId") from None
    if "@" not in customer_email:
        raise ValidationError("Invalid customerEmail")
    if not isinstance(start_iso, str):
        raise ValidationError("Invalid startISO")
    try:
        start = parse_iso(start_iso, business_tz())
    except ValueError:
        raise ValidationError("Invalid startISO") from None
    if start <= now:
        raise ValidationError("Cannot book past/started slots")
    images = _reference_images(data.get("referenceImageUrls"))

    artist = catalog.get_artist(artist_id)
    link = catalog.get_offered_link(artist.id, service_id)
    quote = catalog.quote(link, current_app.config.get("MIN_CHARGE_MINOR_UNITS", 50))
    service = link.service
    end = start + timedelta(minutes=service.duration_min)

    clash = find_conflict(artist.id, start, end, now)
    if clash:
        log_event("BOOKING_SLOT_TAKEN", entity="artist", entity_id=artist.id,
                  metadata={"start": start, "end": end, "conflict_id": clash.id})
        raise SlotTakenError("Time slot just taken. Pick another slot.")

    booking = Booking(
        artist_id=artist.id,
        service_id=service.id,
        start_at=start,
        end_at=end,
        status="PENDING",
        price=quote["price"],
        amount_due=quote["amount_due"],
        currency=current_app.config.get("CURRENCY", "gbp"),
        customer_email=customer_email,
        customer_name=_clean(data.get("customerName"), 120),
        customer_phone=_clean(data.get("customerPhone"), 30),
        placement=_clean(data.get("placement"), 160),
        design_brief=_clean(data.get("brief")),
        reference_image_urls=images,
        created_at=now,
    )
    db.session.add(booking)
    db.session.commit()

    when_label = start.replace(tzinfo=timezone.utc).astimezone(business_tz()).strftime("%d %b %Y %H:%M")
    try:
        session = payments.create_checkout_session(booking, artist.name, service.title, when_label)
    except payments.PaymentError as exc:
        # no payment was ever attempted, so the hold can simply go
        db.session.delete(booking)
        db.session.commit()
        raise PaymentProviderError("Payment provider unavailable") from exc

    booking.stripe_session_id = session["id"]
    db.session.commit()

    log_event("BOOKING_HOLD_CREATE", entity="booking", entity_id=booking.id,
              metadata={"stripe_session_id": session["id"], "start": start, "amount_due": booking.amount_due})
    return booking, session["url"]


def _cancel(booking, reason, now):
    booking.status = "CANCELLED"
    booking.cancelled_at = now
    booking.cancel_reason = reason


def confirm_booking(booking, payment_intent_id=None, now=None):
    """Idempotent: returns CONFIRMED, ALREADY_CONFIRMED or CONFLICT."""
    now = now or utcnow()
    if booking.status == "CONFIRMED":
        return ALREADY_CONFIRMED
    if booking.status == "CANCELLED" and booking.cancel_reason == "lost_conflict":
        # the other confirmation path already resolved this race
        return CONFLICT
    if booking.status == "CANCELLED" and booking.cancel_reason == "hold_expired" and payment_intent_id:
        booking.stripe_payment_intent_id = payment_intent_id
        db.session.commit()
        logger.warning("booking %s paid after its hold was swept; payment needs a refund", booking.id)
        log_event("BOOKING_PAID_AFTER_CANCEL", entity="booking", entity_id=booking.id,
                  metadata={"payment_intent": payment_intent_id})
    if booking.status != "PENDING":
        raise InvalidStateError(f"Booking is {booking.status} and cannot be confirmed", booking_id=booking.id)

    rival = find_conflict(booking.artist_id, booking.start_at, booking.end_at, now,
                          exclude_id=booking.id, include_holds=False)
    if rival:
        _cancel(booking, "lost_conflict", now)
        if payment_intent_id:
            booking.stripe_payment_intent_id = payment_intent_id
        db.session.commit()
        logger.warning("booking %s lost to confirmed booking %s; payment needs a refund", booking.id, rival.id)
        log_event("BOOKING_CONFLICT_CANCEL", entity="booking", entity_id=booking.id,
                  metadata={"conflict_id": rival.id, "payment_intent": payment_intent_id})
        return CONFLICT

    values = {"status": "CONFIRMED", "confirmed_at": now}
    if payment_intent_id:
        values["stripe_payment_intent_id"] = payment_intent_id
    try:
        # only one of two racing confirmations (redirect + webhook) moves the row
        updated = (
            Booking.query
            .filter(Booking.id == booking.id, Booking.status == "PENDING")
            .update(values, synchronize_session=False)
        )
        db.session.commit()
    except IntegrityError:
        # storage-level exclusion constraint caught a race the re-query missed
        db.session.rollback()
        db.session.refresh(booking)
        _cancel(booking, "lost_conflict", now)
        db.session.commit()
        log_event("BOOKING_CONFLICT_CANCEL", entity="booking", entity_id=booking.id,
                  metadata={"constraint": True, "payment_intent": payment_intent_id})
        return CONFLICT

    db.session.refresh(booking)
    if not updated:
        if booking.status == "CONFIRMED":
            return ALREADY_CONFIRMED
        raise InvalidStateError(f"Booking is {booking.status} and cannot be confirmed", booking_id=booking.id)

    log_event("BOOKING_CONFIRM", entity="booking", entity_id=booking.id,
              metadata={"payment_intent": payment_intent_id})
    sync_booking_to_calendar(booking)
    return CONFIRMED


def booking_for_session(session_id, booking_id=None):
    booking = None
    if booking_id:
        try:
            booking = db.session.get(Booking, int(booking_id))
        except (TypeError, ValueError):
            raise ValidationError("Invalid bookingId") from None
    if booking is None and session_id:
        booking = Booking.query.filter_by(stripe_session_id=session_id).first()
    if booking is None:
        raise NotFoundError("Booking not found", booking_id=booking_id, session_id=session_id)
    return booking


def confirm_from_session(session_id, now=None):
    try:
        session = payments.retrieve_session(session_id)
    except payments.PaymentError as exc:
        raise PaymentProviderError("Could not verify payment") from exc
    if session["payment_status"] != "paid":
        raise PaymentRequiredError("Payment not completed")

    booking = booking_for_session(session_id, session.get("booking_id"))
    return booking, confirm_booking(booking, session.get("payment_intent"), now=now)


def release_hold(booking, reason, payment_attempted, now=None):
    # "deleted" when no payment was attempted, "cancelled" otherwise, "ignored" unless PENDING
    now = now or utcnow()
    if booking.status != "PENDING":
        return "ignored"

    booking_id = booking.id
    if payment_attempted or booking.stripe_payment_intent_id:
        _cancel(booking, reason, now)
        outcome = "cancelled"
    else:
        db.session.delete(booking)
        outcome = "deleted"
    db.session.commit()

    log_event("BOOKING_HOLD_RELEASE", entity="booking", entity_id=booking_id,
              metadata={"reason": reason, "outcome": outcome})
    return outcome


def cancel_booking(booking, reason, now=None):
    if booking.status not in ("PENDING", "CONFIRMED"):
        raise InvalidStateError("Booking not cancellable", booking_id=booking.id, status=booking.status)
    _cancel(booking, reason, now or utcnow())
    db.session.commit()
    log_event("ADMIN_BOOKING_CANCEL", entity="booking", entity_id=booking.id, metadata={"reason": reason})
    return booking


def refund_booking(booking, now=None):
    if booking.status not in ("CONFIRMED", "CANCELLED"):
        raise InvalidStateError("Booking not refundable", booking_id=booking.id, status=booking.status)
    if not booking.stripe_payment_intent_id:
        raise InvalidStateError("Booking has no payment to refund", booking_id=booking.id)

    try:
        refund_id = payments.refund(booking.stripe_payment_intent_id)
    except payments.PaymentError as exc:
        raise PaymentProviderError("Refund failed") from exc

    if booking.status == "CONFIRMED":
        booking.cancelled_at = now or utcnow()
        booking.cancel_reason = booking.cancel_reason or "refunded"
    booking.status = "REFUNDED"
    db.session.commit()
    log_event("ADMIN_BOOKING_REFUND", entity="booking", entity_id=booking.id, metadata={"refund_id": refund_id})
    return booking


def sweep_stale_holds(now=None):
    now = now or utcnow()
    cutoff = now - timedelta(minutes=current_app.config.get("STALE_HOLD_MINUTES", 1440))
    # a row with a payment intent is mid-payment and is left for the webhook
    stale = (
        Booking.query
        .filter(
            Booking.status == "PENDING",
            Booking.created_at < cutoff,
            Booking.stripe_payment_intent_id.is_(None),
        )
        .all()
    )
    for booking in stale:
        _cancel(booking, "hold_expired", now)
    db.session.commit()
    if stale:
        log_event("BOOKING_HOLD_SWEEP", entity="booking", metadata={"count": len(stale), "cutoff": cutoff})
    return len(stale)
