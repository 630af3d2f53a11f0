import logging

from flask import current_app

from models import db
from utils import google_calendar
from utils.timeutil import utcnow

logger = logging.getLogger(__name__)

MAX_EVENT_IMAGES = 3


def event_description(booking) -> str:
    service = booking.service
    lines = [
        f"Service: {service.title} ({service.slug})",
        f"Artist: {booking.artist.name}",
        f"Booking ID: {booking.id}",
        "",
        "Customer",
        f"- Name: {booking.customer_name or '-'}",
        f"- Email: {booking.customer_email or '-'}",
    ]
    if booking.customer_phone:
        lines.append(f"- Phone: {booking.customer_phone}")
    if booking.placement:
        lines.append(f"- Placement: {booking.placement}")
    lines += ["", "Brief", booking.design_brief or "-"]

    images = list(booking.reference_image_urls or [])[:MAX_EVENT_IMAGES]
    if images:
        lines += ["", "Images"] + [f"- {url}" for url in images]

    lines += ["", booking.calendar_marker]
    return "\n".join(lines)


def sync_booking_to_calendar(booking) -> bool:
    """
    Create or update the artist's calendar event for a CONFIRMED booking.
    Returns True when the event is in place. Never raises: the booking row
    is authoritative and an unsynced booking is retried by `flask sync-calendar`.
    """
    artist = booking.artist
    try:
        client = google_calendar.calendar_for_artist(artist)
        if client is None:
            logger.info("artist %s has no calendar link; skipping sync for booking %s", artist.id, booking.id)
            return False

        attendees = None
        if booking.customer_email:
            attendees = [{"email": booking.customer_email, "displayName": booking.customer_name or None}]

        with client:
            event_id = client.upsert_event(
                marker=booking.calendar_marker,
                start=booking.start_at,
                end=booking.end_at,
                summary=f"{booking.service.title} - {booking.customer_name or booking.customer_email or 'Client'}",
                description=event_description(booking),
                location=current_app.config.get("STUDIO_LOCATION"),
                attendees=attendees,
                existing_event_id=booking.external_event_id,
            )
    except Exception:
        logger.exception("calendar sync failed for booking %s", booking.id)
        return False

    booking.external_event_id = event_id
    booking.calendar_synced_at = utcnow()
    db.session.commit()
    return True
