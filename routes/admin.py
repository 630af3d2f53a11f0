import json
from datetime import date, datetime, timedelta

from flask import Blueprint, jsonify, request
from sqlalchemy.exc import IntegrityError

from models import db
from models.audit_log import AuditLog
from models.availability import OVERRIDE_TYPES, AvailabilityOverride, AvailabilityTemplate
from models.booking import BOOKING_STATUSES, Booking
from models.service import Service, ServiceOnArtist
from scheduling import admission, catalog
from scheduling.availability import business_tz, compute_availability, serialize_availability
from scheduling.errors import NotFoundError, ValidationError
from security.admin import require_admin
from utils.audit import log_event
from utils.crypto import encrypt_credentials
from utils.timeutil import MINUTES_PER_DAY, minute_to_utc, to_iso

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


def _parse_day(value, field="date") -> date:
    try:
        return date.fromisoformat(value or "")
    except ValueError:
        raise ValidationError(f"Invalid {field}. Use YYYY-MM-DD") from None


def _local_day_bounds(day: date):
    tz = business_tz()
    return minute_to_utc(day, 0, tz), minute_to_utc(day + timedelta(days=1), 0, tz)


def _minutes(data: dict, key: str, required: bool = True):
    """Accepts startMin/endMin (int) or start/end ("HH:MM")."""
    raw_min = data.get(f"{key}Min")
    raw_hm = data.get(key)
    if raw_min is None and raw_hm is None:
        if required:
            raise ValidationError(f"{key}Min or {key} required")
        return None
    if raw_min is not None:
        if isinstance(raw_min, bool) or not isinstance(raw_min, int):
            raise ValidationError(f"{key}Min must be an integer")
        value = raw_min
    else:
        try:
            value = datetime.strptime(str(raw_hm), "%H:%M")
        except ValueError:
            raise ValidationError(f"Invalid {key}. Use HH:MM") from None
        value = value.hour * 60 + value.minute
        if key == "end" and value == 0:
            value = MINUTES_PER_DAY
    if not 0 <= value <= MINUTES_PER_DAY:
        raise ValidationError(f"{key} must be within the day")
    return value


def _serialize_template(t):
    return {"id": t.id, "weekday": t.weekday, "startMin": t.start_min, "endMin": t.end_min}


def _serialize_override(o):
    return {
        "id": o.id,
        "date": o.date.isoformat(),
        "type": o.type,
        "startMin": o.start_min,
        "endMin": o.end_min,
        "note": o.note,
    }


def _serialize_booking(b):
    return {
        "id": b.id,
        "artist_id": b.artist_id,
        "service_id": b.service_id,
        "start": to_iso(b.start_at),
        "end": to_iso(b.end_at),
        "status": b.status,
        "price": b.price,
        "amount_due": b.amount_due,
        "currency": b.currency,
        "customer": {"name": b.customer_name, "email": b.customer_email, "phone": b.customer_phone},
        "brief": {
            "placement": b.placement,
            "description": b.design_brief,
            "reference_image_urls": b.reference_image_urls or [],
        },
        "external_event_id": b.external_event_id,
        "calendar_synced_at": b.calendar_synced_at.isoformat() if b.calendar_synced_at else None,
        "created_at": b.created_at.isoformat(),
        "confirmed_at": b.confirmed_at.isoformat() if b.confirmed_at else None,
        "cancelled_at": b.cancelled_at.isoformat() if b.cancelled_at else None,
        "cancel_reason": b.cancel_reason,
    }


# ---------- weekly opening-hours templates ----------
@admin_bp.get("/artists/<int:artist_id>/templates")
@require_admin
def list_templates(artist_id: int):
    catalog.get_artist(artist_id)
    rows = (
        AvailabilityTemplate.query
        .filter_by(artist_id=artist_id)
        .order_by(AvailabilityTemplate.weekday.asc(), AvailabilityTemplate.start_min.asc())
        .all()
    )
    return jsonify([_serialize_template(t) for t in rows]), 200


@admin_bp.post("/artists/<int:artist_id>/templates")
@require_admin
def create_template(artist_id: int):
    catalog.get_artist(artist_id)
    data = request.get_json(silent=True) or {}
    weekday = data.get("weekday")
    if isinstance(weekday, bool) or not isinstance(weekday, int) or not 0 <= weekday <= 6:
        raise ValidationError("weekday must be 0 (Sun) .. 6 (Sat)")
    start_min = _minutes(data, "start")
    end_min = _minutes(data, "end")
    if end_min <= start_min:
        raise ValidationError("end must be after start")

    t = AvailabilityTemplate(artist_id=artist_id, weekday=weekday, start_min=start_min, end_min=end_min)
    db.session.add(t)
    db.session.commit()

    log_event("TEMPLATE_CREATE", entity="artist", entity_id=artist_id, metadata=_serialize_template(t))
    return jsonify(_serialize_template(t)), 201


@admin_bp.delete("/artists/<int:artist_id>/templates/<int:template_id>")
@require_admin
def delete_template(artist_id: int, template_id: int):
    t = AvailabilityTemplate.query.filter_by(id=template_id, artist_id=artist_id).first()
    if not t:
        raise NotFoundError("Template not found")
    db.session.delete(t)
    db.session.commit()
    log_event("TEMPLATE_DELETE", entity="artist", entity_id=artist_id, metadata={"template_id": template_id})
    return jsonify(message="Deleted"), 200


# ---------- one-off date overrides ----------
@admin_bp.get("/artists/<int:artist_id>/overrides")
@require_admin
def list_overrides(artist_id: int):
    catalog.get_artist(artist_id)
    q = AvailabilityOverride.query.filter_by(artist_id=artist_id)
    if request.args.get("from"):
        q = q.filter(AvailabilityOverride.date >= _parse_day(request.args["from"], "from"))
    if request.args.get("to"):
        q = q.filter(AvailabilityOverride.date <= _parse_day(request.args["to"], "to"))
    rows = q.order_by(AvailabilityOverride.date.asc(), AvailabilityOverride.id.asc()).all()
    return jsonify([_serialize_override(o) for o in rows]), 200


@admin_bp.post("/artists/<int:artist_id>/overrides")
@require_admin
def create_override(artist_id: int):
    catalog.get_artist(artist_id)
    data = request.get_json(silent=True) or {}
    override_type = (data.get("type") or "").strip().upper()
    if override_type not in OVERRIDE_TYPES:
        raise ValidationError(f"type must be one of {', '.join(OVERRIDE_TYPES)}")
    day = _parse_day(data.get("date"))

    start_min = end_min = None
    if override_type != "CLOSED":
        start_min = _minutes(data, "start")
        end_min = _minutes(data, "end")
        if end_min <= start_min:
            raise ValidationError("end must be after start")

    note = (data.get("note") or "").strip() or None
    o = AvailabilityOverride(
        artist_id=artist_id, date=day, type=override_type,
        start_min=start_min, end_min=end_min, note=note[:255] if note else None,
    )
    db.session.add(o)
    db.session.commit()

    log_event("OVERRIDE_CREATE", entity="artist", entity_id=artist_id, metadata=_serialize_override(o))
    return jsonify(_serialize_override(o)), 201


@admin_bp.delete("/artists/<int:artist_id>/overrides/<int:override_id>")
@require_admin
def delete_override(artist_id: int, override_id: int):
    o = AvailabilityOverride.query.filter_by(id=override_id, artist_id=artist_id).first()
    if not o:
        raise NotFoundError("Override not found")
    db.session.delete(o)
    db.session.commit()
    log_event("OVERRIDE_DELETE", entity="artist", entity_id=artist_id, metadata={"override_id": override_id})
    return jsonify(message="Deleted"), 200


# ---------- services offered by an artist ----------
@admin_bp.put("/artists/<int:artist_id>/services/<int:service_id>")
@require_admin
def link_service(artist_id: int, service_id: int):
    catalog.get_artist(artist_id)
    service = db.session.get(Service, service_id)
    if not service:
        raise NotFoundError("Service not found")

    data = request.get_json(silent=True) or {}
    price_override = data.get("priceOverride")
    if price_override is not None and (isinstance(price_override, bool) or not isinstance(price_override, int)
                                       or price_override < 0):
        raise ValidationError("priceOverride must be a non-negative integer (minor units)")

    link = ServiceOnArtist.query.filter_by(artist_id=artist_id, service_id=service_id).first()
    if not link:
        link = ServiceOnArtist(artist_id=artist_id, service_id=service_id)
        db.session.add(link)
    link.price_override = price_override
    link.active = bool(data.get("active", True))
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError("Service already linked to this artist") from None

    log_event("ARTIST_SERVICE_LINK", entity="artist", entity_id=artist_id,
              metadata={"service_id": service_id, "price_override": price_override, "active": link.active})
    return jsonify(catalog.serialize_link(link) | {"active": link.active}), 200


# ---------- external calendar link ----------
@admin_bp.put("/artists/<int:artist_id>/calendar")
@require_admin
def link_calendar(artist_id: int):
    artist = catalog.get_artist(artist_id)
    data = request.get_json(silent=True) or {}
    calendar_id = (data.get("calendarId") or "").strip()
    refresh_token = (data.get("refreshToken") or "").strip()
    if not calendar_id or not refresh_token:
        raise ValidationError("calendarId and refreshToken required")

    bundle = {"refresh_token": refresh_token}
    if data.get("timeZone"):
        bundle["time_zone"] = str(data["timeZone"])
    # replacing the previous link keeps it at one calendar per artist
    artist.calendar_id = calendar_id
    artist.calendar_credentials = encrypt_credentials(bundle)
    db.session.commit()

    log_event("ARTIST_CALENDAR_LINK", entity="artist", entity_id=artist.id, metadata={"calendar_id": calendar_id})
    return jsonify(artistId=artist.id, calendarId=calendar_id), 200


@admin_bp.delete("/artists/<int:artist_id>/calendar")
@require_admin
def unlink_calendar(artist_id: int):
    artist = catalog.get_artist(artist_id)
    artist.calendar_id = None
    artist.calendar_credentials = None
    db.session.commit()
    log_event("ARTIST_CALENDAR_UNLINK", entity="artist", entity_id=artist.id)
    return jsonify(message="Calendar unlinked"), 200


# ---------- day preview (open/busy/free + slots) ----------
@admin_bp.get("/artists/<int:artist_id>/day")
@require_admin
def day_preview(artist_id: int):
    artist = catalog.get_artist(artist_id)
    day = _parse_day(request.args.get("date"))
    service_id = request.args.get("serviceId", type=int)
    if service_id:
        services = [catalog.get_offered_link(artist.id, service_id).service]
    else:
        services = [link.service for link in catalog.offered_links(artist.id)]

    start, end = _local_day_bounds(day)
    result = serialize_availability(compute_availability(artist, services, start, end))
    summary = result["days"].get(day.isoformat(), {"open": [], "busy": [], "free": []})
    return jsonify(date=day.isoformat(), slots=result["slots"], **summary), 200


# ---------- bookings ----------
@admin_bp.get("/bookings")
@require_admin
def list_bookings():
    status = (request.args.get("status") or "").strip().upper()
    artist_id = request.args.get("artistId", type=int)
    date_str = request.args.get("date")  # YYYY-MM-DD, business-local

    q = Booking.query
    if status:
        if status not in BOOKING_STATUSES:
            raise ValidationError(f"status must be one of {', '.join(BOOKING_STATUSES)}")
        q = q.filter(Booking.status == status)
    if artist_id:
        q = q.filter(Booking.artist_id == artist_id)
    if date_str:
        start, end = _local_day_bounds(_parse_day(date_str))
        q = q.filter(Booking.start_at < end, Booking.end_at > start)

    rows = q.order_by(Booking.start_at.asc()).limit(200).all()
    return jsonify([_serialize_booking(b) for b in rows]), 200


@admin_bp.post("/bookings/<int:booking_id>/cancel")
@require_admin
def admin_cancel_booking(booking_id: int):
    data = request.get_json(silent=True) or {}
    reason = (data.get("reason") or "").strip() or "Admin cancellation"

    booking = db.session.get(Booking, booking_id)
    if not booking:
        raise NotFoundError("Booking not found")

    admission.cancel_booking(booking, reason[:120])
    return jsonify(_serialize_booking(booking)), 200


@admin_bp.post("/bookings/<int:booking_id>/refund")
@require_admin
def admin_refund_booking(booking_id: int):
    booking = db.session.get(Booking, booking_id)
    if not booking:
        raise NotFoundError("Booking not found")

    admission.refund_booking(booking)
    return jsonify(_serialize_booking(booking)), 200


# ---------- audit trail ----------
@admin_bp.get("/audit-logs")
@require_admin
def list_audit_logs():
    limit = request.args.get("limit", type=int) or 200
    limit = max(1, min(limit, 500))

    q = AuditLog.query
    if request.args.get("action"):
        q = q.filter(AuditLog.action == request.args["action"])
    if request.args.get("entity"):
        q = q.filter(AuditLog.entity == request.args["entity"])
    if request.args.get("entityId"):
        q = q.filter(AuditLog.entity_id == request.args["entityId"])

    rows = q.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).limit(limit).all()
    return jsonify([
        {
            "id": r.id,
            "created_at": r.timestamp.isoformat() if r.timestamp else None,
            "action": r.action,
            "entity": r.entity,
            "entity_id": r.entity_id,
            "ip": r.ip,
            "user_agent": r.user_agent,
            "metadata": json.loads(r.metadata_json) if r.metadata_json else None,
        }
        for r in rows
    ]), 200
