import logging
from datetime import timedelta
from zoneinfo import ZoneInfo

from flask import current_app

from models.availability import AvailabilityOverride, AvailabilityTemplate
from scheduling import busy as busy_sources
from scheduling.errors import ValidationError
from scheduling.intervals import subtract_all
from scheduling.opening_hours import resolve_open_windows, templates_by_weekday
from scheduling.slots import day_slots
from utils.timeutil import local_dates, minute_to_utc, parse_iso, to_iso

logger = logging.getLogger(__name__)


def business_tz():
    return ZoneInfo(current_app.config.get("BUSINESS_TIMEZONE", "Europe/London"))


def parse_range(from_value, to_value, tz, max_days):
    if not from_value or not to_value:
        raise ValidationError("from and to are required")
    try:
        start = parse_iso(from_value, tz)
        end = parse_iso(to_value, tz)
    except ValueError:
        raise ValidationError("Invalid from/to. Use ISO e.g. 2026-01-20T00:00:00Z") from None
    if end <= start:
        raise ValidationError("to must be after from")
    if end - start > timedelta(days=max_days):
        raise ValidationError(f"Range cannot exceed {max_days} days")
    return start, end


def load_schedule(artist_id, first_day, last_day):
    templates = AvailabilityTemplate.query.filter_by(artist_id=artist_id).all()
    overrides = (
        AvailabilityOverride.query
        .filter(
            AvailabilityOverride.artist_id == artist_id,
            AvailabilityOverride.date >= first_day,
            AvailabilityOverride.date <= last_day,
        )
        .all()
    )
    by_day = {}
    for o in overrides:
        by_day.setdefault(o.date, []).append(o)
    return templates_by_weekday(templates), by_day


def _absolute(day, windows, tz):
    return [(minute_to_utc(day, s, tz), minute_to_utc(day, e, tz)) for s, e in windows]


def compute_availability(artist, services, start, end, *, now=None, include_external=True):
    """
    {"slots": {service_slug: [(start, end), ...]},
     "days": {date: {"open": [...], "busy": [...], "free": [...]}}}
    with naive-UTC datetimes throughout.
    """
    cfg = current_app.config
    tz = business_tz()
    step = cfg.get("SLOT_STEP_MINUTES", 15)
    default_schedule = cfg.get("DEFAULT_OPENING_HOURS", {})

    days = local_dates(start, end, tz)
    result = {"slots": {s.slug: [] for s in services}, "days": {}}
    if not days:
        return result

    weekly, overrides_by_day = load_schedule(artist.id, days[0], days[-1])
    busy_intervals = busy_sources.load_internal_busy(artist.id, start, end)
    if include_external:
        busy_intervals += busy_sources.load_external_busy(artist, start, end)

    for day in days:
        open_windows = resolve_open_windows(day, weekly, overrides_by_day.get(day, []), default_schedule)
        busy = busy_sources.project_onto_day(busy_intervals, day, tz)
        free = subtract_all(open_windows, busy)

        result["days"][day] = {
            "open": _absolute(day, open_windows, tz),
            "busy": _absolute(day, busy, tz),
            "free": _absolute(day, free, tz),
        }
        if not open_windows:
            continue

        for service in services:
            result["slots"][service.slug].extend(
                day_slots(day, open_windows, busy, service, tz, step=step,
                          range_start=start, range_end=end, not_before=now)
            )

    logger.info(
        "availability artist=%s days=%d services=%d slots=%d",
        artist.id, len(days), len(services), sum(len(v) for v in result["slots"].values()),
    )
    return result


def serialize_availability(result):
    def pairs(items):
        return [{"start": to_iso(s), "end": to_iso(e)} for s, e in items]

    return {
        "slots": {slug: pairs(items) for slug, items in result["slots"].items()},
        "days": {
            day.isoformat(): {key: pairs(value) for key, value in summary.items()}
            for day, summary in result["days"].items()
        },
    }
