import logging

from models.booking import BLOCKING_STATUSES, Booking
from scheduling.intervals import clamp, merge
from utils import google_calendar
from utils.timeutil import MINUTES_PER_DAY, utc_to_minute

logger = logging.getLogger(__name__)


def load_internal_busy(artist_id, start, end):
    rows = (
        Booking.query
        .filter(
            Booking.artist_id == artist_id,
            Booking.status.in_(BLOCKING_STATUSES),
            Booking.start_at < end,
            Booking.end_at > start,
        )
        .order_by(Booking.start_at.asc())
        .all()
    )
    return [(b.start_at, b.end_at) for b in rows]


def load_external_busy(artist, start, end):
    # never raises: a calendar failure is logged and counts as no external busy time
    try:
        client = google_calendar.calendar_for_artist(artist)
        if client is None:
            return []
        with client:
            busy = client.free_busy(start, end)
    except Exception:
        logger.exception("external free/busy failed artist=%s, continuing with internal busy only", artist.id)
        return []
    logger.debug("external busy artist=%s count=%d", artist.id, len(busy))
    return busy


def project_onto_day(intervals, day, tz):
    """Merged minute windows of `day` covered by the given absolute intervals."""
    windows = []
    for start, end in intervals:
        window = clamp((utc_to_minute(start, day, tz), utc_to_minute(end, day, tz)), 0, MINUTES_PER_DAY)
        if window:
            windows.append(window)
    return merge(windows)
