"""
For each open window a service may start anywhere in
[window.start + buffer_before, window.end - buffer_after - duration],
stepping by a fixed granularity. A candidate survives only if its
buffer-expanded extent [start - buffer_before, end + buffer_after) is clear
of every busy window, so buffers are protected as well as the appointment.
"""
from scheduling.intervals import overlaps_any
from utils.timeutil import minute_to_utc

DEFAULT_STEP_MINUTES = 15


def buffered(window, buffer_before, buffer_after):
    return (window[0] - buffer_before, window[1] + buffer_after)


def candidate_windows(open_windows, busy, duration, buffer_before=0, buffer_after=0, step=DEFAULT_STEP_MINUTES):
    """Bookable (start_min, end_min) pairs for one service on one day, ordered by start."""
    if duration <= 0:
        return []
    step = max(step, 1)
    buffer_before = max(buffer_before or 0, 0)
    buffer_after = max(buffer_after or 0, 0)

    out = []
    for win_start, win_end in open_windows:
        first_start = win_start + buffer_before
        last_start = win_end - buffer_after - duration
        if last_start < first_start:
            continue

        start = first_start
        while start <= last_start:
            core = (start, start + duration)
            if not overlaps_any(buffered(core, buffer_before, buffer_after), busy):
                out.append(core)
            start += step
    return sorted(out)


def day_slots(day, open_windows, busy, service, tz, step=DEFAULT_STEP_MINUTES,
              range_start=None, range_end=None, not_before=None):
    # naive-UTC pairs within [range_start, range_end), none starting before not_before
    out = []
    windows = candidate_windows(
        open_windows,
        busy,
        service.duration_min,
        service.buffer_before_min,
        service.buffer_after_min,
        step,
    )
    for start_min, end_min in windows:
        start = minute_to_utc(day, start_min, tz)
        end = minute_to_utc(day, end_min, tz)
        if range_start is not None and start < range_start:
            continue
        if range_end is not None and end > range_end:
            continue
        if not_before is not None and start < not_before:
            continue
        out.append((start, end))
    return out
