"""
Opening-hours resolution for one artist on one business-local date.

Weekly templates give the base windows; date overrides are then applied in
a fixed order so the result never depends on how the rows were stored:

    CLOSED  -> the day is empty, nothing else applies
    OPEN    -> window unioned in
    EXTEND  -> window unioned in
    REDUCE  -> window subtracted, always after every OPEN/EXTEND
"""
from scheduling.intervals import merge, subtract_all, union
from utils.timeutil import weekday_index

ADDITIVE_OVERRIDES = ("OPEN", "EXTEND")


def templates_by_weekday(templates):
    grouped = {}
    for t in templates:
        grouped.setdefault(t.weekday, []).append((t.start_min, t.end_min))
    return {weekday: merge(windows) for weekday, windows in grouped.items()}


def base_windows(day, weekly, default_schedule):
    # The default schedule only stands in for an artist with no templates at all.
    source = weekly if weekly else default_schedule
    return merge(source.get(weekday_index(day), []))


def apply_overrides(windows, overrides):
    overrides = list(overrides)
    if any(o.type == "CLOSED" for o in overrides):
        return []

    additions = [o.window for o in overrides if o.type in ADDITIVE_OVERRIDES and o.window]
    cuts = [o.window for o in overrides if o.type == "REDUCE" and o.window]

    result = union(windows, additions)
    result = subtract_all(result, cuts)
    return merge(result)


def resolve_open_windows(day, weekly, overrides, default_schedule):
    """Merged open windows for `day`; empty means the artist does not work that day."""
    todays = [o for o in overrides if getattr(o, "date", day) == day]
    return apply_overrides(base_windows(day, weekly, default_schedule), todays)
