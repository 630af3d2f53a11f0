"""
Half-open [start, end) integer windows.

Windows are plain (start, end) tuples, usually minutes since local midnight
of one calendar day. Every function here is total: empty input, zero-length
windows and inverted windows never raise.
"""
from typing import Iterable, List, Optional, Tuple

Window = Tuple[int, int]


def overlaps(a: Window, b: Window) -> bool:
    # touching endpoints do not overlap
    return a[0] < b[1] and b[0] < a[1]


def merge(windows: Iterable[Window]) -> List[Window]:
    """Sort and fold overlapping or touching windows. Inverted windows are dropped."""
    ordered = sorted((s, e) for s, e in windows if e >= s)
    out: List[Window] = []
    for start, end in ordered:
        if out and start <= out[-1][1]:
            last_start, last_end = out[-1]
            out[-1] = (last_start, max(last_end, end))
        else:
            out.append((start, end))
    return out


def subtract(windows: Iterable[Window], cut: Window) -> List[Window]:
    cut_start, cut_end = cut
    if cut_end <= cut_start:
        return list(windows)

    out: List[Window] = []
    for start, end in windows:
        if not overlaps((start, end), cut):
            out.append((start, end))
            continue
        if cut_start > start:
            out.append((start, cut_start))
        if cut_end < end:
            out.append((cut_end, end))
    return out


def subtract_all(windows: Iterable[Window], cuts: Iterable[Window]) -> List[Window]:
    remaining = list(windows)
    for cut in cuts:
        remaining = subtract(remaining, cut)
    return merge(remaining)


def union(a: Iterable[Window], b: Iterable[Window]) -> List[Window]:
    return merge(list(a) + list(b))


def clamp(window: Window, lo: int, hi: int) -> Optional[Window]:
    """Intersect with [lo, hi); None when nothing is left."""
    start = max(window[0], lo)
    end = min(window[1], hi)
    if end <= start:
        return None
    return (start, end)


def overlaps_any(window: Window, windows: Iterable[Window]) -> bool:
    return any(overlaps(window, other) for other in windows)
