from datetime import datetime
from types import SimpleNamespace
from zoneinfo import ZoneInfo

from scheduling.intervals import overlaps_any
from scheduling.slots import buffered, candidate_windows, day_slots

from conftest import TUESDAY

LONDON = ZoneInfo("Europe/London")


def hm(h, m=0):
    return h * 60 + m


def test_busy_window_excludes_overlapping_starts():
    # 09:30-17:30 open, 10:00-11:00 booked, 60 minute service, no buffers
    slots = candidate_windows([(hm(9, 30), hm(17, 30))], [(hm(10), hm(11))], 60)
    starts = [s for s, _ in slots]

    for blocked in range(hm(9, 30), hm(11), 15):
        assert blocked not in starts
    assert starts[0] == hm(11)
    assert starts[-1] == hm(16, 30)
    assert len(starts) == 23


def test_buffers_are_protected():
    # buffer-expanded 09:00 start is 08:45-10:15, which meets busy 08:50-09:05
    slots = candidate_windows([(hm(8), hm(18))], [(hm(8, 50), hm(9, 5))], 60, 15, 15)
    starts = [s for s, _ in slots]
    assert hm(9) not in starts
    assert hm(9, 15) not in starts
    assert hm(9, 30) in starts


def test_buffers_fit_inside_the_open_window():
    slots = candidate_windows([(hm(10), hm(12))], [], 60, 15, 15)
    assert slots == [(hm(10, 15), hm(11, 15)), (hm(10, 30), hm(11, 30)), (hm(10, 45), hm(11, 45))]


def test_generated_slots_respect_open_and_busy():
    open_windows = [(hm(9), hm(12)), (hm(13), hm(18))]
    busy = [(hm(10, 10), hm(10, 40)), (hm(14), hm(15, 30)), (hm(17, 50), hm(19))]
    for duration, before, after in [(30, 0, 0), (60, 10, 5), (90, 15, 15), (45, 0, 30)]:
        for start, end in candidate_windows(open_windows, busy, duration, before, after, 5):
            extent = buffered((start, end), before, after)
            assert not overlaps_any(extent, busy)
            assert any(ws <= extent[0] and extent[1] <= we for ws, we in open_windows)


def test_window_too_short_yields_nothing():
    assert candidate_windows([(hm(9), hm(9, 45))], [], 60) == []
    assert candidate_windows([(hm(9), hm(17))], [], 0) == []


def test_day_slots_are_absolute_and_respect_not_before():
    service = SimpleNamespace(duration_min=60, buffer_before_min=0, buffer_after_min=0)
    slots = day_slots(
        TUESDAY, [(hm(9, 30), hm(12))], [], service, LONDON,
        not_before=datetime(2030, 1, 8, 10, 0),
    )
    assert slots[0] == (datetime(2030, 1, 8, 10, 0), datetime(2030, 1, 8, 11, 0))
    assert slots[-1] == (datetime(2030, 1, 8, 11, 0), datetime(2030, 1, 8, 12, 0))


def test_day_slots_follow_summer_time():
    # BST: 10:00 local is 09:00 UTC
    service = SimpleNamespace(duration_min=60, buffer_before_min=0, buffer_after_min=0)
    day = datetime(2030, 7, 9).date()
    slots = day_slots(day, [(hm(10), hm(11))], [], service, LONDON)
    assert slots == [(datetime(2030, 7, 9, 9, 0), datetime(2030, 7, 9, 10, 0))]
