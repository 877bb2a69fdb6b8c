from datetime import date, datetime, time
from zoneinfo import ZoneInfo

import pytest

from teesheet.services.solar import FixedSunAdapter
from teesheet.services.template_resolver import TimeAnchor, WindowSpec
from teesheet.services.window_compiler import (
    SideInfo,
    VersionInfo,
    compile_windows,
    parse_clock,
    resolve_range,
)

DAY = date(2030, 6, 3)
DENVER = ZoneInfo("America/Denver")
SUN = FixedSunAdapter().sun_times(DAY, None, None, DENVER)


def _window(start: TimeAnchor, end: TimeAnchor, side_id=None, version_id=1) -> WindowSpec:
    return WindowSpec(start=start, end=end, template_version_id=version_id, side_id=side_id)


def test_parse_clock_formats():
    assert parse_clock("07:00", "00:00") == time(7, 0)
    assert parse_clock("07:00:30", "00:00") == time(7, 0, 30)
    assert parse_clock("7:30 pm", "00:00") == time(19, 30)
    assert parse_clock(None, "23:59:59") == time(23, 59, 59)
    with pytest.raises(ValueError):
        parse_clock("not a clock", "00:00")


def test_fixed_window_resolves_in_course_zone():
    start, end = resolve_range(_window(TimeAnchor.fixed("07:00"), TimeAnchor.fixed("09:00")), DAY, DENVER, SUN)
    assert start == datetime(2030, 6, 3, 7, 0, tzinfo=DENVER)
    assert end == datetime(2030, 6, 3, 9, 0, tzinfo=DENVER)


def test_missing_clocks_cover_the_whole_day():
    start, end = resolve_range(_window(TimeAnchor.fixed(None), TimeAnchor.fixed(None)), DAY, DENVER, SUN)
    assert start == datetime(2030, 6, 3, 0, 0, tzinfo=DENVER)
    assert end == datetime(2030, 6, 3, 23, 59, 59, tzinfo=DENVER)


def test_sunrise_offset_before_midnight_clamps_to_midnight():
    # Fixed sunrise is 07:00; -8h lands on the previous day
    window = _window(TimeAnchor.solar_offset(-480), TimeAnchor.fixed("10:00"))
    start, _ = resolve_range(window, DAY, DENVER, SUN)
    assert start == datetime(2030, 6, 3, 0, 0, tzinfo=DENVER)


def test_sunset_offset_past_midnight_clamps_to_day_end():
    window = _window(TimeAnchor.fixed("20:00"), TimeAnchor.solar_offset(480))
    _, end = resolve_range(window, DAY, DENVER, SUN)
    assert end == datetime(2030, 6, 4, 0, 0, tzinfo=DENVER)


def test_start_is_floored_to_the_minute():
    start, _ = resolve_range(_window(TimeAnchor.fixed("07:00:45"), TimeAnchor.fixed("09:00")), DAY, DENVER, SUN)
    assert start == datetime(2030, 6, 3, 7, 0, tzinfo=DENVER)


def test_collapsed_window_is_dropped():
    version = VersionInfo(template_version_id=1, interval_mins=10, side_slots={})
    windows = [_window(TimeAnchor.fixed("10:00"), TimeAnchor.fixed("09:00"))]
    out = compile_windows(windows, DAY, DENVER, SUN, lambda vid: version, {5: SideInfo(5, 8)})
    assert out == []


def test_fan_out_to_template_sides_in_service():
    version = VersionInfo(template_version_id=1, interval_mins=None, side_slots={10: True, 11: False, 99: True})
    sides = {10: SideInfo(10, 8), 11: SideInfo(11, 12), 12: SideInfo(12, 5)}
    out = compile_windows(
        [_window(TimeAnchor.fixed("07:00"), TimeAnchor.fixed("09:00"))], DAY, DENVER, SUN, lambda vid: version, sides
    )
    assert [(c.side_id, c.interval_mins, c.start_slots_enabled) for c in out] == [(10, 8, True), (11, 12, False)]


def test_explicit_side_and_interval_precedence():
    sides = {10: SideInfo(10, 8), 12: SideInfo(12, None)}
    with_template = VersionInfo(template_version_id=1, interval_mins=15, side_slots={10: True})
    out = compile_windows(
        [_window(TimeAnchor.fixed("07:00"), TimeAnchor.fixed("08:00"), side_id=10)],
        DAY, DENVER, SUN, lambda vid: with_template, sides,
    )
    assert [(c.side_id, c.interval_mins) for c in out] == [(10, 15)]

    bare = VersionInfo(template_version_id=1, interval_mins=None, side_slots={})
    out = compile_windows(
        [_window(TimeAnchor.fixed("07:00"), TimeAnchor.fixed("08:00"), side_id=12)],
        DAY, DENVER, SUN, lambda vid: bare, sides,
    )
    assert [(c.side_id, c.interval_mins) for c in out] == [(12, 10)]


def test_unreachable_version_and_retired_side_are_skipped():
    sides = {10: SideInfo(10, 8)}
    version = VersionInfo(template_version_id=1, interval_mins=10, side_slots={})
    windows = [
        _window(TimeAnchor.fixed("07:00"), TimeAnchor.fixed("08:00"), version_id=404),
        _window(TimeAnchor.fixed("07:00"), TimeAnchor.fixed("08:00"), side_id=77),
    ]
    lookup = lambda vid: version if vid == 1 else None  # noqa: E731
    assert compile_windows(windows, DAY, DENVER, SUN, lookup, sides) == []


def test_output_sorted_by_side_then_start():
    version = VersionInfo(template_version_id=1, interval_mins=10, side_slots={})
    sides = {2: SideInfo(2, 8), 1: SideInfo(1, 8)}
    windows = [
        _window(TimeAnchor.fixed("12:00"), TimeAnchor.fixed("13:00")),
        _window(TimeAnchor.fixed("07:00"), TimeAnchor.fixed("08:00")),
    ]
    out = compile_windows(windows, DAY, DENVER, SUN, lambda vid: version, sides)
    assert [(c.side_id, c.start.hour) for c in out] == [(1, 7), (1, 12), (2, 7), (2, 12)]
