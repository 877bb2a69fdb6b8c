from datetime import datetime, time, timedelta, timezone

import pytest

from teesheet.core.errors import MinimumPlayersNotMet
from teesheet.services import tee_rules

UTC = timezone.utc


def test_reround_start_is_minutes_per_hole_times_holes():
    first = datetime(2030, 6, 3, 7, 0, tzinfo=UTC)
    assert tee_rules.compute_reround_start(first, 10, 9) == datetime(2030, 6, 3, 8, 30, tzinfo=UTC)


def test_snap_picks_first_start_at_or_after_target():
    base = datetime(2030, 6, 3, 8, 0, tzinfo=UTC)
    starts = [base + timedelta(minutes=m) for m in (0, 20, 40, 60)]
    assert tee_rules.snap_to_next_slot(base + timedelta(minutes=20), starts) == base + timedelta(minutes=20)
    assert tee_rules.snap_to_next_slot(base + timedelta(minutes=25), starts) == base + timedelta(minutes=40)
    assert tee_rules.snap_to_next_slot(base + timedelta(minutes=61), starts) is None


def test_class_rule_falls_back_to_public_then_full():
    assert tee_rules.class_rule({"member": 1, "public": 2, "full": 3}, "member") == 1
    assert tee_rules.class_rule({"public": 2, "full": 3}, "member") == 2
    assert tee_rules.class_rule({"full": 3}, "member") == 3
    assert tee_rules.class_rule({}, "member") is None


def test_access_without_any_rule_is_denied():
    assert tee_rules.is_class_allowed({}, "public") is False
    assert tee_rules.is_class_allowed({"public": False, "full": True}, "member") is False
    assert tee_rules.is_class_allowed({"full": True}, "member") is True


def test_leg_fee_adds_cart_only_when_riding():
    assert tee_rules.leg_fee_cents(1000, 500, "walk") == 1000
    assert tee_rules.leg_fee_cents(1000, 500, "ride") == 1500


def test_min_players():
    tee_rules.enforce_min_players(2, 2)
    tee_rules.enforce_min_players(1, None)
    with pytest.raises(MinimumPlayersNotMet):
        tee_rules.enforce_min_players(1, 2)


@pytest.mark.parametrize(
    "mode,selection,allowed",
    [("either", "walk", True), ("either", "ride", True), ("ride", "walk", False), ("walk", "walk", True), (None, "ride", True)],
)
def test_walk_ride_modes(mode, selection, allowed):
    assert tee_rules.walk_ride_allowed(mode, selection) is allowed


def test_booking_window_horizon_and_daily_release():
    tee = datetime(2030, 6, 10, 8, 0, tzinfo=UTC)
    assert tee_rules.booking_window_open(tee, datetime(2030, 6, 3, 12, 0, tzinfo=UTC), 7) is True
    assert tee_rules.booking_window_open(tee, datetime(2030, 6, 2, 12, 0, tzinfo=UTC), 7) is False
    # Furthest bookable day opens at the daily release clock
    assert tee_rules.booking_window_open(tee, datetime(2030, 6, 3, 6, 59, tzinfo=UTC), 7, time(7, 0)) is False
    assert tee_rules.booking_window_open(tee, datetime(2030, 6, 3, 7, 0, tzinfo=UTC), 7, time(7, 0)) is True
    # No horizon: only the past check
    assert tee_rules.booking_window_open(tee, datetime(2020, 1, 1, tzinfo=UTC), None) is True
    assert tee_rules.booking_window_open(tee, tee, None) is False


def test_cancel_cutoff():
    tee = datetime(2030, 6, 3, 7, 0, tzinfo=UTC)
    assert tee_rules.inside_cancel_cutoff(tee, tee - timedelta(hours=23), 24) is True
    assert tee_rules.inside_cancel_cutoff(tee, tee - timedelta(hours=25), 24) is False


def test_is_staff_roles():
    assert tee_rules.is_staff("Manager") is True
    assert tee_rules.is_staff("Customer") is False
    assert tee_rules.is_staff(None) is False


def test_reround_cycles():
    assert tee_rules.find_reround_cycles({1: 2, 2: None}) == []
    assert tee_rules.find_reround_cycles({1: 2, 2: 1}) == [[1, 2]]
    assert tee_rules.find_reround_cycles({1: 1}) == [[1]]
    assert tee_rules.find_reround_cycles({1: 2, 2: 3, 3: 2}) == [[2, 3]]
