from datetime import date

import pytest

from teesheet.core.errors import ConfigurationInvalid, InvalidState, VersionImmutable
from teesheet.models.season import TeeSheetSeasonWeekdayWindow
from teesheet.models.template import TeeSheetTemplate
from teesheet.services import config_store


def _codes(exc_info):
    return sorted(v["code"] for v in exc_info.value.violations)


def _draft(db, sheet_id, name="Draft"):
    template = config_store.create_template(db, sheet_id, name, interval_mins=15)
    return template, config_store.create_template_version(db, template.id)


def test_publish_requires_side_coverage_and_public_price(db, scenario):
    back = config_store.create_side(db, scenario.sheet_id, "Back", date(2020, 1, 1))
    template, version = _draft(db, scenario.sheet_id)
    config_store.set_template_side(db, version.id, scenario.front_id)
    config_store.set_side_price(db, version.id, scenario.front_id, "full", 1000, 0)

    with pytest.raises(ConfigurationInvalid) as exc:
        config_store.publish_template(db, template.id, version.id)
    assert _codes(exc) == ["missing_public_price", "missing_side_coverage"]
    assert {"code": "missing_side_coverage", "side_id": back.id} in exc.value.violations
    db.expire_all()
    assert db.query(TeeSheetTemplate).filter(TeeSheetTemplate.id == template.id).one().published_version_id is None


def test_publish_rejects_reround_cycles(db, reround_scenario):
    ids = reround_scenario
    template, version = _draft(db, ids.sheet_id)
    config_store.set_template_side(db, version.id, ids.front_id, rerounds_to_side_id=ids.back_id, max_legs_starting=2)
    config_store.set_template_side(db, version.id, ids.back_id, rerounds_to_side_id=ids.front_id, max_legs_starting=2)
    for side_id in (ids.front_id, ids.back_id):
        config_store.set_side_price(db, version.id, side_id, "public", 2000, 500)

    with pytest.raises(ConfigurationInvalid) as exc:
        config_store.publish_template(db, template.id, version.id)
    assert exc.value.violations == [{"code": "reround_cycle", "side_ids": sorted([ids.front_id, ids.back_id])}]


def test_published_versions_are_immutable(db, scenario):
    with pytest.raises(VersionImmutable):
        config_store.set_side_price(db, scenario.version_id, scenario.front_id, "public", 1, 1)
    with pytest.raises(VersionImmutable):
        config_store.delete_template_version(db, scenario.version_id)
    with pytest.raises(VersionImmutable):
        config_store.add_weekday_window(
            db, scenario.season_version_id, 1, scenario.version_id, start_time_local="10:00", end_time_local="11:00"
        )

    copy = config_store.create_template_version(db, scenario.template_id, copy_from=scenario.version_id)
    assert copy.version_number == 2
    config_store.set_side_price(db, copy.id, scenario.front_id, "public", 2500, 500)


def test_weekday_positions_stay_contiguous(db, scenario):
    season = config_store.create_season(db, scenario.sheet_id, "Autumn")
    version = config_store.create_season_version(db, season.id, "2030-09-01", "2030-10-01")
    add = lambda start, end, **kw: config_store.add_weekday_window(  # noqa: E731
        db, version.id, 2, scenario.version_id, start_time_local=start, end_time_local=end, **kw
    )
    first, second, third = add("06:00", "08:00"), add("08:00", "10:00"), add("10:00", "12:00")
    assert [first.position, second.position, third.position] == [0, 1, 2]
    with pytest.raises(ConfigurationInvalid):
        add("12:00", "13:00", position=5)

    config_store.delete_weekday_window(db, second.id)
    db.expire_all()
    rows = (
        db.query(TeeSheetSeasonWeekdayWindow)
        .filter(TeeSheetSeasonWeekdayWindow.season_version_id == version.id)
        .order_by(TeeSheetSeasonWeekdayWindow.position)
        .all()
    )
    assert [(r.id, r.position) for r in rows] == [(first.id, 0), (third.id, 1)]

    config_store.reorder_weekday_windows(db, version.id, 2, [third.id, first.id])
    db.expire_all()
    assert db.query(TeeSheetSeasonWeekdayWindow).filter(TeeSheetSeasonWeekdayWindow.id == third.id).one().position == 0


def test_legacy_sunday_is_stored_as_zero(db, scenario):
    season = config_store.create_season(db, scenario.sheet_id, "Sundays")
    version = config_store.create_season_version(db, season.id, "2030-09-01", "2030-10-01")
    row = config_store.add_weekday_window(
        db, version.id, 7, scenario.version_id, start_time_local="07:00", end_time_local="08:00"
    )
    assert row.weekday == 0
    with pytest.raises(ConfigurationInvalid):
        config_store.add_weekday_window(db, version.id, 8, scenario.version_id)


def test_season_prevalidation(db, scenario):
    season = config_store.create_season(db, scenario.sheet_id, "Broken")
    version = config_store.create_season_version(db, season.id, "2030-09-02", "2030-09-03")
    # 2030-09-02 is a Monday
    config_store.add_weekday_window(
        db, version.id, 1, scenario.version_id, start_time_local="09:00", end_time_local="08:00"
    )
    with pytest.raises(ConfigurationInvalid) as exc:
        config_store.publish_season(db, season.id, version.id)
    assert _codes(exc) == ["invalid_window_after_clamp"]

    config_store.create_side(db, scenario.sheet_id, "Back", date(2030, 9, 1))
    good = config_store.create_season_version(db, season.id, "2030-09-02", "2030-09-03")
    config_store.add_weekday_window(
        db, good.id, 1, scenario.version_id, start_time_local="07:00", end_time_local="08:00"
    )
    with pytest.raises(ConfigurationInvalid) as exc:
        config_store.publish_season(db, season.id, good.id)
    assert _codes(exc) == ["template_missing_side_coverage"]


def test_overrides_delete_only_while_unpublished(db, scenario):
    draft = config_store.create_override(db, scenario.sheet_id, "2030-06-04", "Draft")
    config_store.delete_override(db, draft.id)

    published = config_store.create_override(db, scenario.sheet_id, "2030-06-05", "Closed")
    result = config_store.publish_override(db, published.id)
    assert result["windows"] == 0 and result["status"] == "published"
    with pytest.raises(InvalidState):
        config_store.delete_override(db, published.id)


def test_sides_with_same_name_cannot_overlap(db, scenario):
    with pytest.raises(ConfigurationInvalid) as exc:
        config_store.create_side(db, scenario.sheet_id, "Front", date(2029, 1, 1), date(2031, 1, 1))
    assert _codes(exc) == ["overlapping_side"]

    config_store.create_side(db, scenario.sheet_id, "Practice", date(2030, 1, 1), date(2030, 6, 1))
    later = config_store.create_side(db, scenario.sheet_id, "Practice", date(2030, 6, 1))
    assert later.valid_from == date(2030, 6, 1)


def test_course_and_window_validation(db, scenario):
    with pytest.raises(ConfigurationInvalid):
        config_store.create_course(db, "Nowhere", "Mars/Olympus")
    with pytest.raises(ConfigurationInvalid):
        config_store.create_tee_sheet(db, scenario.course_id, "Bad", daily_release_local="25:99")
    override = config_store.create_override(db, scenario.sheet_id, "2030-06-06")
    with pytest.raises(ConfigurationInvalid):
        config_store.add_override_window(
            db, override.draft_version_id, scenario.version_id, start_mode="moonrise"
        )


def test_overlapping_fixed_windows_are_rejected(db, scenario):
    season = config_store.create_season(db, scenario.sheet_id, "Overlap")
    version = config_store.create_season_version(db, season.id, "2030-09-01", "2030-10-01")
    add = lambda start, end: config_store.add_weekday_window(  # noqa: E731
        db, version.id, 2, scenario.version_id, start_time_local=start, end_time_local=end
    )
    first = add("07:00", "10:00")
    with pytest.raises(ConfigurationInvalid) as exc:
        add("08:30", "09:30")
    assert exc.value.violations == [{"code": "overlapping_windows", "window_id": first.id}]
    assert add("10:00", "11:00").position == 1

    override = config_store.create_override(db, scenario.sheet_id, "2030-06-06")
    config_store.add_override_window(
        db, override.draft_version_id, scenario.version_id, start_time_local="07:00", end_time_local="10:00"
    )
    with pytest.raises(ConfigurationInvalid) as exc:
        config_store.add_override_window(
            db, override.draft_version_id, scenario.version_id, start_time_local="09:00", end_time_local="11:00"
        )
    assert _codes(exc) == ["overlapping_windows"]


def test_prevalidation_catches_solar_overlap(db, scenario):
    season = config_store.create_season(db, scenario.sheet_id, "Dawn")
    version = config_store.create_season_version(db, season.id, "2030-09-02", "2030-09-03")
    early = config_store.add_weekday_window(
        db, version.id, 1, scenario.version_id, start_time_local="06:00", end_time_local="08:00"
    )
    # Sunrise is 07:00 under the fixed sun, inside the first window
    dawn = config_store.add_weekday_window(
        db, version.id, 1, scenario.version_id,
        start_mode="sunrise_offset", start_offset_mins=0, end_time_local="10:00",
    )
    with pytest.raises(ConfigurationInvalid) as exc:
        config_store.publish_season(db, season.id, version.id)
    assert exc.value.violations == [{
        "date": "2030-09-02",
        "code": "overlapping_windows",
        "side_id": scenario.front_id,
        "window_ids": [early.id, dawn.id],
    }]


def test_override_publish_catches_solar_overlap(db, scenario):
    override = config_store.create_override(db, scenario.sheet_id, "2030-06-06", "Dawn patrol")
    early = config_store.add_override_window(
        db, override.draft_version_id, scenario.version_id, start_time_local="06:00", end_time_local="08:00"
    )
    dawn = config_store.add_override_window(
        db, override.draft_version_id, scenario.version_id,
        start_mode="sunrise_offset", start_offset_mins=0, end_time_local="10:00",
    )
    with pytest.raises(ConfigurationInvalid) as exc:
        config_store.publish_override(db, override.id)
    assert exc.value.violations == [
        {"code": "overlapping_windows", "side_id": scenario.front_id, "window_ids": [early.id, dawn.id]}
    ]
