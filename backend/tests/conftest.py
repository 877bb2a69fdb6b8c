"""
Shared fixtures: a SQLite database file per test, deterministic sun times and a small published course.

The standard course ("scenario") runs in UTC so instants read the same as local clocks:
one side "Front" (10 min/hole x 9), a template with 60 minute intervals and min 2 players,
class "full" allowed (walk 1000 / ride 1500), class "public" denied (but priced, so it publishes)
and a season 2030-06-01..2030-06-08 with a 07:00-09:00 window every weekday.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SOLAR_PROVIDER"] = "fixed"
os.environ["SMTP_USER"] = ""
os.environ["SMTP_PASSWORD"] = ""

from datetime import date, datetime, timezone
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

import teesheet.models  # noqa: F401
from teesheet.core.actor import Actor
from teesheet.db.base import Base
from teesheet.db.session import get_db, make_engine
from teesheet.services import config_store
from teesheet.services.booking_service import BookingRequest, PlayerInput
from teesheet.services.solar import FixedSunAdapter, set_sun_adapter

UTC = timezone.utc
DAY = date(2030, 6, 3)
# Two days before DAY: inside every horizon used in the tests, outside the 24h cancel cutoff.
EARLY = datetime(2030, 6, 1, 12, 0, tzinfo=UTC)

CUSTOMER = Actor(id="alice", role="Customer")
OTHER_CUSTOMER = Actor(id="bob", role="Customer")
STAFF = Actor(id="pro-shop", role="Staff")


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'teesheet.db'}")
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def fixed_sun():
    set_sun_adapter(FixedSunAdapter())
    yield
    set_sun_adapter(None)


def build_course(
    db,
    timezone_name: str = "UTC",
    interval_mins: int = 60,
    min_players: int = 2,
    second_side: bool = False,
) -> SimpleNamespace:
    """Create and publish a course; with second_side the front side rerounds to "Back" and allows 18."""
    course = config_store.create_course(db, "Pine Hollow", timezone_name)
    sheet = config_store.create_tee_sheet(db, course.id, "Main")
    front = config_store.create_side(db, sheet.id, "Front", date(2020, 1, 1), minutes_per_hole=10, hole_count=9)
    back = None
    if second_side:
        back = config_store.create_side(db, sheet.id, "Back", date(2020, 1, 1), minutes_per_hole=10, hole_count=9)
    template = config_store.create_template(db, sheet.id, "Standard", interval_mins=interval_mins)
    version = config_store.create_template_version(db, template.id)
    for side in [s for s in (front, back) if s is not None]:
        rerounds_to = back.id if (back is not None and side.id == front.id) else None
        config_store.set_template_side(
            db,
            version.id,
            side.id,
            rerounds_to_side_id=rerounds_to,
            max_legs_starting=2 if rerounds_to else 1,
            min_players=min_players,
        )
        config_store.set_side_access(db, version.id, side.id, "full", True)
        config_store.set_side_access(db, version.id, side.id, "public", False)
        config_store.set_side_price(db, version.id, side.id, "full", 1000, 500)
        config_store.set_side_price(db, version.id, side.id, "public", 2000, 500)
    config_store.publish_template(db, template.id, version.id)
    season = config_store.create_season(db, sheet.id, "Summer")
    season_version = config_store.create_season_version(db, season.id, "2030-06-01", "2030-06-08")
    for weekday in range(7):
        config_store.add_weekday_window(
            db, season_version.id, weekday, version.id, start_time_local="07:00", end_time_local="09:00"
        )
    config_store.publish_season(db, season.id, season_version.id)
    return SimpleNamespace(
        course_id=course.id,
        sheet_id=sheet.id,
        front_id=front.id,
        back_id=back.id if back else None,
        template_id=template.id,
        version_id=version.id,
        season_id=season.id,
        season_version_id=season_version.id,
    )


@pytest.fixture
def scenario(db):
    return build_course(db)


@pytest.fixture
def reround_scenario(db):
    return build_course(db, interval_mins=10, second_side=True)


def booking_request(ids, tee_time_id: int, players: int = 2, **kwargs) -> BookingRequest:
    kwargs.setdefault("booking_class_id", "full")
    return BookingRequest(
        tee_sheet_id=ids.sheet_id,
        tee_time_id=tee_time_id,
        players=[PlayerInput(name=f"Player {i + 1}") for i in range(players)],
        **kwargs,
    )


@pytest.fixture
def client(session_factory):
    from teesheet.main import app

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
