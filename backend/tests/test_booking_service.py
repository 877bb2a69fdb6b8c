import threading
from datetime import datetime, timezone

import pytest

from conftest import CUSTOMER, DAY, EARLY, OTHER_CUSTOMER, STAFF, booking_request
from teesheet.core.actor import Actor
from teesheet.core.errors import (
    AccessDenied,
    CapacityExceeded,
    IdempotencyKeyReused,
    InvalidRequest,
    InvalidState,
    MinimumPlayersNotMet,
    ModeNotAllowed,
    PartySizeExceeded,
    WindowHasPassed,
    WindowNotOpen,
)
from teesheet.core.timeutil import as_utc
from teesheet.models.booking import TeeTimeAssignment
from teesheet.models.tee_time import TeeTime
from teesheet.services import config_store
from teesheet.services.booking_service import (
    PlayerInput,
    cancel_booking,
    create_booking,
    reschedule_booking,
    update_booking_players,
)
from teesheet.services.tee_sheet_generator import generate_for_date

UTC = timezone.utc


def _slots(db, ids, side_id=None):
    db.expire_all()
    return (
        db.query(TeeTime)
        .filter(TeeTime.tee_sheet_id == ids.sheet_id, TeeTime.side_id == (side_id or ids.front_id))
        .order_by(TeeTime.start_time)
        .all()
    )


@pytest.fixture
def slots(db, scenario):
    generate_for_date(db, scenario.sheet_id, DAY)
    return _slots(db, scenario)


def test_booking_prices_walk_and_ride(db, scenario, slots):
    seven, eight = slots
    walk = create_booking(db, booking_request(scenario, seven.id, walk_ride="walk"), "price-walk", CUSTOMER, now=EARLY)
    ride = create_booking(db, booking_request(scenario, eight.id), "price-ride", CUSTOMER, now=EARLY)

    assert walk["total_price_cents"] == 2000
    assert ride["total_price_cents"] == 3000
    assert ride["owner_id"] == "alice"
    assert ride["source"] == "direct"
    [leg] = ride["legs"]
    assert leg["tee_time_id"] == eight.id
    assert leg["price_cents"] == 3000
    assert [p["seat_index"] for p in leg["players"]] == [0, 1]
    assert [s.assigned_count for s in _slots(db, scenario)] == [2, 2]


def test_idempotency_key_replays_without_new_seats(db, scenario, slots):
    seven, _ = slots
    first = create_booking(db, booking_request(scenario, seven.id), "replay-1", CUSTOMER, now=EARLY)
    again = create_booking(db, booking_request(scenario, seven.id), "replay-1", CUSTOMER, now=EARLY)

    assert again == first
    assert db.query(TeeTimeAssignment).count() == 2
    assert _slots(db, scenario)[0].assigned_count == 2


def test_capacity_is_never_exceeded(db, scenario, slots):
    seven, _ = slots
    create_booking(db, booking_request(scenario, seven.id, players=3), "cap-1", CUSTOMER, now=EARLY)
    with pytest.raises(CapacityExceeded):
        create_booking(db, booking_request(scenario, seven.id, players=2), "cap-2", OTHER_CUSTOMER, now=EARLY)
    assert _slots(db, scenario)[0].assigned_count == 3
    assert db.query(TeeTimeAssignment).count() == 3


def test_concurrent_bookings_for_the_last_seats(db, session_factory, scenario, slots):
    seven, _ = slots
    seven.capacity = 2
    db.commit()

    barrier = threading.Barrier(2)
    outcomes = []
    lock = threading.Lock()

    def book(key, actor):
        session = session_factory()
        try:
            barrier.wait()
            result = create_booking(session, booking_request(scenario, seven.id, players=2), key, actor, now=EARLY)
            outcome = ("ok", result["id"])
        except CapacityExceeded:
            outcome = ("full", None)
        finally:
            session.close()
        with lock:
            outcomes.append(outcome)

    threads = [
        threading.Thread(target=book, args=("race-a", CUSTOMER)),
        threading.Thread(target=book, args=("race-b", OTHER_CUSTOMER)),
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)

    assert sorted(kind for kind, _ in outcomes) == ["full", "ok"]
    slot = _slots(db, scenario)[0]
    assert slot.assigned_count == 2
    assert db.query(TeeTimeAssignment).filter(TeeTimeAssignment.tee_time_id == slot.id).count() == 2


def test_concurrent_retry_of_one_key_returns_the_same_booking(db, session_factory, scenario, slots):
    seven, _ = slots
    seven.capacity = 2
    db.commit()

    for attempt in range(3):
        barrier = threading.Barrier(2)
        outcomes = []
        lock = threading.Lock()

        def book(key):
            session = session_factory()
            try:
                barrier.wait()
                result = create_booking(session, booking_request(scenario, seven.id, players=2), key, CUSTOMER, now=EARLY)
                outcome = ("ok", result["id"])
            except CapacityExceeded:
                outcome = ("full", None)
            finally:
                session.close()
            with lock:
                outcomes.append(outcome)

        threads = [threading.Thread(target=book, args=(f"same-{attempt}",)) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=60)

        assert [kind for kind, _ in outcomes] == ["ok", "ok"]
        assert outcomes[0][1] == outcomes[1][1]
        assert _slots(db, scenario)[0].assigned_count == 2
        cancel_booking(db, outcomes[0][1], STAFF, now=EARLY)


def test_idempotency_key_is_scoped_to_its_owner(db, scenario, slots):
    seven, _ = slots
    create_booking(db, booking_request(scenario, seven.id), "shared-key", CUSTOMER, now=EARLY)

    with pytest.raises(IdempotencyKeyReused):
        create_booking(db, booking_request(scenario, seven.id), "shared-key", OTHER_CUSTOMER, now=EARLY)
    assert _slots(db, scenario)[0].assigned_count == 2
    assert db.query(TeeTimeAssignment).count() == 2


def test_ownerless_booking_is_staff_only(db, scenario, slots):
    seven, eight = slots
    anonymous = Actor(id=None)
    booking = create_booking(db, booking_request(scenario, seven.id), "no-owner", anonymous, now=EARLY)
    assert booking["owner_id"] is None

    for actor in (CUSTOMER, anonymous):
        with pytest.raises(AccessDenied):
            cancel_booking(db, booking["id"], actor, now=EARLY)
        with pytest.raises(AccessDenied):
            reschedule_booking(db, booking["id"], eight.id, actor, now=EARLY)
    assert cancel_booking(db, booking["id"], STAFF, now=EARLY)["status"] == "Cancelled"


def test_access_falls_back_through_public(db, scenario, slots):
    seven, _ = slots
    # "member" has no rule of its own; "public" is denied and wins over "full"
    with pytest.raises(AccessDenied):
        create_booking(
            db, booking_request(scenario, seven.id, booking_class_id="member"), "member-1", CUSTOMER, now=EARLY
        )
    assert _slots(db, scenario)[0].assigned_count == 0


def test_party_size_limits(db, scenario, slots):
    seven, _ = slots
    with pytest.raises(MinimumPlayersNotMet):
        create_booking(db, booking_request(scenario, seven.id, players=1), "min-1", CUSTOMER, now=EARLY)
    with pytest.raises(PartySizeExceeded):
        create_booking(db, booking_request(scenario, seven.id, players=5), "max-1", CUSTOMER, now=EARLY)
    with pytest.raises(InvalidRequest):
        create_booking(db, booking_request(scenario, seven.id, walk_ride="cart"), "mode-1", CUSTOMER, now=EARLY)


def test_past_tee_time_is_not_bookable(db, scenario, slots):
    seven, _ = slots
    after = datetime(2030, 6, 3, 7, 30, tzinfo=UTC)
    with pytest.raises(WindowNotOpen):
        create_booking(db, booking_request(scenario, seven.id), "past-1", CUSTOMER, now=after)


def test_slot_outside_governing_windows_is_not_bookable(db, scenario, slots):
    seven, _ = slots
    override = config_store.create_override(db, scenario.sheet_id, DAY, "Closed")
    config_store.publish_override(db, override.id)
    with pytest.raises(WindowNotOpen):
        create_booking(db, booking_request(scenario, seven.id), "closed-1", CUSTOMER, now=EARLY)


def test_booking_horizon_from_template_version(db, scenario):
    version = config_store.create_template_version(db, scenario.template_id, copy_from=scenario.version_id)
    config_store.set_booking_window(db, version.id, "public", 3)
    config_store.publish_template(db, scenario.template_id, version.id)
    override = config_store.create_override(db, scenario.sheet_id, DAY, "Three day horizon")
    config_store.add_override_window(
        db, override.draft_version_id, version.id, start_time_local="07:00", end_time_local="09:00"
    )
    config_store.publish_override(db, override.id, apply_now=True)
    seven = _slots(db, scenario)[0]

    # "full" has no horizon row of its own and falls back to "public"
    with pytest.raises(WindowNotOpen):
        create_booking(
            db, booking_request(scenario, seven.id), "far-1", CUSTOMER, now=datetime(2030, 5, 30, 12, tzinfo=UTC)
        )
    booking = create_booking(
        db, booking_request(scenario, seven.id), "near-1", CUSTOMER, now=datetime(2030, 5, 31, 12, tzinfo=UTC)
    )
    assert booking["status"] == "Active"


def test_eighteen_holes_books_the_reround_slot(db, reround_scenario):
    ids = reround_scenario
    generate_for_date(db, ids.sheet_id, DAY)
    front = _slots(db, ids, ids.front_id)
    back = {as_utc(s.start_time): s for s in _slots(db, ids, ids.back_id)}

    booking = create_booking(db, booking_request(ids, front[0].id, holes=18), "eighteen-1", CUSTOMER, now=EARLY)
    assert [leg["tee_time_id"] for leg in booking["legs"]] == [
        front[0].id,
        back[datetime(2030, 6, 3, 8, 30, tzinfo=UTC)].id,
    ]
    assert booking["total_price_cents"] == 2 * 2 * 1500
    booked = {s.id for s in _slots(db, ids, ids.back_id) if s.assigned_count == 2}
    assert booked == {back[datetime(2030, 6, 3, 8, 30, tzinfo=UTC)].id}

    # The back side allows a single leg only
    with pytest.raises(ModeNotAllowed):
        create_booking(
            db, booking_request(ids, back[datetime(2030, 6, 3, 7, 0, tzinfo=UTC)].id, holes=18), "eighteen-2",
            CUSTOMER, now=EARLY,
        )
    # No reround slot late in the day
    with pytest.raises(CapacityExceeded):
        create_booking(db, booking_request(ids, front[-1].id, holes=18), "eighteen-3", CUSTOMER, now=EARLY)


def test_cancel_cutoff_applies_to_customers_only(db, scenario, slots):
    seven, _ = slots
    booking = create_booking(db, booking_request(scenario, seven.id), "cancel-1", CUSTOMER, now=EARLY)
    late = datetime(2030, 6, 3, 6, 0, tzinfo=UTC)

    with pytest.raises(WindowHasPassed):
        cancel_booking(db, booking["id"], CUSTOMER, now=late)
    assert _slots(db, scenario)[0].assigned_count == 2

    cancelled = cancel_booking(db, booking["id"], STAFF, now=late)
    assert cancelled["status"] == "Cancelled"
    assert cancelled["cancelled_at"] is not None
    assert _slots(db, scenario)[0].assigned_count == 0
    # Cancelling twice is a no-op
    assert cancel_booking(db, booking["id"], STAFF, now=late)["status"] == "Cancelled"
    assert _slots(db, scenario)[0].assigned_count == 0


def test_customer_cancels_own_booking_before_cutoff(db, scenario, slots):
    seven, _ = slots
    booking = create_booking(db, booking_request(scenario, seven.id), "cancel-2", CUSTOMER, now=EARLY)
    with pytest.raises(AccessDenied):
        cancel_booking(db, booking["id"], OTHER_CUSTOMER, now=EARLY)
    assert cancel_booking(db, booking["id"], CUSTOMER, now=EARLY)["status"] == "Cancelled"


def test_reschedule_conflict_keeps_original(db, scenario, slots):
    seven, eight = slots
    mine = create_booking(db, booking_request(scenario, seven.id), "move-1", CUSTOMER, now=EARLY)
    create_booking(db, booking_request(scenario, eight.id, players=4), "move-fill", OTHER_CUSTOMER, now=EARLY)

    with pytest.raises(CapacityExceeded):
        reschedule_booking(db, mine["id"], eight.id, CUSTOMER, now=EARLY)
    assert [s.assigned_count for s in _slots(db, scenario)] == [2, 4]
    assert db.query(TeeTimeAssignment).filter(TeeTimeAssignment.tee_time_id == seven.id).count() == 2


def test_reschedule_moves_seats(db, scenario, slots):
    seven, eight = slots
    mine = create_booking(db, booking_request(scenario, seven.id), "move-2", CUSTOMER, now=EARLY)
    moved = reschedule_booking(db, mine["id"], eight.id, CUSTOMER, walk_ride="walk", now=EARLY)

    assert moved["id"] == mine["id"]
    assert [leg["tee_time_id"] for leg in moved["legs"]] == [eight.id]
    assert moved["total_price_cents"] == 2000
    assert [s.assigned_count for s in _slots(db, scenario)] == [0, 2]

    cancel_booking(db, mine["id"], STAFF, now=EARLY)
    with pytest.raises(InvalidState):
        reschedule_booking(db, mine["id"], seven.id, CUSTOMER, now=EARLY)


def test_update_players_respects_minimum_and_capacity(db, scenario, slots):
    seven, _ = slots
    booking = create_booking(db, booking_request(scenario, seven.id), "players-1", CUSTOMER, now=EARLY)

    with pytest.raises(MinimumPlayersNotMet):
        update_booking_players(db, booking["id"], [PlayerInput(name="Solo")], CUSTOMER)

    grown = update_booking_players(
        db, booking["id"], [PlayerInput(name="A"), PlayerInput(name="B"), PlayerInput(name="C")], CUSTOMER
    )
    assert grown["party_size"] == 3
    assert grown["total_price_cents"] == 3 * 1500
    assert [p["name"] for p in grown["legs"][0]["players"]] == ["A", "B", "C"]
    assert _slots(db, scenario)[0].assigned_count == 3

    with pytest.raises(PartySizeExceeded):
        update_booking_players(db, booking["id"], [PlayerInput(name=str(i)) for i in range(5)], CUSTOMER)
    assert db.query(TeeTimeAssignment).filter(TeeTimeAssignment.tee_time_id == seven.id).count() == 3
