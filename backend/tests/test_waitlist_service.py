from datetime import timedelta

import pytest

from conftest import CUSTOMER, DAY, EARLY, OTHER_CUSTOMER, STAFF, booking_request
from teesheet.core.actor import Actor
from teesheet.core.errors import AccessDenied, CapacityExceeded, OfferInvalid, WaitlistOrderViolation
from teesheet.models.tee_time import TeeTime
from teesheet.models.waitlist_entry import WaitlistEntry
from teesheet.services.booking_service import (
    PlayerInput,
    cancel_booking,
    create_booking,
    reschedule_booking,
    update_booking_players,
)
from teesheet.services.tee_sheet_generator import generate_for_date
from teesheet.services.waitlist_service import (
    WaitlistRequest,
    accept_waitlist_offer,
    expire_stale_offers,
    join_waitlist,
    promote_waiting_for_tee_time,
    promote_waitlist_entry,
)

CAROL = Actor(id="carol", role="Customer")


def _entry(db, waitlist_id):
    db.expire_all()
    return db.query(WaitlistEntry).filter(WaitlistEntry.id == waitlist_id).one()


@pytest.fixture
def full_slot(db, scenario):
    """07:00 filled by alice (4 players); bob then carol queue for two seats each."""
    generate_for_date(db, scenario.sheet_id, DAY)
    slot = db.query(TeeTime).filter(TeeTime.tee_sheet_id == scenario.sheet_id).order_by(TeeTime.start_time).first()
    booking = create_booking(db, booking_request(scenario, slot.id, players=4), "full-slot", CUSTOMER, now=EARLY)
    bob = join_waitlist(
        db, WaitlistRequest(slot.id, 2, "full", contact_email="bob@example.com"), OTHER_CUSTOMER, now=EARLY
    )
    carol = join_waitlist(db, WaitlistRequest(slot.id, 2, "full"), CAROL, now=EARLY)
    return slot.id, booking["id"], bob["waitlist_id"], carol["waitlist_id"]


def test_join_full_slot_waits(db, full_slot):
    _, _, bob_id, carol_id = full_slot
    bob, carol = _entry(db, bob_id), _entry(db, carol_id)
    assert bob.status == "Waiting" and bob.offer_token is None
    assert carol.status == "Waiting"
    assert bob.owner_id == "bob"


def test_join_with_free_seats_is_offered_at_once(db, scenario):
    generate_for_date(db, scenario.sheet_id, DAY)
    slot = db.query(TeeTime).filter(TeeTime.tee_sheet_id == scenario.sheet_id).order_by(TeeTime.start_time).first()
    result = join_waitlist(db, WaitlistRequest(slot.id, 2, "full"), CUSTOMER, now=EARLY)
    assert result["offered"] is True
    assert result["accept_token"] == _entry(db, result["waitlist_id"]).offer_token


def test_join_denied_for_class_without_access(db, full_slot):
    slot_id, *_ = full_slot
    with pytest.raises(AccessDenied):
        join_waitlist(db, WaitlistRequest(slot_id, 2, "public"), CAROL, now=EARLY)


def test_cancel_offers_head_of_line_and_accept(db, full_slot):
    slot_id, booking_id, bob_id, carol_id = full_slot
    cancel_booking(db, booking_id, STAFF, now=EARLY)

    bob = _entry(db, bob_id)
    assert bob.status == "Offered"
    assert _entry(db, carol_id).status == "Waiting"

    booking = accept_waitlist_offer(db, bob_id, bob.offer_token, OTHER_CUSTOMER, now=EARLY + timedelta(minutes=5))
    assert booking["source"] == "waitlist"
    assert booking["owner_id"] == "bob"
    assert booking["party_size"] == 2
    assert booking["legs"][0]["players"][0]["email"] == "bob@example.com"
    accepted = _entry(db, bob_id)
    assert accepted.status == "Accepted" and accepted.booking_id == booking["id"]

    # Retrying the same accept replays the booking
    again = accept_waitlist_offer(db, bob_id, accepted.offer_token, OTHER_CUSTOMER, now=EARLY + timedelta(minutes=6))
    assert again["id"] == booking["id"]
    db.expire_all()
    assert db.query(TeeTime).filter(TeeTime.id == slot_id).one().assigned_count == 2


def test_wrong_token_is_rejected(db, full_slot):
    _, booking_id, bob_id, _ = full_slot
    cancel_booking(db, booking_id, STAFF, now=EARLY)
    with pytest.raises(OfferInvalid):
        accept_waitlist_offer(db, bob_id, "not-the-token", OTHER_CUSTOMER, now=EARLY)
    assert _entry(db, bob_id).status == "Offered"


def test_expired_offer_passes_to_next_in_line(db, full_slot):
    _, booking_id, bob_id, carol_id = full_slot
    cancel_booking(db, booking_id, STAFF, now=EARLY)
    token = _entry(db, bob_id).offer_token

    with pytest.raises(OfferInvalid):
        accept_waitlist_offer(db, bob_id, token, OTHER_CUSTOMER, now=EARLY + timedelta(minutes=16))
    assert _entry(db, bob_id).status == "Expired"
    assert _entry(db, carol_id).status == "Offered"


def test_expire_stale_offers_reoffers(db, full_slot):
    _, booking_id, bob_id, carol_id = full_slot
    cancel_booking(db, booking_id, STAFF, now=EARLY)

    assert expire_stale_offers(db, now=EARLY + timedelta(minutes=1)) == {"expired": 0, "reoffered": 0}
    assert expire_stale_offers(db, now=EARLY + timedelta(minutes=20)) == {"expired": 1, "reoffered": 1}
    assert _entry(db, bob_id).status == "Expired"
    assert _entry(db, carol_id).status == "Offered"


def test_promote_requires_staff_and_order(db, full_slot):
    _, _, bob_id, carol_id = full_slot
    with pytest.raises(AccessDenied):
        promote_waitlist_entry(db, bob_id, CUSTOMER, now=EARLY)
    with pytest.raises(WaitlistOrderViolation):
        promote_waitlist_entry(db, carol_id, STAFF, now=EARLY)
    with pytest.raises(CapacityExceeded):
        promote_waitlist_entry(db, bob_id, STAFF, now=EARLY)
    assert _entry(db, bob_id).status == "Waiting"


def test_promote_after_party_shrinks(db, full_slot):
    slot_id, booking_id, bob_id, carol_id = full_slot
    update_booking_players(db, booking_id, [PlayerInput(name="A"), PlayerInput(name="B")], CUSTOMER)

    booking = promote_waitlist_entry(db, bob_id, STAFF, now=EARLY)
    assert booking["source"] == "waitlist"
    assert _entry(db, bob_id).status == "Accepted"
    db.expire_all()
    assert db.query(TeeTime).filter(TeeTime.id == slot_id).one().assigned_count == 4

    with pytest.raises(CapacityExceeded):
        promote_waitlist_entry(db, carol_id, STAFF, now=EARLY)


def test_promote_waiting_stops_when_head_no_longer_fits(db, full_slot):
    slot_id, booking_id, bob_id, carol_id = full_slot
    update_booking_players(db, booking_id, [PlayerInput(name="A"), PlayerInput(name="B")], CUSTOMER)

    booked = promote_waiting_for_tee_time(db, slot_id, STAFF, now=EARLY)
    assert [b["owner_id"] for b in booked] == ["bob"]
    assert _entry(db, bob_id).status == "Accepted"
    assert _entry(db, carol_id).status == "Waiting"


def test_reschedule_offers_the_seats_it_leaves(db, scenario, full_slot):
    slot_id, booking_id, bob_id, carol_id = full_slot
    later = (
        db.query(TeeTime)
        .filter(TeeTime.tee_sheet_id == scenario.sheet_id, TeeTime.id != slot_id)
        .order_by(TeeTime.start_time)
        .first()
    )
    reschedule_booking(db, booking_id, later.id, CUSTOMER, now=EARLY)

    assert _entry(db, bob_id).status == "Offered"
    assert _entry(db, carol_id).status == "Waiting"
