"""
Pure booking rules: reround math, class fallbacks, fees, player minimums, walk/ride and booking horizon.
No database access; booking_service and tee_sheet_generator feed these with loaded rows.
"""
from datetime import datetime, time, timedelta
from typing import Iterable, TypeVar

from teesheet.core.constants import FALLBACK_BOOKING_CLASSES, RIDE, STAFF_ROLES, WALK, WALK_RIDE_EITHER
from teesheet.core.errors import MinimumPlayersNotMet

T = TypeVar("T")


def compute_reround_start(first_start: datetime, minutes_per_hole: int, hole_count: int) -> datetime:
    """Earliest start of the second leg: first start + minutes_per_hole * hole_count."""
    return first_start + timedelta(minutes=int(minutes_per_hole or 0) * int(hole_count or 0))


def snap_to_next_slot(target: datetime, starts: Iterable[datetime]) -> datetime | None:
    """First start at or after target, or None."""
    later = [s for s in starts if s >= target]
    return min(later) if later else None


def class_rule(rules: dict[str, T], booking_class: str) -> T | None:
    """Rule for the class, else the first fallback class that has one."""
    if booking_class in rules:
        return rules[booking_class]
    for fallback in FALLBACK_BOOKING_CLASSES:
        if fallback in rules:
            return rules[fallback]
    return None


def is_class_allowed(rules: dict[str, bool], booking_class: str) -> bool:
    """No applicable rule means denied."""
    return bool(class_rule(rules, booking_class))


def leg_fee_cents(greens_fee_cents: int, cart_fee_cents: int, walk_ride: str) -> int:
    """Per-player fee for one leg: greens, plus cart when riding."""
    fee = int(greens_fee_cents or 0)
    if walk_ride == RIDE:
        fee += int(cart_fee_cents or 0)
    return fee


def enforce_min_players(party_size: int, min_players: int | None) -> None:
    minimum = int(min_players or 1)
    if party_size < minimum:
        raise MinimumPlayersNotMet(
            f"At least {minimum} players required", min_players=minimum, party_size=party_size
        )


def walk_ride_allowed(mode: str | None, selection: str) -> bool:
    if selection not in (WALK, RIDE):
        return False
    m = (mode or WALK_RIDE_EITHER).strip().lower()
    return m == WALK_RIDE_EITHER or m == selection


def booking_window_open(
    tee_local: datetime,
    now_local: datetime,
    max_days_in_advance: int | None,
    daily_release: time | None = None,
) -> bool:
    """
    True when a tee time (course-local) may be booked at now_local: it is in the future, no more than
    max_days_in_advance calendar days ahead, and on the furthest day the daily release clock has passed.
    No horizon configured means only the past check applies.
    """
    if tee_local <= now_local:
        return False
    if max_days_in_advance is None:
        return True
    days_ahead = (tee_local.date() - now_local.date()).days
    if days_ahead > max_days_in_advance:
        return False
    if days_ahead == max_days_in_advance and daily_release is not None:
        return now_local.time() >= daily_release
    return True


def is_staff(role: str | None) -> bool:
    return (role or "") in STAFF_ROLES


def inside_cancel_cutoff(tee_start: datetime, now: datetime, cutoff_hours: int) -> bool:
    return tee_start - now < timedelta(hours=cutoff_hours)


def find_reround_cycles(edges: dict[int, int | None]) -> list[list[int]]:
    """
    Cycles in the side -> rerounds_to_side graph, self-loops included (a null target already means
    "reround on the same side").
    """
    cycles: list[list[int]] = []
    done: set[int] = set()
    for origin in sorted(edges):
        path: list[int] = []
        node: int | None = origin
        while node is not None and node not in done and node not in path:
            path.append(node)
            node = edges.get(node)
        if node is not None and node in path:
            cycles.append(path[path.index(node):])
        done.update(path)
    return cycles
