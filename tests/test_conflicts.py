from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from campus_rentals.domain.conflicts import (
    ensure_no_conflict,
    find_conflicting_rental,
    intervals_overlap,
)
from campus_rentals.domain.errors import ConflictError, ErrorKind, InvalidRequestError
from campus_rentals.domain.lifecycle import can_transition, ensure_transition, is_terminal
from campus_rentals.domain.models import RentalStatus, RoomRental


T = datetime(2026, 5, 1, 8, 0, tzinfo=timezone.utc)


def at(hours: float) -> datetime:
    return T + timedelta(hours=hours)


def rental(rental_id: int, start: float, end: float, status: RentalStatus) -> RoomRental:
    return RoomRental(
        rental_id=rental_id,
        room_id=1,
        renter_id=100 + rental_id,
        start_time=at(start),
        end_time=at(end),
        status=status,
        created_at=T - timedelta(days=1),
    )


@pytest.mark.parametrize(
    ("a", "b", "expected"),
    [
        ((10, 12), (10.5, 12.5), True),
        ((10, 12), (9, 10.5), True),
        ((10, 12), (10.5, 11), True),
        ((10, 12), (9, 13), True),
        ((10, 12), (12, 14), False),
        ((10, 12), (8, 10), False),
        ((10, 12), (13, 14), False),
    ],
)
def test_intervals_overlap_is_half_open(a, b, expected) -> None:
    assert intervals_overlap(at(a[0]), at(a[1]), at(b[0]), at(b[1])) is expected
    assert intervals_overlap(at(b[0]), at(b[1]), at(a[0]), at(a[1])) is expected


def test_only_approved_rentals_conflict() -> None:
    rentals = [
        rental(1, 10, 12, RentalStatus.PENDING),
        rental(2, 10, 12, RentalStatus.REJECTED),
        rental(3, 10, 12, RentalStatus.CANCELLED),
    ]
    assert find_conflicting_rental(rentals, at(10), at(12)) is None

    rentals.append(rental(4, 11, 13, RentalStatus.APPROVED))
    conflict = find_conflicting_rental(rentals, at(10), at(12))
    assert conflict is not None
    assert conflict.rental_id == 4


def test_rental_does_not_conflict_with_itself() -> None:
    rentals = [rental(7, 10, 12, RentalStatus.APPROVED)]
    assert find_conflicting_rental(rentals, at(10), at(12), ignore_rental_id=7) is None


def test_ensure_no_conflict_raises_conflict_kind() -> None:
    with pytest.raises(ConflictError, match="already booked") as excinfo:
        ensure_no_conflict([rental(1, 10, 12, RentalStatus.APPROVED)], at(11), at(13))
    assert excinfo.value.kind is ErrorKind.CONFLICT


# --- Lifecycle table ---

def test_pending_moves_only_to_approved_or_rejected() -> None:
    assert can_transition(RentalStatus.PENDING, RentalStatus.APPROVED)
    assert can_transition(RentalStatus.PENDING, RentalStatus.REJECTED)
    assert not can_transition(RentalStatus.PENDING, RentalStatus.CANCELLED)


def test_approved_can_only_be_cancelled() -> None:
    assert can_transition(RentalStatus.APPROVED, RentalStatus.CANCELLED)
    assert not can_transition(RentalStatus.APPROVED, RentalStatus.REJECTED)
    assert not is_terminal(RentalStatus.APPROVED)


@pytest.mark.parametrize("status", [RentalStatus.REJECTED, RentalStatus.CANCELLED])
def test_rejected_and_cancelled_are_terminal(status: RentalStatus) -> None:
    assert is_terminal(status)
    for target in RentalStatus:
        assert not can_transition(status, target)


def test_re_approval_reports_not_pending() -> None:
    with pytest.raises(InvalidRequestError, match="rental is not pending"):
        ensure_transition(RentalStatus.APPROVED, RentalStatus.APPROVED)
