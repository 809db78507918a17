"""Time-interval conflict detection against binding bookings."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from campus_rentals.domain.errors import ConflictError
from campus_rentals.domain.models import RoomRental


CONFLICT_REASON = "room is already booked for this time"


def intervals_overlap(
    first_start: datetime,
    first_end: datetime,
    second_start: datetime,
    second_end: datetime,
) -> bool:
    """Half-open overlap test; touching intervals do not overlap."""
    return first_start < second_end and second_start < first_end


def find_conflicting_rental(
    rentals: Iterable[RoomRental],
    start_time: datetime,
    end_time: datetime,
    *,
    ignore_rental_id: Optional[int] = None,
) -> Optional[RoomRental]:
    """Return the first binding rental overlapping ``[start_time, end_time)``."""
    for rental in rentals:
        if not rental.is_binding:
            continue
        if ignore_rental_id is not None and rental.rental_id == ignore_rental_id:
            continue
        if intervals_overlap(start_time, end_time, rental.start_time, rental.end_time):
            return rental
    return None


def ensure_no_conflict(
    rentals: Iterable[RoomRental],
    start_time: datetime,
    end_time: datetime,
    *,
    ignore_rental_id: Optional[int] = None,
) -> None:
    conflict = find_conflicting_rental(
        rentals,
        start_time,
        end_time,
        ignore_rental_id=ignore_rental_id,
    )
    if conflict is not None:
        raise ConflictError(CONFLICT_REASON)
