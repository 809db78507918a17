"""Static validation rules for room definitions and rental requests."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from campus_rentals.domain.errors import InvalidRequestError
from campus_rentals.domain.models import Room


@dataclass(frozen=True)
class RoomDefinition:
    name: str
    address: str
    capacity: int
    availability_start: Optional[datetime] = None
    availability_end: Optional[datetime] = None
    hourly_rate: Optional[Decimal] = None


@dataclass(frozen=True)
class RentalProposal:
    start_time: datetime
    end_time: datetime
    expected_attendees: Optional[int] = None


def validate_room_definition(definition: RoomDefinition) -> None:
    if not definition.name.strip():
        raise InvalidRequestError("room name is required")
    if not definition.address.strip():
        raise InvalidRequestError("room address is required")
    if definition.capacity < 1:
        raise InvalidRequestError("capacity must be at least 1")
    if (
        definition.availability_start is not None
        and definition.availability_end is not None
        and definition.availability_end <= definition.availability_start
    ):
        raise InvalidRequestError("availability end time must be after start time")
    if definition.hourly_rate is not None and definition.hourly_rate < 0:
        raise InvalidRequestError("hourly rate cannot be negative")


def validate_rental_request(room: Room, proposal: RentalProposal, now: datetime) -> None:
    """Check a proposal against the room's static constraints.

    Rules run in a fixed order and the first failure wins. Existing bookings
    are not consulted here; see ``campus_rentals.domain.conflicts``.
    """
    if not room.is_enabled:
        raise InvalidRequestError("room is disabled")
    if proposal.start_time < now:
        raise InvalidRequestError("cannot book in the past")
    if proposal.end_time <= proposal.start_time:
        raise InvalidRequestError("end time must be after start time")
    if proposal.expected_attendees is not None:
        if proposal.expected_attendees < 1:
            raise InvalidRequestError("expected attendees must be at least 1")
        if proposal.expected_attendees > room.capacity:
            raise InvalidRequestError(
                f"expected attendees ({proposal.expected_attendees}) "
                f"exceeds room capacity ({room.capacity})"
            )
    if not room.accepts_interval(proposal.start_time, proposal.end_time):
        raise InvalidRequestError("room not available during requested window")
