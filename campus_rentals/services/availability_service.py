"""Availability query composing the room catalog and conflict detection."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from typing import Optional

from campus_rentals.domain.conflicts import find_conflicting_rental
from campus_rentals.domain.errors import InvalidRequestError
from campus_rentals.domain.models import RentalStatus, Room, RoomRental, RoomStatus
from campus_rentals.repository.data_repository import DataRepository
from campus_rentals.utils.clock import ensure_utc
from campus_rentals.utils.config import Settings, get_settings


class AvailabilityService:
    """Answers which rooms are free for an interval."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def get_available_rooms(
        self,
        start_time: datetime,
        end_time: datetime,
        min_capacity: int = 0,
    ) -> list[Room]:
        start_time = ensure_utc(start_time)
        end_time = ensure_utc(end_time)
        if end_time <= start_time:
            raise InvalidRequestError("end time must be after start time")

        rooms = self._repository.list_rooms(
            status=RoomStatus.ENABLED,
            min_capacity=min_capacity if min_capacity > 0 else None,
            order_by="id",
        )
        candidates = [room for room in rooms if room.accepts_interval(start_time, end_time)]
        if not candidates:
            return []

        binding_by_room: dict[int, list[RoomRental]] = defaultdict(list)
        for rental in self._repository.list_rentals(
            statuses=(RentalStatus.APPROVED,),
            overlapping=(start_time, end_time),
        ):
            binding_by_room[rental.room_id].append(rental)

        return [
            room
            for room in candidates
            if find_conflicting_rental(binding_by_room[room.room_id], start_time, end_time) is None
        ]
