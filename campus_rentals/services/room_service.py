"""Room catalog: registration, editing and admin enable/disable."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence, Union

from campus_rentals.domain.constraints import RoomDefinition, validate_room_definition
from campus_rentals.domain.errors import ForbiddenError, InvalidRequestError, NotFoundError
from campus_rentals.domain.models import (
    RentalStatus,
    Room,
    RoomStatus,
    UserResolver,
    UserRole,
)
from campus_rentals.repository.data_repository import DataRepository
from campus_rentals.utils.clock import Clock, ensure_utc, utc_now
from campus_rentals.utils.config import Settings, get_settings
from campus_rentals.utils.locks import RoomLockArena
from campus_rentals.utils.logger import get_logger


logger = get_logger(__name__)

Money = Union[Decimal, int, float, str]

_ACTIVE_RENTAL_STATUSES = (RentalStatus.PENDING, RentalStatus.APPROVED)


def to_money(value: Optional[Money]) -> Optional[Decimal]:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _optional_utc(value: Optional[datetime]) -> Optional[datetime]:
    return ensure_utc(value) if value is not None else None


def _normalize_amenities(amenities: Sequence[str]) -> tuple[str, ...]:
    # Stored comma-separated, so commas inside a single amenity are dropped.
    cleaned = (item.replace(",", " ").strip() for item in amenities)
    return tuple(item for item in cleaned if item)


class RoomService:
    """Owns Room records and the invariants attached to them."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
        user_resolver: Optional[UserResolver] = None,
        clock: Optional[Clock] = None,
        locks: Optional[RoomLockArena] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._user_resolver: UserResolver = user_resolver or self._repository
        self._clock = clock or utc_now
        self._locks = locks or RoomLockArena()

    def create_room(
        self,
        owner_id: int,
        name: str,
        address: str,
        capacity: int,
        availability_start: Optional[datetime] = None,
        availability_end: Optional[datetime] = None,
        hourly_rate: Optional[Money] = None,
        *,
        room_info: Optional[str] = None,
        amenities: Sequence[str] = (),
    ) -> Room:
        owner = self._user_resolver.resolve_user(owner_id)
        if owner is None:
            raise NotFoundError(f"User {owner_id} not found")
        if owner.role is not UserRole.ORGANIZER:
            raise ForbiddenError("Only organizers can create rooms")

        definition = RoomDefinition(
            name=name,
            address=address,
            capacity=capacity,
            availability_start=_optional_utc(availability_start),
            availability_end=_optional_utc(availability_end),
            hourly_rate=to_money(hourly_rate),
        )
        validate_room_definition(definition)

        room = self._repository.insert_room(
            owner_id=owner_id,
            name=definition.name.strip(),
            address=definition.address.strip(),
            capacity=definition.capacity,
            created_at=self._clock(),
            availability_start=definition.availability_start,
            availability_end=definition.availability_end,
            hourly_rate=definition.hourly_rate,
            room_info=room_info,
            amenities=_normalize_amenities(amenities),
        )
        logger.info("Room %s created by organizer %s", room.room_id, owner_id)
        return room

    def update_room(
        self,
        room_id: int,
        user_id: int,
        *,
        name: Optional[str] = None,
        address: Optional[str] = None,
        capacity: Optional[int] = None,
        room_info: Optional[str] = None,
        amenities: Optional[Sequence[str]] = None,
        hourly_rate: Optional[Money] = None,
        availability_start: Optional[datetime] = None,
        availability_end: Optional[datetime] = None,
    ) -> Room:
        """Apply a partial edit; ``None`` leaves the attribute unchanged."""
        with self._locks.hold(room_id), self._repository.transaction() as conn:
            room = self._repository.get_room(room_id, conn=conn)
            if room is None:
                raise NotFoundError(f"Room {room_id} not found")
            if room.owner_id != user_id:
                raise ForbiddenError("Only the room organizer can update this room")

            updated = replace(
                room,
                name=name.strip() if name is not None else room.name,
                address=address.strip() if address is not None else room.address,
                capacity=capacity if capacity is not None else room.capacity,
                room_info=room_info if room_info is not None else room.room_info,
                amenities=(
                    _normalize_amenities(amenities) if amenities is not None else room.amenities
                ),
                hourly_rate=to_money(hourly_rate) if hourly_rate is not None else room.hourly_rate,
                availability_start=(
                    ensure_utc(availability_start)
                    if availability_start is not None
                    else room.availability_start
                ),
                availability_end=(
                    ensure_utc(availability_end)
                    if availability_end is not None
                    else room.availability_end
                ),
            )
            validate_room_definition(
                RoomDefinition(
                    name=updated.name,
                    address=updated.address,
                    capacity=updated.capacity,
                    availability_start=updated.availability_start,
                    availability_end=updated.availability_end,
                    hourly_rate=updated.hourly_rate,
                )
            )

            if (
                updated.availability_start != room.availability_start
                or updated.availability_end != room.availability_end
            ):
                active = self._repository.list_rentals(
                    room_id=room_id,
                    statuses=_ACTIVE_RENTAL_STATUSES,
                    conn=conn,
                )
                if any(
                    not updated.accepts_interval(rental.start_time, rental.end_time)
                    for rental in active
                ):
                    raise InvalidRequestError(
                        "room has active rentals outside the new availability window"
                    )

            self._repository.save_room_details(updated, conn=conn)
        logger.info("Room %s updated by organizer %s", room_id, user_id)
        return updated

    def enable_room(self, room_id: int) -> Room:
        with self._locks.hold(room_id), self._repository.transaction() as conn:
            room = self._repository.get_room(room_id, conn=conn)
            if room is None:
                raise NotFoundError(f"Room {room_id} not found")
            self._repository.set_room_status(room_id, RoomStatus.ENABLED, None, conn=conn)
        logger.info("Room %s enabled", room_id)
        return replace(room, status=RoomStatus.ENABLED, disabled_reason=None)

    def disable_room(self, room_id: int, reason: str) -> Room:
        """Take a room out of service.

        Existing rentals are left as they are; Approved bookings are released
        only through an explicit admin cancellation.
        """
        if reason is None or not reason.strip():
            raise InvalidRequestError("a reason is required to disable a room")
        with self._locks.hold(room_id), self._repository.transaction() as conn:
            room = self._repository.get_room(room_id, conn=conn)
            if room is None:
                raise NotFoundError(f"Room {room_id} not found")
            self._repository.set_room_status(
                room_id,
                RoomStatus.DISABLED,
                reason.strip(),
                conn=conn,
            )
        logger.info("Room %s disabled: %s", room_id, reason.strip())
        return replace(room, status=RoomStatus.DISABLED, disabled_reason=reason.strip())

    def get_room(self, room_id: int) -> Room:
        room = self._repository.get_room(room_id)
        if room is None:
            raise NotFoundError(f"Room {room_id} not found")
        return room

    def list_rooms(
        self,
        *,
        only_enabled: bool = True,
        min_capacity: Optional[int] = None,
        available_from: Optional[datetime] = None,
        available_to: Optional[datetime] = None,
    ) -> list[Room]:
        """Browse the catalog by name; window filter applies only when both bounds are given."""
        rooms = self._repository.list_rooms(
            status=RoomStatus.ENABLED if only_enabled else None,
            min_capacity=min_capacity,
            order_by="name",
        )
        if available_from is None or available_to is None:
            return rooms
        start_time = ensure_utc(available_from)
        end_time = ensure_utc(available_to)
        return [room for room in rooms if room.accepts_interval(start_time, end_time)]

    def list_rooms_by_owner(self, owner_id: int) -> list[Room]:
        return self._repository.list_rooms(owner_id=owner_id, order_by="newest")

    def list_all_rooms(self, status: Optional[RoomStatus] = None) -> list[Room]:
        return self._repository.list_rooms(status=status, order_by="newest")
