"""HTTP controller layer for the room catalog and availability search."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator

from campus_rentals.controllers.dependencies import (
    Actor,
    get_availability_service,
    get_rental_service,
    get_room_service,
    require_actor,
    require_admin,
    require_user,
    to_http_exception,
)
from campus_rentals.controllers.rentals_controller import RentalResponse, rental_response
from campus_rentals.domain.errors import RentalError
from campus_rentals.domain.models import Room, RoomStatus
from campus_rentals.services.availability_service import AvailabilityService
from campus_rentals.services.rental_service import RentalService
from campus_rentals.services.room_service import RoomService
from campus_rentals.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/rooms", tags=["rooms"])


class CreateRoomRequest(BaseModel):
    """Input DTO; domain rules such as capacity >= 1 are enforced by the service."""

    name: str = Field(max_length=200)
    address: str = Field(max_length=500)
    capacity: int
    room_info: Optional[str] = Field(default=None, max_length=2000)
    amenities: list[str] = Field(default_factory=list)
    hourly_rate: Optional[Decimal] = None
    availability_start: Optional[datetime] = None
    availability_end: Optional[datetime] = None

    @field_validator("amenities")
    @classmethod
    def strip_blank_amenities(cls, value: list[str]) -> list[str]:
        return [item.strip() for item in value if item.strip()]


class UpdateRoomRequest(BaseModel):
    name: Optional[str] = Field(default=None, max_length=200)
    address: Optional[str] = Field(default=None, max_length=500)
    capacity: Optional[int] = None
    room_info: Optional[str] = Field(default=None, max_length=2000)
    amenities: Optional[list[str]] = None
    hourly_rate: Optional[Decimal] = None
    availability_start: Optional[datetime] = None
    availability_end: Optional[datetime] = None


class DisableRoomRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=500)


class RoomResponse(BaseModel):
    room_id: int = Field(gt=0)
    owner_id: int
    name: str
    address: str
    capacity: int = Field(ge=1)
    status: RoomStatus
    room_info: Optional[str]
    amenities: list[str]
    hourly_rate: Optional[Decimal]
    availability_start: Optional[datetime]
    availability_end: Optional[datetime]
    disabled_reason: Optional[str]
    created_at: datetime


def room_response(room: Room) -> RoomResponse:
    return RoomResponse(
        room_id=room.room_id,
        owner_id=room.owner_id,
        name=room.name,
        address=room.address,
        capacity=room.capacity,
        status=room.status,
        room_info=room.room_info,
        amenities=list(room.amenities),
        hourly_rate=room.hourly_rate,
        availability_start=room.availability_start,
        availability_end=room.availability_end,
        disabled_reason=room.disabled_reason,
        created_at=room.created_at,
    )


@router.post("", response_model=RoomResponse, status_code=status.HTTP_201_CREATED)
async def create_room(
    payload: CreateRoomRequest,
    owner_id: int = Depends(require_user),
    service: RoomService = Depends(get_room_service),
) -> RoomResponse:
    try:
        room = service.create_room(
            owner_id=owner_id,
            name=payload.name,
            address=payload.address,
            capacity=payload.capacity,
            availability_start=payload.availability_start,
            availability_end=payload.availability_end,
            hourly_rate=payload.hourly_rate,
            room_info=payload.room_info,
            amenities=payload.amenities,
        )
    except RentalError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover
        logger.exception("Unexpected room creation failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create room",
        ) from exc
    return room_response(room)


@router.get("", response_model=list[RoomResponse])
async def list_rooms(
    only_enabled: bool = True,
    min_capacity: Optional[int] = Query(default=None, ge=0),
    available_from: Optional[datetime] = None,
    available_to: Optional[datetime] = None,
    service: RoomService = Depends(get_room_service),
) -> list[RoomResponse]:
    rooms = service.list_rooms(
        only_enabled=only_enabled,
        min_capacity=min_capacity,
        available_from=available_from,
        available_to=available_to,
    )
    return [room_response(room) for room in rooms]


@router.get("/mine", response_model=list[RoomResponse])
async def list_my_rooms(
    owner_id: int = Depends(require_user),
    service: RoomService = Depends(get_room_service),
) -> list[RoomResponse]:
    return [room_response(room) for room in service.list_rooms_by_owner(owner_id)]


@router.get(
    "/all",
    response_model=list[RoomResponse],
    dependencies=[Depends(require_admin)],
)
async def list_all_rooms(
    room_status: Optional[RoomStatus] = Query(default=None, alias="status"),
    service: RoomService = Depends(get_room_service),
) -> list[RoomResponse]:
    return [room_response(room) for room in service.list_all_rooms(room_status)]


@router.get("/available", response_model=list[RoomResponse])
async def list_available_rooms(
    start_time: datetime,
    end_time: datetime,
    min_capacity: int = Query(default=0, ge=0),
    service: AvailabilityService = Depends(get_availability_service),
) -> list[RoomResponse]:
    try:
        rooms = service.get_available_rooms(start_time, end_time, min_capacity)
    except RentalError as exc:
        raise to_http_exception(exc) from exc
    return [room_response(room) for room in rooms]


@router.get("/{room_id}", response_model=RoomResponse)
async def get_room(
    room_id: int,
    service: RoomService = Depends(get_room_service),
) -> RoomResponse:
    try:
        return room_response(service.get_room(room_id))
    except RentalError as exc:
        raise to_http_exception(exc) from exc


@router.patch("/{room_id}", response_model=RoomResponse)
async def update_room(
    room_id: int,
    payload: UpdateRoomRequest,
    user_id: int = Depends(require_user),
    service: RoomService = Depends(get_room_service),
) -> RoomResponse:
    try:
        room = service.update_room(
            room_id,
            user_id,
            name=payload.name,
            address=payload.address,
            capacity=payload.capacity,
            room_info=payload.room_info,
            amenities=payload.amenities,
            hourly_rate=payload.hourly_rate,
            availability_start=payload.availability_start,
            availability_end=payload.availability_end,
        )
    except RentalError as exc:
        raise to_http_exception(exc) from exc
    return room_response(room)


@router.get("/{room_id}/rentals", response_model=list[RentalResponse])
async def list_room_rentals(
    room_id: int,
    actor: Actor = Depends(require_actor),
    room_service: RoomService = Depends(get_room_service),
    rental_service: RentalService = Depends(get_rental_service),
) -> list[RentalResponse]:
    """Booking ledger of one room, visible to its organizer and to admins."""
    try:
        room = room_service.get_room(room_id)
        if not actor.is_admin and actor.user_id != room.owner_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"kind": "FORBIDDEN", "reason": "Only the room organizer can view its rentals"},
            )
        rentals = rental_service.list_rentals_for_room(room_id)
    except RentalError as exc:
        raise to_http_exception(exc) from exc
    return [rental_response(rental) for rental in rentals]


@router.post(
    "/{room_id}/enable",
    response_model=RoomResponse,
    dependencies=[Depends(require_admin)],
)
async def enable_room(
    room_id: int,
    service: RoomService = Depends(get_room_service),
) -> RoomResponse:
    try:
        return room_response(service.enable_room(room_id))
    except RentalError as exc:
        raise to_http_exception(exc) from exc


@router.post(
    "/{room_id}/disable",
    response_model=RoomResponse,
    dependencies=[Depends(require_admin)],
)
async def disable_room(
    room_id: int,
    payload: DisableRoomRequest,
    service: RoomService = Depends(get_room_service),
) -> RoomResponse:
    try:
        return room_response(service.disable_room(room_id, payload.reason))
    except RentalError as exc:
        raise to_http_exception(exc) from exc
