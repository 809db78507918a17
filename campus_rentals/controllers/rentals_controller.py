"""HTTP controller layer for rental requests and their approval workflow."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, model_validator

from campus_rentals.controllers.dependencies import (
    Actor,
    get_rental_service,
    get_room_service,
    require_actor,
    require_admin,
    require_user,
    to_http_exception,
)
from campus_rentals.domain.errors import RentalError
from campus_rentals.domain.models import RentalStatus, RoomRental
from campus_rentals.services.rental_service import RentalService
from campus_rentals.services.room_service import RoomService
from campus_rentals.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/rentals", tags=["rentals"])


class RentalRequestPayload(BaseModel):
    room_id: int = Field(gt=0)
    start_time: datetime
    end_time: datetime
    purpose: Optional[str] = Field(default=None, max_length=1000)
    expected_attendees: Optional[int] = None


class RejectRentalPayload(BaseModel):
    admin_notes: Optional[str] = Field(default=None, max_length=2000)


class AdminCancelPayload(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=2000)


class RentalResponse(BaseModel):
    rental_id: int = Field(gt=0)
    room_id: int
    renter_id: int
    start_time: datetime
    end_time: datetime
    status: RentalStatus
    purpose: Optional[str]
    expected_attendees: Optional[int]
    admin_notes: Optional[str]
    total_cost: Optional[Decimal] = Field(default=None, ge=0)
    created_at: datetime

    @model_validator(mode="after")
    def check_interval(self) -> "RentalResponse":
        if self.end_time <= self.start_time:
            raise ValueError("rental end_time must be after start_time")
        return self


def rental_response(rental: RoomRental) -> RentalResponse:
    return RentalResponse(
        rental_id=rental.rental_id,
        room_id=rental.room_id,
        renter_id=rental.renter_id,
        start_time=rental.start_time,
        end_time=rental.end_time,
        status=rental.status,
        purpose=rental.purpose,
        expected_attendees=rental.expected_attendees,
        admin_notes=rental.admin_notes,
        total_cost=rental.total_cost,
        created_at=rental.created_at,
    )


def _decider_id(actor: Actor) -> int:
    # Admin sessions may act without a user id; ownership is then irrelevant.
    return actor.user_id if actor.user_id is not None else 0


@router.post("", response_model=RentalResponse, status_code=status.HTTP_201_CREATED)
async def request_rental(
    payload: RentalRequestPayload,
    renter_id: int = Depends(require_user),
    service: RentalService = Depends(get_rental_service),
) -> RentalResponse:
    try:
        rental = service.request_rental(
            room_id=payload.room_id,
            renter_id=renter_id,
            start_time=payload.start_time,
            end_time=payload.end_time,
            purpose=payload.purpose,
            expected_attendees=payload.expected_attendees,
        )
    except RentalError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover
        logger.exception("Unexpected rental request failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to submit rental request",
        ) from exc
    return rental_response(rental)


@router.get("/mine", response_model=list[RentalResponse])
async def list_my_rentals(
    renter_id: int = Depends(require_user),
    service: RentalService = Depends(get_rental_service),
) -> list[RentalResponse]:
    return [rental_response(rental) for rental in service.list_rentals_for_renter(renter_id)]


@router.get("/pending", response_model=list[RentalResponse])
async def list_pending_for_my_rooms(
    owner_id: int = Depends(require_user),
    service: RentalService = Depends(get_rental_service),
) -> list[RentalResponse]:
    return [rental_response(rental) for rental in service.list_pending_rentals_for_owner(owner_id)]


@router.get(
    "",
    response_model=list[RentalResponse],
    dependencies=[Depends(require_admin)],
)
async def list_all_rentals(
    rental_status: Optional[RentalStatus] = Query(default=None, alias="status"),
    service: RentalService = Depends(get_rental_service),
) -> list[RentalResponse]:
    return [rental_response(rental) for rental in service.list_all_rentals(rental_status)]


@router.get("/{rental_id}", response_model=RentalResponse)
async def get_rental(
    rental_id: int,
    actor: Actor = Depends(require_actor),
    rental_service: RentalService = Depends(get_rental_service),
    room_service: RoomService = Depends(get_room_service),
) -> RentalResponse:
    try:
        rental = rental_service.get_rental(rental_id)
        if not actor.is_admin and actor.user_id != rental.renter_id:
            room = room_service.get_room(rental.room_id)
            if actor.user_id != room.owner_id:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail={"kind": "FORBIDDEN", "reason": "Not allowed to view this rental"},
                )
    except RentalError as exc:
        raise to_http_exception(exc) from exc
    return rental_response(rental)


@router.post("/{rental_id}/approve", response_model=RentalResponse)
async def approve_rental(
    rental_id: int,
    actor: Actor = Depends(require_actor),
    service: RentalService = Depends(get_rental_service),
) -> RentalResponse:
    try:
        rental = service.approve_rental(rental_id, _decider_id(actor), is_admin=actor.is_admin)
    except RentalError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover
        logger.exception("Unexpected approval failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to approve rental",
        ) from exc
    return rental_response(rental)


@router.post("/{rental_id}/reject", response_model=RentalResponse)
async def reject_rental(
    rental_id: int,
    payload: RejectRentalPayload,
    actor: Actor = Depends(require_actor),
    service: RentalService = Depends(get_rental_service),
) -> RentalResponse:
    try:
        rental = service.reject_rental(
            rental_id,
            _decider_id(actor),
            admin_notes=payload.admin_notes,
            is_admin=actor.is_admin,
        )
    except RentalError as exc:
        raise to_http_exception(exc) from exc
    return rental_response(rental)


@router.post("/{rental_id}/cancel", response_model=RentalResponse)
async def cancel_rental(
    rental_id: int,
    renter_id: int = Depends(require_user),
    service: RentalService = Depends(get_rental_service),
) -> RentalResponse:
    try:
        rental = service.cancel_rental(rental_id, renter_id)
    except RentalError as exc:
        raise to_http_exception(exc) from exc
    return rental_response(rental)


@router.post(
    "/{rental_id}/admin_cancel",
    response_model=RentalResponse,
    dependencies=[Depends(require_admin)],
)
async def admin_cancel_rental(
    rental_id: int,
    payload: AdminCancelPayload,
    service: RentalService = Depends(get_rental_service),
) -> RentalResponse:
    try:
        rental = service.admin_cancel_rental(rental_id, payload.reason)
    except RentalError as exc:
        raise to_http_exception(exc) from exc
    return rental_response(rental)
