"""Rental requests and the approval state machine."""

from __future__ import annotations

import sqlite3
from dataclasses import replace
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from campus_rentals.domain.conflicts import ensure_no_conflict
from campus_rentals.domain.constraints import RentalProposal, validate_rental_request
from campus_rentals.domain.errors import (
    ConflictError,
    ForbiddenError,
    InvalidRequestError,
    NotFoundError,
)
from campus_rentals.domain.lifecycle import ensure_transition
from campus_rentals.domain.models import RentalStatus, Room, RoomRental
from campus_rentals.repository.data_repository import DataRepository
from campus_rentals.utils.clock import Clock, ensure_utc, utc_now
from campus_rentals.utils.config import Settings, get_settings
from campus_rentals.utils.locks import RoomLockArena
from campus_rentals.utils.logger import get_logger


logger = get_logger(__name__)


def quote_total_cost(room: Room, rental: RoomRental, quantum: Decimal) -> Optional[Decimal]:
    """Displayable cost estimate; ``None`` when the room has no hourly rate."""
    if room.hourly_rate is None:
        return None
    return (room.hourly_rate * rental.duration_hours).quantize(quantum, rounding=ROUND_HALF_UP)


class RentalService:
    """Creates rental requests and drives them through their lifecycle.

    Every status change runs under the room's lock from the shared
    ``RoomLockArena`` and inside one immediate transaction, so approving two
    overlapping requests for the same room can never both succeed.
    """

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Clock] = None,
        locks: Optional[RoomLockArena] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._clock = clock or utc_now
        self._locks = locks or RoomLockArena()

    def request_rental(
        self,
        room_id: int,
        renter_id: int,
        start_time: datetime,
        end_time: datetime,
        purpose: Optional[str] = None,
        expected_attendees: Optional[int] = None,
    ) -> RoomRental:
        start_time = ensure_utc(start_time)
        end_time = ensure_utc(end_time)
        now = ensure_utc(self._clock())

        # Room edits take the same lock, so the room read here stays current until the insert.
        with self._locks.hold(room_id), self._repository.transaction() as conn:
            room = self._repository.get_room(room_id, conn=conn)
            if room is None:
                raise NotFoundError(f"Room {room_id} not found")

            validate_rental_request(
                room,
                RentalProposal(
                    start_time=start_time,
                    end_time=end_time,
                    expected_attendees=expected_attendees,
                ),
                now=now,
            )
            binding = self._repository.list_rentals(
                room_id=room_id,
                statuses=(RentalStatus.APPROVED,),
                overlapping=(start_time, end_time),
                conn=conn,
            )
            ensure_no_conflict(binding, start_time, end_time)

            rental = self._repository.insert_rental(
                room_id=room_id,
                renter_id=renter_id,
                start_time=start_time,
                end_time=end_time,
                created_at=now,
                purpose=purpose,
                expected_attendees=expected_attendees,
                conn=conn,
            )
        logger.info(
            "Rental %s requested for room %s by user %s",
            rental.rental_id,
            room_id,
            renter_id,
        )
        return rental

    def approve_rental(
        self,
        rental_id: int,
        approver_id: int,
        is_admin: bool = False,
    ) -> RoomRental:
        room_id = self._room_id_for(rental_id)
        with self._locks.hold(room_id), self._repository.transaction() as conn:
            rental, room = self._load_for_update(rental_id, conn)
            ensure_transition(rental.status, RentalStatus.APPROVED)
            self._authorize_decision(room, approver_id, is_admin, action="approve")
            if not room.is_enabled:
                raise InvalidRequestError("room is disabled")
            if not room.accepts_interval(rental.start_time, rental.end_time):
                raise InvalidRequestError("room not available during requested window")

            # Another overlapping request may have been approved since this one was filed.
            binding = self._repository.list_rentals(
                room_id=room.room_id,
                statuses=(RentalStatus.APPROVED,),
                overlapping=(rental.start_time, rental.end_time),
                conn=conn,
            )
            try:
                ensure_no_conflict(
                    binding,
                    rental.start_time,
                    rental.end_time,
                    ignore_rental_id=rental.rental_id,
                )
            except ConflictError:
                logger.warning(
                    "Approval of rental %s refused: overlaps an approved booking on room %s",
                    rental_id,
                    room.room_id,
                )
                raise

            total_cost = quote_total_cost(room, rental, self._settings.cost_quantum)
            self._repository.update_rental_status(
                rental_id,
                RentalStatus.APPROVED,
                total_cost=total_cost,
                conn=conn,
            )
        logger.info("Rental %s approved by user %s (admin=%s)", rental_id, approver_id, is_admin)
        return replace(rental, status=RentalStatus.APPROVED, total_cost=total_cost)

    def reject_rental(
        self,
        rental_id: int,
        rejecter_id: int,
        admin_notes: Optional[str] = None,
        is_admin: bool = False,
    ) -> RoomRental:
        room_id = self._room_id_for(rental_id)
        with self._locks.hold(room_id), self._repository.transaction() as conn:
            rental, room = self._load_for_update(rental_id, conn)
            ensure_transition(rental.status, RentalStatus.REJECTED)
            self._authorize_decision(room, rejecter_id, is_admin, action="reject")
            self._repository.update_rental_status(
                rental_id,
                RentalStatus.REJECTED,
                admin_notes=admin_notes,
                conn=conn,
            )
        logger.info("Rental %s rejected by user %s (admin=%s)", rental_id, rejecter_id, is_admin)
        notes = admin_notes if admin_notes is not None else rental.admin_notes
        return replace(rental, status=RentalStatus.REJECTED, admin_notes=notes)

    def admin_cancel_rental(self, rental_id: int, reason: Optional[str] = None) -> RoomRental:
        """Release an approved booking; callers must have checked admin rights."""
        room_id = self._room_id_for(rental_id)
        notes = f"Cancelled by admin: {reason.strip()}" if reason and reason.strip() else None
        with self._locks.hold(room_id), self._repository.transaction() as conn:
            rental, _ = self._load_for_update(rental_id, conn)
            ensure_transition(rental.status, RentalStatus.CANCELLED)
            self._repository.update_rental_status(
                rental_id,
                RentalStatus.CANCELLED,
                admin_notes=notes,
                conn=conn,
            )
        logger.info("Rental %s cancelled by admin", rental_id)
        return replace(
            rental,
            status=RentalStatus.CANCELLED,
            admin_notes=notes if notes is not None else rental.admin_notes,
        )

    def cancel_rental(self, rental_id: int, renter_id: int) -> RoomRental:
        room_id = self._room_id_for(rental_id)
        with self._locks.hold(room_id), self._repository.transaction() as conn:
            rental, _ = self._load_for_update(rental_id, conn)
            if rental.renter_id != renter_id:
                raise ForbiddenError("Only the renter can cancel this rental")
            ensure_transition(rental.status, RentalStatus.CANCELLED)
            self._repository.update_rental_status(rental_id, RentalStatus.CANCELLED, conn=conn)
        logger.info("Rental %s cancelled by renter %s", rental_id, renter_id)
        return replace(rental, status=RentalStatus.CANCELLED)

    def get_rental(self, rental_id: int) -> RoomRental:
        rental = self._repository.get_rental(rental_id)
        if rental is None:
            raise NotFoundError(f"Rental {rental_id} not found")
        return rental

    def list_rentals_for_room(self, room_id: int) -> list[RoomRental]:
        if self._repository.get_room(room_id) is None:
            raise NotFoundError(f"Room {room_id} not found")
        return self._repository.list_rentals(room_id=room_id, order_by="start_time")

    def list_rentals_for_renter(self, renter_id: int) -> list[RoomRental]:
        return self._repository.list_rentals(renter_id=renter_id, order_by="newest")

    def list_pending_rentals_for_owner(self, owner_id: int) -> list[RoomRental]:
        return self._repository.list_rentals(
            owner_id=owner_id,
            statuses=(RentalStatus.PENDING,),
            order_by="start_time",
        )

    def list_all_rentals(self, status: Optional[RentalStatus] = None) -> list[RoomRental]:
        return self._repository.list_rentals(
            statuses=(status,) if status is not None else None,
            order_by="newest",
        )

    def _room_id_for(self, rental_id: int) -> int:
        # room_id never changes, so it is safe to read before taking the lock.
        return self.get_rental(rental_id).room_id

    def _load_for_update(
        self,
        rental_id: int,
        conn: sqlite3.Connection,
    ) -> tuple[RoomRental, Room]:
        rental = self._repository.get_rental(rental_id, conn=conn)
        if rental is None:
            raise NotFoundError(f"Rental {rental_id} not found")
        room = self._repository.get_room(rental.room_id, conn=conn)
        if room is None:
            raise NotFoundError(f"Room {rental.room_id} not found")
        return rental, room

    @staticmethod
    def _authorize_decision(room: Room, actor_id: int, is_admin: bool, *, action: str) -> None:
        if is_admin or actor_id == room.owner_id:
            return
        raise ForbiddenError(f"only the room organizer or an admin can {action}")
