"""Allowed RoomRental status transitions."""

from __future__ import annotations

from campus_rentals.domain.errors import InvalidRequestError
from campus_rentals.domain.models import RentalStatus


ALLOWED_TRANSITIONS: dict[RentalStatus, frozenset[RentalStatus]] = {
    RentalStatus.PENDING: frozenset({RentalStatus.APPROVED, RentalStatus.REJECTED}),
    RentalStatus.APPROVED: frozenset({RentalStatus.CANCELLED}),
    RentalStatus.REJECTED: frozenset(),
    RentalStatus.CANCELLED: frozenset(),
}

_TRANSITION_ERRORS: dict[RentalStatus, str] = {
    RentalStatus.APPROVED: "rental is not pending",
    RentalStatus.REJECTED: "rental is not pending",
    RentalStatus.CANCELLED: "only approved rentals can be cancelled",
}


def is_terminal(status: RentalStatus) -> bool:
    return not ALLOWED_TRANSITIONS[status]


def can_transition(current: RentalStatus, target: RentalStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def ensure_transition(current: RentalStatus, target: RentalStatus) -> None:
    if not can_transition(current, target):
        raise InvalidRequestError(
            f"{_TRANSITION_ERRORS.get(target, 'invalid status transition')} "
            f"(current status: {current.value})"
        )
